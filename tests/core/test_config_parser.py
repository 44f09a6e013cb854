"""
Tests for sitefactory.core.config.parser.
"""

from sitefactory.core.config.parser import ConfigLine, parse_config_file, parse_config_text


class TestParseConfigText:
    """Tests for parse_config_text."""

    def test_assignments_in_file_order(self):
        lines = parse_config_text("db_name = music\nclass = music.Album\n")

        assert [(line.name, line.value) for line in lines] == [
            ("db_name", "music"),
            ("class", "music.Album"),
        ]

    def test_comments_and_blank_lines_skipped(self):
        text = """
        # a comment

        db_name = music   # trailing comment
        """
        lines = parse_config_text(text)

        assert len(lines) == 1
        assert lines[0].value == "music"

    def test_hash_key(self):
        (line,) = parse_config_text("mime_types xml = text/xml")

        assert line == ConfigLine(name="mime_types", key="xml", value="text/xml", lineno=1)

    def test_quoted_value_keeps_hash(self):
        (line,) = parse_config_text('site_title = "Rock # Roll"')

        assert line.value == "Rock # Roll"

    def test_comment_after_quoted_value_stripped(self):
        lines = parse_config_text('site_title = "Rock # Roll"   # shown in the header\nname = "foo" # c')

        assert [line.value for line in lines] == ["Rock # Roll", "foo"]

    def test_single_quotes_protect_hash(self):
        (line,) = parse_config_text("error_page = 'errors #1.html' # fallback")

        assert line.value == "errors #1.html"

    def test_hash_without_leading_space_kept(self):
        (line,) = parse_config_text("colour = #fff")

        assert line.value == "#fff"

    def test_section_prefixes_names(self):
        lines = parse_config_text("[smtp]\nserver = mail.example.com\nport = 2525")

        assert [line.name for line in lines] == ["smtp_server", "smtp_port"]

    def test_names_folded_to_lower_case(self):
        (line,) = parse_config_text("DB_Name = Music")

        assert line.name == "db_name"
        assert line.value == "Music"

    def test_malformed_line_ignored(self):
        assert parse_config_text("this is not an assignment") == []

    def test_empty_value(self):
        (line,) = parse_config_text("db_password =")

        assert line.value == ""


def test_parse_config_file(tmp_path):
    path = tmp_path / "site.conf"
    path.write_text("db_name = music\n", encoding="utf-8")

    assert parse_config_file(path)[0].name == "db_name"
