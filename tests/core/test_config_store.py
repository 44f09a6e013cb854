"""
Tests for sitefactory.core.config.store.

Tests cover:
- Merge semantics: scalars override, lists append in load order, maps merge
- Include files and packages, with provenance
- Variable expansion
- Template path order
- Throttled refresh and full rebuild
"""

from unittest.mock import patch

import pytest

from sitefactory.core.config.schema import ConfigSchema
from sitefactory.core.config.store import ConfigStore


class TestMerge:
    """Tests for how successive sources combine."""

    def test_list_parameters_append_in_load_order(self, write_config):
        s1 = write_config("one.conf", "class = a.A")
        s2 = write_config("two.conf", "class = b.B")

        store = ConfigStore(s1, s2)

        assert store.get("class") == ["a.A", "b.B"]
        assert store.classes() == ["a.A", "b.B"]

    def test_scalars_override(self, write_config):
        s1 = write_config("one.conf", "db_name = foo")
        s2 = write_config("two.conf", "db_name = bar")

        store = ConfigStore(s1, s2)

        assert store.get("db_name") == "bar"

    def test_hash_parameters_merge_by_key(self, write_config):
        s1 = write_config("one.conf", "mime_types xml = text/xml\nmime_types txt = text/plain")
        s2 = write_config("two.conf", "mime_types xml = application/xml")

        store = ConfigStore(s1, s2)

        assert store.get("mime_types") == {"xml": "application/xml", "txt": "text/plain"}

    def test_defaults_come_from_schema(self):
        store = ConfigStore()

        assert store.get("db_type") == "SQLite"
        assert store.get_int("smtp_port") == 25
        assert store.get("template_dir") == []
        assert store.get("mime_types") == {}

    def test_unknown_scalar_reads_default(self):
        store = ConfigStore()

        assert store.get("nothing_here") is None
        assert store.get("nothing_here", "fallback") == "fallback"

    def test_names_are_case_insensitive(self, write_config):
        store = ConfigStore(write_config("one.conf", "Site_Title = Music"))

        assert store.get("SITE_TITLE") == "Music"
        assert "site_title" in store

    def test_missing_source_is_skipped(self, tmp_path):
        store = ConfigStore()

        assert store.load(tmp_path / "absent.conf") is False
        assert store.files() == []
        assert store.sources() == [str(tmp_path / "absent.conf")]

    def test_get_returns_copies(self, write_config):
        store = ConfigStore(write_config("one.conf", "class = a.A"))

        store.get("class").append("b.B")

        assert store.get("class") == ["a.A"]


class TestSet:
    """Tests for setting values directly."""

    def test_set_list_appends(self):
        store = ConfigStore()
        store.set("permitted_view", "about")
        store.set("permitted_view", ["help", "faq"])

        assert store.get("permitted_view") == ["about", "help", "faq"]

    def test_set_scalar_replaces(self):
        store = ConfigStore()
        store.set("db_name", "one")
        store.set("db_name", "two")

        assert store.get("db_name") == "two"

    def test_get_bool(self):
        store = ConfigStore()
        for raw, expected in [("1", True), ("yes", True), ("0", False), ("off", False), ("", False)]:
            store.set("flag", raw)
            assert store.get_bool("flag") is expected

        assert store.get_bool("never_set", default=True) is True

    def test_get_int_falls_back_on_garbage(self):
        store = ConfigStore()
        store.set("debug_level", "lots")

        assert store.get_int("debug_level", 3) == 3


class TestIncludesAndPackages:
    """Tests for include_file and use_package."""

    def test_include_file_is_read_after_the_including_file(self, write_config):
        write_config("extra.conf", "class = c.C\ndb_name = included")
        main = write_config("main.conf", "class = a.A\ninclude_file = extra.conf\nclass = b.B")

        store = ConfigStore(main)

        assert store.get("class") == ["a.A", "b.B", "c.C"]
        assert store.get("db_name") == "included"
        assert len(store.files()) == 2

    def test_include_cycle_is_broken(self, write_config):
        write_config("a.conf", "include_file = b.conf\nclass = a.A")
        write_config("b.conf", "include_file = a.conf\nclass = b.B")

        store = ConfigStore(write_config("top.conf", "include_file = a.conf"))

        assert store.get("class") == ["a.A", "b.B"]

    def test_package_values_carry_provenance(self, tmp_path, write_config):
        write_config("packages/forum.conf", "class = forum.Post\npermitted_view = threads")
        site = write_config(
            "site.conf",
            f"package_dir = {tmp_path / 'packages'}\nuse_package = forum\nclass = site.Page",
        )

        store = ConfigStore(site)

        assert store.packages() == ["forum"]
        assert store.package_loaded("forum")
        assert store.supplied_by("class", "forum.Post", "forum")
        assert not store.supplied_by("class", "site.Page", "forum")
        assert store.provenance("class")["site.Page"] == str(site)

    def test_package_directory_layout(self, tmp_path, write_config):
        write_config("packages/shop/package.conf", "class = shop.Item")
        site = write_config("site.conf", f"package_dir = {tmp_path / 'packages'}\nuse_package = shop")

        store = ConfigStore(site)

        assert store.package_loaded("shop")
        assert store.classes() == ["shop.Item"]

    def test_missing_package_is_not_loaded(self, tmp_path, write_config):
        site = write_config("site.conf", f"package_dir = {tmp_path}\nuse_package = ghosts")

        store = ConfigStore(site)

        assert store.packages() == ["ghosts"]
        assert not store.package_loaded("ghosts")


class TestExpansion:
    """Tests for ${name} references."""

    def test_reference_to_earlier_value(self, write_config):
        store = ConfigStore(write_config("one.conf", "site_root = /srv/music\ntemplate_root = ${site_root}/templates"))

        assert store.get("template_root") == "/srv/music/templates"

    def test_unknown_reference_expands_to_nothing(self, write_config):
        store = ConfigStore(write_config("one.conf", "template_root = ${nowhere}/templates"))

        assert store.get("template_root") == "/templates"


class TestTemplatePath:
    """Tests for template_path()."""

    def test_dirs_first_then_subdirs_latest_first(self, write_config):
        store = ConfigStore(
            write_config(
                "one.conf",
                """
template_dir = /a
template_root = /root/templates/
template_subdir = base
template_subdir = app
template_dir = /b
""",
            )
        )

        assert store.template_path() == ["/a", "/b", "/root/templates/app", "/root/templates/base"]

    def test_subdirs_ignored_without_root(self, write_config):
        store = ConfigStore(write_config("one.conf", "template_subdir = app"))

        assert store.template_path() == []


class TestRefresh:
    """Tests for refresh() and rebuild()."""

    def test_refresh_within_interval_stats_nothing(self, write_config):
        path = write_config("one.conf", "db_name = foo")
        store = ConfigStore(path, refresh_interval=3600)
        path.write_text("db_name = bar\n", encoding="utf-8")

        with patch("sitefactory.core.config.store._source_mtime") as mtime:
            assert store.refresh() is False

        mtime.assert_not_called()
        assert store.get("db_name") == "foo"

    def test_stale_file_triggers_full_rebuild(self, write_config):
        path = write_config("one.conf", "class = a.A\ndb_name = foo")
        store = ConfigStore(path, refresh_interval=0)
        store.set("db_name", "set directly")
        path.write_text("class = a.A\nclass = b.B\ndb_name = bar\n", encoding="utf-8")

        with patch("sitefactory.core.config.store._source_mtime", return_value=-1.0):
            assert store.refresh() is True

        assert store.get("db_name") == "bar"
        assert store.classes() == ["a.A", "b.B"]

    def test_unchanged_files_do_not_rebuild(self, write_config):
        store = ConfigStore(write_config("one.conf", "db_name = foo"), refresh_interval=0)
        store.set("db_name", "kept")

        assert store.refresh() is False
        assert store.get("db_name") == "kept"

    def test_source_that_appears_later_triggers_rebuild(self, tmp_path):
        late = tmp_path / "late.conf"
        store = ConfigStore(late, refresh_interval=0)
        late.write_text("db_name = late\n", encoding="utf-8")

        assert store.refresh() is True
        assert store.get("db_name") == "late"

    def test_rebuild_does_not_duplicate_lists(self, write_config):
        store = ConfigStore(write_config("one.conf", "class = a.A"))

        store.rebuild()
        store.rebuild()

        assert store.classes() == ["a.A"]

    def test_interval_defaults_to_config_parameter(self, write_config):
        store = ConfigStore(write_config("one.conf", "refresh_interval = 15"))

        assert store.refresh_interval == 15


class TestSchemaExtension:
    """Tests for extending the parameter skeleton."""

    def test_subclass_adds_list_parameter(self, write_config):
        class ForumSchema(ConfigSchema):
            def extra_list_parameters(self):
                return {"moderator"}

            def extra_defaults(self):
                return {"posts_per_page": 20}

        store = ConfigStore(
            write_config("one.conf", "moderator = ann\nmoderator = bob"),
            schema=ForumSchema(),
        )

        assert store.get("moderator") == ["ann", "bob"]
        assert store.get("posts_per_page") == 20
        assert store.get("class") == []


@pytest.mark.parametrize("name", ["class", "include_file", "template_dir", "permitted_view"])
def test_core_list_parameters(name):
    """Parameters that always accumulate."""
    assert ConfigSchema().cardinality(name) == "list"
