"""
Site configuration file parsing.

Configuration sources are flat text files::

    # comment
    db_name = music
    class = music.models.Album
    mime_types xml = text/xml

    [smtp]
    server = mail.example.com      # becomes smtp_server

Parsing is pure-Python and knows nothing about cardinality: it turns a
file into an ordered list of :class:`ConfigLine` records and leaves
merging to the store.

Tags:
    sitefactory, configuration, parser, pure-python

Doc-Types:
    api-reference
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

_LINE_RE = re.compile(
    r"""
    ^                             # start of line
    \s*                           # optional leading whitespace
    (?P<name>[A-Za-z_][\w.-]*)    # parameter name
    (?:\s+(?P<key>[^\s=]+))?      # optional hash key
    \s*=\s*                       # equals with optional whitespace
    (?P<value>.*)                 # everything after =
    $                             # end of line
    """,
    re.VERBOSE,
)

_SECTION_RE = re.compile(r"^\s*\[\s*(?P<section>[A-Za-z_]\w*)\s*\]\s*$")


@dataclass(frozen=True)
class ConfigLine:
    """One parsed ``name [key] = value`` assignment."""

    name: str
    value: str
    key: str | None = None
    lineno: int = 0


def _strip_comment(value: str) -> str:
    """Drop a trailing ``# comment`` that starts outside quotes."""
    quote: str | None = None
    for i, char in enumerate(value):
        if quote:
            if char == quote:
                quote = None
        elif char in ('"', "'"):
            quote = char
        elif char == "#" and i > 0 and value[i - 1].isspace():
            return value[:i].rstrip()
    return value


def _clean_value(value: str) -> str:
    value = _strip_comment(value.strip())
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def parse_config_text(text: str) -> list[ConfigLine]:
    """Parse configuration text into assignments, in file order.

    Handles:
    * blank/comment lines
    * ``[section]`` headers, which prefix following names with ``section_``
    * ``name key = value`` hash assignments
    * quoted values and inline ``# comments`` outside of quotes

    Names are folded to lower case.
    """
    lines: list[ConfigLine] = []
    section: str | None = None
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        header = _SECTION_RE.match(line)
        if header is not None:
            section = header.group("section").lower()
            continue
        match = _LINE_RE.match(line)
        if match is None:
            continue
        name = match.group("name").lower()
        if section:
            name = f"{section}_{name}"
        lines.append(
            ConfigLine(
                name=name,
                value=_clean_value(match.group("value")),
                key=match.group("key"),
                lineno=lineno,
            )
        )
    return lines


def parse_config_file(path: Path) -> list[ConfigLine]:
    """Parse a single configuration file. Raises ``OSError`` if unreadable."""
    return parse_config_text(Path(path).read_text(encoding="utf-8"))
