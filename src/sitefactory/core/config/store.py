"""
Layered site configuration with provenance and refresh.

Manifesto:
    A site's configuration is the merge of an ordered list of files:
    a global file, a site file, the files those include and the packages
    they pull in. The merge must be predictable: scalars take the last
    value seen, lists and maps accumulate in load order. A stale store is
    rebuilt from scratch rather than patched, so list parameters never
    collect duplicate entries from a re-read file.

Architecture:
    ::

        ConfigStore
          ├── load(source)        read + merge one top-level file
          │     ├── include_file  read right after the including file
          │     └── use_package   <package_dir>/<name>.conf, provenance=name
          ├── get / set / all_names
          ├── refresh()           throttled by refresh_interval
          └── rebuild()           replay sources into a fresh state, swap

        _ConfigState  (values, provenance, files read + mtimes)
            replaced wholesale on rebuild, never edited in place by it

Tags:
    sitefactory, configuration, cascading, provenance, refresh

Doc-Types:
    api-reference
"""

from __future__ import annotations

import os
import re
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sitefactory.core.config.parser import ConfigLine, parse_config_file
from sitefactory.core.config.schema import ConfigSchema
from sitefactory.core.logging import get_logger

log = get_logger(__name__)

_EXPAND_RE = re.compile(r"\$\{(\w+)\}")


def _source_mtime(path: str | Path) -> float | None:
    try:
        return os.stat(path).st_mtime
    except OSError:
        return None


@dataclass
class _ConfigState:
    values: dict[str, Any] = field(default_factory=dict)
    provenance: dict[str, dict[str, str]] = field(default_factory=dict)
    files: dict[str, float | None] = field(default_factory=dict)
    reading: set[str] = field(default_factory=set)


class ConfigStore:
    """Ordered multimap of site parameters built from configuration files.

    Args:
        *sources: Files to load immediately, in order.
        schema: Parameter skeleton; defaults to :class:`ConfigSchema`.
        refresh_interval: Seconds between staleness checks. ``None`` reads
            the ``refresh_interval`` parameter instead.
    """

    def __init__(
        self,
        *sources: str | Path,
        schema: ConfigSchema | None = None,
        refresh_interval: float | None = None,
    ):
        self.schema = schema or ConfigSchema()
        self._refresh_interval = refresh_interval
        self._sources: list[Path] = []
        self._lock = threading.Lock()
        self._state = self._fresh_state()
        self._last_checked = time.monotonic()
        for source in sources:
            self.load(source)

    # ── Loading ──────────────────────────────────────────────────────

    def load(self, source: str | Path) -> bool:
        """Read one top-level source and merge it. Returns False if skipped."""
        path = Path(source).expanduser()
        self._sources.append(path)
        return self._read_into(self._state, path)

    def _fresh_state(self) -> _ConfigState:
        state = _ConfigState()
        for name, value in self.schema.default_values().items():
            if isinstance(value, list):
                value = list(value)
            elif isinstance(value, dict):
                value = dict(value)
            state.values[name] = value
        return state

    def _read_into(self, state: _ConfigState, path: Path, origin: str | None = None) -> bool:
        key = str(path)
        if key in state.reading:
            log.debug("config.include_cycle", path=key)
            return False
        try:
            lines = parse_config_file(path)
        except (OSError, UnicodeDecodeError) as exc:
            log.debug("config.source_skipped", path=key, reason=str(exc))
            return False

        state.files[key] = _source_mtime(path)
        state.reading.add(key)
        try:
            includes: list[str] = []
            packages: list[str] = []
            for line in lines:
                value = self._apply(state, line, origin or key)
                if line.name == "include_file":
                    includes.append(value)
                elif line.name == "use_package":
                    packages.append(value)

            for include in includes:
                target = Path(include).expanduser()
                if not target.is_absolute():
                    target = path.parent / target
                self._read_into(state, target, origin)
            for package in packages:
                self._load_package(state, package)
        finally:
            state.reading.discard(key)

        log.debug("config.source_loaded", path=key, origin=origin, lines=len(lines))
        return True

    def _load_package(self, state: _ConfigState, name: str) -> bool:
        if name in state.values.get("package", []):
            return True
        package_dir = state.values.get("package_dir")
        if not package_dir:
            log.debug("config.package_skipped", package=name, reason="no package_dir")
            return False
        base = Path(str(package_dir)).expanduser()
        for candidate in (base / f"{name}.conf", base / name / "package.conf"):
            if candidate.is_file() and self._read_into(state, candidate, origin=name):
                state.values.setdefault("package", []).append(name)
                state.provenance.setdefault("package", {})[name] = name
                return True
        log.debug("config.package_skipped", package=name, reason="not found")
        return False

    def _expand(self, state: _ConfigState, value: str) -> str:
        def _replace(match: re.Match[str]) -> str:
            current = state.values.get(match.group(1).lower())
            if current is None or isinstance(current, (list, dict)):
                return ""
            return str(current)

        return _EXPAND_RE.sub(_replace, value)

    def _apply(self, state: _ConfigState, line: ConfigLine, source: str) -> str:
        name = line.name
        value = self._expand(state, line.value)
        kind = self.schema.cardinality(name)
        key = line.key

        if kind == "hash" or key is not None:
            if key is None:
                key, _, value = value.partition("=")
                key, value = key.strip(), value.strip()
            mapping = state.values.get(name)
            if not isinstance(mapping, dict):
                mapping = {}
                state.values[name] = mapping
            mapping[key] = value
        elif kind == "list":
            state.values.setdefault(name, []).append(value)
        else:
            state.values[name] = value

        state.provenance.setdefault(name, {})[value] = source
        return value

    # ── Access ───────────────────────────────────────────────────────

    def get(self, name: str, default: Any = None) -> Any:
        """Return the value of *name*.

        Lists and maps come back as copies; unset lists read as ``[]`` and
        unset maps as ``{}``.
        """
        name = name.lower()
        value = self._state.values.get(name)
        if value is None:
            kind = self.schema.cardinality(name)
            if kind == "list":
                return []
            if kind == "hash":
                return {}
            return default
        if isinstance(value, list):
            return list(value)
        if isinstance(value, dict):
            return dict(value)
        return value

    def get_int(self, name: str, default: int = 0) -> int:
        value = self.get(name)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_bool(self, name: str, default: bool = False) -> bool:
        value = self.get(name)
        if value is None:
            return default
        if isinstance(value, str):
            return value.strip().lower() not in ("", "0", "false", "no", "off")
        return bool(value)

    def set(self, name: str, value: Any) -> None:
        """Set *name* following its cardinality: lists and maps append."""
        name = name.lower()
        values = self._state.values
        kind = self.schema.cardinality(name)
        if kind == "list":
            items = value if isinstance(value, (list, tuple)) else [value]
            values.setdefault(name, []).extend(items)
        elif kind == "hash" and isinstance(value, dict):
            values.setdefault(name, {}).update(value)
        else:
            values[name] = value

    def all_names(self) -> list[str]:
        """Every parameter name held, in first-definition order."""
        return list(self._state.values)

    def as_dict(self) -> dict[str, Any]:
        return {name: self.get(name) for name in self.all_names()}

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._state.values

    # ── Provenance and shorthands ────────────────────────────────────

    def provenance(self, name: str) -> dict[str, str]:
        """Map each value of *name* to the file or package that supplied it."""
        return dict(self._state.provenance.get(name.lower(), {}))

    def supplied_by(self, name: str, value: str, package: str) -> bool:
        """True if *value* of parameter *name* came from *package*."""
        return self.provenance(name).get(value) == package

    def packages(self) -> list[str]:
        """Packages that were asked for (not necessarily loaded)."""
        return self.get("use_package")

    def package_loaded(self, name: str) -> bool:
        return name in self.get("package")

    def classes(self) -> list[str]:
        return self.get("class")

    def files(self) -> list[str]:
        """Every file read into the current state, includes and packages too."""
        return list(self._state.files)

    def sources(self) -> list[str]:
        return [str(path) for path in self._sources]

    def template_path(self) -> list[str]:
        """Template search path.

        Every ``template_dir`` comes first, in declared order; then
        ``template_root/<subdir>`` for each ``template_subdir``, latest
        declared first.
        """
        path = self.get("template_dir")
        root = self.get("template_root")
        if root:
            root = str(root).rstrip("/")
            path.extend(f"{root}/{subdir}" for subdir in reversed(self.get("template_subdir")))
        return path

    # ── Refresh ──────────────────────────────────────────────────────

    @property
    def refresh_interval(self) -> float:
        if self._refresh_interval is not None:
            return self._refresh_interval
        return self.get_int("refresh_interval", 0)

    @refresh_interval.setter
    def refresh_interval(self, seconds: float | None) -> None:
        self._refresh_interval = seconds

    def refresh(self) -> bool:
        """Rebuild the store if any file read has changed.

        Calls within ``refresh_interval`` of the previous check return
        immediately without touching the filesystem. Returns True when a
        rebuild happened.
        """
        with self._lock:
            now = time.monotonic()
            if now - self._last_checked < self.refresh_interval:
                return False
            self._last_checked = now
            if not self._is_stale():
                return False
            self.rebuild()
            return True

    def _is_stale(self) -> bool:
        state = self._state
        for path, mtime in state.files.items():
            if _source_mtime(path) != mtime:
                log.info("config.source_changed", path=path)
                return True
        for source in self._sources:
            if str(source) not in state.files and _source_mtime(source) is not None:
                log.info("config.source_appeared", path=str(source))
                return True
        return False

    def rebuild(self) -> None:
        """Discard everything and replay the original sources in order."""
        state = self._fresh_state()
        for source in self._sources:
            self._read_into(state, source)
        self._state = state
        log.info("config.rebuilt", sources=len(self._sources), files=len(state.files))

    def __repr__(self) -> str:
        return f"ConfigStore(sources={self.sources()!r})"
