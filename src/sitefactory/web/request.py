"""Request model handed to a RequestHandler.

Independent of any web framework: the FastAPI adapter builds one from an
incoming request, tests build them directly or from a query string.
Parameters are multi-valued; ``param()`` reads the first value.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, BinaryIO
from urllib.parse import parse_qs


@dataclass
class Upload:
    """One uploaded file."""

    filename: str
    content_type: str | None
    file: BinaryIO

    def read(self) -> bytes:
        return self.file.read()


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class SiteRequest:
    """One inbound request.

    Args:
        params: Query and form parameters; a value may be a list.
        cookies: Incoming cookies.
        path_info: Path below the handler's mount point.
        url: Address of the handler (no path info, no query string).
        query_string: Raw query string, for ``qs`` in templates.
        method: HTTP method.
        headers: Incoming headers; looked up case-insensitively.
        uploads: Uploaded files by field name.
        request_id: Correlation id; generated when missing.
    """

    def __init__(
        self,
        params: Mapping[str, Any] | None = None,
        *,
        cookies: Mapping[str, str] | None = None,
        path_info: str = "",
        url: str = "/",
        query_string: str = "",
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        uploads: Mapping[str, Upload] | None = None,
        request_id: str | None = None,
    ):
        self._params: dict[str, list[Any]] = {name: _as_list(value) for name, value in (params or {}).items()}
        self.cookies = dict(cookies or {})
        self.path_info = path_info or ""
        self.url = url
        self.query_string = query_string
        self.method = method.upper()
        self.headers = {name.lower(): value for name, value in (headers or {}).items()}
        self.uploads = dict(uploads or {})
        self.request_id = request_id or uuid.uuid4().hex

    @classmethod
    def from_query_string(cls, query_string: str, **kwargs: Any) -> SiteRequest:
        """``SiteRequest.from_query_string("type=cd&id=3", path_info="/")``"""
        query_string = query_string.lstrip("?")
        params = parse_qs(query_string, keep_blank_values=True)
        return cls(params, query_string=query_string, **kwargs)

    # ── Parameters ───────────────────────────────────────────────────

    def param(self, name: str, default: Any = None) -> Any:
        values = self._params.get(name)
        return values[0] if values else default

    def param_list(self, name: str) -> list[Any]:
        return list(self._params.get(name, []))

    def has_param(self, name: str) -> bool:
        return bool(self._params.get(name))

    def param_names(self) -> list[str]:
        return [name for name, values in self._params.items() if values]

    def set_param(self, name: str, *values: Any) -> None:
        self._params[name] = list(values)

    def add_param(self, name: str, values: Iterable[Any]) -> None:
        self._params.setdefault(name, []).extend(values)

    def delete_param(self, name: str) -> None:
        self._params.pop(name, None)

    def delete_all_params(self) -> None:
        self._params.clear()

    def all_params(self) -> dict[str, Any]:
        """Every parameter: single values as scalars, repeated ones as lists."""
        return {
            name: values[0] if len(values) == 1 else list(values)
            for name, values in self._params.items()
            if values
        }

    # ── Everything else ──────────────────────────────────────────────

    def cookie(self, name: str) -> str | None:
        return self.cookies.get(name)

    def upload(self, name: str) -> Upload | None:
        return self.uploads.get(name)

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    def __repr__(self) -> str:
        return f"SiteRequest({self.method} {self.url}{self.path_info}?{self.query_string})"
