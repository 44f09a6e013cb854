"""Response model produced by a RequestHandler."""

from __future__ import annotations

from dataclasses import dataclass, field
from http.cookies import SimpleCookie


@dataclass
class Cookie:
    """An outgoing cookie."""

    name: str
    value: str
    path: str = "/"
    domain: str | None = None
    expires: str | None = None
    max_age: int | None = None
    secure: bool = False
    httponly: bool = True
    samesite: str | None = "Lax"

    def header_value(self) -> str:
        """The ``Set-Cookie`` header value."""
        jar: SimpleCookie = SimpleCookie()
        jar[self.name] = self.value
        morsel = jar[self.name]
        morsel["path"] = self.path
        if self.domain:
            morsel["domain"] = self.domain
        if self.expires:
            morsel["expires"] = self.expires
        if self.max_age is not None:
            morsel["max-age"] = str(self.max_age)
        if self.secure:
            morsel["secure"] = True
        if self.httponly:
            morsel["httponly"] = True
        if self.samesite:
            morsel["samesite"] = self.samesite
        return morsel.OutputString()


@dataclass
class Response:
    """Status, headers, cookies and body chunks for one request.

    ``header_sent`` flips once :meth:`RequestHandler.send_header` has
    written the head; cookies and redirects are refused after that.
    """

    status: int = 200
    content_type: str = "text/html"
    headers: dict[str, str] = field(default_factory=dict)
    cookies: list[Cookie] = field(default_factory=list)
    body: list[str] = field(default_factory=list)
    header_sent: bool = False
    no_cache: bool = True
    view: str | None = None

    @property
    def text(self) -> str:
        return "".join(self.body)

    @property
    def location(self) -> str | None:
        return self.headers.get("Location")

    def write(self, *chunks: str) -> None:
        self.body.extend(str(chunk) for chunk in chunks)

    def header_items(self) -> list[tuple[str, str]]:
        """Every header to send, ``Set-Cookie`` once per cookie."""
        items = [("Content-Type", self.content_type_header)]
        items.extend(self.headers.items())
        if self.no_cache:
            items.append(("Cache-Control", "no-cache, no-store, must-revalidate"))
            items.append(("Pragma", "no-cache"))
        items.extend(("Set-Cookie", cookie.header_value()) for cookie in self.cookies)
        return items

    @property
    def content_type_header(self) -> str:
        if self.content_type.startswith("text/") and "charset" not in self.content_type:
            return f"{self.content_type}; charset=utf-8"
        return self.content_type
