"""RequestHandler: turns one SiteRequest into one Response.

Manifesto:
    A request passes through a fixed sequence of steps. Each step returns
    a :class:`StepOutcome`; the first one that is not CONTINUE ends the
    sequence and is handled in exactly one place, ``build_page``. That is
    the only code that decides the status, the view and whether operators
    hear about it. Steps read input, change data and render; they never
    render failures themselves.

Architecture:
    ::

        build_page()
          │  LogContext(site, request_id)
          ▼
        check_permission → read_input → do_op → return_output
          │ first non-CONTINUE outcome
          ▼
        OK            200  view/message/errors → return_output()
        NOT_FOUND     404  return_error("notfound")
        AUTH_REQUIRED 401  return_error("denied" | "login")
        SERVER_ERROR  500  log, notify_admin, return_error("error")
        REDIRECT      302  Location + queued cookies

    Helpers that cannot return an outcome (``type()``, ``view()``,
    ``thing()``, ``retrieve()``) raise NotFoundError; the driver maps any
    exception onto an outcome with ``StepOutcome.from_error``. FatalError
    always propagates.

Examples:
    >>> request = SiteRequest.from_query_string("type=cd&id=3")
    >>> response = RequestHandler(request, factory).build_page()
    >>> response.status, response.view
    (200, 'one')

Tags:
    sitefactory, web, handler, task-sequence

Doc-Types:
    api-reference
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

from sitefactory.core.errors import FatalError, NotFoundError, categorize_error
from sitefactory.core.logging import LogContext, get_logger
from sitefactory.core.protocols import RowLike
from sitefactory.framework.factory import Factory
from sitefactory.framework.ghost import NEW_ID, Ghost
from sitefactory.framework.listing import ObjectList, Pager
from sitefactory.web.outcomes import OutcomeKind, StepOutcome
from sitefactory.web.request import SiteRequest, Upload
from sitefactory.web.response import Cookie, Response

log = get_logger(__name__)

_SUFFIX_RE = re.compile(r"\.(\w{2,4})$")

_LIST_OPTIONS = ("sortby", "sortorder", "startat", "step")


class RequestHandler:
    """Per-request handler for one site.

    Args:
        request: The inbound request.
        factory: The site's Factory. Looked up through
            ``factory_class.instance(site_id)`` when omitted.
        site_id: Site to look up when no factory is given.
    """

    factory_class: type[Factory] = Factory

    def __init__(self, request: SiteRequest, factory: Factory | None = None, *, site_id: str | None = None):
        self.request = request
        self.response = Response()
        self._factory = factory
        self._site_id = site_id

        self._thing: RowLike | None = None
        self._deleted_object: Ghost | None = None
        self._list: ObjectList | None = None
        self._pager: Pager | None = None
        self._report: list[str] = []
        self._errors: list[str] = []
        self._message: str | None = None
        self._page_template: str | None = None
        self._container_template: str | None = None
        self._template_prefix: str | None = None
        self._mime_type: str | None = None
        self._cookies_out: list[Cookie] = []

    @classmethod
    def handle(cls, request: SiteRequest, factory: Factory | None = None, **kwargs: Any) -> Response:
        return cls(request, factory, **kwargs).build_page()

    @property
    def factory(self) -> Factory:
        if self._factory is None:
            self._factory = self.factory_class.instance(self._site_id)
        return self._factory

    @property
    def config(self):
        return self.factory.config

    @property
    def tt(self):
        return self.factory.tt

    def debug(self, level: int, event: str, **fields: Any) -> None:
        self.factory.debug(level, event, **fields)

    # ── Driver ───────────────────────────────────────────────────────

    def task_sequence(self) -> list[Callable[[], Any]]:
        return [self.check_permission, self.read_input, self.do_op, self.return_output]

    def build_page(self) -> Response:
        """Run the task sequence and handle its outcome. Returns the response."""
        factory = self.factory
        with LogContext(site=factory.id, request_id=self.request.request_id):
            try:
                self.debug(1, "handler.request", url=self.full_url(), method=self.request.method)
                outcome = self.run_tasks()
                if not outcome.proceeds:
                    self.handle_outcome(outcome)
            finally:
                factory.end_request()
        return self.response

    def run_tasks(self) -> StepOutcome:
        """Run each step until one returns something other than CONTINUE."""
        for step in self.task_sequence():
            outcome = self._attempt(step)
            if not outcome.proceeds:
                self.debug(2, "handler.sequence_stopped", step=step.__name__, outcome=outcome.kind.value)
                return outcome
        return StepOutcome.proceed()

    def _attempt(self, step: Callable[[], Any]) -> StepOutcome:
        try:
            return StepOutcome.from_value(step())
        except FatalError:
            raise
        except Exception as exc:  # noqa: BLE001
            return StepOutcome.from_error(exc)

    def handle_outcome(self, outcome: StepOutcome) -> None:
        """Produce the response for a stopping outcome."""
        if outcome.kind is OutcomeKind.OK:
            self._finish(outcome)
        elif outcome.kind is OutcomeKind.REDIRECT:
            self.redirect(outcome.target)
        else:
            self.handle_failure(outcome)

    def handle_failure(self, outcome: StepOutcome) -> None:
        if outcome.kind is OutcomeKind.NOT_FOUND:
            self.return_code(outcome.status)
            self.return_error(outcome.view or "notfound", outcome)
        elif outcome.kind is OutcomeKind.AUTH_REQUIRED:
            self.return_code(outcome.status)
            self.return_error(outcome.view or ("denied" if self.session() else "login"), outcome)
        else:
            self._server_error(outcome)

    def _finish(self, outcome: StepOutcome) -> None:
        self.debug(1, "handler.finished_early", view=outcome.view, message=outcome.message)
        if outcome.view:
            self.set_param("view", outcome.view)
            self._page_template = None
        self.error(*outcome.errors)
        if outcome.message:
            self.message(outcome.message)
        self.return_code(200)
        failure = self._attempt(self.return_output)
        if not failure.proceeds:
            self.handle_failure(failure)

    def _server_error(self, outcome: StepOutcome) -> None:
        if outcome.kind is not OutcomeKind.SERVER_ERROR:
            log.warning("handler.unrecognised_outcome", kind=outcome.kind.value)
        log.error(
            "handler.server_error",
            message=outcome.message,
            recognized=outcome.recognized,
            error=outcome.error.__class__.__name__ if outcome.error else None,
            category=categorize_error(outcome.error).value if outcome.error else None,
            url=self.full_url(),
        )
        self.factory.notify_admin(
            f"Server error on {self.factory.id}",
            outcome.message or "",
            error=outcome.error,
            url=self.full_url(),
            request_id=self.request.request_id,
        )
        self.return_code(500)
        self.return_error(outcome.view or "error", outcome)

    # ── Steps ────────────────────────────────────────────────────────

    def check_permission(self) -> Any:
        return StepOutcome.proceed()

    def adjust_input(self) -> None:
        """Hook for subclasses to rewrite parameters before they are read."""

    def read_input(self) -> Any:
        """Resolve type and id from moniker-named parameters or the path info.

        ``?cd=5`` reads as ``type=cd&id=5``; the first loaded moniker
        present wins. Failing that, ``/cd/5`` does the same, ``/op/store``
        sets ``op`` and any other ``/name`` sets ``view``.
        """
        self.adjust_input()
        if not self._has_target():
            for moniker in self.factory.classes:
                value = self.param(moniker)
                if not value:
                    continue
                self.set_param("type", moniker)
                if value != "all":
                    self.set_param("id", value)
                self.delete_param(moniker)
                self.debug(3, "handler.moniker_inferred", moniker=moniker)
                break

        if not self._has_target():
            segments = self.read_path_info()
            general = segments[0] if segments else None
            specific = segments[1] if len(segments) > 1 else None
            if general == "op" and specific:
                self.set_param("op", specific)
            elif general and self.factory.has_class(general):
                self.set_param("type", general)
                if specific and specific != "all":
                    self.set_param("id", specific)
            elif general:
                self.set_param("view", general)
        return StepOutcome.proceed()

    def _has_target(self) -> bool:
        return any(self.param(name) for name in ("id", "type", "moniker"))

    def op(self) -> str | None:
        return self.param("op")

    def permitted_ops(self) -> dict[str, Callable[[], Any]]:
        return {
            "store": self.store_object,
            "delete": self.delete_object,
        }

    def do_op(self) -> Any:
        op = self.op()
        if not op:
            return StepOutcome.proceed()
        method = self.permitted_ops().get(op)
        if method is None:
            return StepOutcome.server_error(f"operation '{op}' is not known")
        self.debug(2, "handler.op", op=op)
        return StepOutcome.from_value(method())

    def return_output(self) -> Any:
        """Render the page through the container template (or directly)."""
        output = self.assemble_output()
        self.response.view = self.page_template()
        self.process(self.container_template() or self.page_template_path(), output)
        return StepOutcome.proceed()

    def return_error(self, view: str, outcome: StepOutcome | None = None) -> None:
        """Render the configured ``error_page`` for *view*, or plain text."""
        self.debug(3, "handler.return_error", view=view)
        self.response.view = view
        template = self.config.get("error_page")
        if template:
            output = self.minimal_output()
            output["error"] = view
            output["report"] = outcome
            try:
                self.process(template, output)
                return
            except FatalError:
                raise
            except Exception as exc:  # noqa: BLE001
                log.error("handler.error_page_failed", template=template, view=view, error=str(exc))
        self.set_mime_type("text/plain")
        self.print(f"{self.response.status} {view}\n")

    # ── Operations ───────────────────────────────────────────────────

    def store_object(self) -> Any:
        """Create the current ghost, or write column parameters to the current object."""
        thing = self.thing()
        if thing is None:
            return None
        if thing.is_ghost:
            obj = thing.make()
            self.set_thing(obj)
            self.set_param("id", str(obj.get(obj.primary())))
            self.debug(1, "handler.object_created", moniker=obj.type, id=obj.get(obj.primary()))
            return obj

        primary = set(thing.columns("Primary"))
        changes = {
            name: self.param(name)
            for name in self.request.param_names()
            if name not in primary and thing.find_column(name)
        }
        self.debug(1, "handler.object_updated", moniker=thing.type, columns=sorted(changes))
        for name, value in changes.items():
            thing.set(name, value)
        thing.update()
        return thing

    def delete_object(self) -> Any:
        """Delete the current object, keeping a ghost snapshot of it."""
        thing = self.thing()
        if thing is None or thing.is_ghost:
            return None
        self._deleted_object = self.factory.ghost_from(thing)
        thing.delete()
        self.set_thing(None)
        self.delete_param("id")
        return None

    def deleted_object(self) -> Ghost | None:
        return self._deleted_object

    # ── Resolved input ───────────────────────────────────────────────

    def type(self, moniker: str | None = None) -> str | None:
        """The requested moniker.

        Raises:
            NotFoundError: the parameter names no class of this site.
        """
        if moniker is not None:
            self.set_param("type", moniker)
        moniker = self.param("type") or self.param("moniker")
        if moniker and not self.factory.has_class(moniker):
            raise NotFoundError(f"No '{moniker}' data class found").with_context(moniker=moniker)
        return moniker or None

    def id(self, value: Any = None) -> Any:
        if value is not None:
            self.set_param("id", value)
        return self.param("id")

    def view(self, name: str | None = None) -> str | None:
        """The requested view.

        Raises:
            NotFoundError: the view is not in ``permitted_view`` and there
                is no current object.
        """
        if name is not None:
            self.set_param("view", name)
        view = self.param("view")
        if not view:
            return None
        if not (self.thing() or self.permitted_view(view)):
            raise NotFoundError(f"No '{view}' view found").with_context(view=view)
        return view

    def permitted_view(self, view: str) -> bool:
        return view in self.config.get("permitted_view")

    def thing(self) -> Any:
        """The current object: a Ghost for ``id=new``, else the stored object.

        Raises:
            NotFoundError: type and id are given but no such object exists.
        """
        if self._thing is not None:
            return self._thing
        moniker = self.type()
        id = self.id()
        if not (moniker and id):
            return None
        if id == NEW_ID:
            self._thing = self.ghost()
            return self._thing
        self._thing = self.retrieve(moniker, id)
        return self._thing

    def set_thing(self, obj: Any) -> None:
        self._thing = obj

    def retrieve(self, moniker: str, id: Any) -> Any:
        """Like ``factory.retrieve``, but a missing object is a NotFoundError."""
        obj = self.factory.retrieve(moniker, id)
        if obj is None:
            raise NotFoundError(f"There is no object of type {moniker} with id {id}").with_context(moniker=moniker)
        return obj

    def ghost(self) -> Ghost | None:
        """A ghost of the requested type, seeded from column-named parameters."""
        moniker = self.type()
        if not moniker:
            return None
        values = {
            column: self.fat_param(column)
            for column in self.factory.columns(moniker, "All")
            if self.param(column) not in (None, "")
        }
        return self.factory.ghost_object(moniker, values)

    def list(self, insist: bool = False) -> ObjectList | None:
        if self.id() and not insist:
            return None
        moniker = self.type()
        if not moniker:
            return None
        if self._list is None:
            criteria = {
                column: self.param(column)
                for column in self.factory.columns(moniker, "All")
                if self.param(column)
            }
            criteria.update({key: self.param(key) for key in _LIST_OPTIONS if self.param(key)})
            self._list = self.factory.list(moniker, **criteria)
        return self._list

    def pager(self, insist: bool = False) -> Pager | None:
        if self.id() and not insist:
            return None
        moniker = self.type()
        if not moniker:
            return None
        if self._pager is None:
            self._pager = self.factory.pager(moniker, self.param("per_page") or 10, self.param("page") or 1)
        return self._pager

    def session(self) -> Any:
        """The user's session; None until a subclass provides one."""
        return None

    # ── Templates ────────────────────────────────────────────────────

    def assemble_output(self) -> dict[str, Any]:
        output = {
            "handler": self,
            "factory": self.factory,
            "config": self.config,
            "session": self.session(),
            "page_template": self.page_template_path(),
            "thing": self.thing(),
            "type": self.type(),
            "list": self.list(),
            "url": self.url(),
            "qs": self.qs(),
            "path_info": self.path_info(),
            "deleted_object": self.deleted_object(),
            "input": self.all_fat_param(),
            "site_id": self.factory.id,
            "errors": list(self._errors),
            "message": self._message,
        }
        output.update(self.extra_output())
        return output

    def minimal_output(self) -> dict[str, Any]:
        return {
            "handler": self,
            "factory": self.factory,
            "config": self.config,
            "input": self.all_param(),
        }

    def extra_output(self) -> dict[str, Any]:
        return {}

    def page_template(self) -> str:
        """``one``, ``many``, the requested view or the default view."""
        if self._page_template is None:
            if self.thing():
                self._page_template = "one"
            elif self.type():
                self._page_template = "many"
            else:
                self._page_template = self.view() or self.default_view()
        return self._page_template

    def set_page_template(self, name: str) -> None:
        self._page_template = name

    def default_view(self) -> str:
        return self.config.get("default_view") or "welcome"

    def page_template_path(self) -> str:
        return f"{self.template_prefix()}{self.page_template()}{self.template_suffix()}"

    def template_prefix(self) -> str:
        prefix = self._template_prefix
        if prefix is None:
            prefix = self.config.get("template_prefix") or ""
        if prefix and not prefix.endswith("/"):
            prefix += "/"
        return prefix

    def set_template_prefix(self, prefix: str | None) -> None:
        self._template_prefix = prefix

    def template_suffix(self) -> str:
        suffix = self.config.get("template_suffix") or "html"
        return suffix if suffix.startswith(".") else f".{suffix}"

    def container_template(self) -> str | None:
        return self._container_template or self.config.get("default_container")

    def set_container_template(self, name: str | None) -> None:
        self._container_template = name

    def process(self, template: str, data: dict[str, Any]) -> None:
        self.debug(3, "handler.process", template=template)
        self.print(self.factory.process(template, data))

    # ── Messages ─────────────────────────────────────────────────────

    def report(self, *messages: str) -> list[str]:
        if messages:
            self.debug(2, "handler.report", messages=list(messages))
        self._report.extend(messages)
        return self._report

    def message(self, text: str | None = None) -> str | None:
        if text is not None:
            self._message = text
        return self._message

    def error(self, *errors: str) -> list[str]:
        if errors:
            self.debug(1, "handler.errors", errors=list(errors))
        self._errors.extend(errors)
        return self._errors

    # ── Parameters ───────────────────────────────────────────────────

    def param(self, name: str) -> Any:
        return self.request.param(name)

    def param_list(self, name: str) -> list[Any]:
        return self.request.param_list(name)

    def has_param(self, name: str | None = None) -> bool:
        if name is None:
            return bool(self.request.param_names())
        return self.request.param(name) is not None

    def all_param(self) -> dict[str, Any]:
        return self.request.all_params()

    def set_param(self, name: str, *values: Any) -> None:
        self.request.set_param(name, *values)

    def delete_param(self, *names: str) -> None:
        for name in names:
            self.request.delete_param(name)

    def delete_all_param(self) -> None:
        self.request.delete_all_params()

    def fat_param(self, name: str) -> Any:
        """``param(name)``, inflated to an object where *name* names a class."""
        return self.factory.inflate_if_possible(name, self.param(name), self.param("type"))

    def all_fat_param(self) -> dict[str, Any]:
        parent = self.param("type")
        inflated = {}
        for name, value in self.all_param().items():
            if isinstance(value, list):
                inflated[name] = [self.factory.inflate_if_possible(name, item, parent) for item in value]
            else:
                inflated[name] = self.factory.inflate_if_possible(name, value, parent)
        return inflated

    def uploads(self) -> list[str]:
        return list(self.request.uploads)

    def upload(self, name: str) -> Upload | None:
        return self.request.upload(name)

    def cookies(self) -> dict[str, str]:
        return dict(self.request.cookies)

    def cookie(self, name: str) -> str | None:
        return self.request.cookie(name)

    # ── Addresses ────────────────────────────────────────────────────

    def url(self) -> str:
        return self.request.url

    def qs(self) -> str:
        return self.request.query_string

    def full_url(self) -> str:
        qs = self.qs()
        return f"{self.url()}?{qs}" if qs else self.url()

    def path_info(self) -> str:
        return self.request.path_info

    def read_path_info(self) -> list[str]:
        """Path-info segments, with any file-type suffix removed."""
        path = _SUFFIX_RE.sub("", self.path_info())
        return [segment for segment in path.split("/") if segment]

    def path_suffix(self) -> str | None:
        match = _SUFFIX_RE.search(self.path_info())
        return match.group(1) if match else None

    def referer(self) -> str | None:
        return self.request.header("Referer")

    def headers_in(self, name: str | None = None) -> Any:
        if name is None:
            return dict(self.request.headers)
        return self.request.header(name)

    # ── Headers out ──────────────────────────────────────────────────

    def mime_type(self) -> str:
        if self._mime_type:
            return self._mime_type
        suffix = self.path_suffix()
        if suffix:
            mapped = self.config.get("mime_types").get(suffix)
            if mapped:
                return mapped
        return "text/html"

    def set_mime_type(self, mime_type: str) -> None:
        self._mime_type = mime_type

    def no_cache(self) -> bool:
        return self.config.get_bool("no_cache", False)

    def return_code(self, status: int | None = None) -> int:
        if status is not None and not self.response.header_sent:
            self.response.status = status
        return self.response.status

    @property
    def header_sent(self) -> bool:
        return self.response.header_sent

    def send_header(self) -> None:
        """Write status, content type and cookies; only the first call counts."""
        if self.response.header_sent:
            return
        self.response.content_type = self.mime_type()
        self.response.no_cache = self.no_cache()
        self.response.cookies.extend(self._cookies_out)
        self.response.header_sent = True

    def print(self, *chunks: str) -> None:
        self.send_header()
        self.response.write(*chunks)

    def set_cookie(self, name: str, value: str, **attributes: Any) -> bool:
        """Queue a cookie. Refused once the header has been sent."""
        if self.response.header_sent:
            log.warning("handler.header_already_sent", action="set_cookie", cookie=name)
            return False
        self._cookies_out.append(Cookie(name, value, **attributes))
        return True

    def redirect(self, url: str | None = None) -> bool:
        """Answer with a 302 to *url* (default: config ``url``), carrying queued cookies."""
        if self.response.header_sent:
            log.warning("handler.header_already_sent", action="redirect", target=url)
            return False
        target = url or self.config.get("url") or "/"
        self.debug(3, "handler.redirect", target=target)
        self.response.status = 302
        self.response.headers["Location"] = target
        self.response.cookies.extend(self._cookies_out)
        self.response.header_sent = True
        return True

    def redirect_to_view(self, view: str) -> Any:
        """Render *view* from the ``view_template_directory`` templates."""
        self.debug(3, "handler.redirect_to_view", view=view)
        self.set_template_prefix(self.config.get("view_template_directory") or "views")
        self.view(view)
        self._page_template = None
        return self.return_output()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.request!r})"
