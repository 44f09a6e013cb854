"""Factory: the per-site facade over configuration, data classes and services.

Manifesto:
    One Factory serves one site for the life of the process. It knows the
    site's configuration, the data classes the site manages (by moniker)
    and how to reach the site's database, templates, mail server and
    operators. Everything expensive is built on first use, exactly once,
    even when several request threads get there at the same moment.

    Templates and handlers talk to data classes only through the Factory,
    and only through a closed set of named operations.

Architecture:
    ::

        Factory
          ├── config          ConfigStore (lazy; refresh_config / rebuild_config)
          ├── class_registry  ClassRegistry (lazy; moniker → class)
          ├── invoke(op, moniker, *args)
          │     op ∈ extra_operations() ∪ OPERATION_NAMES, else raises
          │     unknown moniker → None
          ├── engine / _dbc() / dbh()       SQLAlchemy, thread-scoped sessions
          ├── tt / process()                jinja2
          ├── mailer / alerts / notify_admin()
          ├── ghost_object / list / pager
          └── fail() / debug() / status()

Examples:
    >>> factory = Factory.instance("music")
    >>> cd = factory.retrieve("cd", 3)
    >>> factory.invoke("count", "cd")
    12

Tags:
    sitefactory, framework, factory, dispatch, multi-tenant

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, NoReturn

from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session, scoped_session

from sitefactory.core.config.schema import ConfigSchema
from sitefactory.core.config.settings import SiteFactorySettings, get_settings
from sitefactory.core.config.store import ConfigStore
from sitefactory.core.errors import (
    ClassLoadError,
    FatalError,
    NotFoundError,
    OperationNotRecognizedError,
    ServerError,
    SiteFactoryError,
    TemplateError,
)
from sitefactory.core.logging import get_logger
from sitefactory.core.orm.base import ManagedRecord
from sitefactory.core.orm.session import build_url, create_site_engine, site_session_factory
from sitefactory.framework.alerts import (
    Alert,
    AlertRegistry,
    AlertSeverity,
    DeliveryResult,
    EmailChannel,
    LogChannel,
)
from sitefactory.framework.ghost import Ghost
from sitefactory.framework.instances import SINGLETON_KEY
from sitefactory.framework.instances import registry as instance_registry
from sitefactory.framework.listing import ObjectList, Pager
from sitefactory.framework.mailer import Mailer
from sitefactory.framework.operations import OperationFunc, resolve_operation
from sitefactory.framework.registry import ClassRegistry
from sitefactory.framework.templates import TemplateEngine

log = get_logger(__name__)


class Factory:
    """Per-site facade.

    Args:
        global_config_file: Config file read first. Defaults to the
            ``global_config`` setting.
        site_config_file: Config file read second. Defaults to the
            ``site_config`` setting.
        site_id: Key this Factory is registered under.
        settings: Process settings; defaults to :func:`get_settings`.
        throw_exceptions: Overrides the ``throw_exceptions`` setting.
        strict_class_loading: Overrides the ``strict_class_loading`` setting.
    """

    config_schema_class: type[ConfigSchema] = ConfigSchema
    ghost_class: type[Ghost] = Ghost
    list_class: type[ObjectList] = ObjectList
    pager_class: type[Pager] = Pager
    template_engine_class: type[TemplateEngine] = TemplateEngine
    mailer_class: type[Mailer] = Mailer

    refresh_on_instance = True

    def __init__(
        self,
        global_config_file: str | None = None,
        site_config_file: str | None = None,
        *,
        site_id: str | None = None,
        settings: SiteFactorySettings | None = None,
        throw_exceptions: bool | None = None,
        strict_class_loading: bool | None = None,
    ):
        self.settings = settings or get_settings()
        self.global_config_file = global_config_file or self.settings.global_config
        self.site_config_file = site_config_file or self.settings.site_config
        self.id = site_id or SINGLETON_KEY
        self.created_at = datetime.now(timezone.utc)

        self._throw_exceptions = (
            self.settings.throw_exceptions if throw_exceptions is None else throw_exceptions
        )
        strict = self.settings.strict_class_loading if strict_class_loading is None else strict_class_loading

        self._lock = threading.RLock()
        self._config: ConfigStore | None = None
        self._classes = ClassRegistry(strict=strict)
        self._engine: Engine | None = None
        self._sessions: scoped_session[Session] | None = None
        self._tt: TemplateEngine | None = None
        self._mailer: Mailer | None = None
        self._alerts: AlertRegistry | None = None

        log.debug("factory.created", site=self.id, factory_class=type(self).__name__)

    @classmethod
    def instance(cls, tenant_id: str | None = None, *args: Any, **kwargs: Any) -> Factory:
        """The process-wide Factory for *tenant_id*, built on first use."""
        return instance_registry.instance(tenant_id, *args, factory_class=cls, **kwargs)

    # ── Configuration ────────────────────────────────────────────────

    def config_schema(self) -> ConfigSchema:
        return self.config_schema_class()

    @property
    def config(self) -> ConfigStore:
        config = self._config
        if config is None:
            with self._lock:
                if self._config is None:
                    self._config = self._build_config()
                config = self._config
        return config

    def _build_config(self) -> ConfigStore:
        sources = [path for path in (self.global_config_file, self.site_config_file) if path]
        store = ConfigStore(*sources, schema=self.config_schema())
        log.info("factory.config_built", site=self.id, sources=sources, files=len(store.files()))
        return store

    def refresh_config(self) -> bool:
        """Rebuild the configuration if a file changed; new classes are loaded.

        Does nothing before the configuration has first been read.
        """
        config = self._config
        if config is None or not config.refresh():
            return False
        if self._classes.loaded:
            self.load_classes(reload=True)
        return True

    def rebuild_config(self) -> None:
        with self._lock:
            self.config.rebuild()
            if self._classes.loaded:
                self.load_classes(reload=True)

    @property
    def throw_exceptions(self) -> bool:
        return self._throw_exceptions

    @throw_exceptions.setter
    def throw_exceptions(self, value: bool) -> None:
        self._throw_exceptions = bool(value)

    @property
    def debug_level(self) -> int:
        return self.config.get_int("debug_level", 0)

    # ── Classes ──────────────────────────────────────────────────────

    @property
    def class_registry(self) -> ClassRegistry:
        registry = self._classes
        if not registry.loaded:
            with self._lock:
                if not registry.loaded:
                    self.load_classes()
        return registry

    def load_classes(self, reload: bool = False) -> list[str]:
        with self._lock:
            self.pre_require()
            try:
                added = self._classes.load_all(self.config.classes(), reload=reload, on_loaded=self.post_require)
            except ClassLoadError as exc:
                self.fail(error=exc, class_name=exc.class_name)
        if added:
            log.info("factory.classes_loaded", site=self.id, monikers=added)
        return added

    def pre_require(self) -> None:
        """Hook run before the configured classes are loaded."""

    def post_require(self, moniker: str, cls: type) -> None:
        """Hook run after each class is loaded."""
        self.debug(2, "factory.class_loaded", moniker=moniker, class_name=cls.__name__)

    def use_classes(self, *class_names: str) -> list[str]:
        """Add classes to the site; loaded at once if classes are already loaded."""
        self.config.set("class", list(class_names))
        if self._classes.loaded:
            return self.load_classes(reload=True)
        return []

    @property
    def classes(self) -> list[str]:
        """Monikers of the site's classes, in load order."""
        return self.class_registry.monikers

    def class_for(self, moniker: str | None) -> type | None:
        return self.class_registry.class_for(moniker)

    def class_name(self, moniker: str | None) -> str | None:
        entry = self.class_registry.get(moniker)
        return entry.class_name if entry else None

    def has_class(self, moniker: str | None) -> bool:
        return self.class_registry.has(moniker)

    def moniker_from_class(self, cls: type | str | None) -> str | None:
        if cls is None:
            return None
        return self.class_registry.moniker_for_class(cls)

    def _class_metadata(self, attribute: str, moniker: str | None) -> Any:
        if moniker:
            entry = self.class_registry.get(moniker)
            return getattr(entry, attribute) if entry else None
        return {entry.moniker: getattr(entry, attribute) for entry in self.class_registry}

    def title(self, moniker: str | None = None) -> Any:
        return self._class_metadata("title", moniker)

    def plural(self, moniker: str | None = None) -> Any:
        return self._class_metadata("plural", moniker)

    def description(self, moniker: str | None = None) -> Any:
        return self._class_metadata("description", moniker)

    # ── Dispatch ─────────────────────────────────────────────────────

    def extra_operations(self) -> Mapping[str, OperationFunc]:
        """Site-specific operations, ``name -> fn(cls, factory, *args, **kwargs)``."""
        return {}

    def invoke(self, operation: Any, moniker: str | None, *args: Any, **kwargs: Any) -> Any:
        """Run an allow-listed operation against the class for *moniker*.

        Raises:
            OperationNotRecognizedError: *operation* is not allowed, whatever
                the moniker. Raised through :meth:`fail`, so it becomes a
                FatalError when exceptions are not thrown.

        Returns:
            The operation's result unchanged, or None when *moniker* is not
            one of the site's classes.
        """
        try:
            func = resolve_operation(operation, self.extra_operations())
        except OperationNotRecognizedError as exc:
            self.fail(error=exc, operation=exc.operation)
        cls = self.class_for(moniker)
        if cls is None:
            self.debug(1, "factory.unknown_moniker", moniker=moniker, operation=getattr(operation, "value", operation))
            return None
        return func(cls, self, *args, **kwargs)

    def create(self, moniker: str, fields: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        return self.invoke("create", moniker, fields, **kwargs)

    def retrieve(self, moniker: str, id: Any) -> Any:
        return self.invoke("retrieve", moniker, id)

    def find_or_create(self, moniker: str, fields: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        return self.invoke("find_or_create", moniker, fields, **kwargs)

    def all(self, moniker: str) -> Any:
        return self.invoke("retrieve_all", moniker)

    def search(self, moniker: str, criteria: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        return self.invoke("search", moniker, criteria, **kwargs)

    def search_like(self, moniker: str, criteria: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        return self.invoke("search_like", moniker, criteria, **kwargs)

    def count_all(self, moniker: str) -> Any:
        return self.invoke("count_all", moniker)

    def columns(self, moniker: str, group: str = "All") -> Any:
        return self.invoke("columns", moniker, group)

    def find_column(self, moniker: str, name: str) -> Any:
        return self.invoke("find_column", moniker, name)

    def max(self, moniker: str, column: str) -> Any:
        return self.invoke("maximum_value_of", moniker, column)

    def min(self, moniker: str, column: str) -> Any:
        return self.invoke("minimum_value_of", moniker, column)

    def table(self, moniker: str) -> Any:
        return self.invoke("table", moniker)

    def primary(self, moniker: str) -> Any:
        return self.invoke("primary", moniker)

    def create_table(self, moniker: str) -> Any:
        return self.invoke("create_table", moniker)

    def retrieve_random(self, moniker: str) -> Any:
        return self.invoke("retrieve_random", moniker)

    def column_type(self, moniker: str, name: str) -> Any:
        return self.invoke("column_type", moniker, name)

    def meta_info(self, moniker: str, reltype: str | None = None) -> Any:
        return self.invoke("meta_info", moniker, reltype)

    # ── Database ─────────────────────────────────────────────────────

    def dsn(self) -> URL:
        return build_url(self.config)

    @property
    def engine(self) -> Engine:
        engine = self._engine
        if engine is None:
            with self._lock:
                if self._engine is None:
                    url = self.dsn()
                    self._engine = create_site_engine(url, echo=self.debug_level >= 4)
                    log.info("factory.engine_created", site=self.id, url=url.render_as_string(hide_password=True))
                engine = self._engine
        return engine

    def _dbc(self) -> scoped_session[Session]:
        """The memoized session registry; calling it yields this thread's session."""
        sessions = self._sessions
        if sessions is None:
            with self._lock:
                if self._sessions is None:
                    self._sessions = site_session_factory(
                        self.engine,
                        info={"factory": self, "autocommit": self.config.get_bool("db_autocommit", True)},
                    )
                sessions = self._sessions
        return sessions

    def dbh(self) -> Session:
        return self._dbc()()

    def end_request(self) -> None:
        """Release this thread's session."""
        if self._sessions is not None:
            self._sessions.remove()

    def set_db(self, params: Mapping[str, Any]) -> None:
        """Write connection parameters (``name`` or ``db_name`` keys) into config.

        An engine that was already built is disposed so the next use
        connects with the new parameters.
        """
        for key, value in params.items():
            name = key if key.startswith("db_") else f"db_{key}"
            self.config.set(name, value)
        if self._engine is not None:
            self.close()

    def create_tables(self) -> list[str]:
        """Create the table of every loaded class that does not have one yet."""
        by_metadata: dict[Any, list[Any]] = {}
        for entry in self.class_registry:
            table = entry.cls.__table__
            by_metadata.setdefault(table.metadata, []).append(table)
        for metadata, tables in by_metadata.items():
            metadata.create_all(self.engine, tables=tables, checkfirst=True)
        created = [table.name for tables in by_metadata.values() for table in tables]
        log.info("factory.tables_created", site=self.id, tables=created)
        return created

    def close(self) -> None:
        """Drop sessions and dispose of the engine."""
        with self._lock:
            if self._sessions is not None:
                self._sessions.remove()
                self._sessions = None
            if self._engine is not None:
                self._engine.dispose()
                self._engine = None

    # ── Templates ────────────────────────────────────────────────────

    @property
    def tt(self) -> TemplateEngine:
        tt = self._tt
        if tt is None:
            with self._lock:
                if self._tt is None:
                    self._tt = self.template_engine_class(
                        self.config.template_path(),
                        globals={"factory": self, "config": self.config},
                    )
                tt = self._tt
        return tt

    def process(self, template: str, data: dict[str, Any] | None = None) -> str:
        """Render a named template; failures go through :meth:`fail`."""
        try:
            return self.tt.render(template, data)
        except TemplateError as exc:
            self.fail(exc.message, cause=exc, error_class=TemplateError, template=template)

    def process_string(self, source: str, data: dict[str, Any] | None = None) -> str:
        try:
            return self.tt.render_string(source, data)
        except TemplateError as exc:
            self.fail(exc.message, cause=exc, error_class=TemplateError)

    # ── Mail and operator alerts ─────────────────────────────────────

    @property
    def mailer(self) -> Mailer:
        mailer = self._mailer
        if mailer is None:
            with self._lock:
                if self._mailer is None:
                    config = self.config
                    self._mailer = self.mailer_class(
                        smtp_server=config.get("smtp_server") or "localhost",
                        smtp_port=config.get_int("smtp_port", 25),
                        mail_from=config.get("mail_from"),
                        admin_email=config.get("admin_email"),
                        renderer=self.process,
                    )
                mailer = self._mailer
        return mailer

    def send_message(
        self,
        to: str | Sequence[str],
        subject: str,
        body: str | None = None,
        *,
        template: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        return self.mailer.send_message(to, subject, body, template=template, data=data)

    def email_admin(self, subject: str, body: str) -> Any:
        return self.mailer.email_admin(subject, body)

    @property
    def alerts(self) -> AlertRegistry:
        alerts = self._alerts
        if alerts is None:
            with self._lock:
                if self._alerts is None:
                    registry = AlertRegistry()
                    registry.register(LogChannel())
                    admin = self.config.get("admin_email")
                    if admin:
                        registry.register(EmailChannel(self.mailer, [admin]))
                    self._alerts = registry
                alerts = self._alerts
        return alerts

    def notify_admin(
        self,
        title: str,
        message: str = "",
        severity: AlertSeverity = AlertSeverity.ERROR,
        error: BaseException | None = None,
        **metadata: Any,
    ) -> list[DeliveryResult]:
        """Tell the site's operators; delivery problems are logged only."""
        url = metadata.pop("url", None)
        request_id = metadata.pop("request_id", None)
        alert = Alert(
            severity=severity,
            title=title,
            message=message,
            source=self.id,
            url=url,
            request_id=request_id,
            error=error,
            metadata=metadata,
        )
        return self.alerts.send_to_all(alert)

    # ── Relationships ────────────────────────────────────────────────

    def relationships(self, moniker: str | None, reltype: str = "has_a") -> dict[str, str]:
        """Accessor name → related moniker, for related classes the site manages."""
        if reltype not in ("has_many", "might_have"):
            reltype = "has_a"
        info = self.meta_info(moniker, reltype) if moniker else None
        if not info:
            return {}
        related = {accessor: self.moniker_from_class(target) for accessor, target in info.items()}
        return {accessor: related_moniker for accessor, related_moniker in related.items() if related_moniker}

    def translate_to_moniker(self, tag: str, parent_moniker: str | None = None) -> str | None:
        if tag == "parent":
            return parent_moniker
        if tag.endswith("_id"):
            return tag[: -len("_id")]
        return tag

    def inflate_if_possible(self, column: str | None, value: Any, calling_moniker: str | None = None) -> Any:
        """Turn *value* into an object when *column* names one of the site's classes."""
        if not column or value is None or isinstance(value, (ManagedRecord, Ghost, list, dict)):
            return value
        moniker = self.translate_to_moniker(column, calling_moniker) or column
        if not self.has_class(moniker):
            return value
        return self.retrieve(moniker, value) or value

    # ── Ghosts, lists, pagers ────────────────────────────────────────

    def ghost_object(self, moniker: str | None, values: dict[str, Any] | None = None) -> Ghost | None:
        self.debug(3, "factory.ghost_object", moniker=moniker)
        return self.ghost_class.new(self, moniker, values)

    def ghost_from(self, obj: Any) -> Ghost | None:
        return self.ghost_class.from_existing(self, obj)

    def list(self, moniker: str, **criteria: Any) -> ObjectList:
        """An :class:`ObjectList`; ``sortby``, ``sortorder``, ``startat`` and
        ``step`` are window options, every other keyword a column filter.

        Raises:
            NotFoundError: *moniker* is not one of the site's classes.
        """
        if not self.has_class(moniker):
            raise NotFoundError(f"no such type '{moniker}'").with_context(site=self.id, moniker=moniker)
        options = {key: criteria.pop(key) for key in ("sortby", "sortorder", "startat", "step") if key in criteria}
        return self.list_class(self, moniker, criteria, **options)

    def list_from(self, items: Sequence[Any] | None, source: Any = None, param: str | None = None) -> ObjectList | None:
        if not items:
            return None
        return self.list_class.from_items(self, items, source=source, param=param)

    def pager(self, moniker: str, per_page: int = 10, page: int = 1) -> Pager:
        if not self.has_class(moniker):
            raise NotFoundError(f"no such type '{moniker}'").with_context(site=self.id, moniker=moniker)
        return self.pager_class(self, moniker, per_page or 10, page or 1)

    # ── Failure and status ───────────────────────────────────────────

    def fail(
        self,
        text: str | None = None,
        *,
        fatal: bool = False,
        cause: BaseException | None = None,
        error_class: type[SiteFactoryError] = ServerError,
        error: SiteFactoryError | None = None,
        **context: Any,
    ) -> NoReturn:
        """Signal a failure. Never returns.

        *error* is an already-built exception to raise in place of
        ``error_class(text)``; its message is the default *text*.

        Raises:
            ServerError: (or *error_class*, or *error*) when exceptions are
                thrown and the failure is not fatal.
            FatalError: otherwise.
        """
        text = text or (error.message if error is not None else "An unspecified error has occurred")
        log.error("factory.failure", site=self.id, text=text, fatal=fatal, **context)
        if fatal or not self._throw_exceptions:
            raise FatalError(text) from (cause or error)
        if error is None:
            error = error_class(text, cause=cause if isinstance(cause, Exception) else None)
        raise error.with_context(site=self.id, **context)

    def debug(self, level: int, event: str, **fields: Any) -> None:
        """Log *event* when *level* is within the site's ``debug_level``."""
        if level > self.debug_level:
            return
        if level == 0:
            log.warning(event, site=self.id, **fields)
        else:
            log.info(event, site=self.id, debug=level, **fields)

    def version(self) -> str:
        from sitefactory import __version__

        return __version__

    def status(self) -> dict[str, Any]:
        """Summary of this Factory, for status pages and the CLI."""
        config = self._config
        summary: dict[str, Any] = {
            "site": self.id,
            "factory_class": type(self).__name__,
            "version": self.version(),
            "created_at": self.created_at.isoformat(),
            "config_built": config is not None,
            "classes_loaded": self._classes.loaded,
            "engine_built": self._engine is not None,
            "templates_built": self._tt is not None,
        }
        if config is not None:
            summary["files"] = config.files()
            summary["template_path"] = config.template_path()
            summary["dsn"] = self.dsn().render_as_string(hide_password=True)
            summary["debug_level"] = self.debug_level
        if self._classes.loaded:
            summary["classes"] = self._classes.monikers
        return summary

    def __repr__(self) -> str:
        return f"{type(self).__name__}(site={self.id!r})"
