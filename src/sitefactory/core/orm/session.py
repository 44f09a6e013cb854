"""SQLAlchemy engine and session construction for one site.

Manifesto:
    Each site owns exactly one engine and one thread-scoped session
    registry per process. Both are built from the site's configuration
    on first use and reused for the life of the Factory.

This module provides:

* ``build_url``              -- Assemble a SA ``URL`` from ``db_*`` parameters.
* ``create_site_engine``     -- Create a SA engine with SQLite-aware defaults.
* ``SiteSession``            -- Session with ``expire_on_commit=False``.
* ``site_session_factory``   -- Thread-scoped session registry bound to an engine.

Tags:
    sitefactory, orm, sqlalchemy, session, engine, dsn

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from sitefactory.core.config.store import ConfigStore

# db_type values are DB family names; SA wants driver names.
_DB_FAMILIES = {
    "sqlite": "sqlite",
    "pg": "postgresql",
    "postgres": "postgresql",
    "postgresql": "postgresql",
    "mysql": "mysql",
    "mariadb": "mariadb",
    "oracle": "oracle",
    "mssql": "mssql",
    "sybase": "sybase",
}


def build_url(config: ConfigStore) -> URL:
    """Connection URL for a site.

    ``db_dsn`` wins when set. Otherwise the URL is assembled from
    ``db_type``, ``db_username``, ``db_password``, ``db_host``, ``db_port``,
    ``db_name`` and ``db_servername`` (passed as a ``server`` query
    argument). SQLite without ``db_name`` is an in-memory database.
    """
    dsn = config.get("db_dsn")
    if dsn:
        return make_url(str(dsn))

    family = str(config.get("db_type") or "SQLite")
    drivername = _DB_FAMILIES.get(family.lower(), family.lower())
    query: dict[str, str] = {}
    if config.get("db_servername"):
        query["server"] = str(config.get("db_servername"))
    port = config.get("db_port")

    return URL.create(
        drivername,
        username=config.get("db_username") or None,
        password=config.get("db_password") or None,
        host=config.get("db_host") or None,
        port=int(port) if port else None,
        database=config.get("db_name") or None,
        query=query,
    )


def create_site_engine(url: str | URL, *, echo: bool = False, **kwargs: Any) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    SQLite connections may be shared across worker threads and get
    foreign keys switched on; an in-memory SQLite database is held on a
    single static connection so every session sees the same data.
    """
    url = make_url(url)

    if url.get_backend_name() == "sqlite":
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if url.database in (None, "", ":memory:"):
            kwargs.setdefault("poolclass", StaticPool)

        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    kwargs.setdefault("pool_pre_ping", True)
    return _sa_create_engine(url, echo=echo, **kwargs)


class SiteSession(Session):
    """Pre-configured session with ``expire_on_commit=False``.

    Objects handed to templates stay readable after the write that
    produced them has been committed.
    """

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def site_session_factory(engine: Engine, *, info: dict[str, Any] | None = None) -> scoped_session[SiteSession]:
    """Thread-scoped registry of ``SiteSession`` objects bound to *engine*.

    Calling the returned object with no arguments yields the current
    thread's session; ``info`` is copied into every session's ``info``.
    """
    return scoped_session(
        sessionmaker(bind=engine, class_=SiteSession, expire_on_commit=False, info=info or {})
    )
