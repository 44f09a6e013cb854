"""Declarative base and the managed-record contract for site data classes.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map``
that maps Python built-in types to portable SA column types.

A data class becomes manageable by a Factory by mixing in
:class:`ManagedRecord`::

    class Album(ManagedBase, ManagedRecord):
        __tablename__ = "albums"
        moniker = "album"
        class_title = "Album"

        id: Mapped[int] = mapped_column(primary_key=True)
        title: Mapped[str]

Every class-level data operation takes the owning Factory as its first
argument and works through ``factory.dbh()``, so one class definition can
serve several sites with different databases. Persisted instances reach
their Factory through their session (``session.info["factory"]``).
"""

from __future__ import annotations

import datetime
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import JSON, DateTime, Integer, Text, func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, object_session
from sqlalchemy.orm.interfaces import MANYTOONE, ONETOMANY

from sitefactory.core.errors import DatabaseError, InvalidCriteriaError

if TYPE_CHECKING:
    from sitefactory.framework.factory import Factory


class ManagedBase(DeclarativeBase):
    """Shared declarative base for site data classes.

    ``type_annotation_map`` lets Mapped columns use plain Python types:

    * ``str``   → ``Text``
    * ``int``   → ``Integer``
    * ``bool``  → ``Integer``  (SQLite has no native BOOLEAN)
    * ``datetime.datetime`` → ``DateTime``
    * ``dict`` / ``list``   → ``JSON``
    """

    type_annotation_map = {
        str: Text,
        int: Integer,
        bool: Integer,
        datetime.datetime: DateTime,
        dict: JSON,
        list: JSON,
    }


_COLUMN_GROUPS = ("All", "Essential", "Primary", "Others")


@contextmanager
def _writing(session: Session, moniker: str, action: str) -> Iterator[None]:
    """Commit (or flush, without autocommit) after a write; roll back on failure."""
    try:
        yield
        if session.info.get("autocommit", True):
            session.commit()
        else:
            session.flush()
    except SQLAlchemyError as exc:
        session.rollback()
        raise DatabaseError(f"{action} {moniker} failed: {exc}", cause=exc).with_context(
            moniker=moniker, operation=action
        ) from exc


class ManagedRecord:
    """Mixin giving a mapped class the operations a Factory dispatches to."""

    moniker: ClassVar[str | None] = None
    class_title: ClassVar[str | None] = None
    class_plural: ClassVar[str | None] = None
    class_description: ClassVar[str | None] = None

    is_ghost: ClassVar[bool] = False

    # ── Display metadata ─────────────────────────────────────────────

    @classmethod
    def get_moniker(cls) -> str:
        return cls.moniker or cls.__name__.lower()

    @classmethod
    def get_title(cls) -> str:
        return cls.class_title or cls.get_moniker().replace("_", " ").capitalize()

    @classmethod
    def get_plural(cls) -> str:
        return cls.class_plural or f"{cls.get_title()}s"

    @classmethod
    def get_description(cls) -> str:
        return cls.class_description or ""

    # ── Column metadata ──────────────────────────────────────────────

    @classmethod
    def column_names(cls) -> list[str]:
        return [attr.key for attr in inspect(cls).column_attrs]

    @classmethod
    def primary_names(cls) -> list[str]:
        mapper = inspect(cls)
        return [mapper.get_property_by_column(column).key for column in mapper.primary_key]

    @classmethod
    def find_column(cls, name: str) -> str | None:
        """Return *name* if it is a column of this class, else None."""
        if name in cls.column_names():
            return name
        return None

    @classmethod
    def columns(cls, group: str = "All") -> list[str]:
        """Column names in *group*: ``All``, ``Essential``, ``Primary`` or ``Others``."""
        if group not in _COLUMN_GROUPS:
            return []
        if group == "Primary":
            return cls.primary_names()
        if group == "Others":
            primary = set(cls.primary_names())
            return [name for name in cls.column_names() if name not in primary]
        return cls.column_names()

    @classmethod
    def table(cls) -> str:
        return cls.__table__.name  # type: ignore[attr-defined]

    @classmethod
    def primary(cls) -> str:
        return cls.primary_names()[0]

    @classmethod
    def column_type(cls, name: str) -> str | None:
        if cls.find_column(name) is None:
            return None
        return str(inspect(cls).columns[name].type)

    @classmethod
    def meta_info(cls, reltype: str | None = None) -> dict[str, Any]:
        """Relationships keyed by accessor name, grouped by kind.

        ``has_a`` are many-to-one links, ``has_many`` one-to-many
        collections and ``might_have`` one-to-one scalars. With a
        *reltype*, only that group is returned.
        """
        groups: dict[str, dict[str, type]] = {"has_a": {}, "has_many": {}, "might_have": {}}
        for rel in inspect(cls).relationships:
            if rel.direction is MANYTOONE:
                groups["has_a"][rel.key] = rel.mapper.class_
            elif rel.direction is ONETOMANY and rel.uselist:
                groups["has_many"][rel.key] = rel.mapper.class_
            else:
                groups["might_have"][rel.key] = rel.mapper.class_
        if reltype is None:
            return groups
        return groups.get(reltype, {})

    @classmethod
    def _attribute(cls, name: str) -> Any:
        mapper = inspect(cls)
        if name in mapper.column_attrs or name in mapper.relationships:
            return getattr(cls, name)
        raise InvalidCriteriaError(
            f"'{name}' is not a column of {cls.get_moniker()}"
        ).with_context(moniker=cls.get_moniker())

    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        column = inspect(cls).primary_key[0]
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            return value
        if isinstance(value, python_type):
            return value
        try:
            return python_type(value)
        except (TypeError, ValueError):
            return None

    @classmethod
    def _clauses(cls, criteria: dict[str, Any], like: bool = False) -> list[Any]:
        clauses = []
        for name, value in criteria.items():
            attribute = cls._attribute(name)
            if isinstance(value, ManagedRecord) and name in cls.column_names():
                value = value.get(value.primary())
            clauses.append(attribute.like(value) if like else attribute == value)
        return clauses

    # ── Data operations (the owning Factory is always passed in) ─────

    @classmethod
    def create(cls, factory: Factory, fields: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        values = {**(fields or {}), **kwargs}
        for name in values:
            cls._attribute(name)
        obj = cls(**values)
        session = factory.dbh()
        with _writing(session, cls.get_moniker(), "create"):
            session.add(obj)
        return obj

    @classmethod
    def retrieve(cls, factory: Factory, id: Any) -> Any:
        """The object with primary key *id*, or None."""
        if id is None or id == "":
            return None
        key = cls._coerce_id(id)
        if key is None:
            return None
        try:
            return factory.dbh().get(cls, key)
        except OverflowError:
            # wider than the column type, so no row can match
            return None

    @classmethod
    def find_or_create(cls, factory: Factory, fields: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        values = {**(fields or {}), **kwargs}
        found = cls.search(factory, values)
        if found:
            return found[0]
        return cls.create(factory, values)

    @classmethod
    def retrieve_all(cls, factory: Factory) -> list[Any]:
        primary = [getattr(cls, name) for name in cls.primary_names()]
        return list(factory.dbh().scalars(select(cls).order_by(*primary)))

    @classmethod
    def search(
        cls,
        factory: Factory,
        criteria: dict[str, Any] | None = None,
        *,
        order_by: str | None = None,
        **kwargs: Any,
    ) -> list[Any]:
        return cls._search(factory, {**(criteria or {}), **kwargs}, order_by, like=False)

    @classmethod
    def search_like(
        cls,
        factory: Factory,
        criteria: dict[str, Any] | None = None,
        *,
        order_by: str | None = None,
        **kwargs: Any,
    ) -> list[Any]:
        return cls._search(factory, {**(criteria or {}), **kwargs}, order_by, like=True)

    @classmethod
    def _search(cls, factory: Factory, criteria: dict[str, Any], order_by: str | None, like: bool) -> list[Any]:
        statement = select(cls).where(*cls._clauses(criteria, like=like))
        order = order_by or cls.primary()
        statement = statement.order_by(cls._attribute(order))
        return list(factory.dbh().scalars(statement))

    @classmethod
    def count_all(cls, factory: Factory) -> int:
        return factory.dbh().scalar(select(func.count()).select_from(cls)) or 0

    @classmethod
    def count_where(cls, factory: Factory, criteria: dict[str, Any] | None = None) -> int:
        statement = select(func.count()).select_from(cls).where(*cls._clauses(criteria or {}))
        return factory.dbh().scalar(statement) or 0

    @classmethod
    def slice_where(
        cls,
        factory: Factory,
        criteria: dict[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Any]:
        """One window of the rows matching *criteria*, for lists and pagers."""
        column = cls._attribute(order_by or cls.primary())
        statement = (
            select(cls)
            .where(*cls._clauses(criteria or {}))
            .order_by(column.desc() if descending else column.asc())
            .offset(offset)
        )
        if limit is not None:
            statement = statement.limit(limit)
        return list(factory.dbh().scalars(statement))

    @classmethod
    def maximum_value_of(cls, factory: Factory, column: str) -> Any:
        return factory.dbh().scalar(select(func.max(cls._attribute(column))))

    @classmethod
    def minimum_value_of(cls, factory: Factory, column: str) -> Any:
        return factory.dbh().scalar(select(func.min(cls._attribute(column))))

    @classmethod
    def retrieve_random(cls, factory: Factory) -> Any:
        return factory.dbh().scalars(select(cls).order_by(func.random()).limit(1)).first()

    @classmethod
    def create_table(cls, factory: Factory) -> None:
        cls.__table__.create(bind=factory.engine, checkfirst=True)  # type: ignore[attr-defined]

    # ── Row interface ────────────────────────────────────────────────

    @property
    def type(self) -> str:
        return self.get_moniker()

    @property
    def factory(self) -> Factory | None:
        """The Factory whose session loaded this object."""
        session = object_session(self)
        if session is None:
            return None
        return session.info.get("factory")

    def get(self, column: str) -> Any:
        if self.find_column(column) is None:
            return None
        return getattr(self, column)

    def set(self, column: str, value: Any) -> bool:
        if self.find_column(column) is None:
            return False
        setattr(self, column, value)
        return True

    def column_values(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.column_names()}

    def update(self) -> None:
        """Write pending column changes."""
        session = self._require_session("update")
        with _writing(session, self.get_moniker(), "update"):
            pass

    def delete(self) -> None:
        session = self._require_session("delete")
        with _writing(session, self.get_moniker(), "delete"):
            session.delete(self)

    def _require_session(self, action: str) -> Session:
        session = object_session(self)
        if session is None:
            raise DatabaseError(f"cannot {action} a detached {self.get_moniker()}").with_context(
                moniker=self.get_moniker(), operation=action
            )
        return session

    def __repr__(self) -> str:
        keys = ", ".join(f"{name}={getattr(self, name, None)!r}" for name in self.primary_names())
        return f"<{self.__class__.__name__} {keys}>"
