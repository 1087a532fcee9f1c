"""Document store client: single-record CRUD and filtered listing.

Services never open SQLAlchemy sessions themselves. They receive a
``DocumentStore`` handle and exchange plain dict documents keyed by the
camelCase field names the mobile client uses (``userId``, ``isRead``, ...).

``SqlDocumentStore`` opens one session per call and runs it in a worker
thread, so ``asyncio.gather`` over N store calls really issues N concurrent
requests. Each call is atomic on its own; there are no cross-record
transactions.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from pydantic.alias_generators import to_camel
from sqlalchemy import Enum as SAEnum, func, inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from eventpulse.exceptions import DuplicateRecord, RecordNotFound, StoreUnavailable
from eventpulse.models.event import Event
from eventpulse.models.notification import Notification
from eventpulse.models.outbox_task import OutboxTask
from eventpulse.models.post import Post
from eventpulse.models.user import User

logger = logging.getLogger(__name__)

USERS = "users"
EVENTS = "events"
NOTIFICATIONS = "notifications"
POSTS = "posts"
OUTBOX = "outbox"

COLLECTIONS = {
    USERS: User,
    EVENTS: Event,
    NOTIFICATIONS: Notification,
    POSTS: Post,
    OUTBOX: OutboxTask,
}

_RANGE_OPERATORS = {
    "gt": lambda column, value: column > value,
    "lt": lambda column, value: column < value,
    "lte": lambda column, value: column <= value,
}


@dataclass(frozen=True)
class Query:
    """Filter, order and page description for ``DocumentStore.list``.

    Builder methods return a new Query, so a base query can be reused to
    request successive pages.
    """

    equals: tuple = ()
    ranges: tuple = ()
    contains: tuple = ()
    order: tuple = ()
    limit_to: Optional[int] = None
    skip: int = 0

    def equal(self, name: str, value: Any) -> "Query":
        return replace(self, equals=self.equals + ((name, value),))

    def greater_than(self, name: str, value: Any) -> "Query":
        return replace(self, ranges=self.ranges + ((name, "gt", value),))

    def less_than(self, name: str, value: Any) -> "Query":
        return replace(self, ranges=self.ranges + ((name, "lt", value),))

    def at_most(self, name: str, value: Any) -> "Query":
        return replace(self, ranges=self.ranges + ((name, "lte", value),))

    def search(self, name: str, text: str) -> "Query":
        return replace(self, contains=self.contains + ((name, text),))

    def order_asc(self, name: str) -> "Query":
        return replace(self, order=self.order + ((name, False),))

    def order_desc(self, name: str) -> "Query":
        return replace(self, order=self.order + ((name, True),))

    def limit(self, count: int) -> "Query":
        return replace(self, limit_to=count)

    def offset(self, count: int) -> "Query":
        return replace(self, skip=count)


class DocumentStore(Protocol):
    """Async CRUD primitives of the backing document store."""

    async def create(self, collection: str, data: dict, record_id: Optional[str] = None) -> dict: ...

    async def get(self, collection: str, record_id: str) -> dict: ...

    async def update(self, collection: str, record_id: str, data: dict) -> dict: ...

    async def delete(self, collection: str, record_id: str) -> None: ...

    async def list(self, collection: str, query: Optional[Query] = None) -> list[dict]: ...

    async def count(self, collection: str, query: Optional[Query] = None) -> int: ...


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_storage(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc)
    return value


class SqlDocumentStore:
    """DocumentStore backed by the SQLAlchemy models in ``COLLECTIONS``."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._fields = {
            name: {to_camel(attr.key): attr for attr in inspect(model).column_attrs}
            for name, model in COLLECTIONS.items()
        }

    # -- async API ---------------------------------------------------------

    async def create(self, collection: str, data: dict, record_id: Optional[str] = None) -> dict:
        return await self._run(self._create, collection, data, record_id)

    async def get(self, collection: str, record_id: str) -> dict:
        return await self._run(self._get, collection, record_id)

    async def update(self, collection: str, record_id: str, data: dict) -> dict:
        return await self._run(self._update, collection, record_id, data)

    async def delete(self, collection: str, record_id: str) -> None:
        await self._run(self._delete, collection, record_id)

    async def list(self, collection: str, query: Optional[Query] = None) -> list[dict]:
        return await self._run(self._list, collection, query or Query())

    async def count(self, collection: str, query: Optional[Query] = None) -> int:
        return await self._run(self._count, collection, query or Query())

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as exc:
            logger.error("Store call %s%r failed: %s", fn.__name__, args[:2], exc)
            raise StoreUnavailable(str(exc)) from exc

    # -- mapping helpers ---------------------------------------------------

    def _model(self, collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection {collection!r}") from None

    def _column(self, collection: str, name: str):
        try:
            return self._fields[collection][name].class_attribute
        except KeyError:
            raise ValueError(f"Unknown field {name!r} on {collection}") from None

    def _to_document(self, collection: str, obj) -> dict:
        doc = {}
        for name, attr in self._fields[collection].items():
            value = getattr(obj, attr.key)
            if isinstance(value, enum.Enum):
                value = value.value
            elif isinstance(value, datetime):
                value = _as_utc(value)
            doc[name] = value
        return doc

    def _apply(self, collection: str, obj, data: dict) -> None:
        for name, value in data.items():
            attr = self._fields[collection].get(name)
            if attr is None or name == "id":
                raise ValueError(f"Field {name!r} cannot be written on {collection}")
            column_type = attr.columns[0].type
            if isinstance(column_type, SAEnum) and column_type.enum_class and isinstance(value, str):
                value = column_type.enum_class(value)
            setattr(obj, attr.key, _to_storage(value))

    def _select(self, collection: str, query: Query):
        model = self._model(collection)
        clauses = []
        for name, value in query.equals:
            column = self._column(collection, name)
            clauses.append(column.is_(None) if value is None else column == _to_storage(value))
        for name, op, value in query.ranges:
            clauses.append(_RANGE_OPERATORS[op](self._column(collection, name), _to_storage(value)))
        for name, text in query.contains:
            # % and _ in user text match literally
            clauses.append(func.lower(self._column(collection, name)).contains(text.lower(), autoescape=True))
        return model, clauses

    def _taken_unique_value(self, session, collection: str, data: dict):
        """Return the first value in ``data`` that already occupies a unique column."""
        model = self._model(collection)
        for name, value in data.items():
            attr = self._fields[collection].get(name)
            if attr is None or value is None or not attr.columns[0].unique:
                continue
            column = attr.class_attribute
            if session.scalar(select(model.id).where(column == _to_storage(value))) is not None:
                return value
        return None

    # -- sync implementations (run in worker threads) ----------------------

    def _create(self, collection: str, data: dict, record_id: Optional[str]) -> dict:
        model = self._model(collection)
        with self._session_factory() as session:
            obj = model()
            self._apply(collection, obj, data)
            if record_id is not None:
                obj.id = record_id
            session.add(obj)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                if record_id is not None and session.get(model, record_id) is not None:
                    raise DuplicateRecord(collection, record_id) from exc
                taken = self._taken_unique_value(session, collection, data)
                if taken is not None:
                    raise DuplicateRecord(collection, taken) from exc
                raise
            return self._to_document(collection, obj)

    def _get(self, collection: str, record_id: str) -> dict:
        with self._session_factory() as session:
            obj = session.get(self._model(collection), record_id)
            if obj is None:
                raise RecordNotFound(collection, record_id)
            return self._to_document(collection, obj)

    def _update(self, collection: str, record_id: str, data: dict) -> dict:
        with self._session_factory() as session:
            obj = session.get(self._model(collection), record_id)
            if obj is None:
                raise RecordNotFound(collection, record_id)
            self._apply(collection, obj, data)
            session.commit()
            return self._to_document(collection, obj)

    def _delete(self, collection: str, record_id: str) -> None:
        with self._session_factory() as session:
            obj = session.get(self._model(collection), record_id)
            if obj is None:
                raise RecordNotFound(collection, record_id)
            session.delete(obj)
            session.commit()

    def _list(self, collection: str, query: Query) -> list[dict]:
        model, clauses = self._select(collection, query)
        stmt = select(model).where(*clauses)
        for name, descending in query.order:
            column = self._column(collection, name)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if query.order or query.limit_to is not None or query.skip:
            # Stable pages need a total order
            stmt = stmt.order_by(model.id.asc())
        if query.skip:
            stmt = stmt.offset(query.skip)
        if query.limit_to is not None:
            stmt = stmt.limit(query.limit_to)
        with self._session_factory() as session:
            return [self._to_document(collection, obj) for obj in session.scalars(stmt)]

    def _count(self, collection: str, query: Query) -> int:
        model, clauses = self._select(collection, query)
        stmt = select(func.count()).select_from(model).where(*clauses)
        with self._session_factory() as session:
            return session.scalar(stmt)
