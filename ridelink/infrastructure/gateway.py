"""
Persistence Gateway -- the table-level store the coordination engine talks to.

The engine only ever needs four verbs (insert, update-by-id, get-by-id and
query-by-filter) over three tables, so the interface is kept at that level
and records travel as plain ``dict`` objects.  ``SqlAlchemyGateway`` is the
production implementation; every call runs in its own short unit of work.

Any driver or constraint failure is re-raised as ``PersistenceError`` so
that callers never have to know about SQLAlchemy.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import TABLES
from ridelink.domain.errors import NotFound, PersistenceError

logger = logging.getLogger(__name__)

Record = dict[str, Any]


class PersistenceGateway(ABC):
    @abstractmethod
    async def insert(self, table: str, record: Record) -> Record: ...

    @abstractmethod
    async def update(self, table: str, record_id: str, patch: Record) -> Record: ...

    @abstractmethod
    async def get(self, table: str, record_id: str) -> Optional[Record]: ...

    @abstractmethod
    async def query(
        self,
        table: str,
        filters: Optional[Record] = None,
        *,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Record]:
        """Return rows matching every filter.

        A filter value that is a list, tuple, set or frozenset means
        ``IN``; ``None`` means ``IS NULL``.  ``order_by`` names a column,
        prefixed with ``-`` for descending order.
        """


def _model_for(table: str):
    try:
        return TABLES[table]
    except KeyError:
        raise ValueError(f"Unknown table: {table}") from None


def _to_record(obj) -> Record:
    return {attr.key: getattr(obj, attr.key) for attr in obj.__mapper__.column_attrs}


class SqlAlchemyGateway(PersistenceGateway):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def insert(self, table: str, record: Record) -> Record:
        model = _model_for(table)
        try:
            async with self.session_factory() as session:
                obj = model(**record)
                session.add(obj)
                await session.flush()
                row = _to_record(obj)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Insert into %s failed: %s", table, exc)
            raise PersistenceError(f"Failed to save {table} record", table=table) from exc
        return row

    async def update(self, table: str, record_id: str, patch: Record) -> Record:
        model = _model_for(table)
        try:
            async with self.session_factory() as session:
                obj = await session.get(model, record_id)
                if obj is None:
                    raise NotFound(f"{table} record {record_id} not found", id=record_id)
                for key, value in patch.items():
                    setattr(obj, key, value)
                await session.flush()
                row = _to_record(obj)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Update of %s %s failed: %s", table, record_id, exc)
            raise PersistenceError(
                f"Failed to update {table} record", table=table, id=record_id
            ) from exc
        return row

    async def get(self, table: str, record_id: str) -> Optional[Record]:
        model = _model_for(table)
        try:
            async with self.session_factory() as session:
                obj = await session.get(model, record_id)
                return _to_record(obj) if obj is not None else None
        except SQLAlchemyError as exc:
            logger.warning("Read of %s %s failed: %s", table, record_id, exc)
            raise PersistenceError(f"Failed to read {table} record", table=table) from exc

    async def query(
        self,
        table: str,
        filters: Optional[Record] = None,
        *,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Record]:
        model = _model_for(table)
        stmt = select(model)
        for column, value in (filters or {}).items():
            attr = getattr(model, column)
            if isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(attr.in_(list(value)))
            elif value is None:
                stmt = stmt.where(attr.is_(None))
            else:
                stmt = stmt.where(attr == value)
        if order_by:
            column = getattr(model, order_by.lstrip("-"))
            stmt = stmt.order_by(column.desc() if order_by.startswith("-") else column)
        if limit:
            stmt = stmt.limit(limit)
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return [_to_record(obj) for obj in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.warning("Query on %s failed: %s", table, exc)
            raise PersistenceError(f"Failed to query {table}", table=table) from exc


def ids_of(records: Iterable[Record], key: str = "id") -> set[str]:
    return {r[key] for r in records}
