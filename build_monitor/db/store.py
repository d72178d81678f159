"""SQLite-backed local store for user info, websites and builds.

Each public method is a single atomic operation against one collection,
run as one transaction on the async engine. Every write validates its
records first and then publishes the touched collection on the store's
change bus, so subscribers re-run their queries.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel
from sqlalchemy import JSON, Boolean, Column, DateTime, MetaData, String, Table, TypeDecorator, delete, event, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from build_monitor.db.coercion import serialize_timestamp
from build_monitor.db.events import ChangeBus, Subscription
from build_monitor.db.models import ALL_COLLECTIONS, BUILDS, USER_INFO, WEBSITES
from build_monitor.db.validators import record_type, validate
from build_monitor.errors import RecordValidationError

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


class UTCDateTime(TypeDecorator):
    """Aware datetimes stored as naive UTC, handed back as aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            value = value.replace(tzinfo=timezone.utc)
        return value


metadata = MetaData()

user_info_table = Table(
    USER_INFO,
    metadata,
    Column("key", String, primary_key=True),
    Column("value", JSON, nullable=True),
)

websites_table = Table(
    WEBSITES,
    metadata,
    Column("site_id", String, primary_key=True),
    Column("name", String),
    Column("url", String),
    Column("last_update", UTCDateTime, index=True),
)

builds_table = Table(
    BUILDS,
    metadata,
    Column("build_id", String, primary_key=True),
    Column("site_id", String, nullable=False, index=True),
    Column("deploy_id", String),
    Column("is_done", Boolean, nullable=False, default=False),
    Column("has_failed", Boolean, nullable=False, default=False),
    Column("considered_for_alert", Boolean, nullable=False, default=False),
    Column("created_at", UTCDateTime, index=True),
)

TABLES: dict[str, Table] = {
    USER_INFO: user_info_table,
    WEBSITES: websites_table,
    BUILDS: builds_table,
}

# Flags that may only ever go from false to true
MONOTONIC: dict[str, tuple[str, ...]] = {
    BUILDS: ("considered_for_alert",),
}


@dataclass(frozen=True)
class FieldRange:
    """Exclusive bounds on a single field, e.g. builds created in the last day."""

    field: str
    above: Any = None
    below: Any = None


def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute("PRAGMA synchronous = NORMAL")
    cursor.close()


def create_engine_for(db_path: Path | str) -> AsyncEngine:
    if str(db_path) == MEMORY:
        # Every pooled connection would otherwise get its own empty database
        return create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", echo=False)
    event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)
    return engine


def _key_value(record_id: Any) -> Any:
    return record_id.value if isinstance(record_id, Enum) else record_id


def _row(collection: str, record: BaseModel) -> dict[str, Any]:
    if collection == USER_INFO:
        value = serialize_timestamp(record.value) if isinstance(record.value, datetime) else record.value
        return {"key": record.key.value, "value": value}
    return record.model_dump()


class LocalStore:
    def __init__(self, db_path: Path | str = MEMORY, bus: ChangeBus | None = None):
        self.db_path = db_path
        self.bus = bus or ChangeBus()
        self.engine = create_engine_for(db_path)

    @classmethod
    async def open(cls, db_path: Path | str = MEMORY, bus: ChangeBus | None = None) -> "LocalStore":
        store = cls(db_path, bus)
        await store.initialize()
        return store

    async def initialize(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    # --- Reads ---

    async def get(self, collection: str, record_id: Any) -> BaseModel | None:
        table = self._table(collection)
        stmt = select(table).where(self._key(table) == _key_value(record_id))
        async with self.engine.connect() as conn:
            row = (await conn.execute(stmt)).mappings().first()
        return record_type(collection).model_validate(dict(row)) if row else None

    async def get_all(self, collection: str, order_by: str | None = None, descending: bool = False) -> list[BaseModel]:
        return await self.query(collection, order_by=order_by, descending=descending)

    async def query(
        self,
        collection: str,
        *,
        where: dict[str, Any] | None = None,
        field_range: FieldRange | None = None,
        predicate: Callable[[BaseModel], bool] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[BaseModel]:
        """Filter by equality and/or an exclusive range in SQL, then by ``predicate`` in Python."""
        table = self._table(collection)
        stmt = select(table)

        for field, value in (where or {}).items():
            column = self._column(table, field)
            stmt = stmt.where(column.is_(None) if value is None else column == value)

        if field_range is not None:
            column = self._column(table, field_range.field)
            if field_range.above is not None:
                stmt = stmt.where(column > field_range.above)
            if field_range.below is not None:
                stmt = stmt.where(column < field_range.below)

        if order_by:
            column = self._column(table, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None and predicate is None:
            stmt = stmt.limit(limit)

        async with self.engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()

        model = record_type(collection)
        records = [model.model_validate(dict(row)) for row in rows]
        if predicate is not None:
            records = [r for r in records if predicate(r)]
            if limit is not None:
                records = records[:limit]
        return records

    async def count(self, collection: str) -> int:
        table = self._table(collection)
        async with self.engine.connect() as conn:
            return (await conn.execute(select(func.count()).select_from(table))).scalar_one()

    async def distinct(self, collection: str, field: str) -> set[Any]:
        column = self._column(self._table(collection), field)
        async with self.engine.connect() as conn:
            return set((await conn.execute(select(column).distinct())).scalars().all())

    # --- Writes ---

    async def upsert(self, collection: str, record: BaseModel | dict[str, Any]) -> BaseModel:
        """Validate and write a single record. Raises RecordValidationError."""
        clean = validate(collection, record)
        async with self.engine.begin() as conn:
            await conn.execute(self._upsert_statement(collection), [_row(collection, clean)])
        self.bus.publish({collection})
        return clean

    async def bulk_upsert(self, collection: str, records: Iterable[BaseModel | dict[str, Any]]) -> int:
        """Write every valid record; invalid ones are logged and dropped. Returns the number written."""
        self._table(collection)
        clean = self._valid_records(collection, records)
        if not clean:
            return 0
        async with self.engine.begin() as conn:
            await conn.execute(self._upsert_statement(collection), [_row(collection, r) for r in clean])
        self.bus.publish({collection})
        return len(clean)

    async def replace_all(self, collection: str, records: Iterable[BaseModel | dict[str, Any]]) -> int:
        """Clear ``collection`` and write ``records`` in one transaction."""
        table = self._table(collection)
        clean = self._valid_records(collection, records)
        async with self.engine.begin() as conn:
            await conn.execute(delete(table))
            if clean:
                await conn.execute(self._upsert_statement(collection), [_row(collection, r) for r in clean])
        self.bus.publish({collection})
        return len(clean)

    async def delete(self, collection: str, record_id: Any) -> bool:
        table = self._table(collection)
        async with self.engine.begin() as conn:
            result = await conn.execute(delete(table).where(self._key(table) == _key_value(record_id)))
        if result.rowcount:
            self.bus.publish({collection})
        return bool(result.rowcount)

    async def clear(self, collection: str) -> None:
        table = self._table(collection)
        async with self.engine.begin() as conn:
            await conn.execute(delete(table))
        self.bus.publish({collection})

    # --- Subscriptions ---

    def subscribe(
        self,
        query_fn: Callable[[], Awaitable[Any]],
        on_change: Callable[[Any], Any],
        collections: Iterable[str] = ALL_COLLECTIONS,
    ) -> Subscription:
        """Call ``on_change`` with fresh ``query_fn`` results now and after every write to ``collections``.

        Must be called from inside a running event loop.
        """
        return self.bus.subscribe(query_fn, on_change, collections)

    # --- Helpers ---

    def _valid_records(self, collection: str, records: Iterable[BaseModel | dict[str, Any]]) -> list[BaseModel]:
        clean = []
        for record in records:
            try:
                clean.append(validate(collection, record))
            except RecordValidationError as exc:
                logger.warning("Dropping record from bulk write: %s", exc)
        return clean

    def _upsert_statement(self, collection: str):
        table = TABLES[collection]
        stmt = sqlite_insert(table)
        monotonic = MONOTONIC.get(collection, ())
        updates = {}
        for column in table.columns:
            if column.primary_key:
                continue
            if column.name in monotonic:
                updates[column.name] = func.max(column, stmt.excluded[column.name])
            else:
                updates[column.name] = stmt.excluded[column.name]
        return stmt.on_conflict_do_update(index_elements=[self._key(table)], set_=updates)

    @staticmethod
    def _table(collection: str) -> Table:
        try:
            return TABLES[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    @staticmethod
    def _key(table: Table) -> Column:
        return next(iter(table.primary_key))

    @staticmethod
    def _column(table: Table, field: str) -> Column:
        try:
            return table.c[field]
        except KeyError:
            raise ValueError(f"Unknown field for {table.name}: {field}") from None
