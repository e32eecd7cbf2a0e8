"""Relational entity storage for aquaflow."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterator, TypeVar

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    create_engine,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from .entity_store import apply_changes, check_filters, check_model, model_label
from .errors import DuplicateRecordError, NotFoundError
from .logger import setup_logger
from .models import Address, Invoice, InventoryItem, Order, ServiceArea, User

T = TypeVar("T")

logger = setup_logger(__name__)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(100), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("type", String(20), nullable=False),
    Column("phone", String(50)),
    Column("area_id", String(36)),
    Column("service_area", String(255)),
    Column("password_hash", Text),
    Column("created_at", String(40)),
    Column("updated_at", String(40)),
)

service_areas = Table(
    "service_areas",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("vendor_id", String(36), nullable=False, index=True),
    Column("vendor_name", String(255), nullable=False),
    Column("created_at", String(40)),
)
Index("uq_service_areas_lower_name", func.lower(service_areas.c.name), unique=True)

addresses = Table(
    "addresses",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), nullable=False, index=True),
    Column("label", String(100), nullable=False),
    Column("street", Text),
    Column("city", String(100)),
    Column("state", String(100)),
    Column("zip_code", String(20)),
    Column("area_id", String(36), nullable=False),
    Column("is_default", Boolean, nullable=False, default=False),
    Column("created_at", String(40)),
)

inventory_items = Table(
    "inventory_items",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("vendor_id", String(36), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("price", Numeric(12, 2), nullable=False),
    Column("stock", Integer, nullable=False, default=0),
    Column("description", Text),
    Column("created_at", String(40)),
    Column("updated_at", String(40)),
)

orders = Table(
    "orders",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("customer_id", String(36), nullable=False, index=True),
    Column("customer_name", String(255)),
    Column("customer_phone", String(50)),
    Column("customer_user_id", String(100)),
    Column("address", JSON, nullable=False),  # snapshot
    Column("items", JSON, nullable=False),  # snapshot
    Column("total", Numeric(12, 2), nullable=False),
    Column("status", String(20), nullable=False),
    Column("order_date", String(40), nullable=False),
    Column("delivery_date", String(40)),
    Column("preferred_time", String(100)),
    Column("vendor_id", String(36), nullable=False, index=True),
    Column("vendor_name", String(255)),
    Column("area_id", String(36)),
    Column("invoice_id", String(40)),
    Column("messages", JSON, nullable=False),
)

invoices = Table(
    "invoices",
    metadata,
    Column("id", String(40), primary_key=True),
    Column("order_id", String(36), nullable=False, unique=True),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("generated_date", String(40), nullable=False),
    Column("due_date", String(40), nullable=False),
    Column("status", String(20), nullable=False),
)

TABLES: dict[type, Table] = {
    User: users,
    ServiceArea: service_areas,
    Address: addresses,
    InventoryItem: inventory_items,
    Order: orders,
    Invoice: invoices,
}


def _to_row(table: Table, record: Any) -> dict[str, Any]:
    row = record.to_dict()
    for column in table.columns:
        if isinstance(column.type, Numeric) and row.get(column.name) is not None:
            row[column.name] = Decimal(row[column.name])
    return row


class SqlEntityStore:
    """Keeps each collection in its own table of a relational database."""

    def __init__(self, url: str | None = None, engine: Engine | None = None):
        """
        Initialize SqlEntityStore.

        Args:
            url: SQLAlchemy database URL.
            engine: Pre-built engine (takes precedence over url).
        """
        if engine is None:
            if not url:
                raise ValueError("SqlEntityStore needs a database url or an engine")
            engine = create_engine(url)
        self.engine = engine
        self._local = threading.local()
        metadata.create_all(self.engine)

    @property
    def _conn(self) -> Connection | None:
        """The connection of this thread's open transaction, if any."""
        return getattr(self._local, "conn", None)

    @_conn.setter
    def _conn(self, conn: Connection | None) -> None:
        self._local.conn = conn

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Join the open transaction, or run in a short one of our own."""
        if self._conn is not None:
            yield self._conn
            return
        with self.engine.begin() as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run every write in the block inside one database transaction."""
        if self._conn is not None:
            yield
            return
        with self.engine.begin() as conn:
            self._conn = conn
            try:
                yield
            finally:
                self._conn = None

    def _check_unique(self, conn: Connection, model: type, table: Table, row: dict[str, Any]) -> None:
        for name in model.unique_fields:
            stmt = select(table.c.id).where(table.c[name] == row[name], table.c.id != row["id"])
            if conn.execute(stmt).first() is not None:
                raise DuplicateRecordError(model.collection, name, str(row[name]))

    def create(self, record: T) -> T:
        model = type(record)
        check_model(model)
        table = TABLES[model]
        row = _to_row(table, record)
        with self._connect() as conn:
            if conn.execute(select(table.c.id).where(table.c.id == row["id"])).first():
                raise DuplicateRecordError(model.collection, "id", row["id"])
            self._check_unique(conn, model, table, row)
            try:
                conn.execute(insert(table).values(**row))
            except IntegrityError as e:
                raise DuplicateRecordError(model.collection, "unique key", row["id"]) from e
        logger.debug("Inserted %s %s", model.collection, row["id"])
        return record

    def get(self, model: type[T], record_id: str) -> T | None:
        check_model(model)
        table = TABLES[model]
        with self._connect() as conn:
            found = conn.execute(select(table).where(table.c.id == record_id)).mappings().first()
        return model.from_dict(dict(found)) if found is not None else None

    def list(self, model: type[T], **filters: Any) -> list[T]:
        check_model(model)
        check_filters(model, filters)
        table = TABLES[model]
        stmt = select(table).where(*(table.c[k] == v for k, v in filters.items()))
        with self._connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [model.from_dict(dict(r)) for r in rows]

    def update(self, model: type[T], record_id: str, changes: dict[str, Any]) -> T:
        check_model(model)
        table = TABLES[model]
        with self._connect() as conn:
            found = conn.execute(select(table).where(table.c.id == record_id)).mappings().first()
            if found is None:
                raise NotFoundError(model_label(model), record_id)
            updated = apply_changes(model.from_dict(dict(found)), changes)
            row = _to_row(table, updated)
            self._check_unique(conn, model, table, row)
            values = {k: v for k, v in row.items() if k != "id"}
            try:
                conn.execute(update(table).where(table.c.id == record_id).values(**values))
            except IntegrityError as e:
                raise DuplicateRecordError(model.collection, "unique key", record_id) from e
        return updated

    def delete(self, model: type[T], record_id: str) -> None:
        check_model(model)
        table = TABLES[model]
        with self._connect() as conn:
            result = conn.execute(delete(table).where(table.c.id == record_id))
            if result.rowcount == 0:
                raise NotFoundError(model_label(model), record_id)
