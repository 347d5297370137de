"""
Repositories for invoices and credit notes.

Services depend only on the small Repository protocol (next_id, get, list,
save, delete). Two implementations are provided:

- InMemoryRepository: process-local dict, used by tests and when no
  database is configured.
- PostgresRepository: one row per entity holding the document as JSONB.

Both use optimistic concurrency. Every entity carries a `version`; `save`
writes only if the stored version still equals it and returns the entity
with the version incremented. A stale write raises
ConcurrentModificationError and changes nothing.

InvoiceStore wraps an invoice repository and runs lifecycle derivation on
every load, so no caller ever sees a stale status.
"""

import itertools
import logging
import threading
from datetime import date
from typing import Callable, Generic, Protocol, TypeVar

from psycopg2.extras import Json
from pydantic import BaseModel

from clients.postgres_client import PostgresClient
from core.errors import ConcurrentModificationError, invoice_not_found
from core.lifecycle import derive_status
from core.models import CreditNote, Invoice
from utils.timezone import today_utc

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class Repository(Protocol[T]):
    """Storage contract for a single entity type."""

    def next_id(self) -> int: ...

    def get(self, entity_id: int) -> T | None: ...

    def list(self) -> list[T]: ...

    def save(self, entity: T) -> T: ...

    def delete(self, entity_id: int) -> bool: ...


InvoiceRepository = Repository[Invoice]
CreditNoteRepository = Repository[CreditNote]


# =============================================================================
# IN-MEMORY
# =============================================================================


class InMemoryRepository(Generic[T]):
    """Dict-backed repository. Stores and returns deep copies."""

    def __init__(self, entity_type: str):
        self.entity_type = entity_type
        self._rows: dict[int, T] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            return next(self._ids)

    def get(self, entity_id: int) -> T | None:
        with self._lock:
            row = self._rows.get(entity_id)
            return row.model_copy(deep=True) if row is not None else None

    def list(self) -> list[T]:
        with self._lock:
            return [row.model_copy(deep=True) for _, row in sorted(self._rows.items())]

    def save(self, entity: T) -> T:
        with self._lock:
            stored = self._rows.get(entity.id)
            stored_version = stored.version if stored is not None else 0
            if entity.version != stored_version:
                logger.warning(
                    "Version conflict on %s %s: expected %s, found %s",
                    self.entity_type, entity.id, entity.version, stored_version,
                )
                raise ConcurrentModificationError(
                    f"{self.entity_type} {entity.id} was modified concurrently "
                    f"(expected version {entity.version}, found {stored_version})"
                )

            saved = entity.model_copy(update={"version": entity.version + 1}, deep=True)
            self._rows[entity.id] = saved
            return saved.model_copy(deep=True)

    def delete(self, entity_id: int) -> bool:
        with self._lock:
            return self._rows.pop(entity_id, None) is not None


# =============================================================================
# POSTGRES
# =============================================================================


_TABLES = {"invoices", "credit_notes"}


class PostgresRepository(Generic[T]):
    """
    JSONB document repository.

    Table layout:
        id BIGINT PRIMARY KEY, version INTEGER, document JSONB,
        updated_at TIMESTAMPTZ
    """

    def __init__(self, postgres: PostgresClient, table: str, model: type[T]):
        if table not in _TABLES:
            raise ValueError(f"Unknown table '{table}'. Valid tables: {', '.join(sorted(_TABLES))}")
        self.postgres = postgres
        self.table = table
        self.model = model

    def ensure_schema(self) -> None:
        """Create table and id sequence if missing."""
        self.postgres.execute(f"CREATE SEQUENCE IF NOT EXISTS {self.table}_id_seq")
        self.postgres.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                id BIGINT PRIMARY KEY,
                version INTEGER NOT NULL,
                document JSONB NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )

    def _to_entity(self, row: dict) -> T:
        return self.model.model_validate({**row["document"], "version": row["version"]})

    def next_id(self) -> int:
        return int(self.postgres.execute_scalar(f"SELECT nextval('{self.table}_id_seq')"))

    def get(self, entity_id: int) -> T | None:
        row = self.postgres.execute_single(
            f"SELECT version, document FROM {self.table} WHERE id = %s",
            (entity_id,)
        )
        if row is None:
            return None
        return self._to_entity(row)

    def list(self) -> list[T]:
        rows = self.postgres.execute(
            f"SELECT version, document FROM {self.table} ORDER BY id"
        )
        return [self._to_entity(row) for row in rows]

    def save(self, entity: T) -> T:
        document = Json(entity.model_dump(mode="json", exclude={"version"}))

        if entity.version == 0:
            rows = self.postgres.execute_returning(
                f"""
                INSERT INTO {self.table} (id, version, document, updated_at)
                VALUES (%s, 1, %s, now())
                ON CONFLICT (id) DO NOTHING
                RETURNING version
                """,
                (entity.id, document)
            )
        else:
            rows = self.postgres.execute_returning(
                f"""
                UPDATE {self.table}
                SET document = %s, version = version + 1, updated_at = now()
                WHERE id = %s AND version = %s
                RETURNING version
                """,
                (document, entity.id, entity.version)
            )

        if not rows:
            logger.warning("Version conflict on %s row %s at version %s", self.table, entity.id, entity.version)
            raise ConcurrentModificationError(
                f"{self.table} row {entity.id} was modified concurrently "
                f"(expected version {entity.version})"
            )

        return entity.model_copy(update={"version": rows[0]["version"]})

    def delete(self, entity_id: int) -> bool:
        rows = self.postgres.execute_returning(
            f"DELETE FROM {self.table} WHERE id = %s RETURNING id",
            (entity_id,)
        )
        return len(rows) > 0


# =============================================================================
# LIFECYCLE-AWARE INVOICE ACCESS
# =============================================================================


class InvoiceStore:
    """
    Invoice repository front that derives status on every load.

    Derived changes are returned to the caller, not written back; they are
    persisted with the next save of that invoice.
    """

    def __init__(self, repository: InvoiceRepository, today: Callable[[], date] = today_utc):
        self.repository = repository
        self.today = today

    def next_id(self) -> int:
        return self.repository.next_id()

    def get(self, invoice_id: int, as_of: date | None = None) -> Invoice | None:
        invoice = self.repository.get(invoice_id)
        if invoice is None:
            return None
        return derive_status(invoice, as_of or self.today())

    def require(self, invoice_id: int, as_of: date | None = None) -> Invoice:
        invoice = self.get(invoice_id, as_of)
        if invoice is None:
            raise invoice_not_found(invoice_id)
        return invoice

    def list_raw(self) -> list[Invoice]:
        """Stored invoices without derivation, for callers that derive at their own date."""
        return self.repository.list()

    def list(self, as_of: date | None = None) -> list[Invoice]:
        as_of = as_of or self.today()
        return [derive_status(invoice, as_of) for invoice in self.repository.list()]

    def save(self, invoice: Invoice) -> Invoice:
        return self.repository.save(invoice)

    def delete(self, invoice_id: int) -> bool:
        return self.repository.delete(invoice_id)
