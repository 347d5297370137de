"""
Typed errors for the invoice and credit ledger.

Every error carries a taxonomy kind and a machine-readable code so the API
layer can map it without parsing messages. All of them subclass ValueError,
so callers that only know about ValueError keep working.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Taxonomy of ledger failures."""

    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CONSISTENCY = "consistency"
    CONFLICT = "conflict"


class LedgerError(ValueError):
    """Base class for ledger domain errors."""

    kind: ErrorKind = ErrorKind.VALIDATION
    default_code: str = "LEDGER_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class NotFoundError(LedgerError):
    """Referenced invoice or credit note does not exist."""

    kind = ErrorKind.NOT_FOUND
    default_code = "NOT_FOUND"


class ValidationError(LedgerError):
    """Request violates an amount rule or a lifecycle rule."""

    kind = ErrorKind.VALIDATION
    default_code = "VALIDATION_ERROR"


class ConsistencyError(LedgerError):
    """
    A post-mutation invariant check failed, or a two-entity write was left
    half applied.

    Indicates a bug or a storage fault, not bad input. Failed invariant
    checks abort the mutation before anything is saved.
    """

    kind = ErrorKind.CONSISTENCY
    default_code = "LEDGER_INCONSISTENT"


class ConcurrentModificationError(LedgerError):
    """Stored entity changed between load and save (version mismatch)."""

    kind = ErrorKind.CONFLICT
    default_code = "CONCURRENT_MODIFICATION"


def invoice_not_found(invoice_id: int) -> NotFoundError:
    return NotFoundError(f"Invoice {invoice_id} not found", code="INVOICE_NOT_FOUND")


def credit_note_not_found(credit_note_id: int) -> NotFoundError:
    return NotFoundError(
        f"Credit note {credit_note_id} not found", code="CREDIT_NOTE_NOT_FOUND"
    )
