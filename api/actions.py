"""POST /api/actions - unified mutation endpoint."""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import success_response
from api.middleware import request_id_of
from core.errors import invoice_not_found
from core.models import (
    InvoiceCreate, InvoiceUpdate,
    PaymentCreate, SendInvoiceRequest, ReminderCreate,
    CreditNoteCreate, CreditApplyRequest,
)


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "invoice": InvoiceHandler(services["invoice"], services["ledger"]),
        "credit_note": CreditNoteHandler(services["credit_note"], services["ledger"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data))
        return success_response(result, request_id_of(request)).model_dump(mode="json")

    return router


def _pop_id(data: dict, key: str = "id") -> int:
    if key not in data:
        raise ValueError(f"'{key}' is required")
    try:
        return int(data.pop(key))
    except (TypeError, ValueError):
        raise ValueError(f"'{key}' must be an integer")


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class InvoiceHandler:
    ALLOWED_ACTIONS = {
        "create", "update", "delete", "send", "mark_viewed",
        "cancel", "duplicate", "send_reminder", "record_payment",
    }

    def __init__(self, service, ledger):
        self.service = service
        self.ledger = ledger

    def _handle_create(self, data: dict):
        invoice = self.service.create(InvoiceCreate(**data))
        return invoice.model_dump(mode="json")

    def _handle_update(self, data: dict):
        invoice_id = _pop_id(data)
        invoice = self.service.update(invoice_id, InvoiceUpdate(**data))
        return invoice.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        invoice_id = _pop_id(data)
        deleted = self.service.delete(invoice_id)
        if not deleted:
            raise invoice_not_found(invoice_id)
        return {"deleted": True}

    def _handle_send(self, data: dict):
        invoice_id = _pop_id(data)
        result = self.service.send(invoice_id, SendInvoiceRequest(**data))
        return result.model_dump(mode="json")

    def _handle_mark_viewed(self, data: dict):
        invoice = self.service.mark_viewed(_pop_id(data))
        return invoice.model_dump(mode="json")

    def _handle_cancel(self, data: dict):
        invoice = self.service.cancel(_pop_id(data))
        return invoice.model_dump(mode="json")

    def _handle_duplicate(self, data: dict):
        invoice = self.service.duplicate(_pop_id(data))
        return invoice.model_dump(mode="json")

    def _handle_send_reminder(self, data: dict):
        invoice_id = _pop_id(data)
        invoice = self.service.send_reminder(invoice_id, ReminderCreate(**data))
        return invoice.model_dump(mode="json")

    def _handle_record_payment(self, data: dict):
        invoice_id = _pop_id(data)
        invoice = self.ledger.record_payment(invoice_id, PaymentCreate(**data))
        return invoice.model_dump(mode="json")


class CreditNoteHandler:
    ALLOWED_ACTIONS = {"create", "apply", "cancel"}

    def __init__(self, service, ledger):
        self.service = service
        self.ledger = ledger

    def _handle_create(self, data: dict):
        credit_note = self.service.create(CreditNoteCreate(**data))
        return credit_note.model_dump(mode="json")

    def _handle_apply(self, data: dict):
        request = CreditApplyRequest(**data)
        result = self.ledger.apply_credit_note(
            request.credit_note_id, request.invoice_id, request.amount
        )
        return result.model_dump(mode="json")

    def _handle_cancel(self, data: dict):
        credit_note = self.service.cancel(_pop_id(data))
        return credit_note.model_dump(mode="json")
