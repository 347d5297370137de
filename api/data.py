"""GET /api/data - unified read endpoint."""

from fastapi import APIRouter, Query, Request

from api.base import success_response
from api.middleware import request_id_of
from core.errors import credit_note_not_found, invoice_not_found
from utils.timezone import parse_date


VALID_TYPES = {"invoices", "credit_notes", "aging", "dashboard"}
INVOICE_FILTERS = {"outstanding", "all"}


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    invoice_svc = services["invoice"]
    credit_note_svc = services["credit_note"]
    aging_svc = services["aging"]

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: int | None = Query(None),
        client_id: int | None = Query(None),
        filter: str | None = Query(None),
        as_of: str | None = Query(None),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        if type == "invoices":
            data = _handle_invoices(invoice_svc, id, filter)
        elif type == "credit_notes":
            data = _handle_credit_notes(credit_note_svc, id, client_id)
        elif type == "aging":
            report = aging_svc.get_aging_report(parse_date(as_of) if as_of else None)
            data = report.model_dump(mode="json")
        else:
            data = invoice_svc.dashboard_stats().model_dump(mode="json")

        return success_response(data, request_id_of(request)).model_dump(mode="json")

    return router


def _handle_invoices(invoice_svc, id, filter):
    if id is not None:
        invoice = invoice_svc.get_by_id(id)
        if invoice is None:
            raise invoice_not_found(id)
        return invoice.model_dump(mode="json")

    if filter is None:
        raise ValueError("'invoices' type requires 'id' or 'filter' parameter (filter=outstanding|all)")
    if filter not in INVOICE_FILTERS:
        raise ValueError(f"Unknown filter '{filter}'. Valid filters: {', '.join(sorted(INVOICE_FILTERS))}")

    if filter == "outstanding":
        invoices = invoice_svc.list_outstanding()
    else:
        invoices = invoice_svc.list_all()

    return [i.model_dump(mode="json") for i in invoices]


def _handle_credit_notes(credit_note_svc, id, client_id):
    if id is not None:
        credit_note = credit_note_svc.get_by_id(id)
        if credit_note is None:
            raise credit_note_not_found(id)
        return credit_note.model_dump(mode="json")

    if client_id is not None:
        credit_notes = credit_note_svc.available_for_client(client_id)
    else:
        credit_notes = credit_note_svc.list_all()

    return [cn.model_dump(mode="json") for cn in credit_notes]
