"""API test fixtures: TestClient over in-memory services."""

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware


@pytest.fixture
def services(invoice_service, ledger_service, credit_note_service, aging_service):
    return {
        "invoice": invoice_service,
        "ledger": ledger_service,
        "credit_note": credit_note_service,
        "aging": aging_service,
    }


@pytest.fixture
def app(services):
    """FastAPI app with request ids, error handlers, and data/actions routes."""
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    return app


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def act(client):
    """POST an action and return the response."""

    def post(domain: str, action: str, **data):
        return client.post("/api/actions", json={"domain": domain, "action": action, "data": data})

    return post
