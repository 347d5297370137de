"""HTTP interface for the invoice ledger."""

from api.app import build_services, create_app
from api.base import APIResponse, ErrorCodes, error_response, success_response
