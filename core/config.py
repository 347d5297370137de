"""Ledger configuration."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from core.models import Currency, PaymentTerms

logger = logging.getLogger(__name__)

_ENV_PREFIX = "LEDGER_"


class LedgerConfig(BaseModel):
    """
    Ledger service configuration.

    Every field can be set from a LEDGER_<FIELD_NAME> environment variable
    (see load_config). Leaving database_url empty runs on in-memory
    repositories; leaving any email setting empty disables delivery.
    """

    app_name: str = Field(
        default="Invoice Ledger",
        description="Name used in outgoing emails",
    )

    # Invoice defaults
    default_currency: Currency = Field(
        default=Currency.USD,
        description="Currency for invoices created without one",
    )
    default_payment_terms: PaymentTerms = Field(
        default=PaymentTerms.NET_30,
        description="Payment terms for invoices created without them",
    )
    duplicate_due_days: int = Field(
        default=30,
        description="Days until due for duplicated invoices",
        ge=0,
        le=365,
    )

    # Numbering
    invoice_number_prefix: str = Field(default="INV", min_length=1, max_length=10)
    credit_note_prefix: str = Field(default="CN", min_length=1, max_length=10)
    sequence_padding: int = Field(
        default=3,
        description="Minimum digits in the sequence part of document numbers",
        ge=1,
        le=10,
    )

    # Infrastructure
    database_url: str = Field(
        default="",
        description="PostgreSQL URL; empty means in-memory storage",
    )
    email_gateway_url: str = Field(default="")
    email_api_key: str = Field(default="")
    email_hmac_secret: str = Field(default="")
    log_level: str = Field(default="INFO")

    @property
    def email_enabled(self) -> bool:
        return bool(self.email_gateway_url and self.email_api_key and self.email_hmac_secret)


def load_config(env_file: Path | None = None) -> LedgerConfig:
    """
    Build configuration from environment variables.

    A .env file (default: ./.env) is loaded first; real environment
    variables take precedence over it.

    Raises:
        pydantic.ValidationError: If any value is invalid
    """
    load_dotenv(env_file or Path.cwd() / ".env", override=False)

    values = {}
    for name in LedgerConfig.model_fields:
        raw = os.getenv(f"{_ENV_PREFIX}{name.upper()}")
        if raw is not None:
            values[name] = raw

    config = LedgerConfig.model_validate(values)
    logger.info(
        "Configuration loaded (storage=%s, email=%s)",
        "postgres" if config.database_url else "memory",
        "enabled" if config.email_enabled else "disabled",
    )
    return config
