"""Tests for ledger configuration."""

import os

import pydantic
import pytest

from core.config import LedgerConfig, load_config
from core.models import Currency, PaymentTerms


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every LEDGER_ variable so only the test's values apply."""
    for name in list(os.environ):
        if name.startswith("LEDGER_"):
            monkeypatch.delenv(name)
    yield monkeypatch
    # load_dotenv writes os.environ directly
    for name in list(os.environ):
        if name.startswith("LEDGER_"):
            del os.environ[name]


class TestLedgerConfig:

    def test_defaults(self):
        config = LedgerConfig()

        assert config.default_currency == Currency.USD
        assert config.default_payment_terms == PaymentTerms.NET_30
        assert config.invoice_number_prefix == "INV"
        assert config.credit_note_prefix == "CN"
        assert config.database_url == ""
        assert config.email_enabled is False

    def test_email_enabled_needs_all_credentials(self):
        partial = LedgerConfig(email_gateway_url="https://gw.test", email_api_key="k")
        full = LedgerConfig(
            email_gateway_url="https://gw.test", email_api_key="k", email_hmac_secret="s"
        )

        assert partial.email_enabled is False
        assert full.email_enabled is True

    def test_validates_ranges(self):
        with pytest.raises(pydantic.ValidationError):
            LedgerConfig(duplicate_due_days=-1)


class TestLoadConfig:

    def test_reads_prefixed_environment(self, clean_env, tmp_path):
        clean_env.setenv("LEDGER_DEFAULT_CURRENCY", "EUR")
        clean_env.setenv("LEDGER_SEQUENCE_PADDING", "5")
        clean_env.setenv("LEDGER_DEFAULT_PAYMENT_TERMS", "net_15")

        config = load_config(tmp_path / "missing.env")

        assert config.default_currency == Currency.EUR
        assert config.sequence_padding == 5
        assert config.default_payment_terms == PaymentTerms.NET_15

    def test_reads_dotenv_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("LEDGER_APP_NAME=Acme Billing\nLEDGER_CREDIT_NOTE_PREFIX=CR\n")

        config = load_config(env_file)

        assert config.app_name == "Acme Billing"
        assert config.credit_note_prefix == "CR"

    def test_environment_wins_over_dotenv(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("LEDGER_APP_NAME=From File\n")
        clean_env.setenv("LEDGER_APP_NAME", "From Env")

        assert load_config(env_file).app_name == "From Env"

    def test_invalid_value_raises(self, clean_env, tmp_path):
        clean_env.setenv("LEDGER_DEFAULT_CURRENCY", "DOGE")

        with pytest.raises(pydantic.ValidationError):
            load_config(tmp_path / "missing.env")
