"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, today_utc, parse_date
from utils.logging_setup import configure_logging
