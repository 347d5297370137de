"""
Email gateway client for delivering invoices, reminders and receipts.

Messages are posted as compact JSON to an HTTP gateway. Each request
carries the API key and an HMAC-SHA256 signature of the exact body, so
the gateway can reject anything altered in transit.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)

SENDERS = ("billing", "system")


class EmailGatewayError(Exception):
    """Raised when the gateway cannot be reached or refuses a message."""


class EmailGatewayClient:
    """Signed HTTP client for the email gateway."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, timeout: float = 10):
        """
        Args:
            gateway_url: Full URL of the gateway's send endpoint
            api_key: Sent as X-API-Key
            hmac_secret: Key for the X-Signature header
            timeout: Request timeout in seconds

        Raises:
            ValueError: If any credential is empty
        """
        for name, value in (
            ("gateway_url", gateway_url),
            ("api_key", api_key),
            ("hmac_secret", hmac_secret),
        ):
            if not value:
                raise ValueError(f"{name} is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret
        self.timeout = timeout

    def sign(self, body: str) -> str:
        """Hex HMAC-SHA256 of a request body."""
        return hmac.new(self.hmac_secret.encode(), body.encode(), hashlib.sha256).hexdigest()

    def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        sender: str = "billing",
        reference: str | None = None,
    ) -> str | None:
        """
        Deliver a plain text email.

        Args:
            to: Recipient address
            subject: Subject line
            body: Plain text body
            sender: "billing" (default) or "system"
            reference: Document number the message concerns, passed to the
                gateway for its delivery log

        Returns:
            The gateway's message id, when it reports one

        Raises:
            ValueError: If sender is not one of SENDERS
            EmailGatewayError: On connection failure or gateway refusal
        """
        if sender not in SENDERS:
            raise ValueError(f"sender must be one of {', '.join(SENDERS)}, got '{sender}'")

        message = {
            "type": "custom",
            "email": to,
            "subject": subject,
            "body": body,
            "sender": sender,
        }
        if reference:
            message["reference"] = reference

        result = self._post(message)
        logger.info(f"Email sent to {to}: {subject}")
        return result.get("message_id")

    def _post(self, message: dict) -> dict:
        payload = json.dumps(message, separators=(",", ":"))

        try:
            response = requests.post(
                self.gateway_url,
                data=payload,
                headers={
                    "Content-Type": "application/json",
                    "X-API-Key": self.api_key,
                    "X-Signature": self.sign(payload),
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            result = response.json()
        except ValueError:
            logger.error(f"Email gateway returned invalid JSON (HTTP {response.status_code})")
            raise EmailGatewayError("Invalid response from gateway")

        if not response.ok or not result.get("success"):
            reason = result.get("message", "Unknown error")
            logger.error(f"Email gateway refused message (HTTP {response.status_code}): {reason}")
            raise EmailGatewayError(f"Gateway error: {reason}")

        return result
