"""Outbound SMS transports."""

from abc import ABC, abstractmethod

import httpx

from textquiz.config import Settings, get_settings
from textquiz.core.errors import TransportError
from textquiz.core.logging import get_logger
from textquiz.core.phone import mask_phone_number
from textquiz.services.messages import truncate_sms

logger = get_logger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
MAX_SMS_LENGTH = 1600


class Transport(ABC):
    """Sends one SMS. Implementations make exactly one attempt."""

    name: str = "unknown"

    @abstractmethod
    async def send(self, phone_number: str, body: str) -> bool:
        """
        Send an SMS.

        Returns:
            True if the provider accepted the message, False if it was rejected

        Raises:
            TransportError: On network failures talking to the provider
        """


class TwilioTransport(Transport):
    """Twilio Messages REST API over httpx."""

    name = "twilio"

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client
        self.timeout = timeout

    @property
    def messages_url(self) -> str:
        return f"{TWILIO_API_BASE}/Accounts/{self.settings.twilio_account_sid}/Messages.json"

    async def _post(self, client: httpx.AsyncClient, data: dict[str, str]) -> httpx.Response:
        return await client.post(
            self.messages_url,
            data=data,
            auth=(self.settings.twilio_account_sid, self.settings.twilio_auth_token),
            timeout=self.timeout,
        )

    async def send(self, phone_number: str, body: str) -> bool:
        if len(body) > MAX_SMS_LENGTH:
            logger.bind(length=len(body)).warning("sms_body_truncated")
            body = truncate_sms(body, MAX_SMS_LENGTH)

        data = {
            "To": phone_number,
            "From": self.settings.twilio_phone_number,
            "Body": body,
        }

        try:
            if self._client is not None:
                response = await self._post(self._client, data)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, data)
        except httpx.HTTPError as e:
            raise TransportError(f"Twilio request failed: {e}") from e

        if response.is_success:
            sid = response.json().get("sid")
            logger.bind(to=mask_phone_number(phone_number), sid=sid).info("sms_queued")
            return True

        logger.bind(
            to=mask_phone_number(phone_number),
            status_code=response.status_code,
            response=response.text[:500],
        ).error("sms_rejected")
        return False


class LogTransport(Transport):
    """
    Logs messages instead of sending them.

    Used when Twilio is not configured. Sends report success only in
    dry-run mode; otherwise the delivery is recorded as failed.
    """

    name = "log"

    def __init__(self, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    async def send(self, phone_number: str, body: str) -> bool:
        logger.bind(
            to=mask_phone_number(phone_number),
            body=body,
            dry_run=self.dry_run,
        ).info("sms_logged")
        return self.dry_run


def get_transport(settings: Settings | None = None) -> Transport:
    """Twilio when credentials are present, otherwise the logging transport."""
    settings = settings or get_settings()
    if settings.twilio_configured() and not settings.sms_dry_run:
        return TwilioTransport(settings)
    return LogTransport(dry_run=settings.sms_dry_run)
