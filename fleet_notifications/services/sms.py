"""
SMS delivery: provider strategies and the SmsService that fronts them.

Providers are picked by configuration when the service is built. Every
failure mode (missing credentials, invalid number, non-2xx response,
timeout) is reported as False rather than raised.
"""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import httpx

from ..core.config import Settings


logger = logging.getLogger(__name__)

US_PHONE_PATTERN = re.compile(r"^\+1[0-9]{10}$")


def normalize_phone_number(phone: str) -> str:
    """Strip formatting, add the US country code to 10-digit numbers, prefix '+'."""
    digits = re.sub(r"[^0-9]", "", phone)
    if len(digits) == 10:
        digits = "1" + digits
    return "+" + digits


def is_valid_phone_number(phone: str) -> bool:
    return bool(US_PHONE_PATTERN.match(phone))


# =============================================================================
# PROVIDERS
# =============================================================================


class SmsProvider(ABC):
    """Abstract base for SMS providers."""

    name: str = "base"

    async def send(self, to: str, message: str) -> bool:
        """Normalize and validate the destination, then hand off to the provider."""
        number = normalize_phone_number(to)
        if not is_valid_phone_number(number):
            logger.warning(f"Invalid phone number for SMS: {number}")
            return False

        try:
            return await self.deliver(number, message)
        except httpx.TimeoutException as e:
            logger.error(f"{self.name} SMS timed out: to={number}, error={e}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"{self.name} SMS exception: to={number}, error={e}")
            return False

    @abstractmethod
    async def deliver(self, to: str, message: str) -> bool:
        """Deliver to an already normalized number."""
        pass


class HttpSmsProvider(SmsProvider):
    """Provider backed by an HTTP API."""

    def __init__(
        self,
        timeout_seconds: float = 10,
        client: httpx.AsyncClient | None = None,
    ):
        self._timeout = timeout_seconds
        self._client = client

    async def _post(self, url: str, **kwargs) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, timeout=self._timeout, **kwargs)
        async with httpx.AsyncClient() as client:
            return await client.post(url, timeout=self._timeout, **kwargs)


class TwilioSmsProvider(HttpSmsProvider):
    """Twilio Messages API."""

    name = "twilio"
    base_url = "https://api.twilio.com/2010-04-01"

    def __init__(
        self,
        sid: str | None,
        token: str | None,
        from_number: str | None,
        timeout_seconds: float = 10,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(timeout_seconds=timeout_seconds, client=client)
        self._sid = sid
        self._token = token
        self._from = from_number

    async def deliver(self, to: str, message: str) -> bool:
        if not (self._sid and self._token and self._from):
            logger.warning("Twilio configuration missing")
            return False

        response = await self._post(
            f"{self.base_url}/Accounts/{self._sid}/Messages.json",
            auth=(self._sid, self._token),
            data={"From": self._from, "To": to, "Body": message},
        )

        if response.is_success:
            logger.info(f"SMS sent via Twilio: to={to}, sid={response.json().get('sid')}")
            return True

        logger.error(f"Twilio SMS failed: status={response.status_code}, response={response.text}")
        return False


class TextLocalSmsProvider(HttpSmsProvider):
    """TextLocal send API."""

    name = "textlocal"
    url = "https://api.textlocal.in/send/"

    def __init__(
        self,
        api_key: str | None,
        sender: str | None,
        timeout_seconds: float = 10,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(timeout_seconds=timeout_seconds, client=client)
        self._api_key = api_key
        self._sender = sender

    async def deliver(self, to: str, message: str) -> bool:
        if not (self._api_key and self._sender):
            logger.warning("TextLocal configuration missing")
            return False

        response = await self._post(
            self.url,
            data={
                "apikey": self._api_key,
                "sender": self._sender,
                "numbers": to,
                "message": message,
            },
        )

        if response.is_success and response.json().get("status") == "success":
            logger.info(f"SMS sent via TextLocal: to={to}")
            return True

        logger.error(f"TextLocal SMS failed: status={response.status_code}, response={response.text}")
        return False


class LogSmsProvider(SmsProvider):
    """Writes messages to the log instead of sending them (non-production)."""

    name = "log"

    async def deliver(self, to: str, message: str) -> bool:
        logger.info(f"[SMS] To: {to}, Message: {message}")
        return True


def build_sms_provider(
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> SmsProvider:
    """Select the provider named by ``settings.sms_provider``."""
    if settings.sms_provider == "twilio":
        if not settings.twilio_enabled:
            logger.warning("Twilio credentials not configured; SMS sends will fail")
        return TwilioSmsProvider(
            sid=settings.twilio_sid,
            token=settings.twilio_token,
            from_number=settings.twilio_from,
            timeout_seconds=settings.sms_timeout_seconds,
            client=client,
        )
    if settings.sms_provider == "textlocal":
        if not settings.textlocal_enabled:
            logger.warning("TextLocal credentials not configured; SMS sends will fail")
        return TextLocalSmsProvider(
            api_key=settings.textlocal_apikey,
            sender=settings.textlocal_sender,
            timeout_seconds=settings.sms_timeout_seconds,
            client=client,
        )
    if settings.sms_provider == "log":
        return LogSmsProvider()
    raise ValueError(f"Unknown SMS provider: {settings.sms_provider}")


# =============================================================================
# SERVICE
# =============================================================================


@dataclass
class BulkSendResult:
    """Outcome of a bulk send, keyed by the phone numbers given."""
    success: list[str | None] = field(default_factory=list)
    failed: list[str | None] = field(default_factory=list)


class SmsService:
    """Sends SMS messages through the configured provider."""

    def __init__(self, provider: SmsProvider):
        self._provider = provider

    @property
    def provider(self) -> SmsProvider:
        return self._provider

    async def send(self, to: str, message: str) -> bool:
        try:
            return await self._provider.send(to, message)
        except Exception as e:
            logger.error(f"SMS sending failed: to={to}, error={e}")
            return False

    async def send_bulk(
        self,
        recipients: Iterable[str | Mapping[str, str | None]],
        message: str,
    ) -> BulkSendResult:
        """Send to each recipient independently; one failure never stops the batch."""
        results = BulkSendResult()

        for recipient in recipients:
            phone = recipient.get("phone") if isinstance(recipient, Mapping) else recipient

            if phone and await self.send(phone, message):
                results.success.append(phone)
            else:
                results.failed.append(phone)

        return results
