"""Tests for SMS number handling, providers and bulk sends."""

import httpx
import pytest

from fleet_notifications.core.config import Settings
from fleet_notifications.services.sms import (
    LogSmsProvider,
    SmsService,
    TextLocalSmsProvider,
    TwilioSmsProvider,
    build_sms_provider,
    is_valid_phone_number,
    normalize_phone_number,
)

from .conftest import RecordingSmsProvider


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# =============================================================================
# NUMBERS
# =============================================================================


class TestPhoneNumbers:
    def test_ten_digits_get_us_country_code(self):
        assert normalize_phone_number("(555) 123-4567") == "+15551234567"

    def test_eleven_digits_keep_country_code(self):
        assert normalize_phone_number("1-555-123-4567") == "+15551234567"

    def test_formatting_is_stripped(self):
        assert normalize_phone_number("+1 555.123.4567") == "+15551234567"

    def test_validation(self):
        assert is_valid_phone_number("+15551234567")
        assert not is_valid_phone_number("+4420712345678")
        assert not is_valid_phone_number("+1555123")


# =============================================================================
# PROVIDERS
# =============================================================================


class TestTwilioProvider:
    async def test_posts_form_with_basic_auth(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"sid": "SM123"})

        provider = TwilioSmsProvider("AC1", "secret", "+15550000000", client=mock_client(handler))

        assert await provider.send("555-123-4567", "Hello") is True
        assert len(requests) == 1
        request = requests[0]
        assert request.url.path == "/2010-04-01/Accounts/AC1/Messages.json"
        assert request.headers["authorization"].startswith("Basic ")
        body = request.content.decode()
        assert "To=%2B15551234567" in body
        assert "Body=Hello" in body

    async def test_error_response_returns_false(self):
        provider = TwilioSmsProvider(
            "AC1", "secret", "+15550000000",
            client=mock_client(lambda request: httpx.Response(400, json={"message": "bad"})),
        )
        assert await provider.send("5551234567", "Hello") is False

    async def test_missing_credentials_returns_false_without_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(201, json={})

        provider = TwilioSmsProvider(None, None, None, client=mock_client(handler))
        assert await provider.send("5551234567", "Hello") is False
        assert calls == []

    async def test_timeout_returns_false(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        provider = TwilioSmsProvider("AC1", "secret", "+15550000000", client=mock_client(handler))
        assert await provider.send("5551234567", "Hello") is False

    async def test_invalid_number_is_rejected_before_sending(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(201, json={})

        provider = TwilioSmsProvider("AC1", "secret", "+15550000000", client=mock_client(handler))
        assert await provider.send("12345", "Hello") is False
        assert calls == []


class TestTextLocalProvider:
    async def test_success_status_in_body(self):
        provider = TextLocalSmsProvider(
            "key", "FLEET",
            client=mock_client(lambda request: httpx.Response(200, json={"status": "success"})),
        )
        assert await provider.send("5551234567", "Hi") is True

    async def test_failure_status_in_body(self):
        provider = TextLocalSmsProvider(
            "key", "FLEET",
            client=mock_client(lambda request: httpx.Response(200, json={"status": "failure"})),
        )
        assert await provider.send("5551234567", "Hi") is False


class TestBuildProvider:
    def test_selects_configured_provider(self):
        assert isinstance(build_sms_provider(Settings(sms_provider="twilio")), TwilioSmsProvider)
        assert isinstance(build_sms_provider(Settings(sms_provider="textlocal")), TextLocalSmsProvider)
        assert isinstance(build_sms_provider(Settings(sms_provider="log")), LogSmsProvider)

    def test_warns_when_credentials_missing(self, caplog):
        with caplog.at_level("WARNING"):
            build_sms_provider(Settings(sms_provider="twilio", twilio_sid=None))
        assert "Twilio credentials not configured" in caplog.text

    def test_configured_credentials_do_not_warn(self, caplog):
        settings = Settings(sms_provider="textlocal", textlocal_apikey="key", textlocal_sender="FLEET")
        with caplog.at_level("WARNING"):
            build_sms_provider(settings)
        assert "credentials not configured" not in caplog.text


# =============================================================================
# SERVICE
# =============================================================================


class TestSmsService:
    async def test_provider_exception_becomes_false(self):
        class ExplodingProvider(RecordingSmsProvider):
            async def deliver(self, to, message):
                raise RuntimeError("boom")

        service = SmsService(ExplodingProvider())
        assert await service.send("5551234567", "Hi") is False

    async def test_bulk_send_isolates_failures(self):
        provider = RecordingSmsProvider()
        service = SmsService(provider)

        result = await service.send_bulk(
            ["5551234567", "bad", {"phone": "555-222-3333"}, {"phone": None}],
            "Route change",
        )

        assert result.success == ["5551234567", "555-222-3333"]
        assert result.failed == ["bad", None]
        assert [to for to, _ in provider.sent] == ["+15551234567", "+15552223333"]

    @pytest.mark.parametrize("recipients", [[], ()])
    async def test_bulk_send_empty(self, recipients):
        result = await SmsService(RecordingSmsProvider()).send_bulk(recipients, "x")
        assert result.success == [] and result.failed == []
