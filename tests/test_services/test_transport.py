"""Tests for outbound SMS transports."""

from urllib.parse import parse_qs

import httpx
import pytest

from textquiz.config import Settings
from textquiz.core.errors import TransportError
from textquiz.services.transport import (
    LogTransport,
    TwilioTransport,
    get_transport,
)

pytestmark = pytest.mark.asyncio

TO = "+14155552671"


def twilio_settings(**overrides) -> Settings:
    values = {
        "twilio_account_sid": "AC123",
        "twilio_auth_token": "token",
        "twilio_phone_number": "+12025550100",
        "sms_dry_run": False,
    }
    values.update(overrides)
    return Settings(**values)


def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestTwilioTransport:
    """Tests for TwilioTransport."""

    async def test_posts_message(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"sid": "SM123", "status": "queued"})

        async with make_client(handler) as client:
            transport = TwilioTransport(twilio_settings(), client=client)
            assert await transport.send(TO, "Hello") is True

        [request] = requests
        assert request.method == "POST"
        assert request.url.path == "/2010-04-01/Accounts/AC123/Messages.json"
        assert request.headers["authorization"].startswith("Basic ")
        form = parse_qs(request.content.decode())
        assert form == {"To": [TO], "From": ["+12025550100"], "Body": ["Hello"]}

    async def test_rejected_message_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' number"})

        async with make_client(handler) as client:
            transport = TwilioTransport(twilio_settings(), client=client)
            assert await transport.send(TO, "Hello") is False

    async def test_network_error_raises_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            transport = TwilioTransport(twilio_settings(), client=client)
            with pytest.raises(TransportError):
                await transport.send(TO, "Hello")

    async def test_long_body_is_truncated(self):
        bodies: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(parse_qs(request.content.decode())["Body"][0])
            return httpx.Response(201, json={"sid": "SM123"})

        async with make_client(handler) as client:
            transport = TwilioTransport(twilio_settings(), client=client)
            await transport.send(TO, "x" * 2000)

        assert len(bodies[0]) == 1600
        assert bodies[0].endswith("...")


class TestLogTransport:
    async def test_dry_run_reports_success(self):
        assert await LogTransport(dry_run=True).send(TO, "Hello") is True

    async def test_without_dry_run_reports_failure(self):
        assert await LogTransport(dry_run=False).send(TO, "Hello") is False


class TestGetTransport:
    def test_twilio_when_configured(self):
        assert isinstance(get_transport(twilio_settings()), TwilioTransport)

    def test_dry_run_overrides_twilio(self):
        transport = get_transport(twilio_settings(sms_dry_run=True))
        assert isinstance(transport, LogTransport)
        assert transport.dry_run is True

    def test_log_when_unconfigured(self):
        transport = get_transport(twilio_settings(twilio_account_sid=""))
        assert isinstance(transport, LogTransport)
        assert transport.dry_run is False
