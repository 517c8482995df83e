"""
Tests for download email rendering and delivery.
"""

import json

import httpx
import pytest
from conftest import RecordingDispatcher

from payhooks.config import DOWNLOAD_URL, THANK_YOU_URL, PaymentPolicy
from payhooks.exceptions import EmailDispatchError
from payhooks.services.email import (
    DownloadDelivery,
    ResendEmailDispatcher,
    render_download_email,
)


class TestRenderDownloadEmail:
    """Tests for render_download_email."""

    def test_contains_links(self):
        html = render_download_email(DOWNLOAD_URL, THANK_YOU_URL)
        assert f'href="{DOWNLOAD_URL}"' in html
        assert f'<a href="{THANK_YOU_URL}">{THANK_YOU_URL}</a>' in html
        assert "How to Hire an AI" in html
        assert "mailto:felix@masinov.co" in html

    def test_urls_are_parameters(self):
        html = render_download_email("https://example.com/a.pdf", "https://example.com/thanks")
        assert "https://example.com/a.pdf" in html
        assert "https://example.com/thanks" in html
        assert DOWNLOAD_URL not in html

    def test_values_are_escaped(self):
        html = render_download_email(
            "https://example.com/?a=1&b=2", THANK_YOU_URL, product_name="<script>x</script>"
        )
        assert "<script>x</script>" not in html
        assert "&lt;script&gt;" in html
        assert "a=1&amp;b=2" in html


class TestResendEmailDispatcher:
    """Tests for ResendEmailDispatcher."""

    def dispatcher_for(self, handler, api_key="re_test_key"):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return ResendEmailDispatcher(
            api_key=api_key,
            sender="Shop <shop@example.com>",
            api_url="https://resend.test/emails",
            http_client=http_client,
        )

    @pytest.mark.asyncio
    async def test_send_request(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "email_123"})

        await self.dispatcher_for(handler).send("buyer@example.com", "Subject", "<p>hi</p>")

        request = seen[0]
        assert request.headers["authorization"] == "Bearer re_test_key"
        assert json.loads(request.content) == {
            "from": "Shop <shop@example.com>",
            "to": ["buyer@example.com"],
            "subject": "Subject",
            "html": "<p>hi</p>",
        }

    @pytest.mark.asyncio
    async def test_rejected_send(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"message": "invalid to"})

        with pytest.raises(EmailDispatchError, match="422"):
            await self.dispatcher_for(handler).send("buyer@example.com", "S", "<p/>")

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(EmailDispatchError):
            await self.dispatcher_for(handler).send("buyer@example.com", "S", "<p/>")

    @pytest.mark.asyncio
    async def test_invalid_url(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.InvalidURL("bad resend url")

        with pytest.raises(EmailDispatchError, match="bad resend url"):
            await self.dispatcher_for(handler).send("buyer@example.com", "S", "<p/>")

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        with pytest.raises(EmailDispatchError, match="not configured"):
            await self.dispatcher_for(handler, api_key="").send("buyer@example.com", "S", "<p/>")
        assert calls == []


class TestDownloadDelivery:
    """Tests for DownloadDelivery."""

    @pytest.mark.asyncio
    async def test_deliver(self):
        dispatcher = RecordingDispatcher()
        delivery = DownloadDelivery(dispatcher, PaymentPolicy(), subject="Your download")

        assert await delivery.deliver("buyer@example.com") is True

        recipient, subject, html = dispatcher.sent[0]
        assert recipient == "buyer@example.com"
        assert subject == "Your download"
        assert DOWNLOAD_URL in html

    @pytest.mark.asyncio
    async def test_failure_reported_not_raised(self):
        dispatcher = RecordingDispatcher(fail=True)
        delivery = DownloadDelivery(dispatcher, PaymentPolicy(), subject="Your download")

        assert await delivery.deliver("buyer@example.com") is False
        assert len(dispatcher.sent) == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_reported_not_raised(self):
        dispatcher = RecordingDispatcher(error=RuntimeError("dispatcher bug"))
        delivery = DownloadDelivery(dispatcher, PaymentPolicy(), subject="Your download")

        assert await delivery.deliver("buyer@example.com") is False
