"""
Download Email Delivery.

Renders the shared download email and sends it through Resend.
Sending never raises past DownloadDelivery: by the time it runs the
purchase is already confirmed.
"""

from typing import Protocol

import httpx
from jinja2 import DictLoader, Environment, select_autoescape
from structlog import get_logger

from payhooks.config import PaymentPolicy
from payhooks.exceptions import EmailDispatchError
from payhooks.observability.metrics import metrics

logger = get_logger(__name__)

DOWNLOAD_EMAIL_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <style>
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { text-align: center; margin-bottom: 30px; }
    .header h1 { font-size: 24px; color: #c4a35a; margin: 0; }
    .content { background: #f9f9f9; border-radius: 8px; padding: 30px; margin-bottom: 20px; }
    .download-btn { display: inline-block; background: #c4a35a; color: white; padding: 14px 32px; text-decoration: none; border-radius: 6px; font-weight: 600; margin: 20px 0; }
    .footer { text-align: center; font-size: 14px; color: #666; }
    .footer a { color: #c4a35a; text-decoration: none; }
  </style>
</head>
<body>
  <div class="header">
    <h1>You're in</h1>
  </div>
  <div class="content">
    <p>Thanks for grabbing <strong>{{ product_name }}</strong>.</p>
    <p>Click below to download your copy:</p>
    <p style="text-align: center;">
      <a href="{{ download_url }}" class="download-btn">Download PDF</a>
    </p>
    <p>You can also access your thank-you page anytime at:<br>
    <a href="{{ thank_you_url }}">{{ thank_you_url }}</a></p>
  </div>
  <div class="footer">
    <p>Questions? <a href="https://x.com/FelixCraftAI">@FelixCraftAI</a> · <a href="mailto:{{ support_email }}">{{ support_email }}</a></p>
  </div>
</body>
</html>
"""

_env = Environment(
    loader=DictLoader({"download_email.html": DOWNLOAD_EMAIL_TEMPLATE}),
    autoescape=select_autoescape(["html"]),
)


def render_download_email(
    download_url: str,
    thank_you_url: str,
    support_email: str = "felix@masinov.co",
    product_name: str = "How to Hire an AI",
) -> str:
    """Render the download email body shared by both payment paths."""
    template = _env.get_template("download_email.html")
    return template.render(
        download_url=download_url,
        thank_you_url=thank_you_url,
        support_email=support_email,
        product_name=product_name,
    )


class EmailDispatcher(Protocol):
    """Anything that can send one HTML email."""

    async def send(self, recipient: str, subject: str, html: str) -> None:
        """
        Send an email.

        Raises:
            EmailDispatchError: If the provider did not accept the message
        """
        ...


class ResendEmailDispatcher:
    """Sends email through the Resend REST API."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url
        self.timeout = timeout
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def send(self, recipient: str, subject: str, html: str) -> None:
        if not self.api_key:
            raise EmailDispatchError("RESEND_API_KEY is not configured")

        try:
            response = await self.http_client.post(
                self.api_url,
                json={
                    "from": self.sender,
                    "to": [recipient],
                    "subject": subject,
                    "html": html,
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise EmailDispatchError(
                f"Resend returned HTTP {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise EmailDispatchError(str(exc)) from exc


class DownloadDelivery:
    """Renders and sends the download email for a confirmed purchase."""

    def __init__(self, dispatcher: EmailDispatcher, policy: PaymentPolicy, subject: str) -> None:
        self.dispatcher = dispatcher
        self.policy = policy
        self.subject = subject

    async def deliver(self, recipient: str) -> bool:
        """
        Send the download email.

        Returns:
            True if the provider accepted it, False otherwise (already logged)
        """
        try:
            html = render_download_email(
                download_url=self.policy.download_url,
                thank_you_url=self.policy.thank_you_url,
                support_email=self.policy.support_email,
            )
            await self.dispatcher.send(recipient, self.subject, html)
        except EmailDispatchError as exc:
            logger.error("download_email_failed", recipient=recipient, error=str(exc))
            metrics.record_email(success=False)
            return False
        except Exception as exc:
            # Delivery never decides the payment outcome
            logger.error(
                "download_email_failed", recipient=recipient, error=str(exc), exc_info=True
            )
            metrics.record_email(success=False)
            return False

        logger.info("download_email_sent", recipient=recipient)
        metrics.record_email(success=True)
        return True
