"""
Stripe Payment Provider.

Verifies webhook signatures with the Stripe SDK and parses the event
into typed models.
"""

import stripe
from pydantic import ValidationError
from structlog import get_logger

from payhooks.exceptions import WebhookVerificationError
from payhooks.models.api import StripeEvent

logger = get_logger(__name__)


class StripeProvider:
    """Stripe webhook verification."""

    def __init__(self, api_key: str, webhook_secret: str, account_context: str = "") -> None:
        """
        Initialize Stripe provider.

        Args:
            api_key: Stripe secret API key
            webhook_secret: Stripe webhook signing secret
            account_context: Connected account or organisation context, if any
        """
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.account_context = account_context or None
        stripe.api_key = api_key

    def verify_webhook(self, payload: bytes, signature: str | None) -> StripeEvent:
        """
        Verify and parse a Stripe webhook event.

        The signature is checked against the exact raw bytes received;
        nothing is parsed until it matches.

        Args:
            payload: Raw webhook payload
            signature: Stripe-Signature header value

        Returns:
            Parsed webhook event

        Raises:
            WebhookVerificationError: If the header is missing, the signature
                does not match, or the payload is not a Stripe event
        """
        if not self.webhook_secret:
            raise WebhookVerificationError("Webhook secret is not configured")

        if not signature:
            raise WebhookVerificationError("Missing Stripe-Signature header")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise WebhookVerificationError("Payload is not valid UTF-8") from exc

        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.webhook_secret,
                tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except stripe.SignatureVerificationError as exc:
            message = exc.user_message or str(exc)
            logger.error("stripe_webhook_signature_invalid", error=message)
            raise WebhookVerificationError(message) from exc

        try:
            event = StripeEvent.model_validate_json(body)
        except ValidationError as exc:
            logger.error("stripe_webhook_parsing_failed", error=str(exc))
            raise WebhookVerificationError(f"Invalid event payload: {exc.error_count()} errors") from exc

        logger.info(
            "stripe_webhook_verified",
            event_id=event.id,
            event_type=event.type,
            account=event.account or self.account_context,
            livemode=event.livemode,
        )

        return event
