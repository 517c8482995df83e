"""
Card Payment Webhook Handler.

Turns a verified Stripe event into at most one download email.
Processed events are not recorded, so a redelivered event sends again.
"""

from pydantic import ValidationError
from structlog import get_logger

from payhooks.config import PaymentPolicy
from payhooks.exceptions import MalformedInputError
from payhooks.models.api import CheckoutSession, StripeEvent, WebhookAck
from payhooks.models.domain import PurchaseEvent
from payhooks.observability.metrics import metrics
from payhooks.services.email import DownloadDelivery
from payhooks.services.stripe_provider import StripeProvider

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


def extract_purchase(event: StripeEvent) -> PurchaseEvent:
    """
    Read amount and buyer email from a checkout.session.completed event.

    Raises:
        MalformedInputError: If the event object is not a checkout session
    """
    try:
        session = CheckoutSession.model_validate(event.data.object)
    except ValidationError as exc:
        raise MalformedInputError("Invalid checkout session") from exc

    return PurchaseEvent(
        amount_minor=session.amount_total if session.amount_total is not None else 0,
        buyer_email=session.buyer_email,
        source_id=session.id,
    )


class CardPaymentWebhookHandler:
    """Handles Stripe webhook deliveries for the download product."""

    def __init__(
        self,
        provider: StripeProvider,
        delivery: DownloadDelivery,
        policy: PaymentPolicy,
    ) -> None:
        self.provider = provider
        self.delivery = delivery
        self.policy = policy

    async def handle(self, payload: bytes, signature: str | None) -> WebhookAck:
        """
        Verify a webhook delivery and act on it.

        Args:
            payload: Exact raw request body
            signature: Stripe-Signature header value

        Returns:
            The acknowledgement for Stripe

        Raises:
            WebhookVerificationError: If the signature check fails
            MalformedInputError: If an in-band purchase carries no email
        """
        event = self.provider.verify_webhook(payload, signature)

        if event.type != CHECKOUT_COMPLETED:
            logger.info("stripe_webhook_ignored", event_id=event.id, event_type=event.type)
            metrics.record_webhook_event(event.type, "ignored")
            return WebhookAck()

        purchase = extract_purchase(event)

        logger.info(
            "checkout_session_received",
            session_id=purchase.source_id,
            amount_minor=purchase.amount_minor,
            email=purchase.buyer_email,
        )

        if not self.policy.card_amount_accepted(purchase.amount_minor):
            logger.info(
                "checkout_session_skipped",
                session_id=purchase.source_id,
                amount_minor=purchase.amount_minor,
            )
            metrics.record_webhook_event(event.type, "skipped")
            return WebhookAck(skipped=True)

        if not purchase.buyer_email:
            logger.error("checkout_session_missing_email", session_id=purchase.source_id)
            metrics.record_webhook_event(event.type, "missing_email")
            raise MalformedInputError("No customer email")

        email_sent = await self.delivery.deliver(purchase.buyer_email)

        metrics.record_webhook_event(event.type, "delivered" if email_sent else "email_failed")
        return WebhookAck(email_sent=email_sent)
