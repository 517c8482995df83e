"""
API Models - Pydantic models for request/response validation.

Inbound Stripe payloads are parsed only after their signature checks out.
Field aliases keep the camelCase wire names the checkout pages expect.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Stripe Webhook Models
# ============================================================================


class StripeCustomerDetails(BaseModel):
    """Customer details collected during checkout."""

    email: str | None = None
    name: str | None = None


class CheckoutSession(BaseModel):
    """The subset of a Stripe Checkout Session this service reads."""

    id: str
    amount_total: int | None = None
    currency: str | None = None
    customer_email: str | None = None
    customer_details: StripeCustomerDetails | None = None

    @property
    def buyer_email(self) -> str | None:
        """Email confirmed at checkout, falling back to the prefilled one."""
        if self.customer_details and self.customer_details.email:
            return self.customer_details.email
        return self.customer_email or None


class StripeEventData(BaseModel):
    """Envelope around the event's subject object."""

    object: dict[str, Any] = Field(default_factory=dict)


class StripeEvent(BaseModel):
    """A Stripe event notification."""

    id: str
    type: str
    account: str | None = None
    livemode: bool = False
    data: StripeEventData


class WebhookAck(BaseModel):
    """Acknowledgement returned to Stripe."""

    model_config = ConfigDict(populate_by_name=True)

    received: bool = True
    skipped: bool | None = None
    email_sent: bool | None = Field(None, alias="emailSent")


# ============================================================================
# Crypto Verification Models
# ============================================================================


class CryptoVerifyRequest(BaseModel):
    """POST /api/verify-crypto request body."""

    email: str | None = None
    tx_hash: str | None = Field(None, alias="txHash")


class CryptoVerifyResponse(BaseModel):
    """POST /api/verify-crypto success response."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    download_url: str = Field(..., alias="downloadUrl")
    thank_you_url: str = Field(..., alias="thankYouUrl")
    message: str = "Payment verified! Your download is ready."


class ErrorResponse(BaseModel):
    """Error body shared by every endpoint."""

    error: str
    details: str | None = None
