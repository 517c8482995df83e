"""
API Routes - Payment verification endpoints.

Both endpoints answer with {"error": ...} bodies on failure; see the
HTTPException handler in payhooks.main.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from structlog import get_logger

from payhooks.api.dependencies import (
    get_card_webhook_handler,
    get_crypto_verifier,
    get_download_delivery,
)
from payhooks.config import PaymentPolicy, get_policy, settings
from payhooks.exceptions import (
    AmountOutOfRangeError,
    MalformedInputError,
    NoQualifyingTransferError,
    ReceiptNotFoundError,
    WebhookVerificationError,
)
from payhooks.models.api import CryptoVerifyResponse, ErrorResponse, WebhookAck
from payhooks.observability.logging import log_context
from payhooks.observability.metrics import metrics
from payhooks.services.card_webhook import CardPaymentWebhookHandler
from payhooks.services.crypto_verifier import CryptoPaymentVerifier, parse_verify_request
from payhooks.services.email import DownloadDelivery

logger = get_logger(__name__)
router = APIRouter(tags=["payments"])

RECEIPT_NOT_FOUND_MESSAGE = "Transaction not found or failed. Please check the hash and try again."

ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"model": ErrorResponse},
    405: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def cors_headers() -> dict[str, str]:
    """Fixed CORS headers for the crypto checkout page."""
    return {
        "Access-Control-Allow-Origin": settings.cors_allowed_origin,
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
    }


# =============================================================================
# Card Payments (Stripe)
# =============================================================================


@router.post(
    "/api/stripe-webhook",
    response_model=WebhookAck,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def stripe_webhook(
    request: Request,
    handler: CardPaymentWebhookHandler = Depends(get_card_webhook_handler),
) -> WebhookAck:
    """
    Handle Stripe webhook events.

    The body is read raw so the signature is checked against the exact
    bytes Stripe signed. Email failures still acknowledge the event.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        return await handler.handle(payload, signature)

    except WebhookVerificationError as exc:
        logger.error("stripe_webhook_verification_failed", error=exc.message)
        metrics.record_webhook_event("unverified", "rejected")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Webhook Error: {exc.message}",
        ) from exc

    except MalformedInputError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.reason,
        ) from exc

    except Exception as exc:
        logger.error("stripe_webhook_processing_failed", error=str(exc), exc_info=True)
        metrics.record_error(type(exc).__name__, "stripe_webhook")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Webhook processing failed", "details": str(exc)},
        ) from exc


# =============================================================================
# Crypto Payments (USDC on Base)
# =============================================================================


@router.options("/api/verify-crypto", include_in_schema=False)
async def verify_crypto_preflight() -> Response:
    """CORS preflight."""
    return Response(status_code=status.HTTP_200_OK, headers=cors_headers())


@router.api_route(
    "/api/verify-crypto",
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def verify_crypto_method_not_allowed() -> Response:
    """Reject other methods, still with CORS headers so the page can read the error."""
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        headers={**cors_headers(), "Allow": "POST, OPTIONS"},
    )


@router.post(
    "/api/verify-crypto",
    response_model=CryptoVerifyResponse,
    responses=ERROR_RESPONSES,
)
async def verify_crypto(
    request: Request,
    response: Response,
    verifier: CryptoPaymentVerifier = Depends(get_crypto_verifier),
    delivery: DownloadDelivery = Depends(get_download_delivery),
    policy: PaymentPolicy = Depends(get_policy),
) -> CryptoVerifyResponse:
    """
    Verify a USDC payment and hand out the download.

    Input problems are rejected before the node is contacted. Once the
    transfer checks out the buyer gets the links even if the email fails.
    """
    response.headers.update(cors_headers())

    try:
        verify_request = parse_verify_request(await request.body())
    except MalformedInputError as exc:
        metrics.record_crypto_verification("malformed")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.reason,
            headers=cors_headers(),
        ) from exc

    tx_hash = verify_request.tx_hash or ""
    email = verify_request.email or ""

    with log_context(tx_hash=tx_hash):
        try:
            purchase = await verifier.verify(tx_hash, email)

        except ReceiptNotFoundError as exc:
            metrics.record_crypto_verification("not_found")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=RECEIPT_NOT_FOUND_MESSAGE,
                headers=cors_headers(),
            ) from exc

        except (AmountOutOfRangeError, NoQualifyingTransferError) as exc:
            metrics.record_crypto_verification("rejected")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=exc.reason,
                headers=cors_headers(),
            ) from exc

        except Exception as exc:
            logger.error("crypto_verification_error", error=str(exc), exc_info=True)
            metrics.record_crypto_verification("error")
            metrics.record_error(type(exc).__name__, "verify_crypto")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=(
                    f"Verification failed. Please email {policy.support_email} "
                    "with your transaction hash."
                ),
                headers=cors_headers(),
            ) from exc

        email_sent = await delivery.deliver(email)
        metrics.record_crypto_verification("verified")

        logger.info(
            "crypto_purchase_completed",
            email=email,
            amount_minor=purchase.amount_minor,
            email_sent=email_sent,
        )

    return CryptoVerifyResponse(
        download_url=policy.download_url,
        thank_you_url=policy.thank_you_url,
    )
