"""
FastAPI Dependencies - Service construction for the payment routes.

Clients are built once per process and shared; everything they hold
is immutable configuration. Tests swap these out via dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends

from payhooks.config import PaymentPolicy, get_policy, settings
from payhooks.services.card_webhook import CardPaymentWebhookHandler
from payhooks.services.chain_rpc import BaseRpcClient
from payhooks.services.crypto_verifier import CryptoPaymentVerifier
from payhooks.services.email import DownloadDelivery, EmailDispatcher, ResendEmailDispatcher
from payhooks.services.stripe_provider import StripeProvider


@lru_cache(maxsize=1)
def get_rpc_client() -> BaseRpcClient:
    """Shared Base node client."""
    return BaseRpcClient(rpc_url=settings.base_rpc_url, timeout=settings.rpc_timeout_seconds)


@lru_cache(maxsize=1)
def get_email_dispatcher() -> EmailDispatcher:
    """Shared Resend client."""
    return ResendEmailDispatcher(
        api_key=settings.resend_api_key,
        sender=settings.email_from,
        api_url=settings.resend_api_url,
        timeout=settings.email_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_stripe_provider() -> StripeProvider:
    return StripeProvider(
        api_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        account_context=settings.stripe_account_context,
    )


def get_download_delivery(
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    policy: PaymentPolicy = Depends(get_policy),
) -> DownloadDelivery:
    return DownloadDelivery(dispatcher=dispatcher, policy=policy, subject=settings.email_subject)


def get_card_webhook_handler(
    provider: StripeProvider = Depends(get_stripe_provider),
    delivery: DownloadDelivery = Depends(get_download_delivery),
    policy: PaymentPolicy = Depends(get_policy),
) -> CardPaymentWebhookHandler:
    return CardPaymentWebhookHandler(provider=provider, delivery=delivery, policy=policy)


def get_crypto_verifier(
    rpc_client: BaseRpcClient = Depends(get_rpc_client),
    policy: PaymentPolicy = Depends(get_policy),
) -> CryptoPaymentVerifier:
    return CryptoPaymentVerifier(rpc_client=rpc_client, policy=policy)


async def close_clients() -> None:
    """Close shared HTTP clients on shutdown."""
    if get_rpc_client.cache_info().currsize:
        await get_rpc_client().aclose()
    if get_email_dispatcher.cache_info().currsize:
        dispatcher = get_email_dispatcher()
        if isinstance(dispatcher, ResendEmailDispatcher):
            await dispatcher.aclose()
