"""
Application Configuration - Pydantic Settings for type-safe config.

Secrets and endpoints come from the environment. Product constants
(token contract, accepted bands, download links) live in PaymentPolicy,
which is built once and never mutated.
"""

import re
import sys
from dataclasses import dataclass
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

# USDC on Base
USDC_CONTRACT = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

DOWNLOAD_URL = "https://felixcraft.ai/dl/c5768e3409026bab01bb1649.pdf"
THANK_YOU_URL = "https://felixcraft.ai/168a1eb2dd92fd596ac191d4"
SUPPORT_EMAIL = "felix@masinov.co"


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "Payhooks API"
    api_version: str = "0.1.0"
    api_description: str = "Payment verification and download delivery"

    # Payment Provider - Stripe
    stripe_secret_key: str = ""  # sk_test_... or sk_live_...
    stripe_webhook_secret: str = ""  # whsec_...
    stripe_account_context: str = ""  # Optional, for organisation keys

    # Base chain
    base_rpc_url: str = "https://mainnet.base.org"
    rpc_timeout_seconds: float = 10.0
    crypto_receiving_wallet: str = ""  # Empty disables the destination filter

    # Email - Resend
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    email_timeout_seconds: float = 10.0
    email_from: str = "Felix Craft <felix@masinov.co>"
    email_subject: str = 'Your "How to Hire an AI" download is ready'

    # CORS for the crypto checkout page
    cors_allowed_origin: str = "https://felixcraft.ai"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability
    metrics_enabled: bool = True
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "payhooks-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        A malformed wallet would silently reject every crypto payment,
        so the app refuses to start instead.
        """
        errors: list[str] = []

        if self.crypto_receiving_wallet and not ADDRESS_PATTERN.match(
            self.crypto_receiving_wallet
        ):
            errors.append(
                "CRYPTO_RECEIVING_WALLET must be a 0x-prefixed 20-byte hex address, "
                f"got: {self.crypto_receiving_wallet[:12]}..."
            )

        if not self.base_rpc_url.startswith(("http://", "https://")):
            errors.append(f"BASE_RPC_URL must be an HTTP(S) URL, got: {self.base_rpc_url[:20]}...")

        if self.rpc_timeout_seconds <= 0:
            errors.append("RPC_TIMEOUT_SECONDS must be positive")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self


@dataclass(frozen=True)
class PaymentPolicy:
    """
    Immutable product and acceptance rules shared by both payment paths.

    Card amounts are in cents. Crypto amounts are in USDC base units
    (6 decimals), so 29_000_000 is $29.00.
    """

    token_contract: str = USDC_CONTRACT
    transfer_topic: str = TRANSFER_TOPIC
    receiving_wallet: str = ""
    crypto_min_amount: int = 28_000_000
    crypto_max_amount: int = 35_000_000
    token_scale: int = 1_000_000
    card_min_amount: int = 2800
    card_max_amount: int = 3100
    download_url: str = DOWNLOAD_URL
    thank_you_url: str = THANK_YOU_URL
    support_email: str = SUPPORT_EMAIL

    def card_amount_accepted(self, amount_minor: int | None) -> bool:
        """Check a card amount (cents) against the accepted band."""
        if amount_minor is None:
            return False
        return self.card_min_amount <= amount_minor <= self.card_max_amount


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings


@lru_cache(maxsize=1)
def get_policy() -> PaymentPolicy:
    """Build the payment policy once from settings."""
    return PaymentPolicy(receiving_wallet=settings.crypto_receiving_wallet.lower())
