"""
Status API routes - Health checks for payhooks dependencies.

Public endpoint (no auth). Results are cached briefly so the node is
not hammered by status page polling.
"""

import time
from datetime import UTC, datetime
from enum import Enum

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from structlog import get_logger

from payhooks.api.dependencies import get_rpc_client
from payhooks.config import settings
from payhooks.exceptions import RpcError
from payhooks.services.chain_rpc import BaseRpcClient

logger = get_logger(__name__)
router = APIRouter(tags=["status"])

DEGRADED_LATENCY_THRESHOLD = 1000  # ms

_status_cache: dict[str, tuple[datetime, "ServiceStatusResponse"]] = {}
_CACHE_TTL_SECONDS = 10


class StatusLevel(str, Enum):
    """Status levels for health checks."""

    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    OUTAGE = "outage"


class ProviderStatus(BaseModel):
    """Status of a single provider."""

    status: StatusLevel
    latency_ms: int | None = None
    last_check: str = Field(..., description="ISO 8601 timestamp")
    message: str | None = None


class ServiceStatusResponse(BaseModel):
    """Response for /v1/status endpoint."""

    service: str = "payhooks"
    status: StatusLevel
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    version: str
    providers: dict[str, ProviderStatus]


async def check_base_rpc(rpc_client: BaseRpcClient) -> ProviderStatus:
    """Check the Base node answers eth_blockNumber."""
    start = time.perf_counter()
    timestamp = datetime.now(UTC).isoformat()

    try:
        block_number = await rpc_client.get_block_number()
    except RpcError as e:
        logger.warning("base_rpc_health_check_failed", error=str(e))
        return ProviderStatus(
            status=StatusLevel.OUTAGE,
            latency_ms=None,
            last_check=timestamp,
            message="Connection failed",
        )

    latency_ms = int((time.perf_counter() - start) * 1000)
    status = (
        StatusLevel.DEGRADED if latency_ms > DEGRADED_LATENCY_THRESHOLD else StatusLevel.OPERATIONAL
    )
    return ProviderStatus(
        status=status,
        latency_ms=latency_ms,
        last_check=timestamp,
        message="High latency" if status == StatusLevel.DEGRADED else f"Block {block_number}",
    )


def check_configured(name: str, value: str) -> ProviderStatus:
    """Report a provider as degraded when its credential is missing."""
    timestamp = datetime.now(UTC).isoformat()
    if not value:
        return ProviderStatus(
            status=StatusLevel.DEGRADED,
            latency_ms=0,
            last_check=timestamp,
            message=f"{name} not configured",
        )
    return ProviderStatus(status=StatusLevel.OPERATIONAL, latency_ms=0, last_check=timestamp)


def calculate_overall_status(providers: dict[str, ProviderStatus]) -> StatusLevel:
    """Calculate overall service status from provider statuses."""
    statuses = [p.status for p in providers.values()]

    if StatusLevel.OUTAGE in statuses:
        return StatusLevel.OUTAGE
    if StatusLevel.DEGRADED in statuses:
        return StatusLevel.DEGRADED
    return StatusLevel.OPERATIONAL


@router.get("/v1/status", response_model=ServiceStatusResponse)
async def get_status(
    rpc_client: BaseRpcClient = Depends(get_rpc_client),
) -> ServiceStatusResponse:
    """
    Get payhooks service status.

    Checks the Base node and whether Stripe and Resend credentials are set.
    """
    cache_key = "status"
    now = datetime.now(UTC)

    if cache_key in _status_cache:
        cached_time, cached_response = _status_cache[cache_key]
        age_seconds = (now - cached_time).total_seconds()
        if age_seconds < _CACHE_TTL_SECONDS:
            logger.debug("status_cache_hit", age_seconds=age_seconds)
            return cached_response

    providers = {
        "base_rpc": await check_base_rpc(rpc_client),
        "stripe": check_configured("STRIPE_WEBHOOK_SECRET", settings.stripe_webhook_secret),
        "resend": check_configured("RESEND_API_KEY", settings.resend_api_key),
    }

    response = ServiceStatusResponse(
        status=calculate_overall_status(providers),
        timestamp=now.isoformat(),
        version=settings.api_version,
        providers=providers,
    )

    _status_cache[cache_key] = (now, response)

    return response
