"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fakes and builders for testing:
- Stripe-signed webhook payloads
- Raw JSON-RPC receipts and Transfer logs
- A recording email dispatcher
- A Base node served through httpx.MockTransport
- API test client with dependency overrides
"""

import hashlib
import hmac
import json
import os
import time
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Set required environment variables BEFORE importing payhooks modules
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_fake_key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_fake_secret")
os.environ.setdefault("RESEND_API_KEY", "re_test_fake_key")
os.environ.setdefault("CRYPTO_RECEIVING_WALLET", "0x00000000000000000000000000000000000000aa")
os.environ.setdefault("TRACING_ENABLED", "false")

from payhooks.config import TRANSFER_TOPIC, USDC_CONTRACT, PaymentPolicy
from payhooks.exceptions import EmailDispatchError
from payhooks.services.chain_rpc import BaseRpcClient

WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]
WALLET = os.environ["CRYPTO_RECEIVING_WALLET"].lower()
OTHER_WALLET = "0x00000000000000000000000000000000000000bb"
SENDER = "0x00000000000000000000000000000000000000cc"
TX_HASH = "0x" + "ab" * 32


# ============================================================================
# Stripe Fixtures
# ============================================================================


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for payload."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_event(
    amount_total: int | None = 2900,
    details_email: str | None = "buyer@example.com",
    customer_email: str | None = None,
    event_type: str = "checkout.session.completed",
    event_id: str = "evt_test_123",
) -> bytes:
    """Serialized Stripe event around a checkout session."""
    session: dict[str, Any] = {
        "id": "cs_test_abc",
        "object": "checkout.session",
        "amount_total": amount_total,
        "currency": "usd",
        "customer_email": customer_email,
        "customer_details": {"email": details_email, "name": "Test Buyer"}
        if details_email
        else None,
    }
    event = {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "livemode": False,
        "data": {"object": session},
    }
    return json.dumps(event).encode()


# ============================================================================
# Chain Fixtures
# ============================================================================


def pad_address(address: str) -> str:
    """Left-pad a 20-byte address into a 32-byte topic word."""
    return "0x" + address[2:].lower().rjust(64, "0")


def transfer_log(
    amount: int,
    to: str = WALLET,
    contract: str = USDC_CONTRACT,
    topic: str = TRANSFER_TOPIC,
) -> dict[str, Any]:
    """Raw ERC-20 Transfer log as a node returns it."""
    return {
        "address": contract,
        "topics": [topic, pad_address(SENDER), pad_address(to)],
        "data": "0x" + format(amount, "064x"),
        "logIndex": "0x0",
    }


def raw_receipt(logs: list[dict[str, Any]], status: str = "0x1") -> dict[str, Any]:
    """Raw eth_getTransactionReceipt result."""
    return {"transactionHash": TX_HASH, "status": status, "logs": logs}


class RpcNode:
    """Scripted Base node behind httpx.MockTransport."""

    def __init__(self) -> None:
        self.receipt: dict[str, Any] | None = None
        self.block_number = "0x10"
        self.status_code = 200
        self.error: Exception | None = None
        self.calls: list[dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append(body)
        if self.error is not None:
            raise self.error
        if body["method"] == "eth_blockNumber":
            result: Any = self.block_number
        else:
            result = self.receipt
        return httpx.Response(
            self.status_code, json={"jsonrpc": "2.0", "id": body["id"], "result": result}
        )

    def client(self) -> BaseRpcClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return BaseRpcClient(rpc_url="https://rpc.test", timeout=5.0, http_client=http_client)


@pytest.fixture
def rpc_node() -> RpcNode:
    return RpcNode()


@pytest.fixture
def policy() -> PaymentPolicy:
    """Policy with the test wallet filter enabled."""
    return PaymentPolicy(receiving_wallet=WALLET)


# ============================================================================
# Email Fixtures
# ============================================================================


class RecordingDispatcher:
    """EmailDispatcher that records sends and can be told to fail."""

    def __init__(self, fail: bool = False, error: Exception | None = None) -> None:
        self.fail = fail
        self.error = error
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, recipient: str, subject: str, html: str) -> None:
        self.sent.append((recipient, subject, html))
        if self.error is not None:
            raise self.error
        if self.fail:
            raise EmailDispatchError("provider unavailable")


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


# ============================================================================
# FastAPI Test Client Fixtures
# ============================================================================


@pytest.fixture
def app() -> FastAPI:
    """Create FastAPI app for testing."""
    from payhooks.main import app as main_app

    return main_app


@pytest.fixture
def client(
    app: FastAPI, rpc_node: RpcNode, dispatcher: RecordingDispatcher
) -> Iterator[TestClient]:
    """Test client with the node and email provider faked out."""
    from payhooks.api.dependencies import get_email_dispatcher, get_rpc_client

    app.dependency_overrides[get_rpc_client] = rpc_node.client
    app.dependency_overrides[get_email_dispatcher] = lambda: dispatcher

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def post_webhook(client: TestClient) -> Callable[..., httpx.Response]:
    """POST a payload to the Stripe webhook, signed unless told otherwise."""

    def _post(payload: bytes, signature: str | None = "", **headers: str) -> httpx.Response:
        if signature == "":
            signature = sign_payload(payload)
        if signature is not None:
            headers["Stripe-Signature"] = signature
        headers.setdefault("Content-Type", "application/json")
        return client.post("/api/stripe-webhook", content=payload, headers=headers)

    return _post
