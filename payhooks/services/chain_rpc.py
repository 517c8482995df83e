"""
Base Chain RPC Client.

Talks JSON-RPC 2.0 over HTTP to an Ethereum-compatible node and turns
transaction receipts into domain models.
"""

import time
from typing import Any

import httpx
from structlog import get_logger

from payhooks.exceptions import RpcError
from payhooks.models.domain import EventLog, ReceiptStatus, TransactionReceipt
from payhooks.observability.metrics import metrics

logger = get_logger(__name__)

RECEIPT_SUCCESS_STATUS = "0x1"


def parse_receipt(transaction_hash: str, raw: dict[str, Any]) -> TransactionReceipt:
    """
    Convert a raw eth_getTransactionReceipt result into a TransactionReceipt.

    Raises:
        RpcError: If the receipt is not shaped like a receipt
    """
    if not isinstance(raw, dict):
        raise RpcError(f"Receipt is not an object: {type(raw).__name__}")

    raw_logs = raw.get("logs") or []
    if not isinstance(raw_logs, list):
        raise RpcError("Receipt logs is not a list")

    logs: list[EventLog] = []
    for index, entry in enumerate(raw_logs):
        try:
            logs.append(
                EventLog(
                    address=str(entry["address"]),
                    topics=tuple(str(topic) for topic in entry.get("topics") or []),
                    data=str(entry.get("data") or "0x"),
                )
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise RpcError(f"Malformed log at index {index}: {exc}") from exc

    status = (
        ReceiptStatus.SUCCESS
        if raw.get("status") == RECEIPT_SUCCESS_STATUS
        else ReceiptStatus.FAILURE
    )

    return TransactionReceipt(
        transaction_hash=str(raw.get("transactionHash") or transaction_hash),
        status=status,
        logs=tuple(logs),
    )


class BaseRpcClient:
    """
    Minimal JSON-RPC client for a Base node.

    Every call carries an explicit timeout so a stalled node cannot
    hold a buyer's request open indefinitely.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
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

    async def call(self, method: str, params: list[Any]) -> Any:
        """
        Perform one JSON-RPC call and return its result.

        Raises:
            RpcError: On transport failure, non-2xx status, an error object,
                or a body that is not JSON-RPC
        """
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        start = time.perf_counter()

        try:
            response = await self.http_client.post(
                self.rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "rpc_http_error",
                method=method,
                status=exc.response.status_code,
            )
            raise RpcError(f"{method} returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("rpc_transport_error", method=method, error=str(exc))
            raise RpcError(f"{method} failed: {exc}") from exc
        except ValueError as exc:
            logger.error("rpc_invalid_json", method=method, error=str(exc))
            raise RpcError(f"{method} returned invalid JSON") from exc
        finally:
            metrics.record_rpc_call(method, time.perf_counter() - start)

        if not isinstance(body, dict):
            raise RpcError(f"{method} returned a non-object body")

        if body.get("error"):
            logger.error("rpc_error_response", method=method, error=body["error"])
            raise RpcError(f"{method} error: {body['error']}")

        if "result" not in body:
            raise RpcError(f"{method} response has no result")

        return body["result"]

    async def get_transaction_receipt(self, transaction_hash: str) -> TransactionReceipt | None:
        """
        Fetch a transaction receipt.

        Returns:
            The parsed receipt, or None if the node does not know the transaction
        """
        logger.info("fetching_transaction_receipt", tx_hash=transaction_hash)

        result = await self.call("eth_getTransactionReceipt", [transaction_hash])
        if result is None:
            logger.info("transaction_receipt_missing", tx_hash=transaction_hash)
            return None

        receipt = parse_receipt(transaction_hash, result)
        logger.info(
            "transaction_receipt_fetched",
            tx_hash=transaction_hash,
            status=receipt.status.value,
            log_count=len(receipt.logs),
        )
        return receipt

    async def get_block_number(self) -> int:
        """Latest block height, used by the status endpoint."""
        result = await self.call("eth_blockNumber", [])
        try:
            return int(result, 16)
        except (TypeError, ValueError) as exc:
            raise RpcError(f"Invalid block number: {result!r}") from exc
