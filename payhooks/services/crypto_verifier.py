"""
Crypto Payment Verifier.

Confirms a buyer-submitted USDC transfer on Base by reading the
transaction receipt straight from a node, without trusting the buyer.
"""

import json
import re

from pydantic import ValidationError
from structlog import get_logger

from payhooks.config import PaymentPolicy
from payhooks.exceptions import (
    AmountOutOfRangeError,
    MalformedInputError,
    NoQualifyingTransferError,
    ReceiptNotFoundError,
)
from payhooks.models.api import CryptoVerifyRequest
from payhooks.models.domain import (
    EventLog,
    PurchaseEvent,
    TransactionReceipt,
    TransferOutcome,
    VerificationResult,
)
from payhooks.services.chain_rpc import BaseRpcClient

logger = get_logger(__name__)

TX_HASH_PATTERN = re.compile(r"0x[a-fA-F0-9]{64}")
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

NO_TRANSFER_REASON = (
    "No valid USDC transfer found in this transaction. Please check the transaction hash."
)


def parse_verify_request(body: bytes) -> CryptoVerifyRequest:
    """
    Parse and validate a verification request body.

    Checks run in order and the first failure wins: JSON object,
    both fields present, hash format, email format.

    Raises:
        MalformedInputError: With the user-facing reason
    """
    try:
        data = json.loads(body or b"")
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedInputError("Invalid JSON body") from exc

    if not isinstance(data, dict):
        raise MalformedInputError("Invalid JSON body")

    try:
        request = CryptoVerifyRequest.model_validate(data)
    except ValidationError as exc:
        raise MalformedInputError("Invalid JSON body") from exc

    if not request.email or not request.tx_hash:
        raise MalformedInputError("Email and transaction hash are required")

    if not TX_HASH_PATTERN.fullmatch(request.tx_hash):
        raise MalformedInputError("Invalid transaction hash format")

    if not EMAIL_PATTERN.fullmatch(request.email):
        raise MalformedInputError("Invalid email format")

    return request


def _decode_amount(log: EventLog) -> int | None:
    try:
        return int(log.data, 16)
    except ValueError:
        return None


def _is_transfer_to_wallet(log: EventLog, policy: PaymentPolicy) -> bool:
    if log.address.lower() != policy.token_contract.lower():
        return False
    if not log.topics or log.topics[0].lower() != policy.transfer_topic:
        return False
    recipient = log.recipient
    if recipient is None:
        return False
    if policy.receiving_wallet and recipient != policy.receiving_wallet:
        return False
    return True


def verify_usdc_transfer(receipt: TransactionReceipt, policy: PaymentPolicy) -> VerificationResult:
    """
    Find the USDC transfer in a receipt and judge its amount.

    Logs are scanned in order. The first matching transfer inside the
    band is accepted; one below the band rejects the receipt at once.
    A transfer above the band does not stop the scan, but if nothing
    later settles the receipt it is reported as overpaid rather than
    as missing.
    """
    overpaid: int | None = None

    for log in receipt.logs:
        if not _is_transfer_to_wallet(log, policy):
            continue

        amount = _decode_amount(log)
        if amount is None:
            continue

        dollars = amount / policy.token_scale

        if policy.crypto_min_amount <= amount <= policy.crypto_max_amount:
            return VerificationResult(
                valid=True, outcome=TransferOutcome.ACCEPTED, amount=dollars
            )

        if amount < policy.crypto_min_amount:
            return VerificationResult(
                valid=False,
                outcome=TransferOutcome.BELOW_MINIMUM,
                amount=dollars,
                reason=f"Payment amount (${dollars:.2f}) is below the required amount.",
            )

        if overpaid is None:
            overpaid = amount

    if overpaid is not None:
        dollars = overpaid / policy.token_scale
        return VerificationResult(
            valid=False,
            outcome=TransferOutcome.ABOVE_MAXIMUM,
            amount=dollars,
            reason=(
                f"Payment amount (${dollars:.2f}) is above the accepted amount. "
                f"Please email {policy.support_email} with your transaction hash."
            ),
        )

    return VerificationResult(
        valid=False, outcome=TransferOutcome.NO_TRANSFER, reason=NO_TRANSFER_REASON
    )


class CryptoPaymentVerifier:
    """Verifies USDC payments against a Base node."""

    def __init__(self, rpc_client: BaseRpcClient, policy: PaymentPolicy) -> None:
        self.rpc_client = rpc_client
        self.policy = policy

    async def verify(self, transaction_hash: str, buyer_email: str) -> PurchaseEvent:
        """
        Verify a transaction pays for the download.

        Args:
            transaction_hash: 0x-prefixed 32-byte transaction hash
            buyer_email: Where the download goes once verified

        Returns:
            The confirmed purchase, amount in token base units

        Raises:
            ReceiptNotFoundError: If the node has no successful receipt
            AmountOutOfRangeError: If the transfer pays too little or too much
            NoQualifyingTransferError: If no transfer reaches the wallet
            RpcError: If the node cannot be queried
        """
        receipt = await self.rpc_client.get_transaction_receipt(transaction_hash)

        if receipt is None or not receipt.succeeded:
            raise ReceiptNotFoundError(transaction_hash)

        result = verify_usdc_transfer(receipt, self.policy)

        if result.outcome in (TransferOutcome.BELOW_MINIMUM, TransferOutcome.ABOVE_MAXIMUM):
            logger.warning(
                "crypto_payment_amount_rejected",
                tx_hash=transaction_hash,
                amount=result.amount,
                outcome=result.outcome.value,
            )
            raise AmountOutOfRangeError(result.amount or 0.0, result.reason or "")

        if not result.valid:
            logger.warning("crypto_payment_no_transfer", tx_hash=transaction_hash)
            raise NoQualifyingTransferError(result.reason or NO_TRANSFER_REASON)

        logger.info(
            "crypto_payment_verified",
            tx_hash=transaction_hash,
            amount=result.amount,
        )

        return PurchaseEvent(
            amount_minor=round((result.amount or 0.0) * self.policy.token_scale),
            buyer_email=buyer_email,
            source_id=transaction_hash,
        )
