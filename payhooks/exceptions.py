"""
Exception Classes - Strongly typed exception hierarchy.

Every failure on both payment paths maps to one of these.
"""


class PaymentError(Exception):
    """Base exception for all payment verification errors."""

    pass


class MalformedInputError(PaymentError):
    """Raised when a request body is missing fields or badly formatted."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class WebhookVerificationError(PaymentError):
    """Raised when webhook verification fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Webhook verification error: {message}")


class ReceiptNotFoundError(PaymentError):
    """Raised when a transaction has no receipt or did not succeed."""

    def __init__(self, transaction_hash: str) -> None:
        self.transaction_hash = transaction_hash
        super().__init__(f"Transaction not found or failed: {transaction_hash}")


class AmountOutOfRangeError(PaymentError):
    """Raised when a transfer amount falls outside the accepted band."""

    def __init__(self, amount: float, reason: str) -> None:
        self.amount = amount
        self.reason = reason
        super().__init__(reason)


class NoQualifyingTransferError(PaymentError):
    """Raised when a receipt holds no transfer to the configured wallet."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class RpcError(PaymentError):
    """Raised when the blockchain node call fails or returns garbage."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"RPC error: {message}")


class EmailDispatchError(PaymentError):
    """Raised when the email provider rejects or fails a send."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Email dispatch failed: {message}")
