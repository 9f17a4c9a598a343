from typing import Optional


class OrderBotError(Exception):
    """Base class for every error raised by the submission pipeline."""


class ValidationError(OrderBotError):
    """Malformed order intent or structurally invalid external payload."""


class PrecisionError(ValidationError):
    def __init__(self, quantity: int, max_decimals: int):
        self.quantity = quantity
        self.max_decimals = max_decimals
        super().__init__(f"Order amount precision exceeds max decimals of {max_decimals}")


class QuoteExpiredError(ValidationError):
    def __init__(self, quote_id: int, deadline: int, now: int):
        self.quote_id = quote_id
        self.deadline = deadline
        self.now = now
        super().__init__(f"Fee quote {quote_id} expired at {deadline} (now {now})")


class QuoteServiceError(OrderBotError):
    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class RelayerError(OrderBotError):
    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)


class ReceiptTimeoutError(OrderBotError, TimeoutError):
    def __init__(self, handle_hash: str, timeout_ms: int):
        self.handle_hash = handle_hash
        self.timeout_ms = timeout_ms
        super().__init__(f"No receipt for {handle_hash} within {timeout_ms} ms")


class EventNotFoundError(OrderBotError):
    pass


class ChainRevertError(OrderBotError):
    def __init__(self, message: str, reason: Optional[str] = None, tx_hash: Optional[str] = None):
        self.reason = reason
        self.tx_hash = tx_hash
        super().__init__(message if reason is None else f"{message}: {reason}")
