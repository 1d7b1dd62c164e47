"""Domain error taxonomy.

Every error a stage can report to a caller derives from ``TradeChainError``
and carries the HTTP status the API layer should answer with.
``UpstreamDegraded`` is internal to the pipeline and never reaches a caller.
"""

from typing import Optional


class TradeChainError(Exception):
    """Base class for caller-facing domain errors."""

    status_code: int = 400
    error: str = "Request failed"

    def __init__(self, details: Optional[str] = None) -> None:
        self.details = details
        super().__init__(details or self.error)

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.error}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(TradeChainError):
    """Missing or malformed required request fields."""

    error = "Invalid request"

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        self.error = message
        super().__init__(details)


class Unauthorized(TradeChainError):
    status_code = 401
    error = "Invalid webhook secret"


class UnknownSymbol(TradeChainError):
    error = "Invalid symbol"

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"Symbol {symbol} not found in market data")


class InvalidStopLevels(TradeChainError):
    error = "Invalid stop loss"


class InvalidTakeProfitLevel(TradeChainError):
    error = "Invalid take profit"


class OrderIdRequired(TradeChainError):
    def __init__(self, action: str) -> None:
        self.error = f"Order ID required for {action.lower()} operation"
        super().__init__(f"orderId parameter is mandatory for {action} action")


class InvalidAction(TradeChainError):
    error = "Invalid action"

    def __init__(self, action: str) -> None:
        super().__init__(f"Action {action} not supported")


class MissingSignalData(TradeChainError):
    error = "Signal data is required for validation"


class AIServiceError(TradeChainError):
    """The AI layer reported a failure for an analysis stage."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        self.error = message
        super().__init__(details)


class UpstreamDegraded(Exception):
    """A pipeline stage could not be reached or failed.

    Raised and caught inside the pipeline only.
    """

    def __init__(self, stage: str, reason: str) -> None:
        self.stage = stage
        self.reason = reason
        super().__init__(f"{stage}: {reason}")
