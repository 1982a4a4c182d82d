"""
SolBridge - Custom Exceptions
Hierarchy of exceptions for better error handling
"""
from typing import Optional, Any
from fastapi import HTTPException, status


class SolBridgeException(Exception):
    """Base exception for all SolBridge errors"""

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Any] = None):
        self.message = message
        self.code = code or "SOLBRIDGE_ERROR"
        self.details = details
        super().__init__(self.message)


class TradingException(SolBridgeException):
    """Trading-related errors"""

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message, code or "TRADING_ERROR", details)


class ExchangeConnectionError(TradingException):
    """Failed to connect to exchange"""

    def __init__(self, exchange: str, message: str):
        super().__init__(
            f"Failed to connect to {exchange}: {message}",
            "EXCHANGE_CONNECTION_ERROR",
            {"exchange": exchange}
        )


class PriceResolutionError(TradingException):
    """
    Price could not be resolved for a position.
    Transient: the monitor skips the position for this cycle.
    """


class PriceUnavailableError(PriceResolutionError):
    """Every oracle returned no usable price"""

    def __init__(self, identifier: str, reason: Optional[str] = None):
        message = f"No price available for {identifier}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, "PRICE_UNAVAILABLE", {"identifier": identifier})


class AuthRequiredError(PriceResolutionError):
    """Exchange credentials missing or rejected for the owner"""

    def __init__(self, owner_id: int, reason: str = "No exchange credentials configured"):
        super().__init__(
            f"Exchange session unavailable for owner {owner_id}: {reason}",
            "AUTH_REQUIRED",
            {"owner_id": owner_id}
        )


class OrderExecutionError(TradingException):
    """Exit order was rejected or never submitted; the position stays OPEN"""

    def __init__(self, position_id: int, reason: str):
        super().__init__(
            f"Exit order failed for position {position_id}: {reason}",
            "ORDER_EXECUTION_FAILED",
            {"position_id": position_id}
        )


class OrderOutcomeUnknownError(TradingException):
    """
    Exit order reached the venue but its result could not be confirmed.
    Re-sending could exit twice, so the position is quarantined instead.
    """

    def __init__(self, reference: Optional[str], reason: str, position_id: Optional[int] = None):
        subject = f"position {position_id}" if position_id is not None else "exit order"
        super().__init__(
            f"Outcome unknown for {subject} (order {reference or 'unassigned'}): {reason}",
            "ORDER_OUTCOME_UNKNOWN",
            {"position_id": position_id, "reference": reference}
        )
        self.reference = reference
        self.reason = reason
        self.position_id = position_id


class ClosurePersistenceError(TradingException):
    """
    Exit order executed but the closed state could not be stored.
    Funds moved while the record still says OPEN; never retried automatically.
    """

    def __init__(self, position_id: int, order_id: Optional[str], reason: str):
        super().__init__(
            f"Position {position_id} exited (order {order_id}) but was not persisted: {reason}",
            "CLOSURE_PERSISTENCE_FAILED",
            {"position_id": position_id, "order_id": order_id}
        )
        self.order_id = order_id
        self.reason = reason


class InvalidExitRuleError(TradingException):
    """Take profit / stop loss / trailing configuration rejected"""

    def __init__(self, reason: str, details: Optional[Any] = None):
        super().__init__(
            f"Invalid exit rule: {reason}",
            "INVALID_EXIT_RULE",
            details
        )


class PositionNotFoundError(TradingException):
    """Position id does not exist"""

    def __init__(self, position_id: int):
        super().__init__(
            f"Position {position_id} not found",
            "POSITION_NOT_FOUND",
            {"position_id": position_id}
        )


class PositionStateError(TradingException):
    """Operation not allowed in the position's current status"""

    def __init__(self, position_id: int, status: str):
        super().__init__(
            f"Position {position_id} is {status}",
            "POSITION_NOT_OPEN",
            {"position_id": position_id, "status": status}
        )


# HTTP Exception Helpers
def raise_unauthorized(detail: str = "Could not validate credentials") -> None:
    """Raise 401 Unauthorized"""
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


def raise_not_found(resource: str = "Resource") -> None:
    """Raise 404 Not Found"""
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{resource} not found"
    )


def raise_bad_request(detail: str) -> None:
    """Raise 400 Bad Request"""
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail
    )


def raise_conflict(detail: str) -> None:
    """Raise 409 Conflict"""
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=detail
    )
