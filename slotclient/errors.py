"""Error codes and exceptions for the client core."""
from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Failure classes surfaced by session transitions."""

    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    ROUND_IN_PROGRESS = "ROUND_IN_PROGRESS"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    UNKNOWN_SYMBOL = "UNKNOWN_SYMBOL"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Default user-facing messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INSUFFICIENT_FUNDS: "Insufficient funds.",
    ErrorCode.ROUND_IN_PROGRESS: "A round is already in progress.",
    ErrorCode.INVALID_AMOUNT: "Enter a valid amount.",
    ErrorCode.NETWORK_ERROR: "Network request failed.",
    ErrorCode.UNAUTHORIZED: "Session expired, please log in again.",
    ErrorCode.MALFORMED_PAYLOAD: "Unexpected response from the server.",
    ErrorCode.UNKNOWN_SYMBOL: "Unexpected symbol in the server response.",
    ErrorCode.INTERNAL_ERROR: "Something went wrong, please try again.",
}

# Whether the player can simply try again
ERROR_RECOVERABLE: dict[ErrorCode, bool] = {
    ErrorCode.INSUFFICIENT_FUNDS: True,
    ErrorCode.ROUND_IN_PROGRESS: True,
    ErrorCode.INVALID_AMOUNT: True,
    ErrorCode.NETWORK_ERROR: True,
    ErrorCode.UNAUTHORIZED: False,
    ErrorCode.MALFORMED_PAYLOAD: True,
    ErrorCode.UNKNOWN_SYMBOL: True,
    ErrorCode.INTERNAL_ERROR: True,
}


class Notice(BaseModel):
    """User-facing message produced by a failed transition."""

    code: str
    message: str
    recoverable: bool


class GameError(Exception):
    """Base client error that maps to a user-facing notice."""

    def __init__(self, code: ErrorCode, message: str | None = None):
        self.code = code
        self.message = message or ERROR_MESSAGES[code]
        self.recoverable = ERROR_RECOVERABLE[code]
        super().__init__(self.message)

    def to_notice(self) -> Notice:
        """Convert to the notice shown to the player."""
        return Notice(
            code=self.code.value,
            message=self.message,
            recoverable=self.recoverable,
        )
