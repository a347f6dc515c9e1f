"""Client-side telemetry and correctness signals."""
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol


logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    """Protocol for telemetry sinks."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Emit a telemetry event."""
        ...


class LoggingTelemetrySink:
    """Default sink that logs telemetry events."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Log telemetry event."""
        logger.info("TELEMETRY %s: %s", event_name, data)


@dataclass
class SpinCommittedEvent:
    """spin_committed: a spin result was written into session state."""

    game: str  # "line" | "cascade"
    mode: str  # "base" | "bonus" | "buy"
    online: bool
    bet: float
    payout: float
    balance: float
    free_spins_left: int
    cascade_steps: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for emission."""
        return {
            "game": self.game,
            "mode": self.mode,
            "online": self.online,
            "bet": self.bet,
            "payout": self.payout,
            "balance": self.balance,
            "free_spins_left": self.free_spins_left,
            "cascade_steps": self.cascade_steps,
        }


@dataclass
class SpinRejectedEvent:
    """spin_rejected: a spin or bonus purchase did not start or did not commit."""

    game: str
    action: str  # "spin" | "buy_bonus"
    reason: str  # ErrorCode value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for emission."""
        return {"game": self.game, "action": self.action, "reason": self.reason}


@dataclass
class BoardMismatchEvent:
    """board_mismatch: replayed cascade board differs from the server's final board."""

    game: str
    mismatch_count: int
    cells: list[tuple[int, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for emission."""
        return {
            "game": self.game,
            "mismatch_count": self.mismatch_count,
            "cells": [list(cell) for cell in self.cells],
        }


@dataclass
class BonusRollbackEvent:
    """bonus_rollback: an optimistic bonus purchase was reverted."""

    game: str
    reason: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for emission."""
        return {"game": self.game, "reason": self.reason}


@dataclass
class StaleResponseEvent:
    """stale_response_dropped: a response arrived after the session was reset."""

    game: str
    action: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for emission."""
        return {"game": self.game, "action": self.action}


class TelemetryService:
    """Service for emitting client telemetry events."""

    def __init__(self, sink: TelemetrySink | None = None):
        self._sink = sink or LoggingTelemetrySink()
        self._sink_errors = 0  # Counter for sink failures

    def set_sink(self, sink: TelemetrySink) -> None:
        """Set the telemetry sink (useful for testing)."""
        self._sink = sink

    @property
    def sink_errors(self) -> int:
        return self._sink_errors

    def _safe_emit(self, event_name: str, data: dict[str, Any]) -> None:
        """
        Emit event with exception safety.

        Sink failures MUST NOT break session transitions.
        """
        try:
            self._sink.emit(event_name, data)
        except Exception as e:
            self._sink_errors += 1
            logger.warning(
                "Telemetry sink error (count=%d): %s - %s",
                self._sink_errors,
                event_name,
                str(e),
            )

    def emit_spin_committed(self, event: SpinCommittedEvent) -> None:
        self._safe_emit("spin_committed", event.to_dict())

    def emit_spin_rejected(self, event: SpinRejectedEvent) -> None:
        self._safe_emit("spin_rejected", event.to_dict())

    def emit_board_mismatch(self, event: BoardMismatchEvent) -> None:
        self._safe_emit("board_mismatch", event.to_dict())

    def emit_bonus_rollback(self, event: BonusRollbackEvent) -> None:
        self._safe_emit("bonus_rollback", event.to_dict())

    def emit_stale_response(self, event: StaleResponseEvent) -> None:
        self._safe_emit("stale_response_dropped", event.to_dict())


# Global instance
telemetry_service = TelemetryService()
