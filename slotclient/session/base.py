"""Behaviour shared by the line and cascade game sessions."""
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Callable

from slotclient.config import Settings, settings
from slotclient.errors import ErrorCode, GameError, Notice
from slotclient.game_api import PayAPI
from slotclient.logic.ledger import BetRules, BonusPurchase, EconomyLedger
from slotclient.logic.models import EconomyState, SessionPhase
from slotclient.logic.timeline import Clock, Timeline
from slotclient.telemetry import (
    BonusRollbackEvent,
    SpinCommittedEvent,
    SpinRejectedEvent,
    StaleResponseEvent,
    TelemetryService,
    telemetry_service,
)


logger = logging.getLogger(__name__)


class GameSession(ABC):
    """
    One player's session of a game.

    Owns the economy ledger, the board and the phase. Presentation code reads
    snapshots and calls transition methods; it never writes fields directly.
    Transition methods catch every failure, record a Notice and return the
    session to IDLE. Failures other than GameError are logged and reported as
    INTERNAL_ERROR.
    """

    GAME = "game"

    def __init__(
        self,
        rules: BetRules,
        pay: PayAPI | None = None,
        online: bool = False,
        turbo: bool = False,
        clock: Clock | None = None,
        telemetry: TelemetryService | None = None,
        on_notice: Callable[[Notice], None] | None = None,
        config: Settings = settings,
    ):
        self.config = config
        self.ledger = EconomyLedger(
            rules, online=online, bonus_cost_multiplier=config.bonus_cost_multiplier
        )
        self.phase = SessionPhase.IDLE
        self.turbo = turbo
        self.timeline = Timeline(clock, config)
        self.telemetry = telemetry or telemetry_service
        self.notices: list[Notice] = []
        self.last_win = 0.0
        self._pay = pay
        self._on_notice = on_notice
        # Bumped by reset(); responses from an older generation are dropped
        self._generation = 0

    # === State ===

    @property
    def economy(self) -> EconomyState:
        return self.ledger.state

    @property
    def online(self) -> bool:
        return self.ledger.online

    @property
    def in_flight(self) -> bool:
        return self.phase != SessionPhase.IDLE

    @property
    def last_notice(self) -> Notice | None:
        return self.notices[-1] if self.notices else None

    def can_spin(self) -> bool:
        """Whether spin() would start a round right now (autoplay predicate)."""
        return self.phase == SessionPhase.IDLE and self.ledger.can_afford_spin()

    @abstractmethod
    def _has_backend(self) -> bool:
        pass

    # === Settings ===

    def set_bet(self, value: float) -> bool:
        return self.ledger.set_bet(value, in_flight=self.in_flight)

    def set_turbo(self, turbo: bool) -> None:
        self.turbo = turbo

    def set_online_mode(self, online: bool) -> bool:
        """Switch between server play and offline demo. Rejected mid-round."""
        if self.in_flight:
            return False
        if online and not self._has_backend():
            logger.warning("%s session has no backend, staying offline", self.GAME)
            return False
        self.ledger.online = online
        return True

    # === Balance ===

    async def deposit(self, amount: float) -> bool:
        """Top up the balance; online deposits are confirmed by a balance sync."""
        if self.in_flight:
            return False
        if not math.isfinite(amount) or amount <= 0:
            self._notify(GameError(ErrorCode.INVALID_AMOUNT))
            return False
        if not self.online:
            self.ledger.credit(amount)
            return True
        if self._pay is None:
            self._notify(GameError(ErrorCode.NETWORK_ERROR, "No payment service configured."))
            return False
        try:
            await self._pay.deposit(amount)
        except Exception as e:
            self._notify(self._as_game_error("deposit", e))
            return False
        await self.sync_balance()
        return True

    async def sync_balance(self) -> bool:
        """Reload the balance from the server. Failures keep the current balance."""
        if not self.online or self._pay is None:
            return False
        generation = self._generation
        try:
            balance = await self._pay.get_balance()
        except Exception as e:
            error = self._as_game_error("sync_balance", e)
            logger.error("Failed to sync balance: %s", error.message)
            return False
        if generation != self._generation:
            return False
        self.ledger.sync_balance(balance)
        return True

    # === Lifecycle ===

    def reset(self) -> None:
        """Restore defaults and invalidate any response still in flight."""
        self._generation += 1
        self.ledger.reset()
        self.phase = SessionPhase.IDLE
        self.last_win = 0.0
        self.notices.clear()
        self._reset_board()

    @abstractmethod
    def _reset_board(self) -> None:
        pass

    # === Transition helpers ===

    def _start_round(self) -> int:
        self.phase = SessionPhase.SPINNING
        return self._generation

    def _is_current(self, generation: int, action: str) -> bool:
        if generation == self._generation:
            return True
        logger.info("Dropping %s %s response from before reset", self.GAME, action)
        self.telemetry.emit_stale_response(StaleResponseEvent(game=self.GAME, action=action))
        return False

    def _as_game_error(self, action: str, error: Exception) -> GameError:
        """Pass GameError through; log anything else and wrap it as INTERNAL_ERROR."""
        if isinstance(error, GameError):
            return error
        logger.error("%s %s failed: %r", self.GAME, action, error, exc_info=error)
        return GameError(ErrorCode.INTERNAL_ERROR)

    def _notify(self, error: GameError) -> None:
        notice = error.to_notice()
        self.notices.append(notice)
        if self._on_notice is not None:
            self._on_notice(notice)

    def _reject(self, action: str, error: GameError) -> None:
        logger.info("%s %s rejected: %s", self.GAME, action, error.code.value)
        self.telemetry.emit_spin_rejected(
            SpinRejectedEvent(game=self.GAME, action=action, reason=error.code.value)
        )
        self._notify(error)

    def _busy(self, action: str) -> bool:
        """A transition requested mid-round; no notice, the caller no-ops."""
        logger.debug("%s %s ignored: round in progress", self.GAME, action)
        self.telemetry.emit_spin_rejected(
            SpinRejectedEvent(
                game=self.GAME, action=action, reason=ErrorCode.ROUND_IN_PROGRESS.value
            )
        )
        return False

    def _abort(self, action: str, error: GameError) -> None:
        """Return to IDLE after a failed round."""
        self.phase = SessionPhase.IDLE
        self._reject(action, error)

    def _rollback_bonus(self, purchase: BonusPurchase, error: GameError) -> None:
        if purchase.rollback():
            logger.warning("%s bonus purchase rolled back: %s", self.GAME, error.message)
            self.telemetry.emit_bonus_rollback(
                BonusRollbackEvent(game=self.GAME, reason=error.code.value)
            )

    def _emit_committed(self, mode: str, payout: float, cascade_steps: int = 0) -> None:
        self.telemetry.emit_spin_committed(
            SpinCommittedEvent(
                game=self.GAME,
                mode=mode,
                online=self.online,
                bet=self.economy.bet,
                payout=payout,
                balance=self.economy.balance,
                free_spins_left=self.economy.free_spins_left,
                cascade_steps=cascade_steps,
            )
        )

    def _spin_mode(self) -> str:
        return "bonus" if self.economy.is_bonus_game else "base"
