"""Economy ledger: gates and applies every balance, bet and free-spin mutation."""
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

from slotclient.config import Settings, settings
from slotclient.logic.models import EconomyState


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BetRules:
    """Bet range and defaults of one game."""

    default_balance: float
    default_bet: float
    min_bet: float
    max_bet: float
    even_bets: bool = False

    def clamp(self, value: float) -> float:
        if not self.even_bets:
            return max(self.min_bet, min(self.max_bet, value))
        # Smallest and largest even bets inside the range
        low = math.ceil(self.min_bet / 2) * 2
        high = math.floor(self.max_bet / 2) * 2
        return max(low, min(high, math.floor(value / 2) * 2))

    @classmethod
    def for_line(cls, config: Settings) -> "BetRules":
        return cls(
            default_balance=config.line_default_balance,
            default_bet=config.line_default_bet,
            min_bet=config.line_min_bet,
            max_bet=config.line_max_bet,
        )

    @classmethod
    def for_cascade(cls, config: Settings) -> "BetRules":
        return cls(
            default_balance=config.cascade_default_balance,
            default_bet=config.cascade_default_bet,
            min_bet=config.cascade_min_bet,
            max_bet=config.cascade_max_bet,
            even_bets=True,
        )


LINE_RULES = BetRules.for_line(settings)
CASCADE_RULES = BetRules.for_cascade(settings)


class BonusPurchase:
    """
    Tentative bonus state set before the network call resolves.

    Exactly one of commit() or rollback() takes effect.
    """

    def __init__(self, rollback: Callable[[], None]):
        self._rollback = rollback
        self.settled = False

    def commit(self) -> None:
        self.settled = True

    def rollback(self) -> bool:
        """Restore pre-purchase values. Returns False if already settled."""
        if self.settled:
            return False
        self.settled = True
        self._rollback()
        return True


class EconomyLedger:
    """
    Owns the EconomyState of one session.

    The in-flight flag is passed in by the session; the ledger never tracks
    phases itself.
    """

    def __init__(
        self,
        rules: BetRules,
        online: bool = False,
        bonus_cost_multiplier: float = settings.bonus_cost_multiplier,
    ):
        self.rules = rules
        self.online = online
        self.bonus_cost_multiplier = bonus_cost_multiplier
        self.state = self._initial_state()

    def _initial_state(self) -> EconomyState:
        return EconomyState(
            balance=self.rules.default_balance,
            bet=self.rules.default_bet,
        )

    def reset(self) -> None:
        self.state = self._initial_state()

    @property
    def bonus_cost(self) -> float:
        return self.state.bet * self.bonus_cost_multiplier

    def set_bet(self, value: float, in_flight: bool) -> bool:
        """
        Clamp and apply a new bet.

        Rejected (no-op) while a round is in flight, during a bonus round,
        or for a non-finite value. Returns whether the bet was applied.
        """
        if in_flight or self.state.is_bonus_game:
            logger.debug("Bet change to %s rejected: bet is locked", value)
            return False
        if not math.isfinite(value):
            logger.debug("Bet change rejected: %s is not a number", value)
            return False
        self.state.bet = self.rules.clamp(value)
        return True

    def can_afford_spin(self) -> bool:
        return self.state.is_bonus_game or self.state.balance >= self.state.bet

    def can_afford_bonus_purchase(self, in_flight: bool) -> bool:
        return (
            not self.state.is_bonus_game
            and not in_flight
            and self.state.balance >= self.bonus_cost
        )

    def apply_spin_cost(self) -> None:
        """
        Charge one spin.

        Offline only: the server deducts in online mode. Free spins cost nothing.
        """
        if self.online or self.state.is_bonus_game:
            return
        self.state.balance -= self.state.bet

    def apply_bonus_purchase_cost(self, cost: float) -> None:
        """Charge a bonus purchase locally (offline); online is reconciled later."""
        if self.online:
            return
        self.state.balance -= cost

    def consume_free_spin(self) -> None:
        """Offline bookkeeping for one played free spin."""
        if self.online or self.state.free_spins_left <= 0:
            return
        self.state.free_spins_left -= 1
        self.state.is_bonus_game = self.state.free_spins_left > 0

    def credit(self, amount: float) -> None:
        """Add a local win or deposit (offline)."""
        self.state.balance += amount

    def reconcile_from_server(
        self,
        balance: float,
        free_spins_left: int,
        payout: float,
        restart_total: bool = False,
    ) -> None:
        """Overwrite server-authoritative fields from a spin response."""
        self.state.balance = balance
        self.state.free_spins_left = free_spins_left
        self.state.is_bonus_game = free_spins_left > 0
        if restart_total:
            self.state.total_win = payout
        else:
            self.state.total_win += payout

    def sync_balance(self, balance: float) -> None:
        self.state.balance = balance

    def begin_bonus_purchase(self, assumed_free_spins: int | None = None) -> BonusPurchase:
        """
        Enter the bonus round tentatively.

        The returned BonusPurchase restores the pre-purchase bonus flag and
        free-spin count on rollback.
        """
        before_bonus = self.state.is_bonus_game
        before_free_spins = self.state.free_spins_left

        self.state.is_bonus_game = True
        if assumed_free_spins is not None:
            self.state.free_spins_left = assumed_free_spins

        def restore() -> None:
            self.state.is_bonus_game = before_bonus
            self.state.free_spins_left = before_free_spins

        return BonusPurchase(restore)
