"""Line game session: IDLE -> SPINNING -> IDLE on a 5x3 payline board."""
import logging
from collections.abc import Callable

from slotclient.config import Settings, settings
from slotclient.errors import ErrorCode, GameError, Notice
from slotclient.game_api import LineGameAPI, PayAPI
from slotclient.logic.board import copy_board, default_line_board, scatter_positions
from slotclient.logic.ledger import BetRules
from slotclient.logic.models import (
    LineBoard,
    LineSessionSnapshot,
    LineSpinOutcome,
    SessionPhase,
    WinningLine,
)
from slotclient.logic.offline import OfflineBoardGenerator
from slotclient.logic.rng import RNGBase
from slotclient.logic.timeline import Clock, Phase
from slotclient.logic.translator import translate_line_spin
from slotclient.session.base import GameSession
from slotclient.telemetry import TelemetryService


logger = logging.getLogger(__name__)


class LineGameSession(GameSession):
    """
    Single-step spin machine for the payline game.

    Online results are committed after the reel-spin phase; the free-spin
    count always comes from the server and is never decremented locally.
    """

    GAME = "line"

    def __init__(
        self,
        api: LineGameAPI | None = None,
        pay: PayAPI | None = None,
        online: bool = False,
        turbo: bool = False,
        rng: RNGBase | None = None,
        clock: Clock | None = None,
        telemetry: TelemetryService | None = None,
        on_notice: Callable[[Notice], None] | None = None,
        config: Settings = settings,
    ):
        if online and api is None:
            raise ValueError("online line session needs a LineGameAPI")
        super().__init__(
            BetRules.for_line(config),
            pay=pay,
            online=online,
            turbo=turbo,
            clock=clock,
            telemetry=telemetry,
            on_notice=on_notice,
            config=config,
        )
        self._api = api
        self._generator = OfflineBoardGenerator(rng, config.offline_scatter_chance)
        self._reset_board()

    def _has_backend(self) -> bool:
        return self._api is not None

    def _reset_board(self) -> None:
        self.board: LineBoard = default_line_board()
        self.winning_lines: list[WinningLine] = []
        self.scatter_count = 0
        self.awarded_free_spins = 0
        self.in_free_spin = False

    @property
    def payline_wins(self) -> list[WinningLine]:
        """Winning lines to cycle through; the scatter payout is not a line."""
        return [line for line in self.winning_lines if not line.is_scatter]

    def snapshot(self) -> LineSessionSnapshot:
        return LineSessionSnapshot(
            phase=self.phase,
            board=copy_board(self.board),
            economy=self.economy.model_copy(),
            winning_lines=[line.model_copy(deep=True) for line in self.winning_lines],
            last_win=self.last_win,
            scatter_count=self.scatter_count,
            awarded_free_spins=self.awarded_free_spins,
            in_free_spin=self.in_free_spin,
            online=self.online,
            turbo=self.turbo,
        )

    # === Transitions ===

    async def spin(self) -> bool:
        """
        Play one spin.

        Returns True when a result was committed. A call while a round is in
        flight is a no-op.
        """
        if self.phase != SessionPhase.IDLE:
            return self._busy("spin")
        if not self.ledger.can_afford_spin():
            self._reject("spin", GameError(ErrorCode.INSUFFICIENT_FUNDS))
            return False

        mode = self._spin_mode()
        generation = self._start_round()
        self._clear_round()

        if not self.online:
            self.ledger.apply_spin_cost()
            await self.timeline.wait(Phase.REEL_SPIN, turbo=self.turbo)
            if not self._is_current(generation, "spin"):
                return False
            self._commit_offline(mode)
            return True

        try:
            response = await self._api.spin(self.economy.bet)
            outcome = translate_line_spin(response, strict=self.config.strict_decode)
        except Exception as e:
            error = self._as_game_error("spin", e)
            if self._is_current(generation, "spin"):
                self._abort("spin", error)
            return False

        await self.timeline.wait(Phase.REEL_SPIN, turbo=self.turbo)
        if not self._is_current(generation, "spin"):
            return False
        self._commit(outcome, mode)
        return True

    async def buy_bonus(self) -> bool:
        """
        Buy the bonus round; the purchase also plays the first bonus spin.

        The bonus flag is set before the request and rolled back if it fails.
        """
        if self.phase != SessionPhase.IDLE:
            return self._busy("buy_bonus")
        if self.economy.is_bonus_game:
            return False
        if not self.ledger.can_afford_bonus_purchase(self.in_flight):
            self._reject("buy_bonus", GameError(ErrorCode.INSUFFICIENT_FUNDS))
            return False

        cost = self.ledger.bonus_cost

        if not self.online:
            purchase = self.ledger.begin_bonus_purchase(self.config.offline_bonus_free_spins)
            self.ledger.apply_bonus_purchase_cost(cost)
            purchase.commit()
            generation = self._start_round()
            self._clear_round()
            await self.timeline.wait(Phase.REEL_SPIN, turbo=self.turbo)
            if not self._is_current(generation, "buy_bonus"):
                return False
            self._commit_offline("buy")
            return True

        purchase = self.ledger.begin_bonus_purchase()
        generation = self._start_round()
        self._clear_round()

        try:
            response = await self._api.buy_bonus(cost)
            outcome = translate_line_spin(response, strict=self.config.strict_decode)
        except Exception as e:
            error = self._as_game_error("buy_bonus", e)
            if self._is_current(generation, "buy_bonus"):
                self._rollback_bonus(purchase, error)
                self._abort("buy_bonus", error)
            return False

        await self.timeline.wait(Phase.REEL_SPIN, turbo=self.turbo)
        if not self._is_current(generation, "buy_bonus"):
            return False
        purchase.commit()
        logger.info(
            "Bonus activated: %d free spin(s) awarded, %d left",
            outcome.awarded_free_spins,
            outcome.free_spins_left,
        )
        self._commit(outcome, "buy", restart_total=True)
        return True

    # === Commit helpers ===

    def _clear_round(self) -> None:
        self.winning_lines = []
        self.last_win = 0.0

    def _commit(self, outcome: LineSpinOutcome, mode: str, restart_total: bool = False) -> None:
        self.board = outcome.board
        self.winning_lines = outcome.winning_lines
        self.last_win = outcome.total_payout
        self.scatter_count = outcome.scatter_count
        self.awarded_free_spins = outcome.awarded_free_spins
        self.in_free_spin = outcome.in_free_spin
        self.ledger.reconcile_from_server(
            balance=outcome.balance,
            free_spins_left=outcome.free_spins_left,
            payout=outcome.total_payout,
            restart_total=restart_total,
        )
        self.phase = SessionPhase.IDLE

        if outcome.scatter_count >= 3:
            logger.info("Scatters: %d, payout: %s", outcome.scatter_count, outcome.scatter_payout)
        if outcome.awarded_free_spins > 0:
            logger.info("Free spins awarded: %d", outcome.awarded_free_spins)
        self._emit_committed(mode, outcome.total_payout)

    def _commit_offline(self, mode: str) -> None:
        self.board = self._generator.line_board()
        self.winning_lines = []
        self.last_win = 0.0
        self.scatter_count = len(scatter_positions(self.board))
        self.awarded_free_spins = 0
        self.in_free_spin = mode != "base"
        if self.in_free_spin:
            self.ledger.consume_free_spin()
        self.phase = SessionPhase.IDLE
        self._emit_committed(mode, 0.0)
