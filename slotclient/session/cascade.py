"""Cascade game session: IDLE -> SPINNING -> RESOLVING -> IDLE on a 7x7 board."""
import logging
from collections.abc import Callable

from slotclient.config import Settings, settings
from slotclient.errors import ErrorCode, GameError, Notice
from slotclient.game_api import CascadeGameAPI, PayAPI
from slotclient.logic.board import (
    apply_cascade_step,
    copy_board,
    default_cascade_board,
    diff_boards,
    is_cascade_board,
)
from slotclient.logic.ledger import BetRules
from slotclient.logic.models import (
    CASCADE_SCATTER,
    CascadeBoard,
    CascadeSessionSnapshot,
    CascadeSpinOutcome,
    CascadeStep,
    SessionPhase,
)
from slotclient.logic.offline import OfflineBoardGenerator
from slotclient.logic.rng import RNGBase
from slotclient.logic.timeline import Clock, Phase
from slotclient.logic.translator import translate_cascade_spin
from slotclient.session.base import GameSession
from slotclient.telemetry import BoardMismatchEvent, TelemetryService


logger = logging.getLogger(__name__)


class CascadeGameSession(GameSession):
    """
    Multi-step spin machine for the cluster game.

    After a spin the initial board is shown; the presentation layer then
    animates each cascade step and calls next_cascade_step(). When the last
    step is done the board is checked against the server's final board,
    which always wins on mismatch.
    """

    GAME = "cascade"

    def __init__(
        self,
        api: CascadeGameAPI | None = None,
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
            raise ValueError("online cascade session needs a CascadeGameAPI")
        super().__init__(
            BetRules.for_cascade(config),
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
        self.board: CascadeBoard = default_cascade_board()
        self.initial_board: CascadeBoard = copy_board(self.board)
        self.final_board: CascadeBoard = copy_board(self.board)
        self.cascades: list[CascadeStep] = []
        self.current_cascade_index = -1
        self.scatter_count = 0
        self.awarded_free_spins = 0
        self.last_shown_free_spins = 0
        self.in_free_spin = False

    @property
    def current_step(self) -> CascadeStep | None:
        if self.phase != SessionPhase.RESOLVING:
            return None
        if 0 <= self.current_cascade_index < len(self.cascades):
            return self.cascades[self.current_cascade_index]
        return None

    def snapshot(self) -> CascadeSessionSnapshot:
        step = self.current_step
        return CascadeSessionSnapshot(
            phase=self.phase,
            board=copy_board(self.board),
            economy=self.economy.model_copy(),
            last_win=self.last_win,
            scatter_count=self.scatter_count,
            awarded_free_spins=self.awarded_free_spins,
            last_shown_free_spins=self.last_shown_free_spins,
            in_free_spin=self.in_free_spin,
            current_cascade_index=self.current_cascade_index,
            current_step=step.model_copy(deep=True) if step else None,
            cascade_count=len(self.cascades),
            online=self.online,
            turbo=self.turbo,
        )

    # === Transitions ===

    async def spin(self) -> bool:
        """
        Play one spin.

        Returns once the round is IDLE again, or once RESOLVING has begun
        when the result carries cascade steps.
        """
        if self.phase != SessionPhase.IDLE:
            return self._busy("spin")
        if not self.ledger.can_afford_spin():
            self._reject("spin", GameError(ErrorCode.INSUFFICIENT_FUNDS))
            return False

        mode = self._spin_mode()
        generation = self._start_round()
        self.last_win = 0.0
        self.current_cascade_index = -1
        self.cascades = []
        self.scatter_count = 0
        self.awarded_free_spins = 0
        self.last_shown_free_spins = 0

        if not self.online:
            self.ledger.apply_spin_cost()
            await self.timeline.wait(Phase.REEL_SPIN, turbo=self.turbo)
            if not self._is_current(generation, "spin"):
                return False
            self._commit_offline(mode)
            return True

        try:
            response = await self._api.spin(self.economy.bet)
            outcome = translate_cascade_spin(response, strict=self.config.strict_decode)
        except Exception as e:
            error = self._as_game_error("spin", e)
            if self._is_current(generation, "spin"):
                self._abort("spin", error)
            return False

        await self.timeline.wait(Phase.REEL_SPIN, turbo=self.turbo)
        if not self._is_current(generation, "spin"):
            return False
        self._commit(outcome, mode)

        if outcome.steps:
            # Let the roll-to-stop animation finish before the first cascade
            await self.timeline.wait(
                Phase.DROP_ANIMATION, Phase.CASCADE_LEAD_IN, turbo=self.turbo
            )
            if not self._is_current(generation, "spin"):
                return False
            self._start_cascade_animation(outcome.steps, outcome.initial_board, outcome.final_board)
            return True

        self.board = copy_board(outcome.final_board)
        if outcome.awarded_free_spins > 0:
            self.last_shown_free_spins = outcome.awarded_free_spins
        await self.timeline.wait(Phase.DROP_ANIMATION, turbo=self.turbo)
        if not self._is_current(generation, "spin"):
            return False
        self.phase = SessionPhase.IDLE
        return True

    async def buy_bonus(self) -> bool:
        """
        Buy the bonus round.

        The backend only acknowledges the purchase, so a fixed free-spin
        award is assumed until the next spin reports the real count.
        """
        if self.phase != SessionPhase.IDLE:
            return self._busy("buy_bonus")
        if self.economy.is_bonus_game:
            return False
        if not self.ledger.can_afford_bonus_purchase(self.in_flight):
            self._reject("buy_bonus", GameError(ErrorCode.INSUFFICIENT_FUNDS))
            return False

        cost = self.ledger.bonus_cost
        self.last_win = 0.0
        self.awarded_free_spins = 0
        self.last_shown_free_spins = 0

        if not self.online:
            purchase = self.ledger.begin_bonus_purchase(self.config.offline_bonus_free_spins)
            self.ledger.apply_bonus_purchase_cost(cost)
            purchase.commit()
            self._emit_committed("buy", 0.0)
            return True

        assumed = self.config.cascade_assumed_bonus_free_spins
        purchase = self.ledger.begin_bonus_purchase(assumed)
        generation = self._start_round()
        logger.warning(
            "Cascade bonus purchase assumes %d free spins until the next spin reports the count",
            assumed,
        )

        try:
            await self._api.buy_bonus(cost)
        except Exception as e:
            error = self._as_game_error("buy_bonus", e)
            if self._is_current(generation, "buy_bonus"):
                self._rollback_bonus(purchase, error)
                self._abort("buy_bonus", error)
            return False

        if not self._is_current(generation, "buy_bonus"):
            return False
        purchase.commit()
        await self.sync_balance()
        await self.timeline.wait(Phase.BONUS_SETTLE, turbo=self.turbo)
        if not self._is_current(generation, "buy_bonus"):
            return False
        self.phase = SessionPhase.IDLE
        self._emit_committed("buy", 0.0)
        return True

    # === Cascade resolution (driven by the presentation layer) ===

    def next_cascade_step(self) -> bool:
        """Advance to the next step, or finish after the last one."""
        if self.phase != SessionPhase.RESOLVING:
            return False
        if self.current_cascade_index < len(self.cascades) - 1:
            self.current_cascade_index += 1
            return True
        return self.finish_cascade_animation()

    def apply_current_step(self) -> CascadeBoard | None:
        """Apply the current step's removal, gravity and drop to the board."""
        step = self.current_step
        if step is None:
            return None
        self.board = apply_cascade_step(self.board, step)
        return copy_board(self.board)

    def update_board_after_cascade(self, board: CascadeBoard) -> bool:
        """Accept the board the presentation layer produced for the current step."""
        if self.phase != SessionPhase.RESOLVING:
            return False
        if not is_cascade_board(board):
            logger.error("Ignoring board update with wrong dimensions")
            return False
        self.board = copy_board(board)
        return True

    def validate_final_board(self) -> bool:
        """Compare the local board with the server's final board cell by cell."""
        mismatches = diff_boards(self.board, self.final_board)
        for row, col in mismatches:
            logger.error(
                "Board mismatch at [%d][%d]: expected %d, got %d",
                row,
                col,
                self.final_board[row][col],
                self.board[row][col],
            )
        return not mismatches

    def finish_cascade_animation(self) -> bool:
        """
        End the cascade sequence.

        On mismatch the server's final board replaces the local one. Awarded
        free spins are latched only here, after the whole sequence.
        """
        if self.phase != SessionPhase.RESOLVING:
            return False

        mismatches = diff_boards(self.board, self.final_board)
        if mismatches:
            self.validate_final_board()
            logger.error(
                "Board validation failed (%d cell(s)), using the server's final board",
                len(mismatches),
            )
            self.telemetry.emit_board_mismatch(
                BoardMismatchEvent(
                    game=self.GAME, mismatch_count=len(mismatches), cells=mismatches
                )
            )
            self.board = copy_board(self.final_board)
        else:
            logger.debug("Board validation passed")

        self.current_cascade_index = -1
        self.cascades = []
        if self.awarded_free_spins > 0:
            self.last_shown_free_spins = self.awarded_free_spins
        self.phase = SessionPhase.IDLE
        return True

    # === Commit helpers ===

    def _start_cascade_animation(
        self,
        steps: list[CascadeStep],
        initial_board: CascadeBoard,
        final_board: CascadeBoard,
    ) -> None:
        self.cascades = list(steps)
        self.current_cascade_index = 0
        self.initial_board = copy_board(initial_board)
        self.final_board = copy_board(final_board)
        self.board = copy_board(initial_board)
        self.phase = SessionPhase.RESOLVING

    def _commit(self, outcome: CascadeSpinOutcome, mode: str) -> None:
        self.ledger.reconcile_from_server(
            balance=outcome.balance,
            free_spins_left=outcome.free_spins_left,
            payout=outcome.total_payout,
        )
        self.last_win = outcome.total_payout
        self.scatter_count = outcome.scatter_count
        self.awarded_free_spins = outcome.awarded_free_spins
        self.in_free_spin = outcome.in_free_spin
        self.initial_board = copy_board(outcome.initial_board)
        self.final_board = copy_board(outcome.final_board)
        self.board = copy_board(outcome.initial_board)
        self._emit_committed(mode, outcome.total_payout, cascade_steps=len(outcome.steps))

    def _commit_offline(self, mode: str) -> None:
        self.board = self._generator.cascade_board()
        self.initial_board = copy_board(self.board)
        self.final_board = copy_board(self.board)
        self.last_win = 0.0
        self.scatter_count = sum(row.count(CASCADE_SCATTER) for row in self.board)
        self.in_free_spin = mode != "base"
        if self.in_free_spin:
            self.ledger.consume_free_spin()
        self.phase = SessionPhase.IDLE
        self._emit_committed(mode, 0.0)
