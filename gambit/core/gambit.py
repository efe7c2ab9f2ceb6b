"""
Session state machine for the slot machine.

Per player the machine is either settled (nothing to accept) or pending (a
paid spin waiting to be accepted). Timing is counted in blocks:

- a spin inside the acting window of the player's last action costs the
  respin price, otherwise the full price
- accept needs at least one block after the spin (so the entropy for the
  accepting block was unknown when the spin was paid) and must happen no
  later than `blocks_to_act` blocks after it

Every public transition runs under one lock and inside one database
transaction, so calls are serialized and a rejected call changes nothing.
"""

import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Optional, Tuple

import pytz

from gambit.config import AppConfig, StreakConfig
from gambit.core.chain import BlockClock
from gambit.core.database import Database
from gambit.core.economy import BonusLedger, Treasury
from gambit.core.entropy import BlockSeedEntropy, EntropySource
from gambit.core.exceptions import (
    DeadlineExceeded,
    GambitError,
    InsufficientValue,
    NothingPending,
    ReentrantCall,
    WaitForTick,
)
from gambit.core.games.slots import Outcome, PayoutTable, outcome, solvency_cap
from gambit.core.logger import get_logger

logger = get_logger("gambit")

BOOST_CREDIT_COST = 1


@dataclass
class SessionRecord:
    player: str
    last_action_block: int = 0
    last_action_boosted: bool = False
    pending: bool = False
    daily_streak_day: int = 0
    daily_streak_length: int = 0
    weekly_streak_week: int = 0
    weekly_streak_length: int = 0

    def deadline(self, blocks_to_act: int) -> int:
        """Last block in which the current acting window is open."""
        return self.last_action_block + blocks_to_act


@dataclass
class SpinReceipt:
    player: str
    block: int
    boosted: bool
    cost: int
    paid: int
    deadline: int
    credits_minted: int = 0
    daily_streak: int = 0
    weekly_streak: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AcceptReceipt:
    player: str
    block: int
    boosted: bool
    entropy: int
    outcome: Outcome
    pattern: str
    payout: int

    def to_dict(self) -> dict:
        return {
            "player": self.player,
            "block": self.block,
            "boosted": self.boosted,
            "entropy": str(self.entropy),
            "outcome": self.outcome.to_dict(),
            "pattern": self.pattern,
            "payout": self.payout,
        }


def advance_streak(last_period: int, length: int, period: int) -> Tuple[int, int, bool]:
    """
    Streak state after activity in `period`.

    Returns (period, length, extended). Activity in the period right after
    the last one extends the streak; a gap restarts it at 1.
    """
    if last_period and period <= last_period:
        return last_period, length, False
    if last_period and period == last_period + 1:
        return period, length + 1, True
    return period, 1, False


class NonReentrant:
    """Guard that rejects a nested entry from the thread already inside."""

    def __init__(self):
        self._local = threading.local()

    def __enter__(self):
        if getattr(self._local, "entered", False):
            raise ReentrantCall()
        self._local.entered = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self._local.entered = False
        return False


class DegenGambit:
    """One slot machine: pricing, spins, acceptance and streak rewards."""

    def __init__(
        self,
        database: Database,
        clock: BlockClock,
        entropy: EntropySource,
        blocks_to_act: int,
        cost_to_spin: int,
        cost_to_respin: int,
        payout_table: Optional[PayoutTable] = None,
        streaks: Optional[StreakConfig] = None,
        now: Optional[Callable[[], datetime]] = None,
        on_transfer: Optional[Callable[[str, int], None]] = None,
    ):
        if blocks_to_act < 1:
            raise ValueError("blocks_to_act must be at least 1")
        if not 0 <= cost_to_respin <= cost_to_spin:
            raise ValueError("need 0 <= cost_to_respin <= cost_to_spin")

        self.db = database
        self.clock = clock
        self.entropy = entropy
        self.blocks_to_act = blocks_to_act
        self.cost_to_spin = cost_to_spin
        self.cost_to_respin = cost_to_respin
        self.payout_table = payout_table or PayoutTable()
        self.streaks = streaks or StreakConfig()
        self.now = now
        # Called while the payout is being transferred, like a recipient hook
        self.on_transfer = on_transfer

        self.treasury = Treasury(database)
        self.bonus = BonusLedger(database)

        self._tz = pytz.timezone(self.streaks.timezone)
        self._lock = threading.RLock()
        self._guard = NonReentrant()

    @classmethod
    def from_settings(
        cls,
        config: AppConfig,
        database: Optional[Database] = None,
        clock: Optional[BlockClock] = None,
        entropy: Optional[EntropySource] = None,
        **kwargs,
    ) -> "DegenGambit":
        """Build a machine from configuration, creating missing collaborators."""
        database = database or Database(config.paths.get_db_path())
        clock = clock or BlockClock(
            database.get_block_height(), on_mine=database.set_block_height
        )
        return cls(
            database,
            clock,
            entropy or BlockSeedEntropy(clock),
            blocks_to_act=config.machine.blocks_to_act,
            cost_to_spin=config.machine.cost_to_spin,
            cost_to_respin=config.machine.cost_to_respin,
            payout_table=PayoutTable(config.payouts.model_dump()),
            streaks=config.streaks,
            **kwargs,
        )

    # ==================== Reads ====================

    def session(self, player: str) -> SessionRecord:
        """The player's record; players never seen get an explicit zero record."""
        record = self.db.get_session(player)
        if record is None:
            return SessionRecord(player=player)
        return SessionRecord(**record)

    def spin_cost(self, player: str) -> int:
        return self._quote(self.session(player), self.clock.current_block)

    def payout(self, left: int, center: int, right: int) -> int:
        """Payout for a triple against the pool as it stands now."""
        return self.payout_table.payout(
            left,
            center,
            right,
            cost_to_spin=self.cost_to_spin,
            pool_balance=self.treasury.pool_balance(),
        )

    def outcome(self, entropy: int, boosted: bool) -> Outcome:
        return outcome(entropy, boosted)

    def status(self) -> dict:
        pool = self.treasury.pool_balance()
        return {
            "current_block": self.clock.current_block,
            "blocks_to_act": self.blocks_to_act,
            "cost_to_spin": self.cost_to_spin,
            "cost_to_respin": self.cost_to_respin,
            "pool_balance": pool,
            "max_payout": solvency_cap(pool),
        }

    # ==================== Transitions ====================

    def spin(self, player: str, boosted: bool, value: int) -> SpinReceipt:
        """
        Pay for a spin (or respin) and leave the player pending.

        Raises:
            InsufficientValue: value below spin_cost, or the wallet can't cover it
            InsufficientBonusCredits: boosted spin without a bonus credit
        """
        try:
            with self._lock, self.db.transaction():
                receipt = self._spin(player, boosted, value, self.clock.current_block)
        except GambitError as e:
            logger.warning(
                "Spin rejected", extra={"player": player, "signal": e.signal, "value": value}
            )
            raise

        logger.info(
            "Spin",
            extra={
                "player": player,
                "block": receipt.block,
                "boosted": boosted,
                "paid": value,
                "cost": receipt.cost,
            },
        )
        return receipt

    def accept(self, player: str) -> AcceptReceipt:
        """
        Resolve the player's pending spin and pay out.

        Raises:
            NothingPending: no paid spin is waiting
            WaitForTick: still in the block of the spin
            DeadlineExceeded: the acting window has closed; the stake is forfeited
            ReentrantCall: accept called again while paying out
        """
        try:
            with self._lock, self._guard, self.db.transaction():
                receipt = self._accept(player, self.clock.current_block)
        except GambitError as e:
            logger.warning("Accept rejected", extra={"player": player, "signal": e.signal})
            raise

        self._log_award(receipt)
        return receipt

    def accept_then_spin(
        self, player: str, boosted: bool, value: int
    ) -> Tuple[AcceptReceipt, SpinReceipt]:
        """Accept the pending spin and spin again in the same block, atomically."""
        try:
            with self._lock, self._guard, self.db.transaction():
                block = self.clock.current_block
                accepted = self._accept(player, block)
                spun = self._spin(player, boosted, value, block)
        except GambitError as e:
            logger.warning(
                "Accept-then-spin rejected", extra={"player": player, "signal": e.signal}
            )
            raise

        self._log_award(accepted)
        logger.info(
            "Spin",
            extra={"player": player, "block": spun.block, "boosted": boosted, "paid": value},
        )
        return accepted, spun

    def mine(self, blocks: int = 1) -> int:
        """Advance the chain between calls, never in the middle of one."""
        with self._lock:
            return self.clock.mine(blocks)

    # ==================== Internals ====================

    def _quote(self, record: SessionRecord, block: int) -> int:
        if block <= record.deadline(self.blocks_to_act):
            return self.cost_to_respin
        return self.cost_to_spin

    def _spin(self, player: str, boosted: bool, value: int, block: int) -> SpinReceipt:
        record = self.session(player)
        cost = self._quote(record, block)
        if value < cost:
            raise InsufficientValue(f"spin costs {cost}, {value} sent")

        if boosted:
            self.bonus.burn(player, BOOST_CREDIT_COST)
        self.treasury.collect(player, value)

        # Any earlier pending spin is superseded
        record.last_action_block = block
        record.last_action_boosted = boosted
        record.pending = True

        receipt = SpinReceipt(
            player=player,
            block=block,
            boosted=boosted,
            cost=cost,
            paid=value,
            deadline=record.deadline(self.blocks_to_act),
        )
        if self.streaks.enabled:
            self._extend_streaks(record, receipt)

        self.db.save_session(asdict(record))
        self.db.log_event("spin", player, block, boosted=boosted)
        return receipt

    def _accept(self, player: str, block: int) -> AcceptReceipt:
        record = self.session(player)
        if not record.pending:
            raise NothingPending(f"{player} has no pending spin")
        if block <= record.last_action_block:
            raise WaitForTick(
                f"spun in block {record.last_action_block}, "
                f"accept from block {record.last_action_block + 1}"
            )
        deadline = record.deadline(self.blocks_to_act)
        if block > deadline:
            raise DeadlineExceeded(f"deadline was block {deadline}, now at block {block}")

        entropy = self.entropy.entropy_for(player)
        result = outcome(entropy, record.last_action_boosted)
        pattern = self.payout_table.classify(*result.symbols)
        amount = self.payout(*result.symbols)

        record.pending = False
        self.db.save_session(asdict(record))

        if amount > 0:
            self.treasury.disburse(player, amount)
            if self.on_transfer:
                self.on_transfer(player, amount)
            self.db.log_event("award", player, block, amount=amount)

        return AcceptReceipt(
            player=player,
            block=block,
            boosted=record.last_action_boosted,
            entropy=entropy,
            outcome=result,
            pattern=pattern,
            payout=amount,
        )

    def _today(self) -> int:
        now = self.now() if self.now else datetime.now(self._tz)
        if now.tzinfo is not None:
            now = now.astimezone(self._tz)
        return now.date().toordinal()

    def _extend_streaks(self, record: SessionRecord, receipt: SpinReceipt):
        """
        Advance both streaks for this spin and mint any rewards.

        Each reward logs a "daily_streak" or "weekly_streak" event whose
        `amount` is the new streak length, not the day or week number.
        """
        today = self._today()
        # date(1, 1, 1) is a Monday, so weeks run Monday to Sunday
        this_week = (today - 1) // 7

        record.daily_streak_day, record.daily_streak_length, daily = advance_streak(
            record.daily_streak_day, record.daily_streak_length, today
        )
        record.weekly_streak_week, record.weekly_streak_length, weekly = advance_streak(
            record.weekly_streak_week, record.weekly_streak_length, this_week
        )

        if daily and self.streaks.daily_streak_reward:
            self.bonus.mint(record.player, self.streaks.daily_streak_reward)
            receipt.credits_minted += self.streaks.daily_streak_reward
            self.db.log_event(
                "daily_streak", record.player, receipt.block, amount=record.daily_streak_length
            )
        if weekly and self.streaks.weekly_streak_reward:
            self.bonus.mint(record.player, self.streaks.weekly_streak_reward)
            receipt.credits_minted += self.streaks.weekly_streak_reward
            self.db.log_event(
                "weekly_streak", record.player, receipt.block, amount=record.weekly_streak_length
            )

        receipt.daily_streak = record.daily_streak_length
        receipt.weekly_streak = record.weekly_streak_length

    def _log_award(self, receipt: AcceptReceipt):
        logger.info(
            "Accept",
            extra={
                "player": receipt.player,
                "block": receipt.block,
                "symbols": receipt.outcome.symbols,
                "pattern": receipt.pattern,
                "payout": receipt.payout,
            },
        )
