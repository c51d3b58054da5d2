import threading
import time
import uuid
from decimal import Decimal, ROUND_CEILING, ROUND_DOWN
from typing import Callable, Dict, Optional

from casino.errors import ValidationError
from .outcomes import CENT
from .payouts import ZERO, crash_won, settle_amount, to_money

ONE = Decimal('1.00')


class CrashRound:
    """One live crash round for one account.

    The multiplier starts at 1.00 and grows by ``step`` every ``tick_ms`` of
    the round clock. The crash point is fixed when the round is created and
    never leaves the server until the round is over.
    """

    def __init__(self, user_id: int, bet_amount, crash_point, tick_ms: int = 50,
                 step='0.01', clock: Callable[[], float] = time.monotonic):
        if tick_ms <= 0:
            raise ValueError('tick_ms must be positive')
        self.id = uuid.uuid4().hex
        self.user_id = user_id
        self.bet_amount = to_money(bet_amount)
        self.crash_point = to_money(crash_point)
        self.tick_ms = tick_ms
        self.step = to_money(step)
        self.clock = clock
        self.started_at = clock()
        self.finished = False

    def ticks_at(self, now: Optional[float] = None) -> int:
        now = self.clock() if now is None else now
        elapsed_ms = max(0.0, (now - self.started_at) * 1000.0)
        return int(elapsed_ms // self.tick_ms)

    def raw_multiplier(self, now: Optional[float] = None) -> Decimal:
        return (ONE + self.step * self.ticks_at(now)).quantize(CENT, rounding=ROUND_DOWN)

    def multiplier_at(self, now: Optional[float] = None) -> Decimal:
        """Multiplier shown to the player; it stops at the crash point."""
        return min(self.raw_multiplier(now), self.crash_point)

    def has_crashed(self, now: Optional[float] = None) -> bool:
        return not crash_won(self.raw_multiplier(now), self.crash_point)

    def ticks_to_crash(self) -> int:
        """Number of ticks until the multiplier reaches the crash point."""
        if self.crash_point <= ONE:
            return 0
        needed = (self.crash_point - ONE) / self.step
        return int(needed.to_integral_value(rounding=ROUND_CEILING))

    def cash_out(self, now: Optional[float] = None):
        """Close the round and return ``(multiplier, payout)``.

        The multiplier is 0 when the cash-out arrives at or after the crash.
        """
        if self.finished:
            raise ValidationError('Round is already finished')
        self.finished = True
        current = self.raw_multiplier(now)
        if crash_won(current, self.crash_point):
            return current, settle_amount(self.bet_amount, current)
        return ZERO, ZERO.quantize(CENT)

    def bust(self):
        """Close the round as a loss."""
        if self.finished:
            raise ValidationError('Round is already finished')
        self.finished = True
        return ZERO, ZERO.quantize(CENT)


class LiveRounds:
    """Open crash rounds keyed by account; at most one per account."""

    def __init__(self):
        self._lock = threading.Lock()
        self._rounds: Dict[int, CrashRound] = {}

    def open(self, crash_round: CrashRound) -> CrashRound:
        with self._lock:
            if crash_round.user_id in self._rounds:
                raise ValidationError('A crash round is already running')
            self._rounds[crash_round.user_id] = crash_round
        return crash_round

    def get(self, user_id: int) -> Optional[CrashRound]:
        with self._lock:
            return self._rounds.get(user_id)

    def pop(self, user_id: int, round_id: Optional[str] = None) -> Optional[CrashRound]:
        """Detach the account's round; with ``round_id`` only if it still matches."""
        with self._lock:
            current = self._rounds.get(user_id)
            if current is None or (round_id is not None and current.id != round_id):
                return None
            return self._rounds.pop(user_id)

    def clear(self):
        with self._lock:
            self._rounds.clear()

    def __len__(self):
        with self._lock:
            return len(self._rounds)


live_rounds = LiveRounds()
