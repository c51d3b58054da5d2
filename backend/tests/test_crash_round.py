from decimal import Decimal

import pytest

from casino.errors import ValidationError
from casino.services.games.crash import CrashRound, LiveRounds


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def make_round(crash_point='1.50', clock=None, user_id=1):
    return CrashRound(user_id=user_id, bet_amount='10.00', crash_point=crash_point,
                      tick_ms=50, step='0.01', clock=clock or FakeClock())


def test_multiplier_starts_at_one_and_grows_per_tick():
    clock = FakeClock()
    crash_round = make_round(clock=clock)
    assert crash_round.multiplier_at() == Decimal('1.00')
    clock.now += 0.049
    assert crash_round.multiplier_at() == Decimal('1.00')
    clock.now = 101.0
    assert crash_round.ticks_at() == 20
    assert crash_round.multiplier_at() == Decimal('1.20')


def test_multiplier_stops_at_crash_point():
    clock = FakeClock()
    crash_round = make_round(clock=clock)
    clock.now += 60
    assert crash_round.raw_multiplier() > Decimal('1.50')
    assert crash_round.multiplier_at() == Decimal('1.50')
    assert crash_round.has_crashed()


def test_ticks_to_crash():
    assert make_round('1.50').ticks_to_crash() == 50
    assert make_round('2.345').ticks_to_crash() == 135


def test_cash_out_before_crash_pays():
    clock = FakeClock()
    crash_round = make_round(clock=clock)
    clock.now += 0.5
    multiplier, payout = crash_round.cash_out()
    assert multiplier == Decimal('1.10')
    assert payout == Decimal('11.00')
    assert crash_round.finished


def test_cash_out_at_crash_point_loses():
    clock = FakeClock()
    crash_round = make_round(clock=clock)
    clock.now += 2.5
    assert crash_round.raw_multiplier() == Decimal('1.50')
    assert crash_round.cash_out() == (Decimal('0.00'), Decimal('0.00'))


def test_round_closes_only_once():
    crash_round = make_round()
    crash_round.cash_out()
    with pytest.raises(ValidationError):
        crash_round.cash_out()
    with pytest.raises(ValidationError):
        crash_round.bust()


def test_one_open_round_per_account():
    rounds = LiveRounds()
    first = rounds.open(make_round(user_id=1))
    rounds.open(make_round(user_id=2))
    with pytest.raises(ValidationError):
        rounds.open(make_round(user_id=1))
    assert len(rounds) == 2
    assert rounds.get(1) is first


def test_pop_with_stale_round_id_keeps_current_round():
    rounds = LiveRounds()
    current = rounds.open(make_round(user_id=1))
    assert rounds.pop(1, 'not-this-one') is None
    assert rounds.pop(1, current.id) is current
    assert rounds.get(1) is None
    assert rounds.pop(1) is None
