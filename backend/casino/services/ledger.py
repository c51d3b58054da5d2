"""Settlement ledger: the only code that moves an account balance.

A settlement applies ``payout - bet_amount`` to the balance and appends the
history row in one transaction. Settlements for the same account are
serialized twice over: an in-process lock per account, and a row lock
(``SELECT ... FOR UPDATE``) for databases that support it. The balance itself
is written as an SQL-side increment, so even an unlocked writer elsewhere
cannot be lost.

A live crash round holds its stake from the moment it opens until it is
settled: the held amount is not available to other bets on the account.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from casino import db
from casino.errors import AccountNotFound, AuthorizationDenied, ValidationError
from casino.models import GameHistory, User, money
from casino.services.games.crash import CrashRound, live_rounds
from casino.services.games.payouts import GAME_TYPES, ZERO, RoundResult, is_consistent, to_money
from casino.services.games.outcomes import CENT

_locks_guard = threading.Lock()
_account_locks: Dict[int, threading.RLock] = {}


@contextmanager
def account_lock(account_id: int):
    # Re-entrant: closing a crash round settles while already holding it
    with _locks_guard:
        lock = _account_locks.setdefault(account_id, threading.RLock())
    with lock:
        yield


@dataclass
class Settlement:
    new_balance: Decimal
    entry: GameHistory
    replayed: bool = False

    def to_dict(self):
        return {'balance': money(self.new_balance), 'history': self.entry.to_dict()}


def held(account_id: int) -> Decimal:
    """Stake tied up in the account's open crash round, if any."""
    crash_round = live_rounds.get(account_id)
    return crash_round.bet_amount if crash_round is not None else ZERO


def _check_round(game_type, bet_amount, multiplier, payout):
    if game_type not in GAME_TYPES:
        raise ValidationError(f'Unknown game type: {game_type}')
    if bet_amount <= 0:
        raise ValidationError('Bet amount must be greater than zero')
    if multiplier < 0 or payout < 0:
        raise ValidationError('multiplier and payout must not be negative')
    if not is_consistent(bet_amount, multiplier, payout):
        raise ValidationError('payout does not match betAmount x multiplier')


def _lock_account(account_id: int) -> User:
    user = User.query.filter_by(id=account_id).with_for_update().populate_existing().first()
    if user is None:
        raise AccountNotFound()
    if user.is_banned:
        raise AuthorizationDenied('Account is banned')
    return user


def _replay(account_id: int, request_id: str) -> Optional[Settlement]:
    entry = GameHistory.query.filter_by(user_id=account_id, request_id=request_id).first()
    if entry is None:
        return None
    current_app.logger.info(f"[settle-replay] user={account_id} request={request_id} entry={entry.id}")
    balance = entry.balance_after
    if balance is None:
        # Rows written before balance_after existed
        balance = db.session.get(User, account_id).balance
    return Settlement(new_balance=balance, entry=entry, replayed=True)


def settle(account_id: int, game_type: str, bet_amount, multiplier, payout,
           request_id: Optional[str] = None, require_funds: bool = True) -> Settlement:
    """Apply one finished round to an account.

    ``new_balance = balance + (payout - bet_amount)``. A repeated
    ``request_id`` for the same account returns the first settlement
    unchanged, including the balance it left behind. ``require_funds=False``
    is for rounds whose stake was held when they opened (live crash rounds).
    """
    bet_amount = to_money(bet_amount).quantize(CENT)
    multiplier = to_money(multiplier).quantize(CENT)
    payout = to_money(payout).quantize(CENT)
    _check_round(game_type, bet_amount, multiplier, payout)

    with account_lock(account_id):
        if request_id:
            replayed = _replay(account_id, request_id)
            if replayed:
                return replayed
        try:
            user = _lock_account(account_id)
            if require_funds and bet_amount > user.balance - held(account_id):
                raise ValidationError('Insufficient balance')

            delta = payout - bet_amount
            db.session.execute(
                update(User).where(User.id == account_id).values(balance=User.balance + delta),
                execution_options={'synchronize_session': False},
            )
            db.session.refresh(user)
            new_balance = to_money(user.balance).quantize(CENT)
            entry = GameHistory(
                user_id=account_id,
                game_type=game_type,
                bet_amount=bet_amount,
                multiplier=multiplier,
                payout=payout,
                balance_after=new_balance,
                request_id=request_id,
            )
            db.session.add(entry)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            # Another process settled the same request first
            replayed = _replay(account_id, request_id) if request_id else None
            if replayed:
                return replayed
            raise
        except Exception:
            db.session.rollback()
            raise

    current_app.logger.info(
        f"[settle] user={account_id} game={game_type} bet={bet_amount} multiplier={multiplier} "
        f"payout={payout} balance={new_balance}"
    )
    return Settlement(new_balance=new_balance, entry=entry)


def settle_round(account_id: int, result: RoundResult, request_id: Optional[str] = None) -> Settlement:
    return settle(account_id, result.game_type, result.bet_amount, result.multiplier, result.payout,
                  request_id=request_id)


def open_crash_round(crash_round: CrashRound) -> CrashRound:
    """Register a live round, holding its stake against the balance."""
    account_id = crash_round.user_id
    with account_lock(account_id):
        try:
            user = _lock_account(account_id)
            if crash_round.bet_amount > user.balance - held(account_id):
                raise ValidationError('Insufficient balance')
            live_rounds.open(crash_round)
        finally:
            # Only read here; end the transaction so the row lock is released
            db.session.rollback()
    current_app.logger.info(f"[crash-start] user={account_id} round={crash_round.id} bet={crash_round.bet_amount}")
    return crash_round


def close_crash_round(account_id: int, round_id: Optional[str] = None,
                      bust: bool = False) -> Optional[Tuple[CrashRound, Settlement]]:
    """Detach the open round and settle it, cashing out unless ``bust``.

    Returns None when there is no matching open round. The stake stays held
    until the settlement is written, so no other bet can spend it meanwhile.
    """
    with account_lock(account_id):
        crash_round = live_rounds.pop(account_id, round_id)
        if crash_round is None:
            return None
        multiplier, payout = crash_round.bust() if bust else crash_round.cash_out()
        settlement = settle(account_id, 'crash', crash_round.bet_amount, multiplier, payout,
                            require_funds=False)
    return crash_round, settlement


def history(account_id: int) -> List[GameHistory]:
    return (
        GameHistory.query.filter_by(user_id=account_id)
        .order_by(GameHistory.timestamp, GameHistory.id)
        .all()
    )


def statistics(game_type: Optional[str] = None) -> dict:
    query = db.session.query(
        func.count(GameHistory.id),
        func.coalesce(func.sum(GameHistory.bet_amount), 0),
        func.coalesce(func.sum(GameHistory.payout), 0),
        func.avg(GameHistory.multiplier),
    )
    if game_type:
        query = query.filter(GameHistory.game_type == game_type)
    count, total_bet, total_payout, avg_multiplier = query.one()
    total_bet = to_money(total_bet).quantize(CENT)
    total_payout = to_money(total_payout).quantize(CENT)
    return {
        'gameType': game_type,
        'totalBets': int(count or 0),
        'totalBetAmount': money(total_bet),
        'totalPayout': money(total_payout),
        'houseProfit': money(total_bet - total_payout),
        'avgMultiplier': round(float(avg_multiplier), 2) if avg_multiplier is not None else None,
    }
