"""Payout rules for each game.

Everything here is deterministic: given the drawn outcome and the player's
choices, the multiplier and payout follow. A stored round must always satisfy
``payout == settle_amount(bet_amount, multiplier)``, with multiplier 0 on a
loss, so any history row can be audited from its own columns.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN
from typing import Any, Dict, List, Tuple

from casino.errors import ValidationError
from . import outcomes
from .outcomes import CENT, SLOT_PAYOUTS

GAME_TYPES = ('slots', 'dice', 'crash')
ZERO = Decimal('0.00')
DICE_EDGE_NUMERATOR = Decimal(98)
DICE_MIN_TARGET = 1
DICE_MAX_TARGET = 98

# Cell coordinates of the five paying lines: three rows, then both diagonals
SLOT_LINES: Tuple[Tuple[Tuple[int, int], ...], ...] = (
    ((0, 0), (0, 1), (0, 2)),
    ((1, 0), (1, 1), (1, 2)),
    ((2, 0), (2, 1), (2, 2)),
    ((0, 0), (1, 1), (2, 2)),
    ((0, 2), (1, 1), (2, 0)),
)


def to_money(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def settle_amount(amount, multiplier) -> Decimal:
    """``amount x multiplier`` rounded down to the cent."""
    return (to_money(amount) * to_money(multiplier)).quantize(CENT, rounding=ROUND_DOWN)


def is_consistent(bet_amount, multiplier, payout) -> bool:
    return settle_amount(bet_amount, multiplier) == to_money(payout).quantize(CENT)


# ---- slots ----

def winning_lines(grid) -> List[Dict[str, Any]]:
    lines = []
    for index, cells in enumerate(SLOT_LINES):
        symbols = {grid[r][c] for r, c in cells}
        if len(symbols) == 1:
            symbol = symbols.pop()
            lines.append({'line': index, 'symbol': symbol, 'multiplier': SLOT_PAYOUTS[symbol]})
    return lines


def slots_multiplier(grid) -> Decimal:
    return Decimal(sum(line['multiplier'] for line in winning_lines(grid))).quantize(CENT)


# ---- dice ----

def _check_dice(prediction, target):
    if prediction not in ('over', 'under'):
        raise ValidationError('prediction must be "over" or "under"')
    if not isinstance(target, int) or isinstance(target, bool) or not DICE_MIN_TARGET <= target <= DICE_MAX_TARGET:
        raise ValidationError(f'target must be an integer between {DICE_MIN_TARGET} and {DICE_MAX_TARGET}')


def dice_won(roll: int, prediction: str, target: int) -> bool:
    if prediction == 'over':
        return roll > target
    return roll < target


def dice_odds(prediction: str, target: int) -> Decimal:
    """Unrounded win multiplier; the 98 numerator carries the house edge."""
    _check_dice(prediction, target)
    if prediction == 'over':
        return DICE_EDGE_NUMERATOR / Decimal(99 - target)
    return DICE_EDGE_NUMERATOR / Decimal(target)


def dice_multiplier(prediction: str, target: int) -> Decimal:
    return dice_odds(prediction, target).quantize(CENT, rounding=ROUND_DOWN)


# ---- crash ----

def crash_won(cash_out_at, crash_point) -> bool:
    """A cash-out pays only when it happens strictly before the crash."""
    return to_money(cash_out_at) < to_money(crash_point)


# ---- dispatch ----

def round_multiplier(game_type: str, outcome: Dict[str, Any], args: Dict[str, Any]) -> Decimal:
    """Multiplier actually earned for a drawn outcome, 0 on a loss."""
    if game_type == 'slots':
        return slots_multiplier(outcome['grid'])
    if game_type == 'dice':
        prediction, target = args.get('prediction'), args.get('target')
        multiplier = dice_multiplier(prediction, target)
        return multiplier if dice_won(outcome['roll'], prediction, target) else ZERO
    if game_type == 'crash':
        cash_out_at = args.get('cash_out_at')
        if cash_out_at is None or to_money(cash_out_at) < 1:
            raise ValidationError('cashOutAt must be at least 1.00')
        cash_out_at = to_money(cash_out_at).quantize(CENT, rounding=ROUND_DOWN)
        return cash_out_at if crash_won(cash_out_at, outcome['crash_point']) else ZERO
    raise ValidationError(f'Unknown game type: {game_type}')


def payout(game_type: str, outcome_args: Dict[str, Any], bet) -> Decimal:
    """Payout for a fully known round (drawn outcome merged with choices)."""
    bet = to_money(bet)
    if bet <= 0:
        raise ValidationError('Bet amount must be greater than zero')
    return settle_amount(bet, round_multiplier(game_type, outcome_args, outcome_args))


@dataclass
class RoundResult:
    game_type: str
    bet_amount: Decimal
    multiplier: Decimal
    payout: Decimal
    outcome: Dict[str, Any] = field(default_factory=dict)

    @property
    def won(self) -> bool:
        return self.payout > 0

    def outcome_dict(self) -> Dict[str, Any]:
        data = dict(self.outcome)
        if 'crash_point' in data:
            data['crashPoint'] = float(data.pop('crash_point'))
        if self.game_type == 'slots':
            data['lines'] = winning_lines(data['grid'])
        data['won'] = self.won
        return data


def resolve_round(game_type: str, bet_amount, args: Dict[str, Any], rng=None) -> RoundResult:
    """Draw a server-side outcome and price it."""
    bet_amount = to_money(bet_amount)
    if bet_amount <= 0:
        raise ValidationError('Bet amount must be greater than zero')
    if game_type not in GAME_TYPES:
        raise ValidationError(f'Unknown game type: {game_type}')
    if game_type == 'dice':
        _check_dice(args.get('prediction'), args.get('target'))
    drawn = outcomes.draw(game_type, rng)
    multiplier = round_multiplier(game_type, drawn, args)
    result = RoundResult(
        game_type=game_type,
        bet_amount=bet_amount,
        multiplier=multiplier,
        payout=settle_amount(bet_amount, multiplier),
        outcome=drawn,
    )
    if game_type == 'dice':
        result.outcome.update({'prediction': args['prediction'], 'target': args['target']})
    if game_type == 'crash':
        result.outcome['cashOutAt'] = float(args['cash_out_at'])
    return result
