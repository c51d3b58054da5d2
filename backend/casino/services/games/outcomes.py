import math
import secrets
from decimal import Decimal, ROUND_DOWN
from typing import List

CENT = Decimal('0.01')

SLOT_SYMBOLS = ('cherry', 'orange', 'lemon', 'grape', 'diamond', 'seven')
SLOT_PAYOUTS = {
    'cherry': 2,
    'orange': 3,
    'lemon': 4,
    'grape': 5,
    'diamond': 10,
    'seven': 20,
}
GRID_SIZE = 3
DICE_SIDES = 100

# Server-held randomness; callers may pass their own random.Random for replay
_system_rng = secrets.SystemRandom()


def spin_slots(rng=None) -> List[List[str]]:
    """Draw a 3x3 grid, every cell uniform over SLOT_SYMBOLS."""
    rng = rng or _system_rng
    return [
        [SLOT_SYMBOLS[rng.randrange(len(SLOT_SYMBOLS))] for _ in range(GRID_SIZE)]
        for _ in range(GRID_SIZE)
    ]


def roll_dice(rng=None) -> int:
    rng = rng or _system_rng
    return rng.randint(1, DICE_SIDES)


def crash_point_from(r: float) -> Decimal:
    """Map a uniform draw r in [0, 1) to the multiplier a crash round ends at."""
    raw = math.floor((100 * math.e) / (r + 0.1) - 100)
    return (Decimal(raw) / 100).quantize(CENT, rounding=ROUND_DOWN)


def crash_point(rng=None) -> Decimal:
    rng = rng or _system_rng
    return crash_point_from(rng.random())


def draw(game_type: str, rng=None) -> dict:
    """Draw the random part of one round. Player choices are not involved."""
    if game_type == 'slots':
        return {'grid': spin_slots(rng)}
    if game_type == 'dice':
        return {'roll': roll_dice(rng)}
    if game_type == 'crash':
        return {'crash_point': crash_point(rng)}
    raise ValueError(f'Unknown game type: {game_type}')
