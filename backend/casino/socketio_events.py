"""Live crash rounds over Socket.IO.

A round is opened with ``crash_start``; the server owns the crash point and
the clock. ``crash_cashout`` closes it at the server-side multiplier. When
nobody cashes out, the ticker (or a disconnect) closes the round as a loss.
"""

from functools import wraps

from flask import current_app
from flask_login import current_user
from flask_socketio import emit, join_room
from pydantic import ValidationError as SchemaValidationError

from casino import socketio
from casino.errors import CasinoError, ValidationError
from casino.schemas import CrashStartRequest
from casino.services import ledger
from casino.services.games import outcomes
from casino.services.games.crash import CrashRound, live_rounds

NAMESPACE = '/ws'


def _room(user_id: int) -> str:
    return f"user:{user_id}"


def _socket_errors(handler):
    @wraps(handler)
    def wrapper(*args, **kwargs):
        try:
            return handler(*args, **kwargs)
        except CasinoError as err:
            emit('error', err.to_dict())
        except SchemaValidationError as err:
            emit('error', {'message': 'Invalid input', 'errors': [e['msg'] for e in err.errors()]})
    return wrapper


def handle_connect(auth=None):
    if not current_user.is_authenticated:
        return False
    join_room(_room(current_user.id))
    emit('connected', {'message': 'Connected to /ws', 'userId': current_user.id})


def handle_disconnect(*args):
    if not current_user.is_authenticated:
        return
    user_id = current_user.id
    try:
        closed = ledger.close_crash_round(user_id, bust=True)
    except CasinoError as err:
        current_app.logger.warning(f"[crash-abandon] user={user_id} round not settled: {err.message}")
        return
    if closed is not None:
        current_app.logger.info(f"[crash-abandon] user={user_id} round={closed[0].id}")


@_socket_errors
def handle_crash_start(data):
    req = CrashStartRequest.model_validate(data or {})
    cfg = current_app.config
    crash_round = ledger.open_crash_round(CrashRound(
        user_id=current_user.id,
        bet_amount=req.bet_amount,
        crash_point=outcomes.crash_point(),
        tick_ms=int(cfg.get('CRASH_TICK_MS', 50)),
        step=cfg.get('CRASH_TICK_STEP', '0.01'),
    ))
    emit('crash_started', {
        'roundId': crash_round.id,
        'betAmount': float(crash_round.bet_amount),
        'tickMs': crash_round.tick_ms,
        'step': float(crash_round.step),
    })
    _start_ticker(current_app._get_current_object(), crash_round)


def _busted_payload(crash_round: CrashRound, settlement) -> dict:
    return {
        'roundId': crash_round.id,
        'crashPoint': float(crash_round.crash_point),
        **settlement.to_dict(),
    }


@_socket_errors
def handle_crash_cashout(data=None):
    closed = ledger.close_crash_round(current_user.id)
    if closed is None:
        raise ValidationError('No crash round is running')
    crash_round, settlement = closed
    entry = settlement.entry
    if entry.payout > 0:
        emit('crash_cashed', {
            'roundId': crash_round.id,
            'multiplier': float(entry.multiplier),
            'payout': float(entry.payout),
            **settlement.to_dict(),
        })
    else:
        emit('crash_busted', _busted_payload(crash_round, settlement))


def bust_expired_round(app, user_id: int, round_id: str) -> bool:
    """Settle a round the clock has carried past its crash point.

    Returns False when the round is already gone or could not be settled.
    """
    with app.app_context():
        try:
            closed = ledger.close_crash_round(user_id, round_id, bust=True)
        except CasinoError as err:
            app.logger.warning(f"[crash-bust] user={user_id} round={round_id} not settled: {err.message}")
            return False
        if closed is None:
            return False
        crash_round, settlement = closed
        app.logger.info(f"[crash-bust] user={user_id} round={round_id} crash_point={crash_round.crash_point}")
        socketio.emit('crash_busted', _busted_payload(crash_round, settlement),
                      to=_room(user_id), namespace=NAMESPACE)
    return True


def _start_ticker(app, crash_round: CrashRound) -> None:
    """Stream the multiplier until the round busts or is cashed out.

    No-ops in TESTING mode unless ENABLE_CRASH_TICKER_IN_TESTS is set.
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_CRASH_TICKER_IN_TESTS'):
        return

    def _worker(user_id: int, round_id: str, tick_sec: float):
        while True:
            socketio.sleep(tick_sec)
            current = live_rounds.get(user_id)
            if current is None or current.id != round_id:
                return
            if current.has_crashed():
                bust_expired_round(app, user_id, round_id)
                return
            socketio.emit('crash_tick', {'roundId': round_id, 'multiplier': float(current.multiplier_at())},
                          to=_room(user_id), namespace=NAMESPACE)

    socketio.start_background_task(_worker, crash_round.user_id, crash_round.id, crash_round.tick_ms / 1000.0)


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('crash_start', handle_crash_start, namespace=NAMESPACE)
    socketio.on_event('crash_cashout', handle_crash_cashout, namespace=NAMESPACE)
