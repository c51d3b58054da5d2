from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user

from casino.schemas import GameResultRequest, parse_body
from casino.services import ledger
from casino.services.games.payouts import resolve_round

games = Blueprint('games', __name__)


@games.route('/result', methods=['POST'])
@login_required
def play_round():
    """Draw one round on the server and settle it against the caller's balance.

    A client-claimed multiplier/payout is only checked for internal
    consistency; the recorded values always come from the server draw.
    """
    data = parse_body(GameResultRequest)
    request_id = data.request_id or request.headers.get('Idempotency-Key') or None
    result = resolve_round(data.game_type, data.bet_amount, data.outcome_args())
    settlement = ledger.settle_round(current_user.id, result, request_id=request_id)
    payload = settlement.to_dict()
    if settlement.replayed:
        payload['replayed'] = True
        payload['outcome'] = None
    else:
        payload['outcome'] = result.outcome_dict()
        if data.payout is not None and data.payout != result.payout:
            current_app.logger.info(
                f"[result] user={current_user.id} ignored client payout={data.payout} server payout={result.payout}"
            )
    return jsonify(payload)


@games.route('/history', methods=['GET'])
@login_required
def get_history():
    return jsonify([entry.to_dict() for entry in ledger.history(current_user.id)])
