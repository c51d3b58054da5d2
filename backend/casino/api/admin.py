import json
from functools import wraps

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user

from casino import db
from casino.errors import AuthorizationDenied, NotFound, ValidationError
from casino.models import GameSettings
from casino.schemas import GameSettingsRequest, PageQuery, StatusUpdateRequest, parse_body
from casino.services import accounts, ledger
from casino.services.games.payouts import GAME_TYPES

admin = Blueprint('admin', __name__)


def admin_required(view):
    @wraps(view)
    @login_required
    def wrapper(*args, **kwargs):
        if not current_user.is_admin or current_user.is_banned:
            raise AuthorizationDenied('Admin role required')
        return view(*args, **kwargs)
    return wrapper


@admin.route('/users', methods=['GET'])
@admin_required
def list_users():
    query = PageQuery.model_validate(request.args.to_dict())
    users, total = accounts.list_users(query.page, query.limit)
    return jsonify({'users': [u.to_admin_dict() for u in users], 'total': total})


@admin.route('/users/<int:user_id>/status', methods=['POST'])
@admin_required
def update_status(user_id):
    data = parse_body(StatusUpdateRequest)
    if user_id == current_user.id and data.status == 'banned':
        raise ValidationError('Admins cannot ban themselves')
    user = accounts.set_status(user_id, data.status, data.ban_reason)
    return jsonify(user.to_admin_dict())


@admin.route('/stats', methods=['GET'])
@admin_required
def stats():
    game_type = request.args.get('gameType')
    if game_type and game_type not in GAME_TYPES:
        raise ValidationError(f'Unknown game type: {game_type}')
    return jsonify(ledger.statistics(game_type))


@admin.route('/settings', methods=['GET'])
@admin_required
def list_settings():
    rows = GameSettings.query.order_by(GameSettings.game_type).all()
    return jsonify([row.to_dict() for row in rows])


@admin.route('/settings/<string:game_type>', methods=['GET'])
@admin_required
def get_settings(game_type):
    row = GameSettings.query.filter_by(game_type=game_type).first()
    if row is None:
        raise NotFound(f'No settings for {game_type}')
    return jsonify(row.to_dict())


@admin.route('/settings/<string:game_type>', methods=['PUT'])
@admin_required
def update_settings(game_type):
    """Create or replace the settings row for one game type."""
    if game_type not in GAME_TYPES:
        raise ValidationError(f'Unknown game type: {game_type}')
    data = parse_body(GameSettingsRequest)
    row = GameSettings.query.filter_by(game_type=game_type).first()
    if row is None:
        row = GameSettings(game_type=game_type)
        db.session.add(row)
    row.rtp = data.rtp
    row.house_edge = data.house_edge
    row.min_bet = data.min_bet
    row.max_bet = data.max_bet
    row.max_payout = data.max_payout
    row.settings = json.dumps(data.settings)
    row.updated_by = current_user.id
    db.session.commit()
    current_app.logger.info(f"[settings] game={game_type} updated_by={current_user.id}")
    return jsonify(row.to_dict())
