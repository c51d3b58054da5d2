from casino import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
from decimal import Decimal
import json

ROLE_USER = 'user'
ROLE_ADMIN = 'admin'
STATUS_ACTIVE = 'active'
STATUS_BANNED = 'banned'

DEFAULT_GAME_SETTINGS = {
    'slots': {'rtp': Decimal('96.00'), 'house_edge': Decimal('4.00'), 'min_bet': Decimal('1.00'),
              'max_bet': Decimal('1000.00'), 'max_payout': Decimal('50000.00'), 'settings': '{"lines": 5}'},
    'dice': {'rtp': Decimal('98.00'), 'house_edge': Decimal('2.00'), 'min_bet': Decimal('1.00'),
             'max_bet': Decimal('1000.00'), 'max_payout': Decimal('50000.00'), 'settings': '{"min_target": 1, "max_target": 98}'},
    'crash': {'rtp': Decimal('97.00'), 'house_edge': Decimal('3.00'), 'min_bet': Decimal('1.00'),
              'max_bet': Decimal('1000.00'), 'max_payout': Decimal('50000.00'), 'settings': '{"tick_ms": 50}'},
}


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def money(value):
    """Currency leaves the API as a float."""
    return float(value) if value is not None else None


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(128), nullable=False)
    balance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('1000.00'))
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    verification_token = db.Column(db.String(64), unique=True, nullable=True)
    reset_token = db.Column(db.String(64), unique=True, nullable=True)
    reset_token_expiry = db.Column(db.DateTime, nullable=True)
    role = db.Column(db.String(16), nullable=False, default=ROLE_USER)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)
    ban_reason = db.Column(db.Text, nullable=True)
    last_login_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    @property
    def is_banned(self):
        return self.status == STATUS_BANNED

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'balance': money(self.balance),
        }

    def to_admin_dict(self):
        data = self.to_dict()
        data.update({
            'email': self.email,
            'emailVerified': self.email_verified,
            'role': self.role,
            'status': self.status,
            'banReason': self.ban_reason,
            'lastLoginAt': self.last_login_at.isoformat() if self.last_login_at else None,
        })
        return data


class GameHistory(db.Model):
    __tablename__ = 'game_history'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'request_id', name='uq_game_history_user_request'),
    )
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    game_type = db.Column(db.String(32), nullable=False)
    bet_amount = db.Column(db.Numeric(12, 2), nullable=False)
    multiplier = db.Column(db.Numeric(12, 2), nullable=False)
    payout = db.Column(db.Numeric(12, 2), nullable=False)
    balance_after = db.Column(db.Numeric(12, 2), nullable=True)
    request_id = db.Column(db.String(64), nullable=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'gameType': self.game_type,
            'betAmount': money(self.bet_amount),
            'multiplier': money(self.multiplier),
            'payout': money(self.payout),
            'timestamp': self.timestamp.isoformat(),
        }


class GameSettings(db.Model):
    __tablename__ = 'game_settings'
    id = db.Column(db.Integer, primary_key=True)
    game_type = db.Column(db.String(32), unique=True, nullable=False)
    rtp = db.Column(db.Numeric(5, 2), nullable=False)
    house_edge = db.Column(db.Numeric(5, 2), nullable=False)
    min_bet = db.Column(db.Numeric(12, 2), nullable=False)
    max_bet = db.Column(db.Numeric(12, 2), nullable=False)
    max_payout = db.Column(db.Numeric(12, 2), nullable=False)
    settings = db.Column(db.Text, nullable=False, default='{}')  # JSON-encoded per-game options
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    updated_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    def to_dict(self):
        return {
            'gameType': self.game_type,
            'rtp': money(self.rtp),
            'houseEdge': money(self.house_edge),
            'minBet': money(self.min_bet),
            'maxBet': money(self.max_bet),
            'maxPayout': money(self.max_payout),
            'settings': json.loads(self.settings) if self.settings else {},
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
            'updatedBy': self.updated_by,
        }
