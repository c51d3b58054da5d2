"""Request contracts for the JSON API.

Every body is parsed into one of these models before it reaches a service;
unknown fields are rejected.
"""

import re
from decimal import Decimal
from typing import Any, Dict, Literal, Optional

from flask import request
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from casino.services.games.payouts import settle_amount

GameType = Literal['slots', 'dice', 'crash']

USERNAME_RE = re.compile(r'^[a-zA-Z0-9]+$')
EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
PASSWORD_RE = re.compile(r'^(?=.*[A-Z])(?=.*[0-9])(?=.*[!@#$%^&*])(?=.*[a-z])[a-zA-Z0-9!@#$%^&*]+$')
PASSWORD_RULE = 'Password must contain at least one uppercase letter, one number, and one special character (!@#$%^&*)'


def check_password_rules(password: str) -> str:
    if len(password) < 6:
        raise ValueError('Password must be at least 6 characters')
    if not PASSWORD_RE.match(password):
        raise ValueError(PASSWORD_RULE)
    return password


class ApiModel(BaseModel):
    model_config = ConfigDict(extra='forbid', populate_by_name=True)


class RegisterRequest(ApiModel):
    username: str
    email: str
    password: str

    @field_validator('username')
    @classmethod
    def _username(cls, value):
        if len(value) < 3:
            raise ValueError('Username must be at least 3 characters')
        if not USERNAME_RE.match(value):
            raise ValueError('Username must contain only letters and numbers, no spaces or special characters')
        return value

    @field_validator('email')
    @classmethod
    def _email(cls, value, info: ValidationInfo):
        if not EMAIL_RE.match(value):
            raise ValueError('Invalid email address')
        # Parse with context={'allowed_domain': ...} to restrict the domain
        domain = ((info.context or {}).get('allowed_domain') or '').lower()
        if domain and not value.lower().endswith(domain):
            if domain == '@gmail.com':
                raise ValueError('Only Gmail addresses are allowed')
            raise ValueError(f'Only {domain} addresses are allowed')
        return value.lower()

    @field_validator('password')
    @classmethod
    def _password(cls, value):
        return check_password_rules(value)


class LoginRequest(ApiModel):
    login: str = Field(min_length=1)
    password: str = Field(min_length=1)


class EmailRequest(ApiModel):
    email: str = Field(min_length=1)


class ResetPasswordRequest(ApiModel):
    password: str

    @field_validator('password')
    @classmethod
    def _password(cls, value):
        return check_password_rules(value)


class GameResultRequest(ApiModel):
    """A round to be drawn and settled on the server.

    ``multiplier`` and ``payout`` are accepted from older clients only as a
    claim; they must agree with each other and never decide the outcome.
    """
    game_type: GameType = Field(alias='gameType')
    bet_amount: Decimal = Field(alias='betAmount', gt=0, max_digits=12, decimal_places=2)
    prediction: Optional[Literal['over', 'under']] = None
    target: Optional[int] = Field(None, ge=1, le=98)
    cash_out_at: Optional[Decimal] = Field(None, alias='cashOutAt', gt=1, max_digits=12, decimal_places=2)
    multiplier: Optional[Decimal] = Field(None, ge=0)
    payout: Optional[Decimal] = Field(None, ge=0)
    request_id: Optional[str] = Field(None, alias='requestId', min_length=1, max_length=64)

    @model_validator(mode='after')
    def _game_inputs(self):
        if self.game_type == 'dice' and (self.prediction is None or self.target is None):
            raise ValueError('Dice rounds require prediction and target')
        if self.game_type == 'crash' and self.cash_out_at is None:
            raise ValueError('Crash rounds require cashOutAt')
        if self.multiplier is not None and self.payout is not None:
            if settle_amount(self.bet_amount, self.multiplier) != settle_amount(self.payout, 1):
                raise ValueError('payout does not match betAmount x multiplier')
        return self

    def outcome_args(self) -> Dict[str, Any]:
        if self.game_type == 'dice':
            return {'prediction': self.prediction, 'target': self.target}
        if self.game_type == 'crash':
            return {'cash_out_at': self.cash_out_at}
        return {}


class CrashStartRequest(ApiModel):
    bet_amount: Decimal = Field(alias='betAmount', gt=0, max_digits=12, decimal_places=2)


class StatusUpdateRequest(ApiModel):
    status: Literal['active', 'banned']
    ban_reason: Optional[str] = Field(None, alias='banReason', max_length=500)


class GameSettingsRequest(ApiModel):
    rtp: Decimal = Field(ge=0, le=100, max_digits=5, decimal_places=2)
    house_edge: Decimal = Field(alias='houseEdge', ge=0, le=100, max_digits=5, decimal_places=2)
    min_bet: Decimal = Field(alias='minBet', gt=0, max_digits=12, decimal_places=2)
    max_bet: Decimal = Field(alias='maxBet', gt=0, max_digits=12, decimal_places=2)
    max_payout: Decimal = Field(alias='maxPayout', gt=0, max_digits=12, decimal_places=2)
    settings: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode='after')
    def _bet_range(self):
        if self.min_bet > self.max_bet:
            raise ValueError('minBet must not exceed maxBet')
        return self


class PageQuery(ApiModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


def parse_body(model, context=None):
    """Validate the JSON body of the current request against ``model``."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    return model.model_validate(data, context=context)
