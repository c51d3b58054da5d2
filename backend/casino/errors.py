"""Error taxonomy shared by services and routes.

Services raise these; the handlers registered on the app turn them into
JSON responses. Anything unexpected is logged and returned as a bare 500.
"""

from flask import jsonify, current_app
from pydantic import ValidationError as SchemaValidationError
from werkzeug.exceptions import HTTPException


class CasinoError(Exception):
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.message)
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'message': self.message}


class ValidationError(CasinoError):
    status_code = 400
    message = 'Invalid input'


class Conflict(CasinoError):
    # Duplicate registrations answer 400, same as any other bad input
    status_code = 400
    message = 'Already exists'


class AuthenticationRequired(CasinoError):
    status_code = 401
    message = 'Not authenticated'


class InvalidCredentials(CasinoError):
    status_code = 401
    message = 'Invalid credentials'


class EmailNotVerified(CasinoError):
    status_code = 401
    message = 'Please verify your email first'


class AuthorizationDenied(CasinoError):
    status_code = 403
    message = 'Not allowed'


class NotFound(CasinoError):
    status_code = 404
    message = 'Not found'


class AccountNotFound(NotFound):
    message = 'User not found'


class ExternalServiceFailure(CasinoError):
    status_code = 502
    message = 'External service unavailable'


class InternalError(CasinoError):
    pass


def register_error_handlers(app):
    @app.errorhandler(CasinoError)
    def handle_casino_error(err):
        if err.status_code >= 500:
            current_app.logger.error(f"[error] {type(err).__name__}: {err.message}")
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(SchemaValidationError)
    def handle_schema_error(err):
        errors = [
            {'field': '.'.join(str(p) for p in e['loc']), 'message': e['msg']}
            for e in err.errors()
        ]
        return jsonify({'message': 'Invalid input', 'errors': errors}), 400

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        if isinstance(err, HTTPException):
            return jsonify({'message': err.description}), err.code
        current_app.logger.exception(f"[error] unhandled {type(err).__name__}")
        internal = InternalError()
        return jsonify(internal.to_dict()), internal.status_code
