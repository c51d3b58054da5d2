from flask import Blueprint, current_app, jsonify, redirect, session
from flask_login import login_user, logout_user, login_required

from casino.errors import NotFound
from casino.schemas import EmailRequest, LoginRequest, RegisterRequest, ResetPasswordRequest, parse_body
from casino.services import accounts

auth = Blueprint('auth', __name__)

REGISTERED = 'Registration successful. Please check your email to verify your account.'
REGISTERED_NO_MAIL = 'Registration successful but verification email could not be sent. Please contact support.'
RESET_SENT = 'If your email is registered, you will receive a password reset link'
VERIFICATION_SENT = 'If your email is registered, you will receive a verification link'

VERIFY_FAILED_PAGE = """<html>
  <head><title>Verification Failed</title></head>
  <body>
    <h1>Verification Failed</h1>
    <p>Invalid or expired verification token.</p>
    <a href="/auth">Return to login page</a>
  </body>
</html>"""


@auth.route('/register', methods=['POST'])
def register():
    data = parse_body(RegisterRequest, context={'allowed_domain': current_app.config.get('ALLOWED_EMAIL_DOMAIN')})
    _, mail_sent = accounts.register(data.username, data.email, data.password)
    return jsonify({'message': REGISTERED if mail_sent else REGISTERED_NO_MAIL}), 201


@auth.route('/verify/<string:token>', methods=['GET'])
def verify(token):
    """Single-use link from the verification mail."""
    try:
        accounts.verify_email(token)
    except NotFound:
        return VERIFY_FAILED_PAGE, 400, {'Content-Type': 'text/html; charset=utf-8'}
    return redirect('/auth?verified=true')


@auth.route('/login', methods=['POST'])
def login():
    data = parse_body(LoginRequest)
    user = accounts.login(data.login, data.password)
    session.permanent = True
    login_user(user)
    return jsonify(user.to_dict())


@auth.route('/forgot-password', methods=['POST'])
def forgot_password():
    data = parse_body(EmailRequest)
    accounts.forgot_password(data.email)
    return jsonify({'message': RESET_SENT})


@auth.route('/resend-verification', methods=['POST'])
def resend_verification():
    data = parse_body(EmailRequest)
    accounts.resend_verification(data.email)
    return jsonify({'message': VERIFICATION_SENT})


@auth.route('/reset-password/<string:token>', methods=['POST'])
def reset_password(token):
    data = parse_body(ResetPasswordRequest)
    accounts.reset_password(token, data.password)
    return jsonify({'message': 'Password has been reset successfully'})


@auth.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out'})
