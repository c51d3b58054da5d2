from datetime import timedelta

from casino import db
from casino.errors import ExternalServiceFailure
from casino.models import User, utcnow
from casino.services import mailer

from conftest import PASSWORD


def _register(client, **overrides):
    body = {'username': 'carol', 'email': 'carol@gmail.com', 'password': PASSWORD}
    body.update(overrides)
    return client.post('/api/auth/register', json=body)


def _error_messages(res):
    return [e['message'] for e in res.get_json().get('errors', [])]


def test_register_creates_unverified_account_and_mails_link(client, flask_app):
    res = _register(client)
    assert res.status_code == 201
    assert res.get_json()['message'].startswith('Registration successful. Please check')

    user = User.query.filter_by(username='carol').one()
    assert not user.email_verified
    assert user.balance == 1000
    assert user.password_hash != PASSWORD
    assert user.check_password(PASSWORD)

    sent = mailer.outbox()
    assert len(sent) == 1
    assert sent[0]['to'] == 'carol@gmail.com'
    assert f'http://casino.test/api/auth/verify/{user.verification_token}' in sent[0]['body']


def test_register_rejects_other_email_domains(client):
    res = _register(client, email='x@yahoo.com')
    assert res.status_code == 400
    assert any('Only Gmail addresses are allowed' in m for m in _error_messages(res))
    assert User.query.count() == 0


def test_register_field_rules(client):
    assert _register(client, username='ab').status_code == 400
    assert _register(client, username='bad name').status_code == 400
    assert _register(client, email='not-an-email').status_code == 400
    assert _register(client, password='Ab1!').status_code == 400
    assert _register(client, password='alllower1!').status_code == 400
    assert _register(client, password='NoDigits!!').status_code == 400
    assert _register(client, password='NoSpecial1').status_code == 400
    assert _register(client, role='admin').status_code == 400
    assert client.post('/api/auth/register', data='nope').status_code == 400


def test_register_duplicates(client):
    assert _register(client).status_code == 201
    res = _register(client, email='other@gmail.com')
    assert res.status_code == 400
    assert res.get_json()['message'] == 'Username already taken'
    res = _register(client, username='carol2', email='CAROL@gmail.com')
    assert res.status_code == 400
    assert res.get_json()['message'] == 'Email already registered'


def test_register_survives_mail_failure(client, monkeypatch):
    def broken(*args, **kwargs):
        raise ExternalServiceFailure('smtp down')
    monkeypatch.setattr(mailer, 'send_email', broken)

    res = _register(client)
    assert res.status_code == 201
    assert 'could not be sent' in res.get_json()['message']
    assert User.query.filter_by(username='carol').count() == 1


def test_verify_link_marks_account_and_is_single_use(client):
    _register(client)
    token = User.query.filter_by(username='carol').one().verification_token

    res = client.get(f'/api/auth/verify/{token}')
    assert res.status_code == 302
    assert res.headers['Location'].endswith('/auth?verified=true')
    user = User.query.filter_by(username='carol').one()
    assert user.email_verified
    assert user.verification_token is None

    res = client.get(f'/api/auth/verify/{token}')
    assert res.status_code == 400
    assert res.content_type.startswith('text/html')
    assert b'Verification Failed' in res.data


def test_login_requires_verified_email(client, make_user):
    make_user('dave', verified=False)
    res = client.post('/api/auth/login', json={'login': 'dave', 'password': PASSWORD})
    assert res.status_code == 401
    assert res.get_json()['message'] == 'Please verify your email first'


def test_login_by_username_or_email(client, make_user):
    make_user('erin')
    res = client.post('/api/auth/login', json={'login': 'erin', 'password': PASSWORD})
    assert res.status_code == 200
    body = res.get_json()
    assert body['username'] == 'erin'
    assert body['balance'] == 1000.0
    assert set(body) == {'id', 'username', 'balance'}

    res = client.post('/api/auth/login', json={'login': 'Erin@gmail.com', 'password': PASSWORD})
    assert res.status_code == 200


def test_login_failures_do_not_reveal_accounts(client, make_user):
    make_user('frank')
    wrong = client.post('/api/auth/login', json={'login': 'frank', 'password': 'Wrong1!x'})
    unknown = client.post('/api/auth/login', json={'login': 'nobody', 'password': PASSWORD})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.get_json() == unknown.get_json() == {'message': 'Invalid credentials'}
    assert client.post('/api/auth/login', json={'login': 'frank'}).status_code == 400


def test_banned_account_cannot_log_in(client, make_user):
    user = make_user('gina')
    user.status = 'banned'
    db.session.commit()
    res = client.post('/api/auth/login', json={'login': 'gina', 'password': PASSWORD})
    assert res.status_code == 403


def test_session_and_logout(client, logged_in):
    me = client.get('/api/user/me')
    assert me.status_code == 200
    assert me.get_json()['username'] == logged_in.username

    assert client.post('/api/auth/logout').status_code == 200
    assert client.get('/api/user/me').status_code == 401
    assert client.post('/api/auth/logout').status_code == 401


def test_forgot_password_answers_the_same_for_unknown_email(client, make_user):
    make_user('hank')
    known = client.post('/api/auth/forgot-password', json={'email': 'hank@gmail.com'})
    unknown = client.post('/api/auth/forgot-password', json={'email': 'ghost@gmail.com'})
    assert known.status_code == unknown.status_code == 200
    assert known.get_json() == unknown.get_json()

    user = User.query.filter_by(username='hank').one()
    assert user.reset_token
    assert user.reset_token_expiry > utcnow()
    sent = mailer.outbox()
    assert len(sent) == 1
    assert f'http://casino.test/auth/reset-password/{user.reset_token}' in sent[0]['body']
    assert '60 minutes' in sent[0]['body']


def test_forgot_password_requires_email(client):
    assert client.post('/api/auth/forgot-password', json={}).status_code == 400


def test_reset_password_flow(client, make_user):
    make_user('ivy')
    client.post('/api/auth/forgot-password', json={'email': 'ivy@gmail.com'})
    token = User.query.filter_by(username='ivy').one().reset_token

    assert client.post(f'/api/auth/reset-password/{token}', json={'password': 'weak'}).status_code == 400

    res = client.post(f'/api/auth/reset-password/{token}', json={'password': 'Changed9#'})
    assert res.status_code == 200
    assert res.get_json()['message'] == 'Password has been reset successfully'
    assert User.query.filter_by(username='ivy').one().reset_token is None

    assert client.post('/api/auth/login', json={'login': 'ivy', 'password': PASSWORD}).status_code == 401
    assert client.post('/api/auth/login', json={'login': 'ivy', 'password': 'Changed9#'}).status_code == 200

    res = client.post(f'/api/auth/reset-password/{token}', json={'password': 'Again9#x'})
    assert res.status_code == 400
    assert res.get_json()['message'] == 'Invalid or expired reset token'


def test_expired_reset_token_is_rejected_and_cleared(client, make_user):
    user = make_user('jack')
    user.reset_token = 'a' * 64
    user.reset_token_expiry = utcnow() - timedelta(seconds=1)
    db.session.commit()

    res = client.post(f"/api/auth/reset-password/{'a' * 64}", json={'password': 'Changed9#'})
    assert res.status_code == 400
    assert res.get_json()['message'] == 'Reset token has expired'
    user = User.query.filter_by(username='jack').one()
    assert user.reset_token is None
    assert user.check_password(PASSWORD)


def test_resend_verification(client, make_user):
    make_user('kim', verified=False)
    old_token = User.query.filter_by(username='kim').one().verification_token

    res = client.post('/api/auth/resend-verification', json={'email': 'kim@gmail.com'})
    assert res.status_code == 200
    new_token = User.query.filter_by(username='kim').one().verification_token
    assert new_token and new_token != old_token
    assert len(mailer.outbox()) == 1

    unknown = client.post('/api/auth/resend-verification', json={'email': 'ghost@gmail.com'})
    assert unknown.get_json() == res.get_json()

    make_user('lou')
    res = client.post('/api/auth/resend-verification', json={'email': 'lou@gmail.com'})
    assert res.status_code == 400
    assert res.get_json()['message'] == 'Email is already verified'


def test_resend_verification_hides_mail_failures(client, make_user, monkeypatch):
    def broken(*args, **kwargs):
        raise ExternalServiceFailure('smtp down')
    monkeypatch.setattr(mailer, 'send_email', broken)
    make_user('nina', verified=False)

    known = client.post('/api/auth/resend-verification', json={'email': 'nina@gmail.com'})
    unknown = client.post('/api/auth/resend-verification', json={'email': 'ghost@gmail.com'})
    assert known.status_code == unknown.status_code == 200
    assert known.get_json() == unknown.get_json()
    assert User.query.filter_by(username='nina').one().verification_token


def test_forgot_password_hides_mail_failures(client, make_user, monkeypatch):
    def broken(*args, **kwargs):
        raise ExternalServiceFailure('smtp down')
    monkeypatch.setattr(mailer, 'send_email', broken)
    make_user('omar')

    known = client.post('/api/auth/forgot-password', json={'email': 'omar@gmail.com'})
    unknown = client.post('/api/auth/forgot-password', json={'email': 'ghost@gmail.com'})
    assert known.status_code == unknown.status_code == 200
    assert known.get_json() == unknown.get_json()
