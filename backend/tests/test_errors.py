from casino.errors import AuthenticationRequired, ValidationError


def test_unexpected_error_is_a_bare_500(flask_app):
    def explode():
        raise RuntimeError('db exploded')
    flask_app.add_url_rule('/boom', 'boom', explode)

    res = flask_app.test_client().get('/boom')
    assert res.status_code == 500
    assert res.get_json() == {'message': 'Internal server error'}


def test_casino_errors_render_as_json(flask_app):
    def reject():
        raise ValidationError('Bet too small')
    flask_app.add_url_rule('/reject', 'reject', reject)

    res = flask_app.test_client().get('/reject')
    assert res.status_code == 400
    assert res.get_json() == {'message': 'Bet too small'}


def test_login_required_answers_with_authentication_required(client):
    res = client.get('/api/game/history')
    assert res.status_code == AuthenticationRequired.status_code
    assert res.get_json() == AuthenticationRequired().to_dict()


def test_unknown_route_keeps_its_status(client):
    res = client.get('/api/nowhere')
    assert res.status_code == 404
    assert 'message' in res.get_json()
