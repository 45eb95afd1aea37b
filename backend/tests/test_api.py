from clicker import db
from clicker.models import ScoreRecord, User


def signup(client, email='player@example.com', password='secret1'):
    return client.post('/signup', json={'email': email, 'password': password})


def login(client, email='player@example.com', password='secret1'):
    return client.post('/login', json={'email': email, 'password': password})


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()


def test_signup_logs_the_user_in(client):
    res = signup(client, email='  New@Example.com ')
    assert res.status_code == 201
    assert res.get_json()['user']['email'] == 'new@example.com'
    me = client.get('/me').get_json()
    assert me['authenticated'] is True
    assert me['user']['email'] == 'new@example.com'


def test_signup_rejects_duplicates_and_bad_input(client):
    assert signup(client).status_code == 201
    res = signup(client)
    assert res.status_code == 400
    assert 'already in use' in res.get_json()['error']

    res = signup(client, email='not-an-email')
    assert res.status_code == 400
    assert 'badly formatted' in res.get_json()['error']

    res = signup(client, email='short@example.com', password='123')
    assert res.status_code == 400
    assert 'at least 6 characters' in res.get_json()['error']


def test_login_and_logout(flask_app, client):
    signup(client)
    client.post('/logout')
    assert client.get('/me').get_json()['authenticated'] is False

    res = login(client, password='wrong-password')
    assert res.status_code == 401
    assert res.get_json()['error'] == 'Invalid email or password.'

    res = login(client)
    assert res.status_code == 200
    assert res.get_json()['user']['email'] == 'player@example.com'

    with flask_app.app_context():
        user = User.query.filter_by(email='player@example.com').first()
        assert user.password_hash != 'secret1'
        assert user.check_password('secret1')


def test_session_routes_require_login(client):
    assert client.get('/api/session').status_code == 401
    assert client.post('/api/session/start').status_code == 401
    assert client.post('/api/session/tap').status_code == 401


def test_initial_session_state(auth_client):
    res = auth_client.get('/api/session')
    assert res.status_code == 200
    state = res.get_json()
    assert state['state'] == 'start'
    assert state['score'] == 0
    assert state['duration_seconds'] == 3.0
    assert state['remaining_seconds'] == 3.0
    assert state['history'] is None
    assert state['history_pending'] is False
    assert state['limits']['max_duration_seconds'] == 10.0


def test_full_game_flow(flask_app, auth_client, clock):
    started = auth_client.post('/api/session/start').get_json()
    assert started['state'] == 'in_game'
    assert started['remaining_seconds'] == 3.0

    for i in range(25):
        res = auth_client.post('/api/session/tap')
        assert res.status_code == 200
    assert res.get_json()['score'] == 27

    clock.advance(1.0)
    mid = auth_client.get('/api/session').get_json()
    assert mid['state'] == 'in_game'
    assert abs(mid['remaining_seconds'] - 2.0) < 1e-6

    clock.advance(2.0)
    ended = auth_client.get('/api/session').get_json()
    assert ended['state'] == 'end_game'
    assert ended['remaining_seconds'] == 0
    assert ended['score'] == 27
    assert ended['clicks_per_second'] == 9.0
    assert ended['history_pending'] is False
    assert ended['history']['average_clicks_per_second'] == 9.0
    assert ended['history']['entries'] == [{'rank': 1, 'clicks_per_second': 9.0}]

    with flask_app.app_context():
        records = ScoreRecord.query.all()
        assert len(records) == 1
        assert records[0].score == 27
        assert records[0].duration_seconds == 3.0
        assert records[0].clicks_per_second == 9.0

    res = auth_client.post('/api/session/tap')
    assert res.status_code == 409
    assert res.get_json()['state'] == 'end_game'


def test_history_averages_recent_games(auth_client, clock):
    for taps in (3, 6, 9):
        auth_client.post('/api/session/start')
        for _ in range(taps):
            auth_client.post('/api/session/tap')
        clock.run_until_idle()

    history = auth_client.get('/api/session/history').get_json()
    assert [e['clicks_per_second'] for e in history['entries']] == [3.0, 2.0, 1.0]
    assert history['average_clicks_per_second'] == 2.0


def test_history_is_per_user(flask_app, client, clock):
    signup(client, email='other@example.com')
    client.post('/api/session/start')
    for _ in range(6):
        client.post('/api/session/tap')
    clock.run_until_idle()
    client.post('/logout')

    signup(client)
    assert client.get('/api/session/history').get_json()['entries'] == []
    client.post('/api/session/start')
    clock.run_until_idle()
    history = client.get('/api/session/history').get_json()
    assert history['entries'] == [{'rank': 1, 'clicks_per_second': 0.0}]


def test_set_duration(auth_client, clock):
    res = auth_client.put('/api/session/duration', json={'duration_seconds': 5})
    assert res.status_code == 200
    assert res.get_json()['duration_seconds'] == 5.0
    assert res.get_json()['remaining_seconds'] == 5.0

    assert auth_client.put('/api/session/duration', json={'duration_seconds': 11}).status_code == 400
    assert auth_client.put('/api/session/duration', json={}).status_code == 400

    auth_client.post('/api/session/start')
    assert auth_client.put('/api/session/duration', json={'duration_seconds': 2}).status_code == 409

    clock.advance(5.0)
    assert auth_client.get('/api/session').get_json()['state'] == 'end_game'


def test_starting_again_replaces_the_running_game(auth_client, clock):
    auth_client.post('/api/session/start')
    auth_client.post('/api/session/tap')
    clock.advance(1.0)
    restarted = auth_client.post('/api/session/start').get_json()

    assert restarted['score'] == 0
    assert restarted['remaining_seconds'] == 3.0
    assert len(clock.active_subscriptions) == 1
    clock.advance(0.5)
    assert abs(auth_client.get('/api/session').get_json()['remaining_seconds'] - 2.5) < 1e-6


def test_replay(auth_client, clock):
    assert auth_client.post('/api/session/replay').status_code == 409

    auth_client.post('/api/session/start')
    auth_client.post('/api/session/tap')
    clock.run_until_idle()

    back = auth_client.post('/api/session/replay').get_json()
    assert back['state'] == 'start'
    assert back['score'] == 0
    assert back['remaining_seconds'] == 3.0

    auth_client.post('/api/session/start')
    clock.run_until_idle()
    again = auth_client.post('/api/session/replay', json={'restart': True}).get_json()
    assert again['state'] == 'in_game'
    assert again['score'] == 0
    assert again['remaining_seconds'] == 3.0


def test_score_store_failure_is_not_surfaced(flask_app, auth_client, clock, monkeypatch):
    from clicker.errors import RemoteIOError
    from clicker.services.session.store import SqlScoreStore

    def refuse(self, *args, **kwargs):
        raise RemoteIOError('database unavailable')

    monkeypatch.setattr(SqlScoreStore, 'append', refuse)
    monkeypatch.setattr(SqlScoreStore, 'query_recent', refuse)

    auth_client.post('/api/session/start')
    auth_client.post('/api/session/tap')
    clock.run_until_idle()

    ended = auth_client.get('/api/session').get_json()
    assert ended['state'] == 'end_game'
    assert ended['history']['average_clicks_per_second'] == 0.0
    assert ended['history']['entries'] == []


def test_logout_stops_the_running_game(auth_client, clock):
    auth_client.post('/api/session/start')
    assert len(clock.active_subscriptions) == 1
    assert auth_client.post('/logout').status_code == 200
    assert clock.active_subscriptions == []


def test_db_reset_command(flask_app):
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['db-reset'])
    assert 'reset and seeded' in result.output
    with flask_app.app_context():
        assert User.query.count() == 3
        assert db.session.query(ScoreRecord).count() == 0


def defer_reports(registry, monkeypatch):
    deferred = []
    monkeypatch.setattr(registry.reporter, 'dispatch', lambda fn, *args: deferred.append((fn, args)))
    return deferred


def run_report(flask_app, job):
    fn, args = job
    with flask_app.app_context():
        fn(*args)


def test_signup_rejects_malformed_domains(flask_app, client):
    for email in ('a@b..com', 'a@.com', 'a b@example.com', 'a@b'):
        res = signup(client, email=email)
        assert res.status_code == 400
        assert 'badly formatted' in res.get_json()['error']
    with flask_app.app_context():
        assert User.query.count() == 0


def test_duration_is_locked_once_the_game_ends(auth_client, clock):
    auth_client.post('/api/session/start')
    for _ in range(25):
        auth_client.post('/api/session/tap')
    clock.run_until_idle()

    res = auth_client.put('/api/session/duration', json={'duration_seconds': 9})
    assert res.status_code == 409
    ended = auth_client.get('/api/session').get_json()
    assert ended['duration_seconds'] == 3.0
    assert ended['clicks_per_second'] == 9.0


def test_replay_restart_needs_a_real_boolean(auth_client, clock):
    auth_client.post('/api/session/start')
    clock.run_until_idle()
    back = auth_client.post('/api/session/replay', json={'restart': 'false'}).get_json()
    assert back['state'] == 'start'
    assert clock.active_subscriptions == []


def test_history_stays_pending_until_the_report_lands(flask_app, auth_client, registry, clock, monkeypatch):
    deferred = defer_reports(registry, monkeypatch)
    auth_client.post('/api/session/start')
    for _ in range(6):
        auth_client.post('/api/session/tap')
    clock.run_until_idle()

    ended = auth_client.get('/api/session').get_json()
    assert ended['state'] == 'end_game'
    assert ended['history_pending'] is True
    assert ended['history'] is None

    run_report(flask_app, deferred.pop())

    landed = auth_client.get('/api/session').get_json()
    assert landed['history_pending'] is False
    assert landed['history']['entries'] == [{'rank': 1, 'clicks_per_second': 2.0}]


def test_background_dispatch_can_be_enabled_in_tests(flask_app, monkeypatch):
    from flask import has_app_context

    from clicker import socketio
    from clicker.services.session.registry import make_dispatcher

    started = []
    monkeypatch.setattr(socketio, 'start_background_task', lambda target: started.append(target))
    flask_app.config['ENABLE_BACKGROUND_IN_TESTS'] = True

    seen = []
    make_dispatcher(flask_app)(lambda value: seen.append((value, has_app_context())), 'done')
    assert seen == []
    assert len(started) == 1

    started[0]()
    assert seen == [('done', True)]


def test_report_from_before_sign_out_does_not_settle_the_new_game(
        flask_app, auth_client, registry, clock, monkeypatch):
    deferred = defer_reports(registry, monkeypatch)
    auth_client.post('/api/session/start')
    auth_client.post('/api/session/tap')
    clock.run_until_idle()

    auth_client.post('/logout')
    assert login(auth_client).status_code == 200
    auth_client.post('/api/session/start')
    for _ in range(3):
        auth_client.post('/api/session/tap')
    clock.run_until_idle()
    older, newer = deferred

    run_report(flask_app, older)
    state = auth_client.get('/api/session').get_json()
    assert state['history_pending'] is True

    run_report(flask_app, newer)
    state = auth_client.get('/api/session').get_json()
    assert state['history_pending'] is False
    assert state['history']['entries'][0]['clicks_per_second'] == 1.0
