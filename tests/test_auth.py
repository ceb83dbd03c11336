from conftest import PASSWORD


def test_register_logs_in(app):
    client = app.test_client()
    resp = client.post('/api/auth/register', json={
        'name': 'alice_w', 'email': 'Alice@Example.com', 'password': 'Wonderland1',
    })
    assert resp.status_code == 201
    user = resp.get_json()['user']
    assert user['email'] == 'alice@example.com'
    assert 'password' not in user

    me = client.get('/api/auth/me')
    assert me.status_code == 200
    assert me.get_json()['user']['id'] == user['id']


def test_register_validation(app, make_user):
    make_user('taken')
    client = app.test_client()

    resp = client.post('/api/auth/register', json={'name': 'ab', 'email': 'nope', 'password': 'short'})
    assert resp.status_code == 422
    assert set(resp.get_json()['errors']) == {'name', 'email', 'password'}

    resp = client.post('/api/auth/register', json={
        'name': 'taken', 'email': 'taken@example.com', 'password': 'Wonderland1',
    })
    assert resp.status_code == 422
    errors = resp.get_json()['errors']
    assert errors['name'] == ['user name already taken']
    assert errors['email'] == ['email already registered']

    resp = client.post('/api/auth/register', json={
        'name': 'bob', 'email': 'bob@example.com', 'password': 'alllowercase1',
    })
    assert resp.status_code == 422
    assert 'password' in resp.get_json()['errors']


def test_login_with_email_or_name(app, make_user):
    make_user('carol')
    client = app.test_client()

    resp = client.post('/api/auth/login', json={'email': 'carol@example.com', 'password': 'wrong'})
    assert resp.status_code == 401

    resp = client.post('/api/auth/login', json={'email': 'carol@example.com', 'password': PASSWORD})
    assert resp.status_code == 200
    assert resp.get_json()['user']['name'] == 'carol'

    other = app.test_client()
    resp = other.post('/api/auth/login', json={'name': 'carol', 'password': PASSWORD})
    assert resp.status_code == 200


def test_logout(app, make_user):
    make_user('dave')
    client = app.test_client()
    client.post('/api/auth/login', json={'name': 'dave', 'password': PASSWORD})
    assert client.get('/api/auth/me').status_code == 200
    assert client.post('/api/auth/logout').status_code == 200
    assert client.get('/api/auth/me').status_code == 401


def test_health(app):
    assert app.test_client().get('/health').get_json() == {'status': 'ok'}
