import itertools

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from app.extensions import db, socketio
from app.models import User, Room, RoomMember

PASSWORD = 'Secret123'


class TestConfig:
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SOCKETIO_ASYNC_MODE = 'threading'
    JANITOR_ENABLED = False
    LOG_LEVEL = 'WARNING'
    LOG_FILE = None


class Published:
    # Snapshot of an event taken at publish time, while the session is live

    def __init__(self, event):
        self.event = event
        self.name = event.name
        self.topics = event.topics()
        self.payload = event.payload()


class RecordingNotifier:
    # Stands in for FanoutNotifier and keeps every published event

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(Published(event))
        return len(self.events[-1].topics)

    def names(self):
        return [e.name for e in self.events]

    def last(self, name):
        matching = [e for e in self.events if e.name == name]
        return matching[-1] if matching else None


@pytest.fixture
def app(tmp_path):
    config = type('Config', (TestConfig,), {'UPLOAD_FOLDER': str(tmp_path / 'uploads')})
    flask_app = create_app(config)
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def recorder(app):
    rec = RecordingNotifier()
    app.extensions['notifier'] = rec
    return rec


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(name=None):
        n = next(counter)
        with app.app_context():
            user = User(
                name=name or f'user{n}',
                email=f'{name or f"user{n}"}@example.com',
                password=generate_password_hash(PASSWORD),
            )
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make


@pytest.fixture
def make_room(app):
    counter = itertools.count(1)

    def _make(owner_id, room_type='public', members=(), moderators=(), password=None, **statuses):
        # statuses: pending=[ids], banned=[ids], ... for non-approved rows
        n = next(counter)
        with app.app_context():
            room = Room(
                owner_id=owner_id,
                name=f'room{n}',
                type=room_type,
                password=generate_password_hash(password) if password else None,
            )
            db.session.add(room)
            db.session.flush()
            db.session.add(RoomMember(room_id=room.id, user_id=owner_id, role='moderator', status='approved'))
            for uid in members:
                db.session.add(RoomMember(room_id=room.id, user_id=uid, role='member', status='approved'))
            for uid in moderators:
                db.session.add(RoomMember(room_id=room.id, user_id=uid, role='moderator', status='approved'))
            for status, ids in statuses.items():
                for uid in ids:
                    db.session.add(RoomMember(room_id=room.id, user_id=uid, role='member', status=status))
            db.session.commit()
            return room.id

    return _make


@pytest.fixture
def client_for(app):
    # A Flask test client already logged in as the given user id

    def _client(user_id):
        client = app.test_client()
        with client.session_transaction() as sess:
            sess['_user_id'] = str(user_id)
            sess['_fresh'] = True
        return client

    return _client


@pytest.fixture
def socket_for(app, client_for):
    clients = []

    def _socket(user_id=None):
        flask_client = client_for(user_id) if user_id is not None else app.test_client()
        sio = socketio.test_client(app, flask_test_client=flask_client)
        clients.append(sio)
        return sio

    yield _socket
    for sio in clients:
        if sio.is_connected():
            sio.disconnect()
