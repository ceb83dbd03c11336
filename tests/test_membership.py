from datetime import datetime, timedelta

import pytest

from app.extensions import db
from app.functions.errors import AuthorizationError, NotFoundError
from app.models import Room, RoomMember, User, UserRoomUsage
from app.services import membership


def test_gate_owner_and_approved_members_only(app, make_user, make_room):
    owner, member, pending, banned, outsider = (make_user() for _ in range(5))
    room = make_room(owner, members=[member], pending=[pending], banned=[banned])

    with app.app_context():
        assert membership.has_participant(room, owner)
        assert membership.has_participant(room, member)
        assert not membership.has_participant(room, pending)
        assert not membership.has_participant(room, banned)
        assert not membership.has_participant(room, outsider)
        assert not membership.has_participant(9999, owner)


def test_owner_counts_as_participant_without_member_row(app, make_user, make_room):
    owner = make_user()
    room = make_room(owner)
    with app.app_context():
        RoomMember.query.filter_by(room_id=room, user_id=owner).delete()
        db.session.commit()
        assert membership.has_participant(room, owner)
        assert membership.get_role(room, owner) == 'owner'


def test_require_participant_distinguishes_missing_room(app, make_user, make_room):
    owner, outsider = make_user(), make_user()
    room = make_room(owner)
    with app.app_context():
        with pytest.raises(NotFoundError):
            membership.require_participant(12345, owner)
        with pytest.raises(AuthorizationError):
            membership.require_participant(room, outsider)
        assert membership.require_participant(room, owner).id == room


def test_gate_rechecks_after_removal(app, make_user, make_room):
    owner, member = make_user(), make_user()
    room = make_room(owner, members=[member])
    with app.app_context():
        assert membership.has_participant(room, member)
        row = RoomMember.query.filter_by(room_id=room, user_id=member).one()
        row.status = 'removed'
        db.session.commit()
        assert not membership.has_participant(room, member)


def test_roles(app, make_user, make_room):
    owner, mod, member, outsider = (make_user() for _ in range(4))
    room = make_room(owner, members=[member], moderators=[mod])
    with app.app_context():
        assert membership.get_role(room, owner) == 'owner'
        assert membership.get_role(room, mod) == 'moderator'
        assert membership.get_role(room, member) == 'member'
        assert membership.get_role(room, outsider) is None


# Room lifecycle over HTTP

def test_create_room_records_usage(app, make_user, client_for):
    owner = make_user()
    client = client_for(owner)
    resp = client.post('/api/rooms', json={'name': 'Book Club', 'type': 'public'})
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['room']['name'] == 'Book Club'
    assert body['room']['role'] == 'owner'
    assert body['usage']['rooms_created'] == 1

    with app.app_context():
        room = Room.query.filter_by(name='Book Club').one()
        assert membership.has_participant(room.id, owner)
        assert UserRoomUsage.query.filter_by(user_id=owner).one().monthly_rooms_created == 1


def test_create_room_validation(app, make_user, client_for):
    client = client_for(make_user())
    resp = client.post('/api/rooms', json={'name': 'Vault', 'type': 'secure'})
    assert resp.status_code == 422
    assert 'password' in resp.get_json()['errors']

    assert client.post('/api/rooms', json={'name': 'Dup'}).status_code == 201
    resp = client.post('/api/rooms', json={'name': 'Dup'})
    assert resp.status_code == 422
    assert 'name' in resp.get_json()['errors']


def test_monthly_room_limit(app, make_user, client_for):
    app.config['ROOM_MONTHLY_LIMIT'] = 2
    client = client_for(make_user())
    assert client.post('/api/rooms', json={'name': 'one'}).status_code == 201
    assert client.post('/api/rooms', json={'name': 'two'}).status_code == 201
    resp = client.post('/api/rooms', json={'name': 'three'})
    assert resp.status_code == 403
    usage = client.get('/api/rooms/usage').get_json()
    assert usage['rooms_created'] == 2
    assert usage['can_create'] is False


def test_join_public_room_approves_and_announces(app, make_user, make_room, client_for, recorder):
    owner, joiner = make_user(), make_user()
    room = make_room(owner)
    resp = client_for(joiner).post(f'/api/rooms/{room}/join')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'approved'
    event = recorder.last('user.joined')
    assert event is not None
    assert event.topics == [f'chat.room.{room}']
    assert event.payload['user']['id'] == joiner

    # Joining twice is a validation error
    assert client_for(joiner).post(f'/api/rooms/{room}/join').status_code == 422


def test_join_secure_room_needs_correct_password(app, make_user, make_room, client_for):
    owner, joiner = make_user(), make_user()
    room = make_room(owner, room_type='secure', password='letmein1')
    client = client_for(joiner)
    assert client.post(f'/api/rooms/{room}/join', json={'password': 'wrong'}).status_code == 422
    resp = client.post(f'/api/rooms/{room}/join', json={'password': 'letmein1'})
    assert resp.get_json()['status'] == 'approved'


def test_private_room_join_is_pending_until_approved(app, make_user, make_room, client_for, recorder):
    owner, joiner = make_user(), make_user()
    room = make_room(owner, room_type='private')
    resp = client_for(joiner).post(f'/api/rooms/{room}/join')
    assert resp.get_json()['status'] == 'pending'
    assert 'user.joined' not in recorder.names()

    # Pending members can't read the room yet
    assert client_for(joiner).get(f'/api/chat-rooms/{room}/messages').status_code == 403

    resp = client_for(owner).post(f'/api/rooms/{room}/members/{joiner}/approve')
    assert resp.status_code == 200
    assert 'user.joined' in recorder.names()
    assert client_for(joiner).get(f'/api/chat-rooms/{room}/messages').status_code == 200


def test_plain_member_cannot_approve(app, make_user, make_room, client_for):
    owner, member, joiner = make_user(), make_user(), make_user()
    room = make_room(owner, room_type='private', members=[member], pending=[joiner])
    resp = client_for(member).post(f'/api/rooms/{room}/members/{joiner}/approve')
    assert resp.status_code == 403


def test_reject_then_join_is_forbidden(app, make_user, make_room, client_for):
    owner, joiner = make_user(), make_user()
    room = make_room(owner, room_type='private', pending=[joiner])
    assert client_for(owner).post(f'/api/rooms/{room}/members/{joiner}/reject').status_code == 200
    assert client_for(joiner).post(f'/api/rooms/{room}/join').status_code == 403


def test_temporary_removal_cooldown(app, make_user, make_room):
    owner, member = make_user(), make_user()
    room = make_room(owner, members=[member])
    removed_at = datetime(2025, 1, 1, 12, 0)

    with app.app_context():
        actor = db.session.get(User, owner)
        target = db.session.get(User, member)
        membership.remove_member(room, actor, member, now=removed_at)
        assert not membership.has_participant(room, member)

        with pytest.raises(AuthorizationError):
            membership.join_room(room, target, now=removed_at + timedelta(hours=23))

        status = membership.join_room(room, target, now=removed_at + timedelta(hours=24, minutes=1))
        assert status == 'approved'
        assert membership.has_participant(room, member)


def test_permanent_ban_blocks_rejoin(app, make_user, make_room, client_for):
    owner, member = make_user(), make_user()
    room = make_room(owner, members=[member])
    resp = client_for(owner).post(f'/api/rooms/{room}/members/{member}/remove', json={'permanent': True})
    assert resp.get_json()['member']['status'] == 'banned'
    assert client_for(member).post(f'/api/rooms/{room}/join').status_code == 403


def test_removal_rules(app, make_user, make_room, client_for):
    owner, mod_a, mod_b, member = (make_user() for _ in range(4))
    room = make_room(owner, members=[member], moderators=[mod_a, mod_b])

    # Nobody removes the owner
    assert client_for(mod_a).post(f'/api/rooms/{room}/members/{owner}/remove').status_code == 403
    # Only the owner removes moderators
    assert client_for(mod_a).post(f'/api/rooms/{room}/members/{mod_b}/remove').status_code == 403
    assert client_for(owner).post(f'/api/rooms/{room}/members/{mod_b}/remove').status_code == 200
    # Moderators remove plain members
    assert client_for(mod_a).post(f'/api/rooms/{room}/members/{member}/remove').status_code == 200


def test_promote_and_demote(app, make_user, make_room, client_for):
    owner, member = make_user(), make_user()
    room = make_room(owner, members=[member])
    assert client_for(member).post(f'/api/rooms/{room}/members/{member}/promote').status_code == 403
    resp = client_for(owner).post(f'/api/rooms/{room}/members/{member}/promote')
    assert resp.get_json()['member']['role'] == 'moderator'
    assert client_for(owner).post(f'/api/rooms/{room}/members/{member}/promote').status_code == 422
    resp = client_for(owner).post(f'/api/rooms/{room}/members/{member}/demote')
    assert resp.get_json()['member']['role'] == 'member'


def test_leave_and_owner_cannot_leave(app, make_user, make_room, client_for):
    owner, member = make_user(), make_user()
    room = make_room(owner, members=[member])
    assert client_for(owner).post(f'/api/rooms/{room}/leave').status_code == 422
    assert client_for(member).post(f'/api/rooms/{room}/leave').status_code == 200
    assert client_for(member).get(f'/api/chat-rooms/{room}/messages').status_code == 403


def test_members_list_is_for_participants(app, make_user, make_room, client_for):
    owner, member, outsider = make_user(), make_user(), make_user()
    room = make_room(owner, members=[member])
    assert client_for(outsider).get(f'/api/rooms/{room}/members').status_code == 403
    members = client_for(member).get(f'/api/rooms/{room}/members').get_json()['members']
    roles = {m['user']['id']: m['role'] for m in members}
    assert roles == {owner: 'owner', member: 'member'}


def test_delete_room_owner_only_and_cascades(app, make_user, make_room, client_for):
    owner, member = make_user(), make_user()
    room = make_room(owner, members=[member])
    client_for(member).post(f'/api/chat-rooms/{room}/messages', json={'message': 'hi'})

    assert client_for(member).delete(f'/api/rooms/{room}').status_code == 403
    assert client_for(owner).delete(f'/api/rooms/{room}').status_code == 200
    assert client_for(owner).get(f'/api/rooms/{room}').status_code == 404

    with app.app_context():
        assert RoomMember.query.filter_by(room_id=room).count() == 0


def test_list_rooms_only_shows_joined(app, make_user, make_room, client_for):
    owner, member = make_user(), make_user()
    joined = make_room(owner, members=[member])
    make_room(owner)
    rooms = client_for(member).get('/api/rooms').get_json()['rooms']
    assert [r['id'] for r in rooms] == [joined]
