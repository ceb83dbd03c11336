# Room membership: the access gate every room-scoped operation goes through,
# plus the room lifecycle that produces memberships in the first place.
#
# Nothing is cached; each check re-reads the database.

import logging
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash, check_password_hash

from app.extensions import db
from app.functions.errors import AuthorizationError, NotFoundError, ValidationError
from app.models import Room, RoomMember, User, UserRoomUsage
from app.models.chat import MEMBER_ROLES, ROOM_TYPES
from app.services.events import UserJoinedRoom

logger = logging.getLogger(__name__)

ROOM_PASSWORD_MIN_LENGTH = 6
ROOM_NAME_MAX_LENGTH = 150


def _notify(event):
    # notifier imports this module for topic checks, so resolve publish at call time
    from app.services.notifier import publish
    publish(event)


def get_room(room_id):
    room = db.session.get(Room, room_id)
    if room is None:
        raise NotFoundError('Room not found')
    return room


def _membership(room_id, user_id):
    return RoomMember.query.filter_by(room_id=room_id, user_id=user_id).first()


# Gate

def has_participant(room_id, user_id):
    # Owner or approved member; a missing room is simply "no"
    if room_id is None or user_id is None:
        return False
    room = db.session.get(Room, room_id)
    if room is None:
        return False
    if room.owner_id == user_id:
        return True
    return RoomMember.query.filter_by(
        room_id=room_id, user_id=user_id, status='approved'
    ).first() is not None


def require_participant(room_id, user_id):
    # Returns the room, or raises 404 (no such room) / 403 (not a participant)
    room = get_room(room_id)
    if not has_participant(room.id, user_id):
        logger.info('[GATE] user %s denied access to room %s', user_id, room_id)
        raise AuthorizationError('Unauthorized')
    return room


def get_role(room_id, user_id):
    room = db.session.get(Room, room_id)
    if room is None:
        return None
    if room.owner_id == user_id:
        return 'owner'
    member = RoomMember.query.filter_by(
        room_id=room_id, user_id=user_id, status='approved'
    ).first()
    return member.role if member else None


def _require_manager(room, user_id, action):
    # Owner or moderator may manage memberships
    if get_role(room.id, user_id) not in ('owner', 'moderator'):
        raise AuthorizationError(f'You are not authorized to {action} members')


# Monthly creation limit

def usage_for_month(user_id, now=None):
    now = now or datetime.utcnow()
    return UserRoomUsage.query.filter_by(
        user_id=user_id, usage_year=now.year, usage_month=now.month
    ).first()


def usage_summary(user_id, now=None):
    now = now or datetime.utcnow()
    usage = usage_for_month(user_id, now)
    used = usage.monthly_rooms_created if usage else 0
    limit = current_app.config['ROOM_MONTHLY_LIMIT']
    return {
        'year': now.year,
        'month': now.month,
        'rooms_created': used,
        'monthly_limit': limit,
        'remaining': max(limit - used, 0),
        'can_create': used < limit,
    }


def _record_room_creation(user_id, now):
    usage = usage_for_month(user_id, now)
    if usage is None:
        usage = UserRoomUsage(user_id=user_id, usage_year=now.year,
                              usage_month=now.month, monthly_rooms_created=0)
        db.session.add(usage)
    usage.monthly_rooms_created = (usage.monthly_rooms_created or 0) + 1
    return usage


# Room lifecycle

def create_room(owner, name, room_type='public', password=None, description=None,
                is_commercial=False, now=None):
    now = now or datetime.utcnow()
    name = (name or '').strip()
    errors = {}
    if not name:
        errors['name'] = ['Room name is required.']
    elif len(name) > ROOM_NAME_MAX_LENGTH:
        errors['name'] = [f'Room name must not exceed {ROOM_NAME_MAX_LENGTH} characters.']
    elif Room.query.filter_by(name=name).first():
        errors['name'] = ['The room name has already been taken.']
    if room_type not in ROOM_TYPES:
        errors['type'] = ['The selected type is invalid.']
    elif room_type == 'secure':
        if not password:
            errors['password'] = ['Password is required for secure rooms.']
        elif len(password) < ROOM_PASSWORD_MIN_LENGTH:
            errors['password'] = [f'Password must be at least {ROOM_PASSWORD_MIN_LENGTH} characters.']
    if errors:
        raise ValidationError('The given data was invalid', errors)

    summary = usage_summary(owner.id, now)
    if not summary['can_create']:
        raise AuthorizationError(
            f"Monthly room limit of {summary['monthly_limit']} reached. Try again next month.")

    room = Room(
        owner_id=owner.id,
        name=name,
        description=description,
        type=room_type,
        password=generate_password_hash(password) if room_type == 'secure' else None,
        is_commercial=bool(is_commercial),
        created_at=now,
    )
    db.session.add(room)
    db.session.flush()
    # The owner also gets an approved moderator row
    db.session.add(RoomMember(room_id=room.id, user_id=owner.id,
                              role='moderator', status='approved'))
    _record_room_creation(owner.id, now)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError.for_field('name', 'The room name has already been taken.')

    logger.info('[ROOM] user %s created %s room %s (%s)', owner.id, room_type, room.id, name)
    return room


def list_rooms(user):
    # Rooms the user owns or is an approved member of
    member_room_ids = db.session.query(RoomMember.room_id).filter_by(
        user_id=user.id, status='approved')
    return Room.query.filter(
        db.or_(Room.owner_id == user.id, Room.id.in_(member_room_ids))
    ).order_by(Room.created_at.desc(), Room.id.desc()).all()


def join_room(room_id, user, password=None, now=None):
    # Returns the resulting membership status ('approved' or 'pending')
    now = now or datetime.utcnow()
    room = get_room(room_id)

    if room.owner_id == user.id:
        raise ValidationError('You are already a member of this room')

    existing = _membership(room.id, user.id)
    if existing is not None:
        if existing.status == 'approved':
            raise ValidationError('You are already a member of this room')
        if existing.status == 'pending':
            raise ValidationError('Your request to join this room is pending approval')
        if existing.status == 'rejected':
            raise AuthorizationError('Your request to join this room was rejected')
        if existing.status == 'banned':
            raise AuthorizationError(
                'You have been permanently banned from this room and cannot rejoin')
        if existing.status == 'removed':
            cooldown = timedelta(hours=current_app.config['REJOIN_COOLDOWN_HOURS'])
            rejoin_at = (existing.removed_at or now) + cooldown
            if now < rejoin_at:
                hours_left = max(int((rejoin_at - now).total_seconds() // 3600), 1)
                raise AuthorizationError(
                    'You have been temporarily removed from this room. '
                    f'You can rejoin after {hours_left} hours.')
            existing.status = 'approved'
            existing.removed_at = None
            db.session.commit()
            logger.info('[ROOM] user %s rejoined room %s after removal', user.id, room.id)
            _notify(UserJoinedRoom(user=user, room=room))
            return existing.status

    if room.type == 'public':
        status = 'approved'
    elif room.type == 'secure':
        if not password:
            raise ValidationError.for_field('password', 'The password field is required.')
        if not room.password or not check_password_hash(room.password, password):
            raise ValidationError.for_field('password', 'Incorrect password')
        status = 'approved'
    else:
        status = 'pending'

    db.session.add(RoomMember(room_id=room.id, user_id=user.id, role='member', status=status))
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent join for the same pair
        db.session.rollback()
        raise ValidationError('You are already a member of this room')

    logger.info('[ROOM] user %s joined room %s as %s', user.id, room.id, status)
    if status == 'approved':
        _notify(UserJoinedRoom(user=user, room=room))
    return status


def approve_member(room_id, actor, user_id):
    room = get_room(room_id)
    _require_manager(room, actor.id, 'approve')
    member = RoomMember.query.filter_by(room_id=room.id, user_id=user_id, status='pending').first()
    if member is None:
        raise NotFoundError('No pending membership request found')
    member.status = 'approved'
    db.session.commit()
    logger.info('[ROOM] user %s approved user %s in room %s', actor.id, user_id, room.id)
    _notify(UserJoinedRoom(user=member.user, room=room))
    return member


def reject_member(room_id, actor, user_id):
    room = get_room(room_id)
    _require_manager(room, actor.id, 'reject')
    member = RoomMember.query.filter_by(room_id=room.id, user_id=user_id, status='pending').first()
    if member is None:
        raise NotFoundError('No pending membership request found')
    member.status = 'rejected'
    db.session.commit()
    logger.info('[ROOM] user %s rejected user %s in room %s', actor.id, user_id, room.id)
    return member


def remove_member(room_id, actor, user_id, permanent=False, now=None):
    # Temporary removal (rejoin after the cooldown) or a permanent ban
    room = get_room(room_id)
    _require_manager(room, actor.id, 'remove')
    if user_id == room.owner_id:
        raise AuthorizationError('Cannot remove the room owner')

    member = _membership(room.id, user_id)
    if member is None:
        raise NotFoundError('User is not a member of this room')
    if member.is_moderator and room.owner_id != actor.id:
        raise AuthorizationError('Only the room owner can remove moderators')

    if permanent:
        member.status = 'banned'
    else:
        member.status = 'removed'
        member.removed_at = now or datetime.utcnow()
    db.session.commit()
    logger.info('[ROOM] user %s %s user %s from room %s', actor.id,
                'banned' if permanent else 'removed', user_id, room.id)
    return member


def set_member_role(room_id, actor, user_id, role):
    # Promote to / demote from moderator; owner only
    room = get_room(room_id)
    if room.owner_id != actor.id:
        raise AuthorizationError('Only the room owner can change member roles')
    if user_id == room.owner_id:
        raise ValidationError('Room owner already has the highest privileges')
    if role not in MEMBER_ROLES:
        raise ValidationError.for_field('role', 'The selected role is invalid.')
    member = RoomMember.query.filter_by(room_id=room.id, user_id=user_id, status='approved').first()
    if member is None:
        raise NotFoundError('User is not an approved member of this room')
    if member.role == role:
        raise ValidationError(f'User is already a {role}')
    member.role = role
    db.session.commit()
    logger.info('[ROOM] user %s is now %s in room %s', user_id, role, room.id)
    return member


def leave_room(room_id, user):
    room = get_room(room_id)
    if room.owner_id == user.id:
        raise ValidationError('Room owners cannot leave. Transfer ownership or delete the room.')
    deleted = RoomMember.query.filter_by(room_id=room.id, user_id=user.id).delete()
    if not deleted:
        raise ValidationError('You are not a member of this room')
    db.session.commit()
    logger.info('[ROOM] user %s left room %s', user.id, room.id)


def delete_room(room_id, actor):
    # Owner only; memberships, messages, presence rows and posts go with it
    room = get_room(room_id)
    if room.owner_id != actor.id:
        raise AuthorizationError('Only the room owner can delete this room')
    db.session.delete(room)
    db.session.commit()
    logger.info('[ROOM] user %s deleted room %s', actor.id, room_id)


def list_members(room_id, viewer):
    room = require_participant(room_id, viewer.id)
    rows = (RoomMember.query
            .filter_by(room_id=room.id, status='approved')
            .join(User, User.id == RoomMember.user_id)
            .order_by(RoomMember.created_at.asc(), RoomMember.id.asc())
            .all())
    members = []
    for row in rows:
        data = row.to_dict()
        data['role'] = 'owner' if row.user_id == room.owner_id else row.role
        members.append(data)
    return members


def pending_requests(room_id, actor):
    room = get_room(room_id)
    _require_manager(room, actor.id, 'view pending')
    rows = RoomMember.query.filter_by(room_id=room.id, status='pending') \
        .order_by(RoomMember.created_at.asc()).all()
    return [row.to_dict() for row in rows]
