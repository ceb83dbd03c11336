# Presence: who is in a room right now, from per-(room, user) heartbeat rows
#
# Two separate thresholds apply. Listing treats a row as online while it is
# younger than PRESENCE_ONLINE_WINDOW_MINUTES; the sweep only deletes rows
# older than PRESENCE_SWEEP_TTL_MINUTES.

import logging
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.extensions import db
from app.models import RoomOnlineMember, User
from app.services import membership
from app.services.events import UserOnlineStatusChanged
from app.services.notifier import publish

logger = logging.getLogger(__name__)


def _iso(value):
    return value.isoformat() + 'Z' if value else None


def _upsert(room_id, user_id, now):
    # last_seen only ever moves forward; a racing insert is retried as an update
    row = RoomOnlineMember.query.filter_by(room_id=room_id, user_id=user_id).first()
    if row is None:
        row = RoomOnlineMember(room_id=room_id, user_id=user_id, last_seen=now)
        db.session.add(row)
        try:
            db.session.commit()
            return row
        except IntegrityError:
            db.session.rollback()
            logger.debug('[PRESENCE] concurrent insert for room %s user %s, updating', room_id, user_id)
            row = RoomOnlineMember.query.filter_by(room_id=room_id, user_id=user_id).one()

    if row.last_seen is None or now > row.last_seen:
        row.last_seen = now
    db.session.commit()
    return row


def list_online(room_id, now=None):
    now = now or datetime.utcnow()
    window = timedelta(minutes=current_app.config['PRESENCE_ONLINE_WINDOW_MINUTES'])
    rows = (db.session.query(RoomOnlineMember, User)
            .join(User, User.id == RoomOnlineMember.user_id)
            .filter(RoomOnlineMember.room_id == room_id)
            .filter(RoomOnlineMember.last_seen >= now - window)
            .order_by(RoomOnlineMember.last_seen.desc(), RoomOnlineMember.id.desc())
            .all())
    return [
        {
            'id': user.id,
            'name': user.name,
            'avatar': user.avatar,
            'email': user.email,
            'last_seen': _iso(row.last_seen),
        }
        for row, user in rows
    ]


def mark_online(room_id, user, now=None):
    now = now or datetime.utcnow()
    membership.require_participant(room_id, user.id)
    _upsert(room_id, user.id, now)
    online = list_online(room_id, now)
    logger.info('[PRESENCE] user %s online in room %s (%d online)', user.id, room_id, len(online))
    publish(UserOnlineStatusChanged(user=user, room_id=room_id, is_online=True, online_members=online))
    return online


def mark_offline(room_id, user, now=None):
    # No gate: leaving is always allowed, but the room has to exist
    now = now or datetime.utcnow()
    membership.get_room(room_id)
    RoomOnlineMember.query.filter_by(room_id=room_id, user_id=user.id).delete()
    db.session.commit()
    online = list_online(room_id, now)
    logger.info('[PRESENCE] user %s offline in room %s (%d online)', user.id, room_id, len(online))
    publish(UserOnlineStatusChanged(user=user, room_id=room_id, is_online=False, online_members=online))
    return online


def heartbeat(room_id, user, now=None):
    now = now or datetime.utcnow()
    membership.require_participant(room_id, user.id)
    row = _upsert(room_id, user.id, now)
    return row.last_seen


def sweep_stale(now=None):
    # Delete rows past the sweep TTL; safe to run any number of times
    now = now or datetime.utcnow()
    cutoff = now - timedelta(minutes=current_app.config['PRESENCE_SWEEP_TTL_MINUTES'])
    deleted = (RoomOnlineMember.query
               .filter(RoomOnlineMember.last_seen < cutoff)
               .delete(synchronize_session=False))
    db.session.commit()
    logger.info('[PRESENCE] swept %d stale online rows (older than %s)', deleted, cutoff.isoformat())
    return deleted
