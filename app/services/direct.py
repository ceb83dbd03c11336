# Direct messages between two participants of the same room
#
# Direct messages are soft-deleted (is_deleted + deleted_at) and drop out of
# every read path once deleted. Events go to the personal topics of both
# participants, except typing which only the receiver gets.

import logging
from datetime import datetime

from flask import current_app

from app.extensions import db
from app.functions.errors import AuthorizationError, NotFoundError, ValidationError
from app.functions.files import validate_upload, save_uploaded_file
from app.functions.storage import delete_stored_file
from app.models import DirectMessage, User, conversation_id
from app.services import membership
from app.services.events import (
    DirectMessageSent, DirectMessageEdited, DirectMessageDeleted,
    DirectMessageTyping, DirectMessageRead,
)
from app.services.notifier import publish

logger = logging.getLogger(__name__)

MESSAGE_TYPES = ('text', 'image')
UPLOAD_PREFIX = 'direct-messages'


def _check_body(body, required):
    max_length = current_app.config['DIRECT_MESSAGE_MAX_LENGTH']
    if body is not None and not isinstance(body, str):
        raise ValidationError.for_field('message', 'The message must be a string.')
    if required and not (body or '').strip():
        raise ValidationError.for_field('message', 'The message field is required.')
    if body and len(body) > max_length:
        raise ValidationError.for_field(
            'message', f'The message may not be greater than {max_length} characters.')


def _get_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError('User not found')
    return user


def _check_pair(room_id, sender, receiver_id):
    # Shared by send and typing: receiver exists, isn't the sender, both are in the room
    receiver = _get_user(receiver_id)
    if receiver.id == sender.id:
        raise ValidationError('Cannot message yourself')
    membership.require_participant(room_id, sender.id)
    if not membership.has_participant(room_id, receiver.id):
        raise ValidationError('Receiver is not a member of this room')
    return receiver


def _pair_filter(room_id, user_a, user_b):
    return db.and_(
        DirectMessage.room_id == room_id,
        db.or_(
            db.and_(DirectMessage.sender_id == user_a, DirectMessage.receiver_id == user_b),
            db.and_(DirectMessage.sender_id == user_b, DirectMessage.receiver_id == user_a),
        ),
    )


def send_direct(room_id, sender, receiver_id, body=None, message_type='text', upload=None):
    message_type = message_type or 'text'
    if message_type not in MESSAGE_TYPES:
        raise ValidationError.for_field('type', 'The selected type is invalid.')
    _check_body(body, required=False)
    has_file = upload is not None and bool(upload.filename)
    if not (body or '').strip() and not has_file:
        raise ValidationError('Either message or file is required')

    receiver = _check_pair(room_id, sender, receiver_id)

    stored = None
    if has_file:
        if message_type != 'image':
            raise ValidationError.for_field('type', 'Only image attachments are supported.')
        checked = validate_upload(upload, 'image')
        stored = save_uploaded_file(checked, UPLOAD_PREFIX, 'image')

    message = DirectMessage(
        room_id=room_id,
        sender_id=sender.id,
        receiver_id=receiver.id,
        message=body or None,
        type=message_type,
    )
    if stored:
        message.file_url = stored['file_url']
        message.file_name = stored['file_name']
        message.file_size = stored['file_size']
        message.mime_type = stored['mime_type']
    db.session.add(message)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        if stored:
            delete_stored_file(stored['file_url'])
        raise
    logger.info('[DM] user %s -> user %s in room %s (message %s)',
                sender.id, receiver.id, room_id, message.id)

    publish(DirectMessageSent(message=message))
    return message.to_dict()


def get_conversation(room_id, viewer, other_id, limit=None, offset=0, now=None):
    # Newest first; opening a conversation marks the other side's messages as read
    membership.require_participant(room_id, viewer.id)
    other = _get_user(other_id)
    if other.id == viewer.id:
        raise ValidationError('Cannot message yourself')
    limit = limit or current_app.config['DIRECT_MESSAGES_PAGE_SIZE']

    rows = (DirectMessage.query
            .filter(_pair_filter(room_id, viewer.id, other.id))
            .filter(DirectMessage.is_deleted.is_(False))
            .order_by(DirectMessage.created_at.desc(), DirectMessage.id.desc())
            .offset(max(int(offset or 0), 0))
            .limit(limit)
            .all())
    messages = [row.to_dict() for row in rows]

    marked = _mark_from(room_id, sender_id=other.id, receiver_id=viewer.id, now=now)
    db.session.commit()
    if marked:
        publish(DirectMessageRead(
            room_id=room_id,
            receiver_id=viewer.id,
            sender_id=other.id,
            conversation_id=conversation_id(room_id, viewer.id, other.id),
        ))

    return {
        'messages': messages,
        'conversation_id': conversation_id(room_id, viewer.id, other.id),
        'other_user': other.to_brief(),
    }


def list_conversations(room_id, viewer):
    membership.require_participant(room_id, viewer.id)
    rows = (DirectMessage.query
            .filter(DirectMessage.room_id == room_id)
            .filter(db.or_(DirectMessage.sender_id == viewer.id,
                           DirectMessage.receiver_id == viewer.id))
            .filter(DirectMessage.is_deleted.is_(False))
            .order_by(DirectMessage.created_at.desc(), DirectMessage.id.desc())
            .all())

    conversations = []
    seen = set()
    for row in rows:
        other_id = row.other_participant_id(viewer.id)
        if other_id in seen:
            continue
        seen.add(other_id)
        other = row.receiver if row.sender_id == viewer.id else row.sender
        conversations.append({
            'conversation_id': row.conversation_id,
            'other_user': other.to_brief() if other else None,
            'last_message': row.to_dict(),
            'unread_count': unread_count(viewer.id, room_id=room_id, sender_id=other_id),
            'room_id': room_id,
            'updated_at': row.created_at.isoformat() + 'Z' if row.created_at else None,
        })
    return conversations


def _mark_from(room_id, sender_id, receiver_id, now=None):
    return (DirectMessage.query
            .filter_by(room_id=room_id, sender_id=sender_id, receiver_id=receiver_id)
            .filter(DirectMessage.read_at.is_(None))
            .filter(DirectMessage.is_deleted.is_(False))
            .update({DirectMessage.read_at: now or datetime.utcnow()},
                    synchronize_session=False))


def mark_read(room_id, viewer, other_id, now=None):
    membership.get_room(room_id)
    if not (membership.has_participant(room_id, viewer.id)
            and membership.has_participant(room_id, other_id)):
        raise AuthorizationError('User not in room')

    updated = _mark_from(room_id, sender_id=other_id, receiver_id=viewer.id, now=now)
    db.session.commit()
    logger.info('[DM] user %s read %d messages from user %s in room %s',
                viewer.id, updated, other_id, room_id)

    publish(DirectMessageRead(
        room_id=room_id,
        receiver_id=viewer.id,
        sender_id=other_id,
        conversation_id=conversation_id(room_id, viewer.id, other_id),
    ))
    return updated


def _get_room_message(room_id, message_id):
    message = db.session.get(DirectMessage, message_id)
    if message is None or message.room_id != room_id or message.is_deleted:
        raise NotFoundError('Message not found in this room')
    return message


def edit_direct(room_id, message_id, user, new_body):
    membership.require_participant(room_id, user.id)
    message = _get_room_message(room_id, message_id)
    if message.sender_id != user.id:
        raise AuthorizationError('You can only edit your own messages')
    if message.type != 'text':
        raise ValidationError.for_field('type', 'Only text messages can be edited.')
    _check_body(new_body, required=True)

    message.message = new_body
    message.edited_at = datetime.utcnow()
    db.session.commit()
    logger.info('[DM] user %s edited message %s', user.id, message.id)

    publish(DirectMessageEdited(message=message))
    return message.to_dict()


def delete_direct(room_id, message_id, user):
    membership.require_participant(room_id, user.id)
    message = _get_room_message(room_id, message_id)
    if message.sender_id != user.id:
        raise AuthorizationError('You can only delete your own messages')

    message.is_deleted = True
    message.deleted_at = datetime.utcnow()
    file_url = message.file_url
    db.session.commit()
    logger.info('[DM] user %s deleted message %s', user.id, message.id)

    if file_url:
        delete_stored_file(file_url)
    publish(DirectMessageDeleted(
        message_id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        receiver_id=message.receiver_id,
        room_id=message.room_id,
    ))
    return True


def send_dm_typing(room_id, sender, receiver_id, is_typing):
    receiver = _check_pair(room_id, sender, receiver_id)
    publish(DirectMessageTyping(
        sender=sender,
        receiver_id=receiver.id,
        conversation_id=conversation_id(room_id, sender.id, receiver.id),
        is_typing=bool(is_typing),
    ))


def unread_count(receiver_id, room_id=None, sender_id=None):
    query = (DirectMessage.query
             .filter(DirectMessage.receiver_id == receiver_id)
             .filter(DirectMessage.read_at.is_(None))
             .filter(DirectMessage.is_deleted.is_(False)))
    if room_id is not None:
        query = query.filter(DirectMessage.room_id == room_id)
    if sender_id is not None:
        query = query.filter(DirectMessage.sender_id == sender_id)
    return query.count()
