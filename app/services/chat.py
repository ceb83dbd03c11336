# Room chat: post, edit, delete, page through messages, typing indicator
#
# Room chat messages are hard-deleted. Every path checks room access
# before it touches anything, and broadcasts only after the commit.

import logging
import math
from datetime import datetime

from flask import current_app

from app.extensions import db
from app.functions.errors import AuthorizationError, NotFoundError, ValidationError
from app.functions.files import validate_upload, save_uploaded_file, file_extension
from app.functions.storage import delete_stored_file
from app.models import ChatMessage
from app.services import membership
from app.services.events import MessageSent, MessageEdited, MessageDeleted, UserTyping
from app.services.notifier import publish

logger = logging.getLogger(__name__)

MESSAGE_TYPES = ('text', 'image', 'document', 'voice', 'video')
UPLOAD_PREFIX = 'chat'


def _check_body(body, required):
    max_length = current_app.config['CHAT_MESSAGE_MAX_LENGTH']
    if body is not None and not isinstance(body, str):
        raise ValidationError.for_field('message', 'The message must be a string.')
    if required and not (body or '').strip():
        raise ValidationError.for_field('message', 'The message field is required.')
    if body and len(body) > max_length:
        raise ValidationError.for_field(
            'message', f'The message may not be greater than {max_length} characters.')


def post_message(room_id, user, body=None, message_type='text', upload=None):
    # `upload` is a werkzeug FileStorage (or None)
    membership.require_participant(room_id, user.id)

    message_type = message_type or 'text'
    if message_type not in MESSAGE_TYPES:
        raise ValidationError.for_field('type', 'The selected type is invalid.')
    _check_body(body, required=False)

    has_file = upload is not None and bool(upload.filename)
    if not (body or '').strip() and not has_file:
        raise ValidationError('Either message or file is required')

    file_url = None
    if has_file:
        if message_type == 'text':
            raise ValidationError.for_field('type', 'A file message needs a media type.')
        checked = validate_upload(upload, message_type)
        stored = save_uploaded_file(checked, UPLOAD_PREFIX, message_type)
        file_url = stored['file_url']
        if not (body or '').strip():
            body = checked['filename']

    now = datetime.utcnow()
    message = ChatMessage(
        room_id=room_id,
        user_id=user.id,
        message=body or '',
        type=message_type,
        file_url=file_url,
        status='sent',
        created_at=now,
        updated_at=now,
    )
    db.session.add(message)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        if file_url:
            delete_stored_file(file_url)
        raise
    logger.info('[CHAT] user %s posted %s message %s in room %s',
                user.id, message_type, message.id, room_id)

    publish(MessageSent(message=message))
    return message.to_dict()


def _get_message(message_id):
    message = db.session.get(ChatMessage, message_id)
    if message is None:
        raise NotFoundError('Message not found')
    return message


def edit_message(message_id, user, new_body):
    message = _get_message(message_id)
    membership.require_participant(message.room_id, user.id)
    if message.user_id != user.id:
        raise AuthorizationError('You can only edit your own messages')
    if message.type != 'text':
        raise ValidationError.for_field('type', 'Only text messages can be edited.')
    _check_body(new_body, required=True)

    message.message = new_body
    message.status = 'edited'
    message.updated_at = datetime.utcnow()
    db.session.commit()
    logger.info('[CHAT] user %s edited message %s', user.id, message.id)

    publish(MessageEdited(message=message, user=user))
    return message.to_dict()


def can_delete(message, user):
    # Author, room owner, or a moderator acting on a non-owner's message
    if message.user_id == user.id:
        return True
    role = membership.get_role(message.room_id, user.id)
    if role == 'owner':
        return True
    if role == 'moderator':
        room = membership.get_room(message.room_id)
        return message.user_id != room.owner_id
    return False


def delete_message(message_id, user):
    message = _get_message(message_id)
    membership.require_participant(message.room_id, user.id)
    if not can_delete(message, user):
        raise AuthorizationError('You are not allowed to delete this message')

    room_id = message.room_id
    file_url = message.file_url
    db.session.delete(message)
    db.session.commit()
    logger.info('[CHAT] user %s deleted message %s in room %s', user.id, message_id, room_id)

    if file_url:
        delete_stored_file(file_url)
    publish(MessageDeleted(message_id=message_id, room_id=room_id, user=user))
    return True


def list_messages(room_id, user, page=1, per_page=None):
    membership.require_participant(room_id, user.id)
    per_page = per_page or current_app.config['MESSAGES_PAGE_SIZE']
    try:
        page = max(int(page), 1)
    except (TypeError, ValueError):
        page = 1

    query = ChatMessage.query.filter_by(room_id=room_id)
    total = query.count()
    rows = (query
            .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all())
    return {
        'data': [row.to_dict() for row in rows],
        'current_page': page,
        'per_page': per_page,
        'total': total,
        'last_page': max(math.ceil(total / per_page), 1),
    }


def send_typing(room_id, user, is_typing):
    # Ephemeral: nothing is stored
    membership.require_participant(room_id, user.id)
    publish(UserTyping(user=user, room_id=room_id, is_typing=bool(is_typing)))


def upload_file(room_id, user, upload, media_type):
    # Store a file ahead of posting; the message can then reference the URL
    membership.require_participant(room_id, user.id)
    checked = validate_upload(upload, media_type)
    stored = save_uploaded_file(checked, UPLOAD_PREFIX, media_type)
    logger.info('[CHAT] user %s uploaded %s to room %s', user.id, stored['file_url'], room_id)
    return {
        'file_url': stored['file_url'],
        'original_name': checked['filename'],
        'file_size': stored['file_size'],
        'mime_type': stored['mime_type'],
        'extension': file_extension(checked['filename']),
    }
