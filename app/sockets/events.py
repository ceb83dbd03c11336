# Socket.IO event handlers
#
# Topics are Socket.IO rooms. A client only ever joins a topic through
# `subscribe`, which re-checks access at that moment; the personal topic
# user.{id} is joined automatically on connect.

import logging

from flask import request
from flask_socketio import join_room, leave_room
from flask_login import current_user

from app.extensions import socketio
from app.services.events import user_topic
from app.services.notifier import authorize_topic

logger = logging.getLogger(__name__)


def _user_label():
    if getattr(current_user, 'is_authenticated', False):
        return f'user {current_user.id}'
    return 'anonymous'


@socketio.on('connect')
def on_connect(auth=None):
    # Anonymous connections are allowed; they can only reach public topics
    if getattr(current_user, 'is_authenticated', False):
        room_name = user_topic(current_user.id)
        join_room(room_name)
        logger.info('[SOCKET CONNECT] user %s joined %s (sid %s)', current_user.id, room_name, request.sid)
    else:
        logger.info('[SOCKET CONNECT] anonymous connection (sid %s)', request.sid)


@socketio.on('disconnect')
def on_disconnect(*args):
    # Nothing is persisted; presence rows simply age out of the online window
    logger.info('[SOCKET DISCONNECT] %s (sid %s)', _user_label(), request.sid)


@socketio.on('subscribe')
def on_subscribe(data):
    topic = (data or {}).get('topic') if isinstance(data, dict) else None
    if not topic or not isinstance(topic, str):
        return {'success': False, 'topic': topic, 'error': 'topic is required'}

    user = current_user if getattr(current_user, 'is_authenticated', False) else None
    if not authorize_topic(topic, user):
        logger.info('[SOCKET SUBSCRIBE] %s refused %s', _user_label(), topic)
        return {'success': False, 'topic': topic, 'error': 'Unauthorized'}

    join_room(topic)
    logger.debug('[SOCKET SUBSCRIBE] %s joined %s', _user_label(), topic)
    return {'success': True, 'topic': topic}


@socketio.on('unsubscribe')
def on_unsubscribe(data):
    topic = (data or {}).get('topic') if isinstance(data, dict) else None
    if not topic or not isinstance(topic, str):
        return {'success': False, 'topic': topic, 'error': 'topic is required'}
    leave_room(topic)
    logger.debug('[SOCKET UNSUBSCRIBE] %s left %s', _user_label(), topic)
    return {'success': True, 'topic': topic}
