# Fan-out notifier: pushes typed events to Socket.IO rooms
#
# Delivery is at-most-once to whoever is subscribed right now. Publishing runs
# after the database commit and never raises: a failed broadcast is logged and
# the write it describes stays committed.

import logging
import re

from flask import current_app

from app.extensions import socketio
from app.services import membership

logger = logging.getLogger(__name__)

_ROOM_TOPIC = re.compile(r'^chat\.room\.(\d+)$')
_USER_TOPIC = re.compile(r'^user\.(\d+)$')
_PRODUCT_TOPIC = re.compile(r'^product\.(\d+)$')
PUBLIC_TOPICS = ('store.products',)


class FanoutNotifier:

    def __init__(self, sio=None):
        self.socketio = sio or socketio

    def publish(self, event):
        # Emit `event` to each of its topics; returns the number of topics reached
        try:
            topics = event.topics()
            payload = event.payload()
        except Exception:
            logger.exception('[FANOUT] failed to build %s', getattr(event, 'name', event))
            return 0

        delivered = 0
        for topic in topics:
            try:
                self.socketio.emit(event.name, payload, to=topic)
                delivered += 1
            except Exception:
                logger.exception('[FANOUT] emit %s to %s failed', event.name, topic)
        logger.debug('[FANOUT] %s -> %s', event.name, ', '.join(topics))
        return delivered


def get_notifier():
    # The app's notifier; tests swap in a recording double via app.extensions
    return current_app.extensions['notifier']


def publish(event):
    try:
        return get_notifier().publish(event)
    except Exception:
        logger.exception('[FANOUT] publish %s failed', getattr(event, 'name', event))
        return 0


def authorize_topic(topic, user):
    # Subscribe-time check; re-queries membership on every call
    if not isinstance(topic, str):
        return False
    if topic in PUBLIC_TOPICS or _PRODUCT_TOPIC.match(topic):
        return True

    authenticated = user is not None and getattr(user, 'is_authenticated', False)
    if not authenticated:
        return False

    match = _USER_TOPIC.match(topic)
    if match:
        return int(match.group(1)) == user.id

    match = _ROOM_TOPIC.match(topic)
    if match:
        return membership.has_participant(int(match.group(1)), user.id)

    return False
