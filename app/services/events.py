# Broadcast events
#
# One class per wire event. `name` is the event name clients listen for,
# `topics()` the Socket.IO rooms it goes to, `payload()` the JSON body.
# Payload field sets are part of the client contract; keep them stable.

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


def room_topic(room_id):
    return f'chat.room.{int(room_id)}'


def user_topic(user_id):
    return f'user.{int(user_id)}'


def product_topic(product_id):
    return f'product.{int(product_id)}'


STORE_PRODUCTS_TOPIC = 'store.products'


def utc_timestamp(now=None):
    now = now or datetime.utcnow()
    return now.isoformat(timespec='microseconds') + 'Z'


def _time_ago(created_at, now=None):
    if created_at is None:
        return 'now'
    seconds = int(((now or datetime.utcnow()) - created_at).total_seconds())
    if seconds < 60:
        return 'now' if seconds < 10 else f'{seconds} seconds ago'
    for unit, size in (('day', 86400), ('hour', 3600), ('minute', 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return 'now'


def _brief(user):
    return {'id': user.id, 'name': user.name, 'avatar': user.avatar}


class BroadcastEvent:
    name = ''

    def topics(self):
        raise NotImplementedError

    def payload(self):
        raise NotImplementedError


# Room chat

@dataclass
class MessageSent(BroadcastEvent):
    message: object
    name = 'message.sent'

    def topics(self):
        return [room_topic(self.message.room_id)]

    def payload(self):
        msg = self.message
        created = msg.created_at
        return {
            'message': {
                'id': msg.id,
                'room_id': msg.room_id,
                'user_id': msg.user_id,
                'message': msg.message,
                'type': msg.type,
                'file_url': msg.file_url,
                'status': msg.status,
                'created_at': created.isoformat() + 'Z' if created else None,
                'time_ago': _time_ago(created),
                'formatted_time': created.strftime('%H:%M') if created else None,
                'user': _brief(msg.user),
            }
        }


@dataclass
class MessageEdited(BroadcastEvent):
    message: object
    user: object
    name = 'message.edited'

    def topics(self):
        return [room_topic(self.message.room_id)]

    def payload(self):
        msg = self.message
        return {
            'message': {
                'id': msg.id,
                'message': msg.message,
                'status': msg.status,
                'is_edited': msg.is_edited,
                'updated_at': msg.updated_at.isoformat() + 'Z' if msg.updated_at else None,
                'user_id': msg.user_id,
                'room_id': msg.room_id,
            },
            'user': {'id': self.user.id, 'name': self.user.name},
        }


@dataclass
class MessageDeleted(BroadcastEvent):
    # Carries identifiers only; the row is already gone
    message_id: int
    room_id: int
    user: object
    name = 'message.deleted'

    def topics(self):
        return [room_topic(self.room_id)]

    def payload(self):
        return {
            'message_id': self.message_id,
            'room_id': self.room_id,
            'user': {'id': self.user.id, 'name': self.user.name},
        }


@dataclass
class UserTyping(BroadcastEvent):
    user: object
    room_id: int
    is_typing: bool
    name = 'user.typing'

    def topics(self):
        return [room_topic(self.room_id)]

    def payload(self):
        return {
            'user': _brief(self.user),
            'room_id': self.room_id,
            'is_typing': bool(self.is_typing),
            'timestamp': utc_timestamp(),
        }


@dataclass
class UserOnlineStatusChanged(BroadcastEvent):
    user: object
    room_id: int
    is_online: bool
    online_members: list = field(default_factory=list)
    name = 'user.online.status'

    def topics(self):
        return [room_topic(self.room_id)]

    def payload(self):
        return {
            'user': {
                'id': self.user.id,
                'name': self.user.name,
                'avatar': self.user.avatar,
                'email': self.user.email,
            },
            'room_id': self.room_id,
            'is_online': bool(self.is_online),
            'online_members': self.online_members,
            'timestamp': utc_timestamp(),
        }


@dataclass
class UserJoinedRoom(BroadcastEvent):
    user: object
    room: object
    name = 'user.joined'

    def topics(self):
        return [room_topic(self.room.id)]

    def payload(self):
        return {
            'user': _brief(self.user),
            'room': {'id': self.room.id, 'name': self.room.name},
            'timestamp': utc_timestamp(),
        }


# Direct messages

@dataclass
class DirectMessageSent(BroadcastEvent):
    message: object
    name = 'direct.message.sent'

    def topics(self):
        return [user_topic(self.message.sender_id), user_topic(self.message.receiver_id)]

    def payload(self):
        return {
            'message': self.message.to_dict(),
            'conversation_id': self.message.conversation_id,
        }


@dataclass
class DirectMessageEdited(BroadcastEvent):
    message: object
    name = 'direct.message.edited'

    def topics(self):
        return [user_topic(self.message.sender_id), user_topic(self.message.receiver_id)]

    def payload(self):
        return {
            'message': self.message.to_dict(),
            'conversation_id': self.message.conversation_id,
        }


@dataclass
class DirectMessageDeleted(BroadcastEvent):
    message_id: int
    conversation_id: str
    sender_id: int
    receiver_id: int
    room_id: int
    name = 'direct.message.deleted'

    def topics(self):
        return [user_topic(self.sender_id), user_topic(self.receiver_id)]

    def payload(self):
        return {
            'message_id': self.message_id,
            'conversation_id': self.conversation_id,
            'sender_id': self.sender_id,
            'receiver_id': self.receiver_id,
            'room_id': self.room_id,
        }


@dataclass
class DirectMessageTyping(BroadcastEvent):
    # Goes to the receiver only
    sender: object
    receiver_id: int
    conversation_id: str
    is_typing: bool
    name = 'direct.message.typing'

    def topics(self):
        return [user_topic(self.receiver_id)]

    def payload(self):
        return {
            'sender': _brief(self.sender),
            'conversation_id': self.conversation_id,
            'is_typing': bool(self.is_typing),
            'timestamp': utc_timestamp(),
        }


@dataclass
class DirectMessageRead(BroadcastEvent):
    room_id: int
    receiver_id: int
    sender_id: int
    conversation_id: str
    name = 'direct.message.read'

    def topics(self):
        return [user_topic(self.receiver_id), user_topic(self.sender_id)]

    def payload(self):
        return {
            'room_id': self.room_id,
            'receiver_id': self.receiver_id,
            'sender_id': self.sender_id,
            'conversation_id': self.conversation_id,
            'timestamp': utc_timestamp(),
        }


# Commerce (public topics, no access check on subscribe)

@dataclass
class ProductStockUpdated(BroadcastEvent):
    product_id: int
    product_name: str
    room_id: int
    previous_stock: int
    current_stock: int
    price: Optional[float] = None
    status: Optional[str] = None
    reason: Optional[str] = None
    order_id: Optional[int] = None
    buyer_id: Optional[int] = None
    name = 'product.stock.updated'

    def topics(self):
        return [room_topic(self.room_id), product_topic(self.product_id), STORE_PRODUCTS_TOPIC]

    def payload(self):
        return {
            'product': {
                'id': self.product_id,
                'name': self.product_name,
                'previous_stock': self.previous_stock,
                'current_stock': self.current_stock,
                'stock_change': self.current_stock - self.previous_stock,
                'status': self.status,
                'price': self.price,
                'room_id': self.room_id,
            },
            'reason': self.reason,
            'order_id': self.order_id,
            'buyer_id': self.buyer_id,
            'timestamp': utc_timestamp(),
        }


@dataclass
class ProductRatingUpdated(BroadcastEvent):
    product_id: int
    product_name: str
    room_id: int
    average_rating: float
    reviews_count: int
    action: str = 'created'
    review_id: Optional[int] = None
    user_id: Optional[int] = None
    name = 'product.rating.updated'

    def topics(self):
        return [room_topic(self.room_id), product_topic(self.product_id), STORE_PRODUCTS_TOPIC]

    def payload(self):
        return {
            'product': {
                'id': self.product_id,
                'name': self.product_name,
                'average_rating': self.average_rating,
                'reviews_count': self.reviews_count,
                'room_id': self.room_id,
            },
            'action': self.action,
            'review_id': self.review_id,
            'user_id': self.user_id,
            'timestamp': utc_timestamp(),
        }
