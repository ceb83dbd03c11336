# Content-related models: room chat messages, direct messages, posts

from datetime import datetime
from app.extensions import db

CHAT_MESSAGE_TYPES = ('text', 'image', 'document', 'voice', 'video', 'file')
CHAT_MESSAGE_STATUSES = ('sent', 'delivered', 'read', 'edited')


def _iso(value):
    # Datetimes are stored naive UTC; render them with an explicit offset
    return value.isoformat() + 'Z' if value else None


def conversation_id(room_id, user_a, user_b):
    # Stable key for a pair's messages in a room, same for both directions
    low, high = sorted((int(user_a), int(user_b)))
    return f'dm_room_{int(room_id)}_{low}_{high}'


class ChatMessage(db.Model):
    # Room chat message
    __tablename__ = 'chat_message'
    __table_args__ = (
        db.Index('ix_chat_message_room_created', 'room_id', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    message = db.Column(db.Text, nullable=False, default='')
    type = db.Column(db.String(20), nullable=False, default='text')
    file_url = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='sent')
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = db.relationship('User')

    @property
    def is_edited(self):
        return self.status == 'edited'

    def to_dict(self):
        author = self.user
        return {
            'id': self.id,
            'room_id': self.room_id,
            'user_id': self.user_id,
            'message': self.message,
            'type': self.type,
            'file_url': self.file_url,
            'status': self.status,
            'is_edited': self.is_edited,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
            'user': {
                'id': author.id if author else self.user_id,
                'name': author.name if author else 'Unknown User',
                'avatar': author.avatar if author else None,
            },
        }


class DirectMessage(db.Model):
    # Message between two members of the same room
    __tablename__ = 'direct_message'
    __table_args__ = (
        db.Index('ix_direct_message_pair', 'room_id', 'sender_id', 'receiver_id', 'created_at'),
        db.Index('ix_direct_message_unread', 'receiver_id', 'read_at'),
    )

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False)
    sender_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    receiver_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    message = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(20), nullable=False, default='text')
    file_url = db.Column(db.String(500), nullable=True)
    file_name = db.Column(db.String(255), nullable=True)
    file_size = db.Column(db.Integer, nullable=True)
    mime_type = db.Column(db.String(150), nullable=True)
    read_at = db.Column(db.DateTime, nullable=True)
    edited_at = db.Column(db.DateTime, nullable=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    sender = db.relationship('User', foreign_keys=[sender_id])
    receiver = db.relationship('User', foreign_keys=[receiver_id])

    @property
    def conversation_id(self):
        return conversation_id(self.room_id, self.sender_id, self.receiver_id)

    @property
    def is_edited(self):
        return self.edited_at is not None

    @property
    def is_read(self):
        return self.read_at is not None

    def other_participant_id(self, user_id):
        return self.receiver_id if self.sender_id == user_id else self.sender_id

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'sender_id': self.sender_id,
            'receiver_id': self.receiver_id,
            'message': self.message,
            'type': self.type,
            'file_url': self.file_url,
            'file_name': self.file_name,
            'file_size': self.file_size,
            'mime_type': self.mime_type,
            'read_at': _iso(self.read_at),
            'edited_at': _iso(self.edited_at),
            'is_deleted': bool(self.is_deleted),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
            'conversation_id': self.conversation_id,
            'is_edited': self.is_edited,
            'is_read': self.is_read,
            'sender': self.sender.to_brief() if self.sender else None,
            'receiver': self.receiver.to_brief() if self.receiver else None,
        }


class Post(db.Model):
    # Room post; public ones are shown on the home feed until they age out
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    content = db.Column(db.Text, nullable=True)
    visibility = db.Column(db.String(20), nullable=False, default='private')  # 'public', 'private'
    published_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
