# Room-related models: rooms, memberships, presence rows, monthly usage
from datetime import datetime
from app.extensions import db

ROOM_TYPES = ('public', 'private', 'secure')
MEMBER_ROLES = ('member', 'moderator')
MEMBER_STATUSES = ('pending', 'approved', 'rejected', 'banned', 'removed')


class Room(db.Model):
    # Chat/commerce community owned by one user
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(150), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(20), nullable=False, default='public')  # 'public', 'private', 'secure'
    password = db.Column(db.String(255), nullable=True)  # hash, secure rooms only
    is_commercial = db.Column(db.Boolean, default=False)
    image = db.Column(db.String(300), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships (deleting a room takes everything in it along)
    owner = db.relationship('User', foreign_keys=[owner_id])
    members = db.relationship('RoomMember', backref='room', lazy=True, cascade='all, delete-orphan')
    online_members = db.relationship('RoomOnlineMember', backref='room', lazy=True, cascade='all, delete-orphan')
    messages = db.relationship('ChatMessage', backref='room', lazy='dynamic', cascade='all, delete-orphan')
    direct_messages = db.relationship('DirectMessage', backref='room', lazy='dynamic', cascade='all, delete-orphan')
    posts = db.relationship('Post', backref='room', lazy='dynamic', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'owner_id': self.owner_id,
            'name': self.name,
            'description': self.description,
            'type': self.type,
            'is_commercial': bool(self.is_commercial),
            'image': self.image,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class RoomMember(db.Model):
    # Room membership; only status 'approved' grants access
    __tablename__ = 'room_member'
    __table_args__ = (db.UniqueConstraint('room_id', 'user_id', name='uq_room_member'),)

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    role = db.Column(db.String(20), default='member')  # 'member', 'moderator'
    status = db.Column(db.String(20), default='pending')  # see MEMBER_STATUSES
    removed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_moderator(self):
        return self.role == 'moderator'

    def to_dict(self):
        return {
            'room_id': self.room_id,
            'user': self.user.to_brief() if self.user else None,
            'role': self.role,
            'status': self.status,
            'removed_at': self.removed_at.isoformat() if self.removed_at else None,
            'joined_at': self.created_at.isoformat() if self.created_at else None,
        }


class RoomOnlineMember(db.Model):
    # Heartbeat record: user X last seen in room Y at time T
    __tablename__ = 'room_online_member'
    __table_args__ = (
        db.UniqueConstraint('room_id', 'user_id', name='uq_room_online_member'),
        db.Index('ix_room_online_member_room_last_seen', 'room_id', 'last_seen'),
    )

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    last_seen = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User')


class UserRoomUsage(db.Model):
    # Rooms created by a user in one calendar month
    __tablename__ = 'user_room_usage'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'usage_year', 'usage_month', name='uq_user_room_usage_month'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    usage_year = db.Column(db.Integer, nullable=False)
    usage_month = db.Column(db.Integer, nullable=False)
    monthly_rooms_created = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
