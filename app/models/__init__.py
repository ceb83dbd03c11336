# Models package
# Import all models here for convenience

from app.models.user import User
from app.models.chat import Room, RoomMember, RoomOnlineMember, UserRoomUsage
from app.models.content import ChatMessage, DirectMessage, Post, conversation_id

__all__ = [
    'User',
    'Room', 'RoomMember', 'RoomOnlineMember', 'UserRoomUsage',
    'ChatMessage', 'DirectMessage', 'Post', 'conversation_id'
]
