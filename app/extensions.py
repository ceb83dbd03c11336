# Flask extensions initialization
# Helps avoid circular imports by initializing extensions without app context

from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from flask_login import LoginManager

db = SQLAlchemy()
# async_mode is picked per app in create_app (eventlet in production, threading in tests)
socketio = SocketIO(
    cors_allowed_origins='*',
    ping_timeout=60,
    ping_interval=25,
    path='socket.io',
    engineio_logger=False,
    logger=False
)
login_manager = LoginManager()
