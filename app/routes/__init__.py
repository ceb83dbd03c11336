# Routes package

from app.routes.auth import auth_bp
from app.routes.main import main_bp
from app.routes.rooms import rooms_bp
from app.routes.chat import chat_bp
from app.routes.direct import direct_bp

__all__ = ['auth_bp', 'main_bp', 'rooms_bp', 'chat_bp', 'direct_bp']
