# Entry point for the Roomchat application

import logging

from app import create_app
from app.extensions import socketio
from app.services.janitor import start_janitor

app = create_app()

logger = logging.getLogger(__name__)

if __name__ == '__main__':
    logger.info("[SERVER STARTUP] Starting Roomchat...")
    logger.info("[SERVER CONFIG] Socket.IO running on port 5000 (%s)", app.config.get('SOCKETIO_ASYNC_MODE'))
    start_janitor(app)
    socketio.run(app, host='0.0.0.0', port=5000, allow_unsafe_werkzeug=True, debug=False)
