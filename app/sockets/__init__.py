# Sockets package
# Importing it registers the handlers on the shared socketio instance

from app.sockets import events  # noqa
