# Configuration file for the Roomchat application

import json
import os

# Try to load configuration from `config.json` located next to this file.
# If the file is missing or a key is absent, fall back to the defaults below.
# Any key can also be overridden with a ROOMCHAT_<KEY> environment variable.
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
_JSON_PATH = os.path.join(_BASE_DIR, 'config.json')

_MB = 1024 * 1024

# Defaults
_defaults = {
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///roomchat.db',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'SECRET_KEY': 'change-me-roomchat',
    'SOCKETIO_ASYNC_MODE': 'eventlet',
    'LOG_LEVEL': 'INFO',
    'LOG_FILE': None,

    # Presence: "considered online" window vs. age at which the sweep deletes rows
    'PRESENCE_ONLINE_WINDOW_MINUTES': 5,
    'PRESENCE_SWEEP_TTL_MINUTES': 8,
    'PRESENCE_SWEEP_INTERVAL_SECONDS': 5 * 60,

    # Other janitor jobs
    'POST_PUBLIC_WINDOW_HOURS': 24,
    'POST_DECAY_INTERVAL_SECONDS': 60 * 60,
    'USAGE_RETENTION_MONTHS': 3,
    'USAGE_CLEANUP_INTERVAL_SECONDS': 7 * 24 * 60 * 60,
    'JANITOR_ENABLED': True,
    'JANITOR_TICK_SECONDS': 30,

    # Messaging
    'CHAT_MESSAGE_MAX_LENGTH': 1000,
    'DIRECT_MESSAGE_MAX_LENGTH': 2000,
    'MESSAGES_PAGE_SIZE': 50,
    'DIRECT_MESSAGES_PAGE_SIZE': 50,

    # Rooms
    'ROOM_MONTHLY_LIMIT': 4,
    'REJOIN_COOLDOWN_HOURS': 24,

    # File uploads
    'UPLOAD_FOLDER': 'uploads',
    'MAX_CONTENT_LENGTH': 51 * _MB,
    'UPLOAD_MAX_SIZES': {
        'image': 10 * _MB,
        'document': 50 * _MB,
        'voice': 10 * _MB,
        'video': 50 * _MB,
    },
    'UPLOAD_EXTENSIONS': {
        'image': ['jpg', 'jpeg', 'png', 'gif', 'webp', 'svg'],
        'document': ['pdf', 'doc', 'docx', 'xls', 'xlsx', 'ppt', 'pptx',
                     'txt', 'zip', 'rar', 'rtf'],
        'voice': ['webm', 'ogg', 'oga', 'm4a', 'mp4', 'mp3', 'wav'],
        'video': ['mp4', 'webm', 'ogv', 'ogg', 'mov', 'avi', 'wmv'],
    },
    'UPLOAD_MIME_TYPES': {
        'image': [
            'image/jpeg', 'image/png', 'image/gif', 'image/webp', 'image/svg+xml',
        ],
        'document': [
            'application/pdf',
            'application/msword',
            'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
            'application/vnd.ms-excel',
            'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
            'application/vnd.ms-powerpoint',
            'application/vnd.openxmlformats-officedocument.presentationml.presentation',
            'text/plain',
            'application/zip', 'application/x-zip-compressed',
            'application/x-rar-compressed',
            'application/rtf', 'text/rtf',
        ],
        'voice': [
            'audio/webm', 'video/webm', 'audio/ogg', 'audio/mp4', 'audio/mpeg',
            'audio/wav', 'audio/x-wav', 'audio/mp3',
        ],
        'video': [
            'video/mp4', 'video/webm', 'video/ogg', 'video/quicktime',
            'video/x-msvideo', 'video/x-ms-wmv',
        ],
    },
}

_cfg = {}
try:
    with open(_JSON_PATH, 'r', encoding='utf-8') as f:
        _cfg = json.load(f) or {}
except FileNotFoundError:
    # No config.json present, we'll use defaults
    _cfg = {}
except ValueError:
    # Unparseable config.json: keep defaults, the factory logs the effective values
    _cfg = {}


def _coerce(raw, default):
    # Environment values are strings; shape them like the default
    if isinstance(default, bool):
        return raw.strip().lower() in ('1', 'true', 'yes', 'on')
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, (dict, list)):
        return json.loads(raw)
    return raw


# Helper to get value from env, JSON or defaults
def _get(key):
    default = _defaults.get(key)
    env_value = os.environ.get(f'ROOMCHAT_{key}')
    if env_value is not None:
        return _coerce(env_value, default)
    return _cfg.get(key, default)


# Database
SQLALCHEMY_DATABASE_URI = _get('SQLALCHEMY_DATABASE_URI')
SQLALCHEMY_TRACK_MODIFICATIONS = _get('SQLALCHEMY_TRACK_MODIFICATIONS')

# Security
SECRET_KEY = _get('SECRET_KEY')

# Runtime
SOCKETIO_ASYNC_MODE = _get('SOCKETIO_ASYNC_MODE')
LOG_LEVEL = _get('LOG_LEVEL')
LOG_FILE = _get('LOG_FILE')

# Presence
PRESENCE_ONLINE_WINDOW_MINUTES = int(_get('PRESENCE_ONLINE_WINDOW_MINUTES'))
PRESENCE_SWEEP_TTL_MINUTES = int(_get('PRESENCE_SWEEP_TTL_MINUTES'))
PRESENCE_SWEEP_INTERVAL_SECONDS = int(_get('PRESENCE_SWEEP_INTERVAL_SECONDS'))

# Janitor
POST_PUBLIC_WINDOW_HOURS = int(_get('POST_PUBLIC_WINDOW_HOURS'))
POST_DECAY_INTERVAL_SECONDS = int(_get('POST_DECAY_INTERVAL_SECONDS'))
USAGE_RETENTION_MONTHS = int(_get('USAGE_RETENTION_MONTHS'))
USAGE_CLEANUP_INTERVAL_SECONDS = int(_get('USAGE_CLEANUP_INTERVAL_SECONDS'))
JANITOR_ENABLED = bool(_get('JANITOR_ENABLED'))
JANITOR_TICK_SECONDS = int(_get('JANITOR_TICK_SECONDS'))

# Messaging
CHAT_MESSAGE_MAX_LENGTH = int(_get('CHAT_MESSAGE_MAX_LENGTH'))
DIRECT_MESSAGE_MAX_LENGTH = int(_get('DIRECT_MESSAGE_MAX_LENGTH'))
MESSAGES_PAGE_SIZE = int(_get('MESSAGES_PAGE_SIZE'))
DIRECT_MESSAGES_PAGE_SIZE = int(_get('DIRECT_MESSAGES_PAGE_SIZE'))

# Rooms
ROOM_MONTHLY_LIMIT = int(_get('ROOM_MONTHLY_LIMIT'))
REJOIN_COOLDOWN_HOURS = int(_get('REJOIN_COOLDOWN_HOURS'))

# File uploads
UPLOAD_FOLDER = _get('UPLOAD_FOLDER')
MAX_CONTENT_LENGTH = int(_get('MAX_CONTENT_LENGTH'))

# Per media type limits (store allow-lists as sets for quick membership checks)
UPLOAD_MAX_SIZES = dict(_get('UPLOAD_MAX_SIZES') or {})
UPLOAD_EXTENSIONS = {k: set(v) for k, v in (_get('UPLOAD_EXTENSIONS') or {}).items()}
UPLOAD_MIME_TYPES = {k: set(v) for k, v in (_get('UPLOAD_MIME_TYPES') or {}).items()}


def as_flask_config():
    # Every upper-case setting above, ready for flask_app.config.update()
    return {k: v for k, v in globals().items() if k.isupper() and not k.startswith('_')}


def init_upload_folders(base=None):
    # Create the upload root if it doesn't exist; category/date subfolders are made on write
    os.makedirs(base or UPLOAD_FOLDER, exist_ok=True)
