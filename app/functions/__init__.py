# Functions package

from app.functions.errors import (
    ChatError, AuthorizationError, ValidationError, NotFoundError, TransientInfraError
)
from app.functions.files import (
    allowed_file, sniff_mime_type, validate_upload, save_uploaded_file
)
from app.functions.storage import LocalStorage, build_path, get_storage, delete_stored_file

__all__ = [
    'ChatError', 'AuthorizationError', 'ValidationError', 'NotFoundError', 'TransientInfraError',
    'allowed_file', 'sniff_mime_type', 'validate_upload', 'save_uploaded_file',
    'LocalStorage', 'build_path', 'get_storage', 'delete_stored_file'
]
