# Blob storage for chat attachments
#
# Files are addressed by a relative path that encodes category and date,
# e.g. chat/images/2025/06/10/<uuid>_photo.png, and served back under /uploads/.
# Only put/exists/delete are used by the services, so a remote store can
# replace LocalStorage without touching them.

import logging
import os
import uuid
from datetime import datetime
from urllib.parse import urlparse

from flask import current_app
from werkzeug.utils import secure_filename

from app.functions.errors import TransientInfraError

logger = logging.getLogger(__name__)

URL_PREFIX = '/uploads/'


def build_path(prefix, category, filename, now=None):
    # <prefix>/<category>/YYYY/MM/DD/<uuid>_<filename>
    now = now or datetime.utcnow()
    safe_name = secure_filename(filename or '') or 'file'
    return '/'.join([
        prefix.strip('/'),
        category.strip('/'),
        now.strftime('%Y/%m/%d'),
        f'{uuid.uuid4().hex}_{safe_name}',
    ])


class LocalStorage:
    # Filesystem-backed store rooted at the app's UPLOAD_FOLDER

    def __init__(self, root):
        self.root = os.path.abspath(root)

    def _abs(self, path):
        full = os.path.abspath(os.path.join(self.root, path.lstrip('/')))
        if full != self.root and not full.startswith(self.root + os.sep):
            raise ValueError(f'path escapes storage root: {path}')
        return full

    def put(self, path, data):
        full = self._abs(path)
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, 'wb') as f:
                f.write(data)
        except OSError as e:
            logger.exception('[STORAGE] write failed for %s', path)
            raise TransientInfraError('Failed to store file') from e
        return URL_PREFIX + path.lstrip('/')

    def exists(self, path):
        try:
            return os.path.isfile(self._abs(path))
        except ValueError:
            return False

    def delete(self, path):
        full = self._abs(path)
        if os.path.isfile(full):
            os.remove(full)

    def path_from_url(self, url):
        # Map a URL we handed out back to a storage path, None if it isn't ours
        if not url:
            return None
        path = urlparse(url).path
        if not path.startswith(URL_PREFIX):
            return None
        return path[len(URL_PREFIX):]


def get_storage():
    return LocalStorage(current_app.config['UPLOAD_FOLDER'])


def delete_stored_file(url):
    # Best-effort removal of an attachment; failures are logged, never raised
    storage = get_storage()
    path = storage.path_from_url(url)
    if not path:
        return False
    try:
        if storage.exists(path):
            storage.delete(path)
            logger.info('[STORAGE] deleted %s', path)
            return True
        logger.warning('[STORAGE] file not found for deletion: %s', path)
    except (OSError, ValueError):
        logger.exception('[STORAGE] failed to delete %s', path)
    return False
