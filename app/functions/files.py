
# File handling functions

import io
import logging

import filetype
from flask import current_app
from PIL import Image
from werkzeug.utils import secure_filename

from app.functions.errors import ValidationError
from app.functions.storage import build_path, get_storage

logger = logging.getLogger(__name__)

MEDIA_TYPES = ('image', 'document', 'voice', 'video')

# Storage sub-folder per media type
MEDIA_CATEGORIES = {
    'image': 'images',
    'document': 'documents',
    'voice': 'voice',
    'video': 'videos',
}

# Content types each extension may legitimately carry; a file whose sniffed
# type is not listed for its extension is rejected even if both are allowed
EXTENSION_MIME_TYPES = {
    'jpg': {'image/jpeg'},
    'jpeg': {'image/jpeg'},
    'png': {'image/png'},
    'gif': {'image/gif'},
    'webp': {'image/webp'},
    'svg': {'image/svg+xml'},
    'pdf': {'application/pdf'},
    'doc': {'application/msword'},
    'docx': {'application/vnd.openxmlformats-officedocument.wordprocessingml.document'},
    'xls': {'application/vnd.ms-excel'},
    'xlsx': {'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'},
    'ppt': {'application/vnd.ms-powerpoint'},
    'pptx': {'application/vnd.openxmlformats-officedocument.presentationml.presentation'},
    'txt': {'text/plain'},
    'zip': {'application/zip', 'application/x-zip-compressed'},
    'rar': {'application/x-rar-compressed', 'application/vnd.rar'},
    'rtf': {'application/rtf', 'text/rtf'},
    'webm': {'audio/webm', 'video/webm'},
    'ogg': {'audio/ogg', 'video/ogg'},
    'oga': {'audio/ogg'},
    'ogv': {'video/ogg'},
    'm4a': {'audio/mp4', 'audio/m4a'},
    'mp4': {'video/mp4', 'audio/mp4'},
    'mp3': {'audio/mpeg', 'audio/mp3'},
    'wav': {'audio/wav', 'audio/x-wav'},
    'mov': {'video/quicktime'},
    'avi': {'video/x-msvideo'},
    'wmv': {'video/x-ms-wmv'},
}

# Container signatures that do not tell audio from video; the media type decides
SNIFFED_ALIASES = {
    ('video', 'audio/ogg'): 'video/ogg',
}


def file_extension(filename):
    return filename.rsplit('.', 1)[1].lower() if filename and '.' in filename else ''


def allowed_file(filename, media_type):
    # Check if file extension is allowed for this media type
    allowed = current_app.config['UPLOAD_EXTENSIONS'].get(media_type, ())
    return file_extension(filename) in allowed


def sniff_mime_type(data):
    # Detect the content type from the bytes themselves, never from the client's claim
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
        mime = Image.MIME.get(fmt)
        if mime:
            return mime
    except Exception:
        # Not an image Pillow can read, try the generic signatures
        pass

    mime = filetype.guess_mime(data)
    if mime:
        return mime

    try:
        text = data.decode('utf-8')
    except UnicodeDecodeError:
        return 'application/octet-stream'
    if '<svg' in text[:2048].lower():
        return 'image/svg+xml'
    return 'text/plain'


def validate_upload(file, media_type):
    # Check an uploaded FileStorage against the rules for `media_type`
    # Returns a dict with the bytes and the facts we learned about them
    if media_type not in MEDIA_TYPES:
        raise ValidationError.for_field('type', 'The selected type is invalid.')
    if file is None or not file.filename:
        raise ValidationError.for_field('file', 'The file field is required.')

    filename = file.filename
    if not allowed_file(filename, media_type):
        raise ValidationError.for_field(
            'file', f'The file extension is not allowed for {media_type} uploads.')

    data = file.read()
    size = len(data)
    if size == 0:
        raise ValidationError.for_field('file', 'The file is empty.')

    max_size = current_app.config['UPLOAD_MAX_SIZES'].get(media_type)
    if max_size and size > max_size:
        raise ValidationError.for_field(
            'file', f'The file may not be greater than {max_size // 1024} kilobytes.')

    mime_type = sniff_mime_type(data)
    mime_type = SNIFFED_ALIASES.get((media_type, mime_type), mime_type)
    extension = file_extension(filename)
    allowed_mimes = current_app.config['UPLOAD_MIME_TYPES'].get(media_type, ())
    if mime_type not in allowed_mimes or mime_type not in EXTENSION_MIME_TYPES.get(extension, ()):
        logger.info('[UPLOAD] rejected %s: ext=%s sniffed=%s type=%s',
                    filename, extension, mime_type, media_type)
        raise ValidationError.for_field('file', 'The file content does not match its type.')

    return {
        'data': data,
        'filename': filename,
        'extension': extension,
        'mime_type': mime_type,
        'size': size,
    }


def save_uploaded_file(upload, prefix, media_type):
    # Store a validated upload under <prefix>/<category>/YYYY/MM/DD/
    # Returns the public URL plus the original name, size and type
    path = build_path(prefix, MEDIA_CATEGORIES[media_type], upload['filename'])
    url = get_storage().put(path, upload['data'])
    logger.info('[UPLOAD] stored %s (%s, %d bytes)', path, upload['mime_type'], upload['size'])
    return {
        'file_url': url,
        'file_name': secure_filename(upload['filename']) or upload['filename'],
        'file_size': upload['size'],
        'mime_type': upload['mime_type'],
    }
