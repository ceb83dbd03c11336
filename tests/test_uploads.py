import os

import pytest

from app.functions.errors import ValidationError
from app.functions.files import validate_upload, sniff_mime_type, save_uploaded_file
from app.functions.storage import LocalStorage, build_path, delete_stored_file
from helpers import png_bytes, file_storage


def test_sniff_detects_png_from_bytes():
    assert sniff_mime_type(png_bytes()) == 'image/png'


def test_sniff_detects_pdf_and_text():
    assert sniff_mime_type(b'%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n') == 'application/pdf'
    assert sniff_mime_type('plain notes, nothing else'.encode('utf-8')) == 'text/plain'
    assert sniff_mime_type(b'<?xml version="1.0"?><svg xmlns="http://www.w3.org/2000/svg"></svg>') == 'image/svg+xml'


def test_validate_accepts_real_png(app):
    with app.app_context():
        info = validate_upload(file_storage(png_bytes(), 'photo.png', 'image/png'), 'image')
    assert info['mime_type'] == 'image/png'
    assert info['extension'] == 'png'
    assert info['size'] == len(png_bytes())


def test_validate_rejects_unknown_media_type(app):
    with app.app_context(), pytest.raises(ValidationError) as exc:
        validate_upload(file_storage(png_bytes(), 'photo.png'), 'sticker')
    assert 'type' in exc.value.fields


def test_validate_rejects_extension_outside_allow_list(app):
    with app.app_context(), pytest.raises(ValidationError) as exc:
        validate_upload(file_storage(png_bytes(), 'photo.exe'), 'image')
    assert 'file' in exc.value.fields


def test_validate_rejects_content_that_does_not_match_extension(app):
    # PDF bytes behind a .png name: the client-declared type is irrelevant
    pdf = b'%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n'
    with app.app_context(), pytest.raises(ValidationError) as exc:
        validate_upload(file_storage(pdf, 'photo.png', 'image/png'), 'image')
    assert exc.value.fields['file'] == ['The file content does not match its type.']


def test_validate_rejects_png_renamed_to_jpg(app):
    with app.app_context(), pytest.raises(ValidationError):
        validate_upload(file_storage(png_bytes(), 'photo.jpg', 'image/jpeg'), 'image')


def test_validate_enforces_size_cap(app):
    app.config['UPLOAD_MAX_SIZES'] = dict(app.config['UPLOAD_MAX_SIZES'], image=16)
    with app.app_context(), pytest.raises(ValidationError) as exc:
        validate_upload(file_storage(png_bytes(), 'photo.png'), 'image')
    assert 'greater than' in exc.value.fields['file'][0]


def test_validate_rejects_empty_file(app):
    with app.app_context(), pytest.raises(ValidationError):
        validate_upload(file_storage(b'', 'notes.txt'), 'document')


def test_text_document_is_accepted(app):
    with app.app_context():
        info = validate_upload(file_storage(b'meeting notes\n', 'notes.txt', 'text/plain'), 'document')
    assert info['mime_type'] == 'text/plain'


def test_build_path_layout():
    from datetime import datetime
    path = build_path('chat', 'images', 'my photo.png', now=datetime(2025, 6, 10))
    prefix, category, year, month, day, name = path.split('/')
    assert (prefix, category, year, month, day) == ('chat', 'images', '2025', '06', '10')
    assert name.endswith('_my_photo.png')


def test_local_storage_round_trip(tmp_path):
    storage = LocalStorage(str(tmp_path))
    url = storage.put('chat/images/a.png', b'data')
    assert url == '/uploads/chat/images/a.png'
    path = storage.path_from_url(url)
    assert storage.exists(path)
    storage.delete(path)
    assert not storage.exists(path)
    assert storage.path_from_url('https://elsewhere.example/x.png') is None


def test_local_storage_refuses_escaping_paths(tmp_path):
    storage = LocalStorage(str(tmp_path / 'root'))
    with pytest.raises(ValueError):
        storage.put('../outside.txt', b'x')
    assert not storage.exists('../../etc/passwd')


def test_saved_file_is_served_and_deleted(app):
    with app.app_context():
        info = validate_upload(file_storage(png_bytes(), 'photo.png'), 'image')
        stored = save_uploaded_file(info, 'chat', 'image')
    assert stored['file_url'].startswith('/uploads/chat/images/')

    client = app.test_client()
    resp = client.get(stored['file_url'])
    assert resp.status_code == 200
    assert resp.data == png_bytes()
    resp.close()

    with app.app_context():
        assert delete_stored_file(stored['file_url']) is True
        # Second delete is a logged no-op
        assert delete_stored_file(stored['file_url']) is False
    relative = stored['file_url'][len('/uploads/'):]
    assert not os.path.exists(os.path.join(app.config['UPLOAD_FOLDER'], relative))


def _ogg_bytes():
    # Ogg page header: capture pattern, version, BOS flag, then padding
    return b'OggS\x00\x02' + b'\x00' * 64


def test_ogg_video_is_accepted(app):
    with app.app_context():
        info = validate_upload(file_storage(_ogg_bytes(), 'clip.ogv'), 'video')
        assert info['mime_type'] == 'video/ogg'
        info = validate_upload(file_storage(_ogg_bytes(), 'clip.ogg'), 'video')
        assert info['mime_type'] == 'video/ogg'


def test_ogg_voice_keeps_audio_type(app):
    with app.app_context():
        info = validate_upload(file_storage(_ogg_bytes(), 'note.ogg'), 'voice')
    assert info['mime_type'] == 'audio/ogg'
