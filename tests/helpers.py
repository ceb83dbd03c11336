import io

from PIL import Image
from werkzeug.datastructures import FileStorage


def png_bytes(size=(4, 4), color=(255, 0, 0)):
    buf = io.BytesIO()
    Image.new('RGB', size, color).save(buf, format='PNG')
    return buf.getvalue()


def file_storage(data, filename, content_type='application/octet-stream'):
    return FileStorage(stream=io.BytesIO(data), filename=filename, content_type=content_type)


def received(sio, name):
    # Payloads of every event called `name` received since the last call
    return [pkt['args'][0] for pkt in sio.get_received() if pkt['name'] == name]
