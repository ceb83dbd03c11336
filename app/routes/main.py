# Main routes (health check, stored files)

from flask import Blueprint, jsonify, send_from_directory, current_app

main_bp = Blueprint('main', __name__)


def get_upload_folder():
    # Get upload folder from current app config
    return current_app.config.get('UPLOAD_FOLDER', 'uploads')


@main_bp.route('/health')
def health():
    return jsonify({'status': 'ok'})


@main_bp.route('/uploads/<path:filename>')
def uploaded_file(filename):
    # Serve uploaded file
    return send_from_directory(get_upload_folder(), filename)
