# Room chat routes: messages, typing, uploads and presence

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from app.routes.auth import request_data
from app.routes.rooms import as_bool
from app.services import chat, membership, presence

chat_bp = Blueprint('chat', __name__, url_prefix='/api')


@chat_bp.route('/chat-rooms/<int:room_id>/messages', methods=['GET'])
@login_required
def list_messages(room_id):
    page = request.args.get('page', 1)
    return jsonify(chat.list_messages(room_id, current_user, page=page))


@chat_bp.route('/chat-rooms/<int:room_id>/messages', methods=['POST'])
@login_required
def post_message(room_id):
    data = request_data()
    message = chat.post_message(
        room_id,
        current_user,
        body=data.get('message'),
        message_type=data.get('type') or 'text',
        upload=request.files.get('file'),
    )
    return jsonify({'message': message, 'success': 'Message sent successfully'}), 201


@chat_bp.route('/chat-messages/<int:message_id>', methods=['PUT'])
@login_required
def edit_message(message_id):
    message = chat.edit_message(message_id, current_user, request_data().get('message'))
    return jsonify({'message': message, 'success': 'Message updated successfully'})


@chat_bp.route('/chat-messages/<int:message_id>', methods=['DELETE'])
@login_required
def delete_message(message_id):
    chat.delete_message(message_id, current_user)
    return jsonify({'success': 'Message deleted successfully'})


@chat_bp.route('/chat-rooms/<int:room_id>/typing', methods=['POST'])
@login_required
def typing(room_id):
    chat.send_typing(room_id, current_user, as_bool(request_data().get('is_typing')))
    return jsonify({'success': 'Typing status updated'})


@chat_bp.route('/chat-rooms/<int:room_id>/upload', methods=['POST'])
@login_required
def upload_file(room_id):
    file_data = chat.upload_file(room_id, current_user, request.files.get('file'),
                                 request.form.get('type'))
    return jsonify({'file_data': file_data, 'success': 'File uploaded successfully'})


# Presence

@chat_bp.route('/chat-rooms/<int:room_id>/online-members', methods=['GET'])
@login_required
def online_members(room_id):
    membership.require_participant(room_id, current_user.id)
    members = presence.list_online(room_id)
    return jsonify({'online_members': members, 'count': len(members)})


@chat_bp.route('/chat-rooms/<int:room_id>/mark-online', methods=['POST'])
@login_required
def mark_online(room_id):
    members = presence.mark_online(room_id, current_user)
    return jsonify({'message': 'Marked as online', 'online_members': members})


@chat_bp.route('/chat-rooms/<int:room_id>/mark-offline', methods=['POST'])
@login_required
def mark_offline(room_id):
    members = presence.mark_offline(room_id, current_user)
    return jsonify({'message': 'Marked as offline', 'online_members': members})


@chat_bp.route('/chat-rooms/<int:room_id>/update-activity', methods=['POST'])
@login_required
def update_activity(room_id):
    last_seen = presence.heartbeat(room_id, current_user)
    return jsonify({'message': 'Activity updated', 'last_seen': last_seen.isoformat() + 'Z'})
