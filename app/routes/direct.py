# Direct message routes, scoped to a room

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from app.routes.auth import request_data
from app.routes.rooms import as_bool
from app.services import direct, membership

direct_bp = Blueprint('direct', __name__, url_prefix='/api/rooms/<int:room_id>/direct-messages')


@direct_bp.route('/conversations', methods=['GET'])
@login_required
def list_conversations(room_id):
    return jsonify({'conversations': direct.list_conversations(room_id, current_user)})


@direct_bp.route('/conversations/<int:user_id>', methods=['GET'])
@login_required
def get_conversation(room_id, user_id):
    limit = request.args.get('limit', type=int)
    offset = request.args.get('offset', 0, type=int)
    return jsonify(direct.get_conversation(room_id, current_user, user_id, limit=limit, offset=offset))


@direct_bp.route('/send/<int:user_id>', methods=['POST'])
@login_required
def send_message(room_id, user_id):
    data = request_data()
    message = direct.send_direct(
        room_id,
        current_user,
        user_id,
        body=data.get('message'),
        message_type=data.get('type') or 'text',
        upload=request.files.get('file'),
    )
    return jsonify({'message': message, 'success': 'Message sent successfully'}), 201


@direct_bp.route('/conversations/<int:user_id>/read', methods=['POST'])
@login_required
def mark_read(room_id, user_id):
    count = direct.mark_read(room_id, current_user, user_id)
    return jsonify({'success': 'Messages marked as read', 'count': count})


@direct_bp.route('/typing/<int:user_id>', methods=['POST'])
@login_required
def typing(room_id, user_id):
    direct.send_dm_typing(room_id, current_user, user_id, as_bool(request_data().get('is_typing')))
    return jsonify({'success': 'Typing indicator sent'})


@direct_bp.route('/edit/<int:message_id>', methods=['PUT'])
@login_required
def edit_message(room_id, message_id):
    message = direct.edit_direct(room_id, message_id, current_user, request_data().get('message'))
    return jsonify({'message': message, 'success': 'Message updated successfully'})


@direct_bp.route('/delete/<int:message_id>', methods=['DELETE'])
@login_required
def delete_message(room_id, message_id):
    direct.delete_direct(room_id, message_id, current_user)
    return jsonify({'success': 'Message deleted successfully'})


@direct_bp.route('/unread-count', methods=['GET'])
@login_required
def unread_count(room_id):
    membership.require_participant(room_id, current_user.id)
    return jsonify({'unread_count': direct.unread_count(current_user.id, room_id=room_id)})
