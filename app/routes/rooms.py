# Room routes: create/list/show/delete rooms and manage memberships

from flask import Blueprint, jsonify
from flask_login import login_required, current_user

from app.models import RoomMember
from app.routes.auth import request_data
from app.services import membership

rooms_bp = Blueprint('rooms', __name__, url_prefix='/api/rooms')


def as_bool(value):
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in ('1', 'true', 'yes', 'on')


def room_payload(room, user_id):
    data = room.to_dict()
    data['role'] = membership.get_role(room.id, user_id)
    member = RoomMember.query.filter_by(room_id=room.id, user_id=user_id).first()
    data['membership_status'] = 'approved' if room.owner_id == user_id else (
        member.status if member else None)
    return data


@rooms_bp.route('', methods=['POST'])
@login_required
def create_room():
    data = request_data()
    room = membership.create_room(
        current_user,
        name=data.get('name'),
        room_type=data.get('type') or 'public',
        password=data.get('password'),
        description=data.get('description'),
        is_commercial=as_bool(data.get('is_commercial')),
    )
    return jsonify({
        'room': room_payload(room, current_user.id),
        'usage': membership.usage_summary(current_user.id),
    }), 201


@rooms_bp.route('', methods=['GET'])
@login_required
def list_rooms():
    rooms = membership.list_rooms(current_user)
    return jsonify({'rooms': [room_payload(r, current_user.id) for r in rooms]})


@rooms_bp.route('/usage', methods=['GET'])
@login_required
def room_usage():
    return jsonify(membership.usage_summary(current_user.id))


@rooms_bp.route('/<int:room_id>', methods=['GET'])
@login_required
def show_room(room_id):
    room = membership.get_room(room_id)
    return jsonify({'room': room_payload(room, current_user.id)})


@rooms_bp.route('/<int:room_id>', methods=['DELETE'])
@login_required
def delete_room(room_id):
    membership.delete_room(room_id, current_user)
    return jsonify({'success': True})


@rooms_bp.route('/<int:room_id>/join', methods=['POST'])
@login_required
def join_room(room_id):
    status = membership.join_room(room_id, current_user, password=request_data().get('password'))
    message = ('You have joined the room successfully' if status == 'approved'
               else 'Your request to join has been sent to the room owner')
    return jsonify({'success': True, 'status': status, 'message': message})


@rooms_bp.route('/<int:room_id>/leave', methods=['POST'])
@login_required
def leave_room(room_id):
    membership.leave_room(room_id, current_user)
    return jsonify({'success': True, 'message': 'You have left the room'})


@rooms_bp.route('/<int:room_id>/members', methods=['GET'])
@login_required
def list_members(room_id):
    return jsonify({'members': membership.list_members(room_id, current_user)})


@rooms_bp.route('/<int:room_id>/members/pending', methods=['GET'])
@login_required
def pending_members(room_id):
    return jsonify({'requests': membership.pending_requests(room_id, current_user)})


@rooms_bp.route('/<int:room_id>/members/<int:user_id>/approve', methods=['POST'])
@login_required
def approve_member(room_id, user_id):
    member = membership.approve_member(room_id, current_user, user_id)
    return jsonify({'success': True, 'member': member.to_dict()})


@rooms_bp.route('/<int:room_id>/members/<int:user_id>/reject', methods=['POST'])
@login_required
def reject_member(room_id, user_id):
    member = membership.reject_member(room_id, current_user, user_id)
    return jsonify({'success': True, 'member': member.to_dict()})


@rooms_bp.route('/<int:room_id>/members/<int:user_id>/remove', methods=['POST'])
@login_required
def remove_member(room_id, user_id):
    permanent = as_bool(request_data().get('permanent'))
    member = membership.remove_member(room_id, current_user, user_id, permanent=permanent)
    return jsonify({'success': True, 'member': member.to_dict()})


@rooms_bp.route('/<int:room_id>/members/<int:user_id>/promote', methods=['POST'])
@login_required
def promote_member(room_id, user_id):
    member = membership.set_member_role(room_id, current_user, user_id, 'moderator')
    return jsonify({'success': True, 'member': member.to_dict()})


@rooms_bp.route('/<int:room_id>/members/<int:user_id>/demote', methods=['POST'])
@login_required
def demote_member(room_id, user_id):
    member = membership.set_member_role(room_id, current_user, user_id, 'member')
    return jsonify({'success': True, 'member': member.to_dict()})
