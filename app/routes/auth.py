# Authentication routes (session based, JSON)

import logging
import re

from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, current_user, login_required
from werkzeug.security import generate_password_hash, check_password_hash

from app.extensions import db
from app.functions.errors import ValidationError
from app.models import User

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def request_data():
    # JSON body, or form fields for multipart/urlencoded requests
    return request.get_json(silent=True) or request.form.to_dict()


def validate_username(username):
    # Validate username format and length
    if not username or len(username) < 3:
        return False, "user name should be at least 3 characters long"

    if len(username) > 30:
        return False, "user name should be less than 30 characters long"

    # Only alphanumeric, hyphens, underscores
    if not re.match(r'^[a-zA-Z0-9_-]+$', username):
        return False, "user name can only contain letters, numbers, hyphens, and underscores"

    return True, ""


def validate_password(password):
    # Validate password strength
    if not password or len(password) < 8:
        return False, "password should be at least 8 characters long"

    if len(password) > 100:
        return False, "password should be less than 100 characters long"

    # Check for at least one uppercase, one lowercase, one digit
    has_upper = any(c.isupper() for c in password)
    has_lower = any(c.islower() for c in password)
    has_digit = any(c.isdigit() for c in password)

    if not (has_upper and has_lower and has_digit):
        return False, "password should contain at least one uppercase letter, one lowercase letter, and one digit"

    return True, ""


@auth_bp.route('/register', methods=['POST'])
def register():
    data = request_data()
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    errors = {}
    is_valid, msg = validate_username(name)
    if not is_valid:
        errors['name'] = [msg]
    elif User.query.filter_by(name=name).first():
        errors['name'] = ['user name already taken']
    if not EMAIL_RE.match(email):
        errors['email'] = ['email address is invalid']
    elif User.query.filter_by(email=email).first():
        errors['email'] = ['email already registered']
    is_valid, msg = validate_password(password)
    if not is_valid:
        errors['password'] = [msg]
    if errors:
        raise ValidationError('The given data was invalid', errors)

    user = User(name=name, email=email, password=generate_password_hash(password, method='scrypt'))
    db.session.add(user)
    db.session.commit()
    login_user(user)
    logger.info('[AUTH] registered user %s (%s)', user.id, user.name)
    return jsonify({'user': user.to_public()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request_data()
    login_name = (data.get('email') or data.get('name') or '').strip()
    password = data.get('password') or ''

    user = User.query.filter(
        db.or_(User.email == login_name.lower(), User.name == login_name)
    ).first()
    if not user or not check_password_hash(user.password, password):
        logger.info('[AUTH] failed login for %r', login_name)
        return jsonify({'error': 'login failed. check your credentials'}), 401

    login_user(user, remember=bool(data.get('remember')))
    return jsonify({'user': user.to_public()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'user': current_user.to_public()})
