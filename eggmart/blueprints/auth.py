from flask import Blueprint, current_app, jsonify
from eggmart.auth_tokens import issue_token
from eggmart.extensions import db
from eggmart.middleware import auth_required, current_auth
from eggmart.models import User, UserRole
from eggmart.serializers import serialize_user
from eggmart.services.audit_service import log_audit
from eggmart.services.errors import Conflict, Unauthenticated
from eggmart.utils import get_json_body
from datetime import datetime
import logging
import re

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__)

EMAIL_PATTERN = re.compile(r'[^@\s]+@[^@\s]+\.[^@\s]+')


def _text(data, key):
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ''


@bp.route('/api/auth/signup', methods=['POST'])
def signup():
    data = get_json_body()
    name = _text(data, 'name')
    email = _text(data, 'email').lower()
    password = data.get('password')
    phone = _text(data, 'phoneNumber')
    address = _text(data, 'address')

    if (
        not name
        or not EMAIL_PATTERN.fullmatch(email)
        or not isinstance(password, str) or len(password) < 6
        or len(phone) < 3
        or len(address) < 3
    ):
        return jsonify({'error': 'Invalid payload'}), 400

    if User.query.filter_by(email=email).first():
        raise Conflict('Email already registered')

    user = User(
        name=name,
        email=email,
        phone=phone,
        address=address,
        role=UserRole.USER)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    log_audit(
        actor_id=user.id,
        actor_role=user.role.value,
        action='SIGNUP',
        target_type='USER',
        target_id=user.id,
        payload={'email': user.email}
    )
    return jsonify({'ok': True})


@bp.route('/api/auth/login', methods=['POST'])
def login():
    data = get_json_body()
    email = _text(data, 'email').lower()
    password = data.get('password')

    if not email or not isinstance(password, str) or not password:
        return jsonify({'error': 'Invalid payload'}), 400

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        log_audit(
            actor_id=None,
            actor_role='anonymous',
            action='LOGIN_FAILED',
            target_type='USER',
            target_id=user.id if user else None,
            payload={
                'reason': 'invalid_credentials' if user else 'user_not_found'})
        return jsonify({'error': 'Invalid credentials'}), 401

    user.last_login_at = datetime.utcnow()
    db.session.commit()

    log_audit(
        actor_id=user.id,
        actor_role=user.role.value,
        action='LOGIN_SUCCESS',
        target_type='USER',
        target_id=user.id,
        payload={'event': 'login_success'}
    )

    response = jsonify({
        'ok': True,
        'user': {
            'id': user.id,
            'name': user.name,
            'email': user.email,
            'role': user.role.value,
        },
    })
    response.set_cookie(
        current_app.config['AUTH_COOKIE_NAME'],
        issue_token(user),
        max_age=current_app.config['AUTH_TOKEN_MAX_AGE'],
        httponly=True,
        samesite='Lax',
        secure=current_app.config['AUTH_COOKIE_SECURE'],
        path='/',
    )
    return response


@bp.route('/api/auth/logout', methods=['POST'])
def logout():
    auth = current_auth()
    if auth is not None:
        log_audit(
            actor_id=auth.user_id,
            actor_role=auth.role,
            action='LOGOUT',
            target_type='USER',
            target_id=auth.user_id,
        )

    response = jsonify({'ok': True})
    response.delete_cookie(current_app.config['AUTH_COOKIE_NAME'], path='/')
    return response


@bp.route('/api/auth/me', methods=['GET'])
@auth_required
def me(auth):
    user = db.session.get(User, auth.user_id)
    if user is None:
        raise Unauthenticated()
    return jsonify({'user': serialize_user(user)})
