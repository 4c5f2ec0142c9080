from dataclasses import dataclass
from flask import request, jsonify, g
from flask_login import current_user
from functools import wraps
import logging

logger = logging.getLogger(__name__)

# Exact paths that never require login
LOGIN_WHITELIST = [
    '/api/auth/login',
    '/api/auth/signup',
    '/api/auth/logout',
]

# Read-only catalog endpoints open to anonymous visitors
PUBLIC_BROWSE_PREFIXES = (
    '/api/products',
    '/api/categories',
    '/api/product-ratings',
    '/api/sales/notifications',
    '/api/ratings',
)


@dataclass(frozen=True)
class AuthContext:
    user_id: int
    role: str


def is_public_browse_path(path: str) -> bool:
    return path.startswith(PUBLIC_BROWSE_PREFIXES)


def is_static_file(path):
    return path.startswith('/static/')


def resolve_auth_context():
    if not current_user.is_authenticated:
        return None
    return AuthContext(user_id=current_user.id, role=current_user.role.value)


def setup_auth_middleware(app):

    @app.before_request
    def require_login():
        path = request.path
        method = request.method.upper()

        g.auth = resolve_auth_context()

        if is_static_file(path) or not path.startswith('/api/'):
            return None

        if path in LOGIN_WHITELIST:
            return None

        # Allow anonymous browsing for safe methods
        if method in (
            'GET',
            'HEAD',
                'OPTIONS') and is_public_browse_path(path):
            return None

        if g.auth is None:
            return jsonify({'error': 'Not authenticated'}), 401

        return None


def auth_required(f):
    """Reject anonymous callers and hand the AuthContext to the view."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth = g.get('auth')
        if auth is None:
            return jsonify({'error': 'Not authenticated'}), 401
        kwargs['auth'] = auth
        return f(*args, **kwargs)
    return decorated_function


def role_required(*allowed_roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth = g.get('auth')
            if auth is None:
                return jsonify({'error': 'Not authenticated'}), 401

            # allowed_roles is a list of role names.
            if auth.role not in allowed_roles:
                logger.warning(
                    "User %s attempted to access roles %s, current role: %s",
                    auth.user_id,
                    allowed_roles,
                    auth.role,
                )
                return jsonify({'error': 'Not authorized'}), 401

            kwargs['auth'] = auth
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def current_auth():
    """AuthContext for the current request, or None for anonymous callers."""
    return g.get('auth')
