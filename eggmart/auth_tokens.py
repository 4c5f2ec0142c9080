from flask import current_app
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
import logging

logger = logging.getLogger(__name__)

TOKEN_SALT = 'auth-token'


def _serializer():
    return URLSafeTimedSerializer(
        current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def issue_token(user):
    """Sign a session token carrying the user's id and role."""
    return _serializer().dumps({'sub': user.id, 'role': user.role.value})


def decode_token(token):
    """Return the token payload, or None when it is forged or expired."""
    max_age = current_app.config['AUTH_TOKEN_MAX_AGE']
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        logger.info("Expired auth token presented")
        return None
    except BadSignature:
        logger.warning("Auth token with bad signature presented")
        return None

    if not isinstance(payload, dict) or 'sub' not in payload:
        return None
    return payload
