from eggmart.extensions import db
from eggmart.models import AuditLog
from flask import has_request_context, request
import logging
import json

logger = logging.getLogger(__name__)
major_logger = logging.getLogger('major_events')
if not major_logger.handlers:
    handler = logging.FileHandler('major_events.log')
    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s')
    handler.setFormatter(formatter)
    major_logger.addHandler(handler)
    major_logger.setLevel(logging.INFO)
    major_logger.propagate = False

MAJOR_ACTION_PREFIXES = (
    'LOGIN',
    'LOGOUT',
    'SIGNUP',
    'ORDER_',
    'SALE_',
    'RATING_',
)

PAYLOAD_BRIEF_LIMIT = 600


def _should_log_major(action: str) -> bool:
    if not action:
        return False
    return action.startswith(MAJOR_ACTION_PREFIXES)


def _brief(payload):
    if payload is None:
        return None
    try:
        text = json.dumps(
            payload, ensure_ascii=False, separators=(',', ':'), default=str)
    except (TypeError, ValueError):
        return None
    if len(text) > PAYLOAD_BRIEF_LIMIT:
        text = text[:PAYLOAD_BRIEF_LIMIT] + '...'
    return text


def log_audit(
        actor_id=None,
        actor_role='anonymous',
        action='',
        target_type=None,
        target_id=None,
        payload=None,
        ip=None,
        user_agent=None):
    """Persist an audit row and echo it to the application log.

    Failures never propagate: the audit trail must not break the request
    that triggered it.
    """
    path = None
    method = None
    if has_request_context():
        ip = ip or request.remote_addr
        user_agent = user_agent or request.headers.get('User-Agent')
        path = request.path
        method = request.method

    try:
        audit = AuditLog(
            actor_id=actor_id,
            actor_role=actor_role,
            action=action,
            target_type=target_type,
            target_id=target_id,
            ip=ip,
            user_agent=user_agent
        )

        if payload:
            audit.set_payload(payload)

        db.session.add(audit)
        db.session.commit()
    except Exception as e:
        logger.error(f"Failed to log audit: {e}", exc_info=True)
        db.session.rollback()
        return

    payload_brief = _brief(payload)
    logger.info(
        "AUDIT action=%s actor_role=%s actor_id=%s target_type=%s "
        "target_id=%s method=%s path=%s payload=%s",
        action,
        actor_role,
        actor_id,
        target_type,
        target_id,
        method,
        path,
        payload_brief,
    )

    if _should_log_major(action):
        major_logger.info(
            "action=%s actor_role=%s actor_id=%s target_type=%s "
            "target_id=%s method=%s path=%s payload=%s",
            action,
            actor_role,
            actor_id,
            target_type,
            target_id,
            method,
            path,
            payload_brief,
        )


def audit_as(auth, action, **kwargs):
    """log_audit shortcut for a request carrying an AuthContext."""
    log_audit(
        actor_id=auth.user_id if auth else None,
        actor_role=auth.role if auth else 'anonymous',
        action=action,
        **kwargs)
