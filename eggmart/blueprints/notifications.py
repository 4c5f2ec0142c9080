from flask import Blueprint, jsonify
from eggmart.middleware import auth_required
from eggmart.services import notification_service
from eggmart.utils import get_json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('notifications', __name__)


@bp.route('/api/notifications', methods=['GET'])
@auth_required
def list_notifications(auth):
    notifications = notification_service.list_notifications(auth.user_id)
    return jsonify({
        'notifications': [n.to_dict() for n in notifications]
    })


@bp.route('/api/notifications', methods=['POST'])
@auth_required
def create_notification(auth):
    notification = notification_service.create_notification(
        auth.user_id, get_json_body())
    return jsonify({'success': True, 'notificationId': notification.id})


@bp.route('/api/notifications/feed', methods=['GET'])
@auth_required
def notification_feed(auth):
    feed = notification_service.customer_feed(auth.user_id)
    return jsonify({
        'notifications': [n.to_dict() for n in feed],
        'unreadCount': sum(1 for n in feed if not n.is_read),
    })


@bp.route('/api/notifications/mark-all-read', methods=['PUT'])
@auth_required
def mark_all_read(auth):
    count = notification_service.mark_all_read(auth.user_id)
    return jsonify({'success': True, 'updatedCount': count})


@bp.route('/api/notifications/<int:notification_id>', methods=['PUT'])
@auth_required
def update_notification(notification_id, auth):
    data = get_json_body()
    notification_service.set_read_state(
        auth.user_id, notification_id, data.get('isRead'))
    return jsonify({'success': True})


@bp.route('/api/notifications/<int:notification_id>', methods=['DELETE'])
@auth_required
def delete_notification(notification_id, auth):
    notification_service.delete_notification(auth.user_id, notification_id)
    return jsonify({'success': True})
