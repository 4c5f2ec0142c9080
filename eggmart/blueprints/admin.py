from flask import Blueprint, jsonify
from eggmart.middleware import role_required
from eggmart.serializers import (
    items_summary,
    serialize_order,
    serialize_order_item,
)
from eggmart.services import analytics_service, order_service
from eggmart.utils import get_json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__)


@bp.route('/api/admin/orders', methods=['GET'])
@role_required('admin')
def list_orders(auth):
    orders = []
    for order in order_service.list_all_orders():
        data = serialize_order(order)
        data['items'] = items_summary(order)
        orders.append(data)
    return jsonify({'orders': orders})


@bp.route('/api/admin/orders/<int:order_id>', methods=['GET'])
@role_required('admin')
def order_detail(order_id, auth):
    order = order_service.get_order(order_id)
    data = serialize_order(order)
    data['userId'] = order.user_id
    data['items'] = [serialize_order_item(item) for item in order.items]
    return jsonify({'order': data})


@bp.route('/api/admin/orders/<int:order_id>', methods=['PUT'])
@role_required('admin')
def update_order_status(order_id, auth):
    result = order_service.update_order_status(
        auth, order_id, get_json_body())
    return jsonify(result)


@bp.route('/api/admin/orders/<int:order_id>/receipt', methods=['GET'])
@role_required('admin')
def order_receipt(order_id, auth):
    order = order_service.get_order(order_id)
    return jsonify({'receipt': order_service.build_receipt(order)})


@bp.route('/api/admin/analytics', methods=['GET'])
@role_required('admin')
def analytics(auth):
    return jsonify(analytics_service.build_dashboard())
