from flask import Blueprint, jsonify, request
from eggmart.middleware import auth_required
from eggmart.serializers import serialize_order, serialize_order_item
from eggmart.services import order_service
from eggmart.utils import get_json_body, parse_int
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('orders', __name__)


@bp.route('/api/orders', methods=['POST'])
@auth_required
def create_order(auth):
    result = order_service.create_order(auth, get_json_body())
    return jsonify(result)


@bp.route('/api/orders', methods=['GET'])
@auth_required
def list_orders(auth):
    product_id = request.args.get('productId')
    if product_id:
        product_id = parse_int(product_id, 'productId')
    orders = order_service.list_user_orders(auth.user_id, product_id or None)
    return jsonify({'orders': [serialize_order(o) for o in orders]})


@bp.route('/api/orders/<int:order_id>', methods=['GET'])
@auth_required
def order_detail(order_id, auth):
    order, rating = order_service.get_user_order(auth.user_id, order_id)
    data = serialize_order(order)
    items = []
    for item in order.items:
        entry = serialize_order_item(item)
        entry['userRating'] = rating.rating if rating else None
        entry['userReview'] = rating.review_text if rating else None
        items.append(entry)
    data['items'] = items
    return jsonify({'order': data})
