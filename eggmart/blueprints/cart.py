from flask import Blueprint, jsonify, request
from eggmart.middleware import auth_required
from eggmart.serializers import serialize_cart_item
from eggmart.services import cart_service
from eggmart.utils import get_json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('cart', __name__)


@bp.route('/api/cart', methods=['GET'])
@auth_required
def view_cart(auth):
    rows = cart_service.get_cart(auth.user_id)
    return jsonify({
        'items': [serialize_cart_item(item, sale) for item, sale in rows]
    })


@bp.route('/api/cart', methods=['POST'])
@auth_required
def add_to_cart(auth):
    cart_service.add_to_cart(auth.user_id, get_json_body())
    return jsonify({'success': True})


@bp.route('/api/cart', methods=['PUT'])
@auth_required
def update_cart(auth):
    cart_service.update_cart_item(auth.user_id, get_json_body())
    return jsonify({'success': True})


@bp.route('/api/cart', methods=['DELETE'])
@auth_required
def remove_from_cart(auth):
    data = get_json_body() or request.args
    cart_service.remove_from_cart(auth.user_id, data)
    return jsonify({'success': True})
