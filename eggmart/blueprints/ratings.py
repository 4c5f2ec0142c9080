from flask import Blueprint, jsonify, request
from eggmart.middleware import auth_required, current_auth
from eggmart.serializers import serialize_rating
from eggmart.services import rating_service
from eggmart.utils import get_json_body, isoformat, parse_int
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('ratings', __name__)


def _order_id_arg():
    order_id = request.args.get('orderId')
    if not order_id:
        return None
    return parse_int(order_id, 'orderId')


@bp.route('/api/ratings', methods=['GET'])
def get_ratings():
    order_id = _order_id_arg()
    if order_id is None:
        return jsonify({'error': 'Order ID is required'}), 400

    auth = current_auth()
    ratings = rating_service.list_order_ratings(order_id)
    own = rating_service.get_user_rating(
        auth.user_id if auth else None, order_id)
    return jsonify({
        'ratings': [serialize_rating(r) for r in ratings],
        'userRating': {
            'rating': own.rating,
            'reviewText': own.review_text,
            'createdAt': isoformat(own.created_at),
            'updatedAt': isoformat(own.updated_at),
        } if own else None,
    })


@bp.route('/api/ratings', methods=['POST'])
@auth_required
def create_rating(auth):
    rating_service.create_rating(auth, get_json_body())
    return jsonify({'success': True, 'message': 'Rating added successfully'})


@bp.route('/api/ratings', methods=['DELETE'])
@auth_required
def delete_rating(auth):
    order_id = _order_id_arg()
    if order_id is None:
        return jsonify({'error': 'Order ID is required'}), 400
    rating_service.delete_rating(auth, order_id)
    return jsonify({
        'success': True,
        'message': 'Rating deleted successfully',
    })
