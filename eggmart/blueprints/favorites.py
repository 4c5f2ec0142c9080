from flask import Blueprint, jsonify, request
from eggmart.middleware import auth_required
from eggmart.serializers import serialize_favorite
from eggmart.services import cart_service
from eggmart.utils import get_json_body

bp = Blueprint('favorites', __name__)


@bp.route('/api/favorites', methods=['GET'])
@auth_required
def list_favorites(auth):
    favorites = cart_service.list_favorites(auth.user_id)
    return jsonify({'items': [serialize_favorite(f) for f in favorites]})


@bp.route('/api/favorites', methods=['POST'])
@auth_required
def add_favorite(auth):
    cart_service.add_favorite(auth.user_id, get_json_body())
    return jsonify({'success': True})


@bp.route('/api/favorites', methods=['DELETE'])
@auth_required
def remove_favorite(auth):
    data = get_json_body() or request.args
    cart_service.remove_favorite(auth.user_id, data)
    return jsonify({'success': True})
