from flask import Blueprint, jsonify
from eggmart.middleware import role_required
from eggmart.serializers import (
    serialize_category,
    serialize_product,
    serialize_product_detail,
    serialize_rating,
)
from eggmart.services import catalog_service
from eggmart.utils import get_json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('products', __name__)


@bp.route('/api/products', methods=['GET'])
def list_products():
    rows = catalog_service.list_products()
    return jsonify({
        'items': [
            serialize_product(product, sale, rating)
            for product, sale, rating in rows
        ]
    })


@bp.route('/api/products/<int:product_id>', methods=['GET'])
def product_detail(product_id):
    product, sale, rating = catalog_service.get_product_detail(product_id)
    return jsonify(serialize_product_detail(product, sale, rating))


@bp.route('/api/products', methods=['POST'])
@role_required('admin')
def create_product(auth):
    product = catalog_service.create_product(auth, get_json_body())
    logger.info("Product %s created by admin %s", product.id, auth.user_id)
    return jsonify({'ok': True, 'id': product.id})


@bp.route('/api/products/<int:product_id>', methods=['PUT'])
@role_required('admin')
def update_product(product_id, auth):
    catalog_service.update_product(auth, product_id, get_json_body())
    return jsonify({'ok': True})


@bp.route('/api/products/<int:product_id>', methods=['DELETE'])
@role_required('admin')
def delete_product(product_id, auth):
    catalog_service.delete_product(auth, product_id)
    return jsonify({'ok': True})


@bp.route('/api/categories', methods=['GET'])
def list_categories():
    return jsonify({
        'categories': [
            serialize_category(c) for c in catalog_service.list_categories()
        ]
    })


@bp.route('/api/product-ratings/<int:product_id>', methods=['GET'])
def product_ratings(product_id):
    ratings, stats = catalog_service.get_product_ratings(product_id)
    return jsonify({
        'ratings': [serialize_rating(r) for r in ratings],
        'stats': stats,
    })
