from flask import Blueprint, jsonify
from eggmart.middleware import role_required
from eggmart.serializers import serialize_sale
from eggmart.services import notification_service, sale_service
from eggmart.utils import get_json_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('sales', __name__)


@bp.route('/api/sales/notifications', methods=['GET'])
def sale_notifications():
    notifications = notification_service.sale_notifications()
    return jsonify({
        'notifications': [n.to_dict() for n in notifications],
        'count': len(notifications),
    })


@bp.route('/api/admin/sales', methods=['GET'])
@role_required('admin')
def list_sales(auth):
    sale_service.expire_sales()
    return jsonify({
        'sales': [serialize_sale(s) for s in sale_service.list_sales()]
    })


@bp.route('/api/admin/sales/<int:sale_id>', methods=['GET'])
@role_required('admin')
def sale_detail(sale_id, auth):
    sale_service.expire_sales()
    return jsonify(serialize_sale(sale_service.get_sale(sale_id)))


@bp.route('/api/admin/sales', methods=['POST'])
@role_required('admin')
def create_sale(auth):
    sale = sale_service.create_sale(auth, get_json_body())
    return jsonify({'success': True, 'saleId': sale.id})


@bp.route('/api/admin/sales/<int:sale_id>', methods=['PUT'])
@role_required('admin')
def update_sale(sale_id, auth):
    sale_service.update_sale(auth, sale_id, get_json_body())
    return jsonify({'success': True})


@bp.route('/api/admin/sales/<int:sale_id>', methods=['DELETE'])
@role_required('admin')
def delete_sale(sale_id, auth):
    sale_service.delete_sale(auth, sale_id)
    return jsonify({'success': True})
