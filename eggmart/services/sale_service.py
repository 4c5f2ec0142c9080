from datetime import datetime
from sqlalchemy import and_, or_
from eggmart.extensions import db
from eggmart.models import Product, Sale, SaleStatus
from eggmart.services.audit_service import audit_as
from eggmart.services.errors import InvalidRequest, NotFound
from eggmart.utils import parse_decimal, parse_int, parse_iso_datetime
import logging

logger = logging.getLogger(__name__)

SALE_FIELDS = (
    'originalPrice',
    'salePrice',
    'discountPercentage',
    'quantityAvailable',
    'startDate',
    'endDate',
)

OVERLAP_MESSAGE = (
    'There is already an active sale for this product '
    'during the specified period'
)


def expire_sales(now=None):
    """Flip active sales whose end date has passed to expired.

    Runs lazily before catalog, cart and sale reads. Expiry is one-way;
    nothing ever moves a sale back to active on its own.
    """
    now = now or datetime.utcnow()
    count = Sale.query.filter(
        Sale.status == SaleStatus.ACTIVE,
        Sale.end_date < now
    ).update(
        {Sale.status: SaleStatus.EXPIRED, Sale.updated_at: now},
        synchronize_session=False
    )
    db.session.commit()
    if count:
        logger.info("Expired %s sale(s)", count)
    return count


def active_sale_filter(now):
    return and_(
        Sale.status == SaleStatus.ACTIVE,
        Sale.start_date <= now,
        Sale.end_date >= now,
    )


def get_active_sale(product_id, now=None):
    now = now or datetime.utcnow()
    return Sale.query.filter(
        Sale.product_id == product_id,
        active_sale_filter(now)
    ).order_by(Sale.created_at.desc(), Sale.id.desc()).first()


def get_active_sales_by_product(product_ids, now=None):
    if not product_ids:
        return {}
    now = now or datetime.utcnow()
    sales = Sale.query.filter(
        Sale.product_id.in_(product_ids),
        active_sale_filter(now)
    ).order_by(Sale.created_at.asc(), Sale.id.asc()).all()
    # Newest sale wins when several are live for one product.
    return {sale.product_id: sale for sale in sales}


def effective_price(product, sale):
    if sale is not None:
        return sale.sale_price
    return product.price


def list_sales():
    return Sale.query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def get_sale(sale_id):
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFound('Sale not found')
    return sale


def _find_overlap(product_id, start, end, exclude_id=None):
    query = Sale.query.filter(
        Sale.product_id == product_id,
        Sale.status == SaleStatus.ACTIVE,
        or_(
            and_(Sale.start_date <= start, Sale.end_date >= start),
            and_(Sale.start_date <= end, Sale.end_date >= end),
            and_(Sale.start_date >= start, Sale.end_date <= end),
        )
    )
    if exclude_id is not None:
        query = query.filter(Sale.id != exclude_id)
    return query.first()


def _parse_sale_fields(data):
    for field in SALE_FIELDS:
        if data.get(field) in (None, ''):
            raise InvalidRequest('Missing required fields')

    fields = {
        'original_price': parse_decimal(
            data['originalPrice'], 'originalPrice'),
        'sale_price': parse_decimal(data['salePrice'], 'salePrice'),
        'discount_percentage': parse_decimal(
            data['discountPercentage'], 'discountPercentage'),
        'quantity_available': parse_int(
            data['quantityAvailable'], 'quantityAvailable'),
        'start_date': parse_iso_datetime(data['startDate']),
        'end_date': parse_iso_datetime(data['endDate']),
    }

    if fields['quantity_available'] <= 0:
        raise InvalidRequest('Quantity available must be greater than 0')
    if fields['sale_price'] < 0:
        raise InvalidRequest('Sale price cannot be negative')
    if fields['sale_price'] >= fields['original_price']:
        raise InvalidRequest('Sale price must be lower than original price')
    if not 0 < fields['discount_percentage'] <= 100:
        raise InvalidRequest('Discount percentage must be between 0 and 100')
    if fields['start_date'] >= fields['end_date']:
        raise InvalidRequest('Start date must be before end date')
    return fields


def _check_against_product(product, fields):
    if fields['quantity_available'] > product.stock:
        raise InvalidRequest(
            f"Quantity available ({fields['quantity_available']}) "
            f"cannot exceed product stock ({product.stock})"
        )


def create_sale(auth, data):
    if data.get('productId') in (None, ''):
        raise InvalidRequest('Missing required fields')
    fields = _parse_sale_fields(data)
    product_id = parse_int(data['productId'], 'productId')

    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound('Product not found')
    _check_against_product(product, fields)

    if _find_overlap(product.id, fields['start_date'], fields['end_date']):
        raise InvalidRequest(OVERLAP_MESSAGE)

    sale = Sale(product_id=product.id, status=SaleStatus.ACTIVE, **fields)
    db.session.add(sale)
    db.session.commit()

    audit_as(
        auth,
        'SALE_CREATE',
        target_type='SALE',
        target_id=sale.id,
        payload={
            'product_id': product.id,
            'sale_price': str(sale.sale_price),
            'quantity_available': sale.quantity_available,
        })
    return sale


def update_sale(auth, sale_id, data):
    fields = _parse_sale_fields(data)
    status_value = data.get('status') or SaleStatus.ACTIVE.value
    try:
        status = SaleStatus(status_value)
    except ValueError:
        raise InvalidRequest('Invalid status')

    sale = get_sale(sale_id)
    product = db.session.get(Product, sale.product_id)
    if product is None:
        raise NotFound('Product not found')
    _check_against_product(product, fields)

    if status == SaleStatus.ACTIVE and _find_overlap(
            product.id,
            fields['start_date'],
            fields['end_date'],
            exclude_id=sale.id):
        raise InvalidRequest(OVERLAP_MESSAGE)

    for key, value in fields.items():
        setattr(sale, key, value)
    sale.status = status
    db.session.commit()

    audit_as(
        auth,
        'SALE_UPDATE',
        target_type='SALE',
        target_id=sale.id,
        payload={'status': status.value})
    return sale


def delete_sale(auth, sale_id):
    sale = get_sale(sale_id)
    db.session.delete(sale)
    db.session.commit()
    audit_as(auth, 'SALE_DELETE', target_type='SALE', target_id=sale_id)
