from datetime import datetime
from sqlalchemy.exc import IntegrityError
from eggmart.extensions import db
from eggmart.models import CartItem, Favorite, Product, ProductStatus
from eggmart.services.errors import (
    InsufficientStock,
    InvalidRequest,
    NotFound,
    Unavailable,
)
from eggmart.services.sale_service import (
    expire_sales,
    get_active_sales_by_product,
)
from eggmart.utils import parse_int
import logging

logger = logging.getLogger(__name__)


def _product_id(data):
    product_id = data.get('productId')
    if product_id in (None, ''):
        raise InvalidRequest('Product ID is required')
    return parse_int(product_id, 'productId')


def _check_stock(product, quantity):
    if product.stock < quantity:
        raise InsufficientStock(
            f'Insufficient stock. Only {product.stock} items available.')


def get_cart(user_id, now=None):
    """Cart rows paired with the sale, if any, that prices them right now."""
    now = now or datetime.utcnow()
    expire_sales(now)
    items = CartItem.query.filter_by(user_id=user_id).order_by(
        CartItem.created_at.desc(), CartItem.id.desc()).all()
    sales = get_active_sales_by_product(
        [item.product_id for item in items], now)
    return [(item, sales.get(item.product_id)) for item in items]


def add_to_cart(user_id, data):
    product_id = _product_id(data)
    quantity = parse_int(data.get('quantity', 1), 'quantity')
    if quantity <= 0:
        raise InvalidRequest('Quantity must be a positive integer')

    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound('Product not found')
    if product.status != ProductStatus.ACTIVE:
        raise Unavailable('Product is not available')
    _check_stock(product, quantity)

    item = CartItem.query.filter_by(
        user_id=user_id, product_id=product_id).first()
    if item:
        item.quantity += quantity
    else:
        item = CartItem(
            user_id=user_id, product_id=product_id, quantity=quantity)
        db.session.add(item)
    db.session.commit()
    return item


def update_cart_item(user_id, data):
    """Replace a line's quantity; zero or less removes the line."""
    product_id = _product_id(data)
    if data.get('quantity') in (None, ''):
        raise InvalidRequest('Product ID and quantity are required')
    quantity = parse_int(data.get('quantity'), 'quantity')

    if quantity <= 0:
        CartItem.query.filter_by(
            user_id=user_id, product_id=product_id
        ).delete(synchronize_session=False)
        db.session.commit()
        return None

    product = db.session.get(Product, product_id)
    if product is not None:
        _check_stock(product, quantity)

    item = CartItem.query.filter_by(
        user_id=user_id, product_id=product_id).first()
    if item is None:
        raise NotFound('Cart item not found')
    item.quantity = quantity
    db.session.commit()
    return item


def remove_from_cart(user_id, data):
    product_id = _product_id(data)
    CartItem.query.filter_by(
        user_id=user_id, product_id=product_id
    ).delete(synchronize_session=False)
    db.session.commit()


def list_favorites(user_id):
    return Favorite.query.filter_by(user_id=user_id).order_by(
        Favorite.created_at.desc(), Favorite.id.desc()).all()


def add_favorite(user_id, data):
    product_id = _product_id(data)
    if db.session.get(Product, product_id) is None:
        raise NotFound('Product not found')

    existing = Favorite.query.filter_by(
        user_id=user_id, product_id=product_id).first()
    if existing:
        raise InvalidRequest('Product already in favorites')

    favorite = Favorite(user_id=user_id, product_id=product_id)
    db.session.add(favorite)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise InvalidRequest('Product already in favorites')
    return favorite


def remove_favorite(user_id, data):
    product_id = _product_id(data)
    Favorite.query.filter_by(
        user_id=user_id, product_id=product_id
    ).delete(synchronize_session=False)
    db.session.commit()
