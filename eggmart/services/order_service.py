from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from eggmart.extensions import db
from eggmart.models import (
    CartItem,
    Order,
    OrderItem,
    OrderRating,
    OrderStatus,
    Product,
    ProductStatus,
    Sale,
    SaleStatus,
)
from eggmart.services.audit_service import audit_as
from eggmart.services.errors import (
    InsufficientStock,
    InvalidRequest,
    NotFound,
    Unavailable,
)
from eggmart.services.notification_service import notify_order_status
from eggmart.services.sale_service import effective_price, get_active_sale
from eggmart.utils import money, optional_text, parse_int, quantize_money
import logging
import random
import time

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 3
DELIVERY_METHODS = ('delivery', 'pickup')


def generate_order_number(now_ms=None):
    """EGG + last 6 digits of the millisecond clock + 3 random digits."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = random.randint(0, 999)
    return f'EGG{str(now_ms)[-6:]}{suffix:03d}'


def calculate_delivery_fee(delivery_method, subtotal) -> Decimal:
    if delivery_method == 'pickup':
        return Decimal('0')
    if Decimal(subtotal) >= Decimal(
            current_app.config['FREE_DELIVERY_THRESHOLD']):
        return Decimal('0')
    return Decimal(current_app.config['DELIVERY_FEE'])


def _stock_error(name, available, required):
    return InsufficientStock(
        f'Insufficient stock for {name}. '
        f'Available: {available}, Required: {required}'
    )


def _sale_error(remaining):
    return InsufficientStock(
        f'Insufficient sale quantity. '
        f'Only {max(remaining, 0)} items available on sale.'
    )


def _parse_order_request(data):
    product_id = data.get('productId')
    quantity = data.get('quantity')
    customer = data.get('customerInfo')
    if product_id in (None, '') or quantity in (None, '') or not customer:
        raise InvalidRequest('Missing required fields')

    product_id = parse_int(product_id, 'productId')
    try:
        quantity = parse_int(quantity, 'quantity')
    except InvalidRequest:
        raise InvalidRequest('Quantity must be a positive integer')
    if quantity <= 0:
        raise InvalidRequest('Quantity must be a positive integer')

    if not isinstance(customer, dict):
        raise InvalidRequest('Invalid customer information')
    for field in ('name', 'email', 'phone'):
        value = customer.get(field)
        if not isinstance(value, str) or not value.strip():
            raise InvalidRequest(f'Customer {field} is required')

    delivery_method = data.get('deliveryMethod') or 'delivery'
    if delivery_method not in DELIVERY_METHODS:
        raise InvalidRequest('Invalid delivery method')

    return {
        'product_id': product_id,
        'quantity': quantity,
        'customer': customer,
        'address': optional_text(
            customer.get('address'), 'Customer address'),
        'delivery_method': delivery_method,
        'payment_method': optional_text(
            data.get('paymentMethod'), 'Payment method'),
        'notes': optional_text(data.get('notes'), 'Notes'),
    }


def _reserve_stock(product_id, quantity):
    return Product.query.filter(
        Product.id == product_id,
        Product.stock >= quantity
    ).update(
        {
            Product.stock: Product.stock - quantity,
            Product.updated_at: datetime.utcnow(),
        },
        synchronize_session=False
    )


def _consume_sale_quantity(sale_id, quantity):
    return Sale.query.filter(
        Sale.id == sale_id,
        Sale.status == SaleStatus.ACTIVE,
        Sale.quantity_available - Sale.quantity_sold >= quantity
    ).update(
        {
            Sale.quantity_sold: Sale.quantity_sold + quantity,
            Sale.updated_at: datetime.utcnow(),
        },
        synchronize_session=False
    )


def _add_order_rows(auth, request_data, product, unit_price, totals):
    customer = request_data['customer']
    quantity = request_data['quantity']
    order = Order(
        user_id=auth.user_id,
        order_number=generate_order_number(),
        customer_name=customer['name'].strip(),
        customer_email=customer['email'].strip(),
        customer_phone=customer['phone'].strip(),
        customer_address=request_data['address'],
        delivery_method=request_data['delivery_method'],
        payment_method=request_data['payment_method'],
        subtotal=totals['subtotal'],
        delivery_fee=totals['delivery_fee'],
        total_amount=totals['total'],
        notes=request_data['notes'],
        status=OrderStatus.PENDING,
    )
    order.items.append(OrderItem(
        product_id=product.id,
        product_name=product.name,
        product_price=unit_price,
        quantity=quantity,
        total_price=totals['subtotal'],
    ))
    db.session.add(order)
    db.session.flush()
    return order


def _upsert_cart(user_id, product_id, quantity):
    try:
        item = CartItem.query.filter_by(
            user_id=user_id, product_id=product_id).first()
        if item:
            item.quantity += quantity
        else:
            db.session.add(CartItem(
                user_id=user_id,
                product_id=product_id,
                quantity=quantity))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(
            f"Cart upsert after order failed for user {user_id}: {e}",
            exc_info=True)


def create_order(auth, data, now=None):
    """Place a single-product order.

    Order row, line item, stock decrement and sale quantity_sold increment
    commit together or not at all. The cart upsert afterwards is
    best-effort.
    """
    request_data = _parse_order_request(data)
    quantity = request_data['quantity']
    now = now or datetime.utcnow()

    product = db.session.get(Product, request_data['product_id'])
    if product is None:
        raise NotFound('Product not found')
    if product.status != ProductStatus.ACTIVE:
        raise Unavailable('Product is not available')

    sale = get_active_sale(product.id, now)
    if sale is not None and quantity > sale.remaining_quantity:
        raise _sale_error(sale.remaining_quantity)

    if quantity > product.stock:
        raise _stock_error(product.name, product.stock, quantity)

    unit_price = effective_price(product, sale)
    subtotal = quantize_money(unit_price * quantity)
    delivery_fee = calculate_delivery_fee(
        request_data['delivery_method'], subtotal)
    totals = {
        'subtotal': subtotal,
        'delivery_fee': delivery_fee,
        'total': quantize_money(subtotal + delivery_fee),
    }
    product_id = product.id
    product_name = product.name
    sale_id = sale.id if sale is not None else None

    order = None
    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        try:
            order = _add_order_rows(
                auth, request_data, product, unit_price, totals)
            break
        except IntegrityError:
            db.session.rollback()
            logger.warning(
                "Order number collision, retrying (attempt %s)", attempt)
            product = db.session.get(Product, product_id)
    if order is None:
        raise InvalidRequest('Could not allocate an order number')

    if _reserve_stock(product_id, quantity) != 1:
        db.session.rollback()
        current = db.session.get(Product, product_id)
        raise _stock_error(
            product_name, current.stock if current else 0, quantity)

    if sale_id is not None and _consume_sale_quantity(
            sale_id, quantity) != 1:
        db.session.rollback()
        current_sale = db.session.get(Sale, sale_id)
        raise _sale_error(
            current_sale.remaining_quantity if current_sale else 0)

    db.session.commit()
    logger.info(
        "Order %s created for user %s: product=%s qty=%s total=%s",
        order.order_number,
        auth.user_id,
        product_id,
        quantity,
        totals['total'],
    )

    _upsert_cart(auth.user_id, product_id, quantity)

    audit_as(
        auth,
        'ORDER_CREATE',
        target_type='ORDER',
        target_id=order.id,
        payload={
            'order_number': order.order_number,
            'product_id': product_id,
            'quantity': quantity,
            'sale_id': sale_id,
            'total': str(totals['total']),
        })

    return {
        'success': True,
        'orderId': order.id,
        'orderNumber': order.order_number,
        'total': money(totals['total']),
    }


def list_user_orders(user_id, product_id=None):
    query = Order.query.filter(Order.user_id == user_id)
    if product_id is not None:
        query = query.filter(
            Order.items.any(OrderItem.product_id == product_id))
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_user_order(user_id, order_id):
    order = Order.query.filter_by(id=order_id, user_id=user_id).first()
    if order is None:
        raise NotFound('Order not found')
    rating = OrderRating.query.filter_by(
        order_id=order.id, user_id=user_id).first()
    return order, rating


def list_all_orders():
    return Order.query.order_by(
        Order.created_at.desc(), Order.id.desc()).all()


def get_order(order_id):
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound('Order not found')
    return order


def _required_quantities(order):
    required = OrderedDict()
    for item in order.items:
        # Items whose product was deleted have nothing to reconcile.
        if item.product_id is None:
            continue
        required[item.product_id] = (
            required.get(item.product_id, 0) + item.quantity
        )
    return required


def _restore_order_stock(order):
    for product_id, quantity in _required_quantities(order).items():
        Product.query.filter(Product.id == product_id).update(
            {
                Product.stock: Product.stock + quantity,
                Product.updated_at: datetime.utcnow(),
            },
            synchronize_session=False
        )


def _reapply_order_stock(order):
    required = _required_quantities(order)

    # Validate every line before touching any stock.
    for product_id, quantity in required.items():
        product = db.session.get(Product, product_id)
        available = product.stock if product else 0
        if available < quantity:
            raise InsufficientStock(
                f'Insufficient stock for product ID {product_id}. '
                f'Available: {available}, Required: {quantity}'
            )

    for product_id, quantity in required.items():
        if _reserve_stock(product_id, quantity) != 1:
            db.session.rollback()
            product = db.session.get(Product, product_id)
            available = product.stock if product else 0
            raise InsufficientStock(
                f'Insufficient stock for product ID {product_id}. '
                f'Available: {available}, Required: {quantity}'
            )


def update_order_status(auth, order_id, data):
    """Move an order to a new status, reconciling stock across cancellation.

    Entering cancelled gives every line's quantity back to stock. Leaving
    cancelled takes it again, and only if all lines can be covered.
    Sale quantity_sold is not touched in either direction.
    """
    status_value = data.get('status')
    if not status_value:
        raise InvalidRequest('Status is required')
    try:
        new_status = OrderStatus(status_value)
    except ValueError:
        raise InvalidRequest('Invalid status')

    order = get_order(order_id)
    old_status = order.status
    message = f'Order status updated to {new_status.value}'

    if new_status == old_status:
        return {'success': True, 'message': message, 'stockUpdated': False}

    stock_updated = False
    try:
        if new_status == OrderStatus.CANCELLED:
            _restore_order_stock(order)
            stock_updated = True
        elif old_status == OrderStatus.CANCELLED:
            _reapply_order_stock(order)
            stock_updated = True

        order.status = new_status
        db.session.commit()
    except (InsufficientStock, SQLAlchemyError):
        db.session.rollback()
        raise

    logger.info(
        "Order %s status %s -> %s (stock updated: %s)",
        order.order_number,
        old_status.value,
        new_status.value,
        stock_updated,
    )

    notify_order_status(order, new_status)

    audit_as(
        auth,
        'ORDER_STATUS_UPDATE',
        target_type='ORDER',
        target_id=order.id,
        payload={
            'from': old_status.value,
            'to': new_status.value,
            'stock_updated': stock_updated,
        })

    return {
        'success': True,
        'message': message,
        'stockUpdated': stock_updated,
    }


def build_receipt(order):
    return {
        'store': dict(current_app.config['STORE_INFO']),
        'order': {
            'id': order.id,
            'orderNumber': order.order_number,
            'status': order.status.value,
            'createdAt': order.created_at.isoformat(),
            'customerName': order.customer_name,
            'customerEmail': order.customer_email,
            'customerPhone': order.customer_phone,
            'customerAddress': order.customer_address,
            'deliveryMethod': order.delivery_method,
            'paymentMethod': order.payment_method,
            'notes': order.notes,
        },
        'items': [{
            'name': item.product_name,
            'price': money(item.product_price),
            'quantity': item.quantity,
            'total': money(item.total_price),
        } for item in order.items],
        'totals': {
            'subtotal': money(order.subtotal),
            'deliveryFee': money(order.delivery_fee),
            'total': money(order.total_amount),
        },
    }
