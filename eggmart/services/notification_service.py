from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import ClassVar, Optional
from flask import current_app
from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError
from eggmart.extensions import db
from eggmart.models import (
    Category,
    Notification,
    NotificationType,
    Order,
    OrderItem,
    OrderRating,
    OrderStatus,
    Product,
    ProductStatus,
    Sale,
    User,
)
from eggmart.services.errors import InvalidRequest, NotFound
from eggmart.services.sale_service import active_sale_filter
from eggmart.utils import isoformat, money, optional_text, parse_int
import logging

logger = logging.getLogger(__name__)

STATUS_TITLES = {
    OrderStatus.CONFIRMED: 'Order Confirmed',
    OrderStatus.PROCESSING: 'Order Processing',
    OrderStatus.SHIPPED: 'Order Shipped',
    OrderStatus.DELIVERED: 'Order Delivered',
    OrderStatus.CANCELLED: 'Order Cancelled',
}

STATUS_MESSAGES = {
    OrderStatus.CONFIRMED: (
        'Your order has been confirmed and is being prepared'),
    OrderStatus.PROCESSING: 'Your order is now being processed',
    OrderStatus.SHIPPED: 'Your order has been shipped and is on its way',
    OrderStatus.DELIVERED: 'Your order has been delivered successfully',
    OrderStatus.CANCELLED: 'Your order has been cancelled',
}

REMINDER_MESSAGES = {
    OrderStatus.CONFIRMED: 'Order confirmed - ready for processing',
    OrderStatus.PROCESSING: 'Order processing - check progress',
}

SALE_TITLE = '🔥 Special Sale!'


@dataclass
class PersistedNotification:
    """A notifications row; read state lives on the server."""

    kind: ClassVar[str] = 'persisted'

    id: int
    type: str
    title: str
    message: str
    is_read: bool
    created_at: datetime
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    order_id: Optional[int] = None

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row.id,
            type=row.type.value,
            title=row.title,
            message=row.message,
            is_read=bool(row.is_read),
            created_at=row.created_at,
            product_id=row.product_id,
            product_name=row.product_name,
            order_id=row.order_id,
        )

    def to_dict(self):
        return {
            'kind': self.kind,
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'isRead': self.is_read,
            'createdAt': isoformat(self.created_at),
            'productId': self.product_id,
            'productName': self.product_name,
            'orderId': self.order_id,
        }


@dataclass
class SynthesizedNotification:
    """Built at read time from other tables; it is never marked read."""

    kind: ClassVar[str] = 'synthesized'

    id: str
    type: str
    title: str
    message: str
    created_at: datetime
    extra: dict = field(default_factory=dict)

    @property
    def is_read(self):
        return False

    def to_dict(self):
        data = {
            'kind': self.kind,
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'isRead': False,
            'createdAt': isoformat(self.created_at),
        }
        data.update(self.extra)
        return data


def list_notifications(user_id, limit=None):
    limit = limit or current_app.config['NOTIFICATION_FEED_LIMIT']
    rows = Notification.query.filter_by(user_id=user_id).order_by(
        Notification.created_at.desc(),
        Notification.id.desc()
    ).limit(limit).all()
    return [PersistedNotification.from_row(row) for row in rows]


def create_notification(user_id, data):
    type_value = data.get('type')
    title = data.get('title')
    message = data.get('message')
    if not type_value or not title or not message:
        raise InvalidRequest('Missing required fields')
    if not isinstance(title, str) or not isinstance(message, str):
        raise InvalidRequest('Title and message must be strings')
    try:
        notification_type = NotificationType(type_value)
    except ValueError:
        raise InvalidRequest('Invalid notification type')

    product_id = data.get('productId')
    order_id = data.get('orderId')
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        product_id=parse_int(product_id, 'productId') if product_id else None,
        product_name=optional_text(data.get('productName'), 'Product name'),
        order_id=parse_int(order_id, 'orderId') if order_id else None,
    )
    db.session.add(notification)
    db.session.commit()
    return notification


def _owned_notification(user_id, notification_id):
    notification = Notification.query.filter_by(
        id=notification_id, user_id=user_id).first()
    if notification is None:
        raise NotFound('Notification not found or unauthorized')
    return notification


def set_read_state(user_id, notification_id, is_read):
    if not isinstance(is_read, bool):
        raise InvalidRequest('isRead must be a boolean')
    notification = _owned_notification(user_id, notification_id)
    notification.is_read = is_read
    db.session.commit()
    return notification


def delete_notification(user_id, notification_id):
    notification = _owned_notification(user_id, notification_id)
    db.session.delete(notification)
    db.session.commit()


def mark_all_read(user_id):
    count = Notification.query.filter_by(
        user_id=user_id, is_read=False
    ).update(
        {
            Notification.is_read: True,
            Notification.updated_at: datetime.utcnow(),
        },
        synchronize_session=False
    )
    db.session.commit()
    return count


def status_notification_text(order_number, status):
    title = STATUS_TITLES.get(status, 'Order Status Updated')
    message = STATUS_MESSAGES.get(
        status, 'Your order status has been updated')
    return title, f'{message} - Order #{order_number}'


def notify_order_status(order, status):
    """Tell the order's owner about a status change.

    Best-effort: a failed insert is logged and rolled back, and never
    reaches the caller.
    """
    title, message = status_notification_text(order.order_number, status)
    try:
        db.session.add(Notification(
            user_id=order.user_id,
            type=NotificationType.ORDER_STATUS,
            title=title,
            message=message,
            order_id=order.id,
        ))
        db.session.commit()
        return True
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(
            f"Failed to create status notification for order "
            f"{order.id}: {e}",
            exc_info=True)
        return False


def _format_percentage(value):
    return f'{float(value):g}'


def sale_notifications(now=None, limit=None):
    now = now or datetime.utcnow()
    limit = limit or current_app.config['SALE_NOTIFICATION_LIMIT']
    sales = Sale.query.filter(
        active_sale_filter(now),
        Sale.quantity_available > Sale.quantity_sold
    ).order_by(
        Sale.discount_percentage.desc(),
        Sale.created_at.desc(),
        Sale.id.desc()
    ).limit(limit).all()

    notifications = []
    for sale in sales:
        product = sale.product
        savings = sale.original_price - sale.sale_price
        notifications.append(SynthesizedNotification(
            id=f'sale-{sale.id}',
            type=NotificationType.SALE.value,
            title=SALE_TITLE,
            message=(
                f'{product.name} is on sale! '
                f'{_format_percentage(sale.discount_percentage)}% off '
                f'- Save ₱{savings:.2f}'
            ),
            created_at=sale.start_date,
            extra={
                'productId': product.id,
                'productName': product.name,
                'productImage': product.primary_image or '/placeholder.svg',
                'categoryName': product.category.name,
                'originalPrice': money(sale.original_price),
                'salePrice': money(sale.sale_price),
                'discountPercentage': money(sale.discount_percentage),
                'quantityAvailable': sale.remaining_quantity,
                'startDate': isoformat(sale.start_date),
                'endDate': isoformat(sale.end_date),
                'savings': money(savings),
            },
        ))
    return notifications


def customer_feed(user_id, now=None):
    """Persisted rows and live sale promotions, newest first."""
    merged = list_notifications(user_id) + sale_notifications(now)
    merged.sort(key=lambda n: n.created_at, reverse=True)
    return merged


def low_stock_notifications(threshold=None, limit=None):
    threshold = threshold or current_app.config['LOW_STOCK_THRESHOLD']
    limit = limit or current_app.config['LOW_STOCK_LIMIT']
    products = Product.query.join(Category).filter(
        Product.stock <= threshold,
        Product.status == ProductStatus.ACTIVE
    ).order_by(Product.stock.asc(), Product.id.asc()).limit(limit).all()

    return [SynthesizedNotification(
        id=f'low-stock-{product.id}',
        type='low_stock',
        title='Low Stock',
        message=f'{product.name} is running low ({product.stock} items left)',
        created_at=product.updated_at,
        extra={
            'productId': product.id,
            'name': product.name,
            'stock': product.stock,
            'category': product.category.name,
            'updatedAt': isoformat(product.updated_at),
        },
    ) for product in products]


def recent_reviews(limit=5):
    """Newest ratings joined across order, line item and product."""
    return db.session.query(
        OrderRating,
        User.name,
        Order.order_number,
        Product.name,
        Product.id,
    ).join(
        User, OrderRating.user_id == User.id
    ).join(
        Order, OrderRating.order_id == Order.id
    ).join(
        OrderItem, OrderItem.order_id == Order.id
    ).join(
        Product, OrderItem.product_id == Product.id
    ).order_by(
        OrderRating.created_at.desc(),
        OrderRating.id.desc()
    ).limit(limit).all()


def new_review_notifications(limit=5):
    notifications = []
    for rating, customer, order_number, product_name, product_id in (
            recent_reviews(limit)):
        notifications.append(SynthesizedNotification(
            id=f'new-review-{rating.id}',
            type='new_review',
            title='New Review',
            message=(
                f'New {rating.rating}-star review from {customer} '
                f'for {product_name}'
            ),
            created_at=rating.created_at,
            extra={
                'ratingId': rating.id,
                'customerName': customer,
                'productName': product_name,
                'productId': product_id,
                'rating': rating.rating,
                'reviewText': rating.review_text,
                'orderNumber': order_number,
            },
        ))
    return notifications


def _order_extra(order):
    return {
        'orderId': order.id,
        'orderNumber': order.order_number,
        'customerName': order.customer_name,
        'totalAmount': money(order.total_amount),
        'status': order.status.value,
        'itemCount': len(order.items),
        'updatedAt': isoformat(order.updated_at),
    }


def new_order_notifications(now=None, limit=10):
    now = now or datetime.utcnow()
    since = now - timedelta(
        hours=current_app.config['NEW_ORDER_WINDOW_HOURS'])
    orders = Order.query.filter(
        Order.created_at >= since,
        Order.status != OrderStatus.CANCELLED
    ).order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()

    return [SynthesizedNotification(
        id=f'new-order-{order.id}',
        type='new_order',
        title='New Order',
        message=(
            f'New order #{order.order_number} from {order.customer_name} '
            f'- ₱{order.total_amount:.2f}'
        ),
        created_at=order.created_at,
        extra=_order_extra(order),
    ) for order in orders]


def order_reminder_notifications(now=None, limit=15):
    now = now or datetime.utcnow()
    since = now - timedelta(
        days=current_app.config['ORDER_REMINDER_WINDOW_DAYS'])
    priority = case(
        (Order.status == OrderStatus.PROCESSING, 1),
        (Order.status == OrderStatus.CONFIRMED, 2),
        else_=3)
    orders = Order.query.filter(
        Order.status.in_([OrderStatus.CONFIRMED, OrderStatus.PROCESSING]),
        Order.created_at >= since
    ).order_by(
        priority, Order.created_at.asc(), Order.id.asc()
    ).limit(limit).all()

    notifications = []
    for order in orders:
        reminder = REMINDER_MESSAGES.get(
            order.status, 'Order needs attention')
        extra = _order_extra(order)
        extra['reminderMessage'] = reminder
        notifications.append(SynthesizedNotification(
            id=f'order-reminder-{order.id}',
            type='order_reminder',
            title='Order Reminder',
            message=reminder,
            created_at=order.created_at,
            extra=extra,
        ))
    return notifications


def admin_notifications(now=None):
    """The four admin buckets, kept separate for the dashboard."""
    now = now or datetime.utcnow()
    return {
        'lowStock': low_stock_notifications(),
        'newReviews': new_review_notifications(),
        'newOrders': new_order_notifications(now),
        'orderReminders': order_reminder_notifications(now),
    }
