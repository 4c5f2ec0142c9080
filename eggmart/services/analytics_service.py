from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from flask import current_app
from sqlalchemy import func
from eggmart.extensions import db
from eggmart.models import (
    Category,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductStatus,
)
from eggmart.services.notification_service import (
    admin_notifications,
    recent_reviews,
)
from eggmart.utils import isoformat, money
import logging

logger = logging.getLogger(__name__)


def _months_back(now, months):
    """First day of the month `months` before now's month."""
    index = now.year * 12 + (now.month - 1) - months
    return datetime(index // 12, index % 12 + 1, 1)


def overview():
    total_products = Product.query.filter(
        Product.status == ProductStatus.ACTIVE).count()
    total_orders = Order.query.count()
    total_customers = db.session.query(
        func.count(func.distinct(Order.user_id))).scalar() or 0
    total_revenue = db.session.query(
        func.coalesce(func.sum(Order.total_amount), 0)
    ).filter(Order.status != OrderStatus.CANCELLED).scalar()
    return {
        'totalProducts': total_products,
        'totalOrders': total_orders,
        'totalCustomers': total_customers,
        'totalRevenue': money(total_revenue or 0),
    }


def recent_orders(limit=4):
    orders = Order.query.order_by(
        Order.created_at.desc(), Order.id.desc()).limit(limit).all()
    return [{
        'id': order.order_number,
        'orderId': order.id,
        'customer': order.customer_name,
        'amount': f'₱{order.total_amount:.2f}',
        'status': order.status.value,
        'date': isoformat(order.created_at),
    } for order in orders]


def low_stock_overview():
    threshold = current_app.config['LOW_STOCK_OVERVIEW_THRESHOLD']
    limit = current_app.config['LOW_STOCK_OVERVIEW_LIMIT']
    products = Product.query.filter(
        Product.stock <= threshold,
        Product.status == ProductStatus.ACTIVE
    ).order_by(Product.stock.asc(), Product.id.asc()).limit(limit).all()
    return [{
        'id': product.id,
        'name': product.name,
        'stock': product.stock,
        'category': product.category.name,
    } for product in products]


def monthly_revenue(now=None, months=12):
    # Grouped in Python so the query stays portable across databases.
    now = now or datetime.utcnow()
    since = _months_back(now, months)
    orders = Order.query.filter(
        Order.status != OrderStatus.CANCELLED,
        Order.created_at >= since
    ).order_by(Order.created_at.asc()).all()

    buckets = OrderedDict()
    for order in orders:
        key = order.created_at.strftime('%Y-%m')
        bucket = buckets.setdefault(key, {
            'month': order.created_at.strftime('%b'),
            'revenue': Decimal('0'),
            'orders': 0,
        })
        bucket['revenue'] += order.total_amount
        bucket['orders'] += 1

    return [{
        'month': bucket['month'],
        'monthYear': key,
        'revenue': money(bucket['revenue']),
        'orders': bucket['orders'],
        'avgOrder': int(round(bucket['revenue'] / bucket['orders'])),
    } for key, bucket in buckets.items()]


def revenue_by_category():
    rows = db.session.query(
        Category.name,
        func.coalesce(func.sum(OrderItem.total_price), 0),
        func.count(func.distinct(Order.id)),
    ).join(
        Product, Product.category_id == Category.id
    ).join(
        OrderItem, OrderItem.product_id == Product.id
    ).join(
        Order, OrderItem.order_id == Order.id
    ).filter(
        Order.status != OrderStatus.CANCELLED
    ).group_by(Category.id, Category.name).all()

    rows = [
        (name, Decimal(revenue), count)
        for name, revenue, count in rows
        if revenue and Decimal(revenue) > 0
    ]
    rows.sort(key=lambda row: row[1], reverse=True)
    total = sum((revenue for _, revenue, _ in rows), Decimal('0'))

    return [{
        'category': name,
        'revenue': money(revenue),
        'orderCount': count,
        'percentage': int(round(revenue / total * 100)) if total else 0,
    } for name, revenue, count in rows]


def serialize_recent_reviews(limit=5):
    return [{
        'id': rating.id,
        'rating': rating.rating,
        'reviewText': rating.review_text,
        'createdAt': isoformat(rating.created_at),
        'customerName': customer,
        'orderNumber': order_number,
        'productName': product_name,
        'productId': product_id,
    } for rating, customer, order_number, product_name, product_id in (
        recent_reviews(limit))]


def build_dashboard(now=None):
    now = now or datetime.utcnow()
    notifications = admin_notifications(now)
    return {
        'overview': overview(),
        'recentOrders': recent_orders(),
        'lowStockProducts': low_stock_overview(),
        'notifications': {
            bucket: [n.to_dict() for n in items]
            for bucket, items in notifications.items()
        },
        'monthlyRevenue': monthly_revenue(now),
        'revenueByCategory': revenue_by_category(),
        'recentReviews': serialize_recent_reviews(),
    }
