from datetime import datetime
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from eggmart.extensions import db
from eggmart.models import (
    Category,
    Order,
    OrderItem,
    OrderRating,
    OrderStatus,
    Product,
    ProductImage,
    ProductStatus,
)
from eggmart.services.audit_service import audit_as
from eggmart.services.errors import InvalidRequest, NotFound
from eggmart.services.sale_service import (
    expire_sales,
    get_active_sale,
    get_active_sales_by_product,
)
from eggmart.utils import get_product_rating_summary, to_decimal
import logging

logger = logging.getLogger(__name__)


def list_products(now=None):
    """Catalog listing, newest first, with live sale and rating aggregates."""
    now = now or datetime.utcnow()
    expire_sales(now)

    products = Product.query.order_by(Product.id.desc()).all()
    product_ids = [p.id for p in products]
    sales = get_active_sales_by_product(product_ids, now)
    ratings = get_product_rating_summary(product_ids)
    return [
        (product, sales.get(product.id), ratings.get(product.id))
        for product in products
    ]


def get_product(product_id):
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound('Product not found')
    return product


def get_product_detail(product_id, now=None):
    now = now or datetime.utcnow()
    expire_sales(now)
    product = get_product(product_id)
    sale = get_active_sale(product.id, now)
    rating = get_product_rating_summary([product.id]).get(product.id)
    return product, sale, rating


def list_categories():
    return Category.query.order_by(Category.name.asc()).all()


def _validate_product_payload(data):
    issues = []

    name = data.get('name')
    if not isinstance(name, str) or not name.strip():
        issues.append({'path': 'name', 'message': 'Name is required'})

    category = data.get('category')
    if not isinstance(category, str) or not category.strip():
        issues.append({'path': 'category', 'message': 'Category is required'})

    price = None
    try:
        if isinstance(data.get('price'), bool):
            raise ValueError
        price = to_decimal(data.get('price'))
        if not price.is_finite() or price < 0:
            raise ValueError
    except (ArithmeticError, ValueError, TypeError):
        issues.append({
            'path': 'price',
            'message': 'Price must be a non-negative number'})

    stock = data.get('stock')
    try:
        if isinstance(stock, bool):
            raise ValueError
        if isinstance(stock, str):
            stock = int(stock.strip())
        if not isinstance(stock, int) or stock < 0:
            raise ValueError
    except (ValueError, TypeError):
        issues.append({
            'path': 'stock',
            'message': 'Stock must be a non-negative integer'})

    description = data.get('description')
    if description is not None and not isinstance(description, str):
        issues.append({
            'path': 'description',
            'message': 'Description must be a string'})

    images = data.get('images')
    if images is not None and (
            not isinstance(images, list)
            or not all(isinstance(url, str) for url in images)):
        issues.append({
            'path': 'images',
            'message': 'Images must be a list of URLs'})

    status = data.get('status')
    if status is not None:
        try:
            status = ProductStatus(status)
        except ValueError:
            issues.append({'path': 'status', 'message': 'Invalid status'})

    if issues:
        raise InvalidRequest('Invalid payload', details=issues)

    category_row = Category.query.filter_by(name=category.strip()).first()
    if category_row is None:
        raise InvalidRequest('Category not found')

    return {
        'name': name.strip(),
        'category': category_row,
        'price': price,
        'stock': stock,
        'description': description or None,
        'images': [url.strip() for url in images if url.strip()]
        if images is not None else None,
        'status': status,
    }


def _replace_images(product, urls):
    product.images = [
        ProductImage(
            image_url=url,
            alt_text=product.name,
            sort_order=idx,
            is_primary=(idx == 0))
        for idx, url in enumerate(urls)
    ]


def create_product(auth, data):
    fields = _validate_product_payload(data)

    status = fields['status']
    if status is None:
        threshold = current_app.config['PRODUCT_ACTIVE_STOCK_THRESHOLD']
        status = (
            ProductStatus.ACTIVE if fields['stock'] > threshold
            else ProductStatus.INACTIVE
        )

    product = Product(
        name=fields['name'],
        category=fields['category'],
        price=fields['price'],
        stock=fields['stock'],
        description=fields['description'],
        status=status,
    )
    if fields['images']:
        _replace_images(product, fields['images'])

    db.session.add(product)
    db.session.commit()

    audit_as(
        auth,
        'PRODUCT_CREATE',
        target_type='PRODUCT',
        target_id=product.id,
        payload={
            'name': product.name,
            'stock': product.stock,
            'status': product.status.value,
        })
    return product


def update_product(auth, product_id, data):
    product = get_product(product_id)
    fields = _validate_product_payload(data)

    product.name = fields['name']
    product.category = fields['category']
    product.price = fields['price']
    product.stock = fields['stock']
    product.description = fields['description']
    if fields['status'] is not None:
        product.status = fields['status']
    if fields['images'] is not None:
        _replace_images(product, fields['images'])

    db.session.commit()

    audit_as(
        auth,
        'PRODUCT_UPDATE',
        target_type='PRODUCT',
        target_id=product.id,
        payload={'stock': product.stock, 'status': product.status.value})
    return product


def delete_product(auth, product_id):
    """Delete a product; order history keeps its name and price snapshots."""
    product = get_product(product_id)
    try:
        OrderItem.query.filter(
            OrderItem.product_id == product.id
        ).update(
            {OrderItem.product_id: None},
            synchronize_session=False
        )
        db.session.delete(product)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise

    audit_as(
        auth,
        'PRODUCT_DELETE',
        target_type='PRODUCT',
        target_id=product_id)


def get_product_ratings(product_id):
    """Ratings left on delivered orders containing the product."""
    ratings = OrderRating.query.join(
        Order, OrderRating.order_id == Order.id
    ).filter(
        Order.status == OrderStatus.DELIVERED,
        Order.items.any(OrderItem.product_id == product_id)
    ).order_by(OrderRating.created_at.desc(), OrderRating.id.desc()).all()

    total = len(ratings)
    average = (
        sum(r.rating for r in ratings) / total if total else 0.0
    )
    distribution = {
        f'{stars}Star': sum(1 for r in ratings if r.rating == stars)
        for stars in (5, 4, 3, 2, 1)
    }
    stats = {
        'averageRating': f'{average:.1f}',
        'totalRatings': total,
        'ratingDistribution': distribution,
    }
    return ratings, stats
