from flask import current_app
from sqlalchemy.exc import IntegrityError
from eggmart.extensions import db
from eggmart.models import (
    Order,
    OrderRating,
    OrderRatingImage,
    OrderStatus,
)
from eggmart.services.audit_service import audit_as
from eggmart.services.errors import AlreadyRated, InvalidRequest, NotFound
from eggmart.utils import optional_text, parse_int
import logging

logger = logging.getLogger(__name__)


def _valid_rating(value):
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 1 <= value <= 5
    )


def _usable_images(images):
    """First N entries that carry a url, a name and a size."""
    limit = current_app.config['MAX_RATING_IMAGES']
    usable = []
    for image in images[:limit]:
        if not isinstance(image, dict):
            continue
        url = image.get('imageUrl')
        name = image.get('imageName')
        size = image.get('imageSize')
        if not (isinstance(url, str) and url and isinstance(name, str)
                and name and size):
            continue
        try:
            size = int(size)
        except (TypeError, ValueError):
            continue
        usable.append(OrderRatingImage(
            image_url=url, image_name=name, image_size=size))
    return usable


def create_rating(auth, data):
    order_id = data.get('orderId')
    rating_value = data.get('rating')
    if order_id in (None, '') or rating_value in (None, ''):
        raise InvalidRequest('Order ID and rating are required')
    if not _valid_rating(rating_value):
        raise InvalidRequest('Rating must be between 1 and 5')
    order_id = parse_int(order_id, 'orderId')
    review_text = optional_text(data.get('reviewText'), 'Review text')

    order = Order.query.filter_by(id=order_id, user_id=auth.user_id).first()
    if order is None:
        raise NotFound('Order not found or not authorized')
    if order.status != OrderStatus.DELIVERED:
        raise InvalidRequest('Can only rate delivered orders')

    existing = OrderRating.query.filter_by(
        user_id=auth.user_id, order_id=order.id).first()
    if existing:
        raise AlreadyRated()

    rating = OrderRating(
        user_id=auth.user_id,
        order_id=order.id,
        rating=rating_value,
        review_text=review_text,
    )
    db.session.add(rating)
    try:
        db.session.flush()
    except IntegrityError:
        # A concurrent submission won the unique (user, order) slot.
        db.session.rollback()
        raise AlreadyRated()

    images = data.get('images')
    if isinstance(images, list) and images:
        OrderRatingImage.query.filter_by(
            order_rating_id=rating.id).delete(synchronize_session=False)
        for image in _usable_images(images):
            image.order_rating_id = rating.id
            db.session.add(image)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise AlreadyRated()

    audit_as(
        auth,
        'RATING_CREATE',
        target_type='ORDER_RATING',
        target_id=rating.id,
        payload={'order_id': order.id, 'rating': rating.rating})
    return rating


def list_order_ratings(order_id):
    return OrderRating.query.filter_by(order_id=order_id).order_by(
        OrderRating.created_at.desc(), OrderRating.id.desc()).all()


def get_user_rating(user_id, order_id):
    if user_id is None:
        return None
    return OrderRating.query.filter_by(
        user_id=user_id, order_id=order_id).first()


def delete_rating(auth, order_id):
    rating = OrderRating.query.filter_by(
        user_id=auth.user_id, order_id=order_id).first()
    if rating is None:
        raise NotFound('Rating not found')
    rating_id = rating.id
    db.session.delete(rating)
    db.session.commit()

    audit_as(
        auth,
        'RATING_DELETE',
        target_type='ORDER_RATING',
        target_id=rating_id,
        payload={'order_id': order_id})
