from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from flask import request
from sqlalchemy import func
from eggmart.extensions import db
from eggmart.models import Order, OrderItem, OrderRating, OrderStatus
from eggmart.services.errors import InvalidRequest
import logging

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def get_json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequest('Invalid payload')
    return data


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money(value):
    """Decimal column value as a float for JSON, None passes through."""
    if value is None:
        return None
    return float(quantize_money(value))


def isoformat(value):
    return value.isoformat() if value else None


def parse_iso_datetime(value):
    """Parse an ISO-8601 string into a naive UTC datetime.

    A trailing ``Z`` is tolerated; an explicit offset is converted to UTC
    before the timezone is dropped.
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest('Invalid date')
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise InvalidRequest(f'Invalid date: {value}')
    if parsed.tzinfo is not None:
        offset = parsed.utcoffset()
        parsed = parsed.replace(tzinfo=None) - offset
    return parsed


def parse_int(value, field):
    if isinstance(value, bool):
        raise InvalidRequest(f'{field} must be an integer')
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value.strip())
    raise InvalidRequest(f'{field} must be an integer')


def get_product_rating_summary(product_ids):
    """Rating stats per product, counting ratings on delivered orders only."""
    if not product_ids:
        return {}

    rows = db.session.query(
        OrderItem.product_id,
        OrderRating.rating,
        func.count(func.distinct(OrderRating.id))
    ).join(
        Order, OrderItem.order_id == Order.id
    ).join(
        OrderRating, OrderRating.order_id == Order.id
    ).filter(
        OrderItem.product_id.in_(product_ids),
        Order.status == OrderStatus.DELIVERED
    ).group_by(OrderItem.product_id, OrderRating.rating).all()

    summary = {}
    for product_id, rating, count in rows:
        entry = summary.setdefault(product_id, {
            'count': 0,
            'sum': 0,
            'distribution': {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}
        })
        entry['count'] += count
        entry['sum'] += rating * count
        entry['distribution'][rating] = (
            entry['distribution'].get(rating, 0) + count
        )

    # Normalize to avg + distribution
    for product_id, entry in summary.items():
        total = entry['count']
        avg = (entry['sum'] / total) if total else 0.0
        summary[product_id] = {
            'avg': avg,
            'count': total,
            'distribution': entry['distribution']
        }

    return summary


def parse_decimal(value, field):
    if isinstance(value, bool) or value is None:
        raise InvalidRequest(f'{field} must be a number')
    try:
        number = to_decimal(value)
    except ArithmeticError:
        raise InvalidRequest(f'{field} must be a number')
    if not number.is_finite():
        raise InvalidRequest(f'{field} must be a number')
    return number


def optional_text(value, field):
    """A free-text field that may be absent; empty strings become None."""
    if value is None or value == '':
        return None
    if not isinstance(value, str):
        raise InvalidRequest(f'{field} must be a string')
    return value
