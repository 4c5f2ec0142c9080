"""
Shared fixtures for the EggMart API tests.

The app fixture does not keep an application context pushed while a test
runs: every request gets its own context (and so its own session and
Flask-Login user cache), and tests open a short context to inspect rows.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from eggmart import create_app
from eggmart.auth_tokens import issue_token
from eggmart.config import Config
from eggmart.extensions import db
from eggmart.models import (
    Category,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductImage,
    ProductStatus,
    Sale,
    SaleStatus,
    User,
    UserRole,
)


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    AUTH_COOKIE_SECURE = False


@pytest.fixture
def app(tmp_path):
    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = (
            f"sqlite:///{tmp_path / 'eggmart-test.db'}"
        )
        UPLOAD_FOLDER = str(tmp_path / 'uploads')

    app = create_app(_Config)
    with app.app_context():
        db.create_all()
        db.session.add_all([
            Category(name='Eggs', description='Fresh eggs'),
            Category(name='Chicks', description='Live chicks'),
        ])
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


def _create_user(app, name, email, role=UserRole.USER, password='secret123'):
    with app.app_context():
        user = User(
            name=name,
            email=email,
            phone='09170000000',
            address='1 Farm Road',
            role=role)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id


@pytest.fixture
def customer_id(app):
    return _create_user(app, 'Maria Santos', 'maria@example.com')


@pytest.fixture
def other_customer_id(app):
    return _create_user(app, 'Pedro Reyes', 'pedro@example.com')


@pytest.fixture
def admin_id(app):
    return _create_user(
        app, 'Store Admin', 'admin@example.com', role=UserRole.ADMIN)


def client_for(app, user_id):
    with app.app_context():
        token = issue_token(db.session.get(User, user_id))
    client = app.test_client()
    client.set_cookie(app.config['AUTH_COOKIE_NAME'], token)
    return client


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def customer_client(app, customer_id):
    return client_for(app, customer_id)


@pytest.fixture
def other_client(app, other_customer_id):
    return client_for(app, other_customer_id)


@pytest.fixture
def admin_client(app, admin_id):
    return client_for(app, admin_id)


@pytest.fixture
def make_product(app):
    counter = {'n': 0}

    def _make(stock=5, price='100.00', status=ProductStatus.ACTIVE,
              category='Eggs', name=None, image=None):
        counter['n'] += 1
        with app.app_context():
            product = Product(
                name=name or f"Test Product {counter['n']}",
                category=Category.query.filter_by(name=category).one(),
                price=Decimal(price),
                stock=stock,
                status=status,
                description='Test product')
            if image:
                product.images = [ProductImage(
                    image_url=image,
                    alt_text=product.name,
                    sort_order=0,
                    is_primary=True)]
            db.session.add(product)
            db.session.commit()
            return product.id

    return _make


@pytest.fixture
def make_sale(app):
    def _make(product_id, sale_price='80.00', original_price='100.00',
              discount='20', quantity_available=10, quantity_sold=0,
              starts_in=timedelta(days=-1), ends_in=timedelta(days=1),
              status=SaleStatus.ACTIVE):
        now = datetime.utcnow()
        with app.app_context():
            sale = Sale(
                product_id=product_id,
                original_price=Decimal(original_price),
                sale_price=Decimal(sale_price),
                discount_percentage=Decimal(discount),
                quantity_available=quantity_available,
                quantity_sold=quantity_sold,
                start_date=now + starts_in,
                end_date=now + ends_in,
                status=status)
            db.session.add(sale)
            db.session.commit()
            return sale.id

    return _make


@pytest.fixture
def make_order(app):
    """Insert an order row directly, without touching stock."""
    counter = {'n': 0}

    def _make(user_id, product_id, quantity=1, status=OrderStatus.DELIVERED,
              price='100.00', created_at=None):
        counter['n'] += 1
        with app.app_context():
            product = db.session.get(Product, product_id)
            total = Decimal(price) * quantity
            order = Order(
                user_id=user_id,
                order_number=f"EGGTEST{counter['n']:04d}",
                customer_name='Maria Santos',
                customer_email='maria@example.com',
                customer_phone='09170000000',
                customer_address='1 Farm Road',
                delivery_method='pickup',
                payment_method='cod',
                subtotal=total,
                delivery_fee=Decimal('0'),
                total_amount=total,
                status=status,
                created_at=created_at or datetime.utcnow())
            order.items.append(OrderItem(
                product_id=product.id,
                product_name=product.name,
                product_price=Decimal(price),
                quantity=quantity,
                total_price=total))
            db.session.add(order)
            db.session.commit()
            return order.id

    return _make


@pytest.fixture
def order_payload():
    def _payload(product_id, quantity, delivery_method='pickup', **extra):
        payload = {
            'productId': product_id,
            'quantity': quantity,
            'customerInfo': {
                'name': 'Maria Santos',
                'email': 'maria@example.com',
                'phone': '09170000000',
                'address': '1 Farm Road',
            },
            'deliveryMethod': delivery_method,
            'paymentMethod': 'cod',
        }
        payload.update(extra)
        return payload

    return _payload


@pytest.fixture
def fetch(app):
    """Read a fresh row inside a short-lived app context."""
    def _fetch(model, ident, attr=None):
        with app.app_context():
            row = db.session.get(model, ident)
            if row is None or attr is None:
                return row
            return getattr(row, attr)

    return _fetch
