"""
Tests for admin order status transitions and stock reconciliation.
"""

from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from eggmart.extensions import db
from eggmart.models import (
    Notification,
    NotificationType,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    Sale,
)
from eggmart.services import notification_service


def _place(client, order_payload, product_id, quantity):
    resp = client.post('/api/orders', json=order_payload(product_id, quantity))
    assert resp.status_code == 200
    return resp.get_json()['orderId']


class TestStatusValidation:
    def test_requires_admin(self, customer_client, make_product, make_order,
                            customer_id):
        order_id = make_order(customer_id, make_product())
        resp = customer_client.put(
            f'/api/admin/orders/{order_id}', json={'status': 'confirmed'})
        assert resp.status_code == 401
        assert resp.get_json()['error'] == 'Not authorized'

    def test_status_required(self, admin_client, make_product, make_order,
                             customer_id):
        order_id = make_order(customer_id, make_product())
        resp = admin_client.put(f'/api/admin/orders/{order_id}', json={})
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Status is required'

    def test_invalid_status(self, admin_client, make_product, make_order,
                            customer_id):
        order_id = make_order(customer_id, make_product())
        resp = admin_client.put(
            f'/api/admin/orders/{order_id}', json={'status': 'lost'})
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Invalid status'

    def test_unknown_order(self, admin_client):
        resp = admin_client.put(
            '/api/admin/orders/4242', json={'status': 'confirmed'})
        assert resp.status_code == 404


class TestCancellation:
    def test_cancel_restores_stock(
            self, customer_client, admin_client, make_product,
            order_payload, fetch):
        pid = make_product(stock=10)
        order_id = _place(customer_client, order_payload, pid, 4)
        assert fetch(Product, pid, 'stock') == 6

        resp = admin_client.put(
            f'/api/admin/orders/{order_id}', json={'status': 'cancelled'})

        assert resp.status_code == 200
        assert resp.get_json() == {
            'success': True,
            'message': 'Order status updated to cancelled',
            'stockUpdated': True,
        }
        assert fetch(Product, pid, 'stock') == 10

    def test_cancel_keeps_sale_quantity_sold(
            self, customer_client, admin_client, make_product, make_sale,
            order_payload, fetch):
        pid = make_product(stock=10)
        sid = make_sale(pid, quantity_available=5)
        order_id = _place(customer_client, order_payload, pid, 2)

        admin_client.put(
            f'/api/admin/orders/{order_id}', json={'status': 'cancelled'})

        assert fetch(Product, pid, 'stock') == 10
        assert fetch(Sale, sid, 'quantity_sold') == 2

    def test_non_cancel_transition_leaves_stock(
            self, customer_client, admin_client, make_product,
            order_payload, fetch):
        pid = make_product(stock=10)
        order_id = _place(customer_client, order_payload, pid, 3)

        for status in ('confirmed', 'processing', 'shipped', 'delivered'):
            resp = admin_client.put(
                f'/api/admin/orders/{order_id}', json={'status': status})
            assert resp.get_json()['stockUpdated'] is False

        assert fetch(Product, pid, 'stock') == 7
        assert fetch(Order, order_id, 'status') == OrderStatus.DELIVERED

    def test_uncancel_deducts_stock_again(
            self, customer_client, admin_client, make_product,
            order_payload, fetch):
        pid = make_product(stock=10)
        order_id = _place(customer_client, order_payload, pid, 4)
        admin_client.put(
            f'/api/admin/orders/{order_id}', json={'status': 'cancelled'})

        resp = admin_client.put(
            f'/api/admin/orders/{order_id}', json={'status': 'confirmed'})

        assert resp.get_json()['stockUpdated'] is True
        assert fetch(Product, pid, 'stock') == 6

    def test_uncancel_with_short_stock_is_rejected(
            self, app, customer_client, admin_client, make_product,
            order_payload, fetch):
        pid = make_product(stock=10)
        order_id = _place(customer_client, order_payload, pid, 4)
        admin_client.put(
            f'/api/admin/orders/{order_id}', json={'status': 'cancelled'})

        with app.app_context():
            db.session.get(Product, pid).stock = 1
            db.session.commit()

        resp = admin_client.put(
            f'/api/admin/orders/{order_id}', json={'status': 'processing'})

        assert resp.status_code == 400
        assert resp.get_json()['error'] == (
            f'Insufficient stock for product ID {pid}. '
            'Available: 1, Required: 4'
        )
        assert fetch(Product, pid, 'stock') == 1
        assert fetch(Order, order_id, 'status') == OrderStatus.CANCELLED

    def test_uncancel_is_all_or_nothing_across_lines(
            self, app, admin_client, customer_id, make_product, make_order,
            fetch):
        first = make_product(stock=10)
        second = make_product(stock=10)
        order_id = make_order(
            customer_id, first, quantity=2, status=OrderStatus.CANCELLED)
        with app.app_context():
            order = db.session.get(Order, order_id)
            product = db.session.get(Product, second)
            order.items.append(OrderItem(
                product_id=second,
                product_name=product.name,
                product_price=Decimal('100.00'),
                quantity=50,
                total_price=Decimal('5000.00')))
            db.session.commit()

        resp = admin_client.put(
            f'/api/admin/orders/{order_id}', json={'status': 'confirmed'})

        assert resp.status_code == 400
        assert resp.get_json()['error'] == (
            f'Insufficient stock for product ID {second}. '
            'Available: 10, Required: 50'
        )
        assert fetch(Product, first, 'stock') == 10
        assert fetch(Product, second, 'stock') == 10
        assert fetch(Order, order_id, 'status') == OrderStatus.CANCELLED


class TestStatusNotifications:
    def test_change_notifies_owner(
            self, app, customer_id, admin_client, make_product, make_order):
        order_id = make_order(
            customer_id, make_product(), status=OrderStatus.PENDING)

        admin_client.put(
            f'/api/admin/orders/{order_id}', json={'status': 'shipped'})

        with app.app_context():
            note = Notification.query.filter_by(user_id=customer_id).one()
            order = db.session.get(Order, order_id)
            assert note.type == NotificationType.ORDER_STATUS
            assert note.title == 'Order Shipped'
            assert note.message == (
                'Your order has been shipped and is on its way'
                f' - Order #{order.order_number}'
            )
            assert note.order_id == order_id

    def test_same_status_is_silent(
            self, app, customer_id, admin_client, make_product, make_order):
        order_id = make_order(
            customer_id, make_product(), status=OrderStatus.CONFIRMED)

        resp = admin_client.put(
            f'/api/admin/orders/{order_id}', json={'status': 'confirmed'})

        assert resp.status_code == 200
        assert resp.get_json()['stockUpdated'] is False
        with app.app_context():
            assert Notification.query.count() == 0

    def test_failed_notification_keeps_status_change(
            self, app, monkeypatch, customer_client, admin_client,
            make_product, order_payload, fetch):
        pid = make_product(stock=10)
        order_id = _place(customer_client, order_payload, pid, 4)

        def _broken_insert(**kwargs):
            raise SQLAlchemyError('notifications table unavailable')

        monkeypatch.setattr(
            notification_service, 'Notification', _broken_insert)

        resp = admin_client.put(
            f'/api/admin/orders/{order_id}', json={'status': 'cancelled'})

        assert resp.status_code == 200
        assert resp.get_json()['stockUpdated'] is True
        assert fetch(Product, pid, 'stock') == 10
        assert fetch(Order, order_id, 'status') == OrderStatus.CANCELLED
        with app.app_context():
            assert Notification.query.count() == 0


class TestAdminOrderViews:
    def test_list_includes_items_summary(
            self, admin_client, customer_id, make_product, make_order):
        pid = make_product(name='Quail Eggs')
        make_order(customer_id, pid, quantity=2)

        orders = admin_client.get('/api/admin/orders').get_json()['orders']
        assert orders[0]['items'] == '2x Quail Eggs'
        assert orders[0]['itemCount'] == 1

    def test_receipt(self, admin_client, customer_id, make_product,
                     make_order):
        order_id = make_order(customer_id, make_product(), quantity=3)

        receipt = admin_client.get(
            f'/api/admin/orders/{order_id}/receipt').get_json()['receipt']

        assert receipt['store']['name'] == 'EggMart Store'
        assert receipt['items'][0]['quantity'] == 3
        assert receipt['totals']['total'] == 300.0
