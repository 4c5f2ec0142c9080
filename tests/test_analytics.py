"""
Tests for the admin analytics dashboard and its notification buckets.
"""

from datetime import datetime, timedelta

from eggmart.models import OrderStatus, ProductStatus


def _dashboard(admin_client):
    resp = admin_client.get('/api/admin/analytics')
    assert resp.status_code == 200
    return resp.get_json()


class TestOverview:
    def test_counts_and_revenue(self, admin_client, customer_id,
                                make_product, make_order):
        pid = make_product(stock=50)
        make_product(stock=50)
        make_product(stock=50, status=ProductStatus.INACTIVE)
        make_order(customer_id, pid, quantity=1)
        make_order(customer_id, pid, quantity=3,
                   status=OrderStatus.CANCELLED)

        overview = _dashboard(admin_client)['overview']

        assert overview == {
            'totalProducts': 2,
            'totalOrders': 2,
            'totalCustomers': 1,
            'totalRevenue': 100.0,
        }

    def test_recent_orders_format(self, admin_client, customer_id,
                                  make_product, make_order):
        make_order(customer_id, make_product(stock=50), quantity=2)

        recent = _dashboard(admin_client)['recentOrders']
        assert recent[0]['id'] == 'EGGTEST0001'
        assert recent[0]['amount'] == '₱200.00'
        assert recent[0]['customer'] == 'Maria Santos'

    def test_customers_forbidden(self, customer_client):
        assert customer_client.get(
            '/api/admin/analytics').status_code == 401


class TestRevenue:
    def test_monthly_revenue(self, admin_client, customer_id, make_product,
                             make_order):
        pid = make_product(stock=50)
        make_order(customer_id, pid, quantity=1)
        make_order(customer_id, pid, quantity=3)
        make_order(customer_id, pid, quantity=9,
                   status=OrderStatus.CANCELLED)

        months = _dashboard(admin_client)['monthlyRevenue']

        assert len(months) == 1
        assert months[0]['monthYear'] == datetime.utcnow().strftime('%Y-%m')
        assert months[0]['revenue'] == 400.0
        assert months[0]['orders'] == 2
        assert months[0]['avgOrder'] == 200

    def test_revenue_by_category(self, admin_client, customer_id,
                                 make_product, make_order):
        eggs = make_product(stock=50, category='Eggs')
        chicks = make_product(stock=50, category='Chicks')
        make_order(customer_id, eggs, quantity=3)
        make_order(customer_id, chicks, quantity=1)
        make_order(customer_id, eggs, quantity=10,
                   status=OrderStatus.CANCELLED)

        rows = _dashboard(admin_client)['revenueByCategory']

        assert [(r['category'], r['revenue'], r['percentage'])
                for r in rows] == [('Eggs', 300.0, 75), ('Chicks', 100.0, 25)]


class TestAdminNotifications:
    def test_low_stock_buckets(self, admin_client, make_product):
        make_product(stock=5, name='Duck Eggs')
        make_product(stock=15, name='Quail Eggs')
        make_product(stock=50, name='Brown Eggs')
        make_product(stock=1, name='Hidden',
                     status=ProductStatus.INACTIVE)

        data = _dashboard(admin_client)

        assert [p['name'] for p in data['lowStockProducts']] == ['Duck Eggs']
        low = data['notifications']['lowStock']
        assert [n['name'] for n in low] == ['Duck Eggs', 'Quail Eggs']
        assert low[0]['message'] == 'Duck Eggs is running low (5 items left)'

    def test_new_orders(self, admin_client, customer_id, make_product,
                        make_order):
        pid = make_product(stock=50)
        make_order(customer_id, pid, quantity=2)
        make_order(customer_id, pid,
                   created_at=datetime.utcnow() - timedelta(days=2))
        make_order(customer_id, pid, status=OrderStatus.CANCELLED)

        new_orders = _dashboard(admin_client)['notifications']['newOrders']

        assert len(new_orders) == 1
        assert new_orders[0]['message'] == (
            'New order #EGGTEST0001 from Maria Santos - ₱200.00')

    def test_order_reminders(self, admin_client, customer_id, make_product,
                             make_order):
        pid = make_product(stock=50)
        now = datetime.utcnow()
        old_confirmed = make_order(
            customer_id, pid, status=OrderStatus.CONFIRMED,
            created_at=now - timedelta(days=3))
        new_confirmed = make_order(
            customer_id, pid, status=OrderStatus.CONFIRMED,
            created_at=now - timedelta(days=1))
        processing = make_order(
            customer_id, pid, status=OrderStatus.PROCESSING,
            created_at=now - timedelta(days=2))
        make_order(customer_id, pid, status=OrderStatus.CONFIRMED,
                   created_at=now - timedelta(days=10))

        reminders = _dashboard(admin_client)['notifications'][
            'orderReminders']

        assert [r['orderId'] for r in reminders] == [
            processing, old_confirmed, new_confirmed]
        assert reminders[0]['message'] == 'Order processing - check progress'
        assert reminders[1]['message'] == (
            'Order confirmed - ready for processing')

    def test_new_reviews(self, admin_client, customer_client, customer_id,
                         make_product, make_order):
        pid = make_product(stock=50, name='Duck Eggs')
        order_id = make_order(customer_id, pid)
        customer_client.post('/api/ratings', json={
            'orderId': order_id, 'rating': 4, 'reviewText': 'Fresh'})

        data = _dashboard(admin_client)

        review = data['notifications']['newReviews'][0]
        assert review['message'] == (
            'New 4-star review from Maria Santos for Duck Eggs')
        assert data['recentReviews'][0]['reviewText'] == 'Fresh'
