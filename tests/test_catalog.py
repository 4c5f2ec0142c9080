"""
Tests for the catalog: listing, lazy sale expiry and product admin.
"""

import io
from datetime import timedelta

from eggmart.extensions import db
from eggmart.models import (
    CartItem,
    OrderItem,
    Product,
    ProductStatus,
    Sale,
    SaleStatus,
)


class TestListing:
    def test_newest_first_with_sale_fields(
            self, client, make_product, make_sale):
        older = make_product(name='Brown Eggs', image='/static/b.jpg')
        newer = make_product(name='Duck Eggs')
        make_sale(older, sale_price='80.00', quantity_available=10,
                  quantity_sold=3)

        items = client.get('/api/products').get_json()['items']

        assert [i['id'] for i in items] == [newer, older]
        on_sale = items[1]
        assert on_sale['isOnSale'] is True
        assert on_sale['salePrice'] == 80.0
        assert on_sale['sale']['remainingQuantity'] == 7
        assert on_sale['image'] == '/static/b.jpg'
        assert items[0]['isOnSale'] is False
        assert items[0]['sale'] is None

    def test_listing_expires_finished_sales(
            self, client, make_product, make_sale, fetch):
        pid = make_product()
        sid = make_sale(
            pid, starts_in=timedelta(days=-3), ends_in=timedelta(days=-1))

        items = client.get('/api/products').get_json()['items']

        assert items[0]['isOnSale'] is False
        assert fetch(Sale, sid, 'status') == SaleStatus.EXPIRED

    def test_repeated_reads_are_stable(self, client, make_product, make_sale):
        pid = make_product(stock=7)
        make_sale(pid)
        first = client.get('/api/products').get_json()
        second = client.get('/api/products').get_json()
        assert first == second

    def test_detail(self, client, make_product, make_sale):
        pid = make_product(price='100.00', image='/static/a.jpg')
        make_sale(pid, sale_price='75.00', original_price='100.00')

        body = client.get(f'/api/products/{pid}').get_json()

        assert body['price'] == 75.0
        assert body['originalPrice'] == 100.0
        assert body['images'][0]['isPrimary'] is True
        assert body['saleInfo']['saleQuantity'] == 10

    def test_detail_not_found(self, client):
        resp = client.get('/api/products/999')
        assert resp.status_code == 404
        assert resp.get_json()['error'] == 'Product not found'

    def test_categories(self, client):
        names = [c['name'] for c in
                 client.get('/api/categories').get_json()['categories']]
        assert names == ['Chicks', 'Eggs']


class TestProductAdmin:
    payload = {
        'name': 'Hatching Eggs',
        'category': 'Eggs',
        'price': 15.5,
        'stock': 25,
        'description': 'Fertile eggs',
        'images': ['/static/uploads/one.jpg', '/static/uploads/two.jpg'],
    }

    def test_create_derives_status_from_stock(self, admin_client, fetch):
        resp = admin_client.post('/api/products', json=self.payload)
        assert resp.status_code == 200
        pid = resp.get_json()['id']
        assert fetch(Product, pid, 'status') == ProductStatus.ACTIVE

        low = dict(self.payload, name='Few Eggs', stock=10)
        low_id = admin_client.post('/api/products', json=low).get_json()['id']
        assert fetch(Product, low_id, 'status') == ProductStatus.INACTIVE

    def test_first_image_is_primary(self, admin_client, client):
        pid = admin_client.post(
            '/api/products', json=self.payload).get_json()['id']
        images = client.get(f'/api/products/{pid}').get_json()['images']
        assert [i['isPrimary'] for i in images] == [True, False]

    def test_unknown_category(self, admin_client):
        resp = admin_client.post(
            '/api/products', json=dict(self.payload, category='Ducks'))
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Category not found'

    def test_invalid_payload(self, admin_client):
        resp = admin_client.post(
            '/api/products', json=dict(self.payload, stock=-1))
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Invalid payload'

    def test_customers_cannot_create(self, customer_client):
        resp = customer_client.post('/api/products', json=self.payload)
        assert resp.status_code == 401

    def test_stock_change_keeps_status(
            self, customer_client, make_product, order_payload, fetch):
        pid = make_product(stock=12)
        customer_client.post('/api/orders', json=order_payload(pid, 10))
        assert fetch(Product, pid, 'status') == ProductStatus.ACTIVE
        assert fetch(Product, pid, 'stock') == 2

    def test_update_replaces_images(self, admin_client, client, make_product):
        pid = make_product(image='/static/old.jpg')
        resp = admin_client.put(f'/api/products/{pid}', json=dict(
            self.payload, images=['/static/new.jpg']))
        assert resp.status_code == 200

        body = client.get(f'/api/products/{pid}').get_json()
        assert [i['url'] for i in body['images']] == ['/static/new.jpg']
        assert body['name'] == 'Hatching Eggs'

    def test_delete_keeps_order_history(
            self, app, admin_client, customer_client, make_product,
            order_payload):
        pid = make_product(stock=10)
        customer_client.post('/api/orders', json=order_payload(pid, 1))

        resp = admin_client.delete(f'/api/products/{pid}')
        assert resp.status_code == 200

        with app.app_context():
            assert db.session.get(Product, pid) is None
            item = OrderItem.query.one()
            assert item.product_id is None
            assert item.product_name.startswith('Test Product')
            assert CartItem.query.count() == 0


class TestUploads:
    def test_saves_and_serves_images(self, customer_client, tmp_path):
        data = {'files': [(io.BytesIO(b'fake-jpeg'), 'photo.jpg')]}
        resp = customer_client.post(
            '/api/uploads', data=data, content_type='multipart/form-data')

        assert resp.status_code == 200
        url = resp.get_json()['urls'][0]
        assert url.startswith('/uploads/')
        assert url.endswith('.jpg')
        assert resp.get_json()['files'][0]['size'] == len(b'fake-jpeg')
        assert (tmp_path / 'uploads' / url.rsplit('/', 1)[-1]).exists()

        served = customer_client.get(url)
        assert served.status_code == 200
        assert served.data == b'fake-jpeg'

    def test_rejects_other_types(self, customer_client):
        data = {'files': [(io.BytesIO(b'#!/bin/sh'), 'run.sh')]}
        resp = customer_client.post(
            '/api/uploads', data=data, content_type='multipart/form-data')
        assert resp.status_code == 400
