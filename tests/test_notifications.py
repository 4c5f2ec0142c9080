"""
Tests for persisted notifications, sale promotions and the merged feed.
"""

from datetime import datetime, timedelta

from eggmart.extensions import db
from eggmart.models import Notification, NotificationType, OrderStatus
from eggmart.services.notification_service import (
    PersistedNotification,
    SynthesizedNotification,
    status_notification_text,
)


def _add_note(app, user_id, title='Hello', created_at=None, is_read=False):
    with app.app_context():
        note = Notification(
            user_id=user_id,
            type=NotificationType.ORDER,
            title=title,
            message=f'{title} message',
            is_read=is_read,
            created_at=created_at or datetime.utcnow())
        db.session.add(note)
        db.session.commit()
        return note.id


class TestStatusText:
    def test_known_status(self):
        title, message = status_notification_text(
            'EGG123456001', OrderStatus.DELIVERED)
        assert title == 'Order Delivered'
        assert message == (
            'Your order has been delivered successfully'
            ' - Order #EGG123456001'
        )

    def test_pending_uses_default_text(self):
        title, message = status_notification_text('EGG1', OrderStatus.PENDING)
        assert title == 'Order Status Updated'
        assert message.startswith('Your order status has been updated')


class TestPersistedNotifications:
    def test_create_validates_type(self, customer_client):
        resp = customer_client.post('/api/notifications', json={
            'type': 'spam', 'title': 't', 'message': 'm'})
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Invalid notification type'

    def test_create_rejects_non_text_title(self, customer_client):
        resp = customer_client.post('/api/notifications', json={
            'type': 'order', 'title': {'text': 't'}, 'message': 'm'})
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Title and message must be strings'

    def test_create_and_list(self, customer_client):
        resp = customer_client.post('/api/notifications', json={
            'type': 'favorite',
            'title': 'Saved',
            'message': 'Added to favorites',
            'productId': 3,
            'productName': 'Duck Eggs',
        })
        assert resp.get_json()['success'] is True

        notes = customer_client.get(
            '/api/notifications').get_json()['notifications']
        assert notes[0]['kind'] == 'persisted'
        assert notes[0]['type'] == 'favorite'
        assert notes[0]['isRead'] is False

    def test_mark_read_only_own_rows(
            self, app, customer_client, other_client, customer_id, fetch):
        note_id = _add_note(app, customer_id)

        denied = other_client.put(
            f'/api/notifications/{note_id}', json={'isRead': True})
        assert denied.status_code == 404

        ok = customer_client.put(
            f'/api/notifications/{note_id}', json={'isRead': True})
        assert ok.status_code == 200
        assert fetch(Notification, note_id, 'is_read') is True

    def test_is_read_must_be_boolean(self, app, customer_client,
                                     customer_id):
        note_id = _add_note(app, customer_id)
        resp = customer_client.put(
            f'/api/notifications/{note_id}', json={'isRead': 'yes'})
        assert resp.status_code == 400

    def test_mark_all_read(self, app, customer_client, customer_id):
        _add_note(app, customer_id, 'a')
        _add_note(app, customer_id, 'b')
        _add_note(app, customer_id, 'c', is_read=True)

        resp = customer_client.put('/api/notifications/mark-all-read')
        assert resp.get_json() == {'success': True, 'updatedCount': 2}

    def test_delete(self, app, customer_client, customer_id, fetch):
        note_id = _add_note(app, customer_id)
        assert customer_client.delete(
            f'/api/notifications/{note_id}').status_code == 200
        assert fetch(Notification, note_id) is None


class TestSaleNotifications:
    def test_public_sale_promotions(self, client, make_product, make_sale):
        pid = make_product(name='Brown Eggs')
        make_sale(pid, sale_price='80.00', original_price='100.00',
                  discount='20', quantity_available=10, quantity_sold=4)
        # Sold out and future sales are not promoted
        make_sale(make_product(), quantity_available=5, quantity_sold=5)
        make_sale(make_product(), starts_in=timedelta(days=1),
                  ends_in=timedelta(days=2))

        body = client.get('/api/sales/notifications').get_json()

        assert body['count'] == 1
        note = body['notifications'][0]
        assert note['kind'] == 'synthesized'
        assert note['id'].startswith('sale-')
        assert note['title'] == '🔥 Special Sale!'
        assert note['message'] == (
            'Brown Eggs is on sale! 20% off - Save ₱20.00')
        assert note['quantityAvailable'] == 6
        assert note['isRead'] is False

    def test_ordered_by_discount(self, client, make_product, make_sale):
        small = make_sale(make_product(), discount='10')
        big = make_sale(make_product(), discount='35')

        ids = [n['id'] for n in
               client.get('/api/sales/notifications').get_json()[
                   'notifications']]
        assert ids == [f'sale-{big}', f'sale-{small}']


class TestFeed:
    def test_merges_and_sorts_by_creation(
            self, app, customer_client, customer_id, make_product,
            make_sale):
        now = datetime.utcnow()
        _add_note(app, customer_id, 'old', created_at=now - timedelta(days=3))
        _add_note(app, customer_id, 'new', created_at=now - timedelta(hours=1))
        make_sale(make_product(), starts_in=timedelta(days=-1))

        feed = customer_client.get(
            '/api/notifications/feed').get_json()['notifications']

        assert [n['kind'] for n in feed] == [
            'persisted', 'synthesized', 'persisted']
        assert feed[0]['title'] == 'new'

    def test_variant_read_state(self):
        now = datetime.utcnow()
        persisted = PersistedNotification(
            id=1, type='order', title='t', message='m', is_read=True,
            created_at=now)
        synthesized = SynthesizedNotification(
            id='sale-1', type='sale', title='t', message='m', created_at=now)
        assert persisted.to_dict()['isRead'] is True
        assert synthesized.to_dict()['isRead'] is False
        assert synthesized.kind == 'synthesized'
