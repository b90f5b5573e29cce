"""
Tests for Orders, POS checkout and floor tables.

Tests cover:
- Checkout pricing (base price plus size modifier)
- Table orders and table occupancy
- Status changes and role order actions
- Order deletion with archive
- PDF tickets
"""

import json
import pytest
from decimal import Decimal


def product_ids(fresh_app):
    from cafe_pos.models import Product, ProductSize, DiningTable

    with fresh_app.app_context():
        latte = Product.query.filter_by(name='Latte').first()
        large = ProductSize.query.filter_by(product_id=latte.id, size_name='Large').first()
        return {
            'latte': latte.id,
            'large': large.id,
            'croissant': Product.query.filter_by(name='Croissant').first().id,
            'seasonal': Product.query.filter_by(name='Pumpkin Spice').first().id,
            'table': DiningTable.query.filter_by(name='T1').first().id,
        }


def checkout(client, items, **extra):
    payload = {'items': items}
    payload.update(extra)
    return client.post('/orders/', json=payload)


@pytest.mark.integration
class TestCheckout:
    """POS cart checkout."""

    def test_takeaway_order_pricing(self, auth_cashier, fresh_app):
        ids = product_ids(fresh_app)
        response = checkout(auth_cashier, [
            {'product_id': ids['latte'], 'size_id': ids['large'], 'quantity': 2},
            {'product_id': ids['croissant']},
        ], payment_method='card')

        assert response.status_code == 201
        order = response.get_json()['order']
        assert order['status'] == 'pending'
        assert order['service_type'] == 'takeaway'
        assert order['payment_method'] == 'card'
        assert order['total'] == pytest.approx(9.80)

        latte_line = order['items'][0]
        assert latte_line['product_name'] == 'Latte'
        assert latte_line['size_name'] == 'Large'
        assert latte_line['unit_price'] == pytest.approx(3.80)
        assert latte_line['subtotal'] == pytest.approx(7.60)

    def test_table_order_occupies_table(self, auth_cashier, fresh_app):
        from cafe_pos.models import DiningTable

        ids = product_ids(fresh_app)
        response = checkout(auth_cashier, [{'product_id': ids['croissant']}], table_id=ids['table'])

        assert response.status_code == 201
        order = response.get_json()['order']
        assert order['status'] == 'preparing'
        assert order['service_type'] == 'dine_in'
        assert order['table'] == 'T1'

        with fresh_app.app_context():
            assert DiningTable.query.get(ids['table']).status == 'occupied'

    def test_empty_cart_rejected(self, auth_cashier):
        response = checkout(auth_cashier, [])
        assert response.status_code == 400

    def test_unavailable_product_rejected(self, auth_cashier, fresh_app):
        ids = product_ids(fresh_app)
        response = checkout(auth_cashier, [{'product_id': ids['seasonal']}])
        assert response.status_code == 400

    def test_size_of_other_product_rejected(self, auth_cashier, fresh_app):
        ids = product_ids(fresh_app)
        response = checkout(auth_cashier, [{'product_id': ids['croissant'], 'size_id': ids['large']}])
        assert response.status_code == 400

    def test_zero_quantity_rejected(self, auth_cashier, fresh_app):
        ids = product_ids(fresh_app)
        response = checkout(auth_cashier, [{'product_id': ids['croissant'], 'quantity': 0}])
        assert response.status_code == 400

    def test_invalid_payment_method(self, auth_cashier, fresh_app):
        ids = product_ids(fresh_app)
        response = checkout(auth_cashier, [{'product_id': ids['croissant']}], payment_method='bitcoin')
        assert response.status_code == 400


@pytest.mark.integration
class TestOrderStatus:
    """Status changes guarded by the role order actions."""

    def test_list_today_orders(self, auth_cashier, fresh_app):
        ids = product_ids(fresh_app)
        checkout(auth_cashier, [{'product_id': ids['croissant']}])

        response = auth_cashier.get('/orders/?range=today')
        assert response.status_code == 200
        assert len(response.get_json()['orders']) == 1

    def test_complete_order(self, auth_cashier, fresh_app):
        ids = product_ids(fresh_app)
        order_id = checkout(auth_cashier, [{'product_id': ids['croissant']}]).get_json()['order']['id']

        response = auth_cashier.patch(f'/orders/{order_id}/status', json={'status': 'completed'})
        assert response.status_code == 200
        assert response.get_json()['order']['status'] == 'completed'

    def test_role_without_validate_cannot_complete(self, auth_cashier, fresh_app):
        from cafe_pos.models import db, RolePermission

        with fresh_app.app_context():
            db.session.add(RolePermission(role='cashier', section='sales', page_id='orders',
                                          can_access=True, can_confirm_order=True,
                                          can_validate_order=False))
            db.session.commit()

        ids = product_ids(fresh_app)
        order_id = checkout(auth_cashier, [{'product_id': ids['croissant']}]).get_json()['order']['id']

        response = auth_cashier.post(f'/orders/{order_id}/status', json={'status': 'completed'})
        assert response.status_code == 403

        response = auth_cashier.post(f'/orders/{order_id}/status', json={'status': 'preparing'})
        assert response.status_code == 200

    def test_unknown_status_rejected(self, auth_cashier, fresh_app):
        ids = product_ids(fresh_app)
        order_id = checkout(auth_cashier, [{'product_id': ids['croissant']}]).get_json()['order']['id']

        response = auth_cashier.post(f'/orders/{order_id}/status', json={'status': 'eaten'})
        assert response.status_code == 400

    def test_validate_table_order_frees_table(self, auth_cashier, fresh_app):
        from cafe_pos.models import Order, DiningTable

        ids = product_ids(fresh_app)
        order_id = checkout(auth_cashier, [{'product_id': ids['croissant']}],
                            table_id=ids['table']).get_json()['order']['id']

        response = auth_cashier.post(f"/tables/{ids['table']}/orders/{order_id}/validate",
                                     json={'payment_method': 'card'})
        assert response.status_code == 200
        assert response.get_json()['table']['status'] == 'available'

        with fresh_app.app_context():
            order = Order.query.get(order_id)
            assert order.status == 'completed'
            assert order.payment_method == 'card'
            assert DiningTable.query.get(ids['table']).status == 'available'

    def test_completing_table_order_by_status_frees_table(self, auth_cashier, fresh_app):
        from cafe_pos.models import DiningTable

        ids = product_ids(fresh_app)
        order_id = checkout(auth_cashier, [{'product_id': ids['latte']}],
                            table_id=ids['table']).get_json()['order']['id']

        response = auth_cashier.patch(f'/orders/{order_id}/status', json={'status': 'completed'})
        assert response.status_code == 200

        with fresh_app.app_context():
            assert DiningTable.query.get(ids['table']).status == 'available'


@pytest.mark.integration
class TestDeleteOrder:
    """Only admins delete orders; a snapshot is archived."""

    def test_cashier_cannot_delete(self, auth_cashier, fresh_app):
        ids = product_ids(fresh_app)
        order_id = checkout(auth_cashier, [{'product_id': ids['croissant']}]).get_json()['order']['id']

        response = auth_cashier.delete(f'/orders/{order_id}')
        assert response.status_code == 403

    def test_admin_delete_archives_order(self, auth_admin, fresh_app):
        from cafe_pos.models import db, Order, OrderItem, DeletedOrder, Product

        with fresh_app.app_context():
            croissant = Product.query.filter_by(name='Croissant').first()
            order = Order(status='completed', total=Decimal('4.40'))
            db.session.add(order)
            db.session.flush()
            db.session.add(OrderItem(order_id=order.id, product_id=croissant.id, product_name='Croissant',
                                     quantity=2, unit_price=Decimal('2.20'), subtotal=Decimal('4.40')))
            db.session.commit()
            order_id = order.id

        response = auth_admin.delete(f'/orders/{order_id}', json={'reason': 'Test order'})
        assert response.status_code == 200

        with fresh_app.app_context():
            assert Order.query.get(order_id) is None
            assert OrderItem.query.filter_by(order_id=order_id).count() == 0
            archived = DeletedOrder.query.filter_by(original_order_id=order_id).first()
            assert archived.reason == 'Test order'
            assert json.loads(archived.items_json)[0]['product_name'] == 'Croissant'

        listing = auth_admin.get('/orders/deleted').get_json()['deleted_orders']
        assert listing[0]['original_order_id'] == order_id


@pytest.mark.integration
class TestTicket:

    @pytest.mark.parametrize('copy', ['customer', 'kitchen'])
    def test_ticket_pdf(self, auth_cashier, fresh_app, copy):
        ids = product_ids(fresh_app)
        order_id = checkout(auth_cashier, [{'product_id': ids['latte'], 'size_id': ids['large'],
                                            'notes': 'Oat milk'}]).get_json()['order']['id']

        response = auth_cashier.get(f'/orders/{order_id}/ticket?copy={copy}')
        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')
