"""
Integration tests for the seller orders and sales report endpoints.
"""

import pytest
from types import SimpleNamespace
from marketplace.models import AppUser, CheckoutItem, UserRole


@pytest.fixture
def actors(session, student, seller, admin, course, auth_headers):
    """Ids and headers taken before any request detaches the fixtures."""
    rival = AppUser(email='rival@example.com', full_name='Rival Seller', role=UserRole.SELLER.value)
    session.add(rival)
    session.commit()
    return SimpleNamespace(
        seller_id=seller.id,
        rival_id=rival.id,
        course_id=course.id,
        student=auth_headers(student),
        seller=auth_headers(seller),
        rival=auth_headers(rival),
        admin=auth_headers(admin),
    )


@pytest.fixture
def paid_order(client, actors):
    """Student buys the course and settles it offline; returns the checkout id."""
    headers = actors.student
    client.post('/api/v1/cart/items', json={'courseId': actors.course_id}, headers=headers)
    checkout_id = client.post('/api/v1/checkouts', headers=headers).get_json()['data']['id']
    client.patch('/api/v1/checkouts/mark-paid', json={'checkoutId': checkout_id, 'paymentId': 'cash-7'},
                 headers=headers)
    return checkout_id


class TestOrdersApi:
    """Tests for /api/v1/orders."""

    def test_seller_lists_orders(self, client, actors, paid_order):
        """Test that the seller sees the paid checkout with their line."""
        response = client.get('/api/v1/orders', headers=actors.seller)

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['meta']['total'] == 1
        assert data['orders'][0]['order_id'] == paid_order
        assert data['orders'][0]['items'][0]['order_status'] == 'PROCESSING'

    def test_seller_cannot_widen_scope(self, client, actors, paid_order):
        """Test that ?seller_id is ignored for sellers."""
        response = client.get(f'/api/v1/orders?seller_id={actors.seller_id}', headers=actors.rival)

        assert response.get_json()['data']['orders'] == []

    def test_admin_can_narrow_to_a_seller(self, client, actors, paid_order):
        """Test that admins see everything and can pick one seller."""
        everything = client.get('/api/v1/orders', headers=actors.admin).get_json()['data']
        narrowed = client.get(f'/api/v1/orders?seller_id={actors.rival_id}',
                              headers=actors.admin).get_json()['data']

        assert everything['meta']['total'] == 1
        assert narrowed['meta']['total'] == 0

    def test_student_is_forbidden(self, client, actors):
        """Test that buyers cannot read the order view."""
        response = client.get('/api/v1/orders', headers=actors.student)

        assert response.status_code == 403

    def test_invalid_date_filter(self, client, actors):
        """Test that a malformed date is a 400."""
        response = client.get('/api/v1/orders?from=yesterday', headers=actors.seller)

        assert response.status_code == 400
        assert response.get_json()['kind'] == 'InvalidArgument'

    def test_date_window_excludes_older_orders(self, client, actors, paid_order):
        """Test that ?from in the future leaves nothing."""
        response = client.get('/api/v1/orders?from=2999-01-01', headers=actors.seller)

        assert response.get_json()['data']['meta']['total'] == 0

    def test_update_status(self, client, session, actors, paid_order):
        """Test moving the seller's lines to SHIPPED."""
        response = client.patch(f'/api/v1/orders/{paid_order}/status', json={'status': 'SHIPPED'},
                                headers=actors.seller)

        assert response.status_code == 200
        assert response.get_json()['data']['items'][0]['order_status'] == 'SHIPPED'
        item = session.query(CheckoutItem).one()
        assert item.order_status == 'SHIPPED'
        assert item.status_updated_at is not None

    def test_other_seller_update_is_not_found(self, client, actors, paid_order):
        """Test that a seller cannot touch a checkout without their courses."""
        response = client.patch(f'/api/v1/orders/{paid_order}/status', json={'status': 'SHIPPED'},
                                headers=actors.rival)

        assert response.status_code == 404

    def test_unknown_status_value(self, client, actors, paid_order):
        """Test that the body is validated."""
        response = client.patch(f'/api/v1/orders/{paid_order}/status', json={'status': 'LOST'},
                                headers=actors.seller)

        assert response.status_code == 400

    def test_closed_order_is_invalid_state(self, client, actors, paid_order):
        """Test that a cancelled order cannot be reopened."""
        client.patch(f'/api/v1/orders/{paid_order}/status', json={'status': 'CANCELLED'}, headers=actors.seller)

        response = client.patch(f'/api/v1/orders/{paid_order}/status', json={'status': 'PROCESSING'},
                                headers=actors.seller)

        assert response.status_code == 422


class TestSalesReportApi:
    """Tests for the sales report and summary endpoints."""

    def test_sales_report(self, client, actors, paid_order):
        """Test one report row per sold line."""
        response = client.get('/api/v1/orders/sales-report', headers=actors.seller)

        assert response.status_code == 200
        sales = response.get_json()['data']['sales']
        assert len(sales) == 1
        assert sales[0]['course_title'] == 'Python Basics'
        assert sales[0]['line_total'] == '90.00'
        assert sales[0]['payment_method'] == 'offline'
        assert sales[0]['customer_email'] == 'student@example.com'

    def test_summary(self, client, actors, paid_order):
        """Test the seller KPIs."""
        response = client.get('/api/v1/orders/summary', headers=actors.seller)

        assert response.status_code == 200
        assert response.get_json()['data'] == {
            'seller_name': 'Course Seller',
            'total_orders': 1,
            'open_orders': 1,
            'seats_sold': 1,
            'total_sales': '90.00',
        }

    def test_admin_summary_requires_seller_id(self, client, actors):
        """Test that admins must say which seller they mean."""
        response = client.get('/api/v1/orders/summary', headers=actors.admin)

        assert response.status_code == 400

    def test_admin_summary_for_a_seller(self, client, actors, paid_order):
        """Test that admins read a seller's KPIs with ?seller_id."""
        response = client.get(f'/api/v1/orders/summary?seller_id={actors.seller_id}', headers=actors.admin)

        assert response.get_json()['data']['total_orders'] == 1
