"""
Integration tests for the cart -> checkout -> manual settlement flow.
"""

from marketplace.models import CartItem, Checkout, CheckoutStatus, EmployeeCredential, Enrollment


class TestCartApi:
    """Tests for /api/v1/cart."""

    def test_add_and_remove_course(self, client, student, course, auth_headers):
        """Test adding and removing a course through the API."""
        headers = auth_headers(student)
        course_id = course.id

        response = client.post('/api/v1/cart/items', json={'courseId': course_id}, headers=headers)
        assert response.status_code == 201
        data = response.get_json()['data']
        assert [i['course_id'] for i in data['items']] == [course_id]
        assert data['subtotal'] == '90.00'

        response = client.delete(f'/api/v1/cart/items/{course_id}', headers=headers)
        assert response.status_code == 200
        assert response.get_json()['data']['items'] == []

    def test_duplicate_add_is_conflict(self, client, student, course, auth_headers):
        """Test that adding the same course twice is a 409."""
        headers = auth_headers(student)
        body = {'courseId': course.id}
        client.post('/api/v1/cart/items', json=body, headers=headers)

        response = client.post('/api/v1/cart/items', json=body, headers=headers)

        assert response.status_code == 409
        assert response.get_json()['kind'] == 'Conflict'

    def test_missing_course_id_is_invalid_argument(self, client, student, auth_headers):
        """Test that a body without courseId is a 400 with field errors."""
        response = client.post('/api/v1/cart/items', json={}, headers=auth_headers(student))

        assert response.status_code == 400
        body = response.get_json()
        assert body['kind'] == 'InvalidArgument'
        assert body['errors'][0]['field'] == 'courseId'

    def test_unknown_course(self, client, student, auth_headers):
        """Test that an unknown course is a 404."""
        response = client.post('/api/v1/cart/items', json={'courseId': 12345}, headers=auth_headers(student))

        assert response.status_code == 404

    def test_company_buys_several_seats(self, client, company_user, company, course, auth_headers):
        """Test that a company account adds several seats."""
        company_id = company.id
        response = client.post(
            '/api/v1/cart/items', json={'courseId': course.id, 'quantity': 4}, headers=auth_headers(company_user)
        )

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['company_id'] == company_id
        assert data['subtotal'] == '360.00'


class TestCheckoutApi:
    """Tests for /api/v1/checkouts."""

    def test_create_and_fetch_checkout(self, client, student, course, course2, auth_headers):
        """Test creating, fetching and listing a checkout."""
        headers = auth_headers(student)
        course_ids = [course.id, course2.id]
        for course_id in course_ids:
            client.post('/api/v1/cart/items', json={'courseId': course_id}, headers=headers)

        response = client.post('/api/v1/checkouts', headers=headers)
        assert response.status_code == 201
        created = response.get_json()['data']
        assert created['status'] == 'PENDING'
        assert created['total_amount'] == '140.00'

        response = client.get(f"/api/v1/checkouts/{created['id']}", headers=headers)
        assert response.status_code == 200
        assert len(response.get_json()['data']['items']) == 2

        response = client.get('/api/v1/checkouts', headers=headers)
        assert [c['id'] for c in response.get_json()['data']] == [created['id']]

    def test_second_checkout_of_same_cart_is_conflict(self, client, session, student, course, auth_headers):
        """Test that a second checkout of the same cart is a 409 naming the pending one."""
        headers = auth_headers(student)
        client.post('/api/v1/cart/items', json={'courseId': course.id}, headers=headers)
        first_id = client.post('/api/v1/checkouts', headers=headers).get_json()['data']['id']

        response = client.post('/api/v1/checkouts', headers=headers)

        assert response.status_code == 409
        body = response.get_json()
        assert body['kind'] == 'Conflict'
        assert body['checkout_id'] == first_id
        assert session.query(Checkout).count() == 1

    def test_checkout_selected_courses(self, client, student, course, course2, auth_headers):
        """Test checking out only the selected courses."""
        headers = auth_headers(student)
        course_id, course2_id = course.id, course2.id
        for cid in (course_id, course2_id):
            client.post('/api/v1/cart/items', json={'courseId': cid}, headers=headers)

        response = client.post('/api/v1/checkouts', json={'courseIds': [course2_id]}, headers=headers)

        assert response.status_code == 201
        created = response.get_json()['data']
        assert [i['course_id'] for i in created['items']] == [course2_id]
        assert created['total_amount'] == '50.00'

        # The rest of the cart can still be checked out on its own
        response = client.post('/api/v1/checkouts', json={'courseIds': [course_id]}, headers=headers)
        assert response.status_code == 201

    def test_selection_without_ids_is_invalid_argument(self, client, student, course, auth_headers):
        """Test that all=false without courseIds is a 400."""
        headers = auth_headers(student)
        client.post('/api/v1/cart/items', json={'courseId': course.id}, headers=headers)

        response = client.post('/api/v1/checkouts', json={'all': False}, headers=headers)

        assert response.status_code == 400
        assert response.get_json()['kind'] == 'InvalidArgument'

    def test_list_filtered_by_status(self, client, student, course, course2, auth_headers):
        """Test listing checkouts filtered by status."""
        headers = auth_headers(student)
        course_id, course2_id = course.id, course2.id
        for cid in (course_id, course2_id):
            client.post('/api/v1/cart/items', json={'courseId': cid}, headers=headers)
        paid_id = client.post('/api/v1/checkouts', json={'courseIds': [course_id]},
                              headers=headers).get_json()['data']['id']
        client.post('/api/v1/checkouts', json={'courseIds': [course2_id]}, headers=headers)
        client.patch('/api/v1/checkouts/mark-paid', json={'checkoutId': paid_id, 'paymentId': 'cash-1'},
                     headers=headers)

        response = client.get('/api/v1/checkouts?status=paid', headers=headers)

        assert [c['id'] for c in response.get_json()['data']] == [paid_id]

    def test_empty_cart_is_invalid_state(self, client, student, auth_headers):
        """Test that an empty cart is a 422."""
        response = client.post('/api/v1/checkouts', headers=auth_headers(student))

        assert response.status_code == 422
        assert response.get_json()['kind'] == 'InvalidState'

    def test_other_user_cannot_see_checkout(self, client, student, other_student, course, auth_headers):
        """Test that another user's checkout is a 404."""
        owner_headers, other_headers = auth_headers(student), auth_headers(other_student)
        client.post('/api/v1/cart/items', json={'courseId': course.id}, headers=owner_headers)
        checkout_id = client.post('/api/v1/checkouts', headers=owner_headers).get_json()['data']['id']

        response = client.get(f'/api/v1/checkouts/{checkout_id}', headers=other_headers)

        assert response.status_code == 404

    def test_delete_pending_checkout(self, client, session, student, course, auth_headers):
        """Test deleting a pending checkout."""
        headers = auth_headers(student)
        client.post('/api/v1/cart/items', json={'courseId': course.id}, headers=headers)
        checkout_id = client.post('/api/v1/checkouts', headers=headers).get_json()['data']['id']

        response = client.delete(f'/api/v1/checkouts/{checkout_id}', headers=headers)

        assert response.status_code == 200
        assert session.get(Checkout, checkout_id) is None


class TestManualMarkPaid:
    """Tests for PATCH /api/v1/checkouts/mark-paid."""

    def test_individual_mark_paid(self, client, session, student, course, auth_headers):
        """Test that settling a checkout enrolls the student."""
        headers = auth_headers(student)
        student_id = student.id
        client.post('/api/v1/cart/items', json={'courseId': course.id}, headers=headers)
        checkout_id = client.post('/api/v1/checkouts', headers=headers).get_json()['data']['id']

        response = client.patch(
            '/api/v1/checkouts/mark-paid', json={'checkoutId': checkout_id, 'paymentId': 'cash-42'}, headers=headers
        )

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['status'] == 'PAID'
        assert data['payment_id'] == 'cash-42'
        assert session.query(Enrollment).filter_by(user_id=student_id).count() == 1
        assert session.query(CartItem).count() == 0

        enrollments = client.get('/api/v1/enrollments', headers=headers).get_json()['data']
        assert [e['course_title'] for e in enrollments] == ['Python Basics']

    def test_second_mark_paid_is_conflict(self, client, student, course, auth_headers):
        """Test that settling twice is a 409."""
        headers = auth_headers(student)
        client.post('/api/v1/cart/items', json={'courseId': course.id}, headers=headers)
        checkout_id = client.post('/api/v1/checkouts', headers=headers).get_json()['data']['id']
        body = {'checkoutId': checkout_id, 'paymentId': 'cash-42'}

        assert client.patch('/api/v1/checkouts/mark-paid', json=body, headers=headers).status_code == 200
        response = client.patch('/api/v1/checkouts/mark-paid', json=body, headers=headers)

        assert response.status_code == 409

    def test_paid_checkout_cannot_be_deleted(self, client, session, student, course, auth_headers):
        """Test that a paid checkout cannot be deleted."""
        headers = auth_headers(student)
        client.post('/api/v1/cart/items', json={'courseId': course.id}, headers=headers)
        checkout_id = client.post('/api/v1/checkouts', headers=headers).get_json()['data']['id']
        client.patch('/api/v1/checkouts/mark-paid', json={'checkoutId': checkout_id, 'paymentId': 'x'},
                     headers=headers)

        response = client.delete(f'/api/v1/checkouts/{checkout_id}', headers=headers)

        assert response.status_code == 409
        assert session.get(Checkout, checkout_id).status == CheckoutStatus.PAID.value

    def test_company_mark_paid_lists_credentials(self, client, session, company_user, company, course,
                                                 auth_headers, sent_emails):
        """Test that a company settlement lists credentials without secrets."""
        headers = auth_headers(company_user)
        company_id = company.id
        client.post('/api/v1/cart/items', json={'courseId': course.id, 'quantity': 3}, headers=headers)
        checkout_id = client.post('/api/v1/checkouts', headers=headers).get_json()['data']['id']

        response = client.patch(
            '/api/v1/checkouts/mark-paid', json={'checkoutId': checkout_id, 'paymentId': 'wire-1'}, headers=headers
        )
        assert response.status_code == 200

        response = client.get('/api/v1/company/credentials', headers=headers)
        credentials = response.get_json()['data']
        assert len(credentials) == 3
        assert all(c['is_sent'] for c in credentials)
        assert all('password' not in c and 'password_hash' not in c for c in credentials)
        assert session.query(EmployeeCredential).filter_by(company_id=company_id).count() == 3
        assert len(sent_emails) == 3
