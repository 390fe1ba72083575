"""
Unit tests for fulfillment (PENDING -> PAID and what it grants).
"""

import itertools
import re
import pytest
from decimal import Decimal
from werkzeug.security import check_password_hash

from marketplace.exceptions import (
    ConflictError, InvalidArgumentError, InvalidStateError, NotFoundError, ResourceExhaustedError,
)
from marketplace.models import (
    AppUser, CartItem, Checkout, CheckoutStatus, CompanyPurchase, CompanyPurchaseItem,
    EmployeeCredential, Enrollment, UserRole,
)
from marketplace.services import cart_service, checkout_service, fulfillment_service
from marketplace.services.owner import OwnerRef


def _checkout(session, owner, *courses, quantity=1):
    cart = cart_service.get_or_create_cart(session, owner)
    for course in courses:
        cart_service.add_item(session, cart, course.id, quantity=quantity)
    return checkout_service.create_checkout(session, owner)


def _password_from_email(message):
    match = re.search(r'Password</td><td><strong>([^<]+)</strong>', message.html)
    return match.group(1)


class TestIndividualFulfillment:
    """Tests for settling a student's checkout."""

    def test_enrolls_every_item_and_clears_cart(self, session, student, course, course2):
        """Test that paying enrolls every course and empties the cart."""
        checkout = _checkout(session, OwnerRef(user_id=student.id), course, course2)

        fulfillment_service.mark_paid(session, student.id, checkout.id, 'cash-001')

        paid = session.get(Checkout, checkout.id)
        assert paid.status == CheckoutStatus.PAID.value
        assert paid.payment_id == 'cash-001'
        assert paid.paid_at is not None
        enrolled = {e.course_id for e in session.query(Enrollment).filter_by(user_id=student.id)}
        assert enrolled == {course.id, course2.id}
        assert session.query(CartItem).count() == 0

    def test_selective_checkout_keeps_other_cart_items(self, session, student, course, course2):
        """Test that paying a partial checkout removes only its courses from the cart."""
        owner = OwnerRef(user_id=student.id)
        cart = cart_service.get_or_create_cart(session, owner)
        cart_service.add_item(session, cart, course.id)
        cart_service.add_item(session, cart, course2.id)
        checkout = checkout_service.create_checkout(session, owner, course_ids=[course.id])

        fulfillment_service.mark_paid(session, student.id, checkout.id, 'p-1')

        assert [item.course_id for item in session.query(CartItem).all()] == [course2.id]
        enrolled = {e.course_id for e in session.query(Enrollment).filter_by(user_id=student.id)}
        assert enrolled == {course.id}

    def test_existing_enrollment_is_not_duplicated(self, session, student, course, course2):
        """Test that an existing enrollment is not created again."""
        session.add(Enrollment(user_id=student.id, course_id=course.id))
        session.commit()
        checkout = _checkout(session, OwnerRef(user_id=student.id), course, course2)

        fulfillment_service.mark_paid(session, student.id, checkout.id, 'p-1')

        assert session.query(Enrollment).filter_by(user_id=student.id).count() == 2

    def test_mark_paid_twice_is_conflict_without_side_effects(self, session, student, course):
        """Test that a second settlement is rejected and changes nothing."""
        checkout = _checkout(session, OwnerRef(user_id=student.id), course)
        fulfillment_service.mark_paid(session, student.id, checkout.id, 'p-1')

        with pytest.raises(ConflictError):
            fulfillment_service.mark_paid(session, student.id, checkout.id, 'p-2')

        assert session.query(Enrollment).count() == 1
        assert session.get(Checkout, checkout.id).payment_id == 'p-1'

    def test_missing_checkout(self, session, student):
        """Test that an unknown checkout is not found."""
        with pytest.raises(NotFoundError):
            fulfillment_service.mark_paid(session, student.id, 4242, 'p-1')

    def test_owner_mismatch_is_not_found(self, session, student, other_student, course):
        """Test that another owner's checkout is not found and stays pending."""
        checkout = _checkout(session, OwnerRef(user_id=student.id), course)

        with pytest.raises(NotFoundError):
            fulfillment_service.mark_paid(session, other_student.id, checkout.id, 'p-1')

        assert session.get(Checkout, checkout.id).status == CheckoutStatus.PENDING.value

    def test_ambiguous_owner_is_invalid_state(self, session, student, company, course):
        """Test that a checkout with two owners is not fulfilled."""
        checkout = _checkout(session, OwnerRef(user_id=student.id), course)
        checkout.company_id = company.id
        session.commit()

        with pytest.raises(InvalidStateError):
            fulfillment_service.mark_paid(session, None, checkout.id, 'p-1')

        assert session.query(Enrollment).count() == 0

    def test_already_paid_reported_before_ambiguous_owner(self, session, student, company, course):
        """Test that the already-paid check runs before the owner check."""
        checkout = _checkout(session, OwnerRef(user_id=student.id), course)
        checkout.company_id = company.id
        checkout.status = CheckoutStatus.PAID.value
        session.commit()

        with pytest.raises(ConflictError):
            fulfillment_service.mark_paid(session, None, checkout.id, 'p-1')


class TestCompanyFulfillment:
    """Tests for settling a company checkout into seats."""

    def test_issues_one_credential_per_seat(self, session, company, course, sent_emails):
        """Test that each seat gets an employee account, credential and enrollment."""
        checkout = _checkout(session, OwnerRef(company_id=company.id), course, quantity=3)

        fulfillment_service.mark_paid(session, company.id, checkout.id, 'p-1')

        credentials = session.query(EmployeeCredential).filter_by(company_id=company.id).all()
        assert len(credentials) == 3
        logins = [c.login_email for c in credentials]
        assert len(set(logins)) == 3
        assert all(re.fullmatch(r'acme_emp_[0-9a-f]+@co\.com', login) for login in logins)

        purchase = session.query(CompanyPurchase).filter_by(checkout_id=checkout.id).one()
        assert purchase.total_amount == Decimal('270.00')
        line = session.query(CompanyPurchaseItem).filter_by(purchase_id=purchase.id).one()
        assert line.quantity == 3
        assert line.unit_price == Decimal('90.00')

        employees = session.query(AppUser).filter_by(role=UserRole.EMPLOYEE.value).all()
        assert sorted(e.email for e in employees) == sorted(logins)
        assert session.query(Enrollment).filter(
            Enrollment.user_id.in_([e.id for e in employees])
        ).count() == 3
        assert session.query(CartItem).count() == 0

    def test_one_credential_per_item(self, session, company, course, course2):
        """Test one credential per checkout line with a single seat."""
        checkout = _checkout(session, OwnerRef(company_id=company.id), course, course2)

        fulfillment_service.mark_paid(session, company.id, checkout.id, 'p-1')

        assert session.query(EmployeeCredential).count() == 2
        assert session.query(CompanyPurchaseItem).count() == 2

    def test_credentials_are_emailed_and_hashes_verify(self, session, company, course, sent_emails):
        """Test that emailed passwords match the stored hashes."""
        checkout = _checkout(session, OwnerRef(company_id=company.id), course, quantity=2)

        fulfillment_service.mark_paid(session, company.id, checkout.id, 'p-1')

        assert len(sent_emails) == 2
        assert all(m.recipients == ['acme@co.com'] for m in sent_emails)
        for message in sent_emails:
            password = _password_from_email(message)
            login = next(c for c in session.query(EmployeeCredential).all() if c.login_email in message.html)
            assert check_password_hash(login.password_hash, password)
            assert login.user.check_password(password)
            assert login.is_sent is True
            assert login.sent_at is not None

    def test_failed_email_leaves_credential_pending(self, session, company, course, monkeypatch):
        """Test that a failed email leaves that credential unsent but the checkout paid."""
        from marketplace.services import email_service

        calls = []

        def flaky_send(message):
            calls.append(message)
            if len(calls) == 1:
                raise ConnectionError('smtp down')

        monkeypatch.setattr(email_service.mail, 'send', flaky_send)
        checkout = _checkout(session, OwnerRef(company_id=company.id), course, quantity=2)

        fulfillment_service.mark_paid(session, company.id, checkout.id, 'p-1')

        assert len(calls) == 2
        sent_flags = sorted(c.is_sent for c in session.query(EmployeeCredential).all())
        assert sent_flags == [False, True]
        assert session.get(Checkout, checkout.id).status == CheckoutStatus.PAID.value

    def test_company_mark_paid_is_idempotent(self, session, company, course):
        """Test that a second company settlement issues nothing new."""
        checkout = _checkout(session, OwnerRef(company_id=company.id), course, quantity=2)
        fulfillment_service.mark_paid(session, company.id, checkout.id, 'p-1')

        with pytest.raises(ConflictError):
            fulfillment_service.mark_paid(session, company.id, checkout.id, 'p-1')

        assert session.query(EmployeeCredential).count() == 2
        assert session.query(CompanyPurchase).count() == 1

    def test_exhausted_login_generation_rolls_back(self, session, company, course):
        """Test that running out of login emails rolls the whole settlement back."""
        checkout = _checkout(session, OwnerRef(company_id=company.id), course, quantity=2)

        with pytest.raises(ResourceExhaustedError):
            fulfillment_service.mark_paid(
                session, company.id, checkout.id, 'p-1', suffix_factory=lambda: 'same'
            )

        assert session.get(Checkout, checkout.id).status == CheckoutStatus.PENDING.value
        assert session.query(EmployeeCredential).count() == 0
        assert session.query(CompanyPurchase).count() == 0
        assert session.query(CartItem).count() == 1


class TestGenerateLoginEmail:
    """Tests for employee login email generation."""

    def test_derives_from_company_email(self, session):
        """Test that the login is derived from the company email."""
        login = fulfillment_service.generate_login_email(
            session, 'Acme@Co.com', set(), suffix_factory=lambda: 'a1b2'
        )
        assert login == 'acme_emp_a1b2@co.com'

    def test_skips_taken_candidates(self, session, student):
        """Test that taken or reserved logins are skipped."""
        existing = AppUser(email='acme_emp_0@co.com')
        session.add(existing)
        session.commit()
        suffixes = itertools.count()

        login = fulfillment_service.generate_login_email(
            session, 'acme@co.com', {'acme_emp_1@co.com'}, suffix_factory=lambda: str(next(suffixes))
        )

        assert login == 'acme_emp_2@co.com'

    def test_gives_up_after_max_attempts(self, session):
        """Test that generation stops after the configured number of attempts."""
        attempts = []

        def suffix():
            attempts.append(1)
            return 'dup'

        with pytest.raises(ResourceExhaustedError):
            fulfillment_service.generate_login_email(
                session, 'acme@co.com', {'acme_emp_dup@co.com'}, suffix_factory=suffix
            )

        assert len(attempts) == 10

    def test_invalid_company_email(self, session):
        """Test that a malformed company email is rejected."""
        with pytest.raises(InvalidArgumentError):
            fulfillment_service.generate_login_email(session, 'not-an-email', set())
