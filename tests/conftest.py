import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import jwt
import pytest
import stripe

from marketplace import create_app, database
from marketplace.database import get_session
from marketplace.models import AppUser, Company, Course, ShippingOption, UserRole
from marketplace.services import email_service


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestingConfig')
    return app


@pytest.fixture(autouse=True)
def app_context(app):
    """Fresh schema and an application context for every test."""
    with app.app_context():
        database.create_all()
        yield
        database.db_session.remove()
        database.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Record outgoing mail instead of talking to SMTP."""
    outbox = []
    monkeypatch.setattr(email_service.mail, 'send', lambda message: outbox.append(message))
    return outbox


def _make_user(session, email, role, full_name=None):
    user = AppUser(email=email, full_name=full_name, role=role)
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def student(session):
    return _make_user(session, 'student@example.com', UserRole.STUDENT.value, 'Stu Dent')


@pytest.fixture(scope='function')
def other_student(session):
    return _make_user(session, 'other@example.com', UserRole.STUDENT.value, 'Other Student')


@pytest.fixture(scope='function')
def seller(session):
    return _make_user(session, 'seller@example.com', UserRole.SELLER.value, 'Course Seller')


@pytest.fixture(scope='function')
def admin(session):
    return _make_user(session, 'admin@example.com', UserRole.ADMIN.value, 'Platform Admin')


@pytest.fixture(scope='function')
def company_user(session):
    return _make_user(session, 'owner@acme.com', UserRole.COMPANY.value, 'Acme Owner')


@pytest.fixture(scope='function')
def company(session, company_user):
    company = Company(user_id=company_user.id, company_name='Acme', company_email='acme@co.com')
    session.add(company)
    session.commit()
    return company


@pytest.fixture(scope='function')
def course(session, seller):
    """100.00 with a 10% discount."""
    course = Course(
        seller_id=seller.id,
        title='Python Basics',
        description='Intro course',
        price=Decimal('100.00'),
        discount=Decimal('10'),
        active=True,
    )
    session.add(course)
    session.commit()
    return course


@pytest.fixture(scope='function')
def course2(session, seller):
    course = Course(
        seller_id=seller.id,
        title='SQL in Practice',
        price=Decimal('50.00'),
        discount=Decimal('0'),
        active=True,
    )
    session.add(course)
    session.commit()
    return course


@pytest.fixture(scope='function')
def shipping_option(session, course):
    option = ShippingOption(
        course_id=course.id,
        carrier='DHL',
        country_code='PL',
        cost=Decimal('15.00'),
        delivery_min=2,
        delivery_max=5,
        is_default=True,
    )
    session.add(option)
    session.commit()
    return option


@pytest.fixture(scope='function')
def auth_headers(app):
    """Build an Authorization header for a user."""
    def _headers(user):
        token = jwt.encode(
            {
                'sub': str(user.id),
                'role': user.role,
                'exp': datetime.now(timezone.utc) + timedelta(hours=1),
            },
            app.config['JWT_SECRET'],
            algorithm='HS256',
        )
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture(scope='function')
def stripe_signature(app):
    """Sign a payload the way Stripe does (t=<ts>,v1=<hmac>)."""
    def _sign(payload, secret=None, timestamp=None):
        if isinstance(payload, bytes):
            payload = payload.decode('utf-8')
        secret = secret or app.config['STRIPE_WEBHOOK_SECRET']
        timestamp = timestamp or int(time.time())
        signature = hmac.new(
            secret.encode('utf-8'),
            f'{timestamp}.{payload}'.encode('utf-8'),
            hashlib.sha256,
        ).hexdigest()
        return f't={timestamp},v1={signature}'
    return _sign


@pytest.fixture(scope='function')
def stripe_event():
    """Serialize a minimal Stripe event envelope."""
    counter = {'n': 0}

    def _event(event_type, obj):
        counter['n'] += 1
        return json.dumps({
            'id': f"evt_test_{counter['n']}",
            'object': 'event',
            'type': event_type,
            'data': {'object': obj},
        })
    return _event


@pytest.fixture(scope='function')
def fake_stripe(monkeypatch):
    """Replace the Stripe API calls used by StripeService and record them."""
    calls = SimpleNamespace(customers=[], sessions=[], refunds=[])

    def create_customer(**kwargs):
        calls.customers.append(kwargs)
        return SimpleNamespace(id=f'cus_test_{len(calls.customers)}')

    def create_session(**kwargs):
        calls.sessions.append(kwargs)
        n = len(calls.sessions)
        return SimpleNamespace(id=f'cs_test_{n}', url=f'https://checkout.stripe.test/pay/cs_test_{n}')

    def create_refund(**kwargs):
        calls.refunds.append(kwargs)
        return SimpleNamespace(id=f're_test_{len(calls.refunds)}', amount=kwargs.get('amount'), status='succeeded')

    monkeypatch.setattr(stripe.Customer, 'create', create_customer)
    monkeypatch.setattr(stripe.checkout.Session, 'create', create_session)
    monkeypatch.setattr(stripe.Refund, 'create', create_refund)
    return calls
