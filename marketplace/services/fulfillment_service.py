"""
Fulfillment service - turns a paid checkout into course access.

Individual buyers are enrolled directly. Company purchases get one employee
account, enrollment and credential per purchased seat; the credentials are
emailed to the company after the transaction commits.
"""
import logging
import secrets
from datetime import datetime, timezone
from sqlalchemy import func
from flask import current_app

from marketplace.models import (
    AppUser, UserRole, UserStatus, Cart, Checkout, CheckoutStatus, Company,
    CompanyPurchase, CompanyPurchaseItem, EmployeeCredential, Enrollment,
)
from marketplace.exceptions import (
    ConflictError, InvalidArgumentError, NotFoundError, ResourceExhaustedError,
)
from marketplace.services import cart_service, credential_dispatcher
from marketplace.services.checkout_service import assert_single_owner, load_checkout
from marketplace.services.credential_dispatcher import IssuedCredential, generate_password
from marketplace.utils.money import apply_discount

logger = logging.getLogger(__name__)

DEFAULT_MAX_EMAIL_ATTEMPTS = 10


def _random_suffix() -> str:
    return secrets.token_hex(4)


def generate_login_email(session, company_email: str, taken: set, suffix_factory=None,
                         max_attempts: int = None) -> str:
    """
    Generate an unused employee login derived from the company email.

    ``acme@corp.com`` yields ``acme_emp_<suffix>@corp.com``. A candidate is
    rejected when it is already a user email, a credential login, or in
    ``taken`` (logins issued earlier in the same transaction, which are not
    flushed yet).

    Raises:
        InvalidArgumentError: company email has no local part or domain
        ResourceExhaustedError: no free candidate within max_attempts
    """
    local, sep, domain = (company_email or '').strip().lower().partition('@')
    if not sep or not local or not domain:
        raise InvalidArgumentError('Company email is not valid', payload={'company_email': company_email})

    suffix_factory = suffix_factory or _random_suffix
    if max_attempts is None:
        max_attempts = current_app.config.get('CREDENTIAL_EMAIL_MAX_ATTEMPTS', DEFAULT_MAX_EMAIL_ATTEMPTS)

    for attempt in range(1, max_attempts + 1):
        candidate = f"{local}_emp_{suffix_factory()}@{domain}"
        if candidate in taken:
            continue
        if session.query(AppUser.id).filter(func.lower(AppUser.email) == candidate).first():
            continue
        if session.query(EmployeeCredential.id).filter(EmployeeCredential.login_email == candidate).first():
            continue
        return candidate

    logger.error(f"[FULFILLMENT] No free login email for {company_email} after {max_attempts} attempts")
    raise ResourceExhaustedError(
        'Could not generate a unique employee login',
        payload={'attempts': max_attempts}
    )


def _mark_checkout_paid(session, checkout: Checkout, payment_id):
    # Status-guarded UPDATE: a concurrent delivery that already flipped the row gets 0 rows back
    updated = (
        session.query(Checkout)
        .filter(Checkout.id == checkout.id, Checkout.status == CheckoutStatus.PENDING.value)
        .update(
            {
                Checkout.status: CheckoutStatus.PAID.value,
                Checkout.payment_id: str(payment_id) if payment_id is not None else None,
                Checkout.paid_at: datetime.now(timezone.utc),
            },
            synchronize_session='fetch'
        )
    )
    if updated != 1:
        raise ConflictError('Checkout already paid', payload={'checkout_id': checkout.id})


def _clear_owner_cart(session, checkout: Checkout):
    cart_id = checkout.cart_id
    if cart_id is None:
        owner_filter = (
            {'company_id': checkout.company_id} if checkout.company_id is not None
            else {'user_id': checkout.user_id}
        )
        cart = session.query(Cart).filter_by(**owner_filter).first()
        cart_id = cart.id if cart else None
    if cart_id is not None:
        cart_service.clear(session, cart_id, course_ids=[item.course_id for item in checkout.items])


def _fulfill_individual(session, checkout: Checkout, payment_id):
    _mark_checkout_paid(session, checkout, payment_id)

    course_ids = [item.course_id for item in checkout.items]
    enrolled = {
        course_id for (course_id,) in
        session.query(Enrollment.course_id)
        .filter(Enrollment.user_id == checkout.user_id, Enrollment.course_id.in_(course_ids))
        .all()
    }

    created = 0
    for item in checkout.items:
        if item.course_id in enrolled:
            continue
        session.add(Enrollment(user_id=checkout.user_id, course_id=item.course_id, checkout_id=checkout.id))
        enrolled.add(item.course_id)
        created += 1

    _clear_owner_cart(session, checkout)
    session.commit()
    logger.info(f"[FULFILLMENT] Checkout {checkout.id} paid: {created} enrollment(s) for user {checkout.user_id}")


def _fulfill_company(session, checkout: Checkout, payment_id, suffix_factory=None) -> list:
    company = session.get(Company, checkout.company_id)
    if not company:
        raise NotFoundError('Company not found', payload={'company_id': checkout.company_id})

    _mark_checkout_paid(session, checkout, payment_id)

    purchase = CompanyPurchase(
        company_id=company.id,
        checkout_id=checkout.id,
        total_amount=checkout.total_amount,
    )
    session.add(purchase)

    taken = set()
    pending = []
    for item in checkout.items:
        line = CompanyPurchaseItem(
            course_id=item.course_id,
            unit_price=apply_discount(item.unit_price, item.discount),
            quantity=item.quantity,
        )
        purchase.items.append(line)

        for _ in range(item.quantity):
            login_email = generate_login_email(session, company.company_email, taken, suffix_factory)
            taken.add(login_email)
            password = generate_password()

            employee = AppUser(
                email=login_email,
                full_name=f"{company.company_name} employee",
                role=UserRole.EMPLOYEE.value,
                status=UserStatus.ACTIVE.value,
            )
            employee.set_password(password)
            session.add(employee)
            session.add(Enrollment(user=employee, course_id=item.course_id, checkout_id=checkout.id))

            credential = EmployeeCredential(
                company_id=company.id,
                course_id=item.course_id,
                user=employee,
                login_email=login_email,
                password_hash=employee.password_hash,
                is_sent=False,
            )
            line.credentials.append(credential)
            pending.append((credential, password))

    _clear_owner_cart(session, checkout)
    session.commit()

    logger.info(
        f"[FULFILLMENT] Checkout {checkout.id} paid: company {company.id} "
        f"received {len(pending)} credential(s)"
    )
    return [IssuedCredential(credential.id, password) for credential, password in pending]


def mark_paid(session, owner_id, checkout_id: int, payment_id=None, suffix_factory=None,
              notify: bool = True) -> Checkout:
    """
    Transition a checkout PENDING -> PAID and grant what was bought.

    Everything except the credential emails happens in one transaction.

    Args:
        session: Database session
        owner_id: Expected owner (user id or company id); None skips the check
        checkout_id: Checkout to settle
        payment_id: Settling payment reference stored on the checkout
        suffix_factory: Callable producing login suffixes (tests inject it)
        notify: Email company credentials after commit

    Raises:
        NotFoundError: checkout missing, or owner mismatch
        ConflictError: checkout already paid
        InvalidStateError: checkout owner is ambiguous
        ResourceExhaustedError: no unique employee login could be generated
    """
    checkout = load_checkout(session, checkout_id)
    if not checkout:
        raise NotFoundError('Checkout not found', payload={'checkout_id': checkout_id})
    if checkout.is_paid:
        raise ConflictError('Checkout already paid', payload={'checkout_id': checkout_id})
    assert_single_owner(checkout)
    if owner_id is not None and str(checkout.owner_id) != str(owner_id):
        raise NotFoundError('Checkout not found', payload={'checkout_id': checkout_id})

    company_id = checkout.company_id
    try:
        if company_id is None:
            _fulfill_individual(session, checkout, payment_id)
            return checkout
        issued = _fulfill_company(session, checkout, payment_id, suffix_factory)
    except Exception:
        session.rollback()
        raise

    if notify and issued:
        credential_dispatcher.send_issued_credentials(session, company_id, issued)
    return checkout
