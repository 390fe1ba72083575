"""
Payment service - opens hosted payment sessions for pending checkouts and
issues refunds for completed ones.

Nothing here marks a checkout paid; that happens when the provider reports
``checkout.session.completed`` (see stripe_webhook_service).
"""
import logging
from datetime import datetime, timezone
from flask import current_app

from marketplace.models import (
    AdminAuditLog, AppUser, AuditAction, Checkout, CheckoutItem, CheckoutStatus, Company, Payment, ShippingOption,
)
from marketplace.exceptions import InvalidArgumentError, InvalidStateError, NotFoundError
from marketplace.services.owner import OwnerRef
from marketplace.services.checkout_service import assert_single_owner, load_checkout
from marketplace.services.stripe_service import StripeService
from marketplace.utils.money import from_minor_units, quantize_money, to_minor_units

logger = logging.getLogger(__name__)


def _find_pending_checkout(session, owner: OwnerRef, checkout_id: int) -> Checkout:
    checkout = load_checkout(session, checkout_id)
    if (
        not checkout
        or checkout.status != CheckoutStatus.PENDING.value
        or checkout.owner_type != owner.owner_type
        or checkout.owner_id != owner.owner_id
    ):
        raise NotFoundError('Checkout not found or already paid')
    assert_single_owner(checkout)
    return checkout


def resolve_shipping_cost(session, checkout: Checkout, shipping_option_id):
    """
    Shipping cost for the selected option.

    The option must belong to one of the checkout's courses; no option means
    digital-only delivery at no cost.
    """
    if shipping_option_id is None:
        return quantize_money(0), None

    course_ids = [item.course_id for item in checkout.items]
    option = (
        session.query(ShippingOption)
        .filter(ShippingOption.id == shipping_option_id, ShippingOption.course_id.in_(course_ids))
        .first()
    )
    if not option:
        raise InvalidArgumentError(
            'Shipping option does not belong to the items of this checkout',
            payload={'shipping_option_id': shipping_option_id}
        )
    return quantize_money(option.cost), option


def build_line_item(checkout: Checkout, shipping_cost):
    """
    Single aggregate line covering every checkout item (discounts applied) plus shipping.

    Returns:
        tuple: (name, description, amount)
    """
    titles = [item.course.title for item in checkout.items]
    name = f"Courses: {', '.join(titles)}"
    description = f"Access to {', '.join(titles)} course content"
    if shipping_cost:
        description += f" (shipping {shipping_cost})"
    amount = quantize_money(sum((item.line_total for item in checkout.items), 0) + shipping_cost)
    return name, description, amount


def begin_payment(session, owner: OwnerRef, checkout_id: int, shipping_option_id=None,
                  stripe_service: StripeService = None) -> dict:
    """
    Open a hosted payment session for a pending checkout.

    Args:
        session: Database session
        owner: Owner of the checkout
        checkout_id: Checkout to pay
        shipping_option_id: Selected shipping option (optional)
        stripe_service: Provider adapter (defaults to a configured StripeService)

    Returns:
        dict: {'redirectUrl': ..., 'sessionId': ...}

    Raises:
        NotFoundError: checkout missing, foreign or already paid
        InvalidArgumentError: shipping option not part of the checkout
        InternalError: provider failure
    """
    stripe_service = stripe_service or StripeService()
    checkout = _find_pending_checkout(session, owner, checkout_id)

    shipping_cost, shipping_option = resolve_shipping_cost(session, checkout, shipping_option_id)
    name, description, amount = build_line_item(checkout, shipping_cost)

    customer_id = None
    customer_email = None
    if owner.is_company:
        company = session.get(Company, owner.company_id)
        customer_email = company.company_email if company else None
    else:
        user = session.get(AppUser, owner.user_id)
        if not user:
            raise NotFoundError('Customer not found')
        customer_id = stripe_service.ensure_customer(user.email, user.stripe_customer_id)
        if user.stripe_customer_id != customer_id:
            user.stripe_customer_id = customer_id
            session.commit()

    base_url = current_app.config.get('FRONTEND_BASE_URL', '').rstrip('/')
    metadata = {
        'ownerId': str(owner.owner_id),
        'ownerType': owner.owner_type,
        'checkoutId': str(checkout.id),
    }
    if shipping_option:
        metadata['shippingOptionId'] = str(shipping_option.id)

    stripe_session = stripe_service.create_checkout_session(
        name=name,
        description=description,
        amount_minor=to_minor_units(amount),
        currency=current_app.config.get('STRIPE_CURRENCY', 'usd'),
        metadata=metadata,
        success_url=f"{base_url}/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base_url}/payment-cancel",
        customer_id=customer_id,
        customer_email=customer_email,
        payment_method_types=current_app.config.get('STRIPE_PAYMENT_METHOD_TYPES') or None,
    )

    logger.info(
        f"[PAYMENT] Opened session {stripe_session.id} for checkout {checkout.id} "
        f"amount={amount} shipping={shipping_cost}"
    )
    return {'redirectUrl': stripe_session.url, 'sessionId': stripe_session.id}


def course_titles_for_checkout(session, checkout_id: int) -> list:
    rows = (
        session.query(CheckoutItem)
        .filter(CheckoutItem.checkout_id == checkout_id)
        .all()
    )
    return [row.course.title for row in rows if row.course]


def refund_payment(session, payment_id: int, admin_user_id: int, amount=None, reason: str = None,
                   ip_address: str = None, stripe_service: StripeService = None) -> Payment:
    """
    Refund a completed card payment through Stripe.

    Enrollments and credentials granted by the checkout are left in place;
    revoking access is a separate admin decision.

    Args:
        session: Database session
        payment_id: Local Payment id
        admin_user_id: Admin issuing the refund (audited)
        amount: Amount to refund (None refunds whatever is left)
        reason: Stripe refund reason (duplicate, fraudulent, requested_by_customer)

    Raises:
        NotFoundError: payment missing
        InvalidStateError: payment not completed, settled offline, or fully refunded
        InvalidArgumentError: amount not positive or above the refundable remainder
        InternalError: provider failure
    """
    stripe_service = stripe_service or StripeService()

    payment = session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError('Payment not found')
    if not payment.is_completed:
        raise InvalidStateError('Only completed payments can be refunded', payload={'status': payment.status})
    if not payment.payment_intent_id:
        raise InvalidStateError('Payment has no Stripe payment intent to refund')

    refundable = quantize_money(payment.refundable_amount)
    if refundable <= 0:
        raise InvalidStateError('Payment is already fully refunded')

    amount = refundable if amount is None else quantize_money(amount)
    if amount <= 0 or amount > refundable:
        raise InvalidArgumentError(
            'Refund amount must be positive and not exceed the refundable amount',
            payload={'refundable_amount': str(refundable)}
        )

    refund = stripe_service.refund_payment(
        payment.payment_intent_id,
        amount_minor=to_minor_units(amount),
        reason=reason,
    )
    refunded = from_minor_units(refund.amount) if getattr(refund, 'amount', None) is not None else amount

    payment.refunded_amount = quantize_money((payment.refunded_amount or 0) + refunded)
    payment.refund_id = refund.id
    payment.refunded_at = datetime.now(timezone.utc)
    session.add(AdminAuditLog.log_action(
        admin_user_id=admin_user_id,
        action=AuditAction.REFUND_PAYMENT,
        target_user_id=payment.user_id,
        details={
            'payment_id': payment.id,
            'checkout_id': payment.checkout_id,
            'refund_id': refund.id,
            'amount': str(refunded),
            'reason': reason,
        },
        ip_address=ip_address,
    ))

    try:
        session.commit()
    except Exception:
        session.rollback()
        logger.critical(f"[PAYMENT] Refund {refund.id} issued but not recorded for payment {payment_id}")
        raise

    logger.info(f"[PAYMENT] Refunded {refunded} of payment {payment.id} (refund {refund.id})")
    return payment
