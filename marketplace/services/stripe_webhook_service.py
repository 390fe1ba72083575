"""
Stripe webhook processing.

Verifies the signature, then routes the event to the matching handler. Every
handler is safe to run more than once for the same event: payments are
upserted by checkout and a second ``checkout.session.completed`` hits the
already-PAID guard in fulfillment.
"""
import json
import logging
from datetime import datetime, timezone

from marketplace.metrics import stripe_webhook_events_total
from marketplace.models import AppUser, Checkout, Company, Payment, PaymentStatus
from marketplace.exceptions import ConflictError, NotFoundError
from marketplace.services import fulfillment_service
from marketplace.services.email_service import build_receipt_email, send_email
from marketplace.services.payment_service import course_titles_for_checkout
from marketplace.services.stripe_service import StripeService
from marketplace.utils.money import from_minor_units

logger = logging.getLogger(__name__)

PROCESSED = 'processed'
IGNORED = 'ignored'
DUPLICATE = 'duplicate'

# Provider intent status -> local payment status.
# processing is not yet capturable, so it stays PENDING; only
# amount_capturable_updated means the funds wait for capture.
INTENT_STATUS = {
    'payment_intent.processing': PaymentStatus.PENDING.value,
    'payment_intent.amount_capturable_updated': PaymentStatus.REQUIRES_CAPTURE.value,
    'payment_intent.payment_failed': PaymentStatus.FAILED.value,
    'payment_intent.succeeded': PaymentStatus.COMPLETED.value,
}


def _metadata_checkout_id(obj: dict):
    raw = (obj.get('metadata') or {}).get('checkoutId')
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def _upsert_payment(session, checkout: Checkout) -> Payment:
    """Payment row for the checkout, created on first sight (not committed)."""
    payment = session.query(Payment).filter_by(checkout_id=checkout.id).first()
    if payment is None:
        payment = Payment(
            checkout_id=checkout.id,
            user_id=checkout.user_id,
            company_id=checkout.company_id,
            amount=checkout.total_amount,
            status=PaymentStatus.PENDING.value,
        )
        session.add(payment)
    return payment


def _find_payment(session, obj: dict, intent_id):
    payment = None
    if intent_id:
        payment = session.query(Payment).filter_by(payment_intent_id=intent_id).first()
    if payment is None:
        checkout_id = _metadata_checkout_id(obj)
        if checkout_id is not None:
            checkout = session.get(Checkout, checkout_id)
            if checkout is not None:
                payment = _upsert_payment(session, checkout)
    return payment


def _handle_session_completed(session, obj: dict) -> str:
    metadata = obj.get('metadata') or {}
    checkout_id = _metadata_checkout_id(obj)
    owner_id = metadata.get('ownerId')
    if checkout_id is None or not owner_id:
        logger.error(f"[WEBHOOK] Session {obj.get('id')} is missing checkout metadata")
        return IGNORED

    checkout = session.get(Checkout, checkout_id)
    if checkout is None:
        raise NotFoundError('Checkout not found', payload={'checkout_id': checkout_id})
    owner_type = metadata.get('ownerType')
    if owner_type and checkout.owner_type and owner_type != checkout.owner_type:
        raise NotFoundError('Checkout not found', payload={'checkout_id': checkout_id})

    payment = _upsert_payment(session, checkout)
    payment.status = PaymentStatus.COMPLETED.value
    payment.checkout_session_id = obj.get('id')
    payment.payment_intent_id = obj.get('payment_intent') or payment.payment_intent_id
    payment.stripe_customer_id = obj.get('customer') or payment.stripe_customer_id
    if obj.get('amount_total') is not None:
        payment.amount = from_minor_units(obj['amount_total'])
    if obj.get('currency'):
        payment.currency = obj['currency']
    payment.payment_date = payment.payment_date or datetime.now(timezone.utc)
    session.commit()

    try:
        fulfillment_service.mark_paid(session, owner_id, checkout_id, payment_id=payment.id)
    except ConflictError:
        logger.info(f"[WEBHOOK] Checkout {checkout_id} already paid; duplicate delivery")
        return DUPLICATE

    logger.info(f"[WEBHOOK] Checkout {checkout_id} settled by session {obj.get('id')}")
    return PROCESSED


def _receipt_recipient(session, payment: Payment, obj: dict):
    billing_email = (obj.get('billing_details') or {}).get('email')
    if billing_email:
        return billing_email, (obj.get('billing_details') or {}).get('name') or billing_email
    if payment.company_id is not None:
        company = session.get(Company, payment.company_id)
        return (company.company_email, company.company_name) if company else (None, None)
    user = session.get(AppUser, payment.user_id) if payment.user_id is not None else None
    return (user.email, user.full_name or user.email) if user else (None, None)


def _send_receipt(session, payment: Payment, obj: dict):
    try:
        recipient, name = _receipt_recipient(session, payment, obj)
        if not recipient:
            logger.warning(f"[WEBHOOK] No receipt recipient for payment {payment.id}")
            return
        titles = course_titles_for_checkout(session, payment.checkout_id)
        subject, html = build_receipt_email(name, titles, payment.receipt_url)
        send_email(subject, recipient, html)
    except Exception as e:
        # Receipts are best-effort; the payment update is already committed
        logger.exception(f"[WEBHOOK] Receipt email failed for payment {payment.id}: {e}")


def _handle_charge(session, event_type: str, obj: dict) -> str:
    if obj.get('status') != 'succeeded':
        logger.info(f"[WEBHOOK] {event_type} for charge {obj.get('id')} with status {obj.get('status')}; skipping")
        return IGNORED

    payment = _find_payment(session, obj, obj.get('payment_intent'))
    if payment is None:
        logger.warning(f"[WEBHOOK] No payment found for charge {obj.get('id')}")
        return IGNORED

    first_receipt = not payment.receipt_url and bool(obj.get('receipt_url'))
    payment.payment_intent_id = obj.get('payment_intent') or payment.payment_intent_id
    payment.payment_method_id = obj.get('payment_method') or payment.payment_method_id
    payment.payment_method = (obj.get('payment_method_details') or {}).get('type') or payment.payment_method
    payment.receipt_url = obj.get('receipt_url') or payment.receipt_url
    session.commit()
    logger.info(f"[WEBHOOK] Payment {payment.id} updated from charge {obj.get('id')}")

    if first_receipt:
        _send_receipt(session, payment, obj)
    return PROCESSED


def _handle_charge_refunded(session, obj: dict) -> str:
    """Sync refunds issued from the Stripe dashboard; the charge carries the running total."""
    payment = _find_payment(session, obj, obj.get('payment_intent'))
    if payment is None:
        logger.warning(f"[WEBHOOK] No payment found for refunded charge {obj.get('id')}")
        return IGNORED

    refunded = from_minor_units(obj.get('amount_refunded'))
    if refunded <= (payment.refunded_amount or 0):
        # Already recorded by refund_payment or an earlier delivery
        session.rollback()
        return IGNORED

    refunds = (obj.get('refunds') or {}).get('data') or []
    payment.refunded_amount = refunded
    payment.refund_id = refunds[0].get('id') if refunds else payment.refund_id
    payment.refunded_at = datetime.now(timezone.utc)
    session.commit()

    logger.info(f"[WEBHOOK] Payment {payment.id} refunded total {refunded}")
    return PROCESSED


def _handle_payment_intent(session, event_type: str, obj: dict) -> str:
    payment = _find_payment(session, obj, obj.get('id'))
    if payment is None:
        logger.warning(f"[WEBHOOK] No payment found for intent {obj.get('id')}")
        return IGNORED

    new_status = INTENT_STATUS[event_type]
    if payment.is_completed and new_status != PaymentStatus.COMPLETED.value:
        # Late or out-of-order event; a completed payment is final
        logger.info(f"[WEBHOOK] Payment {payment.id} already completed; ignoring {event_type}")
        session.rollback()
        return IGNORED

    payment.status = new_status
    payment.payment_intent_id = obj.get('id') or payment.payment_intent_id
    payment.stripe_customer_id = obj.get('customer') or payment.stripe_customer_id
    if obj.get('amount') is not None:
        payment.amount = from_minor_units(obj['amount'])
    if obj.get('currency'):
        payment.currency = obj['currency']
    if new_status == PaymentStatus.COMPLETED.value:
        payment.payment_date = payment.payment_date or datetime.now(timezone.utc)
    session.commit()

    logger.info(f"[WEBHOOK] Payment {payment.id} -> {new_status} ({event_type})")
    return PROCESSED


def handle_provider_event(session, raw_payload: bytes, signature_header,
                          stripe_service: StripeService = None) -> str:
    """
    Verify and process one Stripe webhook delivery.

    Args:
        session: Database session
        raw_payload: Request body exactly as received
        signature_header: Value of the Stripe-Signature header
        stripe_service: Provider adapter (defaults to a configured StripeService)

    Returns:
        str: 'processed', 'ignored' or 'duplicate'

    Raises:
        UnauthenticatedError: signature missing or invalid (nothing is written)
        MarketplaceError / SQLAlchemyError: downstream failure (caller rolls back)
    """
    stripe_service = stripe_service or StripeService()
    stripe_service.construct_event(raw_payload, signature_header)

    # Work on the verified payload as plain JSON
    event = json.loads(raw_payload)
    event_type = event.get('type', '')
    obj = (event.get('data') or {}).get('object') or {}
    logger.info(f"[WEBHOOK] Received {event_type} ({event.get('id')})")

    try:
        if event_type == 'checkout.session.completed':
            outcome = _handle_session_completed(session, obj)
        elif event_type in ('charge.succeeded', 'charge.updated'):
            outcome = _handle_charge(session, event_type, obj)
        elif event_type == 'charge.refunded':
            outcome = _handle_charge_refunded(session, obj)
        elif event_type in INTENT_STATUS:
            outcome = _handle_payment_intent(session, event_type, obj)
        else:
            logger.info(f"[WEBHOOK] Unhandled event type: {event_type}")
            outcome = IGNORED
    except Exception:
        stripe_webhook_events_total.labels(type=event_type, outcome='error').inc()
        raise

    stripe_webhook_events_total.labels(type=event_type, outcome=outcome).inc()
    return outcome
