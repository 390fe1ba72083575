"""
Checkout service - snapshots a cart into a checkout awaiting payment.

State machine: PENDING -> PAID, driven only by fulfillment_service.mark_paid.
"""
import logging
from decimal import Decimal
from sqlalchemy.orm import joinedload

from marketplace.models import Checkout, CheckoutItem, CheckoutStatus
from marketplace.exceptions import ConflictError, InvalidArgumentError, InvalidStateError, NotFoundError
from marketplace.services import cart_service
from marketplace.services.owner import OwnerRef
from marketplace.utils.money import apply_discount, quantize_money

logger = logging.getLogger(__name__)


def _owner_filter(owner: OwnerRef):
    if owner.is_company:
        return Checkout.company_id == owner.company_id
    return Checkout.user_id == owner.user_id


def assert_single_owner(checkout: Checkout):
    """
    Reject checkouts with both or neither owner reference.

    Such a row can only come from a data-integrity bug, so it is logged as critical.
    """
    if checkout.owner_type is None:
        logger.critical(
            f"[CHECKOUT] Checkout {checkout.id} has ambiguous owner "
            f"(user_id={checkout.user_id}, company_id={checkout.company_id})"
        )
        raise InvalidStateError('Checkout owner is ambiguous', payload={'checkout_id': checkout.id})


def _pending_checkout_for_courses(session, owner: OwnerRef, course_ids):
    """First PENDING checkout of this owner that already holds one of ``course_ids``."""
    return (
        session.query(Checkout)
        .join(CheckoutItem, CheckoutItem.checkout_id == Checkout.id)
        .filter(
            _owner_filter(owner),
            Checkout.status == CheckoutStatus.PENDING.value,
            CheckoutItem.course_id.in_(course_ids),
        )
        .order_by(Checkout.id)
        .first()
    )


def create_checkout(session, owner: OwnerRef, course_ids=None) -> Checkout:
    """
    Create a PENDING checkout from the owner's cart.

    The total is the sum of each line's discounted unit price times its
    quantity, captured now; later price changes do not touch it.

    Args:
        session: Database session
        owner: Cart owner
        course_ids: Cart courses to check out; None takes the whole cart

    Raises:
        InvalidStateError: cart missing or empty
        InvalidArgumentError: none of ``course_ids`` is in the cart
        ConflictError: a selected course is already in a PENDING checkout
    """
    cart = cart_service.find_cart(session, owner)
    if not cart or not cart.items:
        raise InvalidStateError('Cart is empty')

    if course_ids is None:
        selected = list(cart.items)
    else:
        wanted = set(course_ids)
        selected = [item for item in cart.items if item.course_id in wanted]
        if not selected:
            raise InvalidArgumentError('No valid cart items selected', payload={'course_ids': sorted(wanted)})

    # One payable checkout per cart line until it is paid or discarded
    existing = _pending_checkout_for_courses(session, owner, [item.course_id for item in selected])
    if existing:
        raise ConflictError(
            'Cart items are already in a pending checkout',
            payload={'checkout_id': existing.id}
        )

    try:
        checkout = Checkout(
            cart_id=cart.id,
            user_id=owner.user_id,
            company_id=owner.company_id,
            status=CheckoutStatus.PENDING.value,
            total_amount=Decimal('0.00'),
        )
        session.add(checkout)

        total = Decimal('0.00')
        for item in selected:
            course = item.course
            unit_price = apply_discount(course.price, course.discount or 0)
            line_total = quantize_money(unit_price * item.quantity)
            checkout.items.append(CheckoutItem(
                course_id=course.id,
                unit_price=course.price,
                discount=course.discount or 0,
                quantity=item.quantity,
                line_total=line_total,
            ))
            total += line_total

        checkout.total_amount = quantize_money(total)
        session.commit()

    except Exception:
        session.rollback()
        raise

    logger.info(
        f"[CHECKOUT] Created checkout {checkout.id} for {owner.owner_type} {owner.owner_id}: "
        f"{len(checkout.items)} item(s), total {checkout.total_amount}"
    )
    return checkout


def load_checkout(session, checkout_id: int):
    """Checkout with items and courses loaded, or None."""
    return (
        session.query(Checkout)
        .options(joinedload(Checkout.items).joinedload(CheckoutItem.course))
        .filter(Checkout.id == checkout_id)
        .first()
    )


def get_checkout(session, owner: OwnerRef, checkout_id: int) -> Checkout:
    checkout = load_checkout(session, checkout_id)
    if not checkout or checkout.owner_id != owner.owner_id or checkout.owner_type != owner.owner_type:
        raise NotFoundError('Checkout not found')
    return checkout


def list_checkouts(session, owner: OwnerRef, status: str = None):
    query = session.query(Checkout).filter(_owner_filter(owner))
    if status:
        query = query.filter(Checkout.status == status)
    return (
        query
        .order_by(Checkout.created_at.desc(), Checkout.id.desc())
        .all()
    )


def delete_checkout(session, owner: OwnerRef, checkout_id: int):
    """Discard a PENDING checkout; paid checkouts are permanent."""
    checkout = get_checkout(session, owner, checkout_id)
    if checkout.is_paid:
        raise ConflictError('Checkout already paid')

    session.delete(checkout)
    session.commit()
    logger.info(f"[CHECKOUT] Deleted pending checkout {checkout_id}")
    return {'success': True, 'checkout_id': checkout_id}
