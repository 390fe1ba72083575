"""
Cart service - one active cart per buyer or per company.
"""
import logging
from decimal import Decimal
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from marketplace.models import Cart, CartItem, Course
from marketplace.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from marketplace.services.owner import OwnerRef
from marketplace.utils.money import quantize_money

logger = logging.getLogger(__name__)


def _owner_filter(owner: OwnerRef) -> dict:
    if owner.is_company:
        return {'company_id': owner.company_id}
    return {'user_id': owner.user_id}


def find_cart(session, owner: OwnerRef):
    """Return the owner's cart with items and courses loaded, or None."""
    owner.validate()
    return (
        session.query(Cart)
        .options(joinedload(Cart.items).joinedload(CartItem.course))
        .filter_by(**_owner_filter(owner))
        .first()
    )


def get_or_create_cart(session, owner: OwnerRef) -> Cart:
    """
    Fetch the cart of a buyer or company, creating it on first use.

    Raises:
        InvalidArgumentError: if the owner reference has neither id
    """
    owner.validate()

    cart = find_cart(session, owner)
    if cart:
        return cart

    cart = Cart(**_owner_filter(owner))
    session.add(cart)
    try:
        session.commit()
    except IntegrityError:
        # Another request created it first
        session.rollback()
        cart = find_cart(session, owner)
        if not cart:
            raise
        return cart

    logger.info(f"[CART] Created cart {cart.id} for {owner.owner_type} {owner.owner_id}")
    return cart


def add_item(session, cart: Cart, course_id: int, quantity: int = 1) -> CartItem:
    """
    Add a course to the cart.

    Adding a course that is already in the cart is an error, not an increment.

    Raises:
        NotFoundError: course missing or inactive
        ConflictError: course already in cart
        InvalidArgumentError: more than one seat on an individual cart
    """
    if quantity < 1:
        raise InvalidArgumentError('Quantity must be at least 1')
    if quantity > 1 and not cart.is_company_cart:
        raise InvalidArgumentError('Only company carts can hold more than one seat per course')

    course = session.query(Course).filter_by(id=course_id, active=True).first()
    if not course:
        raise NotFoundError('Course not found')

    existing = session.query(CartItem).filter_by(cart_id=cart.id, course_id=course_id).first()
    if existing:
        raise ConflictError('Course already in cart')

    item = CartItem(cart_id=cart.id, course_id=course_id, quantity=quantity)
    session.add(item)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError('Course already in cart')

    session.refresh(cart)
    logger.info(f"[CART] Added course {course_id} x{quantity} to cart {cart.id}")
    return item


def remove_item(session, cart: Cart, course_id: int):
    """Remove a course from the cart; NotFoundError when it is not there."""
    item = session.query(CartItem).filter_by(cart_id=cart.id, course_id=course_id).first()
    if not item:
        raise NotFoundError('Course not found in cart')

    session.delete(item)
    session.commit()
    session.refresh(cart)
    logger.info(f"[CART] Removed course {course_id} from cart {cart.id}")


def clear(session, cart_id: int, course_ids=None) -> int:
    """
    Bulk-delete the items of a cart, or only those for ``course_ids``.

    Runs inside the caller's transaction (no commit); used by fulfillment.
    """
    query = session.query(CartItem).filter(CartItem.cart_id == cart_id)
    if course_ids is not None:
        query = query.filter(CartItem.course_id.in_(course_ids))
    deleted = query.delete(synchronize_session='fetch')
    logger.info(f"[CART] Cleared {deleted} item(s) from cart {cart_id}")
    return deleted


def get_cart_summary(cart: Cart) -> dict:
    subtotal = sum(
        (item.course.discounted_price * item.quantity for item in cart.items),
        Decimal('0')
    )
    return {
        'id': cart.id,
        'user_id': cart.user_id,
        'company_id': cart.company_id,
        'items': [item.to_dict() for item in cart.items],
        'subtotal': str(quantize_money(subtotal)),
    }
