"""Cart blueprint - the caller's (or the caller's company's) cart."""
from flask import Blueprint, g

from marketplace.database import get_session
from marketplace.decorators.permissions import require_role
from marketplace.schemas import parse_body
from marketplace.schemas.checkout import AddCartItemRequest
from marketplace.services import cart_service
from marketplace.services.owner import resolve_owner
from marketplace.utils.responses import success

cart_bp = Blueprint('cart', __name__, url_prefix='/api/v1/cart')

BUYER_ROLES = ('STUDENT', 'COMPANY')


@cart_bp.route('', methods=['GET'])
@require_role(*BUYER_ROLES)
def get_cart():
    db_session = get_session()
    owner = resolve_owner(db_session, g.principal)
    cart = cart_service.get_or_create_cart(db_session, owner)
    return success(cart_service.get_cart_summary(cart), 'Cart retrieved')


@cart_bp.route('/items', methods=['POST'])
@require_role(*BUYER_ROLES)
def add_item():
    """Add a course (company carts may buy several seats)."""
    body = parse_body(AddCartItemRequest)
    db_session = get_session()
    owner = resolve_owner(db_session, g.principal)
    cart = cart_service.get_or_create_cart(db_session, owner)
    cart_service.add_item(db_session, cart, body.course_id, body.quantity)
    return success(cart_service.get_cart_summary(cart), 'Course added to cart', 201)


@cart_bp.route('/items/<int:course_id>', methods=['DELETE'])
@require_role(*BUYER_ROLES)
def remove_item(course_id):
    db_session = get_session()
    owner = resolve_owner(db_session, g.principal)
    cart = cart_service.get_or_create_cart(db_session, owner)
    cart_service.remove_item(db_session, cart, course_id)
    return success(cart_service.get_cart_summary(cart), 'Course removed from cart')
