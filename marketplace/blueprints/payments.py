"""Payments blueprint - opens hosted Stripe Checkout sessions."""
from flask import Blueprint, g

from marketplace.database import get_session
from marketplace.decorators.permissions import require_role
from marketplace.schemas import parse_body
from marketplace.schemas.checkout import BeginPaymentRequest
from marketplace.services import payment_service
from marketplace.services.owner import resolve_owner
from marketplace.utils.responses import success

payments_bp = Blueprint('payments', __name__, url_prefix='/api/v1/payments')


@payments_bp.route('/checkout-session', methods=['POST'])
@require_role('STUDENT', 'COMPANY')
def create_checkout_session():
    """
    Start card payment for a pending checkout.

    Body: {"checkoutId": 1, "shippingOptionId": 3}
    Returns the hosted page URL the client redirects to.
    """
    body = parse_body(BeginPaymentRequest)
    db_session = get_session()
    owner = resolve_owner(db_session, g.principal)
    result = payment_service.begin_payment(
        db_session, owner, body.checkout_id, shipping_option_id=body.shipping_option_id
    )
    return success(result, 'Payment session created')
