"""
Webhooks Blueprint for Stripe notifications.

Once the signature is verified the endpoint answers 200 for every event it
handles, ignores or has already seen; downstream failures become a 500 and
are left to Stripe's own retry policy.
"""

import logging
from flask import Blueprint, request, jsonify

from marketplace.database import get_session
from marketplace.exceptions import UnauthenticatedError
from marketplace.services.stripe_webhook_service import handle_provider_event

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__)


@webhooks_bp.route('/api/v1/stripe/payment-webhook', methods=['POST'])
@webhooks_bp.route('/payment-webhook', methods=['POST'])
def stripe_webhook():
    """Handle Stripe webhook events (raw body + Stripe-Signature header)."""
    payload = request.get_data()
    signature = request.headers.get('Stripe-Signature')
    db_session = get_session()

    try:
        outcome = handle_provider_event(db_session, payload, signature)
        return jsonify({'received': True, 'status': outcome}), 200

    except UnauthenticatedError as e:
        logger.warning(f"[WEBHOOK] Rejected delivery: {e.message}")
        return jsonify({'received': False, 'status': 'error', 'message': e.message}), e.status_code

    except Exception as e:
        db_session.rollback()
        logger.exception(f"[WEBHOOK] Error processing Stripe webhook: {e}")
        return jsonify({'received': False, 'status': 'error', 'message': 'Webhook processing failed'}), 500
