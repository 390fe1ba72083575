"""Middleware for bearer-token authentication."""
import logging
from typing import NamedTuple
import jwt
from flask import g, request, current_app

from marketplace.database import get_session
from marketplace.models import AppUser, UserStatus

logger = logging.getLogger(__name__)


class Principal(NamedTuple):
    """Authenticated caller as carried by the bearer token."""
    id: int
    role: str
    email: str = None


def _bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def load_principal():
    """
    Load the caller into g (Flask's per-request global).

    Called before each request. Sets g.principal when the Authorization
    header carries a valid token for an existing, non-blocked account;
    otherwise g.principal is None and g.auth_error says why.
    """
    g.principal = None
    g.auth_error = None

    token = _bearer_token()
    if not token:
        return

    try:
        payload = jwt.decode(
            token,
            current_app.config['JWT_SECRET'],
            algorithms=[current_app.config.get('JWT_ALGORITHM', 'HS256')],
        )
    except jwt.ExpiredSignatureError:
        g.auth_error = 'Token expired'
        return
    except jwt.InvalidTokenError:
        g.auth_error = 'Invalid token'
        return

    try:
        user_id = int(payload.get('sub') or payload.get('id'))
    except (TypeError, ValueError):
        g.auth_error = 'Invalid token'
        return

    user = get_session().get(AppUser, user_id)
    if not user:
        g.auth_error = 'Account not found'
        return
    if user.status == UserStatus.BLOCKED.value:
        logger.warning(f"[AUTH] Blocked user {user.id} attempted access to {request.path}")
        g.auth_error = 'Account is blocked'
        return

    # Role comes from the account so role changes apply without re-issuing tokens
    g.principal = Principal(id=user.id, role=user.role, email=user.email)
