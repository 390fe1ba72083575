"""
Permission decorators for role-based access control.
"""

from functools import wraps
from flask import g

from marketplace.exceptions import ForbiddenError, UnauthenticatedError


def require_auth(f):
    """Decorator: require a valid bearer token (401 otherwise)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('principal'):
            raise UnauthenticatedError(g.get('auth_error') or 'Authentication required')
        return f(*args, **kwargs)
    return decorated_function


def require_role(*allowed_roles):
    """
    Decorator to restrict access to specific roles.

    Usage:
        @require_role('COMPANY')
        @require_role('ADMIN', 'SUPER_ADMIN')

    Args:
        *allowed_roles: Variable number of role strings
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            principal = g.get('principal')
            if not principal:
                raise UnauthenticatedError(g.get('auth_error') or 'Authentication required')

            if principal.role not in allowed_roles:
                raise ForbiddenError('You do not have permission to perform this action')

            return f(*args, **kwargs)

        return decorated_function
    return decorator
