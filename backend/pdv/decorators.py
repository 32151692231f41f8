# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import UnauthenticatedError
from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid operator session.

    Sets the following Flask g attributes:
    - g.current_operator: The authenticated Operator
    - g.session_context: The full SessionContext

    Returns 401 if the header is missing, the token is unknown, expired,
    idle too long, revoked, or the operator was deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify(UnauthenticatedError("Authentication required").to_dict()), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify(UnauthenticatedError("Invalid or expired token").to_dict()), 401

        g.current_operator = context.operator
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function
