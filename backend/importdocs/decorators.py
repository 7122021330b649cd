# Overview: Request decorators and error mapping for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .authorization import AuthorizationError
from .services.storage import StorageError
from .services.workflow_service import WorkflowError
from .validation import ConflictError, NotFoundError, ValidationError


# Domain errors a route turns into a 4xx; anything else is a 500
SERVICE_ERRORS = (
    AuthorizationError,
    NotFoundError,
    ValidationError,
    ConflictError,
    WorkflowError,
    StorageError,
)


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a live session.

    Sets the following Flask g attributes:
    - g.current_user: The acting UserProfile (the actor handed to services)
    - g.session_context: The full SessionContext object

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.profile
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def error_response(exc: Exception):
    """Map a SERVICE_ERRORS exception to its JSON error response."""
    if isinstance(exc, AuthorizationError):
        status = 403
    elif isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, (ConflictError, WorkflowError)):
        status = 409
    else:
        status = 400
    return jsonify({"error": str(exc)}), status
