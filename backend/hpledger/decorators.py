# Overview: Request and capability decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import User
from .services.permission_service import capability_for


def require_actor(f):
    """
    Resolve the acting user and their recorder capability.

    Identity comes from the X-User-Id header (authentication is handled
    upstream of this service). Sets the following Flask g attributes:
    - g.actor: The acting User object
    - g.business_id: The actor's business (tenant context)
    - g.capability: RecorderCapability used by every ledger write

    Returns 401 if the header is missing, malformed, or names an unknown
    or deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-User-Id", "").strip()
        if not raw:
            return jsonify({"error": "Authentication required"}), 401
        try:
            user_id = int(raw)
        except ValueError:
            return jsonify({"error": "Invalid X-User-Id header"}), 401

        user = db.session.get(User, user_id)
        if not user or not user.is_active:
            return jsonify({"error": "Unknown or inactive user"}), 401

        g.actor = user
        g.business_id = user.business_id
        g.capability = capability_for(user)

        return f(*args, **kwargs)

    return decorated_function


def require_confirm_authority(f):
    """
    Require the confirm capability (business admin, or shop admin/accountant
    with can_confirm_payments). Must be stacked after @require_actor.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        capability = getattr(g, "capability", None)
        if capability is None:
            return jsonify({"error": "Authentication required"}), 401
        if not capability.can_auto_confirm:
            return jsonify({
                "error": f"{capability.role} is not allowed to confirm transactions",
                "code": "PERMISSION_DENIED",
            }), 403
        return f(*args, **kwargs)

    return decorated_function
