"""
Per-request helpers shared by the blueprints
"""

from flask import request, jsonify

from clearance_portal.models import db
from clearance_portal.services.authorization import ActorContext
from clearance_portal.utils import ClearancePortalError, create_response, log_error

ACTOR_ID_HEADER = 'X-Actor-Id'
ACTOR_ROLE_HEADER = 'X-Actor-Role'
ACTOR_SOURCE_HEADER = 'X-Actor-Source-Id'


def get_actor() -> ActorContext:
    """Actor identity forwarded by the authenticating proxy"""
    return ActorContext.build(
        request.headers.get(ACTOR_ID_HEADER),
        request.headers.get(ACTOR_ROLE_HEADER),
        request.headers.get(ACTOR_SOURCE_HEADER)
    )


def error_response(error: Exception, context: str, fallback: str):
    """
    Map an exception to the standard error envelope

    Args:
        error: Raised exception
        context: Log prefix for unexpected errors
        fallback: User-facing message for unexpected errors
    """
    if isinstance(error, ClearancePortalError):
        return jsonify(create_response(False, str(error))), error.status_code
    log_error(context, error)
    db.session.rollback()
    return jsonify(create_response(False, fallback)), 500
