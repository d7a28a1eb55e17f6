"""
Custom exceptions for the clearance portal
"""

class ClearancePortalError(Exception):
    """Base exception for the clearance portal"""
    status_code = 400


class ValidationError(ClearancePortalError):
    """Malformed input or a required requirement without a submission"""
    status_code = 400


class AuthenticationError(ClearancePortalError):
    """Missing or unreadable actor identity"""
    status_code = 401


class AuthorizationError(ClearancePortalError):
    """Actor role/source does not match the target"""
    status_code = 403


class NotFoundError(ClearancePortalError):
    """Referenced row does not exist"""
    status_code = 404


class InvalidTransitionError(ClearancePortalError):
    """Status change not legal from the current status"""
    status_code = 409

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move clearance item from '{_label(current)}' to '{_label(target)}'")


class ConcurrentModificationError(ClearancePortalError):
    """Optimistic concurrency check failed"""
    status_code = 409


class DatabaseError(ClearancePortalError):
    """Database error"""
    status_code = 500


class FileUploadError(ClearancePortalError):
    """File upload or object store error"""
    status_code = 502


def _label(status) -> str:
    return getattr(status, 'value', status) or 'none'
