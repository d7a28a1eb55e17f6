"""
Utilities package initialization
"""

from clearance_portal.utils.exceptions import (
    ClearancePortalError, ValidationError, AuthenticationError, AuthorizationError,
    NotFoundError, InvalidTransitionError, ConcurrentModificationError,
    DatabaseError, FileUploadError
)
from clearance_portal.utils.validators import (
    validate_required, validate_string_length, validate_file_extension,
    validate_file_size, validate_choice
)
from clearance_portal.utils.helpers import (
    setup_logging, log_error, log_warning, log_info, utcnow, isoformat,
    ensure_directory_exists, create_response
)

__all__ = [
    'ClearancePortalError', 'ValidationError', 'AuthenticationError', 'AuthorizationError',
    'NotFoundError', 'InvalidTransitionError', 'ConcurrentModificationError',
    'DatabaseError', 'FileUploadError',
    'validate_required', 'validate_string_length', 'validate_file_extension',
    'validate_file_size', 'validate_choice',
    'setup_logging', 'log_error', 'log_warning', 'log_info', 'utcnow', 'isoformat',
    'ensure_directory_exists', 'create_response'
]
