"""
Validation utilities
"""

from typing import Any, Iterable, Optional
from clearance_portal.utils.exceptions import ValidationError


def validate_required(value: Any, field_name: str) -> None:
    """
    Validate required field

    Args:
        value: Value to validate
        field_name: Name of the field for error message

    Raises:
        ValidationError: If value is empty or None
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field_name} is required")


def validate_string_length(value: str, min_length: int = 1, max_length: Optional[int] = None,
                           field_name: str = "Field") -> None:
    """
    Validate string length

    Args:
        value: String to validate
        min_length: Minimum length
        max_length: Maximum length
        field_name: Name of the field for error message

    Raises:
        ValidationError: If length is invalid
    """
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")

    if len(value.strip()) < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters")

    if max_length and len(value) > max_length:
        raise ValidationError(f"{field_name} must be no more than {max_length} characters")


def validate_file_extension(filename: str, allowed_extensions: Iterable[str]) -> bool:
    """
    Validate file extension

    Args:
        filename: Name of the file
        allowed_extensions: Allowed extensions, lowercase and without dot

    Returns:
        True if extension is allowed
    """
    if not filename or '.' not in filename:
        return False

    extension = filename.rsplit('.', 1)[1].lower()
    return extension in set(allowed_extensions)


def validate_file_size(data: bytes, max_bytes: int, field_name: str = "File") -> None:
    """Raise ValidationError for empty payloads or payloads above max_bytes."""
    if not data:
        raise ValidationError(f"{field_name} is empty")
    if len(data) > max_bytes:
        raise ValidationError(f"{field_name} exceeds {max_bytes // (1024 * 1024)}MB limit")


def validate_choice(value: Any, enum_cls, field_name: str):
    """
    Coerce a raw value into a member of enum_cls

    Raises:
        ValidationError: If value is not one of the enum values
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}") from None
