"""
Request payload schemas
"""

from flask_marshmallow import Marshmallow
from marshmallow import EXCLUDE, fields, validate, ValidationError as SchemaValidationError

from clearance_portal.models import ClearanceType, ItemStatus, SourceType
from clearance_portal.services.state_machine import ReviewDecision
from clearance_portal.utils.exceptions import ValidationError

ma = Marshmallow()


def _values(enum_cls):
    return [member.value for member in enum_cls]


class PayloadSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE


class StartRequestSchema(PayloadSchema):
    type = fields.String(required=True, validate=validate.OneOf(_values(ClearanceType)))
    club_ids = fields.List(fields.Integer(), load_default=list)


class EnsureItemSchema(PayloadSchema):
    source_id = fields.Integer(required=True)


class SubmitItemSchema(PayloadSchema):
    submission_ids = fields.List(fields.Integer(), allow_none=True, load_default=None)
    expected_version = fields.Integer(allow_none=True, load_default=None)


class ReviewItemSchema(PayloadSchema):
    decision = fields.String(required=True, validate=validate.OneOf(_values(ReviewDecision)))
    remarks = fields.String(allow_none=True, load_default=None, validate=validate.Length(max=2000))
    expected_version = fields.Integer(allow_none=True, load_default=None)


class AcknowledgeSchema(PayloadSchema):
    acknowledged = fields.Boolean(required=True)


class QueueFilterSchema(PayloadSchema):
    status = fields.String(load_default=None, validate=validate.OneOf(_values(ItemStatus)))


class RequirementCreateSchema(PayloadSchema):
    source_type = fields.String(required=True, validate=validate.OneOf(_values(SourceType)))
    source_id = fields.Integer(required=True)
    name = fields.String(required=True, validate=validate.Length(min=1, max=200))
    description = fields.String(allow_none=True, load_default=None)
    is_required = fields.Boolean(load_default=True)
    requires_upload = fields.Boolean(load_default=True)
    published = fields.Boolean(load_default=False)


class RequirementUpdateSchema(PayloadSchema):
    name = fields.String(validate=validate.Length(min=1, max=200))
    description = fields.String(allow_none=True)
    is_required = fields.Boolean()
    requires_upload = fields.Boolean()
    published = fields.Boolean()
    order = fields.Integer(validate=validate.Range(min=1))


class RequirementListSchema(PayloadSchema):
    source_type = fields.String(required=True, validate=validate.OneOf(_values(SourceType)))
    source_id = fields.Integer(required=True)
    published_only = fields.Boolean(load_default=False)


class ReorderSchema(PayloadSchema):
    source_type = fields.String(required=True, validate=validate.OneOf(_values(SourceType)))
    source_id = fields.Integer(required=True)
    ids = fields.List(fields.Integer(), required=True)


class SourceCreateSchema(PayloadSchema):
    source_type = fields.String(required=True, validate=validate.OneOf(_values(SourceType)))
    name = fields.String(required=True, validate=validate.Length(min=1, max=200))
    code = fields.String(required=True, validate=validate.Length(min=1, max=32))
    description = fields.String(allow_none=True, load_default=None)
    head_id = fields.String(allow_none=True, load_default=None)


class SourceUpdateSchema(PayloadSchema):
    name = fields.String(validate=validate.Length(min=1, max=200))
    code = fields.String(validate=validate.Length(min=1, max=32))
    description = fields.String(allow_none=True)
    head_id = fields.String(allow_none=True)
    is_active = fields.Boolean()


class SettingsUpdateSchema(PayloadSchema):
    academic_year = fields.String(validate=validate.Length(min=1, max=20))
    current_semester = fields.String(validate=validate.Length(min=1, max=40))
    allow_semester_clearance = fields.Boolean()
    allow_graduation_clearance = fields.Boolean()
    allow_transfer_clearance = fields.Boolean()


class ActivityFilterSchema(PayloadSchema):
    action = fields.String(load_default=None)
    limit = fields.Integer(load_default=100, validate=validate.Range(min=1, max=500))


def load_payload(schema: ma.Schema, data) -> dict:
    """
    Validate raw input with a schema

    Raises:
        ValidationError: With the first field message, e.g. "decision: Must be one of: ..."
    """
    try:
        return schema.load(data or {})
    except SchemaValidationError as e:
        field_name, messages = next(iter(sorted(e.normalized_messages().items())))
        if isinstance(messages, dict):
            messages = [str(message) for message in messages.values()]
        message = messages[0] if isinstance(messages, list) else messages
        raise ValidationError(f"{field_name}: {message}") from None
