"""
Requirement catalog routes
"""

from flask import Blueprint, request, jsonify

from clearance_portal.routes.context import get_actor, error_response
from clearance_portal.schemas import (
    ReorderSchema, RequirementCreateSchema, RequirementListSchema, RequirementUpdateSchema, load_payload
)
from clearance_portal.services import RequirementCatalog
from clearance_portal.utils import ValidationError, create_response

requirement_bp = Blueprint('requirements', __name__)


@requirement_bp.route('', methods=['GET'])
def list_requirements():
    """Requirements of one source; students only see published ones"""
    try:
        actor = get_actor()
        filters = load_payload(RequirementListSchema(), request.args.to_dict())
        published_only = filters['published_only'] or actor.is_student
        requirements = RequirementCatalog.list(filters['source_type'], filters['source_id'], published_only)
        return jsonify(create_response(True, "Requirements retrieved", [r.to_dict() for r in requirements]))
    except Exception as e:
        return error_response(e, "List requirements error", "Failed to load requirements")


@requirement_bp.route('', methods=['POST'])
def create_requirement():
    try:
        actor = get_actor()
        payload = load_payload(RequirementCreateSchema(), request.get_json(silent=True))
        requirement = RequirementCatalog.create(actor, **payload)
        return jsonify(create_response(True, "Requirement created", requirement.to_dict())), 201
    except Exception as e:
        return error_response(e, "Create requirement error", "Failed to create requirement")


@requirement_bp.route('/<int:requirement_id>', methods=['PATCH'])
def update_requirement(requirement_id):
    try:
        actor = get_actor()
        changes = load_payload(RequirementUpdateSchema(), request.get_json(silent=True))
        if not changes:
            raise ValidationError("No changes provided")
        requirement = RequirementCatalog.update(actor, requirement_id, changes)
        return jsonify(create_response(True, "Requirement updated", requirement.to_dict()))
    except Exception as e:
        return error_response(e, "Update requirement error", "Failed to update requirement")


@requirement_bp.route('/reorder', methods=['POST'])
def reorder_requirements():
    try:
        actor = get_actor()
        payload = load_payload(ReorderSchema(), request.get_json(silent=True))
        requirements = RequirementCatalog.reorder(actor, payload['source_type'], payload['source_id'],
                                                  payload['ids'])
        return jsonify(create_response(True, "Requirements reordered", [r.to_dict() for r in requirements]))
    except Exception as e:
        return error_response(e, "Reorder requirements error", "Failed to reorder requirements")


@requirement_bp.route('/<int:requirement_id>', methods=['DELETE'])
def delete_requirement(requirement_id):
    try:
        actor = get_actor()
        RequirementCatalog.delete(actor, requirement_id)
        return jsonify(create_response(True, "Requirement deleted"))
    except Exception as e:
        return error_response(e, "Delete requirement error", "Failed to delete requirement")
