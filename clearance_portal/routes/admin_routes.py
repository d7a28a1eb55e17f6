"""
Admin routes: sources, settings, activity log and ledger audits
"""

from flask import Blueprint, request, jsonify

from clearance_portal.routes.context import get_actor, error_response
from clearance_portal.schemas import (
    ActivityFilterSchema, SettingsUpdateSchema, SourceCreateSchema, SourceUpdateSchema, load_payload
)
from clearance_portal.services import ActivityService, HistoryLedger, SettingsService, SourceService
from clearance_portal.services.authorization import ensure_admin
from clearance_portal.utils import ValidationError, create_response

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/sources', methods=['GET'])
def list_sources():
    """Sources, optionally of one type; any signed-in actor may read them"""
    try:
        get_actor()
        source_type = request.args.get('source_type') or None
        include_inactive = request.args.get('include_inactive', 'false').lower() in ['true', '1', 'on']
        sources = SourceService.list(source_type, active_only=not include_inactive)
        return jsonify(create_response(True, "Sources retrieved", [s.to_dict() for s in sources]))
    except Exception as e:
        return error_response(e, "List sources error", "Failed to load sources")


@admin_bp.route('/sources', methods=['POST'])
def create_source():
    try:
        actor = get_actor()
        payload = load_payload(SourceCreateSchema(), request.get_json(silent=True))
        source = SourceService.create(actor, **payload)
        return jsonify(create_response(True, "Source created", source.to_dict())), 201
    except Exception as e:
        return error_response(e, "Create source error", "Failed to create source")


@admin_bp.route('/sources/<int:source_id>', methods=['PATCH'])
def update_source(source_id):
    try:
        actor = get_actor()
        changes = load_payload(SourceUpdateSchema(), request.get_json(silent=True))
        if not changes:
            raise ValidationError("No changes provided")
        source = SourceService.update(actor, source_id, changes)
        return jsonify(create_response(True, "Source updated", source.to_dict()))
    except Exception as e:
        return error_response(e, "Update source error", "Failed to update source")


@admin_bp.route('/sources/<int:source_id>/logo', methods=['POST'])
def upload_source_logo(source_id):
    """Replace a source logo (multipart field 'file')"""
    try:
        actor = get_actor()
        upload = request.files.get('file')
        if upload is None or not upload.filename:
            raise ValidationError("No file provided")
        source = SourceService.set_logo(actor, source_id, upload.filename, upload.mimetype, upload.read())
        return jsonify(create_response(True, "Logo updated", source.to_dict()))
    except Exception as e:
        return error_response(e, "Upload logo error", "Failed to upload logo")


@admin_bp.route('/settings', methods=['PUT'])
def update_settings():
    try:
        actor = get_actor()
        changes = load_payload(SettingsUpdateSchema(), request.get_json(silent=True))
        if not changes:
            raise ValidationError("No changes provided")
        settings = SettingsService.update(actor, changes)
        return jsonify(create_response(True, "Settings updated", settings.to_dict()))
    except Exception as e:
        return error_response(e, "Update settings error", "Failed to update settings")


@admin_bp.route('/activity', methods=['GET'])
def list_activity():
    try:
        actor = get_actor()
        ensure_admin(actor)
        filters = load_payload(ActivityFilterSchema(), request.args.to_dict())
        entries = ActivityService.recent(filters['action'], filters['limit'])
        return jsonify(create_response(True, "Activity retrieved", [entry.to_dict() for entry in entries]))
    except Exception as e:
        return error_response(e, "List activity error", "Failed to load activity log")


@admin_bp.route('/items/<int:item_id>/audit', methods=['GET'])
def audit_item_history(item_id):
    """Check the ledger chain and projection for one item"""
    try:
        actor = get_actor()
        ensure_admin(actor)
        problems = HistoryLedger.check_consistency(item_id)
        return jsonify(create_response(True, "Audit complete",
                                       {'item_id': item_id, 'consistent': not problems, 'problems': problems}))
    except Exception as e:
        return error_response(e, "Audit item history error", "Failed to audit history")
