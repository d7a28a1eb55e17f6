"""
Student routes
"""

from flask import Blueprint, request, jsonify

from clearance_portal.routes.context import get_actor, error_response
from clearance_portal.schemas import (
    AcknowledgeSchema, EnsureItemSchema, StartRequestSchema, SubmitItemSchema, load_payload
)
from clearance_portal.services import (
    ClearanceRequestService, ClearanceService, SubmissionService, SettingsService, retry_on_conflict
)
from clearance_portal.utils import AuthorizationError, ValidationError, create_response

student_bp = Blueprint('student', __name__)


@student_bp.route('/settings', methods=['GET'])
def get_clearance_period():
    """Current period and the clearance types that are open"""
    try:
        get_actor()
        settings = SettingsService.get()
        data = settings.to_dict()
        data['allowed_types'] = [t.value for t in SettingsService.allowed_types(settings)]
        return jsonify(create_response(True, "Settings retrieved", data))
    except Exception as e:
        return error_response(e, "Get clearance period error", "Failed to get settings")


@student_bp.route('/requests', methods=['POST'])
def start_clearance_request():
    """Start a clearance request for the current period"""
    try:
        actor = get_actor()
        payload = load_payload(StartRequestSchema(), request.get_json(silent=True))
        clearance_request = ClearanceRequestService.start(actor, payload['type'], payload['club_ids'])
        return jsonify(create_response(True, "Clearance request started",
                                       clearance_request.to_dict(include_items=True))), 201
    except Exception as e:
        return error_response(e, "Start clearance request error", "Failed to start clearance request")


@student_bp.route('/requests', methods=['GET'])
def list_clearance_requests():
    """Get the student's clearance requests"""
    try:
        actor = get_actor()
        if not actor.is_student:
            raise AuthorizationError("Student access required")
        requests_data = [req.to_dict() for req in ClearanceRequestService.list_for_student(actor.actor_id)]
        return jsonify(create_response(True, "Requests retrieved", requests_data))
    except Exception as e:
        return error_response(e, "Get student requests error", "Failed to get requests")


@student_bp.route('/requests/active', methods=['GET'])
def get_active_request():
    try:
        actor = get_actor()
        if not actor.is_student:
            raise AuthorizationError("Student access required")
        clearance_request = ClearanceRequestService.get_active(actor.actor_id)
        data = clearance_request.to_dict(include_items=True) if clearance_request else None
        return jsonify(create_response(True, "Active request retrieved", data))
    except Exception as e:
        return error_response(e, "Get active request error", "Failed to get active request")


@student_bp.route('/requests/<int:request_id>', methods=['GET'])
def get_clearance_request(request_id):
    try:
        actor = get_actor()
        clearance_request = ClearanceRequestService.get_for_actor(actor, request_id)
        return jsonify(create_response(True, "Request retrieved", clearance_request.to_dict(include_items=True)))
    except Exception as e:
        return error_response(e, "Get clearance request error", "Failed to get clearance request")


@student_bp.route('/requests/<int:request_id>/items', methods=['POST'])
def ensure_clearance_item(request_id):
    """Get or create the item for one source"""
    try:
        actor = get_actor()
        payload = load_payload(EnsureItemSchema(), request.get_json(silent=True))
        item = ClearanceRequestService.ensure_item(actor, request_id, payload['source_id'])
        return jsonify(create_response(True, "Clearance item ready", item.to_dict()))
    except Exception as e:
        return error_response(e, "Ensure clearance item error", "Failed to prepare clearance item")


@student_bp.route('/items/<int:item_id>/submissions', methods=['GET'])
def get_item_submissions(item_id):
    """Current submission per requirement"""
    try:
        actor = get_actor()
        item = ClearanceService.get_item_for_actor(actor, item_id)
        submissions = SubmissionService.current_for_item(item.id)
        return jsonify(create_response(True, "Submissions retrieved",
                                       [submission.to_dict() for submission in submissions.values()]))
    except Exception as e:
        return error_response(e, "Get submissions error", "Failed to get submissions")


@student_bp.route('/items/<int:item_id>/requirements/<int:requirement_id>/upload', methods=['POST'])
def upload_submission(item_id, requirement_id):
    """Upload a document for a requirement (multipart field 'file')"""
    try:
        actor = get_actor()
        upload = request.files.get('file')
        if upload is None or not upload.filename:
            raise ValidationError("No file provided")
        submission = SubmissionService.upload(
            actor, item_id, requirement_id, upload.filename, upload.mimetype, upload.read()
        )
        return jsonify(create_response(True, "File uploaded", submission.to_dict())), 201
    except Exception as e:
        return error_response(e, "Upload submission error", "Upload failed")


@student_bp.route('/items/<int:item_id>/requirements/<int:requirement_id>/acknowledge', methods=['POST'])
def acknowledge_requirement(item_id, requirement_id):
    try:
        actor = get_actor()
        payload = load_payload(AcknowledgeSchema(), request.get_json(silent=True))
        submission = SubmissionService.acknowledge(actor, item_id, requirement_id, payload['acknowledged'])
        return jsonify(create_response(True, "Response saved", submission.to_dict() if submission else None))
    except Exception as e:
        return error_response(e, "Acknowledge requirement error", "Could not save your response")


@student_bp.route('/submissions/<int:submission_id>', methods=['DELETE'])
def remove_submission(submission_id):
    try:
        actor = get_actor()
        submission = SubmissionService.remove(actor, submission_id)
        return jsonify(create_response(True, "Your submission file has been removed", submission.to_dict()))
    except Exception as e:
        return error_response(e, "Remove submission error", "Failed to remove file")


@student_bp.route('/items/<int:item_id>/submit', methods=['POST'])
def submit_clearance_item(item_id):
    """Submit an item for review"""
    return _submit(item_id, ClearanceService.submit, "Submitted for review")


@student_bp.route('/items/<int:item_id>/resubmit', methods=['POST'])
def resubmit_clearance_item(item_id):
    """Resubmit a rejected or on-hold item"""
    return _submit(item_id, ClearanceService.resubmit, "Resubmitted for review")


def _submit(item_id, operation, message):
    try:
        actor = get_actor()
        payload = load_payload(SubmitItemSchema(), request.get_json(silent=True))

        def attempt():
            return operation(actor, item_id, payload['submission_ids'], payload['expected_version'])

        # A client-pinned version would conflict again, so only retry unpinned calls
        if payload['expected_version'] is None:
            item = retry_on_conflict(attempt)
        else:
            item = attempt()
        return jsonify(create_response(True, message, item.to_dict()))
    except Exception as e:
        return error_response(e, "Submit clearance item error", "Failed to submit")
