"""
Reviewer routes for department, office and club staff
"""

from flask import Blueprint, request, jsonify

from clearance_portal.routes.context import get_actor, error_response
from clearance_portal.schemas import QueueFilterSchema, ReviewItemSchema, load_payload
from clearance_portal.services import ClearanceService, HistoryLedger, SubmissionService
from clearance_portal.utils import create_response

review_bp = Blueprint('review', __name__)


@review_bp.route('/sources/<int:source_id>/items', methods=['GET'])
def get_review_queue(source_id):
    """Clearance queue of one source, optionally filtered by status"""
    try:
        actor = get_actor()
        filters = load_payload(QueueFilterSchema(), request.args.to_dict())
        items = ClearanceService.queue_for_source(actor, source_id, filters['status'])
        data = []
        for item in items:
            row = item.to_dict()
            row['student_id'] = item.request.student_id
            row['academic_year'] = item.request.academic_year
            row['semester'] = item.request.semester
            row['type'] = item.request.type.value
            data.append(row)
        return jsonify(create_response(True, "Clearance queue retrieved", data))
    except Exception as e:
        return error_response(e, "Get clearance queue error", "Failed to load clearance requests")


@review_bp.route('/items/<int:item_id>', methods=['GET'])
def get_review_item(item_id):
    """Item with its current submissions and history"""
    try:
        actor = get_actor()
        item = ClearanceService.get_item_for_actor(actor, item_id)
        data = item.to_dict()
        data['request'] = item.request.to_dict()
        data['submissions'] = [s.to_dict() for s in SubmissionService.current_for_item(item.id).values()]
        data['history'] = [entry.to_dict() for entry in HistoryLedger.list_for(item.id)]
        return jsonify(create_response(True, "Clearance item retrieved", data))
    except Exception as e:
        return error_response(e, "Get clearance item error", "Failed to load clearance item")


@review_bp.route('/items/<int:item_id>/review', methods=['POST'])
def review_clearance_item(item_id):
    """Approve, reject or hold a submitted item"""
    try:
        actor = get_actor()
        payload = load_payload(ReviewItemSchema(), request.get_json(silent=True))
        item = ClearanceService.review(actor, item_id, payload['decision'], payload['remarks'],
                                       payload['expected_version'])
        return jsonify(create_response(True, "Action recorded", item.to_dict()))
    except Exception as e:
        return error_response(e, "Review clearance item error", "Could not update the clearance item")


@review_bp.route('/items/<int:item_id>/history', methods=['GET'])
def get_item_history(item_id):
    """Ledger entries, oldest first; visible to the student, reviewers and admins"""
    try:
        actor = get_actor()
        item = ClearanceService.get_item_for_actor(actor, item_id)
        history = [entry.to_dict() for entry in HistoryLedger.list_for(item.id)]
        return jsonify(create_response(True, "History retrieved", history))
    except Exception as e:
        return error_response(e, "Get item history error", "Could not load history")
