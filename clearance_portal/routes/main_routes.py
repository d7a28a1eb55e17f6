"""
Health check and local upload serving
"""

from flask import Blueprint, jsonify, send_from_directory
from sqlalchemy import text

from clearance_portal.models import db
from clearance_portal.services.storage_service import LocalObjectStore, get_object_store
from clearance_portal.utils import create_response, log_error

main_bp = Blueprint('main', __name__)


@main_bp.route('/health', methods=['GET'])
def health():
    try:
        db.session.execute(text('SELECT 1'))
        return jsonify(create_response(True, "healthy", {'database': 'ok'}))
    except Exception as e:
        log_error("Health check database error", e)
        db.session.rollback()
        return jsonify(create_response(False, "unhealthy", {'database': 'unavailable'})), 503


@main_bp.route('/uploads/<path:filename>', methods=['GET'])
def uploaded_file(filename):
    """Serve files when the local object store is in use"""
    store = get_object_store()
    if not isinstance(store, LocalObjectStore):
        return jsonify(create_response(False, "Not found")), 404
    return send_from_directory(store.root, filename)
