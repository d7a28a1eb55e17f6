"""
Routes package initialization
"""

from clearance_portal.routes.main_routes import main_bp
from clearance_portal.routes.student_routes import student_bp
from clearance_portal.routes.review_routes import review_bp
from clearance_portal.routes.requirement_routes import requirement_bp
from clearance_portal.routes.admin_routes import admin_bp

__all__ = ['main_bp', 'student_bp', 'review_bp', 'requirement_bp', 'admin_bp']
