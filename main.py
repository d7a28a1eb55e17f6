"""
Main application entry point
"""

import os
import sys

from sqlalchemy import text

from clearance_portal import create_app
from clearance_portal.utils import log_info, log_error


def main():
    """Main application entry point"""
    print("=" * 50)
    print("Starting Clearance Portal")
    print("=" * 50)

    app = create_app()

    # Test database connection
    with app.app_context():
        from clearance_portal.models import db
        try:
            db.session.execute(text('SELECT 1'))
            log_info("Database connection available")
        except Exception as e:
            log_error("Database connection error", e)
            print(f"Database connection error: {e}")
            return False

    debug_mode = os.environ.get('FLASK_DEBUG', 'True').lower() in ['true', '1', 'on']
    port = int(os.environ.get('PORT', 5000))
    print(f"Starting server on http://localhost:{port}")
    print(f"Debug mode: {'ON' if debug_mode else 'OFF'}")

    app.run(
        host='0.0.0.0',
        port=port,
        debug=debug_mode
    )
    return True


if __name__ == '__main__':
    success = main()
    if not success:
        sys.exit(1)
