"""
Database handle and shared column helpers
"""

import enum

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def enum_column(enum_cls, name: str, **kwargs):
    """Enum column storing the member values ('on_hold'), not the names."""
    return db.Column(
        db.Enum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members],
                validate_strings=True),
        **kwargs
    )


def enum_value(value):
    return value.value if isinstance(value, enum.Enum) else value


def init_db() -> None:
    """Create all tables that do not exist yet"""
    db.create_all()
