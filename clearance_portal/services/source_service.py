"""
Source registry service (departments, offices, clubs)
"""

from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from clearance_portal.models import db, Source, SourceType
from clearance_portal.services.activity_service import ActivityService
from clearance_portal.services.authorization import ActorContext, ensure_admin
from clearance_portal.services.storage_service import (
    build_object_key, get_object_store, validate_logo_file
)
from clearance_portal.utils.exceptions import DatabaseError, FileUploadError, NotFoundError, ValidationError
from clearance_portal.utils.helpers import log_error, log_info, log_warning
from clearance_portal.utils.validators import validate_choice, validate_required, validate_string_length

EDITABLE_FIELDS = ('name', 'code', 'description', 'head_id', 'is_active')


class SourceService:
    """CRUD for the sources that own requirements"""

    @staticmethod
    def get(source_id: int, source_type=None) -> Source:
        """
        Load a source, optionally checking its type

        Raises:
            NotFoundError: Unknown id, or a source of another type
        """
        source = db.session.get(Source, source_id)
        if source is None or (source_type is not None and source.source_type != SourceType(source_type)):
            label = SourceType(source_type).value.title() if source_type else 'Source'
            raise NotFoundError(f"{label} {source_id} not found")
        return source

    @staticmethod
    def list(source_type=None, active_only: bool = True) -> List[Source]:
        query = Source.query
        if source_type:
            query = query.filter_by(source_type=validate_choice(source_type, SourceType, 'Source type'))
        if active_only:
            query = query.filter_by(is_active=True)
        return query.order_by(Source.source_type.asc(), Source.name.asc()).all()

    @staticmethod
    def create(actor: ActorContext, source_type, name: str, code: str,
               description: Optional[str] = None, head_id: Optional[str] = None) -> Source:
        ensure_admin(actor)
        source_type = validate_choice(source_type, SourceType, 'Source type')
        validate_required(name, 'Name')
        validate_required(code, 'Code')
        validate_string_length(name, max_length=200, field_name='Name')
        validate_string_length(code, max_length=32, field_name='Code')

        source = Source(source_type=source_type, name=name.strip(), code=code.strip().upper(),
                        description=description, head_id=head_id or None)
        try:
            db.session.add(source)
            db.session.flush()
            ActivityService.log(actor, 'source_created', f"Created {source_type.value} {source.name}",
                                'source', source.id)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ValidationError(f"A {source_type.value} with code {code.strip().upper()} already exists") from None
        except SQLAlchemyError as e:
            db.session.rollback()
            log_error("Create source error", e)
            raise DatabaseError("Failed to create source") from e
        log_info(f"Created {source_type.value} source {source.id} ({source.code})")
        return source

    @staticmethod
    def update(actor: ActorContext, source_id: int, changes: Dict[str, Any]) -> Source:
        ensure_admin(actor)
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        source = SourceService.get(source_id)
        if 'name' in changes:
            validate_string_length(changes['name'], max_length=200, field_name='Name')
        if 'code' in changes:
            validate_string_length(changes['code'], max_length=32, field_name='Code')
            changes = dict(changes, code=changes['code'].strip().upper())
        try:
            for name, value in changes.items():
                setattr(source, name, value)
            ActivityService.log(actor, 'source_updated', f"Updated {source.name}: {', '.join(sorted(changes))}",
                                'source', source.id)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ValidationError("Another source already uses that code") from None
        except SQLAlchemyError as e:
            db.session.rollback()
            log_error("Update source error", e)
            raise DatabaseError("Failed to update source") from e
        return source

    @staticmethod
    def set_logo(actor: ActorContext, source_id: int, filename: str, content_type: str, data: bytes) -> Source:
        """
        Upload a new logo and drop the previous one from the store

        Args:
            actor: Acting admin
            source_id: Source id
            filename: Original file name, used for the extension
            content_type: MIME type (PNG, JPEG, WEBP or SVG)
            data: File bytes
        """
        ensure_admin(actor)
        source = SourceService.get(source_id)
        validate_logo_file(filename, content_type, data, current_app.config['LOGO_MAX_BYTES'])

        store = get_object_store()
        folder = f"logos/{source.source_type.value}s"
        new_url = store.put(data, content_type, build_object_key(folder, source.id, filename))
        old_url = source.logo_url
        try:
            source.logo_url = new_url
            ActivityService.log(actor, 'source_logo_updated', f"Updated logo for {source.name}", 'source', source.id)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            store.delete(new_url)
            log_error("Set logo error", e)
            raise DatabaseError("Failed to save logo") from e

        if old_url:
            try:
                store.delete(old_url)
            except FileUploadError as e:
                # An orphaned file must not fail the logo change
                log_warning(f"Could not delete previous logo {old_url}: {e}")
        return source
