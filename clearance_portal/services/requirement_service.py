"""
Requirement catalog service
"""

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from clearance_portal.models import db, Requirement, RequirementSubmission, SourceType
from clearance_portal.services.activity_service import ActivityService
from clearance_portal.services.authorization import ActorContext, ensure_can_manage_source
from clearance_portal.services.source_service import SourceService
from clearance_portal.utils.exceptions import DatabaseError, NotFoundError, ValidationError
from clearance_portal.utils.helpers import log_error, log_info
from clearance_portal.utils.validators import validate_choice, validate_required, validate_string_length

EDITABLE_FIELDS = ('name', 'description', 'is_required', 'requires_upload', 'published', 'order')


class RequirementCatalog:
    """Per-source requirement lists with a dense 1-based order"""

    @staticmethod
    def list(source_type, source_id: int, published_only: bool = False) -> List[Requirement]:
        source_type = validate_choice(source_type, SourceType, 'Source type')
        SourceService.get(source_id, source_type)
        query = Requirement.query.filter_by(source_type=source_type, source_id=source_id)
        if published_only:
            query = query.filter_by(published=True)
        return query.order_by(Requirement.order.asc(), Requirement.id.asc()).all()

    @staticmethod
    def get(requirement_id: int) -> Requirement:
        requirement = db.session.get(Requirement, requirement_id)
        if requirement is None:
            raise NotFoundError(f"Requirement {requirement_id} not found")
        return requirement

    @staticmethod
    def create(actor: ActorContext, source_type, source_id: int, name: str,
               description: Optional[str] = None, is_required: bool = True,
               requires_upload: bool = True, published: bool = False) -> Requirement:
        """
        Append a requirement at the end of the source's list

        Args:
            actor: Admin or staff of the source
            source_type: department, office or club
            source_id: Owning source
            name: Requirement name
            description: Optional instructions
            is_required: Whether submit() needs a submission for it
            requires_upload: False for checklist acknowledgements
            published: Visible to students

        Returns:
            The new requirement
        """
        source_type = validate_choice(source_type, SourceType, 'Source type')
        SourceService.get(source_id, source_type)
        ensure_can_manage_source(actor, source_type, source_id)
        validate_required(name, 'Name')
        validate_string_length(name, max_length=200, field_name='Name')

        siblings = RequirementCatalog._siblings(source_type, source_id)
        requirement = Requirement(
            source_type=source_type,
            source_id=source_id,
            name=name.strip(),
            description=description,
            is_required=is_required,
            requires_upload=requires_upload,
            published=published,
            order=len(siblings) + 1
        )
        try:
            db.session.add(requirement)
            db.session.flush()
            ActivityService.log(actor, 'requirement_created', f"Created requirement {requirement.name}",
                                'requirement', requirement.id)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log_error("Create requirement error", e)
            raise DatabaseError("Failed to create requirement") from e
        log_info(f"Requirement {requirement.id} added to {source_type.value} {source_id}")
        return requirement

    @staticmethod
    def update(actor: ActorContext, requirement_id: int, changes: Dict[str, Any]) -> Requirement:
        """
        Update fields of a requirement; 'order' moves it within its source

        Unpublishing only hides the requirement from students. Items already
        approved against it keep their status.
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        requirement = RequirementCatalog.get(requirement_id)
        ensure_can_manage_source(actor, requirement.source_type, requirement.source_id)
        if 'name' in changes:
            validate_required(changes['name'], 'Name')
            validate_string_length(changes['name'], max_length=200, field_name='Name')
        siblings = RequirementCatalog._siblings(requirement.source_type, requirement.source_id)
        position = changes.get('order')
        if position is not None and not 1 <= int(position) <= len(siblings):
            raise ValidationError(f"Order must be between 1 and {len(siblings)}")

        try:
            for name, value in changes.items():
                if name != 'order':
                    setattr(requirement, name, value.strip() if name == 'name' else value)
            if position is not None:
                RequirementCatalog._move(siblings, requirement, int(position))
            ActivityService.log(actor, 'requirement_updated',
                                f"Updated requirement {requirement.name}: {', '.join(sorted(changes))}",
                                'requirement', requirement.id)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log_error("Update requirement error", e)
            raise DatabaseError("Failed to update requirement") from e
        return requirement

    @staticmethod
    def reorder(actor: ActorContext, source_type, source_id: int, ordered_ids: Sequence[int]) -> List[Requirement]:
        """Apply a full permutation of the source's requirement ids"""
        source_type = validate_choice(source_type, SourceType, 'Source type')
        SourceService.get(source_id, source_type)
        ensure_can_manage_source(actor, source_type, source_id)

        siblings = RequirementCatalog._siblings(source_type, source_id)
        by_id = {requirement.id: requirement for requirement in siblings}
        ordered_ids = [int(requirement_id) for requirement_id in ordered_ids]
        if len(ordered_ids) != len(set(ordered_ids)) or set(ordered_ids) != set(by_id):
            raise ValidationError("Reorder must list every requirement of the source exactly once")

        try:
            RequirementCatalog._renumber([by_id[requirement_id] for requirement_id in ordered_ids])
            ActivityService.log(actor, 'requirements_reordered',
                                f"Reordered requirements of {source_type.value} {source_id}", 'source', source_id)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log_error("Reorder requirements error", e)
            raise DatabaseError("Failed to reorder requirements") from e
        return RequirementCatalog._siblings(source_type, source_id)

    @staticmethod
    def delete(actor: ActorContext, requirement_id: int) -> None:
        """
        Delete a requirement nobody has submitted against

        Raises:
            ValidationError: If submissions reference it (unpublish instead)
        """
        requirement = RequirementCatalog.get(requirement_id)
        ensure_can_manage_source(actor, requirement.source_type, requirement.source_id)
        if RequirementSubmission.query.filter_by(requirement_id=requirement.id).first() is not None:
            raise ValidationError("Requirement has submissions; unpublish it instead of deleting")

        source_type, source_id, name = requirement.source_type, requirement.source_id, requirement.name
        try:
            db.session.delete(requirement)
            db.session.flush()
            RequirementCatalog._renumber(RequirementCatalog._siblings(source_type, source_id))
            ActivityService.log(actor, 'requirement_deleted', f"Deleted requirement {name}",
                                'requirement', requirement_id)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log_error("Delete requirement error", e)
            raise DatabaseError("Failed to delete requirement") from e

    @staticmethod
    def _siblings(source_type, source_id: int) -> List[Requirement]:
        return Requirement.query.filter_by(source_type=source_type, source_id=source_id).order_by(
            Requirement.order.asc(), Requirement.id.asc()
        ).all()

    @staticmethod
    def _renumber(requirements: Sequence[Requirement]) -> None:
        for position, requirement in enumerate(requirements, start=1):
            if requirement.order != position:
                requirement.order = position

    @staticmethod
    def _move(siblings: List[Requirement], requirement: Requirement, position: int) -> None:
        remaining = [other for other in siblings if other.id != requirement.id]
        remaining.insert(position - 1, requirement)
        RequirementCatalog._renumber(remaining)
