"""
Database models initialization
"""

from clearance_portal.models.database import db, init_db
from clearance_portal.models.source import Source, SourceType
from clearance_portal.models.requirement import Requirement, RequirementSubmission, SubmissionStatus
from clearance_portal.models.clearance import (
    ClearanceRequest, ClearanceItem, ClearanceItemHistory,
    ClearanceType, RequestStatus, ItemStatus, ACTIVE_REQUEST_STATUSES
)
from clearance_portal.models.settings import SystemSettings, ActivityLog

# Export all models
__all__ = [
    'db', 'init_db',
    'Source', 'SourceType',
    'Requirement', 'RequirementSubmission', 'SubmissionStatus',
    'ClearanceRequest', 'ClearanceItem', 'ClearanceItemHistory',
    'ClearanceType', 'RequestStatus', 'ItemStatus', 'ACTIVE_REQUEST_STATUSES',
    'SystemSettings', 'ActivityLog'
]
