"""
Services package initialization
"""

from clearance_portal.services.authorization import ActorContext, Role, can_review
from clearance_portal.services.history_service import HistoryLedger
from clearance_portal.services.aggregator import derive_status, compute_progress, recompute_request
from clearance_portal.services.activity_service import ActivityService
from clearance_portal.services.settings_service import SettingsService
from clearance_portal.services.source_service import SourceService
from clearance_portal.services.requirement_service import RequirementCatalog
from clearance_portal.services.submission_service import SubmissionService
from clearance_portal.services.request_service import ClearanceRequestService
from clearance_portal.services.clearance_service import ClearanceService, retry_on_conflict
from clearance_portal.services.change_feed import ChangeFeed, ChangeEvent, Subscription, get_change_feed

__all__ = [
    'ActorContext', 'Role', 'can_review',
    'HistoryLedger', 'derive_status', 'compute_progress', 'recompute_request',
    'ActivityService', 'SettingsService', 'SourceService', 'RequirementCatalog',
    'SubmissionService', 'ClearanceRequestService', 'ClearanceService', 'retry_on_conflict',
    'ChangeFeed', 'ChangeEvent', 'Subscription', 'get_change_feed'
]
