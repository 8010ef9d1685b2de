"""
ATS service entry points for matching and interview booking.

Each call builds its collaborators from settings, so there is no
process-wide service state. Callers that need different collaborators
(tests, management tooling) construct ScoringService, AvailabilityService
or BookingOrchestrator directly.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from core.scheduling.exceptions import ValidationError
from core.scheduling.retry import RetryPolicy
from integrations.providers.booking import CalComBookingProvider
from ats.booking import BookingOrchestrator, BookingResult, ScheduleRequest
from ats.conf import matching_settings, scheduling_settings
from ats.models import ScheduledInterview
from ats.scheduling import AvailabilityService, TimeSlot
from ats.scoring import RankedCandidate, ScoringService, SkillGapAnalysis
from ats.serializers import (
    RescheduleRequestSerializer,
    ScheduleInterviewRequestSerializer,
)
from ats.stores import AvailabilityStore, InterviewStore, ProfileStore

logger = logging.getLogger(__name__)


# ==================== FACTORIES ====================

def build_scoring_service(cache=None) -> ScoringService:
    config = matching_settings()
    return ScoringService(
        profile_store=ProfileStore(),
        cache=cache,
        cache_timeout=config['CACHE_TIMEOUT'],
    )


def build_availability_service() -> AvailabilityService:
    config = scheduling_settings()
    return AvailabilityService(
        availability_store=AvailabilityStore(),
        interview_store=InterviewStore(),
        step_minutes=config['SLOT_STEP_MINUTES'],
        suggestion_days=config['SUGGESTION_DAYS_AHEAD'],
        max_suggestions=config['MAX_SUGGESTIONS'],
    )


def build_orchestrator(provider=None, **overrides) -> BookingOrchestrator:
    config = scheduling_settings()
    options = {
        'retry_policy': RetryPolicy.from_settings(config),
        'max_duration_minutes': config['MAX_DURATION_MINUTES'],
        'max_pending_minutes': config['MAX_PENDING_MINUTES'],
        'require_availability': config['REQUIRE_AVAILABILITY'],
    }
    options.update(overrides)
    return BookingOrchestrator(
        interview_store=InterviewStore(),
        profile_store=ProfileStore(),
        availability_service=build_availability_service(),
        provider=provider or CalComBookingProvider.from_settings(),
        **options
    )


def _raise_serializer_errors(serializer) -> None:
    errors = serializer.errors
    field = next(iter(errors), None)
    raise ValidationError(f"Invalid request: {dict(errors)}", field=field, value=errors)


# ==================== MATCHING ====================

def rank_candidates(
    job_id,
    min_score: Optional[int] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[RankedCandidate]:
    """
    Rank every candidate for a job.

    Raises:
        NotFoundError: If the job does not exist
    """
    if min_score is None:
        min_score = matching_settings()['DEFAULT_MIN_SCORE']
    return build_scoring_service().rank_candidates(job_id, min_score=min_score, limit=limit, offset=offset)


def analyze_skill_gaps(candidate_id, job_id) -> SkillGapAnalysis:
    return build_scoring_service().analyze_skill_gaps(candidate_id, job_id)


# ==================== SCHEDULING ====================

def get_available_slots(
    owner_id: str,
    duration: int,
    range_start: datetime,
    range_end: datetime,
) -> List[TimeSlot]:
    """Free slots of ``duration`` minutes for one owner within the range."""
    return build_availability_service().get_available_slots(owner_id, duration, range_start, range_end)


def list_interviews(
    party_id,
    role: str,
    statuses: Optional[List[str]] = None,
    start: datetime = None,
    end: datetime = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[ScheduledInterview]:
    """Interviews of a candidate or recruiter, filtered and paginated."""
    return InterviewStore().for_party(
        party_id, role, statuses=statuses, start=start, end=end, limit=limit, offset=offset
    )


def schedule_interview(request: Union[ScheduleRequest, Dict[str, Any]], provider=None) -> BookingResult:
    """
    Book an interview from a ScheduleRequest or a raw request payload.

    Raises:
        ValidationError: Invalid payload or request
        NotFoundError: Unknown job or candidate
        ConflictError: Identical request already active
        ExternalServiceError: Booking provider failed
    """
    if not isinstance(request, ScheduleRequest):
        serializer = ScheduleInterviewRequestSerializer(data=request)
        if not serializer.is_valid():
            _raise_serializer_errors(serializer)
        request = serializer.to_request()
    return build_orchestrator(provider).schedule(request)


def cancel_interview(interview_id, reason: str = '', provider=None) -> ScheduledInterview:
    return build_orchestrator(provider).cancel(interview_id, reason=reason)


def abandon_interview(interview_id, provider=None) -> ScheduledInterview:
    return build_orchestrator(provider).abandon(interview_id)


def reschedule_interview(
    interview_id,
    new_slot: Union[TimeSlot, Dict[str, Any]],
    reason: str = '',
    provider=None,
) -> BookingResult:
    """Move a confirmed interview to ``new_slot`` (a TimeSlot or slot payload)."""
    if not isinstance(new_slot, TimeSlot):
        serializer = RescheduleRequestSerializer(data={'new_slot': new_slot, 'reason': reason})
        if not serializer.is_valid():
            _raise_serializer_errors(serializer)
        new_slot = serializer.to_time_slot()
    return build_orchestrator(provider).reschedule(interview_id, new_slot, reason=reason)


def expire_stale_reservations(provider=None) -> int:
    return build_orchestrator(provider).expire_stale()


def reconcile_pending_bookings(provider=None) -> Dict[str, int]:
    return build_orchestrator(provider).reconcile_pending()


__all__ = [
    'build_scoring_service',
    'build_availability_service',
    'build_orchestrator',
    'rank_candidates',
    'analyze_skill_gaps',
    'get_available_slots',
    'list_interviews',
    'schedule_interview',
    'cancel_interview',
    'abandon_interview',
    'reschedule_interview',
    'expire_stale_reservations',
    'reconcile_pending_bookings',
]
