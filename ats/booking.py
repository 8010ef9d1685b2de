"""
ATS Interview Booking

BookingOrchestrator turns a scheduling request into a confirmed interview:

1. validate the request (nothing is stored on failure)
2. reject requests identical to an active interview
3. pick the first preferred slot free for both parties and reserve it
   atomically through InterviewStore.reserve()
4. book it with the external provider through the retry layer, holding
   no lock while the call is in flight
5. confirm, or fail and release the slot

Records that outlive their provisional reservation, and bookings that
succeed after the caller gave up, are settled by expire_stale() and
reconcile_pending(), which the Celery beat schedule runs periodically.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from django.utils import timezone

from core.scheduling.exceptions import (
    ConflictError,
    ExternalServiceError,
    InvalidStatusTransition,
    ValidationError,
)
from core.scheduling.retry import RetryExhausted, RetryPolicy, call_with_retry
from core.scheduling.utils import validate_time_slot, validate_timezone
from integrations.providers.booking import Attendee, BookingConfirmation, BookingProviderError
from ats.models import (
    UNCONFIRMED_INTERVIEW_STATUSES,
    InterviewStatus,
    ScheduledInterview,
)
from ats.scheduling import ConflictDetector, ConflictReason, ConflictReport, TimeSlot

logger = logging.getLogger(__name__)
security_logger = logging.getLogger('security.ats.booking')


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class ScheduleRequest:
    """Request to book one interview at the first workable preferred slot."""
    job_id: Any
    candidate_id: Any
    recruiter_id: str
    preferred_slots: List[TimeSlot]
    duration_minutes: int
    timezone: str = 'UTC'
    notes: str = ''


@dataclass
class BookingResult:
    """Result of a scheduling operation."""
    success: bool
    interview: Optional[ScheduledInterview] = None
    conflicts: List[ConflictReport] = field(default_factory=list)
    suggested_times: List[TimeSlot] = field(default_factory=list)
    message: str = ''

    def to_dict(self) -> Dict[str, Any]:
        interview = self.interview
        return {
            'success': self.success,
            'message': self.message,
            'interview': {
                'id': str(interview.id),
                'status': interview.status,
                'slot': interview.slot.to_dict(),
                'external_booking_ref': interview.external_booking_ref,
            } if interview is not None else None,
            'conflicts': [c.to_dict() for c in self.conflicts],
            'suggested_times': [s.to_dict() for s in self.suggested_times],
        }


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, BookingProviderError) and exc.retryable


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class BookingOrchestrator:
    """
    Books, cancels and reschedules interviews.

    Args:
        interview_store: InterviewStore
        profile_store: ProfileStore
        availability_service: AvailabilityService, used for suggestions
        provider: External booking provider
        retry_policy: Attempt budget for provider calls
        max_duration_minutes: Longest interview accepted
        max_pending_minutes: Lifetime of a provisional reservation
        require_availability: Reject slots outside stored availability
        sleep: Sleep function used between retries
        clock: Returns the current aware datetime
    """

    def __init__(
        self,
        interview_store,
        profile_store,
        availability_service,
        provider,
        retry_policy: RetryPolicy = None,
        max_duration_minutes: int = 480,
        max_pending_minutes: int = 15,
        require_availability: bool = False,
        sleep: Callable[[float], Any] = time.sleep,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.interview_store = interview_store
        self.profile_store = profile_store
        self.availability_service = availability_service
        self.provider = provider
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_duration_minutes = max_duration_minutes
        self.max_pending_minutes = max_pending_minutes
        self.require_availability = require_availability
        self.sleep = sleep
        self.clock = clock

    # ==================== VALIDATION ====================

    def validate(self, request: ScheduleRequest) -> None:
        """
        Raises:
            ValidationError: Empty slot list, bad duration, malformed or
                past slot, or a slot whose length differs from the duration
        """
        if not request.preferred_slots:
            raise ValidationError("At least one preferred slot is required", field='preferred_slots')

        duration = request.duration_minutes
        if not isinstance(duration, int) or duration <= 0 or duration > self.max_duration_minutes:
            raise ValidationError(
                f"Duration must be between 1 and {self.max_duration_minutes} minutes",
                field='duration_minutes',
                value=duration,
            )

        if not validate_timezone(request.timezone):
            raise ValidationError(f"Invalid timezone: {request.timezone}", field='timezone', value=request.timezone)

        now = self.clock()
        expected = timedelta(minutes=duration)
        for slot in request.preferred_slots:
            validate_time_slot(slot.start, slot.end, field='preferred_slots')
            if slot.utc_end - slot.utc_start != expected:
                raise ValidationError(
                    f"Slot length {slot.duration_minutes} minutes does not match duration {duration}",
                    field='preferred_slots',
                    value=slot,
                )
            if slot.utc_start <= now:
                raise ValidationError("Cannot schedule interviews in the past", field='preferred_slots', value=slot)

    # ==================== SCHEDULING ====================

    def schedule(
        self,
        request: ScheduleRequest,
        exclude_ids: Iterable = (),
        rescheduled_from: ScheduledInterview = None,
    ) -> BookingResult:
        """
        Book the first preferred slot that is free for both parties.

        Args:
            request: What to book
            exclude_ids: Interviews ignored by conflict checks (the one
                being rescheduled)
            rescheduled_from: Interview the new booking replaces

        Returns:
            BookingResult; success=False carries one ConflictReport per
            checked slot and suggested alternative times

        Raises:
            ValidationError: Malformed request
            NotFoundError: Unknown job or candidate
            ConflictError: Identical request already active
            ExternalServiceError: Provider failed; the slot was released
        """
        self.validate(request)
        exclude_ids = list(exclude_ids)

        job = self.profile_store.get_job(request.job_id)
        candidate = self.profile_store.get_candidate(request.candidate_id)
        recruiter_id = str(request.recruiter_id)

        for slot in request.preferred_slots:
            duplicate = self.interview_store.find_active_duplicate(job.pk, candidate.pk, recruiter_id, slot)
            if duplicate is not None and duplicate.pk not in exclude_ids:
                security_logger.warning(
                    f"Duplicate booking request for job {job.pk}, candidate {candidate.pk}, "
                    f"recruiter {recruiter_id} matches interview {duplicate.id} ({duplicate.status})"
                )
                raise ConflictError(
                    f"Interview {duplicate.id} already holds this request",
                    interview_id=duplicate.id,
                    conflicts=[ConflictReport(slot, ConflictReason.EXISTING_INTERVIEW, str(duplicate.id))],
                )

        # Snapshot of both parties' commitments for the requested period
        range_start = min(slot.utc_start for slot in request.preferred_slots)
        range_end = max(slot.utc_end for slot in request.preferred_slots)
        candidate_interviews = self.interview_store.active_for_candidate(
            candidate.pk, range_start, range_end, exclude_ids=exclude_ids
        )
        recruiter_interviews = self.interview_store.active_for_recruiter(
            recruiter_id, range_start, range_end, exclude_ids=exclude_ids
        )

        conflicts: List[ConflictReport] = []
        interview = None
        for slot in request.preferred_slots:
            report = ConflictDetector.check_parties(slot, candidate_interviews, recruiter_interviews)
            if report is None and self.require_availability:
                report = self._availability_report(slot, candidate.pk, recruiter_id)
            if report is not None:
                conflicts.append(report)
                continue

            try:
                interview = self.interview_store.reserve(
                    job_id=job.pk,
                    candidate_id=candidate.pk,
                    recruiter_id=recruiter_id,
                    slot=slot,
                    reserved_until=ScheduledInterview.reservation_deadline(self.max_pending_minutes, self.clock()),
                    notes=request.notes,
                    rescheduled_from_id=rescheduled_from.pk if rescheduled_from else None,
                    exclude_ids=exclude_ids,
                )
                break
            except ConflictError as e:
                logger.info(f"Lost reservation race for slot {slot.utc_start.isoformat()}: {e}")
                conflicts.extend(e.conflicts or [ConflictReport(slot, ConflictReason.EXISTING_INTERVIEW)])

        if interview is None:
            suggestions = self.availability_service.suggest_times(
                candidate.pk,
                recruiter_id,
                request.duration_minutes,
                exclude_slots=[c.conflicting_slot for c in conflicts],
                exclude_ids=exclude_ids,
            )
            logger.info(
                f"No bookable slot for candidate {candidate.pk} and recruiter {recruiter_id}: "
                f"{len(conflicts)} conflicts, {len(suggestions)} suggestions"
            )
            return BookingResult(
                success=False,
                conflicts=conflicts,
                suggested_times=suggestions,
                message="All preferred slots conflict with existing commitments",
            )

        return self._book(interview, candidate, job, conflicts)

    def _availability_report(self, slot: TimeSlot, candidate_id, recruiter_id) -> Optional[ConflictReport]:
        for owner_id in (candidate_id, recruiter_id):
            if not self.availability_service.covered_by_availability(str(owner_id), slot):
                return ConflictReport(slot, ConflictReason.AVAILABILITY_WITHDRAWN)
        return None

    def _book(self, interview: ScheduledInterview, candidate, job, conflicts: List[ConflictReport]) -> BookingResult:
        interview = self.interview_store.transition(
            interview.pk,
            InterviewStatus.PENDING_EXTERNAL,
            expected=[InterviewStatus.REQUESTED],
        )

        attendees = [Attendee(name=candidate.name, email=candidate.email, timezone=candidate.timezone)]
        metadata = {
            'idempotency_key': interview.idempotency_key,
            'interview_id': str(interview.id),
            'job_id': str(job.pk),
            'recruiter_id': interview.recruiter_id,
        }
        slot = interview.slot
        attempts = [0]

        def create():
            attempts[0] += 1
            if attempts[0] > 1:
                # A timed-out attempt may have been stored by the provider
                existing = self.provider.find_booking(interview.idempotency_key)
                if existing is not None:
                    logger.info(
                        f"Adopting booking {existing.external_ref} created by an earlier "
                        f"attempt for interview {interview.id}"
                    )
                    return existing
            return self.provider.create_booking(slot, attendees, metadata)

        try:
            confirmation = call_with_retry(create, self.retry_policy, _is_retryable, sleep=self.sleep)
        except RetryExhausted as e:
            self._release(interview.pk, f"Booking provider unavailable: {e.last_error}")
            raise ExternalServiceError(
                f"Booking provider failed after {e.attempts} attempts: {e.last_error}",
                retryable=True,
                interview_id=interview.id,
                attempts=e.attempts,
                report=ConflictReport(slot, ConflictReason.EXTERNAL_BOOKING_FAILED, str(interview.id)),
            ) from e
        except BookingProviderError as e:
            self._release(interview.pk, f"Booking rejected: {e}")
            raise ExternalServiceError(
                f"Booking provider rejected the booking: {e}",
                retryable=False,
                interview_id=interview.id,
                attempts=attempts[0],
                report=ConflictReport(slot, ConflictReason.EXTERNAL_BOOKING_FAILED, str(interview.id)),
            ) from e

        result = self._finalize_success(interview.pk, confirmation)
        result.conflicts = conflicts + result.conflicts
        return result

    def _release(self, interview_id, reason: str) -> None:
        """Fail (or cancel, if abandoned) an unconfirmed interview, freeing its slot."""
        current = self.interview_store.get(interview_id)
        if current.status not in UNCONFIRMED_INTERVIEW_STATUSES:
            logger.info(f"Interview {interview_id} already settled as {current.status}")
            return

        fields = {'failure_reason': reason}
        if current.cancel_requested:
            target = InterviewStatus.CANCELLED
            fields['cancelled_at'] = self.clock()
        else:
            target = InterviewStatus.FAILED
        try:
            self.interview_store.transition(
                interview_id, target, expected=UNCONFIRMED_INTERVIEW_STATUSES, **fields
            )
        except InvalidStatusTransition as e:
            logger.info(f"Interview {interview_id} changed while releasing: {e}")

    def _finalize_success(self, interview_id, confirmation: BookingConfirmation) -> BookingResult:
        """
        Settle an interview whose booking exists at the provider.

        Confirms in-flight records; cancels the external booking if the
        caller abandoned the request; for records that already failed,
        confirms only if the slot is still free for both parties.
        """
        current = self.interview_store.get(interview_id)

        if current.status == InterviewStatus.PENDING_EXTERNAL and not current.cancel_requested:
            try:
                interview = self.interview_store.transition(
                    interview_id,
                    InterviewStatus.CONFIRMED,
                    expected=[InterviewStatus.PENDING_EXTERNAL],
                    external_booking_ref=confirmation.external_ref,
                    confirmed_at=self.clock(),
                    reserved_until=None,
                )
                return BookingResult(success=True, interview=interview, message="Interview confirmed")
            except InvalidStatusTransition:
                current = self.interview_store.get(interview_id)

        if current.status == InterviewStatus.CONFIRMED:
            return self._already_confirmed(current, confirmation)

        if current.cancel_requested or current.status == InterviewStatus.CANCELLED:
            if not self._cancel_external_quietly(confirmation.external_ref, "Interview request abandoned"):
                return BookingResult(success=False, interview=current, message="Abandoned booking still open at provider")
            if current.status in UNCONFIRMED_INTERVIEW_STATUSES:
                self.interview_store.transition(
                    interview_id,
                    InterviewStatus.CANCELLED,
                    expected=UNCONFIRMED_INTERVIEW_STATUSES,
                    cancelled_at=self.clock(),
                    failure_reason="Abandoned while the booking was in flight",
                    reserved_until=None,
                )
            else:
                self.interview_store.mark_reconciled(interview_id)
            logger.info(f"Interview {interview_id} abandoned; external booking {confirmation.external_ref} cancelled")
            return BookingResult(
                success=False,
                interview=self.interview_store.get(interview_id),
                message="Interview request was abandoned",
            )

        # Booking succeeded after the reservation lapsed
        try:
            confirmed = self.interview_store.confirm_if_free(
                interview_id, confirmation.external_ref, expected=[InterviewStatus.FAILED]
            )
        except InvalidStatusTransition:
            # Settled concurrently, by reconciliation or the in-flight call
            current = self.interview_store.get(interview_id)
            if current.status == InterviewStatus.CONFIRMED:
                return self._already_confirmed(current, confirmation)
            logger.info(f"Interview {interview_id} settled as {current.status} during late confirmation")
            return BookingResult(success=False, interview=current, message=f"Interview already {current.status}")
        if confirmed is not None:
            logger.info(f"Late booking {confirmation.external_ref} confirmed interview {interview_id}")
            return BookingResult(success=True, interview=confirmed, message="Interview confirmed after expiry")

        if self._cancel_external_quietly(confirmation.external_ref, "Slot no longer available"):
            self.interview_store.mark_reconciled(interview_id)
        return BookingResult(
            success=False,
            interview=self.interview_store.get(interview_id),
            conflicts=[ConflictReport(current.slot, ConflictReason.EXISTING_INTERVIEW, str(interview_id))],
            message="Slot was taken after the reservation expired",
        )

    def _already_confirmed(self, current: ScheduledInterview, confirmation: BookingConfirmation) -> BookingResult:
        if current.external_booking_ref and current.external_booking_ref != confirmation.external_ref:
            self._cancel_external_quietly(confirmation.external_ref, "Duplicate booking")
        return BookingResult(success=True, interview=current, message="Interview already confirmed")

    # ==================== CANCEL / RESCHEDULE ====================

    def _cancel_external(self, external_ref: str, reason: str, interview_id=None) -> None:
        """
        Raises:
            ExternalServiceError: Cancellation failed at the provider
        """
        try:
            call_with_retry(
                lambda: self.provider.cancel_booking(external_ref, reason),
                self.retry_policy,
                _is_retryable,
                sleep=self.sleep,
            )
        except RetryExhausted as e:
            raise ExternalServiceError(
                f"Could not cancel booking {external_ref}: {e.last_error}",
                retryable=True,
                interview_id=interview_id,
                attempts=e.attempts,
            ) from e
        except BookingProviderError as e:
            raise ExternalServiceError(
                f"Could not cancel booking {external_ref}: {e}",
                retryable=False,
                interview_id=interview_id,
            ) from e

    def _cancel_external_quietly(self, external_ref: str, reason: str) -> bool:
        try:
            self._cancel_external(external_ref, reason)
            return True
        except ExternalServiceError as e:
            logger.error(f"Orphaned external booking {external_ref}: {e}")
            return False

    def abandon(self, interview_id) -> ScheduledInterview:
        """
        Record that the caller gave up on an unconfirmed interview.

        The in-flight provider call still completes; its outcome is then
        cancelled instead of confirmed.
        """
        self.interview_store.request_cancel(interview_id)
        interview = self.interview_store.get(interview_id)
        logger.info(f"Interview {interview_id} abandoned in status {interview.status}")
        return interview

    def cancel(self, interview_id, reason: str = '') -> ScheduledInterview:
        """
        Cancel an interview.

        Confirmed interviews are cancelled at the provider first; unconfirmed
        ones are abandoned; cancelling twice is a no-op.

        Raises:
            NotFoundError: Unknown interview
            InvalidStatusTransition: Interview failed or was rescheduled
            ExternalServiceError: Provider cancellation failed; the interview
                stays confirmed
        """
        interview = self.interview_store.get(interview_id)

        if interview.status == InterviewStatus.CANCELLED:
            return interview
        if interview.status in UNCONFIRMED_INTERVIEW_STATUSES:
            return self.abandon(interview_id)
        interview.check_transition(InterviewStatus.CANCELLED)

        if interview.external_booking_ref:
            self._cancel_external(interview.external_booking_ref, reason, interview_id=interview.id)

        interview = self.interview_store.transition(
            interview_id,
            InterviewStatus.CANCELLED,
            expected=[InterviewStatus.CONFIRMED],
            cancelled_at=self.clock(),
        )
        if reason:
            self.interview_store.append_note(interview, f"Cancelled: {reason}")
        security_logger.info(f"Interview {interview.id} cancelled")
        return interview

    def reschedule(self, interview_id, new_slot: TimeSlot, reason: str = '') -> BookingResult:
        """
        Move a confirmed interview to a new slot.

        A new interview is booked first, with the old one excluded from
        conflict checks; only then is the old booking cancelled and marked
        rescheduled.

        Raises:
            InvalidStatusTransition: Interview is not confirmed
            ValidationError: New slot is malformed or identical to the old one
        """
        old = self.interview_store.get(interview_id)
        old.check_transition(InterviewStatus.RESCHEDULED)
        if new_slot.key() == old.slot.key():
            raise ValidationError("New slot is the current slot", field='new_slot', value=new_slot)

        request = ScheduleRequest(
            job_id=old.job_id,
            candidate_id=old.candidate_id,
            recruiter_id=old.recruiter_id,
            preferred_slots=[new_slot],
            duration_minutes=new_slot.duration_minutes,
            timezone=new_slot.timezone,
            notes=old.notes,
        )
        result = self.schedule(request, exclude_ids=[old.pk], rescheduled_from=old)
        if not result.success:
            return result

        if old.external_booking_ref:
            if not self._cancel_external_quietly(old.external_booking_ref, reason or "Interview rescheduled"):
                result.message = "Rescheduled; previous booking could not be cancelled at the provider"

        old = self.interview_store.transition(
            old.pk,
            InterviewStatus.RESCHEDULED,
            expected=[InterviewStatus.CONFIRMED],
            cancelled_at=self.clock(),
        )
        note = f"Rescheduled to {new_slot.utc_start.isoformat()}"
        self.interview_store.append_note(old, f"{note}: {reason}" if reason else note)
        logger.info(f"Interview {old.id} rescheduled as {result.interview.id}")
        return result

    # ==================== RECONCILIATION ====================

    def expire_stale(self, now: datetime = None) -> int:
        """
        Release unconfirmed interviews whose reservation lapsed.

        Returns:
            Number of interviews released
        """
        now = now or self.clock()
        released = 0
        for interview in self.interview_store.expired_unconfirmed(now):
            fields = {'failure_reason': "Provisional reservation expired"}
            if interview.cancel_requested:
                target = InterviewStatus.CANCELLED
                fields['cancelled_at'] = now
            else:
                target = InterviewStatus.FAILED
            try:
                self.interview_store.transition(
                    interview.pk, target, expected=UNCONFIRMED_INTERVIEW_STATUSES, **fields
                )
                released += 1
            except InvalidStatusTransition:
                logger.info(f"Interview {interview.pk} settled before expiry")
        if released:
            logger.warning(f"Expired {released} stale interview reservations")
        return released

    def reconcile_pending(self, now: datetime = None) -> Dict[str, int]:
        """
        Check released interviews against the provider.

        A booking found at the provider is confirmed if the slot is still
        free and the caller did not abandon it, and cancelled otherwise.

        Returns:
            Counts of confirmed, cancelled, released and errored interviews
        """
        now = now or self.clock()
        counts = {'confirmed': 0, 'cancelled': 0, 'released': 0, 'errors': 0}

        for interview in self.interview_store.unreconciled(now):
            key = interview.idempotency_key
            try:
                found = call_with_retry(
                    lambda: self.provider.find_booking(key),
                    self.retry_policy,
                    _is_retryable,
                    sleep=self.sleep,
                )
            except (RetryExhausted, BookingProviderError) as e:
                logger.warning(f"Could not look up booking for interview {interview.pk}: {e}")
                counts['errors'] += 1
                continue

            if found is None:
                self.interview_store.mark_reconciled(interview.pk)
                counts['released'] += 1
                continue

            result = self._finalize_success(interview.pk, found)
            if result.success:
                counts['confirmed'] += 1
            elif result.interview is not None and result.interview.reserved_until is None:
                counts['cancelled'] += 1
            else:
                counts['errors'] += 1

        logger.info(f"Reconciliation finished: {counts}")
        return counts
