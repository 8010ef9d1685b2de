"""
ATS Stores - persistence boundary for matching and booking.

The services in this app never touch the ORM directly; they receive these
stores as collaborators. InterviewStore owns the only write paths that
must be atomic:

- reserve(): lock both owners, re-check overlap, insert the interview
- transition(): compare-and-set on the interview status
- confirm_if_free(): late confirmation that re-checks overlap under lock
"""

import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from core.scheduling.exceptions import (
    ConflictError,
    InvalidStatusTransition,
    NotFoundError,
    ValidationError,
)
from ats.models import (
    ACTIVE_INTERVIEW_STATUSES,
    UNCONFIRMED_INTERVIEW_STATUSES,
    AvailabilityWindow,
    CandidateProfile,
    InterviewStatus,
    JobPosting,
    ScheduledInterview,
    SchedulingLock,
)
from ats.scheduling import AvailabilityPeriod, ConflictReason, ConflictReport, TimeSlot

logger = logging.getLogger(__name__)
security_logger = logging.getLogger('security.ats.booking')


def _as_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


# =============================================================================
# PROFILES
# =============================================================================

class ProfileStore:
    """Read-only access to jobs and candidate profiles."""

    def get_job(self, job_id) -> JobPosting:
        try:
            return JobPosting.objects.get(pk=job_id)
        except (JobPosting.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError('Job', job_id)

    def get_candidate(self, candidate_id) -> CandidateProfile:
        try:
            return CandidateProfile.objects.get(pk=candidate_id)
        except (CandidateProfile.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError('Candidate', candidate_id)

    def all_candidates(self) -> List[CandidateProfile]:
        return list(CandidateProfile.objects.order_by('created_at', 'id'))


# =============================================================================
# AVAILABILITY
# =============================================================================

class AvailabilityStore:
    """Availability windows per owner."""

    def windows_for(
        self,
        owner_id: str,
        range_start: datetime,
        range_end: datetime,
        status: Optional[str] = None,
    ) -> List[AvailabilityPeriod]:
        """Windows of ``owner_id`` overlapping [range_start, range_end), by start time."""
        queryset = AvailabilityWindow.objects.filter(
            owner_id=str(owner_id),
            start_time__lt=range_end,
            end_time__gt=range_start,
        )
        if status:
            queryset = queryset.filter(status=status)
        return [window.period for window in queryset.order_by('start_time')]


# =============================================================================
# INTERVIEWS
# =============================================================================

class InterviewStore:
    """Scheduled interviews and the atomic reservation write."""

    def get(self, interview_id) -> ScheduledInterview:
        try:
            return ScheduledInterview.objects.select_related('job', 'candidate').get(pk=interview_id)
        except (ScheduledInterview.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError('Interview', interview_id)

    # ==================== READS ====================

    def _active(self, start=None, end=None, exclude_ids: Iterable = ()):
        queryset = ScheduledInterview.objects.filter(status__in=ACTIVE_INTERVIEW_STATUSES)
        if start is not None and end is not None:
            queryset = queryset.filter(start_time__lt=end, end_time__gt=start)
        exclude_ids = [pk for pk in exclude_ids if pk is not None]
        if exclude_ids:
            queryset = queryset.exclude(pk__in=exclude_ids)
        return queryset.order_by('start_time')

    def active_for_candidate(self, candidate_id, start=None, end=None, exclude_ids: Iterable = ()) -> List[ScheduledInterview]:
        candidate_uuid = _as_uuid(candidate_id)
        if candidate_uuid is None:
            return []
        return list(self._active(start, end, exclude_ids).filter(candidate_id=candidate_uuid))

    def active_for_recruiter(self, recruiter_id, start=None, end=None, exclude_ids: Iterable = ()) -> List[ScheduledInterview]:
        return list(self._active(start, end, exclude_ids).filter(recruiter_id=str(recruiter_id)))

    def active_for_owner(self, owner_id, start=None, end=None, exclude_ids: Iterable = ()) -> List[ScheduledInterview]:
        """Active interviews where ``owner_id`` is the candidate or the recruiter."""
        owner_filter = Q(recruiter_id=str(owner_id))
        candidate_uuid = _as_uuid(owner_id)
        if candidate_uuid is not None:
            owner_filter |= Q(candidate_id=candidate_uuid)
        return list(self._active(start, end, exclude_ids).filter(owner_filter))

    def for_party(
        self,
        party_id,
        role: str,
        statuses: Optional[Iterable[str]] = None,
        start: datetime = None,
        end: datetime = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[ScheduledInterview]:
        """
        Interviews of one candidate or recruiter, ordered by start time.

        Args:
            party_id: Candidate id or recruiter id
            role: 'candidate' or 'recruiter'
            statuses: Keep only these statuses; all when empty
            start: Keep interviews starting at or after this instant
            end: Keep interviews ending at or before this instant
            limit: Page size
            offset: Interviews skipped before the page

        Raises:
            ValidationError: Unknown role or negative paging values
        """
        if role == 'candidate':
            candidate_uuid = _as_uuid(party_id)
            if candidate_uuid is None:
                return []
            queryset = ScheduledInterview.objects.filter(candidate_id=candidate_uuid)
        elif role == 'recruiter':
            queryset = ScheduledInterview.objects.filter(recruiter_id=str(party_id))
        else:
            raise ValidationError(f"Unknown role: {role}", field='role', value=role)

        if offset < 0 or (limit is not None and limit < 0):
            raise ValidationError("limit and offset must not be negative", field='limit', value=limit)

        statuses = list(statuses or [])
        if statuses:
            queryset = queryset.filter(status__in=statuses)
        if start is not None:
            queryset = queryset.filter(start_time__gte=start)
        if end is not None:
            queryset = queryset.filter(end_time__lte=end)

        queryset = queryset.order_by('start_time', 'created_at')
        stop = offset + limit if limit is not None else None
        return list(queryset[offset:stop])

    def find_active_duplicate(self, job_id, candidate_id, recruiter_id, slot: TimeSlot) -> Optional[ScheduledInterview]:
        """Active interview for the exact same job, parties and slot, if any."""
        return ScheduledInterview.objects.filter(
            job_id=job_id,
            candidate_id=candidate_id,
            recruiter_id=str(recruiter_id),
            start_time=slot.utc_start,
            end_time=slot.utc_end,
            status__in=ACTIVE_INTERVIEW_STATUSES,
        ).first()

    def expired_unconfirmed(self, now: datetime = None) -> List[ScheduledInterview]:
        """Unconfirmed interviews whose provisional reservation has lapsed."""
        now = now or timezone.now()
        return list(
            ScheduledInterview.objects.filter(
                status__in=UNCONFIRMED_INTERVIEW_STATUSES,
                reserved_until__lte=now,
            ).order_by('reserved_until')
        )

    def unreconciled(self, now: datetime = None) -> List[ScheduledInterview]:
        """
        Released interviews whose provider outcome was never checked.

        A failed or abandoned booking may still exist at the provider when
        the call timed out or the worker died mid-call.
        """
        now = now or timezone.now()
        return list(
            ScheduledInterview.objects.filter(
                status__in=[InterviewStatus.FAILED, InterviewStatus.CANCELLED],
                external_booking_ref='',
                reserved_until__isnull=False,
                reserved_until__lte=now,
            ).order_by('reserved_until')
        )

    def mark_reconciled(self, interview_id) -> int:
        return ScheduledInterview.objects.filter(pk=interview_id).update(
            reserved_until=None, updated_at=timezone.now()
        )

    # ==================== WRITES ====================

    def _lock_owners(self, owner_ids: Sequence[str]) -> None:
        # Sorted order keeps concurrent reservations from deadlocking
        owners = sorted({str(owner_id) for owner_id in owner_ids})
        for owner_id in owners:
            SchedulingLock.objects.get_or_create(owner_id=owner_id)
        list(
            SchedulingLock.objects.select_for_update()
            .filter(owner_id__in=owners)
            .order_by('owner_id')
        )

    def _overlap_report(self, candidate_id, recruiter_id, slot: TimeSlot, exclude_ids: Iterable) -> Optional[ConflictReport]:
        exclude_ids = list(exclude_ids)
        for existing in (
            self.active_for_candidate(candidate_id, slot.utc_start, slot.utc_end, exclude_ids),
            self.active_for_recruiter(recruiter_id, slot.utc_start, slot.utc_end, exclude_ids),
        ):
            if existing:
                return ConflictReport(
                    conflicting_slot=slot,
                    reason=ConflictReason.EXISTING_INTERVIEW,
                    interview_id=str(existing[0].id),
                )
        return None

    def reserve(
        self,
        job_id,
        candidate_id,
        recruiter_id: str,
        slot: TimeSlot,
        reserved_until: datetime,
        notes: str = '',
        rescheduled_from_id=None,
        exclude_ids: Iterable = (),
    ) -> ScheduledInterview:
        """
        Insert a REQUESTED interview if neither party has an overlapping
        active interview.

        Both owners' lock rows are held for the check and the insert, so
        of two concurrent reservations for overlapping slots on the same
        owner exactly one succeeds.

        Raises:
            ConflictError: Duplicate request or overlapping commitment
        """
        exclude_ids = list(exclude_ids)
        with transaction.atomic():
            self._lock_owners([str(candidate_id), recruiter_id])

            duplicate = self.find_active_duplicate(job_id, candidate_id, recruiter_id, slot)
            if duplicate is not None and duplicate.pk not in exclude_ids:
                raise ConflictError(
                    f"Interview {duplicate.id} already holds this request",
                    interview_id=duplicate.id,
                    conflicts=[ConflictReport(slot, ConflictReason.EXISTING_INTERVIEW, str(duplicate.id))],
                )

            report = self._overlap_report(candidate_id, recruiter_id, slot, exclude_ids)
            if report is not None:
                security_logger.warning(
                    f"Double booking prevented: slot {slot.utc_start.isoformat()} for "
                    f"candidate {candidate_id} / recruiter {recruiter_id} "
                    f"overlaps interview {report.interview_id}"
                )
                raise ConflictError(
                    "Slot overlaps an existing interview",
                    interview_id=report.interview_id,
                    conflicts=[report],
                )

            try:
                with transaction.atomic():
                    interview = ScheduledInterview.objects.create(
                        job_id=job_id,
                        candidate_id=candidate_id,
                        recruiter_id=str(recruiter_id),
                        start_time=slot.utc_start,
                        end_time=slot.utc_end,
                        timezone=slot.timezone,
                        status=InterviewStatus.REQUESTED,
                        reserved_until=reserved_until,
                        rescheduled_from_id=rescheduled_from_id,
                        notes=notes,
                    )
            except IntegrityError as e:
                logger.warning(f"Reservation rejected by unique constraint: {e}")
                raise ConflictError(
                    "An identical interview request is already active",
                    conflicts=[ConflictReport(slot, ConflictReason.EXISTING_INTERVIEW)],
                )

        logger.info(
            f"Reserved interview {interview.id} for candidate {candidate_id} and "
            f"recruiter {recruiter_id} at {slot.utc_start.isoformat()}"
        )
        return interview

    def transition(
        self,
        interview_id,
        target: str,
        expected: Optional[Iterable[str]] = None,
        **fields,
    ) -> ScheduledInterview:
        """
        Move an interview to ``target`` if its current status allows it.

        Args:
            interview_id: Interview to update
            target: New status
            expected: Statuses the caller believes the record is in; a
                record found in any other status is not touched
            **fields: Extra model fields written with the status

        Raises:
            NotFoundError: Unknown interview
            InvalidStatusTransition: Status changed underneath the caller
                or the state machine forbids the move
        """
        with transaction.atomic():
            try:
                interview = ScheduledInterview.objects.select_for_update().get(pk=interview_id)
            except (ScheduledInterview.DoesNotExist, DjangoValidationError, ValueError):
                raise NotFoundError('Interview', interview_id)

            if expected is not None and interview.status not in tuple(expected):
                raise InvalidStatusTransition(interview.status, target)
            interview.check_transition(target)

            previous = interview.status
            interview.status = target
            for name, value in fields.items():
                setattr(interview, name, value)
            interview.save(update_fields=['status', 'updated_at', *fields.keys()])

        logger.info(f"Interview {interview.id}: {previous} -> {target}")
        return interview

    def confirm_if_free(self, interview_id, external_ref: str, expected: Iterable[str]) -> Optional[ScheduledInterview]:
        """
        Confirm an interview whose booking succeeded late.

        The overlap check is repeated under both owners' locks, since the
        slot may have been given away after the reservation lapsed.

        Returns:
            The confirmed interview, or None if the slot is no longer free
        """
        interview = self.get(interview_id)
        with transaction.atomic():
            self._lock_owners([str(interview.candidate_id), interview.recruiter_id])
            report = self._overlap_report(
                interview.candidate_id, interview.recruiter_id, interview.slot, [interview.pk]
            )
            if report is not None:
                logger.info(
                    f"Late booking for interview {interview.id} collides with "
                    f"interview {report.interview_id}"
                )
                return None
            return self.transition(
                interview.pk,
                InterviewStatus.CONFIRMED,
                expected=expected,
                external_booking_ref=external_ref,
                confirmed_at=timezone.now(),
                reserved_until=None,
            )

    def request_cancel(self, interview_id) -> int:
        """Flag an in-flight interview as abandoned by its caller."""
        return ScheduledInterview.objects.filter(
            pk=interview_id,
            status__in=UNCONFIRMED_INTERVIEW_STATUSES,
        ).update(cancel_requested=True, updated_at=timezone.now())

    def append_note(self, interview: ScheduledInterview, note: str) -> None:
        interview.notes = f"{interview.notes}\n\n{note}" if interview.notes else note
        interview.save(update_fields=['notes', 'updated_at'])
