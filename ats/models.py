"""
ATS Models - Matching & Interview Booking

This module implements the persistent state of the matching and booking core:
- Job postings with required/preferred skill lists
- Candidate profiles with their skills
- Availability windows owned by candidates and recruiters
- Scheduled interviews with their booking state machine
- Per-owner lock rows used to serialize slot reservations

Match results are never stored; they are computed on demand.
"""

import uuid
from datetime import timedelta

from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.scheduling.exceptions import InvalidStatusTransition
from ats.scheduling import AvailabilityPeriod, TimeSlot


# =============================================================================
# STATUS CHOICES
# =============================================================================

class AvailabilityStatus(models.TextChoices):
    AVAILABLE = 'available', _('Available')
    BOOKED = 'booked', _('Booked')


class InterviewStatus(models.TextChoices):
    REQUESTED = 'requested', _('Requested')
    PENDING_EXTERNAL = 'pending_external', _('Pending External Confirmation')
    CONFIRMED = 'confirmed', _('Confirmed')
    FAILED = 'failed', _('Failed')
    CANCELLED = 'cancelled', _('Cancelled')
    RESCHEDULED = 'rescheduled', _('Rescheduled')


# Statuses that hold the slot for both parties
ACTIVE_INTERVIEW_STATUSES = (
    InterviewStatus.REQUESTED,
    InterviewStatus.PENDING_EXTERNAL,
    InterviewStatus.CONFIRMED,
)

# Unconfirmed statuses subject to reservation expiry
UNCONFIRMED_INTERVIEW_STATUSES = (
    InterviewStatus.REQUESTED,
    InterviewStatus.PENDING_EXTERNAL,
)

INTERVIEW_TRANSITIONS = {
    InterviewStatus.REQUESTED: {
        InterviewStatus.PENDING_EXTERNAL,
        InterviewStatus.FAILED,
        InterviewStatus.CANCELLED,
    },
    InterviewStatus.PENDING_EXTERNAL: {
        InterviewStatus.CONFIRMED,
        InterviewStatus.FAILED,
        InterviewStatus.CANCELLED,
    },
    InterviewStatus.CONFIRMED: {
        InterviewStatus.CANCELLED,
        InterviewStatus.RESCHEDULED,
    },
    # A booking that succeeded after local expiry can still be confirmed
    InterviewStatus.FAILED: {
        InterviewStatus.CONFIRMED,
    },
    InterviewStatus.CANCELLED: set(),
    InterviewStatus.RESCHEDULED: set(),
}


def can_transition(current: str, target: str) -> bool:
    """Whether the interview state machine allows current -> target."""
    return target in INTERVIEW_TRANSITIONS.get(current, set())


# =============================================================================
# JOBS & CANDIDATES
# =============================================================================

class JobPosting(models.Model):
    """
    Job posting as seen by the matching core.

    Skills are stored as lists of dicts with keys name, proficiency,
    category and required.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=200)
    recruiter_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text=_('Identifier of the recruiter who owns this posting')
    )
    required_skills = models.JSONField(default=list, blank=True)
    preferred_skills = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Job Posting')
        verbose_name_plural = _('Job Postings')
        ordering = ['-created_at']

    def __str__(self):
        return self.title


class CandidateProfile(models.Model):
    """Candidate with the skills collected from their interviews."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    timezone = models.CharField(max_length=50, default='UTC')
    skills = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Candidate Profile')
        verbose_name_plural = _('Candidate Profiles')
        ordering = ['created_at']

    def __str__(self):
        return self.name


# =============================================================================
# AVAILABILITY
# =============================================================================

class AvailabilityWindow(models.Model):
    """
    A materialized block of time during which an owner can be booked.

    Owners are candidates or recruiters, identified by owner_id. Recurring
    patterns are expanded before windows are stored.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner_id = models.CharField(max_length=64, db_index=True)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    timezone = models.CharField(max_length=50, default='UTC')
    status = models.CharField(
        max_length=20,
        choices=AvailabilityStatus.choices,
        default=AvailabilityStatus.AVAILABLE,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Availability Window')
        verbose_name_plural = _('Availability Windows')
        ordering = ['start_time']
        indexes = [
            models.Index(fields=['owner_id', 'start_time'], name='ats_availab_owner_i_5c1f0e_idx'),
            models.Index(fields=['status', 'start_time'], name='ats_availab_status_9a7d2b_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_time__gt=F('start_time')),
                name='availability_window_end_after_start',
            ),
        ]

    def __str__(self):
        return f"{self.owner_id}: {self.start_time} - {self.end_time}"

    @property
    def period(self) -> AvailabilityPeriod:
        return AvailabilityPeriod(
            owner_id=self.owner_id,
            start=self.start_time,
            end=self.end_time,
            timezone=self.timezone,
            status=self.status,
        )


# =============================================================================
# SCHEDULED INTERVIEWS
# =============================================================================

class ScheduledInterview(models.Model):
    """
    An interview booked between a candidate and a recruiter for a job.

    Created in REQUESTED by the booking orchestrator, moved to
    PENDING_EXTERNAL while the calendar provider is called, and finished in
    CONFIRMED or FAILED. Users may later cancel or reschedule a confirmed
    interview.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    job = models.ForeignKey(
        JobPosting,
        on_delete=models.CASCADE,
        related_name='scheduled_interviews'
    )
    candidate = models.ForeignKey(
        CandidateProfile,
        on_delete=models.CASCADE,
        related_name='scheduled_interviews'
    )
    recruiter_id = models.CharField(max_length=64, db_index=True)

    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    timezone = models.CharField(max_length=50, default='UTC')

    status = models.CharField(
        max_length=20,
        choices=InterviewStatus.choices,
        default=InterviewStatus.REQUESTED,
    )
    external_booking_ref = models.CharField(max_length=128, blank=True)
    failure_reason = models.TextField(blank=True)

    # Set when the caller gave up while the provider call was in flight
    cancel_requested = models.BooleanField(default=False)
    reserved_until = models.DateTimeField(
        null=True,
        blank=True,
        help_text=_('Provisional reservation expiry while unconfirmed')
    )
    rescheduled_from = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='rescheduled_to'
    )
    notes = models.TextField(blank=True)

    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Scheduled Interview')
        verbose_name_plural = _('Scheduled Interviews')
        ordering = ['start_time']
        indexes = [
            models.Index(fields=['candidate', 'start_time'], name='ats_schedul_candida_3e8b41_idx'),
            models.Index(fields=['recruiter_id', 'start_time'], name='ats_schedul_recruit_7f02c6_idx'),
            models.Index(fields=['status', 'reserved_until'], name='ats_schedul_status_b41d9a_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_time__gt=F('start_time')),
                name='scheduled_interview_end_after_start',
            ),
            # Identical requests may hold at most one active booking
            models.UniqueConstraint(
                fields=['job', 'candidate', 'recruiter_id', 'start_time', 'end_time'],
                condition=Q(status__in=[
                    'requested', 'pending_external', 'confirmed',
                ]),
                name='unique_active_interview_request',
            ),
        ]

    def __str__(self):
        return f"Interview {self.id} ({self.status})"

    @property
    def slot(self) -> TimeSlot:
        return TimeSlot(start=self.start_time, end=self.end_time, timezone=self.timezone)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_INTERVIEW_STATUSES

    @property
    def idempotency_key(self) -> str:
        """Key sent to the booking provider so lookups can find this booking."""
        return f"interview-{self.id}"

    def check_transition(self, target: str) -> None:
        """
        Raise InvalidStatusTransition unless the state machine allows
        moving from the current status to ``target``.
        """
        if not can_transition(self.status, target):
            raise InvalidStatusTransition(self.status, target)

    def reservation_expired(self, now=None) -> bool:
        now = now or timezone.now()
        return (
            self.status in UNCONFIRMED_INTERVIEW_STATUSES
            and self.reserved_until is not None
            and self.reserved_until <= now
        )

    @staticmethod
    def reservation_deadline(max_pending_minutes: int, now=None):
        return (now or timezone.now()) + timedelta(minutes=max_pending_minutes)


class SchedulingLock(models.Model):
    """
    One row per booking owner (candidate or recruiter).

    Reservations lock the rows of both parties with SELECT ... FOR UPDATE,
    which serializes concurrent bookings that touch the same owner.
    """

    owner_id = models.CharField(max_length=64, primary_key=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Scheduling Lock')
        verbose_name_plural = _('Scheduling Locks')

    def __str__(self):
        return self.owner_id
