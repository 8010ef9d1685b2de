"""
ATS Interview Scheduling

This module turns availability into bookable interview slots:
- TimeSlot / AvailabilityPeriod: timezone-aware value types
- SlotGenerator: expands one availability window into fixed-length slots
- MutualAvailabilityResolver: slots both parties generated as free
- ConflictDetector: half-open overlap checks against committed interviews
- AvailabilityService: per-owner free slots and suggested alternatives

Nothing in here writes to the database; persistence goes through the
stores injected into AvailabilityService.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from django.utils import timezone

from core.scheduling.exceptions import ValidationError
from core.scheduling.utils import (
    ensure_aware,
    intervals_overlap,
    iter_time_slots,
    to_utc,
    validate_timezone,
)

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS AND CONSTANTS
# =============================================================================

DEFAULT_STEP_MINUTES = 30


class SlotStatus(str, Enum):
    """Availability window status."""
    AVAILABLE = 'available'
    BOOKED = 'booked'


class ConflictReason(str, Enum):
    """Why a proposed slot could not be booked."""
    EXISTING_INTERVIEW = 'existing_interview'
    AVAILABILITY_WITHDRAWN = 'availability_withdrawn'
    EXTERNAL_BOOKING_FAILED = 'external_booking_failed'


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class TimeSlot:
    """Represents a time slot for scheduling."""
    start: datetime
    end: datetime
    timezone: str = 'UTC'

    @property
    def duration_minutes(self) -> int:
        """Return duration in minutes."""
        return int((self.utc_end - self.utc_start).total_seconds() / 60)

    @property
    def utc_start(self) -> datetime:
        return to_utc(self.start, self.timezone)

    @property
    def utc_end(self) -> datetime:
        return to_utc(self.end, self.timezone)

    def key(self) -> Tuple[datetime, datetime]:
        """Instant identity of the slot, independent of display timezone."""
        return self.utc_start, self.utc_end

    def overlaps(self, other: 'TimeSlot') -> bool:
        """Check if this slot overlaps with another."""
        return intervals_overlap(self.utc_start, self.utc_end, other.utc_start, other.utc_end)

    def to_timezone(self, tz: str) -> 'TimeSlot':
        """
        Convert to a different timezone.

        Raises:
            ValidationError: If timezone is invalid
        """
        if not validate_timezone(tz):
            raise ValidationError(f"Invalid timezone: {tz}", field='timezone', value=tz)

        target_tz = ZoneInfo(tz)
        return TimeSlot(
            start=self.utc_start.astimezone(target_tz),
            end=self.utc_end.astimezone(target_tz),
            timezone=tz
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': ensure_aware(self.start, self.timezone).isoformat(),
            'end': ensure_aware(self.end, self.timezone).isoformat(),
            'timezone': self.timezone,
            'duration_minutes': self.duration_minutes,
        }


@dataclass(frozen=True)
class AvailabilityPeriod:
    """A block of time during which one owner can be booked."""
    owner_id: str
    start: datetime
    end: datetime
    timezone: str = 'UTC'
    status: str = SlotStatus.AVAILABLE.value

    def __post_init__(self):
        if to_utc(self.start, self.timezone) >= to_utc(self.end, self.timezone):
            raise ValidationError(
                "Availability window must start before it ends",
                field='window',
                value=(self.start, self.end),
            )

    @property
    def is_available(self) -> bool:
        return self.status == SlotStatus.AVAILABLE.value

    def covers(self, slot: TimeSlot) -> bool:
        return (
            to_utc(self.start, self.timezone) <= slot.utc_start
            and to_utc(self.end, self.timezone) >= slot.utc_end
        )


@dataclass(frozen=True)
class ConflictReport:
    """Why one proposed slot was rejected."""
    conflicting_slot: TimeSlot
    reason: ConflictReason
    interview_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'conflicting_slot': self.conflicting_slot.to_dict(),
            'reason': self.reason.value,
            'interview_id': self.interview_id,
        }


# =============================================================================
# SLOT GENERATION
# =============================================================================

class SlotGenerator:
    """
    Expands an availability window into bookable slots of a fixed length.

    Each call to generate() returns a fresh lazy iterator, so the result can
    be consumed partially or regenerated at will.
    """

    def __init__(self, step_minutes: int = DEFAULT_STEP_MINUTES):
        self.step_minutes = step_minutes

    def generate(
        self,
        window: AvailabilityPeriod,
        duration_minutes: int,
        step_minutes: Optional[int] = None,
        until: Optional[datetime] = None,
    ) -> Iterator[TimeSlot]:
        """
        Yield [cursor, cursor + duration) for every step-aligned cursor from
        window.start whose slot still ends inside the window.

        Args:
            window: Availability to expand
            duration_minutes: Slot length
            step_minutes: Cursor increment, defaults to the generator's step
            until: Optional earlier cut-off for slot ends; the grid stays
                anchored on window.start

        Raises:
            ValidationError: If duration or step is not positive
        """
        step = step_minutes if step_minutes is not None else self.step_minutes
        start = ensure_aware(window.start, window.timezone)
        end = ensure_aware(window.end, window.timezone)
        if until is not None and until < end:
            end = until

        slots = iter_time_slots(
            start, end,
            duration=timedelta(minutes=duration_minutes),
            step=timedelta(minutes=step),
        )
        return (
            TimeSlot(start=slot_start, end=slot_end, timezone=window.timezone)
            for slot_start, slot_end in slots
        )


# =============================================================================
# MUTUAL AVAILABILITY
# =============================================================================

class MutualAvailabilityResolver:
    """Intersects two parties' generated slots by instant equality."""

    @staticmethod
    def intersect(slots_a: Iterable[TimeSlot], slots_b: Iterable[TimeSlot]) -> List[TimeSlot]:
        """
        Return the slots of ``slots_a`` that also appear in ``slots_b``.

        Slots match when their UTC start and end are identical; overlapping
        slots on different grids do not match. Output keeps the order of
        ``slots_a`` and lists each instant pair once.
        """
        keys_b = {slot.key() for slot in slots_b}
        seen = set()
        mutual = []
        for slot in slots_a:
            key = slot.key()
            if key in keys_b and key not in seen:
                seen.add(key)
                mutual.append(slot)
        return mutual


# =============================================================================
# CONFLICT DETECTION
# =============================================================================

def _slot_of(item) -> TimeSlot:
    # Scheduled interviews expose their slot; bare TimeSlots pass through
    return item if isinstance(item, TimeSlot) else item.slot


class ConflictDetector:
    """Checks proposed slots against one owner's committed interviews."""

    @staticmethod
    def has_conflict(slot: TimeSlot, existing: Iterable) -> bool:
        """
        True if ``slot`` overlaps any item in ``existing``.

        Items are TimeSlots or objects with a ``slot`` attribute. Intervals
        are half-open, so back-to-back interviews do not conflict.
        """
        return any(slot.overlaps(_slot_of(item)) for item in existing)

    @staticmethod
    def find_conflicts(slot: TimeSlot, existing: Iterable) -> List:
        """Every item in ``existing`` that overlaps ``slot``, in input order."""
        return [item for item in existing if slot.overlaps(_slot_of(item))]

    @classmethod
    def check_parties(
        cls,
        slot: TimeSlot,
        candidate_interviews: Sequence,
        recruiter_interviews: Sequence,
    ) -> Optional[ConflictReport]:
        """
        Check a slot against both parties independently.

        Returns:
            ConflictReport naming the first overlapping interview, or None
            when neither party has an overlapping commitment
        """
        for existing in (candidate_interviews, recruiter_interviews):
            conflicts = cls.find_conflicts(slot, existing)
            if conflicts:
                first = conflicts[0]
                interview_id = getattr(first, 'id', None)
                return ConflictReport(
                    conflicting_slot=slot,
                    reason=ConflictReason.EXISTING_INTERVIEW,
                    interview_id=str(interview_id) if interview_id is not None else None,
                )
        return None


# =============================================================================
# AVAILABILITY SERVICE
# =============================================================================

class AvailabilityService:
    """
    Read-side scheduling operations over stored availability.

    Args:
        availability_store: Provides windows_for(owner_id, start, end)
        interview_store: Provides active_for_owner(owner_id, start, end, exclude_ids)
        step_minutes: Grid step shared by both parties
        suggestion_days: How far ahead suggestions look
        max_suggestions: Upper bound on suggested times
        clock: Returns the current aware datetime
    """

    def __init__(
        self,
        availability_store,
        interview_store,
        step_minutes: int = DEFAULT_STEP_MINUTES,
        suggestion_days: int = 14,
        max_suggestions: int = 10,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.availability_store = availability_store
        self.interview_store = interview_store
        self.generator = SlotGenerator(step_minutes)
        self.step_minutes = step_minutes
        self.suggestion_days = suggestion_days
        self.max_suggestions = max_suggestions
        self.clock = clock

    def get_available_slots(
        self,
        owner_id: str,
        duration_minutes: int,
        range_start: datetime,
        range_end: datetime,
        step_minutes: Optional[int] = None,
        exclude_ids: Iterable = (),
    ) -> List[TimeSlot]:
        """
        Free slots for one owner inside [range_start, range_end).

        Slots come from the owner's available windows, keep each window's
        own grid, and drop any slot overlapping one of the owner's active
        interviews. Result is sorted by start and free of duplicates.
        """
        if duration_minutes <= 0:
            raise ValidationError("Duration must be positive", field='duration', value=duration_minutes)
        range_start = to_utc(range_start)
        range_end = to_utc(range_end)
        if range_start >= range_end:
            raise ValidationError(
                "Range start must be before range end",
                field='range',
                value=(range_start, range_end),
            )

        windows = self.availability_store.windows_for(owner_id, range_start, range_end)
        committed = self.interview_store.active_for_owner(
            owner_id, range_start, range_end, exclude_ids=exclude_ids
        )

        slots: Dict[Tuple[datetime, datetime], TimeSlot] = {}
        for window in windows:
            if not window.is_available:
                continue
            for slot in self.generator.generate(
                window, duration_minutes, step_minutes, until=range_end
            ):
                if slot.utc_start < range_start:
                    continue
                if ConflictDetector.has_conflict(slot, committed):
                    continue
                slots.setdefault(slot.key(), slot)

        available = sorted(slots.values(), key=lambda s: s.utc_start)
        logger.debug(
            f"Owner {owner_id}: {len(available)} free {duration_minutes}-minute slots "
            f"between {range_start.isoformat()} and {range_end.isoformat()}"
        )
        return available

    def mutual_slots(
        self,
        candidate_id: str,
        recruiter_id: str,
        duration_minutes: int,
        range_start: datetime,
        range_end: datetime,
        exclude_ids: Iterable = (),
    ) -> List[TimeSlot]:
        """Slots both the candidate and the recruiter have free."""
        exclude_ids = list(exclude_ids)
        candidate_slots = self.get_available_slots(
            candidate_id, duration_minutes, range_start, range_end, exclude_ids=exclude_ids
        )
        recruiter_slots = self.get_available_slots(
            recruiter_id, duration_minutes, range_start, range_end, exclude_ids=exclude_ids
        )
        return MutualAvailabilityResolver.intersect(candidate_slots, recruiter_slots)

    def suggest_times(
        self,
        candidate_id: str,
        recruiter_id: str,
        duration_minutes: int,
        exclude_slots: Iterable[TimeSlot] = (),
        exclude_ids: Iterable = (),
    ) -> List[TimeSlot]:
        """
        Alternative times for a request whose preferred slots all conflicted.

        Looks ``suggestion_days`` ahead from now and skips the rejected slots.
        """
        now = self.clock()
        excluded = {slot.key() for slot in exclude_slots}
        mutual = self.mutual_slots(
            candidate_id,
            recruiter_id,
            duration_minutes,
            now,
            now + timedelta(days=self.suggestion_days),
            exclude_ids=exclude_ids,
        )
        suggestions = [slot for slot in mutual if slot.key() not in excluded]
        return suggestions[:self.max_suggestions]

    def covered_by_availability(self, owner_id: str, slot: TimeSlot) -> bool:
        """Whether one of the owner's available windows contains the slot."""
        windows = self.availability_store.windows_for(owner_id, slot.utc_start, slot.utc_end)
        return any(window.is_available and window.covers(slot) for window in windows)
