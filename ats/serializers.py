"""
ATS Serializers - request validation and result rendering for
matching and interview booking.

Request serializers validate raw payloads and build the value objects the
services take (TimeSlot, ScheduleRequest). Results are rendered with the
model serializer below or with the results' own to_dict().
"""

from rest_framework import serializers

from core.scheduling.utils import validate_timezone
from ats.booking import ScheduleRequest
from ats.conf import scheduling_setting
from ats.models import ScheduledInterview
from ats.scheduling import TimeSlot


# =============================================================================
# TIME SLOTS
# =============================================================================

class TimeSlotSerializer(serializers.Serializer):
    """A single [start, end) slot. Naive datetimes are read as UTC."""
    start = serializers.DateTimeField(help_text="Slot start (ISO 8601)")
    end = serializers.DateTimeField(help_text="Slot end (ISO 8601)")
    timezone = serializers.CharField(
        max_length=50,
        default='UTC',
        help_text="IANA timezone the slot is displayed in"
    )

    def validate_timezone(self, value):
        if not validate_timezone(value):
            raise serializers.ValidationError(f"Invalid timezone: {value}")
        return value

    def validate(self, data):
        if data['start'] >= data['end']:
            raise serializers.ValidationError({'end': "End must be after start."})
        return data

    @staticmethod
    def to_time_slot(data) -> TimeSlot:
        return TimeSlot(start=data['start'], end=data['end'], timezone=data.get('timezone', 'UTC'))


# =============================================================================
# SCHEDULING REQUESTS
# =============================================================================

class ScheduleInterviewRequestSerializer(serializers.Serializer):
    """
    Schedule an interview at the first workable preferred slot.

    Every preferred slot must last exactly ``duration_minutes``.
    """
    job_id = serializers.UUIDField(help_text="Job the interview is for")
    candidate_id = serializers.UUIDField(help_text="Candidate to interview")
    recruiter_id = serializers.CharField(max_length=64, help_text="Recruiter conducting the interview")
    preferred_slots = TimeSlotSerializer(many=True, help_text="Slots in order of preference")
    duration_minutes = serializers.IntegerField(
        min_value=1,
        required=False,
        help_text="Interview length in minutes"
    )
    timezone = serializers.CharField(max_length=50, default='UTC')
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_preferred_slots(self, value):
        if not value:
            raise serializers.ValidationError("At least one preferred slot is required.")
        return value

    def validate_timezone(self, value):
        if not validate_timezone(value):
            raise serializers.ValidationError(f"Invalid timezone: {value}")
        return value

    def validate(self, data):
        """Validate durations against the slots."""
        errors = {}

        duration = data.get('duration_minutes') or scheduling_setting('DEFAULT_DURATION_MINUTES')
        max_duration = scheduling_setting('MAX_DURATION_MINUTES')
        if duration > max_duration:
            errors['duration_minutes'] = f"Duration cannot exceed {max_duration} minutes."

        for index, slot in enumerate(data.get('preferred_slots', [])):
            length = (slot['end'] - slot['start']).total_seconds() / 60
            if length != duration:
                errors['preferred_slots'] = (
                    f"Slot {index + 1} lasts {int(length)} minutes, expected {duration}."
                )
                break

        if errors:
            raise serializers.ValidationError(errors)

        data['duration_minutes'] = duration
        return data

    def to_request(self) -> ScheduleRequest:
        data = self.validated_data
        return ScheduleRequest(
            job_id=data['job_id'],
            candidate_id=data['candidate_id'],
            recruiter_id=data['recruiter_id'],
            preferred_slots=[TimeSlotSerializer.to_time_slot(s) for s in data['preferred_slots']],
            duration_minutes=data['duration_minutes'],
            timezone=data['timezone'],
            notes=data.get('notes', ''),
        )


class RescheduleRequestSerializer(serializers.Serializer):
    """Move a confirmed interview to a new slot."""
    new_slot = TimeSlotSerializer()
    reason = serializers.CharField(required=False, allow_blank=True, default='')

    def to_time_slot(self) -> TimeSlot:
        return TimeSlotSerializer.to_time_slot(self.validated_data['new_slot'])


class AvailableSlotQuerySerializer(serializers.Serializer):
    """
    Query parameters for finding an owner's free slots.
    """
    owner_id = serializers.CharField(max_length=64)
    duration_minutes = serializers.IntegerField(min_value=1, required=False)
    range_start = serializers.DateTimeField(help_text="Start of the range to search")
    range_end = serializers.DateTimeField(help_text="End of the range to search")

    def validate(self, data):
        if data['range_start'] >= data['range_end']:
            raise serializers.ValidationError({'range_end': "range_end must be after range_start."})
        data.setdefault('duration_minutes', scheduling_setting('DEFAULT_DURATION_MINUTES'))
        return data


# =============================================================================
# RESULTS
# =============================================================================

class ScheduledInterviewSerializer(serializers.ModelSerializer):
    """Read-only rendering of a scheduled interview."""
    job_id = serializers.UUIDField(read_only=True)
    candidate_id = serializers.UUIDField(read_only=True)
    rescheduled_from_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = ScheduledInterview
        fields = [
            'id', 'job_id', 'candidate_id', 'recruiter_id',
            'start_time', 'end_time', 'timezone', 'status',
            'external_booking_ref', 'failure_reason', 'rescheduled_from_id',
            'confirmed_at', 'cancelled_at', 'created_at',
        ]
        read_only_fields = fields
