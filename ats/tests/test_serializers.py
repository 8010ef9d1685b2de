"""
ATS Serializer Tests - request payload validation
"""

from datetime import datetime, timedelta, timezone as dt_timezone

import pytest

from ats.scheduling import TimeSlot
from ats.serializers import (
    AvailableSlotQuerySerializer,
    RescheduleRequestSerializer,
    ScheduleInterviewRequestSerializer,
    ScheduledInterviewSerializer,
    TimeSlotSerializer,
)

START = datetime(2030, 5, 6, 14, 0, tzinfo=dt_timezone.utc)


def slot_payload(start=START, minutes=45, tz='UTC'):
    return {
        'start': start.isoformat(),
        'end': (start + timedelta(minutes=minutes)).isoformat(),
        'timezone': tz,
    }


def schedule_payload(**overrides):
    data = {
        'job_id': '6f1c2b7e-4d1a-4a52-9d55-0b1e2f3a4b5c',
        'candidate_id': '0a9b8c7d-6e5f-4a3b-8c2d-1e0f9a8b7c6d',
        'recruiter_id': 'recruiter-1',
        'preferred_slots': [slot_payload()],
    }
    data.update(overrides)
    return data


@pytest.mark.booking
class TestTimeSlotSerializer:

    def test_valid(self):
        serializer = TimeSlotSerializer(data=slot_payload(tz='America/Toronto'))

        assert serializer.is_valid(), serializer.errors
        slot = TimeSlotSerializer.to_time_slot(serializer.validated_data)
        assert isinstance(slot, TimeSlot)
        assert slot.timezone == 'America/Toronto'
        assert slot.utc_start == START

    def test_end_before_start(self):
        data = {'start': START.isoformat(), 'end': (START - timedelta(hours=1)).isoformat()}
        serializer = TimeSlotSerializer(data=data)

        assert not serializer.is_valid()
        assert 'end' in serializer.errors

    def test_invalid_timezone(self):
        serializer = TimeSlotSerializer(data=slot_payload(tz='Atlantis/Capital'))

        assert not serializer.is_valid()
        assert 'timezone' in serializer.errors


@pytest.mark.booking
class TestScheduleInterviewRequestSerializer:

    def test_defaults_duration_from_settings(self):
        serializer = ScheduleInterviewRequestSerializer(data=schedule_payload())

        assert serializer.is_valid(), serializer.errors
        request = serializer.to_request()
        assert request.duration_minutes == 45
        assert request.recruiter_id == 'recruiter-1'
        assert request.preferred_slots[0].utc_start == START
        assert str(request.job_id) == '6f1c2b7e-4d1a-4a52-9d55-0b1e2f3a4b5c'

    def test_slot_length_must_match_duration(self):
        serializer = ScheduleInterviewRequestSerializer(
            data=schedule_payload(duration_minutes=60)
        )

        assert not serializer.is_valid()
        assert 'preferred_slots' in serializer.errors

    def test_duration_limit(self):
        payload = schedule_payload(
            duration_minutes=600,
            preferred_slots=[slot_payload(minutes=600)],
        )
        serializer = ScheduleInterviewRequestSerializer(data=payload)

        assert not serializer.is_valid()
        assert 'duration_minutes' in serializer.errors

    def test_requires_slots(self):
        serializer = ScheduleInterviewRequestSerializer(data=schedule_payload(preferred_slots=[]))

        assert not serializer.is_valid()
        assert 'preferred_slots' in serializer.errors

    def test_rejects_bad_ids(self):
        serializer = ScheduleInterviewRequestSerializer(data=schedule_payload(job_id='not-a-uuid'))

        assert not serializer.is_valid()
        assert 'job_id' in serializer.errors


@pytest.mark.booking
class TestOtherRequestSerializers:

    def test_reschedule(self):
        serializer = RescheduleRequestSerializer(data={'new_slot': slot_payload(), 'reason': 'Moved'})

        assert serializer.is_valid(), serializer.errors
        assert serializer.to_time_slot().duration_minutes == 45

    def test_available_slot_query(self):
        serializer = AvailableSlotQuerySerializer(data={
            'owner_id': 'recruiter-1',
            'range_start': START.isoformat(),
            'range_end': (START + timedelta(days=1)).isoformat(),
        })

        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data['duration_minutes'] == 45

    def test_available_slot_query_inverted_range(self):
        serializer = AvailableSlotQuerySerializer(data={
            'owner_id': 'recruiter-1',
            'range_start': START.isoformat(),
            'range_end': START.isoformat(),
        })

        assert not serializer.is_valid()
        assert 'range_end' in serializer.errors


@pytest.mark.booking
@pytest.mark.django_db
class TestScheduledInterviewSerializer:

    def test_renders_interview(self, interview_factory):
        interview = interview_factory()

        data = ScheduledInterviewSerializer(interview).data

        assert data['id'] == str(interview.id)
        assert data['job_id'] == str(interview.job_id)
        assert data['status'] == 'confirmed'
        assert data['rescheduled_from_id'] is None
