"""
HireMatch Test Configuration - pytest fixtures and factories

This module provides:
- pytest-django configuration (settings: hirematch.settings_test)
- factory_boy factories for jobs, candidates, availability and interviews
- A scripted in-memory booking provider
- Orchestrator/service fixtures wired with in-process collaborators

RUNNING TESTS:
# Run all tests
pytest -v

# Run by marker
pytest -m scoring -v
pytest -m scheduling -v
pytest -m booking -v
pytest -m integration -v
"""

import pytest
import uuid
from datetime import timedelta
from django.utils import timezone

import factory
from factory.django import DjangoModelFactory

from core.scheduling.retry import RetryPolicy
from integrations.providers.booking import BookingConfirmation, BookingProviderError


# ============================================================================
# TIME HELPERS
# ============================================================================

def day_start(days_ahead=2):
    """Midnight UTC ``days_ahead`` days from now."""
    now = timezone.now()
    return now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=days_ahead)


# ============================================================================
# PROFILE FACTORIES
# ============================================================================

class JobPostingFactory(DjangoModelFactory):
    """Factory for JobPosting model."""

    class Meta:
        model = 'ats.JobPosting'

    title = factory.Faker('job')
    recruiter_id = factory.Sequence(lambda n: f"recruiter-{n}")
    required_skills = factory.LazyFunction(lambda: [{'name': 'Python'}, {'name': 'Django'}])
    preferred_skills = factory.LazyFunction(list)


class CandidateProfileFactory(DjangoModelFactory):
    """Factory for CandidateProfile model."""

    class Meta:
        model = 'ats.CandidateProfile'

    name = factory.Faker('name')
    email = factory.Faker('email')
    timezone = 'UTC'
    skills = factory.LazyFunction(lambda: [{'name': 'Python', 'proficiency': 'expert'}])


# ============================================================================
# SCHEDULING FACTORIES
# ============================================================================

class AvailabilityWindowFactory(DjangoModelFactory):
    """Factory for AvailabilityWindow model, 09:00-17:00 two days ahead."""

    class Meta:
        model = 'ats.AvailabilityWindow'

    owner_id = factory.LazyFunction(lambda: f"owner-{uuid.uuid4().hex[:8]}")
    start_time = factory.LazyFunction(lambda: day_start() + timedelta(hours=9))
    end_time = factory.LazyAttribute(lambda o: o.start_time + timedelta(hours=8))
    timezone = 'UTC'
    status = 'available'


class ScheduledInterviewFactory(DjangoModelFactory):
    """Factory for ScheduledInterview model, confirmed 10:00-11:00 two days ahead."""

    class Meta:
        model = 'ats.ScheduledInterview'

    job = factory.SubFactory(JobPostingFactory)
    candidate = factory.SubFactory(CandidateProfileFactory)
    recruiter_id = factory.LazyAttribute(lambda o: o.job.recruiter_id)
    start_time = factory.LazyFunction(lambda: day_start() + timedelta(hours=10))
    end_time = factory.LazyAttribute(lambda o: o.start_time + timedelta(hours=1))
    timezone = 'UTC'
    status = 'confirmed'
    external_booking_ref = factory.Sequence(lambda n: f"{1000 + n}")
    reserved_until = None


# ============================================================================
# BOOKING PROVIDER DOUBLE
# ============================================================================

class FakeBookingProvider:
    """
    Scripted stand-in for the external booking service.

    ``outcomes`` is consumed one entry per create_booking call: an exception
    instance is raised, anything else means success. When empty, calls
    succeed.
    """

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.created = []
        self.cancelled = []
        self.bookings = {}
        self.cancel_error = None
        self.on_create = None
        self._next_ref = 5000

    def create_booking(self, slot, attendees, metadata=None):
        self.created.append({'slot': slot, 'attendees': attendees, 'metadata': metadata or {}})
        if self.on_create is not None:
            self.on_create(slot, metadata)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
        self._next_ref += 1
        confirmation = BookingConfirmation(external_ref=str(self._next_ref), confirmed_slot=slot)
        key = (metadata or {}).get('idempotency_key')
        if key:
            self.bookings[key] = confirmation
        return confirmation

    def cancel_booking(self, external_ref, reason=''):
        if self.cancel_error is not None:
            raise self.cancel_error
        self.cancelled.append((external_ref, reason))

    def find_booking(self, idempotency_key):
        return self.bookings.get(idempotency_key)


def transient_error(message="Service unavailable"):
    return BookingProviderError(message, retryable=True, status_code=503)


def permanent_error(message="Bad request"):
    return BookingProviderError(message, retryable=False, status_code=400)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def job_factory(db):
    return JobPostingFactory


@pytest.fixture
def candidate_factory(db):
    return CandidateProfileFactory


@pytest.fixture
def availability_factory(db):
    return AvailabilityWindowFactory


@pytest.fixture
def interview_factory(db):
    return ScheduledInterviewFactory


@pytest.fixture
def base_day():
    """Midnight UTC two days ahead; slots built from it are in the future."""
    return day_start()


@pytest.fixture
def job(db):
    return JobPostingFactory(recruiter_id='recruiter-1')


@pytest.fixture
def candidate(db):
    return CandidateProfileFactory(name='Ada Lovelace', email='ada@example.com')


@pytest.fixture
def booking_provider():
    return FakeBookingProvider()


@pytest.fixture
def retry_policy():
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0, jitter=False)


@pytest.fixture
def interview_store():
    from ats.stores import InterviewStore
    return InterviewStore()


@pytest.fixture
def availability_service(interview_store):
    from ats.scheduling import AvailabilityService
    from ats.stores import AvailabilityStore
    return AvailabilityService(AvailabilityStore(), interview_store, step_minutes=30)


@pytest.fixture
def orchestrator(db, interview_store, availability_service, booking_provider, retry_policy):
    from ats.booking import BookingOrchestrator
    from ats.stores import ProfileStore
    return BookingOrchestrator(
        interview_store=interview_store,
        profile_store=ProfileStore(),
        availability_service=availability_service,
        provider=booking_provider,
        retry_policy=retry_policy,
        sleep=lambda seconds: None,
    )
