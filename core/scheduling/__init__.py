"""
Core scheduling module shared by matching and interview booking.

Author: HireMatch Team
"""

from .exceptions import (
    SchedulingError,
    ValidationError,
    InvalidStatusTransition,
    NotFoundError,
    ConflictError,
    ExternalServiceError,
)
from .retry import RetryPolicy, RetryExhausted, call_with_retry
from .utils import (
    validate_timezone,
    ensure_aware,
    to_utc,
    validate_time_slot,
    intervals_overlap,
    iter_time_slots,
    count_time_slots,
)

__all__ = [
    # Exceptions
    'SchedulingError',
    'ValidationError',
    'InvalidStatusTransition',
    'NotFoundError',
    'ConflictError',
    'ExternalServiceError',
    # Retry
    'RetryPolicy',
    'RetryExhausted',
    'call_with_retry',
    # Utils
    'validate_timezone',
    'ensure_aware',
    'to_utc',
    'validate_time_slot',
    'intervals_overlap',
    'iter_time_slots',
    'count_time_slots',
]
