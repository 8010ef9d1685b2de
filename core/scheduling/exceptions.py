"""
Scheduling Exceptions for HireMatch

Error taxonomy shared by matching and booking:
- ValidationError: malformed input, never retried
- NotFoundError: unknown candidate, job, owner or interview
- ConflictError: slot already committed or duplicate request
- ExternalServiceError: booking provider failure, optionally retryable

Author: HireMatch Team
"""


class SchedulingError(Exception):
    """Base class for all matching and scheduling errors."""

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__
        super().__init__(self.message)

    def __str__(self):
        return self.message


class ValidationError(SchedulingError, ValueError):
    """
    Raised for malformed time ranges, zero-length windows, duration
    mismatches and invalid status transitions.

    Attributes:
        field: Name of the offending input field, if known.
        value: The rejected value.
    """

    def __init__(self, message: str, field: str = None, value=None):
        self.field = field
        self.value = value
        super().__init__(message)


class InvalidStatusTransition(ValidationError):
    """Raised when an interview is moved to a status its state forbids."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot transition interview from '{current}' to '{target}'",
            field='status',
            value=target,
        )


class NotFoundError(SchedulingError):
    """Raised when a candidate, job, owner or interview does not exist."""

    def __init__(self, resource: str, resource_id):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} '{resource_id}' not found")


class ConflictError(SchedulingError):
    """
    Raised when a slot is already committed or an identical request is
    already in flight.

    Attributes:
        interview_id: Identity of the conflicting interview, if any.
        conflicts: ConflictReport list describing every rejected slot.
    """

    def __init__(self, message: str, interview_id=None, conflicts=None):
        self.interview_id = interview_id
        self.conflicts = list(conflicts or [])
        super().__init__(message)


class ExternalServiceError(SchedulingError):
    """
    Raised when the external booking service fails.

    Attributes:
        retryable: Whether the failure was transient (timeout, 5xx, 429).
        interview_id: Interview whose booking failed, if any.
        attempts: Number of calls made before giving up.
        report: ConflictReport for the slot that could not be booked.
    """

    def __init__(self, message: str, retryable: bool = False, interview_id=None, attempts: int = 0, report=None):
        self.retryable = retryable
        self.interview_id = interview_id
        self.attempts = attempts
        self.report = report
        super().__init__(message)
