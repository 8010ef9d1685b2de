# Integration Providers Package
# Contains provider implementations for third-party services

from .base import (
    BaseIntegrationProvider,
    BookingProvider,
    IntegrationError,
    is_transient_error,
)
from .booking import (
    Attendee,
    BookingConfirmation,
    BookingProviderError,
    CalComBookingProvider,
)

__all__ = [
    'BaseIntegrationProvider',
    'BookingProvider',
    'IntegrationError',
    'is_transient_error',
    'Attendee',
    'BookingConfirmation',
    'BookingProviderError',
    'CalComBookingProvider',
]
