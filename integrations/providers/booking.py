"""
Booking Integration Providers

Implements the external booking service used to confirm interviews:
- Cal.com (REST API v1)

Provider failures are translated into BookingProviderError, which tells the
caller whether repeating the call may help.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings

from core.scheduling.utils import to_utc
from ats.scheduling import TimeSlot
from .base import (
    AuthenticationError,
    BookingProvider,
    ConfigurationError,
    IntegrationError,
    is_transient_error,
)

logger = logging.getLogger(__name__)


class BookingProviderError(Exception):
    """
    External booking call failed.

    Attributes:
        retryable: True for timeouts, connection errors, 5xx and 429
        status_code: HTTP status if the provider answered
    """

    def __init__(self, message: str, retryable: bool = False, status_code: int = None):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code

    @classmethod
    def from_integration_error(cls, error: IntegrationError) -> 'BookingProviderError':
        return cls(
            str(error),
            retryable=is_transient_error(error),
            status_code=getattr(error, 'status_code', None),
        )


@dataclass(frozen=True)
class Attendee:
    name: str
    email: str
    timezone: str = 'UTC'


@dataclass(frozen=True)
class BookingConfirmation:
    """Booking accepted by the provider."""
    external_ref: str
    confirmed_slot: TimeSlot
    status: str = 'ACCEPTED'


def _parse_datetime(value: str) -> datetime:
    return to_utc(datetime.fromisoformat(value.replace('Z', '+00:00')))


class CalComBookingProvider(BookingProvider):
    """
    Cal.com booking provider.
    Uses the Cal.com API v1 with the API key passed as a query parameter.
    """

    provider_name = 'cal_com'
    display_name = 'Cal.com'

    api_base_url = 'https://api.cal.com/v1'
    request_timeout = 10

    def __init__(self, api_key: str = '', event_type_id: int = None, **kwargs):
        super().__init__(api_key=api_key, **kwargs)
        self.event_type_id = event_type_id

    @classmethod
    def from_settings(cls, config: Dict[str, Any] = None) -> 'CalComBookingProvider':
        config = config if config is not None else getattr(settings, 'BOOKING_PROVIDER', {})
        return cls(
            api_key=config.get('API_KEY', ''),
            event_type_id=config.get('EVENT_TYPE_ID'),
            api_base_url=config.get('API_BASE_URL'),
            request_timeout=config.get('REQUEST_TIMEOUT'),
        )

    def get_headers(self) -> Dict[str, str]:
        return {'Content-Type': 'application/json'}

    def get_auth_params(self) -> Dict[str, str]:
        return {'apiKey': self.get_credentials()['api_key']}

    def test_connection(self) -> Tuple[bool, str]:
        """Test Cal.com connection by fetching the API key's user."""
        try:
            self.make_request('GET', 'me')
            return True, "Successfully connected to Cal.com"
        except AuthenticationError as e:
            return False, f"Authentication failed: {str(e)}"
        except IntegrationError as e:
            return False, f"Connection error: {str(e)}"

    def _call(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.make_request(method, endpoint, **kwargs)
        except ConfigurationError as e:
            raise BookingProviderError(str(e), retryable=False)
        except IntegrationError as e:
            raise BookingProviderError.from_integration_error(e)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            raise BookingProviderError(
                f"Cal.com returned a non-JSON body ({response.status_code})",
                retryable=False,
                status_code=response.status_code,
            )

    def create_booking(
        self,
        slot: TimeSlot,
        attendees: List[Attendee],
        metadata: Dict[str, Any] = None,
    ) -> BookingConfirmation:
        """
        Create a booking for the slot.

        The first attendee fills the booking form; ``metadata`` is stored on
        the booking and carries the idempotency key used by find_booking().

        Raises:
            BookingProviderError: On any failure
        """
        if self.event_type_id is None:
            raise BookingProviderError("Cal.com event type is not configured", retryable=False)
        if not attendees:
            raise BookingProviderError("At least one attendee is required", retryable=False)

        primary = attendees[0]
        payload = {
            'eventTypeId': self.event_type_id,
            'start': slot.utc_start.isoformat(),
            'end': slot.utc_end.isoformat(),
            'timeZone': slot.timezone,
            'responses': {
                'name': primary.name,
                'email': primary.email,
            },
            'metadata': metadata or {},
            'language': 'en',
            'status': 'ACCEPTED',
        }

        data = self._call('POST', 'bookings', data=payload)
        booking = data.get('booking') or data
        confirmation = self._to_confirmation(booking, slot)
        logger.info(f"Cal.com booking {confirmation.external_ref} created for {slot.utc_start.isoformat()}")
        return confirmation

    def cancel_booking(self, external_ref: str, reason: str = '') -> None:
        """
        Raises:
            BookingProviderError: On any failure
        """
        self._call('DELETE', f'bookings/{external_ref}/cancel', data={'reason': reason})
        logger.info(f"Cal.com booking {external_ref} cancelled")

    def find_booking(self, idempotency_key: str) -> Optional[BookingConfirmation]:
        """
        Find a live booking created with ``idempotency_key``.

        Returns:
            BookingConfirmation, or None if no such booking exists
        """
        params = {}
        if self.event_type_id is not None:
            params['eventTypeId'] = self.event_type_id
        data = self._call('GET', 'bookings', params=params)

        for booking in data.get('bookings') or []:
            metadata = booking.get('metadata') or {}
            if metadata.get('idempotency_key') != idempotency_key:
                continue
            if str(booking.get('status', '')).upper() in ('CANCELLED', 'REJECTED'):
                continue
            return self._to_confirmation(booking)
        return None

    @staticmethod
    def _to_confirmation(booking: Dict[str, Any], requested: TimeSlot = None) -> BookingConfirmation:
        booking_id = booking.get('id') or booking.get('uid')
        if booking_id is None:
            raise BookingProviderError("Cal.com response has no booking id", retryable=False)

        timezone_name = requested.timezone if requested else 'UTC'
        if booking.get('startTime') and booking.get('endTime'):
            confirmed = TimeSlot(
                start=_parse_datetime(booking['startTime']),
                end=_parse_datetime(booking['endTime']),
                timezone=timezone_name,
            )
        elif requested is not None:
            confirmed = requested
        else:
            raise BookingProviderError("Cal.com response has no booking times", retryable=False)

        return BookingConfirmation(
            external_ref=str(booking_id),
            confirmed_slot=confirmed,
            status=str(booking.get('status', 'ACCEPTED')),
        )
