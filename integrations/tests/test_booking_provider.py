"""
Booking Provider Tests - Cal.com client request building and error mapping

HTTP is stubbed at requests.Session.request; no network access happens.
"""

import json
from datetime import datetime, timedelta, timezone as dt_timezone
from unittest.mock import patch

import pytest
import requests

from ats.scheduling import TimeSlot
from integrations.providers import BookingProviderError, CalComBookingProvider
from integrations.providers.base import (
    RateLimitError,
    ServiceUnavailableError,
    is_transient_error,
)
from integrations.providers.booking import Attendee

START = datetime(2030, 5, 6, 14, 0, tzinfo=dt_timezone.utc)
SLOT = TimeSlot(start=START, end=START + timedelta(minutes=45), timezone='Europe/Paris')
ATTENDEES = [Attendee(name='Ada Lovelace', email='ada@example.com')]


def make_response(status_code=200, body=None, headers=None):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode('utf-8') if body is not None else b''
    response.headers.update(headers or {})
    return response


@pytest.fixture
def provider():
    return CalComBookingProvider(
        api_key='cal_test_key',
        event_type_id=42,
        api_base_url='https://booking.test/v1/',
    )


@pytest.fixture
def http():
    with patch.object(requests.Session, 'request') as mock_request:
        yield mock_request


@pytest.mark.integration
class TestCreateBooking:

    def test_request_payload(self, provider, http):
        http.return_value = make_response(200, {'booking': {'id': 9876, 'status': 'ACCEPTED'}})

        confirmation = provider.create_booking(SLOT, ATTENDEES, {'idempotency_key': 'interview-1'})

        kwargs = http.call_args.kwargs
        assert kwargs['method'] == 'POST'
        assert kwargs['url'] == 'https://booking.test/v1/bookings'
        assert kwargs['params'] == {'apiKey': 'cal_test_key'}
        assert kwargs['timeout'] == 10
        assert kwargs['json'] == {
            'eventTypeId': 42,
            'start': '2030-05-06T14:00:00+00:00',
            'end': '2030-05-06T14:45:00+00:00',
            'timeZone': 'Europe/Paris',
            'responses': {'name': 'Ada Lovelace', 'email': 'ada@example.com'},
            'metadata': {'idempotency_key': 'interview-1'},
            'language': 'en',
            'status': 'ACCEPTED',
        }

        assert confirmation.external_ref == '9876'
        assert confirmation.confirmed_slot == SLOT

    def test_uses_returned_times(self, provider, http):
        http.return_value = make_response(200, {
            'booking': {
                'uid': 'abc',
                'startTime': '2030-05-06T14:00:00.000Z',
                'endTime': '2030-05-06T14:45:00.000Z',
            },
        })

        confirmation = provider.create_booking(SLOT, ATTENDEES)

        assert confirmation.external_ref == 'abc'
        assert confirmation.confirmed_slot.key() == SLOT.key()

    def test_missing_event_type(self, http):
        provider = CalComBookingProvider(api_key='cal_test_key')

        with pytest.raises(BookingProviderError) as exc_info:
            provider.create_booking(SLOT, ATTENDEES)

        assert exc_info.value.retryable is False
        http.assert_not_called()

    def test_missing_api_key(self, http):
        provider = CalComBookingProvider(event_type_id=42)

        with pytest.raises(BookingProviderError) as exc_info:
            provider.create_booking(SLOT, ATTENDEES)

        assert exc_info.value.retryable is False
        http.assert_not_called()

    def test_response_without_id(self, provider, http):
        http.return_value = make_response(200, {'booking': {'status': 'ACCEPTED'}})

        with pytest.raises(BookingProviderError):
            provider.create_booking(SLOT, ATTENDEES)


@pytest.mark.integration
class TestErrorClassification:

    @pytest.mark.parametrize('status_code,retryable', [
        (500, True),
        (503, True),
        (429, True),
        (400, False),
        (401, False),
        (404, False),
    ])
    def test_http_status(self, provider, http, status_code, retryable):
        http.return_value = make_response(status_code, {'message': 'nope'})

        with pytest.raises(BookingProviderError) as exc_info:
            provider.create_booking(SLOT, ATTENDEES)

        assert exc_info.value.retryable is retryable
        assert exc_info.value.status_code == status_code

    @pytest.mark.parametrize('error', [
        requests.Timeout('read timed out'),
        requests.ConnectionError('connection refused'),
    ])
    def test_network_errors_are_retryable(self, provider, http, error):
        http.side_effect = error

        with pytest.raises(BookingProviderError) as exc_info:
            provider.create_booking(SLOT, ATTENDEES)

        assert exc_info.value.retryable is True
        assert exc_info.value.status_code is None

    def test_non_json_body(self, provider, http):
        response = make_response(200)
        response._content = b'<html>gateway</html>'
        http.return_value = response

        with pytest.raises(BookingProviderError) as exc_info:
            provider.create_booking(SLOT, ATTENDEES)

        assert exc_info.value.retryable is False

    def test_rate_limit_retry_after(self, provider, http):
        http.return_value = make_response(429, {}, headers={'Retry-After': '12'})

        with pytest.raises(RateLimitError) as exc_info:
            provider.make_request('GET', 'bookings')

        assert exc_info.value.retry_after == 12

    def test_transient_classification(self):
        assert is_transient_error(ServiceUnavailableError('down', status_code=502))
        assert not is_transient_error(ValueError('bad'))


@pytest.mark.integration
class TestCancelAndFind:

    def test_cancel_booking(self, provider, http):
        http.return_value = make_response(200, {'message': 'Booking successfully cancelled.'})

        provider.cancel_booking('9876', reason='Candidate withdrew')

        kwargs = http.call_args.kwargs
        assert kwargs['method'] == 'DELETE'
        assert kwargs['url'] == 'https://booking.test/v1/bookings/9876/cancel'
        assert kwargs['json'] == {'reason': 'Candidate withdrew'}

    def test_find_booking_by_idempotency_key(self, provider, http):
        http.return_value = make_response(200, {'bookings': [
            {
                'id': 1, 'status': 'CANCELLED',
                'metadata': {'idempotency_key': 'interview-7'},
                'startTime': '2030-05-06T14:00:00Z', 'endTime': '2030-05-06T14:45:00Z',
            },
            {
                'id': 2, 'status': 'ACCEPTED',
                'metadata': {'idempotency_key': 'interview-8'},
                'startTime': '2030-05-06T15:00:00Z', 'endTime': '2030-05-06T15:45:00Z',
            },
            {
                'id': 3, 'status': 'ACCEPTED',
                'metadata': {'idempotency_key': 'interview-7'},
                'startTime': '2030-05-06T14:00:00Z', 'endTime': '2030-05-06T14:45:00Z',
            },
        ]})

        found = provider.find_booking('interview-7')

        assert found.external_ref == '3'
        assert found.confirmed_slot.utc_start == START
        assert http.call_args.kwargs['params'] == {'apiKey': 'cal_test_key', 'eventTypeId': 42}

    def test_find_booking_missing(self, provider, http):
        http.return_value = make_response(200, {'bookings': []})

        assert provider.find_booking('interview-404') is None

    def test_connection_check(self, provider, http):
        http.return_value = make_response(401, {'message': 'invalid key'})

        ok, message = provider.test_connection()

        assert ok is False
        assert message.startswith('Authentication failed')


@pytest.mark.integration
class TestProviderSettings:

    def test_from_settings(self, settings):
        settings.BOOKING_PROVIDER = {
            'API_BASE_URL': 'https://cal.example.com/api/v1',
            'API_KEY': 'cal_live_x',
            'EVENT_TYPE_ID': 7,
            'REQUEST_TIMEOUT': 3,
        }

        provider = CalComBookingProvider.from_settings()

        assert provider.api_base_url == 'https://cal.example.com/api/v1'
        assert provider.event_type_id == 7
        assert provider.request_timeout == 3

    def test_session_headers(self, provider):
        assert provider.session.headers['Accept'] == 'application/json'
        assert provider.session.headers['User-Agent'].startswith('HireMatch/')
