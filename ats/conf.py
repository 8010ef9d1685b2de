"""
Settings access for the ATS app.

Project settings override these defaults key by key, so a deployment only
needs to list the values it changes.
"""

from django.conf import settings


SCHEDULING_DEFAULTS = {
    'SLOT_STEP_MINUTES': 30,
    'DEFAULT_DURATION_MINUTES': 45,
    'MAX_DURATION_MINUTES': 480,
    'MAX_PENDING_MINUTES': 15,
    'SUGGESTION_DAYS_AHEAD': 14,
    'MAX_SUGGESTIONS': 10,
    'REQUIRE_AVAILABILITY': False,
    'BOOKING_MAX_ATTEMPTS': 3,
    'BOOKING_BACKOFF_BASE_SECONDS': 0.5,
    'BOOKING_BACKOFF_MAX_SECONDS': 8,
    'BOOKING_BACKOFF_JITTER': True,
}

MATCHING_DEFAULTS = {
    'DEFAULT_MIN_SCORE': None,
    'CACHE_TIMEOUT': 600,
}


def scheduling_settings() -> dict:
    return {**SCHEDULING_DEFAULTS, **getattr(settings, 'HIREMATCH_SCHEDULING', {})}


def matching_settings() -> dict:
    return {**MATCHING_DEFAULTS, **getattr(settings, 'HIREMATCH_MATCHING', {})}


def scheduling_setting(name: str):
    return scheduling_settings()[name]
