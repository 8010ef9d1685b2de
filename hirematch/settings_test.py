"""
Django Test Settings for HireMatch Project

This module contains test-specific settings that override the main settings
for faster and more isolated test execution.

Usage:
    pytest --ds=hirematch.settings_test
"""

from .settings import *  # noqa: F401, F403

# =============================================================================
# TEST ENVIRONMENT CONFIGURATION
# =============================================================================

DEBUG = False
TESTING = True

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================

# No PostgreSQL-specific features are used, so tests run on SQLite
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

# =============================================================================
# CACHING CONFIGURATION
# =============================================================================

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'hirematch-test',
    },
}

# =============================================================================
# CELERY CONFIGURATION
# =============================================================================

# Execute tasks synchronously during tests
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

# Minimal logging during tests
LOGGING = {
    'version': 1,
    'disable_existing_loggers': True,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'root': {
        'handlers': ['null'],
        'level': 'CRITICAL',
    },
    'loggers': {
        'django': {
            'handlers': ['null'],
            'level': 'CRITICAL',
            'propagate': False,
        },
        'django.db.backends': {
            'handlers': ['null'],
            'level': 'CRITICAL',
            'propagate': False,
        },
    },
}

# =============================================================================
# THIRD-PARTY SERVICE MOCKING
# =============================================================================

BOOKING_PROVIDER = {
    'API_BASE_URL': 'https://booking.test/v1',
    'API_KEY': 'cal_test_mock_key_for_testing',
    'EVENT_TYPE_ID': 42,
    'REQUEST_TIMEOUT': 5,
}

# No sleeping between booking retries in tests
HIREMATCH_SCHEDULING = {
    **HIREMATCH_SCHEDULING,
    'BOOKING_BACKOFF_BASE_SECONDS': 0,
    'BOOKING_BACKOFF_MAX_SECONDS': 0,
    'BOOKING_BACKOFF_JITTER': False,
}
