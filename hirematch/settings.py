"""
Django Settings for HireMatch Project

Candidate matching and interview booking core. Values are read from the
environment so the same module serves development and production; tests
use hirematch.settings_test.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

# =============================================================================
# CORE SETTINGS
# =============================================================================

SECRET_KEY = os.environ.get('SECRET_KEY', 'django-insecure-hirematch-dev-key')
DEBUG = os.environ.get('DEBUG', 'False').lower() in ('1', 'true', 'yes')
ALLOWED_HOSTS = [h for h in os.environ.get('ALLOWED_HOSTS', 'localhost').split(',') if h]

VERSION = '1.0.0'

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'rest_framework',
    'core',
    'ats',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = None

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.environ.get('DB_NAME', 'hirematch'),
        'USER': os.environ.get('DB_USER', 'postgres'),
        'PASSWORD': os.environ.get('DB_PASSWORD', ''),
        'HOST': os.environ.get('DB_HOST', 'localhost'),
        'PORT': os.environ.get('DB_PORT', '5432'),
        'ATOMIC_REQUESTS': False,
    }
}

# =============================================================================
# INTERNATIONALIZATION
# =============================================================================

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# =============================================================================
# CACHING CONFIGURATION
# =============================================================================

REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379')

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.redis.RedisCache',
        'LOCATION': f'{REDIS_URL}/1',
        'KEY_PREFIX': 'hirematch',
    },
}

# =============================================================================
# CELERY CONFIGURATION
# =============================================================================

CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', f'{REDIS_URL}/0')
CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', f'{REDIS_URL}/0')
CELERY_TASK_ALWAYS_EAGER = False

# =============================================================================
# REST FRAMEWORK
# =============================================================================

REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DATETIME_FORMAT': 'iso-8601',
}

# =============================================================================
# MATCHING & SCHEDULING CONFIGURATION
# =============================================================================

HIREMATCH_MATCHING = {
    # Minimum score applied after ranking when the caller passes none
    'DEFAULT_MIN_SCORE': None,
    # Seconds a per-pair match result stays cached
    'CACHE_TIMEOUT': int(os.environ.get('MATCH_CACHE_TIMEOUT', 600)),
}

HIREMATCH_SCHEDULING = {
    'SLOT_STEP_MINUTES': 30,
    'DEFAULT_DURATION_MINUTES': 45,
    'MAX_DURATION_MINUTES': 480,
    'MAX_PENDING_MINUTES': int(os.environ.get('BOOKING_MAX_PENDING_MINUTES', 15)),
    'SUGGESTION_DAYS_AHEAD': 14,
    'MAX_SUGGESTIONS': 10,
    'REQUIRE_AVAILABILITY': False,
    'BOOKING_MAX_ATTEMPTS': int(os.environ.get('BOOKING_MAX_ATTEMPTS', 3)),
    'BOOKING_BACKOFF_BASE_SECONDS': 0.5,
    'BOOKING_BACKOFF_MAX_SECONDS': 8,
    'BOOKING_BACKOFF_JITTER': True,
}

# =============================================================================
# EXTERNAL BOOKING PROVIDER
# =============================================================================

BOOKING_PROVIDER = {
    'API_BASE_URL': os.environ.get('CAL_COM_API_URL', 'https://api.cal.com/v1'),
    'API_KEY': os.environ.get('CAL_COM_API_KEY', ''),
    'EVENT_TYPE_ID': int(os.environ['CAL_COM_EVENT_TYPE_ID']) if os.environ.get('CAL_COM_EVENT_TYPE_ID') else None,
    'REQUEST_TIMEOUT': int(os.environ.get('CAL_COM_REQUEST_TIMEOUT', 10)),
}

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
        'security_console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'ats': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'core': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'integrations': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'security.ats.booking': {
            'handlers': ['security_console'],
            'level': 'INFO',
            'propagate': False,
        },
        'celery': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
