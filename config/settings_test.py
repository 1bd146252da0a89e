"""
Settings for the test suite.

Supplies environment defaults before the main settings module reads them,
then swaps in an in-memory database.
"""
import os

os.environ.setdefault('SECRET_KEY', 'test-secret-key-for-accredit-suite-only')
os.environ.setdefault('JWT_SECRET_KEY', 'Jw7-test-KEY_9fQ2xLm4Rb8vTz1Yc6Hn3Pd5Sg0Ak')
os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('DEBUG', 'True')

from config.settings import *  # noqa: E402,F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
}

# Tests opt in to the developer bypass through override_settings
DEV_AUTH_ENABLED = False
DEV_API_TOKEN = 'dev-token-for-tests'

SENTRY_DSN = None
LOG_LEVEL = 'WARNING'
LOGGING['handlers']['console']['level'] = LOG_LEVEL  # noqa: F405
