"""
Test settings. SQLite, console logging only.

The test database is a file so threaded tests get real connections; writers
open IMMEDIATE transactions and wait on the lock instead of failing.
"""

import os
import tempfile

from .base import *

DEPLOYMENT_MODE = 'test'

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'OPTIONS': {
            'timeout': 20,
            'transaction_mode': 'IMMEDIATE',
        },
        'TEST': {
            'NAME': os.path.join(tempfile.gettempdir(), 'kitchen_stock_test.sqlite3'),
        },
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'json': {
            'class': 'pythonjsonlogger.json.JsonFormatter',
            'format': '%(asctime)s %(levelname)s %(name)s %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'json',
            'level': 'WARNING',
        },
    },
    'loggers': {
        'ledger': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': True,
        },
    },
}
