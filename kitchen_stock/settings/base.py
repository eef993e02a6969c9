"""
Base settings for kitchen_stock project.
Shared between local (branch) and cloud deployments.
"""

from pathlib import Path
import os

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-k1tch3n-st0ck-l3dg3r-ch4ng3-m3-1n-pr0duct10n')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', '*').split(',')


# Application definition
INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'catalog',
    'ledger',
]


# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'UTC')
USE_I18N = True
USE_TZ = True


# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# =============================================================================
# STOCK LEDGER
# =============================================================================
# Reference ids look like ORDER-001; padding is a minimum width, never a cap.
STOCK_LEDGER = {
    'REFERENCE_PREFIX': os.getenv('STOCK_REFERENCE_PREFIX', 'ORDER'),
    'REFERENCE_PADDING': int(os.getenv('STOCK_REFERENCE_PADDING', '3')),
}
