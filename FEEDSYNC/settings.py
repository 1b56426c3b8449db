from pathlib import Path
import os
import dj_database_url
from decouple import config

BASE_DIR = Path(__file__).resolve().parent.parent

# Secret Key
SECRET_KEY = config('SECRET_KEY', default='feedsync-insecure-dev-key')

# Debug Mode
DEBUG = config('DEBUG', default=False, cast=bool)

# Allowed Hosts
ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1', cast=lambda v: [s.strip() for s in v.split(',')])


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    '_catalog',
    '_feed_import',
    ]


MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'FEEDSYNC.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]


# Database
# https://docs.djangoproject.com/en/5.1/ref/settings/#databases

DATABASES = {
    'default': dj_database_url.config(
        default=config('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}")
    )
}

# SQLite serialises writers; FeedImporter runs a single worker thread against it
if DATABASES['default']['ENGINE'] == 'django.db.backends.sqlite3':
    DATABASES['default'].setdefault('OPTIONS', {})['timeout'] = 20


# Internationalization
# https://docs.djangoproject.com/en/5.1/topics/i18n/

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'UTC'

USE_I18N = True

USE_TZ = True


# Static files (admin only)
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')
STATIC_URL = '/static/'

# Default primary key field type
# https://docs.djangoproject.com/en/5.1/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Feed import
IMPORT_WORKERS = config('IMPORT_WORKERS', default=4, cast=int)
IMPORT_HIGH_WATER = config('IMPORT_HIGH_WATER', default=1000, cast=int)
IMPORT_ERROR_DIR = config('IMPORT_ERROR_DIR', default=str(BASE_DIR / 'import_errors'))
IMPORT_SLUG_ATTEMPTS = config('IMPORT_SLUG_ATTEMPTS', default=100, cast=int)
IMPORT_RETRY_BACKOFF = config('IMPORT_RETRY_BACKOFF', default=0.005, cast=float)
IMPORT_UNIT_RETRIES = config('IMPORT_UNIT_RETRIES', default=2, cast=int)
IMPORT_LOG_LEVEL = config('IMPORT_LOG_LEVEL', default='INFO').upper()


LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'import': {
            'format': '%(asctime)s %(levelname)-8s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'import',
        },
    },
    'loggers': {
        '_catalog': {
            'handlers': ['console'],
            'level': IMPORT_LOG_LEVEL,
            'propagate': False,
        },
        '_feed_import': {
            'handlers': ['console'],
            'level': IMPORT_LOG_LEVEL,
            'propagate': False,
        },
    },
}
