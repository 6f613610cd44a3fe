"""
Django settings for core project.
"""
from pathlib import Path
import os
import dj_database_url

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get('SECRET_KEY', 'django-insecure-dev-key-change-in-prod')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.environ.get('DEBUG', 'True') == 'True'

# API robustness: Prevent 500 errors on POST requests missing trailing slashes
APPEND_SLASH = True

ALLOWED_HOSTS = ['*']
CORS_ALLOW_ALL_ORIGINS = True

# Proxy awareness
USE_X_FORWARDED_HOST = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

# Additional CORS settings
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_HEADERS = ['*']

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'corsheaders',
    'ninja',
    'employees',
    'surveys',
    'audit',
    'reconciliation',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'audit.middleware.AuditMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'core.urls'

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

WSGI_APPLICATION = 'core.wsgi.application'

# Database
# Use SURVEY_DATABASE_URL or DATABASE_URL from .env
# Fallback to a local SQLite file if neither are set or if they are empty
default_db_url = (
    os.environ.get('SURVEY_DATABASE_URL') or
    os.environ.get('DATABASE_URL') or
    f"sqlite:///{BASE_DIR / 'db.sqlite3'}"
)
DATABASES = {
    'default': dj_database_url.parse(default_db_url, conn_max_age=600)
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# WhiteNoise Configuration
STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'whitenoise.storage.CompressedManifestStaticFilesStorage',
    },
}

# Hosted survey project (PostgREST). Only needed for the supabase store.
SUPABASE_URL = os.environ.get('SUPABASE_URL', '')
SUPABASE_SERVICE_KEY = os.environ.get('SUPABASE_SERVICE_KEY', '')

# Reconciliation defaults; CLI flags and API options override per run
RECONCILIATION = {
    'STORE': os.environ.get('RECONCILIATION_STORE', 'django'),
    'DRY_RUN': os.environ.get('RECONCILIATION_DRY_RUN', 'False') == 'True',
    'BATCH_SIZE': int(os.environ.get('RECONCILIATION_BATCH_SIZE', 100)),
    'SYNC_DEPARTMENTS': os.environ.get('RECONCILIATION_SYNC_DEPARTMENTS', 'False') == 'True',
    'SYNC_STATUS': os.environ.get('RECONCILIATION_SYNC_STATUS', 'True') == 'True',
    'REQUEST_TIMEOUT': int(os.environ.get('SUPABASE_TIMEOUT', 30)),
    'RETRY_ATTEMPTS': int(os.environ.get('SUPABASE_RETRY_ATTEMPTS', 3)),
    'RETRY_BACKOFF': float(os.environ.get('SUPABASE_RETRY_BACKOFF', 0.5)),
    'PAGE_SIZE': int(os.environ.get('SUPABASE_PAGE_SIZE', 1000)),
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'reconciliation': {
            'level': os.environ.get('RECONCILIATION_LOG_LEVEL', 'INFO'),
        },
    },
}
