import os
import json
from pathlib import Path
from datetime import timedelta
from dotenv import load_dotenv
import dj_database_url

BASE_DIR = Path(__file__).resolve().parent.parent

# Ensure .env takes precedence over any pre-set OS environment variables
load_dotenv(dotenv_path=BASE_DIR / '.env', override=True)

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'dev-secret-key-change-me')
DEBUG = os.getenv('DEBUG', 'True') == 'True'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')
CSRF_TRUSTED_ORIGINS = [h for h in os.getenv('CSRF_TRUSTED_ORIGINS', 'http://localhost').split(',') if h]

# Build CSRF trusted origins from ALLOWED_HOSTS (https first, then http)
for host in ALLOWED_HOSTS:
    host = host.strip()
    if not host:
        continue
    if host.startswith('http://') or host.startswith('https://'):
        if host not in CSRF_TRUSTED_ORIGINS:
            CSRF_TRUSTED_ORIGINS.append(host)
        continue
    https_origin = f"https://{host.lstrip('.')}"
    http_origin = f"http://{host.lstrip('.')}"
    if https_origin not in CSRF_TRUSTED_ORIGINS:
        CSRF_TRUSTED_ORIGINS.append(https_origin)
    if http_origin not in CSRF_TRUSTED_ORIGINS:
        CSRF_TRUSTED_ORIGINS.append(http_origin)

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    'rest_framework',
    'rest_framework_simplejwt',
    'drf_spectacular',
    'django_filters',
    'corsheaders',

    'accounts',
    'academics',
    'marks',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'markdesk.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
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

WSGI_APPLICATION = 'markdesk.wsgi.application'

# Database configuration
# Allow a lightweight SQLite fallback for local development when USE_SQLITE=True
USE_SQLITE = os.getenv('USE_SQLITE', 'False') == 'True'
if USE_SQLITE:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('POSTGRES_DB', ''),
            'USER': os.getenv('POSTGRES_USER', ''),
            'PASSWORD': os.getenv('POSTGRES_PASSWORD', ''),
            'HOST': os.getenv('POSTGRES_HOST', ''),
            'PORT': os.getenv('POSTGRES_PORT', '5432'),
            'CONN_MAX_AGE': 600,
        }
    }

# Prefer DATABASE_URL if provided (12-factor style)
DATABASE_URL = os.getenv('DATABASE_URL')
if DATABASE_URL:
    DATABASES['default'] = dj_database_url.parse(
        DATABASE_URL,
        conn_max_age=600,
        ssl_require=os.getenv('DATABASE_SSL_REQUIRE', 'True') == 'True',
    )

AUTH_USER_MODEL = 'accounts.User'

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_FILTER_BACKENDS': (
        'django_filters.rest_framework.DjangoFilterBackend',
    ),
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    # Pagination to prevent huge payloads on list endpoints
    'DEFAULT_PAGINATION_CLASS': 'markdesk.pagination.CustomPageNumberPagination',
    'PAGE_SIZE': 50,
    'EXCEPTION_HANDLER': 'marks.exceptions.api_exception_handler',
    # ?format= selects the export file type, not a DRF renderer
    'URL_FORMAT_OVERRIDE': None,
}

SPECTACULAR_SETTINGS = {
    'TITLE': 'MarkDesk API',
    'DESCRIPTION': 'Assessment records, dashboards and mark reports',
    'VERSION': '1.0.0',
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=60),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=7),
    'AUTH_HEADER_TYPES': ('Bearer',),
}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'Asia/Kolkata')
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'whitenoise.storage.CompressedManifestStaticFilesStorage',
    },
}

# Respect HTTPS scheme when behind a proxy/load balancer
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

CORS_ALLOW_ALL_ORIGINS = os.getenv('CORS_ALLOW_ALL_ORIGINS', 'True') == 'True'
CORS_ALLOWED_ORIGINS = [o for o in os.getenv('CORS_ALLOWED_ORIGINS', '').split(',') if o]

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
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
        'marks': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

# ===== Marks =====
# Pass thresholds and denominators per exam type. Each exam type is listed
# explicitly; aliases map the names used by older clients onto the canonical one.
MARKS_EXAM_TYPES = {
    'unit1': {'threshold': 12, 'total_marks': 30, 'aliases': []},
    'unit2': {'threshold': 12, 'total_marks': 30, 'aliases': []},
    'unit-test': {'threshold': 12, 'total_marks': 30, 'aliases': ['unitTest']},
    're-unit-test': {'threshold': 12, 'total_marks': 30, 'aliases': ['reunitTest']},
    'term': {'threshold': 28, 'total_marks': 70, 'aliases': []},
    'prelim': {'threshold': 28, 'total_marks': 70, 'aliases': ['prelims']},
    're-prelim': {'threshold': 28, 'total_marks': 70, 'aliases': ['reprelims']},
}
# Full replacement of the table, e.g. '{"unit1": {"threshold": 10, "total_marks": 25}}'
_exam_types_json = os.getenv('MARKS_EXAM_TYPES_JSON', '').strip()
if _exam_types_json:
    MARKS_EXAM_TYPES = json.loads(_exam_types_json)

MARKS_REPORT_ROWS_PER_PAGE = int(os.getenv('MARKS_REPORT_ROWS_PER_PAGE', '30'))
MARKS_REPORT_TIMEOUT_SECONDS = float(os.getenv('MARKS_REPORT_TIMEOUT_SECONDS', '60'))
MARKS_REPORT_WORKERS = int(os.getenv('MARKS_REPORT_WORKERS', '2'))
# Rendered reports stay in memory up to this size, then spill to a temp file
MARKS_REPORT_SPOOL_BYTES = int(os.getenv('MARKS_REPORT_SPOOL_BYTES', str(5 * 1024 * 1024)))
