"""
Django settings for the voucher claim backend.

All deploy-time values come from the environment (or a local .env file)
through python-decouple.
"""
import os
from pathlib import Path

from decouple import config, Csv

from .logging import LOGGING  # noqa: F401

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = config('SECRET_KEY', default='django-insecure-change-me')
DEBUG = config('DEBUG', default=False, cast=bool)
ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1', cast=Csv())

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    'security',
    'blockchain',
    'vouchers',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'config.middleware.CloseDbConnectionsMiddleware',
    'security.middleware.RateLimitMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
]

ROOT_URLCONF = 'config.urls'
ASGI_APPLICATION = 'config.asgi.application'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': config('DB_NAME', default='vouchers'),
        'USER': config('DB_USER', default='postgres'),
        'PASSWORD': config('DB_PASSWORD', default=''),
        'HOST': config('DB_HOST', default='localhost'),
        'PORT': config('DB_PORT', default='5432'),
        'CONN_MAX_AGE': config('DB_CONN_MAX_AGE', default=60, cast=int),
        'OPTIONS': {
            'connect_timeout': config('DB_CONNECT_TIMEOUT', default=5, cast=int),
        },
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Redis backs both the cache and the rate limiter counters
REDIS_URL = config('REDIS_URL', default='redis://127.0.0.1:6379/0')

CACHES = {
    'default': {
        'BACKEND': 'django_redis.cache.RedisCache',
        'LOCATION': REDIS_URL,
        'OPTIONS': {
            'CLIENT_CLASS': 'django_redis.client.DefaultClient',
            'SOCKET_CONNECT_TIMEOUT': 2,
            'SOCKET_TIMEOUT': 2,
        },
    }
}

# Voucher passwords are stored as self-describing digests (algorithm$params$salt$hash)
PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.Argon2PasswordHasher',
    'django.contrib.auth.hashers.PBKDF2PasswordHasher',
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')

# Celery
CELERY_BROKER_URL = config('CELERY_BROKER_URL', default=REDIS_URL)
CELERY_RESULT_BACKEND = config('CELERY_RESULT_BACKEND', default=REDIS_URL)
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE

# Chain access
EVM_RPC_URL = config('EVM_RPC_URL', default='https://arb1.arbitrum.io/rpc')
EVM_RPC_TIMEOUT = config('EVM_RPC_TIMEOUT', default=10, cast=int)
EVM_CHAIN_ID = config('EVM_CHAIN_ID', default=42161, cast=int)  # Arbitrum One
VOUCHER_CONTRACT_ADDRESS = config(
    'VOUCHER_CONTRACT_ADDRESS',
    default='0x66Eb0Aa46827e5F3fFcb6Dea23C309CB401690B6',
)

# Backend signing key; the relayer pays gas for gasless claims
BACKEND_PRIVATE_KEY = config('BACKEND_PRIVATE_KEY', default='')
RELAYER_PRIVATE_KEY = config('RELAYER_PRIVATE_KEY', default=BACKEND_PRIVATE_KEY)

VOUCHER_CLAIM_DEADLINE_SECONDS = config('VOUCHER_CLAIM_DEADLINE_SECONDS', default=3600, cast=int)
VOUCHER_CLAIM_GAS_LIMIT = config('VOUCHER_CLAIM_GAS_LIMIT', default=200_000, cast=int)

# Voucher event indexer
VOUCHER_INDEXER_START_BLOCK = config('VOUCHER_INDEXER_START_BLOCK', default=0, cast=int)
VOUCHER_INDEXER_BATCH_SIZE = config('VOUCHER_INDEXER_BATCH_SIZE', default=1000, cast=int)
VOUCHER_INDEXER_POLL_INTERVAL = config('VOUCHER_INDEXER_POLL_INTERVAL', default=30, cast=int)
VOUCHER_INDEXER_LOCK_TIMEOUT = config('VOUCHER_INDEXER_LOCK_TIMEOUT', default=300, cast=int)
# Bounds one tick so it finishes well inside the lock TTL; a backlog drains over several ticks
VOUCHER_INDEXER_MAX_RANGES_PER_TICK = config('VOUCHER_INDEXER_MAX_RANGES_PER_TICK', default=50, cast=int)

RATE_LIMIT_ENABLED = config('RATE_LIMIT_ENABLED', default=True, cast=bool)

# Global per-path limits as (path prefix, limit, window seconds); longest prefix wins
RATE_LIMIT_RULES = [
    ('/api/users/username', 5, 3600),
    ('/api/vouchers/verify', 10, 3600),
    ('/api/vouchers/claim', 10, 3600),
    ('/api/vouchers/execute-claim', 10, 3600),
    # claim-status and claim-tx share the /api/vouchers/claim prefix but are reconciliation
    # and status reads, so they get the general voucher budget
    ('/api/vouchers/claim-status', 50, 60),
    ('/api/vouchers/claim-tx', 50, 60),
    ('/api/vouchers/link', 20, 60),
    ('/api/vouchers', 50, 60),
    ('/api/transactions', 100, 60),
    ('/api/analytics', 50, 60),
]
RATE_LIMIT_DEFAULT = (200, 60)

# Secondary limits applied inside voucher handlers, keyed by action:code:ip
VOUCHER_ACTION_RATE_LIMITS = {
    'verify': {'limit': 100, 'window': 3600},
    'claim': {'limit': 50, 'window': 3600},
    'execute_claim': {'limit': 10, 'window': 3600},
}
