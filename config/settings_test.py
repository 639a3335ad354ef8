from .settings import *  # noqa
import os

# Local SQLite database and in-process cache so tests need no Postgres or Redis
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.path.join(BASE_DIR, 'test.sqlite3'),
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

CELERY_TASK_ALWAYS_EAGER = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

# Well-known development key (hardhat account #0); never funded on a real network
BACKEND_PRIVATE_KEY = '0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80'
RELAYER_PRIVATE_KEY = BACKEND_PRIVATE_KEY
EVM_RPC_URL = 'http://127.0.0.1:8545'

DEBUG = True
ALLOWED_HOSTS = ['*']

# Rate limiting is exercised explicitly in security tests
RATE_LIMIT_ENABLED = False
