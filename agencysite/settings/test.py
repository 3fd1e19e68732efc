from .base import *

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

ALLOWED_HOSTS = ['testserver']

TRUSTED_PROXY_COUNT = 0

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

PAYMENTS = {
    **PAYMENTS,
    'GATEWAY': 'midtrans',
    'SITE_URL': 'https://agency.test',
    'REQUIRE_AUTH': True,
}

MIDTRANS = {**MIDTRANS, 'SERVER_KEY': 'SB-Mid-server-test', 'IS_PRODUCTION': False}

XENDIT = {**XENDIT, 'SECRET_KEY': 'xnd_development_test', 'CALLBACK_TOKEN': 'callback-token-test'}

ADMIN_AUTH = {**ADMIN_AUTH, 'PASSWORD_HASH': '', 'PASSWORD': ''}

AUTH_JWT = {**AUTH_JWT, 'SECRET': 'jwt-test-secret-with-enough-length-1234'}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {'null': {'class': 'logging.NullHandler'}},
    'root': {'handlers': ['null'], 'level': 'INFO'},
}
