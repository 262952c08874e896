import os
from datetime import timedelta

from dotenv import load_dotenv

# Load environment variables from the .env file
load_dotenv()


def _env_flag(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    ENV_NAME = os.getenv('APP_ENV', 'production')
    TESTING = False

    SECRET_KEY = os.getenv('FLASK_SECRET_KEY')
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')

    # MongoDB Configuration
    MONGODB_SETTINGS = {
        'db': os.getenv('MONGODB_DB', 'booksandreviews'),
        'host': os.getenv('MONGODB_URI'),
    }

    BCRYPT_LOG_ROUNDS = 12

    # Session token lives in an httpOnly cookie for 7 days
    JWT_TOKEN_LOCATION = ['cookies', 'headers']
    JWT_ACCESS_COOKIE_NAME = 'auth-token'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=7)
    JWT_SESSION_COOKIE = False
    JWT_COOKIE_SECURE = ENV_NAME == 'production'
    JWT_COOKIE_SAMESITE = 'Lax'
    JWT_COOKIE_CSRF_PROTECT = _env_flag('JWT_COOKIE_CSRF_PROTECT')

    CORS_ORIGINS = [o.strip() for o in os.getenv('CORS_ORIGINS', '*').split(',') if o.strip()]

    GOOGLE_BOOKS_API_URL = os.getenv('GOOGLE_BOOKS_API_URL', 'https://www.googleapis.com/books/v1/volumes')
    GOOGLE_BOOKS_API_KEY = os.getenv('GOOGLE_BOOKS_API_KEY')
    BOOKS_REQUEST_TIMEOUT = float(os.getenv('BOOKS_REQUEST_TIMEOUT', '10'))

    OPENROUTER_API_KEY = os.getenv('OPENROUTER_API_KEY')
    OPENROUTER_BASE_URL = os.getenv('OPENROUTER_BASE_URL', 'https://openrouter.ai/api/v1')
    OPENROUTER_MODEL = os.getenv('OPENROUTER_MODEL')
    CHAT_REFERER = os.getenv('CHAT_REFERER', 'http://localhost:5000')
    CHAT_TITLE = os.getenv('CHAT_TITLE', 'Books and Reviews Chat')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()


class TestingConfig(Config):
    ENV_NAME = 'testing'
    TESTING = True

    SECRET_KEY = 'test-secret-key'
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length'

    MONGODB_SETTINGS = {
        'db': 'booksandreviews-test',
        'host': 'mongodb://localhost',
    }

    # Cheap hashes keep the suite fast
    BCRYPT_LOG_ROUNDS = 4

    JWT_COOKIE_SECURE = False
    JWT_COOKIE_CSRF_PROTECT = False

    OPENROUTER_API_KEY = 'test-openrouter-key'
    OPENROUTER_MODEL = None

    LOG_LEVEL = 'DEBUG'
