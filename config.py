import os
from dotenv import load_dotenv

load_dotenv()


def _default_db_uri() -> str:
    # Prefer PyMySQL driver for Windows compatibility
    user = os.environ.get('MYSQL_USER', 'root')
    password = os.environ.get('MYSQL_PASSWORD', 'root')
    host = os.environ.get('MYSQL_HOST', '127.0.0.1')
    port = os.environ.get('MYSQL_PORT', '3306')
    db = os.environ.get('MYSQL_DB', 'edutrack')
    return f"mysql+pymysql://{user}:{password}@{host}:{port}/{db}"


class Config:
    APP_ENV = os.environ.get('APP_ENV', 'production')
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your-secret-key'
    # Use DATABASE_URL if present; else build a sensible default using PyMySQL
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or _default_db_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Bearer tokens
    JWT_SECRET = os.environ.get('JWT_SECRET') or 'your-secret-key'
    JWT_REFRESH_SECRET = os.environ.get('JWT_REFRESH_SECRET') or 'your-refresh-secret'
    JWT_ACCESS_EXPIRES_HOURS = int(os.environ.get('JWT_ACCESS_EXPIRES_HOURS', 24))
    SESSION_DAYS = int(os.environ.get('SESSION_DAYS', 7))
    REMEMBER_ME_SESSION_DAYS = int(os.environ.get('REMEMBER_ME_SESSION_DAYS', 30))

    # Rate limiting and CORS
    RATELIMIT_ENABLED = os.environ.get('RATELIMIT_ENABLED', 'true').lower() == 'true'
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    LOGIN_RATE_LIMIT = os.environ.get('LOGIN_RATE_LIMIT', '3 per 15 minutes')
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')

    # Report photo uploads
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(
        os.path.dirname(os.path.abspath(__file__)), 'uploads')
    # Five full-size photos plus the form fields
    MAX_CONTENT_LENGTH = 26 * 1024 * 1024
    MAX_PHOTO_SIZE = 5 * 1024 * 1024
    MAX_PHOTOS = 5

    # Optional mail settings used by notification/email services (safe defaults)
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 587))
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS', 'true').lower() == 'true'
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER', 'noreply@edutrack.ng')


class DevelopmentConfig(Config):
    APP_ENV = 'development'
    DEBUG = True
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    APP_ENV = 'testing'
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    JWT_SECRET = 'test-jwt-secret-0123456789abcdef0123'
    JWT_REFRESH_SECRET = 'test-refresh-secret-0123456789abcdef'


class ProductionConfig(Config):
    APP_ENV = 'production'


config_by_name = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}
