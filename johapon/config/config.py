"""
Application Configuration

FLOW OVERVIEW
- Config.__init__
  • Reads FLASK_ENV to select which .env file to load (dev/prod). Testing bypasses file load.
- Properties expose configuration values, defaulting to development-safe defaults.
  • Database, session cookies, OAuth client credentials (Kakao/Naver), JWT for OAuth state,
    internal service key, and mail settings for invitation links.
"""

import os
from dotenv import load_dotenv


class Config:
    """Base configuration class"""

    def __init__(self):
        env_file = os.getenv('FLASK_ENV', 'development')
        if env_file == 'testing':
            # Testing reads the process environment only
            pass
        elif env_file == 'production':
            load_dotenv('config.prod.env')
        else:
            load_dotenv('config.env')

    @property
    def SECRET_KEY(self):
        """Application secret key (signs the Flask session cookie)"""
        return os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')

    @property
    def SQLALCHEMY_DATABASE_URI(self):
        """Database connection URI"""
        return os.getenv('DATABASE_URL', 'sqlite:///johapon.db')

    @property
    def SQLALCHEMY_TRACK_MODIFICATIONS(self):
        return False

    @property
    def APP_BASE_URL(self):
        """Public base URL used to build OAuth redirect URIs and invite links"""
        return os.getenv('APP_BASE_URL', 'http://localhost:5000')

    @property
    def JWT_SECRET_KEY(self):
        """Secret used to sign the OAuth state parameter"""
        return os.getenv('JWT_SECRET_KEY', 'jwt-secret-key-change-in-production')

    @property
    def OAUTH_STATE_EXPIRES(self):
        """OAuth state lifetime in seconds"""
        return int(os.getenv('OAUTH_STATE_EXPIRES', 600))

    @property
    def KAKAO_CLIENT_ID(self):
        return os.getenv('KAKAO_CLIENT_ID')

    @property
    def KAKAO_CLIENT_SECRET(self):
        return os.getenv('KAKAO_CLIENT_SECRET')

    @property
    def NAVER_CLIENT_ID(self):
        return os.getenv('NAVER_CLIENT_ID')

    @property
    def NAVER_CLIENT_SECRET(self):
        return os.getenv('NAVER_CLIENT_SECRET')

    @property
    def OAUTH_HTTP_TIMEOUT(self):
        """Timeout in seconds for calls to the OAuth providers"""
        return float(os.getenv('OAUTH_HTTP_TIMEOUT', 10))

    @property
    def INTERNAL_API_KEY(self):
        """Shared key for internal service-to-service calls"""
        return os.getenv('INTERNAL_API_KEY')

    @property
    def INVITE_EXPIRES_HOURS(self):
        """Default invitation lifetime in hours"""
        return int(os.getenv('INVITE_EXPIRES_HOURS', 72))

    @property
    def MAIL_SERVER(self):
        return os.getenv('MAIL_SERVER', 'smtp.gmail.com')

    @property
    def MAIL_PORT(self):
        return int(os.getenv('MAIL_PORT', 587))

    @property
    def MAIL_USE_TLS(self):
        return os.getenv('MAIL_USE_TLS', 'True').lower() == 'true'

    @property
    def MAIL_USE_SSL(self):
        return os.getenv('MAIL_USE_SSL', 'False').lower() == 'true'

    @property
    def MAIL_USERNAME(self):
        return os.getenv('MAIL_USERNAME')

    @property
    def MAIL_PASSWORD(self):
        return os.getenv('MAIL_PASSWORD')

    @property
    def MAIL_DEFAULT_SENDER(self):
        return os.getenv('MAIL_DEFAULT_SENDER')

    @property
    def MAIL_SUPPRESS_SEND(self):
        """Skip SMTP delivery (development and tests)"""
        return os.getenv('MAIL_SUPPRESS_SEND', 'False').lower() == 'true'

    @property
    def SESSION_COOKIE_SECURE(self):
        """Whether session cookies should be secure (HTTPS only)"""
        return os.getenv('FLASK_ENV') == 'production'

    @property
    def SESSION_COOKIE_HTTPONLY(self):
        return True

    @property
    def SESSION_COOKIE_SAMESITE(self):
        # Lax keeps the cookie on top-level OAuth redirects back to us
        return 'Lax'

    @property
    def PERMANENT_SESSION_LIFETIME(self):
        """Session lifetime in seconds (7 days, matching the provider cookies)"""
        return 60 * 60 * 24 * 7
