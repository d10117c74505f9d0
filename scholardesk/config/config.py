"""
Application Configuration

FLOW OVERVIEW
- Config.__init__
  • Reads FLASK_ENV to select which .env file to load (dev/prod). Testing bypasses file load.
- Properties expose configuration values, defaulting to sensible development-safe defaults.
"""

import os
from dotenv import load_dotenv


class Config:
    """Base configuration class"""

    def __init__(self):
        # Load environment variables based on FLASK_ENV
        env_file = os.getenv('FLASK_ENV', 'development')
        if env_file == 'testing':
            # For testing, don't load config files, use environment variables directly
            pass
        elif env_file == 'production':
            load_dotenv('config.prod.env')
        else:
            load_dotenv('config.env')  # Default to development

    @property
    def SECRET_KEY(self):
        """Application secret key"""
        return os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')

    @property
    def SQLALCHEMY_DATABASE_URI(self):
        """Database connection URI (the hosted Postgres in production)"""
        return os.getenv('DATABASE_URL', 'sqlite:///scholardesk.db')

    @property
    def SQLALCHEMY_TRACK_MODIFICATIONS(self):
        """SQLAlchemy track modifications setting"""
        return False

    @property
    def JWT_SECRET_KEY(self):
        """JWT secret key"""
        return os.getenv('JWT_SECRET_KEY', 'jwt-secret-key-change-in-production')

    @property
    def JWT_ACCESS_TOKEN_EXPIRES(self):
        """JWT access token expiration time in seconds"""
        return int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', 3600))

    @property
    def BCRYPT_LOG_ROUNDS(self):
        """bcrypt work factor"""
        return int(os.getenv('BCRYPT_LOG_ROUNDS', 12))

    @property
    def SUPABASE_URL(self):
        """Hosted storage project URL"""
        return os.getenv('SUPABASE_URL')

    @property
    def SUPABASE_SERVICE_KEY(self):
        """Service role key used for storage uploads and deletes"""
        return os.getenv('SUPABASE_SERVICE_KEY')

    @property
    def MAX_UPLOAD_BYTES(self):
        """Largest file accepted by the storage service"""
        return int(os.getenv('MAX_UPLOAD_BYTES', 10 * 1024 * 1024))

    @property
    def MAX_CONTENT_LENGTH(self):
        """Reject request bodies a little larger than the upload limit"""
        return self.MAX_UPLOAD_BYTES + 1024 * 1024

    @property
    def DEFAULT_PAGE_SIZE(self):
        """Rows per page when the client does not ask for a limit"""
        return int(os.getenv('DEFAULT_PAGE_SIZE', 10))

    @property
    def MAX_PAGE_SIZE(self):
        """Upper bound for the `limit` query parameter"""
        return int(os.getenv('MAX_PAGE_SIZE', 100))

    @property
    def DEFAULT_COST_PER_TOKEN(self):
        """Cost per token when a user's tier has no plan row"""
        return float(os.getenv('DEFAULT_COST_PER_TOKEN', 0.000002))

    @property
    def LOG_LEVEL(self):
        """Root log level"""
        return os.getenv('LOG_LEVEL', 'INFO').upper()

    @property
    def SESSION_COOKIE_SECURE(self):
        """Whether session cookies should be secure (HTTPS only)"""
        return os.getenv('SESSION_COOKIE_SECURE', 'False').lower() == 'true'

    @property
    def SESSION_COOKIE_HTTPONLY(self):
        """Whether session cookies should be HTTP only"""
        return True

    @property
    def SESSION_COOKIE_SAMESITE(self):
        """Session cookie SameSite policy"""
        return 'Lax'

    @property
    def PERMANENT_SESSION_LIFETIME(self):
        """Session lifetime in seconds"""
        return 3600  # 1 hour
