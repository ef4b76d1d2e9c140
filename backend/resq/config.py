"""
Application configuration loaded from environment variables.

Signing and encryption keys have no defaults: a process without them
refuses to start (see Config.require_keys).
"""

import os
from pathlib import Path
from dotenv import load_dotenv

from resq.errors import ConfigurationError

# Load .env file from backend directory
backend_dir = Path(__file__).parent.parent
load_dotenv(backend_dir / ".env")


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration."""

    # Flask settings
    DEBUG = os.getenv("FLASK_DEBUG", "0") == "1"
    SECRET_KEY = os.getenv("SECRET_KEY")
    FLASK_ENV = os.getenv("FLASK_ENV", "development")

    # Credential and payload keys (required, never defaulted)
    SIGNING_KEY = os.getenv("RESQ_SIGNING_KEY")
    ENCRYPTION_KEY = os.getenv("RESQ_ENCRYPTION_KEY")

    # Identity layer bearer tokens (external issuer, shared secret)
    IDENTITY_TOKEN_SECRET = os.getenv("IDENTITY_TOKEN_SECRET")

    # Access grant policy
    ACCESS_TOKEN_TTL_HOURS = os.getenv("ACCESS_TOKEN_TTL_HOURS", "24")
    AUTO_APPROVE_VERIFIED_STAFF = _flag("AUTO_APPROVE_VERIFIED_STAFF")
    TOKEN_REDEEM_REQUIRES_APPROVAL = _flag("TOKEN_REDEEM_REQUIRES_APPROVAL")

    # Explicit URL wins over the local/cloud PostgreSQL pair
    DATABASE_URL = os.getenv("DATABASE_URL", "")

    # Environment mode: "local" or "cloud"
    DATABASE_MODE = os.getenv("DATABASE_MODE", "local")

    # PostgreSQL - Local
    POSTGRES_HOST_LOCAL = os.getenv("POSTGRES_HOST_LOCAL", "localhost")
    POSTGRES_PORT_LOCAL = os.getenv("POSTGRES_PORT_LOCAL", "5432")
    POSTGRES_DB_LOCAL = os.getenv("POSTGRES_DB_LOCAL", "resq")
    POSTGRES_USER_LOCAL = os.getenv("POSTGRES_USER_LOCAL", "postgres")
    POSTGRES_PASSWORD_LOCAL = os.getenv("POSTGRES_PASSWORD_LOCAL", "")

    # PostgreSQL - Cloud
    POSTGRES_HOST_CLOUD = os.getenv("POSTGRES_HOST_CLOUD", "")
    POSTGRES_PORT_CLOUD = os.getenv("POSTGRES_PORT_CLOUD", "5432")
    POSTGRES_DB_CLOUD = os.getenv("POSTGRES_DB_CLOUD", "resq")
    POSTGRES_USER_CLOUD = os.getenv("POSTGRES_USER_CLOUD", "postgres")
    POSTGRES_PASSWORD_CLOUD = os.getenv("POSTGRES_PASSWORD_CLOUD", "")

    @classmethod
    def get_database_url(cls) -> str:
        """Build the SQLAlchemy URL from DATABASE_URL or DATABASE_MODE."""
        if cls.DATABASE_URL:
            return cls.DATABASE_URL

        if cls.DATABASE_MODE == "cloud":
            host = cls.POSTGRES_HOST_CLOUD
            port = cls.POSTGRES_PORT_CLOUD
            db = cls.POSTGRES_DB_CLOUD
            user = cls.POSTGRES_USER_CLOUD
            password = cls.POSTGRES_PASSWORD_CLOUD
            mode_label = "CLOUD"
        else:
            host = cls.POSTGRES_HOST_LOCAL
            port = cls.POSTGRES_PORT_LOCAL
            db = cls.POSTGRES_DB_LOCAL
            user = cls.POSTGRES_USER_LOCAL
            password = cls.POSTGRES_PASSWORD_LOCAL
            mode_label = "LOCAL"

        if password:
            url = f"postgresql://{user}:{password}@{host}:{port}/{db}"
        else:
            url = f"postgresql://{user}@{host}:{port}/{db}"

        print(f"[Config] PostgreSQL: {mode_label} ({host})")
        return url

    @classmethod
    def require_keys(cls, include_identity: bool = False) -> None:
        """Fail fast when a required secret is absent.

        Only variable names are reported, never values.
        """
        missing = []
        if not cls.SIGNING_KEY:
            missing.append("RESQ_SIGNING_KEY")
        if not cls.ENCRYPTION_KEY:
            missing.append("RESQ_ENCRYPTION_KEY")
        if include_identity and not cls.IDENTITY_TOKEN_SECRET:
            missing.append("IDENTITY_TOKEN_SECRET")
        if include_identity and not cls.SECRET_KEY:
            missing.append("SECRET_KEY")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )
        cls.access_token_ttl_hours()

    @classmethod
    def access_token_ttl_hours(cls) -> int:
        """ACCESS_TOKEN_TTL_HOURS as a positive int. Raises ConfigurationError."""
        try:
            hours = int(cls.ACCESS_TOKEN_TTL_HOURS)
        except (TypeError, ValueError):
            raise ConfigurationError("ACCESS_TOKEN_TTL_HOURS must be an integer") from None
        if hours <= 0:
            raise ConfigurationError("ACCESS_TOKEN_TTL_HOURS must be positive")
        return hours


# Singleton instance
config = Config()
