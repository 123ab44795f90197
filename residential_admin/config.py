"""
Residential Admin - Configuration Management

Centralized configuration using Pydantic Settings.
All secrets and connection strings are loaded from environment variables.

Security: The default SECRET_KEY is for local development only. Set
SECRET_KEY via environment or .env for any shared deployment.
"""

from pydantic_settings import BaseSettings
from typing import List


DEFAULT_SECRET_KEY = "dev-secret-change-me"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        DATABASE_URL: SQLAlchemy URL (SQLite locally, PostgreSQL in production)
        SECRET_KEY: JWT signing key for access tokens
        ACCESS_TOKEN_EXPIRE_MINUTES: Access token lifetime
        SESSION_EXPIRE_DAYS: Session lifetime without "remember me"
        REMEMBER_ME_EXPIRE_DAYS: Session lifetime with "remember me"
        MAX_LOGIN_ATTEMPTS: Failed logins before the account is locked
        LOCKOUT_MINUTES: Lock duration once MAX_LOGIN_ATTEMPTS is reached
        BCRYPT_WORK_FACTOR: bcrypt cost for new password hashes
        AUDIT_RETENTION_DAYS: Default age cutoff for the audit purge
        ALLOWED_ORIGINS: CORS allowed origins for the admin frontend
    """

    # Application
    APP_NAME: str = "Residential Admin API"
    API_VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/v1"

    # Database (PostgreSQL for production, SQLite for development)
    DATABASE_URL: str = "sqlite:///./residential_admin.db"
    DATABASE_ECHO: bool = False

    # Security
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    SESSION_EXPIRE_DAYS: int = 7
    REMEMBER_ME_EXPIRE_DAYS: int = 30
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 15
    BCRYPT_WORK_FACTOR: int = 12

    # Audit
    AUDIT_RETENTION_DAYS: int = 90

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:4200"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


settings = Settings()
