"""
Configuration Management

Centralized configuration management using Pydantic Settings for type safety
and environment variable integration.
"""

from decimal import Decimal
from pathlib import Path
from typing import List
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Load environment variables from .env file if it exists
env_path = Path('.') / '.env'
load_dotenv(dotenv_path=env_path)


class DatabaseSettings(BaseSettings):
    """Database configuration settings"""

    DATABASE_URL: str = Field(default="sqlite:///./license_billing.db")
    DB_ECHO: bool = Field(default=False)
    DB_POOL_PRE_PING: bool = Field(default=True)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }

    @property
    def database_url(self) -> str:
        return self.DATABASE_URL


class CacheSettings(BaseSettings):
    """Reference-data cache configuration settings"""

    CACHE_BACKEND: str = Field(default="memory")  # memory or redis
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    CACHE_KEY_PREFIX: str = Field(default="license_billing:")
    REFERENCE_CACHE_TTL: int = Field(default=300)  # seconds
    REDIS_SOCKET_TIMEOUT: int = Field(default=5)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }

    @field_validator('CACHE_BACKEND')
    @classmethod
    def validate_cache_backend(cls, v):
        valid_backends = ['memory', 'redis']
        if v.lower() not in valid_backends:
            raise ValueError(f'Cache backend must be one of {valid_backends}')
        return v.lower()


class LoggingSettings(BaseSettings):
    """Logging configuration settings"""

    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Structured logging
    ENABLE_STRUCTURED_LOGGING: bool = Field(default=True)
    LOG_SQL_QUERIES: bool = Field(default=False)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of {valid_levels}')
        return v.upper()


class BillingSettings(BaseSettings):
    """Billing engine configuration settings"""

    BASE_CURRENCY: str = Field(default="USD")
    AMOUNT_TOLERANCE: Decimal = Field(default=Decimal("0.01"))
    PAYMENT_DUE_DAYS: int = Field(default=7, ge=0)
    DUE_SOON_DAYS: int = Field(default=7, ge=0)
    TAX_APPLIES_TO: str = Field(default="license_fee")

    # Jurisdictions where an empty tax rule set is acceptable
    TAX_EXEMPT_JURISDICTIONS: List[str] = Field(default_factory=list)

    # Listings
    DEFAULT_PAGE_LIMIT: int = Field(default=50, ge=1)
    MAX_PAGE_LIMIT: int = Field(default=500, ge=1)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }

    @field_validator('BASE_CURRENCY')
    @classmethod
    def validate_base_currency(cls, v):
        if len(v) != 3 or not v.isalpha():
            raise ValueError('Base currency must be a 3-letter ISO-4217 code')
        return v.upper()

    @field_validator('TAX_EXEMPT_JURISDICTIONS', mode='before')
    @classmethod
    def parse_exempt_jurisdictions(cls, v):
        if isinstance(v, str):
            return [code.strip().upper() for code in v.split(",") if code.strip()]
        return [code.upper() for code in v]


class Settings(BaseSettings):
    """Main application settings"""

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # Project information
    PROJECT_NAME: str = Field(default="License Billing Engine")
    PROJECT_VERSION: str = Field(default="1.0.0")

    # Include all sub-settings
    database: DatabaseSettings = DatabaseSettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()
    billing: BillingSettings = BillingSettings()

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }

    @field_validator('ENVIRONMENT')
    @classmethod
    def validate_environment(cls, v):
        valid_envs = ['development', 'staging', 'production', 'testing']
        if v not in valid_envs:
            raise ValueError(f'Environment must be one of {valid_envs}')
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_testing(self) -> bool:
        return self.ENVIRONMENT == "testing"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings"""
    return Settings()


# Global settings instance
settings = get_settings()
