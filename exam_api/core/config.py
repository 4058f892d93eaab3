"""
Examination System API - Configuration Module
Pydantic Settings for type-safe configuration management
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from sqlalchemy.engine import URL
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application Settings with validation"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Examination System API")
    app_version: str = Field(default="1.0.0")
    environment: str = Field(default="development")
    debug: bool = Field(default=False)

    # JWT
    secret_key: str = Field(default="change-this-secret-key")
    algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=24 * 60)

    # Password hashing
    bcrypt_rounds: int = Field(default=10)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)
    reload: bool = Field(default=False)

    # PostgreSQL
    postgres_host: str = Field(default="localhost")
    postgres_port: int = Field(default=5432)
    postgres_user: str = Field(default="postgres")
    postgres_password: str = Field(default="")
    postgres_db: str = Field(default="examination_system")
    postgres_ssl: bool = Field(default=False)
    database_url: Optional[str] = None

    # Connection pool
    db_pool_size: int = Field(default=10)
    db_pool_recycle_seconds: int = Field(default=1800)
    db_connection_timeout_seconds: int = Field(default=30)
    db_request_timeout_seconds: float = Field(default=30.0)
    db_connect_on_startup: bool = Field(default=True)

    # Shutdown
    shutdown_timeout_seconds: float = Field(default=10.0)

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_window_seconds: int = Field(default=15 * 60)
    rate_limit_max_requests: int = Field(default=100)
    auth_rate_limit_max_attempts: int = Field(default=5)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: str = Field(default="./logs/app.log")

    # CORS
    cors_origins: str = Field(default='["*"]')

    @property
    def is_development(self) -> bool:
        """True when detailed error messages may be returned to clients"""
        return self.environment.lower() == "development"

    @property
    def database_url_computed(self) -> str:
        """Compute database URL if not provided"""
        if self.database_url:
            return self.database_url
        url = URL.create(
            "postgresql+asyncpg",
            username=self.postgres_user,
            password=self.postgres_password,
            host=self.postgres_host,
            port=self.postgres_port,
            database=self.postgres_db,
            query={"ssl": "require"} if self.postgres_ssl else {},
        )
        return url.render_as_string(hide_password=False)

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins as list"""
        try:
            return json.loads(self.cors_origins)
        except json.JSONDecodeError:
            return ["*"]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Global settings instance
settings = get_settings()
