"""
Configuration module using Pydantic Settings.

CRITICAL: This module uses lazy loading pattern.
No environment variables are loaded at import time.
Each service must call get_settings() explicitly.
"""

from typing import Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Do NOT set env_file in Config.
    Environment variables must be loaded externally by the service.
    """

    model_config = SettingsConfigDict(
        env_file=None,
        case_sensitive=False,
        extra="ignore"
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./arena.db",
        description="SQLAlchemy connection URL"
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )

    # Authentication
    static_token: str = Field(
        ...,
        description="Static bearer token for API authentication"
    )

    # Code execution capability (Piston compatible)
    executor_url: str = Field(
        default="https://emkc.org/api/v2/piston",
        description="Base URL of the code execution service"
    )
    executor_api_key: Optional[str] = Field(
        default=None,
        description="Optional API key sent to the execution service"
    )
    execution_grace_seconds: float = Field(
        default=2.0,
        description=(
            "Grace added to a question time limit for the hard deadline; "
            "compiled languages also get compile_timeout_seconds"
        )
    )
    compile_timeout_seconds: float = Field(
        default=10.0,
        description="Compile stage timeout forwarded to the executor"
    )
    max_concurrent_cases: int = Field(
        default=4,
        ge=1,
        description="Concurrent test case executions per submission"
    )
    error_message_max_chars: int = Field(
        default=2000,
        ge=64,
        description="Truncation bound for captured stderr"
    )
    comparison_mode: str = Field(
        default="lines",
        description="Default output comparison mode (exact/lines/tokens)"
    )

    # Leaderboard
    leaderboard_lock_timeout_seconds: int = Field(
        default=30,
        description="TTL of the per-contest standings lock"
    )
    use_redis_locks: bool = Field(
        default=True,
        description="Serialize standings updates through Redis locks"
    )
    rank_ties_by_time: bool = Field(
        default=False,
        description="Let the time tie-break also separate numeric ranks"
    )

    # Sentry
    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking"
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment name"
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        description="Sentry traces sample rate"
    )
    sentry_profiles_sample_rate: float = Field(
        default=1.0,
        description="Sentry profiles sample rate"
    )

    # Application
    app_name: str = Field(
        default="Arena API",
        description="Application name"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode flag"
    )

    @computed_field  # type: ignore[misc]
    @property
    def db_url(self) -> str:
        """
        Get database URL.

        Heroku style ``postgres://`` URLs are rewritten to the scheme
        SQLAlchemy expects.

        Returns:
            str: SQLAlchemy connection URL
        """
        if self.database_url.startswith("postgres://"):
            return "postgresql://" + self.database_url[len("postgres://"):]
        return self.database_url


def get_settings() -> Settings:
    """
    Factory function to create Settings instance.

    This function should be called by each service explicitly.
    DO NOT call this at module level.

    Returns:
        Settings: Configured settings instance

    Note:
        Settings() will automatically load values from environment
        variables. Required fields must be set in the environment
        before calling this function.
    """
    return Settings()  # type: ignore[call-arg]
