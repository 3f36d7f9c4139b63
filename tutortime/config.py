# TutorTime - Configuration
# Application settings loaded from environment variables

from functools import lru_cache
from typing import Optional
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Create a .env file in the project root for local development:

        # .env
        TUTORTIME_DB_SERVER=localhost
        TUTORTIME_DB_NAME=tutortime
        TUTORTIME_DB_USER=tutortime_app
        TUTORTIME_DB_PASSWORD=your_password_here
        TUTORTIME_SCHEDULE_SNAPSHOT_SIGNING_SECRET=change-me

    For production, set these as actual environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="TUTORTIME_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "TutorTime"
    debug: bool = False
    log_level: str = "INFO"

    # Database - SQL Server connection
    db_server: str = "localhost"
    db_port: int = 1433
    db_name: str = "tutortime"
    db_user: str = "tutortime_app"
    db_password: str = "tutortime_password"

    # Optional: Schema for all tables (e.g., "payroll")
    # If not set, defaults to dbo
    db_schema: Optional[str] = None

    # Optional: Use Windows Authentication instead of SQL auth
    db_trusted_connection: bool = False

    # Optional: full SQLAlchemy URL, bypasses the SQL Server settings above
    # (e.g. "sqlite+pysqlite:///./tutortime.db" for local experiments)
    db_url: Optional[str] = None

    # Connection pool settings
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800  # Recycle connections after 30 min

    # Schedule snapshots
    schedule_slot_minutes: int = 60
    schedule_snapshot_signing_secret: Optional[str] = None

    # Pay periods
    default_timezone: str = "America/Los_Angeles"
    default_pay_period_type: str = "biweekly"
    default_policy_type: str = "strict_approval"
    biweekly_anchor_date: str = "2024-01-01"

    # Request limits
    max_sessions_per_day: int = 20
    max_reason_length: int = 2000
    min_fix_reason_length: int = 5
    max_typed_name_length: int = 200

    @field_validator("schedule_slot_minutes")
    @classmethod
    def _check_slot_minutes(cls, value: int) -> int:
        if value <= 0 or value > 24 * 60:
            raise ValueError("schedule_slot_minutes must be an integer between 1 and 1440")
        return value

    @field_validator("schedule_snapshot_signing_secret")
    @classmethod
    def _blank_secret_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None

    @property
    def database_url(self) -> str:
        """
        Build the SQLAlchemy connection URL.

        Uses pyodbc with ODBC Driver 17 for SQL Server unless db_url is set.
        """
        if self.db_url:
            return self.db_url

        if self.db_trusted_connection:
            # Windows Authentication
            connection_string = (
                f"DRIVER={{ODBC Driver 17 for SQL Server}};"
                f"SERVER={self.db_server},{self.db_port};"
                f"DATABASE={self.db_name};"
                f"Trusted_Connection=yes;"
            )
        else:
            # SQL Server Authentication
            connection_string = (
                f"DRIVER={{ODBC Driver 17 for SQL Server}};"
                f"SERVER={self.db_server},{self.db_port};"
                f"DATABASE={self.db_name};"
                f"UID={self.db_user};"
                f"PWD={self.db_password};"
            )

        return f"mssql+pyodbc:///?odbc_connect={quote_plus(connection_string)}"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once.
    """
    return Settings()
