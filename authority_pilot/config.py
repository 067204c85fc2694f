"""Configuration management for AuthorityPilot."""
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    openai_api_key: str
    openai_model: str = "gpt-4o"

    # Supabase
    supabase_url: str
    supabase_key: str
    supabase_service_role_key: Optional[str] = None  # Needed for admin user lookups

    # LinkedIn
    linkedin_api_base: str = "https://api.linkedin.com/v2"
    linkedin_timeout: float = 30.0

    # Autonomous scheduler
    scheduler_auto_start: bool = False
    health_check_interval_minutes: int = 5
    emergency_failure_rate: float = 0.3
    emergency_response_time: float = 10.0  # Average loop duration in seconds
    emergency_resource_usage: float = 85.0  # Percent of loops busy

    # Development
    debug: bool = False
    debug_routes_enabled: bool = False
    admin_emails: List[str] = []  # May reset any account through the debug routes
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )


# Global settings instance
settings = Settings()
