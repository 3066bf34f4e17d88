"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "helpdesk_dev"

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"
    log_max_bytes: int = 10 * 1024 * 1024
    log_backup_count: int = 5

    # API server (run.py)
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Escalation job
    scheduler_enabled: bool = True
    escalation_interval_minutes: int = 15
    escalation_lock_seconds: int = 900  # Lock expiry, covers a crashed run

    # Approval workflow
    auto_approve_roles: str = "Super Admin,CEO,Director"
    max_resubmissions: int = 3
    fallback_team_code: str = "IT-SD"

    # Tickets
    ticket_number_prefix: str = "KT"

    # Approval emails: queued in the outbox while email_enabled, delivered
    # through an HTTP mail relay once email_api_url is set too
    email_enabled: bool = True
    email_api_url: str = ""
    email_api_token: str = ""
    email_from: str = "helpdesk@example.com"
    email_timeout_seconds: float = 15.0
    email_interval_minutes: int = 1
    email_batch_size: int = 50
    email_max_retries: int = 5
    app_name: str = "Helpdesk"
    frontend_url: str = "http://localhost:3000"

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def auto_approve_roles_list(self) -> List[str]:
        """Parse auto-approve role names to list"""
        return [role.strip() for role in self.auto_approve_roles.split(",") if role.strip()]

    @property
    def email_delivery_enabled(self) -> bool:
        """Queued emails are only sent when a relay is configured"""
        return self.email_enabled and bool(self.email_api_url)

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
