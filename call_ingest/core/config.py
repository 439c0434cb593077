"""
Configuration management for the call ingestion service
Uses Pydantic Settings for environment variable management
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Settings
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    environment: str = Field(default="development")

    # Server Configuration
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8000)

    # CORS Settings
    allowed_origins: str = Field(default="*")

    # Webhook
    webhook_path: str = Field(default="/webhooks/vapi")
    vapi_server_secret: Optional[str] = Field(default=None)
    webhook_rate_limit_per_minute: int = Field(default=600)

    # In-process cache
    cache_max_size: int = Field(default=500)
    cache_default_ttl_seconds: float = Field(default=300.0)
    cache_sweep_interval_seconds: float = Field(default=60.0)
    tool_cache_ttl_seconds: float = Field(default=300.0)

    # Persistence gateway
    gateway_cache_ttl_seconds: float = Field(default=60.0)
    aggregate_cache_ttl_seconds: float = Field(default=300.0)
    aggregate_max_rows: int = Field(default=10000)
    default_page_size: int = Field(default=50)
    slow_query_ms: float = Field(default=100.0)
    metrics_buffer_size: int = Field(default=1000)

    # Supabase backend store
    supabase_url: Optional[str] = Field(default=None)
    supabase_service_role_key: Optional[str] = Field(default=None)

    # Table names
    calls_table: str = Field(default="vapi_calls")
    transcripts_table: str = Field(default="call_transcripts")
    tool_calls_table: str = Field(default="tool_calls")
    leads_table: str = Field(default="leads")
    sms_logs_table: str = Field(default="sms_logs")

    # Pricing
    surcharge_zone_keyword: str = Field(default="rive-sud")
    surcharge_amount: int = Field(default=50)

    # Twilio SMS gateway
    twilio_account_sid: Optional[str] = Field(default=None)
    twilio_auth_token: Optional[str] = Field(default=None)
    twilio_phone_number: str = Field(default="+14389004385")

    # Alert recipients
    alert_primary_name: str = Field(default="Guillaume")
    alert_primary_phone: Optional[str] = Field(default=None)
    alert_secondary_name: str = Field(default="Maxime")
    alert_secondary_phone: Optional[str] = Field(default=None)

    # Shutdown
    background_drain_timeout_seconds: float = Field(default=5.0)

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
