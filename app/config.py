"""
Application configuration using Pydantic Settings
"""

from typing import List
from urllib.parse import urlparse
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    environment: str = "development"

    # Telephony control plane
    telephony_provider: str = "twilio"  # twilio, fake, none
    telephony_callback_base_url: str = "http://localhost:8000"
    telephony_timeout_seconds: float = 10.0

    # Twilio
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_api_key_sid: str = ""
    twilio_api_key_secret: str = ""
    twilio_twiml_app_sid: str = ""
    twilio_token_ttl_seconds: int = 3600
    hold_message: str = "Please hold while we connect you to an agent."

    # Routing
    agent_selection_policy: str = "first_available"  # first_available, round_robin

    # Real-time notifications
    notification_queue_size: int = 100

    # Development data
    seed_test_agents: bool = False

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    cors_origins: str = "http://localhost:3000,http://localhost:4200"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def telephony_callback_url(self) -> str:
        """Callback address handed to the control plane when answering"""
        if self.telephony_provider == "twilio":
            path = "/webhooks/twilio/status"
        else:
            path = "/webhooks/calls/events"
        return self.telephony_callback_base_url.rstrip("/") + path

    @property
    def incoming_call_url(self) -> str:
        if self.telephony_provider == "twilio":
            path = "/webhooks/twilio/voice"
        else:
            path = "/webhooks/calls/incoming"
        return self.telephony_callback_base_url.rstrip("/") + path

    @property
    def callback_is_local(self) -> bool:
        """Localhost callbacks cannot be reached by the telephony provider"""
        host = urlparse(self.telephony_callback_base_url).hostname or ""
        return host in ("localhost", "127.0.0.1", "::1")

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token)

    @property
    def twilio_tokens_configured(self) -> bool:
        return bool(
            self.twilio_account_sid
            and self.twilio_api_key_sid
            and self.twilio_api_key_secret
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
