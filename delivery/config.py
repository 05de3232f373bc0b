"""
Application configuration using pydantic-settings.
Loads from environment variables / .env file.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from delivery.errors import ConfigurationError

PAYPAL_SANDBOX_BASE = "https://api-m.sandbox.paypal.com"
PAYPAL_LIVE_BASE = "https://api-m.paypal.com"


class Settings(BaseSettings):
    """Application settings loaded from environment."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )
    
    # Application
    app_name: str = "paypal-delivery"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    
    # API Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origin: str = "*"
    
    # PayPal (checked per request, not at startup)
    paypal_client_id: str = ""
    paypal_client_secret: str = ""
    paypal_mode: Literal["sandbox", "live"] = "sandbox"
    paypal_api_base: Optional[str] = None
    
    # Google Sheets
    google_service_account: str = ""
    google_sheet_id: str = ""
    sheet_range: str = "Orders!A2:F"
    sheet_layout: Literal["delivery", "legacy"] = "delivery"
    
    # Delivery marker
    mark_delivered: bool = True
    fail_on_update_error: bool = True
    
    # Outbound HTTP
    http_timeout_seconds: float = 30.0
    
    @property
    def is_development(self) -> bool:
        return self.app_env == "development"
    
    @property
    def is_production(self) -> bool:
        return self.app_env == "production"
    
    @property
    def paypal_base_url(self) -> str:
        if self.paypal_api_base:
            return self.paypal_api_base.rstrip("/")
        return PAYPAL_LIVE_BASE if self.paypal_mode == "live" else PAYPAL_SANDBOX_BASE
    
    @property
    def should_mark_delivered(self) -> bool:
        # The legacy sheet has no status columns
        return self.mark_delivered and self.sheet_layout == "delivery"
    
    def require(self, *names: str) -> None:
        """
        Raise ConfigurationError for the first missing setting.
        
        Each missing item is reported by its environment variable name.
        """
        for name in names:
            if not getattr(self, name):
                raise ConfigurationError(name.upper())


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
