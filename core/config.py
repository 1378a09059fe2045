"""
Configuration management using Pydantic Settings
Handles environment variables and validation
"""
from functools import lru_cache
from typing import Optional

from pydantic import ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings

from core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Environment
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    testing: bool = Field(default=False)

    # Application
    app_name: str = "SiteAuditor"
    app_version: str = "0.1.0"

    # Database
    database_url: str = Field(default="sqlite:////tmp/siteauditor.db")
    database_echo: bool = Field(default=False)

    # HTTP identity
    user_agent: str = Field(default="SiteAuditor/2.0 (+https://siteauditor.dev)")

    # Audit limits
    max_pages: int = Field(default=50, ge=1, le=50)
    scan_concurrency: int = Field(default=3, ge=1)
    psi_concurrency: int = Field(default=2, ge=1)
    psi_max_pages: int = Field(default=3, ge=0)
    crawl_max_pages: int = Field(default=10, ge=0)
    max_segments: int = Field(default=8, ge=0)

    # Timeouts (seconds unless noted)
    page_timeout_ms: int = Field(default=25000)
    fetch_timeout: float = Field(default=15.0)
    sitemap_timeout: float = Field(default=12.0)
    robots_timeout: float = Field(default=8.0)
    crawl_timeout: float = Field(default=10.0)
    plugin_timeout: float = Field(default=15.0)
    pagespeed_timeout: float = Field(default=45.0)
    vision_timeout: float = Field(default=120.0)

    # Scanner behaviour
    use_browser: bool = Field(default=True)
    capture_screenshots: bool = Field(default=True)
    run_accessibility: bool = Field(default=False)
    axe_script_url: str = Field(default="https://cdn.jsdelivr.net/npm/axe-core@4.10.0/axe.min.js")

    # Provider feature flags
    enable_pagespeed: bool = Field(default=True, description="Enable PageSpeed Insights diagnostics")
    enable_vision: bool = Field(default=True, description="Enable AI vision analysis of screenshots")
    enable_summary: bool = Field(default=True, description="Enable AI summary generation")

    # API Keys - use SecretStr for sensitive data
    google_api_key: Optional[SecretStr] = Field(default=None)
    openai_api_key: Optional[SecretStr] = Field(default=None)
    openai_model: str = Field(default="gpt-4o-mini")
    openai_base_url: str = Field(default="https://api.openai.com/v1")

    # Storage
    storage_dir: str = Field(default="/tmp/siteauditor/media")
    public_base_url: str = Field(default="http://localhost:8000/media")

    # Notifications
    notification_webhook_url: Optional[str] = Field(default=None)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text

    # Monitoring
    prometheus_enabled: bool = Field(default=True)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v, info):
        if info.data.get("testing") and not v.startswith("sqlite"):
            # Force SQLite for testing
            return "sqlite:///:memory:"
        return v

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Validate production-specific settings after all fields are set"""
        if self.environment == "production" and self.public_base_url.startswith("http://localhost"):
            raise ValueError("public_base_url must be set for production")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def get_api_key(self, service: str) -> str:
        """Get API key for a service"""
        keys = {
            "pagespeed": self.google_api_key.get_secret_value() if self.google_api_key else None,
            "openai": self.openai_api_key.get_secret_value() if self.openai_api_key else None,
        }

        key = keys.get(service)
        if not key:
            raise ConfigurationError(f"API key not configured for {service}", setting=f"{service}_api_key")
        return key

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    def model_dump(self, **kwargs):
        """Override to mask sensitive fields when serializing"""
        data = super().model_dump(**kwargs)

        sensitive_fields = ["google_api_key", "openai_api_key"]

        for field in sensitive_fields:
            if field in data and data[field]:
                if hasattr(data[field], "get_secret_value"):
                    value = data[field].get_secret_value()
                else:
                    value = str(data[field])

                # Keep first 4 chars for identification
                if len(value) > 4:
                    data[field] = value[:4] + "*" * (len(value) - 4)
                else:
                    data[field] = "*" * len(value)

        return data


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Global settings instance
settings = get_settings()
