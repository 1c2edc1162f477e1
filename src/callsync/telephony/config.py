"""
Telephony provider configuration.
"""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderType(str, Enum):
    """Supported telephony provider types."""

    TELNYX = "telnyx"
    MOCK = "mock"


class TelephonyConfig(BaseSettings):
    """Telephony provider configuration from environment."""

    model_config = SettingsConfigDict(
        env_prefix="TELEPHONY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Provider selection
    provider_type: ProviderType = Field(default=ProviderType.TELNYX)

    # Provider credentials
    telnyx_api_key: str = Field(default="")
    telnyx_api_base_url: str = Field(default="https://api.telnyx.com/v2")
    telnyx_connection_id: str = Field(
        default="",
        description="Voice connection numbers are attached to when voice is enabled.",
    )

    # Webhook base URL (HTTP) the provider posts call events to
    webhook_base_url: str = Field(default="http://localhost:8000")

    # Timeouts
    request_timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    call_timeout_secs: int = Field(
        default=30,
        ge=5,
        le=600,
        description="Ring timeout passed to the provider for outbound calls.",
    )

    def get_webhook_url(self, path: str = "/webhooks/voice") -> str:
        base = self.webhook_base_url.rstrip("/")
        return f"{base}{path}"


def get_telephony_config() -> TelephonyConfig:
    return TelephonyConfig()
