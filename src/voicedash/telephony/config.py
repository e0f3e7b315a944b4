"""
Telephony provider configuration.

Credentials and the reporting number used by the summary endpoints.
"""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderType(str, Enum):
    """Supported telephony provider types."""

    TWILIO = "twilio"
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
    provider_type: ProviderType = Field(default=ProviderType.TWILIO)

    # Provider credentials
    twilio_account_sid: str = Field(default="")
    twilio_auth_token: str = Field(default="")

    # Number the summaries report on: inbound = calls to it, outbound = calls from it
    twilio_phone_number: str = Field(default="")

    api_base_url: str = Field(default="https://api.twilio.com/2010-04-01")
    page_size: int = Field(default=1000, ge=1, le=1000)
    request_timeout_seconds: float = Field(default=30.0, gt=0, le=300)

    # Studio Flow redirect legs; never counted as real outbound calls
    internal_redirect_numbers: str = Field(
        default="",
        description="Comma-separated list of internal redirect numbers.",
    )

    @property
    def internal_redirect_numbers_set(self) -> frozenset[str]:
        return frozenset(
            n.strip() for n in self.internal_redirect_numbers.split(",") if n.strip()
        )


def get_telephony_config() -> TelephonyConfig:
    return TelephonyConfig()
