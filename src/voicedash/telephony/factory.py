"""
Telephony provider factory.

Single source of truth for configuration: TelephonyConfig (pydantic
settings, OS env + .env). Never read raw os.getenv("TWILIO_*") here.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from voicedash.telephony.config import ProviderType, TelephonyConfig, get_telephony_config
from voicedash.telephony.interface import CallRecordProvider
from voicedash.telephony.mock_adapter import MockCallRecordProvider
from voicedash.telephony.twilio_adapter import TwilioCallRecordAdapter

logger = logging.getLogger(__name__)


def _mask(s: str, keep: int = 6) -> str:
    if not s:
        return ""
    if len(s) <= keep:
        return "*" * len(s)
    return f"{s[:keep]}***"


def create_call_record_provider(cfg: TelephonyConfig) -> CallRecordProvider:
    logger.info(
        "Telephony config resolved",
        extra={
            "provider_type": cfg.provider_type.value,
            "twilio_account_sid": _mask(cfg.twilio_account_sid),
            "twilio_phone_number": cfg.twilio_phone_number,
            "page_size": cfg.page_size,
        },
    )

    if cfg.provider_type == ProviderType.TWILIO:
        return TwilioCallRecordAdapter(cfg)

    if cfg.provider_type == ProviderType.MOCK:
        return MockCallRecordProvider()

    raise ValueError(f"Unsupported telephony provider_type: {cfg.provider_type}")


@lru_cache(maxsize=1)
def get_call_record_provider() -> CallRecordProvider:
    """Create and cache the provider from the environment."""
    return create_call_record_provider(get_telephony_config())
