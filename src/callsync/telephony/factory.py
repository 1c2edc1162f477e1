"""
Provider gateway factory.

Single source of truth for configuration: TelephonyConfig (pydantic-settings),
which loads from OS env + .env.
"""

from __future__ import annotations

from functools import lru_cache

from callsync.shared.logging import get_logger
from callsync.telephony.config import ProviderType, TelephonyConfig
from callsync.telephony.config import get_telephony_config as _load_telephony_config
from callsync.telephony.interface import ProviderGateway
from callsync.telephony.mock_adapter import MockProviderGateway
from callsync.telephony.telnyx_adapter import TelnyxGateway

logger = get_logger(__name__)


def _mask(s: str, keep: int = 6) -> str:
    if not s:
        return ""
    if len(s) <= keep:
        return "*" * len(s)
    return f"{s[:keep]}***"


@lru_cache(maxsize=1)
def get_telephony_config() -> TelephonyConfig:
    """Return the cached TelephonyConfig."""
    return _load_telephony_config()


@lru_cache(maxsize=1)
def get_provider_gateway() -> ProviderGateway:
    """Create and cache the provider gateway selected by TelephonyConfig."""
    cfg = get_telephony_config()

    logger.info(
        "Telephony config resolved",
        extra={
            "provider_type": cfg.provider_type.value,
            "telnyx_api_key": _mask(cfg.telnyx_api_key),
            "telnyx_api_base_url": cfg.telnyx_api_base_url,
            "webhook_base_url": cfg.webhook_base_url,
            "request_timeout_seconds": cfg.request_timeout_seconds,
        },
    )

    if cfg.provider_type == ProviderType.TELNYX:
        return TelnyxGateway(cfg)

    if cfg.provider_type == ProviderType.MOCK:
        return MockProviderGateway()

    raise ValueError(f"Unsupported telephony provider_type: {cfg.provider_type}")
