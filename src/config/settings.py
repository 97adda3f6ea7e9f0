"""
Environment-driven settings for the CLOB Auth Manager

This module implements a pydantic-settings based configuration object.
Every field can be overridden via environment variables prefixed with
POLYMARKET_ or via a local .env file.

Usage:
    from config.settings import get_settings

    settings = get_settings()
    cooldown = settings.derive_cooldown_sec

    # Override via environment:
    # export POLYMARKET_DERIVE_COOLDOWN_SEC=20
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

from config.constants import (
    CLOB_API_URL,
    POLYGON_CHAIN_ID,
    USDC_ADDRESS,
    API_TIMEOUT_SEC,
    VALID_SIGNATURE_TYPES,
    DERIVE_MAX_ATTEMPTS_PER_WINDOW,
    DERIVE_WINDOW_SEC,
    DERIVE_COOLDOWN_SEC,
    DERIVE_BLOCK_SEC,
    LOG_LEVEL,
)


class AuthSettings(BaseSettings):
    """
    Static configuration consumed by the auth manager.

    Example: POLYMARKET_SIGNATURE_TYPE=1 python src/main.py --self-test
    """

    model_config = SettingsConfigDict(
        env_prefix='POLYMARKET_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # ============================================================================
    # WALLET
    # ============================================================================

    private_key: str = Field(
        default='',
        description="Signer (EOA) private key, hex"
    )

    address: str = Field(
        default='',
        description="Funder address. Equal to the signer for EOA accounts, the Safe otherwise"
    )

    signature_type: Optional[int] = Field(
        default=None,
        description="Explicit signature type override (0=EOA, 1=POLY_PROXY, 2=GNOSIS_SAFE)"
    )

    # ============================================================================
    # STATIC L2 CREDENTIALS
    # ============================================================================

    api_key: str = Field(default='', description="CLOB API key (UUID)")
    api_secret: str = Field(default='', description="CLOB API secret (base64 or base64url)")
    passphrase: str = Field(default='', description="CLOB API passphrase")

    # ============================================================================
    # EXCHANGE
    # ============================================================================

    clob_url: str = Field(default=CLOB_API_URL)
    chain_id: int = Field(default=POLYGON_CHAIN_ID)
    usdc_address: str = Field(default=USDC_ADDRESS)
    api_timeout_sec: float = Field(default=API_TIMEOUT_SEC, gt=0.0)

    # ============================================================================
    # DERIVE GATE
    # ============================================================================

    derive_max_attempts: int = Field(
        default=DERIVE_MAX_ATTEMPTS_PER_WINDOW,
        description="Max derive attempts per window",
        ge=1
    )

    derive_window_sec: float = Field(default=DERIVE_WINDOW_SEC, gt=0.0)

    derive_cooldown_sec: float = Field(default=DERIVE_COOLDOWN_SEC, ge=0.0)

    derive_block_sec: float = Field(
        default=DERIVE_BLOCK_SEC,
        description="Block after a permanent refusal (seconds)",
        gt=0.0
    )

    log_level: str = Field(default=LOG_LEVEL)

    # ============================================================================
    # VALIDATORS
    # ============================================================================

    @field_validator('signature_type', mode='before')
    @classmethod
    def validate_signature_type(cls, v):
        """Blank means 'not set'; anything else must be 0, 1 or 2"""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        v = int(v)
        if v not in VALID_SIGNATURE_TYPES:
            raise ValueError(
                f"signature_type must be one of {VALID_SIGNATURE_TYPES}, got {v}"
            )
        return v

    @field_validator('clob_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip('/')


_settings: Optional[AuthSettings] = None


def get_settings() -> AuthSettings:
    """
    Get the lazily created settings instance.

    Returns:
        AuthSettings: Configured settings instance
    """
    global _settings
    if _settings is None:
        _settings = AuthSettings()
    return _settings


__all__ = ['get_settings', 'AuthSettings']
