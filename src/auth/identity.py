"""
Wallet identity resolution.

Polymarket Dual-Address System:
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
SIGNER (from private key) → Signs requests, goes into POLY_ADDRESS
FUNDER (config address)   → Holds funds, used for balance queries
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

When both are the same wallet the account is 'regular' (signature type 0),
otherwise it is a 'safe_proxy' account (signature type 2) unless an
explicit override is configured.
"""

from dataclasses import dataclass
from typing import Any, Optional

from eth_account import Account

from config.constants import (
    AUTH_MODE_REGULAR,
    AUTH_MODE_SAFE_PROXY,
    SIGNATURE_TYPE_EOA,
    SIGNATURE_TYPE_GNOSIS_SAFE,
    VALID_SIGNATURE_TYPES,
)
from config.settings import AuthSettings
from utils.exceptions import ConfigurationError


@dataclass(frozen=True)
class WalletIdentity:
    """Snapshot of the resolved identity, used for logging and diagnostics"""
    signer_address: str
    funder_address: str
    signature_type: int
    auth_mode: str
    poly_address: str
    balance_address: str
    context_key: str


class IdentityResolver:
    """
    Derives signer/funder addresses, auth mode, signature type and the
    credential context key from static configuration.
    """

    def __init__(self, settings: AuthSettings, account: Optional[Any] = None):
        """
        Args:
            settings: Static configuration
            account: Pre-built signer (anything with .address). Built from
                     settings.private_key on first use when omitted.
        """
        self._settings = settings
        self._account = account

    def get_signer(self) -> Any:
        """
        Signer wallet built from the configured private key.

        Raises:
            ConfigurationError: If the private key is missing or malformed
        """
        if self._account is None:
            if not self._settings.private_key:
                raise ConfigurationError(
                    "POLYMARKET_PRIVATE_KEY is not set",
                    error_code='MISSING_PRIVATE_KEY'
                )
            try:
                self._account = Account.from_key(self._settings.private_key)
            except Exception as e:
                # never include the key itself in the message
                raise ConfigurationError(
                    f"Failed to create account from private key: {type(e).__name__}",
                    error_code='INVALID_PRIVATE_KEY',
                    original_error=e
                ) from e
        return self._account

    def get_signer_address(self) -> str:
        return self.get_signer().address

    def get_funder_address(self) -> str:
        """Configured funder, falling back to the signer when unset"""
        return self._settings.address or self.get_signer_address()

    def get_auth_mode(self) -> str:
        signer = self.get_signer_address().lower()
        funder = self.get_funder_address().lower()
        return AUTH_MODE_REGULAR if signer == funder else AUTH_MODE_SAFE_PROXY

    def get_signature_type(self) -> int:
        """
        signatureType:
        - EOA wallets: 0
        - POLY_PROXY (Magic login): 1
        - GNOSIS_SAFE: 2
        """
        override = self._settings.signature_type
        if override in VALID_SIGNATURE_TYPES:
            return override
        if self.get_auth_mode() == AUTH_MODE_SAFE_PROXY:
            return SIGNATURE_TYPE_GNOSIS_SAFE
        return SIGNATURE_TYPE_EOA

    def get_poly_address_header(self) -> str:
        """
        POLY_ADDRESS must be the signer (EOA) address, even when a Safe
        funder is used with signature type 2. The exchange verifies the
        signature against the EOA.
        """
        return self.get_signer_address()

    def get_balance_query_address(self) -> str:
        """For Safe proxy accounts the funds live on the Safe"""
        if self.get_auth_mode() == AUTH_MODE_SAFE_PROXY:
            return self.get_funder_address()
        return self.get_signer_address()

    def get_context_key(self) -> str:
        return f"{self.get_signature_type()}:{self.get_poly_address_header().lower()}"

    def resolve(self) -> WalletIdentity:
        return WalletIdentity(
            signer_address=self.get_signer_address(),
            funder_address=self.get_funder_address(),
            signature_type=self.get_signature_type(),
            auth_mode=self.get_auth_mode(),
            poly_address=self.get_poly_address_header(),
            balance_address=self.get_balance_query_address(),
            context_key=self.get_context_key(),
        )
