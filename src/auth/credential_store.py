"""
In-memory cache of L2 API credentials, keyed by auth context.

A context key is "<signature_type>:<lowercased POLY_ADDRESS>". Derived
credentials live here for the lifetime of the process; nothing is written
to disk. Contexts without a derived entry fall back to the statically
configured triad.
"""

from dataclasses import dataclass, replace
from typing import Dict, Optional

from py_clob_client.clob_types import ApiCreds

from auth.signing import normalize_to_base64, decode_secret
from utils.helpers import mask
from utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class ApiCredential:
    """API key / secret / passphrase triad. secret is canonical base64."""
    api_key: str
    secret: str
    passphrase: str

    def normalized(self) -> 'ApiCredential':
        return replace(self, secret=normalize_to_base64(self.secret))

    def to_clob_creds(self) -> ApiCreds:
        """Convert to the py-clob-client credential type"""
        return ApiCreds(
            api_key=self.api_key,
            api_secret=self.secret,
            api_passphrase=self.passphrase,
        )

    def __repr__(self) -> str:
        return (
            f"ApiCredential(api_key={mask(self.api_key)}, "
            f"secret={mask(self.secret)}, passphrase={mask(self.passphrase)})"
        )


class CredentialStore:
    """Process-local credential cache. No eviction."""

    def __init__(self, configured: Optional[ApiCredential] = None):
        self._configured = (configured or ApiCredential('', '', '')).normalized()
        self._by_context: Dict[str, ApiCredential] = {}

    @property
    def configured(self) -> ApiCredential:
        return self._configured

    def get_active(self, context_key: str) -> ApiCredential:
        """Derived credential for this context, else the configured one"""
        return self._by_context.get(context_key, self._configured)

    def has_derived(self, context_key: str) -> bool:
        return context_key in self._by_context

    def set_derived(self, context_key: str, credential: ApiCredential) -> ApiCredential:
        """Store (overwrite) the derived credential for a context"""
        stored = credential.normalized()
        self._by_context[context_key] = stored
        logger.debug(
            f"Cached derived creds for context {context_key}: apiKey={mask(stored.api_key)}"
        )
        return stored

    def signing_secret(self, context_key: str) -> bytes:
        """
        Decoded HMAC key of the active credential.

        Raises:
            ConfigurationError: If the secret does not decode
        """
        return decode_secret(self.get_active(context_key).secret)
