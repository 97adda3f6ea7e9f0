"""
Authenticated CLOB client lifecycle

Owns the memoized py-clob-client ClobClient and the two flows that touch
L2 credentials:

- derive_creds(): create-or-derive a fresh triad through the DeriveGate
- validate_creds(): list the account's API keys and check ours is there

ClobClient construction:
    host, chain_id     - exchange endpoint
    key                - signer private key (L1)
    creds              - L2 credentials, omitted when none are known
    signature_type     - 0 / 1 / 2
    funder             - Safe/proxy address, only when signature_type != 0

The client is rebuilt whenever the auth context key changes and after
every successful derive.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from py_clob_client.client import ClobClient

from config.constants import DERIVE_REFUSAL_MARKER, SIGNATURE_TYPE_EOA
from config.settings import AuthSettings
from auth.credential_store import ApiCredential, CredentialStore
from auth.derive_gate import DeriveGate
from auth.identity import IdentityResolver
from auth.response_shapes import (
    error_from_payload,
    extract_api_keys,
    is_unauthorized_error,
    is_unauthorized_payload,
)
from utils.exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    MalformedUpstreamResponse,
    PermanentDeriveRefusal,
    PolymarketBotError,
)
from utils.helpers import mask
from utils.logger import get_logger, log_auth_event


logger = get_logger(__name__)


# Tried in order; SDK releases have shipped different names for the same call.
# create_or_derive_* returns the existing key when one exists, create_api_key
# always mints a new one.
DERIVE_METHODS: Tuple[str, ...] = (
    'create_or_derive_api_creds',
    'create_or_derive_api_key',
    'create_api_key',
)

_API_KEY_FIELDS = ('api_key', 'apiKey', 'key')
_SECRET_FIELDS = ('api_secret', 'secret', 'apiSecret')
_PASSPHRASE_FIELDS = ('api_passphrase', 'passphrase', 'apiPassphrase')


@dataclass
class CredentialValidation:
    ok: bool
    api_keys: List[str] = field(default_factory=list)
    active_api_key: str = ''
    unauthorized: bool = False


def _first_field(payload: Any, names: Tuple[str, ...]) -> Optional[str]:
    for name in names:
        if isinstance(payload, dict):
            value = payload.get(name)
        else:
            value = getattr(payload, name, None)
        if value:
            return str(value)
    return None


class ExchangeClientWrapper:
    """
    Builds the authenticated exchange client and runs derive/validate.

    Example:
        wrapper = ExchangeClientWrapper(settings, identity, store, gate)
        client = await wrapper.get_client()
    """

    def __init__(
        self,
        settings: AuthSettings,
        identity: IdentityResolver,
        store: CredentialStore,
        gate: DeriveGate,
        client_factory: Callable[..., Any] = ClobClient
    ):
        self._settings = settings
        self._identity = identity
        self._store = store
        self._gate = gate
        self._client_factory = client_factory
        self._client: Optional[Any] = None
        self._last_context_key: Optional[str] = None

    # ========================================================================
    # CLIENT LIFECYCLE
    # ========================================================================

    def active_credential(self) -> ApiCredential:
        return self._store.get_active(self._identity.get_context_key())

    def invalidate(self) -> None:
        self._client = None

    def _invalidate_if_context_changed(self) -> None:
        ctx = self._identity.get_context_key()
        if self._last_context_key and self._last_context_key != ctx:
            logger.info(
                f"🔁 Auth context changed: {self._last_context_key} -> {ctx}. "
                f"Clearing cached client."
            )
            self._client = None
        self._last_context_key = ctx

    def _create_client(self, creds: Optional[ApiCredential]) -> Any:
        signature_type = self._identity.get_signature_type()
        kwargs = {
            'host': self._settings.clob_url,
            'chain_id': self._settings.chain_id,
            'key': self._settings.private_key,
            'creds': creds.to_clob_creds() if creds else None,
            'signature_type': signature_type,
        }
        # The funder is passed separately; POLY_ADDRESS stays the signer
        if signature_type != SIGNATURE_TYPE_EOA:
            kwargs['funder'] = self._identity.get_funder_address()

        try:
            return self._client_factory(**kwargs)
        except PolymarketBotError:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize CLOB client: {type(e).__name__}: {e}")
            raise AuthenticationError(
                f"Client initialization failed: {e}",
                original_error=e
            ) from e

    async def get_client(self) -> Any:
        """
        Memoized client bound to the current identity and credentials.

        Raises:
            ConfigurationError: Malformed private key
            AuthenticationError: SDK refused to build the client
        """
        self._invalidate_if_context_changed()
        if self._client is not None:
            return self._client

        identity = self._identity.resolve()
        creds = self.active_credential()

        logger.info("🔧 Initializing Polymarket CLOB client...")
        logger.info(f"   mode={identity.auth_mode} signatureType={identity.signature_type}")
        logger.info(f"   signer={identity.signer_address}")
        logger.info(f"   funder={identity.funder_address}")
        logger.info(f"   POLY_ADDRESS(header)={identity.poly_address}")
        logger.info(f"   apiKey={mask(creds.api_key)}")

        self._client = self._create_client(creds if creds.api_key else None)
        return self._client

    # ========================================================================
    # DERIVE
    # ========================================================================

    def _resolve_derive_method(self, client: Any) -> Tuple[str, Callable[[], Any]]:
        for name in DERIVE_METHODS:
            method = getattr(client, name, None)
            if callable(method):
                return name, method
        raise ConfigurationError(
            "SDK missing create/derive credential methods",
            error_code='SDK_UNSUPPORTED',
            details={'tried': list(DERIVE_METHODS)}
        )

    def _refusal(self, message: str, cause: Optional[Exception] = None) -> PermanentDeriveRefusal:
        blocked_until = self._gate.block()
        log_auth_event(
            logger, 'DERIVE_REFUSED',
            context_key=self._identity.get_context_key(),
            blocked_for_sec=int(self._gate.block_sec)
        )
        return PermanentDeriveRefusal(
            'CLOB refused to create API key ("Could not create api key"). '
            'This account most likely cannot create keys via the API. '
            'Create the keys manually in the Polymarket UI and set '
            'POLYMARKET_API_KEY / POLYMARKET_API_SECRET / POLYMARKET_PASSPHRASE. '
            f'Auto-derive is blocked for {int(self._gate.block_sec // 60)} minutes.',
            blocked_until=blocked_until,
            details={'upstream_message': message[:200]},
            original_error=cause
        )

    async def derive_creds(self, reason: str) -> ApiCredential:
        """
        Create or derive a fresh credential triad for the current context.

        Raises:
            DeriveGateRejected: Gate closed (transient, carries the wait)
            PermanentDeriveRefusal: Account cannot create keys via the API
            MalformedUpstreamResponse: Response missing required fields
            AuthenticationError: Any other derive failure
        """
        await self._gate.acquire()

        ctx = self._identity.get_context_key()
        logger.info(f"🔄 AUTO-DERIVING NEW API CREDENTIALS... ({reason})")
        logger.info(
            f"   mode={self._identity.get_auth_mode()} "
            f"signatureType={self._identity.get_signature_type()}"
        )

        temp = self._create_client(None)
        name, method = self._resolve_derive_method(temp)
        logger.info(f"   🔑 Deriving or creating API creds ({name})...")

        try:
            payload = await asyncio.to_thread(method)
        except Exception as e:
            msg = f"{e} {getattr(e, 'error_msg', '') or ''}".strip()
            if DERIVE_REFUSAL_MARKER in msg.lower():
                raise self._refusal(msg, e) from e
            raise AuthenticationError(
                f"Credential derivation failed: {msg}",
                error_code='DERIVE_FAILED',
                original_error=e
            ) from e

        # The SDK sometimes hands back an error payload without raising
        err = error_from_payload(payload)
        if err:
            if DERIVE_REFUSAL_MARKER in err.lower():
                raise self._refusal(err)
            raise AuthenticationError(
                f"Credential derivation failed: {err}",
                error_code='DERIVE_FAILED'
            )

        api_key = _first_field(payload, _API_KEY_FIELDS)
        secret = _first_field(payload, _SECRET_FIELDS)
        passphrase = _first_field(payload, _PASSPHRASE_FIELDS)
        if not api_key or not secret or not passphrase:
            raise MalformedUpstreamResponse(
                "derive/create returned invalid response (missing fields)",
                details={
                    'method': name,
                    'has_api_key': bool(api_key),
                    'has_secret': bool(secret),
                    'has_passphrase': bool(passphrase),
                }
            )

        derived = self._store.set_derived(ctx, ApiCredential(api_key, secret, passphrase))
        self._client = None

        logger.info(
            f"   ✅ Derived creds ready: apiKey={mask(derived.api_key)} "
            f"secret={mask(derived.secret)} passphrase={mask(derived.passphrase)}"
        )
        log_auth_event(logger, 'CREDS_DERIVED', context_key=ctx, reason=reason)
        return derived

    # ========================================================================
    # VALIDATE
    # ========================================================================

    async def validate_creds(self) -> CredentialValidation:
        """
        Check the active API key against the account's key list.

        Unauthorized (raised 401 or a 200 payload encoding one) is reported
        through the result, not raised.

        Raises:
            APIError: Listing failed for a reason other than auth
        """
        client = await self.get_client()
        creds = self.active_credential()

        try:
            res = await asyncio.to_thread(client.get_api_keys)
        except Exception as e:
            if is_unauthorized_error(e):
                logger.warning(f"getApiKeys unauthorized for apiKey={mask(creds.api_key)}")
                return CredentialValidation(
                    ok=False, active_api_key=creds.api_key, unauthorized=True
                )
            raise APIError(
                f"Failed to list API keys: {e}",
                status_code=getattr(e, 'status_code', None),
                original_error=e
            ) from e

        if is_unauthorized_payload(res):
            logger.warning(
                f"getApiKeys returned an unauthorized payload for apiKey={mask(creds.api_key)}"
            )
            return CredentialValidation(ok=False, active_api_key=creds.api_key, unauthorized=True)

        api_keys = extract_api_keys(res)
        ok = bool(creds.api_key) and creds.api_key in api_keys
        return CredentialValidation(ok=ok, api_keys=api_keys, active_api_key=creds.api_key)
