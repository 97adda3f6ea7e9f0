"""
Auth Manager - facade over the credential and request-signing components

Construct one instance at the process root and pass it to whoever needs
authenticated access; there is no module-level instance.

Usage:
    manager = AuthManager.from_settings(get_settings())
    client = await manager.get_client()
    report = await manager.self_test()
    await manager.close()
"""

from typing import Any, Dict, Optional

import aiohttp

from config.settings import AuthSettings
from auth.balance import BalanceProber, BalanceResult
from auth.credential_store import ApiCredential, CredentialStore
from auth.derive_gate import DeriveGate
from auth.exchange_client import CredentialValidation, ExchangeClientWrapper
from auth.identity import IdentityResolver
from auth.self_test import SelfTestReport, SelfTestRunner
from auth.signing import build_l2_headers
from utils.helpers import validate_ethereum_address
from utils.logger import get_logger


logger = get_logger(__name__)


class AuthManager:

    def __init__(
        self,
        settings: AuthSettings,
        identity: IdentityResolver,
        store: CredentialStore,
        gate: DeriveGate,
        client: ExchangeClientWrapper,
        prober: BalanceProber
    ):
        self.settings = settings
        self.identity = identity
        self.store = store
        self.gate = gate
        self.client = client
        self.prober = prober
        self._self_test = SelfTestRunner(identity, client, prober)

    @classmethod
    def from_settings(
        cls,
        settings: AuthSettings,
        account: Optional[Any] = None,
        client_factory: Optional[Any] = None,
        session: Optional[aiohttp.ClientSession] = None,
        gate: Optional[DeriveGate] = None
    ) -> 'AuthManager':
        """
        Wire all components from static configuration.

        Raises:
            ConfigurationError: If the configured funder address is malformed
        """
        if settings.address:
            validate_ethereum_address(settings.address)

        identity = IdentityResolver(settings, account=account)
        store = CredentialStore(ApiCredential(
            api_key=settings.api_key,
            secret=settings.api_secret,
            passphrase=settings.passphrase,
        ))
        gate = gate or DeriveGate(
            max_attempts=settings.derive_max_attempts,
            window_sec=settings.derive_window_sec,
            cooldown_sec=settings.derive_cooldown_sec,
            block_sec=settings.derive_block_sec,
        )
        wrapper_kwargs = {'client_factory': client_factory} if client_factory else {}
        client = ExchangeClientWrapper(settings, identity, store, gate, **wrapper_kwargs)
        prober = BalanceProber(settings, identity, store, session=session)
        return cls(settings, identity, store, gate, client, prober)

    # ========================================================================
    # IDENTITY
    # ========================================================================

    def get_auth_mode(self) -> str:
        return self.identity.get_auth_mode()

    def get_signature_type(self) -> int:
        return self.identity.get_signature_type()

    def get_signer_address(self) -> str:
        return self.identity.get_signer_address()

    def get_funder_address(self) -> str:
        return self.identity.get_funder_address()

    def get_poly_address_header(self) -> str:
        return self.identity.get_poly_address_header()

    def get_balance_query_address(self) -> str:
        return self.identity.get_balance_query_address()

    # ========================================================================
    # CREDENTIALS
    # ========================================================================

    async def get_client(self) -> Any:
        return await self.client.get_client()

    async def validate_creds(self) -> CredentialValidation:
        return await self.client.validate_creds()

    async def derive_creds(self, reason: str) -> ApiCredential:
        return await self.client.derive_creds(reason)

    async def ensure_valid_creds(self, reason: str = "validation failed") -> ApiCredential:
        """
        Validate the active credential and derive once if it is rejected.

        Gate rejections and refusals from derive_creds() propagate.
        """
        result = await self.validate_creds()
        if result.ok:
            return self.client.active_credential()

        why = 'unauthorized' if result.unauthorized else 'api key not listed'
        logger.warning(f"Active credential invalid ({why}), deriving new credentials")
        return await self.derive_creds(f"{reason}: {why}")

    def build_headers(self, method: str, path: str, body: Optional[str] = None) -> Dict[str, str]:
        """
        Signed L2 headers for an arbitrary request with the active credential.

        Raises:
            ConfigurationError: If the active secret does not decode
        """
        ctx = self.identity.get_context_key()
        creds = self.store.get_active(ctx)
        return build_l2_headers(
            address=self.identity.get_poly_address_header(),
            api_key=creds.api_key,
            passphrase=creds.passphrase,
            secret_bytes=self.store.signing_secret(ctx),
            method=method,
            path=path,
            body=body,
        )

    # ========================================================================
    # DIAGNOSTICS
    # ========================================================================

    async def get_balance(self) -> BalanceResult:
        return await self.prober.get_balance()

    async def self_test(self) -> SelfTestReport:
        return await self._self_test.run()

    async def close(self) -> None:
        await self.prober.close()
