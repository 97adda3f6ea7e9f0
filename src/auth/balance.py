"""
USDC balance via the signed /balance-allowance endpoint.

The endpoint's query schema has varied (asset type as 'collateral' or 0,
asset address as asset_address / assetAddress / omitted), so the probe
walks a fixed list of encodings of the same request:

- HTTP 400      → schema mismatch, try the next candidate
- other non-2xx → stop, later candidates cannot help
- 2xx           → parse balance, done

Candidates are tried strictly one after another so the exchange never
sees a burst of near-duplicate signed requests.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, List, Optional
from urllib.parse import quote

import aiohttp

from config.constants import BALANCE_ALLOWANCE_PATH, ERROR_BODY_MAX_CHARS
from config.settings import AuthSettings
from auth.credential_store import CredentialStore
from auth.identity import IdentityResolver
from auth.signing import build_l2_headers, current_timestamp
from utils.exceptions import ConfigurationError, SchemaMismatch, UpstreamError
from utils.helpers import to_float
from utils.logger import get_logger


logger = get_logger(__name__)


@dataclass
class BalanceResult:
    usdc: float = 0.0
    error: Optional[str] = None
    status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_candidate_paths(address: str, signature_type: int, asset_address: str) -> List[str]:
    """
    Ordered query encodings for one balance request.

    Order and count follow observed upstream schema variance.
    """
    addr = quote(address, safe='')
    asset = quote(asset_address.lower(), safe='')
    tail = f"signature_type={signature_type}&address={addr}"

    paths = []
    for asset_type in ('collateral', '0'):
        paths.append(f"{BALANCE_ALLOWANCE_PATH}?asset_type={asset_type}&asset_address={asset}&{tail}")
        paths.append(f"{BALANCE_ALLOWANCE_PATH}?asset_type={asset_type}&assetAddress={asset}&{tail}")
        paths.append(f"{BALANCE_ALLOWANCE_PATH}?asset_type={asset_type}&{tail}")
    return paths


def parse_balance(data: Any) -> float:
    """First present of balance / available_balance, 0 when unusable"""
    if not isinstance(data, dict):
        return 0.0
    raw = data.get('balance')
    if raw is None:
        raw = data.get('available_balance')
    return to_float(raw if raw is not None else 0)


class BalanceProber:
    """
    Signed balance query with ordered fallback candidates.

    get_balance() never raises; failures come back in BalanceResult.
    """

    def __init__(
        self,
        settings: AuthSettings,
        identity: IdentityResolver,
        store: CredentialStore,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self._settings = settings
        self._identity = identity
        self._store = store
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._settings.api_timeout_sec),
                headers={"Accept": "application/json"}
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            logger.debug("Closed balance aiohttp session")

    async def _request(self, path: str, headers: dict) -> float:
        """
        One candidate request.

        Raises:
            SchemaMismatch: HTTP 400
            UpstreamError: Any other non-2xx
        """
        session = self._get_session()
        async with session.get(f"{self._settings.clob_url}{path}", headers=headers) as response:
            if not 200 <= response.status < 300:
                body = await response.text(errors='replace')
                text = body[:ERROR_BODY_MAX_CHARS] or f"HTTP {response.status}"
                error_cls = SchemaMismatch if response.status == 400 else UpstreamError
                raise error_cls(text, status_code=response.status, response_data=text)

            try:
                data = await response.json(content_type=None)
            except ValueError:
                logger.warning(f"Balance response was not JSON: path={path}")
                data = None
            return parse_balance(data)

    async def get_balance(self) -> BalanceResult:
        try:
            ctx = self._identity.get_context_key()
            creds = self._store.get_active(ctx)
            secret_bytes = self._store.signing_secret(ctx)
            poly_address = self._identity.get_poly_address_header()
            signature_type = self._identity.get_signature_type()
            query_address = self._identity.get_balance_query_address()
        except ConfigurationError as e:
            logger.error(f"Balance probe not attempted: {e.message}")
            return BalanceResult(error=e.message)

        paths = build_candidate_paths(query_address, signature_type, self._settings.usdc_address)
        timestamp = current_timestamp()
        last_error: Optional[SchemaMismatch] = None

        for path in paths:
            headers = build_l2_headers(
                address=poly_address,
                api_key=creds.api_key,
                passphrase=creds.passphrase,
                secret_bytes=secret_bytes,
                method='GET',
                path=path,
                timestamp=timestamp,
            )
            try:
                usdc = await self._request(path, headers)
            except SchemaMismatch as e:
                last_error = e
                logger.warning(
                    f"❌ Balance attempt failed: status={e.status_code} path={path} body={e.message}"
                )
                continue
            except UpstreamError as e:
                logger.error(
                    f"❌ Balance attempt failed: status={e.status_code} path={path} body={e.message}"
                )
                return BalanceResult(error=e.message, status=e.status_code)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.error(f"❌ Balance request error: path={path} error={type(e).__name__}: {e}")
                return BalanceResult(error=f"{type(e).__name__}: {e}")

            logger.debug(f"Balance for {query_address}: {usdc} USDC")
            return BalanceResult(usdc=usdc)

        if last_error is None:
            return BalanceResult(error='Unknown error')
        return BalanceResult(error=last_error.message, status=last_error.status_code)

    async def server_time_skew_ms(self) -> Optional[float]:
        """
        Local clock minus the exchange's Date header, in milliseconds.

        A skewed POLY_TIMESTAMP is rejected as unauthorized, so self-test
        reports this. Returns None when the header cannot be read.
        """
        session = self._get_session()
        try:
            async with session.get(self._settings.clob_url) as response:
                date_header = response.headers.get('Date')
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Clock skew check failed: {type(e).__name__}: {e}")
            return None

        if not date_header:
            return None
        try:
            server_time = parsedate_to_datetime(date_header)
        except (TypeError, ValueError):
            return None
        return (datetime.now(timezone.utc) - server_time).total_seconds() * 1000.0
