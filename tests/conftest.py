"""
Test Configuration Module
Provides fixtures and shared test utilities
"""

import base64
import json
import os
import sys
from typing import Any, List, Optional
from unittest.mock import MagicMock, Mock

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'src'))

from py_clob_client.clob_types import ApiCreds

from auth.credential_store import ApiCredential, CredentialStore
from auth.derive_gate import DeriveGate
from auth.identity import IdentityResolver
from config.settings import AuthSettings


SIGNER_ADDRESS = '0x' + 'a' * 40
FUNDER_ADDRESS = '0x' + 'B' * 40
SECRET_BYTES = b'0123456789abcdef0123456789abcdef'
SECRET_B64 = base64.b64encode(SECRET_BYTES).decode()


class FakeClock:
    """Manually advanced clock for DeriveGate"""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    """Minimal aiohttp response stand-in, usable as async context manager"""

    def __init__(self, status: int, body: Any = None, headers: Optional[dict] = None):
        self.status = status
        self._body = body
        self.headers = headers or {}

    async def text(self, errors: str = 'strict') -> str:
        if isinstance(self._body, (dict, list)):
            return json.dumps(self._body)
        if isinstance(self._body, bytes):
            return self._body.decode('utf-8', errors=errors)
        return '' if self._body is None else str(self._body)

    async def json(self, content_type=None) -> Any:
        if isinstance(self._body, (dict, list)):
            return self._body
        return json.loads(self._body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Records GETs and replays queued responses (or raises queued errors)"""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[dict] = []
        self.closed = False

    def get(self, url: str, headers: Optional[dict] = None):
        self.calls.append({'url': url, 'headers': dict(headers or {})})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


def make_settings(**overrides) -> AuthSettings:
    values = {
        'private_key': '0x' + '1' * 64,
        'address': SIGNER_ADDRESS,
        'api_key': 'key-123',
        'api_secret': SECRET_B64,
        'passphrase': 'pass-456',
    }
    values.update(overrides)
    return AuthSettings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def safe_settings():
    return make_settings(address=FUNDER_ADDRESS)


@pytest.fixture
def account():
    return Mock(address=SIGNER_ADDRESS)


@pytest.fixture
def clock():
    return FakeClock(start=1_000.0)


@pytest.fixture
def gate(clock):
    return DeriveGate(clock=clock)


@pytest.fixture
def store(settings):
    return CredentialStore(ApiCredential(settings.api_key, settings.api_secret, settings.passphrase))


@pytest.fixture
def identity(settings, account):
    return IdentityResolver(settings, account=account)


@pytest.fixture
def derived_creds():
    return ApiCreds(
        api_key='derived-key',
        api_secret='ZGVyaXZlZC1zZWNyZXQ-_w',
        api_passphrase='derived-pass',
    )


@pytest.fixture
def clob_client(derived_creds):
    """Mock ClobClient exposing create_or_derive_api_creds and get_api_keys"""
    client = MagicMock()
    client.create_or_derive_api_creds.return_value = derived_creds
    client.get_api_keys.return_value = {'apiKeys': ['key-123']}
    return client


@pytest.fixture
def client_factory(clob_client):
    return MagicMock(return_value=clob_client)
