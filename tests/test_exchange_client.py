"""
Tests for the authenticated exchange client wrapper
"""

import asyncio
from unittest.mock import MagicMock, Mock

import pytest
from py_clob_client.exceptions import PolyApiException

from auth.credential_store import CredentialStore, ApiCredential
from auth.exchange_client import ExchangeClientWrapper
from auth.identity import IdentityResolver
from utils.exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    DeriveGateRejected,
    MalformedUpstreamResponse,
    PermanentDeriveRefusal,
)

from conftest import FUNDER_ADDRESS, SIGNER_ADDRESS


@pytest.fixture
def wrapper(settings, identity, store, gate, client_factory):
    return ExchangeClientWrapper(settings, identity, store, gate, client_factory=client_factory)


@pytest.fixture
def safe_wrapper(safe_settings, account, gate, client_factory):
    identity = IdentityResolver(safe_settings, account=account)
    store = CredentialStore(ApiCredential('key-123', 'YWJj', 'pass'))
    return ExchangeClientWrapper(safe_settings, identity, store, gate, client_factory=client_factory)


@pytest.mark.asyncio
class TestGetClient:

    async def test_memoized(self, wrapper, client_factory, clob_client):
        first = await wrapper.get_client()
        second = await wrapper.get_client()

        assert first is second is clob_client
        client_factory.assert_called_once()

    async def test_eoa_client_has_no_funder(self, wrapper, client_factory, settings):
        await wrapper.get_client()

        kwargs = client_factory.call_args.kwargs
        assert kwargs['signature_type'] == 0
        assert 'funder' not in kwargs
        assert kwargs['key'] == settings.private_key
        assert kwargs['creds'].api_key == 'key-123'

    async def test_safe_client_passes_funder(self, safe_wrapper, client_factory):
        await safe_wrapper.get_client()

        kwargs = client_factory.call_args.kwargs
        assert kwargs['signature_type'] == 2
        assert kwargs['funder'] == FUNDER_ADDRESS

    async def test_no_creds_when_none_configured(self, settings, identity, gate, client_factory):
        wrapper = ExchangeClientWrapper(
            settings, identity, CredentialStore(), gate, client_factory=client_factory
        )

        await wrapper.get_client()

        assert client_factory.call_args.kwargs['creds'] is None

    async def test_context_switch_invalidates_once(self, wrapper, client_factory, settings):
        await wrapper.get_client()
        settings.signature_type = 1

        await wrapper.get_client()
        await wrapper.get_client()

        assert client_factory.call_count == 2
        assert client_factory.call_args.kwargs['signature_type'] == 1

    async def test_factory_failure_wrapped(self, settings, identity, store, gate):
        factory = MagicMock(side_effect=ValueError("bad host"))
        wrapper = ExchangeClientWrapper(settings, identity, store, gate, client_factory=factory)

        with pytest.raises(AuthenticationError, match="Client initialization failed"):
            await wrapper.get_client()


@pytest.mark.asyncio
class TestDeriveCreds:

    async def test_success_stores_and_invalidates(self, wrapper, client_factory, store, identity):
        await wrapper.get_client()

        creds = await wrapper.derive_creds("unit test")

        ctx = identity.get_context_key()
        assert creds.api_key == 'derived-key'
        assert creds.secret == 'ZGVyaXZlZC1zZWNyZXQ+/w=='
        assert store.get_active(ctx) == creds

        # derive uses a credential-less temp client
        assert client_factory.call_args.kwargs['creds'] is None

        await wrapper.get_client()
        assert client_factory.call_count == 3
        assert client_factory.call_args.kwargs['creds'].api_key == 'derived-key'

    async def test_dict_payload_accepted(self, wrapper, clob_client):
        clob_client.create_or_derive_api_creds.return_value = {
            'apiKey': 'dict-key', 'secret': 'YWJj', 'passphrase': 'pp'
        }

        creds = await wrapper.derive_creds("dict")

        assert creds.api_key == 'dict-key'
        assert creds.passphrase == 'pp'

    async def test_fallback_to_create_api_key(self, settings, identity, store, gate, derived_creds):
        class OldSdkClient:
            def create_api_key(self):
                return derived_creds

        wrapper = ExchangeClientWrapper(
            settings, identity, store, gate, client_factory=lambda **kw: OldSdkClient()
        )

        creds = await wrapper.derive_creds("old sdk")

        assert creds.api_key == 'derived-key'

    async def test_no_derive_capability(self, settings, identity, store, gate):
        wrapper = ExchangeClientWrapper(
            settings, identity, store, gate, client_factory=lambda **kw: object()
        )

        with pytest.raises(ConfigurationError, match="SDK missing"):
            await wrapper.derive_creds("no sdk")

    async def test_missing_fields_consumes_slot(self, wrapper, clob_client, gate):
        clob_client.create_or_derive_api_creds.return_value = {'apiKey': 'k', 'secret': 'YWJj'}

        with pytest.raises(MalformedUpstreamResponse):
            await wrapper.derive_creds("malformed")

        assert gate.state.attempts_in_window == 1
        assert not gate.is_blocked

    async def test_none_payload_is_malformed(self, wrapper, clob_client):
        clob_client.create_or_derive_api_creds.return_value = None

        with pytest.raises(MalformedUpstreamResponse):
            await wrapper.derive_creds("none")

    async def test_refusal_blocks_gate(self, wrapper, clob_client, gate, clock):
        clob_client.create_or_derive_api_creds.side_effect = PolyApiException(
            error_msg={'error': 'Could not create api key'}
        )

        with pytest.raises(PermanentDeriveRefusal, match="manually") as exc_info:
            await wrapper.derive_creds("refused")

        assert gate.is_blocked
        assert exc_info.value.blocked_until == clock.now + 30 * 60

        clock.advance(120)
        with pytest.raises(DeriveGateRejected) as gate_exc:
            await wrapper.derive_creds("again")
        assert gate_exc.value.status == 'BLOCKED'

    async def test_refusal_in_returned_payload(self, wrapper, clob_client, gate):
        clob_client.create_or_derive_api_creds.return_value = {'error': 'Could not create api key'}

        with pytest.raises(PermanentDeriveRefusal):
            await wrapper.derive_creds("refused payload")

        assert gate.is_blocked

    async def test_other_error_payload(self, wrapper, clob_client, gate):
        clob_client.create_or_derive_api_creds.return_value = {'status': 500}

        with pytest.raises(AuthenticationError, match="status=500"):
            await wrapper.derive_creds("server error")

        assert not gate.is_blocked

    async def test_gate_cooldown_skips_exchange(self, wrapper, client_factory, clock):
        await wrapper.derive_creds("first")
        calls = client_factory.call_count
        clock.advance(2)

        with pytest.raises(DeriveGateRejected, match="cooldown") as exc_info:
            await wrapper.derive_creds("second")

        assert exc_info.value.status == 'COOLDOWN'
        assert client_factory.call_count == calls

    async def test_concurrent_derive_single_request(self, wrapper, clob_client):
        results = await asyncio.gather(
            wrapper.derive_creds("a"), wrapper.derive_creds("b"),
            return_exceptions=True
        )

        assert sum(isinstance(r, DeriveGateRejected) for r in results) == 1
        clob_client.create_or_derive_api_creds.assert_called_once()


@pytest.mark.asyncio
class TestValidateCreds:

    @pytest.mark.parametrize('payload', [
        {'apiKeys': ['other', 'key-123']},
        [{'apiKey': 'key-123'}],
        ['key-123'],
    ])
    async def test_ok_for_each_shape(self, wrapper, clob_client, payload):
        clob_client.get_api_keys.return_value = payload

        result = await wrapper.validate_creds()

        assert result.ok
        assert 'key-123' in result.api_keys
        assert result.active_api_key == 'key-123'
        assert not result.unauthorized

    async def test_key_not_listed(self, wrapper, clob_client):
        clob_client.get_api_keys.return_value = {'apiKeys': ['someone-else']}

        result = await wrapper.validate_creds()

        assert not result.ok
        assert not result.unauthorized
        assert result.api_keys == ['someone-else']

    async def test_unauthorized_200_payload(self, wrapper, clob_client):
        clob_client.get_api_keys.return_value = {'error': 'Unauthorized/Invalid api key', 'status': 401}

        result = await wrapper.validate_creds()

        assert not result.ok
        assert result.unauthorized
        assert result.api_keys == []

    async def test_unauthorized_exception(self, wrapper, clob_client):
        clob_client.get_api_keys.side_effect = PolyApiException(
            error_msg={'error': 'Unauthorized/Invalid api key'}
        )

        result = await wrapper.validate_creds()

        assert result.unauthorized
        assert not result.ok

    async def test_other_exception_raises(self, wrapper, clob_client):
        clob_client.get_api_keys.side_effect = ConnectionError("reset by peer")

        with pytest.raises(APIError, match="reset by peer"):
            await wrapper.validate_creds()

    async def test_uses_derived_key(self, wrapper, clob_client):
        await wrapper.derive_creds("rotate")
        clob_client.get_api_keys.return_value = ['derived-key']

        result = await wrapper.validate_creds()

        assert result.ok
        assert result.active_api_key == 'derived-key'
