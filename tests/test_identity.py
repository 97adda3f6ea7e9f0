"""
Tests for wallet identity resolution
"""

from unittest.mock import Mock

import pytest

from auth.identity import IdentityResolver
from utils.exceptions import ConfigurationError

from conftest import make_settings


def resolver(signer: str, funder: str, **overrides) -> IdentityResolver:
    return IdentityResolver(make_settings(address=funder, **overrides), account=Mock(address=signer))


class TestAuthMode:

    def test_regular_account(self):
        """signer == funder: regular, type 0, balance on the signer"""
        ident = resolver('0xAAA', '0xAAA')

        assert ident.get_auth_mode() == 'regular'
        assert ident.get_signature_type() == 0
        assert ident.get_balance_query_address() == '0xAAA'
        assert ident.get_poly_address_header() == '0xAAA'

    def test_safe_proxy_account(self):
        """signer != funder: safe_proxy, type 2, header stays the signer"""
        ident = resolver('0xAAA', '0xBBB')

        assert ident.get_auth_mode() == 'safe_proxy'
        assert ident.get_signature_type() == 2
        assert ident.get_poly_address_header() == '0xAAA'
        assert ident.get_balance_query_address() == '0xBBB'

    def test_address_comparison_is_case_insensitive(self):
        ident = resolver('0xabcDEF', '0xABCdef')

        assert ident.get_auth_mode() == 'regular'

    def test_missing_funder_means_regular(self):
        ident = resolver('0xAAA', '')

        assert ident.get_funder_address() == '0xAAA'
        assert ident.get_auth_mode() == 'regular'


class TestSignatureType:

    @pytest.mark.parametrize('override', [0, 1, 2])
    def test_override_wins(self, override):
        assert resolver('0xAAA', '0xBBB', signature_type=override).get_signature_type() == override
        assert resolver('0xAAA', '0xAAA', signature_type=override).get_signature_type() == override

    def test_override_does_not_change_header(self):
        ident = resolver('0xAAA', '0xBBB', signature_type=1)

        assert ident.get_poly_address_header() == '0xAAA'


class TestContextKey:

    def test_format(self):
        assert resolver('0xAbC', '0xAbC').get_context_key() == '0:0xabc'
        assert resolver('0xAbC', '0xDEF').get_context_key() == '2:0xabc'

    def test_resolve_snapshot(self):
        snapshot = resolver('0xAAA', '0xBBB').resolve()

        assert snapshot.signer_address == '0xAAA'
        assert snapshot.funder_address == '0xBBB'
        assert snapshot.auth_mode == 'safe_proxy'
        assert snapshot.signature_type == 2
        assert snapshot.poly_address == '0xAAA'
        assert snapshot.balance_address == '0xBBB'
        assert snapshot.context_key == '2:0xaaa'


class TestSigner:

    def test_signer_from_private_key(self):
        ident = IdentityResolver(make_settings(private_key='0x' + '1' * 64))

        address = ident.get_signer_address()
        assert address.startswith('0x')
        assert len(address) == 42

    def test_malformed_private_key(self):
        ident = IdentityResolver(make_settings(private_key='0xnot-a-key'))

        with pytest.raises(ConfigurationError, match="private key") as exc_info:
            ident.get_signer_address()
        assert 'not-a-key' not in str(exc_info.value)

    def test_missing_private_key(self):
        ident = IdentityResolver(make_settings(private_key=''))

        with pytest.raises(ConfigurationError, match="PRIVATE_KEY"):
            ident.get_context_key()
