"""
Unit tests for read and compose access resolution.

Tests cover:
- Owner bypass on reads
- Unset, public and private visibility
- Allow-list overrides
- AccessPolicy checks
"""

import pytest

from tsn_sdk.access import AccessPolicy, Permission, can_compose, can_read
from tsn_sdk.errors import AccessDeniedError
from tsn_sdk.identifiers import EthereumAddress
from tsn_sdk.types import Visibility

OWNER = EthereumAddress("0x" + "a1" * 20)
WALLET = EthereumAddress("0x" + "b2" * 20)


class TestCanRead:
    """Tests for can_read."""

    def test_owner_always_reads(self):
        """Owner bypasses private visibility."""
        assert can_read(Visibility.PRIVATE, [], OWNER, OWNER)

    def test_unset_is_public(self):
        """No visibility row means public."""
        assert can_read(None, [], WALLET, OWNER)

    def test_public(self):
        """Anyone reads public streams."""
        assert can_read(Visibility.PUBLIC, [], WALLET, OWNER)

    def test_private_denied(self):
        """Private streams refuse other wallets."""
        assert not can_read(Visibility.PRIVATE, [], WALLET, OWNER)

    def test_private_allowed_wallet(self):
        """Allowed wallets read private streams."""
        assert can_read(Visibility.PRIVATE, [WALLET], WALLET, OWNER)


class TestCanCompose:
    """Tests for can_compose."""

    def test_owner_gets_no_exemption(self):
        """Compose privacy also binds composed streams of the same owner."""
        assert not can_compose(Visibility.PRIVATE, [], "xparent")

    def test_public(self):
        """Public streams can be composed by anyone."""
        assert can_compose(Visibility.PUBLIC, [], "xparent")
        assert can_compose(None, [], "xparent")

    def test_private(self):
        """Private streams need the composer on the allow-list."""
        assert not can_compose(Visibility.PRIVATE, [], "xparent")
        assert can_compose(Visibility.PRIVATE, ["xparent"], "xparent")


class TestAccessPolicy:
    """Tests for AccessPolicy."""

    def test_check_read_denied(self):
        """Denied reads raise with context."""
        policy = AccessPolicy(stream_ref="xchild", owner=OWNER, read_visibility=Visibility.PRIVATE)
        with pytest.raises(AccessDeniedError) as exc_info:
            policy.check_read(WALLET)
        assert exc_info.value.required_permission == Permission.READ.value
        assert exc_info.value.resource_id == "xchild"
        assert exc_info.value.code == "ACCESS_DENIED"

    def test_check_read_allowed(self):
        """Allowed wallets pass."""
        policy = AccessPolicy(
            stream_ref="xchild",
            owner=OWNER,
            read_visibility=Visibility.PRIVATE,
            allowed_wallets=frozenset({WALLET}),
        )
        policy.check_read(WALLET)

    def test_check_compose_denied(self):
        """Composers not on the list are refused."""
        policy = AccessPolicy(
            stream_ref="xchild", owner=OWNER, compose_visibility=Visibility.PRIVATE
        )
        with pytest.raises(AccessDeniedError) as exc_info:
            policy.check_compose("xparent")
        assert exc_info.value.required_permission == Permission.COMPOSE.value

    def test_axes_independent(self):
        """Read privacy does not restrict composing."""
        policy = AccessPolicy(stream_ref="xchild", owner=OWNER, read_visibility=Visibility.PRIVATE)
        policy.check_compose("xparent")
