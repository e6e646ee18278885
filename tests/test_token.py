"""
tests/test_token.py

Dual-domain token.

    ROUTES   transfers across all four domain pairs keep supply fixed
    GUARDS   balance checks, delegated transfers, minter-only issuance
    LIMITS   uint128 supply and amount validation
"""

import pytest

from privault.auth.guard import AccessGuard
from privault.config import TokenConfig
from privault.core.exceptions import (
    ArithmeticOverflowError,
    AuthorizationReplayError,
    InsufficientAuthorizationError,
    InsufficientBalanceError,
    ValidationError,
)
from privault.core.models import U128_MAX, Domain
from privault.token.store import Token

D = Domain.DISCLOSED
C = Domain.CONFIDENTIAL


# ─────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────

@pytest.fixture
def guard():
    return AccessGuard()


@pytest.fixture
def token(guard):
    token = Token(TokenConfig("Token", "TKN", decimals=6, minter="minter"), guard)
    token.mint_to("minter", "alice", 100, D)
    token.mint_to("minter", "alice", 50, C)
    return token


# ─────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────

class TestTransferRoutes:

    @pytest.mark.parametrize("source", [D, C])
    @pytest.mark.parametrize("target", [D, C])
    def test_route(self, token, source, target):
        before = token.balance_of("alice", source)
        token.transfer("alice", "alice", "bob", 10, source, target)
        assert token.balance_of("alice", source) == before - 10
        assert token.balance_of("bob", target) == 10
        assert token.total_supply() == 150
        assert token.sum_of_balances() == 150

    def test_shield_to_self(self, token):
        token.transfer("alice", "alice", "alice", 30, D, C)
        assert token.balances("alice") == {D: 70, C: 80}

    def test_zero_transfer_allowed(self, token):
        token.transfer("alice", "alice", "bob", 0)
        assert token.balance_of("bob") == 0


# ─────────────────────────────────────────────────────────────
# Guards
# ─────────────────────────────────────────────────────────────

class TestTransferGuards:

    def test_insufficient_balance(self, token):
        with pytest.raises(InsufficientBalanceError):
            token.transfer("alice", "alice", "bob", 51, C, C)
        assert token.balance_of("alice", C) == 50

    def test_stranger_cannot_move_funds(self, token):
        with pytest.raises(InsufficientAuthorizationError):
            token.transfer("bob", "alice", "bob", 10)

    def test_delegated_transfer_is_single_use(self, token, guard):
        intent = token.transfer_intent("bob", "alice", "bob", 10, nonce=5)
        guard.approve("alice", "alice", intent)
        token.transfer("bob", "alice", "bob", 10, nonce=5)
        assert token.balance_of("bob") == 10
        with pytest.raises(AuthorizationReplayError):
            token.transfer("bob", "alice", "bob", 10, nonce=5)

    def test_failed_transfer_keeps_delegation(self, token, guard):
        intent = token.transfer_intent("bob", "alice", "bob", 500, nonce=5)
        guard.approve("alice", "alice", intent)
        with pytest.raises(InsufficientBalanceError):
            token.transfer("bob", "alice", "bob", 500, nonce=5)
        assert not guard.is_consumed("alice", intent)

    def test_burn_from(self, token):
        token.burn_from("alice", "alice", 20, C)
        assert token.balance_of("alice", C) == 30
        assert token.total_supply() == 130

    def test_delegated_burn(self, token, guard):
        guard.approve("alice", "alice", token.burn_intent("bob", "alice", 5, D, nonce=1))
        token.burn_from("bob", "alice", 5, D, nonce=1)
        assert token.balance_of("alice") == 95

    def test_only_minter_mints(self, token):
        with pytest.raises(InsufficientAuthorizationError):
            token.mint_to("alice", "alice", 1)

    def test_token_without_minter_refuses_mint(self, guard):
        token = Token(TokenConfig("Fixed", "FIX", initial_supply=10, initial_holder="alice"), guard)
        assert token.balance_of("alice") == 10
        with pytest.raises(InsufficientAuthorizationError):
            token.mint_to("alice", "alice", 1)


# ─────────────────────────────────────────────────────────────
# Limits
# ─────────────────────────────────────────────────────────────

class TestLimits:

    def test_supply_capped_at_uint128(self, token):
        with pytest.raises(ArithmeticOverflowError):
            token.mint_to("minter", "bob", U128_MAX)

    def test_amount_validation(self, token):
        for bad in (-1, 1.0, True, U128_MAX + 1):
            with pytest.raises(ValidationError):
                token.transfer("alice", "alice", "bob", bad)

    def test_domain_validation(self, token):
        with pytest.raises(ValidationError):
            token.balance_of("alice", "disclosed")

    def test_snapshot_restore(self, token):
        saved = token.snapshot()
        token.transfer("alice", "alice", "bob", 10)
        token.mint_to("minter", "carol", 5)
        token.restore(saved)
        assert token.balance_of("bob") == 0
        assert token.total_supply() == 150
