"""
tests/test_vault_scenarios.py

Standard-pattern vault operations.

    SCENARIO   deposit, yield, issue, withdraw, redeem with exact numbers
    ROUTES     every disclosed/confidential combination per operation
    GUARDS     zero amounts, locked shares, limits, atomic reverts
    VIEWS      previews and max* views
    LAWS       seeded random sequences: supply == Σ balances and the
               share price never falls
"""

import random

import pytest

from privault.config import VaultLimits
from privault.core.exceptions import (
    InsufficientAuthorizationError,
    InsufficientBalanceError,
    LimitExceededError,
    PrivaultError,
    SlippageExceededError,
    ValidationError,
    ZeroAmountRejectedError,
)
from tests.helpers.deploy import (
    ALICE,
    BOB,
    C,
    CAROL,
    D,
    assert_supply_consistent,
    assets_of,
    deploy,
    donate,
    fund,
    shares_of,
)


# ─────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────

@pytest.fixture
def vault():
    return deploy({ALICE: 100, BOB: 100, CAROL: 100})


@pytest.fixture
def seeded(vault):
    """Pool at 14 assets / 9 shares: alice deposited 9, carol donated 5."""
    vault.deposit(ALICE, ALICE, ALICE, 9)
    donate(vault, CAROL, 5)
    return vault


# ─────────────────────────────────────────────────────────────
# Scenario
# ─────────────────────────────────────────────────────────────

class TestDeterministicScenario:

    def test_full_cycle(self, vault):
        receipt = vault.deposit(ALICE, ALICE, ALICE, 9)
        assert receipt.shares == 9
        assert vault.total_supply() == 9
        assert vault.total_assets() == 9

        donate(vault, CAROL, 5)
        assert vault.total_assets() == 14

        assert vault.preview_issue(10) == 15
        with pytest.raises(SlippageExceededError):
            vault.issue(BOB, BOB, BOB, 10, 14)
        assert assets_of(vault, BOB) == 100

        receipt = vault.issue(BOB, BOB, BOB, 10, 15)
        assert receipt.assets == 15
        assert vault.total_assets() == 29
        assert vault.total_supply() == 19

        assert vault.max_withdraw(ALICE) == 13
        assert vault.preview_withdraw(13) == 9
        assert vault.preview_withdraw(14) == 10
        with pytest.raises(InsufficientBalanceError):
            vault.withdraw(ALICE, ALICE, ALICE, 14)

        receipt = vault.withdraw(ALICE, ALICE, ALICE, 13)
        assert receipt.shares == 9
        assert shares_of(vault, ALICE) == 0
        assert assets_of(vault, ALICE) == 104

        receipt = vault.redeem(BOB, BOB, BOB, 10)
        assert receipt.assets == 15
        assert assets_of(vault, BOB) == 100

        assert vault.total_supply() == 0
        assert vault.total_assets() == 1
        assert_supply_consistent(vault)

    def test_recipient_differs_from_owner(self, seeded):
        seeded.deposit(BOB, BOB, CAROL, 15)
        assert shares_of(seeded, CAROL) == 10
        assert shares_of(seeded, BOB) == 0


# ─────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────

class TestDepositRoutes:

    @pytest.mark.parametrize("source", [D, C])
    @pytest.mark.parametrize("target", [D, C])
    def test_every_domain_pair(self, seeded, source, target):
        fund(seeded, BOB, 10, C)
        expected = seeded.preview_deposit(10)
        assert expected == 6

        receipt = seeded.deposit(BOB, BOB, BOB, 10, source=source, target=target,
                                 shares=expected if target is C else None)
        assert receipt.shares == 6
        assert shares_of(seeded, BOB, target) == 6
        assert seeded.total_assets() == 24
        assert seeded.total_supply() == 15
        assert_supply_consistent(seeded)

    def test_confidential_target_requires_expected_shares(self, seeded):
        with pytest.raises(ValidationError):
            seeded.deposit(BOB, BOB, BOB, 10, target=C)

    def test_shortfall_is_absorbed_by_pool(self, seeded):
        seeded.deposit(BOB, BOB, BOB, 10, target=C, shares=5)
        assert shares_of(seeded, BOB, C) == 5
        assert seeded.total_supply() == 14
        assert seeded.total_assets() == 24

    def test_expected_shares_above_computed_rejected(self, seeded):
        with pytest.raises(SlippageExceededError):
            seeded.deposit(BOB, BOB, BOB, 10, target=C, shares=7)
        assert assets_of(seeded, BOB) == 100
        assert seeded.total_supply() == 9

    def test_disclosed_expected_shares_is_a_minimum(self, seeded):
        with pytest.raises(SlippageExceededError):
            seeded.deposit(BOB, BOB, BOB, 10, shares=7)
        receipt = seeded.deposit(BOB, BOB, BOB, 10, shares=6)
        assert receipt.shares == 6


class TestIssueRoutes:

    def test_confidential_target(self, seeded):
        seeded.issue(BOB, BOB, BOB, 10, 15, target=C)
        assert shares_of(seeded, BOB, C) == 10
        assert assets_of(seeded, BOB) == 85

    def test_confidential_source_not_offered(self, seeded):
        fund(seeded, BOB, 50, C)
        with pytest.raises(ValidationError):
            seeded.issue(BOB, BOB, BOB, 10, 15, source=C)


class TestWithdrawRoutes:

    @pytest.fixture
    def private_bob(self, seeded):
        """Bob holds 6 confidential shares; pool at 24 / 15."""
        seeded.deposit(BOB, BOB, BOB, 10, target=C, shares=6)
        return seeded

    def test_confidential_source_burns_offered_shares(self, private_bob):
        assert private_bob.preview_withdraw(5) == 4
        receipt = private_bob.withdraw(BOB, BOB, BOB, 5, source=C, shares=4)
        assert receipt.shares == 4
        assert shares_of(private_bob, BOB, C) == 2
        assert assets_of(private_bob, BOB) == 95

    def test_confidential_surplus_is_absorbed_by_pool(self, private_bob):
        private_bob.withdraw(BOB, BOB, BOB, 5, source=C, shares=5)
        assert shares_of(private_bob, BOB, C) == 1
        assert private_bob.total_supply() == 10

    def test_confidential_source_shortfall_rejected(self, private_bob):
        with pytest.raises(SlippageExceededError):
            private_bob.withdraw(BOB, BOB, BOB, 5, source=C, shares=3)
        assert shares_of(private_bob, BOB, C) == 6

    def test_confidential_source_requires_shares(self, private_bob):
        with pytest.raises(ValidationError):
            private_bob.withdraw(BOB, BOB, BOB, 5, source=C)

    def test_confidential_target(self, seeded):
        receipt = seeded.withdraw(ALICE, ALICE, ALICE, 5, target=C)
        assert receipt.shares == 4
        assert assets_of(seeded, ALICE, C) == 5

    def test_disclosed_shares_is_a_maximum(self, seeded):
        with pytest.raises(SlippageExceededError):
            seeded.withdraw(ALICE, ALICE, ALICE, 5, shares=3)


class TestRedeemRoutes:

    def test_confidential_source(self, seeded):
        seeded.deposit(BOB, BOB, BOB, 10, target=C, shares=6)
        receipt = seeded.redeem(BOB, BOB, BOB, 6, source=C)
        assert receipt.assets == 9
        assert shares_of(seeded, BOB, C) == 0

    def test_confidential_target_not_offered(self, seeded):
        with pytest.raises(ValidationError):
            seeded.redeem(ALICE, ALICE, ALICE, 3, target=C)

    def test_min_assets_enforced(self, seeded):
        # 3 * 15 / 10 = 4.5
        with pytest.raises(SlippageExceededError):
            seeded.redeem(ALICE, ALICE, ALICE, 3, min_assets=5)
        assert seeded.redeem(ALICE, ALICE, ALICE, 3, min_assets=4).assets == 4


# ─────────────────────────────────────────────────────────────
# Guards
# ─────────────────────────────────────────────────────────────

class TestGuards:

    def test_zero_amounts_rejected(self, seeded):
        with pytest.raises(ZeroAmountRejectedError):
            seeded.deposit(ALICE, ALICE, ALICE, 0)
        with pytest.raises(ZeroAmountRejectedError):
            seeded.issue(ALICE, ALICE, ALICE, 0, 10)
        with pytest.raises(ZeroAmountRejectedError):
            seeded.withdraw(ALICE, ALICE, ALICE, 0)
        with pytest.raises(ZeroAmountRejectedError):
            seeded.redeem(ALICE, ALICE, ALICE, 0)

    def test_zero_amount_is_a_validation_error(self, seeded):
        with pytest.raises(ValidationError):
            seeded.deposit(ALICE, ALICE, ALICE, 0)

    def test_negative_and_non_int_amounts_rejected(self, seeded):
        with pytest.raises(ValidationError):
            seeded.deposit(ALICE, ALICE, ALICE, -1)
        with pytest.raises(ValidationError):
            seeded.deposit(ALICE, ALICE, ALICE, 1.5)
        with pytest.raises(ValidationError):
            seeded.deposit(ALICE, ALICE, ALICE, True)

    def test_deposit_worth_zero_shares_allowed(self, seeded):
        assert seeded.preview_deposit(1) == 0
        receipt = seeded.deposit(BOB, BOB, BOB, 1)
        assert receipt.shares == 0
        assert seeded.total_assets() == 15

    def test_locked_shares_cannot_leave(self):
        vault = deploy({BOB: 100}, initial_deposit=1000)
        assert vault.locked_shares == 1000
        assert shares_of(vault, vault.lock_address) == 1000
        with pytest.raises(InsufficientAuthorizationError):
            vault.redeem(vault.address, vault.address, BOB, 1)
        with pytest.raises(InsufficientAuthorizationError):
            vault.withdraw(vault.address, vault.address, BOB, 1)
        assert vault.max_withdraw(vault.lock_address) == 0
        assert vault.max_redeem(vault.lock_address) == 0

    def test_custom_lock_address(self):
        vault = deploy(initial_deposit=500, lock_address="burn")
        assert shares_of(vault, "burn") == 500
        with pytest.raises(InsufficientAuthorizationError):
            vault.redeem("burn", "burn", "burn", 500)

    def test_limits_enforced(self):
        vault = deploy({ALICE: 100}, limits=VaultLimits(max_deposit=50, max_redeem=5))
        with pytest.raises(LimitExceededError):
            vault.deposit(ALICE, ALICE, ALICE, 51)
        vault.deposit(ALICE, ALICE, ALICE, 50)
        with pytest.raises(LimitExceededError):
            vault.redeem(ALICE, ALICE, ALICE, 6)
        assert vault.max_redeem(ALICE) == 5
        assert vault.max_deposit(ALICE) == 50

    def test_failed_operation_changes_nothing(self, seeded):
        before = (seeded.total_assets(), seeded.total_supply(),
                  assets_of(seeded, ALICE), shares_of(seeded, ALICE))
        with pytest.raises(InsufficientBalanceError):
            seeded.redeem(ALICE, ALICE, ALICE, 10)
        after = (seeded.total_assets(), seeded.total_supply(),
                 assets_of(seeded, ALICE), shares_of(seeded, ALICE))
        assert before == after

    def test_insufficient_assets_for_deposit(self, seeded):
        with pytest.raises(InsufficientBalanceError):
            seeded.deposit(BOB, BOB, BOB, 101)
        assert seeded.total_supply() == 9


# ─────────────────────────────────────────────────────────────
# Views
# ─────────────────────────────────────────────────────────────

class TestViews:

    def test_conversions_round_down(self, seeded):
        assert seeded.convert_to_shares(15) == 10
        assert seeded.convert_to_assets(10) == 15
        assert seeded.convert_to_shares(1) == 0

    def test_max_deposit_is_disclosed_balance(self, seeded):
        fund(seeded, BOB, 40, C)
        assert seeded.max_deposit(BOB) == 100

    def test_max_issue_is_affordable(self, seeded):
        assert seeded.max_issue(BOB) == 66
        assert seeded.preview_issue(66) == 99
        seeded.issue(BOB, BOB, BOB, 66, 100)

    def test_max_redeem_ignores_confidential_shares(self, seeded):
        seeded.deposit(BOB, BOB, BOB, 10, target=C, shares=6)
        assert seeded.max_redeem(BOB) == 0
        assert seeded.max_redeem(ALICE) == 9

    def test_pool_state_matches_raw_numbers_without_commitments(self, seeded):
        pool = seeded.pool_state()
        assert pool.total_assets == seeded.total_assets() == 14
        assert pool.total_supply == seeded.total_supply() == 9


# ─────────────────────────────────────────────────────────────
# Laws
# ─────────────────────────────────────────────────────────────

def _random_walk(vault, seed: int, steps: int):
    rng      = random.Random(seed)
    accounts = [ALICE, BOB, CAROL]
    for _ in range(steps):
        who    = rng.choice(accounts)
        op     = rng.choice(["deposit", "issue", "withdraw", "redeem", "donate"])
        amount = rng.randint(1, 40)
        try:
            if op == "deposit":
                vault.deposit(who, who, who, amount)
            elif op == "issue":
                vault.issue(who, who, who, amount, 10 ** 6)
            elif op == "withdraw":
                vault.withdraw(who, who, who, amount)
            elif op == "redeem":
                vault.redeem(who, who, who, amount)
            else:
                donate(vault, who, rng.randint(0, 3))
        except PrivaultError:
            pass
        yield op


class TestLaws:

    def test_supply_equals_sum_of_balances(self):
        vault = deploy({ALICE: 10 ** 4, BOB: 10 ** 4, CAROL: 10 ** 4}, offset=2)
        for _ in _random_walk(vault, seed=11, steps=500):
            assert_supply_consistent(vault)

    def test_share_price_never_falls(self):
        vault = deploy({ALICE: 10 ** 4, BOB: 10 ** 4, CAROL: 10 ** 4}, initial_deposit=10)
        virtual = 10 ** vault.config.offset
        before  = (vault.total_assets() + 1, vault.total_supply() + virtual)
        for _ in _random_walk(vault, seed=12, steps=500):
            after = (vault.total_assets() + 1, vault.total_supply() + virtual)
            # after_assets / after_supply >= before_assets / before_supply
            assert after[0] * before[1] >= before[0] * after[1]
            before = after
