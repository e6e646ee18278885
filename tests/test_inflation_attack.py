"""
tests/test_inflation_attack.py

First-depositor inflation (donation) attack.

The attacker mints one share, donates a large amount straight to the
vault and lets victims deposit just under the price of one share, so
floor rounding hands them nothing. Each victim deposit is sized from
the live pool with preview_issue(1) - 1.

    UNDEFENDED   offset 0, nothing locked: the attacker profits
    LOCKED       a small locked genesis deposit: the attacker loses
    OFFSET       virtual shares alone: the attacker loses
"""

from privault.core.models import Domain
from tests.helpers.deploy import EVE, deploy, donate, fund, shares_of

DONATION = 1000 * 10 ** 6 + 1
VICTIMS  = ["victim-1", "victim-2", "victim-3"]


def run_attack(vault, victims=VICTIMS, victim_amount=None) -> int:
    """Play the attack; return the attacker's profit (may be negative)."""
    start = vault.asset.balance_of(EVE, Domain.DISCLOSED)

    vault.deposit(EVE, EVE, EVE, 1)
    donate(vault, EVE, DONATION)

    for victim in victims:
        amount = victim_amount or vault.preview_issue(1) - 1
        fund(vault, victim, amount)
        vault.deposit(victim, victim, victim, amount)

    vault.redeem(EVE, EVE, EVE, shares_of(vault, EVE))
    return vault.asset.balance_of(EVE, Domain.DISCLOSED) - start


class TestUndefended:

    def test_attacker_profits(self):
        vault = deploy({EVE: 10 ** 12})
        assert run_attack(vault) > 0

    def test_victims_receive_nothing(self):
        vault = deploy({EVE: 10 ** 12})
        run_attack(vault)
        for victim in VICTIMS:
            assert shares_of(vault, victim) == 0
            assert vault.asset.balance_of(victim, Domain.DISCLOSED) == 0

    def test_single_victim_does_not_repay_the_donation(self):
        vault = deploy({EVE: 10 ** 12})
        assert run_attack(vault, victims=VICTIMS[:1]) < 0


class TestLockedInitialDeposit:

    def test_attacker_loses(self):
        vault = deploy({EVE: 10 ** 12}, initial_deposit=1000)
        assert run_attack(vault) < 0

    def test_locked_shares_absorb_most_of_the_donation(self):
        vault = deploy({EVE: 10 ** 12}, initial_deposit=1000)
        profit = run_attack(vault)
        assert -profit > DONATION * 9 // 10
        assert shares_of(vault, vault.lock_address) == 1000


class TestVirtualOffset:

    def test_attacker_loses_against_fixed_deposits(self):
        vault = deploy({EVE: 10 ** 12}, offset=6)
        assert run_attack(vault, victim_amount=10 ** 9) < 0

    def test_victims_receive_shares(self):
        vault = deploy({EVE: 10 ** 12}, offset=6)
        run_attack(vault, victim_amount=10 ** 9)
        for victim in VICTIMS:
            assert shares_of(vault, victim) > 0
