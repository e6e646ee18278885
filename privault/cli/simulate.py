"""
privault/cli/simulate.py

privault simulate: run a YAML scenario against an in-memory deployment.

Scenario layout:

    asset:                  # TokenConfig fields, minter is always "faucet"
      name: Asset
      symbol: AST
    vault:                  # VaultConfig fields
      offset: 0
    accounts:               # disclosed asset balances at genesis
      alice: 100
      bob: 100
      carol: 100
    steps:
      - deposit:  {caller: alice, assets: 9}
      - donate:   {from: carol, amount: 5}
      - issue:    {caller: bob, shares: 10, max_assets: 20}
      - withdraw: {caller: alice, assets: 13}
      - redeem:   {caller: bob, shares: 10}
      - deposit_exact: {caller: alice, assets: 5, min_shares: 1, finalize: false, label: d1}
      - finalize: {label: d1}
      - mint:     {to: dave, amount: 50}
      - redeem:   {caller: bob, shares: 1000, expect_error: InsufficientBalanceError}

Every step takes caller (default: the owner), owner/sender and
recipient (default: caller), source and target domains (default:
disclosed) and nonce. expect_error names the exception class the step
must raise.

Exit codes:
    0  scenario completed
    1  a step failed, or an expected error did not happen
    2  scenario file or configuration invalid
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
import yaml

from privault.auth.guard import AccessGuard
from privault.config import TokenConfig, VaultConfig
from privault.core.exceptions import PrivaultError
from privault.core.models import Domain, OperationKind
from privault.journal.journal import EventJournal
from privault.token.store import Token
from privault.vault.ledger import TokenizedVault

FAUCET = "faucet"

_STANDARD = {
    "deposit":  ("sender", "assets"),
    "issue":    ("sender", "shares"),
    "withdraw": ("owner",  "assets"),
    "redeem":   ("owner",  "shares"),
}

_EXACT_BOUND = {
    "deposit_exact":  "min_shares",
    "issue_exact":    "max_assets",
    "withdraw_exact": "max_shares",
    "redeem_exact":   "min_assets",
}


class ScenarioError(Exception):
    """Raised when a scenario file is malformed"""
    pass


class StepFailed(Exception):
    """Raised when a step does not behave as the scenario says"""

    def __init__(self, index: int, op: str, reason: str):
        super().__init__(f"step {index} ({op}): {reason}")
        self.index  = index
        self.op     = op
        self.reason = reason


class ScenarioRunner:
    """Deploys the scenario's asset and vault, then plays its steps."""

    def __init__(self, scenario: Dict[str, Any], journal: Optional[EventJournal] = None):
        if not isinstance(scenario, dict):
            raise ScenarioError("Scenario must be a mapping")
        self.guard = AccessGuard()

        asset_data = dict(scenario.get("asset") or {"name": "Asset", "symbol": "AST"})
        asset_data["minter"] = FAUCET
        self.asset = Token(TokenConfig.from_dict(asset_data), self.guard)

        self.accounts: List[str] = []
        for account, amount in (scenario.get("accounts") or {}).items():
            self._touch(account)
            self.asset.mint_to(FAUCET, account, amount)

        vault_config = VaultConfig.from_dict(scenario.get("vault") or {})
        self.vault = TokenizedVault(
            vault_config, self.asset, self.guard,
            deployer=vault_config.initial_depositor,
            journal=journal,
        )
        self.steps = scenario.get("steps") or []
        if not isinstance(self.steps, list):
            raise ScenarioError("steps must be a list")
        self.labels: Dict[str, str] = {}

    # ── Playback ──────────────────────────────────────────────

    def run(self) -> None:
        for index, step in enumerate(self.steps):
            if not isinstance(step, dict) or len(step) != 1:
                raise ScenarioError(f"step {index} must be a single-key mapping")
            (op, params), = step.items()
            params = dict(params or {})
            expected = params.pop("expect_error", None)
            try:
                self._apply(op, params)
            except KeyError as e:
                raise ScenarioError(f"step {index} ({op}) is missing {e}") from e
            except PrivaultError as e:
                if expected != type(e).__name__:
                    raise StepFailed(index, op, str(e)) from e
                continue
            if expected:
                raise StepFailed(index, op, f"expected {expected}, step succeeded")

    def _apply(self, op: str, params: Dict[str, Any]) -> None:
        if op == "mint":
            self._touch(params["to"])
            self.asset.mint_to(FAUCET, params["to"], params["amount"], _domain(params, "domain"))
        elif op == "donate":
            donor = params["from"]
            self.asset.transfer(donor, donor, self.vault.address, params["amount"])
        elif op == "finalize":
            self.vault.finalize(self.labels[params["label"]])
        elif op in _STANDARD:
            self._standard(op, params)
        elif op in _EXACT_BOUND:
            self._exact(op, params)
        else:
            raise ScenarioError(f"Unknown step {op!r}")

    def _standard(self, op: str, params: Dict[str, Any]) -> None:
        owner_key, amount_key = _STANDARD[op]
        caller    = params.get("caller") or params[owner_key]
        owner     = params.get(owner_key, caller)
        recipient = params.get("recipient", caller)
        self._touch(caller, owner, recipient)
        common = dict(
            source= _domain(params, "source"),
            target= _domain(params, "target"),
            nonce=  params.get("nonce", 0),
        )
        method = getattr(self.vault, op)
        if op == "issue":
            method(caller, owner, recipient, params["shares"], params["max_assets"], **common)
        elif op == "redeem":
            method(caller, owner, recipient, params["shares"],
                   min_assets=params.get("min_assets", 0), **common)
        else:
            method(caller, owner, recipient, params[amount_key],
                   shares=params.get("shares"), **common)

    def _exact(self, op: str, params: Dict[str, Any]) -> None:
        kind      = OperationKind(op.split("_")[0])
        amount    = params["assets" if kind in (OperationKind.DEPOSIT, OperationKind.WITHDRAW) else "shares"]
        owner_key = "sender" if kind in (OperationKind.DEPOSIT, OperationKind.ISSUE) else "owner"
        caller    = params.get("caller") or params[owner_key]
        owner     = params.get(owner_key, caller)
        recipient = params.get("recipient", caller)
        self._touch(caller, owner, recipient)
        commitment = getattr(self.vault, op)(
            caller, owner, recipient, amount, params[_EXACT_BOUND[op]],
            source=   _domain(params, "source"),
            target=   _domain(params, "target"),
            nonce=    params.get("nonce", 0),
            finalize= params.get("finalize", True),
        )
        if "label" in params:
            self.labels[params["label"]] = commitment.commitment_id

    def _touch(self, *accounts: str) -> None:
        for account in accounts:
            if account not in self.accounts:
                self.accounts.append(account)

    # ── Report ────────────────────────────────────────────────

    def report(self) -> Dict[str, Any]:
        vault = self.vault
        pool  = vault.pool_state()
        return {
            "vault": {
                "total_assets":     vault.total_assets(),
                "total_supply":     vault.total_supply(),
                "pool":             pool.to_dict(),
                "locked_shares":    vault.locked_shares,
                "open_commitments": len(vault.open_commitments()),
            },
            "accounts": {
                account: {
                    "assets": {d.value: self.asset.balance_of(account, d) for d in Domain},
                    "shares": {d.value: vault.shares.balance_of(account, d) for d in Domain},
                }
                for account in self.accounts
            },
        }


def _domain(params: Dict[str, Any], key: str) -> Domain:
    value = params.get(key, Domain.DISCLOSED.value)
    try:
        return Domain(value)
    except ValueError as e:
        raise ScenarioError(f"Unknown domain {value!r}") from e


# ── CLI command ───────────────────────────────────────────────

@click.command(name="simulate")
@click.argument("scenario", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--journal", "journal_path",
    type=click.Path(dir_okay=False),
    default=None,
    metavar="PATH",
    help="Append every vault event to a signed JSONL journal.",
)
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
)
def simulate_command(scenario: str, journal_path: Optional[str], fmt: str) -> None:
    """
    Run SCENARIO (YAML) and print the final pool and balances.

    \b
    Examples:
      privault simulate scenario.yaml
      privault simulate scenario.yaml --journal vault.jsonl --format json
    """
    try:
        with open(scenario, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        journal = EventJournal(Path(journal_path)) if journal_path else None
        runner  = ScenarioRunner(data, journal=journal)
    except (OSError, yaml.YAMLError, ScenarioError, KeyError) as e:
        click.echo(f"  ❌  Invalid scenario: {e}", err=True)
        sys.exit(2)
    except PrivaultError as e:
        click.echo(f"  ❌  Deployment failed: {e}", err=True)
        sys.exit(2)

    try:
        runner.run()
    except ScenarioError as e:
        click.echo(f"  ❌  {e}", err=True)
        sys.exit(2)
    except StepFailed as e:
        click.echo(f"  ❌  {e}", err=True)
        sys.exit(1)

    report = runner.report()
    if fmt == "json":
        click.echo(json.dumps(report, indent=2))
        return

    v = report["vault"]
    click.echo(f"  {'total assets':<18} {v['total_assets']}")
    click.echo(f"  {'total supply':<18} {v['total_supply']}")
    click.echo(f"  {'locked shares':<18} {v['locked_shares']}")
    click.echo(f"  {'open commitments':<18} {v['open_commitments']}")
    click.echo()
    for account, balances in report["accounts"].items():
        a, s = balances["assets"], balances["shares"]
        click.echo(
            f"  {account:<18} assets {a['disclosed']}/{a['confidential']}"
            f"  shares {s['disclosed']}/{s['confidential']}"
        )
