"""
privault/cli/preview.py

privault preview: pure conversion for given pool numbers.

Usage:
    privault preview deposit 1000 --total-assets 5000 --total-supply 4000
    privault preview redeem 10 --total-assets 29 --total-supply 19 --format json
"""

import json
import sys

import click

from privault.core.conversion import ROUNDING_POLICY, ConversionEngine
from privault.core.exceptions import PrivaultError
from privault.core.models import MAX_OFFSET, OperationKind, OverflowMode, PoolState

_COUNTER = {
    OperationKind.DEPOSIT:  ("assets in",  "shares out"),
    OperationKind.ISSUE:    ("shares out", "assets in"),
    OperationKind.WITHDRAW: ("assets out", "shares in"),
    OperationKind.REDEEM:   ("shares in",  "assets out"),
}


@click.command(name="preview")
@click.argument(
    "operation",
    type=click.Choice([k.value for k in OperationKind], case_sensitive=False),
)
@click.argument("amount", type=click.IntRange(min=0))
@click.option("--total-assets", type=click.IntRange(min=0), default=0, show_default=True)
@click.option("--total-supply", type=click.IntRange(min=0), default=0, show_default=True)
@click.option("--offset", type=click.IntRange(0, MAX_OFFSET), default=0, show_default=True)
@click.option(
    "--overflow-mode",
    type=click.Choice([m.value for m in OverflowMode], case_sensitive=False),
    default=OverflowMode.WIDE.value,
    show_default=True,
)
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
)
def preview_command(
    operation:     str,
    amount:        int,
    total_assets:  int,
    total_supply:  int,
    offset:        int,
    overflow_mode: str,
    fmt:           str,
) -> None:
    """
    Convert AMOUNT for OPERATION with its mandated rounding.

    OPERATION is one of deposit, issue, withdraw, redeem.
    """
    kind   = OperationKind(operation.lower())
    engine = ConversionEngine(OverflowMode(overflow_mode.lower()))
    pool   = PoolState(total_assets=total_assets, total_supply=total_supply, offset=offset)

    try:
        result = engine.convert(kind, amount, pool)
    except PrivaultError as e:
        if fmt == "json":
            click.echo(json.dumps({"ok": False, "error": str(e)}))
        else:
            click.echo(f"  ❌  {e}", err=True)
        sys.exit(1)

    given, counter = _COUNTER[kind]
    if fmt == "json":
        click.echo(json.dumps({
            "ok":        True,
            "operation": kind.value,
            "amount":    amount,
            "result":    result,
            "rounding":  ROUNDING_POLICY[kind].value,
            "pool":      pool.to_dict(),
        }, indent=2))
        return

    click.echo(f"  {'operation':<14} {kind.value} (rounds {ROUNDING_POLICY[kind].value})")
    click.echo(f"  {'pool':<14} assets={total_assets} supply={total_supply} offset={offset}")
    click.echo(f"  {given:<14} {amount}")
    click.echo(f"  {counter:<14} {result}")
