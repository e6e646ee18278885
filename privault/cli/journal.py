"""
privault/cli/journal.py

privault journal verify: check a signed event journal.

Usage:
    privault journal verify vault.jsonl
    privault journal verify vault.jsonl --public-key <64-hex>
    privault journal verify vault.jsonl --quiet && echo "clean"

Exit codes:
    0  chain, data hashes and signatures all valid
    1  journal violated
    2  file missing or not a journal
"""

import json
import sys
from collections import Counter
from pathlib import Path
from typing import Optional

import click

from privault.core.exceptions import JournalError
from privault.journal.journal import read_entries, verify_entries


@click.group(name="journal")
def journal_group() -> None:
    """Inspect signed event journals."""
    pass


@journal_group.command(name="verify")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option(
    "--public-key",
    type=str,
    default=None,
    metavar="HEX",
    help="Require every entry to be signed by this Ed25519 key.",
)
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
)
@click.option("--quiet", is_flag=True, default=False, help="Exit code only.")
def verify_command(path: str, public_key: Optional[str], fmt: str, quiet: bool) -> None:
    """Verify the journal at PATH."""
    journal_path = Path(path)
    if not journal_path.exists():
        _emit(fmt, quiet, {"valid": False, "error": f"Journal not found: {path}"})
        sys.exit(2)

    try:
        entries = read_entries(journal_path)
    except JournalError as e:
        _emit(fmt, quiet, {"valid": False, "error": str(e)})
        sys.exit(2)

    try:
        verify_entries(entries, public_key)
    except JournalError as e:
        _emit(fmt, quiet, {"valid": False, "entries": len(entries), "error": str(e)})
        sys.exit(1)

    _emit(fmt, quiet, {
        "valid":    True,
        "entries":  len(entries),
        "signer":   entries[0].signer if entries else None,
        "head":     entries[-1].compute_hash() if entries else None,
        "by_event": dict(Counter(e.event for e in entries)),
    })


def _emit(fmt: str, quiet: bool, result: dict) -> None:
    if quiet:
        return
    if fmt == "json":
        click.echo(json.dumps(result, indent=2))
        return
    if not result["valid"]:
        click.echo(f"  ❌  {result['error']}", err=True)
        return
    click.echo(f"  ✅  {result['entries']} entries, chain and signatures intact")
    if result["head"]:
        click.echo(f"  {'head':<10} {result['head']}")
        click.echo(f"  {'signer':<10} {result['signer']}")
    for event, count in sorted(result["by_event"].items()):
        click.echo(f"  {event:<24} {count}")
