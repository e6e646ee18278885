"""
privault/cli/__init__.py

Privault CLI, root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    privault = "privault.cli:cli"

Exit codes shared by every command:
    0  success
    1  operation failed or journal violated
    2  usage, file or configuration error
"""

import click

from privault.cli.journal import journal_group
from privault.cli.preview import preview_command
from privault.cli.simulate import simulate_command
from privault.logging import configure_logging


@click.group()
@click.version_option(package_name="privault")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug logging to stderr.")
@click.option("--log-json", is_flag=True, default=False, help="Log as JSON lines.")
def cli(verbose: bool, log_json: bool) -> None:
    """
    Privault: tokenized vault accounting engine.

    \b
    Commands:
      preview   Convert an amount for given pool numbers.
      simulate  Run a YAML scenario against an in-memory deployment.
      journal   Inspect signed event journals.

    \b
    Quick start:
      privault preview deposit 1000 --total-assets 5000 --total-supply 4000
      privault simulate scenario.yaml --format json
      privault journal verify vault.jsonl
    """
    configure_logging(verbose=verbose, log_json=log_json)


cli.add_command(preview_command)
cli.add_command(simulate_command)
cli.add_command(journal_group)
