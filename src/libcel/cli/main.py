"""libcel CLI entry point."""

import logging

import click


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def cli(verbose: bool):
    """libcel: evaluate and inspect CEL expressions."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# Register subcommands
from libcel.cli.eval_cmd import check, eval_cmd  # noqa: E402
from libcel.cli.inspect_cmd import inspect  # noqa: E402

cli.add_command(eval_cmd)
cli.add_command(check)
cli.add_command(inspect)
