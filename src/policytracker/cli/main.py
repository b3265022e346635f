"""
Main CLI entry point for PolicyTracker.

This module provides the primary command-line interface using Click.
All commands are organized into subcommands for different operations.
"""

import click
from dotenv import load_dotenv

from .. import __version__
from .dedup import dedup
from .extract import extract
from .index import index
from .query import query, vectors
from .status import status


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="policytracker")
@click.option("--verbose", is_flag=True, help="Enable verbose (DEBUG) console logging")
@click.pass_context
def main(ctx, verbose):
    """
    PolicyTracker - follow government policy commitments over time.

    Extracts commitments from Executive Yuan replies to the Legislative Yuan,
    keeps one canonical record per commitment and updates its status as later
    replies report progress or fulfilment.

    \b
    Typical workflow:
        policytracker extract --input replies.jsonl
        policytracker status update --input new_replies.jsonl
        policytracker index
    """
    load_dotenv()

    if verbose:
        from ..utils.monitoring import setup_logging

        setup_logging(verbose=True)
    else:
        from ..utils import setup_logging

        setup_logging()

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register subcommands
main.add_command(extract)
main.add_command(dedup)
main.add_command(index)
main.add_command(status)
main.add_command(query)
main.add_command(vectors)


if __name__ == "__main__":
    main()
