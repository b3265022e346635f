"""
Index rebuild CLI command.
"""

from pathlib import Path

import click

from ..errors import PolicyTrackerError
from .common import commitments_dir_option, fail, load_config


@click.command()
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write the index (default: <commitments-dir>/index.json)",
)
@commitments_dir_option
def index(output, commitments_dir):
    """
    Rebuild index.json from the commitment store.

    Example:
        policytracker index
        policytracker index --output site/data/index.json
    """
    from ..database.index import write_index
    from ..database.repository import MarkdownCommitmentRepository

    try:
        config = load_config(commitments_dir)
        path = output or config.index_path
        built = write_index(MarkdownCommitmentRepository(config.commitments_dir), path)
        click.echo(f"Indexed {built['total_count']} commitments into {path}")
        for label, count in built["status_summary"].items():
            click.echo(f"  {label}: {count}")
    except (PolicyTrackerError, ValueError) as e:
        fail(e)
