"""
Store-wide deduplication CLI command.
"""

import click

from ..errors import PolicyTrackerError
from .common import commitments_dir_option, fail, load_config


@click.command()
@click.option(
    "--dry-run",
    is_flag=True,
    help="List the duplicates that would be removed without deleting them",
)
@commitments_dir_option
def dedup(dry_run, commitments_dir):
    """
    Remove duplicate commitments from the store.

    Commitments with the same title keep the earliest one; commitments with
    similar titles from the same reply keep the most detailed record.

    Example:
        policytracker dedup --dry-run
        policytracker dedup
    """
    from ..database.index import write_index
    from ..database.repository import MarkdownCommitmentRepository
    from ..processors.dedup import compact

    try:
        config = load_config(commitments_dir)
        repository = MarkdownCommitmentRepository(config.commitments_dir)
        locations = {c.id: repository.locator(c.id) for c in repository.list()}

        removed = compact(repository, dry_run=dry_run)
        verb = "Would remove" if dry_run else "Removed"
        click.echo(f"{verb} {len(removed)} duplicate commitment(s)")
        for commitment_id in removed:
            click.echo(f"  - {locations.get(commitment_id) or commitment_id}")

        if removed and not dry_run:
            write_index(repository, config.index_path)
    except (PolicyTrackerError, ValueError) as e:
        fail(e)
