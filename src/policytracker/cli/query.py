"""
Vector mirror CLI commands.

Provides free-text search over commitments and the command that rebuilds the
Qdrant mirror from the commitment store.
"""

import json
import sys

import click

from ..errors import PolicyTrackerError
from .common import commitments_dir_option, fail, load_config


@click.command()
@click.argument("query_text")
@click.option(
    "--limit",
    type=int,
    default=5,
    help="Number of results to return (default: 5)",
)
@click.option(
    "--min-score",
    type=float,
    default=None,
    help="Minimum similarity score (0.0-1.0)",
)
@click.option("--category", default=None, help="Only commitments in this category")
@click.option(
    "--status",
    "status_label",
    default=None,
    help="Only commitments with this status label (e.g. 追蹤中)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format (default: text)",
)
def query(query_text, limit, min_score, category, status_label, output_format):
    """
    Search commitments by meaning.

    Examples:
        policytracker query "離岸風電"
        policytracker query "租金補貼" --status 已延宕 --format json
    """
    from ..database.qdrant import CommitmentVectorIndex
    from ..processors.embeddings import EmbeddingGenerator

    try:
        config = load_config()
        vector = EmbeddingGenerator().generate_embedding(query_text)
        results = CommitmentVectorIndex.from_config(config).search(
            vector,
            limit=limit,
            score_threshold=min_score,
            category=category,
            status=status_label,
        )
    except KeyboardInterrupt:
        click.echo("\n\nSearch cancelled by user")
        sys.exit(0)
    except (PolicyTrackerError, ValueError) as e:
        fail(e)
        return

    if output_format == "json":
        click.echo(
            json.dumps(
                [{"score": r.score, **r.payload} for r in results],
                ensure_ascii=False,
                indent=2,
            )
        )
        return

    if not results:
        click.echo("No results found.")
        return

    click.echo(f"Found {len(results)} results:\n")
    click.echo("=" * 80)
    for i, result in enumerate(results, 1):
        payload = result.payload
        click.echo(f"\n[{i}] Score: {result.score:.4f} | {payload.get('status')}")
        click.echo("-" * 80)
        click.echo(f"Title: {payload.get('title')}")
        click.echo(f"Category: {payload.get('category')}")
        if payload.get("target_date"):
            click.echo(f"Target: {payload['target_date']} {payload.get('target_value') or ''}")
        if payload.get("file"):
            click.echo(f"File: {payload['file']}")
        click.echo(f"\n{payload.get('text', '')}")
    click.echo("=" * 80)


@click.group()
def vectors():
    """Manage the Qdrant mirror of the commitment store."""
    pass


@vectors.command()
@commitments_dir_option
def sync(commitments_dir):
    """
    Make the Qdrant collection mirror the commitment store.

    Every commitment is (re-)embedded and upserted; points for commitments
    no longer in the store are deleted.

    Example:
        policytracker vectors sync
    """
    from ..database.qdrant import CommitmentVectorIndex
    from ..database.repository import MarkdownCommitmentRepository
    from ..processors.embeddings import EmbeddingGenerator

    try:
        config = load_config(commitments_dir)
        repository = MarkdownCommitmentRepository(config.commitments_dir)
        counts = CommitmentVectorIndex.from_config(config).sync(
            repository.list(), EmbeddingGenerator(), locator=repository.locator
        )
        click.echo(
            f"Synced {counts['upserted']} commitments to {config.collection_name} "
            f"({counts['deleted']} removed)"
        )
    except (PolicyTrackerError, ValueError) as e:
        fail(e)
