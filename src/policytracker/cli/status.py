"""
Status tracking CLI commands.

Provides commands for matching new replies against stored commitments,
applying the date rules, and replaying a whole history of replies.
"""

import sys
from pathlib import Path

import click

from ..errors import PolicyTrackerError
from .common import commitments_dir_option, fail, load_config, today_option

input_option = click.option(
    "--input",
    "inputs",
    multiple=True,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSONL export of legislative replies (repeatable, oldest first)",
)


def _build_tracker(config, needs_oracle: bool = True):
    """Status tracker over the configured store.

    Dry runs and date sweeps never call the oracle, so they are built without
    one and work without OpenAI credentials.
    """
    from ..database.repository import MarkdownCommitmentRepository
    from ..processors.oracle import OpenAIOracle
    from ..processors.status_tracker import StatusTracker

    return StatusTracker(
        OpenAIOracle.from_config(config) if needs_oracle else None,
        MarkdownCommitmentRepository(config.commitments_dir),
        status_max_chars=config.status_max_chars,
        stale_months=config.stale_months,
    )


def _echo_transitions(transitions, dry_run: bool) -> None:
    verb = "Would change" if dry_run else "Changed"
    click.echo(f"{verb} {len(transitions)} commitment status(es) by date")
    for t in transitions:
        click.echo(f"  {t.title}: {t.old_status.label} -> {t.new_status.label} ({t.reason})")


@click.group()
def status():
    """
    Track the status of stored commitments.

    Commands:
        update    - Match new replies against commitments
        sweep     - Apply target-date and staleness rules
        backfill  - Replay historical replies against commitments
    """
    pass


@status.command()
@input_option
@click.option("--dry-run", is_flag=True, help="List pending documents without calling the oracle")
@click.option("--no-sweep", is_flag=True, help="Skip the date sweep after the documents")
@today_option
@commitments_dir_option
def update(inputs, dry_run, no_sweep, today, commitments_dir):
    """
    Screen and verify new replies against open commitments.

    Documents already checkpointed are skipped. Commitments extracted from a
    reply are never matched against that same reply.

    Example:
        policytracker status update --input data/legislative/new.jsonl
    """
    from ..apis.legislative import JsonlDocumentSource
    from ..ingestion.checkpoint import Checkpoint
    from ..ingestion.status import StatusUpdatePipeline

    try:
        config = load_config(commitments_dir)
        tracker = _build_tracker(config, needs_oracle=not dry_run)
        pipeline = StatusUpdatePipeline(
            tracker,
            checkpoint=Checkpoint(config.checkpoint_path),
            sweep=not no_sweep,
            dry_run=dry_run,
            index_path=config.index_path,
            today=today.date() if today else None,
        )
        pipeline.run(JsonlDocumentSource(inputs).iter_documents())
        if not no_sweep:
            _echo_transitions(pipeline.transitions, dry_run)
    except KeyboardInterrupt:
        click.echo("\n\nStatus update interrupted by user")
        sys.exit(0)
    except (PolicyTrackerError, ValueError) as e:
        fail(e)


@status.command()
@click.option("--dry-run", is_flag=True, help="Report transitions without writing them")
@today_option
@commitments_dir_option
def sweep(dry_run, today, commitments_dir):
    """
    Mark commitments delayed (target date passed) or stale (no updates).

    Fulfilled commitments are never changed. No oracle calls are made.

    Example:
        policytracker status sweep
        policytracker status sweep --today 2025-01-01 --dry-run
    """
    from ..database.index import write_index
    from ..database.repository import MarkdownCommitmentRepository
    from ..processors.status_tracker import StatusTracker

    try:
        config = load_config(commitments_dir)
        repository = MarkdownCommitmentRepository(config.commitments_dir)
        # The sweep never consults the oracle
        tracker = StatusTracker(None, repository, stale_months=config.stale_months)
        transitions = tracker.sweep_dates(today.date() if today else None, dry_run=dry_run)
        _echo_transitions(transitions, dry_run)
        if not dry_run:
            write_index(repository, config.index_path)
    except (PolicyTrackerError, ValueError) as e:
        fail(e)


@status.command()
@input_option
@click.option("--dates-only", is_flag=True, help="Run only the date sweep (phase 1)")
@click.option("--dry-run", is_flag=True, help="Report remaining work without changing anything")
@click.option("--reset-checkpoint", is_flag=True, help="Forget earlier progress and start over")
@today_option
@commitments_dir_option
def backfill(inputs, dates_only, dry_run, reset_checkpoint, today, commitments_dir):
    """
    Replay historical replies against the commitment store.

    Exports are merged keeping the last record per document. Replies that
    commitments were extracted from are left out. Progress is checkpointed
    after every document, so an interrupted backfill resumes where it stopped.

    Example:
        policytracker status backfill --input 2023.jsonl --input 2024.jsonl
        policytracker status backfill --input 2024.jsonl --dates-only
    """
    from ..ingestion.checkpoint import Checkpoint
    from ..ingestion.status import run_backfill

    try:
        config = load_config(commitments_dir)
        report = run_backfill(
            _build_tracker(config, needs_oracle=not (dates_only or dry_run)),
            inputs,
            Checkpoint(config.checkpoint_path),
            dates_only=dates_only,
            dry_run=dry_run,
            reset_checkpoint=reset_checkpoint,
            index_path=config.index_path,
            today=today.date() if today else None,
        )
        if report.excluded:
            click.echo(f"Left out {report.excluded} document(s) that are commitment sources")
        _echo_transitions(report.transitions, dry_run)
    except KeyboardInterrupt:
        click.echo("\n\nBackfill interrupted by user; rerun to resume")
        sys.exit(0)
    except (PolicyTrackerError, ValueError) as e:
        fail(e)
