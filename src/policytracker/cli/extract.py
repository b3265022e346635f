"""
Commitment extraction CLI command.

Reads JSONL exports of legislative replies, extracts commitments from each
reply and merges them into the commitment store.
"""

import sys
from pathlib import Path

import click

from ..errors import PolicyTrackerError
from .common import commitments_dir_option, fail, load_config


@click.command()
@click.option(
    "--input",
    "inputs",
    multiple=True,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSONL export of legislative replies (repeatable)",
)
@click.option(
    "--limit",
    type=int,
    default=None,
    help="Process at most this many pending documents",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Extract and report without writing commitments or progress",
)
@commitments_dir_option
def extract(inputs, limit, dry_run, commitments_dir):
    """
    Extract policy commitments from legislative replies.

    Documents completed by an earlier run are skipped (progress is kept in
    $POLICYTRACKER_PROGRESS_DB); failed documents are retried.

    Example:
        policytracker extract --input data/legislative/2024.jsonl
        policytracker extract --input a.jsonl --input b.jsonl --limit 10 --dry-run
    """
    # Import here to avoid loading heavy dependencies unless needed
    from ..apis.legislative import JsonlDocumentSource
    from ..database.repository import MarkdownCommitmentRepository
    from ..ingestion.extraction import ExtractionPipeline
    from ..ingestion.progress import ProgressTracker
    from ..processors.chunking import ChunkingConfig
    from ..processors.llm_extraction import CommitmentExtractor
    from ..processors.oracle import OpenAIOracle

    progress_tracker = None
    try:
        config = load_config(commitments_dir)
        extractor = CommitmentExtractor(
            OpenAIOracle.from_config(config), max_chars=config.extract_max_chars
        )
        if not dry_run:
            progress_tracker = ProgressTracker(config.progress_db, "extraction")

        pipeline = ExtractionPipeline(
            extractor,
            MarkdownCommitmentRepository(config.commitments_dir),
            progress_tracker=progress_tracker,
            chunking=ChunkingConfig(config.chunk_size, config.chunk_overlap),
            limit=limit,
            dry_run=dry_run,
            index_path=config.index_path,
        )
        source = JsonlDocumentSource(inputs)
        pipeline.run(source.iter_documents())
        if source.malformed_lines:
            click.echo(f"Warning: skipped {source.malformed_lines} malformed line(s)", err=True)
    except KeyboardInterrupt:
        click.echo("\n\nExtraction interrupted by user")
        sys.exit(0)
    except (PolicyTrackerError, ValueError) as e:
        fail(e)
    finally:
        if progress_tracker is not None:
            progress_tracker.close()
