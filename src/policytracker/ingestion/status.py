"""
Status pipelines: incremental updates and the historical backfill.

The update pipeline runs every new reply through the status tracker (screen,
verify, apply) and then sweeps target dates. A checkpoint file records which
replies were fully considered, so a rerun after a crash only does the
remaining work:

    - screen and verify finished            -> checkpointed
    - oracle answer definitively malformed  -> checkpointed (rejected)
    - transient failure after retries       -> NOT checkpointed, retried later

The backfill replays a whole history of exports against the store. It merges
the files keeping the last record per document, and leaves out the replies
commitments were extracted from, so a commitment is never matched against its
own source.

Python Learning Notes:
    - isinstance() distinguishes subclasses of a shared exception base
    - Module-level functions are fine for orchestration that holds no state
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from ..apis.base import Document
from ..apis.legislative import JsonlDocumentSource
from ..database.index import write_index
from ..errors import MalformedOracleResponse, PolicyTrackerError
from ..processors.status_tracker import StatusTracker, Transition
from .base import DocumentPipeline
from .checkpoint import Checkpoint

logger = logging.getLogger(__name__)


class StatusUpdatePipeline(DocumentPipeline):
    """
    Matches documents against stored commitments, then sweeps dates.

    Attributes:
        tracker: The status tracker (oracle plus repository).
        checkpoint: Optional record of documents already considered.
        exclude_ids: Document ids never screened (commitment sources).
        sweep: Run the date sweep after the documents.
        today: Reference date for entries and the sweep.
        transitions: Date-driven transitions made by the last run.

    Example:
        pipeline = StatusUpdatePipeline(
            StatusTracker(oracle, repo),
            checkpoint=Checkpoint(config.checkpoint_path),
            index_path=config.index_path,
        )
        pipeline.run(load_documents(["data/legislative/new.jsonl"]))
    """

    summary_title = "STATUS UPDATE COMPLETE"

    def __init__(
        self,
        tracker: StatusTracker,
        checkpoint: Optional[Checkpoint] = None,
        exclude_ids: Optional[Set[str]] = None,
        sweep: bool = True,
        dry_run: bool = False,
        index_path: Optional[Path] = None,
        today: Optional[date] = None,
    ):
        super().__init__(tracker.repository, dry_run=dry_run, index_path=index_path)
        self.tracker = tracker
        self.checkpoint = checkpoint
        self.exclude_ids = exclude_ids or set()
        self.sweep = sweep
        self.today = today
        self.transitions: List[Transition] = []

    def _filter_documents(self, documents: List[Document]) -> List[Document]:
        return [
            document
            for document in documents
            if document.id not in self.exclude_ids
            and not (self.checkpoint and self.checkpoint.is_done(document.id))
        ]

    def _mark_done(self, document: Document) -> None:
        if self.checkpoint is not None and not self.dry_run:
            self.checkpoint.mark_done(document.id)

    def _process_document(self, document: Document) -> None:
        if self.dry_run:
            logger.info(f"Would screen {document.id} ({document.subject[:40]})")
            return

        outcome = self.tracker.process_document(document, today=self.today)
        self.performance_monitor.record_items(
            updated=len(outcome.updated), skipped=outcome.skipped
        )
        self._mark_done(document)

    def _record_failure(self, document: Document, error: PolicyTrackerError) -> None:
        if isinstance(error, MalformedOracleResponse):
            self._mark_done(document)

    def _finish(self) -> None:
        if not self.sweep:
            return
        self.transitions = self.tracker.sweep_dates(self.today, dry_run=self.dry_run)
        self.performance_monitor.record_items(updated=len(self.transitions))


@dataclass
class BackfillReport:
    """What a backfill run did (or would do, in dry-run mode)."""

    transitions: List[Transition] = field(default_factory=list)
    statistics: Optional[Dict[str, Any]] = None
    excluded: int = 0


def run_backfill(
    tracker: StatusTracker,
    paths: Sequence[Union[str, Path]],
    checkpoint: Checkpoint,
    dates_only: bool = False,
    dry_run: bool = False,
    reset_checkpoint: bool = False,
    index_path: Optional[Path] = None,
    today: Optional[date] = None,
) -> BackfillReport:
    """
    Replay historical replies against the commitment store.

    Phase 1 is the date sweep. Unless ``dates_only`` is set, phase 2 merges
    ``paths`` (last record per document wins), drops documents that are the
    source of a stored commitment and runs the rest through the status
    pipeline with the persistent checkpoint.

    Args:
        tracker: The status tracker.
        paths: JSONL exports, oldest first.
        checkpoint: Persistent record of documents already considered.
        dates_only: Stop after the date sweep.
        dry_run: Report pending work without calling the oracle or writing.
        reset_checkpoint: Forget earlier progress and start over.
        index_path: Where index.json is rebuilt (None to skip).
        today: Reference date.

    Returns:
        BackfillReport: Transitions and per-document statistics.
    """
    if reset_checkpoint and not dry_run:
        logger.info(f"Resetting checkpoint {checkpoint.path}")
        checkpoint.reset()

    report = BackfillReport()
    if dates_only:
        report.transitions = tracker.sweep_dates(today, dry_run=dry_run)
        if index_path and not dry_run:
            write_index(tracker.repository, index_path)
        return report

    exclude_ids = tracker.repository.source_document_ids()
    documents = list(JsonlDocumentSource(paths, dedupe=True).iter_documents())
    report.excluded = sum(1 for d in documents if d.id in exclude_ids)
    logger.info(
        f"Backfill: {len(documents)} documents, {report.excluded} are commitment "
        f"sources, {len(checkpoint)} already checkpointed"
    )

    pipeline = StatusUpdatePipeline(
        tracker,
        checkpoint=checkpoint,
        exclude_ids=exclude_ids,
        dry_run=dry_run,
        index_path=index_path,
        today=today,
    )
    report.statistics = pipeline.run(documents)
    report.transitions = pipeline.transitions
    return report
