"""
Extraction pipeline: legislative replies to canonical commitments.

Each reply is segmented, every chunk is sent to the extractor, and the
resulting candidates are merged into the store by the dedup engine. Progress
is tracked per document in SQLite so a run over a large export can be
interrupted and resumed; documents that failed are retried on the next run.

Python Learning Notes:
    - Subclasses override only the hooks they need from the base pipeline
    - try/finally guarantees the run record is closed even on a fatal error
"""

import logging
import time
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..apis.base import Document
from ..database.repository import CommitmentRepository
from ..errors import PolicyTrackerError
from ..processors.chunking import ChunkingConfig
from ..processors.dedup import canonicalize
from ..processors.llm_extraction import CommitmentExtractor
from .base import DocumentPipeline
from .progress import ProgressTracker

logger = logging.getLogger(__name__)


class ExtractionPipeline(DocumentPipeline):
    """
    Runs extraction and dedup over a batch of documents.

    Attributes:
        extractor: Turns document text into candidate commitments.
        progress_tracker: Optional SQLite tracker; completed documents are
            skipped on later runs. Not written to in dry-run mode.
        chunking: Segmenter window and overlap.
        limit: Process at most this many pending documents.
        today: Creation date stamped on new commitments (defaults to today).

    Example:
        pipeline = ExtractionPipeline(
            CommitmentExtractor(OpenAIOracle.from_config(config)),
            MarkdownCommitmentRepository(config.commitments_dir),
            progress_tracker=ProgressTracker(config.progress_db, "extraction"),
            index_path=config.index_path,
        )
        pipeline.run(load_documents(["data/legislative/2024.jsonl"]))
    """

    summary_title = "EXTRACTION COMPLETE"

    def __init__(
        self,
        extractor: CommitmentExtractor,
        repository: CommitmentRepository,
        progress_tracker: Optional[ProgressTracker] = None,
        chunking: Optional[ChunkingConfig] = None,
        limit: Optional[int] = None,
        dry_run: bool = False,
        index_path: Optional[Path] = None,
        today: Optional[date] = None,
    ):
        super().__init__(repository, dry_run=dry_run, index_path=index_path)
        self.extractor = extractor
        self.progress_tracker = progress_tracker
        self.chunking = chunking or ChunkingConfig()
        self.limit = limit
        self.today = today

    @property
    def _tracking(self) -> bool:
        return self.progress_tracker is not None and not self.dry_run

    def _filter_documents(self, documents: List[Document]) -> List[Document]:
        pending = []
        for document in documents:
            if self._tracking:
                self.progress_tracker.add_document(
                    document.id, {"subject": document.subject, "ey_number": document.ey_number}
                )
                if self.progress_tracker.is_processed(document.id):
                    continue
            pending.append(document)
        if self.limit is not None:
            pending = pending[: self.limit]
        return pending

    def _process_document(self, document: Document) -> None:
        if self._tracking:
            self.progress_tracker.mark_processing(document.id)
        start_time = time.time()

        candidates = self.extractor.extract_document(
            document, chunking=self.chunking, today=self.today
        )
        result = canonicalize(self.repository, candidates, dry_run=self.dry_run)
        self.performance_monitor.record_items(
            created=len(result.created), skipped=len(result.rejected)
        )
        logger.info(
            f"{document.id}: {len(candidates)} candidates, "
            f"{len(result.created)} new, {len(result.deleted)} replaced"
        )

        if self._tracking:
            self.progress_tracker.mark_completed(
                document.id,
                processing_time_ms=int((time.time() - start_time) * 1000),
                commitments_found=len(result.created),
            )

    def _record_failure(self, document: Document, error: PolicyTrackerError) -> None:
        if self._tracking:
            self.progress_tracker.mark_failed(document.id, str(error))

    def run(self, documents: Iterable[Document]) -> Dict[str, Any]:
        if not self._tracking:
            return super().run(documents)

        self.progress_tracker.reset_processing_status()
        run_id = self.progress_tracker.start_run(
            {"limit": self.limit, "chunk_size": self.chunking.chunk_size}
        )
        try:
            return super().run(documents)
        finally:
            self.progress_tracker.end_run(run_id)
