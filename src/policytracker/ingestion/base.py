"""
Abstract base class for document pipelines.

This module provides the shared loop every batch run goes through: the
extraction pipeline that turns replies into commitments, and the status
pipeline that matches replies against existing commitments. It defines the
common interface and shared logic that concrete pipelines implement.

The base class handles:
- Filtering out documents already handled by an earlier run
- Performance monitoring and the end-of-run summary
- Error handling: one failed document never stops the batch
- Rebuilding the index once the run is done

Python Learning Notes:
    - Abstract Base Classes (ABC) enforce implementation of required methods
    - Template Method pattern: base class defines structure, subclasses fill in details
    - Re-raising selected exceptions lets fatal errors escape a per-item try block
"""

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..apis.base import Document
from ..database.index import write_index
from ..database.repository import CommitmentRepository
from ..errors import ConfigurationError, PolicyTrackerError, StoreUnavailable
from ..utils.monitoring import PerformanceMonitor

logger = logging.getLogger(__name__)


class DocumentPipeline(ABC):
    """
    Abstract base class for document pipelines.

    The pipeline follows these steps:
    1. Take documents from a source
    2. Filter out documents handled by an earlier run
    3. Process each remaining document, counting outcomes
    4. Run the end-of-run hook (e.g. the date sweep)
    5. Rebuild the index and print the summary

    Attributes:
        repository: The commitment store.
        dry_run: If True, nothing is written.
        index_path: Where index.json is rebuilt after the run (None to skip).
        performance_monitor: Outcome counters and timing.

    Example:
        class MyPipeline(DocumentPipeline):
            def _process_document(self, document):
                ...

        pipeline = MyPipeline(repo, index_path=Path("docs/commitments/index.json"))
        stats = pipeline.run(load_documents(["2024.jsonl"]))
    """

    summary_title = "RUN COMPLETE"

    def __init__(
        self,
        repository: CommitmentRepository,
        dry_run: bool = False,
        index_path: Optional[Path] = None,
    ):
        self.repository = repository
        self.dry_run = dry_run
        self.index_path = Path(index_path) if index_path else None
        self.performance_monitor = PerformanceMonitor()

    def _filter_documents(self, documents: List[Document]) -> List[Document]:
        """Documents that still need processing. Default: all of them."""
        return documents

    @abstractmethod
    def _process_document(self, document: Document) -> None:
        """
        Process a single document.

        Implementations record their commitment-level outcomes on
        self.performance_monitor and raise a PolicyTrackerError on failure.
        """
        pass

    def _record_failure(self, document: Document, error: PolicyTrackerError) -> None:
        """Hook called after a document failed. Default: nothing."""
        pass

    def _finish(self) -> None:
        """Hook called once after the last document. Default: nothing."""
        pass

    def run(self, documents: Iterable[Document]) -> Dict[str, Any]:
        """
        Execute the pipeline over ``documents``.

        Returns:
            Dict[str, Any]: PerformanceMonitor statistics for the run.

        Raises:
            ConfigurationError: Settings or credentials are unusable.
            StoreUnavailable: The commitment store cannot be read or written.
        """
        self.performance_monitor.start()
        if self.dry_run:
            logger.info("DRY RUN MODE - Nothing will be written")

        documents = list(documents)
        pending = self._filter_documents(documents)
        for _ in range(len(documents) - len(pending)):
            self.performance_monitor.record_document(skipped=True)
        logger.info(
            f"Processing {len(pending)} of {len(documents)} documents "
            f"({len(documents) - len(pending)} already handled)"
        )

        total = len(pending)
        for position, document in enumerate(pending, start=1):
            self.performance_monitor.print_progress(position, total, "Processing documents")
            start_time = time.time()
            try:
                self._process_document(document)
            except (ConfigurationError, StoreUnavailable):
                raise
            except PolicyTrackerError as e:
                logger.error(f"Document {document.id} failed: {e}")
                self.performance_monitor.record_document(failed=True)
                self._record_failure(document, e)
                continue
            self.performance_monitor.record_document((time.time() - start_time) * 1000)

        self._finish()

        if self.index_path and not self.dry_run:
            write_index(self.repository, self.index_path)

        print(self.performance_monitor.format_summary(self.summary_title))
        return self.performance_monitor.get_statistics()
