"""
Run monitoring for the batch pipelines.

Extraction over a year of replies or a full status backfill can run for
hours. PerformanceMonitor keeps two kinds of counters while a pipeline runs:

    - per document: processed, skipped (already handled), failed
    - per commitment: created, updated, skipped (duplicates, inconsistent records)

and turns them into the progress line printed during the run and the summary
block printed at the end of it.

Python Learning Notes:
    - collections.Counter returns 0 for missing keys, so no initialization is needed
    - time.monotonic() is unaffected by system clock changes, unlike time.time()
"""

import logging
import time
from collections import Counter
from typing import Any, Dict, List, Optional

DOCUMENT_OUTCOMES = ("processed", "skipped", "failed")
ITEM_OUTCOMES = ("created", "updated", "skipped")


class PerformanceMonitor:
    """
    Outcome counters and timing for one pipeline run.

    Attributes:
        start_time (Optional[float]): Monotonic timestamp of start(), None before.
        documents (Counter): Document outcomes (processed / skipped / failed).
        items (Counter): Commitment outcomes (created / updated / skipped).
        processing_times (List[float]): Milliseconds spent per processed document.

    Example:
        monitor = PerformanceMonitor()
        monitor.start()
        for position, document in enumerate(documents, start=1):
            monitor.print_progress(position, len(documents))
            result = canonicalize(repo, extractor.extract_document(document))
            monitor.record_items(created=len(result.created))
            monitor.record_document(elapsed_ms)
        print(monitor.format_summary("EXTRACTION COMPLETE"))
    """

    def __init__(self):
        self.start_time: Optional[float] = None
        self.documents: Counter = Counter()
        self.items: Counter = Counter()
        self.processing_times: List[float] = []

    def start(self) -> None:
        """Reset every counter and start the clock."""
        self.start_time = time.monotonic()
        self.documents = Counter()
        self.items = Counter()
        self.processing_times = []

    # Read-only views used by the summary and by callers that log counts
    @property
    def documents_processed(self) -> int:
        return self.documents["processed"]

    @property
    def documents_failed(self) -> int:
        return self.documents["failed"]

    @property
    def documents_skipped(self) -> int:
        return self.documents["skipped"]

    def record_document(
        self,
        processing_time_ms: Optional[float] = None,
        failed: bool = False,
        skipped: bool = False,
    ) -> None:
        """
        Count one document.

        A document is failed, skipped, or processed; only processed documents
        contribute to the average processing time.
        """
        if failed:
            self.documents["failed"] += 1
        elif skipped:
            self.documents["skipped"] += 1
        else:
            self.documents["processed"] += 1
            if processing_time_ms:
                self.processing_times.append(processing_time_ms)

    def record_items(self, created: int = 0, updated: int = 0, skipped: int = 0) -> None:
        """Add commitment-level outcomes to the run totals."""
        self.items.update(created=created, updated=updated, skipped=skipped)

    def _eta(self, total_documents: int, elapsed: float) -> Dict[str, Any]:
        handled = sum(self.documents[o] for o in DOCUMENT_OUTCOMES)
        if not total_documents or not handled:
            return {}
        remaining = total_documents - handled
        seconds = remaining * elapsed / handled if elapsed > 0 else 0
        return {
            "remaining_documents": remaining,
            "eta_seconds": seconds,
            "eta_formatted": self._format_duration(seconds),
            "completion_percentage": handled / total_documents * 100,
        }

    def get_statistics(self, total_documents: Optional[int] = None) -> Dict[str, Any]:
        """
        Snapshot of the run so far.

        Args:
            total_documents: Size of the batch; adds remaining_documents,
                eta_seconds, eta_formatted and completion_percentage.

        Returns:
            Dict[str, Any]: ``documents_<outcome>`` and ``items_<outcome>``
                counts, total_processed (processed plus failed), success_rate,
                throughput_per_minute, elapsed time and, once a document was
                timed, avg_processing_time_ms. ``{"error": ...}`` before start().
        """
        if self.start_time is None:
            return {"error": "Monitor not started"}

        elapsed = time.monotonic() - self.start_time
        attempted = self.documents["processed"] + self.documents["failed"]

        stats: Dict[str, Any] = {
            "elapsed_time_seconds": elapsed,
            "elapsed_time_formatted": self._format_duration(elapsed),
        }
        stats.update({f"documents_{o}": self.documents[o] for o in DOCUMENT_OUTCOMES})
        stats.update({f"items_{o}": self.items[o] for o in ITEM_OUTCOMES})
        stats["total_processed"] = attempted
        stats["success_rate"] = (
            self.documents["processed"] / attempted * 100 if attempted else 0
        )
        stats["throughput_per_minute"] = attempted / elapsed * 60 if elapsed > 0 else 0

        if self.processing_times:
            average = sum(self.processing_times) / len(self.processing_times)
            stats["avg_processing_time_ms"] = average
            stats["avg_processing_time_formatted"] = f"{average:.2f}ms"

        stats.update(self._eta(total_documents, elapsed))
        return stats

    def format_summary(self, title: str = "RUN COMPLETE") -> str:
        """The block every pipeline prints when it finishes."""
        stats = self.get_statistics()
        if "error" in stats:
            return f"{title}: nothing was processed"

        rule = "=" * 60
        return "\n".join(
            [
                rule,
                title,
                rule,
                f"Documents processed: {stats['documents_processed']}",
                f"Documents skipped:   {stats['documents_skipped']}",
                f"Documents failed:    {stats['documents_failed']}",
                f"Commitments created: {stats['items_created']}",
                f"Commitments updated: {stats['items_updated']}",
                f"Candidates skipped:  {stats['items_skipped']}",
                f"Total time: {stats['elapsed_time_formatted']}",
            ]
        )

    def print_progress(self, current: int, total: int, prefix: str = "Progress") -> None:
        """
        Redraw the progress line in place.

        Python Learning Notes:
            - "\\r" moves the cursor back to the start of the line
            - print(end="") suppresses the newline until the last document
        """
        if not total:
            return

        width = 50
        done = int(width * current / total)
        eta = self.get_statistics(total).get("eta_formatted", "calculating...")
        print(
            f"\r{prefix}: |{'█' * done}{'░' * (width - done)}| "
            f"{current / total:.1%} ({current}/{total}) ETA: {eta}",
            end="",
            flush=True,
        )
        if current >= total:
            print()

    @staticmethod
    def _format_duration(seconds: float) -> str:
        """42.7 -> "42.7s", 185 -> "3m 5s", 7890 -> "2h 11m"."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        minutes, secs = divmod(int(seconds), 60)
        if minutes < 60:
            return f"{minutes}m {secs}s"
        hours, minutes = divmod(minutes, 60)
        return f"{hours}h {minutes}m"


def setup_logging(verbose: bool = False) -> None:
    """
    Console-only logging for ``policytracker --verbose``.

    Replaces the YAML configuration with basicConfig at DEBUG (or INFO) and
    keeps the HTTP client libraries at WARNING so oracle retries stay readable.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for noisy in ("urllib3", "openai", "httpx", "qdrant_client"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
