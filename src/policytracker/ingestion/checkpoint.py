"""
Checkpoint controller for resumable status runs.

The checkpoint is an append-only, newline-delimited file of document ids that
have been fully considered by the status tracker. A document is appended only
after its screen and verify work finished (or it was definitively rejected),
so a crash mid-document leaves it out and a rerun processes it again.

Each append is flushed and fsynced before mark_done() returns.

Python Learning Notes:
    - Opening a file in "a" mode always writes at the end
    - os.fsync() asks the OS to push buffered bytes to disk
    - __contains__ and __len__ let the class behave like a set
"""

import logging
import os
from pathlib import Path
from typing import Set, Union

logger = logging.getLogger(__name__)


class Checkpoint:
    """
    Persistent set of processed document ids.

    Attributes:
        path (Path): Newline-delimited checkpoint file.

    Example:
        checkpoint = Checkpoint("data/commitments/backfill_checkpoint.txt")
        for document in documents:
            if checkpoint.is_done(document.id):
                continue
            tracker.process_document(document)
            checkpoint.mark_done(document.id)
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._done: Set[str] = set()
        if self.path.exists():
            with open(self.path, "r", encoding="utf-8") as f:
                self._done = {line.strip() for line in f if line.strip()}
            logger.info("Loaded %d checkpointed documents from %s", len(self._done), self.path)

    def is_done(self, document_id: str) -> bool:
        return document_id in self._done

    def mark_done(self, document_id: str) -> None:
        """Durably record that ``document_id`` is finished."""
        if document_id in self._done:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(f"{document_id}\n")
            f.flush()
            os.fsync(f.fileno())
        self._done.add(document_id)

    def reset(self) -> None:
        """Forget every processed document and remove the file."""
        self._done.clear()
        self.path.unlink(missing_ok=True)

    def __contains__(self, document_id: str) -> bool:
        return self.is_done(document_id)

    def __len__(self) -> int:
        return len(self._done)
