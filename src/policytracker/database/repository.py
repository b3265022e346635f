"""
Commitment store: the repository abstraction and its Markdown backing.

The core engine only talks to CommitmentRepository (get, put, list, delete,
locator). MarkdownCommitmentRepository keeps one Markdown record per
commitment under ``<root>/<category>/<short_name>.md`` so the static site can
serve the store directly.

Guarantees:
    - Every write is atomic: the record is written to a temporary file in the
      same directory, flushed, fsynced and moved into place with os.replace,
      so a crash never leaves a half-written record behind
    - Header rewrite and history append happen in the same write, so a
      commitment's state changes all-or-nothing
    - A record keeps its file when its content changes; a category change
      moves it and removes the old file
    - Category directories left empty by deletions are removed

Python Learning Notes:
    - pathlib.Path makes path manipulation readable and portable
    - tempfile.NamedTemporaryFile(delete=False) + os.replace is the standard
      atomic-write idiom on POSIX and Windows
    - An in-memory id -> path map avoids rescanning the directory tree
"""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Set, Union

from ..errors import StorageInconsistency, StoreUnavailable
from ..processors.schema import Commitment
from . import markdown

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".md"


class CommitmentRepository(ABC):
    """Abstract commitment store used by the dedup engine and status tracker."""

    @abstractmethod
    def get(self, commitment_id: str) -> Optional[Commitment]:
        """Return the commitment, or None if it is not stored."""

    @abstractmethod
    def put(self, commitment: Commitment) -> None:
        """Insert or replace a commitment atomically."""

    @abstractmethod
    def list(
        self, predicate: Optional[Callable[[Commitment], bool]] = None
    ) -> List[Commitment]:
        """All stored commitments (optionally filtered), in a stable order."""

    @abstractmethod
    def delete(self, commitment_id: str) -> bool:
        """Remove a commitment; returns False if it was not stored."""

    @abstractmethod
    def locator(self, commitment_id: str) -> Optional[str]:
        """Store-relative location of a commitment (e.g. its file path)."""

    def __contains__(self, commitment_id: str) -> bool:
        return self.locator(commitment_id) is not None

    def source_document_ids(self) -> Set[str]:
        """Ids of every document that some commitment was extracted from."""
        return {
            c.source.document_id for c in self.list() if c.source.document_id
        }


class MarkdownCommitmentRepository(CommitmentRepository):
    """
    Commitment store backed by Markdown files grouped by category.

    Attributes:
        root (Path): Store directory (``docs/commitments`` by default).

    Example:
        repo = MarkdownCommitmentRepository("docs/commitments")
        for commitment in repo.list():
            print(repo.locator(commitment.id), commitment.status.label)
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self._paths: Optional[Dict[str, Path]] = None

    # -- loading -------------------------------------------------------------

    def _record_files(self) -> Iterator[Path]:
        for path in sorted(self.root.glob(f"*/*{RECORD_SUFFIX}")):
            if path.is_file():
                yield path

    def _load_index(self) -> Dict[str, Path]:
        if self._paths is not None:
            return self._paths
        if self.root.exists() and not self.root.is_dir():
            raise StoreUnavailable(f"Commitment store {self.root} is not a directory")

        paths: Dict[str, Path] = {}
        try:
            files = list(self._record_files()) if self.root.exists() else []
        except OSError as e:
            raise StoreUnavailable(f"Cannot read commitment store {self.root}: {e}") from e

        for path in files:
            try:
                data, _ = markdown.split_front_matter(path.read_text(encoding="utf-8"))
            except (OSError, StorageInconsistency) as e:
                logger.warning("Skipping unreadable record %s: %s", path, e)
                continue
            commitment_id = data.get("id")
            if not commitment_id:
                logger.warning("Skipping record without id: %s", path)
                continue
            if commitment_id in paths:
                logger.warning(
                    "Duplicate id %s in %s and %s; keeping the first",
                    commitment_id,
                    paths[commitment_id],
                    path,
                )
                continue
            paths[str(commitment_id)] = path
        self._paths = paths
        logger.debug("Loaded %d commitment records from %s", len(paths), self.root)
        return paths

    def refresh(self) -> None:
        """Forget the cached id -> path map and rescan on next access."""
        self._paths = None

    # -- reads ---------------------------------------------------------------

    def _read(self, commitment_id: str, path: Path) -> Commitment:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise StorageInconsistency(
                f"Record for {commitment_id} is missing: {path}"
            ) from e
        return markdown.parse(text)

    def get(self, commitment_id: str) -> Optional[Commitment]:
        path = self._load_index().get(commitment_id)
        if path is None:
            return None
        return self._read(commitment_id, path)

    def list(
        self, predicate: Optional[Callable[[Commitment], bool]] = None
    ) -> List[Commitment]:
        commitments = []
        for commitment_id, path in sorted(
            self._load_index().items(), key=lambda item: str(item[1])
        ):
            try:
                commitment = self._read(commitment_id, path)
            except StorageInconsistency as e:
                logger.warning("Skipping %s: %s", commitment_id, e)
                continue
            if predicate is None or predicate(commitment):
                commitments.append(commitment)
        return commitments

    def locator(self, commitment_id: str) -> Optional[str]:
        path = self._load_index().get(commitment_id)
        if path is None:
            return None
        return path.relative_to(self.root).as_posix()

    # -- writes --------------------------------------------------------------

    def _target_path(self, commitment: Commitment) -> Path:
        paths = self._load_index()
        category_dir = self.root / commitment.category.value
        current = paths.get(commitment.id)
        if current is not None and current.parent == category_dir:
            return current

        taken = {p for cid, p in paths.items() if cid != commitment.id}
        stem = commitment.short_name or commitment.id[:8]
        candidate = category_dir / f"{stem}{RECORD_SUFFIX}"
        if candidate in taken or (candidate.exists() and candidate != current):
            candidate = category_dir / f"{stem}-{commitment.id[:8]}{RECORD_SUFFIX}"
        return candidate

    def put(self, commitment: Commitment) -> None:
        paths = self._load_index()
        target = self._target_path(commitment)
        previous = paths.get(commitment.id)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            _atomic_write(target, markdown.render(commitment))
        except OSError as e:
            raise StoreUnavailable(f"Cannot write {target}: {e}") from e

        paths[commitment.id] = target
        if previous is not None and previous != target:
            previous.unlink(missing_ok=True)
            self._remove_if_empty(previous.parent)
        logger.debug("Stored commitment %s at %s", commitment.id, target)

    def delete(self, commitment_id: str) -> bool:
        paths = self._load_index()
        path = paths.pop(commitment_id, None)
        if path is None:
            return False
        path.unlink(missing_ok=True)
        self._remove_if_empty(path.parent)
        logger.debug("Deleted commitment %s (%s)", commitment_id, path)
        return True

    def _remove_if_empty(self, directory: Path) -> None:
        if directory == self.root or not directory.is_dir():
            return
        if not any(directory.iterdir()):
            directory.rmdir()
            logger.debug("Removed empty category directory %s", directory)

    def remove_empty_dirs(self) -> int:
        """Remove every empty category directory; returns how many were removed."""
        if not self.root.is_dir():
            return 0
        removed = 0
        for directory in sorted(self.root.iterdir()):
            if directory.is_dir() and not any(directory.iterdir()):
                directory.rmdir()
                removed += 1
        return removed


def _atomic_write(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` so readers see either old or new bytes."""
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.stem}.", suffix=".tmp", dir=str(path.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
