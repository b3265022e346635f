"""
JSONL document source for fetched Legislative Yuan replies.

The fetcher exports replies as JSON Lines. Two record shapes are accepted:

Point format (as written for the vector store)::

    {"id": "...", "payload": {"baseId": "...", "isChunked": false,
     "chunkIndex": null, "term": 11, "sessionPeriod": 2, "sessionTimes": 1,
     "eyNumber": "...", "lyNumber": "...", "subject": "...",
     "content": "...", "docUrl": "https://..."}}

Flat format::

    {"id": "...", "term": "11", "session_period": "2", "meeting_index": "1",
     "ey_number": "...", "ly_number": "...", "subject": "...",
     "content": "...", "source_url": "https://..."}

Point records for chunks other than the first are skipped, since the first
chunk carries the reply the rest were split from. The document id is the
``baseId`` when present, then ``id``, and otherwise it is derived from the
legislative coordinates.

Python Learning Notes:
    - Generators (yield) stream large files without loading them whole
    - dict.get() with a default handles optional keys
    - Insertion-ordered dicts make "keep the last record per key" simple
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from .base import Document, DocumentSource

logger = logging.getLogger(__name__)


def parse_record(record: Dict[str, Any]) -> Optional[Document]:
    """
    Convert one JSONL record into a Document.

    Args:
        record: Decoded JSON object from one line.

    Returns:
        Optional[Document]: The document, or None for records that should be
            skipped (non-first chunks, records without any text).
    """
    payload = record.get("payload")
    if isinstance(payload, dict):
        if payload.get("isChunked") and payload.get("chunkIndex") not in (0, None):
            return None
        fields = {
            "id": payload.get("baseId") or record.get("id"),
            "term": payload.get("term"),
            "session_period": payload.get("sessionPeriod"),
            "meeting_index": payload.get("sessionTimes"),
            "ey_number": payload.get("eyNumber"),
            "ly_number": payload.get("lyNumber"),
            "subject": payload.get("subject"),
            "content": payload.get("content"),
            "source_url": payload.get("docUrl"),
        }
    else:
        fields = {
            "id": record.get("id"),
            "term": record.get("term"),
            "session_period": record.get("session_period"),
            "meeting_index": record.get("meeting_index"),
            "ey_number": record.get("ey_number"),
            "ly_number": record.get("ly_number"),
            "subject": record.get("subject"),
            "content": record.get("content"),
            "source_url": record.get("source_url"),
        }

    if not fields["subject"] and not fields["content"]:
        return None

    document_id = fields.pop("id")
    return Document.create(id=str(document_id) if document_id else None, **fields)


class JsonlDocumentSource(DocumentSource):
    """
    Reads documents from one or more JSONL files.

    Attributes:
        paths (List[Path]): Files read in order.
        dedupe (bool): Keep only the last record per document id, as the
            status backfill does when merging several exports.
        malformed_lines (int): Lines that could not be decoded in the last pass.

    Example:
        source = JsonlDocumentSource(["data/legislative/2024.jsonl"])
        for document in source.iter_documents():
            print(document.id, document.subject)
    """

    def __init__(self, paths: Sequence[Union[str, Path]], dedupe: bool = False):
        self.paths = [Path(p) for p in paths]
        self.dedupe = dedupe
        self.malformed_lines = 0

    def _iter_file(self, path: Path) -> Iterator[Document]:
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError as e:
                    self.malformed_lines += 1
                    logger.warning("Skipping malformed line %s:%d: %s", path, line_number, e)
                    continue
                if not isinstance(record, dict):
                    self.malformed_lines += 1
                    continue
                document = parse_record(record)
                if document is not None:
                    yield document

    def iter_documents(self) -> Iterator[Document]:
        self.malformed_lines = 0
        if not self.dedupe:
            for path in self.paths:
                yield from self._iter_file(path)
            return

        latest: Dict[str, Document] = {}
        for path in self.paths:
            for document in self._iter_file(path):
                latest.pop(document.id, None)
                latest[document.id] = document
        logger.info("Merged %d unique documents from %d file(s)", len(latest), len(self.paths))
        yield from latest.values()


def load_documents(paths: Sequence[Union[str, Path]], dedupe: bool = False) -> List[Document]:
    """Convenience wrapper returning every document from ``paths``."""
    return JsonlDocumentSource(paths, dedupe=dedupe).load()
