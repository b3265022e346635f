"""
Sliding-window segmentation of long reply documents.

Executive Yuan replies can run far beyond what fits in a single extraction
call. This module splits a document's content into overlapping character
windows, each prefixed with the document subject so every chunk stands on its
own when sent to the oracle.

Algorithm:
    1. If ``subject + "\\n\\n" + content`` fits in ``chunk_size`` characters,
       the document is a single implicit chunk (``chunk_index`` is None).
    2. Otherwise the window size available for content is
       ``effective = chunk_size - len(subject) - SEPARATOR_OVERHEAD`` and the
       window advances by ``effective - overlap`` until it reaches the end.
    3. For content length L the chunked path yields
       ``ceil((L - overlap) / (effective - overlap))`` chunks.

Dropping the first ``overlap`` characters of every chunk after the first
and concatenating reproduces the original content exactly (see reassemble()).

Python Learning Notes:
    - @dataclass generates __init__ and __repr__ for plain data holders
    - __post_init__ runs validation right after the generated __init__
    - Properties compute derived values without storing them
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError
from ..utils import get_logger
from .identity import chunk_id as make_chunk_id

logger = get_logger(__name__)

SEPARATOR = "\n\n"
SEPARATOR_OVERHEAD = 10


@dataclass
class ChunkingConfig:
    """
    Configuration for document segmentation.

    Attributes:
        chunk_size: Maximum characters per chunk, subject included.
        overlap: Characters shared by consecutive chunks.
    """

    chunk_size: int = 4000
    overlap: int = 500

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.chunk_size <= 0:
            raise ConfigurationError("chunk_size must be positive")
        if self.overlap < 0:
            raise ConfigurationError("overlap cannot be negative")
        if self.overlap >= self.chunk_size:
            raise ConfigurationError("overlap must be smaller than chunk_size")


def _load_config(prefix: str, defaults: Dict[str, Any]) -> ChunkingConfig:
    """
    Load configuration with environment variable overrides.

    Args:
        prefix: Environment variable prefix (e.g., "POLICYTRACKER")
        defaults: Default configuration values

    Returns:
        ChunkingConfig with environment overrides applied
    """
    try:
        chunk_size = int(os.environ.get(f"{prefix}_CHUNK_SIZE", defaults["chunk_size"]))
        overlap = int(os.environ.get(f"{prefix}_CHUNK_OVERLAP", defaults["overlap"]))
    except ValueError as e:
        raise ConfigurationError(f"Invalid chunking configuration: {e}") from e
    return ChunkingConfig(chunk_size=chunk_size, overlap=overlap)


def get_chunking_config() -> ChunkingConfig:
    """Segmentation settings for reply documents, with env overrides."""
    cfg = _load_config("POLICYTRACKER", {"chunk_size": 4000, "overlap": 500})
    logger.debug("Chunking config: %s", cfg)
    return cfg


@dataclass
class Chunk:
    """
    One window of a segmented document.

    Attributes:
        base_document_id: Identifier of the document the chunk came from.
        chunk_index: Position of the chunk, or None for an unsplit document.
        total_chunks: Number of chunks the document produced (None if unsplit).
        subject: Document subject, repeated on every chunk.
        content: The window of document content.
        start: Offset of the window in the original content.
        end: Exclusive end offset of the window.
    """

    base_document_id: Optional[str]
    chunk_index: Optional[int]
    total_chunks: Optional[int]
    subject: str
    content: str
    start: int
    end: int

    @property
    def text(self) -> str:
        """Subject and content as sent to the extraction oracle."""
        return f"{self.subject}{SEPARATOR}{self.content}"

    @property
    def chunk_id(self) -> Optional[str]:
        if self.base_document_id is None:
            return None
        if self.chunk_index is None:
            return self.base_document_id
        return make_chunk_id(self.base_document_id, self.chunk_index)


def segment(
    subject: str,
    content: str,
    chunk_size: int = 4000,
    overlap: int = 500,
    base_document_id: Optional[str] = None,
) -> List[Chunk]:
    """
    Split a document into overlapping chunks.

    Args:
        subject: Document subject line, prefixed to every chunk.
        content: Document body.
        chunk_size: Maximum characters per chunk, subject included.
        overlap: Characters repeated between consecutive chunks.
        base_document_id: Identifier of the source document, if known.

    Returns:
        List[Chunk]: One implicit chunk for short documents, otherwise the
            ordered sliding windows over ``content``.

    Raises:
        ConfigurationError: If the subject leaves no room for content or the
            overlap is not smaller than the content window. Without this
            check the window would never advance.

    Example:
        >>> chunks = segment("主旨", "內容" * 5000, chunk_size=4000, overlap=500)
        >>> chunks[0].chunk_index, len(chunks) > 1
        (0, True)
    """
    subject = subject or ""
    content = content or ""

    if len(subject) + len(SEPARATOR) + len(content) <= chunk_size:
        return [
            Chunk(
                base_document_id=base_document_id,
                chunk_index=None,
                total_chunks=None,
                subject=subject,
                content=content,
                start=0,
                end=len(content),
            )
        ]

    effective = chunk_size - len(subject) - SEPARATOR_OVERHEAD
    if effective <= 0:
        raise ConfigurationError(
            f"Subject of {len(subject)} characters leaves no room in "
            f"chunk_size={chunk_size}"
        )
    if overlap < 0 or overlap >= effective:
        raise ConfigurationError(
            f"overlap={overlap} must be smaller than the content window ({effective})"
        )

    step = effective - overlap
    spans = []
    start = 0
    while True:
        end = min(start + effective, len(content))
        spans.append((start, end))
        if end >= len(content):
            break
        start += step

    total = len(spans)
    logger.debug(
        "Segmented document %s into %d chunks (window=%d, overlap=%d)",
        base_document_id,
        total,
        effective,
        overlap,
    )
    return [
        Chunk(
            base_document_id=base_document_id,
            chunk_index=index,
            total_chunks=total,
            subject=subject,
            content=content[span_start:span_end],
            start=span_start,
            end=span_end,
        )
        for index, (span_start, span_end) in enumerate(spans)
    ]


def reassemble(chunks: List[Chunk], overlap: int) -> str:
    """Rebuild the original content from an ordered list of chunks."""
    if not chunks:
        return ""
    parts = [chunks[0].content]
    parts.extend(chunk.content[overlap:] for chunk in chunks[1:])
    return "".join(parts)
