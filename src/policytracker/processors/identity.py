"""
Content-addressed identifiers for documents, chunks and commitments.

Identifiers are MD5 digests of a canonical UTF-8 string, formatted as
8-4-4-4-12 hex groups so they read like UUIDs. The same input always yields
the same identifier across runs and machines, which is what lets a rerun of
the extraction pipeline recognize commitments it has already stored.

Canonical strings:
    - Commitment: title immediately followed by the excerpt text
    - Document: "{term}-{session_period}-{meeting_index}-{ey_number}-{ly_number}"
    - Chunk: "{base_document_id}-chunk-{chunk_index}"

Python Learning Notes:
    - hashlib.md5(...).hexdigest() returns a 32-character hex string
    - uuid.UUID(hex=...) only formats the digest; it does not generate anything
    - MD5 is fine here because the ids are for deduplication, not security
"""

import hashlib
import uuid
from typing import Any


def content_id(canonical: str) -> str:
    """Return the 8-4-4-4-12 formatted MD5 digest of a canonical string."""
    digest = hashlib.md5(canonical.encode("utf-8")).hexdigest()
    return str(uuid.UUID(hex=digest))


def commitment_id(title: str, text: str) -> str:
    """
    Identifier of a commitment.

    Args:
        title: Short commitment title.
        text: Source excerpt of the commitment.

    Returns:
        str: Stable identifier, e.g. ``"5d41402a-bc4b-2a76-b971-9d911017c592"``.

    Example:
        >>> commitment_id("再生能源20%", "2026年再生能源占比提升至20%") == \\
        ...     commitment_id("再生能源20%", "2026年再生能源占比提升至20%")
        True
    """
    return content_id(f"{title}{text}")


def document_id(
    term: Any,
    session_period: Any,
    meeting_index: Any,
    ey_number: Any,
    ly_number: Any,
) -> str:
    """Identifier of a source document from its legislative coordinates."""
    return content_id(
        f"{term}-{session_period}-{meeting_index}-{ey_number}-{ly_number}"
    )


def chunk_id(base_document_id: str, chunk_index: int) -> str:
    """Identifier of one chunk of a segmented document."""
    return content_id(f"{base_document_id}-chunk-{chunk_index}")
