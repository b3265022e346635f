"""
Abstract base classes for document sources.

This module defines the document data structure shared by every pipeline and
the interface a document source must implement. Documents reach PolicyTracker
already fetched (the upstream fetcher exports them as JSONL), so a source only
has to read and normalize records, never talk to the Legislative Yuan itself.

Key Components:
    - Document: Immutable representation of one Executive Yuan reply
    - DocumentSource: Abstract base class defining the source interface

Python Learning Notes:
    - @dataclass(frozen=True) makes instances immutable and hashable
    - ABC (Abstract Base Class): Forces subclasses to implement abstract methods
    - Iterator[T] return types let sources stream large files lazily
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from ..processors.identity import document_id as make_document_id
from ..processors.schema import SourceRef


@dataclass(frozen=True)
class Document:
    """
    One Executive Yuan reply to a Legislative Yuan interpellation.

    Attributes:
        id (str): Content-addressed identifier. When the source does not
            supply one it is derived from the legislative coordinates.
        term (str): Legislative term (屆).
        session_period (str): Session period (會期).
        meeting_index (str): Meeting number within the session (次).
        ey_number (str): Executive Yuan document number.
        ly_number (str): Legislative Yuan document number.
        subject (str): Subject line of the reply.
        content (str): Body text of the reply.
        source_url (Optional[str]): Link to the official document.

    Usage Example:
        document = Document.create(
            term="11", session_period="2", meeting_index="1",
            ey_number="1130012345", ly_number="L001",
            subject="再生能源推動進度", content="...",
        )
    """

    id: str
    term: str
    session_period: str
    meeting_index: str
    ey_number: str
    ly_number: str
    subject: str
    content: str
    source_url: Optional[str] = field(default=None, compare=False)

    @classmethod
    def create(
        cls,
        term,
        session_period,
        meeting_index,
        ey_number,
        ly_number,
        subject: str,
        content: str,
        source_url: Optional[str] = None,
        id: Optional[str] = None,
    ) -> "Document":
        """Build a document, deriving its id from its coordinates if needed."""
        coords = [
            "" if value is None else str(value)
            for value in (term, session_period, meeting_index, ey_number, ly_number)
        ]
        return cls(
            id=id or make_document_id(*coords),
            term=coords[0],
            session_period=coords[1],
            meeting_index=coords[2],
            ey_number=coords[3],
            ly_number=coords[4],
            subject=subject or "",
            content=content or "",
            source_url=source_url or None,
        )

    @property
    def source_ref(self) -> SourceRef:
        """Reference stored on commitments and tracking entries."""
        return SourceRef(
            document_id=self.id,
            term=self.term,
            session_period=self.session_period,
            ey_number=self.ey_number,
            url=self.source_url,
        )

    def status_text(self, max_chars: int = 4000) -> str:
        """Subject plus the head of the content, as sent to screen/verify."""
        return f"{self.subject}\n\n{self.content[:max_chars]}"


class DocumentSource(ABC):
    """
    Abstract base class for anything that yields documents.

    Subclasses must implement iter_documents(); load() is provided for
    callers that need the full list (e.g. to count for progress bars).
    """

    @abstractmethod
    def iter_documents(self) -> Iterator[Document]:
        """Yield documents in source order."""

    def load(self) -> List[Document]:
        return list(self.iter_documents())
