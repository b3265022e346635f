"""
Document processing modules for PolicyTracker.

This package turns legislative replies into canonical commitments and keeps
those commitments' status current.

The processors package includes:
    - schema: Commitment model, enums and pydantic models for oracle answers
    - identity: Content-addressed ids for documents, chunks and commitments
    - chunking: Sliding-window segmentation of long replies
    - oracle: The structured-answer capability and its OpenAI implementation
    - llm_extraction: Commitment extraction from reply text
    - dedup: Exact and fuzzy deduplication with union-find clustering
    - status_tracker: Screen/verify state machine and date sweeps
    - embeddings: OpenAI embeddings for the vector mirror

Only the modules without store dependencies are re-exported here; import
dedup, llm_extraction and status_tracker from their modules directly.

Python Learning Notes:
    - __all__ controls what's exported with "from processors import *"
    - Keeping package imports light avoids circular imports between packages
"""

from .chunking import Chunk, ChunkingConfig, reassemble, segment
from .identity import chunk_id, commitment_id, document_id
from .oracle import OpenAIOracle, Oracle
from .schema import (
    Category,
    Commitment,
    CommitmentStatus,
    RecordType,
    RelationType,
    SourceRef,
    TrackingRecord,
)

__all__ = [
    # Segmentation
    "Chunk",
    "ChunkingConfig",
    "segment",
    "reassemble",
    # Identity
    "chunk_id",
    "commitment_id",
    "document_id",
    # Oracle
    "Oracle",
    "OpenAIOracle",
    # Schemas
    "Category",
    "Commitment",
    "CommitmentStatus",
    "RecordType",
    "RelationType",
    "SourceRef",
    "TrackingRecord",
]
