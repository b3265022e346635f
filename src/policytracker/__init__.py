"""
PolicyTracker: Commitment extraction and lifecycle tracking for Executive Yuan replies.

This is the main package initialization file for PolicyTracker, a library that reads
the Executive Yuan's written replies to Legislative Yuan interpellations, identifies
the concrete policy commitments they contain, and follows each commitment over time
as later replies report progress or fulfilment.

The PolicyTracker system provides:
    - Sliding-window segmentation of long reply documents
    - Content-addressed identifiers for documents, chunks and commitments
    - LLM-assisted commitment extraction with strict response validation
    - Exact and fuzzy deduplication with union-find clustering
    - A two-stage (screen, verify) status state machine plus date-driven sweeps
    - Resumable batch processing with checkpoints and SQLite progress tracking
    - A Markdown commitment store, a JSON index and an optional Qdrant mirror

Package Structure:
    - apis/: Document sources (JSONL exports of fetched legislative replies)
    - database/: Commitment store, record codec, index builder and Qdrant mirror
    - processors/: Segmentation, identity, oracle, extraction, dedup and status tracking
    - ingestion/: Batch pipelines, checkpoint controller and progress tracking
    - cli/: The ``policytracker`` command-line interface
    - utils/: Shared utilities for configuration, logging and monitoring

Environment Requirements:
    - Python 3.10+
    - OPENAI_API_KEY (for extraction, screening, verification and embeddings)
    - Qdrant (optional, only for the vector mirror)

Python Learning Notes:
    - __version__: Special variable that defines the package version
    - Package initialization: This file makes the directory a Python package
    - Module imports: Submodules can be imported as policytracker.processors, etc.

Version History:
    - 0.1.0: Initial release
"""

__version__ = "0.1.0"
