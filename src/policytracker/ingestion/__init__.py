"""
Batch pipelines for PolicyTracker.

This module provides the batch runs over legislative reply exports:
- Commitment extraction with dedup
- Status updates (screen, verify, apply) followed by the date sweep
- The historical status backfill
- Checkpoints and SQLite progress tracking so runs can resume

Classes:
    DocumentPipeline: Abstract base class for all pipelines
    ExtractionPipeline: Extraction and dedup pipeline
    StatusUpdatePipeline: Status tracking pipeline
    Checkpoint: Newline-delimited record of screened documents
    ProgressTracker: SQLite-based progress tracking
"""

from .base import DocumentPipeline
from .checkpoint import Checkpoint
from .extraction import ExtractionPipeline
from .progress import ProgressTracker
from .status import BackfillReport, StatusUpdatePipeline, run_backfill

__all__ = [
    "DocumentPipeline",
    "ExtractionPipeline",
    "StatusUpdatePipeline",
    "BackfillReport",
    "run_backfill",
    "Checkpoint",
    "ProgressTracker",
]
