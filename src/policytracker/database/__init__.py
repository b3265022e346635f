"""
Storage for canonical commitments.

Key Components:
    - markdown: Codec between Commitment objects and Markdown records with
      YAML front matter
    - CommitmentRepository / MarkdownCommitmentRepository: The store, one
      file per commitment under a directory per category
    - build_index / write_index: The JSON read-model for the front-end
    - qdrant: Optional vector mirror for free-text search (import it from
      policytracker.database.qdrant; qdrant-client is loaded only then)

Python Learning Notes:
    - The __all__ list controls what gets imported with "from package import *"
    - This file acts as the public interface for the database module
"""

from .index import build_index, write_index
from .repository import CommitmentRepository, MarkdownCommitmentRepository

__all__ = [
    "CommitmentRepository",
    "MarkdownCommitmentRepository",
    "build_index",
    "write_index",
]
