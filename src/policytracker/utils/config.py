"""Configuration management for PolicyTracker.

This module provides access to API credentials and tracker settings through
environment variables. It is the central configuration hub for the pipelines,
the oracle and the storage layout.

Environment Variable Setup:
    Create a .env file in the project root with these variables:
    ```
    OPENAI_API_KEY=your_openai_api_key_here
    OPENAI_BASE_URL=optional_proxy_or_gateway_url
    POLICYTRACKER_COMMITMENTS_DIR=./docs/commitments
    POLICYTRACKER_MODEL=gpt-4o-mini
    QDRANT_URL=optional_remote_qdrant
    ```

Environment Variables:
    POLICYTRACKER_COMMITMENTS_DIR: Root of the Markdown commitment store
    POLICYTRACKER_INDEX_PATH: Where index.json is written
    POLICYTRACKER_CHECKPOINT: Status backfill checkpoint file
    POLICYTRACKER_PROGRESS_DB: SQLite database for extraction progress
    POLICYTRACKER_MODEL: Chat model used for extract, screen and verify
    POLICYTRACKER_ORACLE_TIMEOUT: Seconds before an oracle call is abandoned
    POLICYTRACKER_MAX_RETRIES: Oracle attempts before giving up
    POLICYTRACKER_BACKOFF_BASE: First backoff delay in seconds (doubles per retry)
    POLICYTRACKER_EXTRACT_MAX_CHARS: Characters of a document sent for extraction
    POLICYTRACKER_STATUS_MAX_CHARS: Characters of a document sent for screen/verify
    POLICYTRACKER_STALE_MONTHS: Months without updates before a commitment is stale
    QDRANT_URL / QDRANT_API_KEY / QDRANT_DB_PATH: Vector mirror connection

Python Learning Notes:
    - os.getenv() safely reads environment variables without raising errors
    - dataclass field(default_factory=...) reads the environment at construction
      time, so tests can monkeypatch variables before building a config
    - ValueError is raised for missing required credentials to fail fast
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..errors import ConfigurationError


def get_openai_api_key() -> str:
    """Get OpenAI API key from environment variables.

    The key authenticates every chat completion (extraction, screening,
    verification) and every embedding request.

    Returns:
        str: The OpenAI API key.

    Raises:
        ValueError: If OPENAI_API_KEY is not set or is empty.

    Example Usage:
        ```python
        from openai import OpenAI
        from policytracker.utils.config import get_openai_api_key

        client = OpenAI(api_key=get_openai_api_key())
        ```
    """
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ValueError("OPENAI_API_KEY environment variable is required")
    return api_key


def get_openai_base_url() -> Optional[str]:
    """Get an optional OpenAI-compatible base URL (proxy or gateway)."""
    return os.getenv("OPENAI_BASE_URL") or None


def _env_int(name: str, default: str) -> int:
    value = os.getenv(name, default)
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _env_float(name: str, default: str) -> float:
    value = os.getenv(name, default)
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


@dataclass
class TrackerConfig:
    """
    Configuration settings for the PolicyTracker pipelines.

    Every attribute has a default read from the environment, and any of them
    can be overridden through constructor arguments.

    Attributes:
        commitments_dir: Root directory of the Markdown commitment store.
        index_path: Path of the generated index.json.
        checkpoint_path: Newline-delimited file of documents already screened.
        progress_db: SQLite database used by the extraction pipeline.
        model: Chat model used for extract, screen and verify calls.
        oracle_timeout: Seconds before an oracle call counts as a transient failure.
        max_retries: Oracle attempts before a TransientIOFailure is raised.
        backoff_base: First retry delay in seconds; doubles on every retry.
        extract_max_chars: Head of the document kept for extraction.
        status_max_chars: Head of the document content kept for screen/verify.
        stale_months: Months without an update before a commitment goes stale.
        chunk_size: Segmenter window size in characters.
        chunk_overlap: Segmenter overlap in characters.
        qdrant_url: Remote Qdrant URL; when unset the local path is used.
        qdrant_api_key: API key for remote Qdrant.
        qdrant_db_path: Local Qdrant storage directory.
        collection_name: Qdrant collection holding commitment vectors.

    Example:
        >>> config = TrackerConfig(commitments_dir=Path("/tmp/commitments"))
        >>> config.validate()
    """

    commitments_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("POLICYTRACKER_COMMITMENTS_DIR", "./docs/commitments")
        )
    )
    index_path: Optional[Path] = field(
        default_factory=lambda: (
            Path(os.getenv("POLICYTRACKER_INDEX_PATH"))
            if os.getenv("POLICYTRACKER_INDEX_PATH")
            else None
        )
    )
    checkpoint_path: Path = field(
        default_factory=lambda: Path(
            os.getenv(
                "POLICYTRACKER_CHECKPOINT",
                "./data/commitments/backfill_checkpoint.txt",
            )
        )
    )
    progress_db: Path = field(
        default_factory=lambda: Path(
            os.getenv("POLICYTRACKER_PROGRESS_DB", "./data/progress/extraction.db")
        )
    )

    # Oracle settings
    model: str = field(
        default_factory=lambda: os.getenv("POLICYTRACKER_MODEL", "gpt-4o-mini")
    )
    oracle_timeout: float = field(
        default_factory=lambda: _env_float("POLICYTRACKER_ORACLE_TIMEOUT", "60")
    )
    max_retries: int = field(
        default_factory=lambda: _env_int("POLICYTRACKER_MAX_RETRIES", "3")
    )
    backoff_base: float = field(
        default_factory=lambda: _env_float("POLICYTRACKER_BACKOFF_BASE", "2.0")
    )

    # Document limits
    extract_max_chars: int = field(
        default_factory=lambda: _env_int("POLICYTRACKER_EXTRACT_MAX_CHARS", "8000")
    )
    status_max_chars: int = field(
        default_factory=lambda: _env_int("POLICYTRACKER_STATUS_MAX_CHARS", "4000")
    )
    stale_months: int = field(
        default_factory=lambda: _env_int("POLICYTRACKER_STALE_MONTHS", "6")
    )

    # Segmenter
    chunk_size: int = field(
        default_factory=lambda: _env_int("POLICYTRACKER_CHUNK_SIZE", "4000")
    )
    chunk_overlap: int = field(
        default_factory=lambda: _env_int("POLICYTRACKER_CHUNK_OVERLAP", "500")
    )

    # Qdrant connection settings
    qdrant_url: Optional[str] = field(default_factory=lambda: os.getenv("QDRANT_URL"))
    qdrant_api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("QDRANT_API_KEY")
    )
    qdrant_db_path: str = field(
        default_factory=lambda: os.getenv("QDRANT_DB_PATH", "./data/qdrant/qdrant_db")
    )
    collection_name: str = "policy_commitments"

    def __post_init__(self):
        self.commitments_dir = Path(self.commitments_dir)
        if self.index_path is None:
            self.index_path = self.commitments_dir / "index.json"
        self.index_path = Path(self.index_path)
        self.checkpoint_path = Path(self.checkpoint_path)
        self.progress_db = Path(self.progress_db)

    def validate(self) -> None:
        """
        Check the settings for values that would make a run misbehave.

        Raises:
            ConfigurationError: If any setting is out of range.
        """
        if self.max_retries < 1:
            raise ConfigurationError("max_retries must be at least 1")
        if self.oracle_timeout <= 0:
            raise ConfigurationError("oracle_timeout must be positive")
        if self.backoff_base < 0:
            raise ConfigurationError("backoff_base cannot be negative")
        if self.extract_max_chars <= 0 or self.status_max_chars <= 0:
            raise ConfigurationError("character limits must be positive")
        if self.stale_months < 1:
            raise ConfigurationError("stale_months must be at least 1")
        if self.chunk_size <= 0:
            raise ConfigurationError("chunk_size must be positive")
        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise ConfigurationError(
                "chunk_overlap must be non-negative and smaller than chunk_size"
            )
