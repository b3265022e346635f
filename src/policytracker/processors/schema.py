"""
Pydantic schemas for policy commitments and oracle responses.

This module defines the commitment entity, its tracking history, and the JSON
shapes the language-model oracle must return for extraction, screening and
verification. Every oracle answer is validated against one of these models
before anything is written to the commitment store.

The schemas are designed to support:
    - A closed set of statuses with the Chinese labels used in stored records
    - An append-only tracking history from which the status can be replayed
    - Lenient normalization of model output (dates, short names, categories)
      with strict rejection of structurally broken answers

Python Learning Notes:
    - Pydantic validates data at runtime and provides type hints
    - field_validator(mode="before") cleans raw input before type checking
    - str-based Enums compare equal to their values and serialize cleanly
    - Field(...) allows adding descriptions and constraints
"""

import calendar
import re
from datetime import date
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CommitmentStatus(str, Enum):
    """
    Lifecycle states of a commitment.

    ``fulfilled`` is terminal: once reached, no automated transition may
    change it. ``delayed`` and ``stale`` only leave via fulfilment evidence.
    """

    TRACKING = "tracking"
    FULFILLED = "fulfilled"
    DELAYED = "delayed"
    STALE = "stale"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return self is CommitmentStatus.FULFILLED

    @classmethod
    def from_label(cls, value: str) -> "CommitmentStatus":
        """Parse either the stored Chinese label or the enum value."""
        for status, label in _STATUS_LABELS.items():
            if value == label:
                return status
        return cls(value)


_STATUS_LABELS = {
    CommitmentStatus.TRACKING: "追蹤中",
    CommitmentStatus.FULFILLED: "已達成",
    CommitmentStatus.DELAYED: "已延宕",
    CommitmentStatus.STALE: "無更新",
}


class RecordType(str, Enum):
    """Kinds of tracking-history entries."""

    INITIAL = "initial"
    PROGRESS_UPDATE = "progress_update"
    STATUS_CHANGE = "status_change"

    @property
    def label(self) -> str:
        return _RECORD_LABELS[self]

    @classmethod
    def from_label(cls, value: str) -> "RecordType":
        for record_type, label in _RECORD_LABELS.items():
            if value == label:
                return record_type
        return cls(value)


_RECORD_LABELS = {
    RecordType.INITIAL: "初始建立",
    RecordType.PROGRESS_UPDATE: "進度更新",
    RecordType.STATUS_CHANGE: "狀態變更",
}


class RelationType(str, Enum):
    """How a verified document relates to a commitment."""

    PROGRESS_UPDATE = "progress_update"
    FULFILLMENT_EVIDENCE = "fulfillment_evidence"
    RELATED_INFO = "related_info"

    @property
    def label(self) -> str:
        return _RELATION_LABELS[self]

    @classmethod
    def from_label(cls, value: str) -> "RelationType":
        for relation, label in _RELATION_LABELS.items():
            if value == label:
                return relation
        return cls(value)


_RELATION_LABELS = {
    RelationType.PROGRESS_UPDATE: "進度更新",
    RelationType.FULFILLMENT_EVIDENCE: "達成證據",
    RelationType.RELATED_INFO: "相關資訊",
}


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Category(str, Enum):
    """Closed set of policy areas; the values are the directory names."""

    ENERGY = "能源政策"
    ENVIRONMENT = "環境保護"
    ECONOMY = "經濟發展"
    SOCIAL_WELFARE = "社會福利"
    EDUCATION = "教育"
    TRANSPORT = "交通建設"
    HEALTH = "醫療衛生"
    DEFENSE_FOREIGN = "國防外交"
    OTHER = "其他"

    @classmethod
    def coerce(cls, value: Any) -> "Category":
        """Map any oracle output onto the closed set, defaulting to 其他."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        for category in cls:
            if text in (category.value, category.name, category.name.lower()):
                return category
        return cls.OTHER


def _none_if_blank(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in ("", "null", "none"):
        return None
    return value


def _to_text(value: Any) -> Any:
    value = _none_if_blank(value)
    if isinstance(value, (int, float)):
        return str(value)
    return value


class SourceRef(BaseModel):
    """Where a commitment (or a tracking entry) came from."""

    document_id: Optional[str] = None
    term: Optional[str] = None
    session_period: Optional[str] = None
    ey_number: Optional[str] = None
    url: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        return _to_text(value)


class TrackingRecord(BaseModel):
    """
    One entry in a commitment's append-only tracking history.

    Attributes:
        date: Day the entry was written.
        record_type: initial, progress_update or status_change.
        note: Free-text paragraph (used by the initial entry).
        source_type: Kind of source document (立法院答復 for Legislative replies).
        document_number: Executive Yuan document number of the source.
        source_url: Link to the source document.
        summary: Oracle-written summary of the evidence.
        relation_type: Oracle judgement of how the evidence relates.
        old_status / new_status: Present on status_change entries.
        reason: Why a date-driven transition fired.
    """

    date: date
    record_type: RecordType
    note: Optional[str] = None
    source_type: Optional[str] = None
    document_number: Optional[str] = None
    source_url: Optional[str] = None
    summary: Optional[str] = None
    relation_type: Optional[RelationType] = None
    old_status: Optional[CommitmentStatus] = None
    new_status: Optional[CommitmentStatus] = None
    reason: Optional[str] = None

    @field_validator("note", mode="before")
    @classmethod
    def _clean_note(cls, value: Any) -> Any:
        value = _to_text(value)
        if not isinstance(value, str):
            return value
        return "\n".join(line.rstrip() for line in value.strip("\n").splitlines())

    # These are written as one "**label**：value" line each
    @field_validator(
        "source_type", "document_number", "source_url", "summary", "reason",
        mode="before",
    )
    @classmethod
    def _clean_text(cls, value: Any) -> Any:
        value = _to_text(value)
        return " ".join(value.split()) if isinstance(value, str) else value


class Commitment(BaseModel):
    """
    A discrete, trackable policy commitment.

    ``status`` and ``last_updated`` are a materialized view of
    ``tracking_history``; ``record()`` is the only way to change them so the
    two never drift apart.
    """

    id: str
    title: str
    short_name: Optional[str] = None
    category: Category = Category.OTHER
    text: str
    target_date: Optional[date] = None
    target_value: Optional[str] = None
    responsible_agency: Optional[str] = None
    status: CommitmentStatus = CommitmentStatus.TRACKING
    source: SourceRef = Field(default_factory=SourceRef)
    created_at: date
    last_updated: date
    tracking_history: List[TrackingRecord] = Field(default_factory=list)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Category:
        return Category.coerce(value)

    @field_validator("target_value", "responsible_agency", "short_name", mode="before")
    @classmethod
    def _clean_text(cls, value: Any) -> Any:
        return _to_text(value)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def record(self, entry: TrackingRecord) -> TrackingRecord:
        """
        Append a tracking entry and refresh the materialized fields.

        Args:
            entry: The history entry to append.

        Returns:
            TrackingRecord: The appended entry.
        """
        self.tracking_history.append(entry)
        if entry.new_status is not None:
            self.status = entry.new_status
        self.last_updated = entry.date
        return entry

    def replay_status(self) -> CommitmentStatus:
        """Fold the tracking history into the status it implies."""
        status = CommitmentStatus.TRACKING
        for entry in self.tracking_history:
            if entry.new_status is not None:
                status = entry.new_status
        return status


# ---------------------------------------------------------------------------
# Oracle response shapes
# ---------------------------------------------------------------------------

_UNSAFE_FILENAME_CHARS = re.compile(r"[\\/:*?\"<>|\s]+")
SHORT_NAME_MAX = 20
EXCERPT_MAX = 200


def sanitize_short_name(value: Optional[str]) -> Optional[str]:
    """Make a short name safe to use as a file name (at most 20 characters)."""
    if not value:
        return None
    cleaned = _UNSAFE_FILENAME_CHARS.sub("-", value)
    cleaned = re.sub(r"-{2,}", "-", cleaned).strip("-.")
    cleaned = cleaned[:SHORT_NAME_MAX].strip("-.")
    return cleaned or None


def normalize_target_date(value: Any) -> Optional[date]:
    """
    Normalize an oracle-supplied target date.

    ``YYYY`` becomes the last day of that year and ``YYYY-MM`` the last day of
    that month. Anything unparseable becomes None rather than failing the
    whole extraction.
    """
    value = _none_if_blank(value)
    if value is None:
        return None
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if re.fullmatch(r"\d{4}", text):
        return date(int(text), 12, 31)
    month_match = re.fullmatch(r"(\d{4})-(\d{1,2})", text)
    if month_match:
        year, month = int(month_match.group(1)), int(month_match.group(2))
        if 1 <= month <= 12:
            return date(year, month, calendar.monthrange(year, month)[1])
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


class ExtractedCommitment(BaseModel):
    """One candidate commitment as returned by the extraction oracle."""

    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1)
    short_name: Optional[str] = None
    category: Category = Category.OTHER
    text: str = Field(min_length=1)
    target_date: Optional[date] = None
    target_value: Optional[str] = None
    responsible_agency: Optional[str] = None

    @field_validator("title", "text", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("text")
    @classmethod
    def _truncate_text(cls, value: str) -> str:
        return value[:EXCERPT_MAX]

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Category:
        return Category.coerce(value)

    @field_validator("target_date", mode="before")
    @classmethod
    def _normalize_date(cls, value: Any) -> Optional[date]:
        return normalize_target_date(value)

    @field_validator("target_value", "responsible_agency", "short_name", mode="before")
    @classmethod
    def _clean_text(cls, value: Any) -> Any:
        return _to_text(value)

    @field_validator("short_name")
    @classmethod
    def _sanitize_short_name(cls, value: Optional[str]) -> Optional[str]:
        return sanitize_short_name(value)


class ExtractionResponse(BaseModel):
    """``{"commitments": [...]}``; an empty list is a valid answer."""

    commitments: List[ExtractedCommitment]


class ScreenResponse(BaseModel):
    """``{"related_ids": [...]}`` from the recall-oriented screening pass."""

    related_ids: List[str]

    @field_validator("related_ids", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item).strip() for item in value if item is not None]
        return value


class VerifyResponse(BaseModel):
    """The precise per-commitment judgement from the verification pass."""

    model_config = ConfigDict(extra="ignore")

    is_related: bool
    relation_type: Optional[RelationType] = None
    summary: Optional[str] = None
    is_fulfilled: bool = False
    confidence: Optional[Confidence] = None

    @field_validator("relation_type", mode="before")
    @classmethod
    def _parse_relation(cls, value: Any) -> Any:
        value = _none_if_blank(value)
        if isinstance(value, str):
            return RelationType.from_label(value.strip())
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _parse_confidence(cls, value: Any) -> Any:
        value = _none_if_blank(value)
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("summary", mode="before")
    @classmethod
    def _clean_summary(cls, value: Any) -> Any:
        return _to_text(value)
