"""
Markdown codec for persisted commitment records.

Each commitment is stored as a Markdown file with YAML front matter, which the
static front-end reads directly. The front matter holds every field except the
tracking history; the body holds the source excerpt and the history entries::

    ---
    id: 5d41402a-bc4b-2a76-b971-9d911017c592
    title: 再生能源占比20%
    category: 能源政策
    status: 追蹤中
    ...
    ---

    ## 承諾原文

    政府承諾於2026年將再生能源占比提升至20%

    ## 追蹤紀錄

    ### 2025-01-15 [初始建立]
    從第11屆第2會期答復文件中萃取此承諾。

    ### 2025-06-01 [狀態變更]
    **狀態**：追蹤中 → 已達成
    **來源類型**：立法院答復
    ...

render() and parse() round-trip every Commitment field. Entry notes may span
several paragraphs; the labelled entry fields are single lines, which
TrackingRecord guarantees by collapsing their whitespace on construction.

Python Learning Notes:
    - yaml.safe_dump(allow_unicode=True) writes Chinese text unescaped
    - sort_keys=False keeps the field order readable for humans
    - Regular expressions with named structure make parsing line-oriented text easy
"""

import re
from datetime import date
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..errors import StorageInconsistency
from ..processors.schema import (
    Commitment,
    CommitmentStatus,
    RecordType,
    RelationType,
    TrackingRecord,
)

FRONT_MATTER_DELIMITER = "---"
EXCERPT_HEADING = "## 承諾原文"
HISTORY_HEADING = "## 追蹤紀錄"

_ENTRY_HEADER = re.compile(r"^### (\d{4}-\d{2}-\d{2}) \[(.+?)\]\s*$")
_FIELD_LINE = re.compile(r"^\*\*(.+?)\*\*[：:]\s*(.*)$")
_STATUS_ARROW = "→"

# Field label -> TrackingRecord attribute, in render order
_FIELD_LABELS = [
    ("狀態", "status"),
    ("原因", "reason"),
    ("來源類型", "source_type"),
    ("文件編號", "document_number"),
    ("來源連結", "source_url"),
    ("內容摘要", "summary"),
    ("AI 判斷", "relation_type"),
]


def _inline(value: str) -> str:
    return " ".join(str(value).split())


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def front_matter(commitment: Commitment) -> Dict[str, Any]:
    """Front-matter mapping for a commitment, in display order."""
    return {
        "id": commitment.id,
        "title": commitment.title,
        "short_name": commitment.short_name,
        "category": commitment.category.value,
        "status": commitment.status.label,
        "target_date": _iso(commitment.target_date),
        "target_value": commitment.target_value,
        "responsible_agency": commitment.responsible_agency,
        "source": {
            "document_id": commitment.source.document_id,
            "term": commitment.source.term,
            "session_period": commitment.source.session_period,
            "ey_number": commitment.source.ey_number,
            "url": commitment.source.url,
        },
        "created_at": _iso(commitment.created_at),
        "last_updated": _iso(commitment.last_updated),
    }


def render_entry(entry: TrackingRecord) -> str:
    """Render one tracking entry as a ``###`` block."""
    lines = [f"### {entry.date.isoformat()} [{entry.record_type.label}]"]
    if entry.note:
        lines.append(entry.note)
    for label, attribute in _FIELD_LABELS:
        if attribute == "status":
            if entry.new_status is None:
                continue
            old = entry.old_status.label if entry.old_status else ""
            value = f"{old} {_STATUS_ARROW} {entry.new_status.label}".strip()
        elif attribute == "relation_type":
            if entry.relation_type is None:
                continue
            value = entry.relation_type.label
        else:
            value = getattr(entry, attribute)
            if value is None:
                continue
        lines.append(f"**{label}**：{_inline(value)}")
    return "\n".join(lines)


def render(commitment: Commitment) -> str:
    """
    Serialize a commitment to its Markdown record.

    Args:
        commitment: The commitment to serialize.

    Returns:
        str: Full file content, ending with a newline.
    """
    header = yaml.safe_dump(
        front_matter(commitment),
        allow_unicode=True,
        sort_keys=False,
        default_flow_style=False,
    )
    parts = [
        f"{FRONT_MATTER_DELIMITER}\n{header}{FRONT_MATTER_DELIMITER}",
        EXCERPT_HEADING,
        commitment.text,
        HISTORY_HEADING,
    ]
    parts.extend(render_entry(entry) for entry in commitment.tracking_history)
    return "\n\n".join(parts) + "\n"


def rendered_size(commitment: Commitment) -> int:
    """Size in bytes of the rendered record."""
    return len(render(commitment).encode("utf-8"))


def split_front_matter(text: str) -> tuple:
    """Split a record into (front-matter mapping, body)."""
    if not text.startswith(FRONT_MATTER_DELIMITER + "\n"):
        raise StorageInconsistency("Record does not start with front matter")
    end = text.find(f"\n{FRONT_MATTER_DELIMITER}\n", len(FRONT_MATTER_DELIMITER))
    if end == -1:
        if text.rstrip().endswith(f"\n{FRONT_MATTER_DELIMITER}"):
            end = text.rstrip().rfind(f"\n{FRONT_MATTER_DELIMITER}")
        else:
            raise StorageInconsistency("Front matter is not terminated")
    raw = text[len(FRONT_MATTER_DELIMITER) + 1 : end]
    body = text[end + len(FRONT_MATTER_DELIMITER) + 2 :]
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise StorageInconsistency(f"Front matter is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise StorageInconsistency("Front matter is not a mapping")
    return data, body


def parse_entries(section: str) -> List[TrackingRecord]:
    """Parse the ``## 追蹤紀錄`` section into tracking entries."""
    entries: List[TrackingRecord] = []
    current: Optional[Dict[str, Any]] = None
    notes: List[str] = []

    def flush():
        if current is None:
            return
        note = "\n".join(notes).strip("\n")
        if note:
            current["note"] = note
        entries.append(TrackingRecord(**current))

    labels = dict(_FIELD_LABELS)
    for line in section.splitlines():
        header = _ENTRY_HEADER.match(line)
        if header:
            flush()
            current = {
                "date": header.group(1),
                "record_type": RecordType.from_label(header.group(2)),
            }
            notes = []
            continue
        if current is None:
            continue
        field = _FIELD_LINE.match(line)
        if field and field.group(1) in labels:
            attribute = labels[field.group(1)]
            value = field.group(2).strip()
            if attribute == "status":
                old, _, new = value.partition(_STATUS_ARROW)
                if old.strip():
                    current["old_status"] = CommitmentStatus.from_label(old.strip())
                current["new_status"] = CommitmentStatus.from_label(new.strip())
            elif attribute == "relation_type":
                current["relation_type"] = RelationType.from_label(value)
            else:
                current[attribute] = value
        else:
            notes.append(line.rstrip())
    flush()
    return entries


def parse(text: str) -> Commitment:
    """
    Parse a Markdown record back into a Commitment.

    Raises:
        StorageInconsistency: If the record is structurally unreadable.
    """
    data, body = split_front_matter(text)

    excerpt = ""
    history = ""
    if EXCERPT_HEADING in body:
        after_excerpt = body.split(EXCERPT_HEADING, 1)[1]
        excerpt, _, history = after_excerpt.partition(HISTORY_HEADING)
    elif HISTORY_HEADING in body:
        history = body.split(HISTORY_HEADING, 1)[1]

    try:
        status = data.get("status") or CommitmentStatus.TRACKING.label
        commitment = Commitment(
            id=data["id"],
            title=data["title"],
            short_name=data.get("short_name"),
            category=data.get("category"),
            text=excerpt.strip(),
            target_date=data.get("target_date"),
            target_value=data.get("target_value"),
            responsible_agency=data.get("responsible_agency"),
            status=CommitmentStatus.from_label(str(status)),
            source=data.get("source") or {},
            created_at=data["created_at"],
            last_updated=data.get("last_updated") or data["created_at"],
            tracking_history=parse_entries(history),
        )
    except (KeyError, ValueError, ValidationError) as e:
        raise StorageInconsistency(f"Record is missing or has invalid fields: {e}") from e
    return commitment
