"""
Index read-model for the static front-end.

The index is derived from the commitment store alone and can be regenerated
at any time. Its shape::

    {
      "generated_at": "2025-06-01T08:00:00Z",
      "total_count": 42,
      "status_summary": {"追蹤中": 30, "已達成": 5, "已延宕": 4, "無更新": 3},
      "categories": [
        {"name": "能源政策", "count": 7,
         "commitments": [{"id": ..., "title": ..., "file": "能源政策/....md",
                          "status": "追蹤中", "target_date": "2026-12-31",
                          "target_value": "20%", "last_updated": "2025-06-01"}]}
      ]
    }

Python Learning Notes:
    - collections.defaultdict(list) groups items without key checks
    - json.dump(ensure_ascii=False) writes Chinese characters as-is
"""

import json
import logging
import os
import tempfile
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..processors.schema import CommitmentStatus
from .repository import CommitmentRepository

logger = logging.getLogger(__name__)


def build_index(
    repository: CommitmentRepository, generated_at: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Build the index document from the store.

    Args:
        repository: Store to read.
        generated_at: Timestamp to embed (defaults to now, UTC).

    Returns:
        Dict[str, Any]: The index, with categories sorted by name and
            commitments sorted by title within each category.
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    commitments = repository.list()

    summary = {status.label: 0 for status in CommitmentStatus}
    grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)

    for commitment in commitments:
        summary[commitment.status.label] += 1
        grouped[commitment.category.value].append(
            {
                "id": commitment.id,
                "title": commitment.title,
                "file": repository.locator(commitment.id),
                "status": commitment.status.label,
                "target_date": (
                    commitment.target_date.isoformat() if commitment.target_date else None
                ),
                "target_value": commitment.target_value,
                "last_updated": commitment.last_updated.isoformat(),
            }
        )

    categories = [
        {
            "name": name,
            "count": len(entries),
            "commitments": sorted(entries, key=lambda e: (e["title"], e["id"])),
        }
        for name, entries in sorted(grouped.items())
    ]

    return {
        "generated_at": generated_at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "total_count": len(commitments),
        "status_summary": summary,
        "categories": categories,
    }


def write_index(
    repository: CommitmentRepository,
    path: Union[str, Path],
    generated_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Build the index and write it atomically to ``path``."""
    index = build_index(repository, generated_at)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=".index.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(index, f, ensure_ascii=False, indent=2)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info("Wrote index with %d commitments to %s", index["total_count"], path)
    return index
