"""
Commitment status tracking: the screen/verify state machine and date sweeps.

For every newly ingested reply the tracker asks the oracle two questions:

    1. Screen: given the reply and the titles of every open commitment, which
       commitment ids might this reply be about? This is a cheap,
       recall-oriented filter over potentially thousands of commitments.
    2. Verify: for each screened id, given the reply and that commitment's
       full record, is it related, how, and is the commitment fulfilled?

Only ``is_related = true`` answers change anything. Fulfilment moves the
commitment to ``fulfilled`` (terminal) with a status_change entry; anything
else appends a progress_update entry and refreshes ``last_updated`` while
leaving the status alone. In particular a progress update does not clear
``delayed`` or ``stale``; only fulfilment evidence ends those states.

Independently, sweep_dates() applies the date-driven rules: a missed
target date makes a commitment ``delayed``; six months without updates make it
``stale``. Fulfilled commitments are never touched.

Python Learning Notes:
    - dateutil.relativedelta does calendar-aware month arithmetic
    - dataclasses make small result records self-documenting
    - Catching specific exceptions per candidate keeps one bad answer from
      aborting the rest of the document
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from ..database import markdown
from ..database.repository import CommitmentRepository
from ..errors import MalformedOracleResponse, StorageInconsistency
from ..utils import get_logger
from .llm_extraction import SOURCE_TYPE_LEGISLATIVE
from .oracle import Oracle
from .schema import (
    Commitment,
    CommitmentStatus,
    RecordType,
    ScreenResponse,
    SourceRef,
    TrackingRecord,
    VerifyResponse,
)

logger = get_logger(__name__)

SCREENING_SYSTEM_PROMPT = """你是一個政策分析助理。給定一份新的政府文件和一份承諾清單，請判斷這份文件可能與哪些承諾相關。

回傳 JSON 格式：
{
  "related_ids": ["id1", "id2", ...]
}

如果都不相關，回傳：
{
  "related_ids": []
}

只回傳可能相關的承諾 ID，不要過度匹配。"""

VERIFY_SYSTEM_PROMPT = """你是一個政策分析助理。請判斷這份新文件是否與指定的承諾相關。

如果相關，請分析：
1. 這是進度更新、達成證據、還是其他相關資訊？
2. 如果是達成證據，承諾是否已完全達成？

回傳 JSON 格式：
{
  "is_related": true/false,
  "relation_type": "進度更新" | "達成證據" | "相關資訊" | null,
  "summary": "簡短摘要（50字內）",
  "is_fulfilled": true/false,
  "confidence": "high" | "medium" | "low"
}

如果不相關：
{
  "is_related": false,
  "relation_type": null,
  "summary": null,
  "is_fulfilled": false,
  "confidence": null
}"""


@dataclass
class Transition:
    """One date-driven status change."""

    commitment_id: str
    title: str
    old_status: CommitmentStatus
    new_status: CommitmentStatus
    reason: str


@dataclass
class DocumentOutcome:
    """
    What processing one document did.

    Attributes:
        document_id: The document that was processed.
        screened: Candidate ids returned by the screening pass.
        updated: Ids that received a tracking entry.
        fulfilled: Ids that became fulfilled.
        skipped: Candidates skipped (missing record, malformed verify answer).
    """

    document_id: str
    screened: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    fulfilled: List[str] = field(default_factory=list)
    skipped: int = 0


class StatusTracker:
    """
    Applies oracle judgements and date rules to stored commitments.

    Attributes:
        oracle (Optional[Oracle]): Structured-answer capability for screen and
            verify. May be None when only sweep_dates() is used.
        repository (CommitmentRepository): The commitment store.
        status_max_chars (int): Head of a document's content sent to the oracle.
        stale_months (int): Months without updates before a commitment is stale.

    Example:
        tracker = StatusTracker(OpenAIOracle(), repo)
        outcome = tracker.process_document(document)
        transitions = tracker.sweep_dates(date.today())
    """

    def __init__(
        self,
        oracle: Optional[Oracle],
        repository: CommitmentRepository,
        status_max_chars: int = 4000,
        stale_months: int = 6,
    ):
        self.oracle = oracle
        self.repository = repository
        self.status_max_chars = status_max_chars
        self.stale_months = stale_months

    # -- screen / verify ------------------------------------------------------

    def screen(self, document_text: str, commitments: Sequence[Commitment]) -> List[str]:
        """
        Ask which open commitments a document may relate to.

        Only titles of non-fulfilled commitments are sent. Ids the oracle
        invents are dropped; order is preserved and duplicates removed.

        Raises:
            MalformedOracleResponse: ``related_ids`` missing or not a list.
            TransientIOFailure: The oracle could not be reached.
        """
        open_commitments = [c for c in commitments if not c.is_terminal]
        if not open_commitments:
            return []

        listing = "\n".join(f"- [{c.id}] {c.title}" for c in open_commitments)
        user_text = f"## 新文件內容\n{document_text}\n\n## 承諾清單\n{listing}"
        response = self.oracle.complete(SCREENING_SYSTEM_PROMPT, user_text, ScreenResponse)

        known = {c.id for c in open_commitments}
        related: List[str] = []
        for commitment_id in response.related_ids:
            if commitment_id not in known:
                logger.debug("Ignoring unknown commitment id from screen: %s", commitment_id)
                continue
            if commitment_id not in related:
                related.append(commitment_id)
        return related

    def verify(self, document_text: str, commitment: Commitment) -> VerifyResponse:
        """Ask for a precise judgement against one commitment's full record."""
        user_text = (
            f"## 新文件內容\n{document_text}\n\n"
            f"## 承諾內容\n{markdown.render(commitment)}"
        )
        return self.oracle.complete(VERIFY_SYSTEM_PROMPT, user_text, VerifyResponse)

    def apply(
        self,
        commitment: Commitment,
        result: VerifyResponse,
        source_ref: SourceRef,
        today: date,
    ) -> Optional[TrackingRecord]:
        """
        Apply a verification result to a commitment in memory.

        Returns:
            Optional[TrackingRecord]: The appended entry, or None when the
                result is unrelated or the commitment is already fulfilled.
        """
        if not result.is_related or commitment.is_terminal:
            return None

        evidence = dict(
            date=today,
            source_type=SOURCE_TYPE_LEGISLATIVE,
            document_number=source_ref.ey_number,
            source_url=source_ref.url,
            summary=result.summary,
            relation_type=result.relation_type,
        )
        if result.is_fulfilled:
            entry = TrackingRecord(
                record_type=RecordType.STATUS_CHANGE,
                old_status=commitment.status,
                new_status=CommitmentStatus.FULFILLED,
                **evidence,
            )
        else:
            entry = TrackingRecord(record_type=RecordType.PROGRESS_UPDATE, **evidence)
        return commitment.record(entry)

    @staticmethod
    def _already_recorded(commitment: Commitment, source_ref: SourceRef) -> bool:
        if not source_ref.ey_number and not source_ref.url:
            return False
        return any(
            entry.record_type is not RecordType.INITIAL
            and entry.document_number == source_ref.ey_number
            and entry.source_url == source_ref.url
            for entry in commitment.tracking_history
        )

    def process_document(
        self,
        document,
        commitments: Optional[Sequence[Commitment]] = None,
        today: Optional[date] = None,
    ) -> DocumentOutcome:
        """
        Screen, verify and apply for one document.

        Commitments extracted from this very document are not offered to the
        screen. Each mutation is written back with a single atomic put. A
        rerun after a crash does not add a second entry for the same source.

        Raises:
            MalformedOracleResponse: The screening answer was malformed; the
                document is rejected as a whole.
            TransientIOFailure: An oracle call failed after retries; nothing
                further is attempted for this document.
        """
        today = today or date.today()
        if commitments is None:
            commitments = self.repository.list()
        commitments = [c for c in commitments if c.source.document_id != document.id]

        outcome = DocumentOutcome(document_id=document.id)
        text = document.status_text(self.status_max_chars)
        source_ref = document.source_ref

        outcome.screened = self.screen(text, commitments)
        if outcome.screened:
            logger.info(
                "Document %s screened %d candidate(s)", document.id, len(outcome.screened)
            )

        for commitment_id in outcome.screened:
            try:
                commitment = self.repository.get(commitment_id)
                if commitment is None:
                    raise StorageInconsistency(f"Commitment {commitment_id} is not stored")
            except StorageInconsistency as e:
                logger.warning("Skipping candidate %s: %s", commitment_id, e)
                outcome.skipped += 1
                continue

            if commitment.is_terminal or self._already_recorded(commitment, source_ref):
                continue

            try:
                result = self.verify(text, commitment)
            except MalformedOracleResponse as e:
                logger.warning("Rejecting verification of %s: %s", commitment_id, e)
                outcome.skipped += 1
                continue

            entry = self.apply(commitment, result, source_ref, today)
            if entry is None:
                continue
            self.repository.put(commitment)
            outcome.updated.append(commitment_id)
            if commitment.status is CommitmentStatus.FULFILLED:
                outcome.fulfilled.append(commitment_id)
                logger.info("Commitment %s (%s) fulfilled", commitment_id, commitment.title)

        return outcome

    # -- date sweep ------------------------------------------------------------

    def evaluate_dates(self, commitment: Commitment, today: date) -> Optional[Transition]:
        """The date-driven transition due for a commitment, if any."""
        if commitment.is_terminal:
            return None

        if commitment.target_date and commitment.target_date < today:
            if commitment.status is CommitmentStatus.DELAYED:
                return None
            new_status = CommitmentStatus.DELAYED
            reason = f"目標日期 {commitment.target_date.isoformat()} 已過"
        elif commitment.last_updated < today - relativedelta(months=self.stale_months):
            if commitment.status is CommitmentStatus.STALE:
                return None
            new_status = CommitmentStatus.STALE
            reason = (
                f"超過 {self.stale_months} 個月無更新"
                f"（最後更新: {commitment.last_updated.isoformat()}）"
            )
        else:
            return None

        return Transition(
            commitment_id=commitment.id,
            title=commitment.title,
            old_status=commitment.status,
            new_status=new_status,
            reason=reason,
        )

    def sweep_dates(self, today: Optional[date] = None, dry_run: bool = False) -> List[Transition]:
        """
        Apply date-driven transitions to every open commitment.

        Args:
            today: Reference date (defaults to date.today()).
            dry_run: Report transitions without writing them.

        Returns:
            List[Transition]: The transitions applied (or that would be).
        """
        today = today or date.today()
        transitions: List[Transition] = []
        for commitment in self.repository.list(lambda c: not c.is_terminal):
            transition = self.evaluate_dates(commitment, today)
            if transition is None:
                continue
            transitions.append(transition)
            logger.info(
                "%s: %s -> %s (%s)",
                commitment.title,
                transition.old_status.label,
                transition.new_status.label,
                transition.reason,
            )
            if dry_run:
                continue
            commitment.record(
                TrackingRecord(
                    date=today,
                    record_type=RecordType.STATUS_CHANGE,
                    old_status=transition.old_status,
                    new_status=transition.new_status,
                    reason=transition.reason,
                )
            )
            self.repository.put(commitment)
        return transitions
