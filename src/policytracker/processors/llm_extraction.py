"""
LLM-based commitment extraction from Executive Yuan replies.

This module turns the text of a reply (or one chunk of it) into candidate
policy commitments. The oracle is asked for a fixed JSON shape; the answer is
validated, normalized and turned into Commitment records with content-addressed
ids and an initial tracking entry.

The module focuses on:
    - A fixed extraction prompt describing what counts as a commitment
    - Head truncation of the input to a bounded number of characters
    - All-or-nothing handling: one malformed candidate rejects the document
    - Multi-chunk documents, where a failure on any chunk fails the document

Python Learning Notes:
    - Module-level constants keep long prompts out of function bodies
    - `raise NewError(...) from e` preserves the original cause
    - Dependency injection (passing the oracle in) keeps the class testable
"""

from datetime import date
from typing import List, Optional

from ..errors import ExtractionFailure, MalformedOracleResponse
from ..utils import get_logger
from .chunking import ChunkingConfig, segment
from .identity import commitment_id
from .oracle import Oracle
from .schema import (
    Commitment,
    CommitmentStatus,
    ExtractedCommitment,
    ExtractionResponse,
    RecordType,
    SourceRef,
    TrackingRecord,
    sanitize_short_name,
)

logger = get_logger(__name__)

EXTRACT_SYSTEM_PROMPT = """你是一個專門分析台灣政府政策文件的助理。你的任務是從行政院對立法院的答復文件中，識別並萃取具體的政策承諾。

政策承諾的定義：
- 政府明確表示將要達成的目標
- 有具體數字、時程或可衡量指標
- 承諾執行特定政策或措施

請以 JSON 格式輸出，包含以下欄位：
{
  "commitments": [
    {
      "title": "承諾標題（簡短描述，20字內）",
      "short_name": "檔名用（20字內，只能用中文、數字、連字號，例如：2025-再生能源20%）",
      "category": "分類（能源政策、環境保護、經濟發展、社會福利、教育、交通建設、醫療衛生、國防外交、其他）",
      "text": "承諾的原文摘錄（保持原文，最多200字）",
      "target_date": "目標日期（YYYY-MM-DD 格式，若只有年份則用 YYYY-12-31，若無則為 null）",
      "target_value": "目標數值（如「20%」、「5.6GW」等，若無則為 null）",
      "responsible_agency": "負責機關（若文中有提及，否則為 null）"
    }
  ]
}

注意事項：
1. 只萃取明確的承諾，不要包含模糊的願景陳述
2. 若文件中沒有找到任何承諾，回傳 {"commitments": []}
3. 每個承諾應該是獨立、具體的項目
4. short_name 用於檔名，必須簡潔且唯一"""

SOURCE_TYPE_LEGISLATIVE = "立法院答復"


def initial_note(source_ref: SourceRef) -> str:
    """Text of the initial tracking entry."""
    return f"從第{source_ref.term or '?'}屆第{source_ref.session_period or '?'}會期答復文件中萃取此承諾。"


def build_commitment(
    item: ExtractedCommitment, source_ref: SourceRef, today: date
) -> Commitment:
    """
    Turn one validated oracle candidate into a new Commitment.

    Args:
        item: Candidate returned by the extraction oracle.
        source_ref: Reference to the document the candidate came from.
        today: Creation date.

    Returns:
        Commitment: Status ``tracking`` with a single initial tracking entry.
    """
    commitment = Commitment(
        id=commitment_id(item.title, item.text),
        title=item.title,
        short_name=item.short_name or sanitize_short_name(item.title),
        category=item.category,
        text=item.text,
        target_date=item.target_date,
        target_value=item.target_value,
        responsible_agency=item.responsible_agency,
        status=CommitmentStatus.TRACKING,
        source=source_ref.model_copy(),
        created_at=today,
        last_updated=today,
    )
    commitment.record(
        TrackingRecord(
            date=today,
            record_type=RecordType.INITIAL,
            note=initial_note(source_ref),
        )
    )
    return commitment


class CommitmentExtractor:
    """
    Extracts candidate commitments with a language-model oracle.

    Attributes:
        oracle (Oracle): Structured-answer capability used for extraction.
        max_chars (int): Characters of input kept; the head is sent.

    Example:
        extractor = CommitmentExtractor(OpenAIOracle())
        candidates = extractor.extract(text, document.source_ref)
        print(f"Found {len(candidates)} commitments")
    """

    def __init__(self, oracle: Oracle, max_chars: int = 8000):
        self.oracle = oracle
        self.max_chars = max_chars

    def extract(
        self,
        document_text: str,
        source_ref: SourceRef,
        today: Optional[date] = None,
    ) -> List[Commitment]:
        """
        Extract commitments from one piece of text.

        Args:
            document_text: Subject and content of a document or chunk.
            source_ref: Reference copied onto every commitment.
            today: Creation date (defaults to date.today()).

        Returns:
            List[Commitment]: Possibly empty list of new commitments.

        Raises:
            ExtractionFailure: The answer was not JSON, lacked ``commitments``,
                or any candidate lacked a title or text.
            TransientIOFailure: The oracle could not be reached.
        """
        text = document_text[: self.max_chars]
        try:
            response = self.oracle.complete(EXTRACT_SYSTEM_PROMPT, text, ExtractionResponse)
        except MalformedOracleResponse as e:
            logger.warning("Rejecting extraction for %s: %s", source_ref.document_id, e)
            raise ExtractionFailure(str(e), e.raw) from e

        today = today or date.today()
        commitments = [
            build_commitment(item, source_ref, today) for item in response.commitments
        ]
        logger.debug(
            "Extracted %d commitments from %s", len(commitments), source_ref.document_id
        )
        return commitments

    def extract_document(
        self,
        document,
        chunking: Optional[ChunkingConfig] = None,
        today: Optional[date] = None,
    ) -> List[Commitment]:
        """
        Segment a Document and extract from every chunk.

        Either every chunk succeeds and all candidates are returned, or the
        first failure propagates and nothing from the document is kept. A
        rerun starts again from the first chunk.
        """
        cfg = chunking or ChunkingConfig()
        chunks = segment(
            document.subject,
            document.content,
            chunk_size=cfg.chunk_size,
            overlap=cfg.overlap,
            base_document_id=document.id,
        )
        candidates: List[Commitment] = []
        for chunk in chunks:
            candidates.extend(self.extract(chunk.text, document.source_ref, today))
        return candidates
