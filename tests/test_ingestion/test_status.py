"""
Tests for the status update pipeline and the historical backfill.

These cover the checkpoint rules: finished and definitively rejected
documents are checkpointed, transient failures are not.
"""

import json
from datetime import date

import pytest

from policytracker.errors import StoreUnavailable, TransientIOFailure
from policytracker.ingestion.checkpoint import Checkpoint
from policytracker.ingestion.status import StatusUpdatePipeline, run_backfill
from policytracker.processors.schema import CommitmentStatus, ScreenResponse
from policytracker.processors.status_tracker import StatusTracker

FULFILLED = {
    "is_related": True,
    "relation_type": "達成證據",
    "summary": "再生能源占比已達20%",
    "is_fulfilled": True,
    "confidence": "high",
}


@pytest.fixture
def stored(repo, make_commitment):
    commitment = make_commitment(created=date(2025, 1, 15))
    repo.put(commitment)
    return commitment


@pytest.fixture
def checkpoint(tmp_path):
    return Checkpoint(tmp_path / "checkpoint.txt")


def fulfil(commitment_id):
    def answer(system_prompt, user_text, schema):
        if schema is ScreenResponse:
            return {"related_ids": [commitment_id]}
        return FULFILLED

    return answer


def export(path, documents):
    with open(path, "w", encoding="utf-8") as f:
        for d in documents:
            record = {
                "id": d.id,
                "term": d.term,
                "session_period": d.session_period,
                "meeting_index": d.meeting_index,
                "ey_number": d.ey_number,
                "ly_number": d.ly_number,
                "subject": d.subject,
                "content": d.content,
                "source_url": d.source_url,
            }
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
    return path


class TestStatusUpdatePipeline:
    def test_update_then_sweep(self, scripted_oracle, repo, stored, make_document, checkpoint, tmp_path):
        tracker = StatusTracker(scripted_oracle(fulfil(stored.id)), repo)
        document = make_document(ey_number="1150000002")
        index_path = tmp_path / "index.json"

        pipeline = StatusUpdatePipeline(
            tracker, checkpoint=checkpoint, index_path=index_path, today=date(2026, 12, 1)
        )
        stats = pipeline.run([document])

        assert stats["items_updated"] == 1
        assert repo.get(stored.id).status is CommitmentStatus.FULFILLED
        assert checkpoint.is_done(document.id)
        assert pipeline.transitions == []
        index = json.loads(index_path.read_text(encoding="utf-8"))
        assert index["status_summary"]["已達成"] == 1

    def test_checkpointed_documents_are_skipped(
        self, scripted_oracle, repo, stored, make_document, checkpoint
    ):
        document = make_document(ey_number="1150000002")
        checkpoint.mark_done(document.id)
        oracle = scripted_oracle([])

        stats = StatusUpdatePipeline(
            StatusTracker(oracle, repo), checkpoint=checkpoint, sweep=False
        ).run([document])

        assert oracle.calls == []
        assert stats["documents_skipped"] == 1

    def test_malformed_screen_is_checkpointed(
        self, scripted_oracle, repo, stored, make_document, checkpoint
    ):
        document = make_document(ey_number="1150000002")
        oracle = scripted_oracle(["not json"])

        stats = StatusUpdatePipeline(
            StatusTracker(oracle, repo), checkpoint=checkpoint, sweep=False
        ).run([document])

        assert stats["documents_failed"] == 1
        assert checkpoint.is_done(document.id)

    def test_transient_failure_is_not_checkpointed(
        self, scripted_oracle, repo, stored, make_document, checkpoint
    ):
        first = make_document(ey_number="1150000002")
        second = make_document(ey_number="1150000003")
        oracle = scripted_oracle([TransientIOFailure("timeout"), {"related_ids": []}])

        stats = StatusUpdatePipeline(
            StatusTracker(oracle, repo), checkpoint=checkpoint, sweep=False
        ).run([first, second])

        assert stats["documents_failed"] == 1
        assert stats["documents_processed"] == 1
        assert not checkpoint.is_done(first.id)
        assert checkpoint.is_done(second.id)

    def test_store_unavailable_aborts(self, scripted_oracle, tmp_path, make_document):
        from policytracker.database.repository import MarkdownCommitmentRepository

        root = tmp_path / "commitments"
        root.write_text("not a directory", encoding="utf-8")
        tracker = StatusTracker(scripted_oracle([]), MarkdownCommitmentRepository(root))

        with pytest.raises(StoreUnavailable):
            StatusUpdatePipeline(tracker, sweep=False).run([make_document()])

    def test_sweep_runs_after_documents(self, scripted_oracle, repo, make_commitment):
        delayed = make_commitment(target_date="2024-01-01", created=date(2023, 12, 1))
        repo.put(delayed)

        pipeline = StatusUpdatePipeline(
            StatusTracker(scripted_oracle([]), repo), today=date(2025, 1, 1)
        )
        stats = pipeline.run([])

        assert [t.commitment_id for t in pipeline.transitions] == [delayed.id]
        assert stats["items_updated"] == 1
        assert repo.get(delayed.id).status is CommitmentStatus.DELAYED

    def test_dry_run(self, scripted_oracle, repo, make_commitment, make_document, checkpoint):
        delayed = make_commitment(target_date="2024-01-01", created=date(2023, 12, 1))
        repo.put(delayed)
        oracle = scripted_oracle([])

        pipeline = StatusUpdatePipeline(
            StatusTracker(oracle, repo),
            checkpoint=checkpoint,
            dry_run=True,
            today=date(2025, 1, 1),
        )
        pipeline.run([make_document(ey_number="1150000002")])

        assert oracle.calls == []
        assert len(pipeline.transitions) == 1
        assert repo.get(delayed.id).status is CommitmentStatus.TRACKING
        assert len(checkpoint) == 0


class TestRunBackfill:
    def test_excludes_commitment_sources(
        self, scripted_oracle, repo, make_commitment, make_document, checkpoint, tmp_path
    ):
        source = make_document(ey_number="1130000001")
        later = make_document(ey_number="1150000002", session_period="4")
        commitment = make_commitment(document_id=source.id)
        repo.put(commitment)
        path = export(tmp_path / "history.jsonl", [source, later])
        oracle = scripted_oracle(fulfil(commitment.id))

        report = run_backfill(
            StatusTracker(oracle, repo), [path], checkpoint, today=date(2026, 12, 1)
        )

        assert report.excluded == 1
        assert report.statistics["documents_processed"] == 1
        assert report.statistics["documents_skipped"] == 1
        assert repo.get(commitment.id).status is CommitmentStatus.FULFILLED
        assert checkpoint.is_done(later.id)
        assert not checkpoint.is_done(source.id)

    def test_resumes_from_checkpoint(
        self, scripted_oracle, repo, stored, make_document, checkpoint, tmp_path
    ):
        done = make_document(ey_number="1150000002")
        pending = make_document(ey_number="1150000003")
        checkpoint.mark_done(done.id)
        path = export(tmp_path / "history.jsonl", [done, pending])
        oracle = scripted_oracle([{"related_ids": []}])

        report = run_backfill(StatusTracker(oracle, repo), [path], checkpoint)

        assert len(oracle.calls) == 1
        assert report.statistics["documents_skipped"] == 1
        assert checkpoint.is_done(pending.id)

    def test_reset_checkpoint(self, scripted_oracle, repo, stored, make_document, checkpoint, tmp_path):
        document = make_document(ey_number="1150000002")
        checkpoint.mark_done(document.id)
        path = export(tmp_path / "history.jsonl", [document])
        oracle = scripted_oracle([{"related_ids": []}])

        run_backfill(StatusTracker(oracle, repo), [path], checkpoint, reset_checkpoint=True)

        assert len(oracle.calls) == 1
        assert checkpoint.is_done(document.id)

    def test_dates_only(self, scripted_oracle, repo, make_commitment, checkpoint, tmp_path):
        commitment = make_commitment(target_date="2024-01-01", created=date(2023, 12, 1))
        repo.put(commitment)
        index_path = tmp_path / "index.json"

        report = run_backfill(
            StatusTracker(None, repo),
            [],
            checkpoint,
            dates_only=True,
            index_path=index_path,
            today=date(2025, 1, 1),
        )

        assert [t.reason for t in report.transitions] == ["目標日期 2024-01-01 已過"]
        assert report.statistics is None
        assert repo.get(commitment.id).status is CommitmentStatus.DELAYED
        assert index_path.exists()

    def test_dry_run_keeps_checkpoint(self, scripted_oracle, repo, stored, make_document, checkpoint, tmp_path):
        document = make_document(ey_number="1150000002")
        checkpoint.mark_done("earlier-doc")
        path = export(tmp_path / "history.jsonl", [document])
        oracle = scripted_oracle([])

        report = run_backfill(
            StatusTracker(oracle, repo), [path], checkpoint, dry_run=True, reset_checkpoint=True
        )

        assert oracle.calls == []
        assert report.statistics["documents_processed"] == 1
        assert checkpoint.is_done("earlier-doc")
        assert not checkpoint.is_done(document.id)
