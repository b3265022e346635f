"""
Tests for the CLI commands using Click's CliRunner.

Commands are invoked directly (not through the main group) so the logging
setup of the main group never runs; the oracle, embeddings and Qdrant are
replaced with fakes.
"""

import json
from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from policytracker import __version__
from policytracker.cli.dedup import dedup
from policytracker.cli.extract import extract
from policytracker.cli.index import index
from policytracker.cli.main import main
from policytracker.cli.query import query, vectors
from policytracker.cli.status import status
from policytracker.database.qdrant import SearchResult
from policytracker.database.repository import MarkdownCommitmentRepository
from policytracker.processors.schema import CommitmentStatus, ScreenResponse
from tests.conftest import ScriptedOracle, extraction_answer, renewable_item

ORACLE_FACTORY = "policytracker.processors.oracle.OpenAIOracle.from_config"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Point every storage location at the temporary directory."""
    monkeypatch.setenv("POLICYTRACKER_COMMITMENTS_DIR", str(tmp_path / "commitments"))
    monkeypatch.setenv("POLICYTRACKER_CHECKPOINT", str(tmp_path / "checkpoint.txt"))
    monkeypatch.setenv("POLICYTRACKER_PROGRESS_DB", str(tmp_path / "progress.db"))
    monkeypatch.delenv("POLICYTRACKER_INDEX_PATH", raising=False)
    monkeypatch.delenv("POLICYTRACKER_STALE_MONTHS", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return tmp_path


@pytest.fixture
def store(env):
    return MarkdownCommitmentRepository(env / "commitments")


@pytest.fixture
def replies(env):
    path = env / "replies.jsonl"
    record = {
        "term": "11",
        "session_period": "2",
        "meeting_index": "1",
        "ey_number": "1130000001",
        "ly_number": "LY-001",
        "subject": "再生能源推動進度",
        "content": "政府承諾於2026年將再生能源發電占比提升至20%",
        "source_url": "https://example.gov.tw/replies/1130000001",
    }
    path.write_text(json.dumps(record, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


class TestMain:
    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        for command in ("extract", "dedup", "index", "status", "query", "vectors"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    @patch("policytracker.cli.main.load_dotenv")
    @patch("policytracker.utils.setup_logging")
    def test_no_subcommand_prints_help(self, mock_logging, mock_dotenv, runner):
        result = runner.invoke(main, [])

        assert result.exit_code == 0
        assert "Usage:" in result.output
        mock_logging.assert_called_once_with()
        mock_dotenv.assert_called_once()


class TestExtract:
    def test_extracts_into_store(self, runner, env, store, replies):
        oracle = ScriptedOracle([extraction_answer(renewable_item())])

        with patch(ORACLE_FACTORY, return_value=oracle):
            result = runner.invoke(extract, ["--input", str(replies)])

        assert result.exit_code == 0, result.output
        assert "EXTRACTION COMPLETE" in result.output
        assert [c.title for c in store.list()] == ["再生能源占比20%"]
        assert (env / "commitments" / "index.json").exists()
        assert (env / "progress.db").exists()

    def test_dry_run(self, runner, env, store, replies):
        oracle = ScriptedOracle([extraction_answer(renewable_item())])

        with patch(ORACLE_FACTORY, return_value=oracle):
            result = runner.invoke(extract, ["--input", str(replies), "--dry-run"])

        assert result.exit_code == 0, result.output
        assert store.list() == []
        assert not (env / "progress.db").exists()

    def test_missing_api_key(self, runner, env, replies):
        result = runner.invoke(extract, ["--input", str(replies)])

        assert result.exit_code == 1
        assert "OPENAI_API_KEY" in result.output

    def test_missing_input_file(self, runner, env):
        result = runner.invoke(extract, ["--input", str(env / "missing.jsonl")])

        assert result.exit_code == 2


class TestStoreCommands:
    def test_index(self, runner, env, store, make_commitment):
        store.put(make_commitment())
        output = env / "site" / "index.json"

        result = runner.invoke(index, ["--output", str(output)])

        assert result.exit_code == 0, result.output
        assert f"Indexed 1 commitments into {output}" in result.output
        assert "追蹤中: 1" in result.output
        assert json.loads(output.read_text(encoding="utf-8"))["total_count"] == 1

    def test_dedup(self, runner, env, store, make_commitment):
        older = make_commitment(text="第一版承諾內容", created=date(2025, 1, 1), short_name="a")
        newer = make_commitment(text="第二版承諾內容", created=date(2025, 2, 1), short_name="b")
        store.put(older)
        store.put(newer)

        dry = runner.invoke(dedup, ["--dry-run"])
        assert dry.exit_code == 0, dry.output
        assert "Would remove 1 duplicate commitment(s)" in dry.output
        assert "能源政策/b.md" in dry.output
        assert len(MarkdownCommitmentRepository(store.root).list()) == 2

        result = runner.invoke(dedup, [])
        assert result.exit_code == 0, result.output
        assert "Removed 1 duplicate commitment(s)" in result.output
        remaining = MarkdownCommitmentRepository(store.root).list()
        assert [c.id for c in remaining] == [older.id]
        assert (store.root / "index.json").exists()


class TestStatusCommands:
    def test_sweep(self, runner, env, store, make_commitment):
        commitment = make_commitment(target_date="2024-01-01", created=date(2023, 12, 1))
        store.put(commitment)

        result = runner.invoke(status, ["sweep", "--today", "2025-01-01"])

        assert result.exit_code == 0, result.output
        assert "Changed 1 commitment status(es) by date" in result.output
        assert "追蹤中 -> 已延宕 (目標日期 2024-01-01 已過)" in result.output
        stored = MarkdownCommitmentRepository(store.root).get(commitment.id)
        assert stored.status is CommitmentStatus.DELAYED

    def test_sweep_dry_run(self, runner, env, store, make_commitment):
        commitment = make_commitment(target_date="2024-01-01", created=date(2023, 12, 1))
        store.put(commitment)

        result = runner.invoke(status, ["sweep", "--today", "2025-01-01", "--dry-run"])

        assert "Would change 1 commitment status(es) by date" in result.output
        stored = MarkdownCommitmentRepository(store.root).get(commitment.id)
        assert stored.status is CommitmentStatus.TRACKING

    def test_invalid_configuration(self, runner, env, monkeypatch):
        monkeypatch.setenv("POLICYTRACKER_STALE_MONTHS", "0")

        result = runner.invoke(status, ["sweep"])

        assert result.exit_code == 1
        assert "Error: stale_months must be at least 1" in result.output

    def test_update(self, runner, env, store, make_commitment, replies):
        commitment = make_commitment(document_id="some-earlier-reply")
        store.put(commitment)

        def answer(system_prompt, user_text, schema):
            if schema is ScreenResponse:
                return {"related_ids": [commitment.id]}
            return {
                "is_related": True,
                "relation_type": "進度更新",
                "summary": "持續推動",
                "is_fulfilled": False,
                "confidence": "medium",
            }

        with patch(ORACLE_FACTORY, return_value=ScriptedOracle(answer)):
            result = runner.invoke(
                status, ["update", "--input", str(replies), "--today", "2025-03-01"]
            )

        assert result.exit_code == 0, result.output
        assert "STATUS UPDATE COMPLETE" in result.output
        stored = MarkdownCommitmentRepository(store.root).get(commitment.id)
        assert stored.last_updated == date(2025, 3, 1)
        assert (env / "checkpoint.txt").read_text(encoding="utf-8").strip()

    def test_backfill_leaves_out_sources(self, runner, env, store, make_commitment, replies):
        from policytracker.apis.legislative import load_documents

        [document] = load_documents([replies])
        store.put(make_commitment(document_id=document.id))
        oracle = ScriptedOracle([])

        with patch(ORACLE_FACTORY, return_value=oracle):
            result = runner.invoke(status, ["backfill", "--input", str(replies)])

        assert result.exit_code == 0, result.output
        assert "Left out 1 document(s) that are commitment sources" in result.output
        assert oracle.calls == []

    def test_update_dry_run_without_api_key(self, runner, env, store, make_commitment, replies):
        commitment = make_commitment(document_id="some-earlier-reply")
        store.put(commitment)

        result = runner.invoke(status, ["update", "--input", str(replies), "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "OPENAI_API_KEY" not in result.output
        assert not (env / "checkpoint.txt").exists()
        stored = MarkdownCommitmentRepository(store.root).get(commitment.id)
        assert len(stored.tracking_history) == 1

    def test_backfill_dates_only_without_api_key(self, runner, env, store, make_commitment, replies):
        commitment = make_commitment(target_date="2024-01-01", created=date(2023, 12, 1))
        store.put(commitment)

        result = runner.invoke(
            status,
            ["backfill", "--input", str(replies), "--dates-only", "--today", "2025-01-01"],
        )

        assert result.exit_code == 0, result.output
        assert "Changed 1 commitment status(es) by date" in result.output
        stored = MarkdownCommitmentRepository(store.root).get(commitment.id)
        assert stored.status is CommitmentStatus.DELAYED

    def test_backfill_dry_run_without_api_key(self, runner, env, store, replies):
        result = runner.invoke(status, ["backfill", "--input", str(replies), "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Would change 0 commitment status(es) by date" in result.output
        assert not (env / "checkpoint.txt").exists()

    def test_update_needs_api_key(self, runner, env, replies):
        result = runner.invoke(status, ["update", "--input", str(replies)])

        assert result.exit_code == 1
        assert "OPENAI_API_KEY" in result.output


class TestVectorCommands:
    @patch("policytracker.database.qdrant.CommitmentVectorIndex.from_config")
    @patch("policytracker.processors.embeddings.EmbeddingGenerator")
    def test_query_json(self, mock_embedder_cls, mock_from_config, runner, env):
        mock_embedder_cls.return_value.generate_embedding.return_value = [0.1] * 1536
        mock_from_config.return_value.search.return_value = [
            SearchResult("c1", 0.91, {"title": "離岸風電5.6GW", "status": "追蹤中"})
        ]

        result = runner.invoke(query, ["離岸風電", "--format", "json", "--status", "追蹤中"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == [
            {"score": 0.91, "title": "離岸風電5.6GW", "status": "追蹤中"}
        ]
        kwargs = mock_from_config.return_value.search.call_args.kwargs
        assert kwargs["status"] == "追蹤中"
        assert kwargs["limit"] == 5

    @patch("policytracker.database.qdrant.CommitmentVectorIndex.from_config")
    @patch("policytracker.processors.embeddings.EmbeddingGenerator")
    def test_query_no_results(self, mock_embedder_cls, mock_from_config, runner, env):
        mock_embedder_cls.return_value.generate_embedding.return_value = [0.1] * 1536
        mock_from_config.return_value.search.return_value = []

        result = runner.invoke(query, ["不存在的政策"])

        assert result.exit_code == 0
        assert "No results found." in result.output

    @patch("policytracker.database.qdrant.CommitmentVectorIndex.from_config")
    @patch("policytracker.processors.embeddings.EmbeddingGenerator")
    def test_sync(self, mock_embedder_cls, mock_from_config, runner, env, store, make_commitment):
        store.put(make_commitment())
        mock_index = MagicMock()
        mock_index.sync.return_value = {"upserted": 1, "deleted": 0}
        mock_from_config.return_value = mock_index

        result = runner.invoke(vectors, ["sync"])

        assert result.exit_code == 0, result.output
        assert "Synced 1 commitments to policy_commitments (0 removed)" in result.output
        args, kwargs = mock_index.sync.call_args
        assert len(args[0]) == 1
        assert kwargs["locator"] is not None
