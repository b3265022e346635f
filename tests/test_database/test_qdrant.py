"""Tests for the Qdrant commitment mirror, with a mocked client."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from qdrant_client.models import Filter, PointIdsList

from policytracker.database.qdrant import (
    CommitmentVectorIndex,
    commitment_payload,
    embedding_text,
)

VECTOR = [0.1] * 1536


@pytest.fixture
def client():
    client = MagicMock()
    client.get_collections.return_value = SimpleNamespace(collections=[])
    client.scroll.return_value = ([], None)
    return client


@pytest.fixture
def index(client):
    return CommitmentVectorIndex(client=client)


@pytest.fixture
def embedder():
    embedder = MagicMock()
    embedder.generate_batch_embeddings.side_effect = lambda texts: [VECTOR for _ in texts]
    return embedder


class TestCommitmentVectorIndex:
    def test_requires_a_connection(self):
        with pytest.raises(ValueError):
            CommitmentVectorIndex()

    def test_create_collection_once(self, index, client):
        assert index.create_collection() is True
        client.create_collection.assert_called_once()
        assert client.create_collection.call_args.kwargs["collection_name"] == "policy_commitments"

        client.get_collections.return_value = SimpleNamespace(
            collections=[SimpleNamespace(name="policy_commitments")]
        )
        assert index.create_collection() is False
        client.create_collection.assert_called_once()

    def test_payload(self, make_commitment):
        commitment = make_commitment()

        payload = commitment_payload(commitment, "能源政策/x.md")

        assert payload["id"] == commitment.id
        assert payload["status"] == "追蹤中"
        assert payload["category"] == "能源政策"
        assert payload["file"] == "能源政策/x.md"
        assert payload["target_date"] == "2026-12-31"
        assert payload["source_document_id"] == "doc-1"
        assert embedding_text(commitment) == f"{commitment.title}\n{commitment.text}"

    def test_upsert_length_mismatch(self, index, make_commitment):
        with pytest.raises(ValueError):
            index.upsert([make_commitment()], [])

    def test_sync_upserts_and_removes_stale(self, index, client, embedder, make_commitment):
        kept = make_commitment()
        client.scroll.return_value = (
            [SimpleNamespace(id=kept.id), SimpleNamespace(id="old-point")],
            None,
        )

        result = index.sync([kept], embedder, locator=lambda cid: "能源政策/x.md")

        assert result == {"upserted": 1, "deleted": 1}
        [point] = client.upsert.call_args.kwargs["points"]
        assert point.id == kept.id
        assert point.payload["file"] == "能源政策/x.md"
        selector = client.delete.call_args.kwargs["points_selector"]
        assert isinstance(selector, PointIdsList)
        assert selector.points == ["old-point"]

    def test_sync_pages_through_stored_ids(self, index, client, embedder):
        client.scroll.side_effect = [
            ([SimpleNamespace(id="a")], "next"),
            ([SimpleNamespace(id="b")], None),
        ]

        result = index.sync([], embedder)

        assert result == {"upserted": 0, "deleted": 2}
        client.upsert.assert_not_called()
        assert client.scroll.call_args_list[1].kwargs["offset"] == "next"

    def test_search_with_filters(self, index, client):
        client.query_points.return_value = SimpleNamespace(
            points=[SimpleNamespace(id="c1", score=0.87, payload={"title": "離岸風電"})]
        )

        [hit] = index.search(VECTOR, limit=3, category="能源政策", status="追蹤中")

        assert (hit.commitment_id, hit.score, hit.payload) == ("c1", 0.87, {"title": "離岸風電"})
        kwargs = client.query_points.call_args.kwargs
        assert kwargs["limit"] == 3
        assert isinstance(kwargs["query_filter"], Filter)
        assert [c.key for c in kwargs["query_filter"].must] == ["category", "status"]

    def test_search_without_filters(self, index, client):
        client.query_points.return_value = SimpleNamespace(points=[])

        assert index.search(VECTOR) == []
        assert client.query_points.call_args.kwargs["query_filter"] is None

    def test_search_rejects_wrong_dimension(self, index):
        with pytest.raises(ValueError):
            index.search([0.1, 0.2])
