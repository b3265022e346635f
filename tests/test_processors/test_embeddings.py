"""Tests for the OpenAI embedding generator used by the vector mirror."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError

from policytracker.errors import TransientIOFailure
from policytracker.processors.embeddings import EmbeddingGenerator

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


def embedding_response(texts):
    return SimpleNamespace(
        data=[SimpleNamespace(embedding=[float(len(t))] * 3) for t in texts]
    )


@pytest.fixture
def client():
    client = MagicMock()
    client.embeddings.create.side_effect = lambda input, model: embedding_response(input)
    return client


class TestEmbeddingGenerator:
    def test_single_embedding(self, client):
        generator = EmbeddingGenerator(client=client)

        assert generator.generate_embedding("離岸風電") == [4.0, 4.0, 4.0]
        client.embeddings.create.assert_called_once_with(
            input=["離岸風電"], model="text-embedding-3-small"
        )

    def test_batches_preserve_order(self, client):
        texts = ["字" * n for n in range(1, 46)]

        vectors = EmbeddingGenerator(client=client).generate_batch_embeddings(texts)

        assert [v[0] for v in vectors] == [float(n) for n in range(1, 46)]
        sizes = [len(c.kwargs["input"]) for c in client.embeddings.create.call_args_list]
        assert sizes == [20, 20, 5]

    def test_empty_input_makes_no_calls(self, client):
        assert EmbeddingGenerator(client=client).generate_batch_embeddings([]) == []
        client.embeddings.create.assert_not_called()

    @patch("policytracker.processors.embeddings.time.sleep")
    def test_retries_then_succeeds(self, mock_sleep, client):
        client.embeddings.create.side_effect = [
            APIConnectionError(request=REQUEST),
            embedding_response(["電價"]),
        ]

        vector = EmbeddingGenerator(client=client).generate_embedding("電價")

        assert vector == [2.0, 2.0, 2.0]
        mock_sleep.assert_called_once_with(1.0)

    @patch("policytracker.processors.embeddings.time.sleep")
    def test_gives_up_after_max_retries(self, mock_sleep, client):
        client.embeddings.create.side_effect = APIConnectionError(request=REQUEST)

        with pytest.raises(TransientIOFailure):
            EmbeddingGenerator(client=client).generate_embedding("電價", max_retries=3)

        assert client.embeddings.create.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ValueError):
            EmbeddingGenerator()
