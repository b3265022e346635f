"""
Embedding generation for the commitment vector mirror.

This module converts commitment text into vectors with OpenAI's
text-embedding-3-small model so the Qdrant mirror can answer free-text
questions such as "which commitments mention offshore wind?". Embeddings are
only used for this human-facing search; deduplication and status tracking
never consult them.

Python Learning Notes:
    - Exponential backoff (delay *= 2) reduces API load on retries
    - Batch requests are cheaper than one request per text
"""

import time
from typing import List, Optional

from openai import APIConnectionError, APIStatusError, OpenAI, RateLimitError

from ..errors import TransientIOFailure
from ..utils import get_logger
from ..utils.config import get_openai_api_key, get_openai_base_url

logger = get_logger(__name__)


class EmbeddingGenerator:
    """
    Generates embeddings with OpenAI's text-embedding models.

    Attributes:
        model (str): The embedding model to use (text-embedding-3-small)
        dimension (int): Vector size produced by the model (1536)
        client (OpenAI): OpenAI client

    Example:
        generator = EmbeddingGenerator()
        vector = generator.generate_embedding("再生能源占比提升至20%")
        assert len(vector) == 1536
    """

    def __init__(self, api_key: Optional[str] = None, client: Optional[OpenAI] = None):
        """
        Initialize the embedding generator with OpenAI API.

        Args:
            api_key (Optional[str]): OpenAI API key. If not provided, it is
                read from OPENAI_API_KEY via get_openai_api_key().
            client (Optional[OpenAI]): Pre-built client (used by tests).

        Raises:
            ValueError: If no API key is provided and none found in environment
        """
        self.client = client or OpenAI(
            api_key=api_key or get_openai_api_key(), base_url=get_openai_base_url()
        )
        self.model = "text-embedding-3-small"
        self.dimension = 1536

    def generate_embedding(self, text: str, max_retries: int = 3) -> List[float]:
        """
        Generate an embedding for a single text.

        Args:
            text (str): Text to embed; should be non-empty.
            max_retries (int): Attempts before giving up.

        Returns:
            List[float]: 1536-dimensional embedding.

        Raises:
            TransientIOFailure: If every attempt failed.
        """
        return self.generate_batch_embeddings([text], max_retries=max_retries)[0]

    def generate_batch_embeddings(
        self, texts: List[str], batch_size: int = 20, max_retries: int = 3
    ) -> List[List[float]]:
        """
        Generate embeddings for multiple texts in batches.

        Order is preserved: the nth embedding corresponds to the nth input.

        Args:
            texts (List[str]): Texts to embed.
            batch_size (int): Texts per API call.
            max_retries (int): Attempts per batch before giving up.

        Returns:
            List[List[float]]: One vector per input text.

        Raises:
            TransientIOFailure: If a batch failed on every attempt.
        """
        embeddings: List[List[float]] = []

        for i in range(0, len(texts), batch_size):
            batch = texts[i : i + batch_size]
            retry_delay = 1.0
            for attempt in range(max_retries):
                try:
                    response = self.client.embeddings.create(input=batch, model=self.model)
                    embeddings.extend(item.embedding for item in response.data)
                    break
                except (RateLimitError, APIConnectionError, APIStatusError) as e:
                    logger.warning(
                        "Embedding attempt %d/%d failed: %s", attempt + 1, max_retries, e
                    )
                    if attempt < max_retries - 1:
                        time.sleep(retry_delay)
                        retry_delay *= 2
                    else:
                        raise TransientIOFailure(f"Embedding generation failed: {e}") from e

        return embeddings
