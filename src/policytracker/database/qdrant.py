"""
Qdrant mirror of the commitment store for free-text search.

The mirror holds one point per commitment in the ``policy_commitments``
collection. Point ids are the commitment ids themselves (they are already
UUID-formatted), and the payload carries the same fields as the index entry
plus category, excerpt and source, so search results can be displayed
without reading the Markdown store.

The mirror is a derived view: sync() rebuilds it from the store, and it is
never consulted by deduplication or status tracking.

Python Learning Notes:
    - Qdrant supports local file-based storage and remote servers with the
      same client API
    - Idempotent operations (create-if-missing, upsert) can be rerun safely
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from qdrant_client import QdrantClient as QdrantBaseClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from ..processors.schema import Commitment

logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    """One commitment returned by a similarity search."""

    commitment_id: str
    score: float
    payload: Dict[str, Any]


def commitment_payload(commitment: Commitment, file: Optional[str] = None) -> Dict[str, Any]:
    """Payload stored with a commitment's vector."""
    return {
        "id": commitment.id,
        "title": commitment.title,
        "file": file,
        "status": commitment.status.label,
        "category": commitment.category.value,
        "text": commitment.text,
        "target_date": commitment.target_date.isoformat() if commitment.target_date else None,
        "target_value": commitment.target_value,
        "responsible_agency": commitment.responsible_agency,
        "last_updated": commitment.last_updated.isoformat(),
        "source_document_id": commitment.source.document_id,
        "source_url": commitment.source.url,
    }


def embedding_text(commitment: Commitment) -> str:
    """Text embedded for a commitment."""
    return f"{commitment.title}\n{commitment.text}"


class CommitmentVectorIndex:
    """
    Qdrant collection of commitment vectors.

    Supports both local file-based Qdrant (for development) and remote
    Qdrant instances. Provide ``url`` for remote or ``db_path`` for local.

    Example:
        index = CommitmentVectorIndex(db_path="./data/qdrant/qdrant_db")
        index.sync(repo.list(), embedder, locator=repo.locator)
        for hit in index.search(embedder.generate_embedding("離岸風電")):
            print(hit.score, hit.payload["title"])
    """

    EMBEDDING_DIMENSION = 1536
    DEFAULT_DISTANCE = Distance.COSINE

    def __init__(
        self,
        collection_name: str = "policy_commitments",
        db_path: Optional[str] = None,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[QdrantBaseClient] = None,
    ):
        self.collection_name = collection_name
        if client is not None:
            self.client = client
        elif url:
            self.client = QdrantBaseClient(url=url, api_key=api_key)
            logger.info(f"Initialized Qdrant client with URL: {url}")
        elif db_path:
            self.client = QdrantBaseClient(path=db_path)
            logger.info(f"Initialized local Qdrant client at {db_path}")
        else:
            raise ValueError(
                "Must provide either db_path for local storage or url for a remote server"
            )

    @classmethod
    def from_config(cls, config) -> "CommitmentVectorIndex":
        return cls(
            collection_name=config.collection_name,
            db_path=None if config.qdrant_url else config.qdrant_db_path,
            url=config.qdrant_url,
            api_key=config.qdrant_api_key,
        )

    def create_collection(self) -> bool:
        """Create the collection if it does not exist yet."""
        collections = self.client.get_collections().collections
        if any(col.name == self.collection_name for col in collections):
            logger.debug(f"Collection {self.collection_name} already exists")
            return False

        self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(
                size=self.EMBEDDING_DIMENSION,
                distance=self.DEFAULT_DISTANCE,
            ),
        )
        logger.info(f"Created collection {self.collection_name}")
        return True

    def upsert(
        self,
        commitments: Sequence[Commitment],
        vectors: Sequence[List[float]],
        locator=None,
    ) -> int:
        """Write vectors and payloads for the given commitments."""
        if len(commitments) != len(vectors):
            raise ValueError("Number of commitments and vectors must match")
        points = [
            PointStruct(
                id=commitment.id,
                vector=list(vector),
                payload=commitment_payload(
                    commitment, locator(commitment.id) if locator else None
                ),
            )
            for commitment, vector in zip(commitments, vectors)
        ]
        if points:
            self.client.upsert(collection_name=self.collection_name, points=points, wait=True)
        return len(points)

    def stored_ids(self) -> List[str]:
        """Ids of every point currently in the collection."""
        ids: List[str] = []
        offset = None
        while True:
            records, offset = self.client.scroll(
                collection_name=self.collection_name,
                limit=256,
                offset=offset,
                with_payload=False,
                with_vectors=False,
            )
            ids.extend(str(record.id) for record in records)
            if offset is None:
                return ids

    def sync(self, commitments: Sequence[Commitment], embedder, locator=None) -> Dict[str, int]:
        """
        Make the collection mirror ``commitments``.

        Returns:
            Dict[str, int]: ``{"upserted": n, "deleted": m}``.
        """
        self.create_collection()
        vectors = embedder.generate_batch_embeddings(
            [embedding_text(c) for c in commitments]
        )
        upserted = self.upsert(commitments, vectors, locator)

        wanted = {c.id for c in commitments}
        stale = [point_id for point_id in self.stored_ids() if point_id not in wanted]
        if stale:
            self.client.delete(
                collection_name=self.collection_name,
                points_selector=PointIdsList(points=stale),
                wait=True,
            )
        logger.info(
            "Synced %d commitments to %s (%d removed)",
            upserted,
            self.collection_name,
            len(stale),
        )
        return {"upserted": upserted, "deleted": len(stale)}

    def search(
        self,
        query_vector: List[float],
        limit: int = 5,
        score_threshold: Optional[float] = None,
        category: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[SearchResult]:
        """Nearest commitments to ``query_vector``, best first."""
        if len(query_vector) != self.EMBEDDING_DIMENSION:
            raise ValueError(
                f"Query embedding must be {self.EMBEDDING_DIMENSION} dimensions"
            )

        conditions = []
        if category:
            conditions.append(FieldCondition(key="category", match=MatchValue(value=category)))
        if status:
            conditions.append(FieldCondition(key="status", match=MatchValue(value=status)))

        response = self.client.query_points(
            collection_name=self.collection_name,
            query=query_vector,
            limit=limit,
            query_filter=Filter(must=conditions) if conditions else None,
            score_threshold=score_threshold,
            with_payload=True,
        )
        return [
            SearchResult(
                commitment_id=str(point.id),
                score=point.score,
                payload=point.payload or {},
            )
            for point in response.points
        ]
