"""
Exact and fuzzy deduplication of commitments.

The same commitment is often extracted more than once: from overlapping
chunks, from a reply that was exported twice, or with slightly different
wording from the same document. This module collapses those duplicates into
a single canonical record.

Phases:
    A. Exact: commitments with identical titles collapse to the one created
       earliest (ties keep the first encountered; stored commitments are
       encountered before new candidates).
    B. Fuzzy: within each source document, titles are linked when the
       difflib SequenceMatcher ratio exceeds 0.4 or the character-bigram
       Jaccard similarity exceeds 0.25. Linked titles are clustered
       transitively with union-find and each cluster keeps the commitment
       whose rendered record is largest (the most complete one; ties keep
       the first encountered).

Running the engine twice with no new candidates deletes nothing the second
time.

Python Learning Notes:
    - difflib.SequenceMatcher is the standard-library fuzzy string matcher
    - Union-Find with path compression and union by rank is nearly O(1)
    - Python's sort is stable, so "ties keep the first" needs no extra key
"""

from collections import defaultdict
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Dict, List, Sequence

from ..database.markdown import rendered_size
from ..database.repository import CommitmentRepository
from ..utils import get_logger
from .schema import Commitment

logger = get_logger(__name__)

SEQUENCE_THRESHOLD = 0.4
JACCARD_THRESHOLD = 0.25


class UnionFind:
    """
    Union-Find data structure with path compression and union by rank.

    Elements are the indices 0..n-1 of a per-group arena, so clustering
    never needs references between commitment objects.
    """

    def __init__(self, n: int) -> None:
        """Initialize Union-Find with n elements (0 to n-1)."""
        self.parent = list(range(n))
        self.rank = [0] * n
        self.n = n

    def find(self, x: int) -> int:
        """Find root of element x with path compression."""
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: int, y: int) -> bool:
        """Union components containing x and y. Returns True if merged."""
        px, py = self.find(x), self.find(y)
        if px == py:
            return False

        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1
        return True

    def connected(self, x: int, y: int) -> bool:
        return self.find(x) == self.find(y)

    def get_components(self) -> List[List[int]]:
        """Connected components, each in index order, ordered by first member."""
        components: Dict[int, List[int]] = defaultdict(list)
        for i in range(self.n):
            components[self.find(i)].append(i)
        return list(components.values())


def sequence_ratio(a: str, b: str) -> float:
    return SequenceMatcher(None, a, b).ratio()


def char_bigram_jaccard(a: str, b: str) -> float:
    """Character-bigram Jaccard similarity; works without word segmentation."""
    if len(a) < 2 or len(b) < 2:
        return 1.0 if a == b else 0.0
    sa = {a[i : i + 2] for i in range(len(a) - 1)}
    sb = {b[i : i + 2] for i in range(len(b) - 1)}
    return len(sa & sb) / len(sa | sb)


def is_similar(a: str, b: str) -> bool:
    """Two titles are similar if either metric exceeds its threshold."""
    if sequence_ratio(a, b) > SEQUENCE_THRESHOLD:
        return True
    return char_bigram_jaccard(a, b) > JACCARD_THRESHOLD


def dedupe_exact(commitments: Sequence[Commitment]) -> List[Commitment]:
    """Phase A: keep the earliest-created commitment per exact title."""
    winners: Dict[str, Commitment] = {}
    for commitment in commitments:
        current = winners.get(commitment.title)
        if current is None or commitment.created_at < current.created_at:
            winners[commitment.title] = commitment
    keep = {id(c) for c in winners.values()}
    return [c for c in commitments if id(c) in keep]


def cluster_similar(commitments: Sequence[Commitment]) -> List[List[Commitment]]:
    """Phase B clustering of one document's commitments by title similarity."""
    n = len(commitments)
    uf = UnionFind(n)
    for i in range(n):
        for j in range(i + 1, n):
            if is_similar(commitments[i].title, commitments[j].title):
                uf.union(i, j)
    return [[commitments[i] for i in component] for component in uf.get_components()]


def dedupe_similar(commitments: Sequence[Commitment]) -> List[Commitment]:
    """Phase B: keep the largest record per similarity cluster per document."""
    groups: Dict[str, List[Commitment]] = defaultdict(list)
    singletons = []
    for commitment in commitments:
        if commitment.source.document_id:
            groups[commitment.source.document_id].append(commitment)
        else:
            singletons.append(commitment)

    keep = {id(c) for c in singletons}
    for document_id, members in groups.items():
        if len(members) == 1:
            keep.add(id(members[0]))
            continue
        for cluster in cluster_similar(members):
            ranked = sorted(cluster, key=lambda c: -rendered_size(c))
            keep.add(id(ranked[0]))
            if len(cluster) > 1:
                logger.debug(
                    "Document %s: kept %r over %d similar commitment(s)",
                    document_id,
                    ranked[0].title,
                    len(cluster) - 1,
                )
    return [c for c in commitments if id(c) in keep]


@dataclass
class DedupResult:
    """
    Outcome of a canonicalization pass.

    Attributes:
        survivors: Every commitment left in the store, stored ones first.
        created: New candidates that were (or would be) written.
        rejected: New candidates that were discarded as duplicates.
        deleted: Ids of stored commitments that lost to a duplicate.
    """

    survivors: List[Commitment] = field(default_factory=list)
    created: List[Commitment] = field(default_factory=list)
    rejected: List[Commitment] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)


def canonicalize(
    repository: CommitmentRepository,
    candidates: Sequence[Commitment] = (),
    dry_run: bool = False,
) -> DedupResult:
    """
    Merge new candidates into the store, removing duplicates.

    Args:
        repository: The commitment store.
        candidates: Newly extracted commitments, in extraction order.
        dry_run: Report what would change without touching the store.

    Returns:
        DedupResult: What survived, what was written and what was removed.

    Example:
        result = canonicalize(repo, extractor.extract_document(document))
        print(f"{len(result.created)} new, {len(result.deleted)} replaced")
    """
    existing = repository.list()
    pool: List[Commitment] = list(existing) + list(candidates)

    survivors = dedupe_similar(dedupe_exact(pool))
    surviving = {id(c) for c in survivors}

    result = DedupResult(survivors=survivors)
    for commitment in existing:
        if id(commitment) not in surviving:
            result.deleted.append(commitment.id)
    for commitment in candidates:
        if id(commitment) in surviving:
            result.created.append(commitment)
        else:
            result.rejected.append(commitment)

    if result.deleted or result.created or result.rejected:
        logger.info(
            "Dedup: %d created, %d rejected, %d deleted%s",
            len(result.created),
            len(result.rejected),
            len(result.deleted),
            " (dry run)" if dry_run else "",
        )

    if dry_run:
        return result

    for commitment_id in result.deleted:
        repository.delete(commitment_id)
    for commitment in result.created:
        repository.put(commitment)
    return result


def compact(repository: CommitmentRepository, dry_run: bool = False) -> List[str]:
    """Deduplicate the store as it stands; returns the ids removed."""
    return canonicalize(repository, (), dry_run=dry_run).deleted
