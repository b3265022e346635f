"""
Tests for exact and fuzzy deduplication.

Python Learning Notes:
    - Union-find groups items whose similarity is only pairwise
    - Idempotence: running a cleanup twice must change nothing the second time
"""

from datetime import date

import pytest

from policytracker.processors.dedup import (
    UnionFind,
    canonicalize,
    char_bigram_jaccard,
    cluster_similar,
    compact,
    dedupe_exact,
    dedupe_similar,
    is_similar,
    sequence_ratio,
)

SIMILAR_A = "擴大辦理青年租金補貼"
SIMILAR_B = "青年租金補貼擴大方案"
UNRELATED = "青年就業獎勵金試辦計畫"


class TestUnionFind:
    def test_union_and_find(self):
        uf = UnionFind(5)

        assert uf.union(0, 1)
        assert uf.union(1, 2)
        assert not uf.union(0, 2)

        assert uf.connected(0, 2)
        assert not uf.connected(0, 3)

    def test_components(self):
        uf = UnionFind(5)
        uf.union(0, 3)
        uf.union(1, 4)

        components = sorted(sorted(c) for c in uf.get_components())

        assert components == [[0, 3], [1, 4], [2]]


class TestSimilarity:
    def test_ratio_of_reordered_titles(self):
        assert sequence_ratio(SIMILAR_A, SIMILAR_B) == pytest.approx(0.6)
        assert is_similar(SIMILAR_A, SIMILAR_B)

    def test_unrelated_titles(self):
        assert not is_similar(SIMILAR_A, UNRELATED)
        assert not is_similar(SIMILAR_B, UNRELATED)

    def test_bigram_jaccard(self):
        assert char_bigram_jaccard("再生能源", "再生能源") == 1.0
        assert char_bigram_jaccard("再生能源", "離岸風電") == 0.0
        assert char_bigram_jaccard("再", "生") == 0.0


class TestDedupeExact:
    def test_same_title_keeps_earliest(self, make_commitment):
        later = make_commitment(text="後來的版本", created=date(2025, 3, 1))
        earlier = make_commitment(text="最早的版本", created=date(2025, 1, 1))

        survivors = dedupe_exact([later, earlier])

        assert survivors == [earlier]

    def test_tie_keeps_first(self, make_commitment):
        first = make_commitment(text="第一個")
        second = make_commitment(text="第二個")

        assert dedupe_exact([first, second]) == [first]

    def test_distinct_titles_kept_in_order(self, make_commitment):
        a = make_commitment(title="甲")
        b = make_commitment(title="乙")

        assert dedupe_exact([a, b]) == [a, b]


class TestDedupeSimilar:
    def test_similar_titles_in_same_document_keep_largest(self, make_commitment):
        small = make_commitment(title=SIMILAR_A, text="短")
        large = make_commitment(title=SIMILAR_B, text="較完整的承諾內容" * 10)

        assert dedupe_similar([small, large]) == [large]

    def test_different_documents_are_not_merged(self, make_commitment):
        a = make_commitment(title=SIMILAR_A, document_id="doc-1")
        b = make_commitment(title=SIMILAR_B, document_id="doc-2")

        assert dedupe_similar([a, b]) == [a, b]

    def test_clustering_is_transitive(self, make_commitment):
        # A~B and B~C, but A and C share no characters
        a = make_commitment(title="擴大租金補貼", text="短")
        b = make_commitment(title="租金補貼青年方案", text="短")
        c = make_commitment(title="青年方案試辦", text="最完整的承諾內容" * 10)
        assert not is_similar(a.title, c.title)

        clusters = cluster_similar([a, b, c])

        assert len(clusters) == 1
        assert dedupe_similar([a, b, c]) == [c]

    def test_unrelated_title_survives(self, make_commitment):
        a = make_commitment(title=SIMILAR_A, text="短")
        b = make_commitment(title=SIMILAR_B, text="較完整的承諾內容" * 10)
        c = make_commitment(title=UNRELATED)

        survivors = dedupe_similar([a, b, c])

        assert {s.title for s in survivors} == {SIMILAR_B, UNRELATED}

    def test_unrelated_title_stays_out_of_cluster(self, make_commitment):
        a = make_commitment(title=SIMILAR_A)
        b = make_commitment(title=SIMILAR_B)
        c = make_commitment(title=UNRELATED)
        assert is_similar(SIMILAR_A, SIMILAR_B)
        assert not is_similar(SIMILAR_A, UNRELATED)
        assert not is_similar(SIMILAR_B, UNRELATED)

        clusters = cluster_similar([a, b, c])

        assert sorted(len(cluster) for cluster in clusters) == [1, 2]
        assert [c] in clusters

    def test_missing_document_id_is_never_clustered(self, make_commitment):
        a = make_commitment(title=SIMILAR_A, text="短", document_id="")
        b = make_commitment(title=SIMILAR_B, text="較完整的承諾內容" * 10, document_id="")

        assert dedupe_similar([a, b]) == [a, b]


class TestCanonicalize:
    def test_new_candidates_are_written(self, repo, make_commitment):
        candidate = make_commitment()

        result = canonicalize(repo, [candidate])

        assert result.created == [candidate]
        assert repo.get(candidate.id) == candidate

    def test_reextraction_is_rejected(self, repo, make_commitment):
        stored = make_commitment(created=date(2025, 1, 1))
        repo.put(stored)
        again = make_commitment(created=date(2025, 2, 1))

        result = canonicalize(repo, [again])

        assert result.created == []
        assert result.rejected == [again]
        assert repo.get(stored.id).created_at == date(2025, 1, 1)

    def test_larger_candidate_replaces_stored_duplicate(self, repo, make_commitment):
        stored = make_commitment(title=SIMILAR_A, text="短")
        repo.put(stored)
        candidate = make_commitment(title=SIMILAR_B, text="較完整的承諾內容" * 10)

        result = canonicalize(repo, [candidate])

        assert result.deleted == [stored.id]
        assert result.created == [candidate]
        assert stored.id not in repo
        assert candidate.id in repo

    def test_candidates_without_document_id_all_survive(self, repo, make_commitment):
        stored = make_commitment(title=SIMILAR_A, text="短", document_id="")
        repo.put(stored)
        candidate = make_commitment(title=SIMILAR_B, text="較完整的承諾內容" * 10, document_id="")

        result = canonicalize(repo, [candidate])

        assert result.deleted == []
        assert result.created == [candidate]
        assert stored.id in repo
        assert candidate.id in repo

    def test_dry_run_writes_nothing(self, repo, make_commitment):
        candidate = make_commitment()

        result = canonicalize(repo, [candidate], dry_run=True)

        assert result.created == [candidate]
        assert repo.list() == []

    def test_compact_is_idempotent(self, repo, make_commitment):
        repo.put(make_commitment(title=SIMILAR_A, text="短"))
        repo.put(make_commitment(title=SIMILAR_B, text="較完整的承諾內容" * 10))
        repo.put(make_commitment(title=UNRELATED))

        first = compact(repo)
        second = compact(repo)

        assert len(first) == 1
        assert second == []
        assert {c.title for c in repo.list()} == {SIMILAR_B, UNRELATED}

    def test_compact_dry_run(self, repo, make_commitment):
        repo.put(make_commitment(title=SIMILAR_A, text="短"))
        repo.put(make_commitment(title=SIMILAR_B, text="較完整的承諾內容" * 10))

        removed = compact(repo, dry_run=True)

        assert len(removed) == 1
        assert len(repo.list()) == 2
