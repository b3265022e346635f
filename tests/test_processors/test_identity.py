"""Tests for content-addressed identifiers."""

import hashlib
import uuid

from policytracker.processors.identity import (
    chunk_id,
    commitment_id,
    content_id,
    document_id,
)


def test_content_id_is_formatted_md5():
    digest = hashlib.md5("再生能源".encode("utf-8")).hexdigest()

    value = content_id("再生能源")

    assert value.replace("-", "") == digest
    assert str(uuid.UUID(value)) == value


def test_commitment_id_is_deterministic():
    first = commitment_id("再生能源占比20%", "2026年再生能源占比提升至20%")
    second = commitment_id("再生能源占比20%", "2026年再生能源占比提升至20%")
    assert first == second


def test_commitment_id_depends_on_title_and_text():
    base = commitment_id("標題", "內容")
    assert commitment_id("標題2", "內容") != base
    assert commitment_id("標題", "內容2") != base
    assert base == content_id("標題內容")


def test_document_id_uses_all_coordinates():
    value = document_id("11", "2", "1", "EY-1", "LY-1")

    assert value == content_id("11-2-1-EY-1-LY-1")
    assert document_id("11", "2", "1", "EY-1", "LY-2") != value


def test_document_id_accepts_numbers():
    assert document_id(11, 2, 1, "EY-1", "LY-1") == document_id("11", "2", "1", "EY-1", "LY-1")


def test_chunk_ids_are_distinct_per_index():
    ids = {chunk_id("doc", i) for i in range(5)}
    assert len(ids) == 5
    assert chunk_id("doc", 0) == content_id("doc-chunk-0")
