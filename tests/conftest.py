"""
Shared test fixtures and configuration for PolicyTracker tests.

This module provides reusable fixtures and fakes for testing PolicyTracker. It
centralizes common test dependencies to avoid duplication across test files.

Key Fixtures:
    - ScriptedOracle: A fake oracle answering from a script instead of the API
    - A temporary Markdown commitment store
    - Factories for sample documents and commitments

Python Learning Notes:
    - conftest.py is automatically discovered by pytest
    - Fixtures defined here are available to all tests without import
    - Factory fixtures return a function so each test can customize its data
"""

import json
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, List, Optional, Type, Union

import pytest

from policytracker.apis.base import Document
from policytracker.database.repository import MarkdownCommitmentRepository
from policytracker.processors.llm_extraction import build_commitment
from policytracker.processors.oracle import Oracle, parse_response
from policytracker.processors.schema import (
    Category,
    ExtractedCommitment,
    SourceRef,
)

RENEWABLE_TITLE = "再生能源占比20%"
RENEWABLE_TEXT = "政府承諾於2026年將再生能源發電占比提升至20%"


@dataclass
class OracleCall:
    system_prompt: str
    user_text: str
    schema: Type


class ScriptedOracle(Oracle):
    """
    Fake oracle that answers from a script.

    ``script`` is either a list consumed in order or a callable receiving
    (system_prompt, user_text, schema). Each answer may be a dict (encoded as
    JSON), a raw string, or an exception instance to raise. Answers go through
    the same parse_response() as the real oracle.
    """

    def __init__(self, script: Union[List[Any], Callable[..., Any]]):
        self.script = script
        self.calls: List[OracleCall] = []

    def complete(self, system_prompt, user_text, schema):
        self.calls.append(OracleCall(system_prompt, user_text, schema))
        if callable(self.script):
            answer = self.script(system_prompt, user_text, schema)
        else:
            if not self.script:
                raise AssertionError("ScriptedOracle ran out of answers")
            answer = self.script.pop(0)

        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, dict):
            answer = json.dumps(answer, ensure_ascii=False)
        return parse_response(answer, schema)


@pytest.fixture
def scripted_oracle():
    """Factory for ScriptedOracle instances."""
    return ScriptedOracle


@pytest.fixture
def repo(tmp_path):
    """Empty Markdown commitment store in a temporary directory."""
    return MarkdownCommitmentRepository(tmp_path / "commitments")


@pytest.fixture
def make_document():
    """
    Factory for Document objects.

    Usage:
        def test_something(make_document):
            doc = make_document(ey_number="EY-2", content="...")
    """

    def _make(
        subject: str = "再生能源推動進度",
        content: str = RENEWABLE_TEXT + "，並持續推動離岸風電建置。",
        ey_number: str = "1130000001",
        ly_number: str = "LY-001",
        term: str = "11",
        session_period: str = "2",
        meeting_index: str = "1",
        source_url: Optional[str] = None,
    ) -> Document:
        return Document.create(
            term=term,
            session_period=session_period,
            meeting_index=meeting_index,
            ey_number=ey_number,
            ly_number=ly_number,
            subject=subject,
            content=content,
            source_url=source_url or f"https://example.gov.tw/replies/{ey_number}",
        )

    return _make


@pytest.fixture
def make_commitment():
    """
    Factory for freshly extracted commitments.

    The commitment is built through the same code path extraction uses, so it
    carries one initial tracking entry dated ``created``.
    """

    def _make(
        title: str = RENEWABLE_TITLE,
        text: str = RENEWABLE_TEXT,
        category: Any = Category.ENERGY,
        created: date = date(2025, 1, 15),
        document_id: str = "doc-1",
        target_date: Optional[str] = "2026-12-31",
        target_value: Optional[str] = "20%",
        short_name: Optional[str] = None,
    ):
        item = ExtractedCommitment(
            title=title,
            text=text,
            category=category,
            target_date=target_date,
            target_value=target_value,
            short_name=short_name,
            responsible_agency="經濟部",
        )
        source = SourceRef(
            document_id=document_id,
            term="11",
            session_period="2",
            ey_number="1130000001",
            url=f"https://example.gov.tw/replies/{document_id}",
        )
        return build_commitment(item, source, created)

    return _make


def extraction_answer(*items: dict) -> dict:
    """Oracle answer for an extraction call."""
    return {"commitments": list(items)}


def renewable_item(**overrides) -> dict:
    item = {
        "title": RENEWABLE_TITLE,
        "short_name": "2026-再生能源20%",
        "category": "能源政策",
        "text": RENEWABLE_TEXT,
        "target_date": "2026",
        "target_value": "20%",
        "responsible_agency": "經濟部",
    }
    item.update(overrides)
    return item
