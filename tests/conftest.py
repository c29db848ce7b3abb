"""Shared fixtures: a small price sheet and fake external clients."""

from __future__ import annotations

from typing import Any

import pytest

from phone_price.core.llm_query_parser import LLMQueryParser
from phone_price.core.price_retriever import PriceRetriever
from phone_price.core.record_extractor import RecordExtractor
from phone_price.core.records import PriceRecord
from phone_price.core.sheet_source import RecordRepository
from tests.factories import FakeSheetSource, FakeTextClient, build_sections, llm_reply


@pytest.fixture
def sample_sections() -> dict[str, list[list[Any]]]:
    return build_sections()


@pytest.fixture
def sheet_source(sample_sections) -> FakeSheetSource:
    return FakeSheetSource(sample_sections)


@pytest.fixture
def records(sample_sections) -> list[PriceRecord]:
    """Records of the sample sheet, unknown worksheets excluded."""
    extracted = RecordExtractor().extract(sample_sections)
    return [r for r in extracted if r.has_known_section]


@pytest.fixture
def text_client() -> FakeTextClient:
    return FakeTextClient(
        llm_reply(브랜드="갤럭시", 기본모델="S25", 옵션=None, 용량="256", 통신사="SK", 타입="번호이동")
    )


@pytest.fixture
def retriever(sheet_source, text_client) -> PriceRetriever:
    repository = RecordRepository(sheet_source, max_workers=2)
    return PriceRetriever(repository, resolver=LLMQueryParser(text_client))
