"""Tests for the HTTP endpoints."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from phone_price import __version__
from phone_price.api.endpoints import (
    APOLOGY_MESSAGE,
    KAKAO_APOLOGY_MESSAGE,
    SHEET_UNAVAILABLE_MESSAGE,
    MAX_QUESTION_LENGTH,
    USAGE_HINT,
)
from phone_price.api.main import app
from phone_price.core.price_retriever import PriceRetriever
from phone_price.core.response_formatter import GUIDANCE_TEMPLATE
from phone_price.core.sheet_source import RecordRepository, SheetSourceError
from tests.factories import FailingSheetSource


@pytest.fixture
def api(retriever):
    """The app with the sample-sheet retriever installed."""
    app.state.retriever = retriever
    app.state.expose_error_details = False
    yield app
    del app.state.retriever
    del app.state.expose_error_details


def client_for(application) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=application), base_url="http://test")


def kakao_text(body: dict) -> str:
    assert body["version"] == "2.0"
    (output,) = body["template"]["outputs"]
    return output["simpleText"]["text"]


@pytest.mark.asyncio
async def test_health(api) -> None:
    async with client_for(api) as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": __version__}


class TestPriceEndpoint:
    """Tests for GET/POST /price."""

    @pytest.mark.asyncio
    async def test_get_price(self, api):
        async with client_for(api) as client:
            response = await client.get("/price", params={"q": "갤럭시 S25 256 SK 번호이동"})

        assert response.status_code == 200
        body = response.json()
        assert body["query"] == "갤럭시 S25 256 SK 번호이동"
        assert body["scenario"] == "full_condition"
        assert "📦 온라인 가격 조건 안내" in body["response"]
        assert body["query_breakdown"] == {
            "brand": "갤럭시",
            "model": "갤럭시 S25",
            "capacity": "256",
            "telecom": "SK",
            "type": "번호이동",
        }

    @pytest.mark.asyncio
    async def test_post_price(self, api):
        async with client_for(api) as client:
            response = await client.post("/price", json={"query": "갤럭시 뭐 있어요?"})

        assert response.status_code == 200
        body = response.json()
        assert body["scenario"] == "model_only"
        assert "15개 모델" in body["response"]

    @pytest.mark.asyncio
    async def test_comparison_returns_guidance(self, api):
        async with client_for(api) as client:
            response = await client.post("/price", json={"query": "SK랑 KT 중 어디가 더 싸요?"})

        assert response.status_code == 200
        assert response.json()["scenario"] == "comparison"
        assert response.json()["response"] == GUIDANCE_TEMPLATE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{}, {"query": ""}, {"query": "   "}])
    async def test_missing_question_post(self, api, payload):
        async with client_for(api) as client:
            response = await client.post("/price", json=payload)

        assert response.status_code == 400
        assert response.json()["detail"] == USAGE_HINT

    @pytest.mark.asyncio
    async def test_missing_question_get(self, api):
        async with client_for(api) as client:
            response = await client.get("/price")

        assert response.status_code == 400
        assert response.json()["detail"] == USAGE_HINT

    @pytest.mark.asyncio
    async def test_overlong_question_rejected(self, api):
        question = "가" * (MAX_QUESTION_LENGTH + 1)

        async with client_for(api) as client:
            by_get = await client.get("/price", params={"q": question})
            by_post = await client.post("/price", json={"query": question})

        for response in (by_get, by_post):
            assert response.status_code == 400
            assert response.json()["detail"] == USAGE_HINT

    @pytest.mark.asyncio
    async def test_question_at_length_limit_answered(self, api):
        prefix = "갤럭시 S25 256 SK 번호이동 "
        question = prefix + "요" * (MAX_QUESTION_LENGTH - len(prefix))

        async with client_for(api) as client:
            response = await client.post("/price", json={"query": question})

        assert response.status_code == 200
        assert response.json()["scenario"] == "full_condition"

    @pytest.mark.asyncio
    async def test_sheet_unavailable(self, api):
        api.state.retriever = PriceRetriever(
            RecordRepository(FailingSheetSource(SheetSourceError("quota exceeded")))
        )

        async with client_for(api) as client:
            response = await client.get("/price", params={"q": "갤럭시 S25 256"})

        assert response.status_code == 503
        assert response.json()["detail"] == SHEET_UNAVAILABLE_MESSAGE

    @pytest.mark.asyncio
    async def test_internal_error_hides_details(self, api):
        api.state.retriever = PriceRetriever(
            RecordRepository(FailingSheetSource(RuntimeError("boom")))
        )

        async with client_for(api) as client:
            response = await client.get("/price", params={"q": "갤럭시 S25 256"})

        assert response.status_code == 500
        assert response.json()["detail"] == APOLOGY_MESSAGE

    @pytest.mark.asyncio
    async def test_internal_error_details_exposed(self, api):
        api.state.retriever = PriceRetriever(
            RecordRepository(FailingSheetSource(RuntimeError("boom")))
        )
        api.state.expose_error_details = True

        async with client_for(api) as client:
            response = await client.get("/price", params={"q": "갤럭시 S25 256"})

        assert response.status_code == 500
        assert "boom" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_retriever_not_initialized(self):
        async with client_for(app) as client:
            response = await client.get("/price", params={"q": "갤럭시 S25 256"})

        assert response.status_code == 503


class TestKakaoSkill:
    """Tests for POST /kakao/skill."""

    @pytest.mark.asyncio
    async def test_answer_in_envelope(self, api):
        payload = {
            "userRequest": {"utterance": "갤럭시 Z폴드6 256", "user": {"id": "abc"}},
            "bot": {"id": "bot"},
        }

        async with client_for(api) as client:
            response = await client.post("/kakao/skill", json=payload)

        assert response.status_code == 200
        text = kakao_text(response.json())
        assert "가장 가까운 512GB 기준으로 안내드립니다." in text

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [{}, {"userRequest": {}}, {"userRequest": {"utterance": "  "}}, {"userRequest": None}],
    )
    async def test_missing_utterance(self, api, payload):
        async with client_for(api) as client:
            response = await client.post("/kakao/skill", json=payload)

        assert response.status_code == 200
        assert kakao_text(response.json()) == GUIDANCE_TEMPLATE

    @pytest.mark.asyncio
    async def test_overlong_utterance(self, api):
        payload = {"userRequest": {"utterance": "가" * (MAX_QUESTION_LENGTH + 1)}}

        async with client_for(api) as client:
            response = await client.post("/kakao/skill", json=payload)

        assert response.status_code == 200
        assert kakao_text(response.json()) == GUIDANCE_TEMPLATE

    @pytest.mark.asyncio
    async def test_malformed_json(self, api):
        async with client_for(api) as client:
            response = await client.post(
                "/kakao/skill",
                content=b"{not json",
                headers={"Content-Type": "application/json"},
            )

        assert response.status_code == 200
        assert kakao_text(response.json()) == GUIDANCE_TEMPLATE

    @pytest.mark.asyncio
    async def test_internal_error(self, api):
        api.state.retriever = PriceRetriever(
            RecordRepository(FailingSheetSource(SheetSourceError("quota exceeded")))
        )

        async with client_for(api) as client:
            response = await client.post(
                "/kakao/skill", json={"userRequest": {"utterance": "갤럭시 S25 256"}}
            )

        assert response.status_code == 500
        assert kakao_text(response.json()) == KAKAO_APOLOGY_MESSAGE
