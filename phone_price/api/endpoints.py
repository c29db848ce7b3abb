"""API endpoint handlers for phone price questions."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from phone_price.api.models import (
    KakaoSkillPayload,
    KakaoSkillResponse,
    PriceQueryResponse,
    PriceRequest,
)
from phone_price.core.price_retriever import PriceAnswer, PriceRetriever
from phone_price.core.query_parser import QueryParserError
from phone_price.core.response_formatter import GUIDANCE_TEMPLATE
from phone_price.core.sheet_source import SheetSourceError
from phone_price.utils.logger import get_logger, log_exception

logger = get_logger(__name__)

USAGE_HINT = "질문을 입력해주세요. (예: /price?q=갤럭시 S25 256 SK 번호이동)"
MAX_QUESTION_LENGTH = 500
SHEET_UNAVAILABLE_MESSAGE = "가격표를 불러오지 못했습니다. 잠시 후 다시 시도해주세요."
APOLOGY_MESSAGE = "죄송합니다. 처리 중 오류가 발생했습니다."
KAKAO_APOLOGY_MESSAGE = "서비스에 문제가 발생했습니다. 잠시 후 다시 시도해주세요."

# Create router
router = APIRouter()


def get_retriever(request: Request) -> PriceRetriever:
    """Get the PriceRetriever instance from app state.

    Raises:
        HTTPException: If the retriever is not initialized.
    """
    if not hasattr(request.app.state, "retriever"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Price retriever not initialized",
        )
    return request.app.state.retriever


def _error_detail(request: Request, message: str, error: Exception) -> str:
    if getattr(request.app.state, "expose_error_details", False):
        return f"{message} ({error})"
    return message


async def _answer_price_question(request: Request, question: Optional[str]) -> PriceQueryResponse:
    if question is None or not question.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=USAGE_HINT)

    question = question.strip()
    if len(question) > MAX_QUESTION_LENGTH:
        logger.info(f"Price question of {len(question)} characters rejected")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=USAGE_HINT)
    retriever = get_retriever(request)

    try:
        logger.info(f"Price question received: {question}")
        answer: PriceAnswer = await run_in_threadpool(retriever.answer, question)

    except QueryParserError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=USAGE_HINT) from e
    except SheetSourceError as e:
        logger.error(f"Price table unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=_error_detail(request, SHEET_UNAVAILABLE_MESSAGE, e),
        ) from e
    except Exception as e:
        log_exception(logger, "Unexpected error while answering price question", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_error_detail(request, APOLOGY_MESSAGE, e),
        ) from e

    logger.info(f"Answered price question ({answer.scenario.value}, {answer.record_count} records)")

    return PriceQueryResponse(
        query=question,
        scenario=answer.scenario.value,
        response=answer.text,
        query_breakdown=answer.query.breakdown() if answer.query else {},
    )


@router.get("/price", response_model=PriceQueryResponse, status_code=status.HTTP_200_OK)
async def get_price(
    request: Request,
    q: Optional[str] = Query(default=None, description="Price question"),
) -> PriceQueryResponse:
    """Answer a price question passed as a query parameter.

    Example:
        ```bash
        curl "http://localhost:8000/price?q=갤럭시 S25 256 SK 번호이동"
        ```

        Response:
        ```json
        {
            "query": "갤럭시 S25 256 SK 번호이동",
            "scenario": "model_capacity_carrier",
            "response": "💰 가격 정보 - 갤럭시 S25 256GB ...",
            "query_breakdown": {
                "brand": "갤럭시",
                "model": "갤럭시 S25",
                "capacity": "256",
                "telecom": "SK",
                "type": "번호이동"
            }
        }
        ```
    """
    return await _answer_price_question(request, q)


@router.post("/price", response_model=PriceQueryResponse, status_code=status.HTTP_200_OK)
async def post_price(
    request: Request,
    price_request: Optional[PriceRequest] = Body(default=None),
) -> PriceQueryResponse:
    """Answer a price question sent as ``{"query": "..."}``.

    Returns 400 with a usage hint when the question is missing, 503 when
    the price table cannot be read, and 500 on any other failure.
    """
    question = price_request.query if price_request else None
    return await _answer_price_question(request, question)


def _kakao_reply(text: str, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=KakaoSkillResponse.from_text(text).model_dump(),
    )


@router.post("/kakao/skill")
async def kakao_skill(request: Request) -> JSONResponse:
    """Kakao i Open Builder skill webhook.

    Reads ``userRequest.utterance`` and replies with a single simpleText
    output. Unreadable payloads and empty or over-long utterances get the
    guidance text.
    """
    try:
        payload = KakaoSkillPayload.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.warning(f"Unreadable Kakao skill payload: {e}")
        return _kakao_reply(GUIDANCE_TEMPLATE)

    utterance = payload.utterance
    if utterance is None:
        logger.info("Kakao skill request without utterance")
        return _kakao_reply(GUIDANCE_TEMPLATE)
    if len(utterance) > MAX_QUESTION_LENGTH:
        logger.info(f"Kakao utterance of {len(utterance)} characters rejected")
        return _kakao_reply(GUIDANCE_TEMPLATE)

    try:
        retriever = get_retriever(request)
        logger.info(f"Kakao utterance received: {utterance}")
        answer = await run_in_threadpool(retriever.answer, utterance)
    except Exception as e:
        log_exception(logger, "Kakao skill request failed", e)
        return _kakao_reply(KAKAO_APOLOGY_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return _kakao_reply(answer.text)
