"""LLM fallback for questions the pattern parser cannot read.

Informal questions ("갤s25 프맥 256 번이 얼마?", typos, jammed tokens) are
sent to an OpenAI chat model with a fixed instruction prompt. The reply is
expected to contain a JSON object keyed by Korean labels (브랜드, 기본모델,
옵션, 용량, 통신사, 타입) or their English aliases. It is validated with a
pydantic model and folded back through the pattern parser's tables into a
regular ``ParsedQuery``; alias keys never leave this module.

The fallback is advisory: every failure (network error, prose reply,
invalid JSON, no usable field) resolves to ``None`` and the caller asks the
user for more detail.
"""

from __future__ import annotations

import json
import re
from dataclasses import replace
from functools import lru_cache
from typing import Any, Optional, Protocol

from openai import OpenAI
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from phone_price.core.query_parser import QueryParser, scenario_for
from phone_price.core.records import ParsedQuery, Scenario
from phone_price.utils.logger import get_logger

logger = get_logger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

_NULL_WORDS = {"", "null", "none", "없음", "n/a", "-"}

SYSTEM_PROMPT = """사용자의 휴대폰 가격 문의를 분석하여 다음 정보를 추출해주세요.

다음 JSON 형태로만 응답해주세요:
{
    "브랜드": "갤럭시 또는 아이폰",
    "기본모델": "기본 모델명",
    "옵션": "추가 옵션",
    "용량": "숫자만 (예: 128, 256, 512)",
    "통신사": "SK, KT, LG 중 하나",
    "타입": "번호이동 또는 기기변경"
}

규칙:
- 브랜드: 갤럭시/Galaxy/갤/삼성 → "갤럭시", 아이폰/iPhone/아이뽄/애플 → "아이폰"
- 기본모델: S24, S25, 16, 15, 플립6, 폴드6 등 기본 모델명만 (Z 제외)
- 옵션: 플러스, 울트라, 프로, 프로맥스, 엣지, SE, FE 등
- 용량: 128, 256, 512 등 숫자만
- 통신사: SK, KT, LG만 인식 (SKT → SK, LGU+/유플러스 → LG)
- 타입: 번호이동/번이 → "번호이동", 기기변경/기변 → "기기변경"
- 정보가 없으면 null
- "+", "plus", "플러스"는 모두 "플러스"로 정규화
- "프맥", "플맥", "프로맥"은 "프로맥스"로 정규화
- 오타와 띄어쓰기 없는 입력도 최대한 해석

예시:
- "갤럭시 S24 울트라" → 기본모델: "S24", 옵션: "울트라"
- "아이폰 16 프맥" → 브랜드: "아이폰", 기본모델: "16", 옵션: "프로맥스"
- "갤s25256sk번이" → 브랜드: "갤럭시", 기본모델: "S25", 용량: "256", 통신사: "SK", 타입: "번호이동"
- "갤럭시 Z플립6" → 기본모델: "플립6", 옵션: null
- "겔럭시 폴드6 512 기변" → 브랜드: "갤럭시", 기본모델: "폴드6", 용량: "512", 타입: "기기변경"
- "S24+" → 브랜드: "갤럭시", 기본모델: "S24", 옵션: "플러스"
- "16+" → 브랜드: "아이폰", 기본모델: "16", 옵션: "플러스"
- "15" → 브랜드: "아이폰", 기본모델: "15"
"""


class TextUnderstandingClient(Protocol):
    """Anything that turns an instruction prompt plus user text into text."""

    def complete(self, prompt: str, text: str) -> str: ...


class OpenAIChatClient:
    """Chat completion client used by the fallback resolver.

    Args:
        api_key: OpenAI API key.
        model: Chat model name.
        temperature: Sampling temperature.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        timeout: float = 30.0,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self._client = OpenAI(api_key=api_key, timeout=timeout, max_retries=1)

    def complete(self, prompt: str, text: str) -> str:
        response = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": prompt},
                {"role": "user", "content": f'사용자 입력: "{text}"'},
            ],
            response_format={"type": "json_object"},
            temperature=self.temperature,
        )
        return (response.choices[0].message.content or "").strip()


class LLMParsedQuery(BaseModel):
    """Fields of the model's JSON reply, accepting Korean or English keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    brand: Optional[str] = Field(None, validation_alias=AliasChoices("브랜드", "brand"))
    base_model: Optional[str] = Field(
        None, validation_alias=AliasChoices("기본모델", "모델", "base_model", "model")
    )
    option: Optional[str] = Field(
        None, validation_alias=AliasChoices("옵션", "option", "variant")
    )
    capacity: Optional[str] = Field(
        None, validation_alias=AliasChoices("용량", "capacity", "storage")
    )
    telecom: Optional[str] = Field(
        None, validation_alias=AliasChoices("통신사", "telecom", "carrier")
    )
    type: Optional[str] = Field(
        None, validation_alias=AliasChoices("타입", "가입유형", "type")
    )

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        text = str(value).strip()
        return None if text.lower() in _NULL_WORDS else text


def extract_json_object(reply: str) -> Optional[dict[str, Any]]:
    """Parse the first ``{...}`` block of a reply, ignoring code fences.

    Example:
        >>> extract_json_object('```json\\n{"브랜드": "갤럭시"}\\n```')
        {'브랜드': '갤럭시'}
    """
    match = _JSON_OBJECT_RE.search(reply or "")
    if not match:
        return None
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


class LLMQueryParser:
    """Resolves informal questions through a text-understanding client.

    Replies are cached per normalized question (LRU); failed calls are not
    cached.

    Example:
        >>> resolver = LLMQueryParser(OpenAIChatClient(api_key))
        >>> resolver.resolve("갤s25 256 sk 번이")
        ParsedQuery(brand='갤럭시', model='갤럭시 S25', capacity='256', ...)
    """

    def __init__(
        self,
        client: TextUnderstandingClient,
        parser: QueryParser | None = None,
        cache_size: int = 1000,
        prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self.client = client
        self.parser = parser or QueryParser()
        self.prompt = prompt
        self.cache_size = cache_size
        self._complete_with_cache = lru_cache(maxsize=cache_size)(self._complete)

        logger.info(f"LLMQueryParser initialized with cache_size={cache_size}")

    def _complete(self, normalized_question: str) -> str:
        return self.client.complete(self.prompt, normalized_question)

    def resolve(self, question: str) -> Optional[ParsedQuery]:
        """Recover structured fields from an informal question.

        Args:
            question: The question as received.

        Returns:
            ParsedQuery with the scenario implied by the recovered fields,
            or None when nothing usable came back.
        """
        if not question or not question.strip():
            return None

        normalized = " ".join(question.lower().split())
        try:
            reply = self._complete_with_cache(normalized)
        except Exception as e:
            logger.warning(f"LLM fallback call failed for '{question}': {e}")
            return None

        logger.debug(f"LLM reply: {reply}")

        payload = extract_json_object(reply)
        if payload is None:
            logger.warning(f"LLM reply contained no JSON object: {reply[:200]!r}")
            return None

        try:
            fields = LLMParsedQuery.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"LLM reply failed validation: {e}")
            return None

        query = self.to_parsed_query(fields, question.strip())
        if query is None:
            logger.info(f"LLM fallback recovered no usable fields for '{question}'")
            return None

        logger.info(f"LLM resolved '{question}' -> {query}")
        return query

    def to_parsed_query(self, fields: LLMParsedQuery, question: str) -> Optional[ParsedQuery]:
        """Fold validated reply fields into a ParsedQuery.

        Returns None when neither brand nor model could be recovered.
        """
        brand = self.parser.normalize_brand(fields.brand)

        model_text = " ".join(
            part for part in (brand or fields.brand, fields.base_model, fields.option) if part
        )
        model = None
        if fields.base_model:
            brand, model = self.parser.extract_model(model_text.lower(), brand)
            if model is None:
                model = model_text

        query = ParsedQuery(
            brand=brand,
            model=model,
            capacity=self.parser.normalize_capacity(fields.capacity),
            telecom=self.parser.normalize_telecom(fields.telecom),
            type=self.parser.normalize_type(fields.type),
            original_question=question,
        )
        scenario = scenario_for(query)
        if scenario is Scenario.INFORMAL:
            return None
        return replace(query, scenario=scenario)

    def clear_cache(self) -> None:
        self._complete_with_cache.cache_clear()
        logger.info("LLM query parser cache cleared")

    def get_cache_info(self) -> dict[str, Any]:
        """Cache statistics: hits, misses, size, maxsize and hit_rate."""
        info = self._complete_with_cache.cache_info()
        total = info.hits + info.misses
        return {
            "hits": info.hits,
            "misses": info.misses,
            "size": info.currsize,
            "maxsize": info.maxsize,
            "hit_rate": info.hits / total if total > 0 else 0.0,
        }
