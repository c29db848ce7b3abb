"""Price lookup pipeline: question in, answer text out.

The pipeline is stateless per request:

1. classify the question and extract fields with the pattern parser;
2. comparison questions get the guidance answer straight away;
3. informal questions go through the LLM fallback; unresolved ones get
   the guidance answer;
4. load the price records from the sheet;
5. match the model against the catalog, filter, and format the answer in
   the shape the known fields call for.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from phone_price.core.llm_query_parser import LLMQueryParser, OpenAIChatClient
from phone_price.core.model_matcher import find_best_match, unique_models
from phone_price.core.policy import MatchingPolicy
from phone_price.core.query_parser import QueryParser, QueryParserError, scenario_for
from phone_price.core.record_filter import FilterResult, RecordFilter
from phone_price.core.records import ParsedQuery, PriceRecord, Scenario
from phone_price.core.response_formatter import ResponseFormatter
from phone_price.core.sheet_source import GoogleSheetSource, RecordRepository, SheetSourceError
from phone_price.utils.config import Settings, get_settings
from phone_price.utils.logger import get_logger, log_exception

logger = get_logger(__name__)

_DIGITS_RE = re.compile(r"\d+")


class PriceRetrieverError(Exception):
    """Raised when the pipeline fails for a reason other than bad input or sheet access."""


@dataclass
class PriceAnswer:
    """Answer to one question.

    Attributes:
        question: The question as received.
        scenario: Scenario the classifier detected.
        text: Rendered answer.
        query: Fields the answer was built from (after the fallback, if any).
        matched_model: Normalized model identifier the question matched.
        substituted_capacity: Capacity used instead of the requested one.
        record_count: Records behind the answer.
    """

    question: str
    scenario: Scenario
    text: str
    query: ParsedQuery | None = None
    matched_model: str | None = None
    substituted_capacity: str | None = None
    record_count: int = 0
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.scenario.value}] {self.text}"


class PriceRetriever:
    """Answers phone price questions from the sheet records.

    Attributes:
        repository: Source of price records.
        parser: Pattern parser and classifier.
        resolver: Optional LLM fallback for informal questions.
    """

    def __init__(
        self,
        repository: RecordRepository,
        parser: QueryParser | None = None,
        resolver: LLMQueryParser | None = None,
        record_filter: RecordFilter | None = None,
        formatter: ResponseFormatter | None = None,
        policy: MatchingPolicy | None = None,
    ) -> None:
        self.repository = repository
        self.policy = policy or MatchingPolicy()
        self.parser = parser or QueryParser(self.policy)
        self.resolver = resolver
        self.record_filter = record_filter or RecordFilter(self.policy)
        self.formatter = formatter or ResponseFormatter(self.policy)

        logger.info(
            f"PriceRetriever initialized "
            f"(fallback {'enabled' if resolver else 'disabled'})"
        )

    def answer(self, question: str) -> PriceAnswer:
        """Answer a price question.

        Args:
            question: Free-text question (e.g. "갤럭시 S25 256 SK 번호이동 얼마예요?").

        Returns:
            PriceAnswer with the rendered text. "Not found" is a normal answer.

        Raises:
            QueryParserError: If the question is empty.
            SheetSourceError: If the price table cannot be read.
            PriceRetrieverError: On any other failure.
        """
        try:
            logger.info(f"Answering question: {question}")
            parsed = self.parser.parse(question)

            if parsed.scenario is Scenario.COMPARISON:
                logger.info("Comparison question; asking for explicit conditions")
                return self._guidance(parsed)

            query = parsed
            if parsed.scenario is Scenario.INFORMAL:
                resolved = self.resolver.resolve(question) if self.resolver else None
                if resolved is None:
                    logger.info("Informal question left unresolved; asking for details")
                    return self._guidance(parsed)
                query = resolved

            records = self._load_records()
            return self._answer_query(parsed.scenario, query, records)

        except (QueryParserError, SheetSourceError):
            raise
        except Exception as e:
            log_exception(
                logger,
                f"Failed to answer question: {question}",
                e,
                extra={"question": question},
            )
            raise PriceRetrieverError(f"Failed to answer question: {e}") from e

    def _guidance(self, parsed: ParsedQuery) -> PriceAnswer:
        return PriceAnswer(
            question=parsed.original_question,
            scenario=parsed.scenario,
            text=self.formatter.guidance(),
            query=parsed,
            details={"missing_fields": self.parser.missing_fields(parsed)},
        )

    def _load_records(self) -> list[PriceRecord]:
        records = self.repository.load_records()
        known = [r for r in records if r.has_known_section]
        if len(known) != len(records):
            logger.warning(
                f"Ignoring {len(records) - len(known)} records from worksheets "
                f"without a recognizable carrier/channel"
            )
        logger.info(f"Loaded {len(known)} records")
        return known

    def _answer_query(
        self,
        detected: Scenario,
        query: ParsedQuery,
        records: list[PriceRecord],
    ) -> PriceAnswer:
        brand_records = self.record_filter.filter_by_brand(records, query.brand)

        if query.model is None:
            listed = [
                r for r in brand_records if self.record_filter.capacity_matches(r, query.capacity)
            ]
            return PriceAnswer(
                question=query.original_question,
                scenario=detected,
                text=self.formatter.format_model_list(listed, query),
                query=query,
                record_count=len(listed),
            )

        pool = brand_records or records
        model_norm = query.model_norm or ""

        if query.capacity is None:
            listed = self._records_for_keyword(pool, model_norm)
            return PriceAnswer(
                question=query.original_question,
                scenario=detected,
                text=self.formatter.format_model_list(listed, query),
                query=query,
                record_count=len(listed),
            )

        matched_model = self._match_model(pool, model_norm)
        if matched_model is None:
            return self._not_found(detected, query)

        result = self.record_filter.apply(
            pool,
            model_norm=matched_model,
            capacity=query.capacity,
            telecom=query.telecom,
            txn_type=query.type,
        )
        if not result:
            return self._not_found(detected, query, matched_model)

        return PriceAnswer(
            question=query.original_question,
            scenario=detected,
            text=self._format_prices(result, query),
            query=query,
            matched_model=matched_model,
            substituted_capacity=result.substituted_capacity,
            record_count=len(result),
        )

    def _format_prices(self, result: FilterResult, query: ParsedQuery) -> str:
        shape = scenario_for(query)
        if shape is Scenario.FULL_CONDITION:
            return self.formatter.format_full_condition(result, query)
        if shape is Scenario.MODEL_CAPACITY_CARRIER and query.telecom is not None:
            return self.formatter.format_breakdown(result, query, telecoms=(query.telecom,))
        return self.formatter.format_breakdown(result, query)

    def _records_for_keyword(self, pool: list[PriceRecord], model_norm: str) -> list[PriceRecord]:
        """Records of every model containing the keyword, else of the best match."""
        listed = self.record_filter.filter_by_keyword(pool, model_norm)
        if listed:
            return listed

        matched = self._match_model(pool, model_norm)
        return [r for r in pool if r.model_norm == matched] if matched else []

    @staticmethod
    def _match_model(pool: list[PriceRecord], model_norm: str) -> Optional[str]:
        """Best catalog match among models carrying the same numbers.

        "아이폰17" scores high against "아이폰16"; requiring the query's digit
        runs keeps a missing generation from being answered with another one.
        """
        catalog = unique_models(pool)
        digits = set(_DIGITS_RE.findall(model_norm))
        if digits:
            catalog = [c for c in catalog if digits <= set(_DIGITS_RE.findall(c))]

        best = find_best_match(model_norm, catalog)
        if best is None:
            logger.info(f"No catalog model fits '{model_norm}'")
            return None

        logger.info(f"Matched model '{model_norm}' -> '{best.target}' ({best.rating:.3f})")
        return best.target

    def _not_found(
        self, detected: Scenario, query: ParsedQuery, matched_model: str | None = None
    ) -> PriceAnswer:
        return PriceAnswer(
            question=query.original_question,
            scenario=detected,
            text=self.formatter.not_found(),
            query=query,
            matched_model=matched_model,
        )


def build_retriever(settings: Settings) -> PriceRetriever:
    """Wire the sheet source and the optional OpenAI fallback from settings."""
    policy = MatchingPolicy.from_settings(settings)
    parser = QueryParser(policy)

    source = GoogleSheetSource(
        spreadsheet_id=settings.spreadsheet_id,
        credentials_file=settings.google_credentials_file,
        credentials_json=settings.google_credentials_json,
        cell_range=settings.sheet_range,
        request_timeout=settings.sheet_fetch_timeout_seconds,
    )
    repository = RecordRepository(
        source,
        fetch_timeout=settings.sheet_fetch_timeout_seconds,
        max_workers=settings.sheet_fetch_workers,
        cache_ttl=settings.record_cache_ttl_seconds,
    )

    resolver = None
    if settings.openai_api_key:
        client = OpenAIChatClient(
            api_key=settings.openai_api_key,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout_seconds,
        )
        resolver = LLMQueryParser(
            client,
            parser=parser,
            cache_size=settings.query_parser_cache_size,
        )
    else:
        logger.warning("No OpenAI API key configured; informal questions get the guidance answer")

    return PriceRetriever(repository, parser=parser, resolver=resolver, policy=policy)


def get_answer(question: str) -> PriceAnswer:
    """Convenience function answering one question with the loaded settings.

    Example:
        >>> load_settings()
        >>> print(get_answer("갤럭시 S25 256 SK 번호이동 얼마예요?").text)
    """
    return build_retriever(get_settings()).answer(question)
