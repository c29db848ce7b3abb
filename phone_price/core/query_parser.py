"""Question classification and pattern-based field extraction.

This module reads brand, model, capacity, carrier and subscription type from
Korean phone price questions ("갤럭시 S25 256 SK 번호이동 얼마예요?") with
regex rules, and assigns the question one of the ``Scenario`` classes.

Scenario priority, highest first:

1. comparison - comparison wording always gets the guidance answer, even
   when every field was extracted;
2. informal - slang, typos, jammed tokens, or no recognizable brand/model;
   these go to the natural-language fallback;
3. full_condition, model_capacity_carrier, model_capacity, model_only -
   decided by which of capacity, carrier and type are present.
"""

from __future__ import annotations

import re
from typing import Optional

from phone_price.core.policy import DEFAULT_POLICY, GALAXY, IPHONE, MatchingPolicy
from phone_price.core.records import (
    KNOWN_CHANNELS,
    ParsedQuery,
    Scenario,
    Telecom,
    TransactionType,
)
from phone_price.utils.logger import get_logger

logger = get_logger(__name__)

_LATIN_RE = re.compile(r"[a-z]")


class QueryParserError(Exception):
    """Raised when a question cannot be parsed at all."""


def _alias_pattern(aliases: tuple[str, ...]) -> re.Pattern[str]:
    """Compile aliases into one alternation, longest first.

    Aliases containing Latin letters get letter-boundary lookarounds, so
    "sk" matches "SK와" but not "task", and "kt" does not match "skt".
    """
    parts = []
    for alias in sorted(aliases, key=len, reverse=True):
        escaped = re.escape(alias)
        if _LATIN_RE.search(alias):
            escaped = rf"(?<![a-z]){escaped}(?![a-z])"
        parts.append(escaped)
    return re.compile("|".join(parts))


def scenario_for_fields(
    capacity: Optional[str],
    telecom: Optional[Telecom],
    txn_type: Optional[TransactionType],
) -> Scenario:
    """Scenario of a question whose brand or model is known."""
    if capacity is None:
        return Scenario.MODEL_ONLY
    if telecom is not None and txn_type is not None:
        return Scenario.FULL_CONDITION
    if telecom is not None:
        return Scenario.MODEL_CAPACITY_CARRIER
    return Scenario.MODEL_CAPACITY


def scenario_for(query: ParsedQuery) -> Scenario:
    """Shape scenario implied by the fields of ``query``.

    Used after the fallback resolver filled in fields for an informal
    question. Without brand and model nothing can be looked up.
    """
    if not (query.brand or query.model):
        return Scenario.INFORMAL
    return scenario_for_fields(query.capacity, query.telecom, query.type)


class QueryParser:
    """Pattern-based parser for phone price questions.

    Example:
        >>> parser = QueryParser()
        >>> query = parser.parse("갤럭시 S25 256 SK 번호이동 얼마예요?")
        >>> query.scenario, query.model, query.capacity, query.telecom.value
        (<Scenario.FULL_CONDITION: 'full_condition'>, '갤럭시 S25', '256', 'SK')
    """

    # Galaxy series: S/A-series ("s25", "a 35"), Note ("노트20"), Z Flip/Fold.
    GALAXY_SERIES_PATTERN = re.compile(r"(?<![a-z])([sa])\s?(\d{2})(?![\d])")
    GALAXY_NOTE_PATTERN = re.compile(r"(?:노트|note)\s?(\d{1,2})(?![\d])")
    GALAXY_FOLDABLE_PATTERN = re.compile(r"(?:z\s*)?(플립|폴드|flip|fold)\s*(\d{1,2})?(?![\d])")

    # iPhone generations are bare two-digit numbers ("아이폰 16").
    IPHONE_GENERATION_PATTERN = re.compile(r"(?<![\da-z])(1[1-9]|2\d)(?![\d만천원개월일년%])")

    NUMBER_PATTERN = re.compile(r"\d+")
    TERABYTE_PATTERN = re.compile(r"(?<![\d.])(\d{1,2})\s*(?:tb|테라)(?![a-z])")

    FOLDABLE_NAMES = {"플립": "플립", "flip": "플립", "폴드": "폴드", "fold": "폴드"}

    def __init__(self, policy: MatchingPolicy | None = None) -> None:
        """Initialize the parser from a matching policy."""
        self.policy = policy or DEFAULT_POLICY
        self._informal_patterns = [re.compile(p) for p in self.policy.informal_patterns]
        self._telecom_patterns = {
            telecom: _alias_pattern(aliases)
            for telecom, aliases in self.policy.telecom_aliases.items()
        }
        self._type_patterns = {
            txn_type: _alias_pattern(aliases)
            for txn_type, aliases in self.policy.type_aliases.items()
        }
        self._variant_patterns = [
            (re.compile(rf"^\s*(?:{pattern})(?![a-z])"), display)
            for pattern, display in self.policy.variant_suffixes
        ]
        logger.debug("QueryParser initialized")

    def parse(self, question: str) -> ParsedQuery:
        """Parse and classify a question.

        Args:
            question: Free-text question.

        Returns:
            Immutable ParsedQuery with the extracted fields and scenario.

        Raises:
            QueryParserError: If the question is empty.
        """
        if not question or not question.strip():
            raise QueryParserError("Question cannot be empty")

        text = question.strip()
        lowered = text.lower()

        brand = self.extract_brand(lowered)
        brand, model = self.extract_model(lowered, brand)
        capacity = self.extract_capacity(lowered)
        telecom = self.extract_telecom(lowered)
        txn_type = self.extract_type(lowered)

        if self.is_comparison(lowered):
            scenario = Scenario.COMPARISON
        elif self.is_informal(lowered) or not (brand or model):
            scenario = Scenario.INFORMAL
        else:
            scenario = scenario_for_fields(capacity, telecom, txn_type)

        result = ParsedQuery(
            brand=brand,
            model=model,
            capacity=capacity,
            telecom=telecom,
            type=txn_type,
            scenario=scenario,
            original_question=text,
        )
        logger.info(f"Parsed question '{text}': {result}")
        return result

    def is_comparison(self, lowered: str) -> bool:
        """Comparison vocabulary, or "cheaper" wording set against a second option."""
        padded = f" {lowered} "
        if any(keyword in padded for keyword in self.policy.comparison_keywords):
            return True
        if not any(keyword in padded for keyword in self.policy.cheaper_keywords):
            return False
        return (
            any(frame in padded for frame in self.policy.comparison_frames)
            or self.names_two_options(lowered)
        )

    def names_two_options(self, lowered: str) -> bool:
        """True when two carriers, types, channels or brands are mentioned."""
        counts = (
            sum(1 for pattern in self._telecom_patterns.values() if pattern.search(lowered)),
            sum(1 for pattern in self._type_patterns.values() if pattern.search(lowered)),
            sum(1 for channel in KNOWN_CHANNELS if channel.value in lowered),
            sum(
                1
                for keywords in self.policy.brand_keywords.values()
                if any(keyword in lowered for keyword in keywords)
            ),
        )
        return max(counts) >= 2

    def is_informal(self, lowered: str) -> bool:
        for pattern in self._informal_patterns:
            if pattern.search(lowered):
                logger.debug(f"Informal pattern matched: {pattern.pattern}")
                return True
        return False

    def extract_brand(self, lowered: str) -> Optional[str]:
        """Return the brand whose keyword appears first in the question."""
        best: tuple[int, str] | None = None
        for brand, keywords in self.policy.brand_keywords.items():
            for keyword in keywords:
                position = lowered.find(keyword)
                if position >= 0 and (best is None or position < best[0]):
                    best = (position, brand)
        return best[1] if best else None

    def extract_model(
        self, lowered: str, brand: Optional[str]
    ) -> tuple[Optional[str], Optional[str]]:
        """Extract the model text, inferring the brand from it when missing.

        Returns:
            (brand, model) where model looks like "갤럭시 S25 울트라" or None.
        """
        series: Optional[str] = None
        end = 0

        if brand in (None, GALAXY):
            foldable = self.GALAXY_FOLDABLE_PATTERN.search(lowered)
            note = self.GALAXY_NOTE_PATTERN.search(lowered)
            galaxy = self.GALAXY_SERIES_PATTERN.search(lowered)
            if foldable:
                name = self.FOLDABLE_NAMES[foldable.group(1)]
                series = f"Z{name}{foldable.group(2) or ''}"
                end = foldable.end()
            elif note:
                series = f"노트{note.group(1)}"
                end = note.end()
            elif galaxy:
                series = f"{galaxy.group(1).upper()}{galaxy.group(2)}"
                end = galaxy.end()
            if series:
                brand = GALAXY

        if series is None and brand in (None, IPHONE):
            generation = self.IPHONE_GENERATION_PATTERN.search(lowered)
            if generation:
                series = generation.group(1)
                end = generation.end()
                brand = IPHONE

        if series is None:
            return brand, None

        model = f"{brand} {series}"
        variant = self.extract_variant(lowered[end:])
        if variant:
            model = f"{model} {variant}"

        logger.debug(f"Extracted model: {model}")
        return brand, model

    def extract_variant(self, tail: str) -> Optional[str]:
        """Variant suffix directly following the model series, if any."""
        for pattern, display in self._variant_patterns:
            if pattern.search(tail):
                return display
        return None

    def extract_capacity(self, lowered: str) -> Optional[str]:
        """Largest storage size mentioned in the question.

        Model digits (the 16 in "아이폰 16", the 25 in "S25") fall below
        ``policy.min_capacity`` and never count. Terabytes ("1TB", "1테라")
        come back as the bare number, the way a "1TB" sheet cell is read.
        """
        candidates = [
            (self.policy.capacity_gb(str(int(match.group(1)))), str(int(match.group(1))))
            for match in self.TERABYTE_PATTERN.finditer(lowered)
            if self.policy.is_terabytes(str(int(match.group(1))))
        ]
        candidates.extend(
            (int(token), str(int(token)))
            for token in self.NUMBER_PATTERN.findall(lowered)
            if self.policy.is_capacity(int(token))
        )
        if not candidates:
            return None
        capacity = max(candidates)[1]
        logger.debug(f"Extracted capacity: {capacity}")
        return capacity

    def extract_telecom(self, lowered: str) -> Optional[Telecom]:
        """Carrier mentioned first in the question."""
        return self._first_match(lowered, self._telecom_patterns)

    def extract_type(self, lowered: str) -> Optional[TransactionType]:
        return self._first_match(lowered, self._type_patterns)

    @staticmethod
    def _first_match(lowered: str, patterns: dict) -> Optional[Telecom | TransactionType]:
        best = None
        for value, pattern in patterns.items():
            match = pattern.search(lowered)
            if match and (best is None or match.start() < best[0]):
                best = (match.start(), value)
        return best[1] if best else None

    def normalize_telecom(self, value: Optional[str]) -> Optional[Telecom]:
        """Map free-form carrier text (e.g. "SKT", "유플러스") to a carrier."""
        if not value:
            return None
        return self.extract_telecom(str(value).strip().lower())

    def normalize_type(self, value: Optional[str]) -> Optional[TransactionType]:
        if not value:
            return None
        return self.extract_type(str(value).strip().lower())

    def normalize_brand(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        return self.extract_brand(str(value).strip().lower())

    def normalize_capacity(self, value: Optional[str | int]) -> Optional[str]:
        if value is None:
            return None
        return self.extract_capacity(str(value).lower())

    def missing_fields(self, query: ParsedQuery) -> list[str]:
        """Names of the fields a full-condition question would still need.

        Example:
            >>> parser.missing_fields(parser.parse("갤럭시 S25 256"))
            ['telecom', 'type']
        """
        required = {
            "model": query.model or query.brand,
            "capacity": query.capacity,
            "telecom": query.telecom,
            "type": query.type,
        }
        return [name for name, value in required.items() if not value]
