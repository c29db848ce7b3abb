"""Fuzzy matching of a model query against the catalog of known models."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from rapidfuzz import fuzz, process

from phone_price.core.records import PriceRecord, normalize_model_name
from phone_price.utils.logger import get_logger

logger = get_logger(__name__)

# English spellings folded onto the Korean ones before scoring, so that
# "아이폰16프로맥스" and "아이폰16promax" compare as equal. Order matters.
VARIANT_FOLDS: tuple[tuple[str, str], ...] = (
    ("promax", "프로맥스"),
    ("pro", "프로"),
    ("max", "맥스"),
    ("plus", "플러스"),
    ("ultra", "울트라"),
    ("edge", "엣지"),
    ("mini", "미니"),
    ("flip", "플립"),
    ("fold", "폴드"),
    ("note", "노트"),
    ("galaxy", "갤럭시"),
    ("iphone", "아이폰"),
)


@dataclass(frozen=True)
class Rating:
    target: str
    rating: float


@dataclass(frozen=True)
class BestMatch:
    """Outcome of ``find_best_match``.

    Attributes:
        target: Best scoring candidate.
        rating: Its similarity in [0, 1].
        index: Position of the candidate in the input.
        ratings: Scores of every candidate in input order.
    """

    target: str
    rating: float
    index: int
    ratings: tuple[Rating, ...] = field(default_factory=tuple)


def _strip_spaces(text: str) -> str:
    return "".join(text.split())


def compare_two_strings(first: str, second: str) -> float:
    """Normalized Indel similarity of two strings, whitespace ignored.

    Identical strings score 1.0, strings with no character in common 0.0.

    Example:
        >>> round(compare_two_strings("아이폰16", "아이폰16프로"), 3)
        0.833
    """
    return fuzz.ratio(first, second, processor=_strip_spaces) / 100.0


def fold_variants(model_norm: str) -> str:
    folded = model_norm
    for english, korean in VARIANT_FOLDS:
        folded = folded.replace(english, korean)
    return folded


def _match_key(model: str) -> str:
    return fold_variants(normalize_model_name(model))


def find_best_match(query: str, candidates: Sequence[str]) -> BestMatch | None:
    """Rank ``candidates`` by similarity to ``query``.

    The highest score wins; ties go to the earliest candidate. Some
    candidate is always returned when the list is non-empty, however low
    its score: callers decide what "not found" means after filtering.

    Args:
        query: Normalized model query (e.g. "갤럭시s25").
        candidates: Normalized model identifiers, deduplicated.

    Returns:
        BestMatch, or None when there are no candidates.
    """
    if not candidates:
        return None

    best = process.extractOne(
        query, candidates, scorer=fuzz.ratio, processor=_match_key, score_cutoff=0
    )
    # nothing in common with any candidate
    target, score, index = best if best is not None else (candidates[0], 0.0, 0)
    key = _match_key(query)
    ratings = tuple(
        Rating(candidate, fuzz.ratio(key, _match_key(candidate)) / 100.0)
        for candidate in candidates
    )

    logger.debug(f"Best model match for '{query}': {target} ({score:.1f})")
    return BestMatch(target=target, rating=score / 100.0, index=index, ratings=ratings)


def unique_models(records: Iterable[PriceRecord]) -> list[str]:
    """Distinct ``model_norm`` values in first-seen order."""
    return list(dict.fromkeys(record.model_norm for record in records))
