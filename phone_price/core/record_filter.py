"""Narrowing of the record set by model, capacity, carrier and type."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Optional

from phone_price.core.model_matcher import fold_variants
from phone_price.core.policy import DEFAULT_POLICY, GALAXY, IPHONE, MatchingPolicy
from phone_price.core.records import (
    UNSPECIFIED_CAPACITY,
    PriceRecord,
    Telecom,
    TransactionType,
)
from phone_price.utils.logger import get_logger

logger = get_logger(__name__)

# Model names that identify the brand without naming it ("S25 울트라", "Z플립6").
BRANDLESS_MODEL_PATTERNS: dict[str, re.Pattern[str]] = {
    GALAXY: re.compile(r"^(?:[sa]\s?\d{2}|z\s?(?:플립|폴드|flip|fold)|노트|note)"),
    IPHONE: re.compile(r"^(?:1[1-9]|2\d)(?!\d)"),
}


@dataclass(frozen=True)
class FilterResult:
    """Records left after filtering.

    Attributes:
        records: Matching records in input order.
        requested_capacity: Capacity the question asked for.
        substituted_capacity: Nearest available capacity used instead, when
            the requested one had no records. The formatter must disclose it.
    """

    records: tuple[PriceRecord, ...]
    requested_capacity: Optional[str] = None
    substituted_capacity: Optional[str] = None

    @property
    def capacity(self) -> Optional[str]:
        return self.substituted_capacity or self.requested_capacity

    def __len__(self) -> int:
        return len(self.records)

    def __bool__(self) -> bool:
        return bool(self.records)


class RecordFilter:
    """Applies the structured fields of a question to the record set.

    Fields that are None impose no constraint. A record whose capacity is
    the "기본" sentinel matches any requested capacity (single-configuration
    devices), unless the policy turns that off.

    Example:
        >>> result = RecordFilter().apply(records, model_norm="갤럭시s25",
        ...                               capacity="256", telecom=Telecom.SK)
        >>> len(result.records)
        4
    """

    def __init__(self, policy: MatchingPolicy | None = None) -> None:
        self.policy = policy or DEFAULT_POLICY

    def apply(
        self,
        records: Sequence[PriceRecord],
        model_norm: Optional[str] = None,
        capacity: Optional[str] = None,
        telecom: Optional[Telecom] = None,
        txn_type: Optional[TransactionType] = None,
        allow_substitution: bool = True,
    ) -> FilterResult:
        """Filter records, falling back to the nearest capacity when needed.

        Args:
            records: Records to narrow.
            model_norm: Matched normalized model identifier.
            capacity: Requested capacity (digit string).
            telecom: Requested carrier.
            txn_type: Requested subscription type.
            allow_substitution: Try the nearest available capacity when the
                requested one yields nothing.

        Returns:
            FilterResult with the surviving records.
        """
        base = [
            record
            for record in records
            if (model_norm is None or record.model_norm == model_norm)
            and (telecom is None or record.telecom == telecom)
            and (txn_type is None or record.type == txn_type)
        ]
        matched = tuple(r for r in base if self.capacity_matches(r, capacity))

        logger.info(
            f"Filtered {len(records)} records to {len(matched)} "
            f"(model={model_norm}, capacity={capacity}, "
            f"telecom={telecom.value if telecom else None}, "
            f"type={txn_type.value if txn_type else None})"
        )

        if matched or capacity is None or not allow_substitution:
            return FilterResult(matched, requested_capacity=capacity)

        nearest = self.nearest_capacity(base, capacity)
        if nearest is None:
            return FilterResult(matched, requested_capacity=capacity)

        substituted = tuple(r for r in base if self.capacity_matches(r, nearest))
        logger.info(
            f"No records for capacity {capacity}; using nearest capacity {nearest} "
            f"({len(substituted)} records)"
        )
        return FilterResult(
            substituted,
            requested_capacity=capacity,
            substituted_capacity=nearest,
        )

    def capacity_matches(self, record: PriceRecord, capacity: Optional[str]) -> bool:
        """Same storage size ("1" from a "1TB" cell equals "1024"), or "기본"."""
        if capacity is None or record.capacity == capacity:
            return True
        size = self.policy.capacity_gb(capacity)
        if size is not None and self.policy.capacity_gb(record.capacity) == size:
            return True
        return self.policy.unspecified_matches_any and record.capacity == UNSPECIFIED_CAPACITY

    def nearest_capacity(self, records: Iterable[PriceRecord], capacity: str) -> Optional[str]:
        """Available capacity closest to ``capacity`` (ties go to the smaller).

        Example:
            >>> RecordFilter().nearest_capacity(records_with_512_and_1024, "256")
            '512'
        """
        requested = self.policy.capacity_gb(capacity)
        if requested is None:
            return None
        available: dict[int, str] = {}
        for record in records:
            size = self.policy.capacity_gb(record.capacity)
            if size is not None:
                available.setdefault(size, record.capacity)
        if not available:
            return None
        nearest = min(available, key=lambda size: (abs(size - requested), size))
        return available[nearest]

    def filter_by_brand(
        self, records: Sequence[PriceRecord], brand: Optional[str]
    ) -> list[PriceRecord]:
        """Records whose model name belongs to ``brand``."""
        if brand is None:
            return list(records)

        keywords = self.policy.brand_keywords.get(brand, (brand.lower(),))
        brandless = BRANDLESS_MODEL_PATTERNS.get(brand)

        result = []
        for record in records:
            raw = record.model_raw.lower().strip()
            if any(keyword in raw for keyword in keywords) or (
                brandless is not None and brandless.search(raw)
            ):
                result.append(record)

        logger.debug(f"Brand filter '{brand}': {len(records)} -> {len(result)}")
        return result

    @staticmethod
    def filter_by_keyword(
        records: Sequence[PriceRecord], model_norm: str
    ) -> list[PriceRecord]:
        """Records whose normalized model contains ``model_norm``.

        English variant words are folded first, so "갤럭시s25" also finds
        "galaxys25ultra".
        """
        keyword = fold_variants(model_norm)
        return [record for record in records if keyword in fold_variants(record.model_norm)]
