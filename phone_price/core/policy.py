"""Keyword tables and heuristic thresholds for question matching.

Every rule the classifier, filter and formatter apply lives here so that a
deployment can tune it in one place (see ``MatchingPolicy.from_settings``).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Optional

from phone_price.core.records import Telecom, TransactionType

if TYPE_CHECKING:
    from phone_price.utils.config import Settings

GALAXY = "갤럭시"
IPHONE = "아이폰"

# Brand keywords, matched against the lowercased question.
BRAND_KEYWORDS: dict[str, tuple[str, ...]] = {
    GALAXY: ("갤럭시", "galaxy", "삼성", "samsung", "플립", "폴드", "flip", "fold"),
    IPHONE: ("아이폰", "iphone", "애플", "apple"),
}

# Carrier aliases. Latin aliases are matched with letter-boundary lookarounds.
TELECOM_ALIASES: dict[Telecom, tuple[str, ...]] = {
    Telecom.SK: ("skt", "sk", "에스케이", "에스케이텔레콤"),
    Telecom.KT: ("kt", "케이티"),
    Telecom.LG: ("lgu+", "lg u+", "lgu", "lg", "엘지", "유플러스", "u+"),
}

TYPE_ALIASES: dict[TransactionType, tuple[str, ...]] = {
    TransactionType.PORT_IN: ("번호이동", "번이"),
    TransactionType.DEVICE_UPGRADE: ("기기변경", "기변"),
}

COMPARISON_KEYWORDS: tuple[str, ...] = (
    "어디가 더",
    "어디가더",
    "어디가 싸",
    "어디가 저렴",
    "중 어디",
    "중에 어디",
    "중에서 어디",
    "어느 쪽",
    "어느쪽",
    "어떤 게 더",
    "어떤게 더",
    "뭐가 더",
    "뭐가더",
    "비교",
    " vs ",
    "vs.",
    "versus",
)

# "Cheaper" wording. A question like "더 싸게 살 수 있나요?" asks about one
# option, so these count as a comparison only next to a comparison frame or
# when two carriers, types, channels or brands are named.
CHEAPER_KEYWORDS: tuple[str, ...] = ("더 싸", "더싸", "더 저렴", "더저렴", "차이")

COMPARISON_FRAMES: tuple[str, ...] = (
    " 중 ",
    "중에",
    "vs",
    "어디가",
    "뭐가",
    "어느",
    "어떤 게",
    "어떤게",
    "보다",
)

# Slang, typos and jammed tokens that pattern extraction misreads.
INFORMAL_PATTERNS: tuple[str, ...] = (
    r"갤(?!럭시)",
    r"겔럭시|갤력시|갤록시|걸럭시",
    r"아이뽄|아이펀|아폰|애폰",
    r"프맥|플맥|프로맥(?!스)",
    r"울트(?!라)",
    r"[a-z가-힣]\d{5,}",
    r"\d{3,}(?:sk|kt|lg)",
)

# Model variant suffixes, longest first. Values are the display form.
VARIANT_SUFFIXES: tuple[tuple[str, str], ...] = (
    (r"프로\s*맥스|pro\s*max|프로맥스", "프로 맥스"),
    (r"울트라|ultra", "울트라"),
    (r"플러스|plus|\+", "플러스"),
    (r"프로|pro", "프로"),
    (r"맥스|max", "맥스"),
    (r"엣지|edge", "엣지"),
    (r"미니|mini", "미니"),
    (r"에어|air", "에어"),
    (r"fe", "FE"),
    (r"se", "SE"),
)

# Model-name fragments kept first when a brand-only list is trimmed.
PRIORITY_KEYWORDS: tuple[str, ...] = ("s25", "16", "플립7", "폴드7", "s24", "15")


@dataclass(frozen=True)
class MatchingPolicy:
    """Heuristics shared by the classifier, filter and formatter.

    Attributes:
        min_capacity: Numbers below this are never a storage capacity
            (model digits such as the 16 in "아이폰 16").
        max_capacity: Numbers above this are never a storage capacity.
        terabyte_limit: Capacity values up to this (and below
            ``min_capacity``) are terabytes, as a "1TB" cell reads "1".
        model_list_limit: Model names listed for a question without capacity.
        brand_result_cap: When set, brand-only model lists longer than this
            are trimmed to models containing ``priority_keywords`` first.
        unspecified_matches_any: Records without a capacity match every
            requested capacity.
    """

    brand_keywords: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(BRAND_KEYWORDS)
    )
    telecom_aliases: dict[Telecom, tuple[str, ...]] = field(
        default_factory=lambda: dict(TELECOM_ALIASES)
    )
    type_aliases: dict[TransactionType, tuple[str, ...]] = field(
        default_factory=lambda: dict(TYPE_ALIASES)
    )
    comparison_keywords: tuple[str, ...] = COMPARISON_KEYWORDS
    cheaper_keywords: tuple[str, ...] = CHEAPER_KEYWORDS
    comparison_frames: tuple[str, ...] = COMPARISON_FRAMES
    informal_patterns: tuple[str, ...] = INFORMAL_PATTERNS
    variant_suffixes: tuple[tuple[str, str], ...] = VARIANT_SUFFIXES
    priority_keywords: tuple[str, ...] = PRIORITY_KEYWORDS
    min_capacity: int = 64
    max_capacity: int = 2048
    terabyte_limit: int = 16
    model_list_limit: int = 10
    brand_result_cap: Optional[int] = None
    unspecified_matches_any: bool = True

    def is_capacity(self, value: int) -> bool:
        return self.min_capacity <= value <= self.max_capacity

    def is_terabytes(self, capacity: Optional[str]) -> bool:
        """True for capacity values counted in TB ("1" from a "1TB" cell)."""
        return bool(capacity) and capacity.isdigit() and 0 < int(capacity) <= min(
            self.terabyte_limit, self.min_capacity - 1
        )

    def capacity_gb(self, capacity: Optional[str]) -> Optional[int]:
        """Storage size in GB, or None for blank and "기본" values.

        Example:
            >>> DEFAULT_POLICY.capacity_gb("1"), DEFAULT_POLICY.capacity_gb("512")
            (1024, 512)
        """
        if not capacity or not capacity.isdigit():
            return None
        value = int(capacity)
        return value * 1024 if self.is_terabytes(capacity) else value

    def capacity_label(self, capacity: Optional[str]) -> str:
        if not capacity or not capacity.isdigit():
            return ""
        return f"{capacity}TB" if self.is_terabytes(capacity) else f"{capacity}GB"

    @classmethod
    def from_settings(cls, settings: Settings) -> MatchingPolicy:
        return replace(
            cls(),
            min_capacity=settings.min_capacity,
            max_capacity=settings.max_capacity,
            model_list_limit=settings.model_list_limit,
            brand_result_cap=settings.brand_result_cap,
        )


DEFAULT_POLICY = MatchingPolicy()
