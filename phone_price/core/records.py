"""Record types shared by every stage of the price lookup pipeline.

A ``PriceRecord`` is one price row for a model/capacity/carrier/type/channel
combination. ``ParsedQuery`` is the structured reading of a user question.
Both are frozen: stages derive new values instead of editing them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, Optional

UNSPECIFIED_CAPACITY: Final[str] = "기본"

_WHITESPACE_RE = re.compile(r"\s+")
_NON_MODEL_CHAR_RE = re.compile(r"[^a-z0-9ㄱ-ㅎㅏ-ㅣ가-힣]")
_DIGITS_RE = re.compile(r"\d+")
_NON_PRICE_CHAR_RE = re.compile(r"[^\d-]")


class Telecom(str, Enum):
    """Carrier codes found in worksheet names."""

    SK = "SK"
    KT = "KT"
    LG = "LG"
    UNKNOWN = "Unknown"


class Channel(str, Enum):
    """Sales channel of a worksheet."""

    ONLINE = "온라인"
    IN_STORE = "내방"
    UNKNOWN = "Unknown"


class TransactionType(str, Enum):
    """Subscription type: switching carrier or staying with it."""

    PORT_IN = "번호이동"
    DEVICE_UPGRADE = "기기변경"


KNOWN_TELECOMS: Final[tuple[Telecom, ...]] = (Telecom.SK, Telecom.KT, Telecom.LG)
KNOWN_CHANNELS: Final[tuple[Channel, ...]] = (Channel.ONLINE, Channel.IN_STORE)
TRANSACTION_TYPES: Final[tuple[TransactionType, ...]] = (
    TransactionType.PORT_IN,
    TransactionType.DEVICE_UPGRADE,
)


def cell_text(value: Any) -> str:
    """Render a sheet cell as stripped text.

    Unformatted numeric cells arrive as ``int``/``float``; whole floats are
    rendered without the trailing ``.0`` so that digit cleaning stays exact.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def normalize_model_name(model_name: str) -> str:
    """Normalize a model display name into the matching key.

    Example:
        >>> normalize_model_name("갤럭시 S25 Ultra")
        '갤럭시s25ultra'
    """
    lowered = _WHITESPACE_RE.sub("", model_name.lower())
    return _NON_MODEL_CHAR_RE.sub("", lowered)


def normalize_capacity(value: Any) -> str:
    """Return the first run of digits in a capacity cell, or the sentinel.

    ``"256GB"`` and ``256`` both become ``"256"``; blank or non-numeric
    cells become ``UNSPECIFIED_CAPACITY``.
    """
    text = cell_text(value)
    match = _DIGITS_RE.search(text)
    return match.group(0) if match else UNSPECIFIED_CAPACITY


def clean_price(value: Any) -> str:
    """Strip currency symbols, separators and suffixes from a price cell.

    Only digits and a single leading minus sign survive:
    ``"1,234,000원"`` -> ``"1234000"``, ``"-50,000"`` -> ``"-50000"``.
    """
    text = _NON_PRICE_CHAR_RE.sub("", cell_text(value))
    if not text:
        return ""
    sign = "-" if text.startswith("-") else ""
    digits = text.replace("-", "")
    return f"{sign}{digits}" if digits else ""


@dataclass(frozen=True)
class ServiceDescriptor:
    """Add-on service a carrier requires with a discounted device.

    Attributes:
        name: Service name as written in the sheet.
        monthly_fee: Cleaned monthly fee, "0" when blank.
        duration: Required retention period (e.g. "6개월"), may be empty.
        penalty_fee: Cleaned extra charge when not enrolled, "0" when blank.
    """

    name: str
    monthly_fee: str = "0"
    duration: str = ""
    penalty_fee: str = "0"

    @property
    def key(self) -> tuple[str, str, str, str]:
        return (self.name, self.monthly_fee, self.duration, self.penalty_fee)

    @property
    def has_penalty(self) -> bool:
        return self.penalty_fee not in ("", "0")


@dataclass(frozen=True)
class PriceRecord:
    """One device price under a carrier, channel and subscription type.

    ``model_norm`` is derived from ``model_raw`` and cannot be passed in.
    """

    model_raw: str
    capacity: str
    telecom: Telecom
    type: TransactionType
    channel: Channel
    plan: str
    price: str
    services: tuple[ServiceDescriptor, ...] = ()
    model_norm: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "model_norm", normalize_model_name(self.model_raw))

    @property
    def has_known_section(self) -> bool:
        """True when the worksheet name identified both carrier and channel."""
        return self.telecom is not Telecom.UNKNOWN and self.channel is not Channel.UNKNOWN

    def to_dict(self) -> dict[str, Any]:
        return {
            "modelRaw": self.model_raw,
            "modelNorm": self.model_norm,
            "capacity": self.capacity,
            "telecom": self.telecom.value,
            "type": self.type.value,
            "channel": self.channel.value,
            "plan": self.plan,
            "price": self.price,
            "serviceInfo": [
                {
                    "serviceName": s.name,
                    "monthlyFee": s.monthly_fee,
                    "duration": s.duration,
                    "additionalFee": s.penalty_fee,
                }
                for s in self.services
            ]
            or None,
        }


class Scenario(str, Enum):
    """How specific a question is, in classification priority order."""

    COMPARISON = "comparison"
    INFORMAL = "informal"
    FULL_CONDITION = "full_condition"
    MODEL_CAPACITY_CARRIER = "model_capacity_carrier"
    MODEL_CAPACITY = "model_capacity"
    MODEL_ONLY = "model_only"


@dataclass(frozen=True)
class ParsedQuery:
    """Structured reading of a user question.

    Attributes:
        brand: "갤럭시", "아이폰" or None.
        model: Model text such as "갤럭시 S25 울트라", or None.
        capacity: Storage size as a digit string, or None.
        telecom: Carrier, or None.
        type: Subscription type, or None.
        scenario: Classification of the question.
        original_question: The question as received.
    """

    brand: Optional[str] = None
    model: Optional[str] = None
    capacity: Optional[str] = None
    telecom: Optional[Telecom] = None
    type: Optional[TransactionType] = None
    scenario: Scenario = Scenario.INFORMAL
    original_question: str = ""

    @property
    def model_norm(self) -> Optional[str]:
        return normalize_model_name(self.model) if self.model else None

    @property
    def has_fields(self) -> bool:
        return any(
            value is not None
            for value in (self.brand, self.model, self.capacity, self.telecom, self.type)
        )

    def breakdown(self) -> dict[str, Optional[str]]:
        """Field values for API responses and logs."""
        return {
            "brand": self.brand,
            "model": self.model,
            "capacity": self.capacity,
            "telecom": self.telecom.value if self.telecom else None,
            "type": self.type.value if self.type else None,
        }

    def __str__(self) -> str:
        parts = [f"{name}={value}" for name, value in self.breakdown().items() if value]
        summary = ", ".join(parts) if parts else "no fields"
        return f"[{self.scenario.value}] {summary}"
