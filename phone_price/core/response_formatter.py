"""Rendering of filtered records into chat answers.

Five answer shapes, by how much the question specified:

- model list (no capacity): up to ``model_list_limit`` model names;
- model + capacity: every carrier x channel x type leaf;
- model + capacity + carrier: channel x type leaves of that carrier;
- full condition: the 온라인 and 내방 leaf of one carrier and type;
- guidance: fixed request for the missing details (comparisons, questions
  nothing could be read from).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Final, Optional

from phone_price.core.policy import DEFAULT_POLICY, MatchingPolicy
from phone_price.core.record_filter import FilterResult
from phone_price.core.records import (
    KNOWN_CHANNELS,
    KNOWN_TELECOMS,
    TRANSACTION_TYPES,
    UNSPECIFIED_CAPACITY,
    Channel,
    ParsedQuery,
    PriceRecord,
    ServiceDescriptor,
    Telecom,
    TransactionType,
    normalize_model_name,
)

GUIDANCE_TEMPLATE: Final[str] = (
    "정확한 가격 안내를 위해 아래 정보를 함께 말씀해주세요.\n"
    "\n"
    "1. 모델명 (예: 갤럭시 S25, 아이폰 16 프로)\n"
    "2. 용량 (예: 256GB)\n"
    "3. 통신사 (SK, KT, LG)\n"
    "4. 가입유형 (번호이동, 기기변경)\n"
    "5. 구매채널 (온라인, 내방)\n"
    "\n"
    "💡 예시: 갤럭시 S25 256 SK 번호이동"
)

NOT_FOUND_TEMPLATE: Final[str] = (
    "해당 조건의 상품을 찾을 수 없습니다. 다른 조건으로 검색해보세요.\n"
    "\n"
    "💡 모델명과 용량을 다시 확인해주세요. (예: 갤럭시 S25 256)"
)

CHANNEL_ICONS: Final[dict[Channel, str]] = {
    Channel.ONLINE: "📦",
    Channel.IN_STORE: "🏬",
}


def format_amount(value: str) -> str:
    """Thousands-separated amount: "1234000" -> "1,234,000"."""
    if not value or value in ("-", "0"):
        return "0"
    return f"{int(value):,}"


def format_man(value: str) -> str:
    """Amount in 만 units as used for add-on fees: "19900" -> "1만9900원"."""
    amount = int(value) if value and value != "-" else 0
    if amount >= 10000:
        text = f"{amount // 10000}만"
        if amount % 10000:
            text += f"{amount % 10000}"
        return f"{text}원"
    return f"{amount:,}원"


class ResponseFormatter:
    """Builds the answer text for each answer shape."""

    def __init__(self, policy: MatchingPolicy | None = None) -> None:
        self.policy = policy or DEFAULT_POLICY

    def guidance(self) -> str:
        return GUIDANCE_TEMPLATE

    def not_found(self) -> str:
        return NOT_FOUND_TEMPLATE

    def format_model_list(self, records: Sequence[PriceRecord], query: ParsedQuery) -> str:
        """List distinct model names with their capacities.

        Args:
            records: Records of the brand/keyword the question named.
            query: Parsed question (used for the header label).

        Returns:
            Model list text ending with a prompt for the capacity.
        """
        if not records:
            return self.not_found()

        capacities: dict[str, list[str]] = {}
        for record in records:
            caps = capacities.setdefault(record.model_raw, [])
            if record.capacity != UNSPECIFIED_CAPACITY and record.capacity not in caps:
                caps.append(record.capacity)

        models = list(capacities)
        if query.model is None:
            models = self._apply_brand_cap(models)

        label = query.model or query.brand
        header = "📱 검색 결과"
        if label:
            header += f" ({label})"
        lines = [f"{header} - {len(models)}개 모델:", ""]

        limit = self.policy.model_list_limit
        for index, model in enumerate(models[:limit], 1):
            line = f"{index}. {model}"
            caps = self._capacity_summary(capacities[model])
            if caps:
                line += f" ({caps})"
            lines.append(line)

        if len(models) > limit:
            lines.extend(["", f"... 외 {len(models) - limit}개 모델"])

        example = models[0]
        lines.extend(["", f"💡 가격을 확인하려면 용량을 함께 말씀해주세요. (예: {example} 256)"])
        return "\n".join(lines)

    def _capacity_summary(self, capacities: Sequence[str]) -> str:
        """Capacities as "128, 256GB"; terabyte values follow as "1TB"."""
        ordered = sorted(capacities, key=self.policy.capacity_gb)
        gigabytes = [c for c in ordered if not self.policy.is_terabytes(c)]
        terabytes = [c for c in ordered if self.policy.is_terabytes(c)]
        parts = []
        if gigabytes:
            parts.append(f"{', '.join(gigabytes)}GB")
        if terabytes:
            parts.append(f"{', '.join(terabytes)}TB")
        return ", ".join(parts)

    def _apply_brand_cap(self, models: list[str]) -> list[str]:
        cap = self.policy.brand_result_cap
        if cap is None or len(models) <= cap:
            return models

        keywords = self.policy.priority_keywords
        prioritized = [
            m for m in models if any(k in normalize_model_name(m) for k in keywords)
        ]
        rest = [m for m in models if m not in prioritized]
        return (prioritized + rest)[:cap]

    def format_breakdown(
        self,
        result: FilterResult,
        query: ParsedQuery,
        telecoms: Sequence[Telecom] = KNOWN_TELECOMS,
    ) -> str:
        """Price breakdown grouped by carrier, then channel, then type.

        Only populated leaves are rendered. With a single carrier in
        ``telecoms`` this is the model+capacity+carrier answer.
        """
        if not result:
            return self.not_found()

        lines = self._header(result)
        for telecom in telecoms:
            telecom_records = [r for r in result.records if r.telecom == telecom]
            if not telecom_records:
                continue
            lines.append(f"[{telecom.value}]")
            for channel in KNOWN_CHANNELS:
                channel_records = [r for r in telecom_records if r.channel == channel]
                if not channel_records:
                    continue
                lines.append(f"{CHANNEL_ICONS[channel]} {channel.value}")
                for txn_type in TRANSACTION_TYPES:
                    leaf = self._leaf_record(channel_records, txn_type, result.capacity)
                    if leaf is not None:
                        lines.extend(self.format_leaf(leaf))
                        lines.append("")

        return "\n".join(lines).rstrip()

    def format_full_condition(self, result: FilterResult, query: ParsedQuery) -> str:
        """The online and in-store leaf for one carrier and type."""
        if not result or query.telecom is None or query.type is None:
            return self.not_found()

        lines = self._header(result)
        for channel in KNOWN_CHANNELS:
            channel_records = [
                r
                for r in result.records
                if r.channel == channel and r.telecom == query.telecom
            ]
            leaf = self._leaf_record(channel_records, query.type, result.capacity)
            if leaf is None:
                continue
            lines.append(f"{CHANNEL_ICONS[channel]} {channel.value} 가격 조건 안내")
            lines.extend(self.format_leaf(leaf))
            lines.append("")

        return "\n".join(lines).rstrip()

    def _header(self, result: FilterResult) -> list[str]:
        model = result.records[0].model_raw
        title = f"💰 가격 정보 - {model}"
        label = self.policy.capacity_label
        capacity = label(result.capacity)
        if capacity:
            title += f" {capacity}"

        lines = [title, ""]
        if result.substituted_capacity:
            lines.extend(
                [
                    f"⚠️ 요청하신 {label(result.requested_capacity)} 용량은 없어 "
                    f"가장 가까운 {label(result.substituted_capacity)} "
                    "기준으로 안내드립니다.",
                    "",
                ]
            )
        return lines

    @staticmethod
    def _leaf_record(
        records: Iterable[PriceRecord],
        txn_type: TransactionType,
        capacity: Optional[str],
    ) -> Optional[PriceRecord]:
        candidates = [r for r in records if r.type == txn_type]
        if not candidates:
            return None
        # Exact capacity rows win over "기본" rows
        candidates.sort(key=lambda r: r.capacity != capacity)
        return candidates[0]

    def format_leaf(self, record: PriceRecord) -> list[str]:
        """Lines of one carrier/channel/type block."""
        lines = [
            f"📱 {record.telecom.value} {record.type.value}",
            f"✅ 할부원금: {format_amount(record.price)}원",
            f"✅ 요금제: 월 {format_amount(record.plan)}원",
        ]
        if record.services:
            lines.extend(self._service_lines(record.services))
        return lines

    @staticmethod
    def _service_lines(services: Sequence[ServiceDescriptor]) -> list[str]:
        lines = ["✅ 부가서비스"]
        for service in services:
            line = f" - {service.name}"
            if service.monthly_fee not in ("", "0"):
                line += f": {format_man(service.monthly_fee)}"
            if service.duration:
                line += f" ({service.duration} 유지)"
            lines.append(line)

        penalties = [s for s in services if s.has_penalty]
        if penalties:
            lines.append("❗ 부가 미가입 시")
            for service in penalties:
                lines.append(f" - {service.name} 미가입: +{format_man(service.penalty_fee)}")
        return lines
