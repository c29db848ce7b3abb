"""Tests for answer rendering."""

from __future__ import annotations

import pytest

from phone_price.core.policy import GALAXY, MatchingPolicy
from phone_price.core.record_filter import FilterResult, RecordFilter
from phone_price.core.records import (
    Channel,
    ParsedQuery,
    PriceRecord,
    ServiceDescriptor,
    Telecom,
    TransactionType,
)
from phone_price.core.response_formatter import (
    GUIDANCE_TEMPLATE,
    NOT_FOUND_TEMPLATE,
    ResponseFormatter,
    format_amount,
    format_man,
)


@pytest.fixture
def formatter() -> ResponseFormatter:
    return ResponseFormatter()


class TestAmounts:
    def test_format_amount(self):
        assert format_amount("1234000") == "1,234,000"
        assert format_amount("990") == "990"
        assert format_amount("-50000") == "-50,000"
        assert format_amount("") == "0"

    def test_format_man(self):
        assert format_man("50000") == "5만원"
        assert format_man("19900") == "1만9900원"
        assert format_man("9900") == "9,900원"
        assert format_man("") == "0원"


class TestFixedTexts:
    def test_guidance_names_every_field(self, formatter):
        text = formatter.guidance()

        assert text == GUIDANCE_TEMPLATE
        for field_name in ("모델명", "용량", "통신사", "가입유형", "구매채널"):
            assert field_name in text

    def test_not_found(self, formatter):
        assert formatter.not_found() == NOT_FOUND_TEMPLATE
        assert formatter.not_found().startswith("해당 조건의 상품을 찾을 수 없습니다.")


class TestModelList:
    """Tests for the model list answer."""

    def test_lists_models_with_capacities(self, formatter, records):
        listed = RecordFilter.filter_by_keyword(records, "갤럭시s25")
        query = ParsedQuery(brand=GALAXY, model="갤럭시 S25")

        text = formatter.format_model_list(listed, query)

        assert text.startswith("📱 검색 결과 (갤럭시 S25) - 4개 모델:")
        assert "1. 갤럭시 S25 (256, 512GB)" in text
        assert "3. 갤럭시 S25 울트라 (256, 512GB)" in text
        assert "외" not in text
        assert text.endswith("💡 가격을 확인하려면 용량을 함께 말씀해주세요. (예: 갤럭시 S25 256)")

    def test_truncated_to_limit(self, records):
        formatter = ResponseFormatter(MatchingPolicy(model_list_limit=3))
        galaxies = RecordFilter().filter_by_brand(records, GALAXY)

        text = formatter.format_model_list(galaxies, ParsedQuery(brand=GALAXY))

        assert "- 15개 모델:" in text
        assert "3. 갤럭시 S25 울트라" in text
        assert "4. " not in text
        assert "... 외 12개 모델" in text

    def test_unspecified_capacity_not_listed(self, formatter, records):
        listed = RecordFilter.filter_by_keyword(records, "갤럭시a16")

        text = formatter.format_model_list(listed, ParsedQuery(brand=GALAXY, model="갤럭시 A16"))

        assert "1. 갤럭시 A16\n" in text

    def test_brand_result_cap_prioritizes_keywords(self, records):
        policy = MatchingPolicy(brand_result_cap=2, priority_keywords=("폴드7", "s24"))
        galaxies = RecordFilter(policy).filter_by_brand(records, GALAXY)

        text = ResponseFormatter(policy).format_model_list(galaxies, ParsedQuery(brand=GALAXY))

        assert "- 2개 모델:" in text
        assert "1. 갤럭시 S24" in text
        assert "2. 갤럭시 S24 플러스" in text

    def test_terabyte_capacity_listed_last(self, formatter):
        records = [
            PriceRecord(
                model_raw="갤럭시 Z폴드6",
                capacity=capacity,
                telecom=Telecom.SK,
                type=TransactionType.PORT_IN,
                channel=Channel.ONLINE,
                plan="109000",
                price="2000000",
            )
            for capacity in ("1", "512")
        ]

        text = formatter.format_model_list(records, ParsedQuery(brand=GALAXY, model="갤럭시 Z폴드6"))

        assert "1. 갤럭시 Z폴드6 (512GB, 1TB)" in text

    def test_empty_list_is_not_found(self, formatter):
        assert formatter.format_model_list([], ParsedQuery(brand=GALAXY)) == NOT_FOUND_TEMPLATE


class TestPriceAnswers:
    """Tests for breakdown and full-condition answers."""

    def test_full_condition(self, formatter, records):
        query = ParsedQuery(
            brand=GALAXY,
            model="갤럭시 S25",
            capacity="256",
            telecom=Telecom.SK,
            type=TransactionType.PORT_IN,
        )
        result = RecordFilter().apply(
            records, model_norm="갤럭시s25", capacity="256",
            telecom=Telecom.SK, txn_type=TransactionType.PORT_IN,
        )

        text = formatter.format_full_condition(result, query)

        assert text.startswith("💰 가격 정보 - 갤럭시 S25 256GB")
        assert text.index("📦 온라인 가격 조건 안내") < text.index("🏬 내방 가격 조건 안내")
        assert "✅ 할부원금: 1,155,000원" in text
        assert "✅ 할부원금: 1,055,000원" in text
        assert "✅ 요금제: 월 109,000원" in text
        assert " - T우주 패스: 9,900원 (6개월 유지)" in text
        assert " - T우주 패스 미가입: +5만원" in text
        assert "V컬러링 미가입" not in text

    def test_breakdown_groups_by_carrier_and_channel(self, formatter, records):
        query = ParsedQuery(brand=GALAXY, model="갤럭시 S25", capacity="256")
        result = RecordFilter().apply(records, model_norm="갤럭시s25", capacity="256")

        text = formatter.format_breakdown(result, query)

        assert text.index("[SK]") < text.index("[KT]") < text.index("[LG]")
        assert text.count("📱 SK 번호이동") == 2
        assert text.count("📱 SK 기기변경") == 2
        assert "📱 KT 번호이동" in text
        assert "✅ 할부원금: 1,099,000원" in text
        assert "✅ 요금제: 월 90,000원" in text

    def test_breakdown_single_carrier(self, formatter, records):
        query = ParsedQuery(brand=GALAXY, model="갤럭시 S25", capacity="256", telecom=Telecom.KT)
        result = RecordFilter().apply(
            records, model_norm="갤럭시s25", capacity="256", telecom=Telecom.KT
        )

        text = formatter.format_breakdown(result, query, telecoms=(Telecom.KT,))

        assert "[KT]" in text
        assert "[SK]" not in text
        assert "🏬 내방" not in text

    def test_substitution_disclosed(self, formatter, records):
        query = ParsedQuery(brand=GALAXY, model="갤럭시 Z폴드6", capacity="256")
        result = RecordFilter().apply(records, model_norm="갤럭시z폴드6", capacity="256")

        text = formatter.format_breakdown(result, query)

        assert text.startswith("💰 가격 정보 - 갤럭시 Z폴드6 512GB")
        assert "⚠️ 요청하신 256GB 용량은 없어 가장 가까운 512GB 기준으로 안내드립니다." in text

    def test_terabyte_header(self, formatter):
        record = PriceRecord(
            model_raw="갤럭시 Z폴드6",
            capacity="1",
            telecom=Telecom.SK,
            type=TransactionType.PORT_IN,
            channel=Channel.ONLINE,
            plan="109000",
            price="2300000",
        )
        query = ParsedQuery(
            brand=GALAXY,
            model="갤럭시 Z폴드6",
            capacity="1",
            telecom=Telecom.SK,
            type=TransactionType.PORT_IN,
        )

        text = formatter.format_full_condition(
            FilterResult((record,), requested_capacity="1"), query
        )

        assert text.startswith("💰 가격 정보 - 갤럭시 Z폴드6 1TB")
        assert "✅ 할부원금: 2,300,000원" in text

    def test_exact_capacity_preferred_over_unspecified(self, formatter):
        def record(capacity: str, price: str) -> PriceRecord:
            return PriceRecord(
                model_raw="갤럭시 S25",
                capacity=capacity,
                telecom=Telecom.SK,
                type=TransactionType.PORT_IN,
                channel=Channel.ONLINE,
                plan="89000",
                price=price,
            )

        result = FilterResult((record("기본", "1"), record("256", "2")), requested_capacity="256")

        text = formatter.format_breakdown(result, ParsedQuery(model="갤럭시 S25", capacity="256"))

        assert "✅ 할부원금: 2원" in text
        assert "✅ 할부원금: 1원" not in text

    def test_format_leaf_without_services(self, formatter):
        record = PriceRecord(
            model_raw="아이폰 16",
            capacity="128",
            telecom=Telecom.LG,
            type=TransactionType.DEVICE_UPGRADE,
            channel=Channel.IN_STORE,
            plan="95000",
            price="1000000",
        )

        assert formatter.format_leaf(record) == [
            "📱 LG 기기변경",
            "✅ 할부원금: 1,000,000원",
            "✅ 요금제: 월 95,000원",
        ]

    def test_format_leaf_services(self, formatter):
        record = PriceRecord(
            model_raw="아이폰 16",
            capacity="128",
            telecom=Telecom.SK,
            type=TransactionType.PORT_IN,
            channel=Channel.ONLINE,
            plan="95000",
            price="1000000",
            services=(
                ServiceDescriptor("우주패스", "19900", "3개월", "30000"),
                ServiceDescriptor("보험", "0", "", "0"),
            ),
        )

        assert formatter.format_leaf(record)[3:] == [
            "✅ 부가서비스",
            " - 우주패스: 1만9900원 (3개월 유지)",
            " - 보험",
            "❗ 부가 미가입 시",
            " - 우주패스 미가입: +3만원",
        ]

    def test_empty_result_is_not_found(self, formatter):
        empty = FilterResult(())

        assert formatter.format_breakdown(empty, ParsedQuery()) == NOT_FOUND_TEMPLATE
        assert formatter.format_full_condition(empty, ParsedQuery()) == NOT_FOUND_TEMPLATE
