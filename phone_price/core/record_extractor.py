"""Extraction of price records from worksheet grids.

Every worksheet of the price table follows one layout:

- rows 1-2 are headers, data starts on row 3;
- columns A-D hold the 번호이동 (port-in) group: model, plan, capacity, price;
- columns F-I hold the 기기변경 (device-upgrade) group in the same order;
- columns K-N list the carrier's add-on services: name, monthly fee,
  retention period, extra charge when not enrolled.

The worksheet name carries the carrier (SK/KT/LG) and the channel
(온라인/내방); a row never states them itself.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

from phone_price.core.records import (
    Channel,
    PriceRecord,
    ServiceDescriptor,
    Telecom,
    TransactionType,
    cell_text,
    clean_price,
    normalize_capacity,
)
from phone_price.utils.logger import get_logger

logger = get_logger(__name__)

HEADER_ROWS: Final[int] = 2

PLACEHOLDER_SERVICE_NAMES: Final[frozenset[str]] = frozenset({"테스트", "test"})
PLACEHOLDER_FEE_RUN: Final[str] = "33333333333333"


@dataclass(frozen=True)
class ColumnGroup:
    """Column indexes (0-based) of one record group within a row."""

    type: TransactionType
    model: int
    plan: int
    capacity: int
    price: int


PORT_IN_COLUMNS = ColumnGroup(TransactionType.PORT_IN, model=0, plan=1, capacity=2, price=3)
DEVICE_UPGRADE_COLUMNS = ColumnGroup(
    TransactionType.DEVICE_UPGRADE, model=5, plan=6, capacity=7, price=8
)

SERVICE_NAME_COL: Final[int] = 10
SERVICE_FEE_COL: Final[int] = 11
SERVICE_DURATION_COL: Final[int] = 12
SERVICE_PENALTY_COL: Final[int] = 13


def parse_section_name(section_name: str) -> tuple[Telecom, Channel]:
    """Read carrier and channel from a worksheet name.

    Example:
        >>> parse_section_name("SK 온라인")
        (<Telecom.SK: 'SK'>, <Channel.ONLINE: '온라인'>)
    """
    telecom = Telecom.UNKNOWN
    for candidate in (Telecom.SK, Telecom.KT, Telecom.LG):
        if candidate.value in section_name:
            telecom = candidate
            break

    if Channel.ONLINE.value in section_name:
        channel = Channel.ONLINE
    elif Channel.IN_STORE.value in section_name:
        channel = Channel.IN_STORE
    else:
        channel = Channel.UNKNOWN

    return telecom, channel


def _cell(row: Sequence[Any], index: int) -> str:
    return cell_text(row[index]) if index < len(row) else ""


class RecordExtractor:
    """Turns worksheet grids into ``PriceRecord`` lists.

    The extractor only transforms; it does not drop records of unknown
    carrier or channel, that is left to the consumer.

    Example:
        >>> extractor = RecordExtractor()
        >>> records = extractor.extract({"SK 온라인": rows})
    """

    column_groups: tuple[ColumnGroup, ...] = (PORT_IN_COLUMNS, DEVICE_UPGRADE_COLUMNS)

    def extract(self, sections: Mapping[str, Sequence[Sequence[Any]]]) -> list[PriceRecord]:
        """Extract records from every section.

        Args:
            sections: Worksheet name -> grid of cell values.

        Returns:
            Records of all sections, section by section in mapping order.
        """
        records: list[PriceRecord] = []
        for section_name, rows in sections.items():
            records.extend(self.extract_section(section_name, rows))

        logger.info(f"Extracted {len(records)} records from {len(sections)} sections")
        return records

    def extract_section(self, section_name: str, rows: Sequence[Sequence[Any]]) -> list[PriceRecord]:
        """Extract the records of a single worksheet."""
        if len(rows) <= HEADER_ROWS:
            logger.debug(f"Section '{section_name}' has no data rows")
            return []

        telecom, channel = parse_section_name(section_name)
        if telecom is Telecom.UNKNOWN or channel is Channel.UNKNOWN:
            logger.warning(
                f"Section '{section_name}' has no recognizable carrier/channel "
                f"(telecom={telecom.value}, channel={channel.value})"
            )

        data_rows = rows[HEADER_ROWS:]
        services = self.extract_services(data_rows)
        if services:
            logger.debug(
                f"Section '{section_name}' services: {[s.name for s in services]}"
            )

        records: list[PriceRecord] = []
        for row in data_rows:
            for group in self.column_groups:
                record = self._build_record(row, group, telecom, channel, services)
                if record is not None:
                    records.append(record)

        logger.debug(f"Section '{section_name}': {len(records)} records")
        return records

    def extract_services(self, data_rows: Sequence[Sequence[Any]]) -> tuple[ServiceDescriptor, ...]:
        """Collect the distinct add-on services listed in a worksheet."""
        services: dict[tuple[str, str, str, str], ServiceDescriptor] = {}

        for row in data_rows:
            descriptor = self._parse_service(row)
            if descriptor is not None and descriptor.key not in services:
                services[descriptor.key] = descriptor

        return tuple(services.values())

    @staticmethod
    def _parse_service(row: Sequence[Any]) -> ServiceDescriptor | None:
        name = _cell(row, SERVICE_NAME_COL)
        if not name or name.lower() in PLACEHOLDER_SERVICE_NAMES:
            return None

        monthly_fee = clean_price(_cell(row, SERVICE_FEE_COL)) or "0"
        penalty_fee = clean_price(_cell(row, SERVICE_PENALTY_COL)) or "0"
        if PLACEHOLDER_FEE_RUN in monthly_fee or PLACEHOLDER_FEE_RUN in penalty_fee:
            return None

        return ServiceDescriptor(
            name=name,
            monthly_fee=monthly_fee,
            duration=_cell(row, SERVICE_DURATION_COL),
            penalty_fee=penalty_fee,
        )

    @staticmethod
    def _build_record(
        row: Sequence[Any],
        group: ColumnGroup,
        telecom: Telecom,
        channel: Channel,
        services: tuple[ServiceDescriptor, ...],
    ) -> PriceRecord | None:
        model = _cell(row, group.model)
        plan = _cell(row, group.plan)
        price = _cell(row, group.price)
        if not (model and plan and price):
            return None

        return PriceRecord(
            model_raw=model,
            capacity=normalize_capacity(_cell(row, group.capacity)),
            telecom=telecom,
            type=group.type,
            channel=channel,
            plan=clean_price(plan),
            price=clean_price(price),
            services=services,
        )
