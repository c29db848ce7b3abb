#!/usr/bin/env python3
"""Fetch the price sheet and print what the extractor makes of it."""

from __future__ import annotations

import argparse
import json
import sys
from collections import Counter
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from phone_price.core.sheet_source import GoogleSheetSource, RecordRepository
from phone_price.utils.config import load_settings
from phone_price.utils.logger import get_logger

logger = get_logger(__name__)


def main():
    """Fetch every worksheet and summarize the extracted records."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--json", type=Path, help="also write every record to this JSON file")
    args = parser.parse_args()

    print("="*80)
    print("PRICE SHEET RECORD DUMP")
    print("="*80)
    print()

    # Load settings
    try:
        settings = load_settings()
        print("✓ Settings loaded")
    except Exception as e:
        print(f"✗ Failed to load settings: {e}")
        return 1

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
    )

    try:
        sections = repository.fetch_sections()
        print(f"✓ Fetched {len(sections)} worksheet(s)")
    except Exception as e:
        print(f"✗ Failed to fetch worksheets: {e}")
        return 1

    records = repository.extractor.extract(sections)
    print(f"✓ Extracted {len(records)} records")
    print()

    print("Records per worksheet section:")
    print("-" * 80)
    per_section = Counter(
        (r.telecom.value, r.channel.value, r.type.value) for r in records
    )
    for (telecom, channel, txn_type), count in sorted(per_section.items()):
        print(f"  {telecom:8} {channel:8} {txn_type:8} {count:5}")

    unknown = [r for r in records if not r.has_known_section]
    if unknown:
        print()
        print(f"⚠ {len(unknown)} records come from worksheets without a known carrier/channel")

    print()
    print("Models:")
    print("-" * 80)
    models = Counter(r.model_raw for r in records)
    for model, count in models.most_common():
        capacities = sorted({r.capacity for r in records if r.model_raw == model})
        print(f"  {model:30} {count:4} records  ({', '.join(capacities)})")

    if args.json:
        args.json.write_text(
            json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        print()
        print(f"✓ Wrote {len(records)} records to {args.json}")

    print()
    print("="*80)
    print("DUMP COMPLETE")
    print("="*80)

    return 0


if __name__ == "__main__":
    sys.exit(main())
