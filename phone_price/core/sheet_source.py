"""Google Sheets access and record loading.

``GoogleSheetSource`` is the only module that talks to the Sheets API.
``RecordRepository`` fetches every worksheet (in parallel, under one time
budget), hands the grids to the ``RecordExtractor`` and optionally keeps the
result for a short time.
"""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Protocol

import gspread
from cachetools import TTLCache
from google.auth.exceptions import GoogleAuthError
from gspread.exceptions import GSpreadException
from gspread.utils import ValueRenderOption

from phone_price.core.record_extractor import RecordExtractor
from phone_price.core.records import PriceRecord
from phone_price.utils.logger import get_logger

logger = get_logger(__name__)

Grid = list[list[Any]]


class SheetSourceError(Exception):
    """Raised when the price table cannot be read."""


class SheetSource(Protocol):
    """Named collection of cell grids."""

    def list_section_names(self) -> list[str]: ...

    def get_section(self, name: str) -> Grid: ...


class GoogleSheetSource:
    """Reads worksheets of one spreadsheet through gspread.

    Args:
        spreadsheet_id: Key of the spreadsheet.
        credentials_file: Service account key file.
        credentials_json: Inline service account key; wins over the file.
        cell_range: Range read from every worksheet.
        request_timeout: Seconds each Sheets API request may take, or None
            for no limit.
    """

    def __init__(
        self,
        spreadsheet_id: str,
        credentials_file: str | Path | None = None,
        credentials_json: str | None = None,
        cell_range: str = "A1:N100",
        request_timeout: float | None = None,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.cell_range = cell_range
        self.request_timeout = request_timeout
        self._credentials_file = credentials_file
        self._credentials_json = credentials_json
        self._spreadsheet: gspread.Spreadsheet | None = None
        self._worksheets: dict[str, gspread.Worksheet] = {}

    def _authorize(self) -> gspread.Client:
        if self._credentials_json:
            logger.info("Authorizing Google Sheets with inline service account")
            return gspread.service_account_from_dict(json.loads(self._credentials_json))
        if self._credentials_file:
            logger.info(f"Authorizing Google Sheets with key file {self._credentials_file}")
            return gspread.service_account(filename=str(self._credentials_file))
        logger.info("Authorizing Google Sheets with the default service account location")
        return gspread.service_account()

    @property
    def spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            try:
                client = self._authorize()
                if self.request_timeout:
                    client.set_timeout(self.request_timeout)
                self._spreadsheet = client.open_by_key(self.spreadsheet_id)
            except (GSpreadException, GoogleAuthError, OSError, ValueError) as e:
                raise SheetSourceError(
                    f"Failed to open spreadsheet {self.spreadsheet_id}: {e}"
                ) from e
        return self._spreadsheet

    def list_section_names(self) -> list[str]:
        try:
            worksheets = self.spreadsheet.worksheets()
        except (GSpreadException, GoogleAuthError, OSError) as e:
            raise SheetSourceError(f"Failed to list worksheets: {e}") from e

        self._worksheets = {ws.title: ws for ws in worksheets}
        return list(self._worksheets)

    def get_section(self, name: str) -> Grid:
        try:
            worksheet = self._worksheets.get(name) or self.spreadsheet.worksheet(name)
            values = worksheet.get(
                self.cell_range,
                value_render_option=ValueRenderOption.unformatted,
            )
        except (GSpreadException, GoogleAuthError, OSError) as e:
            raise SheetSourceError(f"Failed to read worksheet '{name}': {e}") from e

        return [list(row) for row in values]


class RecordRepository:
    """Loads ``PriceRecord`` lists from a sheet source.

    Worksheets are independent, so they are fetched concurrently. The
    listing and the worksheet reads share one budget of ``fetch_timeout``
    seconds. With ``cache_ttl > 0`` the last extraction is kept in a
    ``TTLCache`` and reused for that many seconds.

    Example:
        >>> repository = RecordRepository(GoogleSheetSource(spreadsheet_id))
        >>> records = repository.load_records()
    """

    CACHE_KEY = "records"

    def __init__(
        self,
        source: SheetSource,
        extractor: RecordExtractor | None = None,
        fetch_timeout: float = 60.0,
        max_workers: int = 4,
        cache_ttl: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source
        self.extractor = extractor or RecordExtractor()
        self.fetch_timeout = fetch_timeout
        self.max_workers = max_workers
        self.cache_ttl = cache_ttl
        self._cache: TTLCache | None = (
            TTLCache(maxsize=1, ttl=cache_ttl, timer=clock) if cache_ttl > 0 else None
        )
        self._lock = threading.Lock()

    def fetch_sections(self) -> dict[str, Grid]:
        """Fetch every worksheet grid.

        Returns:
            Worksheet name -> grid, in the order the source lists them.

        Raises:
            SheetSourceError: If no worksheet exists or the fetch times out.
        """
        deadline = time.monotonic() + self.fetch_timeout
        executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="sheet-fetch",
        )
        try:
            listing = executor.submit(self.source.list_section_names)
            _, pending = wait([listing], timeout=self.fetch_timeout)
            if pending:
                raise SheetSourceError(
                    f"Timed out after {self.fetch_timeout}s listing worksheets"
                )
            names = listing.result()
            if not names:
                raise SheetSourceError("Spreadsheet has no worksheets")

            futures = {executor.submit(self.source.get_section, name): name for name in names}
            done, pending = wait(futures, timeout=max(0.0, deadline - time.monotonic()))
            if pending:
                raise SheetSourceError(
                    f"Timed out after {self.fetch_timeout}s fetching "
                    f"{len(pending)} of {len(names)} worksheets"
                )
            grids = {futures[future]: future.result() for future in done}
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.info(f"Fetched {len(grids)} worksheets")
        return {name: grids[name] for name in names}

    def load_records(self) -> list[PriceRecord]:
        """Return the current record list, fetching when the cache is stale."""
        if self._cache is None:
            return self.extractor.extract(self.fetch_sections())

        with self._lock:
            records = self._cache.get(self.CACHE_KEY)
            if records is not None:
                logger.debug(f"Using cached records ({len(records)})")
                return records

            records = self.extractor.extract(self.fetch_sections())
            self._cache[self.CACHE_KEY] = records
            return records

    def invalidate(self) -> None:
        if self._cache is not None:
            with self._lock:
                self._cache.clear()
