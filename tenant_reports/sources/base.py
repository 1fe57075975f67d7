"""
Base record source — abstract interface for fetching tenant objects from Graph.
Defines the fetch contract, its result type and the source error taxonomy.
"""

from __future__ import annotations

import logging
import time
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, Sequence, TypeVar

from ..config import MAX_PAGE_SIZE
from ..graph.client import GraphClient, GraphAPIError

logger = logging.getLogger("tenant_reports.sources")

R = TypeVar("R")


class SourceError(Exception):
    """Raised when a remote fetch fails or returns no records."""
    pass


class PartialDataWarning(UserWarning):
    """A fetch was truncated or a secondary lookup failed; the run continues."""
    pass


def warn_partial(message: str):
    """Emit a PartialDataWarning; the CLI routes warnings into logging."""
    warnings.warn(message, PartialDataWarning, stacklevel=2)


@dataclass
class FetchResult(Generic[R]):
    """Records from one fetch plus what was lost along the way."""
    source: str
    records: tuple = ()
    truncated: bool = False
    warnings: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def __len__(self) -> int:
        return len(self.records)


def odata_quote(value: str) -> str:
    """Quote a string literal for an OData $filter expression."""
    return "'" + value.replace("'", "''") + "'"


def allow_list_filter(field_name: str, values: Sequence[str]) -> Optional[str]:
    """Translate an allow-list into `field eq 'a' or field eq 'b'`."""
    cleaned = [v.strip() for v in values if v and v.strip()]
    if not cleaned:
        return None
    return " or ".join(f"{field_name} eq {odata_quote(v)}" for v in cleaned)


class RecordSource(ABC, Generic[R]):
    """
    Abstract base class for all record sources.

    Subclasses describe the endpoint and how to convert one Graph item.
    The base class provides:
      - Page size and record cap handling
      - Truncation detection and PartialDataWarning
      - Wrapping of Graph failures and empty results in SourceError
    """

    name: str = "base"
    endpoint: str = ""
    beta: bool = False
    # Field that accepts a server-side allow-list, None if the source has none
    filter_field: Optional[str] = None
    # Secondary lookups may legitimately come back empty
    allow_empty: bool = False

    def __init__(self, graph: GraphClient):
        self.graph = graph

    async def fetch(
        self,
        filters: Optional[Sequence[str]] = None,
        page_size: int = MAX_PAGE_SIZE,
        max_records: int = 50000,
    ) -> FetchResult[R]:
        """
        Fetch up to max_records records, applying the allow-list server-side.
        Raises SourceError when Graph fails or nothing comes back.
        """
        if max_records < 1:
            raise ValueError(f"max_records must be at least 1, got {max_records}")
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")
        if filters and not self.filter_field:
            raise ValueError(f"[{self.name}] does not support filters")

        params = self.build_params()
        if filters:
            expression = allow_list_filter(self.filter_field, filters)
            if expression:
                params["$filter"] = self.combine_filter(params.get("$filter"), expression)

        result: FetchResult[R] = FetchResult(source=self.name)
        started = time.time()
        logger.info(f"[{self.name}] Fetching {self.endpoint} (page size {page_size}, cap {max_records})")

        records = []
        try:
            # One extra item tells us whether the cap cut anything off
            async for item in self.graph.get_pages_stream(
                self.endpoint,
                params=params,
                beta=self.beta,
                page_size=page_size,
                limit=max_records + 1,
            ):
                records.append(self.convert(item))
        except GraphAPIError as e:
            raise SourceError(f"[{self.name}] Fetch failed: {e}") from e

        if not records and not self.allow_empty:
            raise SourceError(f"[{self.name}] No records returned from {self.endpoint}")

        if len(records) > max_records:
            records = records[:max_records]
            result.truncated = True
            message = f"[{self.name}] Result truncated at {max_records} records"
            result.warnings.append(message)
            warn_partial(message)

        result.records = tuple(records)
        result.duration_seconds = round(time.time() - started, 2)
        logger.info(f"[{self.name}] Fetched {len(records)} records in {result.duration_seconds}s")
        return result

    def build_params(self) -> dict[str, Any]:
        """Base query parameters ($select, fixed $filter, ...)."""
        return {}

    @staticmethod
    def combine_filter(existing: Optional[str], extra: str) -> str:
        if not existing:
            return extra
        return f"({existing}) and ({extra})"

    @abstractmethod
    def convert(self, item: dict[str, Any]) -> R:
        """Convert one Graph item into a record."""
        raise NotImplementedError
