"""Pydantic data models, enumerations and result types for alucut-excel.

This module defines the complete data model layer referenced throughout the
pipeline: the cell/row/grid aliases, the header and section artifacts produced
by pattern detection, the Product -> WorkOrder -> ProfileItem hierarchy, and
the final ``ExcelParseResult``.  Every model is frozen once constructed.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, model_serializer

from alucut_excel.errors import ValidationIssue

CellValue = Union[str, int, float, bool, datetime, date, None]
Row = Sequence[CellValue]
Grid = Sequence[Row]


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SourceType(str, Enum):
    """How a work order's identity was established.

    ``direct`` orders carry an ID read from the sheet, ``merged`` orders join
    several IDs found on the same row, and ``inherited`` orders were
    synthesized for a product whose rows carried no usable ID.
    """

    DIRECT = "direct"
    INHERITED = "inherited"
    MERGED = "merged"


# ---------------------------------------------------------------------------
# Detection artifacts
# ---------------------------------------------------------------------------


class ColumnMapping(_FrozenModel):
    """Column index per logical field, as found on the header row."""

    work_order_id: int | None = None
    date: int | None = None
    version: int | None = None
    color: int | None = None
    note: int | None = None
    sip_quantity: int | None = None
    size: int | None = None
    profile: int | None = None
    measurement: int | None = None
    quantity: int | None = None

    def mapped_fields(self) -> list[str]:
        """Names of the fields that were mapped to a column."""
        return [name for name, index in self if index is not None]


class HeaderPattern(_FrozenModel):
    """A detected header row and its field-to-column mapping."""

    columns: ColumnMapping
    confidence: float
    row_index: int
    detected_fields: int


class ProductSection(_FrozenModel):
    """A product name and the data rows discovered for it."""

    product_name: str
    start_row: int
    end_row: int
    header_row: int
    data_rows: tuple[int, ...]
    confidence: float

    @property
    def normalized_name(self) -> str:
        """Case- and whitespace-insensitive key used to merge sections."""
        return " ".join(self.product_name.split()).upper()


# ---------------------------------------------------------------------------
# Extracted hierarchy
# ---------------------------------------------------------------------------


class ProfileItem(_FrozenModel):
    """One profile line: type, measurement and piece count."""

    profile_type: str
    measurement: str
    quantity: int
    row_index: int
    confidence: float


class WorkOrderMetadata(_FrozenModel):
    """Descriptive fields read from a work order's ID row."""

    date: str | None = None
    version: str | None = None
    color: str | None = None
    note: str | None = None
    sip_quantity: float | None = None
    size: str | None = None

    @model_serializer(mode="wrap")
    def _omit_absent(self, handler):
        return {key: value for key, value in handler(self).items() if value is not None}


class DataSource(_FrozenModel):
    """Provenance of a work order."""

    type: SourceType
    parent_work_order_id: str | None = None
    original_row_index: int


class WorkOrderItem(_FrozenModel):
    """A work order and the profile items attributed to it."""

    work_order_id: str
    profiles: tuple[ProfileItem, ...]
    metadata: WorkOrderMetadata
    row_index: int
    confidence: float
    source: DataSource
    total_quantity: int


class ProductMetadata(_FrozenModel):
    """Row-range and count aggregates for a product group."""

    start_row: int
    end_row: int
    total_quantity: int
    unique_work_orders: int
    average_confidence: float


class ValidationSummary(_FrozenModel):
    """Confidence-derived finding counts for a product group."""

    total_errors: int
    total_warnings: int
    critical_errors: int
    is_valid: bool


class ProductGroup(_FrozenModel):
    """Top-level aggregate: one per unique product name per analysis run."""

    product_name: str
    work_orders: tuple[WorkOrderItem, ...]
    confidence: float
    metadata: ProductMetadata
    validation: ValidationSummary
    total_profiles: int
    total_quantity: int
    profile_types: tuple[str, ...]


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


class ParseContext(_FrozenModel):
    """Where and when an analysis ran."""

    file_name: str
    parse_date: datetime
    total_rows: int
    header_pattern: HeaderPattern | None = None
    encoding: str = "UTF-8"
    content_hash: str | None = None


class ParseMetrics(_FrozenModel):
    """Timing, memory and coverage figures for an analysis run."""

    total_products: int = 0
    total_work_orders: int = 0
    total_items: int = 0
    parse_time_ms: float = 0.0
    memory_used_mb: float = 0.0
    confidence: float = 0.0
    skipped_rows: int = 0
    processed_rows: int = 0


class ParseSummary(_FrozenModel):
    """Flattened totals across every product group."""

    total_products: int = 0
    total_work_orders: int = 0
    total_profiles: int = 0
    total_quantity: int = 0
    profile_types: tuple[str, ...] = ()


class ExcelParseResult(_FrozenModel):
    """Final result returned by :meth:`ExcelAnalyzer.analyze`."""

    success: bool
    product_groups: tuple[ProductGroup, ...]
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()
    context: ParseContext
    metrics: ParseMetrics
    summary: ParseSummary

    def product_names(self) -> list[str]:
        """Flat list of product names in discovery order."""
        return [group.product_name for group in self.product_groups]

    def work_orders_for(self, product_name: str) -> tuple[WorkOrderItem, ...]:
        """Work orders of the named product, or an empty tuple."""
        for group in self.product_groups:
            if group.product_name == product_name:
                return group.work_orders
        return ()
