"""ExcelAnalyzer -- orchestrator and public API for alucut-excel.

Drives a work-order workbook through the full analysis pipeline:

1. Validate the source file and load its first worksheet.
2. Detect the header row via :class:`PatternDetector`.
3. Carve the sheet into product sections.
4. Extract work orders per section via :class:`DataExtractor`, with a
   last-chance loose pass and a synthesized work order for sections whose
   rows carry no usable ID.
5. Aggregate product groups, validation summaries and metrics.
6. Cache the immutable :class:`ExcelParseResult` on the analyzer.

The analyzer never raises out of :meth:`ExcelAnalyzer.analyze`: every
failure becomes a ``success=False`` result carrying one critical
``PARSE_FAILED`` error.
"""

from __future__ import annotations

import logging
import re
import time
import tracemalloc
from datetime import datetime
from pathlib import Path

from alucut_excel.config import AnalyzerConfig
from alucut_excel.errors import (
    AnalysisError,
    ErrorCode,
    ErrorSeverity,
    ValidationIssue,
)
from alucut_excel.extractor import DataExtractor
from alucut_excel.loader import WorkbookLoader
from alucut_excel.models import (
    DataSource,
    ExcelParseResult,
    Grid,
    HeaderPattern,
    ParseContext,
    ParseMetrics,
    ParseSummary,
    ProductGroup,
    ProductMetadata,
    ProductSection,
    ProfileItem,
    SourceType,
    ValidationSummary,
    WorkOrderItem,
    WorkOrderMetadata,
)
from alucut_excel.patterns import PatternDetector
from alucut_excel.protocols import AnalysisLogger

logger = logging.getLogger("alucut_excel")

_WHITESPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class ExcelAnalyzer:
    """Analyzes one work-order workbook and caches the result.

    Parameters
    ----------
    file_path:
        Filesystem path to the ``.xlsx`` file.
    config:
        Heuristic thresholds.  Uses defaults when *None*.
    log:
        Logger for pipeline milestones and heuristic decisions.  Uses the
        ``alucut_excel`` logger when *None*.
    loader:
        Workbook reader.  A :class:`WorkbookLoader` is created when *None*.
    """

    def __init__(
        self,
        file_path: str | Path,
        config: AnalyzerConfig | None = None,
        log: AnalysisLogger | None = None,
        loader: WorkbookLoader | None = None,
    ) -> None:
        self._file_path = Path(file_path)
        self._config = config or AnalyzerConfig()
        self._log = log or logger
        self._loader = loader or WorkbookLoader()
        self._detector = PatternDetector(self._config, self._log)
        self._cached_result: ExcelParseResult | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze(self) -> ExcelParseResult:
        """Run the pipeline, or return the cached result of a previous run."""
        if self._cached_result is not None:
            self._log.debug("Returning cached analysis result")
            return self._cached_result

        start = time.monotonic()
        tracing = not tracemalloc.is_tracing()
        if tracing:
            tracemalloc.start()
        initial_memory = tracemalloc.get_traced_memory()[0]

        try:
            result = self._run(start, initial_memory)
        except Exception as exc:
            result = self._failure_result(exc, start)
        finally:
            if tracing:
                tracemalloc.stop()

        if result.success:
            self._cached_result = result
        return result

    def clear_cache(self) -> None:
        """Drop the cached result so the next :meth:`analyze` re-reads the file."""
        self._cached_result = None
        self._log.debug("Analysis cache cleared")

    def get_product_list(self) -> list[str]:
        """Product names in discovery order."""
        return self.analyze().product_names()

    def get_work_orders_by_product(self, product_name: str) -> list[WorkOrderItem]:
        """Work orders of one product, or an empty list for unknown names."""
        return list(self.analyze().work_orders_for(product_name))

    def get_metrics(self) -> ParseMetrics:
        """Timing, memory and coverage metrics of the analysis."""
        return self.analyze().metrics

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _run(self, start: float, initial_memory: int) -> ExcelParseResult:
        config = self._config
        warnings: list[ValidationIssue] = []

        # ----------------------------------------------------------
        # Step 1: Validate and load
        # ----------------------------------------------------------
        self._validate_file()
        sheet = self._loader.load(self._file_path)
        grid = sheet.rows
        self._log.info(
            "Analyzing %s: sheet '%s', %d rows", self._file_path.name, sheet.sheet_name, len(grid)
        )

        # ----------------------------------------------------------
        # Step 2: Detect header
        # ----------------------------------------------------------
        header = self._detector.detect_header_row(grid)
        if header is None:
            self._log.warning("No header row found in %s; using conventional columns", self._file_path.name)
            warnings.append(
                ValidationIssue(
                    code=ErrorCode.NO_HEADER_FOUND,
                    message="No header row found; conventional column positions assumed",
                    severity=ErrorSeverity.WARNING,
                )
            )
        else:
            self._log.info(
                "Header at row %d with %d fields (confidence=%.2f)",
                header.row_index,
                header.detected_fields,
                header.confidence,
            )

        # ----------------------------------------------------------
        # Step 3: Detect product sections
        # ----------------------------------------------------------
        sections = self._detector.detect_product_sections(grid, header)
        if not sections:
            raise AnalysisError(
                ErrorCode.NO_PRODUCTS_FOUND, f"No products found in {self._file_path.name}"
            )

        # ----------------------------------------------------------
        # Step 4: Extract work orders per section
        # ----------------------------------------------------------
        product_groups = self._extract_product_groups(grid, sections, header, warnings)

        # ----------------------------------------------------------
        # Step 5: Aggregate
        # ----------------------------------------------------------
        for group in product_groups:
            if not group.validation.is_valid:
                warnings.append(
                    ValidationIssue(
                        code=ErrorCode.INVALID_FORMAT,
                        message=f"Product {group.product_name} has validation warnings",
                        severity=ErrorSeverity.WARNING,
                        context={"product_name": group.product_name},
                    )
                )

        metrics = self._calculate_metrics(product_groups, len(grid), start, initial_memory)
        context = ParseContext(
            file_name=self._file_path.name,
            parse_date=datetime.now(),
            total_rows=len(grid),
            header_pattern=header,
            content_hash=sheet.content_hash,
        )

        self._log.info(
            "Analysis of %s complete: %d products, %d work orders (%.1fms, %s)",
            self._file_path.name,
            metrics.total_products,
            metrics.total_work_orders,
            metrics.parse_time_ms,
            config.analyzer_version,
        )

        return ExcelParseResult(
            success=True,
            product_groups=tuple(product_groups),
            errors=(),
            warnings=tuple(warnings),
            context=context,
            metrics=metrics,
            summary=_build_summary(product_groups),
        )

    def _validate_file(self) -> None:
        if not self._file_path.is_file():
            raise AnalysisError(
                ErrorCode.FILE_NOT_FOUND, f"Excel file not found: {self._file_path}"
            )
        if self._file_path.stat().st_size == 0:
            raise AnalysisError(
                ErrorCode.EMPTY_WORKSHEET, f"Excel file is empty: {self._file_path}"
            )

    def _extract_product_groups(
        self,
        grid: Grid,
        sections: list[ProductSection],
        header: HeaderPattern | None,
        warnings: list[ValidationIssue],
    ) -> list[ProductGroup]:
        extractor = DataExtractor(header, self._detector, self._log)
        groups: list[ProductGroup] = []

        for section in sections:
            work_orders = [
                wo for wo in extractor.extract_work_orders(grid, section) if wo.total_quantity > 0
            ]

            if not work_orders:
                if not section.data_rows:
                    self._log.warning("Skipping product '%s': no data rows", section.product_name)
                    continue
                fallback = self._fallback_work_order(grid, section, extractor)
                work_orders = [fallback]
                warnings.append(
                    ValidationIssue(
                        code=ErrorCode.GENERATED_ID,
                        message=(
                            f"Product {section.product_name} has no work order IDs; "
                            f"generated {fallback.work_order_id}"
                        ),
                        severity=ErrorSeverity.INFO,
                        row_index=section.start_row,
                        context={"product_name": section.product_name},
                    )
                )

            group = _build_product_group(section, work_orders, self._config)
            self._log.info(
                "Added product '%s' (%d work orders, %d pieces, %d profile types)",
                group.product_name,
                len(group.work_orders),
                group.total_quantity,
                len(group.profile_types),
            )
            groups.append(group)

        return groups

    def _fallback_work_order(
        self, grid: Grid, section: ProductSection, extractor: DataExtractor
    ) -> WorkOrderItem:
        """Synthesize a work order holding every profile the section's rows yield."""
        work_order_id = "FALLBACK_" + _WHITESPACE.sub("_", section.product_name)
        profiles: list[ProfileItem] = []
        for row_index in section.data_rows:
            if row_index >= len(grid):
                continue
            row = grid[row_index]
            items = extractor.extract_items(row, row_index) or extractor.extract_items_loose(
                row, row_index
            )
            profiles.extend(items)

        total_quantity = sum(p.quantity for p in profiles)
        if total_quantity > 0:
            self._log.info(
                "Created fallback work order for '%s' with %d pieces",
                section.product_name,
                total_quantity,
            )
        else:
            self._log.warning(
                "Product '%s' has %d data rows but no extractable profiles; adding empty work order",
                section.product_name,
                len(section.data_rows),
            )

        return WorkOrderItem(
            work_order_id=work_order_id,
            profiles=tuple(profiles),
            metadata=WorkOrderMetadata(),
            row_index=section.start_row,
            confidence=self._config.fallback_work_order_confidence,
            source=DataSource(type=SourceType.INHERITED, original_row_index=section.start_row),
            total_quantity=total_quantity,
        )

    # ------------------------------------------------------------------
    # Metrics and failure
    # ------------------------------------------------------------------

    def _calculate_metrics(
        self,
        groups: list[ProductGroup],
        total_rows: int,
        start: float,
        initial_memory: int,
    ) -> ParseMetrics:
        processed = sum(g.metadata.end_row - g.metadata.start_row + 1 for g in groups)
        current_memory = tracemalloc.get_traced_memory()[0]
        return ParseMetrics(
            total_products=len(groups),
            total_work_orders=sum(g.metadata.unique_work_orders for g in groups),
            total_items=sum(len(g.work_orders) for g in groups),
            parse_time_ms=(time.monotonic() - start) * 1000,
            memory_used_mb=(current_memory - initial_memory) / 1024 / 1024,
            confidence=sum(g.confidence for g in groups) / len(groups) if groups else 0.0,
            skipped_rows=max(0, total_rows - processed),
            processed_rows=processed,
        )

    def _failure_result(self, exc: Exception, start: float) -> ExcelParseResult:
        code = exc.code if isinstance(exc, AnalysisError) else ErrorCode.PARSE_FAILED
        message = str(exc) or type(exc).__name__
        self._log.error("Analysis of %s failed: %s", self._file_path.name, message)
        return ExcelParseResult(
            success=False,
            product_groups=(),
            errors=(
                ValidationIssue(
                    code=ErrorCode.PARSE_FAILED,
                    message=message,
                    severity=ErrorSeverity.CRITICAL,
                    context={"cause": code.value},
                ),
            ),
            warnings=(),
            context=ParseContext(
                file_name=self._file_path.name,
                parse_date=datetime.now(),
                total_rows=0,
            ),
            metrics=ParseMetrics(parse_time_ms=(time.monotonic() - start) * 1000),
            summary=ParseSummary(),
        )


# ---------------------------------------------------------------------------
# Aggregation helpers
# ---------------------------------------------------------------------------


def _validation_summary(
    work_orders: list[WorkOrderItem], config: AnalyzerConfig
) -> ValidationSummary:
    errors = warnings = critical = 0
    for wo in work_orders:
        if wo.confidence < config.error_confidence_threshold:
            errors += 1
        if wo.confidence < config.warning_confidence_threshold:
            warnings += 1
        if wo.confidence == 0:
            critical += 1
    return ValidationSummary(
        total_errors=errors,
        total_warnings=warnings,
        critical_errors=critical,
        is_valid=critical == 0,
    )


def _unique_profile_types(work_orders: list[WorkOrderItem]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for wo in work_orders:
        for profile in wo.profiles:
            seen.setdefault(profile.profile_type, None)
    return tuple(seen)


def _build_product_group(
    section: ProductSection, work_orders: list[WorkOrderItem], config: AnalyzerConfig
) -> ProductGroup:
    total_quantity = sum(wo.total_quantity for wo in work_orders)
    average = sum(wo.confidence for wo in work_orders) / len(work_orders) if work_orders else 0.0
    return ProductGroup(
        product_name=section.product_name,
        work_orders=tuple(work_orders),
        confidence=section.confidence,
        metadata=ProductMetadata(
            start_row=section.start_row,
            end_row=section.end_row,
            total_quantity=total_quantity,
            unique_work_orders=len({wo.work_order_id for wo in work_orders}),
            average_confidence=average,
        ),
        validation=_validation_summary(work_orders, config),
        total_profiles=sum(len(wo.profiles) for wo in work_orders),
        total_quantity=total_quantity,
        profile_types=_unique_profile_types(work_orders),
    )


def _build_summary(groups: list[ProductGroup]) -> ParseSummary:
    seen: dict[str, None] = {}
    for group in groups:
        for profile_type in group.profile_types:
            seen.setdefault(profile_type, None)
    return ParseSummary(
        total_products=len(groups),
        total_work_orders=sum(g.metadata.unique_work_orders for g in groups),
        total_profiles=sum(g.total_profiles for g in groups),
        total_quantity=sum(g.total_quantity for g in groups),
        profile_types=tuple(seen),
    )
