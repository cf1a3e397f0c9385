"""alucut-excel -- heuristic extraction of aluminum-profile work orders from Excel.

Public API exports for the analyzer, its heuristic components, models,
errors, configuration and the injectable logger protocol.
"""

from alucut_excel.analyzer import ExcelAnalyzer
from alucut_excel.config import AnalyzerConfig
from alucut_excel.errors import AnalysisError, ErrorCode, ErrorSeverity, ValidationIssue
from alucut_excel.extractor import DataExtractor
from alucut_excel.loader import LoadedSheet, WorkbookLoader
from alucut_excel.models import (
    CellValue,
    ColumnMapping,
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
    Row,
    SourceType,
    ValidationSummary,
    WorkOrderItem,
    WorkOrderMetadata,
)
from alucut_excel.patterns import PatternDetector
from alucut_excel.protocols import AnalysisLogger

__all__ = [
    # Analyzer
    "ExcelAnalyzer",
    # Heuristics
    "PatternDetector",
    "DataExtractor",
    # Loader
    "WorkbookLoader",
    "LoadedSheet",
    # Grid aliases
    "CellValue",
    "Row",
    "Grid",
    # Detection artifacts
    "ColumnMapping",
    "HeaderPattern",
    "ProductSection",
    # Core models
    "SourceType",
    "DataSource",
    "ProfileItem",
    "WorkOrderMetadata",
    "WorkOrderItem",
    "ProductMetadata",
    "ValidationSummary",
    "ProductGroup",
    # Result
    "ParseContext",
    "ParseMetrics",
    "ParseSummary",
    "ExcelParseResult",
    # Errors
    "ErrorCode",
    "ErrorSeverity",
    "ValidationIssue",
    "AnalysisError",
    # Config
    "AnalyzerConfig",
    # Protocols
    "AnalysisLogger",
]
