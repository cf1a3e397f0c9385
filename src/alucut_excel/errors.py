"""Normalized error codes and structured issue model for the alucut-excel analyzer."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Stable error codes for analysis failures and validation findings.

    Values equal their names so they are safe to expose to API consumers
    and to use as metric labels.
    """

    # Row-level findings
    MISSING_WORK_ORDER = "MISSING_WORK_ORDER"
    MISSING_PROFILE = "MISSING_PROFILE"
    MISSING_MEASUREMENT = "MISSING_MEASUREMENT"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    QUANTITY_OVERFLOW = "QUANTITY_OVERFLOW"
    HIGH_QUANTITY = "HIGH_QUANTITY"
    INHERITED_ID = "INHERITED_ID"
    GENERATED_ID = "GENERATED_ID"
    INVALID_FORMAT = "INVALID_FORMAT"

    # File-level failures
    PARSE_FAILED = "PARSE_FAILED"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    EMPTY_WORKSHEET = "EMPTY_WORKSHEET"
    NO_HEADER_FOUND = "NO_HEADER_FOUND"
    NO_PRODUCTS_FOUND = "NO_PRODUCTS_FOUND"


class ErrorSeverity(str, Enum):
    """How serious a :class:`ValidationIssue` is."""

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ValidationIssue(BaseModel):
    """Structured error or warning attached to an analysis result.

    Carries an ``ErrorCode``, a human-readable message, a severity and
    optional location/context about the cell or product that produced it.
    """

    model_config = ConfigDict(frozen=True)

    code: ErrorCode
    message: str
    severity: ErrorSeverity
    row_index: int | None = None
    column_index: int | None = None
    value: Any = None
    context: dict[str, Any] | None = None


class AnalysisError(Exception):
    """Fatal analysis failure carrying a normalized :class:`ErrorCode`.

    Raised inside the pipeline and converted into a ``success=False``
    result at the analyzer's public entry point.
    """

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
