"""Workbook reader producing the row grid the analyzer works on.

Two-tier strategy for ``.xlsx`` files:

1. **openpyxl** ``read_only``/``data_only`` -- cached cell values, streamed.
2. **pandas** ``read_excel(header=None)`` -- used when openpyxl cannot open
   the workbook at all.

Only the first worksheet is read.  Row positions are preserved (leading
blank rows stay, trailing blank rows are dropped) because every index the
analyzer reports is a 0-based row of this grid.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

import openpyxl
import pandas as pd

from alucut_excel.errors import AnalysisError, ErrorCode
from alucut_excel.models import CellValue
from alucut_excel.text import to_string

logger = logging.getLogger("alucut_excel")


@dataclass(frozen=True)
class LoadedSheet:
    """Cell values of one worksheet plus provenance."""

    sheet_name: str
    rows: list[list[CellValue]]
    content_hash: str


class WorkbookLoader:
    """Reads the first worksheet of an ``.xlsx`` file into a grid."""

    def load(self, file_path: str | Path) -> LoadedSheet:
        """Load *file_path* and return its first worksheet.

        Raises
        ------
        AnalysisError
            ``FILE_NOT_FOUND`` when the path does not exist, ``EMPTY_WORKSHEET``
            when the workbook has no sheet or the sheet has no non-blank cell,
            ``PARSE_FAILED`` when neither reader can open the file.
        """
        path = Path(file_path)
        if not path.is_file():
            raise AnalysisError(ErrorCode.FILE_NOT_FOUND, f"Excel file not found: {path}")

        start = time.monotonic()
        content_hash = self._compute_content_hash(path)

        try:
            sheet_name, raw_rows = self._read_openpyxl(path)
        except AnalysisError:
            raise
        except Exception as exc:
            logger.warning("openpyxl could not open file %s: %s", path, exc)
            sheet_name, raw_rows = self._read_pandas(path)

        rows = _trim_trailing_blank_rows([[_coerce_cell(v) for v in row] for row in raw_rows])
        if not rows:
            raise AnalysisError(
                ErrorCode.EMPTY_WORKSHEET, f"Worksheet '{sheet_name}' has no data"
            )

        logger.info(
            "Loaded sheet '%s' from %s: %d rows (%.3fs)",
            sheet_name,
            path.name,
            len(rows),
            time.monotonic() - start,
        )
        return LoadedSheet(sheet_name=sheet_name, rows=rows, content_hash=content_hash)

    # ------------------------------------------------------------------
    # Content hash
    # ------------------------------------------------------------------

    def _compute_content_hash(self, path: Path) -> str:
        """Compute SHA-256 hex digest of the raw file bytes."""
        return hashlib.sha256(path.read_bytes()).hexdigest()

    # ------------------------------------------------------------------
    # Tier 1: openpyxl
    # ------------------------------------------------------------------

    def _read_openpyxl(self, path: Path) -> tuple[str, list[list[object]]]:
        wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
        try:
            if not wb.sheetnames:
                raise AnalysisError(ErrorCode.EMPTY_WORKSHEET, "Workbook has no worksheets")
            ws = wb[wb.sheetnames[0]]
            rows = [list(row) for row in ws.iter_rows(values_only=True)]
            return ws.title, rows
        finally:
            wb.close()

    # ------------------------------------------------------------------
    # Tier 2: pandas
    # ------------------------------------------------------------------

    def _read_pandas(self, path: Path) -> tuple[str, list[list[object]]]:
        try:
            sheets = pd.read_excel(path, sheet_name=None, header=None)
        except Exception as exc:
            logger.error("Parse failed: no reader could open %s", path)
            raise AnalysisError(
                ErrorCode.PARSE_FAILED, f"Could not read workbook {path.name}: {exc}"
            ) from exc

        if not sheets:
            raise AnalysisError(ErrorCode.EMPTY_WORKSHEET, "Workbook has no worksheets")

        sheet_name, df = next(iter(sheets.items()))
        rows: list[list[object]] = []
        for _, row in df.iterrows():
            rows.append([v if pd.notna(v) else None for v in row])
        logger.info("Read sheet '%s' of %s with pandas fallback", sheet_name, path.name)
        return str(sheet_name), rows


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _coerce_cell(value: object) -> CellValue:
    """Keep dates, render everything else as trimmed text, blanks as ``None``."""
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, (datetime, date)):
        return value
    text = to_string(value)  # type: ignore[arg-type]
    return text or None


def _trim_trailing_blank_rows(rows: list[list[CellValue]]) -> list[list[CellValue]]:
    end = len(rows)
    while end > 0 and all(cell is None for cell in rows[end - 1]):
        end -= 1
    return rows[:end]
