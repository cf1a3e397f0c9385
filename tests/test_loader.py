"""Tests for WorkbookLoader: openpyxl primary read, pandas fallback, edge cases."""

from __future__ import annotations

import hashlib
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import openpyxl
import pytest

from alucut_excel.errors import AnalysisError, ErrorCode
from alucut_excel.loader import LoadedSheet, WorkbookLoader
from tests.conftest import standard_grid, write_xlsx


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_empty_xlsx(path: Path) -> Path:
    wb = openpyxl.Workbook()
    wb.active.title = "Bos"
    file_path = path / "empty.xlsx"
    wb.save(file_path)
    wb.close()
    return file_path


def _create_two_sheet_xlsx(path: Path) -> Path:
    wb = openpyxl.Workbook()
    first = wb.active
    first.title = "Siparisler"
    first.append(["2351151", "KAPALI ALT"])
    second = wb.create_sheet("Notlar")
    second.append(["ignored"])
    file_path = path / "two_sheets.xlsx"
    wb.save(file_path)
    wb.close()
    return file_path


# ---------------------------------------------------------------------------
# openpyxl path
# ---------------------------------------------------------------------------


class TestOpenpyxlLoad:
    def test_returns_loaded_sheet(self, standard_xlsx):
        sheet = WorkbookLoader().load(standard_xlsx)

        assert isinstance(sheet, LoadedSheet)
        assert sheet.sheet_name == "Siparisler"
        assert len(sheet.rows) == len(standard_grid())

    def test_row_positions_are_preserved(self, standard_xlsx):
        rows = WorkbookLoader().load(standard_xlsx).rows

        assert rows[0][0] == "PREMIUM FRAME SİSTEMİ"
        assert all(cell is None for cell in rows[1])
        assert rows[3][0] == "İş Emri"
        assert rows[4][7:10] == ["KAPALI ALT", "25X25", "10"]

    def test_dates_are_kept(self, standard_xlsx):
        rows = WorkbookLoader().load(standard_xlsx).rows

        assert rows[4][1] == datetime(2024, 1, 15)

    def test_numbers_become_text(self, tmp_path):
        path = write_xlsx(tmp_path, [[2351151, 12.5, 4.0, "  Beyaz  "]])

        rows = WorkbookLoader().load(path).rows

        assert rows[0] == ["2351151", "12.5", "4", "Beyaz"]

    def test_trailing_blank_rows_trimmed(self, tmp_path):
        path = write_xlsx(tmp_path, [["TOTEM"], [None], ["2351151"], ["   "]])

        rows = WorkbookLoader().load(path).rows

        assert len(rows) == 3
        assert rows[2][0] == "2351151"

    def test_only_first_sheet_is_read(self, tmp_path):
        sheet = WorkbookLoader().load(_create_two_sheet_xlsx(tmp_path))

        assert sheet.sheet_name == "Siparisler"
        assert sheet.rows == [["2351151", "KAPALI ALT"]]

    def test_content_hash(self, standard_xlsx):
        sheet = WorkbookLoader().load(standard_xlsx)

        assert sheet.content_hash == hashlib.sha256(standard_xlsx.read_bytes()).hexdigest()


# ---------------------------------------------------------------------------
# pandas fallback
# ---------------------------------------------------------------------------


class TestPandasFallback:
    def test_falls_back_when_openpyxl_fails(self, tmp_path, caplog):
        path = write_xlsx(
            tmp_path,
            [
                ["TOTEM", "Renk", "Adet"],
                ["2351151", "Beyaz", 4],
                ["2351152", "Gri", 2],
            ],
        )

        with patch.object(WorkbookLoader, "_read_openpyxl", side_effect=ValueError("bad zip")):
            with caplog.at_level("WARNING", logger="alucut_excel"):
                sheet = WorkbookLoader().load(path)

        assert "openpyxl could not open file" in caplog.text
        assert sheet.sheet_name == "Siparisler"
        assert sheet.rows[0] == ["TOTEM", "Renk", "Adet"]
        assert sheet.rows[1] == ["2351151", "Beyaz", "4"]

    def test_both_readers_failing_is_parse_failure(self, tmp_path):
        path = tmp_path / "garbage.xlsx"
        path.write_bytes(b"this is not a workbook")

        with pytest.raises(AnalysisError) as exc_info:
            WorkbookLoader().load(path)

        assert exc_info.value.code is ErrorCode.PARSE_FAILED


# ---------------------------------------------------------------------------
# Edge cases
# ---------------------------------------------------------------------------


class TestLoadErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(AnalysisError) as exc_info:
            WorkbookLoader().load(tmp_path / "missing.xlsx")

        assert exc_info.value.code is ErrorCode.FILE_NOT_FOUND

    def test_empty_worksheet(self, tmp_path):
        with pytest.raises(AnalysisError) as exc_info:
            WorkbookLoader().load(_create_empty_xlsx(tmp_path))

        assert exc_info.value.code is ErrorCode.EMPTY_WORKSHEET

    def test_accepts_string_paths(self, standard_xlsx):
        sheet = WorkbookLoader().load(str(standard_xlsx))

        assert sheet.rows
