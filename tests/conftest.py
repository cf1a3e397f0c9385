"""Shared test fixtures for alucut-excel tests.

Provides a ``RecordingLogger`` satisfying the ``AnalysisLogger`` protocol,
row/grid builders laid out like the production work-order sheets, and
.xlsx file generators writing into ``tmp_path``.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

import openpyxl
import pytest

from alucut_excel.config import AnalyzerConfig
from alucut_excel.patterns import PatternDetector

HEADER_ROW = [
    "İş Emri",
    "Tarih",
    "Versiyon",
    "Renk",
    "Not",
    "Sip. Adet",
    "Ebat",
    "Profil",
    "Ölçü",
    "Adet",
]


# ---------------------------------------------------------------------------
# Recording logger
# ---------------------------------------------------------------------------


class RecordingLogger:
    """In-memory logger satisfying the ``AnalysisLogger`` protocol."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str]] = []

    def _record(self, level: str, msg: str, *args: Any) -> None:
        self.records.append((level, msg % args if args else msg))

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._record("debug", msg, *args)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._record("info", msg, *args)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._record("warning", msg, *args)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._record("error", msg, *args)

    def messages(self, level: str) -> list[str]:
        return [m for lvl, m in self.records if lvl == level]


# ---------------------------------------------------------------------------
# Grid builders
# ---------------------------------------------------------------------------


def make_row(
    *leading: Any,
    profile: Any = None,
    measurement: Any = None,
    quantity: Any = None,
    width: int = 10,
) -> list[Any]:
    """Build a sheet row: *leading* fills columns 0.., profile data sits in 7-9."""
    row: list[Any] = [None] * width
    for index, value in enumerate(leading):
        row[index] = value
    row[7] = profile
    row[8] = measurement
    row[9] = quantity
    return row


def blank_row(width: int = 10) -> list[Any]:
    return [None] * width


def title_row(name: str, width: int = 10) -> list[Any]:
    return make_row(name, width=width)


def standard_grid() -> list[list[Any]]:
    """One product, header on row 3, one work order spread over three rows."""
    return [
        title_row("PREMIUM FRAME SİSTEMİ"),
        blank_row(),
        blank_row(),
        list(HEADER_ROW),
        make_row(
            "2351151",
            datetime(2024, 1, 15),
            "V1",
            "Beyaz",
            "Acil",
            "100",
            "50x70",
            profile="KAPALI ALT",
            measurement="25X25",
            quantity="10",
        ),
        make_row(profile="AÇIK ÜST", measurement="992", quantity="4"),
        make_row(profile="KAPALI ÜST", measurement="992"),
    ]


def two_product_grid() -> list[list[Any]]:
    """Two products, each with one work order, sharing a single header."""
    return [
        title_row("PREMIUM FRAME SİSTEMİ"),
        blank_row(),
        blank_row(),
        list(HEADER_ROW),
        make_row("2351151", profile="KAPALI ALT", measurement="25X25", quantity="10"),
        make_row(profile="AÇIK ÜST", measurement="992", quantity="4"),
        title_row("TOTEM"),
        make_row("2351200", profile="KAPALI ALT", measurement="1200", quantity="2"),
        make_row(profile="Gövde", measurement="1200", quantity="6"),
    ]


# ---------------------------------------------------------------------------
# Workbook writers
# ---------------------------------------------------------------------------


def write_xlsx(directory: Path, rows: list[list[Any]], name: str = "workbook.xlsx") -> Path:
    """Write *rows* into the first worksheet of a new workbook."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Siparisler"
    for row_index, row in enumerate(rows, start=1):
        for col_index, value in enumerate(row, start=1):
            if value is not None:
                ws.cell(row=row_index, column=col_index, value=value)
    path = directory / name
    wb.save(path)
    wb.close()
    return path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> AnalyzerConfig:
    """Return an AnalyzerConfig with all defaults."""
    return AnalyzerConfig()


@pytest.fixture()
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture()
def detector(config: AnalyzerConfig, recording_logger: RecordingLogger) -> PatternDetector:
    return PatternDetector(config, recording_logger)


@pytest.fixture()
def standard_xlsx(tmp_path: Path) -> Path:
    return write_xlsx(tmp_path, standard_grid(), "standard.xlsx")


@pytest.fixture()
def two_product_xlsx(tmp_path: Path) -> Path:
    return write_xlsx(tmp_path, two_product_grid(), "two_products.xlsx")
