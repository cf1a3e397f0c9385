"""Rule-based heuristics that classify rows and cells of a work-order sheet.

The :class:`PatternDetector` locates the header row, decides which cells are
product names and which are work-order IDs or profile types, classifies data
rows, and walks the whole sheet to carve it into :class:`ProductSection`
objects.  Every method is a deterministic function of its arguments and the
configured thresholds.

Matching is done against :func:`~alucut_excel.text.normalize_text` output
(lower-case, Turkish diacritics folded to ASCII) unless a rule depends on the
original capitalisation, in which case the raw trimmed text is used.
"""

from __future__ import annotations

import logging
import re
from typing import NamedTuple

from alucut_excel.config import AnalyzerConfig
from alucut_excel.models import (
    ColumnMapping,
    Grid,
    HeaderPattern,
    ProductSection,
    Row,
)
from alucut_excel.protocols import AnalysisLogger
from alucut_excel.text import is_blank, normalize_text, to_number, to_string

logger = logging.getLogger("alucut_excel")


# ---------------------------------------------------------------------------
# Header field definitions
# ---------------------------------------------------------------------------


class FieldPattern(NamedTuple):
    """One header keyword rule: which field it maps and how much it counts."""

    pattern: re.Pattern[str]
    field: str
    weight: float
    required: bool


HEADER_PATTERNS: tuple[FieldPattern, ...] = (
    FieldPattern(re.compile(r"^(is\s*emri|work\s*order|wo\b)"), "work_order_id", 1.0, False),
    FieldPattern(re.compile(r"^(tarih|date)"), "date", 0.8, False),
    FieldPattern(re.compile(r"^(versiyon|version|ver)"), "version", 0.7, False),
    FieldPattern(re.compile(r"^(renk|color|rang)"), "color", 0.7, False),
    FieldPattern(re.compile(r"^(not|note|aciklama|description)"), "note", 0.6, False),
    FieldPattern(re.compile(r"^(sip\.?\s*adet|siparis\s*adet)"), "sip_quantity", 0.8, False),
    FieldPattern(re.compile(r"^(ebat|size|boyut|olcek)"), "size", 0.7, False),
    FieldPattern(re.compile(r"^(profil|profile)"), "profile", 1.0, True),
    FieldPattern(re.compile(r"^(olcu|measure)"), "measurement", 1.0, True),
    FieldPattern(re.compile(r"^(adet|quantity|miktar|qty)"), "quantity", 1.0, True),
)

_REQUIRED_FIELD_COUNT = sum(1 for p in HEADER_PATTERNS if p.required)


# ---------------------------------------------------------------------------
# Product name rules
# ---------------------------------------------------------------------------

_UPPER = "A-ZÇĞIİÖŞÜ"

# Matched against the raw trimmed value.
_RAW_NOT_PRODUCT = (
    re.compile(r"^\d+$"),
    re.compile(r"^[A-Z]$"),
)

# Matched against the normalized value.
_NOT_PRODUCT = (
    re.compile(r"^(is\b|work|tarih|date|renk|color|not|note|adet|quantity|profil|profile|olcu|ebat|sip)"),
    re.compile(r"^(hafta|sayfa|toplam|ozet|rapor)$"),
    re.compile(r"^(kapali|acik)\s*(alt|ust)$"),
    re.compile(r"^(closed|open)\s*(bottom|top)$"),
    re.compile(r"^\d+\.?\s*hafta$"),
    re.compile(r"^sayfa\s*\d+$"),
    re.compile(r"^(versiyon|version|ebat|size|olcum|measure|measurement|miktar|siparis\s*adet)$"),
)

_DIMENSION_ONLY = re.compile(r"^\d+\s*x\s*\d+$")

_CATEGORY_WORDS = re.compile(
    r"(frame|gonye|ledbox|totem|kapi|door|pencere|window|poster|brosur|tabela"
    r"|aboard|slide|convex|sistem|system|set|kit)"
)
_SIZE_SUFFIX = re.compile(r"\d+\s*['\"’]?\s*l[iu]k\b")
_QUALITY_WORDS = re.compile(r"(premium|standart|ekonomik|deluxe|pro|max|slim|eco|best|plus)")
_FEATURE_WORDS = re.compile(
    r"(su\s*korumali|waterproof|manyetik|zor\s*acilan|cift\s*tarafli|tek\s*tarafli)"
)
_MATERIAL_WORDS = re.compile(r"(aluminyum|aluminium|aluminum|pvc|metal|plastik|akrilik)")
_CAPITALIZED_PHRASE = re.compile(rf"^[{_UPPER}][^\W\d_]*(\s+[^\W\d_]+)+$")
_CAPITAL_RUN = re.compile(rf"[{_UPPER}]{{3,}}")

# Real-world names the generic scoring under-rates; matched on the raw value.
KNOWN_PRODUCTS = (
    re.compile(r"^İNCE HELEZON$"),
    re.compile(r"^TOTEM$"),
    re.compile(r"^LEDLİ PLUS$"),
    re.compile(r"^30'LUK RONDOLU$"),
    re.compile(r"^25'LİK CAM ÇERÇEVE"),
    re.compile(r"^32'LİK CAM ÇERÇEVE"),
    re.compile(r"^TEK TARAFLI SÜRGÜLÜ ÇERÇEVE$"),
    re.compile(r"^MENÜLÜK İÇ / DIŞ$"),
    re.compile(r"^İÇ ÇENE/DIŞ ÇENE$"),
    re.compile(r"^70X70 İKİ KANALLI STAND PROFİLİ$"),
    re.compile(r"^25'LİK RONDOLU$"),
    re.compile(r"^25'LİK SÜRGÜLÜ ÇERÇEVE$"),
)

_STRONG_PRODUCT_WORDS = re.compile(
    r"(frame|gonye|ledbox|totem|poster|tabela|door|window|aboard|slide|convex"
    r"|brosur|helezon|cene|menuluk)"
)
_TIER_WORDS = re.compile(r"(premium|standart|ekonomik|deluxe|plus|slim|pro|max)")
_SPECIAL_FEATURES = re.compile(
    r"(su\s*korumali|waterproof|manyetik|zor\s*acilan|cam\s*cerceve|kanalli|kanalsiz)"
)
_HEADER_WORD = re.compile(r"^(is|emri|tarih|renk|not|adet|profil|olcu|ebat)$")

_INFERENCE_HINT = re.compile(r"(kapali|acik|alt|ust|frame|gonye)")


# ---------------------------------------------------------------------------
# Work order ID rules
# ---------------------------------------------------------------------------

_ID_FLAGS = re.IGNORECASE | re.ASCII

WORK_ORDER_PATTERNS = tuple(
    re.compile(p, _ID_FLAGS)
    for p in (
        r"^\d{7}$",
        r"^\d{6}$",
        r"^\d{5}$",
        r"^\d{4}$",
        r"^[A-Z]{1,3}\d{3,7}$",
        r"^WO-?\d{4,8}$",
        r"^[A-Z]{2,4}-?\d{4,8}$",
        r"^[A-Z]{1,2}\d{4,8}[A-Z]*$",
        r"^\d{3,8}[A-Z]{1,3}$",
        r"^[A-Z]{1,4}/\d{4,8}$",
        r"^\d{2,4}[-/]\d{3,6}$",
        r"^[A-Z]\d{2,3}[-/]\d{3,6}$",
        r"^[A-Z0-9]{3,12}$",
        r"^\d{3,8}$",
    )
)

_RELAXED_WORK_ORDER = re.compile(r"^[A-Z0-9]{3,15}$", _ID_FLAGS)

# Field names, profile vocabulary and product words that are never IDs.
NON_ID_WORDS = frozenset(
    {
        "profil", "profile", "olcu", "adet", "miktar", "qty", "quantity",
        "renk", "color", "not", "note", "ebat", "size", "sip", "tarih", "date",
        "versiyon", "version", "govde", "kapak", "kutu", "elips", "kanalli",
        "kaynakli", "altigen", "yedigen", "stand", "frame", "cerceve", "surgulu",
        "brosur", "poster", "totem", "slide", "aboard", "convex", "ledbox",
        "gonye", "menuluk", "door", "sign", "premium", "rondolu", "windpro",
        "slim", "leda", "magneco", "bestbuy", "buymax", "easy", "infoboard",
        "helezon",
    }
)


# ---------------------------------------------------------------------------
# Profile type rules (matched against normalized text)
# ---------------------------------------------------------------------------

PROFILE_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"^(kapali|acik)\s*(alt|ust)$",
        r"\d+\s*x\s*\d+\s*kutu",
        r"panel\s*kutu",
        r"\d+\s*x\s*\d+$",
        r"\d+\s*x\s*\d+\s*-\s*kaynakli",
        r"\d+\s*kanalli",
        r"kanalsiz",
        r"(elips|yedigen|altigen)",
        r"cift\s*kan\.\s*elips",
        r"brs\.\s*set",
        r"\d+'?lik\s*stand",
        r"altigen\s*raf",
        r"rondolu",
        r"premium\s*kapak",
        r"(u\s*profili|ray)",
        r"cene",
        r"(govde|kapak|alt\s*kapak|ust\s*kapak|ic\s*govde)",
        r"frame",
        r"cerceve",
        r"pervaz",
        r"door",
        r"kapi",
        r"window",
        r"pencere",
        r"bracket",
        r"ayak",
        r"destek",
        r"kose",
        r"kaynak",
    )
)


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------


class _Candidate(NamedTuple):
    name: str
    row: int
    confidence: float


class PatternDetector:
    """Stateless heuristics over a loaded sheet grid.

    Parameters
    ----------
    config:
        Thresholds and scan limits.  Uses defaults when *None*.
    log:
        Logger for heuristic decisions.  Uses the package logger when *None*.
    """

    def __init__(
        self,
        config: AnalyzerConfig | None = None,
        log: AnalysisLogger | None = None,
    ) -> None:
        self._config = config or AnalyzerConfig()
        self._log = log or logger

    # ------------------------------------------------------------------
    # Header detection
    # ------------------------------------------------------------------

    def detect_header_row(self, grid: Grid, start_index: int = 0) -> HeaderPattern | None:
        """Find the header row, trying the conventional position first.

        The row at ``config.assumed_header_row`` is scored first.  When it is
        missing or scores below ``header_min_confidence``, up to
        ``header_scan_limit`` rows from *start_index* are scanned and the best
        match is kept, stopping early once a match exceeds
        ``header_early_exit_confidence``.
        """
        cfg = self._config
        assumed = cfg.assumed_header_row

        pattern = None
        if 0 <= assumed < len(grid) and grid[assumed]:
            pattern = self.analyze_row_as_header(grid[assumed], assumed)
        if pattern is not None and pattern.confidence >= cfg.header_min_confidence:
            return pattern

        best: HeaderPattern | None = None
        limit = min(len(grid), start_index + cfg.header_scan_limit)
        for index in range(start_index, limit):
            row = grid[index]
            if not row:
                continue
            candidate = self.analyze_row_as_header(row, index)
            if candidate is not None and (best is None or candidate.confidence > best.confidence):
                best = candidate
            if best is not None and best.confidence > cfg.header_early_exit_confidence:
                break

        if best is not None:
            self._log.debug(
                "Header found by scan at row %d (confidence=%.2f)",
                best.row_index,
                best.confidence,
            )
        return best

    def analyze_row_as_header(self, row: Row, row_index: int) -> HeaderPattern | None:
        """Score a single row as a header, or return ``None`` if it cannot be one."""
        columns: dict[str, int] = {}
        matched_weight = 0.0
        required_found = 0

        for col_index, cell in enumerate(row):
            text = normalize_text(cell)
            if not text:
                continue
            for field_pattern in HEADER_PATTERNS:
                if field_pattern.pattern.search(text):
                    if field_pattern.field not in columns:
                        columns[field_pattern.field] = col_index
                        matched_weight += field_pattern.weight
                        if field_pattern.required:
                            required_found += 1
                    break

        min_required = int(_REQUIRED_FIELD_COUNT * 0.5)
        if required_found < min_required or len(columns) < self._config.header_min_fields:
            return None

        total_weight = sum(p.weight for p in HEADER_PATTERNS if p.field in columns)
        confidence = matched_weight / total_weight if total_weight > 0 else 0.0

        return HeaderPattern(
            columns=ColumnMapping(**columns),
            confidence=confidence,
            row_index=row_index,
            detected_fields=len(columns),
        )

    # ------------------------------------------------------------------
    # Product names
    # ------------------------------------------------------------------

    def is_obviously_not_product(self, value: str) -> bool:
        """Denylist check: numbers, single letters, header words, profile types."""
        raw = value.strip()
        if any(p.search(raw) for p in _RAW_NOT_PRODUCT):
            return True
        text = normalize_text(raw)
        return any(p.search(text) for p in _NOT_PRODUCT)

    def has_product_characteristics(self, value: str) -> bool:
        """Return True if *value* looks like a product name on any heuristic."""
        raw = value.strip()
        text = normalize_text(raw)
        return bool(
            _CATEGORY_WORDS.search(text)
            or _SIZE_SUFFIX.search(text)
            or _CAPITALIZED_PHRASE.search(raw)
            or _QUALITY_WORDS.search(text)
            or _FEATURE_WORDS.search(text)
            or _MATERIAL_WORDS.search(text)
            or _CAPITAL_RUN.search(raw)
        )

    def is_valid_product_name(self, value: str) -> bool:
        """Return True if *value* can name a product section."""
        if not value or len(value) < 3 or len(value) > 100:
            return False
        if self.is_obviously_not_product(value):
            return False
        if _DIMENSION_ONLY.search(normalize_text(value)):
            return False
        return self.has_product_characteristics(value)

    def product_name_confidence(self, value: str, row_index: int, col_index: int) -> float:
        """Score how likely *value* is a product name at the given position."""
        if self.is_obviously_not_product(value):
            return 0.0

        raw = value.strip()
        if any(p.search(raw) for p in KNOWN_PRODUCTS):
            return 1.0

        text = normalize_text(raw)
        confidence = 0.5

        if col_index == 0:
            confidence += 0.2
        if row_index < 50:
            confidence += 0.05

        if _STRONG_PRODUCT_WORDS.search(text):
            confidence += 0.3
        if _SIZE_SUFFIX.search(text):
            confidence += 0.2
        if _TIER_WORDS.search(text):
            confidence += 0.1
        if _SPECIAL_FEATURES.search(text):
            confidence += 0.15
        if len(raw.split()) >= 2:
            confidence += 0.05
        if _CAPITAL_RUN.search(raw):
            confidence += 0.05
        if 5 <= len(raw) <= 60:
            confidence += 0.05

        if raw.isdigit() or len(raw) < 3:
            confidence = 0.0
        if len(raw) > 100:
            confidence -= 0.2
        if _HEADER_WORD.search(text):
            confidence = 0.0

        return max(0.0, min(1.0, confidence))

    def infer_product_from_row(self, grid: Grid, row_index: int) -> str | None:
        """Guess a product name for the data row at *row_index*.

        Looks back up to ``inference_lookback_rows`` rows for a confident
        product name, then falls back to a generic category derived from the
        profile vocabulary found on the row itself.
        """
        cfg = self._config
        for index in range(row_index - 1, max(0, row_index - cfg.inference_lookback_rows) - 1, -1):
            row = grid[index]
            for col_index in range(min(len(row), cfg.inference_lookback_columns)):
                value = to_string(row[col_index])
                if not self.is_valid_product_name(value):
                    continue
                if self.product_name_confidence(value, index, col_index) > cfg.inference_min_confidence:
                    return value

        hints = [
            text
            for text in (normalize_text(cell) for cell in grid[row_index])
            if _INFERENCE_HINT.search(text)
        ]
        if not hints:
            return None
        main = hints[0]
        if "frame" in main or "gonye" in main:
            return "FRAME SYSTEM"
        if "kapali" in main or "acik" in main:
            return "PROFILE SYSTEM"
        return "ALUMINUM PROFILE"

    # ------------------------------------------------------------------
    # Cell and row classification
    # ------------------------------------------------------------------

    def is_valid_work_order_id(self, value: str) -> bool:
        """Return True if *value* has the shape of a work-order ID.

        Deliberately permissive: a false positive costs a spurious work
        order, a false negative silently merges two orders.
        """
        if not value or not value.strip():
            return False
        trimmed = value.strip()
        if normalize_text(trimmed) in NON_ID_WORDS:
            return False
        if any(p.search(trimmed) for p in WORK_ORDER_PATTERNS):
            return True
        return bool(_RELAXED_WORK_ORDER.search(trimmed))

    def looks_like_profile_type(self, value: str) -> bool:
        """Return True if *value* matches the known profile vocabulary."""
        if not value or len(value.strip()) < 3:
            return False
        text = normalize_text(value)
        return any(p.search(text) for p in PROFILE_PATTERNS)

    def is_data_row(self, row: Row) -> bool:
        """Return True if *row* carries a work-order ID or profile data.

        A data row has some content and either a valid ID in column 0, or a
        profile type in column 7 together with a positive quantity in
        column 9 or a measurement in column 8.
        """
        if all(is_blank(cell) for cell in row):
            return False

        work_order_id = _cell_text(row, 0)
        profile = _cell_text(row, 7)
        measurement = _cell_text(row, 8)
        quantity = to_number(row[9]) if len(row) > 9 else None

        if work_order_id and self.is_valid_work_order_id(work_order_id):
            return True

        if not (profile and self.looks_like_profile_type(profile)):
            return False
        return (quantity is not None and quantity > 0) or bool(measurement)

    # ------------------------------------------------------------------
    # Product sections
    # ------------------------------------------------------------------

    def detect_product_sections(
        self, grid: Grid, header: HeaderPattern | None = None
    ) -> list[ProductSection]:
        """Carve the whole sheet into product sections.

        Scanning always starts at row 0 because product names may sit above
        or between header/data blocks.  Sections whose names collide after
        case/whitespace normalization are merged.  When nothing is found a
        single ``fallback_product_name`` section covering every data row is
        returned (or nothing, if the sheet has no data rows at all).
        """
        sections: list[ProductSection] = []
        index_by_name: dict[str, int] = {}

        cursor = 0
        attempts = 0
        while cursor < len(grid) and attempts < len(grid):
            attempts += 1
            section = self._find_next_section(grid, cursor, header)
            if section is None:
                cursor += 1
                continue

            key = section.normalized_name
            if key in index_by_name:
                position = index_by_name[key]
                sections[position] = _merge_sections(sections[position], section)
                self._log.debug("Merged duplicate product section '%s'", section.product_name)
            else:
                index_by_name[key] = len(sections)
                sections.append(section)
                self._log.debug(
                    "Added product section '%s' (rows %d-%d)",
                    section.product_name,
                    section.start_row,
                    section.end_row,
                )
            cursor = section.end_row + 1

        if not sections:
            fallback = self._create_fallback_section(grid, header)
            if fallback is not None:
                self._log.warning(
                    "No product names found; using fallback section with %d data rows",
                    len(fallback.data_rows),
                )
                sections.append(fallback)

        self._log.info("Found %d unique product sections", len(sections))
        return sections

    def _find_next_section(
        self, grid: Grid, start_index: int, header: HeaderPattern | None
    ) -> ProductSection | None:
        cfg = self._config
        header_row = header.row_index if header is not None else -1

        product_name = ""
        section_start = start_index

        # Phase 1: best product-name candidate in the window.
        candidates: list[_Candidate] = []
        window_end = min(start_index + cfg.product_scan_window, len(grid))
        for row_index in range(start_index, window_end):
            row = grid[row_index]
            for col_index in range(min(len(row), cfg.product_scan_columns)):
                value = to_string(row[col_index])
                if not self.is_valid_product_name(value):
                    continue
                confidence = self.product_name_confidence(value, row_index, col_index)
                candidates.append(_Candidate(value, row_index, confidence))
                if cfg.log_sample_data:
                    self._log.debug(
                        "Product candidate '%s' at (%d, %d) confidence=%.2f",
                        value,
                        row_index,
                        col_index,
                        confidence,
                    )

        if candidates:
            best = max(candidates, key=lambda c: c.confidence)
            if best.confidence > cfg.product_min_confidence:
                product_name = best.name
                section_start = best.row

        # Phase 2: infer the product from the first data row's context.
        if not product_name:
            scan_end = min(start_index + cfg.inference_scan_rows, len(grid))
            for row_index in range(max(start_index, header_row + 1), scan_end):
                if not self.is_data_row(grid[row_index]):
                    continue
                inferred = self.infer_product_from_row(grid, row_index)
                if inferred:
                    product_name = inferred
                    section_start = row_index
                    self._log.debug("Inferred product '%s' from row %d", inferred, row_index)
                    break

        if not product_name:
            return None

        # Phase 3: collect data rows until a different, confident product name.
        data_rows: list[int] = []
        scan_end = min(section_start + cfg.section_scan_limit, len(grid))
        for row_index in range(max(section_start, header_row + 1), scan_end):
            row = grid[row_index]
            if self.is_data_row(row):
                data_rows.append(row_index)
            elif data_rows:
                next_name = _cell_text(row, 0)
                if (
                    next_name != product_name
                    and self.is_valid_product_name(next_name)
                    and self.product_name_confidence(next_name, row_index, 0)
                    > cfg.section_break_confidence
                ):
                    self._log.debug("Section '%s' ends before row %d", product_name, row_index)
                    break

        if not data_rows:
            self._log.debug("No data rows found for product '%s'", product_name)
            return None

        return ProductSection(
            product_name=product_name,
            start_row=section_start,
            end_row=max(data_rows),
            header_row=header_row if header_row >= 0 else section_start,
            data_rows=tuple(data_rows),
            confidence=cfg.section_confidence,
        )

    def _create_fallback_section(
        self, grid: Grid, header: HeaderPattern | None
    ) -> ProductSection | None:
        first_row = header.row_index + 1 if header is not None else 0
        data_rows = tuple(
            index for index in range(first_row, len(grid)) if self.is_data_row(grid[index])
        )
        if not data_rows:
            return None
        return ProductSection(
            product_name=self._config.fallback_product_name,
            start_row=0,
            end_row=max(data_rows),
            header_row=header.row_index if header is not None else 0,
            data_rows=data_rows,
            confidence=self._config.fallback_section_confidence,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _cell_text(row: Row, index: int) -> str:
    """Trimmed text of ``row[index]``, or ``""`` past the end of the row."""
    return to_string(row[index]) if index < len(row) else ""


def _merge_sections(existing: ProductSection, incoming: ProductSection) -> ProductSection:
    """Union two sections that name the same product."""
    return existing.model_copy(
        update={
            "start_row": min(existing.start_row, incoming.start_row),
            "end_row": max(existing.end_row, incoming.end_row),
            "data_rows": tuple(sorted(set(existing.data_rows) | set(incoming.data_rows))),
            "confidence": max(existing.confidence, incoming.confidence),
        }
    )
