"""Work-order grouping and profile-item extraction for one product section.

The extractor walks a section's data rows in order.  A row that carries a
work-order ID opens (or re-opens) that order; the rows beneath it inherit the
ID until the next one appears.  Profile items are pulled from the
conventional column triple (profile, measurement, quantity) with shifted and
searched alternatives for sheets whose columns drift.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import NamedTuple

from alucut_excel.models import (
    DataSource,
    Grid,
    HeaderPattern,
    ProductSection,
    ProfileItem,
    Row,
    SourceType,
    WorkOrderItem,
    WorkOrderMetadata,
)
from alucut_excel.patterns import PatternDetector
from alucut_excel.protocols import AnalysisLogger
from alucut_excel.text import normalize_text, to_number, to_string

logger = logging.getLogger("alucut_excel")

MISSING_MEASUREMENT = "N/A"

_ID_COLUMNS = (0, 1, 2)
_DIGIT_ID = re.compile(r"^\d{6,8}$")
_DIGIT_ID_SCAN_COLUMNS = 10

# Conventional metadata columns when the header does not say otherwise.
_DEFAULT_METADATA_COLUMNS = {
    "date": 1,
    "version": 2,
    "color": 3,
    "note": 4,
    "sip_quantity": 5,
    "size": 6,
}

_KNOWN_PROFILE_TYPES = re.compile(
    r"(kapali\s*alt|acik\s*alt|kapali\s*ust|acik\s*ust|frame|cerceve|pervaz|ray"
    r"|profil|door|kapi|window|pencere|bracket|ayak|destek|kose)"
)
_DIMENSIONED = re.compile(r"\d+[\sx]\d+", re.IGNORECASE)
_WITH_UNIT = re.compile(r"\d+\s*(mm|cm|m)", re.IGNORECASE)


class ColumnTriple(NamedTuple):
    """Column positions of a (profile, measurement, quantity) triple."""

    profile: int
    measurement: int
    quantity: int


STANDARD_COLUMNS = ColumnTriple(7, 8, 9)
SHIFTED_COLUMNS = (ColumnTriple(6, 7, 8), ColumnTriple(8, 9, 10))

_SEARCH_START_COLUMN = 6
_SEARCH_END_COLUMN = 12
_LOOSE_SEARCH_COLUMNS = 15
_LOOSE_TRIPLE_CONFIDENCE = 0.7
_LOOSE_SEARCH_CONFIDENCE = 0.6


@dataclass
class _WorkOrderGroup:
    metadata: WorkOrderMetadata
    row_index: int
    profiles: list[ProfileItem] = field(default_factory=list)


class DataExtractor:
    """Turns a :class:`ProductSection` into :class:`WorkOrderItem` objects.

    Parameters
    ----------
    header_pattern:
        Detected header, used to locate metadata columns.  Conventional
        positions are used for any field it does not map.
    detector:
        Supplies the work-order ID and profile-type rules.
    log:
        Logger for extraction decisions.
    """

    def __init__(
        self,
        header_pattern: HeaderPattern | None = None,
        detector: PatternDetector | None = None,
        log: AnalysisLogger | None = None,
    ) -> None:
        self._header = header_pattern
        self._log = log or logger
        self._detector = detector or PatternDetector(log=self._log)

    # ------------------------------------------------------------------
    # Work orders
    # ------------------------------------------------------------------

    def extract_work_orders(self, grid: Grid, section: ProductSection) -> list[WorkOrderItem]:
        """Group the section's data rows into work orders.

        Orders are returned in first-seen order.  Orders that end up with no
        profile items are dropped.
        """
        groups: dict[str, _WorkOrderGroup] = {}
        current_id = ""

        for row_index in section.data_rows:
            if row_index >= len(grid):
                continue
            row = grid[row_index]

            found_id = self.extract_work_order_id(row)
            if found_id:
                current_id = found_id
                if current_id not in groups:
                    groups[current_id] = _WorkOrderGroup(self.extract_metadata(row), row_index)
                target = current_id
            elif current_id:
                target = current_id
            else:
                target = f"WO_{row_index:06d}"
                if target not in groups:
                    groups[target] = _WorkOrderGroup(WorkOrderMetadata(), row_index)
                self._log.debug("Row %d has no work order; using %s", row_index, target)

            groups[target].profiles.extend(self.extract_items(row, row_index))

        work_orders = []
        for work_order_id, group in groups.items():
            if not group.profiles:
                continue
            work_orders.append(_build_work_order(work_order_id, group))
        return work_orders

    def extract_work_order_id(self, row: Row) -> str | None:
        """Read the work-order ID of *row*, joining several with ``+``.

        Columns 0-2 are checked with the full ID rules.  When none matches,
        the first 6-8 digit cell among the first ten columns is used.
        """
        ids = []
        for col_index in _ID_COLUMNS:
            value = _cell_text(row, col_index)
            if self._detector.is_valid_work_order_id(value):
                ids.append(value)

        if not ids:
            for col_index in range(min(len(row), _DIGIT_ID_SCAN_COLUMNS)):
                value = _cell_text(row, col_index)
                if _DIGIT_ID.search(value):
                    ids.append(value)
                    break

        if not ids:
            return None
        if len(ids) > 1:
            self._log.debug("Combined %d work order IDs on one row", len(ids))
        return "+".join(ids)

    def extract_metadata(self, row: Row) -> WorkOrderMetadata:
        """Read descriptive fields from a work order's ID row; blanks are omitted."""
        columns = dict(_DEFAULT_METADATA_COLUMNS)
        if self._header is not None:
            mapping = self._header.columns
            for name in columns:
                index = getattr(mapping, name)
                if index is not None:
                    columns[name] = index

        values: dict[str, object] = {}
        for name, index in columns.items():
            if name == "sip_quantity":
                number = to_number(row[index]) if index < len(row) else None
                if number:
                    values[name] = float(number)
                continue
            text = _cell_text(row, index)
            if text:
                values[name] = text
        return WorkOrderMetadata(**values)

    # ------------------------------------------------------------------
    # Profile items
    # ------------------------------------------------------------------

    def extract_items(self, row: Row, row_index: int) -> list[ProfileItem]:
        """Extract profile items from *row*.

        The standard columns win outright.  Otherwise both shifted triples
        are tried, and as a last resort columns 6-11 are searched for a
        profile-shaped cell followed by a measurement and a quantity.
        """
        item = self._item_at(row, row_index, STANDARD_COLUMNS)
        if item is not None:
            return [item]

        items = []
        for triple in SHIFTED_COLUMNS:
            item = self._item_at(row, row_index, triple)
            if item is not None:
                self._log.debug(
                    "Row %d: profile found in shifted columns %d-%d-%d",
                    row_index,
                    *triple,
                )
                items.append(item)
        if items:
            return items

        for col_index in range(_SEARCH_START_COLUMN, min(len(row), _SEARCH_END_COLUMN)):
            if not self._detector.looks_like_profile_type(_cell_text(row, col_index)):
                continue
            triple = ColumnTriple(col_index, col_index + 1, col_index + 2)
            item = self._item_at(row, row_index, triple)
            if item is not None:
                self._log.debug("Row %d: profile found by search at column %d", row_index, col_index)
                return [item]
        return []

    def extract_items_loose(self, row: Row, row_index: int) -> list[ProfileItem]:
        """Last-chance extraction for rows the regular cascade cannot read.

        Tries the three column triples with a flat confidence, then scans
        the first fifteen columns for a profile-shaped cell with a positive
        quantity one to four columns to its right.
        """
        for triple in (STANDARD_COLUMNS, *SHIFTED_COLUMNS):
            profile = _cell_text(row, triple.profile)
            quantity = _cell_quantity(row, triple.quantity)
            if quantity is None or not self._detector.looks_like_profile_type(profile):
                continue
            return [
                ProfileItem(
                    profile_type=profile,
                    measurement=_cell_text(row, triple.measurement) or MISSING_MEASUREMENT,
                    quantity=quantity,
                    row_index=row_index,
                    confidence=_LOOSE_TRIPLE_CONFIDENCE,
                )
            ]

        items = []
        for col_index in range(min(len(row), _LOOSE_SEARCH_COLUMNS)):
            profile = _cell_text(row, col_index)
            if not self._detector.looks_like_profile_type(profile):
                continue
            for quantity_col in range(col_index + 1, min(len(row), col_index + 5)):
                quantity = _cell_quantity(row, quantity_col)
                if quantity is None:
                    continue
                measurement = ""
                if quantity_col - 1 > col_index:
                    measurement = _cell_text(row, quantity_col - 1)
                items.append(
                    ProfileItem(
                        profile_type=profile,
                        measurement=measurement or MISSING_MEASUREMENT,
                        quantity=quantity,
                        row_index=row_index,
                        confidence=_LOOSE_SEARCH_CONFIDENCE,
                    )
                )
                break
        return items

    def profile_confidence(self, profile_type: str, measurement: str, quantity: int) -> float:
        """Score an extracted profile item between 0.5 and 1.0."""
        confidence = 0.5

        if _KNOWN_PROFILE_TYPES.search(normalize_text(profile_type)):
            confidence += 0.3

        if measurement and measurement != MISSING_MEASUREMENT:
            if _DIMENSIONED.search(measurement) or _WITH_UNIT.search(measurement):
                confidence += 0.2
            elif len(measurement) > 3:
                confidence += 0.1

        if 0 < quantity < 10000:
            confidence += 0.1

        return min(confidence, 1.0)

    def _item_at(self, row: Row, row_index: int, triple: ColumnTriple) -> ProfileItem | None:
        profile = _cell_text(row, triple.profile)
        if not self._detector.looks_like_profile_type(profile):
            return None
        quantity = _cell_quantity(row, triple.quantity)
        if quantity is None:
            return None
        measurement = _cell_text(row, triple.measurement) or MISSING_MEASUREMENT
        return ProfileItem(
            profile_type=profile,
            measurement=measurement,
            quantity=quantity,
            row_index=row_index,
            confidence=self.profile_confidence(profile, measurement, quantity),
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _cell_text(row: Row, index: int) -> str:
    return to_string(row[index]) if 0 <= index < len(row) else ""


def _cell_quantity(row: Row, index: int) -> int | None:
    """Positive whole-number quantity at ``row[index]``, else ``None``."""
    if not 0 <= index < len(row):
        return None
    number = to_number(row[index])
    if number is None or number <= 0 or number != int(number):
        return None
    return int(number)


def _build_work_order(work_order_id: str, group: _WorkOrderGroup) -> WorkOrderItem:
    profiles = tuple(group.profiles)
    confidence = sum(p.confidence for p in profiles) / len(profiles)

    if "+" in work_order_id:
        source = DataSource(
            type=SourceType.MERGED,
            parent_work_order_id=work_order_id.split("+", 1)[0],
            original_row_index=group.row_index,
        )
    else:
        source = DataSource(type=SourceType.DIRECT, original_row_index=group.row_index)

    return WorkOrderItem(
        work_order_id=work_order_id,
        profiles=profiles,
        metadata=group.metadata,
        row_index=group.row_index,
        confidence=confidence,
        source=source,
        total_quantity=sum(p.quantity for p in profiles),
    )
