"""Tests for DataExtractor work-order grouping and profile-item extraction."""

from __future__ import annotations

import pytest

from alucut_excel.extractor import DataExtractor
from alucut_excel.models import ColumnMapping, HeaderPattern, ProductSection, SourceType
from tests.conftest import make_row, standard_grid


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _section(data_rows: tuple[int, ...], name: str = "TOTEM") -> ProductSection:
    return ProductSection(
        product_name=name,
        start_row=0,
        end_row=max(data_rows) if data_rows else 0,
        header_row=0,
        data_rows=data_rows,
        confidence=0.8,
    )


@pytest.fixture()
def extractor(detector, recording_logger) -> DataExtractor:
    return DataExtractor(detector=detector, log=recording_logger)


# ---------------------------------------------------------------------------
# Work orders
# ---------------------------------------------------------------------------


class TestExtractWorkOrders:
    def test_standard_sheet(self, detector, recording_logger):
        grid = standard_grid()
        header = detector.detect_header_row(grid)
        extractor = DataExtractor(header, detector, recording_logger)

        work_orders = extractor.extract_work_orders(grid, _section((4, 5, 6)))

        assert len(work_orders) == 1
        wo = work_orders[0]
        assert wo.work_order_id == "2351151"
        assert wo.row_index == 4
        assert [p.profile_type for p in wo.profiles] == ["KAPALI ALT", "AÇIK ÜST"]
        assert wo.total_quantity == 14
        assert wo.confidence == pytest.approx((1.0 + 0.9) / 2)
        assert wo.source.type is SourceType.DIRECT
        assert wo.source.original_row_index == 4

    def test_metadata_from_id_row(self, detector, recording_logger):
        grid = standard_grid()
        extractor = DataExtractor(detector.detect_header_row(grid), detector, recording_logger)

        wo = extractor.extract_work_orders(grid, _section((4, 5, 6)))[0]

        assert wo.metadata.model_dump(exclude_none=True) == {
            "date": "2024-01-15T00:00:00",
            "version": "V1",
            "color": "Beyaz",
            "note": "Acil",
            "sip_quantity": 100.0,
            "size": "50x70",
        }

    def test_rows_inherit_previous_id(self, extractor):
        grid = [
            make_row("2351151", profile="KAPALI ALT", measurement="992", quantity="4"),
            make_row(profile="AÇIK ALT", measurement="992", quantity="4"),
            make_row("2351152", profile="KAPALI ÜST", measurement="992", quantity="2"),
            make_row(profile="AÇIK ÜST", measurement="992", quantity="2"),
        ]

        work_orders = extractor.extract_work_orders(grid, _section((0, 1, 2, 3)))

        assert [wo.work_order_id for wo in work_orders] == ["2351151", "2351152"]
        assert [len(wo.profiles) for wo in work_orders] == [2, 2]

    def test_repeated_id_accumulates(self, extractor):
        grid = [
            make_row("2351151", None, None, "Beyaz", profile="KAPALI ALT", measurement="992", quantity="4"),
            make_row("2351152", profile="KAPALI ÜST", measurement="992", quantity="2"),
            make_row("2351151", None, None, "Siyah", profile="AÇIK ALT", measurement="992", quantity="1"),
        ]

        work_orders = extractor.extract_work_orders(grid, _section((0, 1, 2)))

        assert [wo.work_order_id for wo in work_orders] == ["2351151", "2351152"]
        first = work_orders[0]
        assert first.total_quantity == 5
        assert first.metadata.color == "Beyaz"

    def test_multiple_ids_on_one_row_are_merged(self, extractor):
        grid = [make_row("2351151", "2351599", profile="KAPALI ALT", measurement="992", quantity="4")]

        wo = extractor.extract_work_orders(grid, _section((0,)))[0]

        assert wo.work_order_id == "2351151+2351599"
        assert wo.source.type is SourceType.MERGED
        assert wo.source.parent_work_order_id == "2351151"

    def test_digit_id_found_beyond_first_columns(self, extractor):
        grid = [make_row("- -", "- -", "- -", None, "2351151", profile="KAPALI ALT", quantity="4")]

        wo = extractor.extract_work_orders(grid, _section((0,)))[0]

        assert wo.work_order_id == "2351151"

    def test_orphan_rows_get_generated_id(self, extractor):
        grid = [
            make_row(profile="KAPALI ALT", measurement="992", quantity="4"),
            make_row("2351151", profile="AÇIK ALT", measurement="992", quantity="4"),
        ]

        work_orders = extractor.extract_work_orders(grid, _section((0, 1)))

        assert [wo.work_order_id for wo in work_orders] == ["WO_000000", "2351151"]
        assert work_orders[0].metadata.model_dump(exclude_none=True) == {}

    def test_work_orders_without_profiles_are_dropped(self, extractor):
        grid = [
            make_row("2351151", profile="KAPALI ALT", measurement="992"),
            make_row("2351152", profile="KAPALI ALT", measurement="992", quantity="3"),
        ]

        work_orders = extractor.extract_work_orders(grid, _section((0, 1)))

        assert [wo.work_order_id for wo in work_orders] == ["2351152"]

    def test_every_work_order_has_positive_total(self, extractor):
        grid = standard_grid()

        work_orders = extractor.extract_work_orders(grid, _section((4, 5, 6)))

        assert all(wo.total_quantity > 0 for wo in work_orders)
        assert all(0 <= wo.confidence <= 1 for wo in work_orders)


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


class TestExtractMetadata:
    def test_conventional_columns_without_header(self, extractor):
        row = make_row("2351151", "12.01.2024", "V2", "Gri", None, "0", "40x60")

        metadata = extractor.extract_metadata(row)

        assert metadata.model_dump(exclude_none=True) == {
            "date": "12.01.2024",
            "version": "V2",
            "color": "Gri",
            "size": "40x60",
        }

    def test_header_mapping_overrides_defaults(self, detector, recording_logger):
        header = HeaderPattern(
            columns=ColumnMapping(color=4, note=3),
            confidence=1.0,
            row_index=0,
            detected_fields=2,
        )
        extractor = DataExtractor(header, detector, recording_logger)
        row = make_row("2351151", None, None, "Acil", "Beyaz")

        metadata = extractor.extract_metadata(row)

        assert metadata.color == "Beyaz"
        assert metadata.note == "Acil"


# ---------------------------------------------------------------------------
# Profile items
# ---------------------------------------------------------------------------


class TestExtractItems:
    def test_standard_columns(self, extractor):
        items = extractor.extract_items(make_row(profile="KAPALI ALT", measurement="25X25", quantity="10"), 4)

        assert len(items) == 1
        item = items[0]
        assert (item.profile_type, item.measurement, item.quantity, item.row_index) == (
            "KAPALI ALT",
            "25X25",
            10,
            4,
        )
        assert item.confidence == 1.0

    def test_missing_measurement(self, extractor):
        item = extractor.extract_items(make_row(profile="KAPALI ALT", quantity=5), 0)[0]

        assert item.measurement == "N/A"
        assert item.confidence == pytest.approx(0.9)

    def test_shifted_left(self, extractor):
        row = [None] * 10
        row[6], row[7], row[8] = "KAPALI ALT", "1200", "3"

        items = extractor.extract_items(row, 0)

        assert [(i.profile_type, i.measurement, i.quantity) for i in items] == [("KAPALI ALT", "1200", 3)]

    def test_searched_columns(self, extractor):
        row = [None] * 12
        row[9], row[10], row[11] = "AÇIK ÜST", "992", "7"

        items = extractor.extract_items(row, 0)

        assert [(i.profile_type, i.quantity) for i in items] == [("AÇIK ÜST", 7)]

    @pytest.mark.parametrize("quantity", ["2,5", "0", "-3", "yok", None])
    def test_invalid_quantities_yield_nothing(self, extractor, quantity):
        assert extractor.extract_items(make_row(profile="KAPALI ALT", measurement="992", quantity=quantity), 0) == []

    def test_non_profile_yields_nothing(self, extractor):
        assert extractor.extract_items(make_row(profile="Beyaz", measurement="992", quantity="3"), 0) == []


class TestExtractItemsLoose:
    def test_standard_triple_has_flat_confidence(self, extractor):
        items = extractor.extract_items_loose(make_row(profile="Gövde", measurement="1200", quantity="4"), 2)

        assert len(items) == 1
        assert items[0].confidence == pytest.approx(0.7)
        assert items[0].measurement == "1200"

    def test_wide_search(self, extractor):
        row = [None] * 12
        row[7], row[8], row[11] = "KAPALI ALT", "Uzun", "8"

        assert extractor.extract_items(row, 0) == []
        items = extractor.extract_items_loose(row, 0)

        assert [(i.profile_type, i.measurement, i.quantity, i.confidence) for i in items] == [
            ("KAPALI ALT", "N/A", 8, 0.6)
        ]

    def test_nothing_found(self, extractor):
        assert extractor.extract_items_loose(make_row(profile="KAPALI ALT", measurement="Uzun"), 0) == []


class TestProfileConfidence:
    @pytest.mark.parametrize(
        ("profile", "measurement", "quantity", "expected"),
        [
            ("KAPALI ALT", "25X25", 10, 1.0),
            ("Kapalı Üst", "992", 4, 0.9),
            ("25x25 kutu", "N/A", 5, 0.6),
            ("Gövde", "1200 mm", 3, 0.8),
            ("ELİPS", "uzun boy", 20000, 0.6),
        ],
    )
    def test_scores(self, extractor, profile, measurement, quantity, expected):
        assert extractor.profile_confidence(profile, measurement, quantity) == pytest.approx(expected)
