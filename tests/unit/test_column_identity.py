"""
Tests unitarios para ColumnIdentityStore (identidad columna -> ID de propiedad).
"""
import json

import pytest

from notion_sheets.application.services.column_identity import ColumnIdentityStore
from notion_sheets.domain.entities.column_spec import ColumnSpec
from notion_sheets.shared.constants.sync_constants import META_KEY_COLMAP, META_KEY_PROP_ID

SPECS = [
    ColumnSpec(label="Name", property_id="title", property_name="Name"),
    ColumnSpec(label="Email", property_id="HA%40l", property_name="Email (Org)"),
    ColumnSpec(label="Link", property_id="QyDj", property_name="NotionURL"),
]


@pytest.mark.unit
class TestWrite:
    def test_write_sets_header_note_map_and_marker(self, worksheet) -> None:
        store = ColumnIdentityStore(worksheet)

        store.write(2, "Email", "HA%40l")

        assert worksheet.cells[(1, 2)] == "Email"
        assert worksheet.notes[(1, 2)] == "HA@l"
        assert store.load_map() == {2: "HA@l"}
        assert worksheet.markers[(2, META_KEY_PROP_ID)] == "HA@l"

    def test_write_rejects_column_zero(self, worksheet) -> None:
        with pytest.raises(ValueError):
            ColumnIdentityStore(worksheet).write(0, "x", "y")

    def test_header_band_replaces_map_and_clears_stale_columns(self, worksheet) -> None:
        store = ColumnIdentityStore(worksheet)
        store.write_header_band(SPECS + [ColumnSpec(label="Old", property_id="old")])

        store.write_header_band(SPECS)

        assert worksheet.row(1) == ["Name", "Email", "Link"]
        assert worksheet.get_notes(1, 1, 4) == ["title", "HA@l", "QyDj", ""]
        assert store.load_map() == {1: "title", 2: "HA@l", 3: "QyDj"}
        assert (4, META_KEY_PROP_ID) not in worksheet.markers

    def test_header_band_keeps_entries_left_of_start(self, worksheet) -> None:
        store = ColumnIdentityStore(worksheet)
        store.write(1, "Manual", "manual-id")

        store.write_header_band(SPECS[:1], start_col=2)

        assert store.load_map() == {1: "manual-id", 2: "title"}

    def test_is_in_sync(self, worksheet) -> None:
        store = ColumnIdentityStore(worksheet)
        assert not store.is_in_sync(SPECS)

        store.write_header_band(SPECS)

        assert store.is_in_sync(SPECS)
        assert not store.is_in_sync(list(reversed(SPECS)))


@pytest.mark.unit
class TestResolve:
    def test_resolves_by_map_with_raw_or_decoded_id(self, worksheet) -> None:
        store = ColumnIdentityStore(worksheet)
        store.write_header_band(SPECS)

        assert store.resolve("HA@l") == 2
        assert store.resolve("HA%40l") == 2
        assert store.resolve("missing") is None

    def test_falls_back_to_notes_when_map_is_missing(self, worksheet) -> None:
        worksheet.set_values(1, 1, [["Name", "Email"]])
        worksheet.set_notes(1, 1, ["title", "HA@l"])

        assert ColumnIdentityStore(worksheet).resolve("HA%40l") == 2

    def test_respects_range(self, worksheet) -> None:
        store = ColumnIdentityStore(worksheet)
        store.write_header_band(SPECS)

        assert store.resolve("title", start_col=2) is None
        assert store.resolve("QyDj", start_col=1, width=2) is None

    def test_corrupt_map_is_ignored(self, worksheet) -> None:
        worksheet.sheet_meta[META_KEY_COLMAP] = "{no es json"
        assert ColumnIdentityStore(worksheet).load_map() == {}


@pytest.mark.unit
class TestRebuild:
    def test_regenerates_map_and_markers_from_notes(self, worksheet) -> None:
        worksheet.set_values(1, 1, [["Name", "Email"]])
        worksheet.set_notes(1, 1, ["title", "HA@l"])
        store = ColumnIdentityStore(worksheet)

        repaired = store.rebuild()

        assert repaired == 2
        assert store.load_map() == {1: "title", 2: "HA@l"}
        assert worksheet.get_column_markers(META_KEY_PROP_ID) == {1: "title", 2: "HA@l"}

    def test_regenerates_missing_notes_from_map(self, worksheet) -> None:
        worksheet.set_values(1, 1, [["Name", "Email"]])
        worksheet.set_sheet_metadata(META_KEY_COLMAP, json.dumps({"1": "title", "2": "HA%40l"}))
        store = ColumnIdentityStore(worksheet)

        store.rebuild()

        assert worksheet.get_notes(1, 1, 2) == ["title", "HA@l"]
        assert store.load_map() == {1: "title", 2: "HA@l"}

    def test_drops_map_entries_past_last_column(self, worksheet) -> None:
        worksheet.set_values(1, 1, [["Name"]])
        worksheet.set_notes(1, 1, ["title"])
        worksheet.set_sheet_metadata(META_KEY_COLMAP, json.dumps({"1": "title", "5": "gone"}))
        store = ColumnIdentityStore(worksheet)

        store.rebuild()

        assert store.load_map() == {1: "title"}

    def test_second_rebuild_repairs_nothing(self, worksheet) -> None:
        store = ColumnIdentityStore(worksheet)
        store.write_header_band(SPECS)

        assert store.rebuild() == 0
