"""
Tests unitarios para la resolución de aliases contra el schema.
"""
import pytest

from notion_sheets.application.services.schema_matcher import (
    SchemaMatcher,
    build_all_specs_with_alias_override,
    build_id_name_map,
    build_name_index,
    match_aliases,
)
from notion_sheets.domain.entities.column_spec import ColumnSpec
from notion_sheets.infrastructure.external.notion import NotionClient, NotionConfig
from notion_sheets.shared.constants.sync_constants import ErrorKind
from tests.fakes import DS_ID, FakeSession, NotionRouter

SCHEMA = {
    "Name": {"id": "title", "type": "title"},
    "Email (Org)": {"id": "HA%40l", "type": "email"},
    "NotionURL": {"id": "QyDj", "type": "url"},
    "Status": {"id": "s%3Bt", "type": "status"},
}


@pytest.mark.unit
class TestMatchAliases:
    def test_email_alias_scenario(self) -> None:
        resolution = match_aliases(SCHEMA, {"Email (Org)": "Email"})

        assert resolution.specs == [ColumnSpec(label="Email", property_id="HA%40l", property_name="Email (Org)")]
        assert resolution.specs[0].decoded_id == "HA@l"
        assert resolution.skipped == []

    def test_order_follows_alias_map_not_schema(self) -> None:
        aliases = {"Status": "Estado", "Name": "Nombre", "Email (Org)": "Email"}
        reversed_schema = dict(reversed(list(SCHEMA.items())))

        first = match_aliases(SCHEMA, aliases)
        second = match_aliases(reversed_schema, aliases)

        assert first.headers == ["Estado", "Nombre", "Email"]
        assert second.specs == first.specs

    def test_name_match_is_normalized(self) -> None:
        resolution = match_aliases(SCHEMA, {"  email   (org) ": "Email"})

        assert resolution.specs[0].property_id == "HA%40l"

    def test_encoded_id_key_matches_by_id(self) -> None:
        resolution = match_aliases(SCHEMA, {"HA%40l": "Email"})

        assert resolution.specs[0].property_name == "Email (Org)"

    def test_short_id_matches_after_name_miss(self) -> None:
        resolution = match_aliases(SCHEMA, {"QyDj": "Link"})

        assert resolution.specs[0].property_name == "NotionURL"

    def test_empty_label_falls_back_to_property_name(self) -> None:
        resolution = match_aliases(SCHEMA, {"NotionURL": ""})

        assert resolution.headers == ["NotionURL"]

    def test_unknown_aliases_are_skipped_and_recorded(self) -> None:
        resolution = match_aliases(SCHEMA, {"Name": "Nombre", "Emial": "Email", "zz%40zz": "X"})

        assert resolution.headers == ["Nombre"]
        assert resolution.skipped_aliases == ["Emial", "zz%40zz"]
        assert all(e.kind == ErrorKind.SCHEMA_MISMATCH for e in resolution.skipped)
        assert resolution.skipped[0].reason == "nombre no encontrado"
        assert resolution.skipped[1].reason == "id no encontrado"


@pytest.mark.unit
class TestIndexes:
    def test_properties_without_id_are_ignored(self) -> None:
        index = build_name_index({"A": {"type": "title"}, "B": {"id": "b"}})
        assert list(index) == ["b"]

    def test_id_name_map_has_raw_and_decoded_ids(self) -> None:
        id_map = build_id_name_map(SCHEMA)
        assert id_map["HA%40l"] == "Email (Org)"
        assert id_map["HA@l"] == "Email (Org)"

    def test_all_specs_with_alias_override(self) -> None:
        specs = build_all_specs_with_alias_override(SCHEMA, {"Name": "Nombre"})
        assert [s.header for s in specs] == ["Nombre", "Email (Org)", "NotionURL", "Status"]


@pytest.mark.unit
class TestSchemaMatcher:
    def test_resolves_against_live_schema(self) -> None:
        session = FakeSession(NotionRouter(SCHEMA, []))
        matcher = SchemaMatcher(NotionClient(NotionConfig(token="t"), session=session))

        resolution = matcher.resolve_aliases_to_specs(DS_ID, {"Email (Org)": "Email"})

        assert resolution.headers == ["Email"]
        assert len(session.calls) == 1

    def test_describe_properties(self) -> None:
        session = FakeSession(NotionRouter(SCHEMA, []))
        matcher = SchemaMatcher(NotionClient(NotionConfig(token="t"), session=session))

        rows = matcher.describe_properties(DS_ID)

        assert ("Email (Org)", "HA%40l", "HA@l", "email") in rows
