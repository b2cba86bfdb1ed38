"""
Servicios de aplicacion.

Contiene la logica reutilizable del sync que no pertenece
a un caso de uso especifico: matching de schema, aplanado de
propiedades, identidad de columnas y escritura en la grilla.
"""
from notion_sheets.application.services.column_identity import ColumnIdentityStore
from notion_sheets.application.services.id_name_cache import IdNameCache
from notion_sheets.application.services.property_flattener import (
    flatten_property,
    get_property_by_id,
    title_of,
)
from notion_sheets.application.services.schema_matcher import (
    SchemaMatcher,
    build_all_specs_with_alias_override,
    build_id_name_map,
    build_name_index,
    match_aliases,
)
from notion_sheets.application.services.sheet_writer import (
    UpsertCounts,
    append_rows_batched,
    ensure_headers,
    read_headers,
    upsert_rows_by_key,
)

__all__ = [
    # Schema
    "SchemaMatcher",
    "match_aliases",
    "build_all_specs_with_alias_override",
    "build_id_name_map",
    "build_name_index",
    # Valores
    "flatten_property",
    "get_property_by_id",
    "title_of",
    # Identidad de columnas
    "ColumnIdentityStore",
    "IdNameCache",
    # Escritura
    "UpsertCounts",
    "append_rows_batched",
    "ensure_headers",
    "read_headers",
    "upsert_rows_by_key",
]
