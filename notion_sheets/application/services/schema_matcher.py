"""
Resolución de un alias map contra el schema vivo de Notion.

Un alias map es {nombre o ID de propiedad: label de columna}. El orden del
dict es el orden de columnas. Los aliases sin propiedad equivalente se
registran (warning + SchemaMismatchError en SpecResolution.skipped) y se
omiten: un typo en un alias no debe bloquear el resto del sync.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from loguru import logger

from notion_sheets.domain.entities.column_spec import ColumnSpec, PropertyRef, SpecResolution
from notion_sheets.domain.entities.notion_resources import SchemaResource
from notion_sheets.infrastructure.external.notion.http_client import NotionClient
from notion_sheets.shared.exceptions.sync import SchemaMismatchError
from notion_sheets.shared.utils.ids import decode_id, looks_like_encoded_id, looks_like_id, normalize_name

Properties = Mapping[str, Mapping[str, Any]]


def build_name_index(properties: Properties) -> Dict[str, PropertyRef]:
    """
    Índice {nombre normalizado: PropertyRef}.

    Las propiedades sin ID se omiten (no se pueden direccionar).
    Si dos nombres normalizan igual gana el primero.
    """
    index: Dict[str, PropertyRef] = {}
    for name, definition in (properties or {}).items():
        prop_id = (definition or {}).get("id")
        if not prop_id:
            continue
        index.setdefault(normalize_name(name), PropertyRef(name=name, id=prop_id))
    return index


def build_id_name_map(properties: Properties) -> Dict[str, str]:
    """ID (crudo y decodificado) -> nombre actual de la propiedad."""
    out: Dict[str, str] = {}
    for name, definition in (properties or {}).items():
        prop_id = (definition or {}).get("id")
        if not prop_id:
            continue
        out[prop_id] = name
        out[decode_id(prop_id)] = name
    return out


def find_property_by_id(properties: Properties, raw_id: str) -> Optional[PropertyRef]:
    """Busca por ID crudo exacto o por ID decodificado."""
    decoded = decode_id(raw_id)
    for name, definition in (properties or {}).items():
        prop_id = (definition or {}).get("id")
        if not prop_id:
            continue
        if prop_id == raw_id or decode_id(prop_id) == decoded:
            return PropertyRef(name=name, id=prop_id)
    return None


def match_aliases(properties: Properties, alias_map: Mapping[str, Optional[str]]) -> SpecResolution:
    """
    Resuelve el alias map en ColumnSpecs, en el orden del alias map.

    Estrategia por alias:
    1. Si la key parece un ID codificado (%XX, 32 hex, UUID): match por ID.
    2. Si no: match por nombre normalizado; si falla y la key podría ser un
       ID corto (ej. "QyDj"), se intenta por ID antes de omitirla.

    Label: el valor del alias; si está vacío, el nombre actual de la propiedad.
    """
    index = build_name_index(properties)
    resolution = SpecResolution()

    for key, label in alias_map.items():
        ref: Optional[PropertyRef] = None
        reason = ""

        if looks_like_encoded_id(key):
            ref = find_property_by_id(properties, key)
            reason = "id no encontrado"
        else:
            ref = index.get(normalize_name(key))
            if ref is None and looks_like_id(key):
                ref = find_property_by_id(properties, key)
            reason = "nombre no encontrado"

        if ref is None:
            logger.warning(f"Alias '{key}' omitido: {reason} en el schema")
            resolution.skipped.append(SchemaMismatchError(key, reason))
            continue

        resolution.specs.append(
            ColumnSpec(label=label or ref.name, property_id=ref.id, property_name=ref.name)
        )

    return resolution


def build_all_specs_with_alias_override(
    properties: Properties, alias_map: Optional[Mapping[str, Optional[str]]] = None
) -> List[ColumnSpec]:
    """Un spec por propiedad del schema; el label se reemplaza si el nombre exacto está en el alias map."""
    aliases = alias_map or {}
    specs: List[ColumnSpec] = []
    for name, definition in (properties or {}).items():
        prop_id = (definition or {}).get("id")
        if not prop_id:
            continue
        specs.append(ColumnSpec(label=aliases.get(name) or name, property_id=prop_id, property_name=name))
    return specs


class SchemaMatcher:
    """
    Envuelve las funciones puras con la lectura del schema vía NotionClient.

    Uso:
        matcher = SchemaMatcher(client)
        resolution = matcher.resolve_aliases_to_specs(schema_id, {"Email (Org)": "Email"})
    """

    def __init__(self, client: NotionClient):
        self._client = client

    def fetch_schema(self, schema_id: str) -> SchemaResource:
        return self._client.get_data_source(schema_id)

    def resolve_aliases_to_specs(
        self,
        schema_id: str,
        alias_map: Mapping[str, Optional[str]],
        *,
        schema: Optional[SchemaResource] = None,
    ) -> SpecResolution:
        resource = schema or self.fetch_schema(schema_id)
        resolution = match_aliases(resource.properties, alias_map)
        logger.info(
            f"Schema {resource.id}: {len(resolution.specs)} columnas resueltas, "
            f"{len(resolution.skipped)} aliases omitidos"
        )
        return resolution

    def build_all_specs(
        self,
        schema_id: str,
        alias_map: Optional[Mapping[str, Optional[str]]] = None,
        *,
        schema: Optional[SchemaResource] = None,
    ) -> List[ColumnSpec]:
        resource = schema or self.fetch_schema(schema_id)
        return build_all_specs_with_alias_override(resource.properties, alias_map)

    def describe_properties(self, schema_id: str) -> List[Tuple[str, str, str, str]]:
        """Filas (nombre, id crudo, id decodificado, tipo) para inspección manual."""
        resource = self.fetch_schema(schema_id)
        rows: List[Tuple[str, str, str, str]] = []
        for name, definition in resource.properties.items():
            prop_id = (definition or {}).get("id") or ""
            rows.append((name, prop_id, decode_id(prop_id), (definition or {}).get("type") or ""))
        return rows
