"""
Entidades de dominio para los recursos de Notion que exponen un schema.

La API migró "databases" a "data sources" y ambos conviven para el mismo
espacio de IDs. En vez de guards ad hoc sobre el JSON se modela como un
tipo etiquetado por `ResourceKind`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ResourceKind(str, Enum):
    """Tipos de recurso con schema de propiedades."""
    DATA_SOURCE = "data_source"
    DATABASE = "database"

    @property
    def collection_path(self) -> str:
        if self == ResourceKind.DATA_SOURCE:
            return "/v1/data_sources"
        if self == ResourceKind.DATABASE:
            return "/v1/databases"
        raise ValueError(f"ResourceKind no soportado: {self}")


@dataclass(frozen=True)
class SchemaResource:
    """
    Data source o database resuelto, con su schema de propiedades.

    properties: nombre actual -> definición ({"id": ..., "type": ..., ...})
    """

    kind: ResourceKind
    id: str
    properties: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def item_path(self) -> str:
        return f"{self.kind.collection_path}/{self.id}"

    @property
    def query_path(self) -> str:
        return f"{self.item_path}/query"

    @property
    def title(self) -> str:
        parts = self.raw.get("title") or []
        if isinstance(parts, list):
            return "".join((p or {}).get("plain_text") or "" for p in parts)
        return str(parts)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], fallback_id: str = "") -> Optional["SchemaResource"]:
        """
        Construye el recurso desde un JSON de Notion.

        Retorna None si el discriminador `object` no es data_source ni database.
        """
        if not isinstance(payload, dict):
            return None
        try:
            kind = ResourceKind(payload.get("object"))
        except ValueError:
            return None
        properties = payload.get("properties")
        return cls(
            kind=kind,
            id=str(payload.get("id") or fallback_id),
            properties=properties if isinstance(properties, dict) else {},
            raw=payload,
        )
