"""
Cache durable id -> nombre de propiedades, guardado como metadata del documento.

Permite escribir filas sueltas (write_page_row) sin volver a pedir el schema.
"""

from __future__ import annotations

import json
from typing import Dict

from loguru import logger

from notion_sheets.application.interfaces.grid_store import GridDocument
from notion_sheets.application.services.schema_matcher import build_id_name_map
from notion_sheets.domain.entities.notion_resources import SchemaResource
from notion_sheets.shared.constants.sync_constants import META_KEY_ID2NAME_PREFIX
from notion_sheets.shared.utils.ids import normalize_resource_id


class IdNameCache:
    def __init__(self, document: GridDocument):
        self._document = document

    @staticmethod
    def key_for(schema_id: str) -> str:
        return f"{META_KEY_ID2NAME_PREFIX}:{normalize_resource_id(schema_id)}"

    def load(self, schema_id: str) -> Dict[str, str]:
        raw = self._document.get_metadata(self.key_for(schema_id))
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning(f"Cache id->nombre corrupto para {schema_id}; se ignora")
            return {}
        # Formato: [[id, nombre], ...]
        if isinstance(data, list):
            return {str(k): str(v) for k, v in (pair for pair in data if isinstance(pair, list) and len(pair) == 2)}
        if isinstance(data, dict):
            return {str(k): str(v) for k, v in data.items()}
        return {}

    def save(self, schema_id: str, id_name_map: Dict[str, str]) -> None:
        pairs = [[k, v] for k, v in id_name_map.items()]
        self._document.set_metadata(self.key_for(schema_id), json.dumps(pairs, ensure_ascii=False))

    def refresh(self, schema: SchemaResource) -> Dict[str, str]:
        """Reconstruye el cache desde el schema vivo y lo persiste."""
        id_name_map = build_id_name_map(schema.properties)
        self.save(schema.id, id_name_map)
        logger.info(f"Cache id->nombre de {schema.id}: {len(id_name_map)} entradas")
        return id_name_map
