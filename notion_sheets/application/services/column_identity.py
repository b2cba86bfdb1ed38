"""
Identidad estable de columnas: columna -> ID de propiedad de Notion.

La identidad vive en tres lugares de la hoja:
1. Developer metadata a nivel hoja (`notionColMap`): JSON {"<col>": "<id decodificado>"}.
2. Nota de la celda de header: el ID decodificado, visible para humanos
   (sobrevive a copias de la hoja y sirve para recuperar el mapa).
3. Marcador de columna (`notionPropId`): developer metadata ubicada en la columna.

El mapa puede quedar desalineado si alguien inserta/borra columnas a mano;
`resolve` cae a las notas y `rebuild` repara en ambas direcciones.

Las operaciones son read-modify-write sin control de concurrencia: el
caller debe tener el lock del documento.
"""

from __future__ import annotations

import json
from typing import Dict, List, Optional, Sequence

from loguru import logger

from notion_sheets.application.interfaces.grid_store import GridWorksheet
from notion_sheets.domain.entities.column_spec import ColumnSpec
from notion_sheets.shared.constants.sync_constants import HEADER_ROW, META_KEY_COLMAP, META_KEY_PROP_ID
from notion_sheets.shared.utils.ids import decode_id


class ColumnIdentityStore:
    """
    Lee y escribe la identidad de columnas de una pestaña.

    Uso:
        store = ColumnIdentityStore(worksheet)
        store.write(2, "Email", "HA%40l")
        store.resolve("HA@l")  # -> 2
    """

    def __init__(self, worksheet: GridWorksheet):
        self._ws = worksheet

    # ------------------------------------------------------------------
    # Mapa persistido
    # ------------------------------------------------------------------

    def load_map(self) -> Dict[int, str]:
        raw = self._ws.get_sheet_metadata(META_KEY_COLMAP)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning(f"Hoja '{self._ws.title}': {META_KEY_COLMAP} no es JSON válido, se ignora")
            return {}
        if not isinstance(data, dict):
            return {}

        out: Dict[int, str] = {}
        for key, value in data.items():
            try:
                col = int(key)
            except (TypeError, ValueError):
                continue
            if col > 0 and value:
                out[col] = decode_id(value)
        return out

    def save_map(self, col_map: Dict[int, str]) -> None:
        payload = {str(col): col_map[col] for col in sorted(col_map)}
        self._ws.set_sheet_metadata(META_KEY_COLMAP, json.dumps(payload, ensure_ascii=False))

    # ------------------------------------------------------------------
    # Escritura
    # ------------------------------------------------------------------

    def write(self, column: int, label: str, property_id: str) -> None:
        """Header visible = label, nota = ID decodificado, mapa[column] = ID decodificado."""
        if column < 1:
            raise ValueError("column debe ser >= 1")
        pretty = decode_id(property_id)

        self._ws.set_values(HEADER_ROW, column, [[label]])
        self._ws.set_notes(HEADER_ROW, column, [pretty])

        col_map = self.load_map()
        col_map[column] = pretty
        self.save_map(col_map)

        self._ws.set_column_marker(column, META_KEY_PROP_ID, pretty)

    def write_header_band(self, specs: Sequence[ColumnSpec], start_col: int = 1) -> None:
        """
        Escribe todos los headers desde `start_col` y reemplaza el mapa en una sola escritura.

        Las entradas del mapa a la izquierda de `start_col` se conservan; las de la
        banda y a su derecha se descartan (quedan fuera del header exacto).
        """
        if start_col < 1:
            raise ValueError("start_col debe ser >= 1")

        labels = [spec.header for spec in specs]
        pretty_ids = [spec.decoded_id for spec in specs]
        end_col = start_col + len(specs) - 1

        # Limpia restos de una banda anterior más ancha
        previous_last = self._ws.last_column()
        if previous_last > end_col:
            width = previous_last - max(end_col + 1, start_col) + 1
            self._ws.clear_values(HEADER_ROW, max(end_col + 1, start_col), 1, width)
            self._ws.set_notes(HEADER_ROW, max(end_col + 1, start_col), [""] * width)

        if specs:
            self._ws.set_values(HEADER_ROW, start_col, [labels])
            self._ws.set_notes(HEADER_ROW, start_col, pretty_ids)

        col_map = {col: pid for col, pid in self.load_map().items() if col < start_col}
        for offset, pretty in enumerate(pretty_ids):
            col_map[start_col + offset] = pretty
        self.save_map(col_map)

        markers = {start_col + offset: pretty for offset, pretty in enumerate(pretty_ids)}
        self._ws.set_column_markers(markers, META_KEY_PROP_ID, clear_from=end_col + 1)

        logger.info(
            f"Hoja '{self._ws.title}': {len(specs)} headers escritos desde la columna {start_col}"
        )

    def is_in_sync(self, specs: Sequence[ColumnSpec], start_col: int = 1) -> bool:
        """True si el mapa persistido ya tiene exactamente los IDs de `specs` en la banda."""
        col_map = self.load_map()
        for offset, spec in enumerate(specs):
            if col_map.get(start_col + offset) != spec.decoded_id:
                return False
        return True

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------

    def resolve(self, property_id: str, start_col: int = 1, width: Optional[int] = None) -> Optional[int]:
        """
        Columna que corresponde a `property_id`, o None.

        1. Mapa persistido (match por ID decodificado dentro del rango).
        2. Fallback: notas de la fila de headers.
        """
        want = decode_id(property_id)
        if not want:
            return None
        last_col = start_col + width - 1 if width else self._ws.last_column()
        if last_col < start_col:
            return None

        for col, pretty in sorted(self.load_map().items()):
            if start_col <= col <= last_col and pretty == want:
                return col

        notes = self._ws.get_notes(HEADER_ROW, start_col, last_col - start_col + 1)
        for offset, note in enumerate(notes):
            if note and decode_id(note) == want:
                logger.debug(
                    f"Hoja '{self._ws.title}': {want} resuelto por nota (columna {start_col + offset})"
                )
                return start_col + offset
        return None

    # ------------------------------------------------------------------
    # Reparación
    # ------------------------------------------------------------------

    def rebuild(self, start_col: int = 1) -> int:
        """
        Repara la identidad de columnas desde `start_col` hasta la última columna.

        - nota -> marcador de columna (se recrea si falta o no coincide)
        - nota -> entrada del mapa
        - mapa -> nota faltante (y su marcador)
        - entradas del mapa más allá de la última columna se descartan

        Returns:
            Cantidad de columnas reparadas.
        """
        last_col = self._ws.last_column()
        col_map = self.load_map()
        map_changed = False

        stale = [col for col in col_map if col > last_col and col >= start_col]
        for col in stale:
            del col_map[col]
            map_changed = True

        if last_col < start_col:
            if map_changed:
                self.save_map(col_map)
            return 0

        width = last_col - start_col + 1
        notes: List[str] = list(self._ws.get_notes(HEADER_ROW, start_col, width))
        markers = self._ws.get_column_markers(META_KEY_PROP_ID)
        notes_changed = False
        repaired = 0
        marker_fixes: Dict[int, str] = {}

        for offset in range(width):
            col = start_col + offset
            pretty = decode_id(notes[offset]) if offset < len(notes) else ""
            fixed = False

            if not pretty and col_map.get(col):
                pretty = col_map[col]
                notes[offset] = pretty
                notes_changed = True
                fixed = True

            if not pretty:
                continue

            if decode_id(markers.get(col, "")) != pretty:
                marker_fixes[col] = pretty
                fixed = True

            if col_map.get(col) != pretty:
                col_map[col] = pretty
                map_changed = True
                fixed = True

            if fixed:
                repaired += 1

        if notes_changed:
            self._ws.set_notes(HEADER_ROW, start_col, notes)
        if marker_fixes:
            self._ws.set_column_markers(marker_fixes, META_KEY_PROP_ID)
        if map_changed:
            self.save_map(col_map)

        logger.info(f"Hoja '{self._ws.title}': rebuild reparó {repaired} columnas")
        return repaired
