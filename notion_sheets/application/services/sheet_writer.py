"""
Escrituras de filas sobre una pestaña: headers, append por lotes, upsert por clave.

Todas asumen que el caller tiene el lock del documento.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from loguru import logger

from notion_sheets.application.interfaces.grid_store import GridWorksheet
from notion_sheets.shared.constants.sync_constants import DEFAULT_BATCH_SIZE, HEADER_ROW
from notion_sheets.shared.exceptions.sync import PreconditionError

FIRST_DATA_ROW = HEADER_ROW + 1


@dataclass(frozen=True)
class UpsertCounts:
    inserted: int = 0
    updated: int = 0


def _trim_trailing_empty(values: Sequence[str]) -> List[str]:
    out = [str(v) if v is not None else "" for v in values]
    while out and out[-1] == "":
        out.pop()
    return out


def _fit(row: Sequence[str], width: int) -> List[str]:
    out = [("" if v is None else str(v)) for v in list(row)[:width]]
    out.extend([""] * (width - len(out)))
    return out


def read_headers(ws: GridWorksheet) -> List[str]:
    last_col = ws.last_column()
    if last_col < 1:
        return []
    return _trim_trailing_empty(ws.get_values(HEADER_ROW, 1, 1, last_col)[0])


def ensure_headers(ws: GridWorksheet, headers: Sequence[str]) -> bool:
    """
    Deja la fila de headers exactamente igual a `headers`.

    Idempotente: si ya coincide (igualdad posicional estricta) no escribe nada.

    Returns:
        True si se reescribió la fila.
    """
    wanted = [str(h) for h in headers]
    if not wanted:
        return False

    existing = read_headers(ws)
    if existing == wanted:
        return False

    if len(existing) > len(wanted):
        ws.clear_values(HEADER_ROW, 1, 1, len(existing))
    ws.set_values(HEADER_ROW, 1, [wanted])
    logger.info(f"Hoja '{ws.title}': headers actualizados ({len(existing)} -> {len(wanted)} columnas)")
    return True


def append_rows_batched(
    ws: GridWorksheet, rows: Sequence[Sequence[str]], batch_size: int = DEFAULT_BATCH_SIZE
) -> int:
    """
    Agrega filas debajo del contenido existente en lotes de `batch_size`.

    Nunca escribe sobre la fila de headers. Retorna la cantidad de filas escritas.
    """
    if batch_size <= 0:
        raise PreconditionError("batch_size debe ser > 0", field="batch_size")
    if not rows:
        return 0

    width = max(len(row) for row in rows)
    if width == 0:
        return 0

    write_row = max(ws.last_row() + 1, FIRST_DATA_ROW)
    written = 0
    for start in range(0, len(rows), batch_size):
        chunk = [_fit(row, width) for row in rows[start:start + batch_size]]
        ws.set_values(write_row, 1, chunk)
        write_row += len(chunk)
        written += len(chunk)
        logger.debug(f"Hoja '{ws.title}': lote de {len(chunk)} filas escrito")
    return written


def _dedupe_by_key(rows: Sequence[Sequence[str]], key_idx: int, width: int) -> Dict[str, List[str]]:
    """Una fila por clave (la última gana); filas sin clave se descartan."""
    by_key: Dict[str, List[str]] = {}
    skipped = 0
    for row in rows:
        fitted = _fit(row, width)
        key = fitted[key_idx].strip()
        if not key:
            skipped += 1
            continue
        by_key[key] = fitted
    if skipped:
        logger.warning(f"Upsert: {skipped} filas sin clave omitidas")
    return by_key


def upsert_rows_by_key(
    ws: GridWorksheet,
    key_label: str,
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> UpsertCounts:
    """
    Actualiza en su lugar las filas cuya clave ya existe y agrega el resto.

    - La clave se compara con strip().
    - Claves duplicadas en `rows`: gana la última (inserted + updated == claves distintas).
    - Claves duplicadas en la hoja: se actualiza la última fila con esa clave.

    Raises:
        PreconditionError: si `key_label` no está en `headers`.
    """
    if not key_label:
        raise PreconditionError("key_label es obligatorio para upsert", field="key_label")
    headers = list(headers)
    if key_label not in headers:
        raise PreconditionError(f'Columna clave "{key_label}" no encontrada en los headers', field="key_label")
    if not rows:
        return UpsertCounts()

    key_idx = headers.index(key_label)
    width = len(headers)
    incoming = _dedupe_by_key(rows, key_idx, width)

    key_to_row: Dict[str, int] = {}
    last_row = ws.last_row()
    if last_row >= FIRST_DATA_ROW:
        existing = ws.get_values(FIRST_DATA_ROW, key_idx + 1, last_row - FIRST_DATA_ROW + 1, 1)
        for offset, cells in enumerate(existing):
            key = str(cells[0] if cells else "").strip()
            if key:
                key_to_row[key] = FIRST_DATA_ROW + offset

    updates: Dict[int, List[str]] = {}
    inserts: List[List[str]] = []
    for key, row in incoming.items():
        at = key_to_row.get(key)
        if at:
            updates[at] = row
        else:
            inserts.append(row)

    if updates:
        ws.update_rows(updates, col=1)
    if inserts:
        append_rows_batched(ws, inserts, batch_size)

    counts = UpsertCounts(inserted=len(inserts), updated=len(updates))
    logger.info(f"Hoja '{ws.title}': upsert por '{key_label}' -> {counts.inserted} nuevas, {counts.updated} actualizadas")
    return counts


def clear_data_below_header(ws: GridWorksheet) -> Tuple[int, int]:
    """Borra el contenido debajo de la fila de headers. Retorna (filas, columnas) borradas."""
    last_row = ws.last_row()
    last_col = ws.last_column()
    if last_row < FIRST_DATA_ROW or last_col == 0:
        return 0, 0
    num_rows = last_row - HEADER_ROW
    ws.clear_values(FIRST_DATA_ROW, 1, num_rows, last_col)
    return num_rows, last_col
