"""
Interfaz de la grilla destino (Google Sheets).

Este contrato existe para:
- Que los servicios de sync no dependan de gspread directamente.
- Poder testear headers/upsert/identidad de columnas con una grilla en memoria.

Convenciones:
- Filas y columnas son 1-based.
- Los valores se leen y escriben como strings (los servicios ya los aplanaron).
- Hay tres niveles de metadata durable:
  - hoja: `get_sheet_metadata` / `set_sheet_metadata` (ColumnIdentityMap)
  - columna: marcadores de identidad (`get_column_markers` / `set_column_markers`)
  - documento: `GridDocument.get_metadata` / `set_metadata` (cache id -> nombre)
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Protocol, Sequence


class GridWorksheet(Protocol):
    """Una pestaña de la planilla."""

    @property
    def title(self) -> str:
        ...

    def last_row(self) -> int:
        """Última fila con contenido (0 si está vacía)."""

    def last_column(self) -> int:
        """Última columna con contenido (0 si está vacía)."""

    def get_values(self, row: int, col: int, num_rows: int, num_cols: int) -> List[List[str]]:
        """
        Lee un rango rectangular.

        Siempre retorna `num_rows` filas de `num_cols` celdas (rellena con "").
        """

    def set_values(self, row: int, col: int, values: Sequence[Sequence[str]]) -> None:
        """Escribe un rango rectangular empezando en (row, col). Una sola escritura."""

    def update_rows(self, rows: Mapping[int, Sequence[str]], col: int = 1) -> None:
        """Reescribe filas no contiguas {número de fila: valores} en una sola escritura."""

    def clear_values(self, row: int, col: int, num_rows: int, num_cols: int) -> None:
        """Borra contenido (no formato) de un rango."""

    def get_notes(self, row: int, col: int, num_cols: int) -> List[str]:
        """Notas de `num_cols` celdas de una fila ("" si no hay)."""

    def set_notes(self, row: int, col: int, notes: Sequence[str]) -> None:
        """Reemplaza las notas de celdas consecutivas de una fila."""

    def get_sheet_metadata(self, key: str) -> Optional[str]:
        """Valor de developer metadata a nivel hoja, o None."""

    def set_sheet_metadata(self, key: str, value: str) -> None:
        """Crea o reemplaza developer metadata a nivel hoja."""

    def get_column_markers(self, key: str) -> Dict[int, str]:
        """Marcadores de columna con esa key: {columna: valor}."""

    def set_column_marker(self, column: int, key: str, value: str) -> None:
        """Elimina los marcadores `key` de la columna y crea uno nuevo."""

    def set_column_markers(self, markers: Mapping[int, str], key: str, clear_from: Optional[int] = None) -> None:
        """
        Reemplaza los marcadores `key` de varias columnas {columna: valor} en una sola escritura.

        Con `clear_from`, además elimina los marcadores `key` de columnas >= clear_from
        que no estén en `markers`.
        """

    def clear_all(self) -> None:
        """Borra contenido y notas de toda la hoja."""

    def format_header(self, num_cols: int) -> None:
        """
        Cosmética de la fila de headers (congelar, negrita).

        Best-effort: las implementaciones no deben lanzar por esto.
        """


class GridDocument(Protocol):
    """La planilla completa (spreadsheet)."""

    @property
    def id(self) -> str:
        ...

    def worksheet(self, name: str, create: bool = True) -> GridWorksheet:
        """
        Retorna la pestaña `name`; la crea si no existe y `create=True`.

        Raises:
            KeyError: si no existe y `create=False`
        """

    def get_metadata(self, key: str) -> Optional[str]:
        """Developer metadata a nivel documento, o None."""

    def set_metadata(self, key: str, value: str) -> None:
        """Crea o reemplaza developer metadata a nivel documento."""
