"""
Implementación de GridWorksheet / GridDocument sobre gspread (Google Sheets API v4).

Notas:
- Valores se escriben con value_input_option="RAW": lo que sale del flattener
  queda como texto (claves con ceros a la izquierda, "TRUE"/"FALSE", etc.).
- Notas y developer metadata van por `spreadsheet.batch_update`; las lecturas
  por `fetch_sheet_metadata` con `fields` acotados.
- La grilla se agranda sola si una escritura cae fuera de sus límites.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Mapping, Optional, Sequence

import gspread
from gspread.http_client import BackOffHTTPClient
from gspread.utils import rowcol_to_a1
from google.oauth2.service_account import Credentials
from loguru import logger

from notion_sheets.shared.exceptions.sync import ConfigurationError

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
VALUE_INPUT_OPTION = "RAW"


def _a1_range(row: int, col: int, num_rows: int, num_cols: int) -> str:
    return f"{rowcol_to_a1(row, col)}:{rowcol_to_a1(row + num_rows - 1, col + num_cols - 1)}"


def _quoted_title(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def _pad(values: Sequence[Sequence[Any]], num_rows: int, num_cols: int) -> List[List[str]]:
    out: List[List[str]] = []
    for r in range(num_rows):
        src = list(values[r]) if r < len(values) else []
        row = ["" if v is None else str(v) for v in src[:num_cols]]
        row.extend([""] * (num_cols - len(row)))
        out.append(row)
    return out


class GspreadWorksheet:
    """Adaptador de una pestaña de gspread a GridWorksheet."""

    def __init__(self, worksheet: gspread.Worksheet, spreadsheet: gspread.Spreadsheet):
        self._ws = worksheet
        self._spreadsheet = spreadsheet

    @property
    def title(self) -> str:
        return self._ws.title

    @property
    def sheet_id(self) -> int:
        return self._ws.id

    # ------------------------------------------------------------------
    # Valores
    # ------------------------------------------------------------------

    def _all_values(self) -> List[List[str]]:
        return self._ws.get_all_values()

    def last_row(self) -> int:
        values = self._all_values()
        for idx in range(len(values), 0, -1):
            if any(str(v) != "" for v in values[idx - 1]):
                return idx
        return 0

    def last_column(self) -> int:
        last = 0
        for row in self._all_values():
            for idx in range(len(row), 0, -1):
                if str(row[idx - 1]) != "":
                    last = max(last, idx)
                    break
        return last

    def get_values(self, row: int, col: int, num_rows: int, num_cols: int) -> List[List[str]]:
        if num_rows <= 0 or num_cols <= 0:
            return []
        values = self._ws.get_values(_a1_range(row, col, num_rows, num_cols))
        return _pad(values, num_rows, num_cols)

    def _ensure_size(self, last_row: int, last_col: int) -> None:
        if last_row > self._ws.row_count:
            self._ws.add_rows(last_row - self._ws.row_count)
        if last_col > self._ws.col_count:
            self._ws.add_cols(last_col - self._ws.col_count)

    def set_values(self, row: int, col: int, values: Sequence[Sequence[str]]) -> None:
        if not values:
            return
        width = max(len(r) for r in values)
        if width == 0:
            return
        rows = _pad(values, len(values), width)
        self._ensure_size(row + len(rows) - 1, col + width - 1)
        self._ws.update(
            range_name=_a1_range(row, col, len(rows), width),
            values=rows,
            value_input_option=VALUE_INPUT_OPTION,
        )

    def update_rows(self, rows: Mapping[int, Sequence[str]], col: int = 1) -> None:
        if not rows:
            return
        width = max(len(r) for r in rows.values())
        if width == 0:
            return
        self._ensure_size(max(rows), col + width - 1)
        data = [
            {"range": _a1_range(row_number, col, 1, width), "values": _pad([values], 1, width)}
            for row_number, values in sorted(rows.items())
        ]
        self._ws.batch_update(data, value_input_option=VALUE_INPUT_OPTION)

    def clear_values(self, row: int, col: int, num_rows: int, num_cols: int) -> None:
        if num_rows <= 0 or num_cols <= 0:
            return
        self._ws.batch_clear([_a1_range(row, col, num_rows, num_cols)])

    # ------------------------------------------------------------------
    # Notas
    # ------------------------------------------------------------------

    def get_notes(self, row: int, col: int, num_cols: int) -> List[str]:
        if num_cols <= 0:
            return []
        a1 = f"{_quoted_title(self.title)}!{_a1_range(row, col, 1, num_cols)}"
        meta = self._spreadsheet.fetch_sheet_metadata(
            params={"ranges": a1, "fields": "sheets.data.rowData.values.note"}
        )
        notes = [""] * num_cols
        for sheet in meta.get("sheets", []):
            for data in sheet.get("data", []):
                row_data = data.get("rowData") or [{}]
                for idx, cell in enumerate((row_data[0] or {}).get("values", [])[:num_cols]):
                    notes[idx] = (cell or {}).get("note", "") or ""
        return notes

    def set_notes(self, row: int, col: int, notes: Sequence[str]) -> None:
        if not notes:
            return
        self._ensure_size(row, col + len(notes) - 1)
        self._spreadsheet.batch_update({
            "requests": [{
                "updateCells": {
                    "range": {
                        "sheetId": self.sheet_id,
                        "startRowIndex": row - 1,
                        "endRowIndex": row,
                        "startColumnIndex": col - 1,
                        "endColumnIndex": col - 1 + len(notes),
                    },
                    "rows": [{"values": [{"note": note or ""} for note in notes]}],
                    "fields": "note",
                }
            }]
        })

    # ------------------------------------------------------------------
    # Developer metadata
    # ------------------------------------------------------------------

    def _sheet_level_metadata(self) -> List[Dict[str, Any]]:
        meta = self._spreadsheet.fetch_sheet_metadata(
            params={"fields": "sheets(properties.sheetId,developerMetadata)"}
        )
        for sheet in meta.get("sheets", []):
            if sheet.get("properties", {}).get("sheetId") == self.sheet_id:
                return sheet.get("developerMetadata", []) or []
        return []

    def _column_metadata(self) -> Dict[int, List[Dict[str, Any]]]:
        meta = self._spreadsheet.fetch_sheet_metadata(
            params={
                "ranges": _quoted_title(self.title),
                "fields": "sheets(properties.sheetId,data(startColumn,columnMetadata.developerMetadata))",
            }
        )
        out: Dict[int, List[Dict[str, Any]]] = {}
        for sheet in meta.get("sheets", []):
            if sheet.get("properties", {}).get("sheetId") != self.sheet_id:
                continue
            for data in sheet.get("data", []):
                start = data.get("startColumn", 0)
                for idx, column in enumerate(data.get("columnMetadata", []) or []):
                    entries = (column or {}).get("developerMetadata") or []
                    if entries:
                        out.setdefault(start + idx + 1, []).extend(entries)
        return out

    def get_sheet_metadata(self, key: str) -> Optional[str]:
        for entry in self._sheet_level_metadata():
            if entry.get("metadataKey") == key:
                return entry.get("metadataValue")
        return None

    def set_sheet_metadata(self, key: str, value: str) -> None:
        requests_ = _delete_requests(
            e for e in self._sheet_level_metadata() if e.get("metadataKey") == key
        )
        requests_.append(_create_request(key, value, {"sheetId": self.sheet_id}))
        self._spreadsheet.batch_update({"requests": requests_})

    def get_column_markers(self, key: str) -> Dict[int, str]:
        out: Dict[int, str] = {}
        for col, entries in self._column_metadata().items():
            for entry in entries:
                if entry.get("metadataKey") == key:
                    out[col] = entry.get("metadataValue") or ""
        return out

    def set_column_marker(self, column: int, key: str, value: str) -> None:
        self.set_column_markers({column: value}, key)

    def set_column_markers(self, markers: Mapping[int, str], key: str, clear_from: Optional[int] = None) -> None:
        """
        Reemplaza marcadores `key` de varias columnas con una lectura y un batch_update.

        Con `clear_from`, también borra los marcadores `key` de columnas >= clear_from
        que no estén en `markers`.
        """
        existing = self._column_metadata()
        stale = []
        for col, entries in existing.items():
            if col in markers or (clear_from is not None and col >= clear_from):
                stale.extend(e for e in entries if e.get("metadataKey") == key)

        requests_ = _delete_requests(stale)
        for column, value in sorted(markers.items()):
            requests_.append(
                _create_request(
                    key,
                    value,
                    {
                        "dimensionRange": {
                            "sheetId": self.sheet_id,
                            "dimension": "COLUMNS",
                            "startIndex": column - 1,
                            "endIndex": column,
                        }
                    },
                )
            )
        if not requests_:
            return
        if markers:
            self._ensure_size(1, max(markers))
        self._spreadsheet.batch_update({"requests": requests_})

    # ------------------------------------------------------------------
    # Hoja completa
    # ------------------------------------------------------------------

    def clear_all(self) -> None:
        self._ws.clear()
        self._spreadsheet.batch_update({
            "requests": [{"updateCells": {"range": {"sheetId": self.sheet_id}, "fields": "note"}}]
        })

    def format_header(self, num_cols: int) -> None:
        if num_cols <= 0:
            return
        try:
            self._ws.freeze(rows=1)
            self._ws.format(_a1_range(1, 1, 1, num_cols), {"textFormat": {"bold": True}})
        except gspread.exceptions.GSpreadException as e:
            logger.debug(f"Formato de headers omitido en '{self.title}': {e}")


def _create_request(key: str, value: str, location: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "createDeveloperMetadata": {
            "developerMetadata": {
                "metadataKey": key,
                "metadataValue": value,
                "location": location,
                "visibility": "DOCUMENT",
            }
        }
    }


def _delete_requests(entries) -> List[Dict[str, Any]]:
    return [
        {
            "deleteDeveloperMetadata": {
                "dataFilter": {"developerMetadataLookup": {"metadataId": entry["metadataId"]}}
            }
        }
        for entry in entries
        if entry.get("metadataId") is not None
    ]


class GspreadDocument:
    """Adaptador de un spreadsheet de gspread a GridDocument."""

    def __init__(self, spreadsheet: gspread.Spreadsheet, default_rows: int = 1000, default_cols: int = 26):
        self._spreadsheet = spreadsheet
        self._default_rows = default_rows
        self._default_cols = default_cols

    @property
    def id(self) -> str:
        return self._spreadsheet.id

    def worksheet(self, name: str, create: bool = True) -> GspreadWorksheet:
        try:
            return GspreadWorksheet(self._spreadsheet.worksheet(name), self._spreadsheet)
        except gspread.exceptions.WorksheetNotFound:
            if not create:
                raise KeyError(name)
            logger.info(f"Creando pestaña '{name}' en {self.id}")
            ws = self._spreadsheet.add_worksheet(name, rows=self._default_rows, cols=self._default_cols)
            return GspreadWorksheet(ws, self._spreadsheet)

    def _document_metadata(self) -> List[Dict[str, Any]]:
        meta = self._spreadsheet.fetch_sheet_metadata(params={"fields": "developerMetadata"})
        return meta.get("developerMetadata", []) or []

    def get_metadata(self, key: str) -> Optional[str]:
        for entry in self._document_metadata():
            if entry.get("metadataKey") == key:
                return entry.get("metadataValue")
        return None

    def set_metadata(self, key: str, value: str) -> None:
        requests_ = _delete_requests(e for e in self._document_metadata() if e.get("metadataKey") == key)
        requests_.append(_create_request(key, value, {"spreadsheet": True}))
        self._spreadsheet.batch_update({"requests": requests_})


def open_document(spreadsheet_id: str, service_account_file: str) -> GspreadDocument:
    """
    Abre un spreadsheet con credenciales de service account.

    Raises:
        ConfigurationError: si falta el archivo de credenciales o el spreadsheet no existe/no es accesible
    """
    if not spreadsheet_id:
        raise ConfigurationError("Falta SPREADSHEET_ID", setting="SPREADSHEET_ID")
    if not service_account_file or not os.path.exists(service_account_file):
        raise ConfigurationError(
            f"No se encontró el archivo de service account: {service_account_file!r}",
            setting="GOOGLE_SERVICE_ACCOUNT_FILE",
        )

    creds = Credentials.from_service_account_file(service_account_file, scopes=SCOPES)
    client = gspread.authorize(creds, http_client=BackOffHTTPClient)
    try:
        spreadsheet = client.open_by_key(spreadsheet_id)
    except gspread.exceptions.SpreadsheetNotFound as e:
        raise ConfigurationError(
            f"Spreadsheet {spreadsheet_id} no encontrado o sin acceso para la service account",
            setting="SPREADSHEET_ID",
        ) from e
    logger.info(f"Spreadsheet abierto: {spreadsheet_id}")
    return GspreadDocument(spreadsheet)
