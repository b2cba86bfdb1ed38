"""
Colaboradores falsos en memoria para los tests:
- FakeWorksheet / FakeDocument: implementan GridWorksheet / GridDocument y
  cuentan escrituras para poder verificar idempotencia.
- FakeResponse / FakeSession: reemplazan requests.Session en los clientes HTTP.
- NotionRouter: sirve un schema y páginas paginadas como lo haría la API.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple


class FakeWorksheet:
    """Pestaña en memoria (1-based) con notas y developer metadata."""

    def __init__(self, title: str = "Sheet1"):
        self._title = title
        self.cells: Dict[Tuple[int, int], str] = {}
        self.notes: Dict[Tuple[int, int], str] = {}
        self.sheet_meta: Dict[str, str] = {}
        self.markers: Dict[Tuple[int, str], str] = {}
        self.writes = 0
        self.formatted: List[int] = []

    @property
    def title(self) -> str:
        return self._title

    def last_row(self) -> int:
        rows = [r for (r, _c), v in self.cells.items() if v != ""]
        return max(rows) if rows else 0

    def last_column(self) -> int:
        cols = [c for (_r, c), v in self.cells.items() if v != ""]
        return max(cols) if cols else 0

    def get_values(self, row: int, col: int, num_rows: int, num_cols: int) -> List[List[str]]:
        return [
            [self.cells.get((r, c), "") for c in range(col, col + num_cols)]
            for r in range(row, row + num_rows)
        ]

    def set_values(self, row: int, col: int, values: Sequence[Sequence[str]]) -> None:
        self.writes += 1
        for r_off, values_row in enumerate(values):
            for c_off, value in enumerate(values_row):
                self.cells[(row + r_off, col + c_off)] = "" if value is None else str(value)

    def update_rows(self, rows: Mapping[int, Sequence[str]], col: int = 1) -> None:
        self.writes += 1
        for row, values_row in rows.items():
            for c_off, value in enumerate(values_row):
                self.cells[(row, col + c_off)] = str(value)

    def clear_values(self, row: int, col: int, num_rows: int, num_cols: int) -> None:
        self.writes += 1
        for r in range(row, row + num_rows):
            for c in range(col, col + num_cols):
                self.cells.pop((r, c), None)

    def get_notes(self, row: int, col: int, num_cols: int) -> List[str]:
        return [self.notes.get((row, c), "") for c in range(col, col + num_cols)]

    def set_notes(self, row: int, col: int, notes: Sequence[str]) -> None:
        self.writes += 1
        for offset, note in enumerate(notes):
            if note:
                self.notes[(row, col + offset)] = note
            else:
                self.notes.pop((row, col + offset), None)

    def get_sheet_metadata(self, key: str) -> Optional[str]:
        return self.sheet_meta.get(key)

    def set_sheet_metadata(self, key: str, value: str) -> None:
        self.writes += 1
        self.sheet_meta[key] = value

    def get_column_markers(self, key: str) -> Dict[int, str]:
        return {col: value for (col, k), value in self.markers.items() if k == key}

    def set_column_marker(self, column: int, key: str, value: str) -> None:
        self.writes += 1
        self.markers[(column, key)] = value

    def set_column_markers(self, markers: Mapping[int, str], key: str, clear_from: Optional[int] = None) -> None:
        self.writes += 1
        if clear_from is not None:
            for col, k in list(self.markers):
                if k == key and col >= clear_from and col not in markers:
                    del self.markers[(col, k)]
        for column, value in markers.items():
            self.markers[(column, key)] = value

    def clear_all(self) -> None:
        self.writes += 1
        self.cells.clear()
        self.notes.clear()

    def format_header(self, num_cols: int) -> None:
        self.formatted.append(num_cols)

    # Helpers de test

    def row(self, row: int) -> List[str]:
        last = self.last_column()
        return [self.cells.get((row, c), "") for c in range(1, last + 1)]

    def column(self, col: int) -> List[str]:
        return [self.cells.get((r, col), "") for r in range(1, self.last_row() + 1)]


class FakeDocument:
    """Spreadsheet en memoria."""

    def __init__(self, doc_id: str = "sheet-doc-1"):
        self._id = doc_id
        self.sheets: Dict[str, FakeWorksheet] = {}
        self.metadata: Dict[str, str] = {}

    @property
    def id(self) -> str:
        return self._id

    def worksheet(self, name: str, create: bool = True) -> FakeWorksheet:
        if name not in self.sheets:
            if not create:
                raise KeyError(name)
            self.sheets[name] = FakeWorksheet(name)
        return self.sheets[name]

    def get_metadata(self, key: str) -> Optional[str]:
        return self.metadata.get(key)

    def set_metadata(self, key: str, value: str) -> None:
        self.metadata[key] = value


class FakeResponse:
    """Subconjunto de requests.Response usado por los clientes."""

    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        headers: Optional[Dict[str, str]] = None,
        text: Optional[str] = None,
        url: str = "",
    ):
        self.status_code = status_code
        self._payload = payload
        self.headers = dict(headers or {})
        if payload is not None and "Content-Type" not in self.headers:
            self.headers["Content-Type"] = "application/json"
        self.text = text if text is not None else (json.dumps(payload) if payload is not None else "")
        self.url = url

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("sin JSON")
        return self._payload


class FakeSession:
    """
    requests.Session falso.

    `handler(method, url, params, body)` decide la respuesta; si es una lista,
    se consume en orden. Cada request queda en `calls`.
    """

    def __init__(self, handler: Any):
        self._handler = handler
        self.calls: List[Dict[str, Any]] = []

    def _next(self, method: str, url: str, params: Any, data: Any) -> FakeResponse:
        body = json.loads(data) if data else None
        if callable(self._handler):
            result = self._handler(method, url, params, body)
        else:
            result = self._handler.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def request(self, method: str, url: str, params=None, data=None, headers=None, timeout=None) -> FakeResponse:
        self.calls.append({"method": method, "url": url, "params": params, "data": data, "headers": headers})
        return self._next(method, url, params, data)

    def post(self, url: str, data=None, headers=None, timeout=None) -> FakeResponse:
        return self.request("POST", url, data=data, headers=headers, timeout=timeout)


DS_ID = "0123456789abcdef0123456789abcdef"
DS_UUID = "01234567-89ab-cdef-0123-456789abcdef"


def make_page(page_id: str, props: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Página de Notion con propiedades {nombre: valor tipado (incluye id y type)}."""
    return {"object": "page", "id": page_id, "properties": props}


class NotionRouter:
    """
    Simula la API de Notion para un data source.

    - GET /v1/data_sources/<id> -> schema
    - POST /v1/data_sources/<id>/query -> páginas de `page_size`, encadenadas por cursor
    - GET /v1/pages/<id> -> página por id
    """

    def __init__(self, properties: Dict[str, Dict[str, Any]], pages: List[Dict[str, Any]], page_size: int = 100):
        self.properties = properties
        self.pages = pages
        self.page_size = page_size
        self.query_bodies: List[Dict[str, Any]] = []

    def __call__(self, method: str, url: str, params: Any, body: Any) -> FakeResponse:
        if method == "GET" and url.endswith(f"/v1/data_sources/{DS_UUID}"):
            return FakeResponse(200, {"object": "data_source", "id": DS_UUID, "properties": self.properties})
        if method == "POST" and url.endswith(f"/v1/data_sources/{DS_UUID}/query"):
            self.query_bodies.append(body)
            start = int(body.get("start_cursor") or 0)
            chunk = self.pages[start:start + self.page_size]
            end = start + len(chunk)
            has_more = end < len(self.pages)
            return FakeResponse(
                200,
                {"object": "list", "results": chunk, "has_more": has_more, "next_cursor": str(end) if has_more else None},
            )
        if method == "GET" and "/v1/pages/" in url:
            page_id = url.rsplit("/", 1)[-1]
            for page in self.pages:
                if page["id"] == page_id:
                    return FakeResponse(200, page)
            return FakeResponse(404, {"object": "error", "message": "not found"})
        return FakeResponse(404, {"object": "error", "message": f"sin ruta {method} {url}"})


class FakeNotifier:
    def __init__(self) -> None:
        self.summaries: List[Any] = []
        self.errors: List[Tuple[BaseException, Dict[str, Any]]] = []

    def post_summary(self, result, channel=None) -> None:
        self.summaries.append(result)

    def post_error(self, error, *, title=None, context=None, channel=None) -> None:
        self.errors.append((error, dict(context or {})))


