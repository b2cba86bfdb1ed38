"""
Casos de uso del sync Notion -> Google Sheets.

Flujo de `sync`:
    schema + specs -> páginas (query_all) -> filas aplanadas
    -> [lock del documento] headers + identidad -> append | upsert

Los fetch a Notion se hacen fuera del lock; solo las mutaciones de la
grilla corren dentro. No hay reintentos a este nivel: viven en el cliente HTTP.
Si algo falla, las filas ya escritas quedan (no hay rollback).
"""
from __future__ import annotations

from itertools import islice
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from notion_sheets.application.interfaces.grid_store import GridDocument, GridWorksheet
from notion_sheets.application.interfaces.notifier import Notifier
from notion_sheets.application.services.column_identity import ColumnIdentityStore
from notion_sheets.application.services.id_name_cache import IdNameCache
from notion_sheets.application.services.property_flattener import flatten_property, get_property_by_id
from notion_sheets.application.services.schema_matcher import SchemaMatcher, build_id_name_map
from notion_sheets.application.services.sheet_writer import (
    append_rows_batched,
    ensure_headers,
    upsert_rows_by_key,
)
from notion_sheets.domain.entities.column_spec import ColumnSpec, SpecResolution
from notion_sheets.domain.entities.notion_resources import SchemaResource
from notion_sheets.domain.entities.sync_run import SyncOptions, SyncResult, SyncRun
from notion_sheets.infrastructure.external.notion.http_client import NotionClient
from notion_sheets.infrastructure.external.notion.query import iter_query_results, query_all
from notion_sheets.infrastructure.locks.document_lock import DocumentLockManager
from notion_sheets.shared.constants.sync_constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_LOCK_TIMEOUT_S,
    DEFAULT_PAGE_SIZE,
    HEADER_ROW,
    SyncMode,
    SyncState,
)
from notion_sheets.shared.exceptions.sync import ConfigurationError, PreconditionError

PROPERTY_IDS_HEADERS = ["Property Name", "Property ID (raw)", "Property ID (pretty)", "Type"]


def pages_to_rows(
    records: Sequence[Mapping[str, Any]],
    specs: Sequence[ColumnSpec],
    id_name_map: Mapping[str, str],
) -> List[List[str]]:
    """
    Una fila por página, columnas en el orden de `specs`.

    La propiedad se busca por ID (vía el mapa id -> nombre del schema) y,
    si no aparece, por el nombre que tenía al resolver los specs.
    """
    lookup = dict(id_name_map)
    rows: List[List[str]] = []
    for record in records:
        row = []
        for spec in specs:
            prop = get_property_by_id(record, spec.property_id, lookup, spec.property_name)
            row.append(flatten_property(prop) if prop is not None else "")
        rows.append(row)
    return rows


class NotionToSheetSync:
    """
    Orquestador del sync para un spreadsheet.

    Uso:
        service = NotionToSheetSync(client, document, notifier=slack)
        result = service.sync(ds_id, {"Email (Org)": "Email"}, "People",
                              SyncOptions(mode="upsert", key_label="NotionURL"))
    """

    def __init__(
        self,
        client: NotionClient,
        document: Optional[GridDocument],
        *,
        notifier: Optional[Notifier] = None,
        lock_timeout_s: float = DEFAULT_LOCK_TIMEOUT_S,
        lock_manager=DocumentLockManager,
    ) -> None:
        self._client = client
        self._document = document
        self._notifier = notifier
        self._lock_timeout_s = lock_timeout_s
        self._locks = lock_manager
        self._matcher = SchemaMatcher(client)

    def _require_document(self) -> GridDocument:
        if self._document is None:
            raise ConfigurationError("Esta operación necesita un spreadsheet destino", setting="SPREADSHEET_ID")
        return self._document

    def _lock(self):
        return self._locks.lock(self._require_document().id, timeout=self._lock_timeout_s)

    # ------------------------------------------------------------------
    # Sync principal
    # ------------------------------------------------------------------

    def sync(
        self,
        schema_id: str,
        alias_map: Mapping[str, Optional[str]],
        destination_name: str,
        options: Optional[SyncOptions] = None,
        *,
        query_body: Optional[Dict[str, Any]] = None,
    ) -> SyncResult:
        """
        Sincroniza todas las páginas del data source en la pestaña `destination_name`.

        Raises:
            PreconditionError: upsert sin key_label (antes de cualquier llamada de red)
                o key_label que no es un header resuelto (antes de escribir)
            UpstreamHttpError / TransientUpstreamError: fallos de Notion
            DocumentLockTimeoutError: no se obtuvo el lock del documento
        """
        return self._run(schema_id, alias_map, destination_name, options or SyncOptions(), query_body, wipe=False)

    def wipe_and_rebuild(
        self,
        schema_id: str,
        alias_map: Mapping[str, Optional[str]],
        destination_name: str,
        *,
        batch_size: Optional[int] = None,
        all_columns: bool = False,
        query_body: Optional[Dict[str, Any]] = None,
    ) -> SyncResult:
        """Vacía la pestaña (valores y notas) y la reconstruye con un append completo."""
        options = SyncOptions(
            mode=SyncMode.APPEND, batch_size=batch_size or DEFAULT_BATCH_SIZE, all_columns=all_columns
        )
        return self._run(schema_id, alias_map, destination_name, options, query_body, wipe=True)

    def _run(
        self,
        schema_id: str,
        alias_map: Mapping[str, Optional[str]],
        destination_name: str,
        options: SyncOptions,
        query_body: Optional[Dict[str, Any]],
        *,
        wipe: bool,
    ) -> SyncResult:
        options.validate()
        self._require_document()
        run = SyncRun(schema_id=schema_id, sheet=destination_name, options=options)
        result = SyncResult(mode=options.mode, sheet=destination_name)

        try:
            schema = self._matcher.fetch_schema(schema_id)
            resolution = self.resolve_specs(
                schema_id, alias_map, all_columns=options.all_columns, schema=schema
            )
            run.specs = list(resolution.specs)
            run.headers = resolution.headers
            result.columns = len(run.specs)
            result.skipped_aliases = resolution.skipped_aliases
            if not run.specs:
                logger.warning(f"Sync '{destination_name}': ningún alias resolvió a una propiedad")
            if options.mode == SyncMode.UPSERT and options.key_label not in run.headers:
                raise PreconditionError(
                    f'Columna clave "{options.key_label}" no está entre los headers resueltos',
                    field="key_label",
                )
            run.advance(SyncState.SPECS_RESOLVED)

            run.records = query_all(self._client, schema.id, query_body, kind=schema.kind)
            result.records = len(run.records)
            run.advance(SyncState.PAGES_FETCHED)

            run.rows = pages_to_rows(run.records, run.specs, build_id_name_map(schema.properties))
            run.advance(SyncState.ROWS_BUILT)

            with self._lock():
                ws = self._document.worksheet(destination_name)
                if wipe:
                    ws.clear_all()
                result.headers_changed = self._ensure_header_identity(ws, run.specs)
                run.advance(SyncState.HEADERS_ENSURED)

                if options.mode == SyncMode.UPSERT:
                    counts = upsert_rows_by_key(
                        ws, options.key_label, run.headers, run.rows, options.batch_size
                    )
                    result.inserted, result.updated = counts.inserted, counts.updated
                    run.advance(SyncState.UPSERTED)
                else:
                    result.appended = append_rows_batched(ws, run.rows, options.batch_size)
                    run.advance(SyncState.APPENDED)

            run.advance(SyncState.DONE)
        except Exception as e:
            failed_at = run.state
            run.advance(SyncState.FAILED)
            logger.error(f"Sync '{destination_name}' falló en estado {failed_at.value}: {e}")
            self._notify_error(e, schema_id=schema_id, sheet=destination_name, mode=options.mode.value)
            raise

        logger.info(f"Sync completado: {result.as_summary()}")
        if self._notifier is not None:
            self._notifier.post_summary(result)
        return result

    def _ensure_header_identity(self, ws: GridWorksheet, specs: Sequence[ColumnSpec]) -> bool:
        """Reescribe headers e identidad solo si cambiaron. Sin escrituras si ya coinciden."""
        headers = [spec.header for spec in specs]
        changed = ensure_headers(ws, headers)
        store = ColumnIdentityStore(ws)
        if changed or not store.is_in_sync(specs):
            store.write_header_band(specs)
            ws.format_header(len(specs))
            return True
        return False

    def _notify_error(self, error: BaseException, **context: Any) -> None:
        if self._notifier is None:
            return
        self._notifier.post_error(error, title="❌ Notion → Sheets sync failed", context=context)

    # ------------------------------------------------------------------
    # Operaciones puntuales
    # ------------------------------------------------------------------

    def preview(
        self,
        schema_id: str,
        alias_map: Mapping[str, Optional[str]],
        limit: int = 10,
        *,
        all_columns: bool = False,
    ) -> Tuple[List[str], List[List[str]]]:
        """Headers + primeras `limit` filas, sin escribir nada."""
        if limit <= 0:
            raise PreconditionError("limit debe ser > 0", field="limit")
        schema = self._matcher.fetch_schema(schema_id)
        resolution = self.resolve_specs(schema_id, alias_map, all_columns=all_columns, schema=schema)
        records = list(
            islice(
                iter_query_results(
                    self._client, schema.id, page_size=min(limit, DEFAULT_PAGE_SIZE), kind=schema.kind
                ),
                limit,
            )
        )
        rows = pages_to_rows(records, resolution.specs, build_id_name_map(schema.properties))
        return resolution.headers, rows

    def resolve_specs(
        self,
        schema_id: str,
        alias_map: Mapping[str, Optional[str]],
        *,
        all_columns: bool = False,
        schema: Optional[SchemaResource] = None,
    ) -> SpecResolution:
        """
        Columnas destino: las del alias map, o todas las del schema con `all_columns`.

        En modo completo el alias map solo renombra (match exacto por nombre) y
        no hay aliases omitidos.
        """
        if all_columns:
            return SpecResolution(specs=self._matcher.build_all_specs(schema_id, alias_map, schema=schema))
        return self._matcher.resolve_aliases_to_specs(schema_id, alias_map, schema=schema)

    def fix_headers(
        self,
        schema_id: str,
        alias_map: Mapping[str, Optional[str]],
        destination_name: str,
        start_col: int = 1,
        *,
        all_columns: bool = False,
    ) -> int:
        """Reescribe la banda de headers exacta desde `start_col` (sin tocar datos)."""
        resolution = self.resolve_specs(schema_id, alias_map, all_columns=all_columns)
        with self._lock():
            ws = self._document.worksheet(destination_name)
            ColumnIdentityStore(ws).write_header_band(resolution.specs, start_col=start_col)
            ws.format_header(start_col + len(resolution.specs) - 1)
        return len(resolution.specs)

    def rebuild_headers(self, destination_name: str, start_col: int = 1) -> int:
        """Repara mapa, notas y marcadores de identidad. Retorna columnas reparadas."""
        with self._lock():
            try:
                ws = self._document.worksheet(destination_name, create=False)
            except KeyError as e:
                raise PreconditionError(f"La pestaña '{destination_name}' no existe", field="sheet") from e
            return ColumnIdentityStore(ws).rebuild(start_col=start_col)

    def refresh_id_name_cache(self, schema_id: str) -> int:
        """Reescribe la cache durable id -> nombre del schema. Retorna cantidad de propiedades."""
        schema = self._matcher.fetch_schema(schema_id)
        with self._lock():
            return len(IdNameCache(self._require_document()).refresh(schema))

    def write_page_row(
        self,
        page_id: str,
        destination_name: str,
        row: int,
        property_ids: Sequence[str],
        *,
        schema_id: Optional[str] = None,
        start_col: int = 1,
    ) -> Dict[str, int]:
        """
        Escribe los valores de una página en la fila `row`, ubicando cada propiedad
        por su identidad de columna (no por posición).

        Returns:
            {property_id: columna} de las propiedades escritas. Las que no tienen
            columna se omiten con warning.
        """
        if row <= HEADER_ROW:
            raise PreconditionError(f"row debe ser > {HEADER_ROW} (la fila {HEADER_ROW} es de headers)", field="row")

        id_name: Dict[str, str] = {}
        if schema_id:
            cache = IdNameCache(self._require_document())
            id_name = cache.load(schema_id)
            if not id_name:
                schema: SchemaResource = self._matcher.fetch_schema(schema_id)
                id_name = build_id_name_map(schema.properties)

        page = self._client.get_page(page_id)
        values = {
            pid: flatten_property(get_property_by_id(page, pid, id_name)) for pid in property_ids
        }

        written: Dict[str, int] = {}
        with self._lock():
            ws = self._document.worksheet(destination_name)
            store = ColumnIdentityStore(ws)
            for pid, value in values.items():
                col = store.resolve(pid, start_col=start_col)
                if col is None:
                    logger.warning(f"'{destination_name}': sin columna para la propiedad {pid}; se omite")
                    continue
                ws.set_values(row, col, [[value]])
                written[pid] = col
        return written

    def dump_property_ids(self, schema_id: str, destination_name: Optional[str] = None) -> List[Tuple[str, str, str, str]]:
        """Lista (nombre, id crudo, id decodificado, tipo); opcionalmente la vuelca en una pestaña."""
        rows = self._matcher.describe_properties(schema_id)
        if destination_name:
            with self._lock():
                ws = self._document.worksheet(destination_name)
                ws.clear_all()
                ws.set_values(HEADER_ROW, 1, [PROPERTY_IDS_HEADERS] + [list(r) for r in rows])
                ws.format_header(len(PROPERTY_IDS_HEADERS))
        return rows
