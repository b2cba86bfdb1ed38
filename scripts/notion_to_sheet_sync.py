"""
CLI: Notion -> Google Sheets (one-way sync).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer).
  - El alias map es un JSON {"<nombre o id de propiedad>": "<label de columna>"};
    el orden de las keys es el orden de columnas.

Variables de entorno:
  - NOTION_TOKEN (o API_TOKEN)
  - SPREADSHEET_ID (o DATA_SPREADSHEET_ID, o --spreadsheet-id)
  - GOOGLE_SERVICE_ACCOUNT_FILE
  - SLACK_BOT_TOKEN / SLACK_DEFAULT_CHANNEL (opcional)

Ejecución:
  python scripts/notion_to_sheet_sync.py upsert --source <ds_id> --sheet People --aliases aliases.json --key NotionURL
  python scripts/notion_to_sheet_sync.py append --source <ds_id> --sheet People --aliases aliases.json
  python scripts/notion_to_sheet_sync.py wipe-and-rebuild --source <ds_id> --sheet People --all-columns
  python scripts/notion_to_sheet_sync.py preview --source <ds_id> --aliases aliases.json --limit 5
  python scripts/notion_to_sheet_sync.py rebuild-headers --sheet People
  python scripts/notion_to_sheet_sync.py dump-property-ids --source <ds_id>
  python scripts/notion_to_sheet_sync.py refresh-id-name-cache --source <ds_id>
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin instalar el paquete.
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

load_dotenv(_REPO_ROOT / ".env", override=False)

from notion_sheets.bootstrap import build_from_settings
from notion_sheets.core.config import Settings, configure_logging
from notion_sheets.domain.entities.sync_run import SyncOptions
from notion_sheets.shared.constants.sync_constants import SyncMode
from notion_sheets.shared.exceptions.base import AppException


def _load_alias_map(raw: Optional[str]) -> Dict[str, str]:
    """Acepta un path a JSON o un JSON inline. El orden se preserva."""
    if not raw:
        return {}
    path = Path(raw)
    text = path.read_text(encoding="utf-8") if path.exists() else raw
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SystemExit(f"--aliases no es JSON válido: {e}")
    if not isinstance(data, dict):
        raise SystemExit("--aliases debe ser un objeto JSON {propiedad: label}")
    return {str(k): ("" if v is None else str(v)) for k, v in data.items()}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync Notion -> Google Sheets")
    parser.add_argument("--spreadsheet-id", default=None, help="Override de SPREADSHEET_ID.")
    parser.add_argument("--no-notify", action="store_true", help="No enviar notificaciones a Slack.")
    sub = parser.add_subparsers(dest="command", required=True)

    def _source(p: argparse.ArgumentParser) -> None:
        p.add_argument("--source", required=True, help="ID o URL del data source / database.")

    def _aliases(p: argparse.ArgumentParser) -> None:
        p.add_argument("--aliases", default=None, help="Path a JSON o JSON inline con el alias map.")
        p.add_argument(
            "--all-columns",
            action="store_true",
            help="Una columna por propiedad del schema; --aliases solo renombra.",
        )

    def _sheet(p: argparse.ArgumentParser) -> None:
        p.add_argument("--sheet", required=True, help="Nombre de la pestaña destino.")

    p = sub.add_parser("preview", help="Muestra headers y primeras N filas (no escribe).")
    _source(p); _aliases(p)
    p.add_argument("--limit", type=int, default=10)

    p = sub.add_parser("append", help="Agrega todas las páginas debajo del contenido existente.")
    _source(p); _aliases(p); _sheet(p)
    p.add_argument("--batch-size", type=int, default=None)

    p = sub.add_parser("upsert", help="Actualiza/inserta filas por columna clave.")
    _source(p); _aliases(p); _sheet(p)
    p.add_argument("--key", required=True, help="Label de la columna clave.")
    p.add_argument("--batch-size", type=int, default=None)

    p = sub.add_parser("wipe-and-rebuild", help="Vacía la pestaña y la reconstruye.")
    _source(p); _aliases(p); _sheet(p)
    p.add_argument("--batch-size", type=int, default=None)

    p = sub.add_parser("fix-headers", help="Reescribe la banda de headers exacta.")
    _source(p); _aliases(p); _sheet(p)
    p.add_argument("--start-col", type=int, default=1)

    p = sub.add_parser("rebuild-headers", help="Repara identidad de columnas desde las notas.")
    _sheet(p)
    p.add_argument("--start-col", type=int, default=1)

    p = sub.add_parser("write-page-row", help="Escribe una página en una fila, ubicando columnas por ID.")
    _sheet(p)
    p.add_argument("--page", required=True, help="ID o URL de la página.")
    p.add_argument("--row", type=int, required=True)
    p.add_argument("--property-ids", required=True, help="IDs separados por coma.")
    p.add_argument("--source", default=None, help="Data source para el mapa id -> nombre.")
    p.add_argument("--start-col", type=int, default=1)

    p = sub.add_parser("dump-property-ids", help="Lista nombre/ID/tipo de cada propiedad.")
    _source(p)
    p.add_argument("--sheet", default=None, help="Opcional: volcar en esta pestaña.")

    p = sub.add_parser("refresh-id-name-cache", help="Guarda el mapa id -> nombre del schema en el spreadsheet.")
    _source(p)

    return parser


def _print_rows(headers: List[str], rows: List[List[str]]) -> None:
    print(" | ".join(headers))
    for row in rows:
        print(" | ".join(row))


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if hasattr(args, "all_columns") and not args.all_columns and not args.aliases:
        parser.error(f"{args.command}: se requiere --aliases o --all-columns")

    settings = Settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    try:
        read_only = args.command == "preview" or (args.command == "dump-property-ids" and not args.sheet)
        service, _client, _document = build_from_settings(
            settings,
            spreadsheet_id=args.spreadsheet_id,
            notify=not args.no_notify,
            require_document=not read_only,
        )
        batch_size = getattr(args, "batch_size", None) or settings.SYNC_BATCH_SIZE

        if args.command == "preview":
            headers, rows = service.preview(
                args.source, _load_alias_map(args.aliases), limit=args.limit, all_columns=args.all_columns
            )
            _print_rows(headers, rows)

        elif args.command in ("append", "upsert"):
            options = SyncOptions(
                mode=SyncMode(args.command),
                key_label=getattr(args, "key", None),
                batch_size=batch_size,
                all_columns=args.all_columns,
            )
            logger.info(f"Iniciando Notion -> Sheets ({args.command}) en '{args.sheet}'...")
            result = service.sync(args.source, _load_alias_map(args.aliases), args.sheet, options)
            logger.info(f"Sync OK: {result.as_summary()}")

        elif args.command == "wipe-and-rebuild":
            result = service.wipe_and_rebuild(
                args.source,
                _load_alias_map(args.aliases),
                args.sheet,
                batch_size=batch_size,
                all_columns=args.all_columns,
            )
            logger.info(f"Rebuild OK: {result.as_summary()}")

        elif args.command == "fix-headers":
            count = service.fix_headers(
                args.source, _load_alias_map(args.aliases), args.sheet, args.start_col, all_columns=args.all_columns
            )
            logger.info(f"Headers reescritos: {count}")

        elif args.command == "rebuild-headers":
            fixed = service.rebuild_headers(args.sheet, start_col=args.start_col)
            logger.info(f"Columnas reparadas: {fixed}")

        elif args.command == "write-page-row":
            property_ids = [p.strip() for p in args.property_ids.split(",") if p.strip()]
            written = service.write_page_row(
                args.page, args.sheet, args.row, property_ids, schema_id=args.source, start_col=args.start_col
            )
            logger.info(f"Celdas escritas: {written}")

        elif args.command == "dump-property-ids":
            rows = service.dump_property_ids(args.source, destination_name=args.sheet)
            _print_rows(["name", "id (raw)", "id (pretty)", "type"], [list(r) for r in rows])

        elif args.command == "refresh-id-name-cache":
            count = service.refresh_id_name_cache(args.source)
            logger.info(f"Cache id -> nombre actualizada: {count} propiedades")

    except AppException as e:
        logger.error(f"[{e.kind.value}] {e.message}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
