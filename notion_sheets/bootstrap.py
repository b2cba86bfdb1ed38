"""
Construccion del servicio de sync a partir de Settings.

Es el unico lugar que traduce variables de entorno en configuracion explicita.
"""
from __future__ import annotations

from typing import Optional, Tuple

from loguru import logger

from notion_sheets.application.use_cases.sync_use_cases import NotionToSheetSync
from notion_sheets.core.config import Settings
from notion_sheets.infrastructure.external.notion.http_client import NotionClient, NotionConfig
from notion_sheets.infrastructure.external.slack.slack_notifier import SlackConfig, SlackNotifier
from notion_sheets.infrastructure.locks.document_lock import DocumentLockManager
from notion_sheets.infrastructure.sheets.gspread_grid import GspreadDocument, open_document
from notion_sheets.shared.exceptions.sync import ConfigurationError


def build_notion_client(settings: Settings) -> NotionClient:
    token = settings.effective_notion_token
    if not token:
        raise ConfigurationError("Falta NOTION_TOKEN (o API_TOKEN)", setting="NOTION_TOKEN")
    return NotionClient(
        NotionConfig(
            token=token,
            version=settings.effective_notion_version,
            timeout_s=settings.NOTION_TIMEOUT_S,
        )
    )


def build_notifier(settings: Settings) -> Optional[SlackNotifier]:
    if not settings.SLACK_BOT_TOKEN:
        return None
    return SlackNotifier(
        SlackConfig(token=settings.SLACK_BOT_TOKEN, default_channel=settings.SLACK_DEFAULT_CHANNEL or None)
    )


def build_from_settings(
    settings: Optional[Settings] = None,
    *,
    spreadsheet_id: Optional[str] = None,
    notify: bool = True,
    require_document: bool = True,
) -> Tuple[NotionToSheetSync, NotionClient, Optional[GspreadDocument]]:
    """
    Constructor "oficial" del servicio leyendo Settings.

    Raises:
        ConfigurationError: falta token de Notion, spreadsheet id o credenciales de Google
    """
    settings = settings or Settings()

    client = build_notion_client(settings)

    resolved_id = settings.resolve_spreadsheet_id(spreadsheet_id)
    document: Optional[GspreadDocument] = None
    if resolved_id:
        document = open_document(resolved_id, settings.GOOGLE_SERVICE_ACCOUNT_FILE)
    elif require_document:
        raise ConfigurationError(
            "Falta el spreadsheet destino: pasar --spreadsheet-id o definir SPREADSHEET_ID / DATA_SPREADSHEET_ID",
            setting="SPREADSHEET_ID",
        )

    if settings.SYNC_LOCK_DIR:
        DocumentLockManager.configure(settings.SYNC_LOCK_DIR)

    notifier = build_notifier(settings) if notify else None
    if notify and notifier is None:
        logger.info("SLACK_BOT_TOKEN no configurado: notificaciones desactivadas")

    service = NotionToSheetSync(
        client,
        document,
        notifier=notifier,
        lock_timeout_s=settings.SYNC_LOCK_TIMEOUT_S,
    )
    return service, client, document
