"""
Configuracion central del job de sync.
Lee variables de entorno / .env y las convierte en configuracion explicita
(NotionConfig, SlackConfig, ...) en el punto de entrada. Ningun modulo interno
lee Settings directamente.
"""
import sys
from typing import Optional

from loguru import logger
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings

from notion_sheets.shared.constants.sync_constants import DEFAULT_BATCH_SIZE, DEFAULT_LOCK_TIMEOUT_S


class Settings(BaseSettings):
    """
    Clase de configuracion del sync.

    Notion:
    - NOTION_TOKEN (o API_TOKEN, nombre heredado)
    - NOTION_VERSION (o API_VERSION)

    Google Sheets:
    - SPREADSHEET_ID, con DATA_SPREADSHEET_ID como respaldo
    - GOOGLE_SERVICE_ACCOUNT_FILE: JSON de la service account
    """

    # Notion
    NOTION_TOKEN: str = Field(default="")
    API_TOKEN: str = Field(default="")
    NOTION_VERSION: str = Field(default="")
    API_VERSION: str = Field(default="")
    NOTION_TIMEOUT_S: int = Field(default=30)

    # Google Sheets
    SPREADSHEET_ID: str = Field(default="")
    DATA_SPREADSHEET_ID: str = Field(default="")
    GOOGLE_SERVICE_ACCOUNT_FILE: str = Field(default="service_account.json")

    # Slack (opcional)
    SLACK_BOT_TOKEN: str = Field(default="")
    SLACK_DEFAULT_CHANNEL: str = Field(default="")

    # Sync
    SYNC_LOCK_TIMEOUT_S: float = Field(default=DEFAULT_LOCK_TIMEOUT_S)
    SYNC_LOCK_DIR: str = Field(default="")
    SYNC_BATCH_SIZE: int = Field(default=DEFAULT_BATCH_SIZE)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/notion_sheets.log")

    @computed_field
    @property
    def effective_notion_token(self) -> str:
        """NOTION_TOKEN si esta definido; si no, API_TOKEN."""
        return self.NOTION_TOKEN or self.API_TOKEN

    @computed_field
    @property
    def effective_notion_version(self) -> str:
        """NOTION_VERSION, API_VERSION o la version por defecto del cliente."""
        return self.NOTION_VERSION or self.API_VERSION or "2025-09-03"

    def resolve_spreadsheet_id(self, explicit: Optional[str] = None) -> str:
        """Orden: argumento explicito -> SPREADSHEET_ID -> DATA_SPREADSHEET_ID ("" si ninguno)."""
        return (explicit or self.SPREADSHEET_ID or self.DATA_SPREADSHEET_ID or "").strip()

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configura loguru: stderr con el nivel pedido y, opcionalmente, archivo rotativo.
    """
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(
            log_file,
            rotation="500 MB",
            retention="10 days",
            level=level
        )
