"""
Interfaz para notificar resultados y errores de un sync (Slack, etc.).

Reglas:
- Fire-and-forget: una implementación nunca debe romper el sync si falla el envío.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from notion_sheets.domain.entities.sync_run import SyncResult


class Notifier(Protocol):
    """
    Implementaciones:
    - Slack Web API (chat.postMessage).
    - Fake para tests.
    """

    def post_summary(self, result: SyncResult, channel: Optional[str] = None) -> None:
        """Publica el resumen de una corrida exitosa."""

    def post_error(
        self,
        error: BaseException,
        *,
        title: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        channel: Optional[str] = None,
    ) -> None:
        """Publica un error con contexto opcional (sheet, modo, schema)."""
