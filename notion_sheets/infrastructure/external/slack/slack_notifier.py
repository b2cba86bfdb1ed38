"""
Notificaciones de sync vía Slack Web API (chat.postMessage).
"""

from __future__ import annotations

import json
import time
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests
from loguru import logger

from notion_sheets.domain.entities.sync_run import SyncResult
from notion_sheets.infrastructure.external.notion.retry import send_with_retry
from notion_sheets.shared.constants.sync_constants import SyncMode
from notion_sheets.shared.exceptions.sync import SyncError


@dataclass(frozen=True)
class SlackConfig:
    token: str
    default_channel: Optional[str] = None
    base_url: str = "https://slack.com/api"
    timeout_s: int = 10


def format_summary(result: SyncResult) -> str:
    if result.mode == SyncMode.UPSERT:
        text = (
            f"✅ Notion → Sheets upsert complete on *{result.sheet}*: "
            f"{result.inserted} inserted, {result.updated} updated."
        )
    else:
        text = f"✅ Notion → Sheets append complete on *{result.sheet}*: {result.appended} rows appended."
    if result.skipped_aliases:
        text += f"\n⚠️ Aliases sin propiedad: {', '.join(result.skipped_aliases)}"
    return text


def _error_text(error: BaseException) -> str:
    lines = traceback.format_exception(type(error), error, error.__traceback__)
    tail = "".join(lines[-6:]).strip()
    return tail or str(error)


class SlackNotifier:
    """
    Cliente simple para enviar resúmenes y errores a un canal de Slack.

    Nunca lanza: si el envío falla se loguea y el sync sigue.
    """

    def __init__(
        self,
        config: SlackConfig,
        *,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._config = config
        self._session = session or requests.Session()
        self._sleep = sleep

    def _post_message(self, payload: Dict[str, Any]) -> bool:
        channel = payload.get("channel") or self._config.default_channel
        if not self._config.token or not channel:
            logger.warning("Slack token o canal no configurados. Saltando notificación.")
            return False
        payload = dict(payload, channel=channel)

        url = f"{self._config.base_url.rstrip('/')}/chat.postMessage"
        headers = {
            "Authorization": f"Bearer {self._config.token}",
            "Content-Type": "application/json; charset=utf-8",
        }

        def _send() -> requests.Response:
            return self._session.post(url, data=json.dumps(payload), headers=headers, timeout=self._config.timeout_s)

        try:
            resp = send_with_retry(_send, sleep=self._sleep, endpoint="POST chat.postMessage")
            data = resp.json()
        except (SyncError, requests.RequestException, ValueError) as e:
            logger.error(f"Error al enviar mensaje de Slack: {e}")
            return False

        if resp.status_code >= 300 or not data.get("ok"):
            logger.error(f"chat.postMessage falló: {resp.status_code} {data.get('error') or data}")
            return False
        return True

    def post_summary(self, result: SyncResult, channel: Optional[str] = None) -> None:
        self._post_message({"channel": channel, "text": format_summary(result)})

    def post_error(
        self,
        error: BaseException,
        *,
        title: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        channel: Optional[str] = None,
    ) -> None:
        heading = title or "❌ Task failed"
        err_text = _error_text(error)
        section = f"*Error*\n```{err_text}```"
        if context:
            section += f"\n*Context*\n```{json.dumps(context, ensure_ascii=False, default=str)}```"

        blocks: List[Dict[str, Any]] = [
            {"type": "header", "text": {"type": "plain_text", "text": heading}},
            {"type": "section", "text": {"type": "mrkdwn", "text": section}},
        ]
        self._post_message({
            "channel": channel,
            "text": f"{heading}: {error}",
            "blocks": blocks,
            "unfurl_links": False,
            "unfurl_media": False,
        })
