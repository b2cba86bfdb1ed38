"""
Cliente HTTP de la API de Notion (requests).

Requisitos cubiertos:
- autenticación Bearer + header Notion-Version
- serialización de query params (listas repiten la key) y bodies JSON/crudos
- rate-limit/backoff (429, 5xx) delegado a `send_with_retry`
- resolución data source -> database (ambos conviven para el mismo ID)

La configuración llega explícita en `NotionConfig`; este módulo no lee
variables de entorno.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import requests
from loguru import logger

from notion_sheets.domain.entities.notion_resources import ResourceKind, SchemaResource
from notion_sheets.infrastructure.external.notion.retry import send_with_retry
from notion_sheets.shared.exceptions.sync import (
    ConfigurationError,
    TransientUpstreamError,
    UpstreamHttpError,
    truncate_body,
)
from notion_sheets.shared.utils.ids import normalize_resource_id

DEFAULT_NOTION_VERSION = "2025-09-03"


@dataclass(frozen=True)
class NotionConfig:
    token: str
    version: str = DEFAULT_NOTION_VERSION
    base_url: str = "https://api.notion.com"
    timeout_s: int = 30


@dataclass
class ApiResult:
    """Respuesta envuelta: el caller decide si `ok=False` es fatal."""

    ok: bool
    status: int
    data: Any
    headers: Mapping[str, str] = field(default_factory=dict)
    url: str = ""
    method: str = "GET"


def build_query(query: Optional[Mapping[str, Any]]) -> List[Tuple[str, str]]:
    """
    Serializa query params como lista de tuplas.

    - None se omite
    - listas/tuplas repiten la key (?a=1&a=2)
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in (query or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, str(item)) for item in value if item is not None)
        else:
            pairs.append((key, str(value)))
    return pairs


def _encode_body(body: Any) -> Tuple[Optional[bytes], Optional[str]]:
    """Retorna (payload, content_type) según el tipo de body."""
    if body is None:
        return None, None
    if isinstance(body, bytes):
        return body, "application/octet-stream"
    if isinstance(body, str):
        return body.encode("utf-8"), "application/json"
    return json.dumps(body).encode("utf-8"), "application/json"


class NotionClient:
    """
    Cliente HTTP de Notion.

    Importante:
    - No hace cast de tipos de propiedades: eso lo decide el flattener.
    - `call` solo lanza en errores no reintentables si throw_on_error=True;
      los 429/5xx ya vienen reintentados.
    """

    def __init__(
        self,
        config: NotionConfig,
        *,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = 5,
    ) -> None:
        if not config.token:
            raise ConfigurationError("Falta NOTION_TOKEN para llamar a la API de Notion", setting="NOTION_TOKEN")
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        self._session = session or requests.Session()
        self._sleep = sleep
        self._max_attempts = max_attempts

    @property
    def config(self) -> NotionConfig:
        return self._config

    def call(
        self,
        method: str,
        path: str,
        *,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        throw_on_error: bool = True,
    ) -> ApiResult:
        """
        Request HTTP autenticado contra Notion.

        Args:
            method: GET/POST/PATCH/DELETE (cualquier casing)
            path: debe empezar con "/" (ej. "/v1/pages/<id>")
            query: params de querystring
            body: dict/list -> JSON; str/bytes se envían tal cual (solo POST/PATCH)
            throw_on_error: si False, retorna ok=False para lógica de fallback

        Raises:
            UpstreamHttpError: respuesta no 2xx con throw_on_error=True
            TransientUpstreamError: 429/5xx/transporte tras agotar reintentos
        """
        if not path or not path.startswith("/"):
            raise ValueError('NotionClient.call: "path" debe empezar con "/"')

        verb = (method or "GET").upper()
        url = self._base_url + path
        endpoint = f"{verb} {path}"
        headers = {
            "Authorization": f"Bearer {self._config.token}",
            "Notion-Version": self._config.version,
        }

        payload: Optional[bytes] = None
        if verb in ("POST", "PATCH") and body is not None:
            payload, content_type = _encode_body(body)
            if content_type:
                headers["Content-Type"] = content_type

        params = build_query(query)

        def _send() -> requests.Response:
            return self._session.request(
                method=verb,
                url=url,
                params=params or None,
                data=payload,
                headers=headers,
                timeout=self._config.timeout_s,
            )

        resp = send_with_retry(
            _send,
            max_attempts=self._max_attempts,
            sleep=self._sleep,
            endpoint=endpoint,
        )

        data: Any = resp.text
        content_type = resp.headers.get("Content-Type", "") if resp.headers else ""
        if "application/json" in content_type:
            try:
                data = resp.json()
            except ValueError:
                logger.debug(f"{endpoint}: Content-Type JSON pero body inválido")

        ok = 200 <= resp.status_code < 300
        if not ok and throw_on_error:
            raise UpstreamHttpError(
                f"{endpoint} -> HTTP {resp.status_code} {truncate_body(resp.text)}",
                status=resp.status_code,
                body=data,
                endpoint=endpoint,
            )

        return ApiResult(
            ok=ok,
            status=resp.status_code,
            data=data,
            headers=dict(resp.headers or {}),
            url=resp.url or url,
            method=verb,
        )

    # ------------------------------------------------------------------
    # Recursos
    # ------------------------------------------------------------------

    def get_data_source(self, id_or_url: str) -> SchemaResource:
        """
        Obtiene el schema de un data source; si falla, intenta como database.

        Acepta ID de 32 hex, UUID con guiones o URL de Notion.

        Raises:
            ValueError: si no hay ID utilizable
            UpstreamHttpError: si ambos intentos fallan (reporta ambos status)
            TransientUpstreamError: si ambos fallaron por 429/5xx/transporte
        """
        resource_id = normalize_resource_id(id_or_url)
        if not resource_id:
            raise ValueError("get_data_source: falta ID/URL")

        attempts: List[Tuple[str, ApiResult]] = []
        transient: List[TransientUpstreamError] = []
        for kind in (ResourceKind.DATA_SOURCE, ResourceKind.DATABASE):
            path = f"{kind.collection_path}/{resource_id}"
            try:
                result = self.call("GET", path, throw_on_error=False)
            except TransientUpstreamError as e:
                logger.warning(f"GET {path} agotó reintentos: {e.message}")
                transient.append(e)
                attempts.append((path, ApiResult(ok=False, status=e.status or 0, data=e.body or e.message)))
                continue
            if result.ok:
                resource = SchemaResource.from_payload(result.data, fallback_id=resource_id)
                if resource is not None and resource.kind == kind:
                    if kind == ResourceKind.DATABASE:
                        logger.info(f"ID {resource_id} resuelto como database (fallback)")
                    return resource
            attempts.append((path, result))

        report = "\n".join(
            f"{path} -> {result.status} {truncate_body(result.data)}" for path, result in attempts
        )
        message = f"No se pudo resolver {resource_id} como data source ni database:\n{report}"
        endpoint = f"GET {ResourceKind.DATA_SOURCE.collection_path}/{resource_id}"
        body = {path: result.data for path, result in attempts}
        if len(transient) == len(attempts):
            raise TransientUpstreamError(
                message,
                status=attempts[-1][1].status or None,
                body=body,
                endpoint=endpoint,
                attempts=sum(e.attempts for e in transient),
            )
        raise UpstreamHttpError(
            message,
            status=attempts[-1][1].status if attempts else None,
            body=body,
            endpoint=endpoint,
        )

    def get_page(self, id_or_url: str) -> Dict[str, Any]:
        """Obtiene una página por ID o URL."""
        page_id = normalize_resource_id(id_or_url)
        if not page_id:
            raise ValueError("get_page: falta ID/URL")

        path = f"/v1/pages/{page_id}"
        result = self.call("GET", path, throw_on_error=False)
        if result.ok and isinstance(result.data, dict) and result.data.get("object") == "page":
            return result.data
        raise UpstreamHttpError(
            f"GET {path} -> {result.status} {truncate_body(result.data)}",
            status=result.status,
            body=result.data,
            endpoint=f"GET {path}",
        )
