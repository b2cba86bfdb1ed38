"""
Paginación exhaustiva del endpoint POST .../query de Notion.

No reintenta por su cuenta: cada request ya pasa por el retry del cliente.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional

from loguru import logger

from notion_sheets.domain.entities.notion_resources import ResourceKind
from notion_sheets.infrastructure.external.notion.http_client import NotionClient
from notion_sheets.shared.constants.sync_constants import DEFAULT_PAGE_SIZE
from notion_sheets.shared.exceptions.sync import UpstreamHttpError, truncate_body
from notion_sheets.shared.utils.ids import normalize_resource_id


def iter_query_results(
    client: NotionClient,
    resource_id: str,
    query_body: Optional[Dict[str, Any]] = None,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    kind: ResourceKind = ResourceKind.DATA_SOURCE,
) -> Iterator[Dict[str, Any]]:
    """
    Itera todos los resultados de la query, página por página, en el orden del servidor.

    Args:
        resource_id: ID o URL del data source / database
        query_body: filter/sorts del caller; se reutiliza en cada página
        page_size: se mezcla en el body de cada request
        kind: colección a consultar

    Raises:
        UpstreamHttpError: si falla cualquier página (sin resultados parciales)
    """
    rid = normalize_resource_id(resource_id)
    if not rid:
        raise ValueError("query_all: falta resource_id")

    path = f"{ResourceKind(kind).collection_path}/{rid}/query"
    base: Dict[str, Any] = {"page_size": page_size}
    base.update(query_body or {})

    cursor: Optional[str] = None
    page_number = 0
    while True:
        body = dict(base)
        if cursor:
            body["start_cursor"] = cursor

        result = client.call("POST", path, body=body, throw_on_error=False)
        page_number += 1
        if not result.ok:
            raise UpstreamHttpError(
                f"pagination POST {path} (página {page_number}) -> {result.status} "
                f"{truncate_body(result.data)}",
                status=result.status,
                body=result.data,
                endpoint=f"POST {path}",
            )

        data = result.data if isinstance(result.data, dict) else {}
        results = data.get("results") or []
        logger.debug(f"POST {path}: página {page_number} con {len(results)} resultados")
        for item in results:
            yield item

        cursor = data.get("next_cursor")
        if not data.get("has_more") or not cursor:
            break


def query_all(
    client: NotionClient,
    resource_id: str,
    query_body: Optional[Dict[str, Any]] = None,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    kind: ResourceKind = ResourceKind.DATA_SOURCE,
) -> List[Dict[str, Any]]:
    """Trae todas las páginas y concatena los resultados (sin dedup ni sort)."""
    return list(
        iter_query_results(client, resource_id, query_body, page_size=page_size, kind=kind)
    )
