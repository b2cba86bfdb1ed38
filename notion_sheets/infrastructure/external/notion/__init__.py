"""
Cliente de la API de Notion (data sources / databases / pages).

Se usa desde el job de sync Notion -> Google Sheets; no depende de Sheets.
"""
from notion_sheets.infrastructure.external.notion.http_client import ApiResult, NotionClient, NotionConfig
from notion_sheets.infrastructure.external.notion.query import iter_query_results, query_all


__all__ = [
    "ApiResult",
    "NotionClient",
    "NotionConfig",
    "iter_query_results",
    "query_all",
]
