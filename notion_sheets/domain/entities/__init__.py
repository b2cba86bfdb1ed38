"""
Entidades del dominio.
"""
from notion_sheets.domain.entities.column_spec import ColumnSpec, PropertyRef, SpecResolution
from notion_sheets.domain.entities.notion_resources import ResourceKind, SchemaResource
from notion_sheets.domain.entities.sync_run import SyncOptions, SyncResult, SyncRun

__all__ = [
    "ColumnSpec",
    "PropertyRef",
    "SpecResolution",
    "ResourceKind",
    "SchemaResource",
    "SyncOptions",
    "SyncResult",
    "SyncRun",
]
