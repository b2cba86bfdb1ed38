"""
Casos de uso de la aplicacion.
"""
from .sync_use_cases import NotionToSheetSync, pages_to_rows

__all__ = ["NotionToSheetSync", "pages_to_rows"]
