"""
Constantes del pipeline Notion -> Google Sheets.
Define modos de escritura, estados de una corrida y claves de metadata.
"""
from enum import Enum


class ErrorKind(str, Enum):
    """Clasificación de errores para que el caller pueda ramificar sin leer mensajes."""
    TRANSIENT = "transient"
    CONFIGURATION = "configuration"
    SCHEMA_MISMATCH = "schema_mismatch"
    PRECONDITION = "precondition"
    UPSTREAM = "upstream"


class SyncMode(str, Enum):
    """Modo de escritura de una corrida."""
    APPEND = "append"
    UPSERT = "upsert"


class SyncState(str, Enum):
    """Estados por los que pasa una corrida de sync (solo hacia adelante)."""
    STARTED = "started"
    SPECS_RESOLVED = "specs_resolved"
    PAGES_FETCHED = "pages_fetched"
    ROWS_BUILT = "rows_built"
    HEADERS_ENSURED = "headers_ensured"
    APPENDED = "appended"
    UPSERTED = "upserted"
    DONE = "done"
    FAILED = "failed"


# Developer metadata (a nivel hoja) con el JSON { "<col>": "<propId decodificado>" }
META_KEY_COLMAP = "notionColMap"

# Developer metadata (a nivel columna) que marca la identidad de cada columna
META_KEY_PROP_ID = "notionPropId"

# Prefijo para el cache id -> nombre (developer metadata a nivel spreadsheet)
META_KEY_ID2NAME_PREFIX = "notionId2Name"

# Fila donde viven los headers
HEADER_ROW = 1

DEFAULT_BATCH_SIZE = 500
DEFAULT_PAGE_SIZE = 100
DEFAULT_LOCK_TIMEOUT_S = 30.0

# Reintentos de la API de Notion
RETRY_MAX_ATTEMPTS = 5
RETRY_INITIAL_DELAY_S = 0.25

# Truncado de bodies en mensajes de error
ERROR_BODY_MAX_CHARS = 500
