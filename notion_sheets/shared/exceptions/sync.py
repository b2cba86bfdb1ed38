"""
Excepciones del pipeline de sincronización Notion -> Google Sheets.

Taxonomía (ver ErrorKind):
- TRANSIENT: 429/5xx/transporte, ya reintentado por el cliente HTTP.
- CONFIGURATION: falta token, spreadsheet id, credenciales.
- SCHEMA_MISMATCH: alias sin propiedad equivalente (se registra, no aborta).
- PRECONDITION: upsert sin columna clave, etc. Aborta antes de escribir.
- UPSTREAM: error HTTP no reintentable de la API de origen.
"""
from typing import Any, Optional

from notion_sheets.shared.constants.sync_constants import ERROR_BODY_MAX_CHARS, ErrorKind
from notion_sheets.shared.exceptions.base import AppException


def truncate_body(body: Any, limit: int = ERROR_BODY_MAX_CHARS) -> str:
    """Representación corta de un body de respuesta para mensajes de error."""
    text = body if isinstance(body, str) else repr(body)
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class SyncError(AppException):
    """Excepción base del sync."""

    kind = ErrorKind.UPSTREAM

    def __init__(self, message: str, error_code: str = "SYNC_ERROR", details=None):
        super().__init__(message=message, error_code=error_code, details=details)


class UpstreamHttpError(SyncError):
    """Respuesta HTTP no exitosa (no reintentable) de la API de origen."""

    kind = ErrorKind.UPSTREAM

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        body: Any = None,
        endpoint: Optional[str] = None,
    ):
        self.status = status
        self.body = body
        self.endpoint = endpoint
        super().__init__(
            message=message,
            error_code="UPSTREAM_HTTP_ERROR",
            details={"status": status, "endpoint": endpoint},
        )


class TransientUpstreamError(UpstreamHttpError):
    """429/5xx o error de transporte que persistió tras agotar los reintentos."""

    kind = ErrorKind.TRANSIENT

    def __init__(self, message: str, *, status=None, body=None, endpoint=None, attempts: int = 0):
        self.attempts = attempts
        super().__init__(message, status=status, body=body, endpoint=endpoint)
        self.error_code = "UPSTREAM_TRANSIENT"
        self.details["attempts"] = attempts


class ConfigurationError(SyncError):
    """Falta configuración obligatoria. No se reintenta: hay que corregirla."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details={"setting": setting} if setting else None,
        )


class SchemaMismatchError(SyncError):
    """
    Un alias no corresponde a ninguna propiedad del schema vivo.

    Se usa como registro tipado (SpecResolution.skipped); el matcher no la
    lanza porque un alias con typo no debe bloquear el resto del sync.
    """

    kind = ErrorKind.SCHEMA_MISMATCH

    def __init__(self, alias_key: str, reason: str):
        self.alias_key = alias_key
        self.reason = reason
        super().__init__(
            message=f"Alias '{alias_key}' sin propiedad en el schema ({reason})",
            error_code="SCHEMA_MISMATCH",
            details={"alias": alias_key, "reason": reason},
        )


class PreconditionError(SyncError):
    """Precondición de escritura no cumplida; se aborta antes de escribir."""

    kind = ErrorKind.PRECONDITION

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="PRECONDITION_FAILED",
            details={"field": field} if field else None,
        )
