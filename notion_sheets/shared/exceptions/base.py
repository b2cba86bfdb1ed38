"""
Excepción base para todas las excepciones personalizadas del sync.
"""
from typing import Optional, Dict, Any

from notion_sheets.shared.constants.sync_constants import ErrorKind


class AppException(Exception):
    """
    Excepción base de la aplicación.
    Todas las excepciones personalizadas deben heredar de esta clase.

    A diferencia de un mensaje plano, expone `kind` y `error_code` para que
    el caller pueda decidir (reintentar, corregir config, abortar) sin
    parsear el texto del error.
    """

    kind: ErrorKind = ErrorKind.UPSTREAM

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Inicializa la excepción.

        Args:
            message: Mensaje de error descriptivo
            error_code: Código de error personalizado
            details: Detalles adicionales del error
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def is_retryable(self) -> bool:
        """Solo los errores transitorios tienen sentido re-ejecutarlos sin cambios."""
        return self.kind == ErrorKind.TRANSIENT
