"""
Lock por documento (spreadsheet).

Motivacion:
- Headers, mapa de columnas y upsert son read-modify-write sin control de
  concurrencia en Google Sheets.
- Dos corridas sobre la misma planilla no deben intercalar escrituras,
  ni desde hilos del mismo proceso ni desde procesos distintos (cron).

Caracteristicas:
- Lock por spreadsheet id en dos niveles: `threading.Lock` para hilos y
  `fcntl.flock` sobre `<lock_dir>/<id>.lock` para procesos
- Timeout acotado (default: 30 segundos) compartido por ambos niveles
- Se libera siempre, incluso si el bloque lanza
"""

from __future__ import annotations

import fcntl
import re
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, IO, Iterator, Optional, Union

from loguru import logger

from notion_sheets.shared.constants.sync_constants import DEFAULT_LOCK_TIMEOUT_S, ErrorKind
from notion_sheets.shared.exceptions.sync import SyncError

_POLL_INTERVAL_S = 0.05
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class DocumentLockTimeoutError(SyncError):
    """No se pudo adquirir el lock del documento dentro del timeout."""

    kind = ErrorKind.TRANSIENT

    def __init__(self, document_id: str, timeout: float):
        self.document_id = document_id
        self.timeout = timeout
        super().__init__(
            message=f"Timeout ({timeout}s) adquiriendo lock del documento: {document_id}",
            error_code="DOCUMENT_LOCK_TIMEOUT",
            details={"document_id": document_id, "timeout": timeout},
        )


class DocumentLockManager:
    """
    Gestor de locks por `document_id`.

    Implementacion:
    - `threading.Lock` por documento, creado bajo demanda.
    - Dentro del lock de hilo, `fcntl.flock` exclusivo sobre un archivo por
      documento; el kernel lo libera si el proceso muere.
    - Solo las mutaciones de la grilla corren bajo el lock; los fetch a
      Notion se hacen antes.
    """

    _locks: Dict[str, threading.Lock] = {}
    _meta_lock = threading.Lock()
    lock_dir: Path = Path(tempfile.gettempdir()) / "notion_sheets_locks"

    @classmethod
    def configure(cls, lock_dir: Union[str, Path]) -> None:
        """Cambia el directorio de archivos de lock (compartido entre procesos)."""
        cls.lock_dir = Path(lock_dir)

    @classmethod
    def lock_path(cls, document_id: str) -> Path:
        return cls.lock_dir / f"{_UNSAFE_CHARS.sub('_', document_id)}.lock"

    @classmethod
    def _get_or_create_lock(cls, document_id: str) -> threading.Lock:
        with cls._meta_lock:
            lock = cls._locks.get(document_id)
            if lock is None:
                lock = threading.Lock()
                cls._locks[document_id] = lock
            return lock

    @classmethod
    def _acquire_file_lock(cls, document_id: str, deadline: Optional[float], timeout: float) -> IO[str]:
        lock_path = cls.lock_path(document_id)
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(lock_path, "w", encoding="utf-8")

        if deadline is None:
            fcntl.flock(handle, fcntl.LOCK_EX)
            return handle

        while True:
            try:
                fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
                return handle
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    handle.close()
                    logger.warning(
                        f"Timeout adquiriendo lock de archivo {lock_path} (timeout: {timeout}s)"
                    )
                    raise DocumentLockTimeoutError(document_id, timeout)
                time.sleep(_POLL_INTERVAL_S)

    @classmethod
    @contextmanager
    def lock(cls, document_id: str, timeout: float = DEFAULT_LOCK_TIMEOUT_S) -> Iterator[None]:
        """
        Context manager para serializar escrituras sobre un documento.

        Args:
            document_id: ID del spreadsheet
            timeout: espera máxima en segundos; None o <= 0 espera indefinidamente

        Raises:
            DocumentLockTimeoutError: si no se adquiere dentro del timeout

        Ejemplo:
            with DocumentLockManager.lock(spreadsheet_id):
                ensure_headers(ws, headers)
        """
        lock = cls._get_or_create_lock(document_id)

        deadline: Optional[float] = None
        if timeout and timeout > 0:
            deadline = time.monotonic() + timeout
            if not lock.acquire(timeout=timeout):
                logger.warning(f"Timeout adquiriendo lock del documento {document_id} (timeout: {timeout}s)")
                raise DocumentLockTimeoutError(document_id, timeout)
        else:
            lock.acquire()

        try:
            handle = cls._acquire_file_lock(document_id, deadline, timeout)
        except BaseException:
            lock.release()
            raise

        logger.debug(f"Lock adquirido para documento {document_id}")
        try:
            yield
        finally:
            try:
                fcntl.flock(handle, fcntl.LOCK_UN)
            finally:
                handle.close()
                lock.release()
            logger.debug(f"Lock liberado para documento {document_id}")

    @classmethod
    def remove_lock(cls, document_id: str) -> bool:
        """Elimina el lock de un documento si no está en uso."""
        with cls._meta_lock:
            lock = cls._locks.get(document_id)
            if lock is None:
                return False
            if lock.acquire(blocking=False):
                lock.release()
                del cls._locks[document_id]
                return True
            logger.warning(f"No se puede eliminar lock del documento {document_id}: en uso")
            return False

    @classmethod
    def get_active_locks_count(cls) -> int:
        with cls._meta_lock:
            return len(cls._locks)
