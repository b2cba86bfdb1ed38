"""
Entidades de dominio de una corrida de sync (efímeras: viven lo que dura la corrida).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from notion_sheets.domain.entities.column_spec import ColumnSpec
from notion_sheets.shared.constants.sync_constants import DEFAULT_BATCH_SIZE, SyncMode, SyncState
from notion_sheets.shared.exceptions.sync import PreconditionError


# Transiciones permitidas; cualquier estado puede pasar a FAILED.
_TRANSITIONS = {
    SyncState.STARTED: {SyncState.SPECS_RESOLVED},
    SyncState.SPECS_RESOLVED: {SyncState.PAGES_FETCHED},
    SyncState.PAGES_FETCHED: {SyncState.ROWS_BUILT},
    SyncState.ROWS_BUILT: {SyncState.HEADERS_ENSURED},
    SyncState.HEADERS_ENSURED: {SyncState.APPENDED, SyncState.UPSERTED},
    SyncState.APPENDED: {SyncState.DONE},
    SyncState.UPSERTED: {SyncState.DONE},
    SyncState.DONE: set(),
    SyncState.FAILED: set(),
}


@dataclass(frozen=True)
class SyncOptions:
    """
    Parámetros de escritura de una corrida.

    - all_columns: una columna por propiedad del schema (el alias map solo renombra)
    """

    mode: SyncMode = SyncMode.APPEND
    key_label: Optional[str] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    all_columns: bool = False

    def __post_init__(self):
        # Permite pasar el modo como string ("append"/"upsert")
        object.__setattr__(self, "mode", SyncMode(self.mode))
        if self.batch_size <= 0:
            raise PreconditionError("batch_size debe ser > 0", field="batch_size")

    def validate(self) -> None:
        """Falla antes de cualquier llamada de red o escritura."""
        if self.mode == SyncMode.UPSERT and not self.key_label:
            raise PreconditionError(
                'key_label es obligatorio cuando mode="upsert"', field="key_label"
            )


@dataclass
class SyncResult:
    """Resultado resumido de una corrida, pensado para logging y notificaciones."""

    mode: SyncMode
    sheet: str
    columns: int = 0
    records: int = 0
    appended: int = 0
    inserted: int = 0
    updated: int = 0
    headers_changed: bool = False
    skipped_aliases: List[str] = field(default_factory=list)

    def as_summary(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = {"mode": self.mode.value, "sheet": self.sheet}
        if self.mode == SyncMode.UPSERT:
            summary.update(inserted=self.inserted, updated=self.updated)
        else:
            summary["rows"] = self.appended
        if self.skipped_aliases:
            summary["skipped_aliases"] = list(self.skipped_aliases)
        return summary


@dataclass
class SyncRun:
    """
    Estado de una corrida: SPECS_RESOLVED -> PAGES_FETCHED -> ROWS_BUILT ->
    HEADERS_ENSURED -> {APPENDED | UPSERTED} -> DONE.
    """

    schema_id: str
    sheet: str
    options: SyncOptions
    state: SyncState = SyncState.STARTED
    specs: List[ColumnSpec] = field(default_factory=list)
    headers: List[str] = field(default_factory=list)
    records: List[Dict[str, Any]] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)

    def advance(self, new_state: SyncState) -> None:
        if new_state != SyncState.FAILED and new_state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Transición inválida: {self.state.value} -> {new_state.value}")
        logger.info(f"Sync '{self.sheet}': {self.state.value} -> {new_state.value}")
        self.state = new_state
