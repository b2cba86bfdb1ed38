"""
Configuración de fixtures para pytest.
"""
from typing import Callable

import pytest

from notion_sheets.infrastructure.locks.document_lock import DocumentLockManager
from tests.fakes import FakeDocument, FakeWorksheet


@pytest.fixture(autouse=True)
def cleanup_locks(tmp_path, monkeypatch):
    """Limpia los locks de documento y aísla sus archivos en tmp_path."""
    DocumentLockManager._locks.clear()
    monkeypatch.setattr(DocumentLockManager, "lock_dir", tmp_path / "locks")
    yield
    DocumentLockManager._locks.clear()


@pytest.fixture
def worksheet() -> FakeWorksheet:
    return FakeWorksheet("People")


@pytest.fixture
def document() -> FakeDocument:
    return FakeDocument()


@pytest.fixture
def no_sleep() -> Callable[[float], None]:
    def _sleep(_seconds: float) -> None:
        return None
    return _sleep
