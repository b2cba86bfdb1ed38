"""
Tests unitarios para SyncRun / SyncOptions / SyncResult.
"""
import pytest

from notion_sheets.domain.entities.sync_run import SyncOptions, SyncResult, SyncRun
from notion_sheets.shared.constants.sync_constants import SyncMode, SyncState
from notion_sheets.shared.exceptions.sync import PreconditionError

HAPPY_PATH = [
    SyncState.SPECS_RESOLVED,
    SyncState.PAGES_FETCHED,
    SyncState.ROWS_BUILT,
    SyncState.HEADERS_ENSURED,
    SyncState.UPSERTED,
    SyncState.DONE,
]


@pytest.mark.unit
class TestSyncRun:
    def test_forward_transitions(self) -> None:
        run = SyncRun(schema_id="ds", sheet="People", options=SyncOptions())
        for state in HAPPY_PATH:
            run.advance(state)
        assert run.state == SyncState.DONE

    def test_skipping_a_state_is_rejected(self) -> None:
        run = SyncRun(schema_id="ds", sheet="People", options=SyncOptions())
        with pytest.raises(ValueError):
            run.advance(SyncState.ROWS_BUILT)

    def test_any_state_can_fail(self) -> None:
        run = SyncRun(schema_id="ds", sheet="People", options=SyncOptions())
        run.advance(SyncState.SPECS_RESOLVED)
        run.advance(SyncState.FAILED)
        assert run.state == SyncState.FAILED
        with pytest.raises(ValueError):
            run.advance(SyncState.PAGES_FETCHED)


@pytest.mark.unit
class TestSyncOptions:
    def test_mode_accepts_strings(self) -> None:
        assert SyncOptions(mode="upsert", key_label="k").mode == SyncMode.UPSERT

    def test_upsert_requires_key_label(self) -> None:
        with pytest.raises(PreconditionError):
            SyncOptions(mode="upsert").validate()

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(PreconditionError):
            SyncOptions(batch_size=0)


@pytest.mark.unit
class TestSyncResult:
    def test_upsert_summary(self) -> None:
        result = SyncResult(mode=SyncMode.UPSERT, sheet="People", inserted=3, updated=2)
        assert result.as_summary() == {"mode": "upsert", "sheet": "People", "inserted": 3, "updated": 2}

    def test_append_summary_with_skipped(self) -> None:
        result = SyncResult(mode=SyncMode.APPEND, sheet="People", appended=4, skipped_aliases=["Typo"])
        assert result.as_summary() == {"mode": "append", "sheet": "People", "rows": 4, "skipped_aliases": ["Typo"]}
