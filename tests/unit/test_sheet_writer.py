"""
Tests unitarios para las escrituras de filas: headers, append y upsert.
"""
import pytest

from notion_sheets.application.services.sheet_writer import (
    append_rows_batched,
    clear_data_below_header,
    ensure_headers,
    read_headers,
    upsert_rows_by_key,
)
from notion_sheets.shared.exceptions.sync import PreconditionError

HEADERS = ["Name", "NotionURL", "Email"]


def _seed(ws, rows) -> None:
    ws.set_values(1, 1, [HEADERS])
    if rows:
        ws.set_values(2, 1, rows)
    ws.writes = 0


@pytest.mark.unit
class TestEnsureHeaders:
    def test_second_call_performs_zero_writes(self, worksheet) -> None:
        """Headers idénticos: la segunda llamada no escribe nada."""
        assert ensure_headers(worksheet, HEADERS) is True
        writes_after_first = worksheet.writes

        assert ensure_headers(worksheet, HEADERS) is False
        assert worksheet.writes == writes_after_first

    def test_shrinking_headers_clears_leftovers(self, worksheet) -> None:
        ensure_headers(worksheet, HEADERS + ["Extra"])

        ensure_headers(worksheet, HEADERS)

        assert read_headers(worksheet) == HEADERS

    def test_reorder_is_a_change(self, worksheet) -> None:
        ensure_headers(worksheet, HEADERS)
        assert ensure_headers(worksheet, list(reversed(HEADERS))) is True

    def test_empty_headers_is_noop(self, worksheet) -> None:
        assert ensure_headers(worksheet, []) is False
        assert worksheet.writes == 0


@pytest.mark.unit
class TestAppend:
    def test_appends_below_existing_in_batches(self, worksheet) -> None:
        _seed(worksheet, [["a", "u1", "a@x"]])
        rows = [[f"n{i}", f"u{i + 10}", ""] for i in range(5)]

        written = append_rows_batched(worksheet, rows, batch_size=2)

        assert written == 5
        assert worksheet.writes == 3
        assert worksheet.last_row() == 7
        assert worksheet.cells[(3, 1)] == "n0"

    def test_never_writes_over_header_row(self, worksheet) -> None:
        append_rows_batched(worksheet, [["x"]])

        assert worksheet.cells.get((1, 1)) is None
        assert worksheet.cells[(2, 1)] == "x"

    def test_rows_are_padded_to_widest(self, worksheet) -> None:
        append_rows_batched(worksheet, [["a"], ["b", "c"]])

        assert worksheet.get_values(2, 1, 2, 2) == [["a", ""], ["b", "c"]]

    def test_invalid_batch_size(self, worksheet) -> None:
        with pytest.raises(PreconditionError):
            append_rows_batched(worksheet, [["a"]], batch_size=0)


@pytest.mark.unit
class TestUpsert:
    def test_two_updates_three_inserts(self, worksheet) -> None:
        """5 filas nuevas donde 2 claves ya existen -> inserted 3, updated 2, +3 filas."""
        _seed(worksheet, [["Ana", "u1", "ana@x"], ["Beto", "u2", "beto@x"], ["Caro", "u3", "caro@x"]])
        before = worksheet.last_row()
        rows = [
            ["Ana P.", "u1", "ana@new"],
            ["Dani", "u4", "d@x"],
            ["Caro", "u3", "caro@new"],
            ["Eva", "u5", "e@x"],
            ["Fede", "u6", "f@x"],
        ]

        counts = upsert_rows_by_key(worksheet, "NotionURL", HEADERS, rows)

        assert (counts.inserted, counts.updated) == (3, 2)
        assert worksheet.last_row() == before + 3
        assert worksheet.get_values(2, 1, 1, 3) == [["Ana P.", "u1", "ana@new"]]
        assert worksheet.get_values(3, 1, 1, 3) == [["Beto", "u2", "beto@x"]]
        assert worksheet.get_values(4, 1, 1, 3) == [["Caro", "u3", "caro@new"]]

    def test_duplicate_incoming_keys_last_wins(self, worksheet) -> None:
        _seed(worksheet, [["Ana", "u1", "ana@x"]])
        rows = [
            ["A1", "u1", "1"],
            ["B1", "u2", "1"],
            ["A2", "u1", "2"],
            ["B2", " u2 ", "2"],
            ["C", "u3", "3"],
        ]

        counts = upsert_rows_by_key(worksheet, "NotionURL", HEADERS, rows)

        keys = [k.strip() for k in worksheet.column(2)[1:]]
        assert counts.inserted + counts.updated == 3
        assert sorted(keys) == ["u1", "u2", "u3"]
        assert worksheet.cells[(2, 1)] == "A2"

    def test_rows_without_key_are_skipped(self, worksheet) -> None:
        _seed(worksheet, [])

        counts = upsert_rows_by_key(worksheet, "NotionURL", HEADERS, [["x", "", ""], ["y", "u9", ""]])

        assert (counts.inserted, counts.updated) == (1, 0)
        assert worksheet.last_row() == 2

    def test_updates_go_in_a_single_write(self, worksheet) -> None:
        _seed(worksheet, [["a", "u1", ""], ["b", "u2", ""], ["c", "u3", ""]])

        upsert_rows_by_key(worksheet, "NotionURL", HEADERS, [["A", "u1", ""], ["C", "u3", ""]])

        assert worksheet.writes == 1

    def test_missing_key_label_is_a_precondition(self, worksheet) -> None:
        with pytest.raises(PreconditionError):
            upsert_rows_by_key(worksheet, "Nope", HEADERS, [["a", "b", "c"]])
        with pytest.raises(PreconditionError):
            upsert_rows_by_key(worksheet, "", HEADERS, [["a", "b", "c"]])
        assert worksheet.writes == 0


@pytest.mark.unit
class TestClear:
    def test_clear_keeps_headers(self, worksheet) -> None:
        _seed(worksheet, [["a", "u1", ""], ["b", "u2", ""]])

        assert clear_data_below_header(worksheet) == (2, 3)
        assert worksheet.last_row() == 1
        assert read_headers(worksheet) == HEADERS

    def test_clear_empty_sheet(self, worksheet) -> None:
        assert clear_data_below_header(worksheet) == (0, 0)
