"""
Tests unitarios para el retry/backoff de la API de Notion.
"""
from typing import List

import pytest
import requests

from notion_sheets.infrastructure.external.notion.retry import parse_retry_after, send_with_retry
from notion_sheets.shared.constants.sync_constants import ErrorKind
from notion_sheets.shared.exceptions.sync import TransientUpstreamError
from tests.fakes import FakeResponse


class _Transport:
    """Devuelve respuestas (o lanza excepciones) en orden y cuenta intentos."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.attempts = 0

    def __call__(self):
        self.attempts += 1
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.mark.unit
class TestSendWithRetry:
    def test_honors_retry_after_then_returns_success(self) -> None:
        """429 con Retry-After: 2 y luego 200: espera 2s y hace exactamente 2 intentos."""
        sleeps: List[float] = []
        transport = _Transport(
            FakeResponse(429, {"object": "error"}, headers={"Retry-After": "2"}),
            FakeResponse(200, {"ok": True}),
        )

        resp = send_with_retry(transport, sleep=sleeps.append)

        assert resp.status_code == 200
        assert transport.attempts == 2
        assert sleeps == [2.0]

    def test_retry_after_header_is_case_insensitive(self) -> None:
        sleeps: List[float] = []
        transport = _Transport(
            FakeResponse(503, None, headers={"retry-after": "1.5"}, text="busy"),
            FakeResponse(200, {"ok": True}),
        )

        send_with_retry(transport, sleep=sleeps.append)

        assert sleeps == [1.5]

    def test_exponential_backoff_without_retry_after(self) -> None:
        sleeps: List[float] = []
        transport = _Transport(
            FakeResponse(500, None, text="e1"),
            FakeResponse(502, None, text="e2"),
            FakeResponse(504, None, text="e3"),
            FakeResponse(200, {"ok": True}),
        )

        send_with_retry(transport, sleep=sleeps.append)

        assert sleeps == [0.25, 0.5, 1.0]

    def test_client_errors_are_not_retried(self) -> None:
        transport = _Transport(FakeResponse(404, {"object": "error"}))

        resp = send_with_retry(transport, sleep=lambda _s: None)

        assert resp.status_code == 404
        assert transport.attempts == 1

    def test_exhaustion_raises_transient_error_with_last_status(self) -> None:
        transport = _Transport(*[FakeResponse(429, None, text="slow down") for _ in range(5)])

        with pytest.raises(TransientUpstreamError) as exc_info:
            send_with_retry(transport, sleep=lambda _s: None, endpoint="POST /v1/x")

        error = exc_info.value
        assert transport.attempts == 5
        assert error.status == 429
        assert error.kind == ErrorKind.TRANSIENT
        assert error.is_retryable
        assert "POST /v1/x" in str(error)
        assert "slow down" in str(error)

    def test_transport_errors_are_retried_then_chained(self) -> None:
        boom = requests.ConnectionError("reset")
        transport = _Transport(boom, boom, boom)

        with pytest.raises(TransientUpstreamError) as exc_info:
            send_with_retry(transport, max_attempts=3, sleep=lambda _s: None)

        assert transport.attempts == 3
        assert exc_info.value.__cause__ is boom

    def test_transport_error_then_success(self) -> None:
        transport = _Transport(requests.Timeout("t"), FakeResponse(200, {"ok": True}))

        resp = send_with_retry(transport, sleep=lambda _s: None)

        assert resp.status_code == 200


@pytest.mark.unit
class TestParseRetryAfter:
    @pytest.mark.parametrize("value,expected", [("2", 2.0), (" 3 ", 3.0), ("0", None), ("abc", None), (None, None)])
    def test_values(self, value, expected) -> None:
        assert parse_retry_after(value) == expected
