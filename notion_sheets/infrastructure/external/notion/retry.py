"""
Reintentos con backoff para la API de Notion.

Estrategia:
- 429 y 5xx: respeta Retry-After (segundos) si viene; si no, backoff exponencial
  que arranca en 250ms y se duplica en cada intento.
- Errores de transporte (requests.RequestException): mismo backoff.
- Tras agotar los intentos se lanza TransientUpstreamError con el último
  status/body (o encadenado a la última excepción de transporte).
"""

from __future__ import annotations

import time
from typing import Callable, Optional

import requests
from loguru import logger

from notion_sheets.shared.constants.sync_constants import RETRY_INITIAL_DELAY_S, RETRY_MAX_ATTEMPTS
from notion_sheets.shared.exceptions.sync import TransientUpstreamError, truncate_body
from notion_sheets.shared.utils.ids import get_header_ci


def is_retryable_status(status: int) -> bool:
    return status == 429 or 500 <= status < 600


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Retry-After en segundos; None si no viene o no es un número positivo."""
    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def send_with_retry(
    send: Callable[[], requests.Response],
    *,
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    initial_delay_s: float = RETRY_INITIAL_DELAY_S,
    sleep: Callable[[float], None] = time.sleep,
    endpoint: Optional[str] = None,
) -> requests.Response:
    """
    Ejecuta `send` hasta obtener una respuesta no reintentable.

    Args:
        send: función sin argumentos que hace el request HTTP
        max_attempts: intentos totales (incluye el primero)
        initial_delay_s: primer delay de backoff
        sleep: inyectable para tests
        endpoint: solo para mensajes/logs

    Returns:
        La primera respuesta que no sea 429/5xx (puede ser un 4xx).

    Raises:
        TransientUpstreamError: si se agotan los intentos.
    """
    delay_s = initial_delay_s
    last_error: Optional[Exception] = None
    last_response: Optional[requests.Response] = None

    for attempt in range(1, max_attempts + 1):
        try:
            resp = send()
        except requests.RequestException as e:
            last_error = e
            last_response = None
            logger.warning(
                f"Error de transporte en {endpoint or 'request'} "
                f"(intento {attempt}/{max_attempts}): {e}"
            )
            if attempt < max_attempts:
                sleep(delay_s)
                delay_s *= 2
            continue

        if not is_retryable_status(resp.status_code):
            return resp

        last_response = resp
        last_error = None
        retry_after = parse_retry_after(get_header_ci(resp.headers, "Retry-After"))
        wait_s = retry_after if retry_after is not None else delay_s
        logger.warning(
            f"{endpoint or 'request'} -> {resp.status_code} "
            f"(intento {attempt}/{max_attempts}); esperando {wait_s:.2f}s"
        )
        if attempt < max_attempts:
            sleep(wait_s)
            delay_s *= 2

    if last_response is not None:
        raise TransientUpstreamError(
            f"{endpoint or 'request'} falló tras {max_attempts} intentos: "
            f"HTTP {last_response.status_code} {truncate_body(last_response.text)}",
            status=last_response.status_code,
            body=last_response.text,
            endpoint=endpoint,
            attempts=max_attempts,
        )
    if last_error is not None:
        raise TransientUpstreamError(
            f"{endpoint or 'request'} falló tras {max_attempts} intentos: {last_error}",
            endpoint=endpoint,
            attempts=max_attempts,
        ) from last_error
    raise TransientUpstreamError(
        f"{endpoint or 'request'}: failed after retries", endpoint=endpoint, attempts=max_attempts
    )
