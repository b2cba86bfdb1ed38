"""
Utilidades puras para identificadores de Notion.

- IDs de propiedades: opacos y a veces percent-encoded ("HA%40l" == "HA@l").
- IDs de recursos: 32 hex, UUID con guiones o una URL que los contiene.

Se mantienen libres de I/O para poder testearlas fácilmente.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Mapping, Optional
from urllib.parse import unquote

_ID32_RE = re.compile(r"[0-9a-f]{32}", re.IGNORECASE)
_EXACT_ID32_RE = re.compile(r"^[0-9a-f]{32}$", re.IGNORECASE)
_DASHED_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_LOOSE_ID_RE = re.compile(r"[%a-z0-9]{2,}", re.IGNORECASE)
_PERCENT_ESCAPE_RE = re.compile(r"%[0-9a-f]{2}", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def decode_id(value: Any) -> str:
    """
    Decodifica un ID percent-encoded ('HA%40l' -> 'HA@l').

    Nunca lanza: si la secuencia está mal formada retorna el valor original.
    """
    if not value:
        return ""
    raw = str(value)
    try:
        return unquote(raw, errors="strict")
    except UnicodeDecodeError:
        return raw


def normalize_name(value: Optional[str]) -> str:
    """
    Normaliza un nombre de propiedad para comparar sin importar mayúsculas/espacios.

    "  Email   (Org) " -> "email (org)"
    """
    if not value:
        return ""
    text = unicodedata.normalize("NFKC", str(value)).strip()
    return _WHITESPACE_RE.sub(" ", text).lower()


def extract_id32(value: Any) -> str:
    """Extrae el primer bloque de 32 hex (sirve para URLs); si no hay, retorna el input."""
    if not value:
        return ""
    text = str(value)
    match = _ID32_RE.search(text)
    return match.group(0) if match else text


def to_dashed_uuid(value: str) -> str:
    """32 hex exactos -> UUID 8-4-4-4-12 en minúsculas; cualquier otra cosa pasa igual."""
    if not value or not _EXACT_ID32_RE.match(value):
        return value
    raw = value.lower()
    return f"{raw[:8]}-{raw[8:12]}-{raw[12:16]}-{raw[16:20]}-{raw[20:]}"


def normalize_resource_id(id_or_url: Any) -> str:
    """Acepta ID crudo, UUID con guiones o URL de Notion y retorna el UUID con guiones."""
    return to_dashed_uuid(extract_id32(id_or_url))


def looks_like_id(value: str) -> bool:
    """
    Heurística laxa: True si hay al menos 2 caracteres de [A-Za-z0-9%].

    Ojo: casi cualquier nombre de propiedad pasa este test. Para decidir si un
    alias se busca primero por ID usar `looks_like_encoded_id`.
    """
    return bool(value) and bool(_LOOSE_ID_RE.search(value))


def looks_like_encoded_id(value: str) -> bool:
    """Regla estricta: contiene un escape %XX, o es un ID de 32 hex / UUID con guiones."""
    if not value:
        return False
    text = value.strip()
    return bool(
        _PERCENT_ESCAPE_RE.search(text)
        or _EXACT_ID32_RE.match(text)
        or _DASHED_UUID_RE.match(text)
    )


def get_header_ci(headers: Optional[Mapping[str, Any]], name: str) -> Optional[str]:
    """Lee un header HTTP sin importar mayúsculas (el transporte no garantiza el casing)."""
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key and str(key).lower() == wanted:
            return value
    return None
