"""
Aplanado de valores de propiedades de Notion a un string por celda.

`flatten_property` es total: para cualquier input retorna un str y nunca lanza.
Reglas relevantes:
- checkbox y formula booleana: "TRUE" / "FALSE"
- number: los float enteros se escriben sin ".0"
- relation: IDs relacionados separados por ", "
- rollup array: cada elemento con las mismas reglas, separados por "; "
- date con inicio y fin: "{start} → {end}"
- tipos desconocidos: JSON best-effort, si no ""
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Iterable, Optional

from loguru import logger

from notion_sheets.shared.utils.ids import decode_id

DATE_RANGE_SEPARATOR = " → "
LIST_SEPARATOR = ", "
ROLLUP_ARRAY_SEPARATOR = "; "


def _plain_text(runs: Any) -> str:
    return "".join(str((run or {}).get("plain_text") or "") for run in (runs or []) if isinstance(run, dict))


def _join(items: Iterable[Any], sep: str = LIST_SEPARATOR) -> str:
    return sep.join(str(item) for item in items if item not in (None, ""))


def _number(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _boolean(value: Any) -> str:
    return "TRUE" if value else "FALSE"


def _date(value: Any) -> str:
    if not isinstance(value, dict):
        return ""
    start = value.get("start")
    end = value.get("end")
    if start and end:
        return f"{start}{DATE_RANGE_SEPARATOR}{end}"
    return str(start or "")


def _option_name(value: Any) -> str:
    return str((value or {}).get("name") or "") if isinstance(value, dict) else ""


def _user_name(user: Any) -> str:
    if not isinstance(user, dict):
        return ""
    person = user.get("person") or {}
    return str(user.get("name") or person.get("email") or user.get("id") or "")


def _file_name(item: Any) -> str:
    if not isinstance(item, dict):
        return ""
    return str(
        item.get("name")
        or (item.get("file") or {}).get("url")
        or (item.get("external") or {}).get("url")
        or ""
    )


def _to_json(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return ""


def _formula(value: Any) -> str:
    if not isinstance(value, dict):
        return ""
    kind = value.get("type")
    if kind == "string":
        return str(value.get("string") or "")
    if kind == "number":
        return _number(value.get("number"))
    if kind == "boolean":
        return _boolean(value.get("boolean"))
    if kind == "date":
        return _date(value.get("date"))
    return _to_json(value)


def _rollup(value: Any) -> str:
    if not isinstance(value, dict):
        return ""
    kind = value.get("type")
    if kind == "number":
        return _number(value.get("number"))
    if kind == "date":
        return _date(value.get("date"))
    if kind == "array":
        return ROLLUP_ARRAY_SEPARATOR.join(flatten_property(item) for item in (value.get("array") or []))
    return _to_json(value)


def _unique_id(value: Any) -> str:
    if not isinstance(value, dict) or value.get("number") is None:
        return ""
    prefix = value.get("prefix")
    number = _number(value.get("number"))
    return f"{prefix}-{number}" if prefix else number


# tipo -> función que recibe el payload de ese tipo (prop[prop["type"]])
_RULES: Dict[str, Callable[[Any], str]] = {
    "title": _plain_text,
    "rich_text": _plain_text,
    "number": _number,
    "checkbox": _boolean,
    "select": _option_name,
    "status": _option_name,
    "multi_select": lambda v: _join(_option_name(o) for o in (v or [])),
    "people": lambda v: _join(_user_name(u) for u in (v or [])),
    "email": lambda v: str(v or ""),
    "phone_number": lambda v: str(v or ""),
    "url": lambda v: str(v or ""),
    "date": _date,
    "files": lambda v: _join(_file_name(f) for f in (v or [])),
    "relation": lambda v: _join((r or {}).get("id") for r in (v or []) if isinstance(r, dict)),
    "rollup": _rollup,
    "formula": _formula,
    "created_by": _user_name,
    "last_edited_by": _user_name,
    "created_time": lambda v: str(v or ""),
    "last_edited_time": lambda v: str(v or ""),
    "unique_id": _unique_id,
    "verification": lambda v: str((v or {}).get("state") or "") if isinstance(v, dict) else "",
    "button": lambda v: "",
}


def flatten_property(prop: Any) -> str:
    """
    Convierte un valor de propiedad de Notion ({"type": ..., <type>: ...}) en str.

    Nunca lanza: ante datos inesperados se cae al JSON del valor o "".
    """
    if not isinstance(prop, dict):
        return ""

    kind = prop.get("type")
    rule = _RULES.get(kind) if isinstance(kind, str) else None
    if rule is None:
        return _to_json(prop)

    try:
        return rule(prop.get(kind))
    except (AttributeError, TypeError, ValueError) as e:
        logger.debug(f"No se pudo aplanar propiedad tipo '{kind}': {e}")
        return _to_json(prop)


def title_of(page: Any) -> str:
    """Texto de la propiedad title de una página ("" si no tiene)."""
    properties = (page or {}).get("properties") if isinstance(page, dict) else None
    for prop in (properties or {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            return _plain_text(prop.get("title"))
    return ""


def get_property_by_id(
    page: Any, property_id: str, id_name_map: Dict[str, str], fallback_name: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """
    Propiedad de una página buscada por ID estable.

    Orden: nombre vía id_name_map -> scan de `properties` por id -> fallback_name.
    """
    properties = (page or {}).get("properties") if isinstance(page, dict) else None
    if not isinstance(properties, dict):
        return None

    name = id_name_map.get(property_id) or id_name_map.get(decode_id(property_id))
    if name and isinstance(properties.get(name), dict):
        return properties[name]

    decoded = decode_id(property_id)
    for prop in properties.values():
        if isinstance(prop, dict) and prop.get("id") and (
            prop["id"] == property_id or decode_id(prop["id"]) == decoded
        ):
            return prop

    if fallback_name and isinstance(properties.get(fallback_name), dict):
        return properties[fallback_name]
    return None
