from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import inspect


def column_keys(model) -> list[str]:
    return [attr.key for attr in inspect(model).column_attrs]


def row_to_dict(obj, fields: Iterable[str] | None = None) -> dict[str, Any]:
    keys = list(fields) if fields is not None else column_keys(type(obj))
    return {key: getattr(obj, key) for key in keys}


def row_with_relation(
    obj,
    relation: str,
    fields: Iterable[str] | None = None,
    related_fields: Iterable[str] | None = None,
) -> dict[str, Any]:
    data = row_to_dict(obj, fields)
    related = getattr(obj, relation)
    if related is None:
        data[relation] = None
    elif isinstance(related, (list, tuple)):
        data[relation] = [row_to_dict(item, related_fields) for item in related]
    else:
        data[relation] = row_to_dict(related, related_fields)
    return data
