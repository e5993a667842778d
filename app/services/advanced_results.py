"""Query-string driven listing: filtering, projection, sorting and pagination.

List endpoints accept a small query language on top of plain key/value
parameters::

    ?price[gte]=10&price[lt]=100      comparison clauses
    ?city=Boston                       equality
    ?category[in]=food,museum          membership
    ?select=name,price                 projection (``-field`` excludes)
    ?sort=-price,name                  ordering (``name`` by default)
    ?page=2&limit=25                   pagination

The parameters are first turned into a filter document shaped like a
document-store query (``{"price": {"$gte": "10"}}``) and then applied to a
SQLAlchemy query. Values stay strings in the document and are coerced
to the column type only when the query is built.
"""
from __future__ import annotations

import logging
import operator
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from fastapi import Depends, Request
from sqlalchemy import JSON, asc, cast, desc, false, func, inspect, or_, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Query, Session, load_only, selectinload

from app.core.config import settings
from app.db.session import get_db
from app.schemas.advanced_results import AdvancedResults, PageRef, Pagination
from app.services.serialization import column_keys, row_to_dict, row_with_relation

_LOG = logging.getLogger("app.advanced_results")

RESERVED_PARAMS = ("select", "sort", "page", "limit")
FILTER_OPERATORS = ("gt", "gte", "lt", "lte", "in")
DEFAULT_SORT_FIELD = "name"
DEFAULT_PAGE = 1
MAX_PAGE_PARAM = 2**31 - 1

_BRACKET_KEY_RE = re.compile(r"^(?P<field>[^\[\]]+)\[(?P<op>[^\[\]]*)\]$")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

_COMPARATORS = {
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}


class QueryParamError(ValueError):
    """Raised for list query parameters that cannot be turned into a query."""


@dataclass(frozen=True)
class Populate:
    """Relationship to load inline, optionally restricted to some of its fields."""

    path: str
    select: tuple[str, ...] = ()

    @classmethod
    def parse(cls, raw) -> "Populate | None":
        if raw is None or isinstance(raw, Populate):
            return raw
        if isinstance(raw, str):
            return cls(path=raw)
        if isinstance(raw, Mapping):
            select = raw.get("select") or ()
            if isinstance(select, str):
                select = select.replace(",", " ").split()
            return cls(path=str(raw["path"]), select=tuple(select))
        raise TypeError(f"Unsupported populate option: {raw!r}")


@dataclass(frozen=True)
class PageWindow:
    page: int
    limit: int
    total: int = 0

    @property
    def start_index(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def end_index(self) -> int:
        return self.page * self.limit

    def pagination(self) -> Pagination:
        result = Pagination()
        if self.end_index < self.total:
            result.next = PageRef(page=self.page + 1, limit=self.limit)
        if self.start_index > 0:
            result.prev = PageRef(page=self.page - 1, limit=self.limit)
        return result


@dataclass
class QuerySpec:
    filters: dict[str, Any] = field(default_factory=dict)
    select: list[str] = field(default_factory=list)
    exclude: bool = False
    sort: list[tuple[str, bool]] = field(default_factory=lambda: [(DEFAULT_SORT_FIELD, False)])
    page: int = DEFAULT_PAGE
    limit: int = 1000


# ---------------------------------------------------------------------------
# Query string parsing
# ---------------------------------------------------------------------------


def _param_items(params) -> list[tuple[str, str]]:
    if hasattr(params, "multi_items"):
        return [(str(k), str(v)) for k, v in params.multi_items()]
    items: list[tuple[str, str]] = []
    for key, value in dict(params or {}).items():
        if isinstance(value, (list, tuple)):
            items.extend((str(key), str(v)) for v in value)
        else:
            items.append((str(key), str(value)))
    return items


def _param_value(params, key: str) -> str | None:
    values = [v for k, v in _param_items(params) if k == key]
    return values[-1] if values else None


def _split_csv(raw: str | None) -> list[str]:
    return [part.strip() for part in str(raw or "").split(",") if part.strip()]


def _int_or_default(raw: str | None, default: int) -> int:
    # Leading-integer parse: "3abc" -> 3; "", "abc" and "0" fall back to the default.
    match = _LEADING_INT_RE.match(str(raw or ""))
    if match is None:
        return default
    value = int(match.group(1)) or default
    # Keeps (page - 1) * limit inside a signed 64-bit OFFSET.
    return max(-MAX_PAGE_PARAM, min(MAX_PAGE_PARAM, value))


def build_filter_spec(params) -> dict[str, Any]:
    """Translate non-reserved query parameters into a filter document.

    ``field=value`` becomes ``{field: value}``; ``field[op]=value`` becomes
    ``{field: {"$op": value}}``. ``in`` collects a list from comma separated
    and repeated values. Later plain values for a field replace earlier ones.
    """
    spec: dict[str, Any] = {}
    for key, value in _param_items(params):
        if key in RESERVED_PARAMS:
            continue
        match = _BRACKET_KEY_RE.match(key)
        if match is None:
            spec[key] = value
            continue
        field_name, op = match.group("field"), match.group("op")
        if op not in FILTER_OPERATORS:
            raise QueryParamError(f'Unsupported filter operator "{op}" for field "{field_name}"')
        clause = spec.get(field_name)
        if not isinstance(clause, dict):
            clause = {}
            spec[field_name] = clause
        if op == "in":
            clause.setdefault("$in", []).extend(_split_csv(value))
        else:
            clause["$" + op] = value
    return spec


def parse_select(raw: str | None) -> tuple[list[str], bool]:
    names = _split_csv(raw)
    excluded = [name for name in names if name.startswith("-")]
    if not excluded:
        return names, False
    if len(excluded) != len(names):
        raise QueryParamError("select cannot mix included and excluded fields")
    return [name[1:] for name in excluded], True


def parse_sort(raw: str | None) -> list[tuple[str, bool]]:
    names = _split_csv(raw) or [DEFAULT_SORT_FIELD]
    return [(name[1:], True) if name.startswith("-") else (name, False) for name in names]


def parse_query_params(params, *, default_limit: int | None = None) -> QuerySpec:
    if default_limit is None:
        default_limit = settings.ADVANCED_RESULTS_DEFAULT_LIMIT
    select, exclude = parse_select(_param_value(params, "select"))
    return QuerySpec(
        filters=build_filter_spec(params),
        select=select,
        exclude=exclude,
        sort=parse_sort(_param_value(params, "sort")),
        page=_int_or_default(_param_value(params, "page"), DEFAULT_PAGE),
        limit=_int_or_default(_param_value(params, "limit"), default_limit),
    )


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------


def _bad_filter_value(column_key: str, kind: str) -> QueryParamError:
    return QueryParamError(f'Invalid filter value for field "{column_key}" ({kind})')


def _coerce_bool_filter_value(column_key: str, value):
    if isinstance(value, bool):
        return value
    text = str(value or "").strip().lower()
    if text in {"1", "true", "yes", "y"}:
        return True
    if text in {"0", "false", "no", "n"}:
        return False
    raise _bad_filter_value(column_key, "boolean")


def _coerce_number_filter_value(column_key: str, value, python_type):
    if python_type in {int, float} and isinstance(value, (int, float)):
        return python_type(value)
    text = str(value).strip()
    if not text:
        raise _bad_filter_value(column_key, "number")
    normalized = text.replace(",", ".")
    try:
        if python_type is int:
            return int(normalized)
        if python_type is float:
            return float(normalized)
        return Decimal(normalized)
    except (ValueError, TypeError, InvalidOperation):
        raise _bad_filter_value(column_key, "number")


def _coerce_date_filter_value(column_key: str, value):
    text = str(value or "").strip()
    try:
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise _bad_filter_value(column_key, "date")


def _coerce_datetime_filter_value(column_key: str, value):
    text = str(value or "").strip()
    try:
        if "T" not in text and " " not in text and len(text) == 10:
            parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
        else:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise _bad_filter_value(column_key, "datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _column_python_type(column):
    try:
        return column.property.columns[0].type.python_type
    except (AttributeError, IndexError, NotImplementedError):
        return None


def coerce_filter_value(column, value):
    python_type = _column_python_type(column)
    if python_type is uuid.UUID:
        try:
            return uuid.UUID(str(value or "").strip())
        except ValueError:
            raise _bad_filter_value(column.key, "uuid")
    if python_type is bool:
        return _coerce_bool_filter_value(column.key, value)
    if python_type in {int, float, Decimal}:
        return _coerce_number_filter_value(column.key, value, python_type)
    if python_type is date:
        return _coerce_date_filter_value(column.key, value)
    if python_type is datetime:
        return _coerce_datetime_filter_value(column.key, value)
    return value


# ---------------------------------------------------------------------------
# Query building
# ---------------------------------------------------------------------------


def _column(model, name: str):
    if name not in inspect(model).column_attrs:
        return None
    return getattr(model, name)


def _is_date_only_filter_literal(raw_value) -> bool:
    if not isinstance(raw_value, str):
        return False
    text = raw_value.strip()
    if not text or "T" in text or " " in text:
        return False
    try:
        date.fromisoformat(text)
        return True
    except ValueError:
        return False


def _day_filter(col, op: str, raw):
    """Comparison treating a date-only literal on a datetime column as the whole day."""
    if _column_python_type(col) is not datetime or not _is_date_only_filter_literal(raw):
        return None
    day_start = coerce_filter_value(col, raw)
    day_end = day_start + timedelta(days=1)
    if op == "$eq":
        return (col >= day_start) & (col < day_end)
    if op == "$lte":
        return col < day_end
    if op == "$gt":
        return col >= day_end
    return None


def _is_list_column(col) -> bool:
    try:
        return isinstance(col.property.columns[0].type, JSON)
    except (AttributeError, IndexError):
        return False


def _list_contains_any(q: Query, col, values: list):
    if not values:
        return false()
    dialect = q.session.get_bind().dialect.name
    if dialect == "postgresql":
        return or_(*[cast(col, JSONB).contains([v]) for v in values])
    if dialect == "sqlite":
        elements = func.json_each(col).table_valued("value")
        return select(elements.c.value).where(elements.c.value.in_(values)).exists()
    raise QueryParamError(f'Filtering on list field "{col.key}" is not supported by {dialect}')


def _list_filter(q: Query, col, clause):
    # Equality on a list field means "contains"; $in means "contains any".
    if not isinstance(clause, Mapping):
        return _list_contains_any(q, col, [str(clause)])
    unsupported = [op for op in clause if op != "$in"]
    if unsupported:
        raise QueryParamError(f'Unsupported filter operator "{unsupported[0][1:]}" for list field "{col.key}"')
    return _list_contains_any(q, col, [str(v) for v in clause["$in"]])


def apply_filters(q: Query, model, filters: Mapping[str, Any]) -> Query:
    for field_name, clause in filters.items():
        col = _column(model, field_name)
        if col is None:
            continue
        if _is_list_column(col):
            q = q.filter(_list_filter(q, col, clause))
            continue
        if not isinstance(clause, Mapping):
            day = _day_filter(col, "$eq", clause)
            q = q.filter(day if day is not None else col == coerce_filter_value(col, clause))
            continue
        for op, raw in clause.items():
            if op == "$in":
                q = q.filter(col.in_([coerce_filter_value(col, v) for v in raw]))
                continue
            day = _day_filter(col, op, raw)
            q = q.filter(day if day is not None else _COMPARATORS[op](col, coerce_filter_value(col, raw)))
    return q


def apply_sort(q: Query, model, sort: Iterable[tuple[str, bool]]) -> Query:
    for field_name, descending in sort:
        col = _column(model, field_name)
        if col is None:
            continue
        q = q.order_by(desc(col) if descending else asc(col))
    # Stable order across identical requests.
    return q.order_by(asc(model.id))


def resolve_fields(model, spec: QuerySpec) -> list[str]:
    known = column_keys(model)
    if not spec.select:
        return known
    if spec.exclude:
        excluded = set(spec.select) - {"id"}
        return [key for key in known if key not in excluded]
    return ["id"] + [key for key in known if key in spec.select and key != "id"]


def _relationship(model, path: str):
    relationships = inspect(model).relationships
    if path not in relationships:
        raise ValueError(f"{model.__name__} has no relationship {path!r}")
    return relationships[path]


def _populate_fields(model, populate: Populate) -> list[str]:
    target = _relationship(model, populate.path).mapper.class_
    known = column_keys(target)
    if not populate.select:
        return known
    return ["id"] + [key for key in known if key in populate.select and key != "id"]


def _relationship_local_keys(model, populate: Populate) -> list[str]:
    mapper = inspect(model)
    rel = _relationship(model, populate.path)
    return [mapper.get_property_by_column(col).key for col in rel.local_columns]


def _populate_option(model, populate: Populate):
    target = _relationship(model, populate.path).mapper.class_
    option = selectinload(getattr(model, populate.path))
    if populate.select:
        option = option.load_only(*[getattr(target, key) for key in _populate_fields(model, populate)])
    return option


def run_advanced_results(
    db: Session,
    model,
    params,
    *,
    populate=None,
    default_limit: int | None = None,
) -> AdvancedResults:
    spec = parse_query_params(params, default_limit=default_limit)
    populate = Populate.parse(populate)

    q = apply_filters(db.query(model), model, spec.filters)
    total = q.count()
    window = PageWindow(page=spec.page, limit=spec.limit, total=total)

    fields = resolve_fields(model, spec)
    loaded = list(fields)
    if populate is not None:
        loaded += [key for key in _relationship_local_keys(model, populate) if key not in loaded]
    q = q.options(load_only(*[getattr(model, key) for key in loaded]))
    q = apply_sort(q, model, spec.sort)
    q = q.offset(max(window.start_index, 0)).limit(abs(window.limit))
    if populate is not None:
        q = q.options(_populate_option(model, populate))

    rows = q.all()
    if populate is None:
        data = [row_to_dict(row, fields) for row in rows]
    else:
        related_fields = _populate_fields(model, populate)
        data = [row_with_relation(row, populate.path, fields, related_fields) for row in rows]

    _LOG.debug(
        "advanced_results model=%s page=%s limit=%s total=%s count=%s",
        model.__name__,
        window.page,
        window.limit,
        total,
        len(rows),
    )
    return AdvancedResults(success=True, count=len(rows), pagination=window.pagination(), data=data)


def advanced_results(model, populate=None):
    """FastAPI dependency factory returning the listing for ``model``."""
    populate_spec = Populate.parse(populate)

    def _dependency(request: Request, db: Session = Depends(get_db)) -> AdvancedResults:
        return run_advanced_results(
            db,
            model,
            request.query_params,
            populate=populate_spec,
            default_limit=settings.ADVANCED_RESULTS_DEFAULT_LIMIT,
        )

    return _dependency
