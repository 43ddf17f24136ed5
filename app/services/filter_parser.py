from __future__ import annotations

import json
import logging
import re
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.inspection import inspect as sa_inspect

from app.core.config import settings
from app.core.errors import ValidationError
from app.schemas.universal import FUNCTIONS, OPERATORS, FilterClause, ParsedFilter, RelationFilter, SearchGroup

_LOG = logging.getLogger("app.query")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
RELATION_DELIMITER = "."


def _bad_filter_value(column_key: str, kind: str) -> ValidationError:
    return ValidationError(f'Invalid filter value for field "{column_key}" ({kind})')


def _coerce_bool_filter_value(column_key: str, value):
    if isinstance(value, bool):
        return value
    text = str(value or "").strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise _bad_filter_value(column_key, "boolean")


def _coerce_number_filter_value(column_key: str, value, python_type):
    if python_type in {int, float} and isinstance(value, (int, float)) and not isinstance(value, bool):
        return python_type(value)
    if python_type is Decimal and isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return Decimal(str(value))
    text = str(value).strip()
    if not text:
        raise _bad_filter_value(column_key, "number")
    normalized = text.replace(",", ".")
    try:
        if python_type is int:
            return int(normalized)
        if python_type is float:
            return float(normalized)
        if python_type is Decimal:
            return Decimal(normalized)
        return python_type(normalized)
    except (ValueError, TypeError, InvalidOperation):
        raise _bad_filter_value(column_key, "number")


def _coerce_date_filter_value(column_key: str, value):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    text = str(value or "").strip()
    if not text:
        raise _bad_filter_value(column_key, "date")
    try:
        # Accept either YYYY-MM-DD or full ISO datetime and take its date part.
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise _bad_filter_value(column_key, "date")


def _coerce_datetime_filter_value(column_key: str, value):
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if not text:
            raise _bad_filter_value(column_key, "datetime")
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
        return column.type.python_type
    except NotImplementedError:
        return None


def coerce_filter_value(column, value):
    if value is None:
        return None
    if isinstance(value, (dict, list, tuple)):
        raise _bad_filter_value(column.key, "scalar")
    python_type = _column_python_type(column)
    if python_type is None:
        return value
    if python_type is uuid.UUID:
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value or "").strip())
        except ValueError:
            raise ValidationError(f'Invalid UUID in filter for field "{column.key}"')
    if python_type is bool:
        return _coerce_bool_filter_value(column.key, value)
    if python_type in {int, float, Decimal}:
        return _coerce_number_filter_value(column.key, value, python_type)
    if python_type is date:
        return _coerce_date_filter_value(column.key, value)
    if python_type is datetime:
        return _coerce_datetime_filter_value(column.key, value)
    if python_type is str and isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _is_date_only_filter_literal(raw_value) -> bool:
    if isinstance(raw_value, date) and not isinstance(raw_value, datetime):
        return True
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


def filterable_columns(model) -> dict[str, Any]:
    """Allow-list of columns a caller may name in filters, search and sort."""
    hidden = model.hidden_fields() if hasattr(model, "hidden_fields") else set()
    return {column.key: column for column in sa_inspect(model).columns if column.key not in hidden}


def model_relationships(model) -> dict[str, Any]:
    return {rel.key: rel for rel in sa_inspect(model).relationships}


def _split_values(raw) -> list:
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return [part.strip() for part in str(raw).split(",")]


def _malformed(message: str, strict: bool) -> None:
    if strict:
        raise ValidationError(message)
    _LOG.debug("dropping filter: %s", message)


def _normalize_operator(raw) -> str:
    op = str(raw or "=").strip().upper()
    return op if op in OPERATORS else "="


def _normalize_function(raw) -> str:
    fn = str(raw or "none").strip().lower()
    return fn if fn in FUNCTIONS else "none"


def _build_clause(column, key: str, raw_value, strict: bool, relation: str | None = None) -> FilterClause | None:
    if isinstance(raw_value, dict):
        op = _normalize_operator(raw_value.get("operator"))
        fn = _normalize_function(raw_value.get("function"))
        value = raw_value.get("value")
    elif isinstance(raw_value, list):
        op, fn, value = "=", "in", raw_value
    else:
        op, fn, value = "=", "none", raw_value

    if fn == "between":
        bounds = _split_values(value) if value is not None else []
        if len(bounds) != 2 or any(b is None or str(b).strip() == "" for b in bounds):
            _malformed(f'between filter on "{key}" requires exactly two comma-separated bounds', strict)
            return None
        value = [coerce_filter_value(column, bound) for bound in bounds]
    elif fn == "in":
        items = [item for item in _split_values(value) if item is not None and str(item) != ""] if value is not None else []
        if not items:
            _malformed(f'in filter on "{key}" requires at least one value', strict)
            return None
        value = [coerce_filter_value(column, item) for item in items]
    elif fn == "like" or op == "LIKE":
        if isinstance(value, (dict, list)):
            raise _bad_filter_value(column.key, "scalar")
        value = "" if value is None else str(value)
    elif fn == "date":
        value = _coerce_date_filter_value(column.key, value)
    elif (
        _column_python_type(column) is datetime
        and op in {"=", "!=", "<>"}
        and _is_date_only_filter_literal(value)
    ):
        # A bare date against a timestamp column matches the whole day.
        fn = "date"
        value = _coerce_date_filter_value(column.key, value)
    else:
        value = coerce_filter_value(column, value)

    if relation is not None:
        return RelationFilter(relation=relation, field=column.key, op=op, value=value, function=fn)
    return FilterClause(field=column.key, op=op, value=value, function=fn)


def _search_group(search: str | None, model) -> SearchGroup | None:
    term = str(search or "").strip()
    if not term or not hasattr(model, "searchable_fields"):
        return None
    columns = filterable_columns(model)
    fields = [name for name in model.searchable_fields() if name in columns]
    if not fields:
        return None
    return SearchGroup(fields=fields, term=term)


def _load_payload(raw_filter: str | None, strict: bool) -> dict | None:
    text = str(raw_filter or "").strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
    except ValueError:
        _malformed("filter must be a JSON object", strict)
        return None
    if not isinstance(payload, dict):
        _malformed("filter must be a JSON object", strict)
        return None
    return payload


def parse_filters(
    raw_filter: str | None,
    search: str | None,
    model,
    *,
    strict: bool | None = None,
) -> list[ParsedFilter]:
    """Turn the ``filter`` JSON and ``q`` search term into typed clauses.

    Keys naming an unknown column are dropped. Dotted keys become relation
    filters; an unknown relation is kept so the composer can reject it, while
    an unknown column on a known relation is dropped.
    """
    strict = settings.FILTER_STRICT if strict is None else strict
    parsed: list[ParsedFilter] = []

    group = _search_group(search, model)
    if group is not None:
        parsed.append(group)

    payload = _load_payload(raw_filter, strict)
    if payload is None:
        return parsed

    columns = filterable_columns(model)
    relationships = model_relationships(model)
    for raw_key, raw_value in payload.items():
        key = str(raw_key).strip()
        if RELATION_DELIMITER in key:
            relation, column_name = key.split(RELATION_DELIMITER, 1)
            rel = relationships.get(relation) if _IDENTIFIER_RE.fullmatch(relation) else None
            if rel is None:
                parsed.append(RelationFilter(relation=relation, field=column_name, op="=", value=raw_value))
                continue
            related_column = filterable_columns(rel.mapper.class_).get(column_name)
            if related_column is None:
                _LOG.debug("dropping filter on unknown column %s.%s", relation, column_name)
                continue
            clause = _build_clause(related_column, key, raw_value, strict, relation=relation)
        else:
            column = columns.get(key)
            if column is None:
                _LOG.debug("dropping filter on unknown column %r", key)
                continue
            clause = _build_clause(column, key, raw_value, strict)
        if clause is not None:
            parsed.append(clause)
    return parsed
