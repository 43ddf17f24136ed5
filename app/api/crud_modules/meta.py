from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.inspection import inspect as sa_inspect

SYSTEM_FIELDS = {"id", "created_at", "updated_at", "deleted_at"}


def _serialize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _serialize_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize_value(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def _hidden_fields(model: type) -> set[str]:
    return model.hidden_fields() if hasattr(model, "hidden_fields") else set()


def _columns_map(model: type) -> dict[str, Any]:
    mapper = sa_inspect(model)
    return {column.key: column for column in mapper.columns}


def _row_to_dict(row: Any, relations: list[str] | None = None) -> dict[str, Any]:
    model = type(row)
    hidden = _hidden_fields(model)
    payload = {
        key: _serialize_value(getattr(row, key))
        for key in _columns_map(model)
        if key not in hidden
    }
    for name in relations or []:
        related = getattr(row, name)
        if related is None:
            payload[name] = None
        elif isinstance(related, (list, tuple, set)):
            payload[name] = [_row_to_dict(item) for item in related]
        else:
            payload[name] = _row_to_dict(related)
    return payload
