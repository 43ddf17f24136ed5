from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.inspection import inspect as sa_inspect
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationError
from app.core.security import hash_password
from app.services.universal_query import apply_relations, base_query

from .meta import SYSTEM_FIELDS, _columns_map, _hidden_fields

MIN_PASSWORD_LENGTH = 6


def _type_mismatch(key: str, expected: str) -> ValidationError:
    return ValidationError(f'Field "{key}" must be {expected}')


def _coerce_payload_value(key: str, column: Any, value: Any) -> Any:
    if value is None:
        if not column.nullable:
            raise ValidationError(f'Field "{key}" cannot be null')
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if python_type is bool:
        if not isinstance(value, bool):
            raise _type_mismatch(key, "a boolean")
        return value
    if python_type is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _type_mismatch(key, "an integer")
        return value
    if python_type in {float, Decimal}:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _type_mismatch(key, "a number")
        try:
            return python_type(str(value)) if python_type is Decimal else float(value)
        except InvalidOperation:
            raise _type_mismatch(key, "a number")
    if python_type is str:
        if not isinstance(value, str):
            raise _type_mismatch(key, "a string")
        length = getattr(column.type, "length", None)
        if length and len(value) > length:
            raise ValidationError(f'Field "{key}" is longer than {length} characters')
        return value
    if python_type is datetime:
        if not isinstance(value, str):
            raise _type_mismatch(key, "an ISO datetime string")
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise _type_mismatch(key, "an ISO datetime string")
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if python_type is date:
        if not isinstance(value, str):
            raise _type_mismatch(key, "an ISO date string")
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise _type_mismatch(key, "an ISO date string")
    return value


def _column_default(column: Any) -> Any:
    default = column.default
    if default is None or not getattr(default, "is_scalar", False):
        return None
    return default.arg


def _sanitize_payload(
    model: type,
    payload: Any,
    *,
    mode: str,
    allow_protected_fields: set[str] | None = None,
    readonly_fields: set[str] | None = None,
) -> dict[str, Any]:
    """Validate a record-shaped body against the model's columns.

    ``mode`` is ``create``, ``replace`` (PUT) or ``merge`` (PATCH). In ``replace``
    mode writable columns missing from the body fall back to their default, or
    to null when nullable; a required column without a default must be sent.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    columns = _columns_map(model)
    allowed_hidden = set(allow_protected_fields or set())
    readonly = set(readonly_fields or set())
    hidden = _hidden_fields(model)
    mutable_columns = {
        name
        for name in columns.keys()
        if name not in SYSTEM_FIELDS and name not in readonly and (name not in hidden or name in allowed_hidden)
    }

    unknown_fields = sorted(set(payload.keys()) - mutable_columns)
    if unknown_fields:
        raise ValidationError("Unknown fields: " + ", ".join(unknown_fields))

    cleaned: dict[str, Any] = {
        key: _coerce_payload_value(key, columns[key], value) for key, value in payload.items()
    }

    if mode == "merge":
        if not cleaned:
            raise ValidationError("No fields to update")
        return cleaned

    required_missing: list[str] = []
    for name in sorted(mutable_columns):
        if name in cleaned or (name in hidden and mode == "replace"):
            continue
        column = columns[name]
        if column.default is not None or column.server_default is not None:
            if mode == "replace":
                cleaned[name] = _column_default(column)
            continue
        if column.nullable:
            if mode == "replace":
                cleaned[name] = None
            continue
        required_missing.append(name)
    if required_missing:
        raise ValidationError("Missing required fields: " + ", ".join(required_missing))
    return cleaned


def _pk_value(model: type, row_id: str) -> Any:
    pk = sa_inspect(model).primary_key
    if len(pk) != 1:
        raise ValidationError("Only single-column primary keys are supported")
    pk_column = pk[0]
    try:
        python_type = pk_column.type.python_type
    except NotImplementedError:
        python_type = str
    if python_type is int:
        try:
            return int(str(row_id).strip())
        except ValueError:
            raise NotFoundError()
    return row_id


def _pk_criterion(model: type, row_id: str):
    pk_column = sa_inspect(model).primary_key[0]
    return getattr(model, pk_column.key) == _pk_value(model, row_id)


def _load_row_or_404(db: Session, model: type, row_id: str, relations: list[str] | None = None):
    q = base_query(db, model).filter(_pk_criterion(model, row_id))
    if relations:
        q = apply_relations(q, model, relations)
    entity = q.first()
    if entity is None:
        raise NotFoundError()
    return entity


def hash_password_field(payload: dict[str, Any], *, mode: str) -> dict[str, Any]:
    """Pre-persist step for user bodies: ``password`` in, ``password_hash`` out."""
    if not isinstance(payload, dict):
        return payload
    data = dict(payload)
    if "password_hash" in data:
        raise ValidationError("Unknown fields: password_hash")
    password = data.pop("password", None)
    if password is None:
        if mode == "create":
            raise ValidationError("Missing required fields: password")
        return data
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be a string of at least {MIN_PASSWORD_LENGTH} characters")
    data["password_hash"] = hash_password(password)
    return data
