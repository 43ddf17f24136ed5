from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Date, and_, asc, desc, func, or_
from sqlalchemy.inspection import inspect as sa_inspect
from sqlalchemy.orm import Query, Session, selectinload

from app.core.errors import ValidationError
from app.schemas.universal import FilterClause, ParsedFilter, QueryOptions, RelationFilter, SearchGroup
from app.services.filter_parser import filterable_columns, model_relationships

_LOG = logging.getLogger("app.query")
LIKE_ESCAPE = "\\"


def _not_deleted(model):
    deleted_at = getattr(model, "deleted_at", None)
    if deleted_at is None:
        return None
    return deleted_at.is_(None)


def base_query(db: Session, model, *, include_deleted: bool = False) -> Query:
    q = db.query(model)
    if not include_deleted:
        criterion = _not_deleted(model)
        if criterion is not None:
            q = q.filter(criterion)
    return q


def _relationship_or_400(model, name: str):
    rel = model_relationships(model).get(str(name or "").strip())
    if rel is None:
        raise ValidationError(f'Unknown relation "{name}"')
    return rel


def apply_relations(q: Query, model, relations: list[str]) -> Query:
    seen: set[str] = set()
    for name in relations:
        rel = _relationship_or_400(model, name)
        if rel.key in seen:
            continue
        seen.add(rel.key)
        attr = getattr(model, rel.key)
        criterion = _not_deleted(rel.mapper.class_)
        q = q.options(selectinload(attr.and_(criterion) if criterion is not None else attr))
    return q


def _contains_pattern(term) -> str:
    text = str(term).replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", LIKE_ESCAPE + "%").replace("_", LIKE_ESCAPE + "_")
    return f"%{text}%"


def _operator_predicate(col, op: str, value):
    if op == "=":
        return col == value
    if op in {"!=", "<>"}:
        return col != value
    if op == ">":
        return col > value
    if op == "<":
        return col < value
    if op == ">=":
        return col >= value
    if op == "<=":
        return col <= value
    if op == "LIKE":
        return col.like(value)
    raise ValidationError(f'Unsupported operator "{op}"')


def clause_predicate(col, clause: FilterClause):
    if clause.function == "date":
        return _operator_predicate(func.date(col, type_=Date), clause.op, clause.value)
    if clause.function == "in":
        return col.in_(list(clause.value))
    if clause.function == "between":
        low, high = clause.value
        return col.between(low, high)
    if clause.function == "like":
        return col.like(_contains_pattern(clause.value), escape=LIKE_ESCAPE)
    return _operator_predicate(col, clause.op, clause.value)


def _relation_predicate(model, clause: RelationFilter):
    rel = _relationship_or_400(model, clause.relation)
    target = rel.mapper.class_
    col = getattr(target, clause.field, None)
    if col is None or clause.field not in filterable_columns(target):
        raise ValidationError(f'Unknown field "{clause.relation}.{clause.field}"')
    criteria = [clause_predicate(col, clause)]
    alive = _not_deleted(target)
    if alive is not None:
        criteria.append(alive)
    attr = getattr(model, rel.key)
    # EXISTS semi-join: one-to-many matches never duplicate parent rows.
    if rel.uselist:
        return attr.any(and_(*criteria))
    return attr.has(and_(*criteria))


def _search_predicate(model, group: SearchGroup):
    pattern = _contains_pattern(group.term)
    return or_(*[getattr(model, field).ilike(pattern, escape=LIKE_ESCAPE) for field in group.fields])


def apply_filters(q: Query, model, clauses: list[ParsedFilter]) -> Query:
    for clause in clauses:
        if isinstance(clause, SearchGroup):
            q = q.filter(_search_predicate(model, clause))
        elif isinstance(clause, RelationFilter):
            q = q.filter(_relation_predicate(model, clause))
        else:
            col = getattr(model, clause.field, None)
            if col is None or clause.field not in filterable_columns(model):
                raise ValidationError(f'Unknown field "{clause.field}"')
            q = q.filter(clause_predicate(col, clause))
    return q


def apply_sort(q: Query, model, field: str, direction: str) -> Query:
    columns = filterable_columns(model)
    if field not in columns:
        raise ValidationError(f'Cannot sort by unknown field "{field}"')
    if direction not in {"asc", "desc"}:
        raise ValidationError(f'Invalid sort direction "{direction}"')
    order = asc if direction == "asc" else desc
    q = q.order_by(order(getattr(model, field)))
    # Primary key tie-breaker keeps pages disjoint when sort values repeat.
    for pk in sa_inspect(model).primary_key:
        if pk.key != field:
            q = q.order_by(order(getattr(model, pk.key)))
    return q


def compose_query(q: Query, model, clauses: list[ParsedFilter], options: QueryOptions) -> Query:
    q = apply_relations(q, model, options.relations)
    q = apply_filters(q, model, clauses)
    return apply_sort(q, model, options.sort, options.order)


def paginate(q: Query, options: QueryOptions) -> tuple[list[Any], int]:
    total = q.order_by(None).count()
    rows = q.offset(options.offset).limit(options.limit).all()
    _LOG.debug("page=%s limit=%s total=%s returned=%s", options.page, options.limit, total, len(rows))
    return rows, total
