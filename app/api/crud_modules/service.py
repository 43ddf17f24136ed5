from __future__ import annotations

import logging
from typing import Any, Callable, Generic, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.models.common import utcnow
from app.schemas.universal import PaginationEnvelope, QueryOptions
from app.services.filter_parser import model_relationships, parse_filters
from app.services.universal_query import base_query, compose_query, paginate

from .access import ensure_fields_writable, is_admin, readonly_fields, require_resource_action
from .meta import _row_to_dict
from .payloads import _load_row_or_404, _pk_criterion, _sanitize_payload

_LOG = logging.getLogger("app.crud")

MAX_OFFSET = 2**63 - 1
RecordT = TypeVar("RecordT")
BeforePersist = Callable[..., dict[str, Any]]


def _integrity_error(detail: str = "Data constraint violated") -> ValidationError:
    return ValidationError(detail)


def parse_relations(model: type, raw: str | None) -> list[str]:
    names: list[str] = []
    known = model_relationships(model)
    for part in str(raw or "").split(","):
        name = part.strip()
        if not name or name in names:
            continue
        if name not in known:
            raise ValidationError(f'Unknown relation "{name}"')
        names.append(name)
    return names


def build_query_options(
    model: type,
    *,
    page: int = 1,
    limit: int | None = None,
    sort: str | None = None,
    order: str | None = None,
    filter: str | None = None,
    relations: str | None = None,
    q: str | None = None,
    include_deleted: bool = False,
) -> QueryOptions:
    direction = str(order or "desc").strip().lower()
    if direction not in {"asc", "desc"}:
        raise ValidationError(f'Invalid sort direction "{order}"')
    page_limit = settings.DEFAULT_PAGE_LIMIT if limit is None else limit
    page = max(1, int(page))
    page_limit = max(1, min(int(page_limit), settings.MAX_PAGE_LIMIT))
    if (page - 1) * page_limit > MAX_OFFSET:
        raise ValidationError(f"Page {page} is out of range")
    return QueryOptions(
        page=page,
        limit=page_limit,
        sort=str(sort or "created_at").strip(),
        order=direction,
        relations=parse_relations(model, relations),
        q=q,
        filter=filter,
        include_deleted=include_deleted,
    )


class ResourceController(Generic[RecordT]):
    """List/get/create/update/delete for one record model.

    ``before_persist`` is an explicit transformation applied to request bodies
    before they are validated and written, called as ``before_persist(payload, mode=...)``.
    """

    def __init__(
        self,
        model: type[RecordT],
        *,
        resource: str,
        before_persist: Optional[BeforePersist] = None,
        protected_fields: set[str] | None = None,
    ):
        self.model = model
        self.resource = resource
        self.before_persist = before_persist
        self.protected_fields = set(protected_fields or set())

    def list(self, db: Session, principal: dict, options: QueryOptions) -> PaginationEnvelope:
        require_resource_action(principal, self.resource, "query")
        if options.include_deleted and not is_admin(principal):
            raise ForbiddenError("Only admins may include deleted records")
        clauses = parse_filters(options.filter, options.q, self.model)
        query = base_query(db, self.model, include_deleted=options.include_deleted)
        query = compose_query(query, self.model, clauses, options)
        rows, total = paginate(query, options)
        return PaginationEnvelope(
            data=[_row_to_dict(row, options.relations) for row in rows],
            total=total,
            page=options.page,
            limit=options.limit,
        )

    def get(self, db: Session, principal: dict, row_id: str, relations: list[str] | None = None) -> dict[str, Any]:
        require_resource_action(principal, self.resource, "read", row_id)
        row = _load_row_or_404(db, self.model, row_id, relations)
        return _row_to_dict(row, relations)

    def _prepare(self, payload: Any, mode: str, principal: dict) -> dict[str, Any]:
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        ensure_fields_writable(principal, self.resource, payload)
        prepared = self.before_persist(payload, mode=mode) if self.before_persist else dict(payload)
        return _sanitize_payload(
            self.model,
            prepared,
            mode=mode,
            allow_protected_fields=self.protected_fields,
            readonly_fields=readonly_fields(principal, self.resource),
        )

    def _commit(self, db: Session, row: RecordT) -> RecordT:
        try:
            db.add(row)
            db.commit()
        except IntegrityError:
            db.rollback()
            raise _integrity_error()
        db.refresh(row)
        return row

    def create(self, db: Session, principal: dict, payload: Any) -> dict[str, Any]:
        require_resource_action(principal, self.resource, "create")
        clean_payload = self._prepare(payload, "create", principal)
        row = self._commit(db, self.model(**clean_payload))
        _LOG.info("created %s id=%s by=%s", self.resource, getattr(row, "id", None), principal.get("sub"))
        return _row_to_dict(row)

    def update(self, db: Session, principal: dict, row_id: str, payload: Any, *, partial: bool = False) -> dict[str, Any]:
        require_resource_action(principal, self.resource, "update", row_id)
        row = _load_row_or_404(db, self.model, row_id)
        clean_payload = self._prepare(payload, "merge" if partial else "replace", principal)
        for key, value in clean_payload.items():
            setattr(row, key, value)
        row.updated_at = utcnow()
        row = self._commit(db, row)
        _LOG.info("updated %s id=%s by=%s partial=%s", self.resource, row_id, principal.get("sub"), partial)
        return _row_to_dict(row)

    def delete(self, db: Session, principal: dict, row_id: str) -> dict[str, Any]:
        require_resource_action(principal, self.resource, "delete", row_id)
        try:
            row = base_query(db, self.model).filter(_pk_criterion(self.model, row_id)).first()
        except NotFoundError:
            row = None
        if row is not None:
            row.deleted_at = utcnow()
            self._commit(db, row)
            _LOG.info("deleted %s id=%s by=%s", self.resource, row_id, principal.get("sub"))
        return {"message": "Success"}
