from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_principal
from app.db.session import get_db

from .service import ResourceController, build_query_options, parse_relations


def build_crud_router(controller: ResourceController) -> APIRouter:
    router = APIRouter()
    model = controller.model

    @router.get("")
    def list_rows(
        page: int = Query(default=1, ge=1),
        limit: Optional[int] = Query(default=None, ge=1),
        sort: str = Query(default="created_at"),
        order: str = Query(default="desc"),
        filter: Optional[str] = Query(default=None),
        relations: Optional[str] = Query(default=None),
        q: Optional[str] = Query(default=None),
        include_deleted: bool = Query(default=False),
        db: Session = Depends(get_db),
        principal: dict = Depends(get_current_principal),
    ):
        options = build_query_options(
            model,
            page=page,
            limit=limit,
            sort=sort,
            order=order,
            filter=filter,
            relations=relations,
            q=q,
            include_deleted=include_deleted,
        )
        return controller.list(db, principal, options)

    @router.get("/{row_id}")
    def get_row(
        row_id: str,
        relations: Optional[str] = Query(default=None),
        db: Session = Depends(get_db),
        principal: dict = Depends(get_current_principal),
    ):
        return controller.get(db, principal, row_id, parse_relations(model, relations))

    @router.post("", status_code=201)
    def create_row(
        payload: Any = Body(...),
        db: Session = Depends(get_db),
        principal: dict = Depends(get_current_principal),
    ):
        return controller.create(db, principal, payload)

    @router.put("/{row_id}")
    def replace_row(
        row_id: str,
        payload: Any = Body(...),
        db: Session = Depends(get_db),
        principal: dict = Depends(get_current_principal),
    ):
        return controller.update(db, principal, row_id, payload)

    @router.patch("/{row_id}")
    def update_row(
        row_id: str,
        payload: Any = Body(...),
        db: Session = Depends(get_db),
        principal: dict = Depends(get_current_principal),
    ):
        return controller.update(db, principal, row_id, payload, partial=True)

    @router.delete("/{row_id}")
    def delete_row(
        row_id: str,
        db: Session = Depends(get_db),
        principal: dict = Depends(get_current_principal),
    ):
        return controller.delete(db, principal, row_id)

    return router
