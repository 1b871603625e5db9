from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from webproject.aws.storage import ObjectStore
from webproject.deps import get_db, get_object_store
from webproject.services.consistency_check import (
    ConsistencyCheckError,
    failure_response,
    resolve_source,
    run_consistency_check,
)

router = APIRouter(prefix="/api", tags=["consistency"])

WEB_SOURCE = "web-application"


def _check(db: Session, store: ObjectStore, source: str) -> JSONResponse:
    try:
        payload: dict[str, Any] = run_consistency_check(db, store, source=source)
    except ConsistencyCheckError as e:
        return JSONResponse(status_code=500, content=failure_response(source, e))
    return JSONResponse(status_code=200, content=payload)


@router.api_route("/consistency", methods=["GET", "POST"])
def consistency_check(
    source: str | None = Query(None),
    x_invocation_source: str | None = Header(None),
    event: dict[str, Any] | None = Body(None),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
) -> JSONResponse:
    # scheduler-style payloads carry their own label ("detail-type" / "source")
    fallback = resolve_source(event) if event else WEB_SOURCE
    label = (x_invocation_source or source or fallback).strip() or WEB_SOURCE
    return _check(db, store, label)
