from __future__ import annotations

import os
import time
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from webproject.aws.storage import ObjectStore
from webproject.deps import get_db, get_object_store

router = APIRouter(tags=["health"])
START_TIME = time.time()


def _ok(v: object) -> bool:
    return v == "ok"


def _parse_required(env_val: str | None) -> list[str]:
    if not env_val:
        return ["db", "s3"]
    items = [x.strip() for x in env_val.split(",") if x.strip()]
    return items or ["db", "s3"]


def get_health_checks(db: Session, store: ObjectStore) -> dict[str, Any]:
    checks: dict[str, Any] = {}

    try:
        db.execute(text("SELECT 1"))
        checks["db"] = "ok"
    except SQLAlchemyError as e:
        checks["db"] = {"error": str(e)}

    try:
        store.ping()
        checks["s3"] = "ok"
    except (ClientError, BotoCoreError) as e:
        checks["s3"] = {"error": str(e)}

    return checks


@router.get("/health", status_code=status.HTTP_200_OK)
def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/live", status_code=status.HTTP_200_OK)
def live() -> dict[str, Any]:
    return {"status": "alive", "uptime": time.time() - START_TIME}


@router.get("/ready")
def ready(
    response: Response,
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
) -> dict[str, Any]:
    checks = get_health_checks(db, store)
    required = _parse_required(os.getenv("READINESS_REQUIRED"))
    is_ready = all(_ok(checks.get(k)) for k in required)

    if is_ready:
        return {"status": "ready", "required": required, "version": os.getenv("GIT_SHA") or "dev"}
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "not_ready", "required": required, "checks": checks}
