from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from webproject.deps import close_clients
from webproject.middleware import ObservabilityMiddleware
from webproject.routers.consistency import router as consistency_router
from webproject.routers.health import router as health_router
from webproject.routers.images import router as images_router
from webproject.routers.subscriptions import router as subscriptions_router
from webproject.telemetry.logging import init_logging
from webproject.telemetry.metrics import router as metrics_router

init_logging()
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    close_clients()


app = FastAPI(title="webproject API", lifespan=lifespan)

# Observability middleware (request metrics + structured logs)
app.add_middleware(ObservabilityMiddleware)


# Validation errors are reported as 400, like every other bad-input case
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):  # type: ignore[no-redef]
    sanitized: list[dict] = []
    for err in exc.errors():
        e = dict(err)
        ctx = e.get("ctx")
        if isinstance(ctx, dict):
            e["ctx"] = {str(k): str(v) for k, v in ctx.items()}
        elif ctx is not None:
            e["ctx"] = str(ctx)
        if "input" in e:
            val = e["input"]
            if not isinstance(val, (str, int, float, bool, type(None), list, dict)):
                e["input"] = str(val)
        sanitized.append(e)
    return JSONResponse(status_code=400, content={"detail": sanitized})


app.include_router(health_router)
app.include_router(metrics_router)  # /metrics
app.include_router(images_router)
app.include_router(subscriptions_router)
app.include_router(consistency_router)
