# backend/stockroom/main.py
import logging
import os
from typing import List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import errors
from .apps.catalog.router import router as catalog_router
from .apps.orders.router import router as orders_router

logger = logging.getLogger(__name__)


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]


app = FastAPI(title="Stockroom API", version="1.0.0")
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(errors.OrderingError)
def handle_ordering_error(request: Request, exc: errors.OrderingError):
    logger.info(
        "Request rejected",
        extra={"path": request.url.path, "code": exc.code, "entity_id": exc.entity_id},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
def handle_request_validation_error(request: Request, exc: RequestValidationError):
    detail = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "reason": err.get("msg", "invalid")}
        for err in exc.errors()
    ]
    error = errors.ValidationError("Invalid request.", detail=detail)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "Stockroom backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(catalog_router)
app.include_router(orders_router)
