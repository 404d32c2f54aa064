from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .config import APP_NAME, AUTO_CREATE_SCHEMA, LOG_LEVEL, setup_logging
from .db import dispose_engine, init_db
from .errors import DirectoryError, StorageError
from .routes import router

GENERIC_FAILURE_MESSAGE = "Internal server error"

setup_logging(LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if AUTO_CREATE_SCHEMA:
        init_db()
    yield
    dispose_engine()


app = FastAPI(title=APP_NAME, lifespan=lifespan)
app.include_router(router)


@app.exception_handler(DirectoryError)
async def directory_error_handler(request: Request, exc: DirectoryError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logging.error(
            "Storage failure on %s %s",
            request.method,
            request.url.path,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return JSONResponse({"error": GENERIC_FAILURE_MESSAGE}, status_code=exc.status_code)
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logging.error(
        "Storage failure on %s %s",
        request.method,
        request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse({"error": GENERIC_FAILURE_MESSAGE}, status_code=500)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body") or "body", "message": str(err.get("msg"))}
        for err in exc.errors()
    ]
    return JSONResponse({"error": "Invalid request", "details": details}, status_code=400)
