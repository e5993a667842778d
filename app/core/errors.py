from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.services.advanced_results import QueryParamError
from app.services.geocoder import GeocoderError

_LOG = logging.getLogger("app.errors")


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message}, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        msg = str(err.get("msg") or "Invalid value")
        parts.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return ", ".join(parts) or "Invalid request"


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def _http_exception(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def _validation_exception(request: Request, exc: RequestValidationError):
        return error_response(400, _validation_message(exc))

    @app.exception_handler(QueryParamError)
    async def _query_param_exception(request: Request, exc: QueryParamError):
        return error_response(400, str(exc))

    @app.exception_handler(IntegrityError)
    async def _integrity_exception(request: Request, exc: IntegrityError):
        _LOG.info("integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
        return error_response(400, "Duplicate field value entered")

    @app.exception_handler(GeocoderError)
    async def _geocoder_exception(request: Request, exc: GeocoderError):
        return error_response(502, str(exc))

    @app.exception_handler(Exception)
    async def _unhandled_exception(request: Request, exc: Exception):
        _LOG.exception("unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "Server Error")
