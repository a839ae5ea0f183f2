import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from core.errors import AppError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def _sqlstate(exc: IntegrityError) -> str:
    for source in (exc.orig, getattr(exc.orig, "__cause__", None)):
        code = getattr(source, "sqlstate", None) or getattr(source, "pgcode", None)
        if code:
            return str(code)
    return ""


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    missing = [
        str(err["loc"][-1]) for err in exc.errors() if err.get("type") == "missing"
    ]
    content = {"success": False, "error": "Invalid request parameters"}
    if missing:
        content["error"] = "Missing required parameters"
        content["missingFields"] = missing
    else:
        content["details"] = [
            {"field": ".".join(str(p) for p in err["loc"][1:]), "message": err["msg"]}
            for err in exc.errors()
        ]
    return JSONResponse(status_code=400, content=jsonable_encoder(content))


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    code = _sqlstate(exc)
    logger.warning("Constraint violation %s on %s %s", code, request.method, request.url.path)
    if code == UNIQUE_VIOLATION:
        status_code, message = 409, "Duplicate record"
    else:
        status_code, message = 400, "Database constraint violation"
    content = {"success": False, "error": message}
    if settings.DEBUG:
        content["detail"] = str(exc.orig)
    return JSONResponse(status_code=status_code, content=content)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    content = {"success": False, "error": exc.detail}
    if exc.status_code == 404 and exc.detail == "Not Found":
        content = {"success": False, "error": "API endpoint not found", "path": request.url.path}
    return JSONResponse(status_code=exc.status_code, content=content)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"success": False, "error": "Internal server error"}
    if settings.DEBUG:
        content["message"] = str(exc)
    return JSONResponse(status_code=500, content=content)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
