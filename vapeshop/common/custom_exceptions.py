from fastapi import FastAPI, HTTPException, Request,status
from fastapi.exceptions import RequestValidationError
from vapeshop.common import logger
from vapeshop.common.utils import error_response


async def fallback_handler(request: Request, exc: Exception):

    logger.error(
        "unexpected.exception",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc,
    )

    return error_response("Внутренняя ошибка сервера", status.HTTP_500_INTERNAL_SERVER_ERROR,
                          errors=["Internal server error"])


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(
        "request.validation_failed",
        extra={
            "errors": exc.errors(),
            "path": request.url.path,
        },
    )

    messages = [str(err.get("msg")) for err in exc.errors()]
    return error_response("Validation failed", status.HTTP_422_UNPROCESSABLE_ENTITY, errors=messages)


async def http_exception_handler(request: Request, exc: HTTPException):

    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(message, exc.status_code, headers=getattr(exc, "headers", None))


def register_all_exceptions(app: FastAPI):

    app.add_exception_handler(
        Exception, # catch all unidentified/unhandled exceptions
        fallback_handler
    )

    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler
    )

    app.add_exception_handler(
        HTTPException,
        http_exception_handler
    )
