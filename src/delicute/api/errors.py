import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from delicute.errors import OrderingError, ValidationError

log = logging.getLogger(__name__)


def error_response(status_code: int, message: str, error_code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "errorCode": error_code},
    )


async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    log.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.error_code)
    return error_response(exc.status_code, exc.message, exc.error_code)


def describe_validation_error(exc: RequestValidationError) -> str:
    """
    Первая ошибка pydantic в виде "items.0.quantity: Input should be a valid integer".
    """
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    # loc начинается с источника ("body", "query"), он клиенту не нужен
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = first.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = describe_validation_error(exc)
    log.info("%s %s rejected: %s", request.method, request.url.path, message)
    return error_response(ValidationError.status_code, message, ValidationError.error_code)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderingError, ordering_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
