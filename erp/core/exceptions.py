"""
异常与错误响应
所有错误统一输出为 {"message": ..., "errors": {...}}
"""

import logging
from typing import Dict, List, Union

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ActionNotAllowed(Exception):
    """业务规则拒绝（非法状态转换等），返回 422"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FieldValidationError(Exception):
    """字段级校验失败，返回 422 并附带 errors"""

    def __init__(self, errors: Dict[str, Union[str, List[str]]]):
        self.errors = {
            field: messages if isinstance(messages, list) else [messages]
            for field, messages in errors.items()
        }
        first = next(iter(self.errors.values()), ["The given data was invalid."])
        super().__init__(first[0])
        self.message = first[0]

    @classmethod
    def single(cls, field: str, message: str) -> "FieldValidationError":
        return cls({field: [message]})


def _error_field(loc) -> str:
    # ("body", "moves", 0, "product_id") -> "moves.0.product_id"
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "body"


def _format_validation_errors(exc: RequestValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        field = _error_field(err.get("loc", ()))
        if err.get("type") == "missing":
            message = f"The {field} field is required."
        else:
            message = err.get("msg", "Invalid value.")
        errors.setdefault(field, []).append(message)
    return errors


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = _format_validation_errors(exc)
    first = next(iter(errors.values()))[0]
    return JSONResponse(status_code=422, content={"message": first, "errors": errors})


async def action_not_allowed_handler(request: Request, exc: ActionNotAllowed):
    logger.warning(f"操作被拒绝 {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=422, content={"message": exc.message})


async def field_validation_handler(request: Request, exc: FieldValidationError):
    return JSONResponse(status_code=422, content={"message": exc.message, "errors": exc.errors})


def register_exception_handlers(app: FastAPI) -> None:
    """注册统一异常处理"""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ActionNotAllowed, action_not_allowed_handler)
    app.add_exception_handler(FieldValidationError, field_validation_handler)
