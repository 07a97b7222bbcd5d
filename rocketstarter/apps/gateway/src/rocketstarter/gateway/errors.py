"""错误响应映射 -- 工作流异常 -> HTTP 状态码 + 统一错误体

错误体格式：{"error": {"code": ..., "message": ...}}
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from rocketstarter.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    TaskConflictError,
    TaskValidationError,
    UnauthenticatedError,
    WorkflowError,
)
from starlette.responses import JSONResponse

log = structlog.get_logger()

STATUS_CODES: dict[type[WorkflowError], int] = {
    NotFoundError: 404,
    UnauthenticatedError: 401,
    ForbiddenError: 403,
    TaskValidationError: 400,
    TaskConflictError: 409,
}


def error_response(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, **extra}},
    )


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    status_code = 500
    for error_type, mapped in STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = mapped
            break

    extra = {}
    if isinstance(exc, ForbiddenError) and exc.rule:
        extra["rule"] = exc.rule

    await log.ainfo(
        "workflow_error",
        code=exc.code,
        status_code=status_code,
        message=exc.message,
    )
    return error_response(status_code, exc.code, exc.message, **extra)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """请求体/参数格式错误统一按 400 VALIDATION_ERROR 返回"""
    parts = []
    for item in exc.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()) if p != "body")
        msg = item.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return error_response(400, TaskValidationError.code, "; ".join(parts))


def register_exception_handlers(app: FastAPI) -> None:
    """注册异常处理器"""
    app.add_exception_handler(WorkflowError, workflow_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
