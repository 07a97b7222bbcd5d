"""TraceMiddleware -- 任务级追踪

为 /api/v1/tasks/{task_id} 下的请求绑定 trace_id，
使同一任务的生命周期日志可以串联检索。
"""

import re

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

_TASK_PATH = re.compile(r"/tasks/(\d+)(?:/|$)")


def trace_id_for_path(path: str) -> str | None:
    """从请求路径中提取任务 trace_id，非任务路径返回 None"""
    match = _TASK_PATH.search(path)
    if match is None:
        return None
    return f"trace-task-{match.group(1)}"


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件 -- 为任务操作绑定 trace_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        trace_id = trace_id_for_path(request.url.path)
        if trace_id:
            structlog.contextvars.bind_contextvars(trace_id=trace_id)

        return await call_next(request)
