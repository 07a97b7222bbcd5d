"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store、引擎与调用者身份

Store 实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from rocketstarter.core.config import get_identity_header
from rocketstarter.core.store import StoreGroup
from rocketstarter.core.workflow import WorkflowEngine


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_engine(request: Request) -> WorkflowEngine:
    """基于当前 StoreGroup 构造工作流引擎"""
    return WorkflowEngine(request.app.state.store_group)


def get_actor(request: Request) -> str | None:
    """从身份请求头读取调用者地址

    缺失时返回 None，由引擎报告 Unauthenticated。
    """
    value = request.headers.get(get_identity_header())
    if value is None or not value.strip():
        return None
    return value.strip()
