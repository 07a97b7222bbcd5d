"""任务路由

POST   /api/v1/tasks: 创建任务（总是 todo、无 builder）
GET    /api/v1/tasks: 任务列表，支持 project_id / step_id / status / worker 筛选
GET    /api/v1/tasks/{task_id}: 任务详情，含审计事件
PATCH  /api/v1/tasks/{task_id}: 稀疏更新，经工作流规则表判定
DELETE /api/v1/tasks/{task_id}: 删除任务（项目 owner 或任务创建者）
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel
from rocketstarter.core.models import Task, TaskCreate, TaskEvent, TaskStatus
from rocketstarter.core.workflow import WorkflowEngine
from starlette.responses import JSONResponse, Response

from ..deps import get_actor, get_engine

router = APIRouter(prefix="/api/v1/tasks")


class TaskListResponse(BaseModel):
    """任务列表响应"""

    tasks: list[Task]


class TaskDetailResponse(BaseModel):
    """任务详情响应"""

    task: Task
    events: list[TaskEvent]


class TaskUpdateResponse(BaseModel):
    """任务更新响应，message 与 rule 说明命中的规则"""

    task: Task
    rule: str
    message: str


@router.post("", status_code=201)
async def create_task(
    body: TaskCreate,
    actor: str | None = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_engine),
):
    """创建任务，调用者成为任务创建者"""
    task = await engine.create_task(actor, body)
    return JSONResponse(status_code=201, content=task.model_dump(mode="json"))


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    project_id: int | None = Query(default=None, description="按项目筛选"),
    step_id: int | None = Query(default=None, description="按 Step 筛选"),
    status: int | None = Query(default=None, ge=0, le=3, description="按状态筛选"),
    worker: str | None = Query(default=None, description="按 builder 地址筛选"),
    engine: WorkflowEngine = Depends(get_engine),
):
    """查询任务列表，按 task_id 升序"""
    tasks = await engine.list_tasks(
        project_id=project_id,
        step_id=step_id,
        status=TaskStatus(status) if status is not None else None,
        worker=worker,
    )
    return TaskListResponse(tasks=tasks)


@router.get("/{task_id}", response_model=TaskDetailResponse)
async def get_task_detail(
    task_id: int,
    engine: WorkflowEngine = Depends(get_engine),
):
    """查询任务详情，包含审计事件"""
    task, events = await engine.get_task_detail(task_id)
    return TaskDetailResponse(task=task, events=events)


@router.patch("/{task_id}", response_model=TaskUpdateResponse)
async def update_task(
    task_id: int,
    body: dict[str, Any] = Body(...),
    actor: str | None = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_engine),
):
    """应用一次稀疏更新

    请求体原样交给引擎解析，以区分「未提供」与「显式置空」的字段。
    """
    outcome = await engine.apply_update(task_id, actor, body)
    return TaskUpdateResponse(
        task=outcome.task,
        rule=outcome.decision.rule,
        message=outcome.decision.message,
    )


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: int,
    actor: str | None = Depends(get_actor),
    engine: WorkflowEngine = Depends(get_engine),
):
    """删除任务"""
    await engine.delete_task(task_id, actor)
    return Response(status_code=204)
