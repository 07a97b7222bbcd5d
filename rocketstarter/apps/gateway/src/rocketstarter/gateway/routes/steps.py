"""Step 路由

POST   /api/v1/steps: 创建 Step（仅项目 owner）
GET    /api/v1/steps: 所有 Step，可按 owner 筛选或 mine=true 只看自己的
GET    /api/v1/projects/{project_id}/steps: 项目下的 Step 列表
GET    /api/v1/steps/{step_id}: Step 详情
PATCH  /api/v1/steps/{step_id}: 修改名称/描述（progress 不可写）
DELETE /api/v1/steps/{step_id}: 删除 Step
POST   /api/v1/steps/{step_id}/recalculate: 按任务完成情况重算进度
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from rocketstarter.core.models import Step, StepCreate, StepUpdate
from rocketstarter.core.workflow import WorkflowEngine, require_identity
from starlette.responses import JSONResponse, Response

from ..deps import get_actor, get_engine, get_store_group
from ..services.project_service import ProjectService

router = APIRouter(prefix="/api/v1")


class StepListResponse(BaseModel):
    """Step 列表响应"""

    steps: list[Step]


class ProgressResponse(BaseModel):
    """进度重算响应"""

    step_id: int
    progress: float


@router.post("/steps", status_code=201)
async def create_step(
    body: StepCreate,
    actor: str | None = Depends(get_actor),
    store_group=Depends(get_store_group),
):
    step = await ProjectService(store_group).create_step(actor, body)
    return JSONResponse(status_code=201, content=step.model_dump(mode="json"))


@router.get("/steps", response_model=StepListResponse)
async def list_all_steps(
    owner: str | None = Query(default=None, description="按项目 owner 地址筛选"),
    mine: bool = Query(default=False, description="只看调用者名下项目的 Step"),
    actor: str | None = Depends(get_actor),
    store_group=Depends(get_store_group),
):
    """跨项目的 Step 列表；mine=true 等价于 owner=调用者地址"""
    if mine:
        owner = require_identity(actor).address
    steps = await ProjectService(store_group).list_all_steps(owner)
    return StepListResponse(steps=steps)


@router.get("/projects/{project_id}/steps", response_model=StepListResponse)
async def list_project_steps(
    project_id: int,
    store_group=Depends(get_store_group),
):
    steps = await ProjectService(store_group).list_steps(project_id)
    return StepListResponse(steps=steps)


@router.get("/steps/{step_id}", response_model=Step)
async def get_step(
    step_id: int,
    store_group=Depends(get_store_group),
):
    return await ProjectService(store_group).get_step(step_id)


@router.patch("/steps/{step_id}", response_model=Step)
async def update_step(
    step_id: int,
    body: StepUpdate,
    actor: str | None = Depends(get_actor),
    store_group=Depends(get_store_group),
):
    return await ProjectService(store_group).update_step(step_id, actor, body)


@router.delete("/steps/{step_id}", status_code=204)
async def delete_step(
    step_id: int,
    actor: str | None = Depends(get_actor),
    store_group=Depends(get_store_group),
):
    await ProjectService(store_group).delete_step(step_id, actor)
    return Response(status_code=204)


@router.post("/steps/{step_id}/recalculate", response_model=ProgressResponse)
async def recalculate_step(
    step_id: int,
    engine: WorkflowEngine = Depends(get_engine),
):
    """进度漂移时的修复入口，结果只取决于当前任务状态"""
    progress = await engine.recalculate_step(step_id)
    return ProgressResponse(step_id=step_id, progress=progress)
