"""项目路由

POST   /api/v1/projects: 创建项目，调用者成为 owner
GET    /api/v1/projects: 项目列表，可按 owner 筛选
GET    /api/v1/projects/{project_id}: 项目详情
PATCH  /api/v1/projects/{project_id}: 修改名称/描述（仅 owner）
DELETE /api/v1/projects/{project_id}: 删除项目（仅 owner）
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from rocketstarter.core.models import Project, ProjectCreate, ProjectUpdate
from starlette.responses import JSONResponse, Response

from ..deps import get_actor, get_store_group
from ..services.project_service import ProjectService

router = APIRouter(prefix="/api/v1/projects")


class ProjectListResponse(BaseModel):
    """项目列表响应"""

    projects: list[Project]


@router.post("", status_code=201)
async def create_project(
    body: ProjectCreate,
    actor: str | None = Depends(get_actor),
    store_group=Depends(get_store_group),
):
    project = await ProjectService(store_group).create_project(actor, body)
    return JSONResponse(status_code=201, content=project.model_dump(mode="json"))


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    owner: str | None = Query(default=None, description="按 owner 地址筛选"),
    store_group=Depends(get_store_group),
):
    projects = await ProjectService(store_group).list_projects(owner)
    return ProjectListResponse(projects=projects)


@router.get("/{project_id}", response_model=Project)
async def get_project(
    project_id: int,
    store_group=Depends(get_store_group),
):
    return await ProjectService(store_group).get_project(project_id)


@router.patch("/{project_id}", response_model=Project)
async def update_project(
    project_id: int,
    body: ProjectUpdate,
    actor: str | None = Depends(get_actor),
    store_group=Depends(get_store_group),
):
    return await ProjectService(store_group).update_project(project_id, actor, body)


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: int,
    actor: str | None = Depends(get_actor),
    store_group=Depends(get_store_group),
):
    """删除项目及其 Step、任务"""
    await ProjectService(store_group).delete_project(project_id, actor)
    return Response(status_code=204)
