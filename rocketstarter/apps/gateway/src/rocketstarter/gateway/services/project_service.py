"""ProjectService -- 项目与 Step 的增删改查

写操作只允许项目 owner；读操作对所有人开放。
Step 的 progress 不接受外部写入，只由进度聚合器维护。
公开读操作持写锁读取，不会看到其他请求尚未提交的写入。
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import structlog
from rocketstarter.core.exceptions import ForbiddenError, NotFoundError
from rocketstarter.core.models import (
    Project,
    ProjectCreate,
    ProjectUpdate,
    Step,
    StepCreate,
    StepUpdate,
)
from rocketstarter.core.store import StoreGroup
from rocketstarter.core.workflow import parse_model, require_identity

log = structlog.get_logger()

REASON_OWNER_ONLY_DELETE = "Forbidden: only project owner can delete"
REASON_OWNER_ONLY_UPDATE = "Forbidden: only project owner can update"
REASON_OWNER_ONLY_MODIFY = "Forbidden: only project owner can modify steps"


class ProjectService:
    """项目业务服务"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def create_project(
        self, actor: str | None, data: ProjectCreate | Mapping[str, Any]
    ) -> Project:
        """创建项目，调用者成为 owner"""
        data = parse_model(ProjectCreate, data)
        identity = require_identity(actor)

        async with self._stores.unit_of_work():
            project_id = await self._stores.project_store.create_project(
                name=data.name,
                owner=identity.address,
                description=data.description,
                now=datetime.now(UTC),
            )
            project = await self._stores.project_store.get_project(project_id)

        log.info("project_created", project_id=project_id, slug=project.slug)
        return project

    async def get_project(self, project_id: int) -> Project:
        async with self._stores.read():
            return await self._require_project(project_id)

    async def list_projects(self, owner: str | None = None) -> list[Project]:
        async with self._stores.read():
            return await self._stores.project_store.list_projects(owner=owner)

    async def update_project(
        self,
        project_id: int,
        actor: str | None,
        data: ProjectUpdate | Mapping[str, Any],
    ) -> Project:
        """修改项目名称与描述（仅 owner）"""
        data = parse_model(ProjectUpdate, data)

        async with self._stores.unit_of_work():
            project = await self._require_project(project_id)
            identity = require_identity(actor)
            if identity.address != project.owner:
                raise ForbiddenError(REASON_OWNER_ONLY_UPDATE, rule="owner_only")
            fields = data.model_fields_set
            await self._stores.project_store.update_project(
                project_id,
                name=data.name if "name" in fields and data.name else project.name,
                description=data.description
                if "description" in fields
                else project.description,
                now=datetime.now(UTC),
            )
            updated = await self._stores.project_store.get_project(project_id)

        log.info("project_updated", project_id=project_id, slug=updated.slug)
        return updated

    async def delete_project(self, project_id: int, actor: str | None) -> None:
        """删除项目（级联删除其 Step 与任务）"""
        async with self._stores.unit_of_work():
            project = await self._require_project(project_id)
            identity = require_identity(actor)
            if identity.address != project.owner:
                raise ForbiddenError(REASON_OWNER_ONLY_DELETE, rule="owner_only")
            await self._stores.project_store.delete_project(project_id)

        log.info("project_deleted", project_id=project_id)

    async def create_step(
        self, actor: str | None, data: StepCreate | Mapping[str, Any]
    ) -> Step:
        """在项目下创建 Step"""
        data = parse_model(StepCreate, data)

        async with self._stores.unit_of_work():
            project = await self._require_project(data.project_id)
            self._require_owner(actor, project)
            step_id = await self._stores.step_store.create_step(
                project_id=data.project_id,
                name=data.name,
                description=data.description,
                now=datetime.now(UTC),
            )
            step = await self._stores.step_store.get_step(step_id)

        log.info("step_created", step_id=step_id, project_id=data.project_id)
        return step

    async def get_step(self, step_id: int) -> Step:
        async with self._stores.read():
            return await self._require_step(step_id)

    async def list_steps(self, project_id: int) -> list[Step]:
        async with self._stores.read():
            await self._require_project(project_id)
            return await self._stores.step_store.list_steps(project_id=project_id)

    async def list_all_steps(self, owner: str | None = None) -> list[Step]:
        """所有项目的 Step，owner 不为空时只返回其名下项目的 Step"""
        async with self._stores.read():
            return await self._stores.step_store.list_steps(owner=owner)

    async def update_step(
        self,
        step_id: int,
        actor: str | None,
        data: StepUpdate | Mapping[str, Any],
    ) -> Step:
        """修改 Step 名称与描述"""
        data = parse_model(StepUpdate, data)

        async with self._stores.unit_of_work():
            step = await self._require_step(step_id)
            self._require_owner(actor, await self._require_project(step.project_id))
            fields = data.model_fields_set
            await self._stores.step_store.update_step(
                step_id,
                name=data.name if "name" in fields and data.name else step.name,
                description=data.description
                if "description" in fields
                else step.description,
                now=datetime.now(UTC),
            )
            return await self._stores.step_store.get_step(step_id)

    async def delete_step(self, step_id: int, actor: str | None) -> None:
        """删除 Step，其下任务保留但不再归属任何 Step"""
        async with self._stores.unit_of_work():
            step = await self._require_step(step_id)
            self._require_owner(actor, await self._require_project(step.project_id))
            await self._stores.step_store.delete_step(step_id)

        log.info("step_deleted", step_id=step_id)

    async def _require_project(self, project_id: int) -> Project:
        # 调用方已持有写锁
        project = await self._stores.project_store.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def _require_step(self, step_id: int) -> Step:
        step = await self._stores.step_store.get_step(step_id)
        if step is None:
            raise NotFoundError("Step", step_id)
        return step

    @staticmethod
    def _require_owner(actor: str | None, project: Project) -> None:
        identity = require_identity(actor)
        if identity.address != project.owner:
            raise ForbiddenError(REASON_OWNER_ONLY_MODIFY, rule="owner_only")
