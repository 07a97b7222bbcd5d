"""WorkflowEngine -- 任务变更编排

一次更新请求的流程：
1. 校验变更集（格式错误在规则判定前报告）
2. 在同一 unit of work 内加载任务与所属项目，修复 todo+builder 的不一致记录
3. 解析调用者角色，交给规则表判定
4. 允许则写回任务、追加审计事件、重算受影响 Step 的进度；拒绝则不做任何变更
"""

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from ulid import ULID

from .exceptions import (
    ForbiddenError,
    NotFoundError,
    TaskConflictError,
    TaskValidationError,
    UnauthenticatedError,
)
from .models.changes import TaskChange, TaskCreate
from .models.enums import SYSTEM_ACTOR, EventType, TaskStatus
from .models.event import TaskEvent
from .models.identity import Identity
from .models.project import Project
from .models.task import Task
from .progress import recalculate, recalculate_steps
from .store import StoreGroup
from .transitions import (
    Assignment,
    Decision,
    TransitionRequest,
    evaluate,
    normalize_assignment,
)

log = structlog.get_logger()

REASON_DELETE_FORBIDDEN = "Forbidden: only project owner or task creator can delete"


@dataclass(frozen=True)
class UpdateOutcome:
    """apply_update 的成功结果"""

    task: Task
    decision: Decision


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg', 'invalid value')}" if loc else item["msg"])
    return "; ".join(parts)


M = TypeVar("M", bound=BaseModel)


def parse_model(model: type[M], data: M | Mapping[str, Any]) -> M:
    """把原始入参解析为请求模型，格式错误统一转为 TaskValidationError"""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise TaskValidationError(_format_validation_error(e)) from e


def require_identity(actor: str | None) -> Identity:
    """调用者地址必须非空"""
    if actor is None or not actor.strip():
        raise UnauthenticatedError()
    return Identity(address=actor.strip())


def elapsed_hours(claimed_at: datetime, now: datetime) -> int:
    """认领到现在的小时数，四舍五入，不小于 0"""
    hours = (now - claimed_at).total_seconds() / 3600
    return max(0, math.floor(hours + 0.5))


class WorkflowEngine:
    """任务工作流引擎"""

    def __init__(
        self,
        store_group: StoreGroup,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._stores = store_group
        self._clock = clock or _utcnow

    async def apply_update(
        self,
        task_id: int,
        actor: str | None,
        change: TaskChange | Mapping[str, Any],
    ) -> UpdateOutcome:
        """对单个任务应用一次稀疏更新

        Raises:
            TaskValidationError: 变更集字段非法
            NotFoundError: 任务、所属项目或目标 Step 不存在
            UnauthenticatedError: 缺少调用者地址
            ForbiddenError: 规则表拒绝，reason 说明具体原因
        """
        change = parse_model(TaskChange, change)

        async with self._stores.unit_of_work():
            task, project = await self._load(task_id)
            identity = require_identity(actor)
            content = change.content_updates()
            await self._check_step(content.get("step_id"), task.project_id)

            request = TransitionRequest(
                current=task.status,
                requested=change.requested_status,
                roles=identity.roles_for(task, project),
                has_worker=task.assigned_worker is not None,
                worker_change=change.requests_worker_change(task.assigned_worker),
                requested_worker=change.worker or None,
                has_content=bool(content),
            )
            decision = evaluate(request)
            if decision.allowed:
                updated = await self._apply(
                    task, identity, request, decision, change, content
                )

        # 拒绝时在事务提交后抛出：读路径上的自动修复仍然落盘
        if not decision.allowed:
            log.warning(
                "task_update_denied",
                task_id=task_id,
                actor=identity.address,
                rule=decision.rule,
                reason=decision.reason,
            )
            raise ForbiddenError(decision.reason, rule=decision.rule)

        log.info(
            "task_updated",
            task_id=task_id,
            actor=identity.address,
            rule=decision.rule,
            from_status=task.status.label,
            to_status=updated.status.label,
        )
        return UpdateOutcome(task=updated, decision=decision)

    async def create_task(
        self,
        actor: str | None,
        data: TaskCreate | Mapping[str, Any],
    ) -> Task:
        """创建任务：总是 todo、无 builder，创建者为调用者"""
        data = parse_model(TaskCreate, data)
        identity = require_identity(actor)

        async with self._stores.unit_of_work():
            project = await self._stores.project_store.get_project(data.project_id)
            if project is None:
                raise NotFoundError("Project", data.project_id)
            await self._check_step(data.step_id, project.project_id)

            now = self._clock()
            task_id = await self._stores.task_store.create_task(
                data, identity.address, now
            )
            await self._append_event(
                task_id,
                EventType.TASK_CREATED,
                identity.address,
                {"title": data.title, "step_id": data.step_id},
                now,
            )
            if data.step_id is not None:
                await recalculate(
                    self._stores.task_store, self._stores.step_store, data.step_id, now
                )
            task = await self._stores.task_store.get_task(task_id)

        log.info("task_created", task_id=task_id, project_id=data.project_id)
        return task

    async def get_task(self, task_id: int) -> Task:
        """读取单个任务（读路径同样修复不一致记录）"""
        async with self._stores.unit_of_work():
            task, _ = await self._load(task_id)
        return task

    async def list_tasks(
        self,
        project_id: int | None = None,
        step_id: int | None = None,
        status: TaskStatus | None = None,
        worker: str | None = None,
    ) -> list[Task]:
        """按条件列出任务，返回前先修复所有不一致记录"""
        async with self._stores.unit_of_work():
            await self._repair_all()
            return await self._stores.task_store.list_tasks(
                project_id=project_id,
                step_id=step_id,
                status=status,
                worker=worker,
            )

    async def delete_task(self, task_id: int, actor: str | None) -> None:
        """删除任务：仅项目 owner 或任务创建者"""
        async with self._stores.unit_of_work():
            task, project = await self._load(task_id)
            identity = require_identity(actor)
            if not identity.roles_for(task, project).can_administer:
                raise ForbiddenError(REASON_DELETE_FORBIDDEN, rule="delete")

            await self._stores.task_store.delete_task(task_id)
            if task.step_id is not None:
                await recalculate(
                    self._stores.task_store, self._stores.step_store, task.step_id
                )

        log.info("task_deleted", task_id=task_id, actor=identity.address)

    async def get_task_events(self, task_id: int) -> list[TaskEvent]:
        """查询任务的审计事件"""
        async with self._stores.read():
            task = await self._stores.task_store.get_task(task_id)
            if task is None:
                raise NotFoundError("Task", task_id)
            return await self._stores.event_store.get_events_for_task(task_id)

    async def get_task_detail(self, task_id: int) -> tuple[Task, list[TaskEvent]]:
        """任务与其审计事件在同一事务内读取，二者对应同一提交点"""
        async with self._stores.unit_of_work():
            task, _ = await self._load(task_id)
            events = await self._stores.event_store.get_events_for_task(task_id)
        return task, events

    async def recalculate_step(self, step_id: int) -> float:
        """重算单个 Step 的进度（管理修复入口）"""
        async with self._stores.unit_of_work():
            step = await self._stores.step_store.get_step(step_id)
            if step is None:
                raise NotFoundError("Step", step_id)
            return await recalculate(
                self._stores.task_store, self._stores.step_store, step_id, self._clock()
            )

    async def normalize_all(self) -> int:
        """修复全部 todo+builder 记录，返回修复数量"""
        async with self._stores.unit_of_work():
            return await self._repair_all()

    async def _load(self, task_id: int) -> tuple[Task, Project]:
        """加载任务与项目并修复不一致（调用方持有事务）"""
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        project = await self._stores.project_store.get_project(task.project_id)
        if project is None:
            raise NotFoundError("Project", task.project_id)
        return await self._repair(task), project

    async def _repair(self, task: Task) -> Task:
        repaired, changed = normalize_assignment(task)
        if not changed:
            return task

        now = self._clock()
        repaired = repaired.model_copy(update={"updated_at": now})
        saved = await self._stores.task_store.update_task(repaired, task.version)
        await self._append_event(
            task.task_id,
            EventType.TASK_REPAIRED,
            SYSTEM_ACTOR,
            {"cleared_worker": task.assigned_worker},
            now,
        )
        log.info(
            "task_assignment_repaired",
            task_id=task.task_id,
            cleared_worker=task.assigned_worker,
        )
        return saved

    async def _repair_all(self) -> int:
        task_ids = await self._stores.task_store.list_inconsistent_task_ids()
        for task_id in task_ids:
            task = await self._stores.task_store.get_task(task_id)
            if task is not None:
                await self._repair(task)
        return len(task_ids)

    async def _check_step(self, step_id: int | None, project_id: int) -> None:
        """目标 Step 必须存在且属于同一项目"""
        if step_id is None:
            return
        step = await self._stores.step_store.get_step(step_id)
        if step is None:
            raise NotFoundError("Step", step_id)
        if step.project_id != project_id:
            raise TaskValidationError(
                f"step {step_id} does not belong to project {project_id}"
            )

    async def _apply(
        self,
        task: Task,
        identity: Identity,
        request: TransitionRequest,
        decision: Decision,
        change: TaskChange,
        content: dict[str, Any],
    ) -> Task:
        """把允许的判定结果写回任务（调用方持有事务）"""
        now = self._clock()
        updates: dict[str, Any] = {"updated_at": now}

        if decision.content_only:
            updates.update(content)
        else:
            updates["status"] = decision.target_status(request)

        match decision.assignment:
            case Assignment.ACTOR:
                updates["assigned_worker"] = identity.address
            case Assignment.CLEAR:
                updates["assigned_worker"] = None
            case Assignment.REQUESTED:
                updates["assigned_worker"] = change.worker or None
            case Assignment.KEEP:
                pass

        if decision.stamp_claim:
            updates["claimed_at"] = now
        if decision.record_duration and task.claimed_at is not None:
            updates["duration"] = elapsed_hours(task.claimed_at, now)

        candidate = Task.model_validate({**task.model_dump(), **updates})
        try:
            saved = await self._stores.task_store.update_task(candidate, task.version)
        except TaskConflictError as e:
            raise ForbiddenError(str(e), rule="version_conflict") from e

        await self._append_event(
            task.task_id,
            EventType.TASK_CONTENT_UPDATED
            if decision.content_only
            else EventType.TASK_TRANSITIONED,
            identity.address,
            {
                "rule": decision.rule,
                "from_status": int(task.status),
                "to_status": int(saved.status),
                "from_worker": task.assigned_worker,
                "to_worker": saved.assigned_worker,
                "fields": sorted(content) if decision.content_only else [],
            },
            now,
        )

        if task.status != saved.status or task.step_id != saved.step_id:
            await recalculate_steps(
                self._stores.task_store,
                self._stores.step_store,
                {task.step_id, saved.step_id},
                now,
            )
        return saved

    async def _append_event(
        self,
        task_id: int,
        event_type: EventType,
        actor: str,
        payload: dict[str, Any],
        now: datetime,
    ) -> TaskEvent:
        seq = await self._stores.event_store.get_next_task_seq(task_id)
        event = TaskEvent(
            event_id=str(ULID()),
            task_id=task_id,
            task_seq=seq,
            ts=now,
            type=event_type,
            actor=actor,
            payload=payload,
        )
        await self._stores.event_store.append_event(event)
        return event
