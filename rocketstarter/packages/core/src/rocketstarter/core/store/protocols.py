"""Store Protocol 接口定义

定义 TaskStore、StepStore、ProjectStore、EventStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
工作流引擎只依赖这些接口，不依赖具体的 SQLite 实现。
"""

from datetime import datetime
from typing import Protocol

from ..models.changes import TaskCreate
from ..models.enums import TaskStatus
from ..models.event import TaskEvent
from ..models.project import Project, Step
from ..models.task import Task


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(self, data: TaskCreate, task_creator: str, now: datetime) -> int:
        """创建任务记录，返回 task_id"""
        ...

    async def get_task(self, task_id: int) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def list_tasks(
        self,
        project_id: int | None = None,
        step_id: int | None = None,
        status: TaskStatus | None = None,
        worker: str | None = None,
    ) -> list[Task]:
        """按父级或状态查询任务"""
        ...

    async def update_task(self, task: Task, expected_version: int) -> Task:
        """带版本检查写回任务"""
        ...

    async def delete_task(self, task_id: int) -> None:
        """删除任务"""
        ...

    async def count_step_tasks(self, step_id: int) -> tuple[int, int]:
        """统计 Step 下的 (total, done)"""
        ...


class StepStore(Protocol):
    """Step 存储接口"""

    async def get_step(self, step_id: int) -> Step | None:
        """根据 step_id 查询 Step"""
        ...

    async def set_progress(self, step_id: int, progress: float, now: datetime) -> None:
        """写入进度"""
        ...


class ProjectStore(Protocol):
    """Project 查询接口 -- 用于解析任务所属项目的 owner"""

    async def get_project(self, project_id: int) -> Project | None:
        """根据 project_id 查询项目"""
        ...


class EventStore(Protocol):
    """TaskEvent 存储接口

    事件表 append-only：只允许插入，不允许更新。
    """

    async def append_event(self, event: TaskEvent) -> None:
        """追加事件（append-only）"""
        ...

    async def get_events_for_task(self, task_id: int) -> list[TaskEvent]:
        """查询指定任务的所有事件"""
        ...

    async def get_next_task_seq(self, task_id: int) -> int:
        """获取指定任务的下一个 task_seq（MAX+1）"""
        ...
