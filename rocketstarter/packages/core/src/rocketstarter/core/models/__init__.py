"""RocketStarter Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .changes import (
    CONTENT_FIELDS,
    ProjectCreate,
    ProjectUpdate,
    StepCreate,
    StepUpdate,
    TaskChange,
    TaskCreate,
)
from .enums import (
    LOCKED_STATES,
    SYSTEM_ACTOR,
    TASK_STATUS_LABELS,
    EventType,
    TaskPriority,
    TaskStatus,
)
from .event import TaskEvent
from .identity import ActorRoles, Identity
from .project import Project, Step
from .task import Task

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskPriority",
    "EventType",
    "TASK_STATUS_LABELS",
    "LOCKED_STATES",
    "SYSTEM_ACTOR",
    # 实体
    "Task",
    "Project",
    "Step",
    "TaskEvent",
    # 身份
    "Identity",
    "ActorRoles",
    # 请求
    "TaskCreate",
    "TaskChange",
    "ProjectCreate",
    "ProjectUpdate",
    "StepCreate",
    "StepUpdate",
    "CONTENT_FIELDS",
]
