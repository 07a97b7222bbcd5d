"""枚举定义

包含 TaskStatus 生命周期状态、TaskPriority 优先级、EventType 审计事件类型。
状态与优先级以小整数持久化和传输，永远不是字符串。
"""

from enum import IntEnum, StrEnum


class TaskStatus(IntEnum):
    """Task 生命周期状态"""

    TODO = 0
    IN_PROGRESS = 1
    IN_REVIEW = 2
    DONE = 3

    @property
    def label(self) -> str:
        return TASK_STATUS_LABELS[self]


TASK_STATUS_LABELS: dict[TaskStatus, str] = {
    TaskStatus.TODO: "todo",
    TaskStatus.IN_PROGRESS: "inprogress",
    TaskStatus.IN_REVIEW: "inreview",
    TaskStatus.DONE: "done",
}

# 审核中的任务锁定在当前 builder 上
LOCKED_STATES: frozenset[TaskStatus] = frozenset({TaskStatus.IN_REVIEW})


class TaskPriority(IntEnum):
    """Task 优先级"""

    LOW = 0
    MEDIUM = 1
    HIGH = 2


class EventType(StrEnum):
    """Task 审计事件类型"""

    TASK_CREATED = "TASK_CREATED"
    TASK_TRANSITIONED = "TASK_TRANSITIONED"
    TASK_CONTENT_UPDATED = "TASK_CONTENT_UPDATED"
    TASK_REPAIRED = "TASK_REPAIRED"


# 系统自动修复时记录的 actor
SYSTEM_ACTOR = "system"
