"""TaskEvent Domain Model

审计事件表 append-only，不允许更新。
event_id 使用 ULID 格式，时间有序；task_seq 同一 task 内严格单调递增。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import EventType


class TaskEvent(BaseModel):
    """Task 审计事件"""

    event_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    task_id: int = Field(description="关联的 Task ID")
    task_seq: int = Field(description="任务内序号，严格单调递增")
    ts: datetime = Field(description="事件时间戳")
    type: EventType = Field(description="事件类型")
    actor: str = Field(description="操作者钱包地址或 system")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")
