"""Task Domain Model

status 与 assigned_worker 之间的一致性由工作流引擎维护：
todo 状态的任务不能带有 assigned_worker。
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from ..config import EFFORT_VALUES
from .enums import TaskPriority, TaskStatus


def check_effort(value: int | None) -> int | None:
    """effort 必须是斐波那契取值之一"""
    if value is not None and value not in EFFORT_VALUES:
        allowed = ", ".join(str(v) for v in sorted(EFFORT_VALUES))
        raise ValueError(f"effort must be one of {allowed}")
    return value


class Task(BaseModel):
    """Task 数据模型"""

    task_id: int = Field(description="自增主键")
    project_id: int = Field(description="所属项目 ID")
    step_id: int | None = Field(default=None, description="所属 Step ID")
    title: str = Field(description="任务标题")
    description: str | None = Field(default=None, description="任务描述")
    link: str | None = Field(default=None, description="外部链接")
    image: str | None = Field(default=None, description="图片地址")
    task_creator: str | None = Field(default=None, description="创建者钱包地址")
    assigned_worker: str | None = Field(default=None, description="当前 builder 钱包地址")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="生命周期状态")
    effort: int | None = Field(default=None, description="工作量估计（斐波那契）")
    priority: TaskPriority | None = Field(default=None, description="优先级")
    claimed_at: datetime | None = Field(default=None, description="被认领时间")
    duration: int | None = Field(default=None, description="认领到验收的小时数")
    due_date: datetime | None = Field(default=None, description="截止时间")
    version: int = Field(default=1, description="乐观锁版本号，每次写入递增")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    @field_validator("effort")
    @classmethod
    def _validate_effort(cls, value: int | None) -> int | None:
        return check_effort(value)
