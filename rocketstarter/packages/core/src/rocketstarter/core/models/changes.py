"""请求变更集 -- 创建与更新的入参模型

TaskChange 是稀疏变更：只有调用方显式给出的字段才参与工作流判定，
用 model_fields_set 区分「未提供」与「显式置空」。
字段格式错误在进入规则判定前就以校验失败报告。
"""

from datetime import datetime
from typing import Any

from pydantic import (
    BaseModel,
    Field,
    HttpUrl,
    StrictInt,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from ..config import LINK_MAX_LENGTH, TITLE_MAX_LENGTH
from .enums import TaskStatus
from .task import check_effort

# 允许通过内容更新修改的字段
CONTENT_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "link",
    "image",
    "effort",
    "priority",
    "step_id",
    "due_date",
)

_URL_ADAPTER = TypeAdapter(HttpUrl)


def _check_link(value: str | None) -> str | None:
    if value is not None:
        try:
            _URL_ADAPTER.validate_python(value)
        except ValidationError as e:
            raise ValueError("link must be a valid http(s) URL") from e
    return value


class _TaskContent(BaseModel):
    """任务内容字段（创建与更新共用的校验）"""

    description: str | None = None
    link: str | None = Field(default=None, max_length=LINK_MAX_LENGTH)
    image: str | None = Field(default=None, max_length=LINK_MAX_LENGTH)
    effort: StrictInt | None = None
    priority: StrictInt | None = Field(default=None, ge=0, le=2)
    step_id: StrictInt | None = None
    due_date: datetime | None = None

    @field_validator("effort")
    @classmethod
    def _validate_effort(cls, value: int | None) -> int | None:
        return check_effort(value)

    @field_validator("link")
    @classmethod
    def _validate_link(cls, value: str | None) -> str | None:
        return _check_link(value)


class TaskCreate(_TaskContent):
    """任务创建请求

    status / builder 不在此模型中：新任务总是 todo 且无人认领。
    """

    project_id: StrictInt
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)


class TaskChange(_TaskContent):
    """任务稀疏更新请求"""

    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    status: StrictInt | None = Field(default=None, ge=0, le=3)
    worker: str | None = Field(default=None, description="显式指定 builder，null 表示清空")

    @field_validator("title")
    @classmethod
    def _validate_title(cls, value: str | None) -> str | None:
        if value is None:
            raise ValueError("title cannot be null")
        return value

    @property
    def requested_status(self) -> TaskStatus | None:
        if "status" not in self.model_fields_set or self.status is None:
            return None
        return TaskStatus(self.status)

    def requests_worker_change(self, current_worker: str | None) -> bool:
        """是否显式请求了与当前不同的 builder"""
        if "worker" not in self.model_fields_set:
            return False
        return (self.worker or None) != current_worker

    def content_updates(self) -> dict[str, Any]:
        """显式提供的内容字段"""
        return {
            name: getattr(self, name)
            for name in CONTENT_FIELDS
            if name in self.model_fields_set
        }


class ProjectCreate(BaseModel):
    """项目创建请求，owner 即调用者"""

    name: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = None


class ProjectUpdate(BaseModel):
    """项目更新请求，owner 不可转移；改名时 slug 随之重新生成"""

    name: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = None


class StepCreate(BaseModel):
    """Step 创建请求，progress 始终从 0 开始"""

    project_id: StrictInt
    name: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = None


class StepUpdate(BaseModel):
    """Step 更新请求，progress 不允许直接修改"""

    name: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = None
