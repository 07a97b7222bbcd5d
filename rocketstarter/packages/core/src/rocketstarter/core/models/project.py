"""Project / Step Domain Model

Project 的 owner 即项目所有者；Step 是项目内任务的分组，
progress 只由进度聚合器写入。
"""

from datetime import datetime

from pydantic import BaseModel, Field


class Project(BaseModel):
    """Project 数据模型"""

    project_id: int = Field(description="自增主键")
    name: str = Field(description="项目名称")
    slug: str = Field(description="唯一 slug，由名称生成")
    description: str | None = Field(default=None, description="项目描述")
    owner: str = Field(description="项目所有者钱包地址")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")


class Step(BaseModel):
    """Step 数据模型"""

    step_id: int = Field(description="自增主键")
    project_id: int = Field(description="所属项目 ID")
    name: str = Field(description="Step 名称")
    description: str | None = Field(default=None, description="Step 描述")
    progress: float = Field(default=0.0, ge=0, le=100, description="完成百分比")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
