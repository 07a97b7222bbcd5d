"""身份上下文 -- 调用者地址及其相对某个任务的角色

角色不落库，每次由调用者地址与项目 owner、任务创建者、当前 builder 比较得出。
"""

from pydantic import BaseModel, ConfigDict, Field

from .project import Project
from .task import Task


class ActorRoles(BaseModel):
    """调用者相对某个任务持有的角色"""

    model_config = ConfigDict(frozen=True)

    is_project_owner: bool = False
    is_task_creator: bool = False
    is_assigned_worker: bool = False

    @property
    def can_administer(self) -> bool:
        """项目 owner 或任务创建者拥有管理权限"""
        return self.is_project_owner or self.is_task_creator

    @property
    def is_unrelated(self) -> bool:
        return not (self.can_administer or self.is_assigned_worker)


class Identity(BaseModel):
    """已认证的调用者"""

    model_config = ConfigDict(frozen=True)

    address: str = Field(description="钱包地址")

    def roles_for(self, task: Task, project: Project) -> ActorRoles:
        """计算调用者相对该任务的角色"""
        return ActorRoles(
            is_project_owner=self.address == project.owner,
            is_task_creator=task.task_creator is not None
            and self.address == task.task_creator,
            is_assigned_worker=task.assigned_worker is not None
            and self.address == task.assigned_worker,
        )
