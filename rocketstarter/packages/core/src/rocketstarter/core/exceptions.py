"""工作流异常体系

四类失败互不重叠，均为终态错误，不在内部重试，原样返回给调用方：
NotFound / Unauthenticated / Forbidden / Validation。
"""


class WorkflowError(Exception):
    """Core 包基础异常"""

    code: str = "WORKFLOW_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(WorkflowError):
    """任务、Step 或项目不存在"""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity} with id {entity_id} does not exist")
        self.entity = entity
        self.entity_id = entity_id


class UnauthenticatedError(WorkflowError):
    """缺少调用者身份"""

    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "user address required") -> None:
        super().__init__(message)


class ForbiddenError(WorkflowError):
    """角色或状态规则拒绝了本次请求

    reason 区分 locked / must validate or reject first / cannot skip review / unauthorized。
    """

    code = "FORBIDDEN"

    def __init__(self, reason: str, rule: str = "") -> None:
        super().__init__(reason)
        self.reason = reason
        self.rule = rule


class TaskValidationError(WorkflowError):
    """字段取值非法，例如 effort 不在斐波那契集合内"""

    code = "VALIDATION_ERROR"


class TaskConflictError(WorkflowError):
    """写入时版本号不匹配：任务已被另一请求修改"""

    code = "CONFLICT"

    def __init__(self, task_id: int, expected_version: int) -> None:
        super().__init__(
            f"task {task_id} was modified by another request "
            f"(expected version {expected_version})"
        )
        self.task_id = task_id
        self.expected_version = expected_version
