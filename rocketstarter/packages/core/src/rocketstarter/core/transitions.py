"""任务生命周期规则表

(当前状态, 请求状态, 角色集合, 是否已有 builder) -> 允许的变更 或 拒绝原因。
纯函数、无副作用。规则按 TRANSITION_RULES 中的顺序匹配，首个命中者生效；
无规则命中时拒绝。

状态：0=todo 1=inprogress 2=inreview 3=done
"""

from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import StrEnum

from .models.enums import LOCKED_STATES, TaskStatus
from .models.identity import ActorRoles
from .models.task import Task

TODO = TaskStatus.TODO
IN_PROGRESS = TaskStatus.IN_PROGRESS
IN_REVIEW = TaskStatus.IN_REVIEW
DONE = TaskStatus.DONE

REASON_UNAUTHORIZED = "Forbidden: workflow rule violation or unauthorized"
REASON_LOCKED = "Task in review is locked to assigned builder"
REASON_MUST_VALIDATE = (
    "Cannot reassign task while in review - must validate (2→3) or reject (2→1) first"
)
REASON_NOT_FREE = "Task is no longer free - it has already been claimed"
REASON_TODO_WORKER = "A todo task cannot have an assigned builder - it must be claimed"
REASON_SKIP_REVIEW = (
    "Cannot skip review process - task must go from in-progress (1) to review (2) first"
)


class Assignment(StrEnum):
    """规则对 assigned_worker 的处理方式"""

    KEEP = "keep"
    ACTOR = "actor"
    CLEAR = "clear"
    REQUESTED = "requested"


@dataclass(frozen=True)
class TransitionRequest:
    """一次更新请求在规则表眼中的样子"""

    current: TaskStatus
    requested: TaskStatus | None
    roles: ActorRoles
    has_worker: bool
    worker_change: bool = False
    requested_worker: str | None = None
    has_content: bool = False

    @property
    def status_change(self) -> bool:
        return self.requested is not None and self.requested != self.current

    def moves(self, current: TaskStatus, requested: TaskStatus) -> bool:
        return self.current == current and self.requested == requested


@dataclass(frozen=True)
class Decision:
    """规则判定结果

    allowed=False 时只有 rule 与 reason 有意义。
    status=None 且 use_requested_status=False 表示状态不变。
    """

    rule: str
    allowed: bool
    status: TaskStatus | None = None
    use_requested_status: bool = False
    assignment: Assignment = Assignment.KEEP
    stamp_claim: bool = False
    record_duration: bool = False
    content_only: bool = False
    reason: str = ""
    message: str = ""

    def target_status(self, request: TransitionRequest) -> TaskStatus:
        """判定后的任务状态"""
        if self.use_requested_status and request.requested is not None:
            return request.requested
        return self.status if self.status is not None else request.current


@dataclass(frozen=True)
class TransitionRule:
    name: str
    applies: Callable[[TransitionRequest], bool]
    outcome: Decision


def _allow(rule: str, message: str, **changes) -> Decision:
    return Decision(rule=rule, allowed=True, message=message, **changes)


def _deny(rule: str, reason: str) -> Decision:
    return Decision(rule=rule, allowed=False, reason=reason)


def _worker(r: TransitionRequest) -> bool:
    return r.roles.is_assigned_worker


def _admin(r: TransitionRequest) -> bool:
    return r.roles.can_administer


# 规则顺序即优先级
TRANSITION_RULES: tuple[TransitionRule, ...] = (
    TransitionRule(
        "claim",
        lambda r: r.moves(TODO, IN_PROGRESS),
        _allow(
            "claim",
            "Task claimed by builder",
            status=IN_PROGRESS,
            assignment=Assignment.ACTOR,
            stamp_claim=True,
        ),
    ),
    TransitionRule(
        "release",
        lambda r: r.moves(IN_PROGRESS, TODO) and _worker(r),
        _allow(
            "release",
            "Task released back to todo",
            status=TODO,
            assignment=Assignment.CLEAR,
        ),
    ),
    TransitionRule(
        "submit_review",
        lambda r: r.moves(IN_PROGRESS, IN_REVIEW) and _worker(r),
        _allow("submit_review", "Task sent to review", status=IN_REVIEW),
    ),
    TransitionRule(
        "recall_review",
        lambda r: r.moves(IN_REVIEW, IN_PROGRESS) and _worker(r),
        _allow("recall_review", "Task back to in progress", status=IN_PROGRESS),
    ),
    TransitionRule(
        "release_review",
        lambda r: r.moves(IN_REVIEW, TODO) and _worker(r),
        _allow(
            "release_review",
            "Task released from review to todo",
            status=TODO,
            assignment=Assignment.CLEAR,
        ),
    ),
    # 验收不更换 builder：奖励归属完成工作的人
    TransitionRule(
        "accept",
        lambda r: r.moves(IN_REVIEW, DONE) and _admin(r),
        _allow("accept", "Task validated", status=DONE, record_duration=True),
    ),
    TransitionRule(
        "reject",
        lambda r: r.moves(IN_REVIEW, IN_PROGRESS) and _admin(r),
        _allow("reject", "Task rejected, back to in progress", status=IN_PROGRESS),
    ),
    TransitionRule(
        "review_lock",
        lambda r: r.current in LOCKED_STATES and r.roles.is_unrelated,
        _deny("review_lock", REASON_LOCKED),
    ),
    TransitionRule(
        "review_reassign",
        lambda r: r.current in LOCKED_STATES
        and _admin(r)
        and (r.worker_change or r.requested == IN_REVIEW),
        _deny("review_reassign", REASON_MUST_VALIDATE),
    ),
    TransitionRule(
        "claim_conflict",
        lambda r: r.requested == IN_PROGRESS
        and r.current in (IN_PROGRESS, DONE)
        and r.roles.is_unrelated,
        _deny("claim_conflict", REASON_NOT_FREE),
    ),
    TransitionRule(
        "reset",
        lambda r: r.moves(DONE, TODO) and _admin(r),
        _allow("reset", "Task reset to todo", status=TODO, assignment=Assignment.CLEAR),
    ),
    TransitionRule(
        "reassign_todo",
        lambda r: _admin(r)
        and r.worker_change
        and r.current == TODO
        and r.requested_worker is not None,
        _deny("reassign_todo", REASON_TODO_WORKER),
    ),
    TransitionRule(
        "reassign",
        lambda r: _admin(r) and r.worker_change and r.current not in LOCKED_STATES,
        _allow("reassign", "Task builder updated", assignment=Assignment.REQUESTED),
    ),
    TransitionRule(
        "skip_review",
        lambda r: r.moves(IN_PROGRESS, DONE),
        _deny("skip_review", REASON_SKIP_REVIEW),
    ),
    TransitionRule(
        "override_to_todo",
        lambda r: _admin(r) and r.status_change and r.current not in LOCKED_STATES
        and r.requested == TODO,
        _allow(
            "override_to_todo",
            "Task status updated",
            status=TODO,
            assignment=Assignment.CLEAR,
        ),
    ),
    TransitionRule(
        "override",
        lambda r: _admin(r) and r.status_change and r.current not in LOCKED_STATES,
        _allow("override", "Task status updated", use_requested_status=True),
    ),
    TransitionRule(
        "content",
        lambda r: not r.status_change
        and not r.worker_change
        and r.has_content
        and not r.roles.is_unrelated,
        _allow("content", "Task content updated", content_only=True),
    ),
)

RULE_ORDER: tuple[str, ...] = tuple(rule.name for rule in TRANSITION_RULES)

UNMATCHED = _deny("unmatched", REASON_UNAUTHORIZED)


def repair_request(request: TransitionRequest) -> TransitionRequest:
    """todo 任务上残留的 builder 在判定前被清除

    清除后调用者不再被视为该任务的 builder。已一致的请求原样返回。
    """
    if request.current != TODO or not request.has_worker:
        return request
    return replace(
        request,
        has_worker=False,
        roles=request.roles.model_copy(update={"is_assigned_worker": False}),
    )


def evaluate(request: TransitionRequest) -> Decision:
    """按规则顺序判定一次更新请求

    Returns:
        首个命中规则的 Decision；无规则命中时返回 UNMATCHED
    """
    request = repair_request(request)
    for rule in TRANSITION_RULES:
        if rule.applies(request):
            return rule.outcome
    return UNMATCHED


def normalize_assignment(task: Task) -> tuple[Task, bool]:
    """修复 todo 任务仍带 builder 的不一致记录

    幂等：对一致的任务返回原对象与 False。

    Returns:
        (修复后的任务, 是否发生了修复)
    """
    if task.status == TaskStatus.TODO and task.assigned_worker is not None:
        return task.model_copy(update={"assigned_worker": None}), True
    return task, False
