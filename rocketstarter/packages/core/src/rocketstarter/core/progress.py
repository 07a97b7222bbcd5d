"""Step 进度聚合

progress = 100 × 已完成任务数 / 任务总数，四舍五入到两位小数；
没有任务的 Step 进度为 0。
必须在触发它的任务变更所在的同一事务内调用，二者永不分离。
"""

import time
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

import structlog

from .config import PROGRESS_PRECISION
from .store.protocols import StepStore, TaskStore

log = structlog.get_logger()

_QUANTUM = Decimal(1).scaleb(-PROGRESS_PRECISION)


def compute_progress(total: int, done: int) -> float:
    """按完成比例计算进度百分比

    Args:
        total: Step 下任务总数
        done: 状态为 done 的任务数

    Returns:
        0-100 之间、两位小数的百分比
    """
    if total <= 0:
        return 0.0
    ratio = Decimal(100 * done) / Decimal(total)
    return float(ratio.quantize(_QUANTUM, rounding=ROUND_HALF_UP))


async def recalculate(
    task_store: TaskStore,
    step_store: StepStore,
    step_id: int,
    now: datetime | None = None,
) -> float:
    """重算并写入单个 Step 的进度

    调用方负责事务；Step 不存在时不写入，返回 0。
    """
    total, done = await task_store.count_step_tasks(step_id)
    progress = compute_progress(total, done)
    await step_store.set_progress(step_id, progress, now or datetime.now(UTC))
    log.debug(
        "step_progress_recalculated",
        step_id=step_id,
        total=total,
        done=done,
        progress=progress,
    )
    return progress


async def recalculate_steps(
    task_store: TaskStore,
    step_store: StepStore,
    step_ids: set[int | None],
    now: datetime | None = None,
) -> dict[int, float]:
    """重算一组受影响 Step 的进度（忽略 None）"""
    results: dict[int, float] = {}
    for step_id in sorted(s for s in step_ids if s is not None):
        results[step_id] = await recalculate(task_store, step_store, step_id, now)
    return results


async def recalculate_all(store_group) -> int:
    """重算所有 Step 的进度（管理修复入口）

    Returns:
        处理的 Step 数量
    """
    start_time = time.monotonic()
    async with store_group.unit_of_work():
        steps = await store_group.step_store.list_steps()
        await recalculate_steps(
            store_group.task_store,
            store_group.step_store,
            {step.step_id for step in steps},
        )

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "progress_rebuild_completed",
        step_count=len(steps),
        elapsed_ms=elapsed_ms,
    )
    return len(steps)
