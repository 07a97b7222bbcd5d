"""packages/core 测试配置 -- 项目/Step/任务种子数据 fixture"""

from dataclasses import dataclass
from datetime import UTC, datetime

import pytest_asyncio

OWNER = "0xowner"
CREATOR = "0xcreator"
BUILDER_A = "0xbuilder-a"
BUILDER_B = "0xbuilder-b"
STRANGER = "0xstranger"


@dataclass
class Seed:
    """一个项目 + 一个 Step"""

    project_id: int
    step_id: int


@pytest_asyncio.fixture
async def seed(store_group) -> Seed:
    """OWNER 拥有的项目，含一个空 Step"""
    now = datetime.now(UTC)
    async with store_group.unit_of_work():
        project_id = await store_group.project_store.create_project(
            name="Rocket Launch", owner=OWNER, description=None, now=now
        )
        step_id = await store_group.step_store.create_step(
            project_id=project_id, name="Design", description=None, now=now
        )
    return Seed(project_id=project_id, step_id=step_id)


@pytest_asyncio.fixture
async def make_task(engine, seed):
    """创建任务的工厂，默认由 CREATOR 在种子 Step 下创建"""

    async def _make(title: str = "Build landing page", **fields):
        data = {"project_id": seed.project_id, "step_id": seed.step_id, "title": title}
        data.update(fields)
        return await engine.create_task(CREATOR, data)

    return _make


@pytest_asyncio.fixture
async def force_state(store_group):
    """绕过规则表直接写入任务状态，用于构造前置条件或不一致记录"""

    async def _force(task_id: int, status: int, worker: str | None):
        async with store_group.unit_of_work():
            task = await store_group.task_store.get_task(task_id)
            forced = task.model_copy(update={"status": status, "assigned_worker": worker})
            return await store_group.task_store.update_task(forced, task.version)

    return _force
