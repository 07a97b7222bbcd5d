"""事务一致性与存储层测试

测试内容：
1. unit_of_work 成功提交 / 异常回滚 / 取消回滚
2. 乐观锁版本冲突
3. 项目 slug 唯一性
4. 外键级联与 WAL 模式
"""

import asyncio
from datetime import UTC, datetime

import pytest
from rocketstarter.core.exceptions import TaskConflictError
from rocketstarter.core.models import TaskCreate, TaskStatus
from rocketstarter.core.store.project_store import slugify
from rocketstarter.core.store.sqlite_init import verify_wal_mode


async def _create_task(store_group, seed, title: str = "persisted") -> int:
    async with store_group.unit_of_work():
        return await store_group.task_store.create_task(
            TaskCreate(project_id=seed.project_id, step_id=seed.step_id, title=title),
            "0xcreator",
            datetime.now(UTC),
        )


class TestUnitOfWork:
    """原子事务"""

    async def test_commit_on_success(self, store_group, seed):
        task_id = await _create_task(store_group, seed)
        task = await store_group.task_store.get_task(task_id)
        assert task.title == "persisted"
        assert task.status == TaskStatus.TODO
        assert task.assigned_worker is None

    async def test_rollback_on_error(self, store_group, seed):
        with pytest.raises(RuntimeError):
            async with store_group.unit_of_work():
                await store_group.task_store.create_task(
                    TaskCreate(project_id=seed.project_id, title="lost"),
                    "0xcreator",
                    datetime.now(UTC),
                )
                raise RuntimeError("boom")

        assert await store_group.task_store.list_tasks() == []

    async def test_rollback_on_cancel(self, store_group, seed):
        """请求被取消时同样回滚，不留下部分写入"""
        started = asyncio.Event()

        async def slow_write():
            async with store_group.unit_of_work():
                await store_group.task_store.create_task(
                    TaskCreate(project_id=seed.project_id, title="cancelled"),
                    "0xcreator",
                    datetime.now(UTC),
                )
                started.set()
                await asyncio.sleep(10)

        job = asyncio.create_task(slow_write())
        await started.wait()
        job.cancel()
        with pytest.raises(asyncio.CancelledError):
            await job

        assert await store_group.task_store.list_tasks() == []
        assert not store_group.write_lock.locked()

    async def test_lock_released_after_error(self, store_group, seed):
        with pytest.raises(ValueError):
            async with store_group.unit_of_work():
                raise ValueError("fail")
        # 下一个事务不被阻塞
        await _create_task(store_group, seed)


class TestVersionCheck:
    """乐观锁"""

    async def test_update_bumps_version(self, store_group, seed):
        task_id = await _create_task(store_group, seed)
        task = await store_group.task_store.get_task(task_id)

        async with store_group.unit_of_work():
            saved = await store_group.task_store.update_task(
                task.model_copy(update={"title": "renamed"}), task.version
            )

        assert saved.version == 2
        stored = await store_group.task_store.get_task(task_id)
        assert stored.version == 2
        assert stored.title == "renamed"

    async def test_stale_version_conflicts(self, store_group, seed):
        task_id = await _create_task(store_group, seed)
        task = await store_group.task_store.get_task(task_id)
        async with store_group.unit_of_work():
            await store_group.task_store.update_task(task, task.version)

        with pytest.raises(TaskConflictError):
            async with store_group.unit_of_work():
                await store_group.task_store.update_task(task, task.version)


class TestProjectStore:
    """项目与 Step 存储"""

    def test_slugify(self):
        assert slugify("Rocket Launch!") == "rocket-launch"

    async def test_duplicate_names_get_unique_slugs(self, store_group):
        now = datetime.now(UTC)
        async with store_group.unit_of_work():
            first = await store_group.project_store.create_project("Moon Base", "0xa", None, now)
            second = await store_group.project_store.create_project("Moon Base", "0xb", None, now)

        slugs = {
            (await store_group.project_store.get_project(pid)).slug for pid in (first, second)
        }
        assert slugs == {"moon-base", "moon-base-2"}

    async def test_list_projects_by_owner(self, store_group, seed):
        projects = await store_group.project_store.list_projects(owner="0xowner")
        assert [p.project_id for p in projects] == [seed.project_id]
        assert await store_group.project_store.list_projects(owner="0xnobody") == []

    async def test_delete_project_cascades(self, store_group, seed):
        await _create_task(store_group, seed)
        async with store_group.unit_of_work():
            await store_group.project_store.delete_project(seed.project_id)

        assert await store_group.step_store.get_step(seed.step_id) is None
        assert await store_group.task_store.list_tasks() == []

    async def test_delete_step_detaches_tasks(self, store_group, seed):
        task_id = await _create_task(store_group, seed)
        async with store_group.unit_of_work():
            await store_group.step_store.delete_step(seed.step_id)

        task = await store_group.task_store.get_task(task_id)
        assert task.step_id is None


class TestSqliteInit:
    """数据库初始化"""

    async def test_wal_mode_enabled(self, store_group):
        assert await verify_wal_mode(store_group.conn)

    async def test_init_is_idempotent(self, db_conn):
        from rocketstarter.core.store.sqlite_init import init_db

        await init_db(db_conn)
        cursor = await db_conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
        )
        tables = {row[0] for row in await cursor.fetchall()}
        assert {"projects", "steps", "tasks", "task_events"} <= tables
