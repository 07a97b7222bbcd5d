"""TaskStore SQLite 实现

所有写操作不自动提交事务，需由调用方通过 unit_of_work 管理。
update_task 以 version 做乐观锁检查，防止并发请求互相覆盖。
"""

from datetime import datetime

import aiosqlite

from ..exceptions import TaskConflictError
from ..models.changes import TaskCreate
from ..models.enums import TaskStatus
from ..models.task import Task

_TASK_COLUMNS = (
    "task_id, project_id, step_id, title, description, link, image, task_creator, "
    "assigned_worker, status, effort, priority, claimed_at, duration, due_date, "
    "version, created_at, updated_at"
)


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(
        self,
        data: TaskCreate,
        task_creator: str,
        now: datetime,
    ) -> int:
        """创建任务记录，总是 todo 且无人认领

        Returns:
            新任务的 task_id
        """
        cursor = await self._conn.execute(
            """
            INSERT INTO tasks (project_id, step_id, title, description, link, image,
                               task_creator, assigned_worker, status, effort, priority,
                               due_date, version, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, NULL, ?, ?, ?, ?, 1, ?, ?)
            """,
            (
                data.project_id,
                data.step_id,
                data.title,
                data.description,
                data.link,
                data.image,
                task_creator,
                TaskStatus.TODO.value,
                data.effort,
                data.priority,
                _dt(data.due_date),
                now.isoformat(),
                now.isoformat(),
            ),
        )
        return cursor.lastrowid

    async def get_task(self, task_id: int) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_TASK_COLUMNS} FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks(
        self,
        project_id: int | None = None,
        step_id: int | None = None,
        status: TaskStatus | None = None,
        worker: str | None = None,
    ) -> list[Task]:
        """查询任务列表，支持组合筛选，按 task_id 正序"""
        clauses: list[str] = []
        params: list[object] = []
        if project_id is not None:
            clauses.append("project_id = ?")
            params.append(project_id)
        if step_id is not None:
            clauses.append("step_id = ?")
            params.append(step_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(int(status))
        if worker is not None:
            clauses.append("assigned_worker = ?")
            params.append(worker)

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        cursor = await self._conn.execute(
            f"SELECT {_TASK_COLUMNS} FROM tasks{where} ORDER BY task_id ASC",
            params,
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def update_task(self, task: Task, expected_version: int) -> Task:
        """写回任务的全部可变字段，version 自增

        Raises:
            TaskConflictError: 数据库中的 version 与 expected_version 不一致
        """
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET step_id = ?, title = ?, description = ?, link = ?, image = ?,
                assigned_worker = ?, status = ?, effort = ?, priority = ?,
                claimed_at = ?, duration = ?, due_date = ?,
                version = version + 1, updated_at = ?
            WHERE task_id = ? AND version = ?
            """,
            (
                task.step_id,
                task.title,
                task.description,
                task.link,
                task.image,
                task.assigned_worker,
                int(task.status),
                task.effort,
                int(task.priority) if task.priority is not None else None,
                _dt(task.claimed_at),
                task.duration,
                _dt(task.due_date),
                task.updated_at.isoformat(),
                task.task_id,
                expected_version,
            ),
        )
        if cursor.rowcount == 0:
            raise TaskConflictError(task.task_id, expected_version)
        return task.model_copy(update={"version": expected_version + 1})

    async def delete_task(self, task_id: int) -> None:
        """删除任务（审计事件随外键级联删除）"""
        await self._conn.execute("DELETE FROM tasks WHERE task_id = ?", (task_id,))

    async def count_step_tasks(self, step_id: int) -> tuple[int, int]:
        """统计 Step 下的任务总数与已完成数

        Returns:
            (total, done) 元组
        """
        cursor = await self._conn.execute(
            """
            SELECT COUNT(*), COALESCE(SUM(CASE WHEN status = ? THEN 1 ELSE 0 END), 0)
            FROM tasks WHERE step_id = ?
            """,
            (TaskStatus.DONE.value, step_id),
        )
        row = await cursor.fetchone()
        return (row[0], row[1]) if row else (0, 0)

    async def list_inconsistent_task_ids(self) -> list[int]:
        """查询 todo 状态却仍带有 builder 的任务"""
        cursor = await self._conn.execute(
            """
            SELECT task_id FROM tasks
            WHERE status = ? AND assigned_worker IS NOT NULL
            ORDER BY task_id ASC
            """,
            (TaskStatus.TODO.value,),
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row[0],
            project_id=row[1],
            step_id=row[2],
            title=row[3],
            description=row[4],
            link=row[5],
            image=row[6],
            task_creator=row[7],
            assigned_worker=row[8],
            status=TaskStatus(row[9]),
            effort=row[10],
            priority=row[11],
            claimed_at=_parse_dt(row[12]),
            duration=row[13],
            due_date=_parse_dt(row[14]),
            version=row[15],
            created_at=datetime.fromisoformat(row[16]),
            updated_at=datetime.fromisoformat(row[17]),
        )
