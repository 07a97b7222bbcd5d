"""StepStore SQLite 实现

progress 只能通过 set_progress 写入，由进度聚合器调用。
"""

from datetime import datetime

import aiosqlite

from ..models.project import Step

_STEP_COLUMNS = "step_id, project_id, name, description, progress, created_at, updated_at"
_JOINED_STEP_COLUMNS = ", ".join(f"s.{c.strip()}" for c in _STEP_COLUMNS.split(","))


class SqliteStepStore:
    """StepStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_step(
        self,
        project_id: int,
        name: str,
        description: str | None,
        now: datetime,
    ) -> int:
        """创建 Step，progress 从 0 开始

        Returns:
            新 Step 的 step_id
        """
        cursor = await self._conn.execute(
            """
            INSERT INTO steps (project_id, name, description, progress, created_at, updated_at)
            VALUES (?, ?, ?, 0, ?, ?)
            """,
            (project_id, name, description, now.isoformat(), now.isoformat()),
        )
        return cursor.lastrowid

    async def get_step(self, step_id: int) -> Step | None:
        """根据 step_id 查询 Step"""
        cursor = await self._conn.execute(
            f"SELECT {_STEP_COLUMNS} FROM steps WHERE step_id = ?",
            (step_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_step(row)

    async def list_steps(
        self,
        project_id: int | None = None,
        owner: str | None = None,
    ) -> list[Step]:
        """查询 Step 列表，可按项目或项目 owner 筛选，按创建顺序排列"""
        clauses: list[str] = []
        params: list[object] = []
        if project_id is not None:
            clauses.append("s.project_id = ?")
            params.append(project_id)
        if owner:
            clauses.append("p.owner = ?")
            params.append(owner)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        cursor = await self._conn.execute(
            f"SELECT {_JOINED_STEP_COLUMNS} FROM steps s "
            f"JOIN projects p ON p.project_id = s.project_id {where} "
            "ORDER BY s.step_id ASC",
            params,
        )
        rows = await cursor.fetchall()
        return [self._row_to_step(row) for row in rows]

    async def update_step(
        self,
        step_id: int,
        name: str,
        description: str | None,
        now: datetime,
    ) -> None:
        """更新 Step 名称与描述（progress 不在此处修改）"""
        await self._conn.execute(
            "UPDATE steps SET name = ?, description = ?, updated_at = ? WHERE step_id = ?",
            (name, description, now.isoformat(), step_id),
        )

    async def set_progress(self, step_id: int, progress: float, now: datetime) -> None:
        """写入进度（仅供进度聚合器调用）"""
        await self._conn.execute(
            "UPDATE steps SET progress = ?, updated_at = ? WHERE step_id = ?",
            (progress, now.isoformat(), step_id),
        )

    async def delete_step(self, step_id: int) -> None:
        """删除 Step，其下任务的 step_id 由外键置空"""
        await self._conn.execute("DELETE FROM steps WHERE step_id = ?", (step_id,))

    @staticmethod
    def _row_to_step(row: aiosqlite.Row) -> Step:
        """将数据库行转换为 Step 模型"""
        return Step(
            step_id=row[0],
            project_id=row[1],
            name=row[2],
            description=row[3],
            progress=row[4],
            created_at=datetime.fromisoformat(row[5]),
            updated_at=datetime.fromisoformat(row[6]),
        )
