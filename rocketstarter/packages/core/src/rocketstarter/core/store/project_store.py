"""ProjectStore SQLite 实现

slug 由项目名生成，冲突时追加 -2、-3 ... 后缀保证唯一。
"""

import re
from datetime import datetime

import aiosqlite

from ..models.project import Project

_PROJECT_COLUMNS = "project_id, name, slug, description, owner, created_at, updated_at"


def slugify(text: str) -> str:
    """将项目名转换为 URL 友好的 slug"""
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-") or "project"


class SqliteProjectStore:
    """ProjectStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_project(
        self,
        name: str,
        owner: str,
        description: str | None,
        now: datetime,
    ) -> int:
        """创建项目记录

        Returns:
            新项目的 project_id
        """
        slug = await self._unique_slug(slugify(name))
        cursor = await self._conn.execute(
            """
            INSERT INTO projects (name, slug, description, owner, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (name, slug, description, owner, now.isoformat(), now.isoformat()),
        )
        return cursor.lastrowid

    async def get_project(self, project_id: int) -> Project | None:
        """根据 project_id 查询项目"""
        cursor = await self._conn.execute(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE project_id = ?",
            (project_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_project(row)

    async def list_projects(self, owner: str | None = None) -> list[Project]:
        """查询项目列表，可按 owner 筛选"""
        if owner:
            cursor = await self._conn.execute(
                f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE owner = ? "
                "ORDER BY project_id ASC",
                (owner,),
            )
        else:
            cursor = await self._conn.execute(
                f"SELECT {_PROJECT_COLUMNS} FROM projects ORDER BY project_id ASC"
            )
        rows = await cursor.fetchall()
        return [self._row_to_project(row) for row in rows]

    async def update_project(
        self,
        project_id: int,
        name: str,
        description: str | None,
        now: datetime,
    ) -> None:
        """更新项目名称与描述，名称变化时重新生成 slug"""
        current = await self.get_project(project_id)
        if current is None:
            return
        slug = current.slug
        if name != current.name:
            slug = await self._unique_slug(slugify(name), exclude_id=project_id)
        await self._conn.execute(
            """
            UPDATE projects SET name = ?, slug = ?, description = ?, updated_at = ?
            WHERE project_id = ?
            """,
            (name, slug, description, now.isoformat(), project_id),
        )

    async def delete_project(self, project_id: int) -> None:
        """删除项目（Step、任务随外键级联删除）"""
        await self._conn.execute(
            "DELETE FROM projects WHERE project_id = ?",
            (project_id,),
        )

    async def _unique_slug(self, base_slug: str, exclude_id: int | None = None) -> str:
        slug = base_slug
        counter = 2
        while True:
            cursor = await self._conn.execute(
                "SELECT 1 FROM projects WHERE slug = ? AND project_id IS NOT ? LIMIT 1",
                (slug, exclude_id),
            )
            if await cursor.fetchone() is None:
                return slug
            slug = f"{base_slug}-{counter}"
            counter += 1

    @staticmethod
    def _row_to_project(row: aiosqlite.Row) -> Project:
        """将数据库行转换为 Project 模型"""
        return Project(
            project_id=row[0],
            name=row[1],
            slug=row[2],
            description=row[3],
            owner=row[4],
            created_at=datetime.fromisoformat(row[5]),
            updated_at=datetime.fromisoformat(row[6]),
        )
