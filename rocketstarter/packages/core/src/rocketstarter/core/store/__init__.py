"""RocketStarter Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from contextlib import AbstractAsyncContextManager
from pathlib import Path

import aiosqlite

from .event_store import SqliteEventStore
from .project_store import SqliteProjectStore
from .sqlite_init import init_db
from .step_store import SqliteStepStore
from .task_store import SqliteTaskStore
from .transaction import read_snapshot, unit_of_work


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接与写锁"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.write_lock = asyncio.Lock()
        self.project_store = SqliteProjectStore(conn)
        self.step_store = SqliteStepStore(conn)
        self.task_store = SqliteTaskStore(conn)
        self.event_store = SqliteEventStore(conn)

    def unit_of_work(self) -> AbstractAsyncContextManager[aiosqlite.Connection]:
        """开启一个原子写事务"""
        return unit_of_work(self.conn, self.write_lock)

    def read(self) -> AbstractAsyncContextManager[aiosqlite.Connection]:
        """只读快照：等待进行中的事务结束后再读取"""
        return read_snapshot(self.conn, self.write_lock)


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteProjectStore",
    "SqliteStepStore",
    "SqliteTaskStore",
    "SqliteEventStore",
    "init_db",
    "unit_of_work",
    "read_snapshot",
]
