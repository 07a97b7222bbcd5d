"""原子事务封装 -- unit of work

任务变更、审计事件与 Step 进度重算在同一 SQLite 事务内提交：
要么全部落盘，要么全部回滚（包括请求被取消的情况）。
写锁保证共享连接上同一时刻只有一个事务，BEGIN IMMEDIATE 保证跨进程写入串行。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite
import structlog

log = structlog.get_logger()


@asynccontextmanager
async def unit_of_work(
    conn: aiosqlite.Connection,
    write_lock: asyncio.Lock,
) -> AsyncIterator[aiosqlite.Connection]:
    """在写锁 + IMMEDIATE 事务内执行一组写操作

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        write_lock: 该连接的写锁，不可重入

    Raises:
        Exception: 块内任何异常（含 CancelledError）都会先回滚再原样抛出
    """
    async with write_lock:
        await conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException as e:
            await conn.rollback()
            log.debug("unit_of_work_rolled_back", error_type=type(e).__name__)
            raise
        else:
            await conn.commit()


@asynccontextmanager
async def read_snapshot(
    conn: aiosqlite.Connection,
    write_lock: asyncio.Lock,
) -> AsyncIterator[aiosqlite.Connection]:
    """在写锁内执行只读查询

    共享连接能看到自身未提交的写入；持锁读取保证只看到已提交的数据。
    """
    async with write_lock:
        yield conn
