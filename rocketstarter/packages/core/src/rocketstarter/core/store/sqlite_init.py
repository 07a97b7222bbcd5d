"""SQLite 数据库初始化

PRAGMA 配置 + 四张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# projects 表 DDL
_PROJECTS_DDL = """
CREATE TABLE IF NOT EXISTS projects (
    project_id   INTEGER PRIMARY KEY AUTOINCREMENT,
    name         TEXT NOT NULL,
    slug         TEXT NOT NULL UNIQUE,
    description  TEXT,
    owner        TEXT NOT NULL,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);
"""

_PROJECTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_projects_owner ON projects(owner);",
]

# steps 表 DDL
_STEPS_DDL = """
CREATE TABLE IF NOT EXISTS steps (
    step_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id   INTEGER NOT NULL,
    name         TEXT NOT NULL,
    description  TEXT,
    progress     REAL NOT NULL DEFAULT 0 CHECK (progress >= 0 AND progress <= 100),
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL,

    FOREIGN KEY (project_id) REFERENCES projects(project_id) ON DELETE CASCADE
);
"""

_STEPS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_steps_project_id ON steps(project_id);",
]

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id       INTEGER NOT NULL,
    step_id          INTEGER,
    title            TEXT NOT NULL,
    description      TEXT,
    link             TEXT,
    image            TEXT,
    task_creator     TEXT,
    assigned_worker  TEXT,
    status           INTEGER NOT NULL DEFAULT 0 CHECK (status BETWEEN 0 AND 3),
    effort           INTEGER CHECK (effort IS NULL OR effort IN (1, 2, 3, 5, 8, 13)),
    priority         INTEGER CHECK (priority IS NULL OR priority BETWEEN 0 AND 2),
    claimed_at       TEXT,
    duration         INTEGER,
    due_date         TEXT,
    version          INTEGER NOT NULL DEFAULT 1,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL,

    FOREIGN KEY (project_id) REFERENCES projects(project_id) ON DELETE CASCADE,
    FOREIGN KEY (step_id) REFERENCES steps(step_id) ON DELETE SET NULL
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_project_id ON tasks(project_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_step_id ON tasks(step_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_assigned_worker ON tasks(assigned_worker);",
]

# task_events 表 DDL
_TASK_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS task_events (
    event_id  TEXT PRIMARY KEY,
    task_id   INTEGER NOT NULL,
    task_seq  INTEGER NOT NULL,
    ts        TEXT NOT NULL,
    type      TEXT NOT NULL,
    actor     TEXT NOT NULL,
    payload   TEXT NOT NULL DEFAULT '{}',

    FOREIGN KEY (task_id) REFERENCES tasks(task_id) ON DELETE CASCADE
);
"""

_TASK_EVENTS_INDEXES = [
    # 任务内事件序号唯一约束（确保 task_seq 严格单调递增）
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_task_events_task_seq ON task_events(task_id, task_seq);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_PROJECTS_DDL)
    await conn.execute(_STEPS_DDL)
    await conn.execute(_TASKS_DDL)
    await conn.execute(_TASK_EVENTS_DDL)

    # 创建索引
    for idx_sql in (
        _PROJECTS_INDEXES + _STEPS_INDEXES + _TASKS_INDEXES + _TASK_EVENTS_INDEXES
    ):
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
