"""CLI 入口模块 -- python -m rocketstarter.core <command>

支持的命令：
  recalculate-progress  按任务完成情况重算所有 Step 的进度
  normalize-tasks       修复 todo 状态却仍有 builder 的任务
"""

import asyncio
import sys

from .config import get_db_path

COMMANDS = {
    "recalculate-progress": "按任务完成情况重算所有 Step 的进度",
    "normalize-tasks": "修复 todo 状态却仍有 builder 的任务",
}


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m rocketstarter.core <command>")
        print("命令:")
        for name, help_text in COMMANDS.items():
            print(f"  {name:<22}{help_text}")
        sys.exit(1)

    command = sys.argv[1]

    if command == "recalculate-progress":
        asyncio.run(recalculate_progress())
    elif command == "normalize-tasks":
        asyncio.run(normalize_tasks())
    else:
        print(f"未知命令: {command}")
        print(f"可用命令: {', '.join(COMMANDS)}")
        sys.exit(1)


async def recalculate_progress() -> None:
    """执行 Step 进度重算"""
    from .progress import recalculate_all
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    print("开始重算 Step 进度...")

    store_group = await create_store_group(db_path)
    try:
        step_count = await recalculate_all(store_group)
        print(f"重算完成，处理 {step_count} 个 Step")
    finally:
        await store_group.conn.close()


async def normalize_tasks() -> None:
    """执行不一致任务修复"""
    from .store import create_store_group
    from .workflow import WorkflowEngine

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    print("开始修复任务分配...")

    store_group = await create_store_group(db_path)
    try:
        repaired = await WorkflowEngine(store_group).normalize_all()
        print(f"修复完成，共修复 {repaired} 个任务")
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
