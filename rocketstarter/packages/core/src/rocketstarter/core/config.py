"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、身份请求头、任务字段取值范围等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("ROCKETSTARTER_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "ROCKETSTARTER_DB_PATH",
        str(_get_base_dir() / "sqlite" / "rocketstarter.db"),
    )


def get_identity_header() -> str:
    """获取携带调用者钱包地址的请求头名称"""
    return os.environ.get("ROCKETSTARTER_IDENTITY_HEADER", "X-User-Address")


# effort 只允许斐波那契取值
EFFORT_VALUES: frozenset[int] = frozenset({1, 2, 3, 5, 8, 13})

# Step 进度保留的小数位
PROGRESS_PRECISION: int = 2

# 标题最大长度
TITLE_MAX_LENGTH: int = 255

# 链接字段最大长度
LINK_MAX_LENGTH: int = 512
