"""apps/gateway 测试配置 -- httpx AsyncClient + 临时 DB fixture"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

OWNER = "0xowner"


@pytest_asyncio.fixture
async def app(tmp_path: Path, monkeypatch):
    """创建测试用 FastAPI app 实例（绕过 lifespan 手动初始化 Store）"""
    monkeypatch.setenv("ROCKETSTARTER_DB_PATH", str(tmp_path / "sqlite" / "test.db"))
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from rocketstarter.core.store import create_store_group
    from rocketstarter.gateway.main import create_app

    application = create_app()
    store_group = await create_store_group(str(tmp_path / "sqlite" / "test.db"))
    application.state.store_group = store_group

    yield application

    await store_group.conn.close()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def project(client: AsyncClient) -> dict:
    """OWNER 创建的项目"""
    resp = await client.post(
        "/api/v1/projects",
        json={"name": "Rocket Launch", "description": "first flight"},
        headers={"X-User-Address": OWNER},
    )
    assert resp.status_code == 201
    return resp.json()


@pytest_asyncio.fixture
async def step(client: AsyncClient, project: dict) -> dict:
    """项目下的一个 Step"""
    resp = await client.post(
        "/api/v1/steps",
        json={"project_id": project["project_id"], "name": "Design"},
        headers={"X-User-Address": OWNER},
    )
    assert resp.status_code == 201
    return resp.json()
