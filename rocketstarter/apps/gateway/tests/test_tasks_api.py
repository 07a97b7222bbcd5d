"""任务 API 测试

测试内容：
1. 创建 / 列表 / 详情 / 删除
2. PATCH 走工作流规则：成功、拒绝、校验、未认证、不存在
3. 错误体格式 {"error": {"code", "message"}}
"""

import pytest
from httpx import AsyncClient

OWNER = "0xowner"
CREATOR = "0xcreator"
BUILDER_A = "0xbuilder-a"
BUILDER_B = "0xbuilder-b"


def _user(address: str) -> dict[str, str]:
    return {"X-User-Address": address}


async def _create_task(client: AsyncClient, project: dict, step: dict, **fields) -> dict:
    body = {
        "project_id": project["project_id"],
        "step_id": step["step_id"],
        "title": "Build landing page",
        **fields,
    }
    resp = await client.post("/api/v1/tasks", json=body, headers=_user(CREATOR))
    assert resp.status_code == 201
    return resp.json()


async def _patch(client: AsyncClient, task_id: int, actor: str | None, body: dict):
    headers = _user(actor) if actor else {}
    return await client.patch(f"/api/v1/tasks/{task_id}", json=body, headers=headers)


class TestTaskCrud:
    """任务创建与查询"""

    async def test_create_task(self, client: AsyncClient, project, step):
        task = await _create_task(client, project, step, effort=3, priority=1)
        assert task["status"] == 0
        assert task["assigned_worker"] is None
        assert task["task_creator"] == CREATOR
        assert task["effort"] == 3

    async def test_create_requires_identity(self, client: AsyncClient, project):
        resp = await client.post(
            "/api/v1/tasks", json={"project_id": project["project_id"], "title": "t"}
        )
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UNAUTHENTICATED"

    async def test_create_invalid_effort(self, client: AsyncClient, project):
        resp = await client.post(
            "/api/v1/tasks",
            json={"project_id": project["project_id"], "title": "t", "effort": 4},
            headers=_user(CREATOR),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_create_in_missing_project(self, client: AsyncClient):
        resp = await client.post(
            "/api/v1/tasks", json={"project_id": 404, "title": "t"}, headers=_user(CREATOR)
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"

    async def test_list_with_filters(self, client: AsyncClient, project, step):
        first = await _create_task(client, project, step, title="first")
        await _create_task(client, project, step, title="second")
        await _patch(client, first["task_id"], BUILDER_A, {"status": 1})

        resp = await client.get("/api/v1/tasks", params={"status": 1})
        assert resp.status_code == 200
        assert [t["title"] for t in resp.json()["tasks"]] == ["first"]

        resp = await client.get("/api/v1/tasks", params={"worker": BUILDER_A})
        assert [t["task_id"] for t in resp.json()["tasks"]] == [first["task_id"]]

        resp = await client.get("/api/v1/tasks", params={"step_id": step["step_id"]})
        assert len(resp.json()["tasks"]) == 2

    async def test_list_rejects_bad_status(self, client: AsyncClient):
        resp = await client.get("/api/v1/tasks", params={"status": 9})
        assert resp.status_code == 400

    async def test_detail_includes_events(self, client: AsyncClient, project, step):
        task = await _create_task(client, project, step)
        await _patch(client, task["task_id"], BUILDER_A, {"status": 1})

        resp = await client.get(f"/api/v1/tasks/{task['task_id']}")

        assert resp.status_code == 200
        data = resp.json()
        assert data["task"]["assigned_worker"] == BUILDER_A
        assert [e["type"] for e in data["events"]] == ["TASK_CREATED", "TASK_TRANSITIONED"]

    async def test_detail_not_found(self, client: AsyncClient):
        resp = await client.get("/api/v1/tasks/999")
        assert resp.status_code == 404
        error = resp.json()["error"]
        assert error["code"] == "NOT_FOUND"
        assert "999" in error["message"]

    async def test_delete_by_creator(self, client: AsyncClient, project, step):
        task = await _create_task(client, project, step)

        resp = await client.delete(f"/api/v1/tasks/{task['task_id']}", headers=_user(CREATOR))
        assert resp.status_code == 204

        resp = await client.get(f"/api/v1/tasks/{task['task_id']}")
        assert resp.status_code == 404

    async def test_delete_by_stranger_forbidden(self, client: AsyncClient, project, step):
        task = await _create_task(client, project, step)
        resp = await client.delete(
            f"/api/v1/tasks/{task['task_id']}", headers=_user(BUILDER_B)
        )
        assert resp.status_code == 403


class TestTaskWorkflowApi:
    """PATCH /api/v1/tasks/{id}"""

    async def test_claim(self, client: AsyncClient, project, step):
        task = await _create_task(client, project, step)

        resp = await _patch(client, task["task_id"], BUILDER_A, {"status": 1})

        assert resp.status_code == 200
        data = resp.json()
        assert data["task"]["status"] == 1
        assert data["task"]["assigned_worker"] == BUILDER_A
        assert data["task"]["claimed_at"] is not None
        assert data["rule"] == "claim"
        assert data["message"] == "Task claimed by builder"

    async def test_full_lifecycle_updates_progress(self, client: AsyncClient, project, step):
        tasks = [await _create_task(client, project, step, title=f"t{i}") for i in range(4)]
        task_id = tasks[0]["task_id"]

        assert (await _patch(client, task_id, BUILDER_A, {"status": 1})).status_code == 200
        assert (await _patch(client, task_id, BUILDER_A, {"status": 2})).status_code == 200
        resp = await _patch(client, task_id, OWNER, {"status": 3})

        assert resp.status_code == 200
        assert resp.json()["task"]["assigned_worker"] == BUILDER_A
        step_resp = await client.get(f"/api/v1/steps/{step['step_id']}")
        assert step_resp.json()["progress"] == 25.0

    async def test_foreign_release_forbidden(self, client: AsyncClient, project, step):
        task = await _create_task(client, project, step)
        await _patch(client, task["task_id"], BUILDER_A, {"status": 1})

        resp = await _patch(client, task["task_id"], BUILDER_B, {"status": 0})

        assert resp.status_code == 403
        error = resp.json()["error"]
        assert error["code"] == "FORBIDDEN"
        assert error["message"] == "Forbidden: workflow rule violation or unauthorized"

    async def test_skip_review_forbidden(self, client: AsyncClient, project, step):
        task = await _create_task(client, project, step)
        await _patch(client, task["task_id"], BUILDER_A, {"status": 1})

        resp = await _patch(client, task["task_id"], OWNER, {"status": 3})

        assert resp.status_code == 403
        assert resp.json()["error"]["rule"] == "skip_review"

    async def test_reassign_in_review_forbidden(self, client: AsyncClient, project, step):
        task = await _create_task(client, project, step)
        await _patch(client, task["task_id"], BUILDER_A, {"status": 1})
        await _patch(client, task["task_id"], BUILDER_A, {"status": 2})

        resp = await _patch(client, task["task_id"], OWNER, {"worker": BUILDER_B})

        assert resp.status_code == 403
        assert "must validate" in resp.json()["error"]["message"]

    async def test_missing_identity(self, client: AsyncClient, project, step):
        task = await _create_task(client, project, step)
        resp = await _patch(client, task["task_id"], None, {"status": 1})
        assert resp.status_code == 401

    async def test_unknown_task(self, client: AsyncClient):
        resp = await _patch(client, 12345, BUILDER_A, {"status": 1})
        assert resp.status_code == 404

    @pytest.mark.parametrize(
        "body",
        [{"status": 5}, {"status": "1"}, {"effort": 7}, {"priority": 3}],
    )
    async def test_invalid_body(self, client: AsyncClient, project, step, body):
        task = await _create_task(client, project, step)
        resp = await _patch(client, task["task_id"], OWNER, body)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_content_update(self, client: AsyncClient, project, step):
        task = await _create_task(client, project, step)
        resp = await _patch(
            client, task["task_id"], CREATOR, {"title": "Renamed", "due_date": "2025-03-01T00:00:00Z"}
        )
        assert resp.status_code == 200
        assert resp.json()["task"]["title"] == "Renamed"
        assert resp.json()["rule"] == "content"
