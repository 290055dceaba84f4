"""
Tests for the web API.

The app is built around a queue with a fake extractor; Tandoor calls are
patched at the route module.
"""

import time
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from recipe_migrator.recipe_import import ExportError, Recipe, RecipeQueue, UploadResult
from recipe_migrator.web.app import create_app


async def fake_extractor(data, mime_type, file_name=None):
    if file_name == "broken.txt":
        raise RuntimeError("model unavailable")
    return Recipe(
        name=f"From {file_name}",
        ingredients=[{"amount": "1", "unit": "cup", "name": "milk"}],
        steps=[{"instruction": "Pour"}],
    )


@pytest.fixture
def client():
    app = create_app(RecipeQueue(extractor=fake_extractor))
    with TestClient(app) as test_client:
        yield test_client


def _upload(client, *names):
    files = [("files", (name, b"recipe text", "text/plain")) for name in names]
    response = client.post("/api/queue/files", files=files)
    assert response.status_code == 200
    return response.json()


def _process_and_wait(client):
    response = client.post("/api/queue/process")
    assert response.status_code == 202
    for _ in range(100):
        queue = client.get("/api/queue").json()
        if not queue["processing"]:
            return queue
        time.sleep(0.01)
    raise AssertionError("batch did not finish")


def _confirm_first(client):
    _upload(client, "soup.txt")
    queue = _process_and_wait(client)
    item_id = queue["items"][0]["id"]
    response = client.post("/api/review/confirm")
    assert response.status_code == 200
    return item_id


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestQueueEndpoints:
    def test_upload_adds_pending_items(self, client):
        items = _upload(client, "a.txt", "b.txt")
        assert [i["file_name"] for i in items] == ["a.txt", "b.txt"]
        assert {i["status"] for i in items} == {"PENDING"}

        queue = client.get("/api/queue").json()
        assert not queue["processing"]
        assert len(queue["items"]) == 2

    def test_process_runs_batch(self, client):
        _upload(client, "a.txt", "broken.txt")
        queue = _process_and_wait(client)

        ok, failed = queue["items"]
        assert ok["status"] == "REVIEW"
        assert ok["recipe"]["name"] == "From a.txt"
        assert failed["status"] == "ERROR"
        assert failed["error"] == {"kind": "extraction", "message": "model unavailable"}
        assert queue["active_item_id"] == ok["id"]

    def test_preview(self, client):
        response = client.post(
            "/api/queue/files", files=[("files", ("card.png", b"\x89PNG", "image/png"))]
        )
        item = response.json()[0]
        assert item["has_preview"]

        preview = client.get(f"/api/queue/{item['id']}/preview").json()
        assert preview["preview"].startswith("data:image/png;base64,")

    def test_unknown_item(self, client):
        assert client.get("/api/queue/nope/preview").status_code == 404
        assert client.post("/api/queue/nope/select").status_code == 404

    def test_select_pending_item_conflicts(self, client):
        (item,) = _upload(client, "a.txt")
        assert client.post(f"/api/queue/{item['id']}/select").status_code == 409


class TestReviewEndpoints:
    def test_review_edit_and_confirm(self, client):
        _upload(client, "soup.txt")
        _process_and_wait(client)

        review = client.get("/api/review").json()
        assert review["recipe"]["name"] == "From soup.txt"
        assert not review["dirty"]

        edited = {**review["recipe"], "name": "Tomato Soup"}
        review = client.put("/api/review", json=edited).json()
        assert review["dirty"]

        item = client.post("/api/review/confirm").json()
        assert item["status"] == "COMPLETED"
        assert item["recipe"]["name"] == "Tomato Soup"

        assert client.get("/api/review").json()["recipe"] is None

    def test_confirm_without_selection(self, client):
        assert client.post("/api/review/confirm").status_code == 409

    def test_cancel(self, client):
        _upload(client, "soup.txt")
        _process_and_wait(client)

        client.post("/api/review/cancel")

        queue = client.get("/api/queue").json()
        assert queue["active_item_id"] is None
        assert queue["items"][0]["status"] == "REVIEW"


class TestExportEndpoints:
    def test_download_single(self, client):
        item_id = _confirm_first(client)
        response = client.get(f"/api/queue/{item_id}/download")
        assert response.status_code == 200
        assert "From%20soup.txt.json" in response.headers["content-disposition"]
        assert response.json()["name"] == "From soup.txt"

    def test_download_all_requires_completed(self, client):
        assert client.get("/api/queue/download").status_code == 404

        _confirm_first(client)
        response = client.get("/api/queue/download")
        assert response.status_code == 200
        assert [r["name"] for r in response.json()] == ["From soup.txt"]

    def test_upload_requires_completed(self, client):
        (item,) = _upload(client, "a.txt")
        assert client.post(f"/api/queue/{item['id']}/tandoor").status_code == 409

    def test_upload_success(self, client):
        item_id = _confirm_first(client)
        with patch(
            "recipe_migrator.web.routes.export_to_tandoor", new_callable=AsyncMock
        ) as mock_export:
            mock_export.return_value = UploadResult(status_code=201, data={"id": 7})
            response = client.post(f"/api/queue/{item_id}/tandoor")

        assert response.status_code == 200
        assert response.json() == {"success": True, "status_code": 201, "data": {"id": 7}}

    def test_upload_failure_leaves_item_unchanged(self, client):
        item_id = _confirm_first(client)
        with patch(
            "recipe_migrator.web.routes.export_to_tandoor", new_callable=AsyncMock
        ) as mock_export:
            mock_export.side_effect = ExportError(
                "Failed to upload (Status 400): bad", status_code=400, body="bad"
            )
            response = client.post(f"/api/queue/{item_id}/tandoor")

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["status_code"] == 400
        assert detail["body"] == "bad"

        item = client.get("/api/queue").json()["items"][0]
        assert item["status"] == "COMPLETED"
        assert item["recipe"]["name"] == "From soup.txt"
