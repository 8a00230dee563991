"""
Tests for the HTTP adapter.

QC: Verify that the routes
1. Expose every queue operation with camelCase JSON
2. Map orchestrator errors to 400/404/409
3. Keep state in the configured state directory only
"""

import importlib

import pytest
from fastapi.testclient import TestClient

from orchestrator.main import create_app
from orchestrator.settings import OrchestratorSettings


@pytest.fixture
def test_client(tmp_path):
    """Test client backed by an empty temporary state directory."""
    app = create_app(OrchestratorSettings(state_dir=tmp_path / "state"))
    return TestClient(app)


def create(test_client, **overrides):
    payload = {"type": "image", "description": "Neon city at night"}
    payload.update(overrides)
    response = test_client.post("/orchestrate/jobs", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["job"]


def advance(test_client, job_id, *statuses):
    for status in statuses:
        response = test_client.post(f"/orchestrate/jobs/{job_id}/status", json={"status": status})
        assert response.status_code == 200, response.text
    return response.json()["job"]


class TestJobRoutes:

    def test_import_builds_no_app(self, tmp_path, monkeypatch):
        """Importing the entrypoint must not open the default state directory."""
        import orchestrator.main as main_module

        monkeypatch.chdir(tmp_path)
        importlib.reload(main_module)

        assert not hasattr(main_module, "app")
        assert list(tmp_path.iterdir()) == []

    def test_root(self, test_client):
        assert test_client.get("/").json()["status"] == "running"

    def test_create_and_get(self, test_client, tmp_path):
        job = create(test_client, priority=2, voiceKey="narrator")

        assert job["status"] == "pending"
        assert job["source"] == "dashboard"
        assert job["voiceKey"] == "narrator"
        assert job["createdAt"] == job["updatedAt"]
        assert (tmp_path / "state" / "whatsapp-jobs.json").exists()

        fetched = test_client.get(f"/orchestrate/jobs/{job['id']}")
        assert fetched.status_code == 200
        assert fetched.json() == job

    def test_create_missing_description(self, test_client):
        response = test_client.post("/orchestrate/jobs", json={"type": "image"})
        assert response.status_code == 400
        assert "description" in response.json()["detail"]

    def test_get_unknown(self, test_client):
        response = test_client.get("/orchestrate/jobs/wa_0_missing")
        assert response.status_code == 404
        assert response.json()["detail"] == "Job not found: wa_0_missing"

    def test_list_order_and_filters(self, test_client):
        urgent = create(test_client, priority=5)
        normal = create(test_client)
        gpu = create(test_client, pipeline="local_gpu")

        listed = test_client.get("/orchestrate/jobs").json()
        assert [job["id"] for job in listed] == [urgent["id"], gpu["id"], normal["id"]]

        only_gpu = test_client.get("/orchestrate/jobs", params={"pipeline": "local_gpu"}).json()
        assert [job["id"] for job in only_gpu] == [gpu["id"]]

        limited = test_client.get("/orchestrate/jobs", params={"limit": 1}).json()
        assert [job["id"] for job in limited] == [urgent["id"]]

    def test_list_multiple_statuses(self, test_client):
        pending = create(test_client)
        cancelled = create(test_client)
        test_client.patch(f"/orchestrate/jobs/{cancelled['id']}", json={"action": "cancel"})
        building = create(test_client)
        advance(test_client, building["id"], "building_prompt")

        response = test_client.get(
            "/orchestrate/jobs", params=[("status", "pending"), ("status", "failed")],
        )
        assert {job["id"] for job in response.json()} == {pending["id"], cancelled["id"]}

    def test_next_job(self, test_client):
        assert test_client.get("/orchestrate/jobs/next").json() == {"job": None}
        create(test_client)
        urgent = create(test_client, priority=3)
        assert test_client.get("/orchestrate/jobs/next").json()["job"]["id"] == urgent["id"]

    def test_summary(self, test_client):
        create(test_client)
        summary = test_client.get("/orchestrate/summary").json()
        assert summary["total"] == 1
        assert summary["pending"] == 1
        assert len(summary["recentJobs"]) == 1


class TestOperatorActions:

    def test_cancel_then_retry(self, test_client):
        job = create(test_client)

        cancelled = test_client.patch(f"/orchestrate/jobs/{job['id']}", json={"action": "cancel"})
        assert cancelled.status_code == 200
        assert cancelled.json()["job"]["error"] == "Cancelled from dashboard"
        assert cancelled.json()["job"]["completedAt"] is not None

        again = test_client.patch(f"/orchestrate/jobs/{job['id']}", json={"action": "cancel"})
        assert again.status_code == 409

        retried = test_client.patch(f"/orchestrate/jobs/{job['id']}", json={"action": "retry"})
        assert retried.json()["job"]["status"] == "pending"
        assert retried.json()["job"]["completedAt"] is None

    def test_priority_and_schedule(self, test_client):
        job = create(test_client)

        bumped = test_client.patch(f"/orchestrate/jobs/{job['id']}", json={"priority": 8})
        assert bumped.json()["job"]["priority"] == 8

        scheduled = test_client.patch(
            f"/orchestrate/jobs/{job['id']}", json={"scheduledAt": "2030-01-01T09:00:00Z"},
        )
        assert scheduled.json()["job"]["scheduledAt"].startswith("2030-01-01T09:00:00")

        cleared = test_client.patch(f"/orchestrate/jobs/{job['id']}", json={"scheduledAt": None})
        assert cleared.json()["job"]["scheduledAt"] is None

    @pytest.mark.parametrize("body", [
        {},
        {"action": "explode"},
        {"action": "cancel", "priority": 1},
        {"priority": -2},
        {"priority": None},
    ])
    def test_invalid_update(self, test_client, body):
        job = create(test_client)
        response = test_client.patch(f"/orchestrate/jobs/{job['id']}", json=body)
        assert response.status_code == 400

    def test_update_unknown_job(self, test_client):
        response = test_client.patch("/orchestrate/jobs/wa_0_missing", json={"action": "cancel"})
        assert response.status_code == 404


class TestPipelineProgress:

    def test_full_pipeline_and_archive(self, test_client):
        job = create(test_client)
        done = advance(test_client, job["id"], "building_prompt", "generating_image", "delivering")

        response = test_client.post(
            f"/orchestrate/jobs/{job['id']}/status",
            json={"status": "completed", "outputPaths": ["out/neon.png"]},
        )
        done = response.json()["job"]
        assert done["status"] == "completed"
        assert done["outputPaths"] == ["out/neon.png"]

        archived = test_client.post(f"/orchestrate/jobs/{job['id']}/archive")
        assert archived.status_code == 200
        assert archived.json()["job"]["archivedAt"] is not None
        assert test_client.get(f"/orchestrate/jobs/{job['id']}").status_code == 404

    def test_illegal_transition(self, test_client):
        job = create(test_client)
        response = test_client.post(f"/orchestrate/jobs/{job['id']}/status", json={"status": "completed"})

        assert response.status_code == 409
        assert "pending -> completed" in response.json()["detail"]

    def test_unknown_status(self, test_client):
        job = create(test_client)
        response = test_client.post(f"/orchestrate/jobs/{job['id']}/status", json={"status": "melting"})
        assert response.status_code == 400

    def test_archive_pending_conflict(self, test_client):
        job = create(test_client)
        response = test_client.post(f"/orchestrate/jobs/{job['id']}/archive")
        assert response.status_code == 409


class TestHistory:

    def test_search(self, test_client):
        for description in ["Rome at dawn", "Paris skyline", "rome from above"]:
            job = create(test_client, description=description)
            test_client.patch(f"/orchestrate/jobs/{job['id']}", json={"action": "cancel"})
            test_client.post(f"/orchestrate/jobs/{job['id']}/archive")

        body = test_client.get("/orchestrate/history", params={"search": "ROME"}).json()

        assert body["total"] == 2
        assert body["offset"] == 0
        assert {job["description"] for job in body["jobs"]} == {"Rome at dawn", "rome from above"}

    def test_limit_capped(self, test_client):
        body = test_client.get("/orchestrate/history", params={"limit": 1000}).json()
        assert body["limit"] == 200
        assert body["jobs"] == []


class TestNarrationRoutes:

    def test_manual_mode_and_listing(self, test_client):
        job = create(test_client, type="lesson", description="Rome")

        response = test_client.patch(
            "/narration/mode", json={"id": job["id"], "mode": "manual", "script": "Friends, Romans"},
        )
        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert response.json()["job"]["narrationStatus"] == "script_ready"

        listed = test_client.get("/narration/jobs").json()
        assert [j["id"] for j in listed] == [job["id"]]

    def test_progress_and_conflict(self, test_client):
        job = create(test_client, type="lesson", description="Rome")
        url = f"/narration/jobs/{job['id']}/status"

        test_client.post(url, json={"narrationStatus": "script_ready", "script": "auto"})
        test_client.post(url, json={"narrationStatus": "generating_tts"})
        ready = test_client.post(url, json={"narrationStatus": "tts_ready", "audioPath": "audio/rome.wav"})
        assert ready.json()["job"]["narrationAudioPath"] == "audio/rome.wav"

        conflict = test_client.patch("/narration/mode", json={"id": job["id"], "mode": "manual"})
        assert conflict.status_code == 409
        assert "tts_ready" in conflict.json()["detail"]

    def test_skip_stage(self, test_client):
        job = create(test_client)
        response = test_client.post(
            f"/narration/jobs/{job['id']}/status", json={"narrationStatus": "composed"},
        )
        assert response.status_code == 409


class TestWhatsAppRoutes:

    def test_create_from_chat(self, test_client):
        response = test_client.post(
            "/whatsapp/jobs",
            json={"type": "chat", "description": "make me a poster", "senderPhone": "+15550100"},
        )
        assert response.status_code == 201
        job = response.json()["job"]
        assert job["source"] == "whatsapp"
        assert job["senderPhone"] == "+15550100"
