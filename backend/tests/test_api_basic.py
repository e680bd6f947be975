"""
API tests for the PitchPipe FastAPI app
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fakes import DummyAnalyzer, DummyMediaStore, DummyTranscriber
from pitchpipe.config import settings
from pitchpipe.compressor import FAST_PROFILE, CompressionResult
from pitchpipe.db import get_db
from pitchpipe.main import app
from pitchpipe.models import JobStatus, Profile, VideoJob
from pitchpipe.routes import connections as connections_module
from pitchpipe.routes import videos as videos_module
from pitchpipe.services.matcher import Matcher
from pitchpipe.services.orchestrator import PipelineOrchestrator
from pitchpipe.services import uploads as uploads_module
from pitchpipe.storage import get_media_store

VIDEO_PATH = "s3://videos/videos/alice/v1.mp4"


class Env:
    def __init__(self, session_factory):
        self.session_factory = session_factory
        self.media_store = DummyMediaStore({VIDEO_PATH: b"mp4"})
        self.transcriber = DummyTranscriber()
        self.analyzer = DummyAnalyzer()
        self.dispatched = []

    def orchestrator(self):
        return PipelineOrchestrator(self.session_factory, self.media_store, self.transcriber, self.analyzer)

    async def add_job(self, job_id, status=JobStatus.UPLOADED, user_id="alice", session_id=None):
        async with self.session_factory() as db:
            db.add(VideoJob(id=job_id, user_id=user_id, session_id=session_id, storage_path=VIDEO_PATH, status=status))
            await db.commit()


@pytest_asyncio.fixture
async def env(session_factory):
    env = Env(session_factory)

    async def _get_db():
        async with session_factory() as db:
            yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_media_store] = lambda: env.media_store
    app.dependency_overrides[videos_module.get_orchestrator] = env.orchestrator
    app.dependency_overrides[videos_module.get_dispatcher] = lambda: env.dispatched.append
    app.dependency_overrides[connections_module.get_matcher] = lambda: Matcher(session_factory)
    yield env
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(env):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_version(client):
    response = await client.get("/version")
    assert response.status_code == 200
    assert response.json()["version"] == "1.0.0"


@pytest.mark.asyncio
async def test_trigger_enqueues_uploaded_job(client, env):
    await env.add_job("v1")

    response = await client.post("/videos/trigger", json={"job_id": "v1"})

    assert response.status_code == 202
    assert response.json()["status"] == "queued"
    assert env.dispatched == ["v1"]


@pytest.mark.asyncio
async def test_trigger_inline_completes_job(client, env, monkeypatch):
    monkeypatch.setattr(settings, "PIPELINE_INLINE", True)
    await env.add_job("v1")

    response = await client.post(
        "/videos/trigger",
        json={"type": "INSERT", "table": "videos", "record": {"id": "v1", "status": "uploaded"}},
    )

    assert response.status_code == 200
    assert response.json() == {"job_id": "v1", "status": "completed", "detail": None}

    job = (await client.get("/videos/v1")).json()
    assert job["status"] == "completed"
    assert job["transcription_text"] == "bonjour"
    assert job["analysis"] == {"score": 0.8}


@pytest.mark.asyncio
async def test_trigger_inline_provider_failure_is_502(client, env, monkeypatch):
    monkeypatch.setattr(settings, "PIPELINE_INLINE", True)
    env.transcriber.error = RuntimeError("whisper unavailable")
    await env.add_job("v2")

    response = await client.post("/videos/trigger", json={"job_id": "v2"})

    assert response.status_code == 502
    assert response.json()["error"] == "UPSTREAM_FAILURE"
    assert (await client.get("/videos/v2")).json()["status"] == "failed"


@pytest.mark.asyncio
async def test_trigger_ignores_jobs_not_uploaded(client, env):
    await env.add_job("v3", status=JobStatus.FAILED)

    response = await client.post("/videos/trigger", json={"job_id": "v3"})

    assert response.status_code == 200
    assert response.json()["status"] == "failed"
    assert env.dispatched == []


@pytest.mark.asyncio
async def test_trigger_ignores_other_tables(client, env):
    response = await client.post(
        "/videos/trigger",
        json={"type": "INSERT", "table": "profiles", "record": {"id": "p1"}},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "ignored"


@pytest.mark.asyncio
async def test_trigger_malformed_and_unknown(client, env):
    assert (await client.post("/videos/trigger", json={"nothing": True})).status_code == 400
    assert (await client.post("/videos/trigger", json=["v1"])).status_code == 400
    assert (await client.post("/videos/trigger", content=b"{not json", headers={"Content-Type": "application/json"})).status_code == 422

    response = await client.post("/videos/trigger", json={"job_id": "missing"})
    assert response.status_code == 404
    assert response.json()["error"] == "JOB_NOT_FOUND"


@pytest.mark.asyncio
async def test_trigger_requires_webhook_secret_when_configured(client, env, monkeypatch):
    monkeypatch.setattr(settings, "TRIGGER_WEBHOOK_SECRET", "s3cret")
    await env.add_job("v1")

    assert (await client.post("/videos/trigger", json={"job_id": "v1"})).status_code == 401
    response = await client.post(
        "/videos/trigger", json={"job_id": "v1"}, headers={"Authorization": "Bearer s3cret"}
    )
    assert response.status_code == 202


@pytest.mark.asyncio
async def test_upload_creates_job_and_dispatches(client, env, make_token):
    response = await client.post(
        "/videos",
        files={"file": ("pitch.mp4", b"raw-mp4", "video/mp4")},
        data={"title": "Mon pitch", "session_id": "s1", "compress": "false"},
        headers={"Authorization": f"Bearer {make_token('alice')}"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "uploaded"
    assert body["user_id"] == "alice"
    assert body["storage_path"].startswith("s3://videos/videos/alice/")
    assert env.dispatched == [body["id"]]
    assert env.media_store.put_calls[0]["data"] == b"raw-mp4"


@pytest.mark.asyncio
async def test_upload_requires_authentication(client, env):
    response = await client.post("/videos", files={"file": ("pitch.mp4", b"raw", "video/mp4")})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_upload_rejects_non_video(client, env, make_token):
    response = await client.post(
        "/videos",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers={"Authorization": f"Bearer {make_token('alice')}"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_retry_flow(client, env, make_token):
    await env.add_job("v4", status=JobStatus.FAILED)
    headers = {"Authorization": f"Bearer {make_token('alice')}"}

    response = await client.post("/videos/v4/retry", headers=headers)
    assert response.status_code == 202
    assert response.json()["status"] == "uploaded"
    assert env.dispatched == ["v4"]

    response = await client.post("/videos/v4/retry", headers=headers)
    assert response.status_code == 409

    other = await client.post("/videos/v4/retry", headers={"Authorization": f"Bearer {make_token('bob')}"})
    assert other.status_code == 403


@pytest.mark.asyncio
async def test_journal_orders_jobs_and_requires_filter(client, env):
    for job_id in ("j1", "j2", "j3"):
        await env.add_job(job_id, session_id="s1")
    await env.add_job("other", session_id="s2")

    response = await client.get("/videos/journal", params={"session_id": "s1"})
    assert response.status_code == 200
    body = response.json()
    assert [job["id"] for job in body["data"]] == ["j1", "j2", "j3"]
    assert body["totalCount"] == 3
    assert set(body["data"][0]) == {
        "id", "user_id", "session_id", "storage_path", "status",
        "transcription_text", "analysis", "error_message", "created_at", "updated_at",
    }

    assert (await client.get("/videos/journal")).status_code == 400


@pytest.mark.asyncio
async def test_signed_url(client, env, make_token):
    response = await client.post(
        "/storage/signed-url",
        json={"storage_path": VIDEO_PATH},
        headers={"Authorization": f"Bearer {make_token('alice')}"},
    )
    assert response.status_code == 200
    assert response.json()["signed_url"].startswith("https://signed.example/")
    assert env.media_store.signed == [(VIDEO_PATH, 365 * 24 * 3600)]


@pytest.mark.asyncio
async def test_connections(client, env, make_token):
    async with env.session_factory() as db:
        db.add_all([Profile(user_id="alice", email="a@example.com"), Profile(user_id="bob", email="b@example.com")])
        await db.commit()
    alice = {"Authorization": f"Bearer {make_token('alice')}"}
    bob = {"Authorization": f"Bearer {make_token('bob')}"}

    response = await client.post(
        "/connections", json={"requester_id": "alice", "target_id": "bob", "analysis_data": {"score": 8}}, headers=alice
    )
    assert response.status_code == 201
    assert response.json()["status"] == "pending"
    assert response.json()["match_score"] == 8.0
    assert response.json()["analysis_data"] == {"score": 8}

    response = await client.post("/connections", json={"requester_id": "bob", "target_id": "alice"}, headers=bob)
    assert response.status_code == 409
    assert response.json()["error"] == "CONFLICT"

    response = await client.post("/connections", json={"requester_id": "bob", "target_id": "alice"}, headers=alice)
    assert response.status_code == 403

    response = await client.post("/connections", json={"requester_id": "alice", "target_id": "alice"}, headers=alice)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_upload_with_fast_profile(client, env, make_token, monkeypatch):
    used = []

    def fake_compress(raw, options):
        used.append(options)
        return CompressionResult(data=b"small", input_size=len(raw), output_size=5)

    monkeypatch.setattr(uploads_module, "compress_video", fake_compress)
    headers = {"Authorization": f"Bearer {make_token('alice')}"}

    response = await client.post(
        "/videos",
        files={"file": ("pitch.mp4", b"raw-mp4", "video/mp4")},
        data={"profile": "fast"},
        headers=headers,
    )
    assert response.status_code == 201
    assert used == [FAST_PROFILE]
    assert env.media_store.put_calls[0]["data"] == b"small"

    response = await client.post(
        "/videos",
        files={"file": ("pitch.mp4", b"raw-mp4", "video/mp4")},
        data={"profile": "tiny"},
        headers=headers,
    )
    assert response.status_code == 422
