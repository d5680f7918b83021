import pytest
from fastapi.testclient import TestClient

from apis.capture_api import get_browser_provider
from apis.run_test_api import get_executor
from apis.scripts_api import get_codegen_agent
from apis.services_api import get_service_drafter
from fakes import EVENT_PAGE, HOSTS_OUTPUT_SCHEMA, SIBLING_CANDIDATE, FakePage, FakeProvider, FakeResponse, StubExecutor
from main import app
from scraping import config
from scraping.errors import GenerationFault
from scraping.schemas import ServiceDraft, TestExecutionResult
from services.codegen_agent import ScriptedAgent

URL = "https://lu.ma/7xmwzqze"


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _event_provider():
    return FakeProvider(FakePage([FakeResponse("https://api.lu.ma/event/get", body=EVENT_PAGE)]))


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_capture_returns_transcript(client):
    app.dependency_overrides[get_browser_provider] = _event_provider
    response = client.post("/capture", json={"url": URL, "dwell_seconds": 0.01})

    assert response.status_code == 200
    body = response.json()
    assert body["replay_id"] == "sess-123"
    assert body["events"][0]["body"] == EVENT_PAGE


def test_capture_rejects_invalid_url(client):
    app.dependency_overrides[get_browser_provider] = _event_provider
    assert client.post("/capture", json={"url": "not a url"}).status_code == 422


def test_capture_session_failure_is_bad_gateway(client):
    app.dependency_overrides[get_browser_provider] = lambda: FakeProvider(session_error=RuntimeError("no quota"))
    response = client.post("/capture", json={"url": URL, "dwell_seconds": 0.01})
    assert response.status_code == 502
    assert "no quota" in response.json()["detail"]


def test_capture_connection_failure_is_gateway_timeout(client):
    app.dependency_overrides[get_browser_provider] = lambda: FakeProvider(connect_error=OSError("refused"))
    response = client.post("/capture", json={"url": URL, "dwell_seconds": 0.01})
    assert response.status_code == 504


def test_capture_without_browserbase_credentials(client, monkeypatch):
    monkeypatch.delenv("BROWSER_PROVIDER", raising=False)
    monkeypatch.delenv("BROWSERBASE_API_KEY", raising=False)
    monkeypatch.delenv("BROWSERBASE_PROJECT_ID", raising=False)
    response = client.post("/capture", json={"url": URL, "dwell_seconds": 0.01})
    assert response.status_code == 500
    assert "BROWSERBASE_API_KEY" in response.json()["detail"]


def test_scripts_runs_capture_and_synthesis(client):
    agent = ScriptedAgent([{config.CANDIDATE_PATH: SIBLING_CANDIDATE}])
    executor = StubExecutor(
        [
            TestExecutionResult(result_text="Result: []", returned_empty=True),
            TestExecutionResult(result_text="Result: [...]", passed=True),
        ]
    )
    app.dependency_overrides[get_browser_provider] = _event_provider
    app.dependency_overrides[get_codegen_agent] = lambda: agent
    app.dependency_overrides[get_executor] = lambda: executor

    response = client.post(
        "/scripts",
        json={
            "url": URL,
            "user_prompt": "List the hosts of this event",
            "input_schema": "{event_id: string}",
            "output_schema": HOSTS_OUTPUT_SCHEMA,
            "example_args": '{"event_id": "evt-7xmwzqze"}',
            "dwell_seconds": 0.01,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["test_passed"] is True
    assert body["script"] == SIBLING_CANDIDATE
    assert body["attempts"] == 2
    assert [attempt["verdict"] for attempt in body["history"]] == ["fail_empty", "pass"]
    assert body["replay_id"] == "sess-123"
    assert body["chat_id"]


def test_run_test_executes_candidate(client):
    response = client.post(
        "/run-test",
        json={
            "input_schema": "{event_id: string}",
            "output_schema": HOSTS_OUTPUT_SCHEMA,
            "test_args": '{ event_id: "evt-7xmwzqze" }',
            "script": SIBLING_CANDIDATE,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["passed"] is True
    assert body["returned_empty"] is False
    assert body["validation_error"] is None
    assert "Grace Hopper" in body["test_result"]


def test_run_test_reports_empty_results(client):
    app.dependency_overrides[get_executor] = lambda: StubExecutor(
        [TestExecutionResult(result_text="Result: []", returned_empty=True)]
    )
    response = client.post(
        "/run-test",
        json={"input_schema": "{}", "output_schema": "any[]", "test_args": "{}", "script": "x"},
    )
    assert response.json()["returned_empty"] is True
    assert response.json()["passed"] is False


def test_services_draft(client):
    async def drafter(url, prompt):
        return ServiceDraft(
            name="Event Hosts",
            description=f"Hosts of {url}",
            input_schema="{event_id: string}",
            output_schema=HOSTS_OUTPUT_SCHEMA,
            example_args='{"event_id": "evt-7xmwzqze"}',
        )

    app.dependency_overrides[get_service_drafter] = lambda: drafter
    response = client.post("/services/draft", json={"url": URL, "prompt": "who hosts this?"})

    assert response.status_code == 200
    assert response.json()["name"] == "Event Hosts"


def test_services_draft_failure_is_bad_gateway(client):
    async def drafter(url, prompt):
        raise GenerationFault("model returned prose")

    app.dependency_overrides[get_service_drafter] = lambda: drafter
    response = client.post("/services/draft", json={"url": URL, "prompt": "who hosts this?"})
    assert response.status_code == 502
