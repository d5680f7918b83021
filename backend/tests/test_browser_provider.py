import asyncio
from types import SimpleNamespace

import pytest

from scraping.errors import ConfigurationError
from services import browser_provider
from services.browser_provider import BrowserbaseProvider, LocalBrowserProvider, provider_from_env


class FakeBrowserbase:
    instances = []

    def __init__(self, api_key):
        self.api_key = api_key
        self.closed = False
        self.created = []
        self.sessions = SimpleNamespace(create=self._create)
        FakeBrowserbase.instances.append(self)

    async def _create(self, project_id):
        self.created.append(project_id)
        return SimpleNamespace(id="bb-42", connect_url="wss://connect.example/bb-42")

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True


def test_browserbase_session_closes_its_client(monkeypatch):
    FakeBrowserbase.instances = []
    monkeypatch.setattr(browser_provider, "AsyncBrowserbase", FakeBrowserbase)
    provider = BrowserbaseProvider(api_key="key", project_id="proj")

    session = asyncio.run(provider.create_session())

    assert session.session_id == "bb-42"
    assert session.connect_url == "wss://connect.example/bb-42"
    client = FakeBrowserbase.instances[0]
    assert client.api_key == "key"
    assert client.created == ["proj"]
    assert client.closed is True
    assert provider.replay_url(session) == "https://browserbase.com/sessions/bb-42"


def test_missing_browserbase_credentials_are_listed(monkeypatch):
    monkeypatch.delenv("BROWSER_PROVIDER", raising=False)
    monkeypatch.delenv("BROWSERBASE_API_KEY", raising=False)
    monkeypatch.setenv("BROWSERBASE_PROJECT_ID", "proj")
    with pytest.raises(ConfigurationError) as excinfo:
        provider_from_env()
    assert "BROWSERBASE_API_KEY" in str(excinfo.value)
    assert "BROWSERBASE_PROJECT_ID" not in str(excinfo.value)


def test_local_provider_from_environment(monkeypatch):
    monkeypatch.setenv("BROWSER_PROVIDER", "local")
    monkeypatch.setenv("BROWSER_HEADLESS", "false")
    provider = provider_from_env()
    assert isinstance(provider, LocalBrowserProvider)
    assert provider.headless is False
    assert provider.replay_url(asyncio.run(provider.create_session())) is None


def test_unknown_provider_is_a_configuration_error(monkeypatch):
    monkeypatch.setenv("BROWSER_PROVIDER", "firefox-grid")
    with pytest.raises(ConfigurationError):
        provider_from_env()
