import json
from typing import Callable, List

import httpx
import pytest
from typer.testing import CliRunner

from pincho.core.client import PinchoClient
from pincho.infrastructure.config import settings


@pytest.fixture
def anyio_backend():
    """Force anyio to use asyncio."""
    return "asyncio"


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keeps tests independent of the developer's environment, .env and YAML config."""
    for name in (settings.ENV_TOKEN, settings.ENV_API_URL, settings.ENV_TIMEOUT, settings.ENV_MAX_RETRIES):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_loaded", True)
    settings.clear_test_config()
    yield
    settings.clear_test_config()


class RecordingTransport:
    """Replays queued responses through httpx.MockTransport and records requests."""

    def __init__(self, responses: List):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        # Fresh copy per request; httpx binds a response to the request it answers
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def sent_json(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def make_transport() -> Callable[..., RecordingTransport]:
    """Builds a RecordingTransport; the last queued response repeats forever."""
    return RecordingTransport


@pytest.fixture
def make_client():
    """Builds a PinchoClient backed by a RecordingTransport."""
    def _make(recorder: RecordingTransport, **kwargs) -> PinchoClient:
        http_client = httpx.AsyncClient(transport=recorder.transport)
        kwargs.setdefault("token", "abc12345")
        kwargs.setdefault("api_url", "https://api.test/send")
        client = PinchoClient(http_client=http_client, **kwargs)
        return client

    return _make
