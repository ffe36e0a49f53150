import asyncio
import time
from unittest.mock import AsyncMock

import httpx
import pytest

from pincho.core.client import USER_AGENT, PinchoClient
from pincho.domain.errors import (
    AuthError, ConfigurationError, DeadlineExceeded, PinchoError, RateLimitError, ServerError, ValidationError,
)
from pincho.domain.models.notification import NotificationRequest, SendResponse
from pincho.infrastructure.resilience.cancellation import CancellationToken

OK = httpx.Response(200, json={"status": "success", "message": "Notification sent"})


@pytest.fixture
def no_wait(mocker):
    return mocker.patch.object(CancellationToken, "sleep", new_callable=AsyncMock)


@pytest.mark.parametrize(
    "kwargs, match",
    [
        ({"token": None}, "token is required"),
        ({"api_url": ""}, "API URL"),
        ({"timeout": 0}, "timeout must be positive"),
        ({"timeout": -1}, "timeout must be positive"),
        ({"max_retries": -1}, "max retries cannot be negative"),
    ],
)
def test_constructor_validates_settings(kwargs, match):
    args = {"token": "abc12345", **kwargs}
    with pytest.raises(ConfigurationError, match=match):
        PinchoClient(**args)


def test_token_from_environment(monkeypatch):
    monkeypatch.setenv("PINCHO_TOKEN", "envtoken")
    monkeypatch.setenv("PINCHO_MAX_RETRIES", "1")
    client = PinchoClient()
    assert client.token == "envtoken"
    assert client.max_retries == 1


@pytest.mark.anyio
async def test_send_posts_expected_request(make_transport, make_client):
    recorder = make_transport([OK])
    client = make_client(recorder)

    response = await client.send(NotificationRequest(
        title="Server Alert",
        message="CPU usage high",
        type="alert",
        tags=["Monitoring", "production", "PRODUCTION", "bad tag"],
        image_url="https://example.com/graph.png",
        action_url="https://dashboard.example.com",
    ))

    assert response == SendResponse(status="success", message="Notification sent")
    request = recorder.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.test/send"
    assert request.headers["Authorization"] == "Bearer abc12345"
    assert request.headers["User-Agent"] == USER_AGENT
    assert request.headers["Content-Type"] == "application/json"
    assert recorder.sent_json() == {
        "title": "Server Alert",
        "message": "CPU usage high",
        "type": "alert",
        "tags": ["monitoring", "production"],
        "imageURL": "https://example.com/graph.png",
        "actionURL": "https://dashboard.example.com",
    }


@pytest.mark.anyio
async def test_send_simple_omits_optional_fields(make_transport, make_client):
    recorder = make_transport([OK])
    await make_client(recorder).send_simple("Hello", "World")
    assert recorder.sent_json() == {"title": "Hello", "message": "World"}


@pytest.mark.anyio
async def test_missing_title_never_hits_network(make_transport, make_client):
    recorder = make_transport([OK])
    with pytest.raises(ValidationError) as excinfo:
        await make_client(recorder).send(NotificationRequest(title=""))
    assert excinfo.value.status_code == 0
    assert recorder.requests == []


@pytest.mark.anyio
async def test_encryption_encrypts_sensitive_fields_only(make_transport, make_client):
    recorder = make_transport([OK])
    await make_client(recorder).send(NotificationRequest(
        title="Secret",
        message="Body",
        type="alert",
        tags=["ops"],
        action_url="https://example.com",
        encryption_password="pw",
    ))

    body = recorder.sent_json()
    assert body["title"] != "Secret"
    assert body["message"] != "Body"
    assert body["actionURL"] != "https://example.com"
    assert "imageURL" not in body
    assert body["type"] == "alert"
    assert body["tags"] == ["ops"]
    assert len(body["iv"]) == 32
    assert "encryption_password" not in body and "pw" not in body.values()


@pytest.mark.anyio
async def test_encryption_failure_is_local_generic_error(make_transport, make_client, mocker):
    recorder = make_transport([OK])
    mocker.patch("pincho.core.client.encrypt_message", side_effect=ValueError("cipher broke"))

    with pytest.raises(PinchoError, match="failed to encrypt title") as excinfo:
        await make_client(recorder).send(NotificationRequest(title="t", encryption_password="pw"))

    assert type(excinfo.value) is PinchoError
    assert not excinfo.value.is_retryable()
    assert recorder.requests == []


@pytest.mark.anyio
async def test_server_error_then_success(make_transport, make_client, no_wait):
    """HTTP 500 then 200 with max_retries=3: two attempts, one 1s wait."""
    recorder = make_transport([httpx.Response(500, text="oops"), OK])

    response = await make_client(recorder, max_retries=3).send_simple("Hello")

    assert response.status == "success"
    assert len(recorder.requests) == 2
    no_wait.assert_awaited_once_with(1)


@pytest.mark.anyio
async def test_auth_error_fails_without_retry(make_transport, make_client, no_wait):
    recorder = make_transport([httpx.Response(401, json={"status": "error", "error": {"message": "Invalid token"}})])

    with pytest.raises(AuthError, match="Invalid token"):
        await make_client(recorder).send_simple("Hello")

    assert len(recorder.requests) == 1
    no_wait.assert_not_awaited()


@pytest.mark.anyio
async def test_rate_limit_waits_for_retry_after(make_transport, make_client, no_wait):
    recorder = make_transport([httpx.Response(429, text="slow down", headers={"Retry-After": "2"}), OK])

    await make_client(recorder).send_simple("Hello")

    assert len(recorder.requests) == 2
    no_wait.assert_awaited_once_with(2)


@pytest.mark.anyio
async def test_zero_retries_fails_after_one_attempt(make_transport, make_client, no_wait):
    recorder = make_transport([httpx.Response(500, text="oops")])

    with pytest.raises(ServerError):
        await make_client(recorder, max_retries=0).send_simple("Hello")

    assert len(recorder.requests) == 1
    no_wait.assert_not_awaited()


@pytest.mark.anyio
async def test_rate_limit_exhausts_retries(make_transport, make_client, no_wait):
    recorder = make_transport([httpx.Response(429, text="slow down")])

    with pytest.raises(RateLimitError):
        await make_client(recorder, max_retries=2).send_simple("Hello")

    assert len(recorder.requests) == 3
    assert [c.args[0] for c in no_wait.await_args_list] == [5, 10]


@pytest.mark.anyio
async def test_network_errors_are_retried(make_transport, make_client, no_wait):
    recorder = make_transport([httpx.ConnectError("refused"), OK])
    await make_client(recorder).send_simple("Hello")
    assert len(recorder.requests) == 2


@pytest.mark.anyio
async def test_cancel_during_backoff(make_transport, make_client):
    recorder = make_transport([httpx.Response(429, text="slow down")])
    client = make_client(recorder)
    token = CancellationToken.with_timeout(0.05)

    start = time.monotonic()
    with pytest.raises(DeadlineExceeded):
        await client.send_simple("Hello", cancel_token=token)

    assert time.monotonic() - start < 1
    assert len(recorder.requests) == 1


@pytest.mark.anyio
async def test_rate_limit_info_tracks_latest_response(make_transport, make_client):
    recorder = make_transport([
        httpx.Response(200, headers={"RateLimit-Limit": "100", "RateLimit-Remaining": "10", "RateLimit-Reset": "1700000000"}),
        httpx.Response(200),
        httpx.Response(200, headers={"RateLimit-Remaining": "8"}),
    ])
    client = make_client(recorder)
    assert client.get_rate_limit_info() is None

    assert await client.send_simple("one") is None
    assert client.get_rate_limit_info().remaining == 10

    await client.send_simple("two")
    assert client.get_rate_limit_info().remaining == 10

    await client.send_simple("three")
    info = client.get_rate_limit_info()
    assert (info.limit, info.remaining, info.has_reset) == (0, 8, False)


@pytest.mark.anyio
async def test_concurrent_sends_share_client(make_transport, make_client):
    recorder = make_transport([httpx.Response(200, headers={"RateLimit-Remaining": "5"})])
    client = make_client(recorder)

    await asyncio.gather(*(client.send_simple(f"n{i}") for i in range(10)))

    assert len(recorder.requests) == 10
    assert client.get_rate_limit_info().remaining == 5


@pytest.mark.anyio
async def test_observer_receives_events(make_transport, make_client, no_wait):
    events = []
    recorder = make_transport([httpx.Response(503, text="down"), OK])
    await make_client(recorder, observer=events.append).send_simple("Hello")
    assert [type(e).__name__ for e in events] == [
        "AttemptStarted", "AttemptFailed", "RetryScheduled", "AttemptStarted", "AttemptSucceeded",
    ]


@pytest.mark.anyio
async def test_client_closes_owned_http_client():
    client = PinchoClient(token="abc12345")
    async with client:
        pass
    assert client.http_client.is_closed


@pytest.mark.anyio
async def test_client_leaves_injected_http_client_open():
    http_client = httpx.AsyncClient()
    async with PinchoClient(token="abc12345", http_client=http_client):
        pass
    assert not http_client.is_closed
    await http_client.aclose()


@pytest.mark.anyio
async def test_owned_client_follows_redirect_with_body(make_transport, mocker):
    recorder = make_transport([
        httpx.Response(307, headers={"Location": "https://api.test/v2/send"}),
        OK,
    ])
    real_client = httpx.AsyncClient

    def factory(*args, **kwargs):
        kwargs["transport"] = recorder.transport
        return real_client(*args, **kwargs)

    mocker.patch("pincho.core.client.httpx.AsyncClient", side_effect=factory)

    async with PinchoClient(token="abc12345", api_url="https://api.test/send") as client:
        response = await client.send_simple("Hello")

    assert response == SendResponse(status="success", message="Notification sent")
    assert len(recorder.requests) == 2
    assert str(recorder.requests[1].url) == "https://api.test/v2/send"
    assert recorder.sent_json(1) == {"title": "Hello"}


@pytest.mark.anyio
async def test_unfollowed_redirect_is_not_success(make_transport, make_client, no_wait):
    recorder = make_transport([httpx.Response(302, headers={"Location": "https://elsewhere.test/"})])

    with pytest.raises(PinchoError) as excinfo:
        await make_client(recorder).send_simple("Hello")

    assert excinfo.value.status_code == 302
    assert len(recorder.requests) == 1
    no_wait.assert_not_awaited()
