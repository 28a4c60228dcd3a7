"""Tests for the Probe Dock HTTP connector."""

import json

import httpx
import pytest

from probedock_listener.adapters.publish.http_connector import HttpConnector
from probedock_listener.adapters.serialization import PAYLOAD_MEDIA_TYPE
from probedock_listener.core.errors import PublishError
from probedock_listener.core.models import TestResult, TestRun


@pytest.fixture
def run() -> TestRun:
    return TestRun(
        project_api_id="shop-api",
        project_version="1.0.0",
        duration_ms=20,
        results=(
            TestResult(
                fingerprint="f1",
                name="Cart: Add",
                category="unit",
                duration_ms=12,
                passed=True,
                active=True,
            ),
        ),
    )


def connector_for(handler) -> HttpConnector:
    return HttpConnector(
        server_url="https://probedock.example.com/",
        api_token="secret-token",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_send_posts_payload(run: TestRun) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(202, json={})

    connector = connector_for(handler)
    await connector.send(run)
    await connector.close()

    [request] = requests
    assert request.method == "POST"
    assert str(request.url) == "https://probedock.example.com/api/publish"
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert request.headers["Content-Type"] == PAYLOAD_MEDIA_TYPE
    assert json.loads(request.content)["projectId"] == "shop-api"


@pytest.mark.asyncio
async def test_rejected_run_raises_publish_error(run: TestRun) -> None:
    connector = connector_for(lambda request: httpx.Response(422, text="invalid"))

    with pytest.raises(PublishError) as exc_info:
        await connector.send(run)
    await connector.close()

    assert exc_info.value.status_code == 422


@pytest.mark.asyncio
async def test_unreachable_server_raises_publish_error(run: TestRun) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    connector = connector_for(handler)

    with pytest.raises(PublishError, match="Failed to reach Probe Dock server"):
        await connector.send(run)
    await connector.close()


@pytest.mark.asyncio
async def test_close_is_idempotent(run: TestRun) -> None:
    connector = connector_for(lambda request: httpx.Response(200))

    await connector.send(run)
    await connector.close()
    await connector.close()

    assert connector._client is None
