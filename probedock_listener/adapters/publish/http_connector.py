"""Probe Dock HTTP publish adapter.

Implements PublishPort by posting the v1 test run payload to the
Probe Dock server's publish endpoint.
"""

import json
import logging

import httpx

from probedock_listener.adapters.serialization import PAYLOAD_MEDIA_TYPE, run_to_payload
from probedock_listener.core.errors import PublishError
from probedock_listener.core.models import TestRun
from probedock_listener.core.ports import PublishPort

logger = logging.getLogger(__name__)


class HttpConnector(PublishPort):
    """Publishes test runs to a Probe Dock server."""

    def __init__(
        self,
        server_url: str,
        api_token: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the connector.

        Args:
            server_url: Base URL of the Probe Dock server.
            api_token: API token used as bearer credential.
            timeout_seconds: Timeout applied to connect, read and write.
            transport: Optional httpx transport (e.g. httpx.MockTransport).
        """
        self.server_url = server_url.rstrip("/")
        self.api_token = api_token
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client.

        Returns:
            httpx.AsyncClient configured with Probe Dock authentication.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.server_url,
                headers={
                    "Authorization": f"Bearer {self.api_token}",
                    "Content-Type": PAYLOAD_MEDIA_TYPE,
                    "Accept": "application/json",
                },
                timeout=self.timeout_seconds,
                transport=self.transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, run: TestRun) -> None:
        """Post the run to /api/publish.

        Raises:
            PublishError: On transport errors or a non-2xx response.
        """
        body = json.dumps(run_to_payload(run))

        try:
            client = await self._get_client()
            response = await client.post("/api/publish", content=body)
        except httpx.RequestError as e:
            logger.error(
                f"Failed to reach Probe Dock server: {e}",
                extra={"server_url": self.server_url},
            )
            raise PublishError(f"Failed to reach Probe Dock server at {self.server_url}: {e}") from e

        if not response.is_success:
            logger.error(
                f"Probe Dock server rejected test run: {response.status_code}",
                extra={"response": response.text},
            )
            raise PublishError(
                f"Probe Dock server rejected test run with status {response.status_code}",
                status_code=response.status_code,
            )

        logger.info(
            f"Published test run with {len(run.results)} results",
            extra={"server_url": self.server_url, "status_code": response.status_code},
        )
