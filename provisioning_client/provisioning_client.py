import asyncio
from typing import Any, Optional, Union
from urllib.parse import urljoin

import aiohttp
from loguru import logger
from provisioning_client.config import ClientConfig
from provisioning_client.errors import (
    HandleNotFoundError,
    ProvisioningError,
    SubmissionError,
    TransportError,
)
from provisioning_client.models import (
    OperationKind,
    RequestStatus,
    ResourceSpec,
    WaitPolicies,
)
from provisioning_client.poller import Poller
from provisioning_client.wait_coordinator import WaitCoordinator


class ProvisioningClient:
    def __init__(
        self,
        config: ClientConfig,
        policies: Optional[WaitPolicies] = None,
    ):
        self.config = config
        self.base_url = config.endpoint
        self.policies = policies or WaitPolicies()
        self.logger = logger
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "ProvisioningClient":
        headers = {"Content-Type": "application/json"}
        auth = None
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        else:
            auth = aiohttp.BasicAuth(self.config.username, self.config.password)

        self._session = aiohttp.ClientSession(
            headers=headers,
            auth=auth,
            timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise ProvisioningError("Client session is not open, use 'async with'")
        return self._session

    def _url(self, path: str) -> str:
        return urljoin(f"{self.base_url}/", path.lstrip("/"))

    async def submit_mutation(self, spec: ResourceSpec) -> str:
        """Issues a mutating request and returns the request status URL to poll"""
        url = self._url(spec.path)

        try:
            async with self.session.request(spec.method, url, json=spec.body) as response:
                response.raise_for_status()
                location = response.headers.get("Location")
        except aiohttp.ClientResponseError as e:
            self.logger.error(f"HTTP error {e.status} at {url}: {e.message}")
            raise SubmissionError(
                f"{spec.method} {url} was rejected with HTTP {e.status}: {e.message}"
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Could not submit {spec.method} {url}: {e}")
            raise SubmissionError(f"{spec.method} {url} failed: {e}") from e

        if not location:
            raise SubmissionError(f"{spec.method} {url} returned no Location header")

        handle = urljoin(url, location)
        self.logger.info(f"Submitted {spec.method} {spec.path}, tracking {handle}")
        return handle

    async def get_status(self, handle: str) -> RequestStatus:
        """Fetches the raw status of an in-flight request from the server"""
        async with self.session.get(handle) as response:
            if response.status == 404:
                raise HandleNotFoundError(f"Request {handle} is not visible yet")
            response.raise_for_status()
            data = await response.json()

        metadata = data.get("metadata") or {}
        if "status" not in metadata:
            raise TransportError(f"Malformed status response from {handle}: {data}")

        return RequestStatus(
            status=metadata["status"],
            message=metadata.get("message"),
            payload=data,
        )

    async def wait_for_completion(
        self,
        handle: Optional[str],
        kind: Union[OperationKind, str] = OperationKind.default,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[dict[str, Any]]:
        coordinator = WaitCoordinator(Poller(self), self.policies)
        return await coordinator.wait_for_completion(handle, kind, cancel_event)

    async def apply(
        self,
        spec: ResourceSpec,
        kind: Union[OperationKind, str] = OperationKind.default,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[dict[str, Any]]:
        """Submits a mutation and blocks until the remote side settles it"""
        handle = await self.submit_mutation(spec)
        return await self.wait_for_completion(handle, kind, cancel_event)
