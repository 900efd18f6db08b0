from typing import Optional, Protocol

from loguru import logger
from provisioning_client.errors import MissingHandleError, TransportError
from provisioning_client.models import RequestStatus, StatusSnapshot
from provisioning_client.status import classify


class StatusSource(Protocol):
    async def get_status(self, handle: str) -> RequestStatus: ...


class Poller:
    def __init__(self, source: StatusSource):
        self.source = source
        self.logger = logger

    async def poll(self, handle: Optional[str]) -> StatusSnapshot:
        """Reads the remote status of an operation once and classifies it"""
        if not handle:
            raise MissingHandleError("Can not check a state when the handle is empty")

        try:
            request_status = await self.source.get_status(handle)
        except TransportError:
            raise
        except Exception as e:
            self.logger.error(f"Status query for {handle} failed: {e}")
            raise TransportError(f"Request failed with following error: {e}") from e

        snapshot = classify(
            request_status.status, request_status.message, request_status.payload
        )
        self.logger.debug(f"Operation {handle} is {snapshot.raw_status}")
        return snapshot
