import asyncio
from typing import Any, Awaitable, Callable, Optional, Union

from loguru import logger
from provisioning_client.errors import (
    MissingHandleError,
    OperationAbortedError,
    RemoteFailure,
    TransportError,
    WaitCancelledError,
    WaitTimeoutError,
)
from provisioning_client.models import (
    OperationKind,
    OperationPhase,
    WaitPolicies,
    WaitPolicy,
)
from provisioning_client.poller import Poller


def _loop_time() -> float:
    return asyncio.get_event_loop().time()


class WaitCoordinator:
    def __init__(
        self,
        poller: Poller,
        policies: Optional[WaitPolicies] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.poller = poller
        self.policies = policies or WaitPolicies()
        self.clock = clock or _loop_time
        self.sleep = sleep or asyncio.sleep
        self.logger = logger

    def _check_cancelled(
        self, handle: str, cancel_event: Optional[asyncio.Event]
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            self.logger.info(f"Wait for operation {handle} cancelled by caller")
            raise WaitCancelledError(f"Wait for operation {handle} was cancelled")

    async def wait_for_completion(
        self,
        handle: Optional[str],
        kind: Union[OperationKind, str] = OperationKind.default,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[dict[str, Any]]:
        """Polls an operation until it reaches a terminal state.

        Returns the payload of the final DONE status. Raises RemoteFailure
        when the remote side reports FAILED, WaitTimeoutError when the policy
        timeout elapses first, OperationAbortedError when the status can no
        longer be read, and WaitCancelledError once ``cancel_event`` is set.
        """
        if not handle:
            raise MissingHandleError("Can not wait for an operation without a handle")

        policy: WaitPolicy = self.policies.for_kind(kind)
        start = self.clock()
        deadline = start + policy.timeout
        final_tick = False
        last_status: Optional[str] = None
        transport_failures = 0

        self.logger.info(
            f"Waiting for {OperationKind(kind).value} operation {handle} "
            f"(timeout {policy.timeout:.0f}s)"
        )
        await self.sleep(policy.initial_delay)

        while True:
            self._check_cancelled(handle, cancel_event)

            try:
                snapshot = await self.poller.poll(handle)
            except TransportError as e:
                transport_failures += 1
                if transport_failures >= policy.not_found_tolerance:
                    self.logger.error(
                        f"Giving up on operation {handle} after "
                        f"{transport_failures} failed status queries"
                    )
                    raise OperationAbortedError(e.message, last_error=e) from e
                self.logger.warning(
                    f"Status query failed ({transport_failures}/"
                    f"{policy.not_found_tolerance}): {e.message}"
                )
            except LookupError as e:
                raise OperationAbortedError(str(e), last_error=e) from e
            else:
                transport_failures = 0
                last_status = snapshot.raw_status

                if snapshot.phase == OperationPhase.succeeded:
                    self.logger.info(f"Operation {handle} completed")
                    return snapshot.payload

                if snapshot.phase == OperationPhase.failed:
                    self.logger.error(f"Operation {handle} failed: {snapshot.message}")
                    raise RemoteFailure(snapshot.message)

            now = self.clock()
            if final_tick or now >= deadline:
                elapsed = now - start
                self.logger.error(
                    f"Timed out waiting for operation {handle} after {elapsed:.1f}s"
                )
                raise WaitTimeoutError(elapsed, last_status)

            # the sleep that reaches the deadline is followed by one last poll
            remaining = deadline - now
            final_tick = remaining <= policy.min_poll_interval
            delay = min(policy.min_poll_interval, remaining)
            self.logger.debug(
                f"Operation {handle} still {last_status}, waiting {delay:.2f}s"
            )
            await self.sleep(delay)
