import asyncio
from typing import Optional, Sequence, Union

import pytest
from provisioning_client.models import RequestStatus, WaitPolicies, WaitPolicy
from provisioning_client.poller import Poller
from provisioning_client.wait_coordinator import WaitCoordinator

Step = Union[str, tuple, BaseException]


class FakeClock:
    """Virtual time that only moves when the coordinator sleeps."""

    def __init__(self, early_wake: float = 0.0):
        self.now = 0.0
        self.early_wake = early_wake
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += max(delay - self.early_wake, 0.0)
        await asyncio.sleep(0)


class ScriptedSource:
    """Replays a script of statuses, the last step repeats forever."""

    def __init__(self, steps: Sequence[Step]):
        self.steps = list(steps)
        self.calls: list[str] = []
        self.on_poll = None

    async def get_status(self, handle: str) -> RequestStatus:
        self.calls.append(handle)
        if self.on_poll is not None:
            self.on_poll(len(self.calls))
        step = self.steps[min(len(self.calls), len(self.steps)) - 1]
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, tuple):
            status, message = step
            return RequestStatus(status=status, message=message)
        payload = {"metadata": {"status": step}} if step == "DONE" else None
        return RequestStatus(status=step, payload=payload)


def uniform_policies(
    timeout: float = 3600.0,
    min_poll_interval: float = 10.0,
    initial_delay: float = 10.0,
    not_found_tolerance: int = 600,
) -> WaitPolicies:
    policy = WaitPolicy.build(
        timeout=timeout,
        min_poll_interval=min_poll_interval,
        initial_delay=initial_delay,
        not_found_tolerance=not_found_tolerance,
    )
    return WaitPolicies.build(create=policy, update=policy, delete=policy, default=policy)


@pytest.fixture
def clock() -> FakeClock:
    """Provide a virtual clock so waits finish instantly."""
    return FakeClock()


@pytest.fixture
def make_coordinator(clock):
    """Build a coordinator polling a scripted source on virtual time."""

    def build(steps: Sequence[Step], policies: Optional[WaitPolicies] = None):
        source = ScriptedSource(steps)
        coordinator = WaitCoordinator(
            Poller(source),
            policies or uniform_policies(),
            clock=clock,
            sleep=clock.sleep,
        )
        return coordinator, source

    return build
