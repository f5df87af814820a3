from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence

import pytest

from sitegen.acquirer import ContentAcquirer
from sitegen.coordinator import RequestCoordinator
from sitegen.llm.retry import RetryPolicy
from sitegen.security.rate_limit import RateLimiter
from sitegen.workspace.materializer import WorkspaceMaterializer
from tests._fixtures.fakes import Outcome, RecordingSleep, ScriptedRunner, StubSupervisor


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def workspace_dir(tmp_path: Path) -> Path:
    """Location of the generated project; deliberately not created up front."""
    return tmp_path / "generated-site"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_coordinator(
    workspace_dir: Path, clock: FakeClock
) -> Callable[..., RequestCoordinator]:
    """Build a coordinator around scripted model output and a stub supervisor."""

    def _factory(
        outcomes: Sequence[Outcome],
        *,
        on_exhaustion: str = "fallback",
        supervisor: StubSupervisor | None = None,
        min_interval: float = 0.0,
        configured: bool = True,
    ) -> RequestCoordinator:
        runner = ScriptedRunner(outcomes, configured=configured)
        acquirer = ContentAcquirer(
            runner,
            policy=RetryPolicy(max_attempts=3, initial_delay=2.0, backoff_multiplier=2.0),
            on_exhaustion=on_exhaustion,
            sleep=RecordingSleep(),
        )
        return RequestCoordinator(
            acquirer=acquirer,
            materializer=WorkspaceMaterializer(workspace_dir),
            supervisor=supervisor or StubSupervisor(),  # type: ignore[arg-type]
            rate_limiter=RateLimiter(min_interval, clock=clock),
            credential_configured=configured,
        )

    return _factory
