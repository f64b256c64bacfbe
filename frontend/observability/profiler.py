from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Any, Callable

import structlog


ProfilerStarter = Callable[[str, str], None]

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_S = 10.0


class ProfilerState(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    RUNNING = "running"
    EXHAUSTED = "exhausted"


def start_cloud_profiler(service: str, version: str) -> None:
    # Imported lazily: a missing client library is just another failed attempt.
    import googlecloudprofiler

    googlecloudprofiler.start(service=service, service_version=version, verbose=0)


class ProfilerBootstrap:
    """Bounded retry loop around starting the profiling agent.

    ``idle -> attempting -> running | exhausted``. Both ``running`` and
    ``exhausted`` are terminal. Each failure waits ``base_delay * attempt``
    seconds before moving on, so the default schedule is 10s, 20s, 30s.
    Start and sleep are injectable so the loop can be driven without real
    time passing.
    """

    def __init__(
        self,
        service: str,
        version: str,
        *,
        start: ProfilerStarter | None = None,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_S,
        logger: Any = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.service = service
        self.version = version
        self._start = start or start_cloud_profiler
        self._sleep = sleep
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.log = logger or structlog.get_logger("profiler")

        self.state = ProfilerState.IDLE
        self.attempts = 0
        self.delays: list[float] = []

    @property
    def finished(self) -> bool:
        return self.state in (ProfilerState.RUNNING, ProfilerState.EXHAUSTED)

    def run(self) -> ProfilerState:
        if self.state is not ProfilerState.IDLE:
            return self.state

        for attempt in range(1, self.max_attempts + 1):
            self.state = ProfilerState.ATTEMPTING
            self.attempts = attempt
            try:
                self._start(self.service, self.version)
            except Exception as exc:  # noqa: BLE001
                self.log.warning("failed to start profiler", attempt=attempt, error=repr(exc))
            else:
                self.state = ProfilerState.RUNNING
                self.log.info("started profiler", service=self.service, version=self.version, attempt=attempt)
                return self.state

            delay = self.base_delay * attempt
            self.delays.append(delay)
            self.log.info("sleeping to retry initializing profiler", delay_s=delay)
            self._sleep(delay)

        self.state = ProfilerState.EXHAUSTED
        self.log.warning("could not initialize profiler after retrying, giving up", attempts=self.attempts)
        return self.state

    def start_background(self) -> threading.Thread:
        thread = threading.Thread(target=self.run, name="profiler-bootstrap", daemon=True)
        thread.start()
        return thread
