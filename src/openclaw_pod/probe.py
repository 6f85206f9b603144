"""Readiness probing for the browser sidecar.

The sidecar's control endpoint (Chromium CDP) is only published inside the
pod network, so each attempt runs ``curl`` *inside* the container through the
runtime adapter rather than connecting from the host.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from openclaw_pod.errors import ContainerRuntimeError, NotRunningError
from openclaw_pod.logger import logger
from openclaw_pod.runtime import ContainerRuntime
from openclaw_pod.types import ReadinessResult

# A check returns None on success, or a short reason for the failure.
Check = Callable[[], str | None]


@dataclass(frozen=True)
class ProbePolicy:
    interval: float = 0.5
    max_attempts: int = 60
    attempt_timeout: float = 1.0

    @property
    def budget(self) -> float:
        return self.interval * self.max_attempts


def poll_until_ready(
    check: Check,
    policy: ProbePolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> ReadinessResult:
    """Run *check* until it succeeds or ``policy.max_attempts`` are used.

    Success returns immediately; the interval is slept only between failed
    attempts, so success on attempt N sleeps ``(N - 1) * interval``.
    """
    start = clock()
    last_error: str | None = None
    for attempt in range(1, policy.max_attempts + 1):
        last_error = check()
        if last_error is None:
            return ReadinessResult(True, attempt, clock() - start)
        if attempt < policy.max_attempts:
            sleep(policy.interval)
    return ReadinessResult(False, policy.max_attempts, clock() - start, last_error)


def exec_http_check(
    runtime: ContainerRuntime,
    container: str,
    url: str,
    attempt_timeout: float,
) -> Check:
    """Build a check that fetches *url* with curl from inside *container*."""
    max_time = f"{attempt_timeout:g}"

    def _check() -> str | None:
        try:
            result = runtime.exec_in_container(
                container,
                ["curl", "-sS", "--max-time", max_time, url],
                timeout=attempt_timeout + 5,
            )
        except (NotRunningError, ContainerRuntimeError) as exc:
            return str(exc)
        if result.ok:
            return None
        return result.stderr.strip() or f"curl exited {result.exit_code}"

    return _check


def wait_for_container_http(
    runtime: ContainerRuntime,
    container: str,
    url: str,
    policy: ProbePolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> ReadinessResult:
    """Probe *url* inside *container*. Never raises for an unready target."""
    logger.info(
        "Waiting for container endpoint",
        container=container,
        url=url,
        budget_s=policy.budget,
    )
    result = poll_until_ready(
        exec_http_check(runtime, container, url, policy.attempt_timeout),
        policy,
        sleep=sleep,
    )
    if result.ready:
        logger.info("Container endpoint is ready", container=container, attempts=result.attempts)
    else:
        logger.warning(
            "Container endpoint did not become ready",
            container=container,
            attempts=result.attempts,
            last_error=result.last_error,
            hint=f"{runtime.cli} logs {container}",
        )
    return result
