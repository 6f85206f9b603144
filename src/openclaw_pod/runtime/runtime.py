"""Container runtime contract and provider selection.

Podman is built in. Additional runtimes can be provided by plugins via
``openclaw_pod_container_runtime``. The orchestrator only ever talks to the
:class:`ContainerRuntime` protocol, so tests substitute a fake.
"""

from __future__ import annotations

from collections.abc import Generator, Sequence
from typing import Any, Protocol, runtime_checkable

from openclaw_pod.config import Settings
from openclaw_pod.logger import logger
from openclaw_pod.types import (
    ContainerSpec,
    ContainerStatus,
    ExecResult,
    PodSpec,
    PodState,
    PodStatus,
    StepResult,
)


@runtime_checkable
class ContainerRuntime(Protocol):
    """Runtime adapter contract implemented by built-ins and plugins.

    Creation calls (``run_container``, ``run_foreground``) raise
    ``ImageNotFoundError`` before touching the runtime when the image is not
    present locally; images are never pulled implicitly. ``exec_*`` and
    ``stream_logs`` raise ``NotRunningError`` for a container that is not
    alive.
    """

    name: str
    cli: str

    def is_available(self) -> bool: ...
    def ensure_running(self) -> None: ...
    def image_exists(self, ref: str) -> bool: ...
    def pod_exists(self, name: str) -> bool: ...
    def pod_state(self, name: str) -> PodState: ...
    def pod_status(self, name: str) -> PodStatus: ...
    def container_running(self, name: str) -> bool: ...
    def create_pod(self, spec: PodSpec) -> str: ...
    def run_container(self, spec: ContainerSpec) -> str: ...
    def run_foreground(self, spec: ContainerSpec) -> int: ...
    def exec_in_container(
        self, name: str, command: Sequence[str], *, timeout: float | None = None
    ) -> ExecResult: ...
    def exec_interactive(self, name: str, command: Sequence[str]) -> int: ...
    def stream_logs(self, name: str) -> Generator[str, None, None]: ...
    def stop_and_remove_pod(self, name: str) -> StepResult: ...


_CREATED_STATES = frozenset({"created", "configured", "initialized"})


def derive_pod_state(containers: Sequence[ContainerStatus]) -> PodState:
    """Collapse the states of a present pod's app containers into one PodState."""
    if not containers:
        return PodState.CREATED
    running = sum(1 for c in containers if c.running)
    if running == len(containers):
        return PodState.RUNNING
    if running:
        return PodState.PARTIALLY_RUNNING
    if all(c.state.lower() in _CREATED_STATES for c in containers):
        return PodState.CREATED
    return PodState.STOPPED


_REQUIRED_METHODS = (
    "is_available",
    "ensure_running",
    "image_exists",
    "pod_exists",
    "create_pod",
    "run_container",
    "exec_in_container",
    "stream_logs",
    "stop_and_remove_pod",
)


def _is_valid_plugin_runtime(candidate: Any) -> bool:
    return (
        hasattr(candidate, "name")
        and hasattr(candidate, "cli")
        and all(callable(getattr(candidate, m, None)) for m in _REQUIRED_METHODS)
    )


def _iter_plugin_runtimes() -> list[ContainerRuntime]:
    from openclaw_pod.plugin import get_plugin_manager

    pm = get_plugin_manager()
    runtimes: list[ContainerRuntime] = []
    for runtime in pm.hook.openclaw_pod_container_runtime():
        if runtime is None:
            continue
        if not _is_valid_plugin_runtime(runtime):
            logger.warning(
                "Ignoring invalid plugin runtime object",
                runtime_type=type(runtime).__name__,
            )
            continue
        runtimes.append(runtime)
    return runtimes


def detect_runtime(settings: Settings) -> ContainerRuntime:
    """Pick the container runtime to use.

    Priority:
    1) ``settings.runtime`` override, when a provider with that name exists
    2) podman, when its CLI is on PATH
    3) first other available provider
    4) podman (so the missing-tool error names the expected CLI)
    """
    from openclaw_pod.runtime.plugins.podman_runtime.runtime import PodmanContainerRuntime

    candidates: dict[str, ContainerRuntime] = {}
    for runtime in _iter_plugin_runtimes():
        name = str(runtime.name).lower().strip()
        if not name:
            continue
        if name in candidates:
            logger.warning("Duplicate runtime provider ignored", runtime=name)
            continue
        candidates[name] = runtime

    podman = candidates.setdefault("podman", PodmanContainerRuntime())

    override = (settings.runtime or "").lower().strip()
    if override:
        selected = candidates.get(override)
        if selected is not None:
            return selected
        logger.warning("Unknown runtime override; falling back to auto-detection", runtime=override)

    if podman.is_available():
        return podman
    for name, runtime in candidates.items():
        if name != "podman" and runtime.is_available():
            return runtime
    return podman


_runtime: ContainerRuntime | None = None


def get_runtime(settings: Settings) -> ContainerRuntime:
    """Lazy singleton. Caches the result of detect_runtime()."""
    global _runtime  # noqa: PLW0603
    if _runtime is None:
        _runtime = detect_runtime(settings)
        logger.debug("Container runtime selected", name=_runtime.name, cli=_runtime.cli)
    return _runtime
