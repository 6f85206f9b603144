"""Shared test fixtures for openclaw-pod."""

from __future__ import annotations

from collections.abc import Generator, Sequence

import pytest

from openclaw_pod.errors import (
    ContainerRuntimeError,
    ImageNotFoundError,
    NotRunningError,
    PodExistsError,
)
from openclaw_pod.runtime import derive_pod_state
from openclaw_pod.types import (
    ContainerSpec,
    ContainerStatus,
    ExecResult,
    PodSpec,
    PodState,
    PodStatus,
    StepResult,
)

GW_IMAGE = "openclaw-gateway:local"
BR_IMAGE = "openclaw-browser:local"

# ---------------------------------------------------------------------------
# Shared helpers (plain functions/classes, importable by test files)
# ---------------------------------------------------------------------------


def make_settings(tmp_path, **overrides):
    """Create a Settings object rooted in *tmp_path* with fast probe defaults.

    Usage::

        s = make_settings(tmp_path)
        s = make_settings(tmp_path, pod_name="test", strict_readiness=True)
    """
    from openclaw_pod.config import Settings

    defaults = {
        "config_dir": tmp_path / "openclaw",
        "probe_interval": 0.5,
        "probe_max_attempts": 5,
        "probe_timeout": 1.0,
    }
    defaults.update(overrides)
    return Settings(**defaults)


def write_env_file(settings, text: str) -> None:
    settings.env_file.parent.mkdir(parents=True, exist_ok=True)
    settings.env_file.write_text(text)


class FakeRuntime:
    """In-memory ContainerRuntime that records every call.

    ``ready_after`` is the probe attempt on which the sidecar's endpoint
    starts answering (None → never).
    """

    name = "fake"
    cli = "fake"

    def __init__(
        self,
        *,
        images: Sequence[str] = (GW_IMAGE, BR_IMAGE),
        available: bool = True,
        ready_after: int | None = 1,
    ) -> None:
        self.images = set(images)
        self.available = available
        self.ready_after = ready_after
        self.pods: dict[str, dict[str, ContainerSpec]] = {}
        self.pod_specs: dict[str, PodSpec] = {}
        self.running: dict[str, bool] = {}
        self.calls: list[tuple] = []
        self.probe_attempts = 0
        self.log_lines: dict[str, list[str]] = {}
        self.foreground_exit = 0
        self.stop_error: Exception | None = None

    # -- helpers for assertions -----------------------------------------

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    @property
    def creation_calls(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("create_pod", "run_container", "run_foreground")]

    def started_containers(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "run_container"]

    # -- ContainerRuntime ------------------------------------------------

    def is_available(self) -> bool:
        return self.available

    def ensure_running(self) -> None:
        self.calls.append(("ensure_running",))

    def image_exists(self, ref: str) -> bool:
        return ref in self.images

    def pod_exists(self, name: str) -> bool:
        return name in self.pods

    def container_running(self, name: str) -> bool:
        return self.running.get(name, False)

    def create_pod(self, spec: PodSpec) -> str:
        self.calls.append(("create_pod", spec.name))
        if spec.name in self.pods:
            raise PodExistsError(spec.name)
        self.pods[spec.name] = {}
        self.pod_specs[spec.name] = spec
        return f"pod-{spec.name}"

    def run_container(self, spec: ContainerSpec) -> str:
        self.calls.append(("run_container", spec.name))
        if spec.image not in self.images:
            raise ImageNotFoundError(spec.image, spec.build_command)
        if spec.pod not in self.pods:
            raise ContainerRuntimeError(f"no pod {spec.pod}")
        self.pods[spec.pod][spec.name] = spec
        self.running[spec.name] = True
        return f"id-{spec.name}"

    def run_foreground(self, spec: ContainerSpec) -> int:
        self.calls.append(("run_foreground", spec.name))
        if spec.image not in self.images:
            raise ImageNotFoundError(spec.image, spec.build_command)
        self.last_foreground = spec
        return self.foreground_exit

    def exec_in_container(
        self, name: str, command: Sequence[str], *, timeout: float | None = None
    ) -> ExecResult:
        self.calls.append(("exec_in_container", name, tuple(command)))
        if not self.container_running(name):
            raise NotRunningError(name)
        if command[0] == "curl":
            self.probe_attempts += 1
            if self.ready_after is not None and self.probe_attempts >= self.ready_after:
                return ExecResult('{"Browser": "Chrome"}', "", 0)
            return ExecResult("", "curl: (7) Failed to connect", 7)
        return ExecResult("", "", 0)

    def exec_interactive(self, name: str, command: Sequence[str]) -> int:
        self.calls.append(("exec_interactive", name, tuple(command)))
        if not self.container_running(name):
            raise NotRunningError(name)
        return 0

    def stream_logs(self, name: str) -> Generator[str, None, None]:
        self.calls.append(("stream_logs", name))
        if not self.container_running(name):
            raise NotRunningError(name)
        yield from self.log_lines.get(name, [])

    def stop_and_remove_pod(self, name: str) -> StepResult:
        self.calls.append(("stop_and_remove_pod", name))
        if self.stop_error is not None:
            raise self.stop_error
        for container in self.pods.pop(name, {}):
            self.running.pop(container, None)
        self.pod_specs.pop(name, None)
        return StepResult()

    def _statuses(self, name: str) -> tuple[ContainerStatus, ...]:
        return tuple(
            ContainerStatus(
                name=c,
                state="running" if self.running.get(c) else "exited",
                image=spec.image,
            )
            for c, spec in sorted(self.pods[name].items())
        )

    def pod_state(self, name: str) -> PodState:
        if name not in self.pods:
            return PodState.ABSENT
        return derive_pod_state(self._statuses(name))

    def pod_status(self, name: str) -> PodStatus:
        if name not in self.pods:
            return PodStatus(name=name, state=PodState.ABSENT)
        containers = self._statuses(name)
        return PodStatus(name=name, state=derive_pod_state(containers), containers=containers)


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Keep the developer's OPENCLAW_* exports and cached singletons out of tests."""
    import os

    import openclaw_pod.config as config_mod
    import openclaw_pod.runtime.runtime as runtime_mod

    for key in list(os.environ):
        if key.startswith("OPENCLAW_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config_mod, "_settings", None)
    monkeypatch.setattr(runtime_mod, "_runtime", None)


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def fake_runtime():
    return FakeRuntime()
