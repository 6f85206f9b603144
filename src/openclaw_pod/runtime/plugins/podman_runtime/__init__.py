"""Podman container runtime plugin."""

from __future__ import annotations

from typing import Any

from openclaw_pod.plugin import hookimpl

from .runtime import PodmanContainerRuntime


class PodmanRuntimePlugin:
    """Plugin providing the rootless Podman runtime."""

    @hookimpl
    def openclaw_pod_container_runtime(self) -> Any | None:
        return PodmanContainerRuntime()
