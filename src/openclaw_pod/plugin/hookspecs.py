"""Pluggy hook specifications for openclaw-pod plugins.

All hooks use the "openclaw_pod" namespace and are validated by pluggy at
registration time.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("openclaw_pod")


class OpenClawPodSpec:
    """Hook specifications for openclaw-pod plugins."""

    @hookspec
    def openclaw_pod_container_runtime(self) -> Any | None:
        """Provide a container runtime implementation.

        The returned object must satisfy
        :class:`openclaw_pod.runtime.ContainerRuntime`: a ``name`` and ``cli``
        plus the pod/container lifecycle methods (``pod_exists``,
        ``create_pod``, ``run_container``, ``exec_in_container``,
        ``stream_logs``, ``stop_and_remove_pod``, ``image_exists`` ...).

        Returns:
            Runtime object, or None if this plugin doesn't provide one.
        """
