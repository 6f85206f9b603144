"""Container runtime adapters."""

from openclaw_pod.runtime.runtime import (
    ContainerRuntime,
    derive_pod_state,
    detect_runtime,
    get_runtime,
)

__all__ = [
    "ContainerRuntime",
    "derive_pod_state",
    "detect_runtime",
    "get_runtime",
]
