"""Exception taxonomy for pod orchestration.

Every fatal condition the CLI reports derives from :class:`OpenClawPodError`;
its ``str()`` is the single diagnostic line shown to the operator.
"""

from __future__ import annotations


class OpenClawPodError(Exception):
    """Base class for all orchestration failures."""


# ---------------------------------------------------------------------------
# Preconditions: raised before anything on the host or runtime is mutated
# ---------------------------------------------------------------------------


class PreconditionError(OpenClawPodError):
    """A requirement for the operation is not met."""


class MissingToolError(PreconditionError):
    def __init__(self, tool: str, detail: str = "") -> None:
        self.tool = tool
        msg = f"Missing required command: {tool}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class ImageNotFoundError(PreconditionError):
    def __init__(self, image: str, build_command: str) -> None:
        self.image = image
        self.build_command = build_command
        super().__init__(f"Image {image} not found. Build it first:\n  {build_command}")


class MissingSecretError(PreconditionError):
    def __init__(self, key: str, env_file: str) -> None:
        self.key = key
        self.env_file = env_file
        super().__init__(f"{key} is not set. Edit {env_file}.")


class PodExistsError(PreconditionError):
    def __init__(self, pod: str) -> None:
        self.pod = pod
        super().__init__(f"Pod {pod} already exists. Use 'restart' or 'stop' first.")


# ---------------------------------------------------------------------------
# Host-side failures
# ---------------------------------------------------------------------------


class ConfigError(OpenClawPodError):
    """A configuration source exists but cannot be used."""


class FilesystemError(OpenClawPodError):
    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        super().__init__(f"Cannot create directory {path}: {detail}")


# ---------------------------------------------------------------------------
# Runtime failures
# ---------------------------------------------------------------------------


class ContainerRuntimeError(OpenClawPodError):
    """The container runtime rejected or failed an operation.

    No rollback is attempted; the operator runs ``stop`` to clean up any
    partially created pod.
    """

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = "") -> None:
        self.command = command or []
        self.stderr = stderr
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)


class NotRunningError(OpenClawPodError):
    def __init__(self, container: str) -> None:
        self.container = container
        super().__init__(f"Container {container} is not running. Start the pod first.")
