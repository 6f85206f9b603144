"""Data models for openclaw-pod."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Literal


@dataclass(frozen=True)
class VolumeMount:
    host_path: str
    container_path: str
    readonly: bool = False


@dataclass(frozen=True)
class TmpfsMount:
    """Size-capped in-memory filesystem for a path under a read-only root."""

    container_path: str
    size: str  # podman size syntax, e.g. "256m"
    noexec: bool = False
    nosuid: bool = False

    @property
    def options(self) -> str:
        opts = ["rw"]
        if self.noexec:
            opts.append("noexec")
        if self.nosuid:
            opts.append("nosuid")
        opts.append(f"size={self.size}")
        return ",".join(opts)


@dataclass(frozen=True)
class PortBinding:
    host_ip: str
    host_port: int
    container_port: int

    def __str__(self) -> str:
        return f"{self.host_ip}:{self.host_port}:{self.container_port}"


@dataclass(frozen=True)
class ContainerSpec:
    """Declarative description of one container.

    Root is always read-only with every capability dropped and privilege
    escalation disabled; construction fails otherwise.
    """

    name: str
    image: str
    build_file: str  # Containerfile that produces ``image``
    pod: str | None = None  # None → standalone container (e.g. onboarding)
    mounts: tuple[VolumeMount, ...] = ()
    tmpfs: tuple[TmpfsMount, ...] = ()
    env: dict[str, str] = field(default_factory=dict)
    entrypoint: str | None = None
    command: tuple[str, ...] = ()
    read_only_root: bool = True
    capabilities: tuple[str, ...] = ()
    no_new_privileges: bool = True

    def __post_init__(self) -> None:
        if not self.read_only_root:
            raise ValueError(f"Container {self.name} must use a read-only root filesystem")
        if self.capabilities:
            raise ValueError(f"Container {self.name} must not add capabilities")
        if not self.no_new_privileges:
            raise ValueError(f"Container {self.name} must disable privilege escalation")

    @property
    def build_command(self) -> str:
        return f"podman build -t {self.image} -f {self.build_file} ."


@dataclass(frozen=True)
class PodSpec:
    name: str
    ports: tuple[PortBinding, ...] = ()
    containers: tuple[ContainerSpec, ...] = ()  # in launch order


class PodState(StrEnum):
    ABSENT = "Absent"
    CREATED = "Created"
    RUNNING = "Running"
    PARTIALLY_RUNNING = "PartiallyRunning"
    STOPPED = "Stopped"


@dataclass(frozen=True)
class ContainerStatus:
    name: str
    state: str  # runtime's raw state: "running", "exited", "created", ...
    status: str = ""  # human text, e.g. "Up 3 minutes"
    image: str = ""
    ports: tuple[str, ...] = ()

    @property
    def running(self) -> bool:
        return self.state.lower() == "running"


@dataclass(frozen=True)
class PodStatus:
    name: str
    state: PodState
    containers: tuple[ContainerStatus, ...] = ()


@dataclass(frozen=True)
class ExecResult:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class ReadinessResult:
    ready: bool
    attempts: int
    elapsed: float = 0.0
    last_error: str | None = None


@dataclass(frozen=True)
class StepResult:
    """Outcome of a best-effort step: fully done, or degraded but continuing."""

    status: Literal["ok", "degraded"] = "ok"
    detail: str = ""

    @property
    def degraded(self) -> bool:
        return self.status == "degraded"


@dataclass(frozen=True)
class StartResult:
    pod: str
    gateway_url: str
    novnc_url: str
    readiness: ReadinessResult
    containers: tuple[str, ...] = ()
