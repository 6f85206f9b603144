"""Podman container runtime provider for openclaw-pod."""

from __future__ import annotations

import contextlib
import json
import os
import shutil
import subprocess
import sys
import tempfile
from collections.abc import Generator, Iterator, Mapping, Sequence
from typing import Any

from openclaw_pod.errors import (
    ContainerRuntimeError,
    ImageNotFoundError,
    MissingToolError,
    NotRunningError,
    PodExistsError,
)
from openclaw_pod.logger import logger
from openclaw_pod.runtime.runtime import derive_pod_state
from openclaw_pod.types import (
    ContainerSpec,
    ContainerStatus,
    ExecResult,
    PodSpec,
    PodState,
    PodStatus,
    StepResult,
)


def _build_pod_args(spec: PodSpec) -> list[str]:
    args = ["pod", "create", "--name", spec.name]
    for port in spec.ports:
        args.extend(["-p", str(port)])
    return args


def _build_container_args(spec: ContainerSpec, env_file: str | None = None) -> list[str]:
    """Build CLI args following ``podman run [flags]``.

    Environment values are not placed on the command line; they reach the
    container through *env_file* (see :func:`_private_env_file`).
    """
    args = ["--name", spec.name]
    if spec.pod:
        args.extend(["--pod", spec.pod])

    # ContainerSpec refuses anything else, so these are unconditional
    args.extend(["--read-only", "--cap-drop=ALL", "--security-opt=no-new-privileges"])

    for t in spec.tmpfs:
        args.extend(["--tmpfs", f"{t.container_path}:{t.options}"])
    for m in spec.mounts:
        mode = "ro" if m.readonly else "rw"
        args.extend(["-v", f"{m.host_path}:{m.container_path}:{mode}"])
    if env_file:
        args.extend(["--env-file", env_file])
    if spec.entrypoint:
        args.extend(["--entrypoint", spec.entrypoint])

    args.append(spec.image)
    args.extend(spec.command)
    return args


@contextlib.contextmanager
def _private_env_file(env: Mapping[str, str]) -> Iterator[str | None]:
    """Write *env* to an owner-only temp file for ``--env-file``.

    The podman process itself always keeps the caller's environment.
    """
    if not env:
        yield None
        return
    fd, path = tempfile.mkstemp(prefix="openclaw-pod-", suffix=".env")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            for key, value in env.items():
                fh.write(f"{key}={value}\n")
        yield path
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(path)


def _tty_flags() -> list[str]:
    return ["-it"] if sys.stdin.isatty() else ["-i"]


def _format_ports(raw: Any) -> tuple[str, ...]:
    ports: list[str] = []
    for p in raw or []:
        host_ip = p.get("host_ip") or "0.0.0.0"
        ports.append(
            f"{host_ip}:{p.get('host_port')}->{p.get('container_port')}/{p.get('protocol', 'tcp')}"
        )
    return tuple(ports)


class PodmanContainerRuntime:
    """Runtime adapter for the rootless Podman CLI."""

    name = "podman"
    cli = "podman"

    def _run(
        self,
        *args: str,
        timeout: float | None = 60,
    ) -> subprocess.CompletedProcess[str]:
        cmd = [self.cli, *args]
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            raise MissingToolError(self.cli) from exc
        except subprocess.TimeoutExpired as exc:
            raise ContainerRuntimeError(f"{self.cli} {args[0]} timed out", command=cmd) from exc

    # -- availability ---------------------------------------------------

    def is_available(self) -> bool:
        return shutil.which(self.cli) is not None

    def ensure_running(self) -> None:
        result = self._run("info", timeout=30)
        if result.returncode != 0:
            raise MissingToolError(self.cli, f"'{self.cli} info' failed: {result.stderr.strip()}")
        logger.debug("Podman is responding")

    def image_exists(self, ref: str) -> bool:
        return self._run("image", "exists", ref).returncode == 0

    def _require_image(self, spec: ContainerSpec) -> None:
        if not self.image_exists(spec.image):
            raise ImageNotFoundError(spec.image, spec.build_command)

    # -- inspection -----------------------------------------------------

    def pod_exists(self, name: str) -> bool:
        return self._run("pod", "exists", name).returncode == 0

    def container_running(self, name: str) -> bool:
        result = self._run("container", "inspect", "--format", "{{.State.Running}}", name)
        return result.returncode == 0 and result.stdout.strip() == "true"

    def _pod_containers(self, pod: str) -> tuple[ContainerStatus, ...]:
        result = self._run("ps", "-a", "--pod", "--filter", f"pod={pod}", "--format", "json")
        if result.returncode != 0:
            raise ContainerRuntimeError(
                f"Failed to list containers of pod {pod}", stderr=result.stderr.strip()
            )
        containers: list[ContainerStatus] = []
        for c in json.loads(result.stdout or "[]"):
            if c.get("IsInfra"):
                continue
            names = c.get("Names") or [""]
            containers.append(
                ContainerStatus(
                    name=names[0] if isinstance(names, list) else str(names),
                    state=str(c.get("State", "")),
                    status=str(c.get("Status", "")),
                    image=str(c.get("Image", "")),
                    ports=_format_ports(c.get("Ports")),
                )
            )
        return tuple(sorted(containers, key=lambda c: c.name))

    def pod_state(self, name: str) -> PodState:
        if not self.pod_exists(name):
            return PodState.ABSENT
        return derive_pod_state(self._pod_containers(name))

    def pod_status(self, name: str) -> PodStatus:
        if not self.pod_exists(name):
            return PodStatus(name=name, state=PodState.ABSENT)
        containers = self._pod_containers(name)
        return PodStatus(name=name, state=derive_pod_state(containers), containers=containers)

    # -- creation -------------------------------------------------------

    def create_pod(self, spec: PodSpec) -> str:
        cmd = _build_pod_args(spec)
        result = self._run(*cmd)
        if result.returncode != 0:
            stderr = result.stderr.strip()
            if "already exists" in stderr or "name is in use" in stderr:
                raise PodExistsError(spec.name)
            raise ContainerRuntimeError(
                f"Failed to create pod {spec.name}", command=[self.cli, *cmd], stderr=stderr
            )
        return result.stdout.strip()

    def run_container(self, spec: ContainerSpec) -> str:
        self._require_image(spec)
        with _private_env_file(spec.env) as env_file:
            cmd = ["run", "-d", *_build_container_args(spec, env_file)]
            result = self._run(*cmd, timeout=120)
        if result.returncode != 0:
            raise ContainerRuntimeError(
                f"Failed to start container {spec.name}",
                command=[self.cli, *cmd],
                stderr=result.stderr.strip(),
            )
        return result.stdout.strip()

    def run_foreground(self, spec: ContainerSpec) -> int:
        """Run *spec* attached to the terminal and remove it on exit."""
        self._require_image(spec)
        with _private_env_file(spec.env) as env_file:
            cmd = [self.cli, "run", "--rm", *_tty_flags(), *_build_container_args(spec, env_file)]
            try:
                return subprocess.run(cmd).returncode
            except FileNotFoundError as exc:
                raise MissingToolError(self.cli) from exc

    # -- running containers ---------------------------------------------

    def _require_running(self, name: str) -> None:
        if not self.container_running(name):
            raise NotRunningError(name)

    def exec_in_container(
        self, name: str, command: Sequence[str], *, timeout: float | None = None
    ) -> ExecResult:
        self._require_running(name)
        result = self._run("exec", name, *command, timeout=timeout)
        return ExecResult(result.stdout, result.stderr, result.returncode)

    def exec_interactive(self, name: str, command: Sequence[str]) -> int:
        self._require_running(name)
        try:
            return subprocess.run([self.cli, "exec", *_tty_flags(), name, *command]).returncode
        except FileNotFoundError as exc:
            raise MissingToolError(self.cli) from exc

    def stream_logs(self, name: str) -> Generator[str, None, None]:
        """Follow container logs line by line until the consumer stops.

        The existence check runs on the first ``next()``; closing the
        generator terminates the ``podman logs`` child.
        """
        self._require_running(name)
        try:
            proc = subprocess.Popen(
                [self.cli, "logs", "-f", name],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except FileNotFoundError as exc:
            raise MissingToolError(self.cli) from exc
        try:
            assert proc.stdout is not None
            for line in proc.stdout:
                yield line.rstrip("\n")
        finally:
            if proc.poll() is None:
                proc.terminate()
                try:
                    proc.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    proc.kill()
                    proc.wait()

    # -- teardown -------------------------------------------------------

    def stop_and_remove_pod(self, name: str) -> StepResult:
        """Stop then force-remove *name*; either step may already be done."""
        problems: list[str] = []
        for step in (("pod", "stop", name), ("pod", "rm", "-f", name)):
            try:
                result = self._run(*step, timeout=120)
            except ContainerRuntimeError as exc:
                problems.append(str(exc))
                continue
            if result.returncode != 0:
                problems.append(f"{' '.join(step[:2])}: {result.stderr.strip()}")
        if problems:
            logger.warning("Pod teardown reported errors (ignored)", pod=name, errors=problems)
            return StepResult("degraded", "; ".join(problems))
        return StepResult()
