"""Pod lifecycle orchestration.

Start sequence (each step gates the next):

    Validating → ProvisioningHost → CreatingPod → StartingSidecar
      → AwaitingSidecarReady → StartingPrimary → Started

Validation touches neither the host nor the runtime's state, so a failed
precondition never leaves a partial pod behind. Once the pod exists, later
failures are *not* rolled back; ``stop`` is the cleanup path and is safe to
run at any point.

The orchestrator holds no state between invocations: specs are rebuilt from
:class:`Settings` each time and the runtime is the only source of truth for
what is running.
"""

from __future__ import annotations

import contextlib
import os
import time
from collections.abc import Callable, Generator, Iterator, Mapping, Sequence
from enum import StrEnum

import structlog

from openclaw_pod.config import GATEWAY_TOKEN_KEY, Settings
from openclaw_pod.envfile import EnvConfig, build_env_config
from openclaw_pod.errors import (
    ContainerRuntimeError,
    ImageNotFoundError,
    MissingSecretError,
    MissingToolError,
    OpenClawPodError,
    PodExistsError,
)
from openclaw_pod.logger import logger
from openclaw_pod.probe import ProbePolicy, wait_for_container_http
from openclaw_pod.provision import ensure_directories
from openclaw_pod.runtime import ContainerRuntime
from openclaw_pod.specs import (
    GATEWAY_CLI,
    Role,
    build_browser_spec,
    build_gateway_spec,
    build_pod_spec,
    build_setup_spec,
    container_name,
)
from openclaw_pod.types import ContainerSpec, PodStatus, StartResult


class Phase(StrEnum):
    IDLE = "Idle"
    VALIDATING = "Validating"
    PROVISIONING_HOST = "ProvisioningHost"
    CREATING_POD = "CreatingPod"
    STARTING_SIDECAR = "StartingSidecar"
    AWAITING_SIDECAR_READY = "AwaitingSidecarReady"
    STARTING_PRIMARY = "StartingPrimary"
    STARTED = "Started"
    STOPPING = "Stopping"
    REMOVED = "Removed"
    FAILED = "Failed"


class PodOrchestrator:
    """Sequences the browser sidecar and gateway containers of one pod."""

    def __init__(
        self,
        settings: Settings,
        runtime: ContainerRuntime,
        *,
        environ: Mapping[str, str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.runtime = runtime
        self._environ = os.environ if environ is None else environ
        self._sleep = sleep
        self.phase = Phase.IDLE

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def pod(self) -> str:
        return self.settings.pod_name

    def _enter(self, phase: Phase) -> None:
        logger.debug("Phase transition", from_phase=str(self.phase), to_phase=str(phase))
        self.phase = phase

    @contextlib.contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        with structlog.contextvars.bound_contextvars(pod=self.pod, op=name):
            try:
                yield
            except BaseException:
                self._enter(Phase.FAILED)
                raise

    def _load_env(self) -> EnvConfig:
        return build_env_config(
            self.settings.env_file,
            self._environ,
            required=self.settings.env_file_required,
        )

    def _resolve_token(self, env: EnvConfig) -> str:
        """Token from the orchestrator's environment (exported, then env file).

        ``settings.gateway_token`` only fills in when neither has one, so an
        injected *environ* is never overridden by the process environment.
        """
        token = env.get(GATEWAY_TOKEN_KEY) or ""
        if not token and self.settings.gateway_token is not None:
            token = self.settings.gateway_token.get_secret_value()
        if not token:
            raise MissingSecretError(GATEWAY_TOKEN_KEY, str(self.settings.env_file))
        return token

    def _require_runtime(self) -> None:
        if not self.runtime.is_available():
            raise MissingToolError(self.runtime.cli)
        self.runtime.ensure_running()

    def _require_images(self, specs: Sequence[ContainerSpec]) -> None:
        for spec in specs:
            if not self.runtime.image_exists(spec.image):
                raise ImageNotFoundError(spec.image, spec.build_command)

    def _probe_policy(self) -> ProbePolicy:
        s = self.settings
        return ProbePolicy(
            interval=s.probe_interval,
            max_attempts=s.probe_max_attempts,
            attempt_timeout=s.probe_timeout,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> StartResult:
        with self._operation("start"):
            self._enter(Phase.VALIDATING)
            self._require_runtime()
            env = self._load_env()
            token = self._resolve_token(env)
            browser = build_browser_spec(self.settings)
            gateway = build_gateway_spec(self.settings, env, token)
            self._require_images((gateway, browser))

            self._enter(Phase.PROVISIONING_HOST)
            ensure_directories(self.settings.host_directories)

            self._enter(Phase.CREATING_POD)
            pod_spec = build_pod_spec(self.settings, (browser, gateway))
            if self.runtime.pod_exists(self.pod):
                raise PodExistsError(self.pod)
            logger.info(
                "Creating pod",
                ports=[str(p) for p in pod_spec.ports],
            )
            self.runtime.create_pod(pod_spec)

            self._enter(Phase.STARTING_SIDECAR)
            logger.info("Starting browser sidecar", container=browser.name)
            self.runtime.run_container(browser)

            self._enter(Phase.AWAITING_SIDECAR_READY)
            readiness = wait_for_container_http(
                self.runtime,
                browser.name,
                self.settings.cdp_probe_url,
                self._probe_policy(),
                sleep=self._sleep,
            )
            if not readiness.ready and self.settings.strict_readiness:
                raise ContainerRuntimeError(
                    f"Browser sidecar {browser.name} not ready after "
                    f"{readiness.attempts} attempts; gateway not started"
                )

            self._enter(Phase.STARTING_PRIMARY)
            logger.info("Starting gateway", container=gateway.name)
            self.runtime.run_container(gateway)

            self._enter(Phase.STARTED)
            logger.info(
                "Pod started",
                gateway_url=self.settings.gateway_url,
                novnc_url=self.settings.novnc_url,
            )
            return StartResult(
                pod=self.pod,
                gateway_url=self.settings.gateway_url,
                novnc_url=self.settings.novnc_url,
                readiness=readiness,
                containers=(browser.name, gateway.name),
            )

    def stop(self) -> bool:
        """Remove the pod if present. Returns False when there was nothing to stop."""
        with self._operation("stop"):
            self._enter(Phase.STOPPING)
            if not self.runtime.pod_exists(self.pod):
                logger.info("Pod does not exist")
                self._enter(Phase.REMOVED)
                return False
            logger.info("Stopping pod")
            self.runtime.stop_and_remove_pod(self.pod)
            self._enter(Phase.REMOVED)
            logger.info("Pod removed")
            return True

    def restart(self) -> StartResult:
        try:
            self.stop()
        except OpenClawPodError as exc:
            # Availability first: still try to bring the pod up
            logger.warning("Stop failed during restart; starting anyway", pod=self.pod, err=str(exc))
        return self.start()

    def status(self) -> PodStatus:
        return self.runtime.pod_status(self.pod)

    def logs(self, role: Role = "gateway") -> Generator[str, None, None]:
        return self.runtime.stream_logs(container_name(self.pod, role))

    # ------------------------------------------------------------------
    # Onboarding and passthrough
    # ------------------------------------------------------------------

    def setup(self) -> int:
        """Run the interactive onboarding wizard in a throwaway gateway container."""
        with self._operation("setup"):
            self._enter(Phase.VALIDATING)
            self._require_runtime()
            env = self._load_env()
            token = self._resolve_token(env)
            spec = build_setup_spec(self.settings, env, token)
            self._require_images((spec,))
            self._enter(Phase.PROVISIONING_HOST)
            ensure_directories(self.settings.host_directories)
            logger.info("Running onboarding wizard", image=spec.image)
            code = self.runtime.run_foreground(spec)
            self._enter(Phase.IDLE)
            return code

    def exec_gateway(self, args: Sequence[str]) -> int:
        """Run the gateway's own CLI with *args*, verbatim."""
        return self.runtime.exec_interactive(self.settings.gateway_container, [*GATEWAY_CLI, *args])

    def pairing(self) -> int:
        return self.exec_gateway(["pairing", "list", "telegram"])

    def approve(self, code: str) -> int:
        if not code.strip():
            raise ValueError("approve requires a pairing code")
        return self.exec_gateway(["pairing", "approve", "telegram", code])

    def shell(self) -> int:
        return self.runtime.exec_interactive(self.settings.gateway_container, ["/bin/bash"])
