"""Pod and container spec construction.

Specs are rebuilt from current settings on every invocation; nothing here
touches the host or the runtime.
"""

from __future__ import annotations

from typing import Literal

from openclaw_pod.config import (
    GATEWAY_CONTAINER_PORT,
    GATEWAY_TOKEN_KEY,
    NOVNC_CONTAINER_PORT,
    Settings,
)
from openclaw_pod.envfile import EnvConfig
from openclaw_pod.types import ContainerSpec, PodSpec, PortBinding, TmpfsMount, VolumeMount

Role = Literal["gateway", "browser"]

GATEWAY_BUILD_FILE = "Dockerfile"
BROWSER_BUILD_FILE = "Dockerfile.sandbox-browser"

GATEWAY_HOME = "/home/node"
GATEWAY_CLI = ("node", "dist/index.js")

# Runs under /bin/bash inside the read-only browser image. HOME moves into
# the /tmp tmpfs and the persistent profile is linked in from /browser-data.
BROWSER_BOOTSTRAP = """\
export HOME=/tmp/openclaw-home
export DISPLAY=:1
export XDG_CONFIG_HOME="${HOME}/.config"
export XDG_CACHE_HOME="${HOME}/.cache"
mkdir -p "${HOME}" "${XDG_CONFIG_HOME}" "${XDG_CACHE_HOME}"
ln -sfn /browser-data "${HOME}/.chrome"
exec openclaw-sandbox-browser
"""


def container_name(pod: str, role: Role) -> str:
    return f"{pod}-{role}"


def build_pod_spec(settings: Settings, containers: tuple[ContainerSpec, ...] = ()) -> PodSpec:
    # Dashboard stays on loopback; noVNC is reachable from the LAN and is
    # unauthenticated.
    return PodSpec(
        name=settings.pod_name,
        ports=(
            PortBinding("127.0.0.1", settings.gateway_port, GATEWAY_CONTAINER_PORT),
            PortBinding("0.0.0.0", settings.novnc_port, NOVNC_CONTAINER_PORT),
        ),
        containers=containers,
    )


def build_browser_spec(settings: Settings) -> ContainerSpec:
    return ContainerSpec(
        name=container_name(settings.pod_name, "browser"),
        image=settings.br_image,
        build_file=BROWSER_BUILD_FILE,
        pod=settings.pod_name,
        mounts=(VolumeMount(str(settings.browser_data_dir), "/browser-data"),),
        tmpfs=(
            TmpfsMount("/tmp", "512m"),
            TmpfsMount("/dev/shm", "512m"),
        ),
        env={
            "OPENCLAW_BROWSER_HEADLESS": "0",
            "OPENCLAW_BROWSER_ENABLE_NOVNC": "1",
        },
        entrypoint="/bin/bash",
        command=("-c", BROWSER_BOOTSTRAP),
    )


def _gateway_mounts(settings: Settings) -> tuple[VolumeMount, ...]:
    return (
        VolumeMount(str(settings.config_dir), f"{GATEWAY_HOME}/.openclaw"),
        VolumeMount(str(settings.workspace_dir), f"{GATEWAY_HOME}/.openclaw/workspace"),
    )


def _gateway_tmpfs() -> tuple[TmpfsMount, ...]:
    return (
        TmpfsMount("/tmp", "256m", noexec=True, nosuid=True),
        TmpfsMount(f"{GATEWAY_HOME}/.cache", "128m", noexec=True, nosuid=True),
    )


def gateway_environment(env: EnvConfig, token: str) -> dict[str, str]:
    """Environment injected into gateway-image containers.

    File-declared keys come first (with exported values winning), then the
    fixed variables, then the validated token.
    """
    merged = env.file_environment()
    merged.update(
        {
            "HOME": GATEWAY_HOME,
            "TERM": "xterm-256color",
            GATEWAY_TOKEN_KEY: token,
        }
    )
    return merged


def build_gateway_spec(settings: Settings, env: EnvConfig, token: str) -> ContainerSpec:
    return ContainerSpec(
        name=container_name(settings.pod_name, "gateway"),
        image=settings.gw_image,
        build_file=GATEWAY_BUILD_FILE,
        pod=settings.pod_name,
        mounts=_gateway_mounts(settings),
        tmpfs=_gateway_tmpfs(),
        env=gateway_environment(env, token),
        command=(
            *GATEWAY_CLI,
            "gateway",
            "--bind",
            settings.gateway_bind,
            "--port",
            str(GATEWAY_CONTAINER_PORT),
        ),
    )


def build_setup_spec(settings: Settings, env: EnvConfig, token: str) -> ContainerSpec:
    """One-shot onboarding wizard; runs outside the pod with gateway constraints."""
    environment = gateway_environment(env, token)
    environment["BROWSER"] = "echo"  # print auth URLs instead of opening a browser
    return ContainerSpec(
        name=f"{settings.pod_name}-setup",
        image=settings.gw_image,
        build_file=GATEWAY_BUILD_FILE,
        mounts=_gateway_mounts(settings),
        tmpfs=_gateway_tmpfs(),
        env=environment,
        command=(*GATEWAY_CLI, "onboard"),
    )
