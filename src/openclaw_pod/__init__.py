"""Rootless, read-only Podman pod for the OpenClaw gateway and browser sidecar."""

__version__ = "0.1.0"
