"""Tests for runtime selection, pod state derivation and the plugin manager."""

from __future__ import annotations

from unittest.mock import patch

from conftest import FakeRuntime, make_settings

from openclaw_pod.plugin import get_plugin_manager
from openclaw_pod.runtime import derive_pod_state, detect_runtime, get_runtime
from openclaw_pod.runtime.plugins.podman_runtime.runtime import PodmanContainerRuntime
from openclaw_pod.types import ContainerStatus, PodState

_PLUGINS = "openclaw_pod.runtime.runtime._iter_plugin_runtimes"


def _status(*states: str) -> list[ContainerStatus]:
    return [ContainerStatus(name=f"c{i}", state=s) for i, s in enumerate(states)]


class TestDerivePodState:
    def test_all_running(self):
        assert derive_pod_state(_status("running", "Running")) == PodState.RUNNING

    def test_partially_running(self):
        assert derive_pod_state(_status("running", "exited")) == PodState.PARTIALLY_RUNNING

    def test_stopped(self):
        assert derive_pod_state(_status("exited", "stopped")) == PodState.STOPPED

    def test_created(self):
        assert derive_pod_state(_status("created", "configured")) == PodState.CREATED

    def test_empty_pod_is_created(self):
        assert derive_pod_state([]) == PodState.CREATED


class TestDetectRuntime:
    def test_podman_on_path(self, tmp_path):
        with (
            patch(_PLUGINS, return_value=[]),
            patch.object(PodmanContainerRuntime, "is_available", return_value=True),
        ):
            assert detect_runtime(make_settings(tmp_path)).name == "podman"

    def test_override_selects_plugin(self, tmp_path):
        fake = FakeRuntime()
        with patch(_PLUGINS, return_value=[fake]):
            assert detect_runtime(make_settings(tmp_path, runtime="FAKE")) is fake

    def test_unknown_override_falls_back(self, tmp_path):
        with (
            patch(_PLUGINS, return_value=[]),
            patch.object(PodmanContainerRuntime, "is_available", return_value=True),
        ):
            assert detect_runtime(make_settings(tmp_path, runtime="nope")).name == "podman"

    def test_other_provider_when_podman_missing(self, tmp_path):
        fake = FakeRuntime()
        with (
            patch(_PLUGINS, return_value=[fake]),
            patch.object(PodmanContainerRuntime, "is_available", return_value=False),
        ):
            assert detect_runtime(make_settings(tmp_path)) is fake

    def test_nothing_available_returns_podman(self, tmp_path):
        with (
            patch(_PLUGINS, return_value=[FakeRuntime(available=False)]),
            patch.object(PodmanContainerRuntime, "is_available", return_value=False),
        ):
            assert detect_runtime(make_settings(tmp_path)).name == "podman"

    def test_get_runtime_is_cached(self, tmp_path):
        settings = make_settings(tmp_path)
        with patch(_PLUGINS, return_value=[]):
            assert get_runtime(settings) is get_runtime(settings)


class TestPluginManager:
    def test_builtin_podman_is_registered(self):
        with patch("pluggy.PluginManager.load_setuptools_entrypoints", return_value=0):
            pm = get_plugin_manager()
        runtimes = pm.hook.openclaw_pod_container_runtime()
        assert [r.name for r in runtimes] == ["podman"]
        assert pm.get_plugin("builtin-podman-runtime") is not None

    def test_invalid_plugin_runtime_is_ignored(self):
        class Broken:
            name = "broken"
            cli = "broken"

        from openclaw_pod.plugin import hookimpl
        from openclaw_pod.runtime.runtime import _iter_plugin_runtimes

        class BrokenPlugin:
            @hookimpl
            def openclaw_pod_container_runtime(self):
                return Broken()

        with patch("pluggy.PluginManager.load_setuptools_entrypoints", return_value=0):
            pm = get_plugin_manager()
        pm.register(BrokenPlugin())

        with patch("openclaw_pod.plugin.get_plugin_manager", return_value=pm):
            names = [r.name for r in _iter_plugin_runtimes()]
        assert names == ["podman"]
