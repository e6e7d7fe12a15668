"""Tests for istioctl discovery and Istio installation."""

import os

import pytest
import sh

from mesh_sandbox import mesh, utils
from mesh_sandbox.config import MeshConfig
from mesh_sandbox.mesh import download_istioctl, install_istio, istio_bin_dir, istioctl_ready


@pytest.fixture(name="mesh_cfg")
def mesh_cfg_fixture(tmp_path):
    return MeshConfig(istio_install_dir=tmp_path)


def test_istio_bin_dir(mesh_cfg, tmp_path):
    assert istio_bin_dir(mesh_cfg) == tmp_path / "istio-1.26.2" / "bin"


def test_istioctl_ready_without_istioctl(monkeypatch, mesh_cfg):
    monkeypatch.setattr(mesh, "command_exists", lambda cmd: False)

    assert istioctl_ready(mesh_cfg) is False


@pytest.mark.parametrize(
    ("version_output", "expected"),
    [("client version: 1.26.2\n", True), ("client version: 1.22.0\n", False)],
)
def test_istioctl_ready_checks_version(monkeypatch, mesh_cfg, version_output, expected):
    monkeypatch.setattr(mesh, "resolve_istioctl", lambda cfg: lambda *args: version_output)

    assert istioctl_ready(mesh_cfg) is expected


def test_download_istioctl(monkeypatch, mesh_cfg):
    runs = []
    monkeypatch.setattr(mesh, "require_command", lambda cmd: None)
    monkeypatch.setattr(mesh, "download_text", lambda url: "#!/bin/sh\necho downloading\n")
    monkeypatch.setattr(mesh, "_run_download_script", lambda script, cwd, version: runs.append((cwd, version)))
    monkeypatch.setenv("PATH", "/usr/bin")

    bin_dir = download_istioctl(mesh_cfg)

    assert runs == [(mesh_cfg.istio_install_dir, "1.26.2")]
    assert bin_dir == istio_bin_dir(mesh_cfg).resolve()
    assert os.environ["PATH"].split(os.pathsep)[0] == str(bin_dir)


def test_download_istioctl_requires_curl(monkeypatch, mesh_cfg):
    def _no_download(url):
        raise AssertionError("nothing may be downloaded without curl")

    monkeypatch.setattr(utils, "command_exists", lambda cmd: cmd != "curl")
    monkeypatch.setattr(mesh, "download_text", _no_download)

    with pytest.raises(RuntimeError, match="'curl' is not installed"):
        download_istioctl(mesh_cfg)


def test_install_istio(monkeypatch, mesh_cfg):
    calls, waits = [], []
    monkeypatch.setattr(mesh, "resolve_istioctl", lambda cfg: lambda *args: calls.append(args))
    monkeypatch.setattr(mesh, "wait_for_pods", lambda ns, timeout: waits.append((ns, timeout)))

    install_istio(mesh_cfg)

    assert calls == [("install", "-y", "-f", str(mesh_cfg.istio_config))]
    assert waits == [("istio-system", "300s")]


def test_install_istio_failure_mentions_destroy(monkeypatch, mesh_cfg):
    def _istioctl(*args):
        raise sh.ErrorReturnCode_1("istioctl install", b"", b"Error: failed to install manifests")

    monkeypatch.setattr(mesh, "resolve_istioctl", lambda cfg: _istioctl)

    with pytest.raises(RuntimeError, match="destroy") as exc_info:
        install_istio(mesh_cfg)

    assert "failed to install manifests" in str(exc_info.value)


def test_install_istio_without_istioctl(monkeypatch, mesh_cfg):
    monkeypatch.setattr(mesh, "resolve_istioctl", lambda cfg: None)

    with pytest.raises(RuntimeError, match="not available"):
        install_istio(mesh_cfg)
