"""Tests for environment-driven configuration."""

import pytest
from pydantic import ValidationError

from mesh_sandbox.config import AppConfig, ClusterConfig, LoadBalancerConfig, MeshConfig, SandboxConfig
from mesh_sandbox.constants import DEFAULT_KIND_CONFIG, dep_value


def test_defaults():
    cfg = SandboxConfig()

    assert cfg.cluster.cluster_name == "istio-dev"
    assert cfg.cluster.kind_config == DEFAULT_KIND_CONFIG
    assert cfg.lb.lb_provider == "cloud-provider-kind"
    assert cfg.mesh.istio_version == "1.26.2"
    assert cfg.app.bookinfo_release == "release-1.26"
    assert cfg.app.lb_max_attempts == 6
    assert cfg.app.lb_poll_interval_seconds == 10
    assert cfg.app.probe_path == "productpage"


def test_packaged_files_exist():
    cfg = SandboxConfig()

    assert cfg.cluster.kind_config.is_file()
    assert cfg.mesh.istio_config.is_file()


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("MESH_CLUSTER_NAME", "scratch")
    monkeypatch.setenv("MESH_LB_PROVIDER", "metallb")
    monkeypatch.setenv("MESH_LB_MAX_ATTEMPTS", "12")
    monkeypatch.setenv("MESH_LB_POLL_INTERVAL_SECONDS", "2.5")

    assert ClusterConfig().cluster_name == "scratch"
    assert LoadBalancerConfig().lb_provider == "metallb"
    assert AppConfig().lb_max_attempts == 12
    assert AppConfig().lb_poll_interval_seconds == 2.5


@pytest.mark.parametrize(
    ("model", "env", "value"),
    [
        (LoadBalancerConfig, "MESH_LB_PROVIDER", "haproxy"),
        (LoadBalancerConfig, "MESH_METALLB_ADDRESS_POOL", "172.18.255.200"),
        (AppConfig, "MESH_LB_MAX_ATTEMPTS", "0"),
        (AppConfig, "MESH_PODS_READY_TIMEOUT", "five minutes"),
        (AppConfig, "MESH_PROBE_TIMEOUT_SECONDS", "0"),
        (ClusterConfig, "MESH_CREATE_MAX_RETRIES", "11"),
        (MeshConfig, "MESH_ISTIO_VERSION", "latest"),
        (AppConfig, "MESH_PROBE_MARKER", "<title>[^<"),
    ],
)
def test_invalid_values_rejected(monkeypatch, model, env, value):
    monkeypatch.setenv(env, value)

    with pytest.raises(ValidationError):
        model()


def test_dep_value_missing_key():
    assert dep_value("istio", "nope", default="fallback") == "fallback"
    assert dep_value("istio", "version", "deeper", default=None) is None


def test_probe_marker_accepts_custom_regex(monkeypatch):
    monkeypatch.setenv("MESH_PROBE_MARKER", r"Book(info|store)")

    assert AppConfig().probe_marker == r"Book(info|store)"
