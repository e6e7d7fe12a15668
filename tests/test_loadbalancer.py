"""Tests for the load balancer providers."""

import os

import pytest
import yaml

from mesh_sandbox import loadbalancer
from mesh_sandbox.config import LoadBalancerConfig
from mesh_sandbox.loadbalancer import (
    helper_running,
    install_metallb,
    kind_network_subnet,
    metallb_address_range,
    render_metallb_pool,
    stop_cloud_provider_kind,
)


@pytest.fixture(name="lb_cfg")
def lb_cfg_fixture(tmp_path):
    return LoadBalancerConfig(
        pid_file=tmp_path / "cpk.pid",
        helper_log_file=tmp_path / "cpk.log",
        metallb_settle_seconds=15,
    )


@pytest.mark.parametrize(
    ("subnet", "expected"),
    [
        ("172.18.0.0/16", "172.18.255.200-172.18.255.250"),
        ("10.89.0.0/24", "10.89.0.200-10.89.0.250"),
        ("192.168.0.0/20", "192.168.15.200-192.168.15.250"),
    ],
)
def test_metallb_address_range(subnet, expected):
    assert metallb_address_range(subnet) == expected


@pytest.mark.parametrize("subnet", ["fc00:f853:ccd:e793::/64", "172.18.0.0/28"])
def test_metallb_address_range_rejects(subnet):
    with pytest.raises(ValueError):
        metallb_address_range(subnet)


def test_render_metallb_pool():
    docs = list(yaml.safe_load_all(render_metallb_pool("172.18.255.200-172.18.255.250")))

    assert [d["kind"] for d in docs] == ["IPAddressPool", "L2Advertisement"]
    assert docs[0]["spec"]["addresses"] == ["172.18.255.200-172.18.255.250"]
    assert docs[1]["spec"]["ipAddressPools"] == [docs[0]["metadata"]["name"]]


def test_install_metallb_with_derived_pool(monkeypatch, lb_cfg, fake_sh, fake_sleep, sleeps):
    waits = []
    monkeypatch.setattr(loadbalancer, "sh", fake_sh)
    monkeypatch.setattr(loadbalancer, "wait_for_pods", lambda *args, **kwargs: waits.append((args, kwargs)))
    monkeypatch.setattr(loadbalancer, "kind_network_subnet", lambda: "172.18.0.0/16")

    install_metallb(lb_cfg, sleep=fake_sleep)

    first, second = fake_sh.calls
    assert first[1][:2] == ("apply", "-f")
    assert "v0.14.5" in first[1][2]
    assert second[1] == ("apply", "-f", "-")
    assert "172.18.255.200-172.18.255.250" in second[2]["_in"]
    assert waits == [(("metallb-system", "120s"), {"selector": "app=metallb"})]
    assert sleeps == [15]


def test_install_metallb_with_explicit_pool(monkeypatch, lb_cfg, fake_sh, fake_sleep):
    def _no_docker():
        raise AssertionError("docker must not be queried")

    monkeypatch.setattr(loadbalancer, "sh", fake_sh)
    monkeypatch.setattr(loadbalancer, "wait_for_pods", lambda *args, **kwargs: None)
    monkeypatch.setattr(loadbalancer, "kind_network_subnet", _no_docker)
    cfg = lb_cfg.model_copy(update={"metallb_address_pool": "10.0.0.10-10.0.0.20"})

    install_metallb(cfg, sleep=fake_sleep)

    assert "10.0.0.10-10.0.0.20" in fake_sh.calls[-1][2]["_in"]


def test_helper_running_without_marker(lb_cfg):
    assert helper_running(lb_cfg) is False


def test_helper_running_with_live_marker(lb_cfg):
    lb_cfg.pid_file.write_text(str(os.getpid()))

    assert helper_running(lb_cfg) is True


def test_stop_without_marker(lb_cfg):
    assert stop_cloud_provider_kind(lb_cfg) is False


def test_stop_signals_recorded_helper(monkeypatch, lb_cfg):
    killed = []
    monkeypatch.setattr(loadbalancer.ManagedProcess, "stop", lambda self: killed.append(self.pid) or True)
    lb_cfg.pid_file.write_text("5150")

    assert stop_cloud_provider_kind(lb_cfg) is True
    assert killed == [5150]


@pytest.mark.parametrize("contents", ["", "not-a-pid\n"])
def test_helper_running_discards_malformed_marker(lb_cfg, contents):
    lb_cfg.pid_file.write_text(contents)

    assert helper_running(lb_cfg) is False
    assert not lb_cfg.pid_file.exists()


def test_stop_discards_malformed_marker(monkeypatch, lb_cfg):
    def _no_signal(self):
        raise AssertionError("nothing may be signalled")

    monkeypatch.setattr(loadbalancer.ManagedProcess, "stop", _no_signal)
    lb_cfg.pid_file.write_text("")

    assert stop_cloud_provider_kind(lb_cfg) is False
    assert not lb_cfg.pid_file.exists()


class FakeDockerClient:
    def __init__(self, ipam_config):
        self.ipam_config = ipam_config
        self.requested = []
        self.closed = False
        self.networks = self

    def get(self, name):
        self.requested.append(name)
        return type("Network", (), {"attrs": {"IPAM": {"Config": self.ipam_config}}})()

    def close(self):
        self.closed = True


def test_kind_network_subnet_picks_ipv4(monkeypatch):
    client = FakeDockerClient([{"Subnet": "fc00:f853:ccd:e793::/64"}, {"Subnet": "172.18.0.0/16"}])
    monkeypatch.setattr(loadbalancer.docker, "from_env", lambda: client)

    assert kind_network_subnet() == "172.18.0.0/16"
    assert client.requested == ["kind"]
    assert client.closed


def test_kind_network_subnet_without_ipv4(monkeypatch):
    client = FakeDockerClient([{"Subnet": "fc00:f853:ccd:e793::/64"}])
    monkeypatch.setattr(loadbalancer.docker, "from_env", lambda: client)

    with pytest.raises(RuntimeError, match="no IPv4 subnet"):
        kind_network_subnet()
    assert client.closed
