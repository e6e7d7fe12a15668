"""Tests for the command-line surface."""

import pytest
from typer.testing import CliRunner

from mesh_sandbox import cli

runner = CliRunner()


@pytest.fixture(name="actions")
def actions_fixture(monkeypatch):
    ran = []
    monkeypatch.setattr(cli, "run_start", lambda cfg: ran.append("start"))
    monkeypatch.setattr(cli, "run_destroy", lambda cfg: ran.append("destroy"))
    return ran


@pytest.mark.parametrize("command", ["start", "destroy"])
def test_subcommands(actions, command):
    result = runner.invoke(cli.app, [command])

    assert result.exit_code == 0
    assert actions == [command]


def test_no_arguments_is_an_error(actions):
    result = runner.invoke(cli.app, [])

    assert result.exit_code != 0
    assert actions == []


def test_unknown_command_is_an_error(actions):
    result = runner.invoke(cli.app, ["restart"])

    assert result.exit_code != 0
    assert actions == []


def test_failure_exits_with_status_one(monkeypatch):
    def _fail(cfg):
        raise RuntimeError("Required command 'kind' is not installed.")

    monkeypatch.setattr(cli, "run_start", _fail)

    result = runner.invoke(cli.app, ["start"])

    assert result.exit_code == 1


def test_invalid_configuration_exits_with_status_one(monkeypatch, actions):
    monkeypatch.setenv("MESH_LB_PROVIDER", "haproxy")

    result = runner.invoke(cli.app, ["destroy"])

    assert result.exit_code == 1
    assert actions == []
