"""Pytest configuration for shared test setup."""

import os

import pytest


@pytest.fixture(autouse=True)
def clean_mesh_env(monkeypatch):
    """Keep MESH_* variables from the calling shell out of the config models."""
    for key in list(os.environ):
        if key.startswith("MESH_"):
            monkeypatch.delenv(key)


@pytest.fixture(name="sleeps")
def sleeps_fixture():
    """A list that records every requested sleep."""
    return []


@pytest.fixture(name="fake_sleep")
def fake_sleep_fixture(sleeps):
    """Sleep replacement that records durations instead of waiting."""
    return sleeps.append


class FakeResponse:
    def __init__(self, text: str, status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code


@pytest.fixture(name="fake_response")
def fake_response_fixture():
    return FakeResponse


class Recorder:
    """Stand-in for the ``sh`` module that records commands instead of running them."""

    ErrorReturnCode = Exception

    def __init__(self) -> None:
        self.calls = []

    def __getattr__(self, name):
        def _command(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return ""
        return _command


@pytest.fixture(name="fake_sh")
def fake_sh_fixture():
    return Recorder()
