"""Global pytest configuration for hermetic test runs."""

from __future__ import annotations

import os

import pytest

from sandpatch.config import SandpatchConfig
from sandpatch.paths import PathSandbox
from sandpatch.workspace import Workspace


def pytest_sessionstart(session):  # noqa: ARG001
    # Prevent accidental outbound network during tests.
    os.environ.setdefault("SANDPATCH_DISABLE_NETWORK", "1")


@pytest.fixture
def project(tmp_path):
    """Project root with an empty playground/ sandbox."""
    (tmp_path / "playground").mkdir()
    return tmp_path


@pytest.fixture
def sandbox(project):
    return PathSandbox(project)


@pytest.fixture
def calculator(project):
    """A small Ruby file inside the sandbox."""
    path = project / "playground" / "calculator.rb"
    path.write_text(
        "class Calculator\n"
        "  def add(a, b)\n"
        "    a + b\n"
        "  end\n"
        "end\n"
    )
    return path


@pytest.fixture
def workspace(project):
    return Workspace(project, SandpatchConfig(), run_id="test-run")
