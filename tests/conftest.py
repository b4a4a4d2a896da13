"""
Shared pytest fixtures for Svalinn tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import os as _os
import pathlib as _pathlib

import click.testing as _click_testing
import pytest as _pytest

import svalinn.config as config
import svalinn.core.ambient as ambient
import svalinn.core.policy as policy

# =============================================================================
# Environment isolation
# =============================================================================


@_pytest.fixture(autouse=True)
def isolated_env(
    monkeypatch: _pytest.MonkeyPatch,
    tmp_path: _pathlib.Path,
) -> _pathlib.Path:
    """
    Isolate every test from the developer's environment and config files.

    - Clears SVALINN_* environment variables
    - Points the user config directory at an empty temp directory
    - Runs the test from an empty workspace (no project config)

    Returns the workspace directory.
    """
    for key in list(_os.environ):
        if key.startswith("SVALINN_"):
            monkeypatch.delenv(key)

    user_dir = tmp_path / "user-config"
    user_dir.mkdir()
    monkeypatch.setenv("SVALINN_CONFIG_DIR", str(user_dir))

    workspace = tmp_path / "workspace"
    workspace.mkdir()
    monkeypatch.chdir(workspace)
    return workspace


@_pytest.fixture(autouse=True)
def process_namespace(monkeypatch: _pytest.MonkeyPatch) -> ambient.AmbientNamespace:
    """
    Fresh process-wide ambient namespace for each test.

    ``install()`` freezes the process namespace for good; swapping it per
    test keeps the guard from leaking between tests.
    """
    namespace = ambient.AmbientNamespace(name="process")
    monkeypatch.setattr(ambient, "_PROCESS_NAMESPACE", namespace)
    return namespace


# =============================================================================
# Core fixtures
# =============================================================================


@_pytest.fixture
def sandbox() -> ambient.AmbientNamespace:
    """An unfrozen sandbox namespace, separate from the process namespace."""
    return ambient.AmbientNamespace(name="sandbox")


@_pytest.fixture
def profile_policy() -> policy.MergePolicy:
    """Allow-list policy for user profile updates."""
    return policy.build_policy(allowed=["displayName", "email", "bio"])


@_pytest.fixture
def settings_policy() -> policy.MergePolicy:
    """Schema policy for numeric settings."""
    return policy.build_policy(schema={"timeout": "number", "retries": "number"})


# =============================================================================
# Config / CLI fixtures
# =============================================================================


@_pytest.fixture
def user_config_dir() -> _pathlib.Path:
    """The (empty) user config directory set up by ``isolated_env``."""
    return _pathlib.Path(_os.environ["SVALINN_CONFIG_DIR"])


@_pytest.fixture
def project_dir(isolated_env: _pathlib.Path) -> _pathlib.Path:
    """Workspace with an empty .svalinn/ directory, making it the project root."""
    (isolated_env / ".svalinn").mkdir()
    return isolated_env


@_pytest.fixture
def clean_settings() -> config.Settings:
    """Settings built from the built-in defaults only."""
    return config.Settings()


@_pytest.fixture
def runner() -> _click_testing.CliRunner:
    """Click test runner."""
    return _click_testing.CliRunner()
