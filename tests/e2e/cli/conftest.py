"""Fixtures for end-to-end tests of the ``personservice`` console command."""

import pytest
from click.testing import CliRunner

# pylint: disable=redefined-outer-name


@pytest.fixture
def runner():
    """Return a Click CliRunner for invoking CLI commands in tests."""
    return CliRunner()


@pytest.fixture
def fs(runner, monkeypatch):
    """Run the test in an isolated working directory with no app variables set.

    The working directory holds no ``application.properties``, so only the
    packaged defaults apply unless a test writes its own.
    """
    for key in ("INFO_APP_NAME", "CONFIG_LOCATION", "PROFILES_ACTIVE", "DEBUG"):
        monkeypatch.delenv(key, raising=False)
    with runner.isolated_filesystem():
        yield
