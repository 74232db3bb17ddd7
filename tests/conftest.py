"""Pytest configuration and fixtures for Pocket tests."""
from pathlib import Path

import pytest


def pytest_sessionfinish(session, exitstatus):
    """Check that coverage data was collected if --cov was requested.

    This prevents silent "no data collected" scenarios that produce 0% coverage
    without failing the test run.
    """
    cov_enabled = any("--cov" in str(arg) for arg in session.config.args)

    if not cov_enabled:
        return

    cwd = Path.cwd()
    coverage_files = list(cwd.glob(".coverage*"))

    if not coverage_files:
        pytest.exit(
            "Coverage was enabled but no data was collected. "
            "Check that tests import from 'pocket' (the package) not 'src/pocket' (filesystem path).",
            returncode=1
        )


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """Minimal git-looking repository root."""
    (tmp_path / ".git").mkdir()
    return tmp_path
