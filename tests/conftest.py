"""Root test configuration."""

import logging
from pathlib import Path

import pytest
import structlog

TESTDATA = Path(__file__).parent / "testdata"


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def policy_path() -> Path:
    """The shared policy document used across tests."""
    return TESTDATA / "test.yaml"


@pytest.fixture
def policy_file(tmp_path: Path, policy_path: Path) -> Path:
    """A writable copy of the shared policy document."""
    path = tmp_path / "config.yaml"
    path.write_text(policy_path.read_text())
    return path
