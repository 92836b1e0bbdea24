"""Shared pytest fixtures for the workflow telemetry project."""

import pathlib
from collections.abc import Callable, Iterator

import pytest

from workflow_telemetry.agent.sample_log import Sample


@pytest.fixture(scope="session")
def project_root() -> Iterator[pathlib.Path]:
    """Return repository root for convenience in tests."""
    yield pathlib.Path(__file__).resolve().parent.parent


@pytest.fixture()
def metrics_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    directory = tmp_path / "telemetry-metrics"
    directory.mkdir()
    return directory


@pytest.fixture()
def make_sample() -> Callable[..., Sample]:
    def _make(cpu: float = 10.0, mem: float = 20.0, second: int = 0) -> Sample:
        return Sample(
            timestamp=f"2026-10-17T12:00:{second:02d}.000Z",
            cpu_percent=cpu,
            memory_used_mb=int(16384 * mem / 100),
            memory_total_mb=16384,
            memory_percent=mem,
        )

    return _make
