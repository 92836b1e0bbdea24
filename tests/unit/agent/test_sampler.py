"""Tests for the sampling loop."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator
from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from workflow_telemetry.agent import sampler as sampler_module
from workflow_telemetry.agent.lifecycle import SamplerLifecycle
from workflow_telemetry.agent.probes.memory_probe import MemoryProbeError, MemoryReading
from workflow_telemetry.agent.sample_log import SampleLog
from workflow_telemetry.agent.sampler import Sampler, SamplerState


class FakeCpuProbe:
    def __init__(self, values: list[float] | None = None) -> None:
        self.values = list(values or [25.0])
        self.calls = 0

    def measure(self) -> float:
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        return value


class FakeMemoryProbe:
    def measure(self) -> MemoryReading:
        return MemoryReading(used_mb=4096, total_mb=8192, percent=50.0)


class BrokenMemoryProbe:
    def measure(self) -> MemoryReading:
        raise MemoryProbeError("counters unavailable")


class FlakyMemoryProbe(FakeMemoryProbe):
    def __init__(self) -> None:
        self.calls = 0

    def measure(self) -> MemoryReading:
        self.calls += 1
        if self.calls > 1:
            raise MemoryProbeError("counters vanished")
        return super().measure()


class ExplodingCpuProbe:
    def __init__(self) -> None:
        self.calls = 0

    def measure(self) -> float:
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("bad tick")
        return 10.0


def _sampler(metrics_dir: Path, cpu=None, memory=None) -> Sampler:
    return Sampler(
        SampleLog(metrics_dir),
        interval=1,
        cpu_probe=cpu or FakeCpuProbe(),
        memory_probe=memory or FakeMemoryProbe(),
    )


def test_interval_below_minimum_rejected(metrics_dir: Path) -> None:
    with pytest.raises(ValueError):
        Sampler(SampleLog(metrics_dir), interval=0.5)


def test_tick_appends_sample(metrics_dir: Path) -> None:
    sampler = _sampler(metrics_dir, cpu=FakeCpuProbe([33.3]))

    sample = sampler.tick()

    assert sample is not None
    assert sample.cpu_percent == 33.3
    assert sample.memory_percent == 50.0
    assert SampleLog(metrics_dir).read_all() == [sample]


def test_memory_failure_records_zero_usage(metrics_dir: Path) -> None:
    sampler = _sampler(metrics_dir, memory=BrokenMemoryProbe())

    sample = sampler.tick()

    assert sample is not None
    assert sample.memory_percent == 0.0
    assert sample.memory_used_mb == 0
    assert sample.memory_total_mb > 0
    assert sample.cpu_percent == 25.0


def test_memory_failure_keeps_last_known_total(metrics_dir: Path) -> None:
    sampler = _sampler(metrics_dir, memory=FlakyMemoryProbe())

    good = sampler.tick()
    bad = sampler.tick()

    assert good is not None and bad is not None
    assert good.memory_total_mb == 8192
    assert bad.memory_total_mb == 8192
    assert bad.memory_used_mb == 0
    assert bad.memory_percent == 0.0
    assert [s.memory_total_mb for s in SampleLog(metrics_dir).read_all()] == [8192, 8192]


def test_failed_tick_does_not_stop_sampling(metrics_dir: Path) -> None:
    sampler = _sampler(metrics_dir, cpu=ExplodingCpuProbe())

    assert sampler.tick() is None
    assert sampler.tick() is not None
    assert sampler.failures == 1
    assert len(SampleLog(metrics_dir).read_all()) == 1


def test_append_failure_is_logged_not_raised(tmp_path: Path) -> None:
    sampler = _sampler(tmp_path / "does-not-exist")

    assert sampler.tick() is None
    assert sampler.failures == 1


def test_run_samples_immediately_and_stops_promptly(metrics_dir: Path) -> None:
    sampler = _sampler(metrics_dir)
    thread = threading.Thread(target=sampler.run, daemon=True)

    thread.start()
    deadline = time.monotonic() + 5
    while not SampleLog(metrics_dir).exists() and time.monotonic() < deadline:
        time.sleep(0.01)
    assert sampler.state == SamplerState.RUNNING

    started = time.monotonic()
    sampler.stop()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert time.monotonic() - started < 1.0
    assert sampler.state == SamplerState.STOPPED
    assert len(SampleLog(metrics_dir).read_all()) >= 1


def test_stopped_before_run_takes_single_sample(metrics_dir: Path) -> None:
    sampler = _sampler(metrics_dir)
    sampler.stop()

    sampler.run()

    assert sampler.state == SamplerState.STOPPED
    assert len(SampleLog(metrics_dir).read_all()) == 1


def test_run_twice_rejected(metrics_dir: Path) -> None:
    sampler = _sampler(metrics_dir)
    sampler.stop()
    sampler.run()

    with pytest.raises(RuntimeError):
        sampler.run()


def test_interval_is_read_only(metrics_dir: Path) -> None:
    sampler = _sampler(metrics_dir)

    with pytest.raises(AttributeError):
        sampler.interval = 5  # type: ignore[misc]


@pytest.fixture()
def sampler_cli(monkeypatch: pytest.MonkeyPatch) -> Iterator[typer.Typer]:
    app = typer.Typer()
    app.command()(sampler_module.main)
    monkeypatch.setattr(sampler_module, "install_signal_handlers", lambda sampler: None)
    yield app
    package_logger = logging.getLogger("workflow_telemetry")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True


def test_entry_point_parses_lifecycle_command_line(
    sampler_cli: typer.Typer, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    runs: list[Sampler] = []

    class OneShotSampler(Sampler):
        def run(self) -> None:
            runs.append(self)

    monkeypatch.setattr(sampler_module, "Sampler", OneShotSampler)
    target = tmp_path / "fresh"
    args = SamplerLifecycle().command(2, target)[3:]

    result = CliRunner().invoke(sampler_cli, args)

    assert result.exit_code == 0
    assert len(runs) == 1
    assert runs[0].interval == 2.0
    assert runs[0].sample_log.path.parent == target
    assert (target / "sampler.log").exists()


def test_entry_point_rejects_short_interval(sampler_cli: typer.Typer, tmp_path: Path) -> None:
    result = CliRunner().invoke(sampler_cli, ["--interval", "0.5", "--dir", str(tmp_path)])

    assert result.exit_code == 2
    assert "at least 1s" in (tmp_path / "sampler.log").read_text(encoding="utf-8")


def test_entry_point_requires_directory(sampler_cli: typer.Typer) -> None:
    result = CliRunner().invoke(sampler_cli, ["--interval", "1"])

    assert result.exit_code != 0
