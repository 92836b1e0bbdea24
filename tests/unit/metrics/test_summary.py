"""Tests for sample aggregation and downsampling."""

from __future__ import annotations

import random
import statistics

import pytest

from workflow_telemetry.metrics.summary import downsample, summarize
from workflow_telemetry.metrics.util import round1


def test_concrete_three_sample_scenario(make_sample) -> None:
    samples = [
        make_sample(cpu=10, mem=20, second=0),
        make_sample(cpu=90, mem=95, second=1),
        make_sample(cpu=50, mem=60, second=2),
    ]

    summary = summarize(samples)

    assert summary.peak_cpu_percent == 90.0
    assert summary.peak_memory_percent == 95.0
    assert summary.avg_cpu_percent == 50.0
    assert summary.avg_memory_percent == 58.3
    assert summary.sample_count == 3
    assert summary.start_time == samples[0].timestamp
    assert summary.end_time == samples[2].timestamp


@pytest.mark.parametrize("count", [1, 2, 7, 120])
def test_summary_matches_max_and_mean(make_sample, count: int) -> None:
    rng = random.Random(count)
    samples = [
        make_sample(cpu=round(rng.uniform(0, 400), 1), mem=round(rng.uniform(0, 100), 1), second=i % 60)
        for i in range(count)
    ]

    summary = summarize(samples)
    cpu = [s.cpu_percent for s in samples]
    mem = [s.memory_percent for s in samples]

    assert summary.sample_count == count
    assert summary.peak_cpu_percent == pytest.approx(max(cpu), abs=0.05)
    assert summary.peak_memory_percent == pytest.approx(max(mem), abs=0.05)
    assert summary.avg_cpu_percent == pytest.approx(statistics.mean(cpu), abs=0.05)
    assert summary.avg_memory_percent == pytest.approx(statistics.mean(mem), abs=0.05)
    assert summary.start_time == samples[0].timestamp
    assert summary.end_time == samples[-1].timestamp


def test_times_follow_log_order_not_sort_order(make_sample) -> None:
    samples = [make_sample(second=30), make_sample(second=10)]

    summary = summarize(samples)

    assert summary.start_time.endswith("12:00:30.000Z")
    assert summary.end_time.endswith("12:00:10.000Z")


def test_empty_sample_set_is_caller_error() -> None:
    with pytest.raises(ValueError):
        summarize([])


def test_round1_is_half_up() -> None:
    assert round1(0.25) == 0.3
    assert round1(58.333) == 58.3
    assert round1(0.0) == 0.0


def test_downsample_short_series_unchanged() -> None:
    assert downsample([1.0, 2.0, 3.0], max_points=60) == [1.0, 2.0, 3.0]


def test_downsample_selects_evenly_spaced_points() -> None:
    values = [float(i) for i in range(1000)]

    result = downsample(values, max_points=60)

    assert len(result) == 60
    assert result[0] == 0.0
    assert result[-1] == 999.0
    assert result == sorted(result)
    assert set(result) <= set(values)


def test_downsample_rejects_tiny_limit() -> None:
    with pytest.raises(ValueError):
        downsample([1.0, 2.0, 3.0], max_points=1)
