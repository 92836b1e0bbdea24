from dataclasses import asdict, dataclass
from typing import Dict, List, Any, Sequence
import statistics

from workflow_telemetry.agent.sample_log import Sample
from workflow_telemetry.metrics.util import round1

MAX_CHART_POINTS = 60


@dataclass(frozen=True)
class MetricsSummary:
    peak_cpu_percent: float
    peak_memory_percent: float
    avg_cpu_percent: float
    avg_memory_percent: float
    sample_count: int
    start_time: str
    end_time: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def summarize(samples: Sequence[Sample]) -> MetricsSummary:
    """Peak and average CPU/memory over the samples, in log order"""
    if not samples:
        raise ValueError("cannot summarize an empty sample set")

    cpu_values = [s.cpu_percent for s in samples]
    memory_values = [s.memory_percent for s in samples]

    return MetricsSummary(
        peak_cpu_percent=round1(max(cpu_values)),
        peak_memory_percent=round1(max(memory_values)),
        avg_cpu_percent=round1(statistics.fmean(cpu_values)),
        avg_memory_percent=round1(statistics.fmean(memory_values)),
        sample_count=len(samples),
        start_time=samples[0].timestamp,
        end_time=samples[-1].timestamp,
    )


def downsample(values: Sequence[float], max_points: int = MAX_CHART_POINTS) -> List[float]:
    """
    Pick evenly spaced points from a series for display.

    Points are selected, not averaged, so the first and last values are kept
    exactly but a short spike between two selected indices can be dropped
    from the chart. Peaks in the summary table always come from the full
    series.
    """
    if max_points < 2:
        raise ValueError(f"max_points must be at least 2, got {max_points}")

    n = len(values)
    if n <= max_points:
        return list(values)

    step = (n - 1) / (max_points - 1)
    return [values[round(i * step)] for i in range(max_points)]
