from typing import List, Sequence

from workflow_telemetry.agent.sample_log import Sample
from workflow_telemetry.metrics.summary import MAX_CHART_POINTS, MetricsSummary, downsample
from workflow_telemetry.metrics.system_info import SystemInfo

SPARK_BLOCKS = "▁▂▃▄▅▆▇█"
CPU_COLOR = "#2563eb"
MEMORY_COLOR = "#16a34a"


def sparkline(values: Sequence[float], ceiling: float = 100.0) -> str:
    """One block character per value, scaled against a fixed 0..ceiling range"""
    if not values:
        return ""
    top = len(SPARK_BLOCKS) - 1
    chars = []
    for value in values:
        level = min(max(value / ceiling, 0.0), 1.0) if ceiling > 0 else 0.0
        chars.append(SPARK_BLOCKS[round(level * top)])
    return "".join(chars)


class ReportBuilder:
    def __init__(self, max_points: int = MAX_CHART_POINTS, width: int = 700, height: int = 250,
                 padding: int = 50):
        self.max_points = max_points
        self.width = width
        self.height = height
        self.padding = padding

    def build_report(self, summary: MetricsSummary, samples: List[Sample], system: SystemInfo) -> str:
        """Build the markdown job summary"""
        cpu = downsample([s.cpu_percent for s in samples], self.max_points)
        memory = downsample([s.memory_percent for s in samples], self.max_points)
        total_memory_gb = f"{system.total_memory_mb / 1024:.1f}"

        return f"""
## Workflow Telemetry

### System Information
| Resource | Value |
|----------|-------|
| CPU | {system.cpu_cores} cores ({system.cpu_model}) |
| Memory | {total_memory_gb} GB |
| Platform | {system.platform} ({system.arch}) |

### Resource Usage
{self.render_chart(cpu, memory)}

```
CPU    {sparkline(cpu)}
Memory {sparkline(memory)}
```

| Metric | Peak | Average |
|--------|------|---------|
| CPU Usage | {summary.peak_cpu_percent}% | {summary.avg_cpu_percent}% |
| Memory Usage | {summary.peak_memory_percent}% | {summary.avg_memory_percent}% |

**Samples collected:** {summary.sample_count}
**Monitoring period:** {summary.start_time} to {summary.end_time}
"""

    def _points(self, data: Sequence[float]) -> str:
        chart_width = self.width - self.padding * 2
        chart_height = self.height - self.padding * 2
        last = max(len(data) - 1, 1)
        points = []
        for index, value in enumerate(data):
            x = self.padding + index / last * chart_width
            y = self.padding + chart_height - min(max(value, 0.0), 100.0) / 100 * chart_height
            points.append(f"{x:.1f},{y:.1f}")
        return " ".join(points)

    def render_chart(self, cpu: Sequence[float], memory: Sequence[float]) -> str:
        """Inline SVG with both series on a fixed 0-100% axis"""
        width, height, padding = self.width, self.height, self.padding
        if not cpu and not memory:
            return (
                f'<svg viewBox="0 0 {width} {height}" xmlns="http://www.w3.org/2000/svg">'
                f'<rect width="{width}" height="{height}" fill="white" rx="8" />'
                f'<text x="{width / 2}" y="{height / 2}" text-anchor="middle" fill="#374151" '
                f'font-size="14">No data available</text></svg>'
            )

        chart_height = height - padding * 2
        grid = ""
        for i in range(6):
            y = padding + i / 5 * chart_height
            grid += (
                f'<line x1="{padding}" y1="{y:.1f}" x2="{width - padding}" y2="{y:.1f}" '
                f'stroke="#e5e7eb" stroke-dasharray="4,4" />'
                f'<text x="{padding - 10}" y="{y + 4:.1f}" text-anchor="end" fill="#374151" '
                f'font-size="11">{100 - i * 20}%</text>'
            )

        return (
            f'<svg viewBox="0 0 {width} {height}" xmlns="http://www.w3.org/2000/svg">'
            f'<rect width="{width}" height="{height}" fill="white" rx="8" />'
            f'<text x="{width / 2}" y="25" text-anchor="middle" fill="#374151" font-size="14">'
            f'CPU &amp; Memory Usage Over Time</text>'
            f'{grid}'
            f'<polyline points="{self._points(cpu)}" fill="none" stroke="{CPU_COLOR}" stroke-width="2" />'
            f'<polyline points="{self._points(memory)}" fill="none" stroke="{MEMORY_COLOR}" stroke-width="2" />'
            f'<rect x="{width - 140}" y="10" width="12" height="12" fill="{CPU_COLOR}" rx="2" />'
            f'<text x="{width - 122}" y="20" fill="#374151" font-size="11">CPU</text>'
            f'<rect x="{width - 80}" y="10" width="12" height="12" fill="{MEMORY_COLOR}" rx="2" />'
            f'<text x="{width - 62}" y="20" fill="#374151" font-size="11">Memory</text>'
            f'<text x="{padding}" y="{height - 10}" text-anchor="start" fill="#374151" font-size="11">Start</text>'
            f'<text x="{width - padding}" y="{height - 10}" text-anchor="end" fill="#374151" font-size="11">End</text>'
            f'</svg>'
        )

    def console_summary(self, summary: MetricsSummary) -> str:
        return "\n".join([
            "",
            "=== Telemetry Summary ===",
            f"Peak CPU:     {summary.peak_cpu_percent}%",
            f"Peak Memory:  {summary.peak_memory_percent}%",
            f"Avg CPU:      {summary.avg_cpu_percent}%",
            f"Avg Memory:   {summary.avg_memory_percent}%",
            f"Samples:      {summary.sample_count}",
            f"Duration:     {summary.start_time} to {summary.end_time}",
            "=========================",
        ])
