"""
Append-only sample log shared between the detached sampler and later readers.

One JSON object per line. The sampler is the only writer; readers re-read the
whole file and skip any line they cannot parse, which covers the final line
being cut short when the sampler is killed mid-write. There is no lock file:
each append is a single write() on an O_APPEND descriptor, so lines from
separate appends never interleave.
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

SAMPLE_LOG_NAME = "raw_metrics.jsonl"


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC with millisecond precision and a trailing Z"""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Sample:
    timestamp: str
    cpu_percent: float
    memory_used_mb: int
    memory_total_mb: int
    memory_percent: float

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Sample":
        return cls(
            timestamp=str(data["timestamp"]),
            cpu_percent=float(data["cpu_percent"]),
            memory_used_mb=int(data["memory_used_mb"]),
            memory_total_mb=int(data["memory_total_mb"]),
            memory_percent=float(data["memory_percent"]),
        )


SAMPLE_FIELDS = [f.name for f in fields(Sample)]


class SampleLog:
    def __init__(self, metrics_dir: Path):
        self.metrics_dir = Path(metrics_dir)

    @property
    def path(self) -> Path:
        return self.metrics_dir / SAMPLE_LOG_NAME

    def exists(self) -> bool:
        return self.path.is_file()

    def append(self, sample: Sample):
        data = (sample.to_json() + "\n").encode("utf-8")
        fd = os.open(self.path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
        try:
            os.write(fd, data)
        finally:
            os.close(fd)

    def read_all(self) -> List[Sample]:
        if not self.exists():
            return []

        with open(self.path, "r", encoding="utf-8", errors="replace") as f:
            content = f.read()

        samples = []
        for line in content.splitlines():
            if not line.strip():
                continue
            try:
                samples.append(Sample.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError):
                # truncated tail from a killed writer
                continue
        return samples

    def clear(self):
        try:
            self.path.unlink()
            logger.debug(f"Removed previous sample log {self.path}")
        except FileNotFoundError:
            pass
