from dataclasses import asdict
from pathlib import Path
from typing import List, Tuple
import pandas as pd

from workflow_telemetry.agent.sample_log import SAMPLE_FIELDS, Sample
from workflow_telemetry.metrics.summary import MetricsSummary
from workflow_telemetry.metrics.system_info import SystemInfo
from workflow_telemetry.metrics.util import MetricUtils


class ResultStore:
    """Writes `<prefix>.json` (summary + system) and `<prefix>.csv` (samples)"""

    def __init__(self, out_dir: Path, prefix: str = "metrics"):
        self.out = Path(out_dir)
        self.prefix = prefix

    @property
    def json_path(self) -> Path:
        return self.out / f"{self.prefix}.json"

    @property
    def csv_path(self) -> Path:
        return self.out / f"{self.prefix}.csv"

    def write_summary(self, summary: MetricsSummary, system: SystemInfo) -> Path:
        MetricUtils.save_metrics(
            {"summary": summary.to_dict(), "system": system.to_dict()},
            str(self.json_path),
        )
        return self.json_path

    def write_samples(self, samples: List[Sample]) -> Path:
        frame = pd.DataFrame([asdict(s) for s in samples], columns=SAMPLE_FIELDS)
        frame.to_csv(self.csv_path, index=False, lineterminator="\n")
        return self.csv_path

    def write_all(self, summary: MetricsSummary, system: SystemInfo,
                  samples: List[Sample]) -> Tuple[Path, Path]:
        return self.write_summary(summary, system), self.write_samples(samples)


def load_samples_csv(path: Path) -> List[Sample]:
    frame = pd.read_csv(path, dtype={"timestamp": str})
    return [Sample.from_dict(row) for row in frame.to_dict(orient="records")]
