"""
Handoff record connecting the start phase to the stop phase.

The record is saved twice: to the job's state channel, which only lives as
long as the job, and to `state.json` in the metrics directory, which the stop
phase reads when the channel comes back empty.
"""
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

STATE_KEY = "telemetry_state"
STATE_FILE_NAME = "state.json"


@dataclass(frozen=True)
class HandoffRecord:
    samples_location: Path
    sampler_identity: int
    start_time: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metricsDir": str(self.samples_location),
            "monitorPid": self.sampler_identity,
            "startTime": self.start_time,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: str) -> "HandoffRecord":
        data = json.loads(payload)
        return cls(
            samples_location=Path(data["metricsDir"]),
            sampler_identity=int(data.get("monitorPid") or 0),
            start_time=str(data.get("startTime", "")),
        )


def state_file(metrics_dir: Path) -> Path:
    return Path(metrics_dir) / STATE_FILE_NAME


def save_handoff(record: HandoffRecord, channel=None) -> Path:
    """Write the record to the state channel (if any) and to state.json"""
    payload = record.to_json()
    if channel is not None:
        channel.save_state(STATE_KEY, payload)

    path = state_file(record.samples_location)
    path.write_text(payload, encoding="utf-8")
    return path


def load_handoff(metrics_dir: Path, channel=None) -> Optional[HandoffRecord]:
    """
    Read the record from the state channel, falling back to state.json.

    Returns None when neither source has a usable record; that means
    monitoring never started correctly and is not an error.
    """
    if channel is not None:
        payload = channel.get_state(STATE_KEY)
        if payload:
            try:
                return HandoffRecord.from_json(payload)
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Ignoring unreadable state channel record: {e}")

    path = state_file(metrics_dir)
    if not path.is_file():
        return None

    try:
        return HandoffRecord.from_json(path.read_text(encoding="utf-8"))
    except (ValueError, KeyError, TypeError) as e:
        logger.warning(f"Ignoring unreadable {path}: {e}")
        return None
