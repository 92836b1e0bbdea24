from typing import Dict, Any
import json
import math


def round1(value: float) -> float:
    """Round half-up to one decimal place"""
    return math.floor(value * 10 + 0.5) / 10


class MetricUtils:
    """Common utilities for metric files"""

    @staticmethod
    def save_metrics(metrics: Dict[str, Any], output_path: str):
        """Save metrics to JSON file"""
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(metrics, f, indent=2)

    @staticmethod
    def load_metrics(input_path: str) -> Dict[str, Any]:
        """Load metrics from JSON file"""
        with open(input_path, 'r', encoding='utf-8') as f:
            return json.load(f)
