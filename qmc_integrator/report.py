"""Export integration results as a JSON report."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

from qmc_integrator.admission import NestedFanOutReport
from qmc_integrator.aggregator import AggregateResult
from qmc_integrator.config import IntegrationConfig


def build_report_data(
    config: IntegrationConfig,
    result: AggregateResult,
    convergence: pd.DataFrame | None = None,
    nested: NestedFanOutReport | None = None,
) -> dict:
    """Assemble the run configuration and outcome into a single dictionary."""
    data = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "configuration": {
            "requested_samples": config.total_samples,
            "task_count": config.task_count,
            "worker_count": config.worker_count,
            "executor": config.executor,
            "bases": list(config.bases),
        },
        "integration": {
            "estimate": result.estimate,
            "effective_samples": result.total_samples,
            "dropped_samples": config.total_samples - result.total_samples,
            "absolute_error": result.absolute_error,
            "theoretical_error_order": result.theoretical_error_order,
            "elapsed_seconds": round(result.elapsed_time, 4),
        },
    }
    if convergence is not None:
        data["convergence"] = convergence.to_dict(orient="records")
    if nested is not None:
        data["nested_fan_out"] = {
            "outer_completed": nested.outer_completed,
            "inner_completed": nested.inner_completed,
            "peak_outer_concurrency": nested.peak_outer_concurrency,
            "elapsed_seconds": round(nested.elapsed_time, 4),
        }
    return data


def export_json(
    data: dict,
    output: str | Path = "output/integration_report.json",
) -> Path:
    """Write the report data to a JSON file."""
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path
