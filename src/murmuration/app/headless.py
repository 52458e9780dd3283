from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from dataclasses import replace
from pathlib import Path
from time import perf_counter
from typing import Optional

from ..sim.core.config import SwarmConfig
from ..sim.core.engine import SwarmEngine
from ..sim.types.emergence import EmergencePattern, EmergenceReport
from ..sim.types.metrics import SwarmMetrics

logger = logging.getLogger(__name__)

_BASIC_HEADER = [
    "generation",
    "agent_count",
    "avg_speed",
    "avg_cohesion",
    "avg_alignment",
    "clustering",
    "collective_intelligence",
    "tick_ms",
]

_DETAILED_HEADER = [
    "generation",
    "agent_count",
    "avg_speed",
    "avg_cohesion",
    "avg_alignment",
    "separation_score",
    "clustering",
    "collective_intelligence",
    "self_organization",
    "emergence",
    "flocking",
    "clustering_pattern",
    "vortex",
    "wave",
    "tick_ms",
    "tick_ms_per_agent",
]


def _format_basic_row(generation: int, metrics: SwarmMetrics, tick_ms: float) -> list[object]:
    return [
        generation,
        metrics.agent_count,
        f"{metrics.average_speed:.4f}",
        f"{metrics.average_cohesion:.4f}",
        f"{metrics.average_alignment:.4f}",
        f"{metrics.clustering_coefficient:.4f}",
        f"{metrics.collective_intelligence_index:.4f}",
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(
    generation: int, metrics: SwarmMetrics, report: EmergenceReport, tick_ms: float
) -> list[object]:
    patterns = report.patterns_detected
    tick_ms_per_agent = 0.0 if metrics.agent_count <= 0 else tick_ms / metrics.agent_count
    return [
        generation,
        metrics.agent_count,
        f"{metrics.average_speed:.4f}",
        f"{metrics.average_cohesion:.4f}",
        f"{metrics.average_alignment:.4f}",
        f"{metrics.separation_score:.4f}",
        f"{metrics.clustering_coefficient:.4f}",
        f"{metrics.collective_intelligence_index:.4f}",
        f"{report.self_organization_level:.4f}",
        int(report.has_emergence),
        int(EmergencePattern.FLOCKING in patterns),
        int(EmergencePattern.CLUSTERING in patterns),
        int(EmergencePattern.VORTEX in patterns),
        int(EmergencePattern.WAVE in patterns),
        f"{tick_ms:.3f}",
        f"{tick_ms_per_agent:.4f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p95": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    total = sum(values)
    count = len(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(total / count),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p95": _percentile(sorted_values, 0.95),
        "p99": _percentile(sorted_values, 0.99),
    }


def _correlation(xs: list[float], ys: list[float]) -> float:
    if len(xs) != len(ys) or len(xs) < 2:
        return 0.0
    mean_x = sum(xs) / len(xs)
    mean_y = sum(ys) / len(ys)
    num = 0.0
    denom_x = 0.0
    denom_y = 0.0
    for x, y in zip(xs, ys):
        dx = x - mean_x
        dy = y - mean_y
        num += dx * dy
        denom_x += dx * dx
        denom_y += dy * dy
    denom = math.sqrt(denom_x * denom_y)
    if denom == 0.0:
        return 0.0
    return float(num / denom)


def run_headless(
    steps: int,
    agents: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 50,
    metrics_interval: int = 1,
    config: Optional[SwarmConfig] = None,
) -> SwarmEngine:
    """Populate an engine, step it `steps` times and record metrics every `metrics_interval` generations.

    Returns the engine so callers can inspect the final state.
    """
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = config if config is not None else SwarmConfig()
    if seed is not None:
        config = replace(config, seed=seed)
    engine = SwarmEngine(config)
    for _ in range(agents):
        engine.add_agent()
    logger.info(
        "Running %d generations with %d agents in a %gx%g arena (seed=%d)",
        steps,
        agents,
        config.width,
        config.height,
        config.seed,
    )

    interval = max(1, int(metrics_interval))
    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    generation_series: list[float] = []
    clustering_series: list[float] = []
    ci_series: list[float] = []
    pattern_counts = {pattern.value: 0 for pattern in EmergencePattern}

    try:
        for _ in range(steps):
            start = perf_counter()
            engine.update_swarm()
            tick_ms = 0.0 if deterministic_log else (perf_counter() - start) * 1000.0
            tick_ms_series.append(tick_ms)

            generation = engine.generation
            if generation % interval != 0 and generation != steps:
                continue
            metrics = engine.get_swarm_metrics()
            report = engine.emergence_history[-1]
            generation_series.append(float(generation))
            clustering_series.append(metrics.clustering_coefficient)
            ci_series.append(metrics.collective_intelligence_index)
            for pattern in report.patterns_detected:
                pattern_counts[pattern.value] += 1
            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(generation, metrics, report, tick_ms))
                else:
                    writer.writerow(_format_basic_row(generation, metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    if clustering_series:
        logger.info(
            "Finished at generation %d: clustering=%.3f collective_intelligence=%.3f",
            engine.generation,
            clustering_series[-1],
            ci_series[-1],
        )

    if summary_path:
        window = max(1, int(summary_window))
        tail_slice = slice(max(0, len(clustering_series) - window), len(clustering_series))
        summary = {
            "steps": steps,
            "agents": agents,
            "seed": config.seed,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "metrics_interval": interval,
            "tick_ms": _summary_stats(tick_ms_series),
            "clustering": _summary_stats(clustering_series),
            "collective_intelligence": _summary_stats(ci_series),
            "pattern_counts": pattern_counts,
            "correlations": {
                "clustering_vs_generation": _correlation(generation_series, clustering_series),
                "collective_intelligence_vs_generation": _correlation(generation_series, ci_series),
            },
            "tail_window": {
                "window": window,
                "clustering": _summary_stats(clustering_series[tail_slice]),
                "collective_intelligence": _summary_stats(ci_series[tail_slice]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))

    return engine


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless flocking simulation")
    parser.add_argument("--steps", type=int, default=100)
    parser.add_argument("--agents", type=int, default=100)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML file with swarm settings")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--metrics-interval",
        type=int,
        default=20,
        help="Compute and log metrics every N generations (the final generation is always logged).",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--summary-window",
        type=int,
        default=50,
        help="Tail window size (metric samples) for summary stats.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = SwarmConfig.from_yaml(args.config) if args.config else None
    run_headless(
        args.steps,
        args.agents,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        metrics_interval=args.metrics_interval,
        config=config,
    )


if __name__ == "__main__":
    main()
