"""
ExecDesk command line.

USAGE:
    execdesk metrics --data data/ [--strategy S1]
    execdesk timeseries --data data/ --kind latency --window-minutes 15
    execdesk anomalies --data data/ [--strategy S1] [--limit 20]
    execdesk simulate --data data/ --strategy S1 --max-position-size 100 --seed 7
    execdesk compare --data data/ --strategy S1 \\
        --scenario "" --scenario max_position_size=100,order_timeout_ms=5000
    execdesk generate --out data/ --seed 7 [--format json]

Every analysis command reads event files from --data (see execdesk.store.files),
configuration from --config, and prints JSON to stdout. generate writes a
seeded sample dataset in that layout.
"""

import argparse
import json
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from execdesk.analytics.aggregation import overview
from execdesk.analytics.metrics import (
    SeriesKind,
    compute_performance_metrics,
    compute_strategy_metrics,
    compute_time_series,
)
from execdesk.config import AnalyticsConfig, load_config
from execdesk.errors import ExecDeskError
from execdesk.logging import LogContext, LogStream, get_logger, setup_logging
from execdesk.monitoring.anomaly import AnomalyDetector, AnomalyThresholds
from execdesk.events.types import parse_timestamp
from execdesk.store import InMemoryEventStore, SampleCounts, SampleDataGenerator, load_events, write_events
from execdesk.whatif.simulator import (
    RandomFillSynthesizer,
    SimulationParameters,
    WhatIfSimulator,
)

logger = get_logger(LogStream.SYSTEM)

PARAMETER_FLAGS = (
    ("--max-position-size", "max_position_size", "Drop fills that push |position| over this size"),
    ("--order-timeout-ms", "order_timeout_ms", "Fills slower than this become timeout cancels"),
    ("--min-fill-rate", "min_fill_rate", "Convert cancels to fills up to this rate (0-1)"),
    ("--max-latency-ms", "max_latency_ms", "Fills slower than this become high-latency cancels"),
    ("--risk-multiplier", "risk_multiplier", "Scale projected P&L and volume"),
)


# ============================================================================
# PARSING
# ============================================================================

def parse_scenario(text: str) -> SimulationParameters:
    """
    Parse 'key=value,key=value' into SimulationParameters.

    An empty string is the default (unconstrained) scenario.
    """
    values: Dict[str, float] = {}
    for part in filter(None, (p.strip() for p in text.split(","))):
        key, sep, raw = part.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"Expected key=value, got {part!r}")
        try:
            values[key.strip().replace("-", "_")] = float(raw)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Not a number for {key}: {raw!r}")
    try:
        return SimulationParameters.from_dict(values)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="execdesk",
        description="ExecDesk - Execution analytics, anomaly detection and what-if simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    config_opts = argparse.ArgumentParser(add_help=False)
    config_opts.add_argument('--config', type=Path, default=Path('config'), help='Config directory (default: config)')

    common = argparse.ArgumentParser(add_help=False, parents=[config_opts])
    common.add_argument('--data', type=Path, required=True, help='Directory of event files')

    subparsers = parser.add_subparsers(dest='command', help='Command')
    subparsers.required = True

    metrics_parser = subparsers.add_parser('metrics', parents=[common], help='Overview or per-strategy metrics')
    metrics_parser.add_argument('--strategy', type=str, help='Strategy id (default: overview of all)')
    metrics_parser.add_argument('--as-of', type=date.fromisoformat, default=None, help='Snapshot date (YYYY-MM-DD)')

    ts_parser = subparsers.add_parser('timeseries', parents=[common], help='Windowed time series')
    ts_parser.add_argument('--kind', choices=[k.value for k in SeriesKind], required=True)
    ts_parser.add_argument('--window-minutes', type=float, default=None,
                           help='Window width (default: metrics.default_window_minutes)')
    ts_parser.add_argument('--strategy', type=str, help='Restrict to one strategy')

    anomaly_parser = subparsers.add_parser('anomalies', parents=[common], help='Run anomaly detection')
    anomaly_parser.add_argument('--strategy', type=str, help='Restrict to one strategy')
    anomaly_parser.add_argument('--limit', type=int, default=20, help='Anomalies to print (default: 20)')

    sim_parser = subparsers.add_parser('simulate', parents=[common], help='Simulate one what-if scenario')
    sim_parser.add_argument('--strategy', type=str, required=True)
    for flag, dest, help_text in PARAMETER_FLAGS:
        sim_parser.add_argument(flag, dest=dest, type=float, default=None, help=help_text)
    sim_parser.add_argument('--seed', type=int, default=None, help='Seed for synthetic fills')

    cmp_parser = subparsers.add_parser('compare', parents=[common], help='Compare what-if scenarios')
    cmp_parser.add_argument('--strategy', type=str, required=True)
    cmp_parser.add_argument('--scenario', dest='scenarios', type=parse_scenario, action='append', default=[],
                            help='key=value,... (repeatable; first is the baseline)')
    cmp_parser.add_argument('--seed', type=int, default=None, help='Seed for synthetic fills')

    gen_parser = subparsers.add_parser('generate', parents=[config_opts], help='Write a seeded sample dataset')
    gen_parser.add_argument('--out', type=Path, required=True, help='Output directory')
    gen_parser.add_argument('--seed', type=int, default=None, help='RNG seed (default: simulation.seed)')
    gen_parser.add_argument('--format', choices=['csv', 'json'], default='csv')
    gen_parser.add_argument('--end', type=parse_timestamp, default=None,
                            help='Latest event time, ISO-8601 (default: now)')
    gen_parser.add_argument('--hours', type=float, default=24.0, help='Span of event times (default: 24)')
    for kind, default in (('fills', 200), ('cancels', 50), ('rejects', 25), ('latency-samples', 100)):
        gen_parser.add_argument(f'--{kind}', type=int, default=default, help=f'Number of {kind} (default: {default})')

    return parser


# ============================================================================
# COMMANDS
# ============================================================================

def _cmd_metrics(args, config: AnalyticsConfig, store: InMemoryEventStore) -> Dict[str, Any]:
    rf = config.metrics.risk_free_rate
    window = config.metrics.default_window_minutes

    if not args.strategy:
        return overview(store.snapshot(), store.get_strategies(), as_of=args.as_of, risk_free_rate=rf)

    batch = store.snapshot(args.strategy)
    events = (batch.fills, batch.cancels, batch.rejects, batch.latency_samples)
    metrics = compute_strategy_metrics(
        args.strategy, *events,
        as_of=args.as_of,
        risk_free_rate=rf,
        pnl_window_minutes=config.metrics.pnl_window_minutes,
    )
    performance = compute_performance_metrics(
        *events,
        risk_free_rate=rf,
        pnl_window_minutes=config.metrics.pnl_window_minutes,
    )
    return {
        "metrics": metrics.to_dict(),
        "performance": performance.to_dict(),
        "timeSeries": {
            kind.value: [p.to_dict() for p in compute_time_series(kind, *events, window_minutes=window)]
            for kind in SeriesKind
        },
    }


def _cmd_timeseries(args, config: AnalyticsConfig, store: InMemoryEventStore) -> List[Dict[str, Any]]:
    batch = store.snapshot(args.strategy)
    window = args.window_minutes
    if window is None:
        if args.kind == SeriesKind.PNL.value:
            window = config.metrics.pnl_window_minutes
        else:
            window = config.metrics.default_window_minutes
    points = compute_time_series(
        args.kind, batch.fills, batch.cancels, batch.rejects, batch.latency_samples,
        window_minutes=window,
    )
    return [p.to_dict() for p in points]


def _cmd_anomalies(args, config: AnalyticsConfig, store: InMemoryEventStore) -> Dict[str, Any]:
    batch = store.snapshot(args.strategy)
    detector = AnomalyDetector(AnomalyThresholds.from_config(config.anomaly))
    anomalies = detector.detect_all(batch.fills, batch.cancels, batch.rejects, batch.latency_samples)
    for anomaly in anomalies:
        store.add_anomaly(anomaly)
    return {
        "detected": len(anomalies),
        "anomalies": [a.to_dict() for a in anomalies[:args.limit]],
    }


def _simulator(args, config: AnalyticsConfig) -> WhatIfSimulator:
    seed = args.seed if args.seed is not None else config.simulation.seed
    return WhatIfSimulator(RandomFillSynthesizer(seed), risk_free_rate=config.metrics.risk_free_rate)


def _cmd_simulate(args, config: AnalyticsConfig, store: InMemoryEventStore) -> Dict[str, Any]:
    parameters = SimulationParameters(**{dest: getattr(args, dest) for _, dest, _ in PARAMETER_FLAGS})
    scenario = _simulator(args, config).simulate(args.strategy, store.snapshot(args.strategy), parameters)
    return scenario.to_dict()


def _cmd_compare(args, config: AnalyticsConfig, store: InMemoryEventStore) -> Dict[str, Any]:
    simulator = _simulator(args, config)
    scenarios = simulator.simulate_many(args.strategy, store.snapshot(args.strategy), args.scenarios)
    return simulator.compare(scenarios).to_dict()


def _cmd_generate(args, config: AnalyticsConfig) -> Dict[str, Any]:
    seed = args.seed if args.seed is not None else config.simulation.seed
    counts = SampleCounts(
        fills=args.fills,
        cancels=args.cancels,
        rejects=args.rejects,
        latency_samples=args.latency_samples,
    )
    generator = SampleDataGenerator(seed, end=args.end, hours=args.hours)
    sample = generator.generate(counts)
    paths = write_events(args.out, sample.batch, sample.strategies, fmt=args.format)
    return {
        "out": str(args.out),
        "seed": seed,
        "end": generator.end.isoformat(),
        "files": [str(p) for p in paths],
        "counts": {
            "fills": len(sample.batch.fills),
            "cancels": len(sample.batch.cancels),
            "rejects": len(sample.batch.rejects),
            "latency_samples": len(sample.batch.latency_samples),
            "strategies": len(sample.strategies),
        },
    }


COMMANDS = {
    'metrics': _cmd_metrics,
    'timeseries': _cmd_timeseries,
    'anomalies': _cmd_anomalies,
    'simulate': _cmd_simulate,
    'compare': _cmd_compare,
}


# ============================================================================
# ENTRYPOINT
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
        log_cfg = config.logging
        setup_logging(
            log_dir=log_cfg.log_dir,
            log_level=log_cfg.log_level.value,
            console_level=log_cfg.console_level.value,
            json_logs=log_cfg.json_logs,
            max_bytes=log_cfg.max_bytes,
            backup_count=log_cfg.backup_count,
        )

        with LogContext() as correlation_id:
            if args.command == 'generate':
                logger.info(f"Running command: {args.command}", extra={"data": str(args.out)})
                result = _cmd_generate(args, config)
            else:
                loaded = load_events(args.data)
                store = InMemoryEventStore(loaded.batch, loaded.strategies)
                logger.info(f"Running command: {args.command}", extra={
                    "data": str(args.data),
                    "events": len(loaded.batch),
                    "skipped": loaded.skipped,
                })
                result = COMMANDS[args.command](args, config, store)

            logger.debug(f"Command finished: {args.command}", extra={"run_id": correlation_id})
    except (ExecDeskError, FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == '__main__':
    sys.exit(main())
