"""
Load execution events from a directory of CSV or JSON files.

LAYOUT:
    <dir>/fills.csv        or fills.json
    <dir>/cancels.csv      or cancels.json
    <dir>/rejects.csv      or rejects.json
    <dir>/latency.csv      or latency.json
    <dir>/strategies.csv   or strategies.json

Every file is optional. CSV files are read with pandas; JSON files hold a
list of objects. Column names match the record fields (snake_case).

Every row runs through the payload validators. Invalid rows are skipped
and logged at WARNING with the row number and the validation errors.
A file that cannot be parsed at all raises DataFileError.

write_events() produces the same layout, so written data loads back as-is.
"""

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from execdesk.analytics.aggregation import EventBatch
from execdesk.errors import DataFileError
from execdesk.events.types import Cancel, Fill, LatencySample, Reject, Strategy
from execdesk.events.validators import (
    ValidationResult,
    validate_cancel,
    validate_fill,
    validate_latency_sample,
    validate_reject,
)
from execdesk.logging import LogStream, get_logger

logger = get_logger(LogStream.DATA)


@dataclass(frozen=True)
class _FileSpec:
    stem: str
    kind: str
    numeric: Tuple[str, ...]
    validate: Optional[Callable[[Dict[str, Any]], ValidationResult]]
    build: Callable[[Dict[str, Any]], Any]


_FILES = (
    _FileSpec("fills", "fill", ("quantity", "price", "latency_ms"), validate_fill, Fill.from_dict),
    _FileSpec("cancels", "cancel", ("latency_ms",), validate_cancel, Cancel.from_dict),
    _FileSpec("rejects", "reject", (), validate_reject, Reject.from_dict),
    _FileSpec(
        "latency", "latency_sample",
        ("latency_ms", "percentile_50", "percentile_95", "percentile_99"),
        validate_latency_sample, LatencySample.from_dict,
    ),
    _FileSpec("strategies", "strategy", (), None, Strategy.from_dict),
)


@dataclass
class LoadedEvents:
    """Result of load_events: the event snapshot, known strategies and skip counts."""
    batch: EventBatch = field(default_factory=EventBatch)
    strategies: List[Strategy] = field(default_factory=list)
    skipped: Dict[str, int] = field(default_factory=dict)


# ============================================================================
# FILE READING
# ============================================================================

def _find_file(directory: Path, stem: str) -> Optional[Path]:
    for suffix in (".csv", ".json"):
        path = directory / f"{stem}{suffix}"
        if path.exists():
            return path
    return None


def _clean(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str) and value == "":
        return None
    return value


def _to_number(raw: str) -> Any:
    """Numeric text becomes a float; anything else is left for validation to flag."""
    if raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        return raw


def _read_csv(path: Path, numeric: Sequence[str]) -> List[Dict[str, Any]]:
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise DataFileError(f"Cannot parse {path}: {e}") from e
    except pd.errors.EmptyDataError:
        return []

    for column in numeric:
        if column in df.columns:
            df[column] = df[column].map(_to_number)

    return [{k: _clean(v) for k, v in row.items()} for row in df.to_dict(orient="records")]


def _read_json(path: Path) -> List[Dict[str, Any]]:
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise DataFileError(f"Cannot parse {path}: {e}") from e

    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        raise DataFileError(f"{path} must contain a JSON list of objects")
    return data


def read_records(path: Path, numeric: Sequence[str] = ()) -> List[Dict[str, Any]]:
    """Raw row dicts from a CSV or JSON file."""
    path = Path(path)
    if path.suffix == ".csv":
        return _read_csv(path, numeric)
    if path.suffix == ".json":
        return _read_json(path)
    raise DataFileError(f"Unsupported event file type: {path.suffix}")


# ============================================================================
# LOADING
# ============================================================================

def _build_rows(source: _FileSpec, path: Path, rows: List[Dict[str, Any]]) -> Tuple[List[Any], int]:
    records = []
    skipped = 0

    for index, row in enumerate(rows, start=1):
        if source.validate is not None:
            result = source.validate(row)
            if not result.valid:
                skipped += 1
                logger.warning(f"Skipping invalid {source.kind} row {index} in {path.name}", extra={
                    "file": str(path),
                    "row": index,
                    "errors": list(result.errors),
                })
                continue
        try:
            records.append(source.build(row))
        except (KeyError, ValueError, TypeError) as e:
            skipped += 1
            logger.warning(f"Skipping malformed {source.kind} row {index} in {path.name}: {e}", extra={
                "file": str(path),
                "row": index,
            })

    return records, skipped


def load_events(directory) -> LoadedEvents:
    """
    Load every event file found in a directory.

    Args:
        directory: Folder holding fills/cancels/rejects/latency/strategies files

    Returns:
        LoadedEvents with the batch, strategies and per-kind skip counts

    Raises:
        FileNotFoundError: If the directory does not exist
        DataFileError: If a present file cannot be parsed
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Event directory not found: {directory}")

    loaded = LoadedEvents()

    for source in _FILES:
        path = _find_file(directory, source.stem)
        if path is None:
            logger.debug(f"No {source.stem} file in {directory}")
            continue

        records, skipped = _build_rows(source, path, read_records(path, source.numeric))
        loaded.skipped[source.kind] = skipped

        if source.kind == "strategy":
            loaded.strategies.extend(records)
        else:
            for record in records:
                loaded.batch.add(record)

        logger.info(f"Loaded {len(records)} {source.stem} from {path.name}", extra={
            "file": str(path),
            "loaded": len(records),
            "skipped": skipped,
        })

    return loaded


# ============================================================================
# WRITING
# ============================================================================

WRITE_FORMATS = ("csv", "json")


def write_events(directory, batch: EventBatch, strategies: Iterable[Strategy] = (), fmt: str = "csv") -> List[Path]:
    """
    Write a batch (and strategies) in the load_events layout.

    Kinds with no records are not written.

    Args:
        directory: Output folder (created if missing)
        batch: Events to write
        strategies: Strategy records for strategies.<fmt>
        fmt: "csv" or "json"

    Returns:
        Paths written, in layout order
    """
    if fmt not in WRITE_FORMATS:
        raise ValueError(f"Unsupported event file format: {fmt!r} (expected one of {WRITE_FORMATS})")

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    contents = {
        "fills": batch.fills,
        "cancels": batch.cancels,
        "rejects": batch.rejects,
        "latency": batch.latency_samples,
        "strategies": list(strategies),
    }

    written = []
    for source in _FILES:
        records = contents[source.stem]
        if not records:
            continue

        path = directory / f"{source.stem}.{fmt}"
        shadow = directory / f"{source.stem}.csv"
        if fmt == "json" and shadow.exists():
            logger.warning(f"{shadow.name} takes precedence over {path.name} when loading", extra={
                "file": str(path),
            })

        rows = [record.to_dict() for record in records]
        if fmt == "csv":
            pd.DataFrame(rows).to_csv(path, index=False)
        else:
            with open(path, "w") as f:
                json.dump(rows, f, indent=2)
        written.append(path)

    logger.info(f"Wrote {len(batch)} events to {directory}", extra={
        "file": str(directory),
        "total": len(batch),
    })
    return written
