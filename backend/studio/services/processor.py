"""
Dataset profiling and cleaning.

analyze_dataset() runs an ordered pipeline of pure stages over an immutable
PipelineState. Each stage takes the state produced by the previous one and
returns a new state; rows are never modified in place.

    trim_rows -> remove_duplicates -> infer_column_types
              -> coerce_numeric_columns -> profile_columns

The order matters: duplicates are detected on trimmed values, types are
inferred on deduplicated rows, and statistics/imputation run on coerced
numbers. Missing counts are taken before imputation.
"""
import json
import math
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple
from studio.core.config import Settings, get_settings
from studio.core.errors import EmptyDatasetError
from studio.core.performance import track_performance
from studio.core.schemas import ColumnInfo, DatasetAnalysis, DateRange, NumericStats, TopValue
from studio.services.type_detection import (
    detect_column_type,
    display_string,
    is_missing,
    parse_date,
    parse_number,
)

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

# Quality score weights; missing_percent is already a percentage
MISSING_WEIGHT = 0.4
DUPLICATE_WEIGHT = 0.3
PARSE_ERROR_WEIGHT = 0.3


@dataclass(frozen=True)
class PipelineState:
    columns: Tuple[str, ...]
    rows: List[Row]
    raw_row_count: int
    duplicates_removed: int = 0
    column_types: Mapping[str, str] = field(default_factory=dict)
    parsing_errors: int = 0
    column_info: Tuple[ColumnInfo, ...] = ()
    missing_cells: int = 0
    date_range: Optional[DateRange] = None


class ColumnResult(NamedTuple):
    info: ColumnInfo
    fill: Optional[Callable[[Any], Any]]  # cell -> cleaned cell, None when nothing is imputed


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def discover_columns(raw_rows: Sequence[Mapping[str, Any]]) -> Tuple[str, ...]:
    """Columns are the keys of the first row, in order."""
    return tuple(raw_rows[0].keys())


def _trim_value(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def trim_rows(state: PipelineState, settings: Settings) -> PipelineState:
    """Project rows onto the discovered columns and strip surrounding whitespace."""
    rows = [{col: _trim_value(row.get(col)) for col in state.columns} for row in state.rows]
    return replace(state, rows=rows)


def _key_value(value: Any) -> Any:
    # 1 and 1.0 are the same cell
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def row_key(row: Row, columns: Sequence[str]) -> str:
    """Serialized form of a row; equal keys mean exact duplicates."""
    return json.dumps([_key_value(row.get(col)) for col in columns], default=str)


def remove_duplicates(state: PipelineState, settings: Settings) -> PipelineState:
    """Drop exact duplicate rows, keeping the first occurrence."""
    seen = set()
    deduped = []
    for row in state.rows:
        key = row_key(row, state.columns)
        if key not in seen:
            seen.add(key)
            deduped.append(row)
    removed = len(state.rows) - len(deduped)
    if removed:
        logger.debug(f"Removed {removed} duplicate rows")
    return replace(state, rows=deduped, duplicates_removed=removed)


def infer_column_types(state: PipelineState, settings: Settings) -> PipelineState:
    column_types = {
        col: detect_column_type([row[col] for row in state.rows], col, settings)
        for col in state.columns
    }
    logger.debug(f"Inferred column types: {column_types}")
    return replace(state, column_types=column_types)


def coerce_numeric_cell(value: Any) -> Tuple[Any, bool]:
    """
    Convert one cell of a numeric column.

    Returns (converted value, parse failed). Missing cells pass through
    without counting as a failure; unparseable cells keep their raw value.
    """
    if is_missing(value):
        return value, False
    number = parse_number(value)
    if number is None:
        return value, True
    return number, False


def coerce_numeric_columns(state: PipelineState, settings: Settings) -> PipelineState:
    numeric_columns = [col for col in state.columns if state.column_types.get(col) == 'numeric']
    errors = 0
    rows = []
    for row in state.rows:
        converted = dict(row)
        for col in numeric_columns:
            converted[col], failed = coerce_numeric_cell(row[col])
            errors += failed
        rows.append(converted)
    if errors:
        logger.info(f"{errors} numeric cells could not be parsed")
    return replace(state, rows=rows, parsing_errors=state.parsing_errors + errors)


def numeric_stats(sorted_numbers: Sequence[float]) -> NumericStats:
    """
    Quartiles and median by index into the sorted values, no interpolation.

    q1 = v[floor(n * 0.25)], q3 = v[floor(n * 0.75)], median = v[floor(n / 2)].
    Outliers fall outside [q1 - 1.5 * iqr, q3 + 1.5 * iqr].
    """
    n = len(sorted_numbers)
    q1 = sorted_numbers[math.floor(n * 0.25)]
    q3 = sorted_numbers[math.floor(n * 0.75)]
    iqr = q3 - q1
    lower, upper = q1 - 1.5 * iqr, q3 + 1.5 * iqr
    return NumericStats(
        min=sorted_numbers[0],
        max=sorted_numbers[-1],
        mean=sum(sorted_numbers) / n,
        median=sorted_numbers[n // 2],
        q1=q1,
        q3=q3,
        iqr=iqr,
        outliers=sum(1 for x in sorted_numbers if x < lower or x > upper),
    )


def top_values(values: Sequence[Any], limit: int) -> List[TopValue]:
    """Most frequent values; ties keep first-seen order."""
    counts: Dict[str, int] = {}
    for value in values:
        key = display_string(value)
        counts[key] = counts.get(key, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [TopValue(value=value, count=count) for value, count in ranked[:limit]]


def profile_column(name: str, col_type: str, values: Sequence[Any], settings: Settings) -> ColumnResult:
    """Statistics for one column plus the rule used to clean its cells."""
    non_empty = [v for v in values if not is_missing(v)]
    missing_count = len(values) - len(non_empty)
    info = {
        "name": name,
        "type": col_type,
        "missing_count": missing_count,
        "missing_percent": (missing_count / len(values)) * 100 if values else 0,
        "unique_count": len({display_string(v) for v in non_empty}),
    }
    fill = None

    if col_type == 'numeric':
        numbers = sorted(n for n in (parse_number(v) for v in non_empty) if n is not None)
        if numbers:
            info["stats"] = numeric_stats(numbers)
            median = numbers[len(numbers) // 2]
            fill = lambda v: median if is_missing(v) or parse_number(v) is None else v

    elif col_type == 'categorical':
        info["top_values"] = top_values(non_empty, settings.top_values_limit)
        if info["top_values"]:
            mode = info["top_values"][0].value
            fill = lambda v: mode if is_missing(v) else v

    elif col_type == 'datetime':
        dates = sorted(d for d in (parse_date(v) for v in non_empty) if d is not None)
        if dates:
            info["date_range"] = DateRange(
                min=dates[0].date().isoformat(),
                max=dates[-1].date().isoformat(),
            )

    elif col_type == 'text':
        fill = lambda v: '' if v is None else v

    return ColumnResult(info=ColumnInfo(**info), fill=fill)


def profile_columns(state: PipelineState, settings: Settings) -> PipelineState:
    """Profile every column in order, then apply all imputations in one pass."""
    results = [
        profile_column(col, state.column_types[col], [row[col] for row in state.rows], settings)
        for col in state.columns
    ]

    date_range = None
    for result in results:
        # first datetime column with a range wins
        if date_range is None and result.info.date_range is not None:
            date_range = result.info.date_range

    fills = {result.info.name: result.fill for result in results if result.fill is not None}
    rows = [
        {col: fills[col](value) if col in fills else value for col, value in row.items()}
        for row in state.rows
    ]

    return replace(
        state,
        rows=rows,
        column_info=tuple(result.info for result in results),
        missing_cells=sum(result.info.missing_count for result in results),
        date_range=date_range,
    )


PIPELINE: Tuple[Callable[[PipelineState, Settings], PipelineState], ...] = (
    trim_rows,
    remove_duplicates,
    infer_column_types,
    coerce_numeric_columns,
    profile_columns,
)


def compute_quality_score(missing_percent: float, duplicates_ratio: float, parsing_error_ratio: float) -> int:
    """
    Composite 0-100 score.

    Args:
        missing_percent: missing cells as a percentage (0-100)
        duplicates_ratio: duplicates removed / raw rows (0-1)
        parsing_error_ratio: failed numeric parses / total cells (0-1)
    """
    penalty = (
        missing_percent * MISSING_WEIGHT
        + duplicates_ratio * 100 * DUPLICATE_WEIGHT
        + parsing_error_ratio * 100 * PARSE_ERROR_WEIGHT
    )
    return int(max(0, min(100, round_half_up(100 - penalty))))


def build_analysis(state: PipelineState) -> DatasetAnalysis:
    total_cells = len(state.rows) * len(state.columns)
    missing_percent = (state.missing_cells / total_cells) * 100 if total_cells else 0
    duplicates_ratio = state.duplicates_removed / state.raw_row_count if state.raw_row_count else 0
    parsing_error_ratio = state.parsing_errors / total_cells if total_cells else 0

    return DatasetAnalysis(
        rows=len(state.rows),
        columns=len(state.columns),
        column_info=list(state.column_info),
        cleaned_data=state.rows,
        raw_row_count=state.raw_row_count,
        duplicates_removed=state.duplicates_removed,
        missing_percent=round_half_up(missing_percent, 2),
        quality_score=compute_quality_score(missing_percent, duplicates_ratio, parsing_error_ratio),
        date_range=state.date_range,
        parsing_errors=state.parsing_errors,
    )


@track_performance("analyze_dataset")
def analyze_dataset(raw_rows: Sequence[Mapping[str, Any]], settings: Optional[Settings] = None) -> DatasetAnalysis:
    """
    Profile and clean a list of raw rows.

    Raises:
        EmptyDatasetError: when raw_rows is empty
    """
    if not raw_rows:
        raise EmptyDatasetError()
    settings = settings or get_settings()

    state = PipelineState(
        columns=discover_columns(raw_rows),
        rows=list(raw_rows),
        raw_row_count=len(raw_rows),
    )
    for stage in PIPELINE:
        state = stage(state, settings)

    analysis = build_analysis(state)
    logger.info(
        f"Analyzed dataset: {analysis.rows} rows, {analysis.columns} columns, "
        f"{analysis.duplicates_removed} duplicates removed, quality {analysis.quality_score}/100"
    )
    return analysis
