"""
Natural language insights generated from a DatasetAnalysis.
"""
import logging
from typing import List, Optional
from studio.core.schemas import ColumnInfo, DatasetAnalysis

logger = logging.getLogger(__name__)

HIGH_MISSING_PERCENT = 20


def _format_number(value: float) -> str:
    """Thousands separators, at most three decimals."""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip('0').rstrip('.')


def quality_sentence(score: int) -> str:
    if score >= 90:
        return f"Excellent data quality score of {score}/100."
    if score >= 70:
        return f"Good data quality score of {score}/100."
    return f"Data quality score is {score}/100, consider reviewing data issues."


def _first(columns: List[ColumnInfo], col_type: str, attr: str) -> Optional[ColumnInfo]:
    return next((c for c in columns if c.type == col_type and getattr(c, attr)), None)


def generate_insights(analysis: DatasetAnalysis) -> List[str]:
    """
    Short sentences describing size, cleaning results, quality and the
    most notable column facts, in a fixed order.
    """
    insights = [
        f"Dataset contains {_format_number(analysis.rows)} rows across {analysis.columns} columns."
    ]

    if analysis.duplicates_removed > 0:
        insights.append(f"{analysis.duplicates_removed} duplicate rows were detected and removed.")

    insights.append(quality_sentence(analysis.quality_score))

    categorical = _first(analysis.column_info, 'categorical', 'top_values')
    if categorical:
        top = categorical.top_values[0]
        insights.append(
            f'Top value in "{categorical.name}" is "{top.value}" with {_format_number(top.count)} occurrences.'
        )

    high_missing = [c.name for c in analysis.column_info if c.missing_percent > HIGH_MISSING_PERCENT]
    if high_missing:
        insights.append(
            f"{len(high_missing)} column(s) have >{HIGH_MISSING_PERCENT}% missing values: {', '.join(high_missing)}."
        )

    numeric = [c for c in analysis.column_info if c.type == 'numeric' and c.stats]
    if numeric:
        stats = numeric[0].stats
        insights.append(
            f'"{numeric[0].name}" ranges from {_format_number(stats.min)} to {_format_number(stats.max)} '
            f"(avg: {stats.mean:.2f})."
        )

    outlier_columns = [c for c in numeric if c.stats.outliers > 0]
    if outlier_columns:
        total = sum(c.stats.outliers for c in outlier_columns)
        insights.append(
            f"{total} potential outliers detected across {len(outlier_columns)} numeric column(s)."
        )

    if analysis.date_range:
        insights.append(f"Date range spans from {analysis.date_range.min} to {analysis.date_range.max}.")

    logger.debug(f"Generated {len(insights)} insights")
    return insights
