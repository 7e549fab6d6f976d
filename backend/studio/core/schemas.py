from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Any, Dict, Literal

ColumnType = Literal['numeric', 'categorical', 'datetime', 'text', 'id']


class NumericStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: float
    max: float
    mean: float
    median: float  # upper-middle element for even counts
    q1: float
    q3: float
    iqr: float
    outliers: int


class TopValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    count: int


class DateRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: str  # YYYY-MM-DD
    max: str


class ColumnInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: ColumnType
    missing_count: int  # before imputation
    missing_percent: float
    unique_count: int
    stats: Optional[NumericStats] = None
    top_values: Optional[List[TopValue]] = None
    date_range: Optional[DateRange] = None


class DatasetAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    rows: int
    columns: int
    column_info: List[ColumnInfo]
    cleaned_data: List[Dict[str, Any]]
    raw_row_count: int
    duplicates_removed: int
    missing_percent: float
    quality_score: int = Field(ge=0, le=100)
    date_range: Optional[DateRange] = None
    parsing_errors: int


class RowsPayload(BaseModel):
    """Rows already fetched from a REST API by the client."""
    source: str = "api"
    rows: List[Dict[str, Any]]


class AnalysisResult(BaseModel):
    filename: str
    analysis: DatasetAnalysis
    insights: List[str] = []
    sheet_names: List[str] = []
    truncated: bool = False  # cleaned_data capped at max_dataset_rows
