import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple
from fastapi import APIRouter, UploadFile, File, HTTPException, Query, Request, Response
from slowapi.errors import RateLimitExceeded
from studio.services.parser import (
    EXCEL_EXTENSIONS,
    get_sheet_names,
    parse_file,
    validate_file_extension,
    validate_row_limits,
)
from studio.services.processor import analyze_dataset
from studio.services.insights import generate_insights
from studio.services.exporter import EXPORT_MEDIA_TYPES, to_csv, to_excel_bytes, to_json
from studio.core.schemas import AnalysisResult, DatasetAnalysis, RowsPayload
from studio.core.errors import EmptyDatasetError, ErrorCodes, get_error_response
from studio.core.config import get_settings
from studio.core.sanitization import sanitize_filename, sanitize_for_logging
from studio.core.cache import get_rows_cache, generate_rows_cache_key
from studio.core.middleware import get_correlation_id

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(request: Request, status_code: int, code: str, detail: str = None) -> HTTPException:
    body = get_error_response(code, detail)
    body["correlation_id"] = get_correlation_id(request)
    return HTTPException(status_code=status_code, detail=body)


async def _read_upload(file: UploadFile, request: Request) -> bytes:
    """Read the upload in chunks, stopping as soon as the size limit is exceeded."""
    settings = get_settings()
    chunks = []
    size = 0
    await file.seek(0)
    while True:
        chunk = await file.read(1024 * 1024)
        if not chunk:
            break
        size += len(chunk)
        if size > settings.max_file_size_bytes:
            raise _error(
                request, 413, ErrorCodes.FILE_TOO_LARGE,
                f"Maximum size is {settings.max_file_size_mb}MB."
            )
        chunks.append(chunk)
    await file.seek(0)
    if size == 0:
        raise _error(request, 400, ErrorCodes.FILE_EMPTY)
    return b"".join(chunks)


async def _load_rows(file: UploadFile, request: Request, sheet_index: int) -> Tuple[List[Dict[str, Any]], bytes]:
    """Parse an upload into raw rows, reusing a cached parse of identical bytes."""
    contents = await _read_upload(file, request)
    safe_filename = sanitize_filename(file.filename) if file.filename else 'unknown'

    cache = get_rows_cache()
    cache_key = generate_rows_cache_key(contents, safe_filename, sheet_index)
    rows = cache.get(cache_key)
    if rows is not None:
        logger.info(f"Using cached rows for {sanitize_for_logging(safe_filename)}")
        return rows, contents

    rows = await parse_file(file, sheet_index=sheet_index)
    validate_row_limits(rows)
    cache.set(cache_key, rows)
    return rows, contents


def _analyze(rows: List[Dict[str, Any]], request: Request) -> DatasetAnalysis:
    try:
        return analyze_dataset(rows)
    except EmptyDatasetError:
        raise _error(request, 400, ErrorCodes.EMPTY_DATASET)


def _build_result(filename: str, analysis: DatasetAnalysis, sheet_names: List[str] = None) -> AnalysisResult:
    settings = get_settings()
    insights = generate_insights(analysis)
    truncated = len(analysis.cleaned_data) > settings.max_dataset_rows
    if truncated:
        logger.info(f"Cleaned data truncated from {analysis.rows} to {settings.max_dataset_rows} rows for response")
        analysis = analysis.model_copy(update={"cleaned_data": analysis.cleaned_data[:settings.max_dataset_rows]})
    return AnalysisResult(
        filename=filename,
        analysis=analysis,
        insights=insights,
        sheet_names=sheet_names or [],
        truncated=truncated,
    )


_limited_handlers: Dict[Tuple[int, str, int], Any] = {}


def _rate_limited(request: Request, handler):
    """Wrap a handler with the per-IP limit configured on the app, once per limiter."""
    limiter = request.app.state.limiter
    per_minute = request.app.state.settings.rate_limit_per_minute
    key = (id(limiter), handler.__name__, per_minute)
    if key not in _limited_handlers:
        _limited_handlers[key] = limiter.limit(f"{per_minute}/minute")(handler)
    return _limited_handlers[key]


async def _analyze_file(request: Request, file: UploadFile, sheet_index: int) -> AnalysisResult:
    file_ext = validate_file_extension(file.filename)
    rows, contents = await _load_rows(file, request, sheet_index)
    analysis = _analyze(rows, request)

    sheet_names = []
    if file_ext in EXCEL_EXTENSIONS:
        sheet_names = get_sheet_names(contents, file_ext)

    safe_filename = sanitize_filename(file.filename)
    logger.info(
        f"Analyzed {sanitize_for_logging(safe_filename)}: {analysis.rows} rows, quality {analysis.quality_score}/100"
    )
    return _build_result(safe_filename, analysis, sheet_names)


@router.get("/health")
async def health_check():
    return {"status": "ok"}


@router.post("/analyze", response_model=AnalysisResult)
async def analyze_upload(
    request: Request,
    file: UploadFile = File(...),
    sheet_index: int = Query(0, ge=0),
):
    """
    Upload a CSV, Excel, JSON or SQL file and return its profile, cleaned
    rows and insights.
    """
    try:
        return await _rate_limited(request, _analyze_file)(request, file, sheet_index)
    except (HTTPException, RateLimitExceeded):
        raise
    except Exception as e:
        safe_filename = sanitize_for_logging(sanitize_filename(file.filename or ''))
        logger.error(f"Unexpected error processing file {safe_filename}: {e}", exc_info=True)
        raise _error(request, 500, ErrorCodes.UNKNOWN_ERROR)


@router.post("/analyze/rows", response_model=AnalysisResult)
async def analyze_rows(request: Request, payload: RowsPayload):
    """Profile rows the client already pulled from a REST API."""
    validate_row_limits(payload.rows)
    analysis = _analyze(payload.rows, request)
    source = sanitize_for_logging(payload.source, max_length=100) or "api"
    logger.info(f"Analyzed {len(payload.rows)} rows from {source}")
    return _build_result(source, analysis)


@router.post("/sheets")
async def list_sheets(request: Request, file: UploadFile = File(...)):
    file_ext = validate_file_extension(file.filename)
    if file_ext not in EXCEL_EXTENSIONS:
        raise HTTPException(status_code=400, detail="Sheet names are only available for Excel files")
    contents = await _read_upload(file, request)
    try:
        return {"sheets": get_sheet_names(contents, file_ext)}
    except Exception as e:
        logger.error(f"Could not read workbook: {e}")
        raise _error(request, 400, ErrorCodes.PARSE_ERROR)


@router.post("/export")
async def export_cleaned(
    request: Request,
    file: UploadFile = File(...),
    format: str = Query("csv", pattern="^(csv|xlsx|json)$"),
    sheet_index: int = Query(0, ge=0),
):
    """Clean an upload and return the cleaned rows as a CSV, Excel or JSON download."""
    validate_file_extension(file.filename)
    rows, _ = await _load_rows(file, request, sheet_index)
    analysis = _analyze(rows, request)

    if format == "xlsx":
        content = to_excel_bytes(analysis.cleaned_data)
    elif format == "json":
        content = to_json(analysis.cleaned_data)
    else:
        content = to_csv(analysis.cleaned_data)

    stem = Path(sanitize_filename(file.filename)).stem
    return Response(
        content=content,
        media_type=EXPORT_MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="cleaned_{stem}_v1.{format}"'},
    )
