"""
Format-specific readers.

Every reader turns uploaded bytes into a list of raw rows (column name ->
scalar). Readers never profile or clean; that is the processor's job.
"""
import re
import json
import logging
import pandas as pd
from datetime import date, datetime, time
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from fastapi import UploadFile, HTTPException
from openpyxl import load_workbook
from studio.core.config import get_settings
from studio.core.performance import track_performance
from studio.core.sanitization import sanitize_filename, validate_column_name

logger = logging.getLogger(__name__)

RawRow = Dict[str, Any]

ALLOWED_EXTENSIONS = {'.csv', '.xlsx', '.xls', '.json', '.sql'}
EXCEL_EXTENSIONS = {'.xlsx', '.xls'}

MIME_TYPE_MAP = {
    'text/csv': '.csv',
    'application/vnd.ms-excel': '.xls',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet': '.xlsx',
    'application/json': '.json',
    'application/sql': '.sql',
}

DANGEROUS_MIME_TYPES = {
    'application/x-executable',
    'application/x-sharedlib',
    'application/x-msdownload',
    'text/html',
    'application/javascript',
}


def validate_file_extension(filename: str) -> str:
    """
    Return the lower-cased extension of an accepted upload.

    Raises HTTPException(400) for a missing name, a missing extension or an
    unsupported format.
    """
    if not filename:
        raise HTTPException(status_code=400, detail="Filename is required")

    file_ext = Path(filename).suffix.lower()
    if not file_ext:
        raise HTTPException(
            status_code=400,
            detail="File must have an extension. Supported formats: CSV, XLSX, XLS, JSON, SQL"
        )
    if file_ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file format: {file_ext}. Allowed formats: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )
    return file_ext


def validate_mime_type(content_type: Optional[str], file_ext: str) -> bool:
    """Reject executable/script MIME types; a mere mismatch is only logged."""
    if not content_type:
        return True

    content_type = content_type.lower()
    if content_type in DANGEROUS_MIME_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"File type '{content_type}' is not allowed."
        )
    expected_ext = MIME_TYPE_MAP.get(content_type)
    if expected_ext and expected_ext != file_ext:
        logger.warning(f"MIME type {content_type} doesn't match extension {file_ext}")
    return True


# --- CSV -------------------------------------------------------------------

def read_csv_rows(contents: bytes) -> List[RawRow]:
    """
    Header row gives the column names; every cell stays a string and
    missing cells are empty strings.
    """
    options = dict(dtype=str, keep_default_na=False, skip_blank_lines=True)
    try:
        df = pd.read_csv(BytesIO(contents), **options)
    except UnicodeDecodeError:
        df = pd.read_csv(BytesIO(contents), encoding='latin1', **options)
    except pd.errors.EmptyDataError:
        return []
    return df.to_dict(orient='records')


# --- Excel -----------------------------------------------------------------

def _excel_cell(value: Any) -> Any:
    if value is None:
        return ''
    if isinstance(value, datetime):
        return value.isoformat() if value.time() != time(0) else value.date().isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    return value


def _rows_from_grid(grid: List[Tuple[Any, ...]]) -> List[RawRow]:
    if not grid:
        return []
    header = [
        str(name).strip() if name is not None and str(name).strip() else f"column_{i + 1}"
        for i, name in enumerate(grid[0])
    ]
    rows = []
    for values in grid[1:]:
        if all(v is None or (isinstance(v, str) and not v.strip()) for v in values):
            continue
        padded = list(values) + [None] * (len(header) - len(values))
        rows.append({name: _excel_cell(value) for name, value in zip(header, padded)})
    return rows


def get_sheet_names(contents: bytes, file_ext: str) -> List[str]:
    if file_ext == '.xlsx':
        wb = load_workbook(BytesIO(contents), read_only=True)
        try:
            return list(wb.sheetnames)
        finally:
            wb.close()
    return list(pd.ExcelFile(BytesIO(contents)).sheet_names)


def read_excel_rows(contents: bytes, file_ext: str, sheet_index: int = 0) -> List[RawRow]:
    """
    Read one sheet; an out-of-range index falls back to the first sheet.
    Empty cells become empty strings, date cells ISO strings.
    """
    if file_ext == '.xlsx':
        wb = load_workbook(BytesIO(contents), read_only=True, data_only=True)
        try:
            names = wb.sheetnames
            sheet_name = names[sheet_index] if 0 <= sheet_index < len(names) else names[0]
            grid = list(wb[sheet_name].iter_rows(values_only=True))
        finally:
            wb.close()
    else:
        excel_file = pd.ExcelFile(BytesIO(contents))
        names = excel_file.sheet_names
        sheet_name = names[sheet_index] if 0 <= sheet_index < len(names) else names[0]
        df = pd.read_excel(excel_file, sheet_name=sheet_name, header=None, dtype=object)
        grid = [tuple(None if pd.isna(v) else v for v in row) for row in df.itertuples(index=False)]

    logger.debug(f"Reading sheet '{sheet_name}' ({len(grid)} rows including header)")
    return _rows_from_grid(grid)


# --- JSON ------------------------------------------------------------------

def flatten_record(record: Dict[str, Any], prefix: str = '') -> RawRow:
    """
    Flatten nested objects into dot-notation keys.

    Arrays of objects are kept as JSON text in a single cell; arrays of
    scalars are joined with ", ".
    """
    flat: RawRow = {}
    for key, value in record.items():
        name = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_record(value, name))
        elif isinstance(value, list):
            if any(isinstance(item, (dict, list)) for item in value):
                flat[name] = json.dumps(value)
            else:
                flat[name] = ', '.join('' if item is None else str(item) for item in value)
        else:
            flat[name] = value
    return flat


def read_json_rows(contents: bytes) -> List[RawRow]:
    """
    Accept an array of records, or an object whose first array-valued
    property holds the records.
    """
    payload = json.loads(contents.decode('utf-8-sig'))
    if isinstance(payload, dict):
        records = next((value for value in payload.values() if isinstance(value, list)), None)
        if records is None:
            # a single object is a one-row dataset
            records = [payload]
    elif isinstance(payload, list):
        records = payload
    else:
        raise ValueError("JSON must be an array of records or an object containing one")

    return [flatten_record(item) if isinstance(item, dict) else {'value': item} for item in records]


# --- SQL dump --------------------------------------------------------------

CREATE_TABLE_RE = re.compile(
    r'^\s*CREATE\s+(?:TEMPORARY\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?([^\s(]+)\s*\((.*)\)',
    re.IGNORECASE | re.DOTALL,
)
INSERT_RE = re.compile(
    r'^\s*INSERT\s+(?:IGNORE\s+)?INTO\s+([^\s(]+)\s*(?:\(([^)]*)\))?\s*VALUES\s*(.*)$',
    re.IGNORECASE | re.DOTALL,
)
SQL_NUMBER_RE = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')
CONSTRAINT_KEYWORDS = {'PRIMARY', 'CONSTRAINT', 'KEY', 'UNIQUE', 'FOREIGN', 'INDEX', 'CHECK', 'FULLTEXT'}
QUOTES = "'\"`"


def _unquote_identifier(name: str) -> str:
    name = name.strip()
    if len(name) >= 2 and (name[0] in QUOTES and name[-1] == name[0] or name[0] == '[' and name[-1] == ']'):
        return name[1:-1]
    return name


def split_sql_statements(text: str) -> List[str]:
    """Split on ';' outside quoted strings, dropping -- and /* */ comments."""
    statements = []
    current = []
    quote = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            current.append(ch)
            if ch == quote:
                if i + 1 < len(text) and text[i + 1] == quote:
                    current.append(text[i + 1])
                    i += 1
                else:
                    quote = None
        elif ch in QUOTES:
            quote = ch
            current.append(ch)
        elif text.startswith('--', i):
            end = text.find('\n', i)
            i = len(text) if end == -1 else end
            continue
        elif text.startswith('/*', i):
            end = text.find('*/', i + 2)
            i = len(text) if end == -1 else end + 2
            continue
        elif ch == ';':
            statements.append(''.join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1
    tail = ''.join(current).strip()
    if tail:
        statements.append(tail)
    return [s for s in statements if s]


def _split_top_level(text: str) -> List[str]:
    """Split on commas that are outside quotes and parentheses."""
    parts = []
    current = []
    depth = 0
    quote = None
    for ch in text:
        if quote:
            if ch == quote:
                quote = None
        elif ch in QUOTES:
            quote = ch
        elif ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        elif ch == ',' and depth == 0:
            parts.append(''.join(current).strip())
            current = []
            continue
        current.append(ch)
    if ''.join(current).strip():
        parts.append(''.join(current).strip())
    return parts


def parse_create_table_columns(body: str) -> List[str]:
    columns = []
    for definition in _split_top_level(body):
        first = definition.split(None, 1)[0] if definition.split() else ''
        if not first or first.upper() in CONSTRAINT_KEYWORDS:
            continue
        columns.append(_unquote_identifier(first))
    return columns


def parse_sql_literal(token: str) -> Any:
    """NULL/TRUE/FALSE/number literals; anything else is kept as text."""
    token = token.strip()
    upper = token.upper()
    if upper == 'NULL':
        return None
    if upper == 'TRUE':
        return True
    if upper == 'FALSE':
        return False
    if SQL_NUMBER_RE.match(token):
        return int(token) if re.fullmatch(r'[+-]?\d+', token) else float(token)
    return token


def _read_quoted(text: str, start: int) -> Tuple[str, int]:
    """Read a quoted string starting at text[start]; returns (value, index after the closing quote)."""
    quote = text[start]
    chars = []
    i = start + 1
    while i < len(text):
        if text[i] == quote:
            if text.startswith(quote * 2, i):
                chars.append(quote)
                i += 2
                continue
            return ''.join(chars), i + 1
        chars.append(text[i])
        i += 1
    return ''.join(chars), i


def parse_values_tuples(text: str) -> List[List[Any]]:
    """
    Parse "(1, 'a'), (2, 'it''s')" into value lists.

    Quoted strings use single or double quotes, a doubled quote is an
    escaped quote, and quoted values are always strings.
    """
    tuples: List[List[Any]] = []
    values: Optional[List[Any]] = None  # None while between tuples
    token: List[str] = []
    quoted: Optional[str] = None
    i = 0
    while i < len(text):
        ch = text[i]
        if values is None:
            if ch == '(':
                values, token, quoted = [], [], None
            i += 1
            continue

        if ch in ("'", '"') and quoted is None and not ''.join(token).strip():
            quoted, i = _read_quoted(text, i)
            continue

        if ch in (',', ')'):
            if quoted is not None:
                values.append(quoted)
            elif ''.join(token).strip():
                values.append(parse_sql_literal(''.join(token)))
            token, quoted = [], None
            if ch == ')':
                tuples.append(values)
                values = None
        elif quoted is None:
            token.append(ch)
        i += 1
    return tuples


def read_sql_rows(contents: bytes) -> List[RawRow]:
    """
    Rows from the INSERT statements of the first table that has any.

    Column names come from the INSERT column list, else from that table's
    CREATE TABLE statement, else column_1..column_n.
    """
    text = contents.decode('utf-8-sig', errors='replace')
    table_columns: Dict[str, List[str]] = {}
    target_table = None
    rows: List[RawRow] = []
    skipped = 0

    for statement in split_sql_statements(text):
        create = CREATE_TABLE_RE.match(statement)
        if create:
            table_columns[_unquote_identifier(create.group(1)).lower()] = parse_create_table_columns(create.group(2))
            continue

        insert = INSERT_RE.match(statement)
        if not insert:
            continue
        table = _unquote_identifier(insert.group(1)).lower()
        if target_table is None:
            target_table = table
        elif table != target_table:
            skipped += 1
            continue

        if insert.group(2):
            columns = [_unquote_identifier(c) for c in insert.group(2).split(',')]
        else:
            columns = table_columns.get(table, [])
        for values in parse_values_tuples(insert.group(3)):
            names = columns if len(columns) >= len(values) else [f"column_{i + 1}" for i in range(len(values))]
            rows.append(dict(zip(names, values)))

    if skipped:
        logger.info(f"SQL dump: kept rows of table '{target_table}', skipped {skipped} INSERT statements for other tables")
    return rows


# --- Upload entry point ----------------------------------------------------

def read_rows(contents: bytes, file_ext: str, sheet_index: int = 0) -> List[RawRow]:
    if file_ext == '.csv':
        return read_csv_rows(contents)
    if file_ext in EXCEL_EXTENSIONS:
        return read_excel_rows(contents, file_ext, sheet_index)
    if file_ext == '.json':
        return read_json_rows(contents)
    if file_ext == '.sql':
        return read_sql_rows(contents)
    raise HTTPException(status_code=400, detail="Unsupported file format")


@track_performance("parse_file")
async def parse_file(file: UploadFile, sheet_index: int = 0) -> List[RawRow]:
    """
    Validate an upload and read it into raw rows.

    Raises HTTPException(400) for unsupported, empty or unreadable files.
    An upload that parses to zero rows is returned as an empty list; the
    caller decides how to report it.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="Filename is required")

    file_ext = validate_file_extension(file.filename)
    validate_mime_type(file.content_type, file_ext)

    contents = await file.read()
    if len(contents) == 0:
        raise HTTPException(status_code=400, detail="File is empty")

    safe_filename = sanitize_filename(file.filename)
    try:
        rows = read_rows(contents, file_ext, sheet_index)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error parsing {file_ext} file {safe_filename}: {e}", exc_info=True)
        raise HTTPException(
            status_code=400,
            detail=f"Unable to parse {file_ext.lstrip('.').upper()} file. Please check the file format and try again."
        )

    logger.info(f"Successfully parsed file: {safe_filename}, rows: {len(rows)}")
    return rows


def validate_row_limits(rows: List[RawRow]) -> None:
    """
    Guard against oversized datasets and unsafe column names.

    Raises:
        HTTPException(400) when a limit from settings is exceeded
    """
    settings = get_settings()
    if len(rows) > settings.max_file_rows:
        raise HTTPException(
            status_code=400,
            detail=f"Dataset contains too many rows ({len(rows):,}). Maximum allowed: {settings.max_file_rows:,} rows."
        )
    if not rows:
        return

    columns = list(rows[0].keys())
    if len(columns) > settings.max_file_columns:
        raise HTTPException(
            status_code=400,
            detail=f"Dataset contains too many columns ({len(columns)}). Maximum allowed: {settings.max_file_columns} columns."
        )
    for col in columns:
        if not validate_column_name(str(col)):
            raise HTTPException(
                status_code=400,
                detail=f"Invalid column name: '{col}'."
            )
    for row in rows:
        for col, value in row.items():
            if isinstance(value, str) and len(value.encode('utf-8')) > settings.max_cell_size_bytes:
                raise HTTPException(
                    status_code=400,
                    detail=f"Column '{col}' contains a value larger than {settings.max_cell_size_bytes} bytes."
                )
