import json
import logging
from collections import Counter
from io import BytesIO, StringIO
from typing import Any, Dict, List, Optional, Union

import pandas as pd
from openpyxl import load_workbook

from insight_engine.core.config import Settings, get_settings
from insight_engine.core.errors import ErrorCodes, ParseError
from insight_engine.core.performance import track_performance
from insight_engine.core.sanitization import clean_column_name, dedupe_column_names, validate_column_name
from insight_engine.core.schemas import ColumnProfile, ParsedTable
from insight_engine.core.table import Table, Value
from insight_engine.core.telemetry import Telemetry, resolve

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = {'csv', 'json', 'geojson', 'xlsx'}


def _decode(raw: Union[str, bytes]) -> str:
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode('utf-8-sig')
    except UnicodeDecodeError:
        logger.info("Content is not valid UTF-8, decoding as latin1")
        return raw.decode('latin1')


def _clean_headers(headers) -> List[str]:
    """Cleaned, unique header names; headers that clean to the same text are suffixed."""
    return dedupe_column_names([clean_column_name(h) for h in headers])


def _clean_keys(record: Dict[str, Any]) -> Dict[str, Any]:
    return dict(zip(_clean_headers(record.keys()), record.values()))


def _read_csv(text: str) -> Table:
    try:
        df = pd.read_csv(
            StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
        )
    except pd.errors.EmptyDataError:
        return Table([])
    except (pd.errors.ParserError, ValueError) as e:
        raise ParseError(f"Malformed CSV: {e}") from e

    df.columns = _clean_headers(df.columns)
    if df.empty:
        return Table(df.columns)

    df = df.fillna('')
    # Drop rows where every cell is blank
    df = df[~(df.apply(lambda col: col.str.strip()) == '').all(axis=1)]
    return Table.from_frame(df)


def _read_json(text: str) -> Table:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Malformed JSON: {e}") from e

    records = parsed if isinstance(parsed, list) else [parsed]
    if not all(isinstance(record, dict) for record in records):
        raise ParseError("JSON content must be an object or an array of objects")
    return Table.from_records(_clean_keys(record) for record in records)


def _read_geojson(text: str) -> Table:
    """Feature properties become rows; Point geometries add latitude/longitude."""
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Malformed GeoJSON: {e}") from e

    if isinstance(parsed, dict) and parsed.get('type') == 'FeatureCollection':
        features = parsed.get('features') or []
    elif isinstance(parsed, dict) and parsed.get('type') == 'Feature':
        features = [parsed]
    else:
        raise ParseError("GeoJSON content must be a Feature or FeatureCollection")

    records: List[Dict[str, Any]] = []
    for feature in features:
        if not isinstance(feature, dict):
            continue
        record = _clean_keys(feature.get('properties') or {})
        geometry = feature.get('geometry') or {}
        coordinates = geometry.get('coordinates')
        if geometry.get('type') == 'Point' and isinstance(coordinates, list) and len(coordinates) >= 2:
            record['longitude'], record['latitude'] = coordinates[0], coordinates[1]
        records.append(record)
    return Table.from_records(records)


def _read_xlsx(content: bytes) -> Table:
    """
    Read the largest sheet of a workbook.
    Merged cells are filled with the value from their top-left cell.
    """
    try:
        wb = load_workbook(BytesIO(content), data_only=True)
    except Exception as e:
        raise ParseError(f"Unable to open workbook: {e}") from e

    ws = max((wb[name] for name in wb.sheetnames), key=lambda sheet: sheet.max_row, default=wb.active)

    merged_ranges = list(ws.merged_cells.ranges)
    for merged_range in merged_ranges:
        top_left_value = ws.cell(merged_range.min_row, merged_range.min_col).value
        ws.unmerge_cells(str(merged_range))
        for row in range(merged_range.min_row, merged_range.max_row + 1):
            for col in range(merged_range.min_col, merged_range.max_col + 1):
                ws.cell(row, col, top_left_value)
    if merged_ranges:
        logger.info(f"Unmerged {len(merged_ranges)} cell ranges in sheet '{ws.title}'")

    df = pd.DataFrame(ws.values)
    if df.empty:
        return Table([])
    df.columns = _clean_headers(df.iloc[0])
    df = df[1:].dropna(how='all', axis=0).reset_index(drop=True)
    return Table.from_frame(df)


def _profile_column(table: Table, column: str, settings: Settings) -> ColumnProfile:
    values = table.non_null(column)
    null_count = len(table) - len(values)

    if not values:
        return ColumnProfile(name=column, inferred_type='text', null_count=null_count, unique_count=0)

    numbers = [n for n in (v.as_number() for v in values) if n is not None]
    if len(numbers) >= len(values) * settings.numeric_majority:
        low, high = min(numbers), max(numbers)
        return ColumnProfile(
            name=column,
            inferred_type='numeric',
            null_count=null_count,
            unique_count=len(set(numbers)),
            min=low,
            max=high,
            # Clamped so float rounding never pushes the mean outside [min, max]
            mean=min(max(sum(numbers) / len(numbers), low), high),
        )

    dates = [v.as_text() for v in values if v.as_date() is not None]
    if len(dates) >= len(values) * settings.date_majority:
        return ColumnProfile(
            name=column, inferred_type='date', null_count=null_count, unique_count=len(set(dates))
        )

    texts = [v.as_text() for v in values]
    counts = Counter(texts)
    return ColumnProfile(
        name=column,
        inferred_type='categorical',
        null_count=null_count,
        unique_count=len(counts),
        mode=counts.most_common(1)[0][0],
    )


def profile_table(table: Table, settings: Optional[Settings] = None) -> ParsedTable:
    """Classify every column of an existing table and summarise it."""
    settings = settings or get_settings()
    summary = {column: _profile_column(table, column, settings) for column in table.columns}

    def columns_of(kind: str) -> List[str]:
        return [c for c, p in summary.items() if p.inferred_type == kind]

    return ParsedTable(
        table=table,
        columns=list(table.columns),
        numeric_columns=columns_of('numeric'),
        date_columns=columns_of('date'),
        categorical_columns=columns_of('categorical'),
        total_rows=len(table),
        summary=summary,
    )


@track_performance("parse_table")
def parse_table(
    raw: Union[str, bytes],
    fmt: str,
    settings: Optional[Settings] = None,
    telemetry: Optional[Telemetry] = None,
) -> ParsedTable:
    """
    Parse raw dataset content into a typed table with per-column profiles.

    Args:
        raw: File content (text, or bytes for xlsx)
        fmt: One of csv, json, geojson, xlsx
        settings: Thresholds; defaults to the global settings
        telemetry: Event sink for diagnostics

    Returns:
        ParsedTable with column classification and summary

    Raises:
        ParseError: Unsupported format, malformed content, or no rows
    """
    telemetry = resolve(telemetry)
    fmt = (fmt or '').lower().strip().lstrip('.')

    if fmt not in SUPPORTED_FORMATS:
        raise ParseError(f"Unsupported format: {fmt or 'unknown'}", code=ErrorCodes.UNSUPPORTED_FORMAT)

    if fmt == 'xlsx':
        if isinstance(raw, str):
            raise ParseError("Excel content must be provided as bytes")
        table = _read_xlsx(raw)
    elif fmt == 'csv':
        table = _read_csv(_decode(raw))
    elif fmt == 'geojson':
        table = _read_geojson(_decode(raw))
    else:
        table = _read_json(_decode(raw))

    if table.is_empty:
        raise ParseError("No data rows found", code=ErrorCodes.EMPTY_DATASET)

    for column in table.columns:
        if not validate_column_name(column):
            logger.warning(f"Suspicious column name kept as-is: {column[:50]!r}")

    parsed = profile_table(table, settings)
    logger.info(f"Parsed {fmt} table: {parsed.total_rows} rows, {len(parsed.columns)} columns")
    telemetry.emit(
        "parse_table.completed",
        format=fmt,
        rows=parsed.total_rows,
        numeric=len(parsed.numeric_columns),
        dates=len(parsed.date_columns),
        categorical=len(parsed.categorical_columns),
    )
    return parsed
