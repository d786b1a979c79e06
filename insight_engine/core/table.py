"""
Typed in-memory table.

Cells are wrapped in a tagged Value (number, text, bool or null) with typed
accessors that return None for missing or invalid data, so detectors never
see NaN or sentinel values leaking out of a raw row.
"""
import math
import re
import warnings
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

NULL_TOKENS = {"", "null", "nan", "n/a"}

_NUMERIC_NOISE = re.compile(r'[$€£¥%,\s]')

_MONTHS = r'(jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?'
_TIME = r'([T ]\d{1,2}:\d{2}(:\d{2}(\.\d+)?)?\s*(Z|[+-]\d{2}:?\d{2})?)?'

# Shapes accepted as dates. Bare month names ("Jan") and bare numbers are not dates.
DATE_SHAPES = [
    re.compile(r'^\d{4}-\d{1,2}(-\d{1,2})?' + _TIME + r'$', re.IGNORECASE),
    re.compile(r'^\d{4}/\d{1,2}/\d{1,2}' + _TIME + r'$', re.IGNORECASE),
    re.compile(r'^\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}' + _TIME + r'$', re.IGNORECASE),
    re.compile(r'^(\d{1,2}\s+)?' + _MONTHS + r'\s+(\d{1,2},?\s+)?\d{4}$', re.IGNORECASE),
    re.compile(r'^\d{1,2}-' + _MONTHS + r'-\d{2,4}$', re.IGNORECASE),
]


@lru_cache(maxsize=8192)
def parse_date(text: str) -> Optional[pd.Timestamp]:
    """Parse a date-shaped string into a naive Timestamp, or None."""
    text = text.strip()
    if not any(shape.match(text) for shape in DATE_SHAPES):
        return None
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        parsed = pd.to_datetime(text, errors='coerce')
    if parsed is None or pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert(None)
    return parsed


def parse_number(text: str) -> Optional[float]:
    """Parse numeric text, tolerating currency symbols, percent signs and thousands separators."""
    cleaned = _NUMERIC_NOISE.sub('', text)
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


class ValueKind(str, Enum):
    NUMBER = "number"
    TEXT = "text"
    BOOL = "bool"
    NULL = "null"


@dataclass(frozen=True)
class Value:
    """A single tagged cell."""

    kind: ValueKind
    raw: Any = None

    @classmethod
    def of(cls, raw: Any) -> "Value":
        if isinstance(raw, Value):
            return raw
        if raw is None or raw is pd.NA or raw is pd.NaT:
            return NULL
        if isinstance(raw, (bool, np.bool_)):
            return cls(ValueKind.BOOL, bool(raw))
        if isinstance(raw, (int, float, np.integer, np.floating)):
            if not math.isfinite(float(raw)):
                return NULL
            return cls(ValueKind.NUMBER, raw.item() if isinstance(raw, np.generic) else raw)
        if isinstance(raw, (datetime, date)):
            if pd.isna(raw):
                return NULL
            return cls(ValueKind.TEXT, raw.isoformat())
        text = str(raw).strip()
        if text.lower() in NULL_TOKENS:
            return NULL
        return cls(ValueKind.TEXT, text)

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    def as_number(self) -> Optional[float]:
        if self.kind is ValueKind.NUMBER:
            return float(self.raw)
        if self.kind is ValueKind.TEXT:
            return parse_number(self.raw)
        return None

    def as_date(self) -> Optional[pd.Timestamp]:
        if self.kind is ValueKind.TEXT:
            return parse_date(self.raw)
        return None

    def as_bool(self) -> Optional[bool]:
        if self.kind is ValueKind.BOOL:
            return self.raw
        if self.kind is ValueKind.TEXT:
            lowered = self.raw.lower()
            if lowered in ("true", "yes"):
                return True
            if lowered in ("false", "no"):
                return False
        return None

    def as_text(self) -> Optional[str]:
        if self.kind is ValueKind.NULL:
            return None
        if self.kind is ValueKind.BOOL:
            return "true" if self.raw else "false"
        if self.kind is ValueKind.NUMBER:
            number = float(self.raw)
            return str(int(number)) if number.is_integer() else str(self.raw)
        return self.raw

    def to_python(self) -> Any:
        return None if self.kind is ValueKind.NULL else self.raw


NULL = Value(ValueKind.NULL)


class Row(Mapping):
    """Immutable mapping from column name to Value."""

    __slots__ = ('_values',)

    def __init__(self, values: Mapping[str, Any]):
        self._values: Dict[str, Value] = {str(k): Value.of(v) for k, v in values.items()}

    def __getitem__(self, column: str) -> Value:
        return self._values[column]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Row({self.to_dict()!r})"

    def value(self, column: str) -> Value:
        return self._values.get(column, NULL)

    def number(self, column: str) -> Optional[float]:
        return self.value(column).as_number()

    def date(self, column: str) -> Optional[pd.Timestamp]:
        return self.value(column).as_date()

    def text(self, column: str) -> Optional[str]:
        return self.value(column).as_text()

    def to_dict(self) -> Dict[str, Any]:
        return {k: v.to_python() for k, v in self._values.items()}


class Table:
    """Ordered sequence of rows sharing one column list."""

    def __init__(self, columns: Sequence[str], rows: Iterable[Row] = ()):
        self._columns = tuple(str(c) for c in columns)
        if len(set(self._columns)) != len(self._columns):
            repeated = sorted({c for c in self._columns if self._columns.count(c) > 1})
            raise ValueError(f"Duplicate column names: {repeated}")
        self._rows = tuple(rows)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]], columns: Optional[Sequence[str]] = None) -> "Table":
        records = list(records)
        if columns is None:
            seen: Dict[str, None] = {}
            for record in records:
                for key in record.keys():
                    seen.setdefault(str(key), None)
            columns = list(seen)
        rows = [Row({col: record.get(col) for col in columns}) for record in records]
        return cls(columns, rows)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "Table":
        columns = [str(c) for c in df.columns]
        rows = [Row(dict(zip(columns, values))) for values in df.itertuples(index=False, name=None)]
        return cls(columns, rows)

    @property
    def columns(self) -> tuple:
        return self._columns

    @property
    def rows(self) -> tuple:
        return self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self._rows)

    def __repr__(self) -> str:
        return f"Table(columns={list(self._columns)!r}, rows={len(self._rows)})"

    @property
    def is_empty(self) -> bool:
        return not self._rows

    def head(self, n: int) -> "Table":
        if n >= len(self._rows):
            return self
        return Table(self._columns, self._rows[:n])

    def column_values(self, column: str) -> List[Value]:
        return [row.value(column) for row in self._rows]

    def non_null(self, column: str) -> List[Value]:
        return [v for v in self.column_values(column) if not v.is_null]

    def numbers(self, column: str) -> List[float]:
        """Numeric values of a column with missing and unparsable cells dropped."""
        return [n for n in (row.number(column) for row in self._rows) if n is not None]

    def records(self) -> List[Dict[str, Any]]:
        return [row.to_dict() for row in self._rows]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.records(), columns=list(self._columns))
