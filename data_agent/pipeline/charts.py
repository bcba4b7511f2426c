"""Chart type selection from question wording and result shape."""

import re
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from data_agent.models.pipeline import ChartType

_YEAR = re.compile(r"\b(?:1[89]|20)\d{2}\b")
_PRICE = re.compile(r"\b(?:price[sd]?|pricing|cost[s]?|costly|expensive)\b", re.IGNORECASE)
_TREND = re.compile(r"\b(?:compar\w*|trend\w*)\b", re.IGNORECASE)
_DISTRIBUTION = re.compile(r"\b(?:distribution|distributed|breakdown|break\s+down)\b", re.IGNORECASE)
_COUNT_FIELD = re.compile(r"(?:^|_)(?:count|cnt|total|num|number|sum)(?:_|$)", re.IGNORECASE)
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def select_chart_type(question: str, rows: Sequence[Mapping[str, Any]]) -> ChartType:
    """
    Pick a visualization hint; the first matching rule wins.

    1. one row holding a numeric count-like field -> number
    2. year in the question and at most 8 rows -> bar
    3. price/cost/expensive -> bar
    4. compare/trend -> line
    5. distribution/breakdown -> pie
    6. at most 10 rows -> bar, otherwise table
    """
    question = question or ""
    row_count = len(rows)

    if row_count == 1 and _has_numeric_count(rows[0]):
        return ChartType.NUMBER
    if _YEAR.search(question) and row_count <= 8:
        return ChartType.BAR
    if _PRICE.search(question):
        return ChartType.BAR
    if _TREND.search(question):
        return ChartType.LINE
    if _DISTRIBUTION.search(question):
        return ChartType.PIE
    if row_count <= 10:
        return ChartType.BAR
    return ChartType.TABLE


def _has_numeric_count(row: Mapping[str, Any]) -> bool:
    for key, value in row.items():
        name = _CAMEL_BOUNDARY.sub("_", str(key))
        if _COUNT_FIELD.search(name) and _is_number(value):
            return True
    return False


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, int | float | Decimal)
