"""
Income-statement field extraction and quarterly margin series.

Reported statements arrive in several shapes and label their line items in
English (US-GAAP concepts, free-text labels) or Turkish (KAP filings). Each
canonical concept is resolved through an alias table by a single two-pass
matcher: exact normalized match first, then containment in either direction.

Usage:
    from signalboard.services.statements import build_series, latest_quarters

    series = build_series(latest_quarters(reports))
    if series is None:
        ...  # fewer than 2 usable points, fall back to snapshot scoring
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any


REVENUE = "revenue"
GROSS_PROFIT = "gross_profit"
NET_INCOME = "net_income"

CONCEPT_ALIASES: dict[str, tuple[str, ...]] = {
    REVENUE: (
        "Revenue",
        "Revenues",
        "TotalRevenue",
        "Sales",
        "NetSales",
        "SalesRevenueNet",
        "RevenueFromContractWithCustomerExcludingAssessedTax",
        "Hasılat",
        "SatisGelirleri",
        "SatışGelirleri",
    ),
    GROSS_PROFIT: (
        "GrossProfit",
        "Gross Profit",
        "BrütKar",
        "BrütKâr",
        "BrütKârZarar",
        "BrütKarZarar",
    ),
    NET_INCOME: (
        "NetIncome",
        "NetIncomeLoss",
        "ProfitLoss",
        "NetProfit",
        "NetDönemKârıZararı",
        "DonemNetKariZarari",
        "DönemNetKârıZararı",
    ),
}

# Probed in order; the report object itself is the last resort.
CONTAINER_KEYS = (
    "ic",
    "incomeStatement",
    "income_statement",
    "incomestatement",
    "is",
    "data",
    "items",
)
NESTED_KEYS = ("items", "ic", "data")

LABEL_KEYS = ("concept", "label", "name", "tag")
VALUE_KEYS = ("value", "val", "amount")

_NON_WORD = re.compile(r"[\W_]+", re.UNICODE)


def normalize_key(value: Any) -> str:
    """Lowercase and drop whitespace and punctuation."""
    if value is None:
        return ""
    return _NON_WORD.sub("", str(value).lower())


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _first_present(row: dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def _non_empty_list(value: Any) -> list[Any] | None:
    return value if isinstance(value, list) and value else None


def extract_items(quarter: Any) -> list[dict[str, Any]]:
    """Locate the income-statement line items of one quarterly report.

    Returns the first non-empty list found among the known container keys
    (looking one level deeper for ``items``/``ic``/``data``), else ``[]``.
    """
    if not isinstance(quarter, dict):
        return []
    report = quarter.get("report")
    if report is None:
        report = quarter.get("reportContent")
    if report is None:
        report = quarter
    if isinstance(report, list):
        return [r for r in report if isinstance(r, dict)]
    if not isinstance(report, dict):
        return []

    candidates = [report.get(key) for key in CONTAINER_KEYS] + [report]
    for candidate in candidates:
        found = _non_empty_list(candidate)
        if found is None and isinstance(candidate, dict):
            for nested in NESTED_KEYS:
                found = _non_empty_list(candidate.get(nested))
                if found is not None:
                    break
        if found is not None:
            return [r for r in found if isinstance(r, dict)]
    return []


def pick_value(items: Sequence[dict[str, Any]], aliases: Iterable[str]) -> float | None:
    """First numeric value whose label matches one of ``aliases``.

    Pass 1 requires an exact normalized match; pass 2 accepts containment in
    either direction. Never raises on odd input.
    """
    if not items:
        return None
    keys = [k for k in (normalize_key(a) for a in aliases) if k]
    if not keys:
        return None

    labelled: list[tuple[str, dict[str, Any]]] = []
    for row in items:
        if not isinstance(row, dict):
            continue
        label = normalize_key(_first_present(row, LABEL_KEYS))
        if label:
            labelled.append((label, row))

    for label, row in labelled:
        if label in keys:
            value = _to_float(_first_present(row, VALUE_KEYS))
            if value is not None:
                return value

    for label, row in labelled:
        if any(label in key or key in label for key in keys):
            value = _to_float(_first_present(row, VALUE_KEYS))
            if value is not None:
                return value

    return None


def pick_concept(items: Sequence[dict[str, Any]], concept: str) -> float | None:
    return pick_value(items, CONCEPT_ALIASES[concept])


@dataclass
class MarginSeries:
    """Quarterly margin percentages, oldest first."""

    gross_series: list[float] = field(default_factory=list)
    net_series: list[float] = field(default_factory=list)

    @property
    def trend_series(self) -> list[float]:
        """Net series when present, else gross."""
        return self.net_series or self.gross_series


def _period_key(quarter: dict[str, Any]) -> str:
    value = _first_present(quarter, ("endDate", "reportDate", "year"))
    return "" if value is None else str(value)


def latest_quarters(reports: Iterable[Any], count: int = 4) -> list[dict[str, Any]]:
    """The ``count`` most recent reports, sorted ascending by period end."""
    quarters = [q for q in reports if isinstance(q, dict)]
    quarters.sort(key=_period_key)
    return quarters[-count:] if count > 0 else []


def build_series(quarters: Sequence[dict[str, Any]]) -> MarginSeries | None:
    """Gross and net margin series over the given quarters.

    Quarters with zero or missing revenue are skipped. Returns None when
    neither series reaches two points.
    """
    series = MarginSeries()
    for quarter in quarters:
        items = extract_items(quarter)
        revenue = pick_concept(items, REVENUE)
        if revenue is None or revenue == 0:
            continue
        gross_profit = pick_concept(items, GROSS_PROFIT)
        net_income = pick_concept(items, NET_INCOME)
        if gross_profit is not None:
            series.gross_series.append(gross_profit * 100 / revenue)
        if net_income is not None:
            series.net_series.append(net_income * 100 / revenue)

    if len(series.gross_series) < 2 and len(series.net_series) < 2:
        return None
    return series
