"""
Derived metrics over an ordered series of (period_key, value) pairs.
"""

from typing import Sequence

from pydantic import BaseModel


class DerivedMetrics(BaseModel):
    """Metrics computed from a series' points, never stored on their own."""

    latest: float | None = None
    latest_period: str | None = None
    change_absolute: float | None = None
    change_percent: float | None = None
    cagr: float | None = None  # Percent per year


def parse_period(period_key: str) -> tuple[int, int | None]:
    """
    Split 'YYYY', 'YYYY-MM' (or 'YYYY-MM-DD') or 'YYYY-Qn' into (year, month).

    A quarter maps to its first month, so quarterly keys space 0.25 years apart.
    """
    parts = period_key.split("-")
    year = int(parts[0])
    if len(parts) < 2:
        return year, None
    if parts[1][:1] in ("Q", "q"):
        return year, (int(parts[1][1:]) - 1) * 3 + 1
    return year, int(parts[1])


def years_between(start_key: str, end_key: str) -> float:
    """Elapsed years between two period keys, fractional for monthly and quarterly keys."""
    start_year, start_month = parse_period(start_key)
    end_year, end_month = parse_period(end_key)
    years = float(end_year - start_year)
    if start_month is not None and end_month is not None:
        years += (end_month - start_month) / 12
    return years


def compute_cagr(first: float | None, last: float | None, years: float) -> float | None:
    """Compound annual growth rate in percent, or None when undefined."""
    if first is None or last is None or first <= 0 or last <= 0 or years <= 0:
        return None
    return ((last / first) ** (1 / years) - 1) * 100


def compute_derived(points: Sequence[tuple[str, float | None]]) -> DerivedMetrics:
    """
    Compute latest / change / CAGR for points sorted by period key.

    With fewer than two points every metric is None. A null value at either
    end of a window (latest vs. prior, first vs. latest) makes that window's
    metric None; zero is a real value.
    """
    if len(points) < 2:
        return DerivedMetrics()

    first_key, first = points[0]
    prior = points[-2][1]
    latest_key, latest = points[-1]

    change_absolute = None
    change_percent = None
    if latest is not None and prior is not None:
        change_absolute = latest - prior
        if prior != 0:
            change_percent = change_absolute / prior * 100

    return DerivedMetrics(
        latest=latest,
        latest_period=latest_key,
        change_absolute=change_absolute,
        change_percent=change_percent,
        cagr=compute_cagr(first, latest, years_between(first_key, latest_key)),
    )
