"""Filtering utilities for API endpoints.

Filtering:
    - `?status=pending` - Exact match
    - `?status=pending,in_progress` - Match any (OR)

Example:
    GET /reports?status=in_progress,resolved&category=Roads&q=pothole
"""

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, model_validator


def parse_filter_value(value: str | None) -> list[str]:
    """Parse filter value into list of values (for OR matching).

    Args:
        value: Raw filter value (e.g., "pending,rejected").

    Returns:
        List of individual values, trimmed.

    Examples:
        >>> parse_filter_value("pending,rejected")
        ['pending', 'rejected']

        >>> parse_filter_value("pending")
        ['pending']
    """
    if not value:
        return []

    return [v.strip() for v in value.split(",") if v.strip()]


class FilterParams(BaseModel):
    """Base class for filter parameters.

    Subclass this with typed fields for each resource's filters.
    """

    model_config = {"extra": "ignore"}

    def active_filters(self) -> dict[str, Any]:
        """Get only the filter values that narrow the result.

        Returns:
            Dict of field names to their values, excluding None, False
            and empty collections.
        """
        return {
            field_name: value
            for field_name, value in self.model_dump().items()
            if value not in (None, False, [], "")
        }


DateRangeBucket = Literal["Today", "Last Week", "This Month"]


class ReportFilters(FilterParams):
    """Filter criteria for report lists.

    All criteria are AND-combined; an empty criterion matches everything.

    Attributes:
        show_only_mine: Keep only reports owned by the principal.
        query: Case-insensitive substring of the title.
        statuses: Accepted statuses (any of).
        categories: Accepted category names (any of).
        date_range: Named bucket relative to now.
        date_from: Inclusive lower bound (start of that day).
        date_to: Inclusive upper bound (end of that day). Optional.
    """

    show_only_mine: bool = False
    query: str | None = None
    statuses: list[str] = []
    categories: list[str] = []
    date_range: DateRangeBucket | None = None
    date_from: date | None = None
    date_to: date | None = None

    @model_validator(mode="after")
    def check_date_bounds(self) -> "ReportFilters":
        """An upper date bound needs a lower one, and must not precede it."""
        if self.date_to is not None:
            if self.date_from is None:
                msg = "date_to requires date_from"
                raise ValueError(msg)
            if self.date_to < self.date_from:
                msg = "date_to must not be before date_from"
                raise ValueError(msg)
        return self
