"""Report visibility filter.

Narrows a report collection to what a principal is entitled to see, then
applies the caller's search criteria.

Visibility rule (per record, first exclusion wins):
1. show_only_mine and the record belongs to someone else -> excluded.
2. Principals without a municipal role (citizens, or a role the catalog
   does not know):
   a. pending reports are excluded (not yet public);
   b. rejected reports are excluded unless the principal owns them.
3. Municipal roles (admin included) see every status. A pr_officer is only
   offered fewer filter facets (no status facet); visibility is unchanged.
4. Guests are handled by the caller, which returns an empty set without
   calling this module.

The filter never reorders and always returns a fully materialized list,
together with the pre-filter total.
"""

import calendar
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, time, timedelta

from civicdesk.core.filtering import ReportFilters
from civicdesk.core.principal import Principal
from civicdesk.core.roles import RoleName, is_municipal_role
from civicdesk.models.report import Report, ReportStatus


@dataclass(frozen=True)
class VisibleReports:
    """Filter output.

    Attributes:
        reports: Matching reports in input order.
        total: Size of the input before visibility and criteria.
    """

    reports: list[Report]
    total: int

    @property
    def count(self) -> int:
        return len(self.reports)


@dataclass(frozen=True)
class ReportFacets:
    """Filter options offered to a principal.

    Attributes:
        statuses: Distinct statuses among visible reports, sorted.
            Empty for PR officers.
        categories: Distinct category names among visible reports, sorted.
    """

    statuses: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)


# =============================================================================
# Visibility
# =============================================================================


def is_visible_to(
    report: Report,
    principal: Principal,
    *,
    show_only_mine: bool = False,
) -> bool:
    """Apply the role/ownership visibility rule to one report.

    Args:
        report: Candidate report.
        principal: Resolved (non-guest) principal.
        show_only_mine: Restrict to the principal's own reports.

    Returns:
        True if the principal may see the report.
    """
    is_owner = report.user_id == principal.id

    if show_only_mine and not is_owner:
        return False

    if not is_municipal_role(principal.role_name):
        if report.status == ReportStatus.PENDING.value:
            return False
        if report.status == ReportStatus.REJECTED.value and not is_owner:
            return False

    return True


# =============================================================================
# Criteria
# =============================================================================


def _subtract_month(moment: datetime) -> datetime:
    """Same wall-clock time one calendar month earlier, day clamped."""
    if moment.month == 1:
        year, month = moment.year - 1, 12
    else:
        year, month = moment.year, moment.month - 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _localize(created_at: datetime, now: datetime) -> datetime:
    if created_at.tzinfo is None:
        return created_at.replace(tzinfo=now.tzinfo)
    if now.tzinfo is None:
        return created_at
    return created_at.astimezone(now.tzinfo)


def _matches_query(report: Report, query: str | None) -> bool:
    term = (query or "").strip().lower()
    if not term:
        return True
    return term in (report.title or "").lower()


def _matches_category(report: Report, categories: Sequence[str]) -> bool:
    if not categories:
        return True
    name = report.category.name if report.category is not None else ""
    return name in categories


def _matches_date(report: Report, filters: ReportFilters, now: datetime) -> bool:
    created = _localize(report.created_at, now)

    if filters.date_range == "Today" and created.date() != now.date():
        return False
    if filters.date_range == "Last Week" and not created > now - timedelta(days=7):
        return False
    if filters.date_range == "This Month" and not created > _subtract_month(now):
        return False

    if filters.date_from is not None:
        start = datetime.combine(filters.date_from, time.min, tzinfo=now.tzinfo)
        if created < start:
            return False
        if filters.date_to is not None:
            end = datetime.combine(filters.date_to, time.max, tzinfo=now.tzinfo)
            if created > end:
                return False

    return True


def matches_criteria(report: Report, filters: ReportFilters, now: datetime) -> bool:
    """Check a report against the caller's criteria (AND-combined)."""
    return (
        _matches_query(report, filters.query)
        and (not filters.statuses or report.status in filters.statuses)
        and _matches_category(report, filters.categories)
        and _matches_date(report, filters, now)
    )


# =============================================================================
# Entry points
# =============================================================================


def filter_reports(
    reports: Sequence[Report],
    principal: Principal,
    filters: ReportFilters | None = None,
    *,
    now: datetime | None = None,
) -> VisibleReports:
    """Return the reports a principal may see that match the criteria.

    Args:
        reports: Candidate reports, in display order.
        principal: Resolved (non-guest) principal.
        filters: Search criteria. None means no criteria.
        now: Reference time for date buckets. Defaults to current UTC time.

    Returns:
        VisibleReports with matches in input order and the input size.
    """
    filters = filters or ReportFilters()
    now = now or datetime.now(UTC)

    matched = [
        report
        for report in reports
        if is_visible_to(report, principal, show_only_mine=filters.show_only_mine)
        and matches_criteria(report, filters, now)
    ]
    return VisibleReports(reports=matched, total=len(reports))


def available_facets(
    reports: Sequence[Report],
    principal: Principal,
) -> ReportFacets:
    """Build the filter options offered to a principal.

    Facets are drawn from the reports the principal can see. PR officers
    are not offered a status facet.
    """
    visible = [r for r in reports if is_visible_to(r, principal)]
    categories = sorted(
        {r.category.name for r in visible if r.category is not None and r.category.name}
    )
    if principal.role_name == RoleName.PR_OFFICER.value:
        return ReportFacets(statuses=[], categories=categories)

    statuses = sorted({r.status for r in visible if r.status})
    return ReportFacets(statuses=statuses, categories=categories)
