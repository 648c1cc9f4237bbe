"""Report listing endpoints.

Endpoints:
- GET /reports: reports visible to the caller, filtered and paginated
- GET /reports/facets: filter options offered to the caller
- GET /reports/{report_id}: one report, if visible

Guests see no reports at all.

Query parameters for GET /reports:
- show_only_mine: only the caller's own reports
- q: case-insensitive title search
- status: comma-separated statuses (any of)
- category: comma-separated category names (any of)
- date_range: Today | Last Week | This Month
- date_from / date_to: inclusive day range (date_to optional)
"""

import uuid
from datetime import date
from typing import Annotated

import pydantic
from fastapi import APIRouter, Depends, Query

from civicdesk.api.deps import CurrentPrincipal, DbSession, OptionalPrincipal
from civicdesk.core.errors import NotFoundError, ValidationError
from civicdesk.core.filtering import DateRangeBucket, ReportFilters, parse_filter_value
from civicdesk.core.pagination import PaginationParams, pagination_params
from civicdesk.core.report_visibility import (
    available_facets,
    filter_reports,
    is_visible_to,
)
from civicdesk.core.responses import DataResponse, ListResponse, PaginationMeta
from civicdesk.repositories.report_repository import ReportRepository
from civicdesk.schemas.report import ReportFacetsResponse, ReportResponse

router = APIRouter()


def report_filters(
    show_only_mine: bool = False,
    q: Annotated[str | None, Query(max_length=200)] = None,
    status: str | None = None,
    category: str | None = None,
    date_range: DateRangeBucket | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> ReportFilters:
    """FastAPI dependency turning query parameters into ReportFilters.

    Raises:
        ValidationError: 400 for an inconsistent date range.
    """
    try:
        return ReportFilters(
            show_only_mine=show_only_mine,
            query=q,
            statuses=parse_filter_value(status),
            categories=parse_filter_value(category),
            date_range=date_range,
            date_from=date_from,
            date_to=date_to,
        )
    except pydantic.ValidationError as exc:
        raise ValidationError(
            "Invalid report filters",
            details=[{"msg": e["msg"], "type": e["type"]} for e in exc.errors()],
        ) from exc


@router.get("")
async def list_reports(
    principal: OptionalPrincipal,
    db: DbSession,
    filters: Annotated[ReportFilters, Depends(report_filters)],
    pagination: Annotated[PaginationParams, Depends(pagination_params)],
) -> ListResponse[ReportResponse]:
    """List the reports the caller may see that match the filters.

    meta.total counts reports before visibility and filters; meta.filtered
    counts matches across all pages.
    """
    if principal is None:
        return ListResponse(
            data=[],
            meta=PaginationMeta(
                total=0,
                filtered=0,
                page=pagination.page,
                per_page=pagination.per_page,
            ),
        )

    reports = await ReportRepository.list_all(db)
    visible = filter_reports(reports, principal, filters)

    return ListResponse(
        data=[ReportResponse.from_report(r) for r in pagination.slice(visible.reports)],
        meta=PaginationMeta(
            total=visible.total,
            filtered=visible.count,
            page=pagination.page,
            per_page=pagination.per_page,
        ),
    )


@router.get("/facets")
async def report_facets(
    principal: OptionalPrincipal,
    db: DbSession,
) -> DataResponse[ReportFacetsResponse]:
    """Return the status and category options for the caller's filters."""
    if principal is None:
        return DataResponse(data=ReportFacetsResponse(statuses=[], categories=[]))

    reports = await ReportRepository.list_all(db)
    facets = available_facets(reports, principal)
    return DataResponse(
        data=ReportFacetsResponse(
            statuses=facets.statuses,
            categories=facets.categories,
        )
    )


@router.get("/{report_id}")
async def get_report(
    report_id: uuid.UUID,
    principal: CurrentPrincipal,
    db: DbSession,
) -> DataResponse[ReportResponse]:
    """Return one report.

    Reports the caller may not see are reported as missing.
    """
    report = await ReportRepository.get_by_id(db, report_id)
    if report is None or not is_visible_to(report, principal):
        raise NotFoundError("Report", str(report_id))
    return DataResponse(data=ReportResponse.from_report(report))
