"""Response schemas for report listing."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from civicdesk.models.report import Report


class ReportResponse(BaseModel):
    """Report list item.

    Attributes:
        id: UUID as string.
        title: Report title.
        description: Free-text body.
        address: Human-readable location.
        status: ReportStatus value.
        category: Category name, or None.
        user_id: Owner UUID as string.
        created_at: Submission timestamp.
    """

    model_config = ConfigDict(extra="forbid")

    id: str
    title: str
    description: str | None = None
    address: str | None = None
    status: str
    category: str | None = None
    user_id: str
    created_at: datetime

    @classmethod
    def from_report(cls, report: Report) -> "ReportResponse":
        return cls(
            id=str(report.id),
            title=report.title,
            description=report.description,
            address=report.address,
            status=report.status,
            category=report.category.name if report.category is not None else None,
            user_id=str(report.user_id),
            created_at=report.created_at,
        )


class ReportFacetsResponse(BaseModel):
    """Filter options for GET /reports/facets."""

    model_config = ConfigDict(extra="forbid")

    statuses: list[str]
    categories: list[str]
