"""SQLAlchemy ORM models for civicdesk.

All models are exported from this module for convenient imports:
    from civicdesk.models import User, Role, VerificationCode, ...

- role.py: Role
- user.py: User
- report.py: Category, Report, ReportStatus
- verification_code.py: VerificationCode, CodePurpose
"""

from civicdesk.models.base import Base, TimestampMixin
from civicdesk.models.report import Category, Report, ReportStatus
from civicdesk.models.role import Role
from civicdesk.models.user import User
from civicdesk.models.verification_code import CodePurpose, VerificationCode

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Identity
    "Role",
    "User",
    # Reports (read-only here)
    "Category",
    "Report",
    "ReportStatus",
    # Verification
    "CodePurpose",
    "VerificationCode",
]
