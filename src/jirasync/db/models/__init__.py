"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from jirasync.db.models.project import ProjectRow
from jirasync.db.models.issue import IssueRow

__all__ = [
    "ProjectRow",
    "IssueRow",
]
