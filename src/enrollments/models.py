"""Database models for the enrollment ledger.

Cassandra table definitions for:
- enrollments: one row per (course, account) pair. The primary key is the
  uniqueness guarantee; rows are created with IF NOT EXISTS and updated with
  IF version = ? so concurrent writers never lose each other's changes
- enrollments_by_user: reverse lookup for "my enrollments"
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from src.utils.identifiers import ensure_utc_aware


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    course_id UUID,
    user_id UUID,
    id UUID,
    completed_lessons SET<UUID>,
    progress INT,
    is_completed BOOLEAN,
    version INT,
    enrolled_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY (course_id, user_id)
)
"""

ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    course_id UUID,
    enrolled_at TIMESTAMP,
    PRIMARY KEY (user_id, course_id)
)
"""

# All CQL statements for table setup
ENROLLMENTS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Enrollment of one account in one course.

    Attributes:
        id: Unique identifier (UUID)
        course_id: Course UUID
        user_id: Account UUID
        completed_lessons: Ids of lessons marked complete (set semantics)
        progress: Percentage 0-100, derived from completed_lessons
        is_completed: True exactly when progress is 100
        version: Counter for conditional updates
        enrolled_at: Enrollment timestamp
        updated_at: Last progress change
    """

    def __init__(
        self,
        course_id: UUID,
        user_id: UUID,
        id: UUID | None = None,
        completed_lessons: set[UUID] | frozenset[UUID] | None = None,
        progress: int = 0,
        is_completed: bool = False,
        version: int = 0,
        enrolled_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.user_id = user_id
        self.completed_lessons = frozenset(completed_lessons or ())
        self.progress = progress
        self.is_completed = is_completed
        self.version = version
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row.

        Cassandra returns an empty set column as None.
        """
        return cls(
            course_id=row.course_id,
            user_id=row.user_id,
            id=row.id,
            completed_lessons=set(row.completed_lessons or ()),
            progress=row.progress or 0,
            is_completed=bool(row.is_completed),
            version=row.version or 0,
            enrolled_at=row.enrolled_at,
            updated_at=row.updated_at,
        )

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} course={self.course_id} "
            f"{self.progress}%>"
        )
