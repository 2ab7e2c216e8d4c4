"""Identifier and timestamp helpers shared across modules."""

from datetime import UTC, datetime
from uuid import UUID


class InvalidIdentifierError(ValueError):
    """A path or body value is not a well-formed identifier.

    Mapped to 400 by the application, with ``field`` naming the input.
    """

    code = "invalid_identifier"

    def __init__(self, field: str, value: object = None):
        self.field = field
        self.value = value
        self.message = f"Invalid {field}"
        super().__init__(self.message)


def parse_identifier(value: str | UUID | None, field: str) -> UUID:
    """Parse a UUID string, raising ``InvalidIdentifierError`` on failure.

    Examples:
        >>> parse_identifier("0b7e2f1c-4a5d-4c4e-9f43-2c1d3b8f0e11", "courseId")
        UUID('0b7e2f1c-4a5d-4c4e-9f43-2c1d3b8f0e11')
    """
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidIdentifierError(field, value)
    try:
        return UUID(value.strip())
    except ValueError as e:
        raise InvalidIdentifierError(field, value) from e


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt
