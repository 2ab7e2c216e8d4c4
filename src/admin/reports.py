"""Aggregate counts for the admin dashboard."""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from src.admin.schemas import ReportsResponse
from src.enrollments.models import Enrollment


def completion_rate(completed: int, total: int) -> int:
    """Percentage of completed enrollments, rounded half up (0 when none)."""
    if total <= 0:
        return 0
    ratio = Decimal(100 * completed) / Decimal(total)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def build_report(total_users: int, enrollments: Iterable[Enrollment]) -> ReportsResponse:
    total = 0
    completed = 0
    for enrollment in enrollments:
        total += 1
        if enrollment.is_completed:
            completed += 1

    return ReportsResponse(
        total_users=total_users,
        total_enrollments=total,
        completed_enrollments=completed,
        completion_rate=completion_rate(completed, total),
    )
