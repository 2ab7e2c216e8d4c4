"""Progress calculation for enrollments."""

from decimal import ROUND_HALF_UP, Decimal


def recompute_progress(
    completed_count: int,
    total_lessons: int,
    current_progress: int = 0,
    current_is_completed: bool = False,
) -> tuple[int, bool]:
    """Return ``(progress, is_completed)`` for a completed-lesson count.

    Progress is ``100 * completed / total`` rounded half up and capped at
    100 (ids of lessons removed from the course may still be counted).
    With no lessons there is nothing to measure against, so the current
    values are returned unchanged.

    Examples:
        >>> recompute_progress(3, 6)
        (50, False)
        >>> recompute_progress(5, 6)
        (83, False)
        >>> recompute_progress(1, 8)
        (13, False)
        >>> recompute_progress(0, 0, 40, False)
        (40, False)
    """
    if total_lessons <= 0:
        return current_progress, current_is_completed

    ratio = Decimal(100 * completed_count) / Decimal(total_lessons)
    progress = min(int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP)), 100)
    return progress, progress == 100
