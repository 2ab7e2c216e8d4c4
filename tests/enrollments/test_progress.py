"""Tests for progress recomputation."""

import pytest

from src.enrollments.progress import recompute_progress


class TestRecomputeProgress:
    """Tests for recompute_progress."""

    @pytest.mark.parametrize(
        "completed,total,expected",
        [
            (0, 6, (0, False)),
            (3, 6, (50, False)),
            (5, 6, (83, False)),
            (6, 6, (100, True)),
            (1, 3, (33, False)),
            (2, 3, (67, False)),
            (1, 8, (13, False)),
            (1, 200, (1, False)),
            (199, 200, (100, True)),
        ],
    )
    def test_rounds_half_up(
        self, completed: int, total: int, expected: tuple[int, bool]
    ) -> None:
        assert recompute_progress(completed, total) == expected

    def test_capped_at_100(self) -> None:
        """Stale ids from a shrunk curriculum cannot push progress past 100."""
        assert recompute_progress(9, 6) == (100, True)

    @pytest.mark.parametrize(
        "current", [(0, False), (40, False), (100, True)]
    )
    def test_zero_lessons_keeps_current_values(
        self, current: tuple[int, bool]
    ) -> None:
        assert recompute_progress(3, 0, *current) == current

    def test_completed_matches_progress(self) -> None:
        for total in range(1, 13):
            for completed in range(total + 1):
                progress, is_completed = recompute_progress(completed, total)
                assert 0 <= progress <= 100
                assert is_completed == (progress == 100)
