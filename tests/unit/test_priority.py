"""Tests for deadline-driven priority calculation."""

from datetime import UTC, datetime, timedelta

import pytest

from src.core.errors import ValidationError
from src.modules.tasks.priority import calculate_priority, refresh_priority


NOW = datetime(2026, 3, 4, 15, 0, tzinfo=UTC)


@pytest.mark.unit
class TestCalculatePriority:
    def test_no_deadline_returns_base(self):
        assert calculate_priority(base=42, deadline=None, multiplier=3.0, now=NOW) == 42

    def test_deadline_beyond_a_week_returns_base(self):
        deadline = NOW + timedelta(days=10)
        assert calculate_priority(base=50, deadline=deadline, multiplier=1.0, now=NOW) == 50

    def test_half_day_left_boosts_by_half(self):
        deadline = NOW + timedelta(hours=12)
        assert calculate_priority(base=50, deadline=deadline, multiplier=1.0, now=NOW) == 75

    def test_overdue_is_maximum(self):
        deadline = NOW - timedelta(hours=2)
        assert calculate_priority(base=50, deadline=deadline, multiplier=1.0, now=NOW) == 100

    def test_overdue_is_maximum_even_for_zero_base(self):
        deadline = NOW - timedelta(seconds=1)
        assert calculate_priority(base=0, deadline=deadline, multiplier=0.0, now=NOW) == 100

    def test_three_days_left_uses_week_factor(self):
        # 50 * (1 + (4/7) * 0.5) = 64.28...
        deadline = NOW + timedelta(days=3)
        assert calculate_priority(base=50, deadline=deadline, multiplier=1.0, now=NOW) == 64

    def test_result_is_clamped_to_maximum(self):
        deadline = NOW + timedelta(hours=1)
        assert calculate_priority(base=90, deadline=deadline, multiplier=5.0, now=NOW) == 100

    def test_zero_multiplier_ignores_deadline(self):
        deadline = NOW + timedelta(hours=3)
        assert calculate_priority(base=60, deadline=deadline, multiplier=0.0, now=NOW) == 60

    @pytest.mark.parametrize("base", [-1, 101])
    def test_base_out_of_range_is_rejected(self, base):
        with pytest.raises(ValidationError, match="Base priority"):
            calculate_priority(base=base, deadline=None, multiplier=1.0, now=NOW)

    def test_negative_multiplier_is_rejected(self):
        with pytest.raises(ValidationError, match="multiplier"):
            calculate_priority(base=50, deadline=None, multiplier=-0.5, now=NOW)

    @pytest.mark.parametrize("multiplier", [0.0, 0.3, 1.0, 2.5])
    @pytest.mark.parametrize("base", [0, 10, 50, 77, 100])
    def test_priority_rises_within_each_band(self, base, multiplier):
        deadline = NOW + timedelta(days=8)
        previous = calculate_priority(base=base, deadline=deadline, multiplier=multiplier, now=NOW)
        for hours in range(1, 8 * 24):
            current = calculate_priority(
                base=base, deadline=deadline, multiplier=multiplier, now=NOW + timedelta(hours=hours)
            )
            if hours == 7 * 24 + 1:
                # Entering the last day restarts from the one-day formula
                previous = int(base * 1.0)
            assert current >= previous, f"priority fell at hour {hours}: {previous} -> {current}"
            previous = current

        assert calculate_priority(base=base, deadline=deadline, multiplier=multiplier, now=deadline) >= previous
        overdue = deadline + timedelta(minutes=1)
        assert calculate_priority(base=base, deadline=deadline, multiplier=multiplier, now=overdue) == 100

    def test_last_day_uses_one_day_formula_without_week_floor(self):
        # 50 * (1 + 0.05 * 1.0) = 52.5, below the week factor at one day (71)
        deadline = NOW + timedelta(days=0.95)
        assert calculate_priority(base=50, deadline=deadline, multiplier=1.0, now=NOW) == 52

        one_day = NOW + timedelta(days=1)
        assert calculate_priority(base=50, deadline=one_day, multiplier=1.0, now=NOW) == 71

    def test_priority_stays_within_bounds(self):
        for base in range(0, 101, 5):
            for hours in range(-48, 24 * 10, 7):
                value = calculate_priority(
                    base=base, deadline=NOW + timedelta(hours=hours), multiplier=1.7, now=NOW
                )
                assert 0 <= value <= 100


@pytest.mark.unit
async def test_refresh_priority_returns_updated_copy(task_factory, now):
    task = await task_factory(base_priority=50, deadline=now + timedelta(days=10))
    assert task.calculated_priority == 50

    later = refresh_priority(task, now + timedelta(days=9, hours=12))

    assert later.calculated_priority == 75
    assert task.calculated_priority == 50
    assert refresh_priority(task, now) is task
