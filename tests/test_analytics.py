from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from flowday.services import stats_service

TODAY = date(2026, 10, 19)


def _task(day, hour=10, status="pending", category="work", priority="medium"):
    return SimpleNamespace(
        due_date=datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc),
        status=status,
        category=category,
        priority=priority,
    )


def test_month_grid_starts_on_sunday():
    weeks = stats_service.month_grid(2026, 10)
    assert len(weeks) == 5
    assert weeks[0][0] == date(2026, 9, 27)
    assert weeks[-1][-1] == date(2026, 10, 31)
    assert all(len(w) == 7 for w in weeks)


def test_month_grid_rejects_bad_month():
    with pytest.raises(ValueError):
        stats_service.month_grid(2026, 13)


@pytest.mark.parametrize("year,month", [(0, 1), (10000, 1), (1, 1), (9999, 12)])
def test_month_grid_rejects_unrepresentable_years(year, month):
    with pytest.raises(ValueError):
        stats_service.month_grid(year, month)


def test_month_grid_near_date_limits():
    assert stats_service.month_grid(1, 2)[0][0] == date(1, 1, 28)
    assert stats_service.month_grid(9999, 11)[-1][-1] == date(9999, 12, 4)


def test_calendar_buckets_tasks_by_due_day():
    tasks = [_task(date(2026, 10, 19)), _task(date(2026, 10, 19), hour=15), _task(date(2026, 10, 2))]
    cal = stats_service.build_calendar_month(2026, 10, tasks, today=TODAY)

    days = {d["date"]: d for week in cal["weeks"] for d in week}
    assert len(days["2026-10-19"]["tasks"]) == 2
    assert days["2026-10-19"]["is_today"] is True
    assert len(days["2026-10-02"]["tasks"]) == 1
    assert days["2026-09-27"]["in_month"] is False
    assert days["2026-10-20"]["tasks"] == []


def test_daily_completion():
    tasks = [
        _task(date(2026, 10, 19), status="completed"),
        _task(date(2026, 10, 19)),
        _task(date(2026, 10, 18), status="completed"),
        _task(date(2026, 10, 1), status="completed"),
    ]
    buckets = stats_service.daily_completion(tasks, days=3, today=TODAY)

    assert [b["start"] for b in buckets] == ["2026-10-17", "2026-10-18", "2026-10-19"]
    assert buckets[0]["total"] == 0 and buckets[0]["completion_rate"] == 0
    assert buckets[1]["completion_rate"] == 100
    assert buckets[2] == {
        "label": "Oct 19",
        "start": "2026-10-19",
        "end": "2026-10-19",
        "total": 2,
        "completed": 1,
        "completion_rate": 50,
    }


def test_weekly_completion_uses_full_sunday_weeks():
    tasks = [
        _task(date(2026, 10, 15), status="completed"),
        _task(date(2026, 10, 16)),
        _task(date(2026, 10, 18), status="completed"),
        _task(date(2026, 10, 21), status="completed"),
        # Later this week, still counted
        _task(date(2026, 10, 23), status="completed"),
        _task(date(2026, 10, 25)),
    ]
    buckets = stats_service.weekly_completion(tasks, today=date(2026, 10, 21))

    assert [(b["start"], b["end"]) for b in buckets] == [
        ("2026-09-27", "2026-10-03"),
        ("2026-10-04", "2026-10-10"),
        ("2026-10-11", "2026-10-17"),
        ("2026-10-18", "2026-10-24"),
    ]
    assert buckets[-1]["label"] == "Oct 18 - Oct 24"
    assert buckets[2]["total"] == 2 and buckets[2]["completed"] == 1
    assert buckets[3]["total"] == 3 and buckets[3]["completion_rate"] == 100
    assert buckets[0]["total"] == 0 and buckets[0]["completion_rate"] == 0


def test_weekly_completion_on_a_sunday():
    buckets = stats_service.weekly_completion([], weeks=2, today=date(2026, 10, 18))
    assert [(b["start"], b["end"]) for b in buckets] == [
        ("2026-10-11", "2026-10-17"),
        ("2026-10-18", "2026-10-24"),
    ]


def test_summary_counts_overdue_and_groups():
    now = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)
    tasks = [
        _task(date(2026, 10, 18), category="work", priority="high"),
        _task(date(2026, 10, 18), status="completed", category="work"),
        _task(date(2026, 10, 20), category="personal", priority="low"),
    ]
    summary = stats_service.summarize(tasks, now=now)

    assert summary["total"] == 3
    assert summary["completed"] == 1
    assert summary["pending"] == 2
    assert summary["overdue"] == 1
    assert summary["completion_rate"] == 33
    assert summary["by_category"] == [
        {"category": "work", "total": 2, "completed": 1, "completion_rate": 50},
        {"category": "personal", "total": 1, "completed": 0, "completion_rate": 0},
    ]
    assert summary["by_priority"] == [
        {"priority": "high", "count": 1, "percentage": 33},
        {"priority": "medium", "count": 1, "percentage": 33},
        {"priority": "low", "count": 1, "percentage": 33},
    ]


def test_summary_today_completion():
    now = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)
    tasks = [
        _task(TODAY, hour=8, status="completed"),
        _task(TODAY, hour=9, status="completed"),
        _task(TODAY, hour=18),
        _task(date(2026, 10, 20), status="completed"),
    ]
    summary = stats_service.summarize(tasks, now=now)

    assert summary["today_total"] == 3
    assert summary["today_completed"] == 2
    assert summary["today_completion_rate"] == 67


def test_summary_of_nothing():
    summary = stats_service.summarize([])
    assert summary["completion_rate"] == 0
    assert summary["today_completion_rate"] == 0
    assert summary["by_category"] == []
    assert [p["count"] for p in summary["by_priority"]] == [0, 0, 0]
    assert [p["percentage"] for p in summary["by_priority"]] == [0, 0, 0]
