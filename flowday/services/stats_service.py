import calendar
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from flowday import crud
from flowday.services.common import simulate_latency, day_key, ensure_utc

logger = logging.getLogger("services.stats")

# Weeks start on Sunday
_CALENDAR = calendar.Calendar(firstweekday=calendar.SUNDAY)


# ---------------------------------------------------------------------------
# Daily stats records
# ---------------------------------------------------------------------------

async def list_daily_stats() -> List:
    await simulate_latency(1.2)
    return await crud.get_daily_stats()


async def get_daily_stats(date_str: str):
    await simulate_latency(0.8)
    return await crud.get_daily_stats_by_date(date_str)


async def create_daily_stats(date_str: str, **values: int):
    await simulate_latency(1.4)
    return await crud.create_daily_stats(date_str, **values)


async def update_daily_stats(date_str: str, **values):
    await simulate_latency(1.2)
    return await crud.update_daily_stats(date_str, **values)


async def delete_daily_stats(date_str: str) -> bool:
    await simulate_latency()
    return await crud.delete_daily_stats(date_str)


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------

def month_grid(year: int, month: int) -> List[List[date]]:
    """Sunday-first weeks covering the month, padded with adjacent days."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")
    if not 1 <= year <= 9999:
        raise ValueError(f"year must be in 1..9999, got {year}")
    try:
        # The padding days of 0001-01 and 9999-12 fall outside the date range
        return _CALENDAR.monthdatescalendar(year, month)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"calendar for {year:04d}-{month:02d} is out of range") from e


def bucket_by_day(tasks: Iterable) -> Dict[str, List]:
    buckets: Dict[str, List] = {}
    for t in tasks:
        key = day_key(getattr(t, "due_date", None))
        if key:
            buckets.setdefault(key, []).append(t)
    return buckets


def build_calendar_month(year: int, month: int, tasks: Iterable, *, today: Optional[date] = None) -> Dict:
    today = today or datetime.now(timezone.utc).date()
    buckets = bucket_by_day(tasks)
    weeks = []
    for week in month_grid(year, month):
        weeks.append(
            [
                {
                    "date": d.isoformat(),
                    "in_month": d.month == month,
                    "is_today": d == today,
                    "tasks": buckets.get(d.isoformat(), []),
                }
                for d in week
            ]
        )
    return {"year": year, "month": month, "weeks": weeks}


async def calendar_month(year: int, month: int) -> Dict:
    grid = month_grid(year, month)
    start = ensure_utc(grid[0][0])
    try:
        end = ensure_utc(grid[-1][-1] + timedelta(days=1))
    except OverflowError:
        end = None
    tasks = await crud.get_tasks_filtered(due_from=start, due_to=end)
    await simulate_latency()
    return build_calendar_month(year, month, tasks)


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

def _rate(completed: int, total: int) -> int:
    return round(completed / total * 100) if total > 0 else 0


def _bucket(label: str, start: date, end: date, tasks: List) -> Dict:
    completed = sum(1 for t in tasks if t.status == "completed")
    return {
        "label": label,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "total": len(tasks),
        "completed": completed,
        "completion_rate": _rate(completed, len(tasks)),
    }


def daily_completion(tasks: Iterable, days: int = 7, *, today: Optional[date] = None) -> List[Dict]:
    """Completion per due day for the last ``days`` days ending today."""
    today = today or datetime.now(timezone.utc).date()
    buckets = bucket_by_day(tasks)
    result = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        result.append(_bucket(day.strftime("%b %d"), day, day, buckets.get(day.isoformat(), [])))
    return result


def weekly_completion(tasks: Iterable, weeks: int = 4, *, today: Optional[date] = None) -> List[Dict]:
    """Completion per full Sunday-Saturday week for the last ``weeks`` weeks, oldest first.

    The current week runs to Saturday, so tasks due later this week count.
    """
    today = today or datetime.now(timezone.utc).date()
    buckets = bucket_by_day(tasks)
    this_week = today - timedelta(days=(today.weekday() + 1) % 7)

    result = []
    for offset in range(weeks - 1, -1, -1):
        start = this_week - timedelta(weeks=offset)
        end = start + timedelta(days=6)
        week_tasks: List = []
        for i in range(7):
            week_tasks.extend(buckets.get((start + timedelta(days=i)).isoformat(), []))
        label = f"{start.strftime('%b %d')} - {end.strftime('%b %d')}"
        result.append(_bucket(label, start, end, week_tasks))
    return result


def _category_breakdown(tasks: List) -> List[Dict]:
    stats: Dict[str, Dict[str, int]] = {}
    for t in tasks:
        if not t.category:
            continue
        entry = stats.setdefault(t.category, {"total": 0, "completed": 0})
        entry["total"] += 1
        if t.status == "completed":
            entry["completed"] += 1
    return [
        {"category": name, **entry, "completion_rate": _rate(entry["completed"], entry["total"])}
        for name, entry in stats.items()
    ]


def _priority_breakdown(tasks: List) -> List[Dict]:
    counts = {"high": 0, "medium": 0, "low": 0}
    for t in tasks:
        if t.priority in counts:
            counts[t.priority] += 1
    return [
        {"priority": priority, "count": count, "percentage": _rate(count, len(tasks))}
        for priority, count in counts.items()
    ]


def summarize(tasks: Iterable, *, now: Optional[datetime] = None) -> Dict:
    now = ensure_utc(now) or datetime.now(timezone.utc)
    tasks = list(tasks)
    completed = sum(1 for t in tasks if t.status == "completed")
    overdue = sum(
        1 for t in tasks
        if t.status != "completed" and t.due_date is not None and ensure_utc(t.due_date) < now
    )
    due_today = bucket_by_day(tasks).get(now.date().isoformat(), [])
    today_completed = sum(1 for t in due_today if t.status == "completed")
    return {
        "total": len(tasks),
        "completed": completed,
        "pending": len(tasks) - completed,
        "overdue": overdue,
        "completion_rate": _rate(completed, len(tasks)),
        "today_total": len(due_today),
        "today_completed": today_completed,
        "today_completion_rate": _rate(today_completed, len(due_today)),
        "by_category": _category_breakdown(tasks),
        "by_priority": _priority_breakdown(tasks),
    }


async def analytics_daily(days: int = 7) -> List[Dict]:
    tasks = await crud.get_tasks()
    await simulate_latency()
    return daily_completion(tasks, days)


async def analytics_weekly(weeks: int = 4) -> List[Dict]:
    tasks = await crud.get_tasks()
    await simulate_latency()
    return weekly_completion(tasks, weeks)


async def analytics_summary() -> Dict:
    tasks = await crud.get_tasks()
    await simulate_latency()
    return summarize(tasks)
