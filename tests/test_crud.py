"""
Store and service-layer tests against the seeded in-memory database
"""
import pytest
from datetime import datetime, timedelta, timezone

from flowday import crud, database
from flowday.features.reminders import InAppMessages, ReminderScheduler
from flowday.services import category_service, stats_service, task_service

from conftest import FakeHost


async def _task_titled(title):
    [task] = await crud.get_tasks_filtered(query=title)
    return task


@pytest.fixture()
def reminders(live_timers):
    s = ReminderScheduler(live_timers, FakeHost(), InAppMessages(), clock=live_timers.clock)
    yield s
    s.teardown()


def test_session_requires_initialized_database():
    with pytest.raises(RuntimeError):
        database.session()


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_seeded_tasks(db):
    tasks = await crud.get_tasks()
    assert len(tasks) == 7
    assert all(t.due_date.tzinfo is not None for t in tasks)
    # Earliest due date first
    assert tasks[0].title == "Grocery shopping"


@pytest.mark.asyncio
async def test_filters(db):
    assert len(await crud.get_tasks_filtered(status="pending")) == 5
    assert len(await crud.get_tasks_filtered(status="completed")) == 2
    assert len(await crud.get_tasks_filtered(status="all")) == 7
    assert len(await crud.get_tasks_filtered(categories=["WORK"])) == 2
    assert len(await crud.get_tasks_filtered(priority="high")) == 3
    assert len(await crud.get_tasks_filtered(query="appointment")) == 1
    assert len(await crud.get_tasks_filtered(limit=2)) == 2


@pytest.mark.asyncio
async def test_multi_category_and_tag_filters(db):
    assert len(await crud.get_tasks_filtered(categories=["work", "health"])) == 3
    assert len(await crud.get_tasks_filtered(tags=["planning"])) == 2
    assert len(await crud.get_tasks_filtered(tags=["planning", "phone"])) == 3
    assert len(await crud.get_tasks_filtered(tags=["errands"], status="pending")) == 1
    assert len(await crud.get_tasks_filtered(categories=["personal"], tags=["errands"])) == 2
    assert await crud.get_tasks_filtered(tags=["nope"]) == []

    # Limit applies to tag matches, not to the rows before tag filtering
    [first] = await crud.get_tasks_filtered(tags=["planning"], limit=1)
    assert first.title == "Review quarterly goals"


@pytest.mark.asyncio
async def test_tags_round_trip(db):
    task = await crud.create_task("Renew passport", tags=["errands", "travel"])
    assert task.tags == ["errands", "travel"]

    updated = await crud.update_task(task.id, tags=["travel"])
    assert updated.tags == ["travel"]
    assert (await crud.get_task(task.id)).tags == ["travel"]


@pytest.mark.asyncio
async def test_tag_counts_only_count_open_tasks(db):
    counts = {row["tag"]: row["count"] for row in await task_service.tag_counts()}
    assert counts == {
        "bills": 1,
        "books": 1,
        "errands": 1,
        "fitness": 0,
        "phone": 1,
        "planning": 2,
        "presentation": 1,
        "q4": 1,
    }
    assert [row["tag"] for row in await crud.get_tag_counts()] == sorted(counts)


@pytest.mark.asyncio
async def test_due_range_filter(db):
    now = datetime.now(timezone.utc)
    upcoming = await crud.get_tasks_filtered(due_from=now, due_to=now + timedelta(hours=12))
    assert [t.title for t in upcoming] == ["Review quarterly goals", "Read two chapters"]


@pytest.mark.asyncio
async def test_tasks_without_due_date_sort_last(db):
    await crud.create_task("Someday")
    tasks = await crud.get_tasks()
    assert tasks[-1].title == "Someday"
    assert tasks[-1].due_date is None


@pytest.mark.asyncio
async def test_status_change_tracks_completed_at(db):
    task = await crud.create_task("Draft newsletter", category="work")
    assert task.completed_at is None

    done = await crud.update_task(task.id, status="completed")
    assert done.completed_at is not None

    reopened = await crud.update_task(task.id, status="pending")
    assert reopened.completed_at is None


@pytest.mark.asyncio
async def test_partial_update_keeps_other_fields(db):
    task = await crud.create_task("Draft newsletter", description="v1", priority="high")
    updated = await crud.update_task(task.id, title="Draft newsletter v2")

    assert updated.title == "Draft newsletter v2"
    assert updated.description == "v1"
    assert updated.priority == "high"


@pytest.mark.asyncio
async def test_missing_task(db):
    assert await crud.get_task(999) is None
    assert await crud.update_task(999, title="x") is None
    assert await crud.delete_task(999) is False


@pytest.mark.asyncio
async def test_tasks_needing_reminders(db):
    titles = {t.title for t in await crud.get_tasks_needing_reminders()}
    assert titles == {
        "Review quarterly goals",
        "Call the dentist",
        "Prepare sprint demo",
        "Read two chapters",
        "Pay electricity bill",
    }


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_categories(db):
    names = [c.name for c in await category_service.list_categories()]
    assert names == ["work", "personal", "health", "learning"]

    created = await category_service.create_category("  errands ", color="#f59e0b")
    assert created.name == "errands"
    assert await category_service.create_category("work") is None


@pytest.mark.asyncio
async def test_category_rename_conflict(db):
    work = (await crud.get_categories())[0]
    with pytest.raises(ValueError):
        await crud.update_category(work.id, name="personal")


@pytest.mark.asyncio
async def test_delete_category(db):
    health = (await crud.get_categories())[2]
    assert await category_service.delete_category(health.id) is True
    assert await category_service.get_category(health.id) is None


# ---------------------------------------------------------------------------
# Daily stats
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_daily_stats(db):
    rows = await stats_service.list_daily_stats()
    assert [r.date for r in rows][0] == "2026-10-12"
    assert len(rows) == 5

    row = await stats_service.get_daily_stats("2026-10-14")
    assert row.focus_minutes == 180

    assert await stats_service.create_daily_stats("2026-10-14", total=1) is None
    created = await stats_service.create_daily_stats("2026-10-17", total=2, completed=1, pending=1)
    assert created.focus_minutes == 0

    updated = await stats_service.update_daily_stats("2026-10-17", focus_minutes=45, total=None)
    assert updated.focus_minutes == 45
    assert updated.total == 2

    assert await stats_service.delete_daily_stats("2026-10-17") is True
    assert await stats_service.get_daily_stats("2026-10-17") is None


# ---------------------------------------------------------------------------
# Task service + reminders
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_sync_reminders_arms_future_reminders_once(db, reminders):
    assert await task_service.sync_reminders(reminders) == 4
    assert await task_service.sync_reminders(reminders) == 0

    overdue = await _task_titled("electricity")
    assert not reminders.is_scheduled(overdue.id)


@pytest.mark.asyncio
async def test_create_with_reminder_arms_timer(db, reminders, live_timers):
    due = live_timers.now + timedelta(hours=2)
    task = await task_service.create_task("Dentist follow-up", reminders=reminders, due_date=due, reminder="1hour")

    assert reminders.is_scheduled(task.id)
    [handle] = live_timers.active
    assert live_timers.delay_of(handle) == task.due_date - timedelta(hours=1) - live_timers.now


@pytest.mark.asyncio
async def test_completing_cancels_and_reopening_rearms(db, reminders):
    await task_service.sync_reminders(reminders)
    task = await _task_titled("quarterly")
    assert reminders.is_scheduled(task.id)

    done = await task_service.complete_task(task.id, reminders=reminders)
    assert done.status == "completed"
    assert not reminders.is_scheduled(task.id)

    await task_service.reopen_task(task.id, reminders=reminders)
    assert reminders.is_scheduled(task.id)

    toggled = await task_service.toggle_task(task.id, reminders=reminders)
    assert toggled.status == "completed"
    assert not reminders.is_scheduled(task.id)


@pytest.mark.asyncio
async def test_moving_due_date_into_past_cancels(db, reminders, live_timers):
    await task_service.sync_reminders(reminders)
    task = await _task_titled("Read two")

    await task_service.update_task(task.id, reminders=reminders, due_date=live_timers.now + timedelta(minutes=30))
    assert not reminders.is_scheduled(task.id)


@pytest.mark.asyncio
async def test_clearing_reminder_cancels(db, reminders):
    await task_service.sync_reminders(reminders)
    task = await _task_titled("dentist")

    await task_service.update_task(task.id, reminders=reminders, reminder="none")
    assert not reminders.is_scheduled(task.id)


@pytest.mark.asyncio
async def test_delete_cancels_reminder(db, reminders):
    await task_service.sync_reminders(reminders)
    task = await _task_titled("sprint demo")

    assert await task_service.delete_task(task.id, reminders=reminders) is True
    assert not reminders.is_scheduled(task.id)
    assert await task_service.toggle_task(task.id, reminders=reminders) is None
