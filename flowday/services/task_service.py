import logging
from typing import Optional, List, Any, Sequence
from datetime import datetime
from flowday import crud
from flowday.features.reminders import ReminderScheduler
from flowday.services.common import simulate_latency, ensure_utc

logger = logging.getLogger("services.task")


def _sync_reminder(reminders: Optional[ReminderScheduler], task) -> None:
    if reminders is None or task is None:
        return
    if task.status == "pending":
        # schedule_reminder cancels any timer already armed for this task
        if not reminders.schedule_reminder(task):
            reminders.cancel_reminder(task.id)
    else:
        reminders.cancel_reminder(task.id)


async def create_task(
    title: str,
    *,
    reminders: Optional[ReminderScheduler] = None,
    description: Optional[str] = None,
    priority: str = "medium",
    category: str = "personal",
    due_date: Optional[datetime] = None,
    reminder: str = "none",
    tags: Optional[Sequence[str]] = None,
):
    await simulate_latency(1.3)
    task = await crud.create_task(
        title,
        description=description,
        priority=priority,
        category=category,
        due_date=ensure_utc(due_date),
        reminder=reminder,
        tags=tags,
    )
    _sync_reminder(reminders, task)
    return task


async def get_task(task_id: int):
    await simulate_latency(0.8)
    return await crud.get_task(task_id)


async def list_tasks(
    *,
    status: Optional[str] = None,
    categories: Optional[Sequence[str]] = None,
    tags: Optional[Sequence[str]] = None,
    priority: Optional[str] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
    query: Optional[str] = None,
    limit: Optional[int] = None,
) -> List:
    await simulate_latency()
    return await crud.get_tasks_filtered(
        status=status,
        categories=categories,
        tags=tags,
        priority=priority,
        due_from=ensure_utc(due_from),
        due_to=ensure_utc(due_to),
        query=query,
        limit=limit,
    )


async def tag_counts() -> List:
    await simulate_latency(0.6)
    return await crud.get_tag_counts()


async def update_task(task_id: int, *, reminders: Optional[ReminderScheduler] = None, **changes: Any):
    await simulate_latency()
    if "due_date" in changes:
        changes["due_date"] = ensure_utc(changes["due_date"])
    task = await crud.update_task(task_id, **changes)
    _sync_reminder(reminders, task)
    return task


async def complete_task(task_id: int, *, reminders: Optional[ReminderScheduler] = None):
    return await update_task(task_id, reminders=reminders, status="completed")


async def reopen_task(task_id: int, *, reminders: Optional[ReminderScheduler] = None):
    return await update_task(task_id, reminders=reminders, status="pending")


async def toggle_task(task_id: int, *, reminders: Optional[ReminderScheduler] = None):
    await simulate_latency(0.5)
    task = await crud.get_task(task_id)
    if task is None:
        return None
    new_status = "pending" if task.status == "completed" else "completed"
    return await update_task(task_id, reminders=reminders, status=new_status)


async def delete_task(task_id: int, *, reminders: Optional[ReminderScheduler] = None) -> bool:
    await simulate_latency(0.8)
    deleted = await crud.delete_task(task_id)
    if deleted and reminders is not None:
        reminders.cancel_reminder(task_id)
    return deleted


async def sync_reminders(reminders: ReminderScheduler) -> int:
    """Arm reminders for pending tasks that do not have a timer yet.

    Registered as the scheduler's periodic task checker.
    """
    tasks = await crud.get_tasks_needing_reminders()
    armed = 0
    for task in tasks:
        if reminders.is_scheduled(task.id):
            continue
        if reminders.schedule_reminder(task):
            armed += 1
    if armed:
        logger.info("Armed %d reminder(s) during sync", armed)
    return armed
