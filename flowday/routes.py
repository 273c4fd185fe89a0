import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from flowday import schemas
from flowday.features.reminders import ReminderScheduler
from flowday.services import task_service, category_service, stats_service

logger = logging.getLogger("routes")
router = APIRouter()


def get_reminders(request: Request) -> ReminderScheduler:
    return request.app.state.reminders


def _task_out(task, reminders: Optional[ReminderScheduler]) -> schemas.TaskOut:
    out = schemas.TaskOut.model_validate(task)
    if reminders is not None:
        out.reminder_scheduled = reminders.is_scheduled(task.id)
    return out


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} not found")


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

@router.get("/tasks", response_model=schemas.TaskList, tags=["Tasks"])
async def list_tasks(
    status: schemas.StatusFilter = schemas.StatusFilter.all,
    category: Optional[List[str]] = Query(None, description="Repeat to match any of several categories"),
    tag: Optional[List[str]] = Query(None, description="Repeat to match tasks carrying any of the tags"),
    priority: Optional[schemas.TaskPriority] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
    q: Optional[str] = Query(None, description="Substring match on title or description"),
    limit: Optional[int] = Query(None, ge=1),
    reminders: ReminderScheduler = Depends(get_reminders),
):
    tasks = await task_service.list_tasks(
        status=status.value,
        categories=category,
        tags=tag,
        priority=priority.value if priority else None,
        due_from=due_from,
        due_to=due_to,
        query=q,
        limit=limit,
    )
    return {"count": len(tasks), "tasks": [_task_out(t, reminders) for t in tasks]}


@router.get("/tags", response_model=List[schemas.TagCount], tags=["Tasks"])
async def list_tags():
    return await task_service.tag_counts()


@router.post("/tasks", response_model=schemas.TaskOut, status_code=201, tags=["Tasks"])
async def create_task(payload: schemas.TaskCreate, reminders: ReminderScheduler = Depends(get_reminders)):
    task = await task_service.create_task(
        payload.title,
        reminders=reminders,
        description=payload.description,
        priority=payload.priority.value,
        category=payload.category,
        due_date=payload.due_date,
        reminder=payload.reminder.value,
        tags=payload.tags,
    )
    return _task_out(task, reminders)


@router.get("/tasks/{task_id}", response_model=schemas.TaskOut, tags=["Tasks"])
async def get_task(task_id: int, reminders: ReminderScheduler = Depends(get_reminders)):
    task = await task_service.get_task(task_id)
    if task is None:
        raise _not_found("Task")
    return _task_out(task, reminders)


@router.patch("/tasks/{task_id}", response_model=schemas.TaskOut, tags=["Tasks"])
async def update_task(
    task_id: int,
    payload: schemas.TaskUpdate,
    reminders: ReminderScheduler = Depends(get_reminders),
):
    changes = payload.model_dump(exclude_unset=True)
    # Only description and due_date may be cleared with an explicit null
    changes = {k: v for k, v in changes.items() if v is not None or k in ("description", "due_date")}
    for key in ("priority", "status", "reminder"):
        if key in changes:
            changes[key] = changes[key].value
    task = await task_service.update_task(task_id, reminders=reminders, **changes)
    if task is None:
        raise _not_found("Task")
    return _task_out(task, reminders)


@router.post("/tasks/{task_id}/complete", response_model=schemas.TaskOut, tags=["Tasks"])
async def complete_task(task_id: int, reminders: ReminderScheduler = Depends(get_reminders)):
    task = await task_service.complete_task(task_id, reminders=reminders)
    if task is None:
        raise _not_found("Task")
    return _task_out(task, reminders)


@router.post("/tasks/{task_id}/reopen", response_model=schemas.TaskOut, tags=["Tasks"])
async def reopen_task(task_id: int, reminders: ReminderScheduler = Depends(get_reminders)):
    task = await task_service.reopen_task(task_id, reminders=reminders)
    if task is None:
        raise _not_found("Task")
    return _task_out(task, reminders)


@router.post("/tasks/{task_id}/toggle", response_model=schemas.TaskOut, tags=["Tasks"])
async def toggle_task(task_id: int, reminders: ReminderScheduler = Depends(get_reminders)):
    task = await task_service.toggle_task(task_id, reminders=reminders)
    if task is None:
        raise _not_found("Task")
    return _task_out(task, reminders)


@router.delete("/tasks/{task_id}", status_code=204, tags=["Tasks"])
async def delete_task(task_id: int, reminders: ReminderScheduler = Depends(get_reminders)):
    if not await task_service.delete_task(task_id, reminders=reminders):
        raise _not_found("Task")
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

@router.get("/categories", response_model=List[schemas.CategoryOut], tags=["Categories"])
async def list_categories():
    return await category_service.list_categories()


@router.post("/categories", response_model=schemas.CategoryOut, status_code=201, tags=["Categories"])
async def create_category(payload: schemas.CategoryCreate):
    category = await category_service.create_category(payload.name, color=payload.color, icon=payload.icon)
    if category is None:
        raise HTTPException(status_code=409, detail=f"Category '{payload.name}' already exists")
    return category


@router.get("/categories/{category_id}", response_model=schemas.CategoryOut, tags=["Categories"])
async def get_category(category_id: int):
    category = await category_service.get_category(category_id)
    if category is None:
        raise _not_found("Category")
    return category


@router.patch("/categories/{category_id}", response_model=schemas.CategoryOut, tags=["Categories"])
async def update_category(category_id: int, payload: schemas.CategoryUpdate):
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "icon"}
    try:
        category = await category_service.update_category(category_id, **changes)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if category is None:
        raise _not_found("Category")
    return category


@router.delete("/categories/{category_id}", status_code=204, tags=["Categories"])
async def delete_category(category_id: int):
    if not await category_service.delete_category(category_id):
        raise _not_found("Category")
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Daily stats
# ---------------------------------------------------------------------------

@router.get("/stats/daily", response_model=List[schemas.DailyStatsOut], tags=["Stats"])
async def list_daily_stats():
    return await stats_service.list_daily_stats()


@router.post("/stats/daily", response_model=schemas.DailyStatsOut, status_code=201, tags=["Stats"])
async def create_daily_stats(payload: schemas.DailyStatsCreate):
    values = payload.model_dump(exclude={"date"})
    row = await stats_service.create_daily_stats(payload.date, **values)
    if row is None:
        raise HTTPException(status_code=409, detail=f"Stats for {payload.date} already exist")
    return row


@router.get("/stats/daily/{day}", response_model=schemas.DailyStatsOut, tags=["Stats"])
async def get_daily_stats(day: str):
    row = await stats_service.get_daily_stats(day)
    if row is None:
        raise _not_found("Stats")
    return row


@router.patch("/stats/daily/{day}", response_model=schemas.DailyStatsOut, tags=["Stats"])
async def update_daily_stats(day: str, payload: schemas.DailyStatsUpdate):
    row = await stats_service.update_daily_stats(day, **payload.model_dump(exclude_unset=True))
    if row is None:
        raise _not_found("Stats")
    return row


@router.delete("/stats/daily/{day}", status_code=204, tags=["Stats"])
async def delete_daily_stats(day: str):
    if not await stats_service.delete_daily_stats(day):
        raise _not_found("Stats")
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Calendar & analytics
# ---------------------------------------------------------------------------

@router.get("/calendar/{year}/{month}", response_model=schemas.CalendarMonth, tags=["Calendar"])
async def get_calendar_month(year: int, month: int, reminders: ReminderScheduler = Depends(get_reminders)):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=422, detail="month must be between 1 and 12")
    if not 1 <= year <= 9999:
        raise HTTPException(status_code=422, detail="year must be between 1 and 9999")
    try:
        cal = await stats_service.calendar_month(year, month)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    for week in cal["weeks"]:
        for day in week:
            day["tasks"] = [_task_out(t, reminders) for t in day["tasks"]]
    return cal


@router.get("/analytics/daily", response_model=List[schemas.CompletionBucket], tags=["Analytics"])
async def get_daily_analytics(days: int = Query(7, ge=1, le=90)):
    return await stats_service.analytics_daily(days)


@router.get("/analytics/weekly", response_model=List[schemas.CompletionBucket], tags=["Analytics"])
async def get_weekly_analytics(weeks: int = Query(4, ge=1, le=52)):
    return await stats_service.analytics_weekly(weeks)


@router.get("/analytics/summary", response_model=schemas.AnalyticsSummary, tags=["Analytics"])
async def get_analytics_summary():
    return await stats_service.analytics_summary()


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

@router.get("/notifications/status", response_model=schemas.NotificationStatus, tags=["Notifications"])
async def notification_status(reminders: ReminderScheduler = Depends(get_reminders)):
    return {
        "supported": reminders.is_supported(),
        "permission": reminders.get_permission_status(),
        "pending_reminders": reminders.pending_task_ids(),
        "periodic_check_active": reminders.periodic_check_active,
    }


@router.post("/notifications/permission", response_model=schemas.PermissionResult, tags=["Notifications"])
async def request_notification_permission(reminders: ReminderScheduler = Depends(get_reminders)):
    granted = await reminders.request_permission()
    return {"granted": granted, "permission": reminders.get_permission_status()}


@router.get("/notifications/messages", response_model=List[schemas.InAppMessageOut], tags=["Notifications"])
async def list_messages(
    limit: Optional[int] = Query(None, ge=1),
    reminders: ReminderScheduler = Depends(get_reminders),
):
    return reminders.messages.recent(limit)


@router.delete("/notifications/messages", tags=["Notifications"])
async def clear_messages(reminders: ReminderScheduler = Depends(get_reminders)):
    return {"cleared": reminders.messages.clear()}
