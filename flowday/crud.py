import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Sequence
from sqlalchemy import select, or_, func
from sqlalchemy.exc import IntegrityError
from flowday import database
from flowday.models import models as db

logger = logging.getLogger("crud")

_UNSET: Any = object()


# --- Generic DB helpers ------------------------------------------------------

async def _get_or_none(session, model, id_):
    obj = await session.get(model, id_)
    if not obj:
        logger.warning("%s with id=%s not found.", model.__name__, id_)
    return obj


async def _commit_refresh(session, obj):
    await session.commit()
    await session.refresh(obj)
    return obj


def _apply(obj, values: Dict[str, Any]) -> None:
    for key, value in values.items():
        if value is not _UNSET:
            setattr(obj, key, value)


# --- Task Operations ---------------------------------------------------------

async def create_task(
    title: str,
    *,
    description: Optional[str] = None,
    priority: str = "medium",
    category: str = "personal",
    due_date: Optional[datetime] = None,
    reminder: str = "none",
    status: str = "pending",
    tags: Optional[Sequence[str]] = None,
) -> db.Task:
    async with database.session() as dbs:
        task = db.Task(
            title=title,
            description=description,
            priority=priority,
            category=category,
            due_date=due_date,
            reminder=reminder,
            status=status,
            tags=list(tags or []),
            completed_at=datetime.now(timezone.utc) if status == "completed" else None,
        )
        dbs.add(task)
        await _commit_refresh(dbs, task)
        logger.info("Created task %s", task.id)
        return task


async def get_task(task_id: int) -> Optional[db.Task]:
    async with database.session() as dbs:
        return await _get_or_none(dbs, db.Task, task_id)


async def get_tasks_filtered(
    *,
    status: Optional[str] = None,
    categories: Optional[Sequence[str]] = None,
    tags: Optional[Sequence[str]] = None,
    priority: Optional[str] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
    query: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[db.Task]:
    """Tasks matching every given filter.

    ``categories`` and ``tags`` match any of their values; a task passes the
    tag filter when it carries at least one of the requested tags.
    """
    st = (status or "").strip().lower() or None
    if st == "all":
        st = None
    q = (query or "").strip().lower()
    cats = [c.strip().lower() for c in categories or [] if c and c.strip()]
    wanted_tags = {t.strip() for t in tags or [] if t and t.strip()}

    stmt = select(db.Task)
    if st:
        stmt = stmt.where(db.Task.status == st)
    if cats:
        stmt = stmt.where(func.lower(db.Task.category).in_(cats))
    if priority:
        stmt = stmt.where(db.Task.priority == priority)
    if due_from is not None:
        stmt = stmt.where(db.Task.due_date >= due_from)
    if due_to is not None:
        stmt = stmt.where(db.Task.due_date < due_to)
    if q:
        stmt = stmt.where(
            or_(
                func.lower(db.Task.title).like(f"%{q}%"),
                func.lower(db.Task.description).like(f"%{q}%"),
            )
        )
    # Tasks without a due date sort last
    stmt = stmt.order_by(db.Task.due_date.is_(None), db.Task.due_date, db.Task.id)
    # Tags live in a JSON list, so the tag filter and any limit run after the query
    if isinstance(limit, int) and limit > 0 and not wanted_tags:
        stmt = stmt.limit(limit)

    async with database.session() as dbs:
        result = await dbs.execute(stmt)
        tasks = list(result.scalars())

    if wanted_tags:
        tasks = [t for t in tasks if wanted_tags.intersection(t.tags or [])]
        if isinstance(limit, int) and limit > 0:
            tasks = tasks[:limit]

    logger.info(
        "get_tasks_filtered: filters={status:%s,categories:%s,tags:%s,priority:%s,dueFrom:%s,dueTo:%s,query:%s,limit:%s} -> %d result(s)",
        st,
        cats or None,
        sorted(wanted_tags) or None,
        priority,
        due_from,
        due_to,
        q or None,
        limit,
        len(tasks),
    )
    return tasks


async def get_tasks() -> List[db.Task]:
    return await get_tasks_filtered()


async def update_task(
    task_id: int,
    *,
    title: Any = _UNSET,
    description: Any = _UNSET,
    priority: Any = _UNSET,
    category: Any = _UNSET,
    status: Any = _UNSET,
    due_date: Any = _UNSET,
    reminder: Any = _UNSET,
    tags: Any = _UNSET,
) -> Optional[db.Task]:
    """Partially update a task. Only keyword arguments that were passed are applied."""
    async with database.session() as dbs:
        task = await _get_or_none(dbs, db.Task, task_id)
        if not task:
            return None
        if status is not _UNSET and status != task.status:
            task.completed_at = datetime.now(timezone.utc) if status == "completed" else None
        _apply(
            task,
            {
                "title": title,
                "description": description,
                "priority": priority,
                "category": category,
                "status": status,
                "due_date": due_date,
                "reminder": reminder,
                "tags": tags if tags is _UNSET else list(tags or []),
            },
        )
        await _commit_refresh(dbs, task)
        logger.info("Updated task %s", task.id)
        return task


async def delete_task(task_id: int) -> bool:
    async with database.session() as dbs:
        task = await _get_or_none(dbs, db.Task, task_id)
        if not task:
            return False
        await dbs.delete(task)
        await dbs.commit()
        logger.info("Deleted task %s", task_id)
        return True


async def get_tasks_needing_reminders() -> List[db.Task]:
    """Pending tasks that have both a due date and a reminder offset."""
    async with database.session() as dbs:
        stmt = (
            select(db.Task)
            .where(db.Task.status == "pending")
            .where(db.Task.reminder != "none")
            .where(db.Task.due_date.isnot(None))
        )
        result = await dbs.execute(stmt)
        tasks = list(result.scalars())
        logger.debug("Found %d tasks with reminders", len(tasks))
        return tasks


async def get_tag_counts() -> List[Dict[str, Any]]:
    """Every tag in use with its number of open tasks, sorted by tag."""
    counts: Dict[str, int] = {}
    for task in await get_tasks():
        for tag in task.tags or []:
            counts.setdefault(tag, 0)
            if task.status != "completed":
                counts[tag] += 1
    return [{"tag": tag, "count": counts[tag]} for tag in sorted(counts)]


# --- Category Operations -----------------------------------------------------

async def get_categories() -> List[db.Category]:
    async with database.session() as dbs:
        result = await dbs.execute(select(db.Category).order_by(db.Category.id))
        return list(result.scalars())


async def get_category(category_id: int) -> Optional[db.Category]:
    async with database.session() as dbs:
        return await _get_or_none(dbs, db.Category, category_id)


async def create_category(name: str, *, color: str = "#6366f1", icon: Optional[str] = None) -> Optional[db.Category]:
    """Create a category. Returns None when the name is already taken."""
    async with database.session() as dbs:
        category = db.Category(name=name, color=color, icon=icon)
        dbs.add(category)
        try:
            await _commit_refresh(dbs, category)
        except IntegrityError:
            await dbs.rollback()
            logger.warning("Category %r already exists", name)
            return None
        logger.info("Created category %s (%s)", category.id, name)
        return category


async def update_category(
    category_id: int,
    *,
    name: Any = _UNSET,
    color: Any = _UNSET,
    icon: Any = _UNSET,
) -> Optional[db.Category]:
    async with database.session() as dbs:
        category = await _get_or_none(dbs, db.Category, category_id)
        if not category:
            return None
        _apply(category, {"name": name, "color": color, "icon": icon})
        try:
            await _commit_refresh(dbs, category)
        except IntegrityError as e:
            await dbs.rollback()
            raise ValueError(f"Category '{name}' already exists") from e
        logger.info("Updated category %s", category.id)
        return category


async def delete_category(category_id: int) -> bool:
    async with database.session() as dbs:
        category = await _get_or_none(dbs, db.Category, category_id)
        if not category:
            return False
        await dbs.delete(category)
        await dbs.commit()
        logger.info("Deleted category %s", category_id)
        return True


# --- Daily Stats Operations --------------------------------------------------

async def _get_stats_row(dbs, date: str) -> Optional[db.DailyStats]:
    result = await dbs.execute(select(db.DailyStats).where(db.DailyStats.date == date))
    row = result.scalar_one_or_none()
    if not row:
        logger.warning("DailyStats for %s not found.", date)
    return row


async def get_daily_stats() -> List[db.DailyStats]:
    async with database.session() as dbs:
        result = await dbs.execute(select(db.DailyStats).order_by(db.DailyStats.date))
        return list(result.scalars())


async def get_daily_stats_by_date(date: str) -> Optional[db.DailyStats]:
    async with database.session() as dbs:
        return await _get_stats_row(dbs, date)


async def create_daily_stats(date: str, **values: int) -> Optional[db.DailyStats]:
    """Create a stats row for a day. Returns None when the day already has one."""
    async with database.session() as dbs:
        row = db.DailyStats(date=date, **values)
        dbs.add(row)
        try:
            await _commit_refresh(dbs, row)
        except IntegrityError:
            await dbs.rollback()
            logger.warning("DailyStats for %s already exists", date)
            return None
        logger.info("Created daily stats for %s", date)
        return row


async def update_daily_stats(date: str, **values: Optional[int]) -> Optional[db.DailyStats]:
    async with database.session() as dbs:
        row = await _get_stats_row(dbs, date)
        if not row:
            return None
        _apply(row, {k: v for k, v in values.items() if v is not None})
        await _commit_refresh(dbs, row)
        logger.info("Updated daily stats for %s", date)
        return row


async def delete_daily_stats(date: str) -> bool:
    async with database.session() as dbs:
        row = await _get_stats_row(dbs, date)
        if not row:
            return False
        await dbs.delete(row)
        await dbs.commit()
        logger.info("Deleted daily stats for %s", date)
        return True
