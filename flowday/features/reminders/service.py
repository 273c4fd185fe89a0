"""
Reminder Service: per-task reminder timers and the periodic upcoming-task check
"""
import inspect
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol

from flowday.features.reminders.messages import InAppMessages
from flowday.features.reminders.timers import TimerBackend, TimerHandle, utcnow
from flowday.schemas import PermissionState

logger = logging.getLogger("reminders")

NOTIFICATION_TITLE = "FlowDay Reminder"
DEFAULT_CHECK_INTERVAL = timedelta(seconds=60)

REMINDER_OFFSET_MINUTES: Dict[str, int] = {
    "5min": 5,
    "15min": 15,
    "30min": 30,
    "1hour": 60,
    "2hours": 120,
    "1day": 1440,
}


class NotificationHost(Protocol):
    def is_supported(self) -> bool:
        ...

    def permission_state(self) -> PermissionState:
        ...

    async def request_permission(self) -> PermissionState:
        ...

    async def show(self, title: str, body: str, *, tag: Optional[str] = None, require_interaction: bool = False) -> None:
        ...


def get_reminder_minutes(reminder: Any) -> int:
    """Offset in minutes for a reminder key; unknown keys map to 0."""
    key = getattr(reminder, "value", reminder)
    return REMINDER_OFFSET_MINUTES.get(str(key), 0)


def reminder_fire_time(task) -> Optional[datetime]:
    """When the reminder for ``task`` should fire, or None if it has no reminder."""
    reminder = getattr(task.reminder, "value", task.reminder)
    if not reminder or reminder == "none" or not task.due_date:
        return None
    return task.due_date - timedelta(minutes=get_reminder_minutes(reminder))


def format_due_message(title: str, minutes_until_due: int) -> str:
    message = f'Task "{title}" is due'
    if minutes_until_due > 0:
        message += f" in {minutes_until_due} minutes"
    elif minutes_until_due == 0:
        message += " now"
    else:
        message += f" {abs(minutes_until_due)} minutes ago"
    return message


class ReminderScheduler:
    """Owns the pending reminder timers for tasks.

    One instance is created by the application's lifespan and torn down on
    shutdown. Everything runs on the event loop thread, so a cancel issued
    before a timer fires always wins.
    """

    def __init__(
        self,
        timers: TimerBackend,
        host: NotificationHost,
        messages: InAppMessages,
        *,
        clock: Callable[[], datetime] = utcnow,
        check_interval: timedelta = DEFAULT_CHECK_INTERVAL,
    ) -> None:
        self.timers = timers
        self.host = host
        self.messages = messages
        self.clock = clock
        self.check_interval = check_interval

        self.permission: PermissionState = PermissionState.default
        self._pending: Dict[Any, TimerHandle] = {}
        self._poll: Optional[TimerHandle] = None
        self._task_checker: Optional[Callable[[], Any]] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        try:
            if not self.host.is_supported():
                logger.info("Native notifications unavailable; in-app messages only")
                return
            self.permission = self.host.permission_state()
        except Exception as e:
            logger.error("Failed to read notification capability: %s", e)
            return
        self.start_periodic_check()
        logger.info("Reminder scheduler initialized (permission=%s)", self.permission.value)

    def teardown(self) -> None:
        if self._poll is not None:
            self.timers.cancel(self._poll)
            self._poll = None

        for handle in self._pending.values():
            self.timers.cancel(handle)
        count = len(self._pending)
        self._pending.clear()
        if count:
            logger.info("Cancelled %d pending reminder(s)", count)

    # ------------------------------------------------------------------
    # Permission
    # ------------------------------------------------------------------
    async def request_permission(self) -> bool:
        if not self.host.is_supported():
            self.messages.error("Push notifications are not supported")
            return False

        try:
            permission = await self.host.request_permission()
        except Exception as e:
            logger.error("Notification permission request failed: %s", e)
            self.messages.error("Failed to request notification permission")
            return False

        self.permission = PermissionState(permission)
        if self.permission == PermissionState.granted:
            self.messages.success("Notifications enabled successfully!")
            self.start_periodic_check()
            return True
        if self.permission == PermissionState.denied:
            self.messages.error("Notifications blocked. Please enable them on your notification receiver.")
            return False
        self.messages.warning("Notification permission not granted")
        return False

    def get_permission_status(self) -> PermissionState:
        return self.permission

    def is_supported(self) -> bool:
        try:
            return bool(self.host.is_supported())
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Per-task reminders
    # ------------------------------------------------------------------
    def schedule_reminder(self, task) -> bool:
        """Arm the reminder for ``task``. Returns True if a timer was armed.

        Any timer already pending for the same task is cancelled first.
        """
        fire_at = reminder_fire_time(task)
        if fire_at is None:
            return False

        self.cancel_reminder(task.id)

        now = self.clock()
        if fire_at <= now:
            logger.debug("Reminder for task %s already passed (%s), dropping", task.id, fire_at.isoformat())
            return False

        self._pending[task.id] = self.timers.call_later(fire_at - now, self._fire, task)
        logger.info("Scheduled reminder for task %s at %s", task.id, fire_at.isoformat())
        return True

    def cancel_reminder(self, task_id) -> bool:
        handle = self._pending.pop(task_id, None)
        if handle is None:
            return False
        self.timers.cancel(handle)
        logger.info("Cancelled reminder for task %s", task_id)
        return True

    def is_scheduled(self, task_id) -> bool:
        return task_id in self._pending

    def pending_task_ids(self) -> List[Any]:
        return list(self._pending)

    async def _fire(self, task) -> None:
        self._pending.pop(task.id, None)
        await self.show_task_reminder(task)

    async def show_task_reminder(self, task) -> None:
        minutes_until_due = round((task.due_date - self.clock()).total_seconds() / 60)
        message = format_due_message(task.title, minutes_until_due)

        if self.permission == PermissionState.granted:
            try:
                await self.host.show(
                    NOTIFICATION_TITLE,
                    message,
                    tag=f"task-{task.id}",
                    require_interaction=True,
                )
            except Exception as e:
                logger.error("Failed to show notification for task %s: %s", task.id, e)

        if minutes_until_due <= 0:
            self.messages.error(message, duration_ms=10000)
        elif minutes_until_due <= 5:
            self.messages.warning(message, duration_ms=8000)
        else:
            self.messages.info(message, duration_ms=5000)

    # ------------------------------------------------------------------
    # Periodic upcoming-task check
    # ------------------------------------------------------------------
    def set_task_checker(self, callback: Optional[Callable[[], Any]]) -> None:
        self._task_checker = callback

    def start_periodic_check(self) -> None:
        if self._poll is not None:
            self.timers.cancel(self._poll)
        self._poll = self.timers.call_every(self.check_interval, self.check_upcoming_tasks)

    @property
    def periodic_check_active(self) -> bool:
        return self._poll is not None

    async def check_upcoming_tasks(self) -> None:
        if self._task_checker is None:
            return
        try:
            result = self._task_checker()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("Error in upcoming task check: %s", e)
