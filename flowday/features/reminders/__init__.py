"""
Reminder feature module: per-task reminder timers with native and in-app notifications
"""
from .messages import InAppMessages
from .service import ReminderScheduler, format_due_message, get_reminder_minutes, reminder_fire_time
from .timers import APSchedulerTimers

__all__ = [
    "APSchedulerTimers",
    "InAppMessages",
    "ReminderScheduler",
    "format_due_message",
    "get_reminder_minutes",
    "reminder_fire_time",
]
