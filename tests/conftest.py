import itertools
import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

# Settings are cached on first use, so the test environment must be fixed before any flowday import
os.environ["SIMULATED_LATENCY_MS"] = "0"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.pop("PUSH_URL", None)
os.environ.pop("PUSH_TOKEN", None)

from flowday import database  # noqa: E402
from flowday.features.reminders import InAppMessages, ReminderScheduler  # noqa: E402
from flowday.schemas import PermissionState  # noqa: E402


class VirtualTimers:
    """Timer backend driven by a virtual clock; nothing fires until advance()."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
        self._timers = {}
        self._ids = itertools.count(1)

    def clock(self):
        return self.now

    def start(self):
        pass

    def shutdown(self):
        pass

    def call_later(self, delay, callback, *args):
        handle = f"once-{next(self._ids)}"
        self._timers[handle] = (self.now + delay, None, callback, args)
        return handle

    def call_every(self, period, callback):
        handle = f"every-{next(self._ids)}"
        self._timers[handle] = (self.now + period, period, callback, ())
        return handle

    def cancel(self, handle):
        self._timers.pop(handle, None)

    @property
    def active(self):
        return list(self._timers)

    def delay_of(self, handle):
        return self._timers[handle][0] - self.now

    async def advance(self, delta):
        target = self.now + delta
        while True:
            due = sorted((entry[0], handle) for handle, entry in self._timers.items() if entry[0] <= target)
            if not due:
                break
            when, handle = due[0]
            _, period, callback, args = self._timers[handle]
            self.now = when
            if period is None:
                del self._timers[handle]
            else:
                self._timers[handle] = (when + period, period, callback, args)
            await callback(*args)
        self.now = target


class FakeHost:
    """Native notification host that records what it was asked to show."""

    def __init__(self, supported=True, answer=PermissionState.granted, initial=PermissionState.default):
        self.supported = supported
        self.answer = answer
        self.initial = initial
        self.shown = []
        self.fail_show = False
        self.fail_request = False

    def is_supported(self):
        return self.supported

    def permission_state(self):
        return self.initial

    async def request_permission(self):
        if self.fail_request:
            raise RuntimeError("receiver unreachable")
        return self.answer

    async def show(self, title, body, *, tag=None, require_interaction=False):
        if self.fail_show:
            raise RuntimeError("receiver rejected notification")
        self.shown.append({"title": title, "body": body, "tag": tag, "require_interaction": require_interaction})


def make_task(id=1, title="Write report", due_in=timedelta(minutes=90), reminder="1hour", now=None, status="pending"):
    now = now or datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
    return SimpleNamespace(
        id=id,
        title=title,
        due_date=(now + due_in) if due_in is not None else None,
        reminder=reminder,
        status=status,
    )


@pytest.fixture()
def timers():
    return VirtualTimers()


@pytest.fixture()
def host():
    return FakeHost()


@pytest.fixture()
def messages(timers):
    return InAppMessages(limit=50, clock=timers.clock)


@pytest.fixture()
def scheduler(timers, host, messages):
    s = ReminderScheduler(timers, host, messages, clock=timers.clock)
    yield s
    s.teardown()


# In-memory store rebuilt from fixtures for each async test that needs it
@pytest_asyncio.fixture()
async def db():
    await database.init_db_async()
    yield database
    await database.shutdown_db_async()


@pytest.fixture()
def live_timers():
    # Seeded due dates are relative to wall-clock time
    return VirtualTimers(start=datetime.now(timezone.utc))


@pytest.fixture()
def client(live_timers, host):
    from flowday.main import create_app

    app = create_app(timers_factory=lambda: live_timers, host=host)
    with TestClient(app) as c:
        yield c
