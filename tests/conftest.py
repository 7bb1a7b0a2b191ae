import logging
import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock
from streamrec.config.models import SchedulerConfig
from streamrec.infrastructure.event_bus import EventBus
from streamrec.infrastructure.persistence import JsonScheduleStore
from streamrec.pipeline.scheduler import RecordingScheduler


class FakeClock:
    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float):
        self.current = self.current + timedelta(seconds=seconds)


class ManualTimer:
    """Stands in for threading.Timer; runs only when the test fires it."""

    def __init__(self, delay: float, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.cancelled or self.fired:
            return
        self.fired = True
        self.callback()


class ManualTimers:
    def __init__(self):
        self.created = []

    def __call__(self, delay, callback):
        timer = ManualTimer(delay, callback)
        self.created.append(timer)
        return timer

    def active(self):
        return [t for t in self.created if not t.cancelled and not t.fired]

    def fire_all(self):
        """Fires armed timers, including ones armed by earlier callbacks, until none remain."""
        while self.active():
            for timer in self.active():
                timer.fire()


@pytest.fixture(autouse=True)
def _restore_streamrec_logger():
    """Undoes setup_logging() side effects on the package logger between tests."""
    logger = logging.getLogger("streamrec")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def timers():
    return ManualTimers()


@pytest.fixture
def store(tmp_path):
    return JsonScheduleStore(tmp_path / "schedules.json")


@pytest.fixture
def capture(tmp_path):
    adapter = MagicMock()
    adapter.launch.side_effect = lambda source, name, duration: tmp_path / "recordings" / f"{name}.mp4"
    return adapter


@pytest.fixture
def transcoder():
    return MagicMock()


@pytest.fixture
def catalog():
    return MagicMock()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def make_scheduler(store, capture, transcoder, catalog, bus, clock, timers):
    def _make(**overrides):
        kwargs = dict(
            config=SchedulerConfig(schedules_path=store.path, safety_margin_seconds=30),
            store=store,
            capture=capture,
            transcoder=transcoder,
            event_bus=bus,
            catalog=catalog,
            clock=clock,
            timer_factory=timers,
        )
        kwargs.update(overrides)
        return RecordingScheduler(**kwargs)
    return _make


@pytest.fixture
def scheduler(make_scheduler):
    return make_scheduler()
