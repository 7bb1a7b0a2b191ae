from datetime import datetime, timezone

class SystemClock:
    """Wall-clock time source. Swapped for a fake in tests."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
