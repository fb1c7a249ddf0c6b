"""Test doubles shared across the suite."""

from datetime import datetime, timedelta, timezone

TEST_SECRET = "test-secret-key-not-for-production"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.welcomed: list[tuple[int, str, str]] = []
        self.staff_notices: list[tuple[int, str, str, str]] = []

    async def send_welcome(self, user_id: int, name: str, account_kind: str) -> None:
        self.welcomed.append((user_id, name, account_kind))

    async def send_staff_credentials(
        self, user_id: int, name: str, username: str, role: str
    ) -> None:
        self.staff_notices.append((user_id, name, username, role))


class FailingNotifier:
    async def send_welcome(self, user_id: int, name: str, account_kind: str) -> None:
        raise ConnectionError("notification service down")

    async def send_staff_credentials(
        self, user_id: int, name: str, username: str, role: str
    ) -> None:
        raise ConnectionError("notification service down")


class RecordingSms:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send_code(self, phone: str, code: str) -> None:
        self.sent.append((phone, code))

    def last_code(self, phone: str) -> str:
        return [code for p, code in self.sent if p == phone][-1]


class FailingSms:
    async def send_code(self, phone: str, code: str) -> None:
        raise TimeoutError("SMS provider timed out")
