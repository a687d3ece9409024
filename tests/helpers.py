from __future__ import annotations

from datetime import datetime, timedelta


class FakeClock:
    """Manually advanced UTC clock for TTL tests."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class InMemoryKeyring:
    def __init__(self) -> None:
        self.values: dict[tuple[str, str], str] = {}

    def set_password(self, service_name: str, username: str, password: str) -> None:
        self.values[(service_name, username)] = password

    def get_password(self, service_name: str, username: str) -> str | None:
        return self.values.get((service_name, username))

    def delete_password(self, service_name: str, username: str) -> None:
        import keyring.errors

        if (service_name, username) not in self.values:
            raise keyring.errors.PasswordDeleteError("not found")
        del self.values[(service_name, username)]
