"""Typed errors raised while building a timeline."""

from typing import Optional


class TimelineError(Exception):
    """Base error carrying the offending agent and day, when known."""

    def __init__(
        self,
        message: str,
        agent_id: Optional[str] = None,
        date: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.agent_id = agent_id
        self.date = date

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": type(self).__name__,
            "agent_id": self.agent_id,
            "date": self.date,
        }


class InvalidTimeZoneError(TimelineError, ValueError):
    """Unrecognized IANA zone identifier (bad agent configuration)."""

    def __init__(
        self,
        zone: str,
        agent_id: Optional[str] = None,
        date: Optional[str] = None,
    ) -> None:
        message = f"Invalid timezone: {zone!r}"
        if agent_id is not None:
            message += f" (agent {agent_id})"
        super().__init__(message, agent_id=agent_id, date=date)
        self.zone = zone


class MalformedTimeStringError(TimelineError, ValueError):
    """Shift time not in "HH:MM" form."""

    def __init__(self, value: object, agent_id: Optional[str] = None) -> None:
        super().__init__(
            f"Malformed time string: {value!r} (expected HH:MM)", agent_id=agent_id
        )
        self.value = value


class InvalidPeriodError(TimelineError, ValueError):
    """Period descriptor that names no period, or more than one."""
