"""Session models for tracking finalized timer stages."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SessionMode(str, Enum):
    """Timer stage the session belongs to."""

    FOCUS = "focus"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"


class SessionReason(str, Enum):
    """Why a stage was finalized."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    RESET = "reset"
    RECONFIGURED = "reconfigured"
    ABANDONED = "abandoned"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are taken as UTC. Returns None when the value can't be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with millisecond precision and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _either(name: str) -> AliasChoices:
    return AliasChoices(name, to_camel(name))


class SessionEvent(BaseModel):
    """Raw session-ended event as emitted by a timer front end.

    Nothing here is validated; every field may be missing or of the wrong
    type. Both camelCase and snake_case keys are accepted.
    """

    session_id: Any = Field(default=None, validation_alias=_either("session_id"))
    started_at: Any = Field(default=None, validation_alias=_either("started_at"))
    ended_at: Any = Field(default=None, validation_alias=_either("ended_at"))
    mode: Any = None
    planned_seconds: Any = Field(
        default=None, validation_alias=_either("planned_seconds")
    )
    actual_seconds: Any = Field(
        default=None, validation_alias=_either("actual_seconds")
    )
    completion_ratio: Any = Field(
        default=None, validation_alias=_either("completion_ratio")
    )
    completed: Any = None
    was_skipped: Any = Field(default=None, validation_alias=_either("was_skipped"))
    cycle_index: Any = Field(default=None, validation_alias=_either("cycle_index"))
    reason: Any = None

    model_config = ConfigDict(extra="ignore")


class SessionRecord(BaseModel):
    """A normalized, persisted session record."""

    session_id: str
    started_at: str
    ended_at: str
    mode: SessionMode
    planned_seconds: int = Field(ge=1)
    actual_seconds: int = Field(ge=0)
    completion_ratio: float = Field(ge=0, le=1)
    completed: bool
    was_skipped: bool = False
    cycle_index: int = Field(default=1, ge=1)
    reason: SessionReason

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    @property
    def started(self) -> Optional[datetime]:
        """Parsed start time, if the stored value is a valid timestamp."""
        return parse_timestamp(self.started_at)

    @property
    def ended(self) -> Optional[datetime]:
        """Parsed end time, if the stored value is a valid timestamp."""
        return parse_timestamp(self.ended_at)

    @property
    def is_focus(self) -> bool:
        return self.mode == SessionMode.FOCUS
