from enum import Enum
from pydantic import BaseModel, ConfigDict, model_validator
from typing import Optional, Tuple

class ListeningSession(BaseModel):
    """One record from /api/me/listening-sessions. Timestamps are epoch ms."""
    model_config = ConfigDict(extra="ignore")

    displayTitle: str
    displayAuthor: str = ""
    currentTime: float
    duration: float
    startedAt: float
    updatedAt: float

    @model_validator(mode="before")
    @classmethod
    def _author_fallback(cls, data):
        # Older servers only send "author"
        if isinstance(data, dict) and not data.get("displayAuthor") and data.get("author"):
            data = {**data, "displayAuthor": data["author"]}
        return data

    def to_snapshot(self) -> "SessionSnapshot":
        return SessionSnapshot(
            book_title=self.displayTitle,
            author=self.displayAuthor,
            elapsed_seconds=self.currentTime,
            total_seconds=self.duration,
            started_at=self.startedAt,
            updated_at=self.updatedAt
        )

class SessionSnapshot(BaseModel):
    book_title: str
    author: str = ""
    elapsed_seconds: float = 0.0
    total_seconds: float = 0.0
    started_at: float = 0
    updated_at: float = 0

    @property
    def book_key(self) -> Tuple[str, str]:
        return (self.book_title, self.author)

class TrackerState(BaseModel):
    last_snapshot: Optional[SessionSnapshot] = None
    is_presence_cleared: bool = False
    last_seen_updated_at: Optional[float] = None  # Rolling cursor for active-session selection

class Transition(str, Enum):
    STARTED = "started"
    CONTINUING = "continuing"
    PAUSED = "paused"
    STOPPED = "stopped"
    IDLE = "idle"
    NO_DATA = "no_data"

class PresencePayload(BaseModel):
    details: str
    state: str
    large_image: Optional[str] = None
    large_text: Optional[str] = None
    instance: bool = False

    # Epoch seconds, only set when timestamps are enabled
    start: Optional[int] = None
    end: Optional[int] = None

class PollStats(BaseModel):
    polls: int = 0
    failed_polls: int = 0
    last_successful_poll: float = 0.0
    last_transition: Optional[Transition] = None
    last_error: Optional[str] = None
