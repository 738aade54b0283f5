import logging
import time
from typing import Optional
from .config import settings
from .clients.abs_client import ABSClient
from .clients.discord_client import DiscordClient
from .exceptions import CoverNotFoundError, PresenceChannelError, PresenceError
from .models import PresencePayload, SessionSnapshot, TrackerState, Transition

logger = logging.getLogger(__name__)

def format_time(seconds: float) -> str:
    """HH:MM:SS with a minimum width of two per field; hours are unbounded."""
    seconds = max(0.0, seconds)
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    remaining = int(seconds % 60)
    return f"{hours:02d}:{minutes:02d}:{remaining:02d}"

def build_payload(snapshot: SessionSnapshot, cover_url: Optional[str], show_timestamps: bool = False, now: Optional[float] = None) -> PresencePayload:
    payload = PresencePayload(
        details=f"Listening to {snapshot.book_title}",
        state=f"{format_time(snapshot.elapsed_seconds)} / {format_time(snapshot.total_seconds)}",
        large_image=cover_url,
        large_text=snapshot.book_title,
        instance=False
    )

    if show_timestamps:
        now = int(now if now is not None else time.time())
        position = int(max(0.0, snapshot.elapsed_seconds))
        remaining = max(0, int(max(0.0, snapshot.total_seconds)) - position)
        payload.start = now - position
        payload.end = now + remaining

    return payload

class PresenceSynchronizer:
    def __init__(self, state: TrackerState, abs_client: ABSClient, discord: DiscordClient):
        self.state = state
        self.abs = abs_client
        self.discord = discord

    async def resolve_cover(self, snapshot: SessionSnapshot) -> Optional[str]:
        """Best effort. A presence without art beats no presence."""
        try:
            return await self.abs.search_cover(snapshot.book_title, snapshot.author)
        except CoverNotFoundError as e:
            logger.info(f"{e}; updating presence without art")
        except PresenceError as e:
            logger.warning(f"Cover lookup failed for '{snapshot.book_title}': {e}")
        return None

    async def apply(self, transition: Transition, snapshot: Optional[SessionSnapshot]):
        """
        Performs at most one presence action for the transition.
        State is updated before the push, so a failed push is not retried
        unless the next poll produces another action.
        """
        if transition in (Transition.STARTED, Transition.CONTINUING):
            cover_url = await self.resolve_cover(snapshot)
            payload = build_payload(snapshot, cover_url, settings.SHOW_TIMESTAMPS)
            self.state.is_presence_cleared = False
            try:
                await self.discord.set_presence(payload)
                logger.debug(f"Presence set: {payload.details} | {payload.state}")
            except PresenceChannelError as e:
                logger.error(str(e))

        elif transition in (Transition.PAUSED, Transition.STOPPED):
            if self.state.is_presence_cleared:
                return
            self.state.is_presence_cleared = True
            try:
                await self.discord.clear_presence()
                logger.info(f"Presence cleared ({transition.value})")
            except PresenceChannelError as e:
                logger.error(str(e))
