import logging
from typing import List, Optional
from .clients.abs_client import ABSClient
from .models import ListeningSession, SessionSnapshot, TrackerState

logger = logging.getLogger(__name__)

class SessionSampler:
    def __init__(self, abs_client: ABSClient, state: TrackerState):
        self.abs = abs_client
        self.state = state

    async def sample(self) -> Optional[SessionSnapshot]:
        """
        Fetch recent sessions and return the active one, or None when nothing
        is being listened to. Transport and parse errors propagate so the
        caller can tell a failed poll apart from an idle server.
        """
        sessions = await self.abs.get_listening_sessions()
        return self.select_active(sessions)

    def select_active(self, sessions: List[ListeningSession]) -> Optional[SessionSnapshot]:
        """
        A session is active when it has been running for longer than the gap
        between its last update and the cursor from the previous poll. This only
        holds back a session that started recently after a long quiet spell;
        it does not filter stale ones. A finished session whose updatedAt is at
        or behind the cursor has a gap of zero or less and still qualifies.
        Those are cleared by the pause check, since their position never moves.

        With no cursor yet the gap is zero, so after a restart the last
        finished book is selected for one poll and cleared as paused on the next.

        The cursor advances to the newest updatedAt seen, whether or not a
        session qualified.
        """
        cursor = self.state.last_seen_updated_at
        selected = None

        for session in sessions:
            gap = session.updatedAt - cursor if cursor is not None else 0
            running_for = session.updatedAt - session.startedAt
            if running_for > gap:
                selected = session
                break
            logger.debug(f"Holding back session '{session.displayTitle}' (running {running_for}, gap {gap})")

        if sessions:
            newest = max(s.updatedAt for s in sessions)
            if cursor is None or newest > cursor:
                self.state.last_seen_updated_at = newest

        if selected is None:
            return None
        return selected.to_snapshot()
