import logging
from typing import Optional
from .models import SessionSnapshot, TrackerState, Transition

logger = logging.getLogger(__name__)

class SessionTracker:
    """Owns the process-lifetime TrackerState. Nothing is written to disk."""

    def __init__(self, state: Optional[TrackerState] = None):
        self.state = state or TrackerState()

    def observe(self, current: Optional[SessionSnapshot]) -> Transition:
        """Compare this poll's selection with the last one and record it."""
        previous = self.state.last_snapshot
        transition = self.classify(previous, current)
        self.state.last_snapshot = current

        if transition in (Transition.CONTINUING, Transition.IDLE):
            logger.debug(f"Transition: {transition.value}")
        else:
            book = current or previous
            logger.info(f"Transition: {transition.value} ({book.book_title})")
        return transition

    @staticmethod
    def classify(previous: Optional[SessionSnapshot], current: Optional[SessionSnapshot]) -> Transition:
        if current is None:
            return Transition.STOPPED if previous is not None else Transition.IDLE

        if previous is None or previous.book_key != current.book_key:
            # Switching books goes straight to STARTED, no STOPPED in between
            return Transition.STARTED

        if current.elapsed_seconds == previous.elapsed_seconds:
            return Transition.PAUSED

        return Transition.CONTINUING
