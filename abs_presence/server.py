import time
from fastapi import FastAPI, Depends, HTTPException, Header
from fastapi.responses import PlainTextResponse
from typing import Optional
from .config import settings
from .engine import format_time
from .models import PollStats
from .state import SessionTracker

app = FastAPI(title="Audiobookshelf Discord Presence")
tracker: Optional[SessionTracker] = None
stats: Optional[PollStats] = None

def get_token(x_token: Optional[str] = Header(None, alias="X-Token")):
    if settings.HTTP_SERVER_TOKEN and x_token != settings.HTTP_SERVER_TOKEN:
        raise HTTPException(status_code=401, detail="Invalid token")

@app.get("/healthz")
def healthz():
    if not stats or not stats.last_successful_poll:
        return {"status": "starting"}

    # Lenient threshold: a few missed polls before reporting lag
    age = time.time() - stats.last_successful_poll
    if age > (settings.POLL_INTERVAL_SECONDS * 3 + 60):
        return {"status": "lagging", "last_poll_age": age}

    return {"status": "ok"}

@app.get("/status", dependencies=[Depends(get_token)])
def status():
    if not tracker or not stats:
        return {"status": "not_ready"}

    snapshot = tracker.state.last_snapshot
    return {
        "book": snapshot.book_title if snapshot else None,
        "author": snapshot.author if snapshot else None,
        "position": f"{format_time(snapshot.elapsed_seconds)} / {format_time(snapshot.total_seconds)}" if snapshot else None,
        "presence_cleared": tracker.state.is_presence_cleared,
        "last_transition": stats.last_transition.value if stats.last_transition else None,
        "last_poll": stats.last_successful_poll,
        "polls": stats.polls,
        "failed_polls": stats.failed_polls,
        "last_error": stats.last_error,
        "config": {
            "interval": settings.POLL_INTERVAL_SECONDS,
            "cover_provider": settings.COVER_PROVIDER
        }
    }

@app.get("/metrics", response_class=PlainTextResponse)
def metrics():
    # Simple prometheus-style text format
    if not tracker or not stats:
        return ""

    presence_active = int(tracker.state.last_snapshot is not None and not tracker.state.is_presence_cleared)
    lines = [
        f'abs_presence_polls_total {stats.polls}',
        f'abs_presence_failed_polls_total {stats.failed_polls}',
        f'abs_presence_last_poll_timestamp {stats.last_successful_poll}',
        f'abs_presence_active {presence_active}'
    ]
    return "\n".join(lines)
