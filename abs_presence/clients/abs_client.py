import logging
import httpx
from typing import Dict, List, Optional, Tuple
from pydantic import ValidationError
from ..config import settings
from ..exceptions import CoverNotFoundError, ParseError, TransportError
from ..models import ListeningSession

logger = logging.getLogger(__name__)

class ABSClient:
    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        base_url = base_url or settings.ABS_BASE_URL
        token = token if token is not None else settings.ABS_TOKEN
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip('/'),
            headers={"Authorization": f"Bearer {token}"},
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport
        )
        self.user_id: Optional[str] = None
        self.cover_cache: Dict[Tuple[str, str], str] = {}  # (title, author) -> cover url

    async def initialize(self):
        try:
            data = await self._get_json("/api/me")
            user = data.get("user", data) if isinstance(data, dict) else {}
            self.user_id = user.get("id")
            if not self.user_id:
                raise ParseError("Could not determine User ID from /api/me")
            logger.info(f"Connected to ABS as user {user.get('username') or self.user_id}")
        except Exception as e:
            logger.error(f"Failed to initialize ABS client: {e}")
            raise

    async def close(self):
        await self.client.aclose()

    async def _get_json(self, path: str, params: Optional[Dict] = None):
        try:
            resp = await self.client.get(path, params=params)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"ABS returned {e.response.status_code} for {path}",
                details={"url": str(e.request.url), "status": e.response.status_code}
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"Request to ABS failed for {path}: {e!r}",
                details={"path": path}
            ) from e

        try:
            return resp.json()
        except ValueError as e:
            raise ParseError(f"ABS returned non-JSON body for {path}", details={"path": path}) from e

    async def get_listening_sessions(self, limit: Optional[int] = None) -> List[ListeningSession]:
        """
        Most recent listening sessions for the authenticated user, newest first.
        Raises TransportError / ParseError; an empty list is a valid answer.
        """
        limit = limit or settings.SESSIONS_PAGE_SIZE
        data = await self._get_json("/api/me/listening-sessions", params={"itemsPerPage": limit})

        if not isinstance(data, dict) or not isinstance(data.get("sessions"), list):
            raise ParseError("Listening sessions response has no 'sessions' list")

        try:
            return [ListeningSession.model_validate(s) for s in data["sessions"]]
        except ValidationError as e:
            raise ParseError(f"Malformed listening session: {e.error_count()} validation errors") from e

    async def search_cover(self, title: str, author: str, provider: Optional[str] = None) -> str:
        """
        First cover URL from /api/search/covers for a single metadata provider.
        Raises CoverNotFoundError when the provider has nothing for this book.
        """
        key = (title, author)
        if key in self.cover_cache:
            return self.cover_cache[key]

        provider = provider or settings.COVER_PROVIDER
        data = await self._get_json(
            "/api/search/covers",
            params={"title": title, "author": author, "provider": provider}
        )

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise ParseError("Cover search response has no 'results' list", details={"title": title})
        if not results:
            raise CoverNotFoundError(f"No cover found for '{title}' on {provider}", details={"title": title, "author": author})

        cover_url = results[0]
        if not isinstance(cover_url, str):
            raise ParseError("Cover search result is not a URL string", details={"title": title})

        self.cover_cache[key] = cover_url
        logger.debug(f"Resolved cover for '{title}': {cover_url}")
        return cover_url
