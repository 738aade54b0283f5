import logging
from typing import Optional
from pypresence import AioPresence
from pypresence.types import ActivityType
from ..config import settings
from ..exceptions import PresenceChannelError
from ..models import PresencePayload

logger = logging.getLogger(__name__)

class DiscordClient:
    """Thin wrapper over the Discord IPC channel. Only set and clear."""

    def __init__(self, client_id: Optional[str] = None):
        self.client_id = client_id or settings.DISCORD_CLIENT_ID
        self.rpc: Optional[AioPresence] = None

    async def initialize(self):
        if settings.DRY_RUN:
            logger.info("[DRY RUN] Not connecting to Discord")
            return

        try:
            self.rpc = AioPresence(self.client_id)
            await self.rpc.connect()
            logger.info("Connected to Discord RPC")
        except Exception as e:
            logger.error(f"Failed to connect to Discord: {e}")
            raise

    async def set_presence(self, payload: PresencePayload):
        if settings.DRY_RUN:
            logger.info(f"[DRY RUN] Would set presence: {payload.details} | {payload.state}")
            return

        # pypresence drops None fields from the activity
        try:
            await self.rpc.update(**payload.model_dump(), activity_type=ActivityType.LISTENING)
        except Exception as e:
            raise PresenceChannelError(f"Failed to set presence: {e}") from e

    async def clear_presence(self):
        if settings.DRY_RUN:
            logger.info("[DRY RUN] Would clear presence")
            return

        try:
            await self.rpc.clear()
        except Exception as e:
            raise PresenceChannelError(f"Failed to clear presence: {e}") from e

    async def close(self):
        if not self.rpc:
            return
        try:
            self.rpc.close()
        except Exception as e:
            logger.debug(f"Error closing Discord RPC: {e}")
