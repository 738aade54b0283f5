import asyncio
import logging
import signal
import sys
import uvicorn
import time

from .config import settings
from .state import SessionTracker
from .clients.abs_client import ABSClient
from .clients.discord_client import DiscordClient
from .engine import PresenceSynchronizer
from .exceptions import ConfigError, PresenceChannelError, PresenceError
from .models import PollStats, Transition
from .sampler import SessionSampler
from . import server

logger = logging.getLogger("main")

def setup_logging():
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # Silence noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

class PresenceService:
    def __init__(self, abs_client=None, discord=None):
        self.running = True
        self.tracker = SessionTracker()
        self.stats = PollStats()
        self.abs = abs_client or ABSClient()
        self.discord = discord or DiscordClient()
        self.sampler = SessionSampler(self.abs, self.tracker.state)
        self.synchronizer = PresenceSynchronizer(self.tracker.state, self.abs, self.discord)

        # Link state to server module
        server.tracker = self.tracker
        server.stats = self.stats

    async def setup(self):
        await self.discord.initialize()
        await self.abs.initialize()

    async def poll_once(self) -> Transition:
        """One cycle: sample, classify, sync. Never raises."""
        self.stats.polls += 1
        try:
            snapshot = await self.sampler.sample()
        except PresenceError as e:
            # Not the same as "no active session": keep the presence as it is
            self.stats.failed_polls += 1
            self.stats.last_error = str(e)
            self.stats.last_transition = Transition.NO_DATA
            logger.warning(f"Poll failed, skipping cycle: {e}")
            return Transition.NO_DATA

        transition = self.tracker.observe(snapshot)
        self.stats.last_transition = transition
        self.stats.last_successful_poll = time.time()

        try:
            await self.synchronizer.apply(transition, snapshot)
        except Exception as e:
            self.stats.last_error = str(e)
            logger.error(f"Error applying {transition.value}: {e}", exc_info=True)

        return transition

    async def poll_loop(self):
        logger.info(f"Polling {settings.ABS_BASE_URL} every {settings.POLL_INTERVAL_SECONDS}s")
        while self.running:
            start_time = time.time()
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"Error in poll loop: {e}", exc_info=True)

            # Wait for remainder of interval
            elapsed = time.time() - start_time
            sleep_time = max(0, settings.POLL_INTERVAL_SECONDS - elapsed)
            await asyncio.sleep(sleep_time)

    async def shutdown(self):
        self.running = False
        if not self.tracker.state.is_presence_cleared:
            try:
                await self.discord.clear_presence()
            except PresenceChannelError as e:
                logger.debug(f"Could not clear presence on shutdown: {e}")
        await self.discord.close()
        await self.abs.close()

    async def start(self):
        await self.setup()

        tasks = [asyncio.create_task(self.poll_loop())]

        if settings.HTTP_SERVER_ENABLED:
            config = uvicorn.Config(server.app, host="0.0.0.0", port=settings.HTTP_SERVER_PORT, log_level="warning")
            server_task = uvicorn.Server(config).serve()
            tasks.append(asyncio.create_task(server_task))

        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            pass
        finally:
            await self.shutdown()

def handle_sigterm(sig, frame):
    logger.info("Received SIGTERM, shutting down...")
    sys.exit(0)

def run():
    setup_logging()
    try:
        settings.validate_required()
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    signal.signal(signal.SIGTERM, handle_sigterm)
    service = PresenceService()
    try:
        asyncio.run(service.start())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)

if __name__ == "__main__":
    run()
