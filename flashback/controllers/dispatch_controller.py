# flashback/controllers/dispatch_controller.py
import asyncio
import logging
from typing import Any, Dict, Optional, Set

from flashback.config import settings
from flashback.controllers.sync_controller import SyncController
from flashback.errors import ChannelNotFoundError
from flashback.formatting import render_results
from flashback.registry import Channel, ChannelRegistry, UserDirectory
from flashback.schemas import Message
from flashback.search import CommandParser
from flashback.store import MessageStore

logger = logging.getLogger(__name__)

# Edits and deletions are not archived
IGNORED_SUBTYPES = {"message_changed", "message_deleted"}


class Dispatcher:
    """Routes live message events to search-command handling and archival."""

    def __init__(
        self,
        store: MessageStore,
        service,
        registry: ChannelRegistry,
        users: UserDirectory,
        parser: CommandParser,
        syncer: SyncController,
        results_filename: str = None,
    ):
        self.store = store
        self.service = service
        self.registry = registry
        self.users = users
        self.parser = parser
        self.syncer = syncer
        self.results_filename = results_filename or settings.results_filename
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, event: Dict[str, Any]) -> asyncio.Task:
        """Handles the event on its own task so the event stream is never blocked."""
        task = asyncio.create_task(self.handle_event(event))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Unhandled error in event task", exc_info=exc)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def handle_event(self, event: Dict[str, Any]) -> None:
        if event.get("subtype") in IGNORED_SUBTYPES:
            logger.debug(f"Ignoring {event['subtype']} event")
            return

        user = event.get("user")
        if user == self.users.bot_id:
            return

        channel_id = event.get("channel")
        ts = event.get("ts")
        text = event.get("text")
        if not channel_id or not ts or not text:
            return

        logger.info(f"New message received from user {user!r} in channel {channel_id!r}: {text!r}")

        # Each stage is isolated: a failure in one never skips the next
        is_command = False
        try:
            is_command = self.parser.is_command(text)
            if is_command:
                await self.handle_command(channel_id, text)
        except Exception:
            logger.error("Error handling command", exc_info=True)

        channel = None
        try:
            channel = await self._ensure_channel(channel_id)
            await self.syncer.sync_channel(channel)
        except Exception:
            logger.error(f"Error syncing channel {channel_id!r}", exc_info=True)

        if is_command:
            return

        message = Message(sender=user or "", channel=channel_id, send_time=ts, body=text)
        try:
            if channel is not None:
                await self.syncer.archive(channel, [message])
            else:
                self.store.append([message])
        except Exception:
            logger.error(f"Error archiving message {ts} in channel {channel_id!r}", exc_info=True)

    async def handle_command(self, channel_id: str, text: str) -> Optional[str]:
        """Runs the search a command asks for and uploads the results. Returns the document."""
        query = self.parser.get_query_from_command(text)
        results = self.store.search(channel=channel_id, query=query)
        if not results:
            logger.info(f"No results for query {query!r} in channel {channel_id!r}")
            return None

        document = render_results(results, self.users.users)
        await self.service.upload_document([channel_id], document, self.results_filename)
        return document

    async def _ensure_channel(self, channel_id: str) -> Channel:
        # Unknown channel: the bot was probably just invited
        if channel_id not in self.registry:
            await self.registry.reconcile()
        channel = self.registry.get(channel_id)
        if channel is None:
            raise ChannelNotFoundError(f"Unable to get mapping for new channel {channel_id!r}")
        return channel
