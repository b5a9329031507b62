# flashback/controllers/sync_controller.py
import asyncio
import logging
from typing import Any, Dict, List, Sequence

from slack_sdk.errors import SlackApiError

from flashback.errors import FlashbackError
from flashback.registry import Channel, ChannelRegistry, UserDirectory
from flashback.schemas import Message
from flashback.search import CommandParser
from flashback.store import MessageStore

logger = logging.getLogger(__name__)

# Frontier used for a channel with nothing archived yet
BEGINNING_OF_TIME = "0"


class SyncController:
    """
    Backfills channel history into the message store.

    Timestamps are compared as strings; platform timestamps have a fixed
    "seconds.micros" width, so string order is time order.
    """

    def __init__(
        self,
        store: MessageStore,
        service,
        parser: CommandParser,
        users: UserDirectory,
        page_size: int = 100,
    ):
        self.store = store
        self.service = service
        self.parser = parser
        self.users = users
        self.page_size = page_size

    async def sync_channel(self, channel: Channel) -> int:
        """Archives every message newer than the channel's frontier. Returns how many were added."""
        async with channel.lock:
            return await self._sync_locked(channel)

    async def archive(self, channel: Channel, messages: Sequence[Message]) -> int:
        async with channel.lock:
            return self.store.append(messages)

    async def sync_all(self, registry: ChannelRegistry) -> int:
        channels = registry.channels()
        results = await asyncio.gather(
            *(self.sync_channel(channel) for channel in channels),
            return_exceptions=True,
        )
        total = 0
        for channel, result in zip(channels, results):
            if isinstance(result, (FlashbackError, SlackApiError)):
                logger.error(f"Error syncing channel {channel.id!r}: {result}")
            elif isinstance(result, BaseException):
                raise result
            else:
                total += result
        return total

    async def _sync_locked(self, channel: Channel) -> int:
        logger.info(f"Fetching messages for channel {channel.id}")

        remote_latest = await self.service.channel_latest_message(channel.id)
        if remote_latest is None:
            logger.info(f"No messages in channel {channel.id!r}")
            return 0

        frontier = self.store.latest_timestamp(channel.id) or BEGINNING_OF_TIME
        if frontier >= remote_latest:
            logger.info(f"Messages up-to-date for channel {channel.id!r}")
            return 0

        batch: List[Message] = []
        while True:
            page, has_more = await self.service.fetch_history_page(channel.id, frontier, self.page_size)

            newest = frontier
            for raw in page:
                ts = raw.get("ts")
                if not ts:
                    continue
                # Skipped messages still move the frontier so they are not re-fetched
                if ts > newest:
                    newest = ts
                if self._should_archive(raw):
                    batch.append(self._to_message(channel.id, raw))

            if not has_more:
                break
            if newest == frontier:
                logger.warning(f"History for channel {channel.id!r} did not advance past {frontier}; stopping")
                break
            frontier = newest

        if not batch:
            logger.info(f"No new messages to archive for channel {channel.id!r}")
            return 0

        try:
            added = self.store.append(batch)
        except FlashbackError as e:
            logger.error(f"Error archiving messages for channel {channel.id!r}: {e}")
            raise

        logger.info(f"{added} messages added from channel {channel.id!r}")
        return added

    def _should_archive(self, raw: Dict[str, Any]) -> bool:
        if raw.get("user") == self.users.bot_id:
            return False
        return not self.parser.is_command(raw.get("text", ""))

    @staticmethod
    def _to_message(channel_id: str, raw: Dict[str, Any]) -> Message:
        return Message(
            sender=raw.get("user") or raw.get("bot_id") or "",
            channel=channel_id,
            send_time=raw["ts"],
            body=raw.get("text") or "",
        )
