# flashback/registry.py
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import BotNotFoundError, ChannelNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class Channel:
    id: str
    name: str
    is_private: bool = False
    # Held for a channel's whole sync or archival cycle
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)


class ChannelRegistry:
    """
    Tracks the channels the bot belongs to.

    `reconcile` holds the registry lock for the whole pass; it never takes a
    channel lock, so a running sync cannot deadlock against it.
    """

    def __init__(self, service):
        self.service = service
        self._channels: Dict[str, Channel] = {}
        self._lock = asyncio.Lock()

    async def reconcile(self) -> None:
        async with self._lock:
            logger.info("Updating channel information...")
            private_channels = await self.service.list_private_channels()
            public_channels = await self.service.list_public_channels()

            current = {}
            for info in private_channels:
                current[info["id"]] = Channel(id=info["id"], name=info.get("name", ""), is_private=True)
            for info in public_channels:
                current.setdefault(info["id"], Channel(id=info["id"], name=info.get("name", ""), is_private=False))

            for channel_id, channel in current.items():
                if channel_id not in self._channels:
                    self._channels[channel_id] = channel
                    kind = "private" if channel.is_private else "public"
                    logger.info(f"Added {kind} channel [Name={channel.name!r},ID={channel.id!r}]")

            for channel_id in list(self._channels):
                if channel_id not in current:
                    removed = self._channels.pop(channel_id)
                    logger.info(f"Removed channel [Name={removed.name!r},ID={removed.id!r}]")

            logger.info("Channel information updated")

    def get(self, channel_id: str) -> Optional[Channel]:
        return self._channels.get(channel_id)

    def get_channel_name(self, channel_id: str) -> str:
        channel = self._channels.get(channel_id)
        if channel is None:
            raise ChannelNotFoundError(f"Channel name not found: {channel_id!r}")
        return channel.name

    def channels(self) -> List[Channel]:
        return list(self._channels.values())

    def __contains__(self, channel_id: str) -> bool:
        return channel_id in self._channels

    def __len__(self) -> int:
        return len(self._channels)


class UserDirectory:
    """User id to display name lookup, plus the bot's own identity."""

    def __init__(self, service, bot_name: str):
        self.service = service
        self.bot_name = bot_name
        self.bot_id: Optional[str] = None
        self.users: Dict[str, str] = {}

    async def refresh(self) -> None:
        logger.info("Resolving user mapping...")
        members = await self.service.list_users()

        resolved = {}
        bot_id = None
        for member in members:
            resolved[member["id"]] = member.get("name", "")
            if member.get("name") == self.bot_name:
                bot_id = member["id"]

        if bot_id is None:
            raise BotNotFoundError(f"Bot id not found for bot name {self.bot_name!r}")

        # Updated in place so holders of `users` see the new roster
        self.users.clear()
        self.users.update(resolved)
        self.bot_id = bot_id
        logger.info(f"Finished resolving user mapping. Bot id: {bot_id}, total users found={len(resolved)}")

    def name(self, user_id: str, default: str = "user") -> str:
        return self.users.get(user_id, default)
