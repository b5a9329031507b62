# flashback/services/slack_service.py
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from slack_sdk.http_retry.builtin_async_handlers import (
    AsyncConnectionErrorRetryHandler,
    AsyncRateLimitErrorRetryHandler,
    AsyncServerErrorRetryHandler,
)
from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web.async_client import AsyncWebClient

from flashback.config import settings

logger = logging.getLogger(__name__)

EventHandler = Callable[[Dict[str, Any]], Any]

LIST_PAGE_LIMIT = 200


class SlackService:
    def __init__(
        self,
        bot_token: str = None,
        app_token: str = None,
        max_retries: int = None,
    ):
        self.bot_token = bot_token or settings.slack_bot_token
        self.app_token = app_token or settings.slack_app_token
        max_retries = settings.api_max_retries if max_retries is None else max_retries
        # Retry handlers honor Retry-After on rate limiting
        self.client = AsyncWebClient(
            token=self.bot_token,
            retry_handlers=[
                AsyncRateLimitErrorRetryHandler(max_retry_count=max_retries),
                AsyncServerErrorRetryHandler(max_retry_count=max_retries),
                AsyncConnectionErrorRetryHandler(max_retry_count=max_retries),
            ],
        )
        self.socket_client: Optional[SocketModeClient] = None

    async def _paginate(self, method: Callable[..., Awaitable], key: str, **kwargs) -> List[Dict[str, Any]]:
        items = []
        cursor = None
        while True:
            resp = await method(cursor=cursor, limit=LIST_PAGE_LIMIT, **kwargs)
            items.extend(resp.get(key, []))
            cursor = resp.get("response_metadata", {}).get("next_cursor")
            if not cursor:
                return items

    async def list_private_channels(self) -> List[Dict[str, Any]]:
        """Private channels the bot belongs to (bot tokens only see those)."""
        return await self._paginate(
            self.client.conversations_list, "channels",
            types="private_channel", exclude_archived=True,
        )

    async def list_public_channels(self) -> List[Dict[str, Any]]:
        """Public channels, restricted to those the bot is a member of."""
        channels = await self._paginate(
            self.client.conversations_list, "channels",
            types="public_channel", exclude_archived=True,
        )
        return [c for c in channels if c.get("is_member")]

    async def channel_latest_message(self, channel_id: str) -> Optional[str]:
        """Timestamp of the newest message in the channel, or None if it is empty."""
        resp = await self.client.conversations_history(channel=channel_id, limit=1)
        messages = resp.get("messages", [])
        if not messages:
            return None
        return messages[0].get("ts")

    async def fetch_history_page(
        self, channel_id: str, after_ts: str, page_size: int
    ) -> Tuple[List[Dict[str, Any]], bool]:
        """
        Returns the messages closest to `after_ts` that are strictly newer than it,
        oldest first, and whether more remain after them.

        With only `oldest` given, the history API returns the messages nearest to
        it, which lets the caller page forward by moving `after_ts`.
        """
        resp = await self.client.conversations_history(
            channel=channel_id, oldest=after_ts, inclusive=False, limit=page_size,
        )
        messages = sorted(resp.get("messages", []), key=lambda m: m.get("ts", ""))
        return messages, bool(resp.get("has_more", False))

    async def list_users(self) -> List[Dict[str, Any]]:
        return await self._paginate(self.client.users_list, "members")

    async def upload_document(self, channels: List[str], content: str, filename: str) -> None:
        for channel_id in channels:
            await self.client.files_upload_v2(channel=channel_id, content=content, filename=filename)
            logger.info(f"Uploaded {filename} to channel {channel_id}")

    async def listen(self, handler: EventHandler) -> None:
        """
        Connects to the Socket Mode event stream and calls `handler` with every
        message event. The handler must return quickly; slow work belongs in a task.
        """
        self.socket_client = SocketModeClient(app_token=self.app_token, web_client=self.client)

        async def _on_request(client: SocketModeClient, req: SocketModeRequest):
            await client.send_socket_mode_response(SocketModeResponse(envelope_id=req.envelope_id))
            if req.type != "events_api":
                return
            event = req.payload.get("event", {})
            if event.get("type") == "message":
                handler(event)

        self.socket_client.socket_mode_request_listeners.append(_on_request)
        await self.socket_client.connect()
        logger.info("Connected to the Slack event stream")

    async def close(self) -> None:
        if self.socket_client is not None:
            await self.socket_client.close()
            self.socket_client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
