"""Pytest configuration and fixtures for flashback tests."""

import asyncio

import pytest

from flashback.registry import UserDirectory
from flashback.schemas import Message
from flashback.search import CommandParser
from flashback.store import MessageStore

BOT_ID = "UBOT00001"
BOT_NAME = "flashback"


def make_ts(i: int) -> str:
    """Fixed-width platform timestamp, increasing with i."""
    return f"{1500000000 + i}.{i:06d}"


def make_message(i: int, channel: str = "C1", sender: str = "UALICE001", body: str = None) -> Message:
    return Message(
        sender=sender,
        channel=channel,
        send_time=make_ts(i),
        body=body if body is not None else f"message number {i}",
    )


class FakeSlackService:
    """In-memory stand-in for SlackService."""

    def __init__(self):
        self.private_channels = []
        self.public_channels = []
        self.history = {}
        self.members = [
            {"id": BOT_ID, "name": BOT_NAME},
            {"id": "UALICE001", "name": "alice"},
            {"id": "UBOB00001", "name": "bob"},
        ]
        self.uploads = []
        self.page_calls = []
        self.reconcile_calls = 0

    def post(self, channel_id, i, user="UALICE001", text=None):
        self.history.setdefault(channel_id, []).append(
            {"type": "message", "user": user, "ts": make_ts(i), "text": text or f"message number {i}"}
        )

    async def list_private_channels(self):
        self.reconcile_calls += 1
        return list(self.private_channels)

    async def list_public_channels(self):
        return [c for c in self.public_channels if c.get("is_member")]

    async def channel_latest_message(self, channel_id):
        messages = self.history.get(channel_id, [])
        if not messages:
            return None
        return max(m["ts"] for m in messages)

    async def fetch_history_page(self, channel_id, after_ts, page_size):
        self.page_calls.append((channel_id, after_ts))
        newer = sorted(
            (m for m in self.history.get(channel_id, []) if m["ts"] > after_ts),
            key=lambda m: m["ts"],
        )
        return newer[:page_size], len(newer) > page_size

    async def list_users(self):
        return list(self.members)

    async def upload_document(self, channels, content, filename):
        self.uploads.append((list(channels), content, filename))


@pytest.fixture
def store(tmp_path):
    """An opened message store backed by a temporary file."""
    message_store = MessageStore(f"sqlite:///{tmp_path / 'flashback.db'}")
    message_store.open()
    yield message_store
    message_store.close()


@pytest.fixture
def slack():
    service = FakeSlackService()
    service.public_channels = [
        {"id": "C1", "name": "general", "is_member": True},
        {"id": "C2", "name": "random", "is_member": True},
        {"id": "C9", "name": "elsewhere", "is_member": False},
    ]
    service.private_channels = [{"id": "G1", "name": "secret"}]
    return service


@pytest.fixture
def users(slack):
    directory = UserDirectory(slack, BOT_NAME)
    asyncio.run(directory.refresh())
    return directory


@pytest.fixture
def parser():
    command_parser = CommandParser()
    command_parser.set_bot_info(BOT_ID, BOT_NAME)
    return command_parser
