# flashback/routers/archive_router.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from slack_sdk.errors import SlackApiError

from flashback import schemas
from flashback.controllers.sync_controller import SyncController
from flashback.errors import FlashbackError, QueryError, StoreError
from flashback.registry import ChannelRegistry
from flashback.store import MessageStore

router = APIRouter()


def get_store(request: Request) -> MessageStore:
    return request.app.state.store


def get_registry(request: Request) -> ChannelRegistry:
    return request.app.state.registry


def get_syncer(request: Request) -> SyncController:
    return request.app.state.syncer


@router.post("/sync", response_model=schemas.SyncResponse)
async def sync_channels(
    registry: ChannelRegistry = Depends(get_registry),
    syncer: SyncController = Depends(get_syncer),
):
    try:
        await registry.reconcile()
        new_messages_count = await syncer.sync_all(registry)
    except (FlashbackError, SlackApiError) as e:
        raise HTTPException(status_code=500, detail=str(e))
    return schemas.SyncResponse(
        status="success",
        new_messages_found=new_messages_count,
        channels_synced=[channel.id for channel in registry.channels()],
    )


@router.get("/search", response_model=schemas.SearchResponse)
def search_messages(
    channel: str,
    query: str,
    sender: Optional[str] = None,
    store: MessageStore = Depends(get_store),
):
    try:
        results = store.search(channel=channel, query=query, sender=sender)
    except QueryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return schemas.SearchResponse(channel=channel, query=query, sender=sender, results=results)
