# flashback/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from .config import settings
from .controllers.dispatch_controller import Dispatcher
from .controllers.sync_controller import SyncController
from .registry import ChannelRegistry, UserDirectory
from .routers import archive_router
from .schemas import ReadinessResponse
from .search import CommandParser
from .services.slack_service import SlackService
from .store import MessageStore

logging.basicConfig(level=settings.log_level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = MessageStore(settings.database_url)
    store.open()
    ready, err = store.is_ready()
    if not ready:
        # Aborting startup makes the server exit non-zero
        raise RuntimeError(f"Database not ready: {err}")

    if not settings.slack_bot_token or not settings.slack_app_token:
        store.close()
        raise RuntimeError("SLACK_BOT_TOKEN and SLACK_APP_TOKEN must be set")

    service = SlackService()
    try:
        users = UserDirectory(service, settings.bot_name)
        await users.refresh()

        parser = CommandParser()
        parser.set_bot_info(users.bot_id, users.bot_name)

        registry = ChannelRegistry(service)
        await registry.reconcile()

        syncer = SyncController(store, service, parser, users, page_size=settings.history_page_size)
        await syncer.sync_all(registry)

        dispatcher = Dispatcher(store, service, registry, users, parser, syncer)
        await service.listen(dispatcher.dispatch)
    except Exception:
        logger.error("Error during startup", exc_info=True)
        await service.close()
        store.close()
        raise

    app.state.store = store
    app.state.registry = registry
    app.state.syncer = syncer
    app.state.dispatcher = dispatcher
    try:
        yield
    finally:
        await service.close()
        await dispatcher.drain()
        store.close()


app = FastAPI(
    title="Flashback Message Archive",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(archive_router.router, tags=["Archive"])

@app.get("/", response_model=ReadinessResponse)
def read_root(request: Request):
    ready, err = request.app.state.store.is_ready()
    return ReadinessResponse(ready=ready, error=str(err) if err else None)
