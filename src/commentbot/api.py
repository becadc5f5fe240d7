"""FastAPI application receiving chat platform webhooks."""

import logging
from dataclasses import dataclass

from fastapi import FastAPI, HTTPException

from commentbot import __version__
from commentbot.config import Settings, settings
from commentbot.db import PostgresMemoryStore
from commentbot.errors import MessengerError, StorageUnavailable
from commentbot.models import Update
from commentbot.services.dedup import IdempotencyCache
from commentbot.services.llm_client import ChatCompletionsClient
from commentbot.services.memory import ConversationMemory, InMemoryMemoryStore
from commentbot.services.orchestrator import ReplyOrchestrator
from commentbot.services.probability import ReplyProbabilityGate
from commentbot.services.router import EventRouter
from commentbot.services.telegram_client import TelegramClient

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhook"
ALLOWED_UPDATES = ["message", "channel_post", "edited_message"]


@dataclass
class Services:
    """Components owned by the running process."""

    dedup: IdempotencyCache
    memory: ConversationMemory
    llm: ChatCompletionsClient
    telegram: TelegramClient
    orchestrator: ReplyOrchestrator
    router: EventRouter


async def build_services(config: Settings) -> Services:
    """Create and connect all components for ``config``."""
    memory: ConversationMemory
    if config.memory_backend == "memory":
        memory = InMemoryMemoryStore()
    else:
        store = PostgresMemoryStore(config.database_url)
        await store.connect()
        await store.ensure_schema()
        memory = store

    llm = ChatCompletionsClient.from_settings(config)
    telegram = TelegramClient.from_settings(config)
    orchestrator = ReplyOrchestrator(llm, memory, max_context=config.max_context_messages)
    router = EventRouter(
        orchestrator=orchestrator,
        memory=memory,
        messenger=telegram,
        gate=ReplyProbabilityGate(),
        bot_id=config.bot_id,
        allowed_chat_ids=config.allowed_chat_ids,
        reply_probability=config.reply_probability,
    )
    return Services(
        dedup=IdempotencyCache(),
        memory=memory,
        llm=llm,
        telegram=telegram,
        orchestrator=orchestrator,
        router=router,
    )


app = FastAPI(
    title="Commentbot API",
    description="Group chat comment bot webhook receiver",
    version=__version__,
)

# Set on startup
services: Services | None = None


@app.on_event("startup")
async def startup_event():
    """Connect storage, build components and register the webhook."""
    global services
    services = await build_services(settings)
    logger.info(f"Started with memory backend {settings.memory_backend}")

    if settings.public_base_url:
        url = f"{settings.public_base_url.rstrip('/')}{WEBHOOK_PATH}"
        try:
            await services.telegram.set_webhook(url, allowed_updates=ALLOWED_UPDATES)
        except MessengerError:
            logger.exception("Failed to set webhook")
            raise


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up on shutdown."""
    global services
    if services is None:
        return
    await services.orchestrator.drain()
    await services.memory.close()
    await services.llm.aclose()
    await services.telegram.aclose()
    services = None


# ============= Health & Info =============


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Commentbot API", "version": __version__}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy" if services is not None else "starting"}


# ============= Webhook =============


@app.post(WEBHOOK_PATH)
async def webhook(update: Update):
    """Receive one update, drop redeliveries and route the rest."""
    if services is None:
        raise HTTPException(status_code=503, detail="Service not ready")

    if services.dedup.seen(update.update_id):
        logger.debug(f"Duplicate update {update.update_id}")
        return {"status": "duplicate"}

    try:
        outcome = await services.router.handle(update)
    except StorageUnavailable as e:
        logger.error(f"Storage unavailable handling update {update.update_id}: {e}")
        # Let the transport's redelivery through
        services.dedup.forget(update.update_id)
        raise HTTPException(status_code=503, detail="Storage unavailable")
    except MessengerError as e:
        logger.error(f"Failed to send reply for update {update.update_id}: {e}")
        raise HTTPException(status_code=502, detail="Reply could not be sent")

    return {"status": "ok", "outcome": outcome.value}


# ============= Run =============


def run():
    """Run the application."""
    import uvicorn

    uvicorn.run(
        "commentbot.api:app",
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    run()
