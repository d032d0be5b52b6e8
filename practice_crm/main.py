"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from practice_crm.adapters.inbound.http.errors import register_error_handlers
from practice_crm.adapters.inbound.http.routes import router
from practice_crm.adapters.outbound.idempotency.redis_idempotency_store import RedisIdempotencyStore
from practice_crm.infrastructure.db import dispose_engine
from practice_crm.infrastructure.logging.logger import log_event
from practice_crm.infrastructure.wiring.dependencies import get_idempotency_store

# Load environment variables from .env file
load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the Redis client and database pool on shutdown."""
    log_event("app", event="startup")
    yield
    store = get_idempotency_store()
    if isinstance(store, RedisIdempotencyStore):
        await store.close()
    dispose_engine()
    log_event("app", event="shutdown")


app = FastAPI(
    title="Practice CRM",
    description="Contact lifecycle, appointments and SMS intake for a therapy practice",
    version="0.1.0",
    lifespan=lifespan,
)

register_error_handlers(app)
app.include_router(router)
