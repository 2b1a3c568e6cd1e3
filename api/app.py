import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI

from common import logging
from common.config import get_settings
from common.db import close_pool, init_pool
from recommender.batch_queue import BatchInsertQueue
from recommender.seed import seed_catalog
from stores.catalog import MovieInserter
from stores.schema import init_schema
from . import auth_api, movie_api

settings = get_settings()
logger = logging.get_logger(__name__)


def build_queue() -> BatchInsertQueue:
    return BatchInsertQueue(
        inserter=MovieInserter(),
        batch_size=settings.queue_batch_size,
        max_retries=settings.queue_max_retries,
        batch_delay=settings.queue_batch_delay,
        retry_interval=settings.queue_retry_interval,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the pool, make sure the tables exist, then seed the catalog if asked to."""
    logging.configure_logging()
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, init_pool)
    await loop.run_in_executor(None, init_schema)

    queue = app.state.movie_queue
    if settings.seed_movies_csv:
        seed_catalog(queue, settings.seed_movies_csv)

    yield

    pending = queue.get_status()["queue_length"]
    if pending:
        logger.warning("Shutting down with %d movies still queued", pending)
    await queue.close()
    close_pool()


def create_app(queue: BatchInsertQueue | None = None) -> FastAPI:
    app = FastAPI(title="Movie Catalog API", version="1.0.0", lifespan=lifespan)
    # one queue per process, owned by the app
    app.state.movie_queue = queue if queue is not None else build_queue()
    app.include_router(auth_api.router)
    app.include_router(movie_api.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "queue": app.state.movie_queue.get_status()}

    return app


app = create_app()
