import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from .config import Settings, get_settings
from .db import create_db_and_tables, make_engine
from .ingest.rss_fetcher import FeedIngestor
from .jobs import ProcessingJobRunner
from .llm.gateway import ModelGateway
from .models import DEFAULT_CONFIG
from .processor import ArticleProcessor
from .routers.articles import router as articles_router
from .routers.feeds import router as feeds_router
from .routers.settings import router as settings_router
from .routers.status import router as status_router
from .scheduler import create_scheduler
from .store import ContentStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    gateway: Optional[ModelGateway] = None,
    ingestor: Optional[FeedIngestor] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title=settings.app_name, version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    engine = engine or make_engine(settings.database_url)
    store = ContentStore(engine)
    gateway = gateway or ModelGateway(store, timeout=settings.llm_timeout)
    ingestor = ingestor or FeedIngestor(store, timeout=settings.feed_timeout)
    processor = ArticleProcessor(
        store,
        gateway,
        concurrency=settings.process_concurrency,
        progress_interval=settings.progress_interval,
        reject_marker=settings.filter_reject_marker,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store
    app.state.gateway = gateway
    app.state.ingestor = ingestor
    app.state.job_runner = ProcessingJobRunner(processor)
    app.state.scheduler = None

    # Routers
    app.include_router(status_router, prefix="/api")
    app.include_router(feeds_router, prefix="/api")
    app.include_router(articles_router, prefix="/api")
    app.include_router(settings_router, prefix="/api")

    @app.on_event("startup")
    def on_startup() -> None:
        create_db_and_tables(engine)
        inserted = store.ensure_config_defaults(DEFAULT_CONFIG)
        if inserted:
            logger.info("Initialized %d default config entries", inserted)
        if settings.scheduler_enabled:
            scheduler = create_scheduler(ingestor, app.state.job_runner, settings)
            scheduler.start()
            app.state.scheduler = scheduler
            logger.info("Scheduler started (fetch: %s, process: %s)", settings.fetch_cron, settings.process_cron)

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        if app.state.scheduler is not None:
            app.state.scheduler.shutdown(wait=False)
            app.state.scheduler = None
        runner = app.state.job_runner
        running = runner.get_running()
        if running is not None:
            runner.cancel(running.id)
            # In-flight model calls still need the gateway's client
            runner.wait(running.id, timeout=settings.shutdown_timeout)
            if running.is_active:
                logger.warning("Processing job %s still running at shutdown", running.id)
        gateway.close()

    return app


app = create_app()
