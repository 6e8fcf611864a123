"""Main application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)

# Reduce noise from third-party libraries (must be set before importing them)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)
logging.getLogger("picows").setLevel(logging.WARNING)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from app.api import router
from app.clients import CandleRestClient, PriceFeedWebSocket
from app.config import Settings, get_settings
from app.engine_config import EngineConfig, load_engine_config
from app.services import AnalysisScheduler, MultiTimeframeAnalyzer, OutcomeVerifier
from app.storage import AnalysisLog, LivePriceCache
from core.scorer import SignalScorer

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@dataclass
class Engine:
    """All long-lived components of one process."""

    settings: Settings
    config: EngineConfig
    price_cache: LivePriceCache
    candle_client: CandleRestClient
    price_feed: PriceFeedWebSocket
    log: AnalysisLog
    verifier: OutcomeVerifier
    analyzer: MultiTimeframeAnalyzer
    scheduler: AnalysisScheduler


def build_engine(settings: Settings, config: EngineConfig) -> Engine:
    """Wire the engine components together (nothing is started)."""
    price_cache = LivePriceCache()
    candle_client = CandleRestClient(
        base_url=settings.candle_base_url,
        timeout=settings.candle_timeout,
    )
    price_feed = PriceFeedWebSocket(
        price_cache,
        url=settings.price_feed_url,
        reconnect_delay=settings.reconnect_delay,
    )
    log = AnalysisLog(settings.data_dir)
    verifier = OutcomeVerifier(
        price_cache,
        log,
        check_delay=settings.check_delay_seconds,
        recovery_grace=settings.recovery_grace_seconds,
    )
    analyzer = MultiTimeframeAnalyzer(
        candle_client,
        price_cache,
        config.timeframes,
        scorer=SignalScorer(config.indicators, config.scoring),
        scoring_config=config.scoring,
    )
    scheduler = AnalysisScheduler(
        analyzer,
        verifier,
        log,
        config.assets,
        run_interval=settings.run_interval_seconds,
        first_run_max_delay=settings.first_run_max_delay,
    )
    return Engine(
        settings=settings,
        config=config,
        price_cache=price_cache,
        candle_client=candle_client,
        price_feed=price_feed,
        log=log,
        verifier=verifier,
        analyzer=analyzer,
        scheduler=scheduler,
    )


async def recover_pending_checks(engine: Engine) -> int:
    """Re-create outcome checks for analyses recorded before a restart."""
    analyses = await engine.log.load_analyses()
    outcomes = await engine.log.load_outcomes()
    return engine.verifier.recover(analyses, outcomes)


async def shutdown_engine(engine: Engine) -> None:
    """Stop every background task and close the HTTP client."""
    for name, stop in (
        ("scheduler", engine.scheduler.stop),
        ("price feed", engine.price_feed.stop),
        ("outcome verifier", engine.verifier.stop),
        ("candle client", engine.candle_client.close),
    ):
        try:
            await stop()
        except Exception as e:
            logger.warning(f"Error stopping {name}: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting signal engine...")

    settings = get_settings()
    config = load_engine_config(settings.engine_config_path)
    engine = build_engine(settings, config)

    try:
        await recover_pending_checks(engine)
        await engine.price_feed.start()
        await engine.scheduler.start()
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        await shutdown_engine(engine)
        raise  # Re-raise to prevent app from starting in broken state

    app.state.price_cache = engine.price_cache
    app.state.price_feed = engine.price_feed
    app.state.scheduler = engine.scheduler
    app.state.verifier = engine.verifier
    logger.info(f"Watching instruments: {', '.join(str(a) for a in config.assets)}")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await shutdown_engine(engine)
    logger.info("Shutdown complete")


# Create FastAPI app with orjson for faster JSON serialization
app = FastAPI(
    title="Signal Engine",
    description="Hourly multi-timeframe technical analysis with live outcome checks",
    version=VERSION,
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include REST routes
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Signal Engine",
        "version": VERSION,
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


async def analyze_once(
    settings: Settings,
    config: EngineConfig,
    warmup: float = 0.0,
) -> list:
    """One analysis pass without the web server.

    The price feed runs for ``warmup`` seconds first so that spot prices
    are available. Outcome checks scheduled by the pass are dropped on exit.
    """
    engine = build_engine(settings, config)
    try:
        await engine.price_feed.start()
        if warmup > 0:
            logger.info(f"Warming up price feed for {warmup:.0f}s")
            await asyncio.sleep(warmup)
        return await engine.scheduler.run_once()
    finally:
        await shutdown_engine(engine)


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
