"""
PLC sampler entry point

Modes (config toggles):
    web_server=true   FastAPI app served by uvicorn; the lifespan drives the
                      poller, uvicorn handles SIGINT/SIGTERM
    web_server=false  headless poller; SIGINT/SIGTERM handled here
"""

from contextlib import asynccontextmanager
import asyncio
import logging
import logging.handlers
import signal
import sys
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.exceptions import PLCSamplerError, ConfigError, StartupCancelledError
from app.routers import health, plc_data
from app.services.lifecycle import Lifecycle
from config import APP_ROOT, Settings, get_settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Logging (console + daily rotating file)
# ------------------------------------------------------------
def setup_logging(settings: Settings) -> None:
    log_dir = Path(settings.log_dir)
    if not log_dir.is_absolute():
        log_dir = APP_ROOT / log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "app.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    # 1. console
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(settings.log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # 2. file, rotated at midnight, 30 days kept
    file_handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_file),
        when='midnight',
        interval=1,
        backupCount=30,
        encoding='utf-8',
    )
    file_handler.suffix = "%Y-%m-%d"
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    logger.info(f"[logging] log file: {log_file}")


# ------------------------------------------------------------
# FastAPI app
# ------------------------------------------------------------
def create_app(lifecycle: Lifecycle) -> FastAPI:
    """Build the read server around an (unstarted) lifecycle"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await lifecycle.start()
        except StartupCancelledError:
            logger.info("[startup] stopped before startup completed")
            await lifecycle.shutdown()
            raise
        except PLCSamplerError as e:
            logger.critical(f"[startup] {e}")
            await lifecycle.shutdown()
            raise
        logger.info("[startup] read server ready")

        yield

        logger.info("[shutdown] received interrupt signal, shutting down...")
        await lifecycle.shutdown()

    app = FastAPI(
        title="PLC Sampler",
        description="Latest DB1 sample read from an S7 PLC",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.state.lifecycle = lifecycle
    app.state.sample_cache = lifecycle.sample_cache

    app.include_router(plc_data.router)
    app.include_router(health.router)

    return app


class SamplerServer(uvicorn.Server):
    """uvicorn server that also aborts a lifecycle start still waiting on endpoints"""

    def __init__(self, config: uvicorn.Config, lifecycle: Lifecycle):
        super().__init__(config)
        self.lifecycle = lifecycle

    def handle_exit(self, sig, frame) -> None:
        self.lifecycle.request_stop()
        super().handle_exit(sig, frame)


def serve_http(lifecycle: Lifecycle) -> int:
    settings = lifecycle.settings
    server = SamplerServer(uvicorn.Config(
        create_app(lifecycle),
        host=settings.server_host,
        port=settings.server_port,
        log_config=None,
    ), lifecycle)
    server.run()
    # startup failures are already logged by the lifespan
    return 0 if server.started or lifecycle.stop_requested else 1


# ------------------------------------------------------------
# Headless mode
# ------------------------------------------------------------
def install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def on_signal(signum: int) -> None:
        if stop_event.is_set():
            logger.info(f"[shutdown] signal {signum} ignored, shutdown already in progress")
            return
        logger.info(f"[shutdown] received signal {signum}, shutting down...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, on_signal, sig)
        except NotImplementedError:
            # Windows event loops
            signal.signal(sig, lambda signum, frame: loop.call_soon_threadsafe(on_signal, signum))


async def run_headless(lifecycle: Lifecycle, stop_event: asyncio.Event = None) -> None:
    stop_event = stop_event or asyncio.Event()
    install_signal_handlers(stop_event)
    # a stop during start() must abort the endpoint waits too
    watcher = asyncio.create_task(stop_event.wait())
    watcher.add_done_callback(lambda _: lifecycle.request_stop())
    try:
        await lifecycle.start()
        await stop_event.wait()
    except StartupCancelledError:
        logger.info("[startup] stopped before startup completed")
    finally:
        watcher.cancel()
        await lifecycle.shutdown()


def main() -> int:
    try:
        settings = get_settings()
    except ConfigError as e:
        logging.basicConfig(format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        logger.critical(f"[startup] {e}")
        return 1

    setup_logging(settings)
    lifecycle = Lifecycle(settings)

    if settings.web_server:
        return serve_http(lifecycle)

    try:
        asyncio.run(run_headless(lifecycle))
    except PLCSamplerError as e:
        logger.critical(f"[startup] {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
