"""Main daemon process for tracecore."""

import asyncio
import signal
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import psutil
from aiohttp import web
from loguru import logger

from .api import create_api_app
from .automation import PlatformAutomation
from .bus import EventBus
from .catalog import ProgramCatalog
from .config import Config
from .error_handling import ConfigError
from .network import NetworkInfo
from .providers.registry import build_providers
from .search import QueryDispatcher
from .usage import UsageTracker

VERSION = "0.1.0"


class TraceDaemon:
    """Main daemon coordinating all services."""

    def __init__(self, config: Config, config_path: Optional[Path] = None):
        self.config = config
        self.config_path = config_path
        self.start_time = datetime.now(timezone.utc)

        # Core services
        self.event_bus = EventBus()
        self.automation = PlatformAutomation()
        self.catalog = ProgramCatalog()
        self.usage = UsageTracker(
            config.usage_path,
            debounce_seconds=config.usage.debounce_seconds,
            event_bus=self.event_bus,
        )
        self.providers = build_providers(
            config,
            self.catalog,
            self.automation,
            event_bus=self.event_bus,
            network=NetworkInfo(),
            on_settings=self._open_settings,
            on_quit=self.request_shutdown,
        )
        self.dispatcher = QueryDispatcher.from_config(
            config,
            self.providers,
            self.usage,
            running_identifiers=self.catalog.running_identifiers,
            event_bus=self.event_bus,
        )

        # Statistics
        self.stats = {
            "search_count": 0,
            "selection_count": 0,
        }

        self._shutdown = asyncio.Event()

        # HTTP API
        self.api_app = None
        self.api_runner = None
        self.api_site = None

    async def start(self) -> None:
        """Start all daemon services."""
        logger.info("Starting tracecore daemon...")

        await self.event_bus.start()
        await self.usage.initialize()

        # Discovery touches the filesystem; keep it off the loop
        await asyncio.to_thread(self.catalog.refresh)

        self.event_bus.subscribe("search.published", self._on_search)
        self.event_bus.subscribe("usage.recorded", self._on_selection)

        await self._start_api()

        logger.info("tracecore daemon started successfully")

    async def stop(self) -> None:
        """Stop all daemon services."""
        logger.info("Stopping tracecore daemon...")

        if self.api_site:
            await self.api_site.stop()
        if self.api_runner:
            await self.api_runner.cleanup()

        # Pending selections must reach disk before exit
        await self.usage.close()
        await self.event_bus.stop()

        logger.info("tracecore daemon stopped")

    async def _start_api(self) -> None:
        """Start the HTTP API server."""
        self.api_app = create_api_app(self)
        self.api_runner = web.AppRunner(self.api_app)
        await self.api_runner.setup()

        host, port = self.config.api.host, self.config.api.port
        self.api_site = web.TCPSite(self.api_runner, host, port)
        await self.api_site.start()

        logger.info(f"API server started on http://{host}:{port}")

    def request_shutdown(self) -> None:
        self._shutdown.set()

    async def wait_closed(self) -> None:
        await self._shutdown.wait()

    def _open_settings(self) -> bool:
        target = self.config_path or Config.default_locations()[1]
        if not target.exists():
            target.parent.mkdir(parents=True, exist_ok=True)
            self.config.save(target)
        return self.automation.open_path(str(target))

    async def _on_search(self, event) -> None:
        self.stats["search_count"] += 1

    async def _on_selection(self, event) -> None:
        self.stats["selection_count"] += 1

    def get_status(self) -> dict:
        """Get daemon status and statistics."""
        process = psutil.Process()
        uptime = (datetime.now(timezone.utc) - self.start_time).total_seconds()

        return {
            "status": "running",
            "version": VERSION,
            "uptime": f"{uptime:.0f}s",
            "stats": {
                **self.stats,
                "usage_entries": len(self.usage),
                "usage_writes": self.usage.stats['writes'],
                "usage_write_errors": self.usage.stats['write_errors'],
                "memory_mb": process.memory_info().rss / 1024 / 1024,
                "cpu_percent": process.cpu_percent(),
            },
            "search": self.dispatcher.get_statistics(),
            "events": self.event_bus.get_stats(),
            "config": {
                "data_dir": str(self.config.data_dir),
                "providers": [p.name for p in self.providers],
            },
        }


def setup_logging(log_dir: Path, level: str = "INFO") -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=level
    )

    log_dir.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_dir / "daemon.log",
        rotation="1 day",
        retention="7 days",
        level="DEBUG"
    )


async def main(config_path: Optional[str] = None, log_level: str = "INFO"):
    """Main entry point for the daemon."""
    try:
        path = Path(config_path) if config_path else None
        config = Config.load(path)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(config.log_dir, log_level)

    daemon = TraceDaemon(config, Path(config_path) if config_path else None)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, daemon.request_shutdown)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(daemon.request_shutdown))

    try:
        await daemon.start()
        await daemon.wait_closed()
        logger.info("Shutdown signal received")
    except Exception as e:
        logger.exception(f"Daemon error: {e}")
    finally:
        await daemon.stop()


if __name__ == "__main__":
    asyncio.run(main())
