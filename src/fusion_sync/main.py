"""Fusion Sync application entry point and lifecycle manager.

Startup sequence:
  config → logging → SQLite → FusionSolar client → orchestrator →
  batch runner → scheduler loop → HTTP trigger server
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import signal
import sys
from pathlib import Path

from fusion_sync.config.manager import get_config_manager, load_settings
from fusion_sync.config.schema import AppConfig
from fusion_sync.db.engine import close_db, init_db
from fusion_sync.db.repository import Repository
from fusion_sync.logging.structured import setup_logging
from fusion_sync.sync.batch import BatchRunner
from fusion_sync.sync.orchestrator import SyncOrchestrator
from fusion_sync.vendor.client import FusionSolarClient

logger = logging.getLogger(__name__)


class Application:
    """Main application lifecycle manager.

    Wires all components together and manages startup/shutdown ordering.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self._running = False
        self._tasks: list[asyncio.Task] = []
        self._stop_event = asyncio.Event()

        self._client: FusionSolarClient | None = None
        self._server = None

    async def _build(self) -> tuple[Repository, BatchRunner]:
        db = await init_db(self.config.db.path)
        repo = Repository(db)

        client = FusionSolarClient(self.config.vendor)
        self._client = client

        orchestrator = SyncOrchestrator(client, repo)
        runner = BatchRunner(
            repo,
            orchestrator,
            max_concurrent_users=self.config.sync.max_concurrent_users,
        )
        return repo, runner

    async def run_once(self) -> dict:
        """Run a single batch and return the trigger endpoint's payload."""
        self._running = True
        _, runner = await self._build()
        result = await runner.run()
        return result.to_dict()

    async def start(self) -> None:
        """Start all components, then serve the trigger endpoint until stopped."""
        from fusion_sync import __version__

        logger.info("Starting Fusion Sync v%s", __version__)
        self._running = True
        self._stop_event.clear()

        repo, runner = await self._build()

        if self.config.sync.scheduler_enabled:
            self._tasks.append(asyncio.create_task(self._sync_loop(runner)))
        else:
            logger.info("Scheduler disabled; sync runs only via the HTTP trigger")

        from fusion_sync.api.app import create_app

        app = create_app(self.config, repo, runner)
        app.state.application = self

        import uvicorn

        uvi_config = uvicorn.Config(
            app,
            host=self.config.api.host,
            port=self.config.api.port,
            log_level="warning",
        )
        server = uvicorn.Server(uvi_config)
        # Keep process signal handling in main() so Ctrl+C behaviour is predictable.
        server.install_signal_handlers = lambda: None
        self._server = server

        logger.info(
            "Sync trigger available at http://%s:%d/sync",
            self.config.api.host,
            self.config.api.port,
        )

        # Server.serve() blocks until shutdown
        await server.serve()

    async def stop(self) -> None:
        """Gracefully stop all components in reverse order."""
        if not self._running:
            return

        logger.info("Shutting down Fusion Sync")
        self._running = False
        self._stop_event.set()

        if self._server is not None:
            self._server.should_exit = True

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        if self._client is not None:
            await self._client.close()
            self._client = None

        await close_db()
        self._server = None
        logger.info("Shutdown complete")

    # ── Background task loops ────────────────────────────────

    async def _sync_loop(self, runner: BatchRunner) -> None:
        """Run the batch every ``sync.interval_seconds``."""
        interval = self.config.sync.interval_seconds
        run_now = self.config.sync.run_on_startup

        while not self._stop_event.is_set():
            if run_now:
                try:
                    await runner.run()
                except Exception:
                    logger.exception("Scheduled sync run failed")
            run_now = True

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="FusionSolar telemetry sync service")
    parser.add_argument("--config", default="config.yaml")
    parser.add_argument("--defaults", default="config.defaults.yaml")
    parser.add_argument(
        "--once", action="store_true",
        help="Run a single batch, print the result as JSON and exit",
    )
    return parser.parse_args(argv)


def _run_once(app: Application) -> int:
    async def _once() -> dict:
        try:
            return await app.run_once()
        finally:
            await app.stop()

    try:
        payload = asyncio.run(_once())
    except Exception as e:
        logger.exception("Sync error")
        print(json.dumps({"success": False, "error": str(e)}, indent=2))
        return 1
    print(json.dumps(payload, indent=2))
    return 0


def main(argv: list[str] | None = None) -> None:
    """Entry point for the application."""
    args = parse_args(argv)
    config = load_settings(Path(args.defaults), Path(args.config))

    setup_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_file=config.logging.file,
    )
    logger.debug("Effective configuration: %s", get_config_manager().to_json())

    app = Application(config)
    if args.once:
        sys.exit(_run_once(app))

    stop_requested = False
    signal_count = 0

    async def _run() -> None:
        try:
            await app.start()
        finally:
            if app._running:
                with contextlib.suppress(Exception):
                    await app.stop()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def _request_stop() -> None:
        nonlocal stop_requested, signal_count
        signal_count += 1
        if signal_count >= 2:
            os._exit(130)
        if stop_requested or loop.is_closed():
            return
        stop_requested = True
        loop.call_soon_threadsafe(lambda: asyncio.create_task(app.stop()))

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _request_stop)
    else:
        signal.signal(signal.SIGINT, lambda *_: _request_stop())
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, lambda *_: _request_stop())

    try:
        loop.run_until_complete(_run())
    except KeyboardInterrupt:
        _request_stop()
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
    finally:
        pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            with contextlib.suppress(Exception):
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()


if __name__ == "__main__":
    main()
