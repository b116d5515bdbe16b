"""Main application entry point."""

import asyncio
import json
import signal
import sys
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from aiohttp import web, web_runner

from .boot import BootHandler
from .bridge import BridgeResult, ErrorCode, SyncBridge
from .config.schema import ConfigurationError
from .config.settings import AppSettings, get_settings
from .scheduler.blackout import BlackoutWindow
from .scheduler.constraints import ConstraintChecker
from .scheduler.engine import APSchedulerEngine, BackoffPolicy, HostEngine
from .scheduler.handoff import SyncHandoff
from .scheduler.job_scheduler import JobScheduler
from .scheduler.worker import SyncAttemptExecutor
from .service import SyncService
from .storage import SignalStore, SqlStateStore, StateStore, close_database, init_database
from .utils.logging import setup_logging, get_logger, log_async_execution_time


class ReminderSyncApp:
    """Reminder sync scheduler application."""

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        state_store: Optional[StateStore] = None,
        engine: Optional[HostEngine] = None,
        sync_handler: Optional[Callable[[], Any]] = None
    ):
        """Initialize the application.

        Args:
            settings: Application settings; the global settings if omitted
            state_store: Store for signals and preferences; SQL-backed if omitted
            engine: Host scheduling engine; APScheduler-backed if omitted
            sync_handler: In-process sync logic; without it the HTTP client is the only consumer
        """
        self.settings = settings or get_settings()
        self.logger = get_logger("ReminderSync")
        self.running = False
        self.web_app: Optional[web.Application] = None
        self.web_runner: Optional[web_runner.AppRunner] = None
        self._state_store = state_store
        self._engine = engine
        self._sync_handler = sync_handler
        self._poll_task: Optional[asyncio.Task] = None

        self.engine: Optional[HostEngine] = None
        self.signal_store: Optional[SignalStore] = None
        self.job_scheduler: Optional[JobScheduler] = None
        self.handoff: Optional[SyncHandoff] = None
        self.bridge: Optional[SyncBridge] = None
        self.sync_service: Optional[SyncService] = None
        self.started_at: Optional[datetime] = None

    def build(self):
        """Wire the scheduler components together."""
        scheduling = self.settings.scheduling
        self._validate_scheduling()

        if self._state_store is None:
            db_manager = init_database(self.settings.database.url, create_tables=True)
            self._state_store = SqlStateStore(db_manager)
        self.signal_store = SignalStore(self._state_store)

        self.engine = self._engine or APSchedulerEngine(
            constraint_checker=ConstraintChecker(
                probe_host=scheduling.network_probe_host,
                probe_port=scheduling.network_probe_port,
                probe_timeout=scheduling.network_probe_timeout,
                storage_path=scheduling.storage_path,
                min_free_storage_mb=scheduling.min_free_storage_mb
            ),
            backoff_policy=BackoffPolicy(
                initial_seconds=scheduling.backoff_initial_seconds,
                multiplier=scheduling.backoff_multiplier,
                max_seconds=scheduling.backoff_max_seconds,
                max_attempts=scheduling.max_retry_attempts
            ),
            max_workers=scheduling.max_workers,
            misfire_grace_seconds=scheduling.misfire_grace_seconds
        )

        blackout = BlackoutWindow(scheduling.blackout_start_hour, scheduling.blackout_end_hour)
        executor = SyncAttemptExecutor(self.signal_store, blackout=blackout)

        self.job_scheduler = JobScheduler(
            engine=self.engine,
            executor=executor,
            signal_store=self.signal_store,
            job_name=scheduling.job_name,
            min_interval_minutes=scheduling.min_interval_minutes
        )
        self.handoff = SyncHandoff(self.signal_store)
        self.bridge = SyncBridge(self.job_scheduler, self.handoff)
        self.sync_service = SyncService(
            job_scheduler=self.job_scheduler,
            handoff=self.handoff,
            signal_store=self.signal_store,
            sync_handler=self._sync_handler,
            blackout=blackout,
            default_interval_minutes=scheduling.default_interval_minutes
        )

    def _validate_scheduling(self):
        scheduling = self.settings.scheduling

        if not scheduling.job_name.strip():
            raise ConfigurationError("Job name must not be empty")
        if scheduling.default_interval_minutes < 1:
            raise ConfigurationError(
                f"Default interval must be positive, got {scheduling.default_interval_minutes}"
            )
        if scheduling.max_workers < 1:
            raise ConfigurationError(f"At least one worker is required, got {scheduling.max_workers}")

    def _start_polling(self):
        """Consume pending syncs in-process when a sync handler was given."""
        consumer = self.settings.consumer
        if self._sync_handler is None or not consumer.poll_enabled:
            self.logger.info("In-process polling disabled, pending syncs are left to HTTP clients")
            return

        # The first check runs immediately, picking up signals written while stopped
        self._poll_task = asyncio.create_task(
            self.sync_service.poll_forever(consumer.poll_interval_seconds)
        )

    async def _stop_polling(self):
        if self._poll_task is None:
            return

        self._poll_task.cancel()
        try:
            await self._poll_task
        except asyncio.CancelledError:
            pass
        self._poll_task = None

    @log_async_execution_time
    async def startup(self):
        """Application startup."""
        self.logger.info(
            "Starting Reminder Sync Scheduler",
            version=self.settings.version,
            environment=self.settings.environment
        )

        self.build()

        if self.settings.boot.restore_on_startup:
            try:
                BootHandler(self.signal_store, self.sync_service).on_boot_completed()
            except Exception as e:
                self.logger.error("Failed to restore periodic sync on startup", error=str(e))

        await self._setup_web_server()
        self._start_polling()

        self.running = True
        self.started_at = datetime.now(timezone.utc)
        self.logger.info("Reminder Sync Scheduler started successfully")

    async def shutdown(self):
        """Application shutdown."""
        self.logger.info("Shutting down Reminder Sync Scheduler")
        self.running = False

        await self._stop_polling()

        if self.engine:
            try:
                self.engine.shutdown(wait=False)
            except Exception as e:
                self.logger.warning("Error stopping host engine", error=str(e))

        await self._stop_web_server()

        close_database()

        self.logger.info("Reminder Sync Scheduler stopped")

    async def run(self):
        """Run the main application loop."""
        await self.startup()

        try:
            while self.running:
                await asyncio.sleep(1)
        finally:
            await self.shutdown()

    def create_web_app(self) -> web.Application:
        """Create the HTTP application exposing the bridge operations."""
        app = web.Application()

        app.router.add_get('/health', self._health_handler)
        app.router.add_get('/status', self._status_handler)

        app.router.add_post('/sync/start', self._start_handler)
        app.router.add_post('/sync/stop', self._stop_handler)
        app.router.add_get('/sync/running', self._running_handler)
        app.router.add_get('/sync/status', self._work_status_handler)
        app.router.add_get('/sync/pending', self._check_pending_handler)
        app.router.add_delete('/sync/pending', self._clear_pending_handler)

        app.router.add_post('/auto-sync', self._auto_sync_handler)
        app.router.add_put('/sync/interval', self._interval_handler)

        return app

    async def _setup_web_server(self):
        """Set up web server for the bridge and health checks."""
        self.web_app = self.create_web_app()

        self.web_runner = web_runner.AppRunner(self.web_app)
        await self.web_runner.setup()

        server = self.settings.server
        site = web_runner.TCPSite(self.web_runner, server.host, server.port)
        await site.start()

        self.logger.info(f"Web server started on http://{server.host}:{server.port}")

    async def _stop_web_server(self):
        """Stop web server."""
        if self.web_runner:
            await self.web_runner.cleanup()
            self.web_runner = None
            self.logger.info("Web server stopped")

    @staticmethod
    def _result_response(result: BridgeResult) -> web.Response:
        if result.success:
            status = 200
        elif result.error and result.error.code == ErrorCode.INVALID_ARGUMENT:
            status = 400
        else:
            status = 500
        return web.json_response(result.model_dump(mode="json"), status=status)

    @staticmethod
    async def _read_json(request: web.Request) -> dict:
        if not request.can_read_body:
            return {}
        try:
            body = await request.json()
        except json.JSONDecodeError:
            return {"_invalid": True}
        return body if isinstance(body, dict) else {"_invalid": True}

    async def _run_blocking(self, func, *args):
        # Lifecycle operations may block on the engine or the database
        return await asyncio.to_thread(func, *args)

    async def _health_handler(self, request):
        """Health check endpoint."""
        uptime = 0.0
        if self.started_at:
            uptime = (datetime.now(timezone.utc) - self.started_at).total_seconds()

        health_data = {
            "status": "healthy" if self.running else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": self.settings.version,
            "environment": self.settings.environment,
            "uptime_seconds": uptime
        }

        status_code = 200 if self.running else 503
        return web.json_response(health_data, status=status_code)

    async def _status_handler(self, request):
        """Detailed status endpoint."""
        work_status = await self._run_blocking(self.bridge.get_work_status)
        pending = await self._run_blocking(self.bridge.check_pending_sync)

        status_data = {
            "application": {
                "name": self.settings.name,
                "version": self.settings.version,
                "environment": self.settings.environment,
                "running": self.running,
                "timestamp": datetime.now(timezone.utc).isoformat()
            },
            "job": work_status.model_dump(mode="json"),
            "pending_sync": pending.model_dump(mode="json")
        }

        return web.json_response(status_data)

    async def _start_handler(self, request):
        body = await self._read_json(request)
        if body.get("_invalid"):
            return self._result_response(
                BridgeResult.fail(ErrorCode.INVALID_ARGUMENT, "Request body must be a JSON object")
            )
        interval = body.get("interval_minutes", self.sync_service.get_sync_interval())
        result = await self._run_blocking(self.bridge.start_periodic_sync, interval)
        return self._result_response(result)

    async def _stop_handler(self, request):
        return self._result_response(await self._run_blocking(self.bridge.stop_periodic_sync))

    async def _running_handler(self, request):
        return self._result_response(await self._run_blocking(self.bridge.is_sync_running))

    async def _work_status_handler(self, request):
        return self._result_response(await self._run_blocking(self.bridge.get_work_status))

    async def _check_pending_handler(self, request):
        return self._result_response(await self._run_blocking(self.bridge.check_pending_sync))

    async def _clear_pending_handler(self, request):
        return self._result_response(await self._run_blocking(self.bridge.clear_pending_sync))

    async def _auto_sync_handler(self, request):
        """Turn auto-sync on or off; the choice survives restarts."""
        body = await self._read_json(request)
        enabled = body.get("enabled")
        if not isinstance(enabled, bool):
            return self._result_response(
                BridgeResult.fail(ErrorCode.INVALID_ARGUMENT, "'enabled' must be a boolean")
            )

        try:
            if enabled:
                await self._run_blocking(self.sync_service.start)
            else:
                await self._run_blocking(self.sync_service.stop)
        except Exception as e:
            self.logger.error("Failed to toggle auto-sync", enabled=enabled, error=str(e))
            return self._result_response(
                BridgeResult.fail(ErrorCode.SCHEDULER_ERROR, f"Failed to toggle auto-sync: {e}")
            )

        return self._result_response(BridgeResult.ok(autoSyncEnabled=enabled))

    async def _interval_handler(self, request):
        body = await self._read_json(request)
        minutes = body.get("interval_minutes")
        if isinstance(minutes, bool) or not isinstance(minutes, int):
            return self._result_response(
                BridgeResult.fail(ErrorCode.INVALID_ARGUMENT, "'interval_minutes' must be an integer")
            )

        try:
            effective = await self._run_blocking(self.sync_service.set_sync_interval, minutes)
        except Exception as e:
            self.logger.error("Failed to update sync interval", error=str(e))
            return self._result_response(
                BridgeResult.fail(ErrorCode.SCHEDULER_ERROR, f"Failed to update sync interval: {e}")
            )

        return self._result_response(BridgeResult.ok(intervalMinutes=effective))


def setup_signal_handlers(app: ReminderSyncApp):
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        app.logger.info(f"Received signal {signum}")
        app.running = False

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


async def main():
    """Main entry point."""
    setup_logging()

    logger = get_logger("main")
    logger.info("Initializing Reminder Sync Scheduler")

    app = ReminderSyncApp()
    setup_signal_handlers(app)

    await app.run()


def run():
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        sys.exit(0)
    except Exception as e:
        print(f"Application failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
