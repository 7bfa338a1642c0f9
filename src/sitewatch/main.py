"""
sitewatch - Main Entry Point

Monitors the availability of websites, aggregates the measurements over
rolling windows and raises alerts when thresholds are crossed.

Usage:
    python -m sitewatch.main [--config CONFIG_PATH] [--no-display] [--dashboard]

Configuration:
    The service reads configuration from:
    1. Environment variables (prefix SITEWATCH_, see sitewatch.settings)
    2. The JSON configuration file (websites, metrics, aggregators, alerts)
    3. Command line arguments

    The configuration file is written back on shutdown, including changes
    made through the control server.

Services:
    - checks: periodic HTTP requests per website
    - aggregators: periodic aggregation of metrics
    - alerts: threshold monitoring of metrics
    - control: line based TCP server (see sitewatch.shell)
    - dashboard: optional read-only Flask dashboard
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import threading
from datetime import datetime, timezone
from typing import Optional

from sitewatch.aggregation import AggregationService
from sitewatch.alerting import AlertService
from sitewatch.checking import CheckService
from sitewatch.config import ConfigStore, ConfigurationError
from sitewatch.control import CommandHandler, ControlServer
from sitewatch.display import Display
from sitewatch.metrics import MetricStore
from sitewatch.monitoring import Dashboard, HealthChecker, HealthStatus
from sitewatch.settings import Settings

logger = logging.getLogger(__name__)

HEALTH_CHECK_INTERVAL = 30  # seconds


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


class MonitorService:
    """
    Main monitor orchestrator.

    Manages the lifecycle of all components:
    - Metric store and configuration
    - Checks, aggregators and alerts
    - Control server
    - Monitoring (health, dashboard)
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._started_at: Optional[datetime] = None
        self._config_loaded = False

        self.store = MetricStore()
        self.config = ConfigStore()
        self.display = Display(enabled=settings.display_enabled)

        # Components (initialized on start)
        self.check_service: Optional[CheckService] = None
        self.aggregation_service: Optional[AggregationService] = None
        self.alert_service: Optional[AlertService] = None
        self._control_server: Optional[ControlServer] = None
        self._health_checker: Optional[HealthChecker] = None
        self._dashboard: Optional[Dashboard] = None
        self._dashboard_thread: Optional[threading.Thread] = None
        self._flask_server = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start every service and run until shutdown."""
        logger.info("=" * 60)
        logger.info("SITEWATCH")
        logger.info("=" * 60)
        logger.info(f"Config file: {self.settings.config_path}")
        logger.info(f"Control: {self.settings.control_host}:{self.settings.control_port}")
        logger.info("=" * 60)

        self._running = True
        self._started_at = datetime.now(timezone.utc)
        self._shutdown_event.clear()

        self._setup_signal_handlers()

        try:
            self._init_services()
            self._load_config()

            if self._shutdown_event.is_set():
                logger.info("Shutdown requested during startup")
                return

            await self._init_control()
            self._init_monitoring()

            logger.info("Monitor started successfully")
            logger.info("Press Ctrl+C to stop")

            await self._run_loop()

        except Exception as e:
            logger.exception(f"Fatal error: {e}")
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop every service and save the configuration."""
        if not self._running:
            return

        logger.info("Shutting down...")
        self._running = False
        self._shutdown_event.set()

        if self._control_server:
            try:
                await self._control_server.stop()
            except Exception as e:
                logger.warning(f"Error stopping control server: {e}")

        if self._dashboard:
            try:
                self._stop_dashboard()
            except Exception as e:
                logger.warning(f"Error stopping dashboard: {e}")

        if self.check_service:
            try:
                await self.check_service.close()
            except Exception as e:
                logger.warning(f"Error stopping checks: {e}")

        if self.aggregation_service:
            try:
                await self.aggregation_service.close()
            except Exception as e:
                logger.warning(f"Error stopping aggregators: {e}")

        if self.alert_service:
            self.alert_service.dispose_all()

        # Never overwrite a file that failed to load
        if self._config_loaded:
            try:
                self.config.save(self.settings.config_path)
            except OSError as e:
                logger.error(f"Could not save configuration: {e}")

        logger.info("Shutdown complete")

    def request_shutdown(self, reason: str = "manual") -> None:
        if not self._running:
            return
        logger.warning(f"Shutdown requested: {reason}")
        self._shutdown_event.set()

    def _init_services(self) -> None:
        """Create services and subscribe them to configuration events."""
        self.check_service = CheckService(
            self.config,
            self.store,
            timeout=self.settings.request_timeout,
        )
        self.aggregation_service = AggregationService(self.config, self.store, self.display)
        self.alert_service = AlertService(self.config, self.store, self.display)

        # Checks first: aggregators need the raw metrics, alerts need both
        self.check_service.run()
        self.aggregation_service.run()
        self.alert_service.run()

    def _load_config(self) -> None:
        """
        Load the configuration file.

        Raises:
            ConfigurationError: If the file is not a valid configuration
        """
        try:
            self.config.load(self.settings.config_path)
        except FileNotFoundError:
            logger.info(f"No configuration at {self.settings.config_path}, starting empty")
        self._config_loaded = True

    async def _init_control(self) -> None:
        handler = CommandHandler(self.config, self.store)
        self._control_server = ControlServer(
            handler,
            host=self.settings.control_host,
            port=self.settings.control_port,
        )
        await self._control_server.start()

    def _init_monitoring(self) -> None:
        self._health_checker = HealthChecker(
            check_service=self.check_service,
            aggregation_service=self.aggregation_service,
            alert_service=self.alert_service,
        )

        if self.settings.dashboard_enabled:
            self._dashboard = Dashboard(
                store=self.store,
                health_checker=self._health_checker,
                aggregation_service=self.aggregation_service,
                alert_service=self.alert_service,
                event_loop=asyncio.get_running_loop(),
                api_key=self.settings.dashboard_api_key,
                started_at=self._started_at,
            )
            self._start_dashboard()
        else:
            logger.info("Dashboard: Disabled via config")

    def _start_dashboard(self) -> None:
        """Start the Flask dashboard in a background thread."""
        from werkzeug.serving import make_server

        def run_flask():
            try:
                if not self._running:
                    logger.info("Dashboard: Skipping start (shutdown in progress)")
                    return

                app = self._dashboard.create_app()

                self._flask_server = make_server(
                    host=self.settings.dashboard_host,
                    port=self.settings.dashboard_port,
                    app=app,
                    threaded=True,
                )

                if not self._running:
                    self._flask_server.server_close()
                    logger.info("Dashboard: Skipping serve (shutdown in progress)")
                    return

                logger.info(
                    f"Dashboard: http://{self.settings.dashboard_host}:{self.settings.dashboard_port}"
                )
                self._flask_server.serve_forever()

            except Exception as e:
                logger.error(f"Dashboard failed to start: {e}")

        self._dashboard_thread = threading.Thread(target=run_flask, daemon=True)
        self._dashboard_thread.start()

    def _stop_dashboard(self) -> None:
        """Stop the Flask dashboard gracefully."""
        if self._flask_server:
            logger.info("Dashboard: Shutting down...")
            self._flask_server.shutdown()
            self._flask_server.server_close()
            self._flask_server = None

        if self._dashboard_thread:
            if self._dashboard_thread.is_alive():
                self._dashboard_thread.join(timeout=5)
                if self._dashboard_thread.is_alive():
                    logger.warning("Dashboard thread did not stop cleanly")
            self._dashboard_thread = None

    async def _run_loop(self) -> None:
        """Wait for shutdown, checking component health periodically."""
        while self._running:
            try:
                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=HEALTH_CHECK_INTERVAL,
                    )
                    break  # Shutdown requested
                except asyncio.TimeoutError:
                    pass

                if self._health_checker:
                    health = await self._health_checker.check_all()
                    unhealthy_components = [
                        c for c in health.components
                        if c.status == HealthStatus.UNHEALTHY
                    ]
                    if unhealthy_components:
                        logger.warning(
                            f"Health check failed: {[c.component for c in unhealthy_components]}"
                        )

            except Exception as e:
                logger.error(f"Error in main loop: {e}")
                await asyncio.sleep(5)

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            logger.info(f"Received signal {sig}")
            self._shutdown_event.set()

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Website availability monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to the JSON configuration file",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    parser.add_argument(
        "--no-display",
        action="store_true",
        help="Do not print aggregator results and alerts to the console",
    )
    parser.add_argument(
        "--dashboard",
        action="store_true",
        help="Serve the web dashboard",
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment, overridden by command line args."""
    overrides = {}
    if args.config:
        overrides["config_path"] = args.config
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.no_display:
        overrides["display_enabled"] = False
    if args.dashboard:
        overrides["dashboard_enabled"] = True
    return Settings(**overrides)


async def main_async(settings: Settings) -> int:
    """Async main function."""
    service = MonitorService(settings)

    try:
        await service.start()
        return 0
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def main() -> int:
    """Main entry point."""
    args = parse_args()
    settings = build_settings(args)
    configure_logging(settings.log_level)

    try:
        return asyncio.run(main_async(settings))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
