"""
healthwatch - Main Entry Point

Usage:
    python -m healthwatch.main --config config.yaml
    python -m healthwatch.main --config config.yaml --verbose
"""

# Load .env FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import argparse
import asyncio
import signal
import sys
from datetime import timedelta
from typing import List

from healthwatch.api.server import create_app
from healthwatch.core.builder import HealthCheckBuilder
from healthwatch.infrastructure.config import AppConfig, SecretsConfig, init_config
from healthwatch.infrastructure.logging import bind_context, configure_logging, get_logger
from healthwatch.infrastructure.metrics import metrics
from healthwatch.monitoring.alerts import (
    AlertChannel,
    AlertSink,
    SlackChannel,
    TelegramChannel,
    WebhookChannel,
)
from healthwatch.monitoring.history import HistoryStore
from healthwatch.monitoring.monitor import MonitorLoop
from healthwatch.monitoring.predictive import PredictiveAnalyzer
from healthwatch.monitoring.publisher import ChangePublisher
from healthwatch.probes.startup import StartupSignal


def build_alert_channels(config: AppConfig, secrets: SecretsConfig) -> List[AlertChannel]:
    """Channels enabled in config that also have credentials."""
    logger = get_logger(__name__)
    channels: List[AlertChannel] = []

    if config.alerts.enable_webhook:
        if secrets.webhook_url:
            channels.append(WebhookChannel(secrets.webhook_url))
        else:
            logger.warning("Webhook alerts enabled but HEALTH_WEBHOOK_URL is not set")

    if config.alerts.enable_slack:
        if secrets.slack_webhook_url:
            channels.append(SlackChannel(secrets.slack_webhook_url))
        else:
            logger.warning("Slack alerts enabled but HEALTH_SLACK_WEBHOOK_URL is not set")

    if config.alerts.enable_telegram:
        if secrets.telegram_bot_token and secrets.telegram_chat_id:
            channels.append(TelegramChannel(secrets.telegram_bot_token, secrets.telegram_chat_id))
        else:
            logger.warning("Telegram alerts enabled but bot token or chat id is not set")

    return channels


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Service health monitoring and predictive failure analysis"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration file (defaults apply when omitted)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    return parser.parse_args()


async def async_main() -> None:
    """Async entry point."""
    args = parse_args()

    # Load configuration
    config, secrets = init_config(args.config)

    # Configure logging
    log_level = "DEBUG" if args.verbose else config.observability.log_level
    configure_logging(
        log_level=log_level,
        log_format=config.observability.log_format,
    )

    logger = get_logger(__name__)
    bind_context(service=config.service.name)
    logger.info(
        "healthwatch starting",
        environment=config.environment,
        config_file=args.config,
        customized=config.diff_from_defaults(),
    )

    # Shared stores
    history = HistoryStore()
    alert_sink = AlertSink(
        channels=build_alert_channels(config, secrets),
        enable_external_channels=config.alerts.enable_external_channels,
        enable_auto_actions=config.alerts.enable_auto_actions,
        retention=config.alerts.retention,
    )

    startup_signal = StartupSignal()
    analyzer = PredictiveAnalyzer(history, alert_sink, config.predictive)
    registry = HealthCheckBuilder.from_config(config, startup_signal, analyzer).build()

    metrics.start_server(config.observability.metrics_port)

    publisher = ChangePublisher(
        secrets.redis_url,
        channel=config.publish.channel,
        enabled=config.publish.enabled,
    )
    monitor = MonitorLoop(
        registry.evaluate,
        service_name=config.service.name,
        history=history,
        publisher=publisher,
        interval_seconds=config.monitor.interval_seconds,
        history_retention=timedelta(hours=config.monitor.history_retention_hours),
    )

    # Start API server in background
    import uvicorn

    app = create_app(
        registry,
        alert_sink=alert_sink,
        history=history,
        enable_startup_probe=config.service.enable_startup_probe,
        details_auth_enabled=config.details_auth.enabled,
        details_api_key=secrets.details_api_key,
    )
    api_config = uvicorn.Config(
        app,
        host=config.observability.api_host,
        port=config.observability.api_port,
        log_level="error",
    )
    server = uvicorn.Server(api_config)
    api_task = asyncio.create_task(server.serve())

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    try:
        await monitor.start()
        startup_signal.mark_ready()
        logger.info(
            "healthwatch ready",
            api_port=config.observability.api_port,
            metrics_port=config.observability.metrics_port,
        )
        await stop_event.wait()
        logger.info("Shutdown requested")
    except asyncio.CancelledError:
        logger.info("Main loop cancelled")
    except Exception as e:
        logger.exception("Main loop crashed", error=str(e))
    finally:
        await monitor.stop()
        await alert_sink.close()
        for registration in registry.registrations:
            close = getattr(registration.probe, "close", None)
            if close is not None:
                await close()

        server.should_exit = True
        try:
            await api_task
        except asyncio.CancelledError:
            pass
        logger.info("healthwatch stopped")


def main() -> None:
    """Synchronous entry point."""
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
