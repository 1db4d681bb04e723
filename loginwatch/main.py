"""Main entry point for loginwatch."""

import argparse
import asyncio
import logging
import signal
import sys

from .agent.client import CoordinatorClient
from .agent.context import LoginAgent
from .cache import BreachCache
from .config import Settings, load_settings, validate_settings
from .coordinator import (
    BreachCheckClient,
    BreachService,
    CollectorClient,
    Coordinator,
    CoordinatorServer,
    DeviceConfigStore,
)

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


def build_coordinator(settings: Settings) -> Coordinator:
    cache = BreachCache(ttl_seconds=settings.breach_cache_ttl)
    return Coordinator(
        store=DeviceConfigStore(settings.device_config_path),
        collector=CollectorClient(register_path=settings.register_path, timeout=settings.http_timeout),
        breach=BreachService(
            client=BreachCheckClient(settings.breach_api_url, timeout=settings.http_timeout),
            cache=cache,
        ),
    )


async def run_coordinator(settings: Settings) -> None:
    """Run the coordinator server until interrupted."""
    coordinator = build_coordinator(settings)
    server = CoordinatorServer(coordinator, settings.host, settings.port)

    config = await coordinator.store.load()
    logger.info("Device %s reporting to %s (enabled=%s)", config.device_id, config.api_endpoint, config.enabled)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    sweeper = asyncio.create_task(coordinator.breach.cache.run_sweeper(settings.breach_sweep_interval))
    await server.start()
    try:
        await stop.wait()
    finally:
        logger.info("Shutting down coordinator")
        sweeper.cancel()
        await asyncio.gather(sweeper, return_exceptions=True)
        await server.stop()
        await coordinator.close()


async def run_watch(settings: Settings, url: str, coordinator_url: str) -> None:
    """Open a browser on ``url`` and report logins made in it."""
    from playwright.async_api import async_playwright

    from .agent.playwright_bridge import PlaywrightDocument

    client = CoordinatorClient(coordinator_url, timeout=settings.http_timeout)
    device_id = await client.device_id()
    if device_id is None:
        logger.warning("Coordinator at %s is not answering; events will be dropped", coordinator_url)

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=False)
        try:
            page = await browser.new_page()
            document = PlaywrightDocument(page)
            agent = LoginAgent(document, client.send, settings=settings)

            closed = asyncio.Event()
            page.on("close", lambda _page: closed.set())

            await document.install()
            agent.start()
            await page.goto(url)
            logger.info("Watching %s; close the browser window to stop", url)
            await closed.wait()

            agent.close()
            await document.close()
        finally:
            await browser.close()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="loginwatch", description=__doc__)
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("coordinator", help="Run the coordinator server")

    watch = sub.add_parser("watch", help="Open a browser and report logins made in it")
    watch.add_argument("url")
    watch.add_argument(
        "--coordinator",
        default=None,
        help="Coordinator base URL (default: http://LOGINWATCH_HOST:LOGINWATCH_PORT)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Entry point."""
    args = parse_args(argv)
    settings = load_settings()
    configure_logging(args.log_level or settings.log_level)

    errors = validate_settings(settings)
    if errors:
        for err in errors:
            logger.error(err)
        sys.exit(1)

    if args.command == "coordinator":
        asyncio.run(run_coordinator(settings))
    elif args.command == "watch":
        coordinator_url = args.coordinator or f"http://{settings.host}:{settings.port}"
        try:
            asyncio.run(run_watch(settings, args.url, coordinator_url))
        except KeyboardInterrupt:
            pass


if __name__ == "__main__":
    main()
