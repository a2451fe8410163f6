"""Process wiring for the cc-sidecar daemon."""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from typing import Protocol

from . import __version__
from .config import SettingsError, SidecarSettings, load_settings
from .publisher import Publisher
from .registry import TaskRegistry
from .session import LivenessOracle, Tracker
from .storage import ChromaStore, ChromaUnavailableError
from .watcher import TranscriptWatcher

logger = logging.getLogger(__name__)

_JOIN_TIMEOUT = 5.0


class Service(Protocol):
    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


def configure_logging(level: str) -> None:
    """Configure root logging for the sidecar."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def build_tracker(
    settings: SidecarSettings,
    store: ChromaStore,
    *,
    process_check: LivenessOracle | None = None,
) -> Tracker:
    """Wire the tracker's completion callback through the registry and publisher."""

    registry = TaskRegistry(store)
    publisher = Publisher(store, registry, source=settings.source)
    return Tracker(
        settings.idle_threshold,
        settings.poll_interval,
        publisher.handle_completion,
        process_check=process_check,
    )


def run(services: list[Service], shutdown: threading.Event) -> None:
    """Start each service on its own thread and stop them all once ``shutdown`` is set."""

    threads = [
        threading.Thread(target=service.start, name=type(service).__name__, daemon=True)
        for service in services
    ]
    for thread in threads:
        thread.start()

    shutdown.wait()

    logger.info("Shutting down")
    for service in services:
        service.stop()
    for thread in threads:
        thread.join(timeout=_JOIN_TIMEOUT)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Watch Claude Code transcripts and publish session completion events"
    )
    parser.add_argument("--config", help="Path to a YAML config file", default=None)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for running the sidecar via CLI."""

    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except SettingsError as exc:
        configure_logging("INFO")
        logger.error("%s", exc)
        raise SystemExit(1)

    configure_logging(settings.log_level)

    store = ChromaStore(settings.chroma_persist_path)
    try:
        store.ping()
    except ChromaUnavailableError as exc:
        logger.error("Event store unavailable: %s", exc)
        raise SystemExit(1)

    tracker = build_tracker(settings, store)
    try:
        watcher = TranscriptWatcher(settings.watch_dir, tracker)
    except FileNotFoundError as exc:
        logger.error("Failed to create watcher: %s", exc)
        raise SystemExit(1)

    shutdown = threading.Event()

    def _request_shutdown(signum, _frame) -> None:
        logger.info("Received signal %s", signal.Signals(signum).name)
        shutdown.set()

    signal.signal(signal.SIGINT, _request_shutdown)
    signal.signal(signal.SIGTERM, _request_shutdown)

    logger.info(
        "cc-sidecar %s started, watching %s (idle threshold %.1fs)",
        __version__,
        settings.watch_dir,
        settings.idle_threshold,
    )
    run([watcher, tracker], shutdown)


if __name__ == "__main__":
    main()
