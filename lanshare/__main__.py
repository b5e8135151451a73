"""
Main entry point for the LAN file sharing application.
"""

import sys
import asyncio
import logging
import platform
import signal
import argparse
from dataclasses import replace

from .app import SharingNode
from .networking import LoggingEventSink
from .utils.settings import Settings, SettingsError, ensure_directories, get_app_data_dir, load_settings


# Configure logging
def setup_logging(log_level_name='INFO'):
    """Set up logging for the application.

    Args:
        log_level_name: The name of the logging level to use (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)

    log_dir = get_app_data_dir() / "logs"
    log_dir.mkdir(exist_ok=True, parents=True)
    log_file = log_dir / "system.log"

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized (log level: {log_level_name.upper()})")

    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lanshare", description="Share files with peers on the local network"
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        default=None,
        help="Set the logging level (default: from settings, info)"
    )
    parser.add_argument("--config", help="Path to a YAML settings file")
    parser.add_argument("--port", type=int, help="Service port (default: 7892)")

    commands = parser.add_subparsers(dest="command")
    commands.add_parser("gui", help="Open the desktop window (default)")
    commands.add_parser("serve", help="Serve the share directory until interrupted")
    commands.add_parser("scan", help="List peers on the local subnet")
    get_parser = commands.add_parser("get", help="Download a file from a peer")
    get_parser.add_argument("host", help="IP address of the peer")
    get_parser.add_argument("filename", help="Name of the file to download")
    return parser


def install_signal_handlers(loop, callback):
    """Call callback on SIGINT/SIGTERM."""
    if platform.system() != "Windows":
        # Unix-like systems can use add_signal_handler
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, callback)
    else:
        def win_handler(signum, frame):
            loop.call_soon_threadsafe(callback)

        signal.signal(signal.SIGINT, win_handler)


async def serve(settings: Settings) -> int:
    """Run the file server until a termination signal arrives."""
    node = SharingNode(settings, LoggingEventSink())
    task = node.start_server()
    if task is not None:
        await task
    if not node.server_running:
        return 1

    stop = asyncio.Event()
    install_signal_handlers(asyncio.get_running_loop(), stop.set)
    await stop.wait()

    logging.getLogger(__name__).info("Shutting down gracefully...")
    await node.shutdown()
    return 0


async def scan(settings: Settings) -> int:
    node = SharingNode(settings, LoggingEventSink())
    inventory = node.scan_subnet()
    await node.scan_task
    for host in inventory:
        print(host)
    return 1 if inventory.error else 0


async def get(settings: Settings, host: str, filename: str) -> int:
    node = SharingNode(settings, LoggingEventSink())
    task = node.download(host, filename)
    if task is None:
        return 2
    outcome = await task
    return 0 if outcome.succeeded else 1


def run_gui(settings: Settings) -> int:
    """Open the desktop window on a qasync event loop."""
    from PyQt5.QtWidgets import QApplication
    from qasync import QEventLoop

    from .ui import MainWindow

    logger = logging.getLogger(__name__)

    app = QApplication(sys.argv)
    app.setApplicationName("LAN File Sharing")

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)

    main_window = MainWindow(settings)
    install_signal_handlers(loop, main_window.close)
    main_window.show()

    logger.info("Application started")

    with loop:
        loop.run_forever()
    return 0


def main(argv=None):
    """Main entry point for the application."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
        if args.port is not None:
            settings = replace(settings, port=args.port)
    except SettingsError as e:
        parser.error(str(e))

    logger = setup_logging(log_level_name=args.log_level or settings.log_level)

    try:
        ensure_directories(settings)

        if args.command == "serve":
            status = asyncio.run(serve(settings))
        elif args.command == "scan":
            status = asyncio.run(scan(settings))
        elif args.command == "get":
            status = asyncio.run(get(settings, args.host, args.filename))
        else:
            status = run_gui(settings)

    except Exception as e:
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return 1

    logger.info("Application exiting")
    return status


if __name__ == "__main__":
    sys.exit(main())
