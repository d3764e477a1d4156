"""
Main speekly application.
Hosts the paragraph tracker behind the web server until interrupted.
"""

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

from . import debug_log
from .config import (
    Config,
    get_config_path,
    get_script_settings,
    get_tracking_settings,
    load_config,
    save_config,
)
from .server import WebServer

logger = logging.getLogger(__name__)


class SpeeklyApp:
    """
    Runs the web server and keeps it alive until asked to stop.
    """

    def __init__(self, server: WebServer, script_text: str | None = None) -> None:
        self.server: WebServer = server
        self.script_text: str | None = script_text
        self.shutdown_event: asyncio.Event = asyncio.Event()

    async def start(self) -> None:
        """Start serving and wait for shutdown."""
        print("Starting Speekly...")
        await self.server.start()

        if self.script_text is not None:
            if self.server.load_script(self.script_text):
                assert self.server.tracker is not None
                print(f"Script loaded: {self.server.tracker.paragraph_count} paragraphs")
            else:
                print("Warning: script has no paragraphs, waiting for one from a client")

        print("\n✓ Speekly ready!")
        print(f"  Send fragments to http://{self.server.host}:{self.server.port}/fragment")
        print(f"  or connect to ws://{self.server.host}:{self.server.port}/ws")
        print("  Press Ctrl+C to stop\n")

        await self.shutdown_event.wait()

    async def stop(self) -> None:
        """Stop the speekly application."""
        print("\nStopping Speekly...")
        await self.server.stop()
        print("Speekly stopped.")


def main() -> None:
    """Main entry point."""
    # Load config first to use as defaults
    config: Config = load_config()
    tracking = get_tracking_settings(config)
    script_settings = get_script_settings(config)

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Speekly - Follow a speaker through a practice script"
    )

    parser.add_argument(
        "--host",
        default=config.get("host", "127.0.0.1"),
        help="Web server host (default: from config or 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=config.get("port", 8000),
        help="Web server port (default: from config or 8000)"
    )

    parser.add_argument(
        "--script", "-s",
        type=Path,
        default=None,
        help="Script file to load at startup (one paragraph per line)"
    )

    parser.add_argument(
        "--markdown",
        action="store_true",
        default=script_settings.get("render_markdown", False),
        help="Strip Markdown formatting from scripts"
    )

    parser.add_argument(
        "--completion-delay-ms",
        type=int,
        default=tracking.get("completion_delay_ms", 1000),
        help="Delay before advancing after a paragraph is read (default: from config or 1000)"
    )

    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Save current CLI options to config file and exit"
    )

    parser.add_argument(
        "--debug-log",
        action="store_true",
        default=config.get("debug_log", False),
        help="Enable debug logging to ./logs/"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug output on the console"
    )

    args: argparse.Namespace = parser.parse_args()

    # Configure logging - minimal console output
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    tracking["completion_delay_ms"] = args.completion_delay_ms
    script_settings["render_markdown"] = args.markdown

    if args.save_config:
        config["host"] = args.host
        config["port"] = args.port
        config["debug_log"] = args.debug_log
        config["tracking"] = tracking
        config["script"] = script_settings

        if save_config(config):
            print(f"Configuration saved to {get_config_path()}")
        return

    # Enable debug logging if requested
    if args.debug_log:
        debug_log.enable()
        print("Debug logging enabled (logs will be saved to ./logs/)")

    script_text: str | None = None
    if args.script is not None:
        try:
            script_text = args.script.read_text(encoding='utf-8')
        except OSError as e:
            print(f"Error reading script {args.script}: {e}", file=sys.stderr)
            sys.exit(1)

    server = WebServer(
        host=args.host,
        port=args.port,
        tracking_settings=tracking,
        script_settings=script_settings
    )
    app: SpeeklyApp = SpeeklyApp(server, script_text)

    # Handle shutdown gracefully
    loop: asyncio.AbstractEventLoop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def shutdown(sig: int, frame: object) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM) gracefully."""
        print("\nReceived shutdown signal...")
        loop.call_soon_threadsafe(app.shutdown_event.set)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        pass
    finally:
        # Ensure clean shutdown
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
        # Cancel any remaining tasks
        pending: set[asyncio.Task[object]] = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        # Allow cancelled tasks to complete
        if pending:
            loop.run_until_complete(asyncio.gather(
                *pending, return_exceptions=True))
        loop.close()


if __name__ == "__main__":
    main()
