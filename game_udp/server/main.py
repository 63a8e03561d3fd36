"""Server entry point."""

import argparse
import asyncio
import logging

from blessed import Terminal

from ..common.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_WORLD_HEIGHT,
    DEFAULT_WORLD_WIDTH,
    PING_INTERVAL,
    REAP_INTERVAL,
    SESSION_TIMEOUT,
)
from .game_server import GameServer
from .renderer import BoardRenderer
from .world import World


def setup_logging(log_file: str, console: bool) -> None:
    """Configure logging to file and, unless the board is drawn, console."""
    handlers: list[logging.Handler] = [logging.FileHandler(log_file)]
    if console:
        handlers.append(logging.StreamHandler())
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
    # Blessed's terminal capability lookups are chatty at debug level
    logging.getLogger("blessed").setLevel(logging.WARNING)


def world_from_terminal(term: Terminal, width: int | None, height: int | None) -> World:
    """World bounds default to the size of the terminal the board is drawn on."""
    if width is None:
        width = term.width or DEFAULT_WORLD_WIDTH
    if height is None:
        height = term.height or DEFAULT_WORLD_HEIGHT
    return World(width, height)


def main() -> None:
    parser = argparse.ArgumentParser(description="game-udp server")
    parser.add_argument("--host", default=DEFAULT_HOST, help="Host to bind to")
    parser.add_argument(
        "--port", type=int, default=DEFAULT_PORT, help="UDP port to bind to"
    )
    parser.add_argument(
        "--width", type=int, help="World width (default: terminal width)"
    )
    parser.add_argument(
        "--height", type=int, help="World height (default: terminal height)"
    )
    parser.add_argument(
        "--render",
        action="store_true",
        help="Draw player positions in the terminal",
    )
    parser.add_argument(
        "--ping-interval",
        type=float,
        default=PING_INTERVAL,
        help=f"Seconds between heartbeats (default: {PING_INTERVAL})",
    )
    parser.add_argument(
        "--reap-interval",
        type=float,
        default=REAP_INTERVAL,
        help=f"Seconds between idle-session sweeps (default: {REAP_INTERVAL})",
    )
    parser.add_argument(
        "--session-timeout",
        type=float,
        default=SESSION_TIMEOUT,
        help=f"Idle seconds before a session is evicted (default: {SESSION_TIMEOUT})",
    )
    parser.add_argument(
        "--log-file", default="game_udp_server.log", help="Log file path"
    )
    args = parser.parse_args()

    setup_logging(args.log_file, console=not args.render)

    term = Terminal()
    world = world_from_terminal(term, args.width, args.height)
    renderer = BoardRenderer(term) if args.render else None

    server = GameServer(
        args.host,
        args.port,
        world,
        renderer=renderer,
        ping_interval=args.ping_interval,
        reap_interval=args.reap_interval,
        session_timeout=args.session_timeout,
    )
    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        if renderer:
            renderer.cleanup()
        print("\nServer stopped")


if __name__ == "__main__":
    main()
