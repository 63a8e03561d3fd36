"""Client entry point.

Connects, sends one position update, one chat line and one heartbeat, then
prints whatever the server sends back until the listen time runs out.
"""

import argparse
import asyncio
import logging

from ..common.constants import DEFAULT_PORT
from ..common.protocol import MessageType, Position
from .game_client import GameClient


def setup_logging(log_file: str | None) -> None:
    """Configure logging to stderr, or to a file when one is given."""
    handler: logging.Handler = (
        logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    root.addHandler(handler)


async def run_client(args: argparse.Namespace) -> None:
    client = GameClient(args.host, args.port)
    try:
        state = await client.connect()
    except (TimeoutError, asyncio.TimeoutError):
        print("Failed to connect to server")
        return
    print(
        f"Connected as {client.local_identity}: "
        f"{len(state.players)} player(s), board {state.board_size[0]}x{state.board_size[1]}"
    )

    client.send_position(Position(args.x, args.y, args.z))
    if args.say:
        client.send_chat(args.say)
    client.send_heartbeat()

    loop = asyncio.get_running_loop()
    deadline = loop.time() + args.listen
    try:
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                packet = await asyncio.wait_for(client.received.get(), remaining)
            except (TimeoutError, asyncio.TimeoutError):
                break
            if packet.message_type == MessageType.HEARTBEAT:
                continue
            print(
                f"Received {packet.message_type.name} (seq={packet.sequence_number}): "
                f"{packet.payload.decode('utf-8', errors='replace')}"
            )
    finally:
        client.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="game-udp client")
    parser.add_argument("--host", default="127.0.0.1", help="Server host")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Server port")
    parser.add_argument("--x", type=int, default=10, help="X coordinate to move to")
    parser.add_argument("--y", type=int, default=5, help="Y coordinate to move to")
    parser.add_argument("--z", type=int, default=3, help="Z coordinate to move to")
    parser.add_argument("--say", default="Hello, world!", help="Chat line to send")
    parser.add_argument(
        "--listen",
        type=float,
        default=2.0,
        help="Seconds to keep printing server messages",
    )
    parser.add_argument("--log", help="Log file path (default: stderr)")
    args = parser.parse_args()

    setup_logging(args.log)

    try:
        asyncio.run(run_client(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
