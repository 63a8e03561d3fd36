#!/usr/bin/env python3
"""Example bot that wanders around and greets players who join.

The bot:
- Steps one cell in a random direction every second
- Says hello in chat whenever a new player joins
- Keeps its session alive by answering server heartbeats

Usage:
    python examples/wander_bot.py [--host HOST] [--port PORT]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random

from game_udp.client import GameClient
from game_udp.common.protocol import MessageType, Position, deserialize_identity

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("wander_bot")

# Movement interval (seconds)
MOVE_INTERVAL = 1.0

STEPS = [(0, -1), (0, 1), (1, 0), (-1, 0)]


async def main() -> None:
    parser = argparse.ArgumentParser(description="Wandering bot for game-udp")
    parser.add_argument("--host", default="127.0.0.1", help="Server host")
    parser.add_argument("--port", type=int, default=4000, help="Server port")
    args = parser.parse_args()

    bot = GameClient(args.host, args.port)

    logger.info(f"Connecting to {args.host}:{args.port}...")
    try:
        state = await bot.connect()
    except (TimeoutError, asyncio.TimeoutError):
        logger.error("Failed to connect to server")
        return
    logger.info(
        f"Connected as {bot.local_identity}, {len(state.players)} player(s) online"
    )

    movement_task = asyncio.create_task(wander(bot))
    try:
        while True:
            packet = await bot.received.get()
            if packet.message_type == MessageType.PLAYER_JOIN:
                identity = deserialize_identity(packet.payload)
                bot.send_chat(f"Hello, {identity}!")
            elif packet.message_type == MessageType.CHAT_MESSAGE:
                logger.info(f"Chat: {bot.chat_log[-1]}")
    finally:
        movement_task.cancel()
        try:
            await movement_task
        except asyncio.CancelledError:
            pass
        bot.close()


async def wander(bot: GameClient) -> None:
    """Step to a random neighbouring cell; the server corrects invalid moves."""
    while True:
        await asyncio.sleep(MOVE_INTERVAL)
        dx, dy = random.choice(STEPS)
        bot.send_position(Position(bot.position.x + dx, bot.position.y + dy, 0))


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
