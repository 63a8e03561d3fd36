"""Client library for game-udp servers.

Example usage:

    from game_udp.client import GameClient
    from game_udp.common.protocol import Position

    async def main():
        client = GameClient("127.0.0.1", 4000)
        state = await client.connect()
        client.send_position(Position(3, 1, 0))
        client.send_chat("hi")
        ...
        client.close()

    asyncio.run(main())
"""

from .game_client import GameClient

__all__ = ["GameClient"]
