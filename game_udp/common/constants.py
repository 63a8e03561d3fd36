"""Shared constants for client and server."""

import os

# Network
DEFAULT_HOST = os.environ.get("GAME_UDP_HOST", "0.0.0.0")
DEFAULT_PORT = int(os.environ.get("GAME_UDP_PORT", "4000"))

# Wire format
PROTOCOL_VERSION = 1
HEADER_SIZE = 6  # tag (1) + version (1) + sequence number (4)

# Liveness
PING_INTERVAL = 3.0  # Server sends HEARTBEAT to every session
REAP_INTERVAL = 5.0  # Server evicts idle sessions
SESSION_TIMEOUT = 10.0  # Idle time after which a session is evicted

# World bounds used when no terminal size is available
DEFAULT_WORLD_WIDTH = 80
DEFAULT_WORLD_HEIGHT = 24

WELCOME_TEXT = "Welcome to the server!"
