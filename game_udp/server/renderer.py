"""Terminal board rendering with blessed."""

from __future__ import annotations

from blessed import Terminal

from .registry import Snapshot


class BoardRenderer:
    """Draws every session at its position, origin in the centre of the screen.

    The two top rows are never occupied by a valid position and hold the
    status line.
    """

    def __init__(self, terminal: Terminal) -> None:
        self.term = terminal

    def render(self, snapshot: Snapshot) -> None:
        width, height = snapshot.world.size
        half_w, half_h = width // 2, height // 2
        output = [self.term.home + self.term.clear]
        output.append(
            self.term.move_xy(0, 0)
            + self.term.bold(f"Players: {len(snapshot.sessions)}")
        )
        for view in sorted(snapshot.sessions.values(), key=lambda v: v.player_number):
            col = view.position.x + half_w
            row = view.position.y + half_h
            if not (0 <= col < width and 0 <= row < height):
                continue
            marker = str(view.player_number % 10)
            output.append(self.term.move_xy(col, row) + self.term.bold_yellow(marker))
        print("".join(output), end="", flush=True)

    def cleanup(self) -> None:
        """Restore terminal state."""
        print(self.term.normal + self.term.clear, end="")
