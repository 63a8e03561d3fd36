"""World bounds and movement validation."""

from dataclasses import dataclass

from ..common.protocol import Position


@dataclass(frozen=True)
class World:
    width: int
    height: int
    # Origin is the centre of the board; x spans [-w/2, w/2), y spans [-h/2 + 2, h/2)

    def is_valid_position(self, position: Position) -> bool:
        """Check if a candidate position lies inside the world bounds.

        The lower y bound is offset by two rows. Clients depend on that
        offset, so it is kept as is.
        """
        half_w = self.width // 2
        half_h = self.height // 2
        if position.x < -half_w or position.x >= half_w:
            return False
        if position.y - 2 < -half_h or position.y >= half_h:
            return False
        return True

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height
