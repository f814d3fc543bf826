from __future__ import annotations

from dataclasses import dataclass

# Range reported between positions in different zones. Larger than any in-zone range.
OFF_ZONE_RANGE = 10_000

# Zones are ZONE_SIZE x ZONE_SIZE tiles; the anchor is the tile at the centre.
ZONE_SIZE = 50
ZONE_ANCHOR = (25, 25)


@dataclass(frozen=True)
class Position:
    zone: str
    x: int
    y: int

    def range_to(self, other: Position) -> int:
        if self.zone != other.zone:
            return OFF_ZONE_RANGE
        return chebyshev((self.x, self.y), (other.x, other.y))

    def in_range_to(self, other: Position, distance: int) -> bool:
        return self.range_to(other) <= distance

    def is_near_to(self, other: Position) -> bool:
        return self.range_to(other) <= 1

    def step_toward(self, other: Position) -> Position:
        """One tile toward ``other`` (8-way). Crossing zones jumps to the target zone's edge."""
        if self.zone != other.zone:
            return Position(other.zone, _clamp_edge(self.x), _clamp_edge(self.y))
        dx = (other.x > self.x) - (other.x < self.x)
        dy = (other.y > self.y) - (other.y < self.y)
        return Position(self.zone, self.x + dx, self.y + dy)

    def __str__(self) -> str:
        return f"({self.x}, {self.y}) in {self.zone}"


def zone_anchor(zone: str) -> Position:
    return Position(zone, *ZONE_ANCHOR)


def chebyshev(a: tuple[int, int], b: tuple[int, int]) -> int:
    return max(abs(a[0] - b[0]), abs(a[1] - b[1]))


def _clamp_edge(value: int) -> int:
    return min(max(value, 0), ZONE_SIZE - 1)
