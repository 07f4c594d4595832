"""
Planar geometry for the biomolecule model.

Shapes are represented by their axis-aligned bounds, which is all the
attachment and motion logic needs: containment in the motion bounds,
overlap with other biomolecules, and insetting inside destination zones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


def as_vector(values) -> np.ndarray:
    """Return a fresh float vector, never an alias of the input."""
    return np.array(values, dtype=np.float64)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle given by its min and max corners."""
    x_min: float
    y_min: float
    x_max: float
    y_max: float

    def __post_init__(self):
        if self.x_max < self.x_min or self.y_max < self.y_min:
            raise ValueError(f"Rect max corner must not precede min corner: {self}")

    @staticmethod
    def from_center(center, width: float, height: float) -> "Rect":
        cx, cy = float(center[0]), float(center[1])
        return Rect(cx - width / 2, cy - height / 2, cx + width / 2, cy + height / 2)

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    @property
    def center(self) -> np.ndarray:
        return as_vector([(self.x_min + self.x_max) / 2, (self.y_min + self.y_max) / 2])

    def translated(self, dx: float, dy: float) -> "Rect":
        return Rect(self.x_min + dx, self.y_min + dy, self.x_max + dx, self.y_max + dy)

    def centered_at(self, position) -> "Rect":
        return Rect.from_center(position, self.width, self.height)

    def contains_point(self, point) -> bool:
        x, y = float(point[0]), float(point[1])
        return self.x_min <= x <= self.x_max and self.y_min <= y <= self.y_max

    def contains_rect(self, other: "Rect") -> bool:
        return (
            self.x_min <= other.x_min and other.x_max <= self.x_max
            and self.y_min <= other.y_min and other.y_max <= self.y_max
        )

    def intersects(self, other: "Rect") -> bool:
        return not (
            other.x_min > self.x_max or other.x_max < self.x_min
            or other.y_min > self.y_max or other.y_max < self.y_min
        )

    def union(self, other: "Rect") -> "Rect":
        return Rect(
            min(self.x_min, other.x_min),
            min(self.y_min, other.y_min),
            max(self.x_max, other.x_max),
            max(self.y_max, other.y_max),
        )


def bounding_rect(points: np.ndarray) -> Rect:
    """Bounds of an (n, 2) point array."""
    points = np.atleast_2d(points)
    mins = points.min(axis=0)
    maxs = points.max(axis=0)
    return Rect(float(mins[0]), float(mins[1]), float(maxs[0]), float(maxs[1]))


class MotionBounds:
    """
    Region within which a biomolecule may move.

    A bounds of None means the biomolecule is unconstrained. The region is
    replaced (not mutated) when the scene changes, so strategies always see a
    consistent snapshot.
    """

    def __init__(self, bounds: Optional[Rect] = None):
        self.bounds = bounds

    def in_bounds(self, shape: Rect) -> bool:
        return self.bounds is None or self.bounds.contains_rect(shape)

    def test_if_in_motion_bounds(self, shape: Rect, position) -> bool:
        """Check whether the shape, moved so its center is at position, stays in bounds."""
        return self.in_bounds(shape.centered_at(position))

    def test_if_in_motion_bounds_with_delta(self, shape: Rect, velocity, dt: float) -> bool:
        return self.in_bounds(shape.translated(velocity[0] * dt, velocity[1] * dt))

    def get_motion_vector_for_bounce(
        self,
        shape: Rect,
        original_motion_vector,
        dt: float,
        max_velocity: float,
    ) -> np.ndarray:
        """
        Get a motion vector that keeps the shape in bounds.

        Reverses x, then y, then both. A shape that is already out of bounds
        is sent towards the center of the bounds at max_velocity.
        """
        velocity = as_vector(original_motion_vector)
        if self.bounds is None:
            return velocity

        if not self.in_bounds(shape):
            to_center = self.bounds.center - shape.center
            distance = np.linalg.norm(to_center)
            if distance == 0:
                return np.zeros(2)
            return to_center / distance * max_velocity

        for flip in ([-1.0, 1.0], [1.0, -1.0], [-1.0, -1.0]):
            candidate = velocity * flip
            if self.test_if_in_motion_bounds_with_delta(shape, candidate, dt):
                return candidate

        logger.debug("No bounce vector keeps %s inside %s", shape, self.bounds)
        return np.zeros(2)

    def __repr__(self) -> str:
        return f"MotionBounds({self.bounds!r})"
