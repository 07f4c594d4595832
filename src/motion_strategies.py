"""
Motion strategies for mobile biomolecules.

A strategy turns the current position, the biomolecule's shape, and the
elapsed time into the next position. The 3D variants carry a depth value
z in [-1, 0] that the attachment logic uses for fading and teleporting.

Every strategy listens to its owner's motion bounds property and refuses
any move that would carry an in-bounds shape out of the current bounds.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from constants import APPROACH_VELOCITY
from geometry import MotionBounds, Rect, as_vector
from observable import Property

logger = logging.getLogger(__name__)

MIN_DIRECTION_CHANGE_TIME = 0.25
MAX_DIRECTION_CHANGE_TIME = 1.25

RANDOM_WALK_MIN_VELOCITY = 200.0
RANDOM_WALK_MAX_VELOCITY = 400.0
RANDOM_WALK_Z_VELOCITY = 0.5

WANDER_MIN_VELOCITY = 100.0
WANDER_MAX_VELOCITY = 500.0
WANDER_MAX_ANGLE_OFFSET = np.pi / 6

MAX_Z_VELOCITY = 10.0

DRIFT_VELOCITY = 250.0
PRE_FADE_TIME = 1.5
FADE_TIME = 1.0


def _draw_direction_change_countdown(rng: np.random.Generator) -> float:
    return MIN_DIRECTION_CHANGE_TIME + rng.random() * (MAX_DIRECTION_CHANGE_TIME - MIN_DIRECTION_CHANGE_TIME)


class MotionStrategy:
    """
    Base class for motion strategies.

    Args:
        motion_bounds_property: Property holding the current MotionBounds.
            None means unconstrained.
    """

    def __init__(self, motion_bounds_property: Optional[Property] = None):
        self.motion_bounds_property = motion_bounds_property or Property(MotionBounds())
        self.motion_bounds = self.motion_bounds_property.get()
        self.motion_bounds_property.link(self._on_motion_bounds_changed)

    def _on_motion_bounds_changed(self, motion_bounds, _old=None) -> None:
        self.motion_bounds = motion_bounds

    def dispose(self) -> None:
        self.motion_bounds_property.unlink(self._on_motion_bounds_changed)

    def next_position(self, position, shape: Rect, dt: float) -> np.ndarray:
        raise NotImplementedError

    def next_position_3d(self, position, shape: Rect, dt: float) -> np.ndarray:
        position = as_vector(position)
        xy = self.next_position(position[:2], shape, dt)
        return np.array([xy[0], xy[1], position[2]])

    def _refuse_if_leaving_bounds(self, position, shape: Rect, new_position) -> np.ndarray:
        """Return new_position, or the unchanged position if the move leaves the bounds."""
        if self.motion_bounds.in_bounds(shape) and not self.motion_bounds.test_if_in_motion_bounds(shape, new_position):
            return as_vector(position)
        return as_vector(new_position)


class Stillness(MotionStrategy):
    """No motion at all. Used while some other object positions the biomolecule."""

    def next_position(self, position, shape, dt):
        return as_vector(position)


class FollowAttachmentSite(MotionStrategy):
    """Keep the biomolecule on an attachment site, minus an offset."""

    def __init__(self, attachment_site, offset=(0.0, 0.0), motion_bounds_property=None):
        super().__init__(motion_bounds_property)
        self.attachment_site = attachment_site
        self.offset = as_vector(offset)

    def next_position(self, position, shape, dt):
        return self.attachment_site.position - self.offset

    def next_position_3d(self, position, shape, dt):
        xy = self.next_position(position, shape, dt)
        return np.array([xy[0], xy[1], 0.0])


class RandomWalk(MotionStrategy):
    """
    Uncorrelated random motion.

    Speed and direction are redrawn every 0.25-1.25 s. A step that would
    leave the bounds is replaced by a bounce. Depth relaxes towards z = 0.
    """

    def __init__(self, motion_bounds_property=None, rng: Optional[np.random.Generator] = None):
        super().__init__(motion_bounds_property)
        self.rng = rng or np.random.default_rng()
        self.velocity = np.zeros(2)
        self.direction_change_countdown = 0.0

    def _redraw_velocity(self) -> None:
        speed = RANDOM_WALK_MIN_VELOCITY + self.rng.random() * (RANDOM_WALK_MAX_VELOCITY - RANDOM_WALK_MIN_VELOCITY)
        angle = 2 * np.pi * self.rng.random()
        self.velocity = speed * np.array([np.cos(angle), np.sin(angle)])
        self.direction_change_countdown = _draw_direction_change_countdown(self.rng)

    def next_position(self, position, shape, dt):
        self.direction_change_countdown -= dt
        if self.direction_change_countdown <= 0:
            self._redraw_velocity()
        if not self.motion_bounds.test_if_in_motion_bounds_with_delta(shape, self.velocity, dt):
            self.velocity = self.motion_bounds.get_motion_vector_for_bounce(
                shape, self.velocity, dt, RANDOM_WALK_MAX_VELOCITY
            )
        return as_vector(position) + self.velocity * dt

    def next_position_3d(self, position, shape, dt):
        position = as_vector(position)
        xy = self.next_position(position[:2], shape, dt)
        z = min(0.0, position[2] + RANDOM_WALK_Z_VELOCITY * dt)
        return np.array([xy[0], xy[1], z])


class WanderInGeneralDirection(MotionStrategy):
    """
    Wander roughly along a general direction.

    Each velocity is held for a random dwell time. A new one has a random
    speed and a direction within 30 degrees of the general direction.

    Args:
        general_direction: Direction to wander in (normalized internally)
        motion_bounds_property: Property holding the current MotionBounds
        rng: Random number generator
    """

    def __init__(self, general_direction, motion_bounds_property=None, rng: Optional[np.random.Generator] = None):
        super().__init__(motion_bounds_property)
        self.rng = rng or np.random.default_rng()
        direction = as_vector(general_direction)
        norm = np.linalg.norm(direction)
        if norm == 0:
            raise ValueError("general_direction must be non-zero")
        self.general_direction = direction / norm
        self.velocity = np.zeros(2)
        self.direction_change_countdown = 0.0

    def _redraw_velocity(self) -> None:
        speed = WANDER_MIN_VELOCITY + self.rng.random() * (WANDER_MAX_VELOCITY - WANDER_MIN_VELOCITY)
        angle = (self.rng.random() * 2 - 1) * WANDER_MAX_ANGLE_OFFSET
        c, s = np.cos(angle), np.sin(angle)
        rotated = np.array([
            c * self.general_direction[0] - s * self.general_direction[1],
            s * self.general_direction[0] + c * self.general_direction[1],
        ])
        self.velocity = rotated * speed
        self.direction_change_countdown = _draw_direction_change_countdown(self.rng)

    def next_position(self, position, shape, dt):
        self.direction_change_countdown -= dt
        if self.direction_change_countdown <= 0:
            self._redraw_velocity()
        if not self.motion_bounds.test_if_in_motion_bounds_with_delta(shape, self.velocity, dt):
            self.velocity = self.motion_bounds.get_motion_vector_for_bounce(
                shape, self.velocity, dt, WANDER_MAX_VELOCITY
            )
            self.direction_change_countdown = _draw_direction_change_countdown(self.rng)
        return as_vector(position) + self.velocity * dt


class MoveDirectlyToDestination(MotionStrategy):
    """
    Move in a straight line towards a possibly moving destination.

    The target is the destination property's value minus an offset. Depth
    moves to 0 at a rate that makes it arrive together with the xy motion,
    capped at MAX_Z_VELOCITY.

    Args:
        destination_property: Property holding the destination position
        motion_bounds_property: Property holding the current MotionBounds
        destination_offset: Offset subtracted from the destination
        velocity: Scalar speed of the approach
    """

    def __init__(
        self,
        destination_property: Property,
        motion_bounds_property=None,
        destination_offset=(0.0, 0.0),
        velocity: float = APPROACH_VELOCITY,
    ):
        super().__init__(motion_bounds_property)
        if velocity <= 0:
            raise ValueError(f"velocity must be positive, got {velocity}")
        self.destination_property = destination_property
        self.offset = as_vector(destination_offset)
        self.scalar_velocity = float(velocity)

    @property
    def destination(self) -> np.ndarray:
        return as_vector(self.destination_property.get())[:2] - self.offset

    def next_position(self, position, shape, dt):
        position = as_vector(position)
        return self.next_position_3d([position[0], position[1], 0.0], shape, dt)[:2]

    def next_position_3d(self, position, shape, dt):
        position = as_vector(position)
        xy, z = position[:2], position[2]
        destination = self.destination
        to_destination = destination - xy
        distance = float(np.linalg.norm(to_destination))

        if distance > 0:
            z_velocity = min(abs(z) * self.scalar_velocity / distance, MAX_Z_VELOCITY)
        else:
            z_velocity = MAX_Z_VELOCITY
        new_z = min(0.0, z + z_velocity * dt)

        if distance <= self.scalar_velocity * dt:
            new_xy = destination
            new_z = 0.0
        else:
            new_xy = xy + to_destination / distance * self.scalar_velocity * dt

        new_xy = self._refuse_if_leaving_bounds(xy, shape, new_xy)
        return np.array([new_xy[0], new_xy[1], new_z])


class DriftThenTeleport(MotionStrategy):
    """
    Drift away at constant velocity while fading, then reappear in a zone.

    Depth is held for a pre-fade dwell, then decreases at 1/fade_time per
    second. Once it reaches -1 the biomolecule moves to a random point of a
    randomly chosen destination zone, inset so its shape fits inside.

    Args:
        destination_zones: Rectangles where the biomolecule may reappear
        motion_bounds_property: Property holding the current MotionBounds
        drift_velocity: Constant 2D velocity while drifting
        rng: Random number generator
    """

    def __init__(
        self,
        destination_zones: Sequence[Rect],
        motion_bounds_property=None,
        drift_velocity=(0.0, DRIFT_VELOCITY),
        rng: Optional[np.random.Generator] = None,
        pre_fade_time: float = PRE_FADE_TIME,
        fade_time: float = FADE_TIME,
    ):
        super().__init__(motion_bounds_property)
        if not destination_zones:
            raise ValueError("at least one destination zone is required")
        if fade_time <= 0:
            raise ValueError("fade_time must be positive")
        self.destination_zones = list(destination_zones)
        self.velocity = as_vector(drift_velocity)
        self.rng = rng or np.random.default_rng()
        self.pre_fade_countdown = pre_fade_time
        self.fade_time = fade_time

    def next_position(self, position, shape, dt):
        position = as_vector(position)
        return self.next_position_3d([position[0], position[1], 0.0], shape, dt)[:2]

    def next_position_3d(self, position, shape, dt):
        position = as_vector(position)
        if position[2] <= -1.0:
            zone = self.destination_zones[self.rng.integers(len(self.destination_zones))]
            xy = self._random_point_in_zone(zone, shape)
            return np.array([xy[0], xy[1], 0.0])

        z = position[2]
        if self.pre_fade_countdown > 0:
            self.pre_fade_countdown -= dt
        else:
            z = max(-1.0, z - dt / self.fade_time)

        xy = self._refuse_if_leaving_bounds(position[:2], shape, position[:2] + self.velocity * dt)
        return np.array([xy[0], xy[1], z])

    def _random_point_in_zone(self, zone: Rect, shape: Rect) -> np.ndarray:
        half_width = shape.width / 2
        half_height = shape.height / 2
        if zone.width < shape.width or zone.height < shape.height:
            logger.warning("Destination zone %s is smaller than shape %s, using its center", zone, shape)
            return zone.center
        x_min, x_max = zone.x_min + half_width, zone.x_max - half_width
        y_min, y_max = zone.y_min + half_height, zone.y_max - half_height
        return np.array([
            x_min + self.rng.random() * (x_max - x_min),
            y_min + self.rng.random() * (y_max - y_min),
        ])
