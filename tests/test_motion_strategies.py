"""Tests for motion strategies."""

import logging

import numpy as np
import pytest

from attachment_site import AttachmentSite
from geometry import MotionBounds, Rect
from motion_strategies import (
    MAX_Z_VELOCITY,
    DriftThenTeleport,
    FollowAttachmentSite,
    MoveDirectlyToDestination,
    RandomWalk,
    Stillness,
    WanderInGeneralDirection,
)
from observable import Property


def shape_at(position, size=20.0):
    return Rect.from_center(position[:2], size, size)


class TestBoundsTracking:

    def test_strategy_follows_bounds_changes(self):
        bounds_property = Property(MotionBounds())
        strategy = Stillness(bounds_property)
        new_bounds = MotionBounds(Rect(0, 0, 10, 10))
        bounds_property.set(new_bounds)
        assert strategy.motion_bounds is new_bounds

    def test_dispose_unlinks(self):
        bounds_property = Property(MotionBounds())
        strategy = Stillness(bounds_property)
        assert bounds_property.has_listener(strategy._on_motion_bounds_changed)
        strategy.dispose()
        assert not bounds_property.has_listener(strategy._on_motion_bounds_changed)


class TestSimpleStrategies:

    def test_stillness(self):
        strategy = Stillness()
        np.testing.assert_array_equal(strategy.next_position_3d([5, 6, -0.2], shape_at([5, 6]), 1.0), [5, 6, -0.2])

    def test_follow_attachment_site(self):
        site = AttachmentSite(None, (100, 50), 0.5)
        strategy = FollowAttachmentSite(site, offset=(10, 0))
        np.testing.assert_allclose(strategy.next_position_3d([0, 0, -0.5], shape_at([0, 0]), 0.1), [90, 50, 0])
        site.set_position((200, 50))
        np.testing.assert_allclose(strategy.next_position([0, 0], shape_at([0, 0]), 0.1), [190, 50])


class TestMoveDirectlyToDestination:

    def test_invalid_velocity_rejected(self):
        with pytest.raises(ValueError):
            MoveDirectlyToDestination(Property(np.zeros(2)), velocity=0.0)

    def test_approach_never_overshoots_and_snaps(self):
        destination = np.array([100.0, 0.0])
        strategy = MoveDirectlyToDestination(Property(destination), velocity=250.0)
        position = np.array([0.0, 0.0, 0.0])
        distance = np.linalg.norm(position[:2] - destination)
        for _ in range(10):
            position = strategy.next_position_3d(position, shape_at(position), 0.1)
            new_distance = np.linalg.norm(position[:2] - destination)
            assert new_distance <= distance
            assert position[0] <= destination[0]
            distance = new_distance
        np.testing.assert_array_equal(position[:2], destination)

    def test_destination_offset(self):
        strategy = MoveDirectlyToDestination(Property(np.array([50.0, 50.0])), destination_offset=(10, -10))
        position = strategy.next_position_3d([40, 60, 0], shape_at([40, 60]), 0.1)
        np.testing.assert_allclose(position[:2], [40, 60])

    def test_depth_arrives_with_xy(self):
        strategy = MoveDirectlyToDestination(Property(np.array([250.0, 0.0])), velocity=250.0)
        position = strategy.next_position_3d([0, 0, -1.0], shape_at([0, 0]), 0.1)
        assert position[2] == pytest.approx(-0.9)

    def test_depth_velocity_is_capped(self):
        strategy = MoveDirectlyToDestination(Property(np.array([5.0, 0.0])), velocity=250.0)
        position = strategy.next_position_3d([0, 0, -1.0], shape_at([0, 0]), 0.01)
        assert position[2] == pytest.approx(-1.0 + MAX_Z_VELOCITY * 0.01)

    def test_snap_lands_at_zero_depth(self):
        strategy = MoveDirectlyToDestination(Property(np.array([5.0, 0.0])), velocity=250.0)
        position = strategy.next_position_3d([0, 0, -1.0], shape_at([0, 0]), 0.02)
        np.testing.assert_array_equal(position, [5.0, 0.0, 0.0])

    def test_zero_distance_raises_depth_at_max_rate(self):
        strategy = MoveDirectlyToDestination(Property(np.array([30.0, 40.0])))
        position = strategy.next_position_3d([30, 40, -0.5], shape_at([30, 40]), 0.1)
        np.testing.assert_array_equal(position[:2], [30, 40])
        assert position[2] == 0.0

    def test_move_leaving_bounds_refused(self):
        bounds_property = Property(MotionBounds(Rect(0, 0, 100, 100)))
        strategy = MoveDirectlyToDestination(Property(np.array([200.0, 50.0])), bounds_property, velocity=250.0)
        position = np.array([50.0, 50.0, 0.0])
        position = strategy.next_position_3d(position, shape_at(position), 0.1)
        np.testing.assert_allclose(position[:2], [75, 50])
        position = strategy.next_position_3d(position, shape_at(position), 0.1)
        np.testing.assert_allclose(position[:2], [75, 50])


class TestRandomWalk:

    def test_stays_in_bounds(self, rng):
        bounds = Rect(0, 0, 1000, 1000)
        strategy = RandomWalk(Property(MotionBounds(bounds)), rng)
        position = np.array([500.0, 500.0, -0.5])
        for _ in range(500):
            position = strategy.next_position_3d(position, shape_at(position, 100), 0.05)
            assert bounds.contains_rect(shape_at(position, 100))
        assert position[2] == 0.0

    def test_depth_never_positive(self, rng):
        strategy = RandomWalk(rng=rng)
        position = np.array([0.0, 0.0, 0.0])
        for _ in range(20):
            position = strategy.next_position_3d(position, shape_at(position), 0.1)
            assert position[2] <= 0.0


class TestWanderInGeneralDirection:

    def test_zero_direction_rejected(self):
        with pytest.raises(ValueError):
            WanderInGeneralDirection((0, 0))

    def test_heads_roughly_in_direction(self, rng):
        strategy = WanderInGeneralDirection((0, 1), rng=rng)
        position = np.array([0.0, 0.0])
        for _ in range(50):
            new_position = strategy.next_position(position, shape_at(position), 0.1)
            step = new_position - position
            angle = np.arccos(step[1] / np.linalg.norm(step))
            assert angle <= np.pi / 6 + 1e-9
            position = new_position


class TestDriftThenTeleport:

    def test_requires_a_zone(self):
        with pytest.raises(ValueError):
            DriftThenTeleport([])

    def test_fades_then_teleports_into_a_zone(self, rng):
        zones = [Rect(0, 0, 1000, 1000), Rect(5000, 5000, 6000, 6000)]
        strategy = DriftThenTeleport(zones, drift_velocity=(0, 250), rng=rng, pre_fade_time=0.5, fade_time=1.0)
        position = np.array([0.0, -3000.0, 0.0])
        teleported = False
        for _ in range(100):
            previous = position
            position = strategy.next_position_3d(position, shape_at(position, 100), 0.1)
            if previous[2] <= -1.0:
                teleported = True
                break
            assert position[2] <= previous[2]
            assert position[2] >= -1.0
        assert teleported
        assert position[2] == 0.0
        inset = [
            zone for zone in zones
            if zone.x_min + 50 <= position[0] <= zone.x_max - 50
            and zone.y_min + 50 <= position[1] <= zone.y_max - 50
        ]
        assert len(inset) == 1

    def test_drift_moves_at_constant_velocity(self, rng):
        strategy = DriftThenTeleport([Rect(0, 0, 10, 10)], drift_velocity=(0, -250), rng=rng)
        position = strategy.next_position_3d([0, 0, 0], shape_at([0, 0]), 0.2)
        np.testing.assert_allclose(position, [0, -50, 0])

    def test_zone_smaller_than_shape_uses_center(self, rng, caplog):
        zone = Rect(0, 0, 10, 10)
        strategy = DriftThenTeleport([zone], rng=rng)
        with caplog.at_level(logging.WARNING):
            position = strategy.next_position_3d([500, 500, -1.0], shape_at([500, 500], 100), 0.1)
        np.testing.assert_allclose(position, [5, 5, 0])
        assert "smaller than shape" in caplog.text
