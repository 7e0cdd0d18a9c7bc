from __future__ import annotations

import math

from pygame.math import Vector2
from pytest import approx

from anthill.sim.core.config import SensorConfig
from anthill.sim.core.pheromones import Channel, PheromoneField
from anthill.sim.core.rng import DeterministicRng
from anthill.sim.systems.sensing import _cone_offsets, forward_sensor

POSITION = Vector2(200.0, 200.0)
FACING_RIGHT = Vector2(2.0, 0.0)


def make_field() -> PheromoneField:
    return PheromoneField(400.0, 400.0, 6.0)


def test_cone_covers_sixty_degrees_each_side():
    offsets = _cone_offsets(SensorConfig())
    assert len(offsets) == 9
    assert offsets[0] == approx(-math.pi / 3)
    assert offsets[-1] == approx(math.pi / 3)


def test_empty_field_reports_nothing():
    field = make_field()
    rng = DeterministicRng(4)
    for _ in range(50):
        assert forward_sensor(field, Channel.FOOD, POSITION, FACING_RIGHT, rng, SensorConfig()) is None


def test_trail_ahead_is_detected_in_forward_direction():
    field = make_field()
    field.food[37:, :] = 1000.0
    rng = DeterministicRng(9)
    readings = [forward_sensor(field, Channel.FOOD, POSITION, FACING_RIGHT, rng, SensorConfig()) for _ in range(20)]
    detected = [reading for reading in readings if reading is not None]
    assert detected
    for reading in detected:
        assert reading.direction.length() == approx(1.0)
        assert reading.direction.x > 0.0
        assert reading.strength >= 0.5


def test_trail_behind_is_invisible():
    field = make_field()
    field.home[:30, :] = 1000.0
    rng = DeterministicRng(12)
    for _ in range(30):
        assert forward_sensor(field, Channel.HOME, POSITION, FACING_RIGHT, rng, SensorConfig()) is None


def test_weak_trail_below_threshold_is_ignored():
    field = make_field()
    field.food[:, :] = 0.5
    rng = DeterministicRng(21)
    for _ in range(30):
        assert forward_sensor(field, Channel.FOOD, POSITION, FACING_RIGHT, rng, SensorConfig()) is None


def test_success_grid_boosts_food_readings():
    plain = make_field()
    boosted = make_field()
    plain.food[37:, :] = 600.0
    boosted.food[37:, :] = 600.0
    boosted.path_success[:, :] = 100.0

    pairs = 0
    for seed in range(20):
        a = forward_sensor(plain, Channel.FOOD, POSITION, FACING_RIGHT, DeterministicRng(seed), SensorConfig())
        b = forward_sensor(boosted, Channel.FOOD, POSITION, FACING_RIGHT, DeterministicRng(seed), SensorConfig())
        if a is None:
            continue
        assert b is not None
        assert b.strength == approx(a.strength * 1.5)
        pairs += 1
    assert pairs > 0


def test_success_grid_does_not_touch_home_channel():
    plain = make_field()
    boosted = make_field()
    plain.home[37:, :] = 600.0
    boosted.home[37:, :] = 600.0
    boosted.path_success[:, :] = 100.0
    for seed in range(10):
        a = forward_sensor(plain, Channel.HOME, POSITION, FACING_RIGHT, DeterministicRng(seed), SensorConfig())
        b = forward_sensor(boosted, Channel.HOME, POSITION, FACING_RIGHT, DeterministicRng(seed), SensorConfig())
        assert (a is None) == (b is None)
        if a is not None:
            assert b.strength == approx(a.strength)
