import math

from pygame.math import Vector2
from pytest import approx

from anthill.sim.utils.math2d import (
    _clamp_length,
    _closest_point_on_segment,
    _heading_from_velocity,
    _safe_normalize,
    _wrap_angle,
)


def test_wrap_angle_stays_in_half_open_range():
    assert _wrap_angle(3 * math.pi) == approx(math.pi)
    assert _wrap_angle(-math.pi) == approx(math.pi)
    assert _wrap_angle(0.5 - 4 * math.pi) == approx(0.5)


def test_zero_vectors_are_safe():
    assert _safe_normalize(Vector2()) == Vector2()
    assert _heading_from_velocity(Vector2()) == 0.0
    assert _clamp_length(Vector2(3, 4), 0.0) == Vector2()
    assert _clamp_length(Vector2(3, 4), 2.5).length() == approx(2.5)


def test_closest_point_on_segment():
    a = Vector2(0, 0)
    b = Vector2(10, 0)
    assert _closest_point_on_segment(a, b, Vector2(4, 7)) == Vector2(4, 0)
    assert _closest_point_on_segment(a, b, Vector2(-5, 1)) == Vector2(0, 0)
    assert _closest_point_on_segment(a, a, Vector2(3, 3)) == Vector2(0, 0)
