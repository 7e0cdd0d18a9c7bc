from __future__ import annotations

import math

import numpy as np
from pygame.math import Vector2
from pytest import approx

from anthill.sim.core.config import PheromoneConfig
from anthill.sim.core.pheromones import Channel, PheromoneField


def make_field(width: float = 60.0, height: float = 30.0, cell_size: float = 6.0) -> PheromoneField:
    return PheromoneField(width, height, cell_size, PheromoneConfig())


def test_grid_dimensions_round_up():
    field = PheromoneField(61.0, 29.0, 6.0)
    assert field.grid_width == 11
    assert field.grid_height == 5
    assert field.home.shape == (11, 5)
    assert field.path_success.shape == (11, 5)


def test_index_is_always_in_bounds():
    field = make_field()
    positions = [
        Vector2(-1000.0, -1000.0),
        Vector2(-0.001, 5.0),
        Vector2(0.0, 0.0),
        Vector2(59.999, 29.999),
        Vector2(60.0, 30.0),
        Vector2(1e9, -1e9),
        Vector2(17.5, 1e6),
    ]
    for position in positions:
        gx, gy = field.index(position)
        assert 0 <= gx < field.grid_width
        assert 0 <= gy < field.grid_height
    assert field.index(Vector2(13.0, 7.0)) == (2, 1)


def test_deposit_spreads_to_neighbours_and_records_success():
    field = make_field()
    field.deposit(Vector2(15.0, 15.0), Channel.HOME, 10.0, success_bonus=2.0)

    assert field.home[2, 2] == approx(20.0)
    axis = field.home[3, 2]
    diagonal = field.home[3, 3]
    assert 0.0 < diagonal < axis < 20.0
    assert field.home[2, 1] == approx(axis)
    assert field.home[4, 2] == 0.0
    assert field.food.sum() == 0.0
    assert field.path_success[2, 2] == approx(0.2)
    assert field.path_success[3, 2] == 0.0


def test_deposit_at_edge_stays_inside_grid():
    field = make_field()
    field.deposit(Vector2(-50.0, -50.0), Channel.FOOD, 5.0)
    assert field.food[0, 0] == approx(5.0)
    assert field.food[1, 0] > 0.0
    assert field.food[0, 1] > 0.0


def test_deposit_clamps_trails_and_success():
    field = make_field()
    position = Vector2(20.0, 20.0)
    for _ in range(400):
        field.deposit(position, Channel.FOOD, 250.0, success_bonus=3.0)
        field.deposit(position + Vector2(6.0, 0.0), Channel.FOOD, 250.0, success_bonus=3.0)
    assert field.food.max() <= 1000.0
    assert field.food.max() == approx(1000.0)
    assert field.path_success.max() <= 100.0
    assert field.path_success.max() == approx(100.0)


def test_sample_reads_single_cell():
    field = make_field()
    field.food[4, 3] = 7.5
    assert field.sample(Vector2(24.1, 18.2), Channel.FOOD) == approx(7.5)
    assert field.sample(Vector2(24.1, 18.2), Channel.HOME) == 0.0


def test_evaporation_is_monotone_and_reaches_exact_zero():
    field = make_field()
    rng = np.random.default_rng(3)
    field.home[:, :] = rng.uniform(0.0, 1000.0, size=field.home.shape)
    field.food[:, :] = rng.uniform(0.0, 50.0, size=field.food.shape)
    field.path_success[:, :] = rng.uniform(0.0, 100.0, size=field.path_success.shape)

    before = (field.home.copy(), field.food.copy(), field.path_success.copy())
    field.evaporate(0.2)
    assert np.all(field.home <= before[0])
    assert np.all(field.food <= before[1])
    assert np.all(field.path_success <= before[2])

    for _ in range(2000):
        field.evaporate(0.2)
    assert np.count_nonzero(field.home) == 0
    assert np.count_nonzero(field.food) == 0
    assert np.count_nonzero(field.path_success) == 0


def test_success_decays_slower_than_trails():
    field = make_field()
    field.home[1, 1] = 50.0
    field.path_success[1, 1] = 50.0
    field.evaporate(0.1)
    assert field.home[1, 1] == approx(45.0)
    assert field.path_success[1, 1] == approx(50.0 * (1.0 - 0.1 * 0.3))


def test_evaporation_snaps_small_values():
    field = make_field()
    field.home[0, 0] = 0.0105
    field.evaporate(0.05)
    assert field.home[0, 0] == 0.0


def test_gradient_is_zero_or_unit():
    field = make_field(120.0, 120.0)
    center = Vector2(60.0, 60.0)
    assert field.gradient(center, Channel.HOME) == Vector2()

    rng = np.random.default_rng(11)
    for _ in range(20):
        field.home[:, :] = rng.uniform(0.0, 10.0, size=field.home.shape)
        for _ in range(10):
            position = Vector2(rng.uniform(-20.0, 140.0), rng.uniform(-20.0, 140.0))
            gradient = field.gradient(position, Channel.HOME)
            length = gradient.length()
            assert length == 0.0 or length == approx(1.0)


def test_gradient_points_up_the_slope():
    field = make_field(120.0, 120.0)
    for gx in range(field.grid_width):
        field.food[gx, :] = gx * 10.0
    gradient = field.gradient(Vector2(60.0, 60.0), Channel.FOOD)
    assert gradient.x == approx(1.0)
    assert gradient.y == approx(0.0)


def test_gradient_ignores_flat_noise():
    field = make_field(120.0, 120.0)
    field.food[:, :] = 10.0
    field.food[10, 10] = 10.05
    assert field.gradient(Vector2(61.0, 61.0), Channel.FOOD) == Vector2()


def test_reinforce_path_clamps_and_ignores_missing_points():
    field = make_field()
    points = [Vector2(3.0, 3.0), None, Vector2(9.0, 3.0), Vector2(3.5, 3.5)]
    field.reinforce_path(points, 60.0)
    assert field.path_success[0, 0] == approx(100.0)
    assert field.path_success[1, 0] == approx(60.0)
    assert field.home.sum() == 0.0


def test_export_cells_filters_by_threshold():
    field = make_field()
    field.home[1, 2] = 0.4
    field.food[3, 4] = 2.0
    exported = field.export_cells()
    assert exported["grid_width"] == field.grid_width
    assert exported["cell_size"] == approx(6.0)
    cells = exported["cells"]
    assert len(cells) == 1
    assert cells[0]["x"] == 3 and cells[0]["y"] == 4
    assert cells[0]["food"] == approx(2.0)
    assert len(field.export_cells(threshold=0.1)["cells"]) == 2


def test_clear_and_total():
    field = make_field()
    field.deposit(Vector2(10.0, 10.0), Channel.HOME, 4.0)
    assert field.total(Channel.HOME) > 4.0
    assert field.total(Channel.FOOD) == 0.0
    field.clear()
    assert field.total(Channel.HOME) == 0.0
    assert not math.isnan(field.total(Channel.HOME))
    assert field.path_success.sum() == 0.0


def test_default_falloff_reaches_axis_neighbours_unlike_unit_radius():
    assert PheromoneConfig().spread_falloff_radius == 1.5
    field = make_field()
    field.deposit(Vector2(15.0, 15.0), Channel.HOME, 10.0)
    assert field.home[3, 2] == approx(10.0 * (1.0 - 1.0 / 1.5) * 0.3)

    unit = PheromoneField(60.0, 30.0, 6.0, PheromoneConfig(spread_falloff_radius=1.0))
    unit.deposit(Vector2(15.0, 15.0), Channel.HOME, 10.0)
    assert unit.home[2, 2] == approx(10.0)
    assert unit.home.sum() == approx(10.0)
