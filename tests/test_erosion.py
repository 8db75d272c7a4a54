import numpy as np
import pytest

from conftest import make_config, make_grid
from terrain_erosion.erosion import (
    advect_sediment,
    apply_thermal_erosion,
    compute_transport_capacity,
    erode_and_deposit,
)


def _tilted_normals(shape, angle):
    normals = np.zeros(shape + (3,))
    normals[..., 0] = np.sin(angle)
    normals[..., 2] = np.cos(angle)
    return normals


class TestTransportCapacity:

    def test_flat_surface_carries_nothing(self):
        velocity = np.ones((2, 3, 3))
        capacity = compute_transport_capacity(velocity, _tilted_normals((3, 3), 0.0), make_config(3, 3))
        assert np.allclose(capacity, 0.0)

    def test_still_water_carries_nothing(self):
        capacity = compute_transport_capacity(
            np.zeros((2, 3, 3)), _tilted_normals((3, 3), 0.4), make_config(3, 3))
        assert np.all(capacity == 0.0)

    def test_gentle_slope_scales_with_sine(self):
        velocity = np.zeros((2, 1, 1))
        velocity[0] = 2.0
        cfg = make_config(1, 1, sediment_capacity=0.1)
        capacity = compute_transport_capacity(velocity, _tilted_normals((1, 1), 0.01), cfg)
        assert capacity[0, 0] == pytest.approx(2.0 * 0.1 * np.sin(0.01))

    def test_steep_slope_is_capped(self):
        velocity = np.zeros((2, 1, 1))
        velocity[0], velocity[1] = 3.0, 4.0
        cfg = make_config(1, 1, sediment_capacity=0.1)
        capacity = compute_transport_capacity(velocity, _tilted_normals((1, 1), 1.2), cfg)
        assert capacity[0, 0] == pytest.approx(5.0 * 0.1 * 0.05)


class TestErodeAndDeposit:

    def test_erosion_runs_at_half_rate(self):
        grid = make_grid([[1.0]])
        terrain, sediment = erode_and_deposit(grid, np.array([[0.2]]), 0.5)
        assert sediment[0, 0] == pytest.approx(0.05)
        assert terrain[0, 0] == pytest.approx(0.95)

    def test_deposition_runs_at_full_rate(self):
        grid = make_grid([[1.0]])
        grid.suspended_sediment[0, 0] = 1.0
        terrain, sediment = erode_and_deposit(grid, np.array([[0.2]]), 0.5)
        assert sediment[0, 0] == pytest.approx(0.6)
        assert terrain[0, 0] == pytest.approx(1.4)

    def test_deposition_never_exceeds_suspended_amount(self):
        grid = make_grid([[0.0]])
        grid.suspended_sediment[0, 0] = 0.1
        terrain, sediment = erode_and_deposit(grid, np.array([[0.0]]), 2.0)
        assert sediment[0, 0] == 0.0
        assert terrain[0, 0] == pytest.approx(0.1)

    def test_hard_terrain_does_not_erode(self):
        grid = make_grid([[1.0]])
        grid.terrain_hardness[0, 0] = 1.0
        terrain, sediment = erode_and_deposit(grid, np.array([[0.5]]), 1.0)
        assert terrain[0, 0] == 1.0
        assert sediment[0, 0] == 0.0

    def test_exchange_conserves_mass(self, rough_terrain):
        rng = np.random.default_rng(3)
        grid = make_grid(rough_terrain)
        grid.suspended_sediment[...] = rng.random(rough_terrain.shape) * 0.2
        capacity = rng.random(rough_terrain.shape) * 0.2
        before = grid.terrain_height + grid.suspended_sediment

        terrain, sediment = erode_and_deposit(grid, capacity, 0.3)
        assert np.allclose(terrain + sediment, before)
        assert np.all(sediment >= 0.0)


class TestAdvection:

    def test_uniform_field_is_unchanged(self):
        rng = np.random.default_rng(5)
        sediment = np.full((6, 7), 0.3)
        velocity = rng.normal(0.0, 3.0, (2, 6, 7))
        assert np.array_equal(advect_sediment(sediment, velocity, 0.7), sediment)

    def test_whole_cell_shift_reads_from_the_old_field(self):
        sediment = np.array([[0.0, 1.0, 2.0, 3.0, 4.0]])
        velocity = np.zeros((2, 1, 5))
        velocity[0] = 1.0
        result = advect_sediment(sediment, velocity, 1.0)
        assert result.tolist() == [[0.0, 0.0, 1.0, 2.0, 3.0]]
        assert sediment.tolist() == [[0.0, 1.0, 2.0, 3.0, 4.0]]

    def test_fractional_sources_round_away_from_zero(self):
        sediment = np.array([[0.0, 1.0, 2.0, 3.0, 4.0]])
        velocity = np.zeros((2, 1, 5))

        velocity[0] = 0.5
        assert advect_sediment(sediment, velocity, 1.0).tolist() == sediment.tolist()

        velocity[0] = -0.5
        assert advect_sediment(sediment, velocity, 1.0).tolist() == [[1.0, 2.0, 3.0, 4.0, 4.0]]

    def test_vertical_shift(self):
        sediment = np.array([[1.0], [2.0], [3.0]])
        velocity = np.zeros((2, 3, 1))
        velocity[1] = -1.0
        assert advect_sediment(sediment, velocity, 1.0).tolist() == [[2.0], [3.0], [3.0]]


class TestThermalErosion:

    def test_flat_terrain_does_not_move(self):
        grid = make_grid(np.zeros((3, 3)), np.ones((3, 3)))
        cfg = make_config(3, 3, slippage_angle=45.0, use_thermal_erosion=True)
        assert np.array_equal(apply_thermal_erosion(grid, cfg, 1.0), np.zeros((3, 3)))

    def test_peak_slides_to_both_sides(self):
        grid = make_grid([[0.0, 5.0, 0.0]])
        cfg = make_config(3, 1, slippage_angle=45.0)
        terrain = apply_thermal_erosion(grid, cfg, 0.1)
        assert terrain[0].tolist() == pytest.approx([0.4, 4.2, 0.4])
        assert terrain.sum() == pytest.approx(5.0)

    def test_slopes_under_talus_are_stable(self):
        grid = make_grid([[0.0, 0.5, 1.0]])
        cfg = make_config(3, 1, slippage_angle=45.0)
        assert np.array_equal(apply_thermal_erosion(grid, cfg, 1.0), grid.terrain_height)

    def test_transfer_limit_prevents_overshoot(self):
        grid = make_grid([[0.0, 5.0, 0.0]])
        cfg = make_config(3, 1, slippage_angle=45.0)

        unlimited = apply_thermal_erosion(grid, cfg, 1.0)
        assert unlimited[0, 1] < unlimited[0, 0]

        cfg.thermal_transfer_limit = True
        limited = apply_thermal_erosion(grid, cfg, 1.0)
        assert limited[0].tolist() == pytest.approx([2.0, 1.0, 2.0])
        assert limited.sum() == pytest.approx(5.0)

    def test_conserves_terrain(self, rough_terrain):
        grid = make_grid(rough_terrain)
        cfg = make_config(16, 12, slippage_angle=20.0)
        terrain = apply_thermal_erosion(grid, cfg, 0.2)
        assert terrain.sum() == pytest.approx(rough_terrain.sum())
