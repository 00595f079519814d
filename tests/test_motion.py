import copy
import itertools
import math

import pytest

from core.state import GeoPoint, FormationConfig, MotionConfig, DroneState
from core.formation import build_formation
from core.motion import (DIRECTION_VECTORS, MotionIntegrator, degrees_per_ms, direction_vector,
                         displacement, normalize_direction, translate)

KC = GeoPoint.from_latlon(39.0997, -94.5786)
FIVE_MPH_DEG_PER_S = 5 * 0.44704 / 111320


def swarm(n=8):
    return build_formation(KC, FormationConfig(n, 100.0))


def running(speed=5.0, direction='N'):
    integ = MotionIntegrator(MotionConfig(speed, direction, False))
    integ.start()
    return integ


def pairwise(drones):
    return {(a.index, b.index): (b.position.latitude - a.position.latitude,
                                 b.position.longitude - a.position.longitude)
            for a, b in itertools.combinations(drones, 2)}


def test_five_mph_north_for_one_second():
    drones = swarm()
    before = copy.deepcopy(drones)
    running(5.0, 'N').advance(drones, 1000)
    for a, b in zip(before, drones):
        assert b.position.latitude - a.position.latitude == pytest.approx(2.007e-5, rel=1e-3)
        assert b.position.latitude - a.position.latitude == pytest.approx(FIVE_MPH_DEG_PER_S, rel=1e-12)
        assert b.position.longitude == a.position.longitude


def test_unknown_direction_behaves_like_north():
    d1, d2 = swarm(), swarm()
    running(5.0, 'N').advance(d1, 750)
    running(5.0, 'unknown').advance(d2, 750)
    assert [d.position for d in d1] == [d.position for d in d2]
    assert normalize_direction(None) == 'N'
    assert normalize_direction(' se ') == 'SE'


def test_zero_elapsed_changes_nothing():
    drones = swarm()
    before = [d.position for d in drones]
    running().advance(drones, 0)
    assert [d.position for d in drones] == before


def test_linearity_of_ticks():
    d1, d2 = swarm(), swarm()
    integ = running(17.0, 'SW')
    integ.advance(d1, 120.0)
    integ.advance(d1, 380.0)
    running(17.0, 'SW').advance(d2, 500.0)
    for a, b in zip(d1, d2):
        assert a.position.latitude == pytest.approx(b.position.latitude, abs=1e-12)
        assert a.position.longitude == pytest.approx(b.position.longitude, abs=1e-12)


@pytest.mark.parametrize("direction", sorted(DIRECTION_VECTORS))
def test_rigid_translation_keeps_offsets(direction):
    drones = swarm(12)
    ref = pairwise(drones)
    integ = running(40.0, direction)
    for dt in (16.7, 33.0, 1000.0, 5.0):
        integ.advance(drones, dt)
    for key, (dlat, dlon) in pairwise(drones).items():
        assert dlat == pytest.approx(ref[key][0], abs=1e-12)
        assert dlon == pytest.approx(ref[key][1], abs=1e-12)


def test_direction_table():
    assert direction_vector('N') == (1.0, 0.0)
    assert direction_vector('E') == (0.0, 1.0)
    assert direction_vector('S') == (-1.0, 0.0)
    assert direction_vector('W') == (0.0, -1.0)
    assert direction_vector('NE') == (0.707, 0.707)
    assert direction_vector('SE') == (-0.707, 0.707)
    assert direction_vector('SW') == (-0.707, -0.707)
    assert direction_vector('NW') == (0.707, -0.707)


def test_diagonal_uses_per_axis_factor_not_unit_speed():
    # Diagonals move 0.707 of the cardinal rate on each axis, so their combined
    # degree-space magnitude is 0.9998 of cardinal, not normalised. Kept as-is.
    lat_n, lon_n = displacement(10.0, 'N', 1000)
    lat_d, lon_d = displacement(10.0, 'NE', 1000)
    assert lat_d == pytest.approx(0.707 * lat_n)
    assert lon_d == pytest.approx(0.707 * lat_n)
    assert math.hypot(lat_d, lon_d) / lat_n == pytest.approx(0.707 * math.sqrt(2))
    assert math.hypot(lat_d, lon_d) != pytest.approx(lat_n, rel=1e-6)


@pytest.mark.parametrize("speed", [-5.0, math.nan, math.inf, "fast", None])
def test_bad_speed_is_zero(speed):
    assert degrees_per_ms(speed) == 0.0


@pytest.mark.parametrize("elapsed", [-10.0, math.nan, None])
def test_bad_elapsed_is_zero(elapsed):
    drones = swarm()
    before = [d.position for d in drones]
    running().advance(drones, elapsed)
    assert [d.position for d in drones] == before


def test_idle_integrator_does_not_move():
    drones = swarm()
    before = [d.position for d in drones]
    integ = MotionIntegrator(MotionConfig(30.0, 'E', False))
    integ.advance(drones, 1000)
    assert integ.tick(drones, 5000.0) == 0.0
    assert [d.position for d in drones] == before


def test_first_tick_after_start_is_noop():
    drones = swarm()
    before = [d.position for d in drones]
    integ = running(30.0, 'E')
    assert integ.tick(drones, 123456.0) == 0.0
    assert [d.position for d in drones] == before
    assert integ.tick(drones, 123456.0 + 40.0) == pytest.approx(40.0)
    assert drones[0].position.longitude > before[0].longitude


def test_restart_resets_timestamp():
    drones = swarm()
    integ = running(30.0, 'E')
    integ.tick(drones, 0.0)
    integ.tick(drones, 16.0)
    integ.stop()
    integ.start()
    before = [d.position for d in drones]
    assert integ.tick(drones, 60000.0) == 0.0
    assert [d.position for d in drones] == before


def test_parameter_change_keeps_timestamp():
    drones = swarm()
    integ = running(5.0, 'N')
    integ.tick(drones, 1000.0)
    integ.update(speed_mph=10.0, direction='S')
    lat0 = drones[0].position.latitude
    assert integ.tick(drones, 2000.0) == pytest.approx(1000.0)
    assert drones[0].position.latitude - lat0 == pytest.approx(-2 * FIVE_MPH_DEG_PER_S)


def test_clock_going_backwards_moves_nothing():
    drones = swarm()
    integ = running()
    integ.tick(drones, 500.0)
    before = [d.position for d in drones]
    assert integ.tick(drones, 400.0) == 0.0
    assert [d.position for d in drones] == before


def test_translate_drops_only_out_of_range_drones():
    drones = [DroneState(1, GeoPoint(0.0, 89.99995)), DroneState(2, GeoPoint(0.0, 10.0))]
    translate(drones, 0.0001, 0.0)
    assert [d.index for d in drones] == [2]
    assert drones[0].position.latitude == pytest.approx(10.0001)


def test_integrator_keeps_its_own_config():
    cfg = MotionConfig(5.0, 'ne', False)
    integ = MotionIntegrator(cfg)
    integ.start()
    integ.update(speed_mph=20.0)
    assert integ.config.direction == 'NE'
    assert integ.config.speed_mph == 20.0
    assert (cfg.direction, cfg.speed_mph, cfg.moving) == ('ne', 5.0, False)
