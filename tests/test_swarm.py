import pytest

from core.state import GeoPoint, FormationConfig, MotionConfig
from core.swarm import SwarmSimulation

KC = GeoPoint.from_latlon(39.0997, -94.5786)


class FakeScheduler:
    """Tk-style after/after_cancel driven by hand."""

    def __init__(self):
        self.jobs = {}
        self.cancelled = []
        self._next = 0

    def after(self, ms, fn):
        self._next += 1
        job = f"after#{self._next}"
        self.jobs[job] = fn
        return job

    def after_cancel(self, job):
        self.cancelled.append(job)
        self.jobs.pop(job, None)

    def run_pending(self):
        jobs, self.jobs = self.jobs, {}
        for fn in jobs.values():
            fn()


class FakeClock:
    def __init__(self, t=0.0):
        self.t = t

    def __call__(self):
        return self.t


@pytest.fixture
def sim():
    sched, clock = FakeScheduler(), FakeClock(1000.0)
    s = SwarmSimulation(sched, clock=clock,
                        formation=FormationConfig(8, 100.0),
                        motion=MotionConfig(5.0, 'N', False))
    s.sched, s.fake_clock = sched, clock
    return s


def frame(sim, dt_ms):
    sim.fake_clock.t += dt_ms
    sim.sched.run_pending()


def test_no_drones_before_center(sim):
    sim.set_formation(6, 50.0)
    assert sim.drones == []
    assert sim.set_center(GeoPoint(float('nan'), 0.0)) is False
    assert sim.drones == []
    assert sim.set_center(KC) is True
    assert len(sim.drones) == 6


def test_listener_gets_new_list_on_rebuild(sim):
    seen = []
    sim.add_listener(lambda drones: seen.append(drones))
    sim.set_center(KC)
    first = sim.drones
    sim.set_formation(drone_count=4)
    assert len(seen) == 2
    assert seen[0] is first and seen[1] is sim.drones
    assert seen[1] is not first
    assert [d.index for d in sim.drones] == [1, 2, 3, 4]


def test_first_frame_after_start_is_noop(sim):
    sim.set_center(KC)
    before = [d.position for d in sim.drones]
    sim.start()
    assert sim.running
    frame(sim, 5000.0)
    assert [d.position for d in sim.drones] == before
    frame(sim, 1000.0)
    assert sim.drones[0].position.latitude - before[0].latitude == pytest.approx(2.007e-5, rel=1e-3)


def test_one_frame_pending_at_a_time(sim):
    sim.set_center(KC)
    sim.start()
    sim.start()
    assert len(sim.sched.jobs) == 1
    frame(sim, 16.0)
    assert len(sim.sched.jobs) == 1
    assert sim.frames == 1


def test_stop_cancels_pending_frame(sim):
    sim.set_center(KC)
    sim.start()
    frame(sim, 16.0)
    job = next(iter(sim.sched.jobs))
    sim.stop()
    assert not sim.running
    assert job in sim.sched.cancelled
    assert sim.sched.jobs == {}


def test_stale_frame_after_stop_moves_nothing(sim):
    sim.set_center(KC)
    sim.start()
    frame(sim, 16.0)
    stale = list(sim.sched.jobs.values())
    sim.stop()
    sim.start()                  # a fresh run, new pending frame
    before = [d.position for d in sim.drones]
    sim.fake_clock.t += 10000.0
    for fn in stale:
        fn()
    assert [d.position for d in sim.drones] == before
    assert sim.frames == 1


def test_parameter_change_while_running(sim):
    sim.set_center(KC)
    sim.start()
    frame(sim, 16.0)
    sim.set_motion(speed_mph=10.0, direction='E')
    lon0 = sim.drones[0].position.longitude
    lat0 = sim.drones[0].position.latitude
    frame(sim, 1000.0)
    assert sim.drones[0].position.latitude == lat0
    assert sim.drones[0].position.longitude - lon0 == pytest.approx(2 * 2.007e-5, rel=1e-3)


def test_toggle(sim):
    assert sim.toggle() is True
    assert sim.toggle() is False
    assert sim.sched.jobs == {}


def test_formation_rebuild_while_running_keeps_moving(sim):
    sim.set_center(KC)
    sim.start()
    frame(sim, 16.0)
    sim.set_formation(spacing_ft=300.0)
    assert sim.running
    before = [d.position for d in sim.drones]
    frame(sim, 500.0)
    assert all(d.position.latitude > b.latitude for d, b in zip(sim.drones, before))


def test_close_tears_down(sim):
    calls = []
    sim.add_listener(calls.append)
    sim.set_center(KC)
    sim.start()
    sim.close()
    assert sim.drones == []
    assert sim.sched.jobs == {}
    sim.set_formation(3, 10.0)
    assert sim.drones == []
    assert sim.center is None
    assert len(calls) == 1


def test_centroid_translates_with_swarm(sim):
    sim.set_center(KC)
    c0 = sim.centroid()
    assert c0.latitude == pytest.approx(KC.latitude, abs=1e-12)
    assert c0.longitude == pytest.approx(KC.longitude, abs=1e-12)
    sim.start()
    frame(sim, 16.0)
    frame(sim, 1000.0)
    assert sim.centroid().latitude - c0.latitude == pytest.approx(2.007e-5, rel=1e-3)


def test_radius(sim):
    assert sim.radius_ft == pytest.approx(130.66, abs=0.01)


def test_listener_sees_empty_list_when_last_drone_leaves_map():
    sched, clock = FakeScheduler(), FakeClock(1000.0)
    s = SwarmSimulation(sched, clock=clock,
                        formation=FormationConfig(1, 100.0),
                        motion=MotionConfig(500.0, 'E', False))
    s.sched, s.fake_clock = sched, clock
    seen = []
    s.add_listener(lambda drones: seen.append([d.index for d in drones]))
    s.set_center(GeoPoint(179.99999, 0.0))
    assert seen == [[1]]
    s.start()
    frame(s, 16.0)
    frame(s, 1000.0)
    assert s.drones == []
    assert seen[-1] == []
    n = len(seen)
    frame(s, 16.0)
    assert len(seen) == n           # nothing left to report


def test_failing_listener_does_not_stop_frames(sim):
    def broken(_drones):
        raise OSError("disk full")
    seen = []
    sim.add_listener(broken)
    sim.add_listener(lambda drones: seen.append(drones[0].position.latitude))
    sim.set_center(KC)
    lat0 = sim.drones[0].position.latitude
    sim.start()
    frame(sim, 16.0)
    frame(sim, 1000.0)
    frame(sim, 1000.0)
    assert len(sim.sched.jobs) == 1
    assert sim.drones[0].position.latitude > lat0
    assert seen[-1] == sim.drones[0].position.latitude
