import numpy as np
import pytest

from marble_track.track.geometry import (
    RADIUS_CAP,
    angle_between_deg,
    chaikin_closed,
    circumradius,
    resample_closed,
    segment_headings_deg,
    segment_hits,
)
from marble_track.track.rng import SeededRng, stable_mix, track_seed


def test_segment_hits_strict_interior():
    q1 = np.array([[0.0, -1.0], [2.0, -1.0], [1.0, 0.0], [0.0, 1.0]])
    q2 = np.array([[0.0, 1.0], [2.0, 1.0], [1.0, 1.0], [2.0, 1.0]])
    hits = segment_hits([-1.0, 0.0], [1.0, 0.0], q1, q2)
    # crossing, past the end, touching the end point, parallel
    assert hits.tolist() == [True, False, False, False]


def test_segment_hits_margin_excludes_near_endpoints():
    hits = segment_hits([0.0, 0.0], [1.0, 0.0], np.array([[0.0005, -1.0]]), np.array([[0.0005, 1.0]]),
                        det_epsilon=1e-4, margin=0.001)
    assert not hits[0]


def test_angle_between_deg():
    assert angle_between_deg([1.0, 0.0], [0.0, 1.0]) == pytest.approx(90.0)
    assert angle_between_deg([1.0, 0.0], [-2.0, 0.0]) == pytest.approx(180.0)
    assert angle_between_deg([0.0, 0.0], [1.0, 0.0]) == pytest.approx(0.0)


def test_circumradius():
    r = circumradius([[1.0, 0.0]], [[0.0, 1.0]], [[-1.0, 0.0]])
    assert r[0] == pytest.approx(1.0)
    assert circumradius([0.0, 0.0], [1.0, 0.0], [2.0, 0.0]) == RADIUS_CAP


def test_segment_headings():
    square = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    np.testing.assert_allclose(segment_headings_deg(square), [0.0, 90.0, 180.0, 270.0])


def test_chaikin_doubles_points_per_pass():
    square = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    assert len(chaikin_closed(square, 2)) == 16


def test_resample_closed_is_even():
    square = np.array([[0.0, 0.0], [4.0, 0.0], [4.0, 4.0], [0.0, 4.0]])
    pts = resample_closed(square, 32)
    assert pts.shape == (32, 2)
    steps = np.linalg.norm(np.roll(pts, -1, axis=0) - pts, axis=1)
    np.testing.assert_allclose(steps, 0.5, atol=1e-9)
    assert resample_closed(square[:2], 10) is None


def test_stable_mix_is_deterministic_32bit():
    assert stable_mix(1, 2, 3, 4) == stable_mix(1, 2, 3, 4)
    assert stable_mix(1, 2, 3, 4) != stable_mix(2, 2, 3, 4)
    assert 0 <= stable_mix(-7, 2, 3, 4) <= 0xFFFFFFFF
    assert 0 <= track_seed(1000, -3) <= 0xFFFFFFFF


def test_seeded_rng_reconstructs_from_seed():
    a = SeededRng(42)
    b = SeededRng(42)
    assert [a.value() for _ in range(5)] == [b.value() for _ in range(5)]
    for _ in range(50):
        v = a.uniform(0.5, 0.72)
        assert 0.5 <= v <= 0.72
        assert 0 <= a.integers(0, 3) < 3
    assert a.seed == 42
