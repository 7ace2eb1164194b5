import logging

import numpy as np
import pytest

from conftest import StubSynthesizer, circle_points, figure_eight_points, make_track
from marble_track.config.params import WIDTH
from marble_track.track.generator import (
    TrackGenerator,
    base_half_width,
    best_start_index,
    build_fallback_rounded_rectangle,
    build_track_data,
    has_self_intersection,
    rotate_to_best_straight,
    start_scores,
    start_window,
)
from marble_track.track.geometry import resample_closed
from marble_track.track.rng import SeededRng
from marble_track.track.synthesizers import SnappedGridSynthesizer, TemplateSynthesizer
from marble_track.validation.validator import check_self_intersections

GENERATOR_LOGGER = "marble_track.track.generator"


def ellipse_points(n, rx=25.0, ry=18.0):
    theta = np.arange(n) * (2.0 * np.pi / n)
    return np.column_stack([rx * np.cos(theta), ry * np.sin(theta)])


def stadium_points(n, straight=40.0, radius=10.0):
    half = straight / 2.0
    arc = np.linspace(-np.pi / 2, np.pi / 2, 60)
    right = np.column_stack([half + radius * np.cos(arc), radius * np.sin(arc)])
    left = np.column_stack([-half - radius * np.cos(arc), -radius * np.sin(arc)])
    return resample_closed(np.vstack([right, left]), n)


def assert_width_bounds(track, half_width, half_height):
    base = base_half_width(half_width, half_height)
    assert np.all(track.half_width > 0.0)
    assert np.all(track.half_width >= base * WIDTH["min_factor"] - 1e-9)
    assert np.all(track.half_width <= base * WIDTH["max_factor"] + 1e-9)


def assert_orthonormal(track):
    np.testing.assert_allclose(np.linalg.norm(track.tangent, axis=1), 1.0, atol=1e-9)
    np.testing.assert_allclose(np.linalg.norm(track.normal, axis=1), 1.0, atol=1e-9)
    np.testing.assert_allclose(np.sum(track.tangent * track.normal, axis=1), 0.0, atol=1e-9)


def test_short_candidate_uses_fallback():
    stub = StubSynthesizer(circle_points(50, radius=15.0), segment_count=44, diagonal_count=9)
    generator = TrackGenerator(stub)
    track = generator.build(40.0, 40.0, SeededRng(7), 3)

    assert track.sample_count == 512
    diag = generator.last_diagnostics
    assert diag.fallback_used
    assert (diag.variant, diag.segment_count, diag.diagonal_count) == (3, 0, 0)
    assert not has_self_intersection(track.center)
    reasons = []
    check_self_intersections(track, reasons)
    assert reasons == []
    # both road edges are simple loops too
    for side in (1.0, -1.0):
        edge = track.boundary(side)[:-1]
        assert not has_self_intersection(edge)
        reasons = []
        check_self_intersections(make_track(edge), reasons)
        assert reasons == []


def test_missing_candidate_uses_fallback():
    generator = TrackGenerator(StubSynthesizer(None))
    track = generator.build(30.0, 20.0, SeededRng(1), 0)
    assert track.sample_count == 512
    assert generator.last_diagnostics.fallback_used


def test_self_crossing_candidate_uses_fallback():
    crossing = figure_eight_points(300)
    assert has_self_intersection(crossing)
    generator = TrackGenerator(StubSynthesizer(crossing, 60, 12))
    track = generator.build(32.0, 32.0, SeededRng(5), 1)
    assert generator.last_diagnostics.fallback_used
    assert track.sample_count == 512


def test_valid_candidate_is_accepted():
    generator = TrackGenerator(StubSynthesizer(ellipse_points(300), 52, 11))
    track = generator.build(32.0, 32.0, SeededRng(5), 2)

    assert track.sample_count == 300
    diag = generator.last_diagnostics
    assert not diag.fallback_used
    assert (diag.segment_count, diag.diagonal_count) == (52, 11)
    # same ring, possibly rotated
    assert any(np.allclose(track.center[0], p) for p in ellipse_points(300))
    assert_width_bounds(track, 32.0, 32.0)
    assert_orthonormal(track)


def test_extents_are_clamped_before_synthesis():
    stub = StubSynthesizer(None)
    TrackGenerator(stub).build(3.0, 50.0, None, 0)
    half_width, half_height, _, _ = stub.calls[0]
    assert half_width == 12.0
    assert half_height == 50.0


def test_one_diagnostic_record_per_build(caplog):
    generator = TrackGenerator(StubSynthesizer(ellipse_points(300), 40, 8))
    with caplog.at_level(logging.INFO, logger=GENERATOR_LOGGER):
        generator.build(32.0, 32.0, SeededRng(1), 4)
        generator.build(32.0, 32.0, SeededRng(2), 5)
    records = [r for r in caplog.records if r.name == GENERATOR_LOGGER]
    assert len(records) == 2
    assert "variant=4" in records[0].getMessage()
    assert "fallbackUsed=False" in records[0].getMessage()
    assert "segmentCount=40" in records[0].getMessage()


def test_fallback_is_deterministic_per_variant():
    a = build_fallback_rounded_rectangle(30.0, 25.0, 7)
    b = build_fallback_rounded_rectangle(30.0, 25.0, 7)
    c = build_fallback_rounded_rectangle(30.0, 25.0, 8)
    np.testing.assert_array_equal(a.center, b.center)
    assert not np.allclose(a.center, c.center)


def test_fallback_ignores_rng_cursor():
    used = SeededRng(99)
    for _ in range(10):
        used.value()
    a = TrackGenerator(StubSynthesizer(None)).build(30.0, 30.0, used, 6)
    b = TrackGenerator(StubSynthesizer(None)).build(30.0, 30.0, SeededRng(1), 6)
    np.testing.assert_array_equal(a.center, b.center)


@pytest.mark.parametrize("variant", [0, 1, 2, 5, 17, -4])
def test_fallback_is_simple_and_within_bounds(variant):
    track = build_fallback_rounded_rectangle(20.0, 14.0, variant)
    assert track.sample_count == 512
    assert not has_self_intersection(track.center)
    reasons = []
    check_self_intersections(track, reasons)
    assert reasons == []
    assert_width_bounds(track, 20.0, 14.0)
    assert_orthonormal(track)
    assert np.all(np.abs(track.center[:, 0]) < 20.0)
    assert np.all(np.abs(track.center[:, 1]) < 14.0)


def test_derivation_of_circle():
    track = build_track_data(circle_points(200, radius=20.0), 40.0, 40.0)
    # counter-clockwise circle: the left normal points at the centre
    np.testing.assert_allclose(track.normal, -track.center / 20.0, atol=1e-3)
    np.testing.assert_allclose(track.curvature, 360.0 / 200 / 180.0, atol=1e-7)
    assert_orthonormal(track)


def test_tangents_are_sign_continuous():
    track = build_track_data(ellipse_points(256), 30.0, 30.0)
    dots = np.sum(track.tangent[1:] * track.tangent[:-1], axis=1)
    assert np.all(dots > 0.0)


def test_straights_are_wider_than_corners():
    track = build_track_data(stadium_points(400), 40.0, 40.0)
    on_straight = track.curvature < 1e-6
    assert np.any(on_straight) and np.any(~on_straight)
    assert track.half_width[on_straight].mean() > track.half_width[~on_straight].mean()
    assert_width_bounds(track, 40.0, 40.0)


def test_start_window_is_clamped():
    assert start_window(100) == 6
    assert start_window(512) == 18
    assert start_window(5000) == 24


def test_rotation_picks_minimum_score():
    track = build_track_data(stadium_points(400), 40.0, 40.0)
    scores = start_scores(track)
    best = best_start_index(track)
    assert scores[best] == scores.min()
    rotated = rotate_to_best_straight(track)
    np.testing.assert_array_equal(rotated.center[0], track.center[best])
    # a full window of straight road around the start line
    w = start_window(rotated.sample_count)
    window = np.concatenate([rotated.curvature[-w:], rotated.curvature[:w + 1]])
    assert np.all(window < 1e-3)


def test_rotation_is_idempotent():
    for track in (build_track_data(stadium_points(400), 40.0, 40.0),
                  build_fallback_rounded_rectangle(30.0, 22.0, 11),
                  make_track(circle_points(64), half_width=np.linspace(1.0, 2.0, 64))):
        rotated = rotate_to_best_straight(track)
        assert best_start_index(rotated) == 0


def test_built_track_starts_at_its_best_index():
    track = TrackGenerator(StubSynthesizer(ellipse_points(300), 40, 8)).build(32.0, 32.0, SeededRng(3), 0)
    assert best_start_index(track) == 0


@pytest.mark.parametrize("synthesizer", [SnappedGridSynthesizer(), TemplateSynthesizer()])
@pytest.mark.parametrize("seed", [1, 2, 1000])
def test_real_synthesizers_are_accepted(synthesizer, seed):
    generator = TrackGenerator(synthesizer)
    track = generator.build(32.0, 32.0, SeededRng(seed), seed)
    diag = generator.last_diagnostics
    assert not diag.fallback_used
    assert diag.segment_count >= 12
    assert track.sample_count == 512
    reasons = []
    check_self_intersections(track, reasons)
    assert reasons == []
    assert_width_bounds(track, 32.0, 32.0)
    assert best_start_index(track) == 0


@pytest.mark.parametrize("half_width, half_height", [(12.0, 12.0), (40.0, 25.0), (20.0, 60.0)])
def test_symmetric_grid_loop_is_accepted(half_width, half_height):
    generator = TrackGenerator(SnappedGridSynthesizer(attempts=0))
    track = generator.build(half_width, half_height, SeededRng(9), 0)
    assert not generator.last_diagnostics.fallback_used
    assert generator.last_diagnostics.diagonal_count == 12
    reasons = []
    check_self_intersections(track, reasons)
    assert reasons == []


def test_coarse_check_ignores_near_neighbours():
    crossing = figure_eight_points(300)
    # both crossing chords sit ~150 samples apart
    assert not has_self_intersection(crossing, neighbor_ignore=40)
    assert not has_self_intersection(ellipse_points(200))
    assert not has_self_intersection(ellipse_points(200)[:3])
