import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from marble_track.track.geometry import angle_between_deg
from marble_track.track.track import Track


def make_track(points, half_width=1.0, layer=None):
    """Track with central-difference tangents over the given ring"""
    center = np.asarray(points, dtype=float)
    d = np.roll(center, -1, axis=0) - np.roll(center, 1, axis=0)
    tangent = d / np.linalg.norm(d, axis=1)[:, None]
    normal = np.column_stack([-tangent[:, 1], tangent[:, 0]])
    curvature = angle_between_deg(np.roll(tangent, 1, axis=0), tangent) / 180.0
    hw = np.broadcast_to(np.asarray(half_width, dtype=float), (len(center),))
    return Track(center, tangent, normal, hw, curvature, layer)


def circle_points(n, radius=10.0):
    theta = np.arange(n) * (2.0 * np.pi / n)
    return np.column_stack([radius * np.cos(theta), radius * np.sin(theta)])


def square_points():
    return np.array([(1, 1), (0, 1), (-1, 1), (-1, 0), (-1, -1), (0, -1), (1, -1), (1, 0)], dtype=float)


def figure_eight_points(n, scale=20.0):
    # half-step phase puts the crossing mid-segment
    t = (np.arange(n) + 0.5) * (2.0 * np.pi / n)
    return np.column_stack([scale * np.cos(t), scale * np.sin(2.0 * t) / 2.0])


def turn_ring(turns, heading=0.0, step=1.0):
    """
    Closed ring of unit steps whose sample i turns by turns[i] degrees.

    The turns must add up to 360 and repeat with rotational symmetry for the
    ring to close; heading is the direction of the segment leaving sample 0.
    """
    turns = np.asarray(turns, dtype=float)
    headings = np.radians(heading + np.concatenate([[0.0], np.cumsum(turns[1:])]))
    steps = step * np.column_stack([np.cos(headings), np.sin(headings)])
    return np.vstack([[0.0, 0.0], np.cumsum(steps, axis=0)[:-1]])


class StubSynthesizer:
    def __init__(self, points, segment_count=0, diagonal_count=0):
        from marble_track.track.synthesizers import SynthesisStats

        self.points = points
        self.stats = SynthesisStats(segment_count, diagonal_count)
        self.calls = []

    def synthesize(self, half_width, half_height, rng, variant):
        self.calls.append((half_width, half_height, rng, variant))
        return self.points, self.stats


@pytest.fixture
def circle_track():
    return make_track(circle_points(8), half_width=1.0)


@pytest.fixture
def square_track():
    return make_track(square_points(), half_width=1.0)
