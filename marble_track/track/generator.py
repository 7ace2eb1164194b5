"""
Track generation: candidate acceptance, derivation of the parallel arrays,
the deterministic fallback loop and start/finish placement
"""
import logging
from dataclasses import dataclass

import numpy as np

from marble_track.config.params import (
    FALLBACK,
    FALLBACK_SALTS,
    MIN_ARENA_EXTENT,
    MIN_CANDIDATE_SAMPLES,
    SAMPLE_COUNT,
    START_ALIGN,
    WIDTH,
)
from marble_track.track.geometry import angle_between_deg, has_self_intersection
from marble_track.track.rng import SeededRng, stable_mix
from marble_track.track.synthesizers import SnappedGridSynthesizer
from marble_track.track.track import Track

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationDiagnostics:
    variant: int
    fallback_used: bool
    segment_count: int
    diagonal_count: int


class TrackGenerator:
    """
    Builds finished tracks from a pluggable candidate synthesizer.

    Args:
        synthesizer: Object with synthesize(half_width, half_height, rng, variant)
            returning (points, stats); defaults to SnappedGridSynthesizer
    """

    def __init__(self, synthesizer=None):
        self.synthesizer = synthesizer if synthesizer is not None else SnappedGridSynthesizer()
        self.last_diagnostics = None

    def build(self, half_width, half_height, rng, variant):
        """
        Generate a track for an arena of the given half extents.

        Never fails: a rejected candidate is replaced by the fallback loop.
        Logs one diagnostic record per call.
        """
        half_width = max(MIN_ARENA_EXTENT, float(half_width))
        half_height = max(MIN_ARENA_EXTENT, float(half_height))

        points, stats = self.synthesizer.synthesize(half_width, half_height, rng, variant)
        center = None if points is None else np.asarray(points, dtype=float)

        accepted = (
            center is not None
            and center.ndim == 2
            and len(center) >= MIN_CANDIDATE_SAMPLES
            and not has_self_intersection(center)
        )
        if accepted:
            track = build_track_data(center, half_width, half_height)
            segments, diagonals = stats.segment_count, stats.diagonal_count
        else:
            track = build_fallback_rounded_rectangle(half_width, half_height, variant)
            segments, diagonals = 0, 0

        track = rotate_to_best_straight(track)

        self.last_diagnostics = GenerationDiagnostics(variant, not accepted, segments, diagonals)
        logger.info(
            "Track generated: variant=%d fallbackUsed=%s segmentCount=%d diagonalCount=%d",
            variant, not accepted, segments, diagonals
        )
        return track


def base_half_width(half_width, half_height):
    return float(np.clip(min(half_width, half_height) * WIDTH["base_scale"],
                         WIDTH["base_min"], WIDTH["base_max"]))


def build_track_data(center, half_width, half_height):
    """
    Derive tangents, normals, curvature and half-widths for a closed centerline.

    Args:
        center: Ordered ring of points [N, 2]
        half_width, half_height: Arena half extents, used to size the road

    Returns:
        Track
    """
    center = np.asarray(center, dtype=float)
    n = len(center)

    tangent = np.zeros((n, 2))
    for i in range(n):
        t = center[(i + 1) % n] - center[i - 1]
        length = np.linalg.norm(t)
        if length < 1e-9:
            # repeated points: carry the previous direction
            t = tangent[i - 1] if i > 0 else np.array([1.0, 0.0])
        else:
            t = t / length
        if i > 0 and np.dot(t, tangent[i - 1]) < 0.0:
            t = -t
        tangent[i] = t

    normal = np.column_stack([-tangent[:, 1], tangent[:, 0]])
    curvature = angle_between_deg(np.roll(tangent, 1, axis=0), tangent) / 180.0

    base = base_half_width(half_width, half_height)
    turn_penalty = np.clip(curvature * WIDTH["turn_gain"], 0.0, 1.0) * WIDTH["turn_penalty"]
    straight = WIDTH["straight_curvature"]
    straight_boost = np.clip((straight - curvature) / straight, 0.0, 1.0) * WIDTH["straight_boost"]

    w = WIDTH["overtake_window"]
    calm = (curvature < WIDTH["overtake_curvature"]).astype(int)
    calm_count = sum(np.roll(calm, k) for k in range(-w, w + 1))
    overtake_boost = np.where(calm_count >= WIDTH["overtake_min_samples"], WIDTH["overtake_boost"], 0.0)

    wobble = np.abs(np.sin((tangent[:, 0] + tangent[:, 1]) * WIDTH["wobble_freq"])) * WIDTH["wobble_amp"]

    hw = base * (1.0 + straight_boost + overtake_boost + wobble - turn_penalty)
    hw = np.clip(hw, base * WIDTH["min_factor"], base * WIDTH["max_factor"])

    return Track(center, tangent, normal, hw, curvature)


def build_fallback_rounded_rectangle(half_width, half_height, variant):
    """
    Deterministic smooth loop used when the candidate is rejected.

    An ellipse with randomized per-axis radii and a small two-lobe warp. The
    warp amplitudes keep the curve star-shaped around the origin, so it never
    crosses itself.
    """
    rng = SeededRng(stable_mix(variant, *FALLBACK_SALTS))
    rx = half_width * rng.uniform(FALLBACK["radius_min"], FALLBACK["radius_max"])
    ry = half_height * rng.uniform(FALLBACK["radius_min"], FALLBACK["radius_max"])
    warp_x = rng.uniform(FALLBACK["warp_x_min"], FALLBACK["warp_x_max"])
    warp_y = rng.uniform(FALLBACK["warp_y_min"], FALLBACK["warp_y_max"])
    phase = rng.uniform(0.0, 2.0 * np.pi)

    theta = np.arange(SAMPLE_COUNT) * (2.0 * np.pi / SAMPLE_COUNT)
    x = rx * np.cos(theta) * (1.0 + warp_x * np.sin(2.0 * theta + phase))
    y = ry * np.sin(theta) * (1.0 + warp_y * np.cos(2.0 * theta + phase))
    return build_track_data(np.column_stack([x, y]), half_width, half_height)


def start_window(sample_count):
    return int(np.clip(sample_count // START_ALIGN["divisor"],
                       START_ALIGN["window_min"], START_ALIGN["window_max"]))


def start_scores(track, window=None):
    """
    Start-line cost of every sample: windowed curvature minus a small bonus
    for windowed width. Lower is straighter and wider.
    """
    w = start_window(track.sample_count) if window is None else window
    offsets = range(-w, w + 1)
    # stacking keeps the summation order identical for every index
    curv = np.stack([np.roll(track.curvature, -k) for k in offsets]).sum(axis=0)
    width = np.stack([np.roll(track.half_width, -k) for k in offsets]).sum(axis=0)
    return curv - START_ALIGN["width_weight"] * width


def best_start_index(track, window=None):
    if track.sample_count <= 0:
        return 0
    return int(np.argmin(start_scores(track, window)))


def rotate_to_best_straight(track, window=None):
    """Rotate every parallel array so the best start sample becomes index 0"""
    return track.rotated(best_start_index(track, window))
