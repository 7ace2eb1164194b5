"""
Track validation

Two independent gates are applied to a finished track:

  * validity: structural checks that make a track unusable when they fail
    (start line on the road, spawn grid fits, no undeclared self-crossing,
    rendered boundaries match the data)
  * quality: a 0-100 drivability score built from fixed deductions, with
    each deduction reported as a "FAIL:" or "WARN:" issue string

A track passes overall when it is valid and scores at least PASS_SCORE.
"""
import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np

from marble_track.config.params import (
    BAND_GREEN,
    BAND_YELLOW,
    MARBLE_RADIUS,
    PASS_SCORE,
    PENALTY,
    QUALITY,
    SPAWN,
    VALIDITY,
)
from marble_track.track.geometry import circumradius, cross, segment_headings_deg, segment_hits

logger = logging.getLogger(__name__)

FAIL = "FAIL"
WARN = "WARN"

DEGENERATE_REASON = "Track data missing or too short."
ALL_PASSED = "All validation checks passed."


class QualityBand(Enum):
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"


def band_for_score(score):
    if score >= BAND_GREEN:
        return QualityBand.GREEN
    if score >= BAND_YELLOW:
        return QualityBand.YELLOW
    return QualityBand.RED


def issue_severity(issue):
    """FAIL, WARN or None for an issue string"""
    for severity in (FAIL, WARN):
        if issue.startswith(severity + ":"):
            return severity
    return None


@dataclass(frozen=True)
class QualityReport:
    score: int
    max_turn_angle_deg: float = 0.0
    sharp_corner_count: int = 0
    min_radius: float = 0.0
    axis_aligned_ratio: float = 0.0
    smoothness_jitter: float = 0.0
    direction_entropy: float = 0.0
    unique_direction_bins: int = 0
    boxy_fail: bool = False
    issues: tuple = ()
    sharp_corner_indices: tuple = ()
    axis_aligned_segment_indices: tuple = ()
    min_radius_indices: tuple = ()

    @property
    def failures(self):
        return tuple(i for i in self.issues if issue_severity(i) == FAIL)

    @property
    def warnings(self):
        return tuple(i for i in self.issues if issue_severity(i) == WARN)


@dataclass(frozen=True)
class ValidationResult:
    validity_passed: bool
    quality_score: int
    band: QualityBand
    validity_reasons: tuple
    quality_issues: tuple
    reasons: tuple
    quality: QualityReport = None

    @property
    def passed(self):
        return self.validity_passed and self.quality_score >= PASS_SCORE


def validate(track, marble_count, boundaries=None):
    """
    Run both gates on a track.

    Args:
        track: Track to check (None is reported, not raised)
        marble_count: Number of marbles placed on the start grid
        boundaries: Optional mapping with "inner" and "outer" point arrays
            as produced by the renderer

    Returns:
        ValidationResult
    """
    if track is None or track.sample_count < 8:
        quality = QualityReport(score=0, boxy_fail=True, issues=(DEGENERATE_REASON,))
        return ValidationResult(
            validity_passed=False,
            quality_score=0,
            band=QualityBand.RED,
            validity_reasons=(DEGENERATE_REASON,),
            quality_issues=(DEGENERATE_REASON,),
            reasons=(DEGENERATE_REASON,),
            quality=quality
        )

    reasons = []
    check_start_finish(track, reasons)
    check_spawn_fits(track, marble_count, reasons)
    check_self_intersections(track, reasons)
    check_colliders(track, boundaries, reasons)
    validity_passed = not reasons
    if validity_passed:
        reasons.append(ALL_PASSED)

    quality = evaluate_quality(track)
    result = ValidationResult(
        validity_passed=validity_passed,
        quality_score=quality.score,
        band=band_for_score(quality.score),
        validity_reasons=tuple(reasons),
        quality_issues=quality.issues,
        reasons=tuple(reasons) + quality.issues,
        quality=quality
    )
    logger.debug("Track validated: validity=%s quality=%d band=%s overall=%s",
                 "VALID" if validity_passed else "INVALID", quality.score,
                 result.band.value, "PASS" if result.passed else "FAIL")
    return result


# ---------------------------------------------------------------------------
# Validity gates
# ---------------------------------------------------------------------------

def check_start_finish(track, reasons):
    start_hw = float(track.half_width[0])
    if start_hw <= MARBLE_RADIUS:
        reasons.append(f"Start width too small for marbles (halfWidth={start_hw:.2f}).")

    left, right = track.start_line()
    mid = (left + right) * 0.5
    if np.linalg.norm(mid - track.center[0]) > VALIDITY["center_tolerance"]:
        reasons.append("Start/finish marker is not centered on road.")


def spawn_columns(start_half_width, marble_count):
    """
    Columns of the start grid and the lateral offset of each lane.

    Returns:
        (columns, lane_offsets)
    """
    max_lane = max(0.0, start_half_width - MARBLE_RADIUS - SPAWN["lane_margin"])
    cols = min(SPAWN["max_columns"], max(2, marble_count))
    min_spacing = MARBLE_RADIUS * SPAWN["spacing_factor"]
    while cols > 1 and (2.0 * max_lane) / (cols - 1) < min_spacing:
        cols -= 1

    if cols == 1:
        return 1, [0.0]
    lanes = [-max_lane + 2.0 * max_lane * (i + 0.5) / cols for i in range(cols)]
    return cols, lanes


def check_spawn_fits(track, marble_count, reasons):
    start_hw = float(track.half_width[0])
    _, lanes = spawn_columns(start_hw, marble_count)
    for i, lane in enumerate(lanes):
        if abs(lane) + MARBLE_RADIUS > start_hw:
            reasons.append(f"Spawn lane {i} overflows road width at start.")
            return


def check_self_intersections(track, reasons):
    """Reports the first crossing between segments that share a layer"""
    n = track.sample_count
    center = track.center
    nxt = np.roll(center, -1, axis=0)
    for i in range(n - 2):
        js = np.arange(i + 2, n)
        if i == 0:
            js = js[:-1]
        if len(js) == 0:
            continue
        hits = segment_hits(center[i], nxt[i], center[js], nxt[js],
                            det_epsilon=VALIDITY["det_epsilon"],
                            margin=VALIDITY["param_margin"])
        for j in js[hits]:
            if track.layer[i] == track.layer[j]:
                reasons.append(
                    f"Self-intersection at segments {i}-{(i + 1) % n} and {j}-{(j + 1) % n} "
                    "without crossover declaration."
                )
                return


def check_colliders(track, boundaries, reasons):
    if boundaries is None:
        reasons.append("Track colliders missing: no rendered track boundaries provided.")
        return

    inner = boundaries.get("inner")
    outer = boundaries.get("outer")
    if inner is None or outer is None:
        reasons.append("Track colliders missing: expected inner and outer boundaries.")
        return

    _check_boundary(track, np.asarray(inner, dtype=float), 1.0, "inner", reasons)
    _check_boundary(track, np.asarray(outer, dtype=float), -1.0, "outer", reasons)


def _check_boundary(track, points, side, label, reasons):
    count = len(points)
    if count < track.sample_count / 2:
        reasons.append(f"{label} collider has too few points ({count}).")
        return

    expected = track.sample_count + 1
    if abs(count - expected) > VALIDITY["collider_count_slack"]:
        reasons.append(f"{label} collider point count mismatch (got {count}, expected about {expected}).")
        return

    m = min(track.sample_count, count - 1)
    expected_pts = track.center[:m] + track.normal[:m] * (track.half_width[:m] * side)[:, None]
    max_delta = float(np.max(np.linalg.norm(points[:m] - expected_pts, axis=1)))
    if max_delta > VALIDITY["collider_tolerance"]:
        reasons.append(f"{label} collider diverges from road boundary (max delta {max_delta:.3f}).")


# ---------------------------------------------------------------------------
# Quality score
# ---------------------------------------------------------------------------

def signed_turns_deg(center):
    """Signed heading change at every sample between its incoming and outgoing segment"""
    center = np.asarray(center, dtype=float)
    out_dir = np.roll(center, -1, axis=0) - center
    in_dir = np.roll(out_dir, 1, axis=0)
    return np.degrees(np.arctan2(cross(in_dir, out_dir), np.sum(in_dir * out_dir, axis=1)))


def _window_max(values, w):
    return np.max(np.stack([np.roll(values, k) for k in range(-w, w + 1)]), axis=0)


def evaluate_quality(track):
    """
    Drivability score of a track. Pure: depends only on the track arrays.

    Returns:
        QualityReport
    """
    center = track.center
    n = track.sample_count

    signed = signed_turns_deg(center)
    turn = np.abs(signed)
    max_turn = float(_window_max(turn, QUALITY["turn_window"]).max())
    # every sample at or above the threshold counts, even inside one corner
    sharp_idx = np.flatnonzero(turn >= QUALITY["sharp_corner_deg"])

    per_sample_r = circumradius(np.roll(center, 1, axis=0), center, np.roll(center, -1, axis=0))
    stride = QUALITY["radius_stride"]
    idx = np.arange(0, n, stride)
    wide_r = circumradius(center[idx - stride], center[idx], center[(idx + stride) % n])
    robust_r = float(np.percentile(wide_r, QUALITY["radius_percentile"]))
    min_radius = min(float(per_sample_r.min()), robust_r)
    radius_limit = QUALITY["radius_width_factor"] * 2.0 * track.average_half_width()
    min_r_idx = np.flatnonzero(per_sample_r < radius_limit)
    if len(min_r_idx) == 0:
        min_r_idx = np.array([int(np.argmin(per_sample_r))])

    headings = segment_headings_deg(center)
    off_axis = np.mod(headings, 90.0)
    off_axis = np.minimum(off_axis, 90.0 - off_axis)
    axis_idx = np.flatnonzero(off_axis <= QUALITY["axis_tolerance_deg"])
    axis_ratio = len(axis_idx) / n

    jitter = float(np.mean(np.abs(signed - np.roll(signed, 1))))

    bins = QUALITY["direction_bins"]
    which = np.floor(headings / (360.0 / bins)).astype(int) % bins
    counts = np.bincount(which, minlength=bins)
    p = counts[counts > 0] / n
    entropy = float(-np.sum(p * np.log2(p)) / np.log2(bins))
    occupied = int(np.count_nonzero(counts))

    score = 100
    issues = []

    if max_turn >= QUALITY["turn_fail_deg"]:
        score -= PENALTY["turn_fail"]
        issues.append(f"FAIL: Max turn angle {max_turn:.1f}° is at least {QUALITY['turn_fail_deg']:.0f}°.")
    elif max_turn >= QUALITY["turn_warn_deg"]:
        score -= PENALTY["turn_warn"]
        issues.append(f"WARN: Max turn angle {max_turn:.1f}° is at least {QUALITY['turn_warn_deg']:.0f}°.")

    sharp = len(sharp_idx)
    if sharp >= QUALITY["sharp_fail_count"]:
        score -= PENALTY["sharp_fail"]
        issues.append(f"FAIL: {sharp} sharp corners (turn >= {QUALITY['sharp_corner_deg']:.0f}°).")
    elif sharp >= QUALITY["sharp_warn_count"]:
        score -= PENALTY["sharp_warn"]
        issues.append(f"WARN: {sharp} sharp corners (turn >= {QUALITY['sharp_corner_deg']:.0f}°).")

    if min_radius < radius_limit:
        score -= PENALTY["radius"]
        issues.append(f"FAIL: Min curvature radius {min_radius:.2f} is below {radius_limit:.2f} "
                      f"({QUALITY['radius_width_factor']}x track width).")

    boxy_fail = axis_ratio >= QUALITY["axis_fail_ratio"]
    if boxy_fail:
        score -= PENALTY["axis_fail"]
        issues.append(f"FAIL: Track is boxy, {axis_ratio * 100:.0f}% of segments are axis-aligned.")
    elif axis_ratio >= QUALITY["axis_warn_ratio"]:
        score -= PENALTY["axis_warn"]
        issues.append(f"WARN: {axis_ratio * 100:.0f}% of segments are axis-aligned.")

    if jitter > QUALITY["jitter_max_deg"]:
        score -= PENALTY["jitter"]
        issues.append(f"WARN: Turning is jittery (avg turn change {jitter:.1f}° per sample).")

    if entropy < QUALITY["entropy_min"] or occupied < QUALITY["min_direction_bins"]:
        score -= PENALTY["entropy"]
        issues.append(f"WARN: Low direction variety (entropy {entropy:.2f}, {occupied}/{bins} headings used).")

    return QualityReport(
        score=int(np.clip(score, 0, 100)),
        max_turn_angle_deg=max_turn,
        sharp_corner_count=sharp,
        min_radius=min_radius,
        axis_aligned_ratio=float(axis_ratio),
        smoothness_jitter=jitter,
        direction_entropy=entropy,
        unique_direction_bins=occupied,
        boxy_fail=bool(boxy_fail),
        issues=tuple(issues),
        sharp_corner_indices=tuple(int(i) for i in sharp_idx),
        axis_aligned_segment_indices=tuple(int(i) for i in axis_idx),
        min_radius_indices=tuple(int(i) for i in min_r_idx)
    )
