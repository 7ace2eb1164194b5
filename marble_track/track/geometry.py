"""
Planar geometry helpers shared by the generator, synthesizers and validator.
All functions work on closed rings: index N-1 is followed by index 0.
"""
import numpy as np

from marble_track.config.params import COARSE_NEIGHBOR_IGNORE, COARSE_STRIDE

# Stand-in radius for collinear triples
RADIUS_CAP = 1e6


def cross(a, b):
    """z component of the 2D cross product, broadcast over leading axes"""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    return a[..., 0] * b[..., 1] - a[..., 1] * b[..., 0]


def normalize(v, eps=1e-9):
    v = np.asarray(v, dtype=float)
    length = np.linalg.norm(v)
    if length < eps:
        return np.zeros(2)
    return v / length


def angle_between_deg(a, b):
    """
    Unsigned angle in degrees between vectors a and b (row-wise for arrays).
    Zero-length vectors give an angle of 0.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    norms = np.linalg.norm(a, axis=-1) * np.linalg.norm(b, axis=-1)
    dots = np.sum(a * b, axis=-1)
    with np.errstate(divide='ignore', invalid='ignore'):
        cos = np.where(norms > 1e-12, dots / norms, 1.0)
    return np.degrees(np.arccos(np.clip(cos, -1.0, 1.0)))


def segment_hits(p1, p2, q1, q2, det_epsilon=0.0, margin=0.0):
    """
    Parametric intersection test of segment p1-p2 against segments q1-q2.

    Args:
        p1, p2: Endpoints of the tested segment, shape (2,)
        q1, q2: Endpoints of the candidate segments, shape (M, 2)
        det_epsilon: Determinants at or below this magnitude count as parallel
        margin: Hits must satisfy margin < t, u < 1 - margin

    Returns:
        Boolean mask of shape (M,)
    """
    p1 = np.asarray(p1, dtype=float)
    q1 = np.asarray(q1, dtype=float)
    r = np.asarray(p2, dtype=float) - p1
    s = np.asarray(q2, dtype=float) - q1
    denom = cross(r, s)
    qp = q1 - p1
    with np.errstate(divide='ignore', invalid='ignore'):
        t = cross(qp, s) / denom
        u = cross(qp, r) / denom
    lo, hi = margin, 1.0 - margin
    return (np.abs(denom) > det_epsilon) & (t > lo) & (t < hi) & (u > lo) & (u < hi)


def has_self_intersection(center, stride=COARSE_STRIDE, neighbor_ignore=COARSE_NEIGHBOR_IGNORE):
    """
    Coarse self-crossing test on every `stride`-th segment.

    Segment pairs whose circular index distance is at most
    neighbor_ignore * stride are not compared.
    """
    center = np.asarray(center, dtype=float)
    n = len(center)
    if n < 4:
        return False

    starts = np.arange(0, n, stride)
    ends = (starts + stride) % n
    ignore = neighbor_ignore * stride
    for k, i in enumerate(starts):
        js = starts[k + 1:]
        d = js - i
        far = np.minimum(d, n - d) > ignore
        if not np.any(far):
            continue
        hits = segment_hits(center[i], center[ends[k]], center[js[far]], center[ends[k + 1:][far]])
        if np.any(hits):
            return True
    return False


def circumradius(a, b, c):
    """
    Radius of the circle through a, b, c (row-wise). Degenerate triples
    return RADIUS_CAP.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    c = np.asarray(c, dtype=float)
    ab = np.linalg.norm(b - a, axis=-1)
    bc = np.linalg.norm(c - b, axis=-1)
    ca = np.linalg.norm(a - c, axis=-1)
    area2 = np.abs(cross(b - a, c - a))
    with np.errstate(divide='ignore', invalid='ignore'):
        radius = np.where(area2 > 1e-12, ab * bc * ca / (2.0 * area2), RADIUS_CAP)
    return np.minimum(radius, RADIUS_CAP)


def segment_headings_deg(center):
    """Heading in [0, 360) of every ring segment i -> i+1"""
    center = np.asarray(center, dtype=float)
    d = np.roll(center, -1, axis=0) - center
    return np.mod(np.degrees(np.arctan2(d[:, 1], d[:, 0])), 360.0)


def chaikin_closed(points, passes):
    """Corner-cutting smoothing of a closed polyline"""
    pts = np.asarray(points, dtype=float)
    if len(pts) < 4:
        return pts
    for _ in range(passes):
        nxt = np.roll(pts, -1, axis=0)
        q = pts * 0.75 + nxt * 0.25
        r = pts * 0.25 + nxt * 0.75
        pts = np.stack([q, r], axis=1).reshape(-1, 2)
    return pts


def resample_closed(points, count):
    """
    Resample a closed polyline to `count` points evenly spaced by arc length.

    Returns None when fewer than 3 points are given.
    """
    pts = np.asarray(points, dtype=float)
    if len(pts) < 3:
        return None
    seg = np.linalg.norm(np.roll(pts, -1, axis=0) - pts, axis=1)
    lengths = np.concatenate([[0.0], np.cumsum(seg)])
    total = lengths[-1]
    if total <= 1e-9:
        return None

    targets = np.arange(count) * (total / count)
    idx = np.searchsorted(lengths, targets, side='right') - 1
    idx = np.clip(idx, 0, len(pts) - 1)
    seg_len = np.maximum(seg[idx], 1e-9)
    t = np.clip((targets - lengths[idx]) / seg_len, 0.0, 1.0)[:, None]
    a = pts[idx]
    b = pts[(idx + 1) % len(pts)]
    return a + (b - a) * t
