"""
Candidate centerline synthesizers

A synthesizer proposes a raw closed loop for an arena:

    points, stats = synthesizer.synthesize(half_width, half_height, rng, variant)

`points` is an [M, 2] array (or None when nothing usable was found) and
`stats` a SynthesisStats. Returning too few points or a self-crossing loop is
allowed; the generator falls back in that case.

Both strategies here can end in a point-symmetric loop: a right half that
runs from the origin to a point straight above it while staying at x > 0,
followed by the same half turned 180 degrees about the midpoint. The halves
meet only at their ends, so the loop closes and never crosses itself.
"""
from dataclasses import dataclass

import numpy as np

from marble_track.config.params import SAMPLE_COUNT
from marble_track.track.geometry import chaikin_closed, has_self_intersection, resample_closed
from marble_track.track.rng import SeededRng, stable_mix


@dataclass(frozen=True)
class SynthesisStats:
    segment_count: int = 0
    diagonal_count: int = 0


# 8-neighbourhood steps, counter-clockwise from east
DIR_DELTA8 = ((1, 0), (1, 1), (0, 1), (-1, 1), (-1, 0), (-1, -1), (0, -1), (1, -1))

EAST, NORTH_EAST, NORTH, NORTH_WEST, WEST = 0, 1, 2, 3, 4


def _turn(direction, steps):
    return (direction + steps) & 7


def _is_diagonal(direction):
    return direction & 1 == 1


def _vec_to_dir(dx, dy):
    try:
        return DIR_DELTA8.index((dx, dy))
    except ValueError:
        return -1


def _edge(a, b):
    return (a, b) if a <= b else (b, a)


def _normalize_turn(turn):
    while turn > 4:
        turn -= 8
    while turn < -4:
        turn += 8
    return turn


def _orient(a, b, c):
    v = (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])
    return (v > 0) - (v < 0)


def _on_segment(a, b, p):
    return min(a[0], b[0]) <= p[0] <= max(a[0], b[0]) and min(a[1], b[1]) <= p[1] <= max(a[1], b[1])


def _segments_intersect(a, b, c, d):
    """Lattice segment test; touching and collinear overlap count as hits"""
    o1, o2 = _orient(a, b, c), _orient(a, b, d)
    o3, o4 = _orient(c, d, a), _orient(c, d, b)
    if o1 != o2 and o3 != o4:
        return True
    return ((o1 == 0 and _on_segment(a, b, c)) or (o2 == 0 and _on_segment(a, b, d))
            or (o3 == 0 and _on_segment(c, d, a)) or (o4 == 0 and _on_segment(c, d, b)))


def _intersects_existing(a, b, adjacent):
    """
    True when segment a-b meets a walked edge that shares no endpoint with it.

    Walked edges are unit steps and a-b spans at most two cells, so any edge
    it meets has an endpoint inside the bounding box of a-b.
    """
    for x in range(min(a[0], b[0]), max(a[0], b[0]) + 1):
        for y in range(min(a[1], b[1]), max(a[1], b[1]) + 1):
            p = (x, y)
            for q in adjacent.get(p, ()):
                if p in (a, b) or q in (a, b):
                    continue
                if _segments_intersect(a, b, p, q):
                    return True
    return False


def mirror_close(half):
    """
    Close a half loop by turning it 180 degrees about the midpoint of its ends.

    `half` starts at the origin and ends at P; the returned ring visits half
    and then P - half, without repeating the first point.
    """
    half = np.asarray(half)
    end = half[-1]
    return np.vstack([half[:-1], end - half[:-1]])


def _loop_counts(nodes):
    dirs = [_vec_to_dir(b[0] - a[0], b[1] - a[1]) for a, b in zip(nodes[:-1], nodes[1:])]
    return len(dirs), sum(1 for d in dirs if d >= 0 and _is_diagonal(d))


class SnappedGridSynthesizer:
    """
    Random walk on an 8-connected grid that closes back on its origin.

    Each attempt runs on its own RNG derived from the caller's seed, the
    variant and the attempt number. Scored loops are rounded at their
    corners, smoothed and resampled to `target_samples` points, best score
    first, until one passes the coarse self-intersection check. When no walk
    gets that far the deterministic `symmetric_loop` is used instead.
    """

    def __init__(self, target_samples=SAMPLE_COUNT, min_segments=40, max_segments=120, attempts=40):
        self.target_samples = target_samples
        self.min_segments = min_segments
        self.max_segments = max_segments
        self.attempts = attempts

    def grid(self, half_width, half_height):
        """Cell size and the largest usable |x| and |y| in cells"""
        cell = float(np.clip(min(half_width, half_height) * 0.08, 3.5, 9.0))
        margin_cells = 2
        max_x = max(6, int(np.floor(half_width / cell)) - margin_cells)
        max_y = max(6, int(np.floor(half_height / cell)) - margin_cells)
        return cell, max_x, max_y

    def synthesize(self, half_width, half_height, rng, variant):
        cell, max_x, max_y = self.grid(half_width, half_height)
        # only uniform draws are needed from a caller RNG; seeding uses its seed when it has one
        source_seed = getattr(rng, "seed", variant)

        scored = []
        for attempt in range(self.attempts):
            attempt_rng = SeededRng(stable_mix(source_seed, variant, attempt, 0x68F1))
            nodes = self._walk(max_x, max_y, attempt_rng)
            if nodes is None:
                continue
            result = score_loop(nodes, self.min_segments)
            if result is not None:
                scored.append(result + (nodes,))

        # stable sort: equal scores keep attempt order
        scored.sort(key=lambda s: -s[0])
        for _, segments, diagonals, nodes in scored:
            points = self._world_polyline(nodes, cell)
            if points is not None and not has_self_intersection(points):
                return points, SynthesisStats(segments, diagonals)

        layout_rng = SeededRng(stable_mix(source_seed, variant, self.attempts, 0x5EED))
        nodes = self.symmetric_loop(max_x, max_y, layout_rng)
        return self._world_polyline(nodes, cell), SynthesisStats(*_loop_counts(nodes))

    def _walk(self, max_x, max_y, rng):
        origin = (0, 0)
        nodes = [origin]
        visited = {origin}
        edges = set()
        adjacent = {}
        direction = EAST

        def commit(a, b):
            nodes.append(b)
            edges.add(_edge(a, b))
            adjacent.setdefault(a, []).append(b)
            adjacent.setdefault(b, []).append(a)

        for step in range(self.max_segments):
            current = nodes[-1]
            committed = False
            for _ in range(12):
                nxt_dir = self._pick_direction(rng, direction, nodes, step)
                if nxt_dir == _turn(direction, 4):
                    continue
                dx, dy = DIR_DELTA8[nxt_dir]
                nxt = (current[0] + dx, current[1] + dy)
                if abs(nxt[0]) > max_x or abs(nxt[1]) > max_y:
                    continue

                closing = step >= self.min_segments and nxt == origin
                if not closing and nxt in visited:
                    continue
                if _edge(current, nxt) in edges or _intersects_existing(current, nxt, adjacent):
                    continue

                commit(current, nxt)
                if closing:
                    return nodes
                visited.add(nxt)
                direction = nxt_dir
                committed = True
                break

            if not committed:
                return None

            if step >= self.min_segments:
                now = nodes[-1]
                if 1 <= abs(now[0]) + abs(now[1]) <= 2 \
                        and _edge(now, origin) not in edges \
                        and not _intersects_existing(now, origin, adjacent):
                    commit(now, origin)
                    return nodes

        return None

    def _pick_direction(self, rng, direction, nodes, step):
        t = rng.value()
        recent_turns = False
        if len(nodes) > 6:
            last = _vec_to_dir(nodes[-1][0] - nodes[-2][0], nodes[-1][1] - nodes[-2][1])
            older = _vec_to_dir(nodes[-2][0] - nodes[-3][0], nodes[-2][1] - nodes[-3][1])
            recent_turns = last >= 0 and older >= 0 and last != older

        if t < 0.55:
            return direction
        if t < 0.75:
            return _turn(direction, 1 if rng.chance(0.5) else -1)
        if t < 0.95:
            return _turn(direction, 2 if rng.chance(0.5) else -2)
        if not recent_turns and step > 14:
            # U-turn request after a straight; the walk rejects it as a reversal and redraws
            return _turn(direction, 4 if rng.chance(0.5) else -4)
        return _turn(direction, 2 if rng.chance(0.5) else -2)

    def symmetric_loop(self, max_x, max_y, rng):
        """
        Grid loop that always scores and never crosses itself.

        The right half leaves the origin east, climbs the east side with a
        diagonal entry, a two-cell jog inwards and a diagonal exit, and comes
        back west to (0, 2h). Every node between its ends has x >= 1, so the
        half turned 180 degrees about (0, h) lies at x <= -1. The ring starts
        at the west end of the bottom straight and is centred on y = 0.

        Returns:
            Closed node list (last node equals the first)
        """
        reach = min(max_x, max_y + 3)
        h = min(max_y, max_x + 3)
        straight = reach - 2
        rise = 2 * h - 8
        lower = rng.integers(1, rise)
        pieces = [
            (EAST, straight),
            (NORTH_EAST, 2),
            (NORTH, lower),
            (WEST, 2),
            (NORTH, 2),
            (NORTH_EAST, 2),
            (NORTH, rise - lower),
            (NORTH_WEST, 2),
            (WEST, straight),
        ]

        half = [(0, 0)]
        for direction, count in pieces:
            dx, dy = DIR_DELTA8[direction]
            for _ in range(count):
                x, y = half[-1]
                half.append((x + dx, y + dy))

        ring = [(int(x), int(y)) for x, y in mirror_close(half)]
        first = ring.index((-straight, 0))
        ring = ring[first:] + ring[:first]
        ring = [(x, y - h) for x, y in ring]
        return ring + [ring[0]]

    def _world_polyline(self, nodes, cell):
        ring = np.array(nodes[:-1], dtype=float) * cell
        n = len(ring)
        radius = cell * 0.35
        pts = []
        for k in range(n):
            p = ring[k]
            d_in = p - ring[k - 1]
            d_out = ring[(k + 1) % n] - p
            d_in /= np.linalg.norm(d_in)
            d_out /= np.linalg.norm(d_out)
            dot = float(np.dot(d_in, d_out))
            if dot >= 0.999:
                pts.append(p)
                continue

            # quadratic corner from entry to exit with the grid node as control
            entry = p - d_in * radius
            exit_ = p + d_out * radius
            count = int(round(5 + 4 * (1.0 - np.clip(dot, 0.0, 1.0))))
            for t in np.linspace(0.0, 1.0, count):
                pts.append((1 - t) ** 2 * entry + 2 * (1 - t) * t * p + t ** 2 * exit_)

        smooth = chaikin_closed(np.array(pts), 2)
        return resample_closed(smooth, self.target_samples)


def score_loop(nodes, min_segments=40):
    """
    Score a closed grid loop.

    Returns:
        (score, segment_count, diagonal_count), or None when the loop lacks
        diagonals, two long straights, a hairpin, a chicane, or is too
        elongated
    """
    segments = max(0, len(nodes) - 1)
    if len(nodes) < min_segments + 1:
        return None

    dirs = []
    for a, b in zip(nodes[:-1], nodes[1:]):
        d = _vec_to_dir(b[0] - a[0], b[1] - a[1])
        if d < 0:
            return None
        dirs.append(d)
    diagonals = sum(1 for d in dirs if _is_diagonal(d))
    if diagonals < 6:
        return None

    long_runs = 0
    run = 1
    for prev, cur in zip(dirs[:-1], dirs[1:]):
        if cur == prev:
            run += 1
            continue
        if run >= 8:
            long_runs += 1
        run = 1
    if run >= 8:
        long_runs += 1
    if long_runs < 2:
        return None

    changes = [_normalize_turn(cur - prev) for prev, cur in zip(dirs[:-1], dirs[1:])]
    hairpin = False
    chicane = False
    for i, change in enumerate(changes):
        if abs(change) == 2 and any(abs(c) == 2 for c in changes[i + 1:i + 5]):
            hairpin = True
        if change != 0 and any(c != 0 and np.sign(c) != np.sign(change) for c in changes[i + 1:i + 7]):
            chicane = True
        if hairpin and chicane:
            break
    if not hairpin or not chicane:
        return None

    xs = [p[0] for p in nodes]
    ys = [p[1] for p in nodes]
    w = max(1, max(xs) - min(xs))
    h = max(1, max(ys) - min(ys))
    aspect = max(w, h) / min(w, h)
    if aspect > 2.8:
        return None

    score = segments * 0.45 + diagonals * 2.0 + long_runs * 8.0 + 20.0 + 20.0 - aspect * 4.0
    return score, segments, diagonals


class TemplateSynthesizer:
    """
    Hand-shaped layouts built from arcs, straights and chicanes.

    Three templates exist; the variant (nudged by one RNG draw) picks one.
    Each template is the right half of a loop and turns +180 degrees; the
    left half is the same path turned about the midpoint of its ends.
    """

    def __init__(self, target_samples=SAMPLE_COUNT):
        self.target_samples = target_samples

    def synthesize(self, half_width, half_height, rng, variant):
        pieces = self.template(half_width, half_height, variant, rng)
        short = min(half_width, half_height)
        step = float(np.clip(short * 0.03, 0.6, 1.2))
        half = self.half_loop(pieces, step, lead=half_width * 0.5, clearance=short * 0.25)
        raw = _fit_inside(mirror_close(half), half_width - 3.0, half_height - 3.0)
        smooth = chaikin_closed(raw, 2)
        points = resample_closed(smooth, self.target_samples)
        # each half adds its pieces; the two long straights are shared
        return points, SynthesisStats(2 * len(pieces) + 2, 0)

    @staticmethod
    def template(half_w, half_h, variant, rng):
        """
        List of ("straight", length), ("arc", radius, degrees) and
        ("chicane", left_radius, right_radius, degrees) pieces.

        Arcs add up to 180 degrees and every heading stays within [0, 180],
        so the path only ever climbs.
        """
        short = min(half_w, half_h)
        back_straight = min(half_w * 0.9, half_w + 6.0)
        short_straight = short * 0.45
        sweeper = short * 0.5
        hairpin = short * 0.3
        chicane_l = short * 0.35
        chicane_r = short * 0.30

        nudge = rng.integers(0, 3) if rng is not None else 0
        v = abs(variant + nudge) % 3
        if v == 1:
            return [
                ("arc", sweeper * 0.9, 60.0),
                ("straight", back_straight),
                ("chicane", chicane_l, chicane_r, 20.0),
                ("straight", short_straight * 0.5),
                ("arc", hairpin, 120.0)
            ]
        if v == 2:
            return [
                ("arc", sweeper, 45.0),
                ("straight", short_straight),
                ("arc", sweeper * 0.8, 45.0),
                ("straight", back_straight * 0.8),
                ("chicane", chicane_l * 0.9, chicane_r, 26.0),
                ("straight", short_straight * 0.6),
                ("arc", hairpin * 1.2, 90.0)
            ]
        return [
            ("arc", sweeper, 90.0),
            ("straight", back_straight),
            ("chicane", chicane_l, chicane_r, 24.0),
            ("straight", back_straight * 0.5),
            ("arc", sweeper * 0.8, 90.0)
        ]

    def half_loop(self, pieces, step, lead, clearance):
        """
        Right half of a loop, from the origin heading east to (0, y_end).

        The opening straight is at least `lead` long and is stretched until
        every later point has x >= clearance. A closing straight runs west
        from the end of the pieces back to x = 0.
        """
        body = self._polyline(pieces, step)
        lead = max(lead, clearance - body[:, 0].min())
        body = body + np.array([lead, 0.0])
        origin = np.zeros(2)
        end = np.array([0.0, body[-1, 1]])
        return np.vstack([origin, _line(origin, body[0], step)[:-1], body, _line(body[-1], end, step)])

    def _polyline(self, segments, step):
        pos = np.zeros(2)
        heading = np.array([1.0, 0.0])
        pts = [pos.copy()]
        for seg in segments:
            kind = seg[0]
            if kind == "straight":
                pts.extend(_line(pos, pos + heading * seg[1], step))
                pos = pos + heading * seg[1]
            elif kind == "arc":
                pos, heading = _append_arc(pts, pos, heading, seg[1], seg[2], True, step)
            elif kind == "chicane":
                pos, heading = _append_arc(pts, pos, heading, seg[1], seg[3], True, step)
                pos, heading = _append_arc(pts, pos, heading, seg[2], seg[3], False, step)
            else:
                raise ValueError(f"Unknown template piece: {kind}")
        return np.array(pts)


def _line(start, end, step):
    """Points after `start` up to and including `end`"""
    start = np.asarray(start, dtype=float)
    delta = np.asarray(end, dtype=float) - start
    count = max(2, int(np.ceil(np.linalg.norm(delta) / step)))
    return [start + delta * (i / count) for i in range(1, count + 1)]


def _append_arc(pts, pos, heading, radius, degrees, left, step):
    angle = np.radians(degrees)
    count = max(4, int(np.ceil(abs(angle * radius) / step)))
    sign = 1.0 if left else -1.0
    right = np.array([heading[1], -heading[0]])
    pivot = pos - right * sign * radius
    start = pos - pivot
    for i in range(1, count + 1):
        a = sign * angle * i / count
        c, s = np.cos(a), np.sin(a)
        pts.append(pivot + np.array([start[0] * c - start[1] * s, start[0] * s + start[1] * c]))

    a = sign * angle
    c, s = np.cos(a), np.sin(a)
    heading = np.array([heading[0] * c - heading[1] * s, heading[0] * s + heading[1] * c])
    return pts[-1].copy(), heading / np.linalg.norm(heading)


def _fit_inside(points, max_x, max_y):
    """Center the points on the origin and shrink them to fit |x| <= max_x, |y| <= max_y"""
    lo = points.min(axis=0)
    hi = points.max(axis=0)
    mid = (lo + hi) * 0.5
    ext = (hi - lo) * 0.5
    sx = max_x / max(ext[0], 0.001) if ext[0] > max_x else 1.0
    sy = max_y / max(ext[1], 0.001) if ext[1] > max_y else 1.0
    return (points - mid) * min(sx, sy)
