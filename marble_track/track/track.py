import numpy as np

LAYER_NONE = 0
LAYER_BRIDGE = 1


def _frozen(values, dtype, shape_tail=()):
    arr = np.array(values, dtype=dtype).reshape((-1,) + shape_tail)
    arr.setflags(write=False)
    return arr


class Track:
    """
    Sampled closed racetrack stored as parallel arrays

    Attributes:
        center: Centerline points [N, 2]; index N-1 adjoins index 0
        tangent: Unit tangents [N, 2]
        normal: Left normals [N, 2]
        half_width: Drivable half-width per sample [N]
        curvature: Tangent turn between samples divided by 180 degrees [N]
        layer: Crossover tag per sample [N] (LAYER_NONE unless a bridge)
    """

    def __init__(self, center, tangent, normal, half_width, curvature, layer=None):
        self.center = _frozen(center, float, (2,))
        self.tangent = _frozen(tangent, float, (2,))
        self.normal = _frozen(normal, float, (2,))
        self.half_width = _frozen(half_width, float)
        self.curvature = _frozen(curvature, float)
        n = len(self.center)
        if layer is None:
            layer = np.full(n, LAYER_NONE)
        self.layer = _frozen(layer, np.int8)
        self.sample_count = n

        for name in ("tangent", "normal", "half_width", "curvature", "layer"):
            if len(getattr(self, name)) != n:
                raise ValueError(f"{name} has {len(getattr(self, name))} samples, expected {n}")

    def wrap(self, i):
        if self.sample_count <= 0:
            return 0
        return int(i) % self.sample_count

    def forward_delta(self, start, end):
        """Samples travelled going forward from start to end"""
        if self.sample_count <= 0:
            return 0
        return (self.wrap(end) - self.wrap(start)) % self.sample_count

    def get_layer(self, i):
        if self.sample_count <= 0:
            return LAYER_NONE
        return int(self.layer[self.wrap(i)])

    def boundary(self, side):
        """
        Closed boundary ring center + normal * half_width * side

        Args:
            side: +1 for the inner (left) edge, -1 for the outer edge

        Returns:
            Boundary points [N+1, 2], the first point repeated at the end
        """
        pts = self.center + self.normal * (self.half_width * side)[:, None]
        return np.vstack([pts, pts[:1]])

    def start_line(self):
        """End points of the start/finish segment across sample 0"""
        offset = self.normal[0] * self.half_width[0]
        return self.center[0] + offset, self.center[0] - offset

    def average_half_width(self):
        if self.sample_count <= 0:
            return 0.0
        return float(np.mean(self.half_width))

    def rotated(self, offset):
        """Copy of the track whose sample 0 is this track's sample `offset`"""
        k = self.wrap(offset)
        return Track(
            np.roll(self.center, -k, axis=0),
            np.roll(self.tangent, -k, axis=0),
            np.roll(self.normal, -k, axis=0),
            np.roll(self.half_width, -k),
            np.roll(self.curvature, -k),
            np.roll(self.layer, -k)
        )

    def with_layer_span(self, start, end, layer=LAYER_BRIDGE):
        """Copy of the track with samples start..end (inclusive, wrapping) tagged `layer`"""
        tags = self.layer.copy()
        count = self.forward_delta(start, end) + 1
        idx = (self.wrap(start) + np.arange(count)) % self.sample_count
        tags[idx] = layer
        return Track(self.center, self.tangent, self.normal, self.half_width, self.curvature, tags)


def build_boundaries(track):
    """
    Boundary provider as a renderer exposes it: inner and outer point rings
    with N+1 points each, wound like the centerline.
    """
    return {
        "inner": track.boundary(1.0),
        "outer": track.boundary(-1.0)
    }
