"""roadscale.geometry.vectors

Vector helpers on plain ``(x, y)`` tuples. No shared state.
"""

from __future__ import annotations

import itertools
import math
from typing import Sequence

Vec2 = tuple[float, float]

NORMALIZE_EPS = 1e-6


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def sub(a: Vec2, b: Vec2) -> Vec2:
    return (a[0] - b[0], a[1] - b[1])


def distance(a: Vec2, b: Vec2) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def dot(a: Vec2, b: Vec2) -> float:
    return a[0] * b[0] + a[1] * b[1]


def cross(a: Vec2, b: Vec2) -> float:
    return a[0] * b[1] - a[1] * b[0]


def normalize(v: Vec2) -> Vec2:
    """Unit vector along ``v``; a zero-length input divides by epsilon instead of zero."""
    d = math.hypot(v[0], v[1]) or NORMALIZE_EPS
    return (v[0] / d, v[1] / d)


def orientation(a: Vec2, b: Vec2, c: Vec2) -> int:
    """Sign of the turn a -> b -> c: 1, -1, or 0 when collinear."""
    value = (b[1] - a[1]) * (c[0] - b[0]) - (b[0] - a[0]) * (c[1] - b[1])
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def segments_intersect(p1: Vec2, p2: Vec2, p3: Vec2, p4: Vec2) -> bool:
    """True when segment p1p2 and segment p3p4 straddle each other's supporting lines."""
    o1 = orientation(p1, p2, p3)
    o2 = orientation(p1, p2, p4)
    o3 = orientation(p3, p4, p1)
    o4 = orientation(p3, p4, p2)
    return o1 != o2 and o3 != o4


def is_simple_quad(points: Sequence[Vec2]) -> bool:
    """A quad p1..p4 is simple when neither pair of opposite edges crosses."""
    if len(points) != 4:
        raise ValueError(f"expected 4 points, got {len(points)}")
    p1, p2, p3, p4 = points
    return not (segments_intersect(p1, p2, p3, p4) or segments_intersect(p2, p3, p4, p1))


def angle_between_deg(u: Vec2, v: Vec2) -> float:
    """Angle between two unit vectors in degrees."""
    return math.degrees(math.acos(clamp(dot(u, v), -1.0, 1.0)))


def triangle_area2(a: Vec2, b: Vec2, c: Vec2) -> float:
    return abs(cross(sub(b, a), sub(c, a)))


def has_collinear_triple(points: Sequence[Vec2], *, eps: float = 1e-6) -> bool:
    # Any three collinear points make the 4-point projective system singular.
    return any(triangle_area2(a, b, c) <= eps for a, b, c in itertools.combinations(points, 3))
