from __future__ import annotations
import math
from typing import Tuple

import numpy as np

Point = Tuple[float, float]

# Utility math (x, y only; z is ignored for angles)

def joint_angle(a: Point, b: Point, c: Point) -> float:
    """Return angle ABC in degrees with B as vertex, or nan if undefined."""
    ba = np.array([a[0] - b[0], a[1] - b[1]], dtype=float)
    bc = np.array([c[0] - b[0], c[1] - b[1]], dtype=float)
    len_ba = float(np.linalg.norm(ba))
    len_bc = float(np.linalg.norm(bc))
    if not (len_ba > 0.0 and len_bc > 0.0):
        # zero length or nan coordinates
        return math.nan
    cos_angle = np.clip(np.dot(ba, bc) / (len_ba * len_bc), -1.0, 1.0)
    return math.degrees(math.acos(float(cos_angle)))


def average_angle(*angles: float) -> float:
    if not angles or any(math.isnan(a) for a in angles):
        return math.nan
    return sum(angles) / len(angles)


def midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)


def vertical_orientation(top: Point, bottom: Point) -> float:
    """Signed angle of the bottom->top segment from image vertical.

    0 means `top` sits straight above `bottom`; positive leans toward +x.
    Image y grows downward.
    """
    dx = top[0] - bottom[0]
    dy = bottom[1] - top[1]
    if dx == 0 and dy == 0:
        return math.nan
    return math.degrees(math.atan2(dx, dy))
