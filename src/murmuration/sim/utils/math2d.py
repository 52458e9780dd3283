from __future__ import annotations

import math

from pygame.math import Vector2


def set_magnitude_xy(x: float, y: float, length: float) -> tuple[float, float]:
    magnitude_sq = x * x + y * y
    if magnitude_sq < 1e-18:
        return 0.0, 0.0
    scale = length / math.sqrt(magnitude_sq)
    return x * scale, y * scale


def clamp_length_xy(x: float, y: float, max_length: float) -> tuple[float, float]:
    if max_length <= 0.0:
        return 0.0, 0.0
    magnitude_sq = x * x + y * y
    if magnitude_sq <= max_length * max_length:
        return x, y
    inv = max_length / math.sqrt(magnitude_sq)
    return x * inv, y * inv


def wrap_coordinate(value: float, bound: float) -> float:
    # Python's float modulo is already non-negative for a positive bound, but a tiny
    # negative value can round up to exactly ``bound``.
    wrapped = value % bound
    if wrapped >= bound:
        return 0.0
    return wrapped


def distance_xy(ax: float, ay: float, bx: float, by: float) -> float:
    dx = ax - bx
    dy = ay - by
    return math.sqrt(dx * dx + dy * dy)


def heading_from_velocity(vector: Vector2) -> float:
    if vector.length_squared() < 1e-12:
        return 0.0
    return math.atan2(vector.y, vector.x)


def clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))
