"""Synthetic point clouds sampled from known manifolds.

Every generator is seeded (by default with the requested point count) and
returns a float32 array of distinct points; points that coincide on a 1e-5
grid are dropped and re-drawn.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional
import math

import numpy as np

# Points closer than 1 / DISCRETIZATION along every axis count as duplicates.
DISCRETIZATION = 100_000
# "bound" objects drop the cap where dot(p, last axis) < COS_FOR_BOUND.
COS_FOR_BOUND = -0.3
MOBIUS_STRIP_WIDTH = 1.0
TORUS_RADIUS_OF_TUBE = 0.5

Sampler = Callable[[np.random.Generator, int, int], np.ndarray]


def _random_sphere(rng: np.random.Generator, count: int, dimension: int) -> np.ndarray:
    """Uniform directions on the unit sphere by rejection from the unit ball."""
    out: List[np.ndarray] = []
    have = 0
    while have < count:
        v = rng.uniform(-1.0, 1.0, size=(2 * count + 8, dimension))
        sq = np.einsum("ij,ij->i", v, v)
        v = v[(sq <= 1.0) & (sq > 1e-12)]
        out.append(v / np.linalg.norm(v, axis=1, keepdims=True))
        have += len(v)
    return np.vstack(out)[:count]


def _bounded(v: np.ndarray) -> np.ndarray:
    return v[v[:, -1] >= COS_FOR_BOUND]


def _ellipsoid(bound: bool) -> Sampler:
    def sample(rng: np.random.Generator, count: int, dimension: int) -> np.ndarray:
        v = _random_sphere(rng, count, dimension)
        if bound:
            v = _bounded(v)
        v[:, 0] *= 2.0
        return v
    return sample


def _sphere_with_notch(bound: bool) -> Sampler:
    def sample(rng: np.random.Generator, count: int, dimension: int) -> np.ndarray:
        v = _random_sphere(rng, count, dimension)
        if bound:
            v = _bounded(v)
        # dent on the positive side of the last axis
        z = v[:, -1]
        top = z > 0.0
        v[top, -1] *= 1.0 - np.abs(0.5 * z[top] ** 5)
        return v
    return sample


def _torus(bound: bool) -> Sampler:
    # not uniform over the surface
    def sample(rng: np.random.Generator, count: int, dimension: int) -> np.ndarray:
        ring = _random_sphere(rng, count, dimension - 1)
        tube = TORUS_RADIUS_OF_TUBE * _random_sphere(rng, count, 2)
        v = np.zeros((count, dimension), dtype=np.float64)
        v[:, :-1] = ring * (1.0 + tube[:, :1])
        v[:, -1] = tube[:, 1]
        if bound:
            v = _bounded(v)
        return v
    return sample


def _mobius_curve(x: np.ndarray) -> np.ndarray:
    """Maps [0, 2*pi] onto [0, pi], flattening the middle of the strip."""
    x = 2.0 * (x / (2.0 * math.pi)) - 1.0
    x = np.copysign(np.abs(x) ** 5, x)
    return math.pi * (x + 1.0) / 2.0


def _rotate(axis: np.ndarray, angle: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rodrigues rotation of rows of ``v`` about a fixed unit ``axis``."""
    c = np.cos(angle)[:, None]
    s = np.sin(angle)[:, None]
    k = np.broadcast_to(axis, v.shape)
    return v * c + np.cross(k, v) * s + k * (v @ axis)[:, None] * (1.0 - c)


def _mobius_strip(rng: np.random.Generator, count: int, dimension: int) -> np.ndarray:
    alpha = rng.uniform(0.0, 2.0 * math.pi, size=count)
    line = rng.uniform(-MOBIUS_STRIP_WIDTH / 2.0, MOBIUS_STRIP_WIDTH / 2.0, size=count)
    v = np.zeros((count, 3), dtype=np.float64)
    v[:, 2] = line
    v = _rotate(np.array([0.0, 1.0, 0.0]), math.pi / 2.0 - _mobius_curve(alpha), v)
    v[:, 0] += 1.0
    return _rotate(np.array([0.0, 0.0, 1.0]), alpha, v)


_OBJECTS: Dict[str, Sampler] = {
    "ellipsoid": _ellipsoid(False),
    "ellipsoid_bound": _ellipsoid(True),
    "sphere_with_notch": _sphere_with_notch(False),
    "sphere_with_notch_bound": _sphere_with_notch(True),
    "torus": _torus(False),
    "torus_bound": _torus(True),
    "mobius_strip": _mobius_strip,
}

_MIN_DIMENSION = {"torus": 3, "torus_bound": 3}
_ONLY_DIMENSION = {"mobius_strip": 3}


def point_object_names(dimension: int) -> List[str]:
    names = []
    for name in sorted(_OBJECTS):
        if dimension < _MIN_DIMENSION.get(name, 2):
            continue
        if name in _ONLY_DIMENSION and _ONLY_DIMENSION[name] != dimension:
            continue
        names.append(name)
    return names


def point_object(name: str, point_count: int, dimension: int = 3, seed: Optional[int] = None) -> np.ndarray:
    """Generate ``point_count`` distinct points of a named object in ``dimension`` dimensions."""
    if name not in _OBJECTS:
        raise ValueError(f"Unknown point object '{name}'. Available: {sorted(_OBJECTS)}")
    if name not in point_object_names(dimension):
        raise ValueError(f"Point object '{name}' is not available in {dimension} dimensions")
    if point_count < 1:
        raise ValueError("point_count must be positive")

    sampler = _OBJECTS[name]
    rng = np.random.default_rng(point_count if seed is None else seed)
    kept: List[np.ndarray] = []
    seen: set = set()
    have = 0
    for _ in range(1000):
        batch = sampler(rng, point_count, dimension)
        keys = np.rint(batch * DISCRETIZATION).astype(np.int64)
        for row, key in zip(batch, map(tuple, keys)):
            if key in seen:
                continue
            seen.add(key)
            kept.append(row)
            have += 1
            if have == point_count:
                return np.asarray(kept, dtype=np.float32)
    raise RuntimeError(f"Could not draw {point_count} distinct points for '{name}'")
