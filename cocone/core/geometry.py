"""Exact and floating geometric primitives shared by every stage.

Orientation-type predicates (hull visibility, lifted in-sphere tests) run on
integer coordinates.  ``NumericPolicy`` picks, once per builder, whether those
integers fit ``int64`` or need Python's arbitrary precision integers.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Literal, Sequence, Tuple
import math

import numpy as np

from .errors import DegenerateInputError, NumericOverflowError

Precision = Literal["auto", "int64", "exact"]

# Coordinates are snapped to a grid of this many bits per axis.  Single
# precision input carries 24 bits of mantissa, so finer grids add nothing.
DEFAULT_BITS = 24
MAX_BITS = 52
INT64_SAFE_BITS = 62


# ---------- exact integer linear algebra ----------

def determinant(rows: Sequence[Sequence[int]]) -> int:
    """Exact determinant of an integer matrix (Bareiss fraction-free elimination)."""
    n = len(rows)
    if n == 0:
        return 1
    a = [[int(x) for x in row] for row in rows]
    sign = 1
    prev = 1
    for k in range(n - 1):
        if a[k][k] == 0:
            for r in range(k + 1, n):
                if a[r][k] != 0:
                    a[k], a[r] = a[r], a[k]
                    sign = -sign
                    break
            else:
                return 0
        akk = a[k][k]
        row_k = a[k]
        for i in range(k + 1, n):
            row_i = a[i]
            aik = row_i[k]
            for j in range(k + 1, n):
                row_i[j] = (row_i[j] * akk - aik * row_k[j]) // prev
        prev = akk
    return sign * a[n - 1][n - 1]


def integer_rank(rows: Sequence[Sequence[int]]) -> int:
    """Exact rank of a set of integer row vectors."""
    a = [[int(x) for x in row] for row in rows]
    if not a:
        return 0
    m, n = len(a), len(a[0])
    rank = 0
    for col in range(n):
        pivot = next((r for r in range(rank, m) if a[r][col] != 0), None)
        if pivot is None:
            continue
        a[rank], a[pivot] = a[pivot], a[rank]
        p = a[rank]
        for r in range(rank + 1, m):
            f = a[r][col]
            if f:
                row = [x * p[col] - f * y for x, y in zip(a[r], p)]
                g = math.gcd(*row)
                a[r] = [x // g for x in row] if g > 1 else row
        rank += 1
        if rank == m:
            break
    return rank


def integer_ortho(vectors: Sequence[Sequence[int]]) -> List[int]:
    """Orthogonal complement of N-1 integer vectors in N dimensions.

    Component k is the signed cofactor, so ``dot(result, x)`` equals the
    determinant of the matrix with rows ``x, vectors[0], ...``.
    """
    d = len(vectors) + 1
    result: List[int] = []
    for k in range(d):
        minor = [[v[j] for j in range(d) if j != k] for v in vectors]
        det = determinant(minor)
        result.append(det if k % 2 == 0 else -det)
    return result


def integer_direction(values: Sequence[int]) -> np.ndarray:
    """Unit float vector pointing along an (arbitrarily large) integer vector."""
    ints = [int(v) for v in values]
    top = max(abs(v) for v in ints).bit_length()
    shift = max(0, top - 60)
    vec = np.array([float(v >> shift) if v >= 0 else -float((-v) >> shift) for v in ints], dtype=np.float64)
    norm = float(np.linalg.norm(vec))
    if norm == 0.0:
        raise AssertionError("zero direction vector")
    return vec / norm


# ---------- floating point helpers ----------

def batched_ortho(vectors: np.ndarray) -> np.ndarray:
    """Orthogonal complements for a stack of (N-1, N) matrices, shape (K, N-1, N) -> (K, N)."""
    k, rows, d = vectors.shape
    assert rows == d - 1
    out = np.empty((k, d), dtype=np.float64)
    for col in range(d):
        minors = np.delete(vectors, col, axis=2)
        det = np.linalg.det(minors) if rows > 0 else np.ones(k)
        out[:, col] = det if col % 2 == 0 else -det
    return out


def ortho(vectors: np.ndarray) -> np.ndarray:
    return batched_ortho(np.asarray(vectors, dtype=np.float64)[None, :, :])[0]


def circumcenters(points: np.ndarray, simplices: np.ndarray) -> np.ndarray:
    """Circumcenters of N-simplices given as (S, N+1) index rows."""
    d = points.shape[1]
    if len(simplices) == 0:
        return np.zeros((0, d), dtype=np.float64)
    p = points[simplices].astype(np.float64, copy=False)
    p0 = p[:, 0, :]
    e = p[:, 1:, :] - p0[:, None, :]
    rhs = 0.5 * np.sum(e * e, axis=2)
    x = np.linalg.solve(e, rhs[..., None])[..., 0]
    return p0 + x


def orient_vertices(points: np.ndarray, vertices: Sequence[int], normal: np.ndarray) -> Tuple[int, ...]:
    """Order facet vertices so their winding agrees with ``normal``.

    The order is positive when ``det([v1 - v0, ..., v_{N-1} - v0, normal]) > 0``
    (counter-clockwise seen from outside for triangles in 3-D).
    """
    verts = list(vertices)
    p = points[verts].astype(np.float64, copy=False)
    m = np.vstack([p[1:] - p[0], np.asarray(normal, dtype=np.float64)[None, :]])
    if np.linalg.det(m) < 0:
        verts[-1], verts[-2] = verts[-2], verts[-1]
    return tuple(int(v) for v in verts)


# ---------- number type selection ----------

@dataclass(frozen=True)
class NumericPolicy:
    """Number type used for the exact predicates of one builder."""
    dimension: int
    bits: int
    dtype: object

    @property
    def exact(self) -> bool:
        return self.dtype is object

    @staticmethod
    def predicate_bits(col_max: Sequence[int]) -> int:
        # Hadamard bound on every cofactor, times the largest dot product term.
        d = len(col_max)
        length_sq = 4 * sum(c * c for c in col_max)
        row_bound = math.isqrt(length_sq) + 1
        ortho_bound = row_bound ** (d - 1)
        return (2 * ortho_bound * (sum(col_max) + 1)).bit_length()

    @classmethod
    def for_points(cls, points: np.ndarray, precision: Precision = "auto") -> "NumericPolicy":
        d = points.shape[1]
        if points.dtype == object or len(points) == 0:
            col_max = [max((abs(int(v)) for v in points[:, j]), default=0) for j in range(d)]
        else:
            col_max = [int(v) for v in np.abs(points).max(axis=0)]
        bits = cls.predicate_bits(col_max)
        if precision == "int64":
            if bits > INT64_SAFE_BITS:
                raise NumericOverflowError(
                    f"{d}-dimensional predicates need {bits} bits, int64 holds {INT64_SAFE_BITS}; "
                    "use precision 'auto' or 'exact'"
                )
            return cls(d, bits, np.int64)
        if precision == "exact" or bits > INT64_SAFE_BITS:
            return cls(d, bits, object)
        if precision != "auto":
            raise ValueError(f"Unknown precision '{precision}'")
        return cls(d, bits, np.int64)


# ---------- discretization ----------

def discretize(points: np.ndarray, bits: int = DEFAULT_BITS) -> Tuple[np.ndarray, np.ndarray]:
    """Snap points to a centred integer grid and drop grid duplicates.

    Returns ``(q, index)`` where ``q`` holds int64 coordinates of the unique
    points and ``index[i]`` is the input index of ``q[i]`` (first occurrence).
    """
    if not 2 <= bits <= MAX_BITS:
        raise ValueError(f"bits must be within [2, {MAX_BITS}], got {bits}")
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[0] == 0:
        raise DegenerateInputError("expected a non-empty (M, N) array of points")
    if not np.all(np.isfinite(pts)):
        raise DegenerateInputError("point coordinates must be finite")
    lo = pts.min(axis=0)
    hi = pts.max(axis=0)
    half = float(np.max(hi - lo)) / 2.0
    if half == 0.0:
        raise DegenerateInputError("all points coincide")
    scale = ((1 << bits) - 1) / half
    q = np.rint((pts - (lo + hi) / 2.0) * scale).astype(np.int64)
    _, first = np.unique(q, axis=0, return_index=True)
    first = np.sort(first)
    return q[first], first


def lift(q: np.ndarray) -> np.ndarray:
    """Paraboloid lifting ``q -> (q, |q|^2)`` with Python integers."""
    qo = q.astype(object)
    w = (qo * qo).sum(axis=1)
    return np.column_stack([qo, w])
