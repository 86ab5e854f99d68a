"""Delaunay triangulation through the paraboloid lifting map.

Points are snapped to an integer grid and lifted to ``(q, |q|^2)``.  One
extra apex vertex, vertically above the first point and above every lifted
point, makes the lifted set full-dimensional even when the input is
co-spherical (a cube, N+1 points).  The lower facets of the hull that do not
touch the apex are exactly the Delaunay simplices.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .errors import DegenerateInputError
from .geometry import DEFAULT_BITS, Precision, batched_ortho, discretize, lift
from .hull import ConvexHullBuilder
from .progress import ProgressRatio
from .utils import ensure_unit_vectors, get_logger

_log = get_logger()


@dataclass(frozen=True)
class DelaunaySimplex:
    """N+1 sorted vertex indices and the outward unit ortho of every facet.

    ``orthos[i]`` belongs to the facet opposite ``vertices[i]``.
    """
    vertices: Tuple[int, ...]
    orthos: np.ndarray

    def ortho(self, i: int) -> np.ndarray:
        return self.orthos[i]

    def facet(self, i: int) -> Tuple[int, ...]:
        return self.vertices[:i] + self.vertices[i + 1:]


@dataclass(frozen=True)
class DelaunayFacet:
    vertices: Tuple[int, ...]
    ortho: np.ndarray
    simplices: Tuple[int, int]

    @property
    def one_sided(self) -> bool:
        return self.simplices[1] < 0


@dataclass(frozen=True)
class DelaunayTriangulation:
    points: np.ndarray
    simplices: Tuple[DelaunaySimplex, ...]
    facets: Tuple[DelaunayFacet, ...]

    @property
    def dimension(self) -> int:
        return int(self.points.shape[1])

    def simplex_array(self) -> np.ndarray:
        if not self.simplices:
            return np.zeros((0, self.dimension + 1), dtype=np.int64)
        return np.array([s.vertices for s in self.simplices], dtype=np.int64)

    def facet_array(self) -> np.ndarray:
        if not self.facets:
            return np.zeros((0, self.dimension), dtype=np.int64)
        return np.array([f.vertices for f in self.facets], dtype=np.int64)


def simplex_orthos(points: np.ndarray, simplices: np.ndarray) -> np.ndarray:
    """Outward unit facet orthos for every simplex, shape (S, N+1, N)."""
    s, k = simplices.shape
    d = points.shape[1]
    out = np.empty((s, k, d), dtype=np.float64)
    for i in range(k):
        facet = np.delete(simplices, i, axis=1)
        base = points[facet[:, 0]]
        vectors = points[facet[:, 1:]] - base[:, None, :]
        normal = batched_ortho(vectors)
        side = np.einsum("ij,ij->i", normal, points[simplices[:, i]] - base)
        normal[side > 0] *= -1.0
        out[:, i, :] = ensure_unit_vectors(normal)
    return out


def delaunay_facets(simplices: Sequence[DelaunaySimplex]) -> List[DelaunayFacet]:
    """Facets shared by one (hull boundary) or two simplices, in sorted vertex order."""
    owners: Dict[Tuple[int, ...], List[Tuple[int, int]]] = {}
    for sid, simplex in enumerate(simplices):
        for i in range(len(simplex.vertices)):
            owners.setdefault(simplex.facet(i), []).append((sid, i))
    facets: List[DelaunayFacet] = []
    for key in sorted(owners):
        incident = owners[key]
        if len(incident) > 2:
            raise AssertionError(f"facet {key} shared by {len(incident)} simplices")
        s0, i0 = incident[0]
        s1 = incident[1][0] if len(incident) == 2 else -1
        facets.append(DelaunayFacet(key, simplices[s0].ortho(i0), (s0, s1)))
    return facets


def compute_delaunay(
    points: np.ndarray,
    *,
    progress: Optional[ProgressRatio] = None,
    bits: int = DEFAULT_BITS,
    precision: Precision = "auto",
    seed: int = 0,
) -> DelaunayTriangulation:
    source = np.asarray(points, dtype=np.float32)
    if source.ndim != 2 or source.shape[1] < 2:
        raise DegenerateInputError("expected an (M, N) array of points with N >= 2")
    m, n = source.shape
    if m < n + 1:
        raise DegenerateInputError(f"need at least {n + 1} points in {n} dimensions, got {m}")

    q, index = discretize(source, bits)
    if len(q) < n + 1:
        raise DegenerateInputError(f"only {len(q)} distinct points remain after snapping to the grid")
    lifted = lift(q)
    apex = np.append(q[0].astype(object), max(lifted[:, -1]) + 1)
    apex_id = len(q)
    builder = ConvexHullBuilder(np.vstack([lifted, apex[None, :]]), precision=precision, seed=seed, progress=progress)

    rows: List[Tuple[int, ...]] = []
    for f in builder.alive_facets():
        if apex_id in f.vertices or not f.ortho[-1] < 0:
            continue
        rows.append(tuple(sorted(int(index[v]) for v in f.vertices)))
    rows.sort()
    if not rows:
        raise DegenerateInputError("lifted hull has no lower facets")

    coords = source.astype(np.float64)
    coords.setflags(write=False)
    simplex_ids = np.array(rows, dtype=np.int64)
    orthos = simplex_orthos(coords, simplex_ids)
    orthos.setflags(write=False)
    simplices = tuple(DelaunaySimplex(row, orthos[sid]) for sid, row in enumerate(rows))
    facets = tuple(delaunay_facets(simplices))
    _log.info(
        "Delaunay: %d simplices, %d facets (%d on the hull) from %d points",
        len(simplices), len(facets), sum(f.one_sided for f in facets), m,
    )
    if len(q) < m:
        _log.debug("Delaunay: %d duplicate points ignored", m - len(q))
    return DelaunayTriangulation(coords, simplices, facets)
