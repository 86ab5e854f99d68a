"""Exact convex hulls of integer point sets in any dimension.

``ConvexHullBuilder`` runs the randomized incremental construction with a
conflict graph; ``compute_convex_hull`` snaps a float cloud to the integer
grid, builds its hull and hands back outward facets over the original
indices.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from .errors import DegenerateInputError
from .geometry import (
    DEFAULT_BITS,
    NumericPolicy,
    Precision,
    discretize,
    integer_direction,
    integer_ortho,
    integer_rank,
    orient_vertices,
)
from .progress import ProgressRatio, check_cancelled, report
from .utils import get_logger

_log = get_logger()

Ridge = Tuple[int, ...]

# Progress is published every this many insertions.
_REPORT_EVERY = 64

# Exact predicates up to this many bits are screened in float64 first.
_FLOAT_FILTER_BITS = 1000


@dataclass
class _Facet:
    """
    Hull facet under construction.
    vertices: sorted point indices.
    ortho/offset: exact outward hyperplane, ``dot(ortho, x) == offset`` on the facet.
    conflict: points strictly beyond the hyperplane (conflict graph edges).
    """
    vertices: Tuple[int, ...]
    ortho: np.ndarray
    offset: int
    alive: bool = True
    conflict: Set[int] = field(default_factory=set)

    def ridges(self) -> Iterable[Ridge]:
        v = self.vertices
        for k in range(len(v)):
            yield v[:k] + v[k + 1:]


@dataclass(frozen=True)
class ConvexHullFacet:
    vertices: Tuple[int, ...]
    ortho: np.ndarray


class ConvexHullBuilder:
    """
    Randomized incremental convex hull in D >= 2 dimensions with a conflict graph.

    Input: (M, D) integer coordinates.  All predicates are exact; the number
    type (int64 or Python ints) is fixed once by ``NumericPolicy``.  Python-int
    visibility tests are screened in float64 and only the ones too close to
    call are evaluated exactly (counted in ``exact_fallbacks``).
    Output: ``facets_list`` keeps every facet ever created (dead ones flagged),
    ``alive_facets()`` returns the hull.
    """

    def __init__(
        self,
        points: np.ndarray,
        *,
        precision: Precision = "auto",
        seed: int = 0,
        progress: Optional[ProgressRatio] = None,
    ) -> None:
        pts = np.asarray(points)
        if pts.ndim != 2 or pts.shape[1] < 2:
            raise DegenerateInputError("expected an (M, D) array of points with D >= 2")
        self.dimension = int(pts.shape[1])
        if pts.shape[0] < self.dimension + 1:
            raise DegenerateInputError(
                f"need at least {self.dimension + 1} points in {self.dimension} dimensions, got {pts.shape[0]}"
            )
        self.policy = NumericPolicy.for_points(pts, precision)
        self.P = pts.astype(self.policy.dtype)
        self._rows: List[Tuple[int, ...]] = [tuple(int(x) for x in row) for row in pts]
        self.seed = seed
        self.progress = progress
        self.exact_fallbacks = 0
        self._float_rows: Optional[Tuple[np.ndarray, np.ndarray]] = None
        if self.policy.exact and self.policy.bits < _FLOAT_FILTER_BITS:
            rows = self.P.astype(np.float64)
            self._float_rows = (rows, np.abs(rows))
            self._float_eps = (self.dimension + 8) * 2.0 ** -52

        self.facets_list: List[_Facet] = []
        self.ridge2facets: Dict[Ridge, List[int]] = {}
        self.point2facets: Dict[int, Set[int]] = {}
        self.inserted = 0

        self._build()

    # ---------------- public API ----------------
    def alive_facets(self) -> List[_Facet]:
        return [f for f in self.facets_list if f.alive]

    def hull_vertices(self) -> List[int]:
        return sorted({v for f in self.alive_facets() for v in f.vertices})

    def validate(self) -> None:
        """Check the hull invariants; raises ``AssertionError`` on violation."""
        alive = [fid for fid, f in enumerate(self.facets_list) if f.alive]
        for ridge, owners in self.ridge2facets.items():
            live = [fid for fid in owners if self.facets_list[fid].alive]
            assert len(live) == 2, f"ridge {ridge} shared by {len(live)} facets"
        for fid in alive:
            f = self.facets_list[fid]
            values = np.dot(self.P, f.ortho)
            assert not np.any(values > f.offset), f"facet {f.vertices} sees a point"

    # ---------------- construction ----------------
    def _build(self) -> None:
        d = self.dimension
        order = [int(i) for i in np.random.default_rng(self.seed).permutation(len(self._rows))]
        simplex = self._initial_simplex(order)
        in_simplex = set(simplex)
        self._inner = [sum(col) for col in zip(*(self._rows[i] for i in simplex))]

        base = [self._new_facet(tuple(sorted(simplex[:k] + simplex[k + 1:]))) for k in range(d + 1)]
        remaining = [i for i in order if i not in in_simplex]
        for fid in base:
            self._assign_conflicts(fid, remaining)

        total = len(remaining)
        for count, p in enumerate(remaining):
            check_cancelled(self.progress)
            visible = self.point2facets.pop(p, None)
            if visible:
                self._insert(p, visible)
                self.inserted += 1
            if count % _REPORT_EVERY == 0:
                report(self.progress, count, total)
        report(self.progress, 1.0, 1.0)
        _log.debug(
            "Hull in %dD: %d points, %d inserted, %d facets (%s arithmetic)",
            d, len(self._rows), self.inserted + d + 1, len(self.alive_facets()),
            "exact" if self.policy.exact else "int64",
        )

    def _initial_simplex(self, order: Sequence[int]) -> List[int]:
        """Greedily pick D+1 affinely independent points from ``order``."""
        d = self.dimension
        first = order[0]
        base = self._rows[first]
        chosen = [first]
        diffs: List[List[int]] = []
        for i in order[1:]:
            v = [a - b for a, b in zip(self._rows[i], base)]
            if not any(v):
                continue
            if integer_rank(diffs + [v]) == len(diffs) + 1:
                diffs.append(v)
                chosen.append(i)
                if len(chosen) == d + 1:
                    return chosen
        raise DegenerateInputError(
            f"points span only {len(chosen) - 1} of {d} dimensions"
        )

    def _new_facet(self, vertices: Tuple[int, ...]) -> int:
        base = self._rows[vertices[0]]
        vectors = [[a - b for a, b in zip(self._rows[v], base)] for v in vertices[1:]]
        normal = integer_ortho(vectors)
        offset = sum(n * x for n, x in zip(normal, base))
        # the inner point is the vertex sum of the initial simplex, i.e. (D+1) * centroid
        side = sum(n * x for n, x in zip(normal, self._inner)) - (self.dimension + 1) * offset
        if side == 0:
            raise AssertionError(f"flat hull facet {vertices}")
        if side > 0:
            normal = [-n for n in normal]
            offset = -offset
        fid = len(self.facets_list)
        self.facets_list.append(_Facet(vertices, np.array(normal, dtype=self.policy.dtype), offset))
        for ridge in self.facets_list[fid].ridges():
            self.ridge2facets.setdefault(ridge, []).append(fid)
        return fid

    def _assign_conflicts(self, fid: int, candidates: Iterable[int]) -> None:
        idx = np.fromiter(sorted(candidates), dtype=np.int64)
        if idx.size == 0:
            return
        f = self.facets_list[fid]
        if self._float_rows is None:
            beyond = np.dot(self.P[idx], f.ortho) > f.offset
        else:
            beyond = self._filtered_beyond(f, idx)
        for p in idx[np.asarray(beyond, dtype=bool)].tolist():
            f.conflict.add(p)
            self.point2facets.setdefault(p, set()).add(fid)

    def _filtered_beyond(self, f: _Facet, idx: np.ndarray) -> np.ndarray:
        """``dot(P[idx], ortho) > offset`` with Python-int arithmetic only where
        the float64 value is within its rounding error bound of zero."""
        rows, magnitude = self._float_rows
        normal = f.ortho.astype(np.float64)
        offset = float(f.offset)
        value = rows[idx] @ normal - offset
        bound = (magnitude[idx] @ np.abs(normal) + abs(offset)) * self._float_eps
        beyond = value > 0.0
        unsure = np.flatnonzero(np.abs(value) <= bound)
        if unsure.size:
            exact = np.dot(self.P[idx[unsure]], f.ortho) > f.offset
            beyond[unsure] = np.asarray(exact, dtype=bool)
            self.exact_fallbacks += int(unsure.size)
        return beyond

    def _insert(self, p: int, visible: Set[int]) -> None:
        horizon: List[Tuple[Ridge, int, int]] = []
        for fid in sorted(visible):
            for ridge in self.facets_list[fid].ridges():
                for other in self.ridge2facets[ridge]:
                    if other != fid and other not in visible:
                        horizon.append((ridge, fid, other))

        for ridge, inside, outside in horizon:
            new_fid = self._new_facet(tuple(sorted(ridge + (p,))))
            candidates = self.facets_list[inside].conflict | self.facets_list[outside].conflict
            candidates.discard(p)
            self._assign_conflicts(new_fid, candidates)

        for fid in visible:
            f = self.facets_list[fid]
            f.alive = False
            for q in f.conflict:
                owners = self.point2facets.get(q)
                if owners is not None:
                    owners.discard(fid)
            f.conflict = set()
            for ridge in f.ridges():
                owners = self.ridge2facets[ridge]
                owners.remove(fid)
                if not owners:
                    del self.ridge2facets[ridge]


def compute_convex_hull(
    points: np.ndarray,
    *,
    progress: Optional[ProgressRatio] = None,
    bits: int = DEFAULT_BITS,
    precision: Precision = "auto",
    seed: int = 0,
) -> List[ConvexHullFacet]:
    """Convex hull facets of a float point cloud, indices referring to ``points``.

    Coordinates are snapped to a ``bits``-bit grid first; points that collapse
    onto the same grid cell are represented by their first occurrence.
    """
    source = np.asarray(points, dtype=np.float64)
    q, index = discretize(source, bits)
    builder = ConvexHullBuilder(q, precision=precision, seed=seed, progress=progress)
    facets: List[ConvexHullFacet] = []
    for f in builder.alive_facets():
        normal = integer_direction(f.ortho)
        vertices = orient_vertices(source, [int(index[v]) for v in f.vertices], normal)
        normal.setflags(write=False)
        facets.append(ConvexHullFacet(vertices, normal))
    facets.sort(key=lambda f: sorted(f.vertices))
    _log.info("Convex hull: %d facets over %d points", len(facets), len(source))
    return facets
